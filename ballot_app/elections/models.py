from __future__ import annotations

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q


class ElectionType(models.TextChoices):
    trustees = "TRUSTEES", "Trust Mandal"
    yuva_pankh = "YUVA_PANKH", "Yuva Pankh Samiti"
    karobari_members = "KAROBARI_MEMBERS", "Karobari Samiti"


def get_test_voter_prefix() -> str:
    return str(getattr(settings, "ELECTIONS_TEST_VOTER_PREFIX", "") or "")


class ElectionQuerySet(models.QuerySet["Election"]):
    def active(self) -> ElectionQuerySet:
        # Raw string: the queryset is defined before Election.Status exists.
        return self.filter(status="ACTIVE")

    def active_for_type(self, election_type: str) -> Election | None:
        return self.active().filter(type=election_type).order_by("-id").first()


class Election(models.Model):
    class Status(models.TextChoices):
        upcoming = "UPCOMING", "Upcoming"
        active = "ACTIVE", "Active"
        completed = "COMPLETED", "Completed"

    type = models.CharField(max_length=32, choices=ElectionType.choices)
    title = models.CharField(max_length=255)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.upcoming)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ElectionQuerySet.as_manager()

    class Meta:
        ordering = ("-created_at", "id")
        constraints = [
            models.UniqueConstraint(
                fields=["type"],
                name="uniq_election_active_per_type",
                condition=Q(status="ACTIVE"),
            ),
        ]
        permissions = [
            ("view_results", "Can view election results and winners"),
        ]

    def __str__(self) -> str:
        return self.title

    @property
    def is_active(self) -> bool:
        return self.status == Election.Status.active


class ZoneQuerySet(models.QuerySet["Zone"]):
    def for_type(self, election_type: str) -> ZoneQuerySet:
        return self.filter(election_type=election_type, is_active=True)


class Zone(models.Model):
    code = models.CharField(max_length=64)
    name = models.CharField(max_length=255)
    election_type = models.CharField(max_length=32, choices=ElectionType.choices)
    seats = models.PositiveSmallIntegerField(default=1, validators=[MinValueValidator(1)])
    is_active = models.BooleanField(default=True)

    objects = ZoneQuerySet.as_manager()

    class Meta:
        ordering = ("election_type", "code", "id")
        constraints = [
            models.UniqueConstraint(
                fields=["election_type", "code"],
                name="uniq_zone_type_code",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.election_type})"


class CandidateQuerySet(models.QuerySet["Candidate"]):
    def approved(self) -> CandidateQuerySet:
        return self.filter(status="APPROVED")

    def ballot_targets(self, *, zone: Zone) -> CandidateQuerySet:
        """Approved candidates of a zone, NOTA included."""
        return self.approved().filter(zone=zone, election_type=zone.election_type)


class Candidate(models.Model):
    class Status(models.TextChoices):
        pending = "PENDING", "Pending"
        approved = "APPROVED", "Approved"
        rejected = "REJECTED", "Rejected"
        withdrawn = "WITHDRAWN", "Withdrawn"

    zone = models.ForeignKey(Zone, on_delete=models.PROTECT, related_name="candidates")
    election_type = models.CharField(max_length=32, choices=ElectionType.choices)
    name = models.CharField(max_length=255)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.pending)
    is_nota = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = CandidateQuerySet.as_manager()

    class Meta:
        ordering = ("zone", "name", "id")
        constraints = [
            models.UniqueConstraint(
                fields=["zone"],
                name="uniq_candidate_nota_per_zone",
                condition=Q(is_nota=True),
            ),
        ]
        indexes = [
            models.Index(fields=["election_type", "status"], name="cand_type_status"),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.zone_id})"


class VoterQuerySet(models.QuerySet["Voter"]):
    def real(self) -> VoterQuerySet:
        """Exclude test voters from statistics."""
        prefix = get_test_voter_prefix()
        if not prefix:
            return self.all()
        return self.exclude(voter_id__startswith=prefix)


class Voter(models.Model):
    voter_id = models.CharField(max_length=64, unique=True, verbose_name="VID")
    name = models.CharField(max_length=255, blank=True, default="")
    is_active = models.BooleanField(default=True)

    # Denormalized: kept equal to "has at least one Vote row" by every ledger write.
    has_voted = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)

    objects = VoterQuerySet.as_manager()

    class Meta:
        ordering = ("voter_id",)

    def __str__(self) -> str:
        return self.voter_id

    @property
    def is_test_voter(self) -> bool:
        prefix = get_test_voter_prefix()
        return bool(prefix) and self.voter_id.startswith(prefix)

    def zone_for(self, election_type: str) -> Zone | None:
        assignment = (
            self.zone_assignments.select_related("zone")
            .filter(election_type=election_type)
            .first()
        )
        return assignment.zone if assignment is not None else None


class VoterZoneAssignment(models.Model):
    voter = models.ForeignKey(Voter, on_delete=models.CASCADE, related_name="zone_assignments")
    election_type = models.CharField(max_length=32, choices=ElectionType.choices)
    zone = models.ForeignKey(Zone, on_delete=models.PROTECT, related_name="voter_assignments")

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["voter", "election_type"],
                name="uniq_voter_zone_per_type",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.voter_id}:{self.election_type}:{self.zone_id}"


class VoteQuerySet(models.QuerySet["Vote"]):
    def for_election(self, *, election: Election) -> VoteQuerySet:
        return self.filter(election=election)

    def counted(self) -> VoteQuerySet:
        """Votes that take part in tallies and statistics."""
        prefix = get_test_voter_prefix()
        if not prefix:
            return self.all()
        return self.exclude(voter__voter_id__startswith=prefix)


class Vote(models.Model):
    class Source(models.TextChoices):
        online = "online", "Online"
        offline = "offline", "Offline"

    voter = models.ForeignKey(Voter, on_delete=models.PROTECT, related_name="votes")
    election = models.ForeignKey(Election, on_delete=models.PROTECT, related_name="votes")
    candidate = models.ForeignKey(Candidate, on_delete=models.PROTECT, related_name="votes")

    # When the ballot was cast; for merged offline ballots this is the entry time.
    timestamp = models.DateTimeField()
    source = models.CharField(max_length=16, choices=Source.choices, default=Source.online)
    source_meta = models.JSONField(blank=True, default=dict)
    offline_vote = models.OneToOneField(
        "OfflineVote",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="ledger_vote",
    )

    objects = VoteQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["voter", "election", "candidate"],
                name="uniq_vote_voter_election_candidate",
            ),
        ]
        indexes = [
            models.Index(fields=["election", "candidate"], name="vote_el_cand"),
            models.Index(fields=["voter", "election"], name="vote_voter_el"),
        ]

    def __str__(self) -> str:
        return f"vote:{self.election_id}:{self.voter_id}:{self.candidate_id}"


class OfflineVoteQuerySet(models.QuerySet["OfflineVote"]):
    def for_election(self, *, election: Election) -> OfflineVoteQuerySet:
        return self.filter(election=election)

    def unmerged(self) -> OfflineVoteQuerySet:
        return self.filter(is_merged=False)


class OfflineVote(models.Model):
    # Not a FK: the voter row may not exist yet when the ballot is keyed in.
    voter_vid = models.CharField(max_length=64, db_index=True, verbose_name="VID")
    election = models.ForeignKey(Election, on_delete=models.PROTECT, related_name="offline_votes")
    # Null marks an all-NOTA placeholder entry.
    candidate = models.ForeignKey(
        Candidate,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="offline_votes",
    )
    timestamp = models.DateTimeField()
    entered_by = models.CharField(max_length=255)
    is_merged = models.BooleanField(default=False)
    merged_at = models.DateTimeField(blank=True, null=True)
    notes = models.TextField(blank=True, default="")

    objects = OfflineVoteQuerySet.as_manager()

    class Meta:
        ordering = ("timestamp", "id")
        indexes = [
            models.Index(fields=["election", "is_merged"], name="offline_el_merged"),
            models.Index(fields=["election", "voter_vid"], name="offline_el_vid"),
        ]
        permissions = [
            ("merge_offlinevote", "Can merge offline votes into the vote ledger"),
        ]

    def __str__(self) -> str:
        return f"offline:{self.election_id}:{self.voter_vid}:{self.candidate_id or 'nota'}"


class AuditLogEntry(models.Model):
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name="audit_log")
    timestamp = models.DateTimeField(auto_now_add=True)
    event_type = models.CharField(max_length=64)
    payload = models.JSONField(blank=True, default=dict)
    is_public = models.BooleanField(default=False)

    class Meta:
        verbose_name_plural = "Audit log entries"
        ordering = ("timestamp", "id")
        indexes = [
            models.Index(fields=["election", "timestamp"], name="audit_el_ts"),
        ]

    def __str__(self) -> str:
        return f"{self.election_id}:{self.event_type}"
