"""Offline ballot intake.

Field admins key in paper ballots against a voter's VID. Entries land in the
offline queue (``OfflineVote`` with ``is_merged=False``) and never touch the
vote ledger; the reconciler promotes them later.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Max
from django.utils import timezone

from elections.candidates import get_candidate, resolve_selection, validate_ballot_target
from elections.exceptions import (
    AlreadyVotedError,
    ElectionValidationError,
    TransientStorageError,
)
from elections.ledger import count_votes
from elections.lookups import get_active_election, get_election
from elections.models import AuditLogEntry, Election, OfflineVote, Voter
from elections.vid import resolve_vid
from elections.zones import seat_quota, sort_zones

logger = logging.getLogger(__name__)

ALL_NOTA_NOTE = "All NOTA"


def _admin_label(admin: object) -> str:
    if isinstance(admin, str):
        label = admin
    else:
        label = getattr(admin, "username", None) or getattr(admin, "pk", None) or ""
    label = str(label).strip()
    if not label:
        raise ElectionValidationError("The entering admin must be identified.")
    return label


def _offline_votes_for(*, voter: Voter, election: Election):
    return OfflineVote.objects.filter(election=election, voter_vid=voter.voter_id)


@transaction.atomic
def record_offline_ballot(
    *,
    vid: str,
    election_id: int | str,
    candidate_id: int | str | None,
    admin: object,
    notes: str = "",
    additional_selection: bool = False,
) -> OfflineVote:
    """Queue one offline selection for a voter.

    ``candidate_id=None`` records an all-NOTA placeholder. With
    ``additional_selection`` the voter may already hold offline selections for
    this election, as long as the total stays within the zone's seat quota.
    """
    entered_by = _admin_label(admin)
    election = get_active_election(election_id)
    voter = resolve_vid(vid)

    # Serialize entries for the same voter so two admins can't both pass the checks.
    locked = Voter.objects.select_for_update().get(pk=voter.pk)

    if count_votes(voter=locked, election=election) > 0:
        raise AlreadyVotedError(f"Voter {locked.voter_id} has already voted online. Cannot submit offline vote.")

    existing = list(_offline_votes_for(voter=locked, election=election).select_related("candidate"))
    if existing and not additional_selection:
        merged = any(row.is_merged for row in existing)
        raise AlreadyVotedError(
            f"Voter {locked.voter_id} has already submitted an offline vote (merged)."
            if merged
            else f"Voter {locked.voter_id} already has an unmerged offline vote."
        )

    zone = locked.zone_for(election.type)
    candidate = None
    if candidate_id is not None:
        candidate = get_candidate(candidate_id)
        validate_ballot_target(candidate=candidate, election=election, zone=zone)

    if existing and additional_selection:
        if any(row.is_merged for row in existing):
            raise AlreadyVotedError(f"Voter {locked.voter_id} offline ballot is already merged.")
        if candidate is None or any(row.candidate_id is None for row in existing):
            raise ElectionValidationError("An all-NOTA entry cannot be combined with other selections.")
        if any(row.candidate_id == candidate.pk for row in existing):
            raise ElectionValidationError(f"Candidate {candidate.name!r} is already selected for this voter.")
        if zone is not None and len(existing) + 1 > seat_quota(zone):
            raise ElectionValidationError(
                f"Zone {zone.name!r}: at most {seat_quota(zone)} selection(s) allowed."
            )

    try:
        offline_vote = OfflineVote.objects.create(
            voter_vid=locked.voter_id,
            election=election,
            candidate=candidate,
            timestamp=timezone.now(),
            entered_by=entered_by,
            is_merged=False,
            notes=str(notes or "").strip() or ("" if candidate is not None else ALL_NOTA_NOTE),
        )
        AuditLogEntry.objects.create(
            election=election,
            event_type="offline_vote_recorded",
            payload={
                "vid": locked.voter_id,
                "selections": 1 if candidate is not None else 0,
                "additional_selection": additional_selection,
                "entered_by": entered_by,
            },
            is_public=False,
        )
    except DatabaseError as exc:
        raise TransientStorageError(f"Error recording offline vote: {exc}") from exc

    logger.info(
        "record_offline_ballot: election=%s vid=%s candidate=%s admin=%s",
        election.pk,
        locked.voter_id,
        candidate.pk if candidate is not None else "nota",
        entered_by,
    )
    return offline_vote


@transaction.atomic
def record_offline_ballot_set(
    *,
    vid: str,
    election_id: int | str,
    candidate_ids: Iterable[int | str],
    admin: object,
    notes: str = "",
) -> list[OfflineVote]:
    """Queue a voter's whole offline ballot in one go.

    An empty selection is stored as a single all-NOTA placeholder so the voter
    still counts as having submitted.
    """
    entered_by = _admin_label(admin)
    election = get_active_election(election_id)
    voter = resolve_vid(vid)
    locked = Voter.objects.select_for_update().get(pk=voter.pk)

    if count_votes(voter=locked, election=election) > 0:
        raise AlreadyVotedError(f"Voter {locked.voter_id} has already voted online. Cannot submit offline vote.")

    existing = _offline_votes_for(voter=locked, election=election).order_by("id").first()
    if existing is not None:
        raise AlreadyVotedError(
            f"Voter {locked.voter_id} has already submitted an offline vote (merged)."
            if existing.is_merged
            else f"Voter {locked.voter_id} already has an unmerged offline vote. Merge or delete it first."
        )

    zone = locked.zone_for(election.type)
    candidates = resolve_selection(candidate_ids=candidate_ids, election=election, zone=zone)

    now = timezone.now()
    cleaned_notes = str(notes or "").strip()
    try:
        if not candidates:
            rows = [
                OfflineVote.objects.create(
                    voter_vid=locked.voter_id,
                    election=election,
                    candidate=None,
                    timestamp=now,
                    entered_by=entered_by,
                    is_merged=False,
                    notes=f"{cleaned_notes} (all NOTA)" if cleaned_notes else ALL_NOTA_NOTE,
                )
            ]
        else:
            rows = [
                OfflineVote.objects.create(
                    voter_vid=locked.voter_id,
                    election=election,
                    candidate=candidate,
                    timestamp=now,
                    entered_by=entered_by,
                    is_merged=False,
                    notes=cleaned_notes,
                )
                for candidate in candidates
            ]
        AuditLogEntry.objects.create(
            election=election,
            event_type="offline_vote_recorded",
            payload={
                "vid": locked.voter_id,
                "selections": len(candidates),
                "entered_by": entered_by,
            },
            is_public=False,
        )
    except DatabaseError as exc:
        raise TransientStorageError(f"Error submitting offline votes: {exc}") from exc

    logger.info(
        "record_offline_ballot_set: election=%s vid=%s selections=%s admin=%s",
        election.pk,
        locked.voter_id,
        len(candidates),
        entered_by,
    )
    return rows


def check_vid(*, vid: str, election_id: int | str) -> dict[str, object]:
    """Look a VID up before entry and report whether it can still vote offline."""
    election = get_active_election(election_id)
    voter = resolve_vid(vid)
    zone = voter.zone_for(election.type)

    has_online_vote = count_votes(voter=voter, election=election) > 0
    has_offline_vote = _offline_votes_for(voter=voter, election=election).exists()

    return {
        "voter": {
            "id": voter.pk,
            "voter_id": voter.voter_id,
            "name": voter.name,
            "zone": (
                {
                    "id": zone.pk,
                    "code": zone.code,
                    "name": zone.name,
                    "seats": zone.seats,
                }
                if zone is not None
                else None
            ),
        },
        "election": {
            "id": election.pk,
            "title": election.title,
            "type": election.type,
        },
        "has_online_vote": has_online_vote,
        "has_offline_vote": has_offline_vote,
        "can_vote": not has_online_vote and not has_offline_vote,
    }


def clamp_entries_limit(raw: object) -> int:
    default = int(settings.ELECTIONS_OFFLINE_ENTRIES_LIMIT)
    maximum = int(settings.ELECTIONS_OFFLINE_ENTRIES_MAX_LIMIT)
    try:
        value = int(str(raw)) if raw not in (None, "") else default
    except (TypeError, ValueError):
        value = default
    return min(maximum, max(1, value))


def list_offline_entries(*, election_id: int | str, limit: object = None) -> list[dict[str, object]]:
    """VID-only listing of the offline queue, most recent entry first.

    Voter names are deliberately left out; admins review entries by VID.
    """
    election = get_election(election_id)
    clamped = clamp_entries_limit(limit)

    groups = list(
        OfflineVote.objects.for_election(election=election)
        .values("voter_vid")
        .annotate(latest=Max("timestamp"))
        .order_by("-latest", "voter_vid")[:clamped]
    )
    vids = [group["voter_vid"] for group in groups]

    rows_by_vid: dict[str, list[OfflineVote]] = {}
    for row in (
        OfflineVote.objects.for_election(election=election)
        .filter(voter_vid__in=vids)
        .select_related("candidate", "candidate__zone")
        .order_by("id")
    ):
        rows_by_vid.setdefault(row.voter_vid, []).append(row)

    entries: list[dict[str, object]] = []
    for group in groups:
        vid = group["voter_vid"]
        rows = rows_by_vid.get(vid, [])

        selections_by_zone: dict[str, list[str]] = {}
        zones = {}
        for row in rows:
            if row.candidate is None:
                continue
            zones[row.candidate.zone.code] = row.candidate.zone
            selections_by_zone.setdefault(row.candidate.zone.code, []).append(row.candidate.name)

        entries.append(
            {
                "vid": vid,
                "timestamp": group["latest"].isoformat() if group["latest"] else None,
                "is_merged": bool(rows) and all(row.is_merged for row in rows),
                "all_nota": bool(rows) and all(row.candidate_id is None for row in rows),
                "selections": [
                    {"zone_code": zone.code, "candidates": selections_by_zone[zone.code]}
                    for zone in sort_zones(zones.values(), election_type=election.type)
                ],
            }
        )

    return entries
