"""Merge queued offline ballots into the vote ledger.

Conflict rule: online wins. A voter who already has ledger rows for the
election keeps them; their offline rows are stamped merged without producing
votes, so they are never reconsidered. The rows merged for a voter are the
ones queued when that voter is locked, not the ones seen at the start of the
run.

Each voter is one unit of work with its own transaction. A failing voter is
reported in ``skipped`` and retried on the next run; the rest of the batch is
unaffected. Because only ``is_merged=False`` rows are ever read, re-running is
safe at any point.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field

from django.db import DatabaseError, transaction
from django.utils import timezone

from elections.exceptions import TransientStorageError
from elections.ledger import recompute_has_voted
from elections.lookups import get_active_election
from elections.models import AuditLogEntry, Election, OfflineVote, Vote, Voter

logger = logging.getLogger(__name__)

SKIP_VOTER_NOT_FOUND = "VoterNotFound"
SKIP_ALREADY_HAS_ONLINE_VOTE = "AlreadyHasOnlineVote"
SKIP_ALREADY_MERGED_OFFLINE = "AlreadyMergedOffline"


@dataclass(frozen=True)
class SkippedVoter:
    vid: str
    reason: str


@dataclass
class MergeResult:
    merged_count: int = 0
    voter_count: int = 0
    skipped: list[SkippedVoter] = field(default_factory=list)

    def as_dict(self) -> dict[str, object]:
        return {
            "merged_count": self.merged_count,
            "voter_count": self.voter_count,
            "skipped": [asdict(entry) for entry in self.skipped],
        }


@dataclass(frozen=True)
class _VoterOutcome:
    merged: int
    skip_reason: str = ""


def _merge_voter_group(*, election: Election, vid: str) -> _VoterOutcome:
    """Merge one voter's queued rows. Runs inside the caller's transaction."""
    voter = Voter.objects.select_for_update().filter(voter_id=vid).first()
    if voter is None:
        # Rows stay queued: the voter record may appear after data corrections.
        return _VoterOutcome(merged=0, skip_reason=SKIP_VOTER_NOT_FOUND)

    # Everything still queued for the voter, including rows entered after the batch snapshot.
    rows = list(
        OfflineVote.objects.select_for_update()
        .for_election(election=election)
        .filter(voter_vid=vid, is_merged=False)
        .order_by("timestamp", "id")
    )
    if not rows:
        return _VoterOutcome(merged=0)

    now = timezone.now()
    stamp = OfflineVote.objects.filter(pk__in=[row.pk for row in rows], is_merged=False)

    existing = Vote.objects.filter(voter=voter, election=election)
    if existing.exists():
        stamp.update(is_merged=True, merged_at=now)
        recompute_has_voted(voter)
        if existing.exclude(source=Vote.Source.offline).exists():
            return _VoterOutcome(merged=0, skip_reason=SKIP_ALREADY_HAS_ONLINE_VOTE)
        return _VoterOutcome(merged=0, skip_reason=SKIP_ALREADY_MERGED_OFFLINE)

    merged = 0
    seen_candidate_ids: set[int] = set()
    for row in rows:
        if row.candidate_id is None or row.candidate_id in seen_candidate_ids:
            continue
        seen_candidate_ids.add(row.candidate_id)
        Vote.objects.create(
            voter=voter,
            election=election,
            candidate_id=row.candidate_id,
            timestamp=row.timestamp,
            source=Vote.Source.offline,
            source_meta={
                "channel": Vote.Source.offline.value,
                "entered_by": row.entered_by,
                "offline_vote_id": row.pk,
            },
            offline_vote=row,
        )
        merged += 1

    stamp.update(is_merged=True, merged_at=now)
    recompute_has_voted(voter)
    return _VoterOutcome(merged=merged)


def merge_offline_ballots(election_id: int | str, *, actor: str | None = None) -> MergeResult:
    """Promote every unmerged offline ballot of an election into the ledger."""
    election = get_active_election(election_id)

    try:
        pending = list(
            OfflineVote.objects.for_election(election=election)
            .unmerged()
            .order_by("voter_vid", "timestamp", "id")
            .values_list("voter_vid", flat=True)
        )
    except DatabaseError as exc:
        raise TransientStorageError(f"Could not load offline votes for election {election.pk}: {exc}") from exc

    result = MergeResult()
    if not pending:
        logger.info("merge_offline_ballots: nothing_to_merge election=%s", election.pk)
        return result

    vids = sorted(set(pending))
    result.voter_count = len(vids)
    logger.info(
        "merge_offline_ballots: start election=%s voters=%s rows=%s",
        election.pk,
        result.voter_count,
        len(pending),
    )

    for vid in vids:
        try:
            with transaction.atomic():
                outcome = _merge_voter_group(election=election, vid=vid)
        except DatabaseError as exc:
            reason = f"{type(exc).__name__}: {exc}"
            logger.exception("merge_offline_ballots: voter_failed election=%s vid=%s", election.pk, vid)
            result.skipped.append(SkippedVoter(vid=vid, reason=reason))
            continue

        result.merged_count += outcome.merged
        if outcome.skip_reason:
            logger.warning(
                "merge_offline_ballots: voter_skipped election=%s vid=%s reason=%s",
                election.pk,
                vid,
                outcome.skip_reason,
            )
            result.skipped.append(SkippedVoter(vid=vid, reason=outcome.skip_reason))

    payload: dict[str, object] = result.as_dict()
    if actor:
        payload["actor"] = actor

    try:
        AuditLogEntry.objects.create(
            election=election,
            event_type="offline_votes_merged",
            payload=payload,
            is_public=False,
        )
    except DatabaseError:
        # The merge itself is committed per voter; a missing audit row must not hide that.
        logger.exception("merge_offline_ballots: audit_log_failed election=%s", election.pk)

    logger.info(
        "merge_offline_ballots: done election=%s merged=%s voters=%s skipped=%s",
        election.pk,
        result.merged_count,
        result.voter_count,
        len(result.skipped),
    )
    return result
