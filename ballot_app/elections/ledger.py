"""The vote ledger: canonical ballots and the voter ``has_voted`` cache.

Every write path that touches a voter's ballots (online casting, offline
merge) holds that voter's row lock for the whole check-then-insert, so the
two channels cannot interleave for the same voter.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable

from django.db import transaction
from django.db.models import Exists, OuterRef
from django.utils import timezone

from elections.candidates import resolve_selection
from elections.exceptions import AlreadyVotedError, ElectionValidationError
from elections.models import AuditLogEntry, Election, Vote, Voter

logger = logging.getLogger(__name__)


def lock_voter(voter_pk: int) -> Voter:
    """Re-load a voter under a row lock. Must run inside a transaction."""
    return Voter.objects.select_for_update().get(pk=voter_pk)


def count_votes(*, voter: Voter, election: Election) -> int:
    return Vote.objects.filter(voter=voter, election=election).count()


def recompute_has_voted(voter: Voter) -> bool:
    """Persist ``has_voted`` from the ledger and return the new value."""
    has_voted = Vote.objects.filter(voter_id=voter.pk).exists()
    if voter.has_voted != has_voted:
        Voter.objects.filter(pk=voter.pk).update(has_voted=has_voted)
        voter.has_voted = has_voted
    return has_voted


@transaction.atomic
def cast_online_ballot(
    *,
    voter: Voter,
    election: Election,
    candidate_ids: Iterable[int | str],
    source_meta: dict[str, object] | None = None,
    timestamp: datetime.datetime | None = None,
) -> list[Vote]:
    """Write an online ballot set for a voter.

    Eligibility and authentication happen upstream; this enforces one ballot
    set per voter per election, zone membership and the seat quota.
    """
    if election.status != Election.Status.active:
        raise ElectionValidationError("election is not active")

    locked = lock_voter(voter.pk)
    if count_votes(voter=locked, election=election) > 0:
        raise AlreadyVotedError(f"Voter {locked.voter_id} has already voted in this election.")

    zone = locked.zone_for(election.type)
    candidates = resolve_selection(candidate_ids=candidate_ids, election=election, zone=zone)
    if not candidates:
        raise ElectionValidationError("A ballot needs at least one selection.")

    cast_at = timestamp or timezone.now()
    meta = {"channel": Vote.Source.online.value, **(source_meta or {})}
    votes = [
        Vote.objects.create(
            voter=locked,
            election=election,
            candidate=candidate,
            timestamp=cast_at,
            source=Vote.Source.online,
            source_meta=meta,
        )
        for candidate in candidates
    ]

    recompute_has_voted(locked)
    voter.has_voted = locked.has_voted

    logger.info(
        "cast_online_ballot: election=%s vid=%s selections=%s",
        election.pk,
        locked.voter_id,
        len(votes),
    )
    return votes


def repair_has_voted_flags(*, election: Election | None = None, dry_run: bool = False) -> int:
    """Bring every stale ``has_voted`` flag back in line with the ledger.

    Used after corrective deletions of ledger rows. Returns how many voters
    were (or, with ``dry_run``, would be) changed.
    """
    has_votes = Exists(Vote.objects.filter(voter_id=OuterRef("pk")))
    annotated = Voter.objects.annotate(has_ledger_votes=has_votes)

    stale_true = annotated.filter(has_voted=False, has_ledger_votes=True)
    stale_false = annotated.filter(has_voted=True, has_ledger_votes=False)

    to_true = list(stale_true.values_list("pk", flat=True))
    to_false = list(stale_false.values_list("pk", flat=True))
    changed = len(to_true) + len(to_false)

    logger.info(
        "repair_has_voted: stale_true=%s stale_false=%s dry_run=%s",
        len(to_true),
        len(to_false),
        dry_run,
    )
    if dry_run or not changed:
        return changed

    with transaction.atomic():
        Voter.objects.filter(pk__in=to_true).update(has_voted=True)
        Voter.objects.filter(pk__in=to_false).update(has_voted=False)
        if election is not None:
            AuditLogEntry.objects.create(
                election=election,
                event_type="has_voted_repaired",
                payload={"set_true": len(to_true), "set_false": len(to_false)},
                is_public=False,
            )

    return changed
