"""Candidate catalog: valid ballot targets per zone."""

from __future__ import annotations

from collections.abc import Iterable

from elections.exceptions import ElectionValidationError, NotFoundError
from elections.models import Candidate, Election, Zone
from elections.zones import seat_quota


def ballot_targets(zone: Zone) -> list[Candidate]:
    return list(Candidate.objects.ballot_targets(zone=zone).order_by("is_nota", "name", "id"))


def nota_candidate(zone: Zone) -> Candidate | None:
    return Candidate.objects.filter(zone=zone, is_nota=True).first()


def get_candidate(candidate_id: int | str) -> Candidate:
    try:
        pk = int(candidate_id)
    except (TypeError, ValueError, OverflowError) as exc:
        raise NotFoundError(f"Candidate {candidate_id!r} not found") from exc

    candidate = Candidate.objects.select_related("zone").filter(pk=pk).first()
    if candidate is None:
        raise NotFoundError(f"Candidate {candidate_id!r} not found")
    return candidate


def validate_ballot_target(*, candidate: Candidate, election: Election, zone: Zone | None) -> None:
    """Check a candidate may receive a ballot from a voter assigned to ``zone``."""
    if candidate.status != Candidate.Status.approved:
        raise ElectionValidationError(
            f"Candidate {candidate.name!r} is not approved (status: {candidate.status})."
        )
    if candidate.election_type != election.type or candidate.zone.election_type != election.type:
        raise ElectionValidationError(f"Candidate {candidate.name!r} does not stand in this election.")
    if zone is None:
        raise ElectionValidationError("Voter has no zone assignment for this election.")
    if candidate.zone_id != zone.pk:
        raise ElectionValidationError(
            f"Candidate {candidate.name!r} is not on the ballot for zone {zone.name!r}."
        )


def resolve_selection(
    *,
    candidate_ids: Iterable[int | str],
    election: Election,
    zone: Zone | None,
) -> list[Candidate]:
    """Validate a ballot's candidate picks for one voter.

    Duplicate picks collapse to one, order is preserved, and the result must
    fit within the zone's seat quota.
    """
    seen: set[int] = set()
    candidates: list[Candidate] = []
    for raw_id in candidate_ids:
        candidate = get_candidate(raw_id)
        if candidate.pk in seen:
            continue
        seen.add(candidate.pk)
        validate_ballot_target(candidate=candidate, election=election, zone=zone)
        candidates.append(candidate)

    if zone is not None and len(candidates) > seat_quota(zone):
        raise ElectionValidationError(
            f"Zone {zone.name!r}: at most {seat_quota(zone)} selection(s) allowed, got {len(candidates)}."
        )
    return candidates
