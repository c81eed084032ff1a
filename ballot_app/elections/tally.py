"""Per-zone winner computation from the vote ledger.

Only ledger rows are counted; unmerged offline ballots never are. Test voters
are excluded. Within a zone candidates are ordered by votes, then by who
reached their total first (earliest final ballot), then by candidate id, and
the top ``seats`` are ranked. NOTA competes like any other candidate.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import asdict, dataclass, replace

from django.db import DatabaseError
from django.db.models import Count, Max

from elections.exceptions import TransientStorageError
from elections.lookups import get_election
from elections.models import Election, Vote, Zone
from elections.zones import seat_quota, zones_for_election_type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateTally:
    candidate_id: int
    candidate_name: str
    is_nota: bool
    votes: int
    last_vote_at: datetime.datetime
    rank: int | None = None


@dataclass(frozen=True)
class WinnerEntry:
    candidate_id: int
    votes: int
    rank: int

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def _tie_break_key(row: CandidateTally) -> tuple[int, datetime.datetime, int]:
    return (-row.votes, row.last_vote_at, row.candidate_id)


def _zone_tallies(election: Election) -> list[tuple[Zone, list[CandidateTally]]]:
    """Ranked tallies for every active zone of the election's type, in display order."""
    try:
        zones = zones_for_election_type(election.type)
        zone_ids = [zone.pk for zone in zones]
        rows = list(
            Vote.objects.for_election(election=election)
            .counted()
            .filter(candidate__zone_id__in=zone_ids, candidate__election_type=election.type)
            .values("candidate_id", "candidate__name", "candidate__is_nota", "candidate__zone_id")
            .annotate(votes=Count("id"), last_vote_at=Max("timestamp"))
            .order_by()
        )
    except DatabaseError as exc:
        raise TransientStorageError(f"Could not load the tally for election {election.pk}: {exc}") from exc

    by_zone: dict[int, list[CandidateTally]] = {zone_id: [] for zone_id in zone_ids}
    for row in rows:
        by_zone[int(row["candidate__zone_id"])].append(
            CandidateTally(
                candidate_id=int(row["candidate_id"]),
                candidate_name=str(row["candidate__name"]),
                is_nota=bool(row["candidate__is_nota"]),
                votes=int(row["votes"]),
                last_vote_at=row["last_vote_at"],
            )
        )

    result: list[tuple[Zone, list[CandidateTally]]] = []
    for zone in zones:
        ordered = sorted(by_zone[zone.pk], key=_tie_break_key)
        seats = seat_quota(zone)
        ranked = [
            replace(row, rank=position if position <= seats else None)
            for position, row in enumerate(ordered, start=1)
        ]
        result.append((zone, ranked))
    return result


def compute_winners(election_id: int | str) -> dict[int, list[WinnerEntry]]:
    """Map every active zone id of the election's type to its ranked winners."""
    election = get_election(election_id)
    winners: dict[int, list[WinnerEntry]] = {}
    for zone, tallies in _zone_tallies(election):
        winners[zone.pk] = [
            WinnerEntry(candidate_id=row.candidate_id, votes=row.votes, rank=row.rank)
            for row in tallies
            if row.rank is not None
        ]

    logger.info(
        "compute_winners: election=%s zones=%s winners=%s",
        election.pk,
        len(winners),
        sum(len(entries) for entries in winners.values()),
    )
    return winners


def _winner_rows(election: Election) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for zone, tallies in _zone_tallies(election):
        for row in tallies:
            if row.rank is None:
                continue
            rows.append(
                {
                    "election_type": election.type,
                    "zone_id": zone.pk,
                    "zone_code": zone.code,
                    "zone_name": zone.name,
                    "candidate_id": row.candidate_id,
                    "candidate_name": row.candidate_name,
                    "is_nota": row.is_nota,
                    "votes": row.votes,
                    "rank": row.rank,
                }
            )
    return rows


def list_all_winners(election_id: int | str) -> list[dict[str, object]]:
    """Flat winner rows in zone display order, then rank."""
    return _winner_rows(get_election(election_id))


def zone_results(election_id: int | str) -> list[dict[str, object]]:
    """Full per-zone counts for the results screen, winners flagged."""
    election = get_election(election_id)
    results: list[dict[str, object]] = []
    for zone, tallies in _zone_tallies(election):
        results.append(
            {
                "zone_id": zone.pk,
                "zone_code": zone.code,
                "zone_name": zone.name,
                "seats": seat_quota(zone),
                "total_votes": sum(row.votes for row in tallies),
                "candidates": [
                    {
                        "candidate_id": row.candidate_id,
                        "candidate_name": row.candidate_name,
                        "is_nota": row.is_nota,
                        "votes": row.votes,
                        "rank": row.rank,
                        "is_winner": row.rank is not None,
                    }
                    for row in tallies
                ],
            }
        )
    return results


def public_winners() -> list[dict[str, object]]:
    """Winners of every election that is running or finished."""
    try:
        elections = list(
            Election.objects.filter(status__in=[Election.Status.active, Election.Status.completed]).order_by(
                "type", "id"
            )
        )
    except DatabaseError as exc:
        raise TransientStorageError(f"Could not load elections: {exc}") from exc

    return [
        {
            "election_id": election.pk,
            "election_title": election.title,
            "election_type": election.type,
            "status": election.status,
            "winners": _winner_rows(election),
        }
        for election in elections
    ]
