from __future__ import annotations

from django.db import DatabaseError

from elections.exceptions import ElectionValidationError, NotFoundError, TransientStorageError
from elections.models import Election, ElectionType


def get_election(election_id: int | str) -> Election:
    try:
        pk = int(election_id)
    except (TypeError, ValueError, OverflowError) as exc:
        raise NotFoundError(f"Election {election_id!r} not found") from exc

    try:
        election = Election.objects.filter(pk=pk).first()
    except DatabaseError as exc:
        raise TransientStorageError(f"Could not load election {pk}: {exc}") from exc

    if election is None:
        raise NotFoundError(f"Election {pk} not found")
    return election


def get_active_election(election_id: int | str) -> Election:
    election = get_election(election_id)
    if election.status != Election.Status.active:
        raise ElectionValidationError(f"Election {election.pk} is not active (status: {election.status}).")
    return election


def active_election_for_type(election_type: str) -> Election:
    normalized = str(election_type or "").strip().upper()
    if normalized not in ElectionType.values:
        raise ElectionValidationError(f"Unknown election type {election_type!r}.")

    try:
        election = Election.objects.active_for_type(normalized)
    except DatabaseError as exc:
        raise TransientStorageError(f"Could not load the active {normalized} election: {exc}") from exc

    if election is None:
        raise NotFoundError(f"No active {ElectionType(normalized).label} election found")
    return election
