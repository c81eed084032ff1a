from __future__ import annotations

import datetime
import itertools

from django.contrib.auth.models import Permission, User
from django.utils import timezone

from elections.models import Candidate, Election, ElectionType, Vote, Voter, VoterZoneAssignment, Zone

_BASE_TIME = datetime.datetime(2026, 3, 1, 9, 0, tzinfo=datetime.UTC)
_counter = itertools.count(1)


def at(minutes: int) -> datetime.datetime:
    """A fixed point in time, ``minutes`` after the start of polling."""
    return _BASE_TIME + datetime.timedelta(minutes=minutes)


def make_election(
    *,
    election_type: str = ElectionType.trustees,
    status: str = Election.Status.active,
    title: str = "",
) -> Election:
    return Election.objects.create(
        type=election_type,
        status=status,
        title=title or f"{election_type} election {next(_counter)}",
    )


def make_zone(
    code: str,
    *,
    election_type: str = ElectionType.trustees,
    seats: int = 1,
    name: str = "",
    is_active: bool = True,
) -> Zone:
    return Zone.objects.create(
        code=code,
        name=name or code.replace("_", " ").title(),
        election_type=election_type,
        seats=seats,
        is_active=is_active,
    )


def make_candidate(
    zone: Zone,
    name: str,
    *,
    status: str = Candidate.Status.approved,
    is_nota: bool = False,
) -> Candidate:
    return Candidate.objects.create(
        zone=zone,
        election_type=zone.election_type,
        name=name,
        status=status,
        is_nota=is_nota,
    )


def make_voter(voter_id: str, *, zone: Zone | None = None, name: str = "") -> Voter:
    voter = Voter.objects.create(voter_id=voter_id, name=name or f"Voter {voter_id}")
    if zone is not None:
        VoterZoneAssignment.objects.create(voter=voter, election_type=zone.election_type, zone=zone)
    return voter


def ledger_vote(
    *,
    voter: Voter,
    election: Election,
    candidate: Candidate,
    when: datetime.datetime | None = None,
    source: str = Vote.Source.online,
) -> Vote:
    vote = Vote.objects.create(
        voter=voter,
        election=election,
        candidate=candidate,
        timestamp=when or timezone.now(),
        source=source,
    )
    Voter.objects.filter(pk=voter.pk).update(has_voted=True)
    return vote


def make_staff_user(username: str, *codenames: str) -> User:
    user = User.objects.create_user(username=username, password="pw")
    for codename in codenames:
        user.user_permissions.add(Permission.objects.get(content_type__app_label="elections", codename=codename))
    return user
