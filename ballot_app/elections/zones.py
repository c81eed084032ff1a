"""Zone registry: zones per election type and their presentation order."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from elections.models import ElectionType, Zone

# Zones are presented in this order on result screens and exports. Zones with
# a code missing from the table sort after the listed ones, by name.
ZONE_DISPLAY_ORDER: dict[str, tuple[str, ...]] = {
    ElectionType.trustees.value: (
        "ABDASA_GARDA",
        "BHUJ",
        "ANJAR_ANYA_GUJARAT",
        "MUMBAI",
        "RAIGAD",
        "KARNATAKA_GOA",
    ),
    ElectionType.yuva_pankh.value: (),
    ElectionType.karobari_members.value: (),
}

_UNLISTED_ZONE_SORT_KEY = 999


class ZoneLike(Protocol):
    code: str
    name: str


def zone_sort_key(*, election_type: str, code: str) -> int:
    order = ZONE_DISPLAY_ORDER.get(str(election_type), ())
    normalized = str(code or "").strip().upper()
    try:
        return order.index(normalized)
    except ValueError:
        return _UNLISTED_ZONE_SORT_KEY


def sort_zones[Z: ZoneLike](zones: Iterable[Z], *, election_type: str) -> list[Z]:
    return sorted(
        zones,
        key=lambda zone: (
            zone_sort_key(election_type=election_type, code=zone.code),
            str(zone.name or "").lower(),
        ),
    )


def zones_for_election_type(election_type: str) -> list[Zone]:
    """Active zones of an election type, in display order."""
    return sort_zones(Zone.objects.for_type(election_type), election_type=election_type)


def seat_quota(zone: Zone) -> int:
    return max(1, int(zone.seats or 1))
