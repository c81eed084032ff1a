"""VID normalization and voter lookup.

Field admins key VIDs by hand, so ``425``, ``VID-425`` and ``V000425`` may all
refer to the same voter. Accepted formats:

* the VID exactly as typed (trimmed);
* ``VID-`` followed by the number zero-padded to 4 digits, or unpadded;
* ``V`` followed by the number zero-padded to 6 or 4 digits, or unpadded.

Only numbers up to 9999 are expanded; longer inputs match literally.
"""

from __future__ import annotations

import re

from elections.exceptions import AmbiguousVIDError, NotFoundError
from elections.models import Voter

_NON_DIGITS = re.compile(r"\D")

_MAX_PAD4 = 9999


def vid_variants(raw: str) -> list[str]:
    """Return the VID spellings ``raw`` may stand for, most literal first."""
    trimmed = str(raw or "").strip()
    if not trimmed:
        return []

    variants = [trimmed]
    digits = _NON_DIGITS.sub("", trimmed)
    if digits:
        number = int(digits)
        if number <= _MAX_PAD4:
            variants.extend(
                [
                    f"VID-{number:04d}",
                    f"VID-{number}",
                    f"V{number:06d}",
                    f"V{number:04d}",
                    f"V{number}",
                ]
            )

    return list(dict.fromkeys(variants))


def resolve_vid(raw: str) -> Voter:
    """Resolve a typed VID to exactly one voter.

    An exact match always wins. Otherwise every accepted spelling is tried and
    more than one hit raises :class:`AmbiguousVIDError`.
    """
    trimmed = str(raw or "").strip()
    if not trimmed:
        raise NotFoundError("Voter ID (VID) is required")

    exact = Voter.objects.filter(voter_id=trimmed).first()
    if exact is not None:
        return exact

    matches = list(Voter.objects.filter(voter_id__in=vid_variants(trimmed)).order_by("voter_id"))
    if not matches:
        raise NotFoundError(f"Voter not found with VID {trimmed!r}")
    if len(matches) > 1:
        raise AmbiguousVIDError(
            "Multiple voters match this VID. Please enter the full VID (e.g. VID-0425 or V000425).",
            matches=[voter.voter_id for voter in matches],
        )
    return matches[0]
