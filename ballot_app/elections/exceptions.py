"""Errors raised by the offline intake, reconciler and tally operations.

Each error carries the HTTP status the JSON endpoints answer with.
"""


class ElectionsError(Exception):
    status_code = 400
    code = "elections_error"


class NotFoundError(ElectionsError):
    """A VID, election or candidate does not resolve."""

    status_code = 404
    code = "not_found"


class AmbiguousVIDError(ElectionsError):
    """A VID matches more than one voter after normalization."""

    status_code = 400
    code = "ambiguous_vid"

    def __init__(self, message: str, *, matches: list[str] | None = None) -> None:
        super().__init__(message)
        self.matches = list(matches or [])


class AlreadyVotedError(ElectionsError):
    """The voter already holds a ballot for this election through a channel."""

    status_code = 409
    code = "already_voted"


class ElectionValidationError(ElectionsError):
    """Candidate outside the voter's zone, seat quota exceeded, election not active."""

    status_code = 400
    code = "validation_error"


class TransientStorageError(ElectionsError):
    """A storage failure that is safe to retry."""

    status_code = 503
    code = "transient_storage_error"


__all__ = [
    "ElectionsError",
    "NotFoundError",
    "AmbiguousVIDError",
    "AlreadyVotedError",
    "ElectionValidationError",
    "TransientStorageError",
]
