"""Tabular exports of the vote ledger and the offline queue."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from import_export import fields, resources
from import_export.formats import base_formats
from tablib import Dataset

from elections.exceptions import ElectionValidationError
from elections.lookups import get_election
from elections.models import Election, OfflineVote, Vote

logger = logging.getLogger(__name__)

EXPORT_FORMATS: dict[str, type[base_formats.Format]] = {
    "csv": base_formats.CSV,
    "xlsx": base_formats.XLSX,
    "json": base_formats.JSON,
}

_VOTE_COLUMNS = ("id", "vid", "zone", "candidate", "is_nota", "source", "timestamp", "test_voter")
_OFFLINE_VOTE_COLUMNS = (
    "id",
    "vid",
    "zone",
    "candidate",
    "entered_by",
    "timestamp",
    "is_merged",
    "merged_at",
    "notes",
)


class VoteExportResource(resources.ModelResource):
    vid = fields.Field(attribute="voter__voter_id", column_name="VID", readonly=True)
    zone = fields.Field(attribute="candidate__zone__code", column_name="Zone", readonly=True)
    candidate = fields.Field(attribute="candidate__name", column_name="Candidate", readonly=True)
    is_nota = fields.Field(attribute="candidate__is_nota", column_name="NOTA", readonly=True)
    source = fields.Field(attribute="source", column_name="Source", readonly=True)
    timestamp = fields.Field(attribute="timestamp", column_name="Timestamp", readonly=True)
    test_voter = fields.Field(column_name="Test Voter", readonly=True)

    class Meta:
        model = Vote
        fields = _VOTE_COLUMNS
        export_order = _VOTE_COLUMNS

    def dehydrate_test_voter(self, vote: Vote) -> bool:
        return vote.voter.is_test_voter

    def dehydrate_timestamp(self, vote: Vote) -> str:
        return vote.timestamp.isoformat()


class OfflineVoteExportResource(resources.ModelResource):
    vid = fields.Field(attribute="voter_vid", column_name="VID", readonly=True)
    zone = fields.Field(column_name="Zone", readonly=True)
    candidate = fields.Field(column_name="Candidate", readonly=True)
    entered_by = fields.Field(attribute="entered_by", column_name="Entered By", readonly=True)
    timestamp = fields.Field(attribute="timestamp", column_name="Timestamp", readonly=True)
    is_merged = fields.Field(attribute="is_merged", column_name="Merged", readonly=True)
    merged_at = fields.Field(attribute="merged_at", column_name="Merged At", readonly=True)
    notes = fields.Field(attribute="notes", column_name="Notes", readonly=True)

    class Meta:
        model = OfflineVote
        fields = _OFFLINE_VOTE_COLUMNS
        export_order = _OFFLINE_VOTE_COLUMNS

    def dehydrate_zone(self, row: OfflineVote) -> str:
        return row.candidate.zone.code if row.candidate is not None else ""

    def dehydrate_candidate(self, row: OfflineVote) -> str:
        # Null candidate marks an all-NOTA placeholder.
        return row.candidate.name if row.candidate is not None else "NOTA (all)"

    def dehydrate_timestamp(self, row: OfflineVote) -> str:
        return row.timestamp.isoformat()

    def dehydrate_merged_at(self, row: OfflineVote) -> str:
        return row.merged_at.isoformat() if row.merged_at else ""


EXPORT_KINDS: dict[str, type[resources.ModelResource]] = {
    "votes": VoteExportResource,
    "offline-votes": OfflineVoteExportResource,
}


@dataclass(frozen=True)
class ExportFile:
    content: bytes
    content_type: str
    filename: str


def _queryset_for(kind: str, election: Election) -> Any:
    if kind == "votes":
        return (
            Vote.objects.for_election(election=election)
            .select_related("voter", "candidate", "candidate__zone")
            .order_by("timestamp", "id")
        )
    return (
        OfflineVote.objects.for_election(election=election)
        .select_related("candidate", "candidate__zone")
        .order_by("timestamp", "id")
    )


def build_dataset(*, election: Election, kind: str) -> Dataset:
    resource_class = EXPORT_KINDS.get(kind)
    if resource_class is None:
        raise ElectionValidationError(f"Unknown export {kind!r}.")
    return resource_class().export(queryset=_queryset_for(kind, election))


def export_election_data(*, election_id: int | str, kind: str, file_format: str) -> ExportFile:
    """Render one election's ledger or offline queue as CSV, XLSX or JSON."""
    format_class = EXPORT_FORMATS.get(str(file_format or "").lower())
    if format_class is None:
        raise ElectionValidationError(f"Unsupported export format {file_format!r}.")

    election = get_election(election_id)
    dataset = build_dataset(election=election, kind=kind)

    fmt = format_class()
    data = fmt.export_data(dataset)
    content = data if isinstance(data, bytes) else str(data).encode("utf-8")

    logger.info(
        "export_election_data: election=%s kind=%s format=%s rows=%s",
        election.pk,
        kind,
        fmt.get_extension(),
        dataset.height,
    )
    return ExportFile(
        content=content,
        content_type=fmt.get_content_type(),
        filename=f"election-{election.pk}-{kind}.{fmt.get_extension()}",
    )
