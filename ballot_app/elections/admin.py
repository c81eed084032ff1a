from django.contrib import admin
from django.db import transaction
from import_export import fields, resources
from import_export.admin import ExportMixin, ImportExportModelAdmin
from import_export.formats import base_formats
from import_export.widgets import ForeignKeyWidget

from elections.exports import OfflineVoteExportResource, VoteExportResource
from elections.ledger import recompute_has_voted
from elections.models import (
    AuditLogEntry,
    Candidate,
    Election,
    OfflineVote,
    Vote,
    Voter,
    VoterZoneAssignment,
    Zone,
)

_TABULAR_FORMATS = [base_formats.CSV, base_formats.XLSX]


class ZoneResource(resources.ModelResource):
    class Meta:
        model = Zone
        import_id_fields = ("election_type", "code")
        fields = ("election_type", "code", "name", "seats", "is_active")


class ZoneCodeWidget(ForeignKeyWidget):
    """Zone by code; codes repeat across election types so the row's type narrows it."""

    def __init__(self) -> None:
        super().__init__(Zone, field="code")

    def get_queryset(self, value, row, *args, **kwargs):
        election_type = str(row.get("election_type") or "").strip().upper()
        return Zone.objects.filter(election_type=election_type)


class CandidateResource(resources.ModelResource):
    zone = fields.Field(attribute="zone", column_name="zone", widget=ZoneCodeWidget())

    class Meta:
        model = Candidate
        fields = ("id", "election_type", "zone", "name", "status", "is_nota")


class VoterResource(resources.ModelResource):
    class Meta:
        model = Voter
        import_id_fields = ("voter_id",)
        fields = ("voter_id", "name", "is_active")
        skip_unchanged = True


@admin.register(Election)
class ElectionAdmin(admin.ModelAdmin):
    list_display = ("title", "type", "status", "created_at")
    list_filter = ("type", "status")
    search_fields = ("title",)


@admin.register(Zone)
class ZoneAdmin(ImportExportModelAdmin):
    resource_classes = [ZoneResource]
    import_formats = _TABULAR_FORMATS
    export_formats = _TABULAR_FORMATS
    list_display = ("code", "name", "election_type", "seats", "is_active")
    list_filter = ("election_type", "is_active")
    search_fields = ("code", "name")


@admin.register(Candidate)
class CandidateAdmin(ImportExportModelAdmin):
    resource_classes = [CandidateResource]
    import_formats = _TABULAR_FORMATS
    export_formats = _TABULAR_FORMATS
    list_display = ("name", "zone", "election_type", "status", "is_nota")
    list_filter = ("election_type", "status", "is_nota")
    search_fields = ("name", "zone__code", "zone__name")
    list_select_related = ("zone",)


class VoterZoneAssignmentInline(admin.TabularInline):
    model = VoterZoneAssignment
    extra = 0
    autocomplete_fields = ("zone",)


@admin.register(Voter)
class VoterAdmin(ImportExportModelAdmin):
    resource_classes = [VoterResource]
    import_formats = _TABULAR_FORMATS
    export_formats = _TABULAR_FORMATS
    list_display = ("voter_id", "name", "is_active", "has_voted")
    list_filter = ("is_active", "has_voted")
    search_fields = ("voter_id", "name")
    # Maintained by ledger writes; fixed with the repair_has_voted command.
    readonly_fields = ("has_voted", "created_at")
    inlines = [VoterZoneAssignmentInline]


@admin.register(Vote)
class VoteAdmin(ExportMixin, admin.ModelAdmin):
    resource_classes = [VoteExportResource]
    list_display = ("id", "election", "voter", "candidate", "source", "timestamp")
    list_filter = ("election", "source")
    search_fields = ("voter__voter_id", "candidate__name")
    list_select_related = ("election", "voter", "candidate")
    readonly_fields = ("voter", "election", "candidate", "timestamp", "source", "source_meta", "offline_vote")

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def delete_model(self, request, obj: Vote) -> None:
        voter_pk = obj.voter_id
        with transaction.atomic():
            super().delete_model(request, obj)
            recompute_has_voted(Voter.objects.get(pk=voter_pk))

    def delete_queryset(self, request, queryset) -> None:
        with transaction.atomic():
            voters = list(Voter.objects.filter(pk__in=queryset.values("voter_id")))
            super().delete_queryset(request, queryset)
            for voter in voters:
                recompute_has_voted(voter)


@admin.register(OfflineVote)
class OfflineVoteAdmin(ExportMixin, admin.ModelAdmin):
    """Queue browser. Entries only come in through offline intake, which runs the voter checks."""

    resource_classes = [OfflineVoteExportResource]
    list_display = ("id", "election", "voter_vid", "candidate", "entered_by", "is_merged", "timestamp")
    list_filter = ("election", "is_merged")
    search_fields = ("voter_vid", "entered_by")
    list_select_related = ("election", "candidate")
    readonly_fields = (
        "voter_vid",
        "election",
        "candidate",
        "timestamp",
        "entered_by",
        "is_merged",
        "merged_at",
        "notes",
    )

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False


@admin.register(AuditLogEntry)
class AuditLogEntryAdmin(admin.ModelAdmin):
    list_display = ("timestamp", "election", "event_type", "is_public")
    list_filter = ("event_type", "is_public")
    readonly_fields = ("election", "timestamp", "event_type", "payload", "is_public")

    def has_add_permission(self, request) -> bool:
        return False
