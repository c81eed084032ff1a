from __future__ import annotations

from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.http import require_GET

from elections.exceptions import ElectionsError
from elections.exports import export_election_data
from elections.lookups import get_election
from elections.permissions import ELECTIONS_MERGE_OFFLINE_VOTE, ELECTIONS_VIEW_RESULTS, json_permission_required
from elections.tally import compute_winners, list_all_winners, public_winners, zone_results
from elections.views_utils import election_summary, error_response


@require_GET
@json_permission_required(ELECTIONS_VIEW_RESULTS)
def election_results(request: HttpRequest, election_id: int) -> JsonResponse:
    try:
        election = get_election(election_id)
        zones = zone_results(election.pk)
    except ElectionsError as exc:
        return error_response(exc)

    return JsonResponse({"election": election_summary(election), "zones": zones})


@require_GET
@json_permission_required(ELECTIONS_VIEW_RESULTS)
def election_winners(request: HttpRequest, election_id: int) -> JsonResponse:
    try:
        election = get_election(election_id)
        winners = compute_winners(election.pk)
        rows = list_all_winners(election.pk)
    except ElectionsError as exc:
        return error_response(exc)

    return JsonResponse(
        {
            "election": election_summary(election),
            # JSON object keys are strings.
            "winners": {str(zone_id): [entry.as_dict() for entry in entries] for zone_id, entries in winners.items()},
            "rows": rows,
        }
    )


@require_GET
@json_permission_required(ELECTIONS_MERGE_OFFLINE_VOTE)
def election_export(request: HttpRequest, election_id: int, kind: str, file_format: str) -> HttpResponse:
    try:
        export = export_election_data(election_id=election_id, kind=kind, file_format=file_format)
    except ElectionsError as exc:
        return error_response(exc)

    response = HttpResponse(export.content, content_type=export.content_type)
    response["Content-Disposition"] = f'attachment; filename="{export.filename}"'
    return response


@require_GET
def public_winners_list(request: HttpRequest) -> JsonResponse:
    try:
        elections = public_winners()
    except ElectionsError as exc:
        return error_response(exc)

    return JsonResponse({"elections": elections})
