"""JSON endpoints for field admins entering paper ballots, and for the merge."""

from __future__ import annotations

import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET, require_POST

from elections.exceptions import ElectionsError
from elections.offline_intake import (
    check_vid,
    list_offline_entries,
    record_offline_ballot,
    record_offline_ballot_set,
)
from elections.permissions import (
    ELECTIONS_ADD_OFFLINE_VOTE,
    ELECTIONS_MERGE_OFFLINE_VOTE,
    OFFLINE_QUEUE_PERMISSIONS,
    json_permission_required,
    json_permission_required_any,
)
from elections.reconciler import merge_offline_ballots
from elections.views_utils import (
    actor_label,
    election_summary,
    error_response,
    parse_candidate_ids,
    parse_json_body,
    resolve_election,
)

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "True", "yes", "on"}


def _is_truthy(value: object) -> bool:
    return value is True or str(value or "").strip() in _TRUTHY


@require_POST
@json_permission_required(ELECTIONS_ADD_OFFLINE_VOTE)
def offline_validate_vid(request: HttpRequest) -> JsonResponse:
    try:
        data = parse_json_body(request)
        election = resolve_election(data)
        result = check_vid(vid=str(data.get("vid") or ""), election_id=election.pk)
    except ElectionsError as exc:
        return error_response(exc)

    return JsonResponse({"ok": True, **result})


@require_POST
@json_permission_required(ELECTIONS_ADD_OFFLINE_VOTE)
def offline_submit(request: HttpRequest) -> JsonResponse:
    """Record a voter's paper ballot.

    ``candidate_ids`` submits the whole ballot at once (empty means all NOTA).
    ``candidate_id`` adds a single selection; with ``additional_selection``
    it extends a ballot already queued for the voter.
    """
    try:
        data = parse_json_body(request)
        election = resolve_election(data)
        vid = str(data.get("vid") or "")
        notes = str(data.get("notes") or "")

        if "candidate_id" in data:
            raw_candidate = data.get("candidate_id")
            row = record_offline_ballot(
                vid=vid,
                election_id=election.pk,
                candidate_id=raw_candidate if raw_candidate not in (None, "") else None,
                admin=request.user,
                notes=notes,
                additional_selection=_is_truthy(data.get("additional_selection")),
            )
            rows = [row]
        else:
            rows = record_offline_ballot_set(
                vid=vid,
                election_id=election.pk,
                candidate_ids=parse_candidate_ids(data.get("candidate_ids")),
                admin=request.user,
                notes=notes,
            )
    except ElectionsError as exc:
        return error_response(exc)

    return JsonResponse(
        {
            "ok": True,
            "election": election_summary(election),
            "vid": rows[0].voter_vid,
            "offline_vote_ids": [row.pk for row in rows],
            "all_nota": all(row.candidate_id is None for row in rows),
        },
        status=201,
    )


@require_GET
@json_permission_required_any(OFFLINE_QUEUE_PERMISSIONS)
def offline_entries(request: HttpRequest) -> JsonResponse:
    try:
        election = resolve_election(request.GET)
        entries = list_offline_entries(election_id=election.pk, limit=request.GET.get("limit"))
    except ElectionsError as exc:
        return error_response(exc)

    return JsonResponse({"election": election_summary(election), "entries": entries})


@require_POST
@json_permission_required(ELECTIONS_MERGE_OFFLINE_VOTE)
def offline_merge(request: HttpRequest) -> JsonResponse:
    actor = actor_label(request)
    try:
        data = parse_json_body(request)
        election = resolve_election(data)
        result = merge_offline_ballots(election.pk, actor=actor or None)
    except ElectionsError as exc:
        return error_response(exc)

    logger.info(
        "offline_merge: election=%s actor=%s merged=%s skipped=%s",
        election.pk,
        actor or "<unknown>",
        result.merged_count,
        len(result.skipped),
    )
    return JsonResponse({"ok": True, "election": election_summary(election), **result.as_dict()})
