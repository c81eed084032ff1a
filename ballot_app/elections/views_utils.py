"""Request parsing and error rendering shared by the JSON endpoints."""

from __future__ import annotations

import json
from collections.abc import Mapping

from django.conf import settings
from django.http import HttpRequest, JsonResponse

from elections.exceptions import AmbiguousVIDError, ElectionsError, ElectionValidationError
from elections.lookups import active_election_for_type, get_election
from elections.models import Election


def error_response(exc: ElectionsError) -> JsonResponse:
    payload: dict[str, object] = {"error": str(exc), "code": exc.code}
    if isinstance(exc, AmbiguousVIDError):
        payload["matches"] = exc.matches
    return JsonResponse(payload, status=exc.status_code)


def parse_json_body(request: HttpRequest) -> dict[str, object]:
    """Read a JSON object body, falling back to form data."""
    if request.content_type and request.content_type.startswith("application/json"):
        try:
            data = json.loads(request.body.decode("utf-8") if request.body else "{}")
        except UnicodeDecodeError as exc:
            raise ElectionValidationError("Request body must be UTF-8 encoded JSON.") from exc
        except json.JSONDecodeError as exc:
            raise ElectionValidationError(f"Invalid JSON body: {exc.msg}") from exc
        if not isinstance(data, dict):
            raise ElectionValidationError("Request body must be a JSON object.")
        return data

    data: dict[str, object] = {key: request.POST.get(key) for key in request.POST}
    if "candidate_ids" in request.POST:
        data["candidate_ids"] = request.POST.getlist("candidate_ids")
    return data


def resolve_election(data: Mapping[str, object]) -> Election:
    """The election named by ``election_id``, else the active one of ``election_type``."""
    election_id = str(data.get("election_id") or "").strip()
    if election_id:
        return get_election(election_id)

    election_type = str(data.get("election_type") or "").strip() or settings.ELECTIONS_DEFAULT_ELECTION_TYPE
    return active_election_for_type(election_type)


def parse_candidate_ids(raw: object) -> list[str]:
    if raw is None or raw == "":
        return []
    if isinstance(raw, str):
        # Allow comma-separated input.
        return [part.strip() for part in raw.split(",") if part.strip()]
    if isinstance(raw, list | tuple):
        return [str(value).strip() for value in raw if str(value).strip()]
    raise ElectionValidationError("candidate_ids must be a list")


def actor_label(request: HttpRequest) -> str:
    user = getattr(request, "user", None)
    return str(getattr(user, "username", "") or "").strip()


def election_summary(election: Election) -> dict[str, object]:
    return {
        "id": election.pk,
        "title": election.title,
        "type": election.type,
        "status": election.status,
    }
