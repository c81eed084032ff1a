from __future__ import annotations

import logging

from django.db import DatabaseError, connection
from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET

from elections.models import Election

logger = logging.getLogger(__name__)


@require_GET
def healthz(_request: HttpRequest) -> JsonResponse:
    return JsonResponse({"status": "ok"})


@require_GET
def readyz(_request: HttpRequest) -> JsonResponse:
    """Ready once the database answers and the elections tables are migrated."""
    try:
        connection.ensure_connection()
        active_elections = Election.objects.active().count()
    except DatabaseError as exc:
        logger.exception("readyz: database_unavailable")
        return JsonResponse({"status": "not ready", "error": str(exc)}, status=503)

    return JsonResponse({"status": "ready", "database": "ok", "active_elections": active_elections})
