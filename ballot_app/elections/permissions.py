from collections.abc import Callable, Collection
from functools import wraps
from typing import ParamSpec, TypeVar

from django.http import HttpRequest, HttpResponse, JsonResponse

ELECTIONS_ADD_OFFLINE_VOTE = "elections.add_offlinevote"
ELECTIONS_MERGE_OFFLINE_VOTE = "elections.merge_offlinevote"
ELECTIONS_VIEW_RESULTS = "elections.view_results"

OFFLINE_QUEUE_PERMISSIONS: frozenset[str] = frozenset(
    {
        ELECTIONS_ADD_OFFLINE_VOTE,
        ELECTIONS_MERGE_OFFLINE_VOTE,
    }
)


P = ParamSpec("P")
R = TypeVar("R", bound=HttpResponse)


def json_permission_required(permission: str) -> Callable[[Callable[P, R]], Callable[P, HttpResponse]]:
    """Decorator for JSON endpoints that require a single Django permission.

    Anonymous and unauthorized callers get a JSON 403 instead of a login
    redirect.
    """
    return json_permission_required_any({permission})


def json_permission_required_any(permissions: Collection[str]) -> Callable[[Callable[P, R]], Callable[P, HttpResponse]]:
    """Decorator for JSON endpoints that accept any one of several permissions."""

    perms = tuple(sorted(permissions))
    if not perms:
        raise ValueError("permissions must not be empty")

    def decorator(view_func: Callable[P, R]) -> Callable[P, HttpResponse]:
        @wraps(view_func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> HttpResponse:
            request = args[0] if args else None
            if not isinstance(request, HttpRequest):
                return JsonResponse({"error": "Permission denied.", "code": "permission_denied"}, status=403)

            if not has_any_permission(user=request.user, permissions=perms):
                return JsonResponse({"error": "Permission denied.", "code": "permission_denied"}, status=403)

            return view_func(*args, **kwargs)

        return wrapper

    return decorator


def has_any_permission(*, user: object, permissions: Collection[str]) -> bool:
    for perm in permissions:
        try:
            if user.has_perm(perm):
                return True
        except AttributeError:
            # Tests may pass user-like stubs.
            continue
    return False
