from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from django.http import HttpRequest, HttpResponse, JsonResponse

AGORA_MANAGE_ROOMS = "core.manage_rooms"


P = ParamSpec("P")
R = TypeVar("R", bound=HttpResponse)


def json_permission_required(permission: str) -> Callable[[Callable[P, R]], Callable[P, HttpResponse]]:
    """Decorator for JSON endpoints that require a single Django permission.

    This returns a JSON 403 response instead of redirecting to the login page.
    """

    def decorator(view_func: Callable[P, R]) -> Callable[P, HttpResponse]:
        @wraps(view_func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> HttpResponse:
            request = args[0] if args else None
            if not isinstance(request, HttpRequest) or not _has_permission(user=request.user, permission=permission):
                return JsonResponse({"ok": False, "error": "Permission denied."}, status=403)
            return view_func(*args, **kwargs)

        return wrapper

    return decorator


def can_manage_rooms(user: object) -> bool:
    return _has_permission(user=user, permission=AGORA_MANAGE_ROOMS)


def _has_permission(*, user: object, permission: str) -> bool:
    try:
        return bool(user.has_perm(permission))
    except Exception:
        # Template context processors and tests may pass user-like stubs.
        return False
