from core.permissions import AGORA_MANAGE_ROOMS
from core.preferences import load_preferences


def admin_preferences(request) -> dict[str, object]:
    # Some template tests render with a minimal request object.
    if not hasattr(request, "user"):
        return {"admin_preferences": None, "can_manage_rooms": False}

    can_manage_rooms = bool(request.user.has_perm(AGORA_MANAGE_ROOMS))
    return {
        "admin_preferences": load_preferences(request) if can_manage_rooms else None,
        "can_manage_rooms": can_manage_rooms,
    }
