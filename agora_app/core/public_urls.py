from django.conf import settings
from django.urls import reverse

from core.models import Room


def normalize_public_base_url(base_url: str | None) -> str:
    return str(base_url or "").strip().rstrip("/")


def build_public_absolute_url(path: str, *, base_url: str | None = None) -> str:
    """Prefix ``path`` with PUBLIC_BASE_URL; falls back to the bare path when unset."""
    normalized_base = normalize_public_base_url(base_url if base_url is not None else settings.PUBLIC_BASE_URL)
    normalized_path = str(path or "").strip()
    if not normalized_path:
        return ""
    if not normalized_path.startswith("/"):
        normalized_path = f"/{normalized_path}"
    if not normalized_base:
        return normalized_path
    return f"{normalized_base}{normalized_path}"


def room_share_url(room: Room) -> str:
    """The link participants open to enter a room."""
    return build_public_absolute_url(reverse("room-enter", args=[room.pk]))
