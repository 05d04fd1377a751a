"""Administrator UI preferences.

Preferences live in the admin's session and are handed to services
explicitly; nothing reads them from module state.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace

from django.http import HttpRequest

_SESSION_KEY = "_agora_admin_preferences"


@dataclass(frozen=True)
class AdminPreferences:
    # Rooms can only be deleted while this is on.
    enable_deletion: bool = False
    # Allow pinning the same finalized room to more than one term.
    multi_pin: bool = False

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def toggled(self, name: str) -> AdminPreferences:
        if name not in self.field_names():
            raise ValueError(f"Unknown preference: {name}")
        return replace(self, **{name: not getattr(self, name)})


def load_preferences(request: HttpRequest) -> AdminPreferences:
    session = getattr(request, "session", None)
    raw = session.get(_SESSION_KEY) if session is not None else None
    if not isinstance(raw, dict):
        return AdminPreferences()
    known = {name: bool(raw[name]) for name in AdminPreferences.field_names() if name in raw}
    return AdminPreferences(**known)


def save_preferences(request: HttpRequest, preferences: AdminPreferences) -> None:
    request.session[_SESSION_KEY] = asdict(preferences)
