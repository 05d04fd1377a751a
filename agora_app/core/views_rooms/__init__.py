"""Room views package.

All public view functions are re-exported here so that ``core.urls`` can
reference ``views_rooms.<view_name>``.
"""

from core.views_rooms.manage import (
    panel_create,
    panel_detail,
    panel_list,
    preferences_toggle,
    room_archived,
    room_create,
    room_delete,
    room_list,
    room_manage,
    room_status,
    room_voters,
)
from core.views_rooms.results import (
    room_conflicts_json,
    room_declare_winner,
    room_export_csv,
    room_export_markdown,
    room_export_preview,
    room_finalize,
    room_public_results,
    room_resolve_multi_win,
    room_resolve_tie,
    room_results,
)
from core.views_rooms.vote import room_ballot, room_enter, room_submit_json, room_submitted

__all__ = [
    "panel_create",
    "panel_detail",
    "panel_list",
    "preferences_toggle",
    "room_archived",
    "room_ballot",
    "room_conflicts_json",
    "room_create",
    "room_declare_winner",
    "room_delete",
    "room_enter",
    "room_export_csv",
    "room_export_markdown",
    "room_export_preview",
    "room_finalize",
    "room_list",
    "room_manage",
    "room_public_results",
    "room_resolve_multi_win",
    "room_resolve_tie",
    "room_results",
    "room_status",
    "room_submit_json",
    "room_submitted",
    "room_voters",
]
