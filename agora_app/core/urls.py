from django.urls import path

from core import views_home, views_rooms, views_terms

urlpatterns = [
    path("", views_home.home, name="home"),
    path("results/<int:room_id>/", views_rooms.room_public_results, name="room-public-results"),

    path("vote/<int:room_id>/", views_rooms.room_enter, name="room-enter"),
    path("vote/<int:room_id>/ballot/", views_rooms.room_ballot, name="room-ballot"),
    path("vote/<int:room_id>/submit/", views_rooms.room_submit_json, name="room-submit"),
    path("vote/<int:room_id>/done/", views_rooms.room_submitted, name="room-submitted"),

    path("manage/", views_rooms.room_list, name="room-list"),
    path("manage/archived/", views_rooms.room_archived, name="room-archived"),
    path("manage/preferences/<str:name>/toggle/", views_rooms.preferences_toggle, name="preferences-toggle"),
    path("manage/rooms/create/", views_rooms.room_create, name="room-create"),
    path("manage/rooms/<int:room_id>/", views_rooms.room_manage, name="room-manage"),
    path("manage/rooms/<int:room_id>/status/", views_rooms.room_status, name="room-status"),
    path("manage/rooms/<int:room_id>/delete/", views_rooms.room_delete, name="room-delete"),
    path("manage/rooms/<int:room_id>/voters/", views_rooms.room_voters, name="room-voters"),
    path("manage/rooms/<int:room_id>/results/", views_rooms.room_results, name="room-results"),
    path(
        "manage/rooms/<int:room_id>/results/conflicts.json",
        views_rooms.room_conflicts_json,
        name="room-conflicts-json",
    ),
    path(
        "manage/rooms/<int:room_id>/resolve/tie/<int:position_id>/",
        views_rooms.room_resolve_tie,
        name="room-resolve-tie",
    ),
    path(
        "manage/rooms/<int:room_id>/resolve/multi-win/",
        views_rooms.room_resolve_multi_win,
        name="room-resolve-multi-win",
    ),
    path("manage/rooms/<int:room_id>/declare-winner/", views_rooms.room_declare_winner, name="room-declare-winner"),
    path("manage/rooms/<int:room_id>/finalize/", views_rooms.room_finalize, name="room-finalize"),
    path("manage/rooms/<int:room_id>/export/markdown/", views_rooms.room_export_markdown, name="room-export-markdown"),
    path("manage/rooms/<int:room_id>/export/csv/", views_rooms.room_export_csv, name="room-export-csv"),
    path("manage/rooms/<int:room_id>/export/preview/", views_rooms.room_export_preview, name="room-export-preview"),
    path("manage/rooms/<int:room_id>/pin/", views_terms.room_pin, name="room-pin"),

    path("manage/panels/", views_rooms.panel_list, name="panel-list"),
    path("manage/panels/create/", views_rooms.panel_create, name="panel-create"),
    path("manage/panels/<int:panel_id>/", views_rooms.panel_detail, name="panel-detail"),

    path("manage/term/", views_terms.term_edit, name="term-edit"),
    path("manage/term/clear/", views_terms.term_clear, name="term-clear"),
]
