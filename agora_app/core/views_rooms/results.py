"""Room results: conflict resolution, finalization and exports."""

import json

from django.contrib import messages
from django.contrib.auth.decorators import login_required, permission_required
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.shortcuts import redirect, render
from django.utils.safestring import mark_safe
from django.views.decorators.http import require_GET, require_POST

from core import rooms_services
from core.forms_base import AdminPasswordForm
from core.forms_rooms import MultiWinResolutionForm, TieResolutionForm
from core.models import Room
from core.permissions import AGORA_MANAGE_ROOMS, json_permission_required
from core.reauth import AuthenticationFailed
from core.rooms_conflicts import detect_conflicts
from core.rooms_export import export_filename, results_csv, results_markdown, results_markdown_html
from core.rooms_services import RoomError
from core.rooms_tally import tally_room
from core.views_rooms._helpers import _form_error_text, _get_room, _results_context
from core.views_utils import get_username


@require_GET
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def room_results(request: HttpRequest, room_id: int) -> HttpResponse:
    room = _get_room(room_id)
    return render(request, "core/room_results.html", _results_context(room, with_forms=True))


@require_GET
def room_public_results(request: HttpRequest, room_id: int) -> HttpResponse:
    room = _get_room(room_id)
    if not room.finalized:
        return render(
            request,
            "core/room_unavailable.html",
            {"room": room, "reason": "Results are not available or the room has not been finalized yet."},
            status=404,
        )
    return render(request, "core/room_public_results.html", _results_context(room, with_forms=False))


@require_POST
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def room_resolve_tie(request: HttpRequest, room_id: int, position_id: int) -> HttpResponse:
    room = _get_room(room_id)
    tie = detect_conflicts(tally_room(room)).tie_for(position_id)
    if tie is None:
        messages.error(request, "This position has no unresolved tie.")
        return redirect("room-results", room_id=room.pk)

    form = TieResolutionForm(request.POST, tie=tie)
    if not form.is_valid():
        messages.error(request, _form_error_text(form))
        return redirect("room-results", room_id=room.pk)

    try:
        rooms_services.resolve_tie(
            room=room,
            position_id=position_id,
            candidate_id=form.cleaned_data["candidate_id"],
            user=request.user,
            password=form.cleaned_data["password"],
            actor=get_username(request) or None,
        )
    except (AuthenticationFailed, RoomError) as exc:
        messages.error(request, str(exc))
    else:
        messages.success(request, f"Tie for {tie.position_title} resolved.")
    return redirect("room-results", room_id=room.pk)


@require_POST
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def room_resolve_multi_win(request: HttpRequest, room_id: int) -> HttpResponse:
    room = _get_room(room_id)
    candidate_name = str(request.POST.get("candidate_name") or "")
    multi_win = detect_conflicts(tally_room(room)).multi_win_for(candidate_name)
    if multi_win is None:
        messages.error(request, f'"{candidate_name.strip()}" is not leading more than one position.')
        return redirect("room-results", room_id=room.pk)

    form = MultiWinResolutionForm(request.POST, multi_win=multi_win)
    if not form.is_valid():
        messages.error(request, _form_error_text(form))
        return redirect("room-results", room_id=room.pk)

    try:
        rooms_services.resolve_multi_win(
            room=room,
            candidate_name=multi_win.candidate_name,
            chosen_position_id=form.cleaned_data["position_id"],
            user=request.user,
            password=form.cleaned_data["password"],
            actor=get_username(request) or None,
        )
    except (AuthenticationFailed, RoomError) as exc:
        messages.error(request, str(exc))
    else:
        messages.success(request, f"Conflict for {multi_win.candidate_name} resolved.")
    return redirect("room-results", room_id=room.pk)


@require_POST
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def room_finalize(request: HttpRequest, room_id: int) -> HttpResponse:
    room = _get_room(room_id)
    form = AdminPasswordForm(request.POST)
    if not form.is_valid():
        messages.error(request, _form_error_text(form))
        return redirect("room-results", room_id=room.pk)

    try:
        counts = rooms_services.finalize_room(
            room=room,
            user=request.user,
            password=form.cleaned_data["password"],
            actor=get_username(request) or None,
        )
    except (AuthenticationFailed, RoomError) as exc:
        messages.error(request, str(exc))
        return redirect("room-results", room_id=room.pk)

    messages.success(
        request,
        f"Room finalized. Deleted {counts['votes_deleted']} votes, {counts['reviews_deleted']} reviews "
        f"and {counts['voters_deleted']} participant records.",
    )
    return redirect("room-results", room_id=room.pk)


@require_GET
@json_permission_required(AGORA_MANAGE_ROOMS)
def room_conflicts_json(request: HttpRequest, room_id: int) -> JsonResponse:
    room = _get_room(room_id)
    if room.room_type != Room.RoomType.voting:
        return JsonResponse({"ok": False, "error": "Only voting rooms have winner conflicts."}, status=400)

    report = detect_conflicts(tally_room(room))
    return JsonResponse(
        {
            "ok": True,
            "room_id": room.pk,
            "all_conflicts_resolved": report.all_conflicts_resolved,
            "ties": [
                {
                    "position_id": tie.position_id,
                    "position_title": tie.position_title,
                    "candidates": [
                        {"id": c.id, "name": c.name, "vote_count": c.vote_count} for c in tie.candidates
                    ],
                }
                for tie in report.ties
            ],
            "multi_wins": [
                {
                    "candidate_name": mw.candidate_name,
                    "positions": [
                        {"position_id": ref.position_id, "position_title": ref.position_title}
                        for ref in mw.positions
                    ],
                }
                for mw in report.multi_wins
            ],
        }
    )


@require_POST
@json_permission_required(AGORA_MANAGE_ROOMS)
def room_declare_winner(request: HttpRequest, room_id: int) -> JsonResponse:
    try:
        data = json.loads(request.body.decode("utf-8") if request.body else "{}")
    except (UnicodeDecodeError, json.JSONDecodeError):
        return JsonResponse({"ok": False, "error": "Invalid JSON body."}, status=400)
    if not isinstance(data, dict):
        return JsonResponse({"ok": False, "error": "Invalid JSON body."}, status=400)

    try:
        position_id = int(data.get("position_id"))
    except (TypeError, ValueError):
        return JsonResponse({"ok": False, "error": "position_id is required."}, status=400)

    resolution_value = data.get("resolution_value")
    if resolution_value in (None, ""):
        return JsonResponse({"ok": False, "error": "resolution_value is required."}, status=400)

    result = rooms_services.declare_winner(
        room_id=room_id,
        position_id=position_id,
        resolution_value=resolution_value,
        admin_password=str(data.get("admin_password") or ""),
        user=request.user,
        forfeited_by_candidate_name=data.get("forfeited_by_candidate_name"),
        actor=get_username(request) or None,
    )
    if not result.success:
        return JsonResponse({"ok": False, "error": result.message}, status=400)
    return JsonResponse({"ok": True, "message": result.message})


def _export_response(content: str, *, content_type: str, filename: str) -> HttpResponse:
    response = HttpResponse(content, content_type=content_type)
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response


@require_GET
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def room_export_markdown(request: HttpRequest, room_id: int) -> HttpResponse:
    room = _get_room(room_id)
    return _export_response(
        results_markdown(room),
        content_type="text/markdown; charset=utf-8",
        filename=export_filename(room, "md"),
    )


@require_GET
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def room_export_csv(request: HttpRequest, room_id: int) -> HttpResponse:
    room = _get_room(room_id)
    return _export_response(
        results_csv(room),
        content_type="text/csv; charset=utf-8",
        filename=export_filename(room, "csv"),
    )


@require_GET
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def room_export_preview(request: HttpRequest, room_id: int) -> HttpResponse:
    room = _get_room(room_id)
    return render(
        request,
        "core/room_export_preview.html",
        {
            "room": room,
            # User-entered text is escaped before Markdown rendering.
            "content_html": mark_safe(results_markdown_html(room)),
        },
    )
