"""Participant flow: room entry, ballot and review submission."""

import json

from django.http import HttpRequest, HttpResponse, JsonResponse
from django.shortcuts import redirect, render
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from core import rooms_services
from core.forms_rooms import BallotForm, ReviewForm, RoomEntryForm, participant_positions
from core.models import Room
from core.rooms_services import (
    AlreadySubmittedError,
    InvalidSubmissionError,
    ReviewSelection,
    RoomError,
    RoomNotActiveError,
)
from core.views_rooms._helpers import (
    _forget_participant,
    _get_open_room,
    _participant,
    _remember_participant,
)


def _unavailable(request: HttpRequest, room: Room) -> HttpResponse:
    if room.status == Room.Status.closed:
        reason = "This room has been closed. Thank you for your interest."
        status = 410
    else:
        reason = "This room has not opened yet. Please check back later."
        status = 403
    return render(request, "core/room_unavailable.html", {"room": room, "reason": reason}, status=status)


@require_http_methods(["GET", "POST"])
def room_enter(request: HttpRequest, room_id: int) -> HttpResponse:
    room = _get_open_room(room_id)
    if room.status != Room.Status.active:
        return _unavailable(request, room)

    form = RoomEntryForm(request.POST or None, room=room)
    if request.method == "POST" and form.is_valid():
        try:
            voter = rooms_services.record_participant_entry(
                room=room,
                email=form.cleaned_data["email"],
                own_position_title=form.cleaned_data["own_position_title"],
                access_code=form.cleaned_data.get("access_code") or "",
            )
        except RoomNotActiveError:
            return _unavailable(request, room)
        except RoomError as exc:
            form.add_error(None, str(exc))
        else:
            _remember_participant(
                request,
                room,
                email=voter.email,
                own_position_title=voter.own_position_title,
            )
            return redirect("room-ballot", room_id=room.pk)

    return render(request, "core/room_enter.html", {"room": room, "form": form})


@require_http_methods(["GET", "POST"])
def room_ballot(request: HttpRequest, room_id: int) -> HttpResponse:
    room = _get_open_room(room_id)
    if room.status != Room.Status.active:
        return _unavailable(request, room)

    participant = _participant(request, room)
    if participant is None:
        return redirect("room-enter", room_id=room.pk)

    positions = participant_positions(room, participant["own_position_title"])
    data = request.POST if request.method == "POST" else None
    if room.room_type == Room.RoomType.review:
        form = ReviewForm(data, positions=positions, own_position_title=participant["own_position_title"])
    else:
        form = BallotForm(data, positions=positions)

    if request.method == "POST" and form.is_valid():
        try:
            if room.room_type == Room.RoomType.review:
                rooms_services.submit_review(room=room, email=participant["email"], selections=form.selections())
            else:
                rooms_services.submit_ballot(room=room, email=participant["email"], selections=form.selections())
        except RoomNotActiveError:
            _forget_participant(request, room)
            return _unavailable(request, room)
        except AlreadySubmittedError:
            _forget_participant(request, room)
            return redirect("room-submitted", room_id=room.pk)
        except RoomError as exc:
            form.add_error(None, str(exc))
        else:
            _forget_participant(request, room)
            return redirect("room-submitted", room_id=room.pk)

    return render(
        request,
        "core/room_ballot.html",
        {
            "room": room,
            "form": form,
            "participant": participant,
            "positions": positions,
        },
    )


@require_GET
def room_submitted(request: HttpRequest, room_id: int) -> HttpResponse:
    room = _get_open_room(room_id)
    return render(request, "core/room_submitted.html", {"room": room})


def _parse_submission_payload(request: HttpRequest, *, room: Room) -> tuple[str, str, dict]:
    raw = request.body.decode("utf-8") if request.body else "{}"
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("Payload must be an object")

    email = str(data.get("email") or "").strip()
    if not email:
        raise ValueError("email is required")
    access_code = str(data.get("access_code") or "")

    raw_selections = data.get("selections")
    if not isinstance(raw_selections, dict) or not raw_selections:
        raise ValueError("selections are required")

    if room.room_type == Room.RoomType.review:
        selections: dict = {}
        for position_id, value in raw_selections.items():
            if not isinstance(value, dict):
                raise ValueError("Each review selection needs a rating and feedback")
            selections[int(position_id)] = ReviewSelection(
                rating=int(value.get("rating") or 0),
                feedback=str(value.get("feedback") or ""),
            )
        return email, access_code, selections

    return email, access_code, {
        int(position_id): (int(candidate_id) if candidate_id not in (None, "") else None)
        for position_id, candidate_id in raw_selections.items()
    }


@require_POST
def room_submit_json(request: HttpRequest, room_id: int) -> JsonResponse:
    room = _get_open_room(room_id)

    try:
        email, access_code, selections = _parse_submission_payload(request, room=room)
    except (ValueError, TypeError, UnicodeDecodeError) as exc:
        return JsonResponse({"ok": False, "error": str(exc)}, status=400)

    try:
        rooms_services.check_access_code(room=room, access_code=access_code)
        if room.room_type == Room.RoomType.review:
            stored = rooms_services.submit_review(room=room, email=email, selections=selections)
        else:
            stored = rooms_services.submit_ballot(room=room, email=email, selections=selections)
    except AlreadySubmittedError as exc:
        return JsonResponse({"ok": False, "error": str(exc)}, status=409)
    except (InvalidSubmissionError, RoomNotActiveError) as exc:
        return JsonResponse({"ok": False, "error": str(exc)}, status=400)

    return JsonResponse({"ok": True, "room_id": room.pk, "submitted": stored})
