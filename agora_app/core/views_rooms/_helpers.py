"""Shared private helpers used across room view sub-modules."""

from dataclasses import dataclass

from django.http import Http404, HttpRequest
from django.shortcuts import get_object_or_404

from core.forms_base import AdminPasswordForm
from core.forms_rooms import MultiWinResolutionForm, TieResolutionForm
from core.models import Room
from core.rooms_conflicts import ConflictReport, TalliedCandidate, TalliedPosition, detect_conflicts
from core.rooms_tally import completed_voter_count, review_leaderboard, review_summary, tally_room

_PARTICIPANT_SESSION_KEY = "_agora_participant_{room_id}"


def _get_room(room_id: int) -> Room:
    return get_object_or_404(Room.objects.select_related("panel"), pk=room_id)


def _get_open_room(room_id: int) -> Room:
    """Load a room participants may currently enter, or raise Http404."""
    room = _get_room(room_id)
    if room.finalized:
        raise Http404
    return room


def _participant(request: HttpRequest, room: Room) -> dict[str, str] | None:
    raw = request.session.get(_PARTICIPANT_SESSION_KEY.format(room_id=room.pk))
    if not isinstance(raw, dict) or not raw.get("email"):
        return None
    return {"email": str(raw["email"]), "own_position_title": str(raw.get("own_position_title") or "")}


def _remember_participant(request: HttpRequest, room: Room, *, email: str, own_position_title: str) -> None:
    request.session[_PARTICIPANT_SESSION_KEY.format(room_id=room.pk)] = {
        "email": email,
        "own_position_title": own_position_title,
    }


def _forget_participant(request: HttpRequest, room: Room) -> None:
    request.session.pop(_PARTICIPANT_SESSION_KEY.format(room_id=room.pk), None)


@dataclass(frozen=True)
class PositionResultRow:
    position: TalliedPosition
    ranked: tuple[TalliedCandidate, ...]
    winner: TalliedCandidate | None
    has_tie: bool
    forfeited_by: str


def _position_rows(positions: list[TalliedPosition], report: ConflictReport) -> list[PositionResultRow]:
    rows: list[PositionResultRow] = []
    for position in positions:
        rows.append(
            PositionResultRow(
                position=position,
                ranked=tuple(sorted(position.candidates, key=lambda c: c.vote_count, reverse=True)),
                winner=position.official_winner or report.provisional_winners.get(position.id),
                has_tie=report.tie_for(position.id) is not None,
                forfeited_by=", ".join(position.forfeited_by_candidate_names),
            )
        )
    return rows


def _results_context(room: Room, *, with_forms: bool) -> dict[str, object]:
    """Everything the results pages render for a room.

    Conflicts are recomputed on each call and never stored.
    """
    context: dict[str, object] = {
        "room": room,
        "completed_voter_count": completed_voter_count(room),
    }

    if room.room_type == Room.RoomType.review:
        context["reviewed_positions"] = review_summary(room)
        context["leaderboard"] = review_leaderboard(room)
        context["can_finalize"] = room.status == Room.Status.closed and not room.finalized
        if with_forms:
            context["finalize_form"] = AdminPasswordForm(auto_id="finalize_%s")
        return context

    positions = tally_room(room)
    report = detect_conflicts(positions)
    context.update(
        {
            "position_rows": _position_rows(positions, report),
            "report": report,
            "can_resolve": room.status == Room.Status.closed and not room.finalized,
            "can_finalize": room.status == Room.Status.closed and not room.finalized and report.all_conflicts_resolved,
        }
    )
    if with_forms:
        context["tie_forms"] = [
            (tie, TieResolutionForm(tie=tie, auto_id=f"tie{tie.position_id}_%s")) for tie in report.ties
        ]
        context["multi_win_forms"] = [
            (mw, MultiWinResolutionForm(multi_win=mw, auto_id=f"mw{index}_%s"))
            for index, mw in enumerate(report.multi_wins)
        ]
        context["finalize_form"] = AdminPasswordForm(auto_id="finalize_%s")
    return context


def _form_error_text(form) -> str:
    errors = [str(msg) for field_errors in form.errors.values() for msg in field_errors]
    return " ".join(errors) or "Please correct the errors below."
