"""Leadership terms: pinning a finalized room, editing and clearing terms."""

from django.contrib import messages
from django.contrib.auth.decorators import login_required, permission_required
from django.http import HttpRequest, HttpResponse
from django.shortcuts import redirect, render
from django.views.decorators.http import require_http_methods, require_POST

from core import terms_services
from core.forms_base import AdminPasswordForm
from core.forms_rooms import TermDatesForm, TermRoleFormSet
from core.permissions import AGORA_MANAGE_ROOMS
from core.preferences import load_preferences
from core.reauth import AuthenticationFailed
from core.rooms_tally import suggested_term_roles
from core.terms_services import TermError
from core.views_rooms._helpers import _form_error_text, _get_room
from core.views_utils import get_username


@require_http_methods(["GET", "POST"])
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def room_pin(request: HttpRequest, room_id: int) -> HttpResponse:
    room = _get_room(room_id)
    preferences = load_preferences(request)

    blocked_reason = ""
    if not room.finalized:
        blocked_reason = "This room's results must be finalized before they can be pinned."
    elif room.pinned_to_term and not preferences.multi_pin:
        blocked_reason = "This room's results have already been pinned to the dashboard."

    if request.method == "POST" and not blocked_reason:
        dates_form = TermDatesForm(request.POST)
        roles_formset = TermRoleFormSet(request.POST, prefix="roles")
        if dates_form.is_valid() and roles_formset.is_valid():
            try:
                terms_services.pin_room_to_term(
                    room=room,
                    start_date=dates_form.cleaned_data["start_date"],
                    end_date=dates_form.cleaned_data["end_date"],
                    roles=roles_formset.roles(),
                    preferences=preferences,
                    actor=get_username(request) or None,
                )
            except TermError as exc:
                messages.error(request, str(exc))
            else:
                messages.success(request, "The leadership structure has been published to the home dashboard.")
                return redirect("home")
    else:
        start, end = terms_services.default_term_dates()
        dates_form = TermDatesForm(initial={"start_date": start, "end_date": end})
        roles_formset = TermRoleFormSet(
            initial=suggested_term_roles(room) if room.finalized else [],
            prefix="roles",
        )

    return render(
        request,
        "core/room_pin.html",
        {
            "room": room,
            "blocked_reason": blocked_reason,
            "dates_form": dates_form,
            "roles_formset": roles_formset,
        },
    )


@require_http_methods(["GET", "POST"])
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def term_edit(request: HttpRequest) -> HttpResponse:
    term = terms_services.latest_term()
    if term is None:
        messages.info(request, "No leadership term has been published yet.")
        return redirect("home")

    if request.method == "POST":
        dates_form = TermDatesForm(request.POST)
        roles_formset = TermRoleFormSet(request.POST, prefix="roles")
        if dates_form.is_valid() and roles_formset.is_valid():
            try:
                terms_services.update_term_roles(
                    term=term,
                    roles=roles_formset.roles(),
                    start_date=dates_form.cleaned_data["start_date"],
                    end_date=dates_form.cleaned_data["end_date"],
                    actor=get_username(request) or None,
                )
            except TermError as exc:
                messages.error(request, str(exc))
            else:
                messages.success(request, "Leadership term updated.")
                return redirect("home")
    else:
        dates_form = TermDatesForm(initial={"start_date": term.start_date, "end_date": term.end_date})
        roles_formset = TermRoleFormSet(initial=list(term.roles or []), prefix="roles")

    return render(
        request,
        "core/term_edit.html",
        {
            "term": term,
            "dates_form": dates_form,
            "roles_formset": roles_formset,
            "clear_form": AdminPasswordForm(auto_id="clear_%s"),
        },
    )


@require_POST
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def term_clear(request: HttpRequest) -> HttpResponse:
    form = AdminPasswordForm(request.POST)
    if not form.is_valid():
        messages.error(request, _form_error_text(form))
        return redirect("term-edit")

    try:
        deleted = terms_services.clear_term(
            user=request.user,
            password=form.cleaned_data["password"],
            actor=get_username(request) or None,
        )
    except AuthenticationFailed as exc:
        messages.error(request, str(exc))
        return redirect("term-edit")

    messages.success(request, f"Cleared {deleted} leadership term(s).")
    return redirect("home")
