"""Room administration: dashboard, create/edit, status, deletion, panels, preferences."""

from django.contrib import messages
from django.contrib.auth.decorators import login_required, permission_required
from django.db.models import Count, Q
from django.http import Http404, HttpRequest, HttpResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from core import rooms_services
from core.forms_base import AdminPasswordForm
from core.forms_rooms import PanelForm, RoomForm, RoomStatusForm
from core.models import Panel, Room, Voter
from core.permissions import AGORA_MANAGE_ROOMS
from core.preferences import load_preferences, save_preferences
from core.public_urls import room_share_url
from core.reauth import AuthenticationFailed
from core.rooms_services import RoomError
from core.views_rooms._helpers import _form_error_text, _get_room
from core.views_utils import get_username, paginate_and_build_context


def _rooms_with_counts(qs):
    return qs.select_related("panel").annotate(
        position_count=Count("positions", distinct=True),
        completed_count=Count("voters", filter=Q(voters__status=Voter.Status.completed), distinct=True),
    )


@require_GET
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def room_list(request: HttpRequest) -> HttpResponse:
    rooms = _rooms_with_counts(Room.objects.filter(finalized=False)).order_by("-created_at", "id")

    panel_id = str(request.GET.get("panel") or "").strip()
    if panel_id.isdigit():
        rooms = rooms.filter(panel_id=int(panel_id))

    return render(
        request,
        "core/room_list.html",
        {
            "voting_rooms": [r for r in rooms if r.room_type == Room.RoomType.voting],
            "review_rooms": [r for r in rooms if r.room_type == Room.RoomType.review],
            "panels": Panel.objects.all(),
            "selected_panel_id": int(panel_id) if panel_id.isdigit() else None,
        },
    )


@require_GET
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def room_archived(request: HttpRequest) -> HttpResponse:
    rooms = _rooms_with_counts(Room.objects.archived()).order_by("-finalized_at", "-id")
    context = paginate_and_build_context(rooms, request.GET.get("page"), 25)
    return render(request, "core/room_archived.html", context)


@require_http_methods(["GET", "POST"])
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def room_create(request: HttpRequest) -> HttpResponse:
    initial_type = request.GET.get("type") or Room.RoomType.voting
    if initial_type not in Room.RoomType.values:
        initial_type = Room.RoomType.voting

    form = RoomForm(request.POST or None, initial={"room_type": initial_type})
    if request.method == "POST" and form.is_valid():
        try:
            room = rooms_services.create_room(
                title=form.cleaned_data["title"],
                description=form.cleaned_data.get("description") or "",
                room_type=form.cleaned_data["room_type"],
                positions=form.cleaned_data["positions_text"],
                panel=form.cleaned_data.get("panel"),
                is_access_restricted=bool(form.cleaned_data.get("is_access_restricted")),
                access_code=form.cleaned_data.get("access_code") or "",
                actor=get_username(request) or None,
            )
        except RoomError as exc:
            form.add_error(None, str(exc))
        else:
            messages.success(request, f'Room "{room.title}" created.')
            return redirect("room-manage", room_id=room.pk)

    return render(request, "core/room_form.html", {"form": form, "room": None})


@require_http_methods(["GET", "POST"])
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def room_manage(request: HttpRequest, room_id: int) -> HttpResponse:
    room = _get_room(room_id)
    positions_editable = room.status == Room.Status.pending and not room.finalized

    form = RoomForm(request.POST or None, instance=room, positions_editable=positions_editable)
    if request.method == "POST":
        if room.finalized:
            messages.error(request, "Finalized rooms cannot be edited.")
            return redirect("room-manage", room_id=room.pk)
        if form.is_valid():
            try:
                rooms_services.update_room(
                    room=room,
                    title=form.cleaned_data["title"],
                    description=form.cleaned_data.get("description") or "",
                    is_access_restricted=bool(form.cleaned_data.get("is_access_restricted")),
                    access_code=form.cleaned_data.get("access_code") or "",
                    panel=form.cleaned_data.get("panel"),
                    positions=form.cleaned_data.get("positions_text"),
                    actor=get_username(request) or None,
                )
            except RoomError as exc:
                form.add_error(None, str(exc))
            else:
                messages.success(request, "Room updated.")
                return redirect("room-manage", room_id=room.pk)

    return render(
        request,
        "core/room_form.html",
        {
            "form": form,
            "room": room,
            "status_form": RoomStatusForm(initial={"status": room.status}),
            "delete_form": AdminPasswordForm(auto_id="delete_%s"),
            "share_url": room_share_url(room),
        },
    )


@require_POST
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def room_status(request: HttpRequest, room_id: int) -> HttpResponse:
    room = _get_room(room_id)
    form = RoomStatusForm(request.POST)
    if not form.is_valid():
        messages.error(request, _form_error_text(form))
        return redirect("room-manage", room_id=room.pk)

    try:
        rooms_services.set_room_status(
            room=room,
            status=form.cleaned_data["status"],
            actor=get_username(request) or None,
        )
    except RoomError as exc:
        messages.error(request, str(exc))
    else:
        messages.success(request, f"Room is now {form.cleaned_data['status']}.")
    return redirect("room-manage", room_id=room.pk)


@require_POST
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def room_delete(request: HttpRequest, room_id: int) -> HttpResponse:
    room = _get_room(room_id)
    form = AdminPasswordForm(request.POST)
    if not form.is_valid():
        messages.error(request, _form_error_text(form))
        return redirect("room-manage", room_id=room.pk)

    title = room.title
    try:
        rooms_services.delete_room(
            room=room,
            user=request.user,
            password=form.cleaned_data["password"],
            preferences=load_preferences(request),
            actor=get_username(request) or None,
        )
    except (AuthenticationFailed, RoomError) as exc:
        messages.error(request, str(exc))
        return redirect("room-manage", room_id=room.pk)

    messages.success(request, f'Room "{title}" deleted.')
    return redirect("room-list")


@require_GET
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def room_voters(request: HttpRequest, room_id: int) -> HttpResponse:
    room = _get_room(room_id)
    voters = Voter.objects.filter(room=room).order_by("-last_activity", "id")
    context = paginate_and_build_context(voters, request.GET.get("page"), 50)
    context.update(
        {
            "room": room,
            "completed_count": voters.filter(status=Voter.Status.completed).count(),
            "in_room_count": voters.filter(status=Voter.Status.in_room).count(),
        }
    )
    return render(request, "core/room_voters.html", context)


@require_GET
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def panel_list(request: HttpRequest) -> HttpResponse:
    panels = Panel.objects.annotate(room_count=Count("rooms")).order_by("-created_at", "id")
    return render(request, "core/panel_list.html", {"panels": panels})


@require_http_methods(["GET", "POST"])
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def panel_create(request: HttpRequest) -> HttpResponse:
    form = PanelForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        try:
            panel = rooms_services.create_panel(
                title=form.cleaned_data["title"],
                description=form.cleaned_data.get("description") or "",
                actor=get_username(request) or None,
            )
        except RoomError as exc:
            form.add_error(None, str(exc))
        else:
            messages.success(request, f'Panel "{panel.title}" created.')
            return redirect("panel-detail", panel_id=panel.pk)
    return render(request, "core/panel_form.html", {"form": form})


@require_GET
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def panel_detail(request: HttpRequest, panel_id: int) -> HttpResponse:
    panel = get_object_or_404(Panel, pk=panel_id)
    rooms = _rooms_with_counts(panel.rooms.all()).order_by("-created_at", "id")
    return render(request, "core/panel_detail.html", {"panel": panel, "rooms": rooms})


@require_POST
@login_required
@permission_required(AGORA_MANAGE_ROOMS, raise_exception=True)
def preferences_toggle(request: HttpRequest, name: str) -> HttpResponse:
    try:
        preferences = load_preferences(request).toggled(name)
    except ValueError as exc:
        raise Http404(str(exc)) from exc

    save_preferences(request, preferences)
    state = "enabled" if getattr(preferences, name) else "disabled"
    messages.info(request, f"{name.replace('_', ' ').capitalize()} {state}.")

    next_url = str(request.POST.get("next") or "").strip()
    if next_url.startswith("/") and not next_url.startswith("//"):
        return redirect(next_url)
    return redirect("room-list")
