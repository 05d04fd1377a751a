from django.http import HttpRequest, HttpResponse
from django.shortcuts import render
from django.views.decorators.http import require_GET

from core.models import Room
from core.terms_services import leadership_roster


@require_GET
def home(request: HttpRequest) -> HttpResponse:
    roster = leadership_roster()
    published_rooms = Room.objects.archived().only("id", "title", "room_type", "finalized_at").order_by(
        "-finalized_at", "-id"
    )[:10]
    return render(
        request,
        "core/home.html",
        {
            "roster": roster,
            "published_rooms": published_rooms,
        },
    )
