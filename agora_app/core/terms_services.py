from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from dateutil.relativedelta import relativedelta
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from core.models import AuditLogEntry, Room, Term
from core.preferences import AdminPreferences
from core.reauth import reauthenticate
from core.roles import CLUB_AUTHORITIES, CLUB_OPERATION_TEAM, role_id_for_title

logger = logging.getLogger(__name__)


class TermError(Exception):
    pass


@dataclass(frozen=True)
class RosterEntry:
    position_title: str
    holder_name: str


@dataclass(frozen=True)
class LeadershipRoster:
    term: Term | None
    authorities: tuple[RosterEntry, ...]
    leads: tuple[RosterEntry, ...]


def default_term_dates(today: datetime.date | None = None) -> tuple[datetime.date, datetime.date]:
    """A term starts today and runs for the configured number of months."""
    start = today or timezone.localdate()
    months = int(getattr(settings, "AGORA_DEFAULT_TERM_MONTHS", 6))
    return start, start + relativedelta(months=months)


def _clean_roles(roles: Iterable[Mapping[str, object]]) -> list[dict[str, str]]:
    cleaned: list[dict[str, str]] = []
    for raw in roles:
        title = str(raw.get("position_title") or "").strip()
        holder = str(raw.get("holder_name") or "").strip()
        role_type = str(raw.get("role_type") or "").strip()
        if not title:
            raise TermError("Every role needs a position title.")
        if not holder:
            raise TermError(f"Winner's name is required for {title}.")
        if role_type not in Term.RoleType.values:
            raise TermError(f"Unknown role type for {title}: {role_type or '(blank)'}")
        cleaned.append(
            {
                "id": str(raw.get("id") or role_id_for_title(title)),
                "position_title": title,
                "holder_name": holder,
                "role_type": role_type,
            }
        )
    if not cleaned:
        raise TermError("At least one leadership role is required.")
    return cleaned


def _validate_dates(start_date: datetime.date, end_date: datetime.date) -> None:
    if end_date <= start_date:
        raise TermError("The term must end after it starts.")


@transaction.atomic
def pin_room_to_term(
    *,
    room: Room,
    start_date: datetime.date,
    end_date: datetime.date,
    roles: Iterable[Mapping[str, object]],
    preferences: AdminPreferences,
    actor: str | None = None,
) -> Term:
    """Publish a finalized room's winners as the current leadership term."""
    locked = Room.objects.select_for_update().get(pk=room.pk)
    if not locked.finalized:
        raise TermError("This room's results must be finalized before they can be pinned.")
    if locked.pinned_to_term and not preferences.multi_pin:
        raise TermError("This room's results have already been pinned to the dashboard.")

    _validate_dates(start_date, end_date)
    cleaned = _clean_roles(roles)

    term = Term.objects.create(
        start_date=start_date,
        end_date=end_date,
        roles=cleaned,
        source_room=locked,
        source_room_title=locked.title,
    )
    locked.pinned_to_term = True
    locked.save(update_fields=["pinned_to_term", "updated_at"])

    AuditLogEntry.objects.create(
        room=locked,
        event_type="room_pinned_to_term",
        actor=str(actor or ""),
        payload={"term_id": term.pk, "roles": len(cleaned)},
    )
    logger.info("Room pinned to term room_id=%s term_id=%s actor=%s", locked.pk, term.pk, actor)
    return term


def latest_term() -> Term | None:
    return Term.objects.order_by("-created_at", "-id").first()


@transaction.atomic
def update_term_roles(
    *,
    term: Term,
    roles: Iterable[Mapping[str, object]],
    start_date: datetime.date | None = None,
    end_date: datetime.date | None = None,
    actor: str | None = None,
) -> Term:
    locked = Term.objects.select_for_update().get(pk=term.pk)
    new_start = start_date or locked.start_date
    new_end = end_date or locked.end_date
    _validate_dates(new_start, new_end)

    locked.roles = _clean_roles(roles)
    locked.start_date = new_start
    locked.end_date = new_end
    locked.save(update_fields=["roles", "start_date", "end_date"])

    AuditLogEntry.objects.create(
        room=locked.source_room,
        event_type="term_updated",
        actor=str(actor or ""),
        payload={"term_id": locked.pk, "roles": len(locked.roles)},
    )
    logger.info("Term updated term_id=%s actor=%s", locked.pk, actor)
    return locked


@transaction.atomic
def clear_term(*, user, password: str, actor: str | None = None) -> int:
    """Delete every published term. Pinned rooms may be pinned again."""
    reauthenticate(user=user, password=password)

    deleted, _ = Term.objects.all().delete()
    Room.objects.filter(pinned_to_term=True).update(pinned_to_term=False)

    AuditLogEntry.objects.create(
        room=None,
        event_type="terms_cleared",
        actor=str(actor or ""),
        payload={"terms_deleted": deleted},
    )
    logger.info("Terms cleared count=%s actor=%s", deleted, actor)
    return deleted


def leadership_roster(term: Term | None = None) -> LeadershipRoster:
    """Group a term's role holders into authorities and leads.

    Catalogued roles come first in catalog order; any other titles follow in
    the order they were saved.
    """
    term = term if term is not None else latest_term()
    if term is None:
        return LeadershipRoster(term=None, authorities=(), leads=())

    by_type: dict[str, list[dict[str, str]]] = {Term.RoleType.authority: [], Term.RoleType.lead: []}
    for role in term.roles or []:
        if isinstance(role, dict) and role.get("role_type") in by_type:
            by_type[role["role_type"]].append(role)

    def ordered(roles: list[dict[str, str]], catalog: tuple[str, ...]) -> tuple[RosterEntry, ...]:
        rank = {title: index for index, title in enumerate(catalog)}
        roles = sorted(roles, key=lambda r: rank.get(str(r.get("position_title")), len(catalog)))
        return tuple(
            RosterEntry(position_title=str(r.get("position_title") or ""), holder_name=str(r.get("holder_name") or ""))
            for r in roles
        )

    return LeadershipRoster(
        term=term,
        authorities=ordered(by_type[Term.RoleType.authority], CLUB_AUTHORITIES),
        leads=ordered(by_type[Term.RoleType.lead], CLUB_OPERATION_TEAM),
    )
