from __future__ import annotations

import datetime

from django.test import TestCase, override_settings

from core import terms_services
from core.models import AuditLogEntry, Room, Term
from core.preferences import AdminPreferences
from core.reauth import AuthenticationFailed
from core.tests.room_builders import ADMIN_PASSWORD, make_admin

START = datetime.date(2026, 9, 1)
END = datetime.date(2027, 3, 1)

ROLES = [
    {"position_title": "Event Lead", "holder_name": "Carol", "role_type": "Lead"},
    {"position_title": "Vice President", "holder_name": "Bob", "role_type": "Authority"},
    {"position_title": "President", "holder_name": "Alice", "role_type": "Authority"},
    {"position_title": "Outreach Lead", "holder_name": "Dana", "role_type": "Lead"},
    {"position_title": "Technical Lead", "holder_name": "Eve", "role_type": "Lead"},
]


def _finalized_room(title: str = "Board election") -> Room:
    return Room.objects.create(title=title, status=Room.Status.closed, finalized=True, finalized_results={})


class DefaultTermDatesTests(TestCase):
    @override_settings(AGORA_DEFAULT_TERM_MONTHS=6)
    def test_default_term_runs_six_months(self) -> None:
        self.assertEqual(
            terms_services.default_term_dates(datetime.date(2026, 8, 31)),
            (datetime.date(2026, 8, 31), datetime.date(2027, 2, 28)),
        )


class PinRoomToTermTests(TestCase):
    def test_pin_publishes_term_and_marks_room(self) -> None:
        room = _finalized_room()

        term = terms_services.pin_room_to_term(
            room=room,
            start_date=START,
            end_date=END,
            roles=ROLES,
            preferences=AdminPreferences(),
            actor="admin",
        )

        self.assertEqual(term.source_room_title, "Board election")
        self.assertEqual(term.roles[0]["id"], "Event-Lead")
        room.refresh_from_db()
        self.assertTrue(room.pinned_to_term)
        self.assertTrue(AuditLogEntry.objects.filter(room=room, event_type="room_pinned_to_term").exists())

    def test_unfinalized_room_cannot_be_pinned(self) -> None:
        room = Room.objects.create(title="Live", status=Room.Status.closed)

        with self.assertRaises(terms_services.TermError):
            terms_services.pin_room_to_term(
                room=room, start_date=START, end_date=END, roles=ROLES, preferences=AdminPreferences()
            )

    def test_repinning_needs_multi_pin(self) -> None:
        room = _finalized_room()
        terms_services.pin_room_to_term(
            room=room, start_date=START, end_date=END, roles=ROLES, preferences=AdminPreferences()
        )

        with self.assertRaisesMessage(terms_services.TermError, "already been pinned"):
            terms_services.pin_room_to_term(
                room=room, start_date=START, end_date=END, roles=ROLES, preferences=AdminPreferences()
            )

        terms_services.pin_room_to_term(
            room=room, start_date=START, end_date=END, roles=ROLES, preferences=AdminPreferences(multi_pin=True)
        )
        self.assertEqual(Term.objects.count(), 2)

    def test_blank_holder_is_rejected(self) -> None:
        with self.assertRaisesMessage(terms_services.TermError, "Winner's name is required for President."):
            terms_services.pin_room_to_term(
                room=_finalized_room(),
                start_date=START,
                end_date=END,
                roles=[{"position_title": "President", "holder_name": " ", "role_type": "Authority"}],
                preferences=AdminPreferences(),
            )

    def test_end_before_start_is_rejected(self) -> None:
        with self.assertRaises(terms_services.TermError):
            terms_services.pin_room_to_term(
                room=_finalized_room(), start_date=END, end_date=START, roles=ROLES, preferences=AdminPreferences()
            )


class TermMaintenanceTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.room = _finalized_room()
        self.term = terms_services.pin_room_to_term(
            room=self.room, start_date=START, end_date=END, roles=ROLES, preferences=AdminPreferences()
        )

    def test_update_term_roles(self) -> None:
        updated = terms_services.update_term_roles(
            term=self.term,
            roles=[{"id": "President", "position_title": "President", "holder_name": "Zoe", "role_type": "Authority"}],
            end_date=datetime.date(2027, 6, 1),
            actor="admin",
        )

        self.assertEqual(updated.roles[0]["holder_name"], "Zoe")
        self.assertEqual(updated.start_date, START)
        self.assertEqual(updated.end_date, datetime.date(2027, 6, 1))
        self.assertEqual(terms_services.latest_term().pk, self.term.pk)

    def test_leadership_roster_orders_catalog_roles_first(self) -> None:
        roster = terms_services.leadership_roster()

        self.assertEqual(roster.term.pk, self.term.pk)
        self.assertEqual([e.position_title for e in roster.authorities], ["President", "Vice President"])
        self.assertEqual([e.position_title for e in roster.leads], ["Technical Lead", "Event Lead", "Outreach Lead"])

    def test_clear_term_requires_password_and_unpins_rooms(self) -> None:
        admin = make_admin()

        with self.assertRaises(AuthenticationFailed):
            terms_services.clear_term(user=admin, password="wrong")
        self.assertEqual(Term.objects.count(), 1)

        deleted = terms_services.clear_term(user=admin, password=ADMIN_PASSWORD, actor="admin")

        self.assertEqual(deleted, 1)
        self.assertIsNone(terms_services.latest_term())
        self.room.refresh_from_db()
        self.assertFalse(self.room.pinned_to_term)
        self.assertEqual(terms_services.leadership_roster().authorities, ())
