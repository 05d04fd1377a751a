from __future__ import annotations

from django.test import TestCase

from core import rooms_services
from core.models import AuditLogEntry, Candidate, Position, Room
from core.preferences import AdminPreferences
from core.reauth import AuthenticationFailed
from core.rooms_services import CandidateSpec, PositionSpec
from core.tests.room_builders import ADMIN_PASSWORD, make_admin


def _election_positions() -> tuple[PositionSpec, ...]:
    return (
        PositionSpec(
            title="President",
            candidates=(CandidateSpec(name="Alice"), CandidateSpec(name="Bob", image_url="https://example.org/bob.png")),
        ),
        PositionSpec(title="Secretary", candidates=(CandidateSpec(name="Carol"),)),
    )


class CreateRoomTests(TestCase):
    def test_create_voting_room_with_positions_in_order(self) -> None:
        panel = rooms_services.create_panel(title=" Spring elections ", actor="admin")

        room = rooms_services.create_room(
            title="Board election",
            description="Annual vote",
            room_type=Room.RoomType.voting,
            positions=_election_positions(),
            panel=panel,
            actor="admin",
        )

        self.assertEqual(room.status, Room.Status.pending)
        self.assertEqual(room.panel.title, "Spring elections")
        self.assertEqual(list(room.positions.values_list("title", flat=True)), ["President", "Secretary"])
        bob = Candidate.objects.get(position__room=room, name="Bob")
        self.assertEqual(bob.image_url, "https://example.org/bob.png")
        self.assertEqual(bob.sort_order, 1)
        self.assertTrue(AuditLogEntry.objects.filter(room=room, event_type="room_created").exists())

    def test_review_positions_need_exactly_one_person(self) -> None:
        with self.assertRaisesMessage(rooms_services.InvalidSubmissionError, "exactly one person"):
            rooms_services.create_room(
                title="Quarterly review",
                description="",
                room_type=Room.RoomType.review,
                positions=_election_positions(),
            )

        self.assertFalse(Room.objects.exists())

    def test_restricted_room_needs_access_code(self) -> None:
        with self.assertRaises(rooms_services.InvalidSubmissionError):
            rooms_services.create_room(
                title="Board election",
                description="",
                room_type=Room.RoomType.voting,
                positions=_election_positions(),
                is_access_restricted=True,
            )

    def test_position_without_candidates_is_rejected(self) -> None:
        with self.assertRaises(rooms_services.InvalidSubmissionError):
            rooms_services.create_room(
                title="Board election",
                description="",
                room_type=Room.RoomType.voting,
                positions=(PositionSpec(title="President", candidates=()),),
            )

    def test_empty_panel_title_is_rejected(self) -> None:
        with self.assertRaises(rooms_services.RoomError):
            rooms_services.create_panel(title="  ")


class UpdateRoomTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.room = rooms_services.create_room(
            title="Board election",
            description="",
            room_type=Room.RoomType.voting,
            positions=_election_positions(),
        )

    def test_pending_room_positions_are_replaced(self) -> None:
        rooms_services.update_room(
            room=self.room,
            title="Board election 2026",
            description="Updated",
            is_access_restricted=True,
            access_code="club-42",
            positions=(PositionSpec(title="Treasurer", candidates=(CandidateSpec(name="Eve"),)),),
        )

        self.room.refresh_from_db()
        self.assertEqual(self.room.title, "Board election 2026")
        self.assertEqual(self.room.access_code, "club-42")
        self.assertEqual(list(Position.objects.filter(room=self.room).values_list("title", flat=True)), ["Treasurer"])

    def test_active_room_positions_are_locked(self) -> None:
        rooms_services.set_room_status(room=self.room, status=Room.Status.active)

        with self.assertRaises(rooms_services.RoomError):
            rooms_services.update_room(
                room=self.room,
                title="Board election",
                description="",
                is_access_restricted=False,
                access_code="",
                positions=(PositionSpec(title="Treasurer", candidates=(CandidateSpec(name="Eve"),)),),
            )

        # Metadata may still change.
        rooms_services.update_room(
            room=self.room,
            title="Renamed",
            description="",
            is_access_restricted=False,
            access_code="ignored",
        )
        self.room.refresh_from_db()
        self.assertEqual(self.room.title, "Renamed")
        self.assertEqual(self.room.access_code, "")

    def test_finalized_room_cannot_be_edited(self) -> None:
        Room.objects.filter(pk=self.room.pk).update(finalized=True)

        with self.assertRaises(rooms_services.RoomFinalizedError):
            rooms_services.update_room(
                room=self.room, title="x", description="", is_access_restricted=False, access_code=""
            )


class RoomStatusTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.room = rooms_services.create_room(
            title="Board election",
            description="",
            room_type=Room.RoomType.voting,
            positions=_election_positions(),
        )

    def test_lifecycle_transitions_are_audited(self) -> None:
        for status in (Room.Status.active, Room.Status.closed, Room.Status.active, Room.Status.closed):
            rooms_services.set_room_status(room=self.room, status=status, actor="admin")

        self.room.refresh_from_db()
        self.assertEqual(self.room.status, Room.Status.closed)
        entries = AuditLogEntry.objects.filter(room=self.room, event_type="room_status_changed")
        self.assertEqual(entries.count(), 4)
        self.assertEqual(entries.first().payload, {"previous_status": "pending", "new_status": "active"})

    def test_pending_room_cannot_jump_to_closed(self) -> None:
        with self.assertRaises(rooms_services.RoomError):
            rooms_services.set_room_status(room=self.room, status=Room.Status.closed)

    def test_same_status_is_a_no_op(self) -> None:
        rooms_services.set_room_status(room=self.room, status=Room.Status.pending)

        self.assertFalse(AuditLogEntry.objects.filter(event_type="room_status_changed").exists())

    def test_finalized_room_status_is_frozen(self) -> None:
        Room.objects.filter(pk=self.room.pk).update(status=Room.Status.closed, finalized=True)

        with self.assertRaises(rooms_services.RoomFinalizedError):
            rooms_services.set_room_status(room=self.room, status=Room.Status.active)


class DeleteRoomTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.admin = make_admin()
        self.room = rooms_services.create_room(
            title="Board election",
            description="",
            room_type=Room.RoomType.voting,
            positions=_election_positions(),
        )

    def test_deletion_requires_preference(self) -> None:
        with self.assertRaises(rooms_services.DeletionDisabledError):
            rooms_services.delete_room(
                room=self.room,
                user=self.admin,
                password=ADMIN_PASSWORD,
                preferences=AdminPreferences(),
            )

        self.assertTrue(Room.objects.filter(pk=self.room.pk).exists())

    def test_deletion_requires_password(self) -> None:
        with self.assertRaises(AuthenticationFailed):
            rooms_services.delete_room(
                room=self.room,
                user=self.admin,
                password="wrong",
                preferences=AdminPreferences(enable_deletion=True),
            )

    def test_delete_removes_room_and_keeps_audit_trail(self) -> None:
        room_id = self.room.pk

        rooms_services.delete_room(
            room=self.room,
            user=self.admin,
            password=ADMIN_PASSWORD,
            preferences=AdminPreferences(enable_deletion=True),
            actor="admin",
        )

        self.assertFalse(Room.objects.filter(pk=room_id).exists())
        self.assertFalse(Candidate.objects.filter(position__room_id=room_id).exists())
        entry = AuditLogEntry.objects.get(event_type="room_deleted")
        self.assertEqual(entry.payload["room_id"], room_id)
        self.assertEqual(entry.actor, "admin")
