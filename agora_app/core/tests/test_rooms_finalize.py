from __future__ import annotations

from unittest.mock import patch

from django.test import TestCase

from core import rooms_services
from core.models import AuditLogEntry, Candidate, Review, Room, Vote, Voter
from core.reauth import AuthenticationFailed
from core.rooms_tally import completed_voter_count, review_summary, tally_room
from core.tests.room_builders import (
    ADMIN_PASSWORD,
    add_review,
    candidate,
    cast_votes,
    make_admin,
    make_room,
)


class FinalizeVotingRoomTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.admin = make_admin()
        self.room = make_room({"President": ["Alice", "Bob"], "Secretary": ["Carol"]})
        cast_votes(self.room, {"President": {"Alice": 3, "Bob": 1}, "Secretary": {"Carol": 2}})

    def _finalize(self, **kwargs) -> dict[str, int]:
        return rooms_services.finalize_room(
            room=self.room,
            user=self.admin,
            password=kwargs.pop("password", ADMIN_PASSWORD),
            actor="admin",
        )

    def test_finalize_freezes_tallies_and_deletes_working_records(self) -> None:
        before = tally_room(self.room)

        counts = self._finalize()

        self.assertEqual(counts, {"votes_deleted": 6, "reviews_deleted": 0, "voters_deleted": 4})
        self.assertFalse(Vote.objects.filter(room=self.room).exists())
        self.assertFalse(Voter.objects.filter(room=self.room).exists())

        self.room.refresh_from_db()
        self.assertTrue(self.room.finalized)
        self.assertIsNotNone(self.room.finalized_at)
        self.assertEqual(self.room.finalized_results["room_type"], Room.RoomType.voting)
        self.assertIn("finalized_at", self.room.finalized_results)

        after = tally_room(self.room)
        self.assertEqual(
            [(p.title, [(c.name, c.vote_count) for c in p.candidates]) for p in after],
            [(p.title, [(c.name, c.vote_count) for c in p.candidates]) for p in before],
        )
        self.assertEqual(completed_voter_count(self.room), 4)

        entry = AuditLogEntry.objects.get(room=self.room, event_type="room_finalized")
        self.assertEqual(entry.payload["votes_deleted"], 6)

    def test_snapshot_keeps_official_winner_flags(self) -> None:
        Candidate.objects.filter(pk=candidate(self.room, "President", "Alice").pk).update(is_official_winner=True)

        self._finalize()

        self.room.refresh_from_db()
        president = next(p for p in tally_room(self.room) if p.title == "President")
        self.assertEqual(president.official_winner.name, "Alice")

    def test_unresolved_conflicts_block_finalization(self) -> None:
        tied_room = make_room({"President": ["Alice", "Bob"]}, title="Tied")
        cast_votes(tied_room, {"President": {"Alice": 2, "Bob": 2}})

        with self.assertRaises(rooms_services.UnresolvedConflictsError):
            rooms_services.finalize_room(room=tied_room, user=self.admin, password=ADMIN_PASSWORD)

        tied_room.refresh_from_db()
        self.assertFalse(tied_room.finalized)
        self.assertEqual(Vote.objects.filter(room=tied_room).count(), 4)

    def test_active_room_cannot_be_finalized(self) -> None:
        Room.objects.filter(pk=self.room.pk).update(status=Room.Status.active)

        with self.assertRaises(rooms_services.RoomNotClosedError):
            self._finalize()

    def test_finalizing_twice_is_rejected(self) -> None:
        self._finalize()

        with self.assertRaises(rooms_services.RoomFinalizedError):
            self._finalize()

    def test_wrong_password_keeps_everything(self) -> None:
        with self.assertRaises(AuthenticationFailed):
            self._finalize(password="wrong")

        self.room.refresh_from_db()
        self.assertFalse(self.room.finalized)
        self.assertEqual(Vote.objects.filter(room=self.room).count(), 6)

    def test_storage_failure_rolls_back_and_records_failure(self) -> None:
        with patch("core.rooms_services._voting_snapshot", side_effect=RuntimeError("disk full")):
            with self.assertRaisesMessage(rooms_services.RoomError, "Recovery:"):
                self._finalize()

        self.room.refresh_from_db()
        self.assertFalse(self.room.finalized)
        self.assertEqual(Vote.objects.filter(room=self.room).count(), 6)
        entry = AuditLogEntry.objects.get(room=self.room, event_type="room_finalize_failed")
        self.assertEqual(entry.payload, {"error": "disk full", "error_type": "RuntimeError"})


class FinalizeReviewRoomTests(TestCase):
    def test_review_snapshot_keeps_feedback_without_reviewer_emails(self) -> None:
        admin = make_admin()
        room = make_room({"President": ["Alice"]}, room_type=Room.RoomType.review, title="Q3 review")
        add_review(room, "President", rating=4, feedback="Clear agendas", email="a@example.com")
        add_review(room, "President", rating=5, feedback="Great events", email="b@example.com")

        counts = rooms_services.finalize_room(room=room, user=admin, password=ADMIN_PASSWORD)

        self.assertEqual(counts["reviews_deleted"], 2)
        self.assertFalse(Review.objects.filter(room=room).exists())

        room.refresh_from_db()
        self.assertNotIn("a@example.com", str(room.finalized_results))
        (summary,) = review_summary(room)
        self.assertEqual(summary.candidate_name, "Alice")
        self.assertEqual(summary.average_rating, 4.5)
        self.assertEqual(sorted(r.feedback for r in summary.reviews), ["Clear agendas", "Great events"])
        self.assertEqual(dict(summary.rating_distribution)["5 Stars"], 1)
