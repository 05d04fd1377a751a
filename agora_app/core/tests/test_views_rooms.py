from __future__ import annotations

import json
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from core.models import AuditLogEntry, Candidate, Room, Term, Vote, Voter
from core.tests.room_builders import ADMIN_PASSWORD, candidate, cast_votes, make_admin, make_room, position


class RoomAdminAccessTests(TestCase):
    def test_anonymous_user_is_sent_to_login(self) -> None:
        resp = self.client.get(reverse("room-list"))

        self.assertEqual(resp.status_code, 302)
        self.assertIn("/admin/login/", resp["Location"])

    def test_user_without_permission_is_forbidden(self) -> None:
        user = get_user_model().objects.create_user(username="member", password=ADMIN_PASSWORD)
        self.client.force_login(user)

        self.assertEqual(self.client.get(reverse("room-list")).status_code, 403)

    def test_conflicts_json_denies_without_permission(self) -> None:
        room = make_room({"President": ["Alice"]})

        resp = self.client.get(reverse("room-conflicts-json", args=[room.pk]))

        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json(), {"ok": False, "error": "Permission denied."})


class RoomManageViewTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.admin = make_admin()
        self.client.force_login(self.admin)

    def test_create_room_and_open_it(self) -> None:
        resp = self.client.post(
            reverse("room-create"),
            {
                "title": "Board election",
                "description": "",
                "room_type": "voting",
                "access_code": "",
                "positions_text": "President\n- Alice\n- Bob\nSecretary\n- Carol",
            },
        )

        room = Room.objects.get(title="Board election")
        self.assertRedirects(resp, reverse("room-manage", args=[room.pk]), fetch_redirect_response=False)
        self.assertEqual(room.positions.count(), 2)

        manage = self.client.get(reverse("room-manage", args=[room.pk]))
        self.assertContains(manage, f"/vote/{room.pk}/")

        self.client.post(reverse("room-status", args=[room.pk]), {"status": "active"})
        room.refresh_from_db()
        self.assertEqual(room.status, Room.Status.active)

    def test_dashboard_lists_open_rooms_by_type(self) -> None:
        make_room({"President": ["Alice"]}, title="Spring vote", status=Room.Status.active)
        make_room({"President": ["Alice"]}, title="Q3 review", room_type=Room.RoomType.review)
        make_room({"President": ["Alice"]}, title="Old vote", finalized=True)

        resp = self.client.get(reverse("room-list"))

        self.assertContains(resp, "Spring vote")
        self.assertContains(resp, "Q3 review")
        self.assertNotContains(resp, "Old vote")
        self.assertContains(self.client.get(reverse("room-archived")), "Old vote")

    def test_delete_needs_preference_then_succeeds(self) -> None:
        room = make_room({"President": ["Alice"]}, status=Room.Status.pending)

        self.client.post(reverse("room-delete", args=[room.pk]), {"password": ADMIN_PASSWORD})
        self.assertTrue(Room.objects.filter(pk=room.pk).exists())

        self.client.post(reverse("preferences-toggle", args=["enable_deletion"]))
        resp = self.client.post(reverse("room-delete", args=[room.pk]), {"password": ADMIN_PASSWORD})

        self.assertRedirects(resp, reverse("room-list"), fetch_redirect_response=False)
        self.assertFalse(Room.objects.filter(pk=room.pk).exists())

    def test_voters_page_counts_participants(self) -> None:
        room = make_room({"President": ["Alice"]}, status=Room.Status.active)
        Voter.objects.create(room=room, email="done@example.com", status=Voter.Status.completed)
        Voter.objects.create(room=room, email="busy@example.com", status=Voter.Status.in_room)

        resp = self.client.get(reverse("room-voters", args=[room.pk]))

        self.assertContains(resp, "done@example.com")
        self.assertEqual(resp.context["completed_count"], 1)
        self.assertEqual(resp.context["in_room_count"], 1)


class ParticipantFlowTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.room = make_room(
            {"President": ["Alice", "Bob"], "General Secretary": ["Carol"]},
            status=Room.Status.active,
        )

    def test_enter_vote_and_thank_you(self) -> None:
        resp = self.client.post(
            reverse("room-enter", args=[self.room.pk]),
            {"email": "m@example.com", "own_position_title": "General Secretary"},
        )
        self.assertRedirects(resp, reverse("room-ballot", args=[self.room.pk]), fetch_redirect_response=False)

        ballot = self.client.get(reverse("room-ballot", args=[self.room.pk]))
        self.assertContains(ballot, "President")
        self.assertEqual([p.title for p in ballot.context["positions"]], ["President"])

        president = position(self.room, "President")
        resp = self.client.post(
            reverse("room-ballot", args=[self.room.pk]),
            {f"position_{president.pk}": str(candidate(self.room, "President", "Bob").pk)},
        )
        self.assertRedirects(resp, reverse("room-submitted", args=[self.room.pk]))
        self.assertContains(self.client.get(reverse("room-submitted", args=[self.room.pk])), "Thank you!")

        self.assertEqual(Vote.objects.get(room=self.room).candidate.name, "Bob")
        self.assertEqual(Voter.objects.get(room=self.room).status, Voter.Status.completed)

    def test_ballot_without_entry_redirects_to_entry(self) -> None:
        resp = self.client.get(reverse("room-ballot", args=[self.room.pk]))

        self.assertRedirects(resp, reverse("room-enter", args=[self.room.pk]), fetch_redirect_response=False)

    def test_pending_and_closed_rooms_are_unavailable(self) -> None:
        Room.objects.filter(pk=self.room.pk).update(status=Room.Status.pending)
        self.assertEqual(self.client.get(reverse("room-enter", args=[self.room.pk])).status_code, 403)

        Room.objects.filter(pk=self.room.pk).update(status=Room.Status.closed)
        self.assertEqual(self.client.get(reverse("room-enter", args=[self.room.pk])).status_code, 410)

    def test_finalized_room_is_gone(self) -> None:
        Room.objects.filter(pk=self.room.pk).update(status=Room.Status.closed, finalized=True)

        self.assertEqual(self.client.get(reverse("room-enter", args=[self.room.pk])).status_code, 404)

    def test_restricted_room_rejects_wrong_code(self) -> None:
        Room.objects.filter(pk=self.room.pk).update(is_access_restricted=True, access_code="club-42")

        resp = self.client.post(
            reverse("room-enter", args=[self.room.pk]),
            {"email": "m@example.com", "own_position_title": "Member", "access_code": "nope"},
        )

        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, "Invalid access code.")
        self.assertFalse(Voter.objects.exists())


class SubmitJsonTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.room = make_room({"President": ["Alice", "Bob"]}, status=Room.Status.active)
        self.president = position(self.room, "President")
        self.alice = candidate(self.room, "President", "Alice")

    def _submit(self, payload: object):
        return self.client.post(
            reverse("room-submit", args=[self.room.pk]),
            data=json.dumps(payload),
            content_type="application/json",
        )

    def test_submit_then_duplicate_is_conflict(self) -> None:
        payload = {"email": "m@example.com", "selections": {str(self.president.pk): self.alice.pk}}

        resp = self._submit(payload)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"ok": True, "room_id": self.room.pk, "submitted": 1})

        resp = self._submit(payload)
        self.assertEqual(resp.status_code, 409)
        self.assertFalse(resp.json()["ok"])

    def test_malformed_payload_is_bad_request(self) -> None:
        self.assertEqual(self._submit({"email": "m@example.com"}).status_code, 400)
        self.assertEqual(self._submit(["not", "an", "object"]).status_code, 400)

    def test_restricted_room_needs_code(self) -> None:
        Room.objects.filter(pk=self.room.pk).update(is_access_restricted=True, access_code="club-42")

        resp = self._submit({"email": "m@example.com", "selections": {str(self.president.pk): self.alice.pk}})

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Invalid access code.")
        self.assertFalse(Vote.objects.exists())


class ResultsViewTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.admin = make_admin()
        self.client.force_login(self.admin)
        self.room = make_room({"President": ["Alice", "Bob", "Carol"], "Secretary": ["Alice"]})
        cast_votes(
            self.room,
            {"President": {"Alice": 10, "Bob": 10, "Carol": 3}, "Secretary": {"Alice": 10}},
        )

    def test_results_page_shows_conflicts_and_blocks_finalize(self) -> None:
        resp = self.client.get(reverse("room-results", args=[self.room.pk]))

        self.assertContains(resp, "Results for: Club election")
        self.assertContains(resp, "Tie for President")
        self.assertContains(resp, "Alice leads multiple positions")
        self.assertContains(resp, "Based on <strong>23</strong> completed participant(s)", html=False)
        self.assertFalse(resp.context["can_finalize"])

    def test_conflicts_json(self) -> None:
        resp = self.client.get(reverse("room-conflicts-json", args=[self.room.pk]))

        data = resp.json()
        self.assertTrue(data["ok"])
        self.assertFalse(data["all_conflicts_resolved"])
        self.assertEqual(data["ties"][0]["position_title"], "President")
        self.assertEqual(
            [p["position_title"] for p in data["multi_wins"][0]["positions"]],
            ["President", "Secretary"],
        )

    def test_resolve_both_conflicts_then_finalize_and_publish(self) -> None:
        secretary = position(self.room, "Secretary")
        self.client.post(
            reverse("room-resolve-multi-win", args=[self.room.pk]),
            {"candidate_name": "Alice", "position_id": str(secretary.pk), "password": ADMIN_PASSWORD},
        )

        self.assertTrue(candidate(self.room, "Secretary", "Alice").is_official_winner)
        results = self.client.get(reverse("room-results", args=[self.room.pk]))
        self.assertTrue(results.context["can_finalize"])

        resp = self.client.post(reverse("room-finalize", args=[self.room.pk]), {"password": ADMIN_PASSWORD})
        self.assertRedirects(resp, reverse("room-results", args=[self.room.pk]), fetch_redirect_response=False)
        self.room.refresh_from_db()
        self.assertTrue(self.room.finalized)

        public = self.client.get(reverse("room-public-results", args=[self.room.pk]))
        self.assertContains(public, "Results for: Club election")
        self.assertContains(public, "Forfeited by: Alice")

    def test_resolve_tie_with_wrong_password_changes_nothing(self) -> None:
        president = position(self.room, "President")

        resp = self.client.post(
            reverse("room-resolve-tie", args=[self.room.pk, president.pk]),
            {"candidate_id": str(candidate(self.room, "President", "Bob").pk), "password": "wrong-password"},
            follow=True,
        )

        self.assertContains(resp, "Incorrect password provided. Resolution failed.")
        self.assertFalse(Candidate.objects.filter(position=president, is_official_winner=True).exists())

    def test_resolve_tie_storage_failure_is_shown_not_raised(self) -> None:
        president = position(self.room, "President")

        with patch("core.rooms_services._set_official_winner", side_effect=RuntimeError("disk full")):
            resp = self.client.post(
                reverse("room-resolve-tie", args=[self.room.pk, president.pk]),
                {"candidate_id": str(candidate(self.room, "President", "Bob").pk), "password": ADMIN_PASSWORD},
                follow=True,
            )

        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, "No changes were saved")
        self.assertTrue(AuditLogEntry.objects.filter(room=self.room, event_type="tie_resolve_failed").exists())

    def test_declare_winner_json(self) -> None:
        president = position(self.room, "President")
        url = reverse("room-declare-winner", args=[self.room.pk])

        bad = self.client.post(
            url,
            data=json.dumps(
                {
                    "position_id": president.pk,
                    "resolution_value": candidate(self.room, "President", "Bob").pk,
                    "admin_password": "wrong-password",
                }
            ),
            content_type="application/json",
        )
        self.assertEqual(bad.status_code, 400)
        self.assertEqual(bad.json(), {"ok": False, "error": "Incorrect password provided. Resolution failed."})

        ok = self.client.post(
            url,
            data=json.dumps(
                {
                    "position_id": president.pk,
                    "resolution_value": candidate(self.room, "President", "Bob").pk,
                    "admin_password": ADMIN_PASSWORD,
                }
            ),
            content_type="application/json",
        )
        self.assertEqual(ok.json(), {"ok": True, "message": "Winner declared successfully."})
        self.assertTrue(AuditLogEntry.objects.filter(room=self.room, event_type="winner_declared").exists())

    def test_public_results_hidden_until_finalized(self) -> None:
        self.client.logout()

        resp = self.client.get(reverse("room-public-results", args=[self.room.pk]))

        self.assertEqual(resp.status_code, 404)

    def test_exports(self) -> None:
        md = self.client.get(reverse("room-export-markdown", args=[self.room.pk]))
        self.assertEqual(md["Content-Disposition"], 'attachment; filename="club_election_results.md"')
        self.assertIn("# Results for: Club election", md.content.decode())

        csv = self.client.get(reverse("room-export-csv", args=[self.room.pk]))
        self.assertTrue(csv["Content-Type"].startswith("text/csv"))
        self.assertIn("President,1,Alice,10,23,43.5,", csv.content.decode())

        preview = self.client.get(reverse("room-export-preview", args=[self.room.pk]))
        self.assertContains(preview, "<table>", html=False)


class TermViewTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client.force_login(make_admin())

    def test_pin_finalized_room_publishes_roster_on_home(self) -> None:
        room = make_room({"President": ["Alice"]}, finalized=True)

        form_page = self.client.get(reverse("room-pin", args=[room.pk]))
        self.assertEqual(form_page.status_code, 200)

        resp = self.client.post(
            reverse("room-pin", args=[room.pk]),
            {
                "start_date": "2026-09-01",
                "end_date": "2027-03-01",
                "roles-TOTAL_FORMS": "1",
                "roles-INITIAL_FORMS": "1",
                "roles-0-id": "President",
                "roles-0-position_title": "President",
                "roles-0-holder_name": "Alice",
                "roles-0-role_type": "Authority",
            },
        )

        self.assertRedirects(resp, reverse("home"), fetch_redirect_response=False)
        self.assertEqual(Term.objects.count(), 1)
        home = self.client.get(reverse("home"))
        self.assertContains(home, "Alice")
        self.assertContains(home, "Edit term")

    def test_home_without_term(self) -> None:
        self.client.logout()

        self.assertContains(self.client.get(reverse("home")), "No leadership term has been published yet.")
