from __future__ import annotations

import datetime

from django.test import TestCase

from core.models import Room
from core.rooms_export import export_filename, results_csv, results_markdown, results_markdown_html
from core.tests.room_builders import add_review, cast_votes, make_room

GENERATED_AT = datetime.datetime(2026, 10, 19, 14, 30, 0)


class ExportFilenameTests(TestCase):
    def test_title_is_made_filesystem_safe(self) -> None:
        room = Room(title="Board Election: 2026/27")

        self.assertEqual(export_filename(room, "md"), "board_election__2026_27_results.md")


class VotingExportTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.room = make_room({"President": ["Alice", "Bob"]}, title="Board election", description="Annual vote")
        cast_votes(self.room, {"President": {"Alice": 1, "Bob": 3}})

    def test_markdown_ranks_candidates_against_completed_participants(self) -> None:
        text = results_markdown(self.room, generated_at=GENERATED_AT)

        self.assertIn("# Results for: Board election", text)
        self.assertIn("**Generated on:** 2026-10-19 14:30:00", text)
        self.assertIn("*Based on **4** completed participant(s).*", text)
        self.assertIn("| Rank | Candidate | Votes | % of Total |", text)
        self.assertIn("| 1 | Bob | 3/4 | 75.0% |", text)
        self.assertIn("| 2 | Alice | 1/4 | 25.0% |", text)

    def test_html_preview_escapes_user_text(self) -> None:
        Room.objects.filter(pk=self.room.pk).update(title="<script>alert(1)</script>")
        self.room.refresh_from_db()

        html = results_markdown_html(self.room)

        self.assertNotIn("<script>", html)
        self.assertIn("<table>", html)

    def test_csv_has_one_row_per_candidate(self) -> None:
        lines = results_csv(self.room).strip().splitlines()

        self.assertEqual(
            lines[0].strip(),
            "Position,Rank,Candidate,Votes,Completed participants,% of Total,Official winner",
        )
        self.assertEqual(lines[1].strip(), "President,1,Bob,3,4,75.0,")
        self.assertEqual(len(lines), 3)


class ReviewExportTests(TestCase):
    def test_markdown_lists_average_and_feedback(self) -> None:
        room = make_room({"President": ["Alice"], "Event Lead": ["Bob"]}, room_type=Room.RoomType.review)
        add_review(room, "President", rating=4, feedback="Clear agendas", email="a@example.com")

        text = results_markdown(room, generated_at=GENERATED_AT)

        self.assertIn("## Review Results", text)
        self.assertIn("### President - Alice", text)
        self.assertIn("- **Average Rating:** 4.00 ★", text)
        self.assertIn("1. Clear agendas", text)
        self.assertIn("### Event Lead - Bob", text)
        self.assertIn("- **Average Rating:** N/A ★", text)
        self.assertIn("_No feedback submitted._", text)
