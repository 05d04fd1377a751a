"""Downloadable renditions of a room's results."""

from __future__ import annotations

import datetime
import re

import markdown
from django.utils import timezone
from django.utils.html import escape
from tablib import Dataset

from core.models import Room
from core.rooms_tally import completed_voter_count, review_summary, tally_room


def export_filename(room: Room, extension: str) -> str:
    safe_title = re.sub(r"[^a-z0-9]", "_", room.title, flags=re.IGNORECASE).lower()
    return f"{safe_title}_results.{extension}"


def _cell(value: object) -> str:
    # Keep user-entered pipes from splitting table cells.
    return str(value).replace("|", "\\|")


def _percentage(votes: int, total: int) -> str:
    if total <= 0:
        return "0.0"
    return f"{votes / total * 100:.1f}"


def results_markdown(room: Room, *, generated_at: datetime.datetime | None = None) -> str:
    generated_at = generated_at or timezone.localtime()
    lines = [
        f"# Results for: {room.title}",
        "",
        f"**Description:** {room.description}",
        f"**Generated on:** {generated_at:%Y-%m-%d %H:%M:%S}",
        "",
    ]

    if room.room_type == Room.RoomType.review:
        lines += ["## Review Results", ""]
        for position in review_summary(room):
            average = f"{position.average_rating:.2f}" if position.reviews else "N/A"
            lines += [
                f"### {position.title} - {position.candidate_name or 'N/A'}",
                f"- **Average Rating:** {average} ★",
                f"- **Total Reviews:** {len(position.reviews)}",
                "",
                "#### Feedback:",
                "",
            ]
            if position.reviews:
                lines += [f"{index}. {review.feedback}" for index, review in enumerate(position.reviews, start=1)]
            else:
                lines.append("_No feedback submitted._")
            lines += ["", "---", ""]
        return "\n".join(lines)

    total = completed_voter_count(room)
    lines += [
        "## Voting Results",
        "",
        f"*Based on **{total}** completed participant(s).*",
        "",
    ]
    for position in tally_room(room):
        lines += [
            f"### {position.title}",
            "",
            "| Rank | Candidate | Votes | % of Total |",
            "|:----:|:----------|:------|:----------:|",
        ]
        ranked = sorted(position.candidates, key=lambda c: c.vote_count, reverse=True)
        for rank, candidate in enumerate(ranked, start=1):
            lines.append(
                f"| {rank} | {_cell(candidate.name)} | {candidate.vote_count}/{total} "
                f"| {_percentage(candidate.vote_count, total)}% |"
            )
        lines.append("")
    return "\n".join(lines)


def results_markdown_html(room: Room) -> str:
    # Titles and feedback are user-supplied, so raw HTML is escaped before rendering.
    return markdown.markdown(escape(results_markdown(room)), extensions=["extra", "sane_lists"])


def results_dataset(room: Room) -> Dataset:
    dataset = Dataset()
    dataset.title = "Results"

    if room.room_type == Room.RoomType.review:
        dataset.headers = ["Position", "Reviewed", "Average rating", "Total reviews"]
        for position in review_summary(room):
            dataset.append([position.title, position.candidate_name, position.average_rating, len(position.reviews)])
        return dataset

    total = completed_voter_count(room)
    dataset.headers = ["Position", "Rank", "Candidate", "Votes", "Completed participants", "% of Total", "Official winner"]
    for position in tally_room(room):
        ranked = sorted(position.candidates, key=lambda c: c.vote_count, reverse=True)
        for rank, candidate in enumerate(ranked, start=1):
            dataset.append(
                [
                    position.title,
                    rank,
                    candidate.name,
                    candidate.vote_count,
                    total,
                    _percentage(candidate.vote_count, total),
                    "yes" if candidate.is_official_winner else "",
                ]
            )
    return dataset


def results_csv(room: Room) -> str:
    return results_dataset(room).export("csv")
