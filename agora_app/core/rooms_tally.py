"""Read-side aggregation of votes and reviews.

Live rooms are tallied from their Vote/Review rows. Finalized rooms no longer
have those rows, so their tallies come from the frozen
``Room.finalized_results`` snapshot written by the finalizer.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.db.models import Count

from core.models import Candidate, Position, Review, Room, Vote, Voter
from core.roles import role_id_for_title, role_type_for_title
from core.rooms_conflicts import (
    TalliedCandidate,
    TalliedPosition,
    detect_conflicts,
)

STAR_LABELS: tuple[str, ...] = ("1 Star", "2 Stars", "3 Stars", "4 Stars", "5 Stars")


@dataclass(frozen=True)
class ReviewEntry:
    rating: int
    feedback: str
    reviewer_email: str
    reviewed_at: datetime.datetime | None


@dataclass(frozen=True)
class ReviewedPosition:
    id: int
    title: str
    candidate_name: str
    average_rating: float
    rating_distribution: tuple[tuple[str, int], ...]
    reviews: tuple[ReviewEntry, ...]


def _round2(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _positions_with_candidates(room: Room) -> list[Position]:
    return list(Position.objects.filter(room=room).prefetch_related("candidates").order_by("sort_order", "id"))


def _tallied_from_snapshot(snapshot: dict[str, object]) -> list[TalliedPosition]:
    tallied: list[TalliedPosition] = []
    for raw_position in snapshot.get("positions") or []:
        if not isinstance(raw_position, dict):
            continue
        candidates = tuple(
            TalliedCandidate(
                id=int(c.get("id") or 0),
                name=str(c.get("name") or ""),
                vote_count=int(c.get("vote_count") or 0),
                is_official_winner=bool(c.get("is_official_winner")),
                image_url=str(c.get("image_url") or ""),
            )
            for c in raw_position.get("candidates") or []
            if isinstance(c, dict)
        )
        tallied.append(
            TalliedPosition(
                id=int(raw_position.get("id") or 0),
                title=str(raw_position.get("title") or ""),
                candidates=candidates,
                forfeited_by_candidate_names=tuple(
                    str(n) for n in raw_position.get("forfeited_by_candidate_names") or []
                ),
            )
        )
    return tallied


def tally_room(room: Room) -> list[TalliedPosition]:
    """Per-position candidate vote counts, in position and candidate order."""
    if room.finalized:
        return _tallied_from_snapshot(room.finalized_results or {})

    vote_counts: dict[int, int] = {
        int(row["candidate_id"]): int(row["votes"])
        for row in Vote.objects.filter(room=room).values("candidate_id").annotate(votes=Count("id"))
    }

    tallied: list[TalliedPosition] = []
    for position in _positions_with_candidates(room):
        candidates = tuple(
            TalliedCandidate(
                id=c.id,
                name=c.name,
                vote_count=vote_counts.get(c.id, 0),
                is_official_winner=c.is_official_winner,
                image_url=c.image_url,
            )
            for c in position.candidates.all()
        )
        tallied.append(
            TalliedPosition(
                id=position.id,
                title=position.title,
                candidates=candidates,
                forfeited_by_candidate_names=tuple(str(n) for n in position.forfeited_by_candidate_names or []),
            )
        )
    return tallied


def completed_voter_count(room: Room) -> int:
    if room.finalized:
        return int((room.finalized_results or {}).get("completed_voter_count") or 0)
    return Voter.objects.filter(room=room, status=Voter.Status.completed).count()


def _rating_distribution(ratings: list[int]) -> tuple[tuple[str, int], ...]:
    counts = [0] * len(STAR_LABELS)
    for rating in ratings:
        index = int(rating) - 1
        if 0 <= index < len(STAR_LABELS):
            counts[index] += 1
    return tuple(zip(STAR_LABELS, counts, strict=True))


def _reviewed_from_snapshot(snapshot: dict[str, object]) -> list[ReviewedPosition]:
    reviewed: list[ReviewedPosition] = []
    for raw in snapshot.get("positions") or []:
        if not isinstance(raw, dict):
            continue
        reviews = tuple(
            ReviewEntry(
                rating=int(r.get("rating") or 0),
                feedback=str(r.get("feedback") or ""),
                reviewer_email="",
                reviewed_at=None,
            )
            for r in raw.get("reviews") or []
            if isinstance(r, dict)
        )
        distribution = tuple(
            (str(d.get("name") or ""), int(d.get("count") or 0))
            for d in raw.get("rating_distribution") or []
            if isinstance(d, dict)
        )
        reviewed.append(
            ReviewedPosition(
                id=int(raw.get("id") or 0),
                title=str(raw.get("title") or ""),
                candidate_name=str(raw.get("candidate_name") or ""),
                average_rating=float(raw.get("average_rating") or 0),
                rating_distribution=distribution or _rating_distribution([]),
                reviews=reviews,
            )
        )
    return reviewed


def review_summary(room: Room) -> list[ReviewedPosition]:
    """Average rating, star distribution and feedback for each reviewed position."""
    if room.finalized:
        return _reviewed_from_snapshot(room.finalized_results or {})

    reviews_by_position: dict[int, list[Review]] = {}
    for review in Review.objects.filter(room=room).order_by("-reviewed_at", "-id"):
        reviews_by_position.setdefault(review.position_id, []).append(review)

    summary: list[ReviewedPosition] = []
    for position in _positions_with_candidates(room):
        candidate: Candidate | None = next(iter(position.candidates.all()), None)
        reviews = reviews_by_position.get(position.id, [])
        ratings = [int(r.rating) for r in reviews]
        average = _round2(sum(ratings) / len(ratings)) if ratings else 0.0
        summary.append(
            ReviewedPosition(
                id=position.id,
                title=position.title,
                candidate_name=candidate.name if candidate is not None else "",
                average_rating=average,
                rating_distribution=_rating_distribution(ratings),
                reviews=tuple(
                    ReviewEntry(
                        rating=int(r.rating),
                        feedback=r.feedback,
                        reviewer_email=r.reviewer_email,
                        reviewed_at=r.reviewed_at,
                    )
                    for r in reviews
                ),
            )
        )
    return summary


def review_leaderboard(room: Room) -> list[ReviewedPosition]:
    return sorted(review_summary(room), key=lambda p: p.average_rating, reverse=True)


def suggested_term_roles(room: Room) -> list[dict[str, str]]:
    """Prefill leadership roles from a room's winners.

    Uses the official winner when one was declared, otherwise the position's
    sole undisputed top scorer; conflicted positions are left blank for the
    administrator to fill in.
    """
    tallied = tally_room(room)
    report = detect_conflicts(tallied)

    roles: list[dict[str, str]] = []
    for position in tallied:
        winner = position.official_winner or report.provisional_winners.get(position.id)
        roles.append(
            {
                "id": role_id_for_title(position.title),
                "position_title": position.title,
                "holder_name": winner.name if winner is not None else "",
                "role_type": role_type_for_title(position.title),
            }
        )
    return roles
