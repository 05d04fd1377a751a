from __future__ import annotations

import hmac
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from django.contrib.auth.base_user import AbstractBaseUser
from django.contrib.auth.models import AnonymousUser
from django.db import IntegrityError, transaction
from django.utils import timezone

from core.models import (
    AuditLogEntry,
    Candidate,
    Panel,
    Position,
    Review,
    Room,
    Vote,
    Voter,
)
from core.preferences import AdminPreferences
from core.reauth import AuthenticationFailed, reauthenticate
from core.roles import is_own_position, is_restricted_role
from core.rooms_conflicts import ConflictReport, detect_conflicts, normalize_candidate_name
from core.rooms_tally import completed_voter_count, review_summary, tally_room

logger = logging.getLogger(__name__)

FORFEITED = "forfeited"

ALLOWED_STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    Room.Status.pending: frozenset({Room.Status.active}),
    Room.Status.active: frozenset({Room.Status.pending, Room.Status.closed}),
    Room.Status.closed: frozenset({Room.Status.active}),
}

AdminUser = AbstractBaseUser | AnonymousUser | None


class RoomError(Exception):
    pass


class RoomNotActiveError(RoomError):
    pass


class RoomNotClosedError(RoomError):
    pass


class RoomFinalizedError(RoomError):
    pass


class AlreadySubmittedError(RoomError):
    pass


class InvalidSubmissionError(RoomError):
    pass


class ConflictResolutionError(RoomError):
    pass


class UnresolvedConflictsError(RoomError):
    pass


class DeletionDisabledError(RoomError):
    pass


@dataclass(frozen=True)
class CandidateSpec:
    name: str
    image_url: str = ""


@dataclass(frozen=True)
class PositionSpec:
    title: str
    candidates: tuple[CandidateSpec, ...]


@dataclass(frozen=True)
class ReviewSelection:
    rating: int
    feedback: str = ""


@dataclass(frozen=True)
class ResolutionResult:
    success: bool
    message: str


def _audit(*, room: Room | None, event_type: str, actor: str | None, payload: dict[str, object]) -> None:
    AuditLogEntry.objects.create(
        room=room,
        event_type=event_type,
        actor=str(actor or ""),
        payload=payload,
    )


def _audit_failure(*, room: Room, event_type: str, actor: str | None, exc: Exception) -> None:
    # Called after the failed transaction has rolled back, so this entry survives it.
    try:
        with transaction.atomic():
            _audit(
                room=room,
                event_type=event_type,
                actor=actor,
                payload={"error": str(exc), "error_type": type(exc).__name__},
            )
    except Exception:
        logger.exception("Failed to record %s audit entry for room_id=%s", event_type, room.pk)


def _normalize_email(email: str) -> str:
    return str(email or "").strip().lower()


def _lock_room(room: Room) -> Room:
    return Room.objects.select_for_update().get(pk=room.pk)


def _validate_position_specs(*, room_type: str, positions: Sequence[PositionSpec]) -> None:
    if not positions:
        raise InvalidSubmissionError("At least one position is required.")

    for spec in positions:
        if not spec.title.strip():
            raise InvalidSubmissionError("Position titles are required.")
        names = [c.name.strip() for c in spec.candidates]
        if room_type == Room.RoomType.review:
            if len(names) != 1:
                raise InvalidSubmissionError(
                    f'Position "{spec.title}" must name exactly one person to review.'
                )
        elif not names:
            raise InvalidSubmissionError(f'Position "{spec.title}" needs at least one candidate.')
        if any(not name for name in names):
            raise InvalidSubmissionError(f'Every candidate in "{spec.title}" needs a name.')


def _create_positions(*, room: Room, positions: Sequence[PositionSpec]) -> None:
    for position_index, spec in enumerate(positions):
        position = Position.objects.create(room=room, title=spec.title.strip(), sort_order=position_index)
        Candidate.objects.bulk_create(
            [
                Candidate(
                    position=position,
                    name=candidate.name.strip(),
                    image_url=candidate.image_url.strip(),
                    sort_order=candidate_index,
                )
                for candidate_index, candidate in enumerate(spec.candidates)
            ]
        )


def create_panel(*, title: str, description: str = "", actor: str | None = None) -> Panel:
    if not title.strip():
        raise RoomError("Panel title cannot be empty.")
    panel = Panel.objects.create(title=title.strip(), description=description.strip())
    logger.info("Panel created panel_id=%s actor=%s", panel.pk, actor)
    return panel


@transaction.atomic
def create_room(
    *,
    title: str,
    description: str,
    room_type: str,
    positions: Sequence[PositionSpec],
    panel: Panel | None = None,
    is_access_restricted: bool = False,
    access_code: str = "",
    actor: str | None = None,
) -> Room:
    if room_type not in Room.RoomType.values:
        raise InvalidSubmissionError(f"Unknown room type: {room_type}")
    if not title.strip():
        raise InvalidSubmissionError("Room title is required.")
    if is_access_restricted and not access_code.strip():
        raise InvalidSubmissionError("Restricted rooms need an access code.")
    _validate_position_specs(room_type=room_type, positions=positions)

    room = Room.objects.create(
        title=title.strip(),
        description=description.strip(),
        room_type=room_type,
        panel=panel,
        is_access_restricted=is_access_restricted,
        access_code=access_code.strip() if is_access_restricted else "",
    )
    _create_positions(room=room, positions=positions)

    _audit(
        room=room,
        event_type="room_created",
        actor=actor,
        payload={"room_type": room_type, "positions": len(positions)},
    )
    logger.info("Room created room_id=%s room_type=%s actor=%s", room.pk, room_type, actor)
    return room


@transaction.atomic
def update_room(
    *,
    room: Room,
    title: str,
    description: str,
    is_access_restricted: bool,
    access_code: str,
    panel: Panel | None = None,
    positions: Sequence[PositionSpec] | None = None,
    actor: str | None = None,
) -> Room:
    locked = _lock_room(room)
    if locked.finalized:
        raise RoomFinalizedError("Finalized rooms cannot be edited.")
    if not title.strip():
        raise InvalidSubmissionError("Room title is required.")
    if is_access_restricted and not access_code.strip():
        raise InvalidSubmissionError("Restricted rooms need an access code.")

    if positions is not None:
        if locked.status != Room.Status.pending:
            raise RoomError("Positions and candidates can only be changed while the room is pending.")
        _validate_position_specs(room_type=locked.room_type, positions=positions)
        Position.objects.filter(room=locked).delete()
        _create_positions(room=locked, positions=positions)

    locked.title = title.strip()
    locked.description = description.strip()
    locked.is_access_restricted = is_access_restricted
    locked.access_code = access_code.strip() if is_access_restricted else ""
    locked.panel = panel
    locked.save(
        update_fields=["title", "description", "is_access_restricted", "access_code", "panel", "updated_at"]
    )

    _audit(
        room=locked,
        event_type="room_updated",
        actor=actor,
        payload={"positions_replaced": positions is not None},
    )
    return locked


@transaction.atomic
def set_room_status(*, room: Room, status: str, actor: str | None = None) -> Room:
    locked = _lock_room(room)
    if locked.finalized:
        raise RoomFinalizedError("Finalized rooms cannot change status.")

    previous = locked.status
    if status == previous:
        return locked
    if status not in ALLOWED_STATUS_TRANSITIONS.get(previous, frozenset()):
        raise RoomError(f"Cannot change room status from {previous} to {status}.")

    locked.status = status
    locked.save(update_fields=["status", "updated_at"])

    _audit(
        room=locked,
        event_type="room_status_changed",
        actor=actor,
        payload={"previous_status": previous, "new_status": status},
    )
    logger.info("Room status changed room_id=%s %s -> %s actor=%s", locked.pk, previous, status, actor)
    return locked


@transaction.atomic
def delete_room(
    *,
    room: Room,
    user: AdminUser,
    password: str,
    preferences: AdminPreferences,
    actor: str | None = None,
) -> None:
    if not preferences.enable_deletion:
        raise DeletionDisabledError("Room deletion is disabled. Enable it in the admin preferences first.")
    reauthenticate(user=user, password=password)

    locked = _lock_room(room)
    _audit(
        room=None,
        event_type="room_deleted",
        actor=actor,
        payload={"room_id": locked.pk, "title": locked.title, "status": locked.status},
    )
    locked.delete()
    logger.info("Room deleted room_id=%s actor=%s", room.pk, actor)


def check_access_code(*, room: Room, access_code: str) -> None:
    if not room.is_access_restricted:
        return
    if not hmac.compare_digest(str(room.access_code or ""), str(access_code or "").strip()):
        raise InvalidSubmissionError("Invalid access code.")


@transaction.atomic
def record_participant_entry(
    *,
    room: Room,
    email: str,
    own_position_title: str,
    access_code: str = "",
) -> Voter:
    """Register a participant entering a room, or refresh their activity.

    Holders of restricted roles (club authorities and leads) may only
    complete one submission per role per room.
    """
    email = _normalize_email(email)
    own_position_title = str(own_position_title or "").strip()
    if not email:
        raise InvalidSubmissionError("An email address is required.")
    if not own_position_title:
        raise InvalidSubmissionError("Please choose your own role.")

    room.refresh_from_db(fields=["status", "is_access_restricted", "access_code"])
    if room.status != Room.Status.active:
        raise RoomNotActiveError("This room is not currently active.")
    check_access_code(room=room, access_code=access_code)

    if is_restricted_role(own_position_title):
        role_taken = (
            Voter.objects.filter(
                room=room,
                own_position_title=own_position_title,
                status=Voter.Status.completed,
            )
            .exclude(email=email)
            .exists()
        )
        if role_taken:
            raise AlreadySubmittedError(
                f'A submission for the role "{own_position_title}" has already been completed.'
            )

    now = timezone.now()
    voter = Voter.objects.select_for_update().filter(room=room, email=email).first()
    if voter is None:
        return Voter.objects.create(
            room=room,
            email=email,
            status=Voter.Status.in_room,
            own_position_title=own_position_title,
            last_activity=now,
        )

    if voter.status == Voter.Status.completed:
        raise AlreadySubmittedError("You have already completed your submission for this room.")

    voter.own_position_title = own_position_title
    voter.last_activity = now
    voter.save(update_fields=["own_position_title", "last_activity"])
    return voter


def _lock_voter_for_submission(*, room: Room, email: str, already_message: str) -> Voter | None:
    voter = Voter.objects.select_for_update().filter(room=room, email=email).first()
    if voter is not None and voter.status == Voter.Status.completed:
        raise AlreadySubmittedError(already_message)
    return voter


def _mark_voter_completed(*, room: Room, email: str, voter: Voter | None) -> None:
    now = timezone.now()
    if voter is None:
        Voter.objects.create(
            room=room,
            email=email,
            status=Voter.Status.completed,
            last_activity=now,
            voted_at=now,
        )
        return
    voter.status = Voter.Status.completed
    voter.last_activity = now
    voter.voted_at = now
    voter.save(update_fields=["status", "last_activity", "voted_at"])


@transaction.atomic
def submit_ballot(*, room: Room, email: str, selections: Mapping[int, int | None]) -> int:
    """Record one participant's ballot; ``None`` skips a position.

    Returns the number of votes stored.
    """
    email = _normalize_email(email)
    if not email:
        raise InvalidSubmissionError("An email address is required.")

    voter = _lock_voter_for_submission(
        room=room,
        email=email,
        already_message="You have already voted in this election.",
    )

    room.refresh_from_db(fields=["status", "room_type"])
    if room.status != Room.Status.active or room.room_type != Room.RoomType.voting:
        raise RoomNotActiveError("This election is not currently active.")

    positions = {p.id: p for p in Position.objects.filter(room=room).prefetch_related("candidates")}
    votes: list[Vote] = []
    for raw_position_id, raw_candidate_id in selections.items():
        if raw_candidate_id is None:
            continue
        try:
            position_id = int(raw_position_id)
            candidate_id = int(raw_candidate_id)
        except (TypeError, ValueError) as exc:
            raise InvalidSubmissionError("Invalid ballot: malformed selection") from exc

        position = positions.get(position_id)
        if position is None:
            raise InvalidSubmissionError("Invalid ballot: contains positions not in this room")
        if voter is not None and is_own_position(position.title, voter.own_position_title):
            raise InvalidSubmissionError("You cannot vote for your own position.")
        if candidate_id not in {c.id for c in position.candidates.all()}:
            raise InvalidSubmissionError("Invalid ballot: contains candidates not in this position")
        votes.append(Vote(room=room, position=position, candidate_id=candidate_id, voter_email=email))

    try:
        Vote.objects.bulk_create(votes)
    except IntegrityError as exc:
        raise AlreadySubmittedError("You have already voted in this election.") from exc

    _mark_voter_completed(room=room, email=email, voter=voter)
    return len(votes)


@transaction.atomic
def submit_review(*, room: Room, email: str, selections: Mapping[int, ReviewSelection]) -> int:
    """Record one participant's reviews; a rating of 0 skips the position.

    Returns the number of reviews stored.
    """
    email = _normalize_email(email)
    if not email:
        raise InvalidSubmissionError("An email address is required.")

    voter = _lock_voter_for_submission(
        room=room,
        email=email,
        already_message="You have already submitted a review for this room.",
    )

    room.refresh_from_db(fields=["status", "room_type"])
    if room.status != Room.Status.active or room.room_type != Room.RoomType.review:
        raise RoomNotActiveError("This review room is not currently active.")

    positions = {p.id: p for p in Position.objects.filter(room=room).prefetch_related("candidates")}
    reviews: list[Review] = []
    for raw_position_id, selection in selections.items():
        try:
            position_id = int(raw_position_id)
        except (TypeError, ValueError) as exc:
            raise InvalidSubmissionError("Invalid review: malformed selection") from exc

        position = positions.get(position_id)
        if position is None:
            raise InvalidSubmissionError("Invalid review: contains positions not in this room")
        if voter is not None and is_own_position(position.title, voter.own_position_title):
            raise InvalidSubmissionError("You cannot review your own position.")

        candidate = next(iter(position.candidates.all()), None)
        if candidate is None or selection.rating == 0:
            continue
        if not 1 <= int(selection.rating) <= 5:
            raise InvalidSubmissionError("Ratings must be between 1 and 5 stars.")

        reviews.append(
            Review(
                room=room,
                position=position,
                candidate=candidate,
                rating=int(selection.rating),
                feedback=str(selection.feedback or "").strip(),
                reviewer_email=email,
            )
        )

    try:
        Review.objects.bulk_create(reviews)
    except IntegrityError as exc:
        raise AlreadySubmittedError("You have already submitted a review for this room.") from exc

    _mark_voter_completed(room=room, email=email, voter=voter)
    return len(reviews)


def room_conflicts(room: Room) -> ConflictReport:
    return detect_conflicts(tally_room(room))


def _require_resolvable(room: Room) -> None:
    if room.room_type != Room.RoomType.voting:
        raise ConflictResolutionError("Only voting rooms have winners to resolve.")
    if room.finalized:
        raise RoomFinalizedError("This room has been finalized; results can no longer change.")
    if room.status != Room.Status.closed:
        raise RoomNotClosedError("Close the room before resolving conflicts.")


def _set_official_winner(*, position: Position, candidate_id: int) -> None:
    # Clear siblings first so the one-winner-per-position constraint holds.
    Candidate.objects.filter(position=position).exclude(pk=candidate_id).update(is_official_winner=False)
    Candidate.objects.filter(position=position, pk=candidate_id).update(is_official_winner=True)


def _append_forfeit(*, position: Position, candidate_name: str) -> None:
    names = [str(n) for n in position.forfeited_by_candidate_names or []]
    key = normalize_candidate_name(candidate_name)
    if key not in {normalize_candidate_name(n) for n in names}:
        names.append(key)
    position.forfeited_by_candidate_names = names
    position.save(update_fields=["forfeited_by_candidate_names"])

    # A forfeited person cannot remain the official winner here.
    Candidate.objects.filter(position=position, is_official_winner=True, name=key).update(is_official_winner=False)


def _resolution_failure(*, room: Room, event_type: str, actor: str | None, exc: Exception) -> ConflictResolutionError:
    logger.exception("Resolution failed room_id=%s event=%s", room.pk, event_type)
    _audit_failure(room=room, event_type=event_type, actor=actor, exc=exc)
    return ConflictResolutionError(
        f"Failed to apply the resolution: {exc}. "
        "No changes were saved; retry from the results page."
    )


def _resolve_tie_locked(*, room: Room, position_id: int, candidate_id: int, actor: str | None) -> None:
    locked = _lock_room(room)
    _require_resolvable(locked)

    report = room_conflicts(locked)
    tie = report.tie_for(position_id)
    if tie is None:
        raise ConflictResolutionError("This position has no unresolved tie.")
    if candidate_id not in {c.id for c in tie.candidates}:
        raise ConflictResolutionError("Choose one of the tied candidates.")

    position = Position.objects.get(pk=tie.position_id, room=locked)
    _set_official_winner(position=position, candidate_id=candidate_id)

    _audit(
        room=locked,
        event_type="tie_resolved",
        actor=actor,
        payload={
            "position_id": position.pk,
            "position_title": position.title,
            "winner_candidate_id": candidate_id,
            "tied_candidate_ids": [c.id for c in tie.candidates],
        },
    )


def resolve_tie(
    *,
    room: Room,
    position_id: int,
    candidate_id: int,
    user: AdminUser,
    password: str,
    actor: str | None = None,
) -> None:
    """Declare one of a position's tied top scorers the official winner."""
    reauthenticate(user=user, password=password)

    try:
        with transaction.atomic():
            _resolve_tie_locked(
                room=room,
                position_id=int(position_id),
                candidate_id=int(candidate_id),
                actor=actor,
            )
    except RoomError:
        raise
    except Exception as exc:
        raise _resolution_failure(room=room, event_type="tie_resolve_failed", actor=actor, exc=exc) from exc

    logger.info(
        "Tie resolved room_id=%s position_id=%s winner=%s actor=%s",
        room.pk,
        position_id,
        candidate_id,
        actor,
    )


def _resolve_multi_win_locked(
    *,
    room: Room,
    candidate_name: str,
    chosen_position_id: int,
    actor: str | None,
) -> str:
    locked = _lock_room(room)
    _require_resolvable(locked)

    report = room_conflicts(locked)
    multi_win = report.multi_win_for(candidate_name)
    if multi_win is None:
        raise ConflictResolutionError(f'"{candidate_name}" is not leading more than one position.')

    position_ids = [ref.position_id for ref in multi_win.positions]
    if chosen_position_id not in position_ids:
        raise ConflictResolutionError("Choose one of the positions this person won.")

    key = normalize_candidate_name(multi_win.candidate_name)
    positions = {p.id: p for p in Position.objects.select_for_update().filter(room=locked, pk__in=position_ids)}

    chosen = positions[chosen_position_id]
    winner = next(
        (c for c in Candidate.objects.filter(position=chosen).order_by("sort_order", "id")
         if normalize_candidate_name(c.name) == key),
        None,
    )
    if winner is None:
        raise ConflictResolutionError(f'"{multi_win.candidate_name}" is not a candidate for {chosen.title}.')
    _set_official_winner(position=chosen, candidate_id=winner.pk)

    forfeited_titles: list[str] = []
    for position_id in position_ids:
        if position_id == chosen.pk:
            continue
        position = positions[position_id]
        _append_forfeit(position=position, candidate_name=key)
        forfeited_titles.append(position.title)

    _audit(
        room=locked,
        event_type="multi_win_resolved",
        actor=actor,
        payload={
            "candidate_name": key,
            "kept_position_id": chosen.pk,
            "kept_position_title": chosen.title,
            "forfeited_position_titles": forfeited_titles,
        },
    )
    return key


def resolve_multi_win(
    *,
    room: Room,
    candidate_name: str,
    chosen_position_id: int,
    user: AdminUser,
    password: str,
    actor: str | None = None,
) -> None:
    """Keep a person's win in one position and forfeit the others.

    The chosen position's candidate with that name becomes the official
    winner. Every other position of the conflict records the forfeiture, which
    excludes the person there on the next detection pass. All writes happen
    in one transaction.
    """
    reauthenticate(user=user, password=password)

    try:
        with transaction.atomic():
            key = _resolve_multi_win_locked(
                room=room,
                candidate_name=candidate_name,
                chosen_position_id=int(chosen_position_id),
                actor=actor,
            )
    except RoomError:
        raise
    except Exception as exc:
        raise _resolution_failure(room=room, event_type="multi_win_resolve_failed", actor=actor, exc=exc) from exc

    logger.info(
        "Multi-win resolved room_id=%s name=%r kept_position_id=%s actor=%s",
        room.pk,
        key,
        chosen_position_id,
        actor,
    )


def _declare_winner_locked(
    *,
    room: Room,
    position_id: int,
    resolution_value: int | str,
    forfeited_by_candidate_name: str | None,
    actor: str | None,
) -> None:
    locked = _lock_room(room)
    _require_resolvable(locked)

    try:
        position = Position.objects.select_for_update().get(pk=position_id, room=locked)
    except Position.DoesNotExist as exc:
        raise ConflictResolutionError("Position not found.") from exc

    if resolution_value == FORFEITED:
        name = normalize_candidate_name(forfeited_by_candidate_name or "")
        if not name:
            raise ConflictResolutionError("Name the candidate who forfeits this position.")
        _append_forfeit(position=position, candidate_name=name)
        payload: dict[str, object] = {"position_id": position.pk, "forfeited_by_candidate_name": name}
    else:
        try:
            candidate_id = int(resolution_value)
        except (TypeError, ValueError) as exc:
            raise ConflictResolutionError("Selected winner does not exist in this position.") from exc
        if not Candidate.objects.filter(position=position, pk=candidate_id).exists():
            raise ConflictResolutionError("Selected winner does not exist in this position.")
        _set_official_winner(position=position, candidate_id=candidate_id)
        payload = {"position_id": position.pk, "winner_candidate_id": candidate_id}

    _audit(room=locked, event_type="winner_declared", actor=actor, payload=payload)


def declare_winner(
    *,
    room_id: int,
    position_id: int,
    resolution_value: int | str,
    admin_password: str,
    user: AdminUser,
    forfeited_by_candidate_name: str | None = None,
    actor: str | None = None,
) -> ResolutionResult:
    """Apply a single winner decision to one position.

    ``resolution_value`` is either a candidate id of the position or
    ``"forfeited"`` together with ``forfeited_by_candidate_name``. Errors are
    reported in the result instead of raised.
    """
    try:
        reauthenticate(user=user, password=admin_password)
    except AuthenticationFailed as exc:
        return ResolutionResult(success=False, message=str(exc))

    room = Room.objects.filter(pk=room_id).first()
    if room is None:
        return ResolutionResult(success=False, message="Room not found.")

    try:
        with transaction.atomic():
            _declare_winner_locked(
                room=room,
                position_id=position_id,
                resolution_value=resolution_value,
                forfeited_by_candidate_name=forfeited_by_candidate_name,
                actor=actor,
            )
    except RoomError as exc:
        return ResolutionResult(success=False, message=str(exc))
    except Exception as exc:
        failure = _resolution_failure(room=room, event_type="winner_declare_failed", actor=actor, exc=exc)
        return ResolutionResult(success=False, message=str(failure))

    logger.info("Winner declared room_id=%s position_id=%s actor=%s", room.pk, position_id, actor)
    return ResolutionResult(success=True, message="Winner declared successfully.")


def _voting_snapshot(room: Room) -> dict[str, object]:
    return {
        "room_type": room.room_type,
        "completed_voter_count": completed_voter_count(room),
        "positions": [
            {
                "id": position.id,
                "title": position.title,
                "forfeited_by_candidate_names": list(position.forfeited_by_candidate_names),
                "candidates": [
                    {
                        "id": c.id,
                        "name": c.name,
                        "image_url": c.image_url,
                        "vote_count": c.vote_count,
                        "is_official_winner": c.is_official_winner,
                    }
                    for c in position.candidates
                ],
            }
            for position in tally_room(room)
        ],
    }


def _review_snapshot(room: Room) -> dict[str, object]:
    # Reviewer emails and timestamps are dropped; only the feedback survives.
    return {
        "room_type": room.room_type,
        "completed_voter_count": completed_voter_count(room),
        "positions": [
            {
                "id": position.id,
                "title": position.title,
                "candidate_name": position.candidate_name,
                "average_rating": position.average_rating,
                "rating_distribution": [{"name": name, "count": count} for name, count in position.rating_distribution],
                "reviews": [{"rating": r.rating, "feedback": r.feedback} for r in position.reviews],
            }
            for position in review_summary(room)
        ],
    }


def _finalize_locked(*, room: Room, actor: str | None) -> dict[str, int]:
    locked = _lock_room(room)
    if locked.finalized:
        raise RoomFinalizedError("This room has already been finalized.")
    if locked.status != Room.Status.closed:
        raise RoomNotClosedError("Close the room before finalizing its results.")

    if locked.room_type == Room.RoomType.voting:
        report = room_conflicts(locked)
        if not report.all_conflicts_resolved:
            raise UnresolvedConflictsError("Resolve all winner conflicts before finalizing.")

    if locked.room_type == Room.RoomType.review:
        snapshot = _review_snapshot(locked)
    else:
        snapshot = _voting_snapshot(locked)

    finalized_at = timezone.now()
    snapshot["finalized_at"] = finalized_at.isoformat()

    votes_deleted, _ = Vote.objects.filter(room=locked).delete()
    reviews_deleted, _ = Review.objects.filter(room=locked).delete()
    voters_deleted, _ = Voter.objects.filter(room=locked).delete()

    locked.finalized = True
    locked.finalized_results = snapshot
    locked.finalized_at = finalized_at
    locked.save(update_fields=["finalized", "finalized_results", "finalized_at", "updated_at"])

    counts = {
        "votes_deleted": votes_deleted,
        "reviews_deleted": reviews_deleted,
        "voters_deleted": voters_deleted,
    }
    _audit(room=locked, event_type="room_finalized", actor=actor, payload=counts)
    return counts


def finalize_room(
    *,
    room: Room,
    user: AdminUser,
    password: str,
    actor: str | None = None,
) -> dict[str, int]:
    """Freeze a closed room's results and delete its working records.

    Irreversible: votes, reviews and participant entries are destroyed, not
    archived. Returns the number of deleted rows per kind.
    """
    reauthenticate(user=user, password=password)

    try:
        with transaction.atomic():
            counts = _finalize_locked(room=room, actor=actor)
    except RoomError:
        raise
    except Exception as exc:
        _audit_failure(room=room, event_type="room_finalize_failed", actor=actor, exc=exc)
        raise RoomError(
            f"Failed to finalize room: {exc}. "
            "Recovery: the room was left unchanged; verify database connectivity and retry."
        ) from exc

    logger.info("Room finalized room_id=%s actor=%s counts=%s", room.pk, actor, counts)
    room.refresh_from_db()
    return counts
