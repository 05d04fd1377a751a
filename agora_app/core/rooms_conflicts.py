"""Winner conflict detection for closed voting rooms.

Conflicts are derived on every results page load and never stored. Two kinds
exist:

* a tie: two or more candidates share a position's top vote count (> 0);
* a multi-win: the same person, matched by candidate *name*, holds two or more
  positions, either as official winner or among the top scorers.

Everything here is a pure function of the tallied positions handed in by
``core.rooms_tally``; no ORM access.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field


@dataclass(frozen=True)
class TalliedCandidate:
    id: int
    name: str
    vote_count: int = 0
    is_official_winner: bool = False
    image_url: str = ""


@dataclass(frozen=True)
class TalliedPosition:
    id: int
    title: str
    candidates: tuple[TalliedCandidate, ...] = ()
    forfeited_by_candidate_names: tuple[str, ...] = ()

    @property
    def official_winner(self) -> TalliedCandidate | None:
        for candidate in self.candidates:
            if candidate.is_official_winner:
                return candidate
        return None

    @property
    def total_votes(self) -> int:
        return sum(c.vote_count for c in self.candidates)


@dataclass(frozen=True)
class PositionRef:
    position_id: int
    position_title: str


@dataclass(frozen=True)
class Tie:
    position_id: int
    position_title: str
    candidates: tuple[TalliedCandidate, ...]


@dataclass(frozen=True)
class MultiWin:
    candidate_name: str
    positions: tuple[PositionRef, ...]


@dataclass(frozen=True)
class ConflictReport:
    ties: tuple[Tie, ...] = ()
    multi_wins: tuple[MultiWin, ...] = ()
    # Sole top scorer per unresolved position that is not part of any conflict.
    provisional_winners: dict[int, TalliedCandidate] = field(default_factory=dict)

    @property
    def all_conflicts_resolved(self) -> bool:
        return not self.ties and not self.multi_wins

    def tie_for(self, position_id: int) -> Tie | None:
        for tie in self.ties:
            if tie.position_id == position_id:
                return tie
        return None

    def multi_win_for(self, candidate_name: str) -> MultiWin | None:
        key = normalize_candidate_name(candidate_name)
        for multi_win in self.multi_wins:
            if normalize_candidate_name(multi_win.candidate_name) == key:
                return multi_win
        return None


def normalize_candidate_name(name: str) -> str:
    # Candidates are the same person across positions when their names match.
    return str(name or "").strip()


def eligible_candidates(position: TalliedPosition) -> list[TalliedCandidate]:
    """Candidates still in the running for ``position``.

    People who forfeited this position in favor of another one are excluded.
    """
    forfeited = {normalize_candidate_name(n) for n in position.forfeited_by_candidate_names}
    return [c for c in position.candidates if normalize_candidate_name(c.name) not in forfeited]


def current_winners(position: TalliedPosition) -> list[TalliedCandidate]:
    """Top scorers of a position, in candidate order.

    A zero-vote candidate never wins, so an untouched position has no
    winners at all rather than an everyone-tied-at-zero result.
    """
    candidates = eligible_candidates(position)
    if not candidates:
        return []

    top_vote_count = max(c.vote_count for c in candidates)
    if top_vote_count <= 0:
        return []

    return [c for c in candidates if c.vote_count == top_vote_count]


def detect_conflicts(positions: Sequence[TalliedPosition]) -> ConflictReport:
    ties: list[Tie] = []
    winners_by_position: dict[int, list[TalliedCandidate]] = {}

    # Insertion order of this dict is the order in which each name first led.
    positions_by_name: dict[str, list[PositionRef]] = {}
    display_name_by_key: dict[str, str] = {}

    for position in positions:
        official = position.official_winner
        if official is not None:
            # A declared winner still holds the position for multi-win purposes.
            winners = [official]
        else:
            winners = current_winners(position)
            if not winners:
                continue
            winners_by_position[position.id] = winners

        if official is None and len(winners) > 1:
            ties.append(
                Tie(
                    position_id=position.id,
                    position_title=position.title,
                    candidates=tuple(winners),
                )
            )

        ref = PositionRef(position_id=position.id, position_title=position.title)
        seen_here: set[str] = set()
        for winner in winners:
            key = normalize_candidate_name(winner.name)
            # Two same-named candidates tied in one position still count once.
            if key in seen_here:
                continue
            seen_here.add(key)
            display_name_by_key.setdefault(key, winner.name)
            positions_by_name.setdefault(key, []).append(ref)

    multi_wins = tuple(
        MultiWin(candidate_name=display_name_by_key[key], positions=tuple(refs))
        for key, refs in positions_by_name.items()
        if len(refs) > 1
    )

    conflicted_names = {normalize_candidate_name(mw.candidate_name) for mw in multi_wins}
    tied_position_ids = {tie.position_id for tie in ties}
    provisional: dict[int, TalliedCandidate] = {}
    for position_id, winners in winners_by_position.items():
        if position_id in tied_position_ids:
            continue
        (winner,) = winners
        if normalize_candidate_name(winner.name) in conflicted_names:
            continue
        provisional[position_id] = winner

    return ConflictReport(ties=tuple(ties), multi_wins=multi_wins, provisional_winners=provisional)
