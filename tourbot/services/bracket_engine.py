"""Bracket engine - pairing, byes, round counting and placements. Pure functions, no I/O."""
from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional, Sequence

if TYPE_CHECKING:
    from tourbot.models import Match

logger = logging.getLogger("tourbot.bracket")

# OS entropy. Round-1 seeding is a user-visible fairness guarantee, so it must not be predictable.
_SYSTEM_RNG = random.SystemRandom()


class InvalidInput(ValueError):
    """Engine precondition violated by the caller."""


@dataclass(frozen=True)
class MatchPlan:
    """A match to be persisted: numbered slot in a round, bye when player2 is None."""

    match_number: int
    player1_id: int
    player2_id: Optional[int] = None
    winner_id: Optional[int] = None

    @property
    def is_bye(self) -> bool:
        return self.player2_id is None


@dataclass(frozen=True)
class PlacementResult:
    first: int
    second: Optional[int]
    third: Optional[int] = None


@dataclass
class BracketResult:
    """Outcome of one round generation, for announcing."""

    round: int
    matches: List[MatchPlan] = field(default_factory=list)
    generation: int = 1

    @property
    def byes(self) -> List[MatchPlan]:
        return [m for m in self.matches if m.is_bye]

    @property
    def is_regeneration(self) -> bool:
        return self.generation > 1


def _player_id(player: Any) -> int:
    """Accept registration rows (with user_id) or bare IDs."""
    return getattr(player, "user_id", player)


def _pair_in_order(ids: Sequence[int]) -> List[MatchPlan]:
    """Pair (0,1), (2,3), ...; an odd leftover gets a bye that is already won."""
    plans: List[MatchPlan] = []
    for i in range(0, len(ids), 2):
        number = i // 2 + 1
        if i + 1 < len(ids):
            plans.append(MatchPlan(number, ids[i], ids[i + 1]))
        else:
            plans.append(MatchPlan(number, ids[i], None, winner_id=ids[i]))
    return plans


def generate_round1_pairing(
    players: Sequence[Any], rng: Optional[random.Random] = None
) -> List[MatchPlan]:
    """Shuffle all players uniformly, then pair consecutively.

    ``random.Random.shuffle`` is a Fisher-Yates shuffle, so every permutation is
    equally likely given an unbiased source. The default source is
    ``random.SystemRandom``; tests pass a seeded ``random.Random``.
    """
    if len(players) < 2:
        raise InvalidInput("At least two players are required for round 1")
    ids = [_player_id(p) for p in players]
    if len(set(ids)) != len(ids):
        raise InvalidInput("A player appears more than once")
    (rng or _SYSTEM_RNG).shuffle(ids)
    return _pair_in_order(ids)


def generate_next_round_pairing(previous_round_winners: Sequence[Optional[int]]) -> List[MatchPlan]:
    """Pair previous-round winners in match-number order. No reshuffle after round 1."""
    if not previous_round_winners:
        raise InvalidInput("Previous round has no winners")
    if any(w is None for w in previous_round_winners):
        raise InvalidInput("Previous round is not fully decided")
    return _pair_in_order(list(previous_round_winners))


def _loser(match: Any) -> Optional[int]:
    if match.winner_id is None:
        return None
    return match.player2_id if match.winner_id == match.player1_id else match.player1_id


def compute_total_rounds(size: int) -> int:
    """Number of rounds for a bracket of ``size`` slots: ceil(log2(size))."""
    if size < 1:
        raise InvalidInput("Tournament size must be positive")
    return math.ceil(math.log2(size))


def derive_placements(
    all_matches: Sequence["Match"],
    final_round: int,
    champion: int,
    show_third_place: bool,
) -> PlacementResult:
    """Derive 1st/2nd/3rd from the match history of a finished bracket.

    Third place is the first semifinal loser (by match number) that is not the
    runner-up. This only holds for a plain bracket whose semifinal round has
    exactly two matches; any other shape logs a warning and omits third place.
    """
    final_match = next(
        (
            m
            for m in all_matches
            if m.round == final_round and champion in (m.player1_id, m.player2_id)
        ),
        None,
    )
    if final_match is None:
        raise InvalidInput(f"No round {final_round} match contains the champion")
    second = final_match.player2_id if final_match.player1_id == champion else final_match.player1_id

    third = None
    if show_third_place:
        semifinals = sorted(
            (m for m in all_matches if m.round == final_round - 1),
            key=lambda m: m.match_number,
        )
        if len(semifinals) != 2:
            logger.warning(
                "Third place skipped: round %d has %d matches, expected 2",
                final_round - 1,
                len(semifinals),
            )
        else:
            losers = [_loser(m) for m in semifinals]
            third = next((p for p in losers if p is not None and p != second), None)
    return PlacementResult(first=champion, second=second, third=third)


__all__ = [
    "BracketResult",
    "InvalidInput",
    "MatchPlan",
    "PlacementResult",
    "compute_total_rounds",
    "derive_placements",
    "generate_next_round_pairing",
    "generate_round1_pairing",
]
