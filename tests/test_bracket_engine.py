"""Tests for pairing, round counting and placement derivation."""
import logging
import random
from collections import Counter
from types import SimpleNamespace

import pytest

from tourbot.services.bracket_engine import (
    InvalidInput,
    MatchPlan,
    compute_total_rounds,
    derive_placements,
    generate_next_round_pairing,
    generate_round1_pairing,
)


def _match(round_num, number, p1, p2, winner=None):
    return SimpleNamespace(round=round_num, match_number=number, player1_id=p1, player2_id=p2, winner_id=winner)


@pytest.mark.parametrize("n", range(2, 66))
def test_round1_match_count_and_byes(n):
    """Round 1 has ceil(n/2) matches and a bye only for an odd field."""
    plans = generate_round1_pairing(list(range(1, n + 1)), rng=random.Random(n))
    assert len(plans) == (n + 1) // 2
    byes = [p for p in plans if p.is_bye]
    assert len(byes) == (1 if n % 2 else 0)
    for bye in byes:
        assert bye.winner_id == bye.player1_id
    assert [p.match_number for p in plans] == list(range(1, len(plans) + 1))


def test_round1_uses_every_player_once():
    """Every player lands in exactly one round-1 slot."""
    ids = list(range(100, 117))
    plans = generate_round1_pairing(ids, rng=random.Random(7))
    seen = [p for m in plans for p in (m.player1_id, m.player2_id) if p is not None]
    assert sorted(seen) == ids


def test_round1_accepts_player_rows():
    """Pairing takes objects with a user_id as well as raw IDs."""
    players = [SimpleNamespace(user_id=i) for i in (5, 6, 7)]
    plans = generate_round1_pairing(players, rng=random.Random(0))
    assert {p for m in plans for p in (m.player1_id, m.player2_id) if p} == {5, 6, 7}


def test_round1_needs_two_players():
    """Round 1 cannot be generated with a single player."""
    with pytest.raises(InvalidInput):
        generate_round1_pairing([42])
    with pytest.raises(InvalidInput):
        generate_round1_pairing([])


def test_round1_rejects_duplicates():
    """The same player twice is invalid input."""
    with pytest.raises(InvalidInput):
        generate_round1_pairing([1, 2, 2, 3])


def test_round1_default_randomness_source():
    """Pairing works without an injected RNG."""
    plans = generate_round1_pairing([1, 2, 3, 4])
    assert len(plans) == 2


def test_round1_permutations_are_uniform():
    """All 24 orderings of 4 players show up with roughly equal frequency."""
    rng = random.Random(2024)
    trials = 24000
    counts = Counter()
    for _ in range(trials):
        plans = generate_round1_pairing([1, 2, 3, 4], rng=rng)
        counts[tuple(p for m in plans for p in (m.player1_id, m.player2_id))] += 1
    assert len(counts) == 24
    expected = trials / 24
    for c in counts.values():
        assert abs(c - expected) < expected * 0.15


def test_next_round_keeps_match_order():
    """Winners are paired in match order without reshuffling."""
    plans = generate_next_round_pairing([10, 20, 30, 40])
    assert plans == [MatchPlan(1, 10, 20), MatchPlan(2, 30, 40)]


def test_next_round_odd_winners_get_bye():
    """An odd number of winners gives the last one a bye."""
    plans = generate_next_round_pairing([10, 20, 30])
    assert plans[-1] == MatchPlan(2, 30, None, winner_id=30)


def test_next_round_rejects_undecided():
    """An undecided previous match cannot be paired."""
    with pytest.raises(InvalidInput):
        generate_next_round_pairing([1, None])
    with pytest.raises(InvalidInput):
        generate_next_round_pairing([])


@pytest.mark.parametrize("size,rounds", [(1, 0), (2, 1), (8, 3), (16, 4), (32, 5), (64, 6), (5, 3)])
def test_compute_total_rounds(size, rounds):
    """Total rounds is ceil(log2(size))."""
    assert compute_total_rounds(size) == rounds


def test_compute_total_rounds_rejects_nonpositive():
    """Sizes below one are rejected."""
    with pytest.raises(InvalidInput):
        compute_total_rounds(0)


def test_placements_with_third_place():
    """SF1 A beats B, SF2 C beats D, final A beats C -> A, C, B."""
    a, b, c, d = 1, 2, 3, 4
    matches = [
        _match(2, 1, a, b, a),
        _match(2, 2, c, d, c),
        _match(3, 1, a, c, a),
    ]
    result = derive_placements(matches, 3, a, show_third_place=True)
    assert (result.first, result.second, result.third) == (a, c, b)


def test_placements_third_skips_runner_up():
    """Champion came from SF2; SF1 loser is still third, never the runner-up."""
    a, b, c, d = 1, 2, 3, 4
    matches = [
        _match(2, 1, a, b, a),
        _match(2, 2, c, d, c),
        _match(3, 1, a, c, c),
    ]
    result = derive_placements(matches, 3, c, show_third_place=True)
    assert (result.first, result.second, result.third) == (c, a, b)


def test_placements_without_third_place():
    """Third place is None when the guild has it turned off."""
    matches = [_match(2, 1, 1, 2, 1), _match(2, 2, 3, 4, 3), _match(3, 1, 1, 3, 1)]
    result = derive_placements(matches, 3, 1, show_third_place=False)
    assert result.third is None
    assert result.second == 3


def test_placements_third_guard_logs_warning(caplog):
    """Semifinal round with three matches: third place is omitted, not guessed."""
    matches = [
        _match(2, 1, 1, 2, 1),
        _match(2, 2, 3, 4, 3),
        _match(2, 3, 5, 6, 5),
        _match(3, 1, 1, 3, 1),
    ]
    with caplog.at_level(logging.WARNING, logger="tourbot.bracket"):
        result = derive_placements(matches, 3, 1, show_third_place=True)
    assert result.third is None
    assert result.second == 3
    assert "Third place skipped" in caplog.text


def test_placements_two_player_final_has_no_semifinal():
    """A lone final has no semifinal to take third place from."""
    result = derive_placements([_match(1, 1, 1, 2, 2)], 1, 2, show_third_place=True)
    assert (result.first, result.second, result.third) == (2, 1, None)


def test_placements_require_final_match():
    """Placements need a decided final match."""
    with pytest.raises(InvalidInput):
        derive_placements([_match(3, 1, 1, 2, 1)], 3, 99, show_third_place=False)
