"""Bot turn driver: move loop, cap, cancellation and async pacing."""

import asyncio

from conftest import make_state
from diceception.engine.strategy import BALANCED, Move, OpponentStrategy, ScoringStrategy
from diceception.engine.turn_driver import iter_bot_turn, run_bot_turn, run_bot_turn_async


class IllegalMoveStrategy(OpponentStrategy):
    """Always proposes attacking its own tile."""

    def choose_move(self, state, player_id=None):
        return Move(0, 0, 0, 0)


def test_passes_and_ends_turn_when_nothing_to_attack(engine):
    engine.load_state(make_state([["0:1", "1:1"]], bots={0, 1}))

    outcome = run_bot_turn(engine, ScoringStrategy(BALANCED))

    assert outcome.moves == []
    assert outcome.ended_turn
    assert outcome.reinforcement is not None
    assert engine.state.turn == 2
    assert engine.current_player.id == 1


def test_winning_attack_stops_at_game_over(engine):
    # 9 dice always beat 1
    engine.load_state(make_state([["0:9", "1:1"]], bots={0, 1}))

    outcome = run_bot_turn(engine, ScoringStrategy(BALANCED))

    assert len(outcome.moves) == 1
    assert outcome.moves[0].won
    assert not outcome.ended_turn
    assert outcome.reinforcement is None
    assert engine.state.game_over


def test_move_cap(engine):
    engine.load_state(make_state([["0:9", "1:1", "1:1"]], bots={0, 1}))

    outcome = run_bot_turn(engine, ScoringStrategy(BALANCED), max_moves=0)

    assert outcome.hit_cap
    assert outcome.moves == []
    assert outcome.ended_turn


def test_cancel_leaves_turn_open(engine):
    engine.load_state(make_state([["0:9", "1:1"]], bots={0, 1}))

    outcome = run_bot_turn(engine, ScoringStrategy(BALANCED), should_continue=lambda: False)

    assert outcome.cancelled
    assert not outcome.ended_turn
    assert engine.state.turn == 1
    assert engine.state.map.get_tile(0, 0).dice == 9


def test_illegal_move_ends_turn(engine):
    engine.load_state(make_state([["0:3", "1:1"]], bots={0, 1}))

    outcome = run_bot_turn(engine, IllegalMoveStrategy())

    assert outcome.moves == []
    assert outcome.ended_turn
    assert engine.state.turn == 2


def test_iter_yields_each_battle(engine):
    engine.load_state(make_state([["0:9", "1:1", "1:1", "1:1"]], bots={0, 1}))

    battles = list(iter_bot_turn(engine, ScoringStrategy(BALANCED)))

    # Each captured tile keeps all but one die and attacks onward
    assert [b.to_x for b in battles] == [1, 2, 3]
    assert [b.attacker_dice for b in battles] == [9, 8, 7]
    assert all(b.won for b in battles)
    assert engine.state.map.get_tile(3, 0).dice == 6
    assert engine.state.game_over


def test_not_in_progress_does_nothing(engine):
    outcome = run_bot_turn(engine, ScoringStrategy(BALANCED))
    assert outcome.moves == []
    assert not outcome.ended_turn


def test_async_turn(engine):
    engine.load_state(make_state([["0:9", "1:1"]], bots={0, 1}))

    outcome = asyncio.run(run_bot_turn_async(engine, ScoringStrategy(BALANCED)))

    assert len(outcome.moves) == 1
    assert engine.state.game_over
