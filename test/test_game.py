"""Game engine lifecycle, turn passing and win detection."""

import pytest

from conftest import make_state, small_config
from diceception.engine.combat import AttackError, BattleResult
from diceception.engine.events import (
    ATTACK_RESULT,
    GAME_OVER,
    GAME_START,
    PLAYER_ELIMINATED,
    REINFORCEMENTS,
    TURN_START,
)
from diceception.engine.game import EngineStateError, GameConfig, GameEngine
from diceception.engine.state import STATUS_IN_PROGRESS, STATUS_NOT_STARTED, STATUS_OVER

WINNING_ROLLS = {"attacker": [6, 6, 6], "defender": [1]}


def test_start_game_builds_roster_and_map(engine, recorder):
    state = engine.start_game(small_config(bot_ai_ids=["cautious"]))

    assert engine.status == STATUS_IN_PROGRESS
    assert [p.id for p in state.players] == [0, 1, 2]
    assert [p.name for p in state.players] == ["Player 1", "Bot 1", "Bot 2"]
    assert [p.is_bot for p in state.players] == [False, True, True]
    assert [p.ai_id for p in state.players] == [None, "cautious", "balanced"]
    assert state.turn == 1
    assert recorder.types() == [GAME_START, TURN_START]

    playable = list(state.map.playable_tiles())
    assert len(playable) == 25
    assert all(t.owner in (0, 1, 2) for t in playable)
    assert all(1 <= t.dice <= state.max_dice for t in playable)


def test_start_game_is_reproducible_with_seed():
    import random

    first = GameEngine(rng=random.Random(3)).start_game(small_config(shuffle_players=True, map_style="random"))
    second = GameEngine(rng=random.Random(3)).start_game(small_config(shuffle_players=True, map_style="random"))
    assert first.to_dict() == second.to_dict()


@pytest.mark.parametrize(
    "overrides",
    [
        {"human_count": 1, "bot_count": 0},
        {"human_count": -1, "bot_count": 3},
        {"map_width": 0},
        {"dice_sides": 0},
        {"game_mode": "chaos"},
    ],
)
def test_invalid_config_raises(engine, overrides):
    with pytest.raises(ValueError):
        engine.start_game(small_config(**overrides))
    assert engine.status == STATUS_NOT_STARTED


def test_config_round_trip():
    game_config = GameConfig(bot_count=4, bot_ai_ids=["aggressive"])
    assert GameConfig.from_dict({**game_config.to_dict(), "unknown": 1}) == game_config


def test_attack_before_start(engine):
    result = engine.attack(0, 0, 1, 0)
    assert isinstance(result, AttackError)
    assert result.error == "Game has not started"


def test_illegal_attack_returns_error_and_changes_nothing(engine, recorder, duel_state):
    engine.load_state(duel_state)
    before = duel_state.to_dict()

    result = engine.attack(1, 0, 0, 0)

    assert result == AttackError("Not your tile")
    assert engine.state.to_dict() == before
    assert recorder.events == []
    assert engine.combat_history == []


def test_final_capture_orders_events(engine, recorder):
    engine.load_state(make_state([["0:3", "1:1"]]))

    result = engine.attack(0, 0, 1, 0, dice_rolls=WINNING_ROLLS)

    assert isinstance(result, BattleResult) and result.won
    assert recorder.types() == [ATTACK_RESULT, PLAYER_ELIMINATED, GAME_OVER]
    assert recorder.events[1].payload["player"]["id"] == 1
    assert recorder.events[2].payload["winner"]["id"] == 0
    assert engine.status == STATUS_OVER
    assert engine.state.winner == 0
    assert not engine.state.get_player(1).alive

    assert engine.attack(1, 0, 0, 0) == AttackError("Game is over")
    assert engine.end_turn() is None


def test_elimination_without_game_over_skips_dead_player(engine, recorder):
    engine.load_state(make_state([["0:3", "1:1", "2:1"]]))

    engine.attack(0, 0, 1, 0, dice_rolls=WINNING_ROLLS)
    assert recorder.types() == [ATTACK_RESULT, PLAYER_ELIMINATED]
    assert engine.status == STATUS_IN_PROGRESS

    recorder.clear()
    engine.end_turn()
    assert engine.current_player.id == 2
    assert engine.state.turn == 2
    assert recorder.types() == [REINFORCEMENTS, TURN_START]


def test_lost_attack_keeps_defender(engine, recorder, duel_state):
    engine.load_state(duel_state)
    result = engine.attack(0, 0, 1, 0, dice_rolls={"attacker": [1, 1, 1, 1], "defender": [3, 3]})
    assert not result.won
    assert recorder.types() == [ATTACK_RESULT]
    assert engine.state.map.get_tile(1, 0).owner == 1
    assert engine.combat_history == [result]


@pytest.mark.parametrize(
    "rolls, total_after",
    [
        ({"attacker": [6, 6, 6, 6], "defender": [1, 1]}, 4),
        ({"attacker": [1, 1, 1, 1], "defender": [3, 3]}, 3),
    ],
)
def test_attack_never_adds_dice(engine, duel_state, rolls, total_after):
    engine.load_state(duel_state)
    assert engine.state.total_dice() == 6

    engine.attack(0, 0, 1, 0, dice_rolls=rolls)

    assert engine.state.total_dice() == total_after


def test_rolled_attacks_never_add_dice(engine):
    engine.load_state(make_state([["0:9", "1:3", "1:4", "1:2", "1:6"]]))
    total = engine.state.total_dice()

    for x in range(4):
        result = engine.attack(x, 0, x + 1, 0)
        if isinstance(result, AttackError):
            break
        assert engine.state.total_dice() < total
        total = engine.state.total_dice()
        if not result.won:
            break


def test_end_turn_reinforces_and_passes(engine, recorder):
    engine.load_state(make_state([["0:1", "0:1", "1:1"]]))

    result = engine.end_turn()

    assert (result.earned, result.placed, result.stored) == (2, 2, 0)
    assert sum(t.dice for t in engine.state.map.tiles_by_owner(0)) == 4
    assert engine.current_player.id == 1
    assert engine.state.turn == 2
    assert recorder.types() == [REINFORCEMENTS, TURN_START]
    reinforcement = recorder.events[0].payload
    assert reinforcement["player"]["id"] == 0
    assert reinforcement["placed"] == 2


def test_end_turn_wraps_around(engine):
    engine.load_state(make_state([["0:1", "1:1"]], current=1))
    engine.end_turn()
    assert engine.current_player.id == 0


def test_end_turn_without_players_raises(engine):
    with pytest.raises(EngineStateError):
        engine.end_turn()


def test_announce_resume(engine, recorder, duel_state):
    with pytest.raises(EngineStateError):
        engine.announce_resume()

    engine.load_state(duel_state)
    assert recorder.events == []
    engine.announce_resume()
    assert recorder.types() == [GAME_START, TURN_START]


def test_reset(engine):
    engine.start_game(small_config())
    engine.reset()
    assert engine.status == STATUS_NOT_STARTED
    assert engine.current_player is None


def test_two_tile_capture_names_the_winner(engine, recorder):
    engine.load_state(make_state([["1:2", "2:1"]]))

    engine.attack(0, 0, 1, 0, dice_rolls={"attacker": [4, 2], "defender": [5]})

    assert recorder.types() == [ATTACK_RESULT, PLAYER_ELIMINATED, GAME_OVER]
    assert not engine.state.get_player(2).alive
    assert engine.state.players[1].id == 2
    assert engine.state.winner == 1
