"""Action log: applying single actions and replaying a recorded game."""

import random

import pytest

from conftest import make_state, small_config
from diceception.engine.actions import (
    Action,
    attack,
    attack_from_battle,
    end_turn,
    end_turn_from_reinforcement,
)
from diceception.engine.events import ATTACK_RESULT, GAME_OVER, PLAYER_ELIMINATED, REINFORCEMENTS, TURN_START
from diceception.engine.game import GameEngine
from diceception.engine.history import TurnHistory
from diceception.engine.reducer import apply_action, replay_from_actions
from diceception.engine.session import GameSession


def test_attack_action_uses_recorded_rolls(duel_state):
    action = attack(0, 0, 0, 1, 0, {"attacker": [1, 2, 3, 4], "defender": [6, 6]})

    new_state, events = apply_action(duel_state, action)

    assert [e.type for e in events] == [ATTACK_RESULT]
    assert not events[0].payload["won"]
    assert new_state.map.get_tile(0, 0).dice == 1
    # The input state is never touched
    assert duel_state.map.get_tile(0, 0).dice == 4


def test_winning_attack_events():
    state = make_state([["0:3", "1:1"]])
    new_state, events = apply_action(state, attack(0, 0, 0, 1, 0, {"attacker": [6, 6, 6], "defender": [1]}))
    assert [e.type for e in events] == [ATTACK_RESULT, PLAYER_ELIMINATED, GAME_OVER]
    assert new_state.winner == 0

    with pytest.raises(ValueError, match="Game is over"):
        apply_action(new_state, end_turn(0))


def test_end_turn_with_placements():
    state = make_state([["0:1", "0:1", "1:1"]])
    new_state, events = apply_action(state, end_turn(0, [(0, 0), (0, 0)]))
    assert [e.type for e in events] == [REINFORCEMENTS, TURN_START]
    assert new_state.map.get_tile(0, 0).dice == 3
    assert new_state.current_player.id == 1


@pytest.mark.parametrize(
    "action, message",
    [
        (end_turn(1), "does not match"),
        (Action(type="attack", player=0, payload={"from": {"x": 0, "y": 0}, "to": {"x": 1, "y": 0}}), "dice_rolls"),
        (Action(type="attack", player=0, payload={"dice_rolls": {}}), "coordinates"),
        (attack(0, 1, 0, 0, 0, {"attacker": [1, 1], "defender": [1, 1, 1, 1]}), "Not your tile"),
        (Action(type="surrender", player=0, payload={}), "Unknown action type"),
    ],
)
def test_illegal_actions_raise(duel_state, action, message):
    with pytest.raises(ValueError, match=message):
        apply_action(duel_state, action)


def test_action_dict_round_trip():
    action = end_turn(2, [(1, 1), (0, 1)])
    data = action.to_dict()
    assert data["payload"]["placements"] == [[1, 1], [0, 1]]
    assert Action.from_dict(data) == action


def test_recorded_bot_game_replays_to_same_board():
    session = GameSession(GameEngine(rng=random.Random(11)), TurnHistory())
    session.start(small_config(human_count=0, bot_count=3, map_width=5, map_height=5))
    initial_state = session.history.initial_snapshot.to_state()

    actions = []
    while not session.state.game_over and session.state.turn <= 60:
        player = session.engine.current_player
        outcome = session.play_bot_turns(max_turns=1)[0]
        actions.extend(attack_from_battle(battle) for battle in outcome.moves)
        if outcome.reinforcement is not None:
            actions.append(end_turn_from_reinforcement(player.id, outcome.reinforcement))

    final_state, events = replay_from_actions(initial_state, actions)

    assert final_state.to_dict() == session.state.to_dict()
    assert sum(1 for e in events if e.type == ATTACK_RESULT) == sum(1 for a in actions if a.type == "attack")
