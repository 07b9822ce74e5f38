"""Scenario export, validation and loading."""

import pytest

from conftest import make_state
from diceception.engine.scenario import create_scenario_from_game, state_from_scenario, validate_scenario


@pytest.fixture
def board():
    state = make_state([
        ["0:3", "0:1", "##"],
        ["1:2", "1:4", "##"],
        ["##", "2:1", "2:2"],
    ], bots={1, 2})
    state.get_player(2).stored_dice = 3
    return state


def test_export_is_sparse(board):
    scenario = create_scenario_from_game(board, "Corner", "three-way", "map")
    assert scenario["name"] == "Corner"
    assert scenario["type"] == "map"
    assert (scenario["width"], scenario["height"]) == (3, 3)
    assert len(scenario["tiles"]) == 6
    assert {"x": 1, "y": 1, "owner": 1, "dice": 4} in scenario["tiles"]
    assert scenario["players"][2]["stored_dice"] == 3
    assert validate_scenario(scenario) == []


def test_load_rebuilds_the_board(board):
    board.turn = 12
    board.current_player_index = 2
    state = state_from_scenario(create_scenario_from_game(board, "Corner"))

    assert state.turn == 1
    assert state.current_player_index == 0
    assert state.map.get_tile(2, 0) is None
    assert state.map.get_tile(1, 1).dice == 4
    assert [t.to_dict() for t in state.map.tiles] == [t.to_dict() for t in board.map.tiles]
    assert state.get_player(2).stored_dice == 3
    assert [p.is_bot for p in state.players] == [False, True, True]


def test_players_without_tiles_start_eliminated(board):
    scenario = create_scenario_from_game(board, "Two left")
    for tile in scenario["tiles"]:
        if tile["owner"] == 0:
            tile["owner"] = 1
    state = state_from_scenario(scenario)
    assert not state.get_player(0).alive
    assert state.current_player.id == 1
    assert not state.game_over


def test_single_survivor_is_game_over(board):
    scenario = create_scenario_from_game(board, "Done")
    for tile in scenario["tiles"]:
        tile["owner"] = 2
    state = state_from_scenario(scenario)
    assert state.game_over
    assert state.winner == 2


@pytest.mark.parametrize(
    "change, error",
    [
        ({"name": ""}, "Missing name"),
        ({"width": 2}, "Invalid width"),
        ({"type": "campaign"}, "Unknown type"),
        ({"players": []}, "At least 2 players required"),
        ({"tiles": [{"x": 5, "y": 0, "owner": 0, "dice": 1}]}, "Tile 0: outside the map"),
        ({"tiles": [{"x": 0, "y": 0, "owner": 9, "dice": 1}]}, "Tile 0: invalid owner"),
        ({"tiles": [{"x": 0, "y": 0, "owner": 0, "dice": 0}]}, "Tile 0: invalid dice count"),
    ],
)
def test_validation_errors(board, change, error):
    scenario = {**create_scenario_from_game(board, "Broken"), **change}
    assert error in validate_scenario(scenario)
    with pytest.raises(ValueError, match=error):
        state_from_scenario(scenario)


def test_not_a_dict():
    assert validate_scenario(None) == ["Scenario must be an object"]
