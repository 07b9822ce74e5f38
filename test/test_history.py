"""Snapshots, restore, the finished-game heuristic and autosave."""

import json
import logging

import pytest

from conftest import make_state
from diceception.engine.history import Snapshot, TurnHistory, is_finished_snapshot
from diceception.engine.persistence import JsonFileStore, MemoryStore, StorageError


class BrokenStore:
    """Store whose medium is unavailable."""

    def get(self, key):
        raise StorageError("disk gone")

    def set(self, key, value):
        raise StorageError("disk full")

    def delete(self, key):
        raise StorageError("disk gone")


def snapshot_of(rows, game_over=False):
    state = make_state(rows)
    state.game_over = game_over
    return TurnHistory().make_snapshot(state)


def test_capture_and_restore_round_trip(engine, duel_state):
    engine.load_state(duel_state)
    history = TurnHistory(clock=lambda: 1234)
    snapshot = history.capture_snapshot(engine)
    before = engine.state.to_dict()

    engine.attack(0, 0, 1, 0, dice_rolls={"attacker": [6, 6, 6, 6], "defender": [1, 1]})
    engine.state.turn = 9
    assert engine.state.to_dict() != before

    result = history.restore_snapshot(engine, snapshot)
    assert result.ok
    assert engine.state.to_dict() == before
    assert snapshot.timestamp == 1234
    assert (snapshot.turn, snapshot.current_player_index) == (1, 0)


def test_restore_into_bare_state(duel_state):
    history = TurnHistory()
    snapshot = history.capture_snapshot(duel_state)
    live = duel_state
    live.map.get_tile(0, 0).dice = 1

    assert history.restore_snapshot(live, snapshot).ok
    assert live.map.get_tile(0, 0).dice == 4


def test_snapshot_is_isolated_from_live_state(duel_state):
    snapshot = TurnHistory().capture_snapshot(duel_state)
    duel_state.map.get_tile(0, 0).dice = 1
    assert snapshot.game_state["map"]["tiles"][0]["dice"] == 4

    document = snapshot.to_dict()
    document["gameState"]["turn"] = 50
    assert snapshot.game_state["turn"] == 1


def test_fifo_eviction(duel_state):
    history = TurnHistory(max_length=3)
    for turn in range(1, 6):
        duel_state.turn = turn
        history.capture_snapshot(duel_state)

    assert len(history) == 3
    assert [s.turn for s in history.snapshots] == [3, 4, 5]
    assert history.latest.turn == 5
    assert history.find_by_turn(4).turn == 4
    assert history.find_by_turn(1) is None
    assert history.get_snapshot(3) is None


def test_bad_snapshot_leaves_live_game_untouched(engine, duel_state):
    engine.load_state(duel_state)
    before = engine.state.to_dict()
    broken = Snapshot(turn=1, current_player_index=0, timestamp=0, game_state={"turn": 1})

    history = TurnHistory()
    result = history.restore_snapshot(engine, broken)

    assert not result.ok
    assert "map" in result.reason
    assert engine.state.to_dict() == before
    assert history.restore_snapshot(engine, None).reason == "No such snapshot"


def _zero_dice(doc):
    doc["map"]["tiles"][1]["dice"] = 0


def _over_max_dice(doc):
    doc["map"]["tiles"][1]["dice"] = doc["maxDice"] + 1


def _owned_blocked_tile(doc):
    doc["map"]["tiles"][2]["owner"] = 0


def _infinite_dice(doc):
    doc["map"]["tiles"][0]["dice"] = float("inf")


def _nan_turn(doc):
    doc["turn"] = float("nan")


@pytest.mark.parametrize(
    "corrupt, reason",
    [
        (_zero_dice, "has 0 dice"),
        (_over_max_dice, "has 10 dice"),
        (_owned_blocked_tile, "Blocked tile (2, 0) has an owner"),
        (_infinite_dice, "Malformed field 'dice'"),
        (_nan_turn, "Malformed field 'turn'"),
    ],
)
def test_inconsistent_board_is_rejected(engine, duel_state, corrupt, reason):
    engine.load_state(duel_state)
    before = engine.state.to_dict()
    doc = duel_state.to_dict()
    corrupt(doc)
    snapshot = Snapshot(turn=1, current_player_index=0, timestamp=0, game_state=doc)

    result = TurnHistory().restore_snapshot(engine, snapshot)

    assert not result.ok
    assert reason in result.reason
    assert engine.state.to_dict() == before


def test_initial_snapshot_and_clear(duel_state):
    history = TurnHistory()
    assert not history.has_initial_state()
    assert not history.restore_initial_snapshot(duel_state).ok

    history.set_initial_snapshot(duel_state)
    history.capture_snapshot(duel_state)
    duel_state.turn = 4
    assert history.restore_initial_snapshot(duel_state).ok
    assert duel_state.turn == 1

    history.clear()
    assert len(history) == 0
    assert not history.has_initial_state()


@pytest.mark.parametrize(
    "rows, game_over, finished",
    [
        ([["0:1", "1:1"]], False, False),
        ([["0:1", "1:1"]], True, True),
        ([["0:1", "0:1"]], False, True),
        ([["0:1", "..", "##"]], False, True),
    ],
)
def test_finished_heuristic(rows, game_over, finished):
    snapshot = snapshot_of(rows, game_over)
    assert is_finished_snapshot(snapshot) is finished
    assert snapshot.is_finished() is finished


@pytest.mark.parametrize("game_state", [{"map": [1, 2]}, {"map": {"tiles": "none"}}, {"map": None}, {}])
def test_finished_heuristic_tolerates_bad_shapes(game_state):
    snapshot = Snapshot(turn=1, current_player_index=0, timestamp=0, game_state=game_state)
    assert is_finished_snapshot(snapshot) is False


def test_autosave_round_trip(duel_state):
    store = MemoryStore()
    history = TurnHistory(store=store, autosave_key="slot")

    assert history.load_autosave().snapshot is None
    assert history.save_autosave(duel_state)
    assert history.has_autosave()
    assert set(json.loads(store.get("slot"))) == {"turn", "currentPlayerIndex", "timestamp", "gameState"}

    loaded = history.load_autosave()
    assert loaded.error is None
    assert loaded.snapshot.to_state().to_dict() == duel_state.to_dict()

    assert history.clear_autosave()
    assert not history.has_autosave()


@pytest.mark.parametrize(
    "raw",
    [
        "{not json",
        "[]",
        json.dumps({"turn": 1}),
        '{"turn": Infinity, "currentPlayerIndex": 0, "gameState": {}}',
        '{"turn": 1, "currentPlayerIndex": NaN, "gameState": {}}',
        '{"turn": "one", "currentPlayerIndex": 0, "gameState": {}}',
    ],
)
def test_corrupt_autosave_is_reported(raw):
    store = MemoryStore()
    store.set("slot", raw)
    loaded = TurnHistory(store=store, autosave_key="slot").load_autosave()
    assert loaded.snapshot is None
    assert loaded.error.startswith("Corrupt auto-save")


def test_undecodable_autosave_file_is_reported(tmp_path):
    (tmp_path / "slot.json").write_bytes(b"\xff\xfe{garbage")
    history = TurnHistory(store=JsonFileStore(tmp_path), autosave_key="slot")

    loaded = history.load_autosave()

    assert loaded.snapshot is None
    assert loaded.error.startswith("Storage unavailable")


def test_storage_failures_are_logged_not_raised(duel_state, caplog):
    history = TurnHistory(store=BrokenStore())
    with caplog.at_level(logging.WARNING):
        assert not history.save_autosave(duel_state)
        assert history.load_autosave().error.startswith("Storage unavailable")
        assert not history.has_autosave()
        assert not history.clear_autosave()
    assert "Failed to auto-save" in caplog.text


def test_no_store_is_a_no_op(duel_state):
    history = TurnHistory()
    assert not history.save_autosave(duel_state)
    assert history.load_autosave().snapshot is None
    assert not history.has_autosave()


def test_invalid_max_length():
    with pytest.raises(ValueError):
        TurnHistory(max_length=0)


def test_scenario_from_snapshot_puts_state_back(engine, duel_state):
    engine.load_state(duel_state)
    history = TurnHistory()
    snapshot = history.capture_snapshot(engine)
    engine.state.turn = 7
    live = engine.state

    scenario = history.create_scenario_from_snapshot(engine, snapshot, "Opening")

    assert engine.state is live
    assert engine.state.turn == 7
    assert scenario["name"] == "Opening"
    assert scenario["type"] == "replay"
    assert scenario["description"] == "Saved from turn 1"
    assert len(scenario["tiles"]) == 2


def test_restore_into_reset_engine_reproduces_game(engine):
    engine.load_state(make_state([["0:3", "1:2"], ["##", "1:5"]]))
    engine.state.turn = 6
    engine.state.get_player(1).stored_dice = 2
    expected = engine.state.to_dict()
    history = TurnHistory()
    snapshot = history.capture_snapshot(engine)

    engine.reset()
    assert history.restore_snapshot(engine, snapshot).ok

    assert engine.state.to_dict() == expected
