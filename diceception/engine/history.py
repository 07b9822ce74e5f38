"""
Turn history: snapshots for replay, retry and autosave/resume.

Snapshots are immutable deep copies of the serialized game state. The in-memory log is
bounded; once full, every capture evicts the oldest snapshot, so positions shift. Hold on
to Snapshot objects (or look them up by turn) rather than caching indices across captures.

Exactly one autosave record lives in the injected KeyValueStore under autosave_key.
Storage failures are logged and reported through return values; the game carries on in memory.
"""

import json
import logging
import time
from collections import deque
from copy import deepcopy
from dataclasses import dataclass, fields
from typing import Any, Callable

from diceception.engine import AUTOSAVE_KEY, MAX_HISTORY_LENGTH
from diceception.engine.game import GameEngine
from diceception.engine.persistence import KeyValueStore, StorageError
from diceception.engine.scenario import create_scenario_from_game
from diceception.engine.state import GameState

logger = logging.getLogger(__name__)

ScenarioExporter = Callable[[GameState, str, str, str], dict[str, Any]]


def _now_ms() -> int:
    return int(time.time() * 1000)


def serialize_game_state(state: GameState) -> dict[str, Any]:
    """Full gameState document for restoration (camelCase keys, see state.py)."""
    return state.to_dict()


@dataclass(frozen=True)
class Snapshot:
    """A captured game state. Never mutate game_state; use to_dict()/to_state() for copies."""
    turn: int
    current_player_index: int
    timestamp: int  # epoch milliseconds
    game_state: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        """The persisted autosave document."""
        return {
            "turn": self.turn,
            "currentPlayerIndex": self.current_player_index,
            "timestamp": self.timestamp,
            "gameState": deepcopy(self.game_state),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Snapshot":
        """
        Parse a persisted snapshot document.

        Raises:
            ValueError: missing or malformed top-level fields
        """
        if not isinstance(data, dict):
            raise ValueError("Snapshot must be an object")
        game_state = data.get("gameState")
        if not isinstance(game_state, dict):
            raise ValueError("Snapshot has no gameState")
        try:
            return cls(
                turn=int(data["turn"]),
                current_player_index=int(data["currentPlayerIndex"]),
                timestamp=int(data.get("timestamp") or 0),
                game_state=deepcopy(game_state),
            )
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise ValueError(f"Malformed snapshot: {e}") from e

    def to_state(self) -> GameState:
        """
        Build a fresh GameState from this snapshot.

        Raises:
            ValueError: the document is missing a field or has the wrong shape
        """
        return GameState.from_dict(self.game_state, strict=True)

    def is_finished(self) -> bool:
        return is_finished_snapshot(self)


@dataclass
class RestoreResult:
    ok: bool
    reason: str | None = None


@dataclass
class AutosaveLoad:
    """Outcome of reading the autosave. snapshot and error are both None when nothing is saved."""
    snapshot: Snapshot | None = None
    error: str | None = None


def is_finished_snapshot(snapshot: Snapshot) -> bool:
    """
    A snapshot is a finished game if its gameOver flag is set, or if exactly one player
    owns every owned playable tile (guards against a stale gameOver flag).
    """
    game_state = snapshot.game_state
    if game_state.get("gameOver"):
        return True
    game_map = game_state.get("map")
    tiles = game_map.get("tiles") if isinstance(game_map, dict) else None
    if not isinstance(tiles, list):
        return False
    owners = {
        t.get("owner")
        for t in tiles
        if isinstance(t, dict) and not t.get("blocked") and t.get("owner") is not None
    }
    return len(owners) == 1


def _state_of(target: GameEngine | GameState) -> GameState:
    return target.state if isinstance(target, GameEngine) else target


class TurnHistory:
    """Bounded snapshot log plus the initial snapshot (for retry) and the autosave record."""

    def __init__(
        self,
        store: KeyValueStore | None = None,
        autosave_key: str = AUTOSAVE_KEY,
        max_length: int = MAX_HISTORY_LENGTH,
        clock: Callable[[], int] = _now_ms,
    ):
        if max_length < 1:
            raise ValueError("max_length must be at least 1")
        self.store = store
        self.autosave_key = autosave_key
        self.max_length = max_length
        self.clock = clock
        self._snapshots: deque[Snapshot] = deque(maxlen=max_length)
        self.initial_snapshot: Snapshot | None = None

    # ===== Snapshot log =====

    def make_snapshot(self, target: GameEngine | GameState) -> Snapshot:
        """Snapshot the state without recording it in the log."""
        state = _state_of(target)
        return Snapshot(
            turn=state.turn,
            current_player_index=state.current_player_index,
            timestamp=self.clock(),
            game_state=serialize_game_state(state),
        )

    def capture_snapshot(self, target: GameEngine | GameState) -> Snapshot:
        """Snapshot the state and append it, evicting the oldest snapshot when full."""
        snapshot = self.make_snapshot(target)
        self._snapshots.append(snapshot)
        return snapshot

    @property
    def snapshots(self) -> list[Snapshot]:
        return list(self._snapshots)

    def get_snapshot(self, index: int) -> Snapshot | None:
        if 0 <= index < len(self._snapshots):
            return self._snapshots[index]
        return None

    @property
    def latest(self) -> Snapshot | None:
        return self._snapshots[-1] if self._snapshots else None

    def find_by_turn(self, turn: int) -> Snapshot | None:
        """Most recent snapshot taken on the given turn."""
        for snapshot in reversed(self._snapshots):
            if snapshot.turn == turn:
                return snapshot
        return None

    def __len__(self) -> int:
        return len(self._snapshots)

    def clear(self) -> None:
        """Forget every snapshot, including the initial one. The autosave is left alone."""
        self._snapshots.clear()
        self.initial_snapshot = None

    # ===== Restore =====

    def restore_snapshot(self, target: GameEngine | GameState, snapshot: Snapshot | None) -> RestoreResult:
        """
        Replace the live state with the snapshot's.

        The replacement GameState is fully built before anything is touched, so a bad
        document leaves the live game unchanged.
        """
        if snapshot is None:
            return RestoreResult(False, "No such snapshot")
        try:
            new_state = snapshot.to_state()
        except ValueError as e:
            logger.warning("Refusing to restore snapshot from turn %s: %s", snapshot.turn, e)
            return RestoreResult(False, str(e))

        if isinstance(target, GameEngine):
            target.load_state(new_state)
        else:
            for f in fields(GameState):
                setattr(target, f.name, getattr(new_state, f.name))
        return RestoreResult(True)

    # ===== Initial snapshot (retry) =====

    def set_initial_snapshot(self, target: GameEngine | GameState) -> Snapshot:
        self.initial_snapshot = self.make_snapshot(target)
        return self.initial_snapshot

    def has_initial_state(self) -> bool:
        return self.initial_snapshot is not None

    def restore_initial_snapshot(self, target: GameEngine | GameState) -> RestoreResult:
        if self.initial_snapshot is None:
            return RestoreResult(False, "No initial state recorded")
        return self.restore_snapshot(target, self.initial_snapshot)

    # ===== Autosave =====

    def save_autosave(self, target: GameEngine | GameState) -> bool:
        """Overwrite the autosave record. Returns False when there is no store or it failed."""
        if self.store is None:
            return False
        document = json.dumps(self.make_snapshot(target).to_dict())
        try:
            self.store.set(self.autosave_key, document)
        except StorageError as e:
            logger.warning("Failed to auto-save: %s", e)
            return False
        return True

    def load_autosave(self) -> AutosaveLoad:
        """Read the autosave record. Corrupt or unreadable data is reported, never raised."""
        if self.store is None:
            return AutosaveLoad()
        try:
            raw = self.store.get(self.autosave_key)
        except StorageError as e:
            logger.warning("Failed to load auto-save: %s", e)
            return AutosaveLoad(error=f"Storage unavailable: {e}")
        if raw is None:
            return AutosaveLoad()
        try:
            return AutosaveLoad(snapshot=Snapshot.from_dict(json.loads(raw)))
        except ValueError as e:
            # json.JSONDecodeError is a ValueError too
            logger.warning("Corrupt auto-save under %r: %s", self.autosave_key, e)
            return AutosaveLoad(error=f"Corrupt auto-save: {e}")

    def has_autosave(self) -> bool:
        if self.store is None:
            return False
        try:
            return bool(self.store.get(self.autosave_key))
        except StorageError as e:
            logger.warning("Failed to check auto-save: %s", e)
            return False

    def clear_autosave(self) -> bool:
        if self.store is None:
            return False
        try:
            self.store.delete(self.autosave_key)
        except StorageError as e:
            logger.warning("Failed to clear auto-save: %s", e)
            return False
        return True

    # ===== Scenario export =====

    def create_scenario_from_snapshot(
        self,
        engine: GameEngine,
        snapshot: Snapshot,
        name: str,
        exporter: ScenarioExporter | None = None,
        scenario_type: str = "replay",
    ) -> dict[str, Any]:
        """
        Export a historical snapshot as a scenario document.

        The snapshot's state is swapped into the engine only for the duration of the export
        call, then the original state object is put back untouched.

        Raises:
            ValueError: the snapshot cannot be turned into a game state
        """
        exporter = exporter or create_scenario_from_game

        temp_state = snapshot.to_state()
        original = engine.state
        engine.state = temp_state
        try:
            return exporter(engine.state, name, f"Saved from turn {snapshot.turn}", scenario_type)
        finally:
            engine.state = original
