"""
Game events for UI hooks and logging.
Events describe what happened during engine operations.
Payloads are plain dict copies taken at the moment of emission; consumers must treat them as read-only.
"""

from dataclasses import dataclass
from typing import Any, Callable, Protocol

from diceception.engine.state import GameMap, Player


@dataclass
class GameEvent:
    """Base event class. All events have a type and payload."""
    type: str
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameEvent":
        return cls(type=data["type"], payload=data["payload"])


# ===== Event Type Constants =====

GAME_START = "gameStart"
TURN_START = "turnStart"
ATTACK_RESULT = "attackResult"
REINFORCEMENTS = "reinforcements"
PLAYER_ELIMINATED = "playerEliminated"
GAME_OVER = "gameOver"

ALL_EVENT_TYPES = (GAME_START, TURN_START, ATTACK_RESULT, REINFORCEMENTS, PLAYER_ELIMINATED, GAME_OVER)


# ===== Event Factory Functions =====

def game_start(players: list[Player], game_map: GameMap) -> GameEvent:
    return GameEvent(GAME_START, {
        "players": [p.to_dict() for p in players],
        "map": game_map.to_dict(),
    })


def turn_start(turn: int, player: Player) -> GameEvent:
    return GameEvent(TURN_START, {
        "turn": turn,
        "player": player.to_dict(),
    })


def attack_result(battle: dict[str, Any]) -> GameEvent:
    """battle is BattleResult.to_dict() (rolls, sums, coordinates, won)."""
    return GameEvent(ATTACK_RESULT, dict(battle))


def reinforcements(
    player: Player,
    earned: int,
    placed: int,
    stored: int,
    from_store: int,
) -> GameEvent:
    """Emitted at end of turn after dice are distributed to the finishing player."""
    return GameEvent(REINFORCEMENTS, {
        "player": player.to_dict(),
        "earned": earned,  # largest connected region size
        "placed": placed,
        "stored": stored,  # carried to the next turn
        "from_store": from_store,
    })


def player_eliminated(player: Player, turn: int) -> GameEvent:
    return GameEvent(PLAYER_ELIMINATED, {
        "player": player.to_dict(),
        "turn": turn,
    })


def game_over(winner: Player | None, turn: int) -> GameEvent:
    return GameEvent(GAME_OVER, {
        "winner": winner.to_dict() if winner else None,
        "turn": turn,
    })


# ===== Sinks =====

class EventSink(Protocol):
    """Anything the engine can announce events to."""

    def emit(self, event: GameEvent) -> None:
        ...


EventCallback = Callable[[GameEvent], None]


class EventBus:
    """
    Observer fan-out. Callbacks run synchronously in subscription order,
    so listeners see events in the order the engine emitted them.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[EventCallback]] = {}
        self._global: list[EventCallback] = []

    def subscribe(self, event_type: str, callback: EventCallback) -> None:
        self._listeners.setdefault(event_type, []).append(callback)

    def subscribe_all(self, callback: EventCallback) -> None:
        self._global.append(callback)

    def unsubscribe(self, event_type: str, callback: EventCallback) -> None:
        callbacks = self._listeners.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event: GameEvent) -> None:
        for callback in list(self._listeners.get(event.type, [])):
            callback(event)
        for callback in list(self._global):
            callback(event)


class EventRecorder:
    """Collects emitted events in order. Used by the API to return events per request, and by tests."""

    def __init__(self) -> None:
        self.events: list[GameEvent] = []

    def emit(self, event: GameEvent) -> None:
        self.events.append(event)

    def types(self) -> list[str]:
        return [e.type for e in self.events]

    def drain(self) -> list[GameEvent]:
        events, self.events = self.events, []
        return events

    def clear(self) -> None:
        self.events.clear()
