"""
Game state representation.
The GameState is the single unit of mutable authoritative state; the engine mutates it in place.
Includes JSON serialization for snapshots, autosave and resume.

The serialized shape (camelCase keys) is the persisted autosave document:
    {maxDice, diceSides, turn, currentPlayerIndex, gameOver, gameMode, winner,
     map: {width, height, tiles: [{x, y, blocked, owner, dice}, ...]},
     players: [{id, isBot, aiId, name, color, alive, storedDice}, ...]}
"""

import json
import math
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from diceception.engine import DEFAULT_DICE_SIDES, DEFAULT_MAX_DICE

STATUS_NOT_STARTED = "not_started"
STATUS_IN_PROGRESS = "in_progress"
STATUS_OVER = "over"

# Up, right, down, left. Neighbour scan order matters for bot tie-breaks.
DIRECTIONS = ((0, -1), (1, 0), (0, 1), (-1, 0))

_MISSING = object()


def _as_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected int, got {type(value).__name__}")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"expected finite number, got {value!r}")
    if int(value) != value:
        raise ValueError(f"expected whole number, got {value!r}")
    return int(value)


def _as_optional_int(value: Any) -> int | None:
    return None if value is None else _as_int(value)


def _as_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"expected bool, got {type(value).__name__}")
    return value


def _as_str(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected str, got {type(value).__name__}")
    return value


def _as_optional_str(value: Any) -> str | None:
    return None if value is None else _as_str(value)


def _read(data: Any, key: str, cast: Callable[[Any], Any], default: Any, strict: bool) -> Any:
    """
    Read one field from a serialized dict.
    Lenient mode falls back to default for missing/malformed values (old saves, hand-edited scenarios).
    Strict mode raises ValueError so callers can reject the whole document.
    """
    value = data.get(key, _MISSING) if isinstance(data, dict) else _MISSING
    if value is _MISSING:
        if strict:
            raise ValueError(f"Missing field '{key}'")
        return default
    try:
        return cast(value)
    except (TypeError, ValueError, OverflowError) as e:
        if strict:
            raise ValueError(f"Malformed field '{key}': {e}") from e
        return default


def _read_list(data: Any, key: str, strict: bool) -> list:
    value = data.get(key, _MISSING) if isinstance(data, dict) else _MISSING
    if isinstance(value, list):
        return value
    if strict:
        raise ValueError(f"Field '{key}' must be a list")
    return []


@dataclass
class Tile:
    """One grid cell. Blocked tiles have no owner and no dice."""
    x: int
    y: int
    blocked: bool = False
    owner: int | None = None  # player id, None = neutral/unowned
    dice: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "blocked": self.blocked,
            "owner": self.owner,
            "dice": self.dice,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], strict: bool = False) -> "Tile":
        if not isinstance(data, dict):
            if strict:
                raise ValueError("Tile entry must be an object")
            data = {}
        return cls(
            x=_read(data, "x", _as_int, 0, strict),
            y=_read(data, "y", _as_int, 0, strict),
            blocked=_read(data, "blocked", _as_bool, False, strict),
            owner=_read(data, "owner", _as_optional_int, None, strict),
            dice=_read(data, "dice", _as_int, 0, strict),
        )


@dataclass
class GameMap:
    """Rectangular grid of tiles stored row-major (index = y * width + x)."""
    width: int = 0
    height: int = 0
    tiles: list[Tile] = field(default_factory=list)

    @classmethod
    def blank(cls, width: int, height: int, blocked: bool = True) -> "GameMap":
        """Allocate a width x height map; every tile starts blocked unless told otherwise."""
        return cls(
            width=width,
            height=height,
            tiles=[Tile(x=i % width, y=i // width, blocked=blocked) for i in range(width * height)],
        )

    def index(self, x: int, y: int) -> int:
        return y * self.width + x

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get_tile_raw(self, x: int, y: int) -> Tile | None:
        """Tile at (x, y) even if blocked; None when out of bounds."""
        if not self.in_bounds(x, y):
            return None
        return self.tiles[self.index(x, y)]

    def get_tile(self, x: int, y: int) -> Tile | None:
        """Playable tile at (x, y); None when out of bounds or blocked."""
        tile = self.get_tile_raw(x, y)
        if tile is None or tile.blocked:
            return None
        return tile

    def neighbors(self, x: int, y: int) -> list[Tile]:
        """Non-blocked 4-adjacent tiles in up, right, down, left order."""
        result = []
        for dx, dy in DIRECTIONS:
            tile = self.get_tile(x + dx, y + dy)
            if tile is not None:
                result.append(tile)
        return result

    def playable_tiles(self) -> Iterator[Tile]:
        return (t for t in self.tiles if not t.blocked)

    def tiles_by_owner(self, player_id: int) -> list[Tile]:
        return [t for t in self.tiles if not t.blocked and t.owner == player_id]

    def to_dict(self) -> dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "tiles": [t.to_dict() for t in self.tiles],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], strict: bool = False) -> "GameMap":
        if not isinstance(data, dict):
            if strict:
                raise ValueError("Map must be an object")
            data = {}
        width = _read(data, "width", _as_int, 0, strict)
        height = _read(data, "height", _as_int, 0, strict)
        tiles = [Tile.from_dict(t, strict) for t in _read_list(data, "tiles", strict)]
        if strict:
            if width < 0 or height < 0:
                raise ValueError(f"Invalid map size {width}x{height}")
            if len(tiles) != width * height:
                raise ValueError(
                    f"Map has {len(tiles)} tiles, expected {width * height} for {width}x{height}")
            for i, tile in enumerate(tiles):
                if (tile.x, tile.y) != (i % width, i // width):
                    raise ValueError(f"Tile {i} at ({tile.x}, {tile.y}) is out of row-major order")
        return cls(width=width, height=height, tiles=tiles)


@dataclass
class Player:
    """A roster entry. Eliminated players stay in the roster with alive=False."""
    id: int
    is_bot: bool = False
    ai_id: str | None = None  # strategy profile id for bots (see strategy.PROFILES)
    name: str = ""
    color: int = 0xFFFFFF
    alive: bool = True
    # Reinforcement dice that found no room on owned tiles, placed on a later turn
    stored_dice: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "isBot": self.is_bot,
            "aiId": self.ai_id,
            "name": self.name,
            "color": self.color,
            "alive": self.alive,
            "storedDice": self.stored_dice,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], strict: bool = False) -> "Player":
        if not isinstance(data, dict):
            if strict:
                raise ValueError("Player entry must be an object")
            data = {}
        player_id = _read(data, "id", _as_int, 0, strict)
        return cls(
            id=player_id,
            is_bot=_read(data, "isBot", _as_bool, False, strict),
            ai_id=_read(data, "aiId", _as_optional_str, None, False),
            name=_read(data, "name", _as_optional_str, None, False) or f"Player {player_id + 1}",
            color=_read(data, "color", _as_int, 0xFFFFFF, False),
            alive=_read(data, "alive", _as_bool, True, strict),
            # Older saves may not carry storedDice
            stored_dice=_read(data, "storedDice", _as_int, 0, False),
        )


@dataclass
class GameState:
    """Complete game state."""
    turn: int = 1
    current_player_index: int = 0
    max_dice: int = DEFAULT_MAX_DICE
    dice_sides: int = DEFAULT_DICE_SIDES
    game_over: bool = False
    winner: int | None = None  # player id once exactly one player remains alive
    game_mode: str = "classic"  # classic | fair | madness | 2of2
    map: GameMap = field(default_factory=GameMap)
    players: list[Player] = field(default_factory=list)

    @property
    def status(self) -> str:
        if not self.players:
            return STATUS_NOT_STARTED
        if self.game_over:
            return STATUS_OVER
        return STATUS_IN_PROGRESS

    @property
    def current_player(self) -> Player | None:
        if not self.players:
            return None
        return self.players[self.current_player_index]

    def get_player(self, player_id: int) -> Player | None:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def alive_players(self) -> list[Player]:
        return [p for p in self.players if p.alive]

    def total_dice(self) -> int:
        return sum(t.dice for t in self.map.playable_tiles() if t.owner is not None)

    def copy(self) -> "GameState":
        """Return a deep copy of this game state."""
        return deepcopy(self)

    # ===== Serialization Methods =====

    def to_dict(self) -> dict[str, Any]:
        """Convert GameState to the persisted gameState document."""
        return {
            "maxDice": self.max_dice,
            "diceSides": self.dice_sides,
            "turn": self.turn,
            "currentPlayerIndex": self.current_player_index,
            "gameOver": self.game_over,
            "gameMode": self.game_mode,
            "winner": self.winner,
            "map": self.map.to_dict(),
            "players": [p.to_dict() for p in self.players],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], strict: bool = False) -> "GameState":
        """
        Create GameState from a gameState document.

        strict=False tolerates missing/None fields (scenarios, old saves).
        strict=True raises ValueError on any missing field or malformed shape; restore uses it so a
        bad snapshot is rejected before anything on the live game is touched.
        """
        if not isinstance(data, dict):
            if strict:
                raise ValueError("Game state must be an object")
            data = {}
        map_data = data.get("map") if isinstance(data, dict) else None
        if map_data is None and strict:
            raise ValueError("Missing field 'map'")
        game_map = GameMap.from_dict(map_data or {}, strict)
        players = [Player.from_dict(p, strict) for p in _read_list(data, "players", strict)]
        state = cls(
            turn=_read(data, "turn", _as_int, 1, strict),
            current_player_index=_read(data, "currentPlayerIndex", _as_int, 0, strict),
            max_dice=_read(data, "maxDice", _as_int, DEFAULT_MAX_DICE, strict),
            dice_sides=_read(data, "diceSides", _as_int, DEFAULT_DICE_SIDES, strict),
            game_over=_read(data, "gameOver", _as_bool, False, strict),
            game_mode=_read(data, "gameMode", _as_optional_str, None, strict) or "classic",
            winner=_read(data, "winner", _as_optional_int, None, False),
            map=game_map,
            players=players,
        )
        if strict:
            _check_consistency(state)
        if state.game_over and state.winner is None:
            alive = state.alive_players()
            if len(alive) == 1:
                state.winner = alive[0].id
        return state

    def to_json(self, indent: int | None = None) -> str:
        """Serialize GameState to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str, strict: bool = False) -> "GameState":
        """Deserialize GameState from a JSON string."""
        return cls.from_dict(json.loads(json_str), strict)


def _check_consistency(state: GameState) -> None:
    """Structural checks for strict loading. Raises ValueError."""
    if state.players and not 0 <= state.current_player_index < len(state.players):
        raise ValueError(f"currentPlayerIndex {state.current_player_index} out of range")
    ids = [p.id for p in state.players]
    if len(set(ids)) != len(ids):
        raise ValueError("Duplicate player ids")
    if state.max_dice < 1 or state.dice_sides < 1:
        raise ValueError("maxDice and diceSides must be positive")
    known = set(ids)
    for tile in state.map.tiles:
        if tile.blocked:
            if tile.owner is not None:
                raise ValueError(f"Blocked tile ({tile.x}, {tile.y}) has an owner")
            continue
        if tile.owner is not None and tile.owner not in known:
            raise ValueError(f"Tile ({tile.x}, {tile.y}) owned by unknown player {tile.owner}")
        if tile.owner is not None and not 1 <= tile.dice <= state.max_dice:
            raise ValueError(f"Tile ({tile.x}, {tile.y}) has {tile.dice} dice, expected 1..{state.max_dice}")
