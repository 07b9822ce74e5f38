"""
Query functions for UI integration, bots and bookkeeping.
These functions read game state without mutating it.
"""

from collections import deque
from dataclasses import dataclass
from typing import Any

from diceception.engine.state import GameMap, GameState, Tile


@dataclass
class AttackOption:
    """A legal attack for the current player."""
    from_x: int
    from_y: int
    to_x: int
    to_y: int
    attacker_dice: int
    defender_dice: int
    defender_id: int | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": {"x": self.from_x, "y": self.from_y},
            "to": {"x": self.to_x, "y": self.to_y},
            "attacker_dice": self.attacker_dice,
            "defender_dice": self.defender_dice,
            "defender_id": self.defender_id,
        }


# ===== Tiles and regions =====

def count_territories(game_map: GameMap) -> dict[int, int]:
    """Owned playable tile count per player id."""
    counts: dict[int, int] = {}
    for tile in game_map.playable_tiles():
        if tile.owner is not None:
            counts[tile.owner] = counts.get(tile.owner, 0) + 1
    return counts


def distinct_owners(game_map: GameMap) -> set[int]:
    """Player ids that own at least one playable tile."""
    return {t.owner for t in game_map.playable_tiles() if t.owner is not None}


def measure_region(game_map: GameMap, start: Tile, player_id: int, visited: set[int]) -> int:
    """Size of the 4-connected region of player_id tiles containing start. Marks tiles visited."""
    size = 0
    stack = [start]
    visited.add(game_map.index(start.x, start.y))
    while stack:
        tile = stack.pop()
        size += 1
        for neighbor in game_map.neighbors(tile.x, tile.y):
            idx = game_map.index(neighbor.x, neighbor.y)
            if neighbor.owner == player_id and idx not in visited:
                visited.add(idx)
                stack.append(neighbor)
    return size


def find_largest_connected_region(game_map: GameMap, player_id: int) -> int:
    """Size of the player's largest 4-connected group of tiles (0 if they own nothing)."""
    visited: set[int] = set()
    largest = 0
    for tile in game_map.tiles:
        if tile.blocked or tile.owner != player_id:
            continue
        if game_map.index(tile.x, tile.y) in visited:
            continue
        largest = max(largest, measure_region(game_map, tile, player_id, visited))
    return largest


def find_connected_components(game_map: GameMap) -> list[list[int]]:
    """Groups of playable tile indices connected through playable tiles, ignoring owners."""
    visited: set[int] = set()
    components: list[list[int]] = []
    for start, tile in enumerate(game_map.tiles):
        if tile.blocked or start in visited:
            continue
        component = []
        queue = deque([start])
        visited.add(start)
        while queue:
            idx = queue.popleft()
            component.append(idx)
            current = game_map.tiles[idx]
            for neighbor in game_map.neighbors(current.x, current.y):
                n_idx = game_map.index(neighbor.x, neighbor.y)
                if n_idx not in visited:
                    visited.add(n_idx)
                    queue.append(n_idx)
        components.append(component)
    return components


def are_playable_tiles_connected(game_map: GameMap) -> bool:
    return len(find_connected_components(game_map)) <= 1


# ===== Attacks =====

def get_attack_options(state: GameState, player_id: int | None = None) -> list[AttackOption]:
    """
    Every legal attack for player_id (default: current player), in row-major scan order
    of the attacking tile and up, right, down, left order of the target.
    """
    if player_id is None:
        current = state.current_player
        if current is None:
            return []
        player_id = current.id
    game_map = state.map
    options = []
    for tile in game_map.tiles:
        if tile.blocked or tile.owner != player_id or tile.dice <= 1:
            continue
        for target in game_map.neighbors(tile.x, tile.y):
            if target.owner == player_id:
                continue
            options.append(AttackOption(
                from_x=tile.x,
                from_y=tile.y,
                to_x=target.x,
                to_y=target.y,
                attacker_dice=tile.dice,
                defender_dice=target.dice,
                defender_id=target.owner,
            ))
    return options


# ===== Summaries =====

def get_player_stats(state: GameState) -> list[dict[str, Any]]:
    """Per-player tile count, dice total, largest region and stored dice, in roster order."""
    stats = []
    for player in state.players:
        if not player.alive:
            stats.append({
                "id": player.id,
                "name": player.name,
                "is_bot": player.is_bot,
                "alive": False,
                "tile_count": 0,
                "total_dice": 0,
                "connected_tiles": 0,
                "stored_dice": player.stored_dice,
            })
            continue
        owned = state.map.tiles_by_owner(player.id)
        stats.append({
            "id": player.id,
            "name": player.name,
            "is_bot": player.is_bot,
            "alive": True,
            "tile_count": len(owned),
            "total_dice": sum(t.dice for t in owned),
            "connected_tiles": find_largest_connected_region(state.map, player.id),
            "stored_dice": player.stored_dice,
        })
    return stats


def get_game_summary(state: GameState) -> dict[str, Any]:
    """Compact summary for logs and the CLI."""
    current = state.current_player
    return {
        "status": state.status,
        "turn": state.turn,
        "current_player": current.id if current else None,
        "game_over": state.game_over,
        "winner": state.winner,
        "total_dice": state.total_dice(),
        "players": get_player_stats(state),
    }
