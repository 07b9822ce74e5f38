"""
Setup helpers: map generation, initial dice, game modes and console printing.
The map generator is a pluggable collaborator; GameEngine accepts any callable with
generate_map's signature.
"""

import logging
import random
from typing import Callable

from diceception.engine.queries import are_playable_tiles_connected, find_connected_components
from diceception.engine.state import GameMap, GameState, Player

logger = logging.getLogger(__name__)

HUMAN_COLORS = [
    0xAA00FF,  # Purple
    0x0088FF,  # Azure
    0xFFCC00,  # Gold
    0x00AA44,  # Dark green
]

BOT_COLORS = [
    0xFF0055,  # Red/Pink
    0x55FF00,  # Lime
    0xFF00AA,  # Pink
    0xFF8800,  # Orange
    0x00AAFF,  # Light blue
    0xFFFF00,  # Yellow
    0xFFFFFF,  # White
]

MAP_STYLES = ("full", "simple", "caves")
GAME_MODES = ("classic", "fair", "madness", "2of2")

MIN_TILES_PER_PLAYER = 4
INITIAL_DICE_MULTIPLIER = 2.5
SIMPLE_HOLE_PERCENTAGE = 0.2
CAVES_INITIAL_BLOCK_CHANCE = 0.45
CAVES_ITERATIONS = 5
CAVES_BLOCK_THRESHOLD = 5
CAVES_UNBLOCK_THRESHOLD = 3

MapGenerator = Callable[[int, int, list[Player], int, str, random.Random], GameMap]


def get_player_color(index: int, is_bot: bool = False) -> int:
    colors = BOT_COLORS if is_bot else HUMAN_COLORS
    return colors[index % len(colors)]


# ===== Layouts =====

def _layout_full(game_map: GameMap, rng: random.Random) -> None:
    for tile in game_map.tiles:
        tile.blocked = False


def _layout_simple(game_map: GameMap, rng: random.Random, hole_percentage: float = SIMPLE_HOLE_PERCENTAGE) -> None:
    """Open grid with random holes; a hole is only kept if the board stays connected."""
    _layout_full(game_map, rng)
    target = int(len(game_map.tiles) * hole_percentage)
    holes = 0
    attempts = 0
    while holes < target and attempts < target * 10:
        attempts += 1
        tile = game_map.tiles[rng.randrange(len(game_map.tiles))]
        if tile.blocked:
            continue
        tile.blocked = True
        if are_playable_tiles_connected(game_map):
            holes += 1
        else:
            tile.blocked = False


def _count_blocked_neighbors(game_map: GameMap, x: int, y: int) -> int:
    """Blocked tiles among the 8 surrounding cells; off-map counts as blocked."""
    count = 0
    for dy in (-1, 0, 1):
        for dx in (-1, 0, 1):
            if dx == 0 and dy == 0:
                continue
            tile = game_map.get_tile_raw(x + dx, y + dy)
            if tile is None or tile.blocked:
                count += 1
    return count


def _layout_caves(game_map: GameMap, rng: random.Random) -> None:
    """Cellular automaton caves with a blocked border."""
    for tile in game_map.tiles:
        tile.blocked = rng.random() < CAVES_INITIAL_BLOCK_CHANCE
    for _ in range(CAVES_ITERATIONS):
        next_blocked = []
        for tile in game_map.tiles:
            neighbors = _count_blocked_neighbors(game_map, tile.x, tile.y)
            if neighbors >= CAVES_BLOCK_THRESHOLD:
                next_blocked.append(True)
            elif neighbors <= CAVES_UNBLOCK_THRESHOLD:
                next_blocked.append(False)
            else:
                next_blocked.append(tile.blocked)
        for tile, blocked in zip(game_map.tiles, next_blocked):
            tile.blocked = blocked
    for tile in game_map.tiles:
        if tile.x in (0, game_map.width - 1) or tile.y in (0, game_map.height - 1):
            tile.blocked = True


LAYOUTS = {
    "full": _layout_full,
    "simple": _layout_simple,
    "caves": _layout_caves,
}


def _carve_bridge(game_map: GameMap, start: tuple[int, int], end: tuple[int, int]) -> None:
    """Unblock an L-shaped path from start to end."""
    x, y = start
    end_x, end_y = end
    while x != end_x:
        game_map.tiles[game_map.index(x, y)].blocked = False
        x += 1 if end_x > x else -1
    while y != end_y:
        game_map.tiles[game_map.index(x, y)].blocked = False
        y += 1 if end_y > y else -1
    game_map.tiles[game_map.index(x, y)].blocked = False


def ensure_connectivity(game_map: GameMap) -> None:
    """Bridge every playable island to the largest one along the shortest Manhattan path."""
    components = find_connected_components(game_map)
    if len(components) <= 1:
        return
    largest = max(components, key=len)
    for component in components:
        if component is largest:
            continue
        best = None
        for idx in component:
            x1, y1 = idx % game_map.width, idx // game_map.width
            for other in largest:
                x2, y2 = other % game_map.width, other // game_map.width
                dist = abs(x1 - x2) + abs(y1 - y2)
                if best is None or dist < best[0]:
                    best = (dist, (x1, y1), (x2, y2))
        if best:
            _carve_bridge(game_map, best[1], best[2])


# ===== Ownership and dice =====

def distribute_initial_dice(
    game_map: GameMap,
    players: list[Player],
    max_dice: int,
    rng: random.Random,
) -> None:
    """
    Top every player up to floor(tiles_per_player * 2.5) + roster_index dice in total.
    Later players get slightly more to offset moving later.
    """
    playable = sum(1 for _ in game_map.playable_tiles())
    tiles_per_player = playable // len(players)
    base_dice = int(tiles_per_player * INITIAL_DICE_MULTIPLIER)

    for index, player in enumerate(players):
        owned = game_map.tiles_by_owner(player.id)
        remaining = base_dice + index - len(owned)
        eligible = [t for t in owned if t.dice < max_dice]
        while remaining > 0 and eligible:
            pick = rng.randrange(len(eligible))
            tile = eligible[pick]
            tile.dice += 1
            remaining -= 1
            if tile.dice >= max_dice:
                eligible[pick] = eligible[-1]
                eligible.pop()


def generate_map(
    width: int,
    height: int,
    players: list[Player],
    max_dice: int,
    style: str = "random",
    rng: random.Random | None = None,
) -> GameMap:
    """
    Build a playable map and hand every playable tile to a player.

    Tiles are shuffled and dealt round-robin with 1 die each, then initial dice are distributed.
    Styles: full, simple, caves, or random (one of those three).

    Raises:
        ValueError: unknown style, or the board cannot hold one tile per player
    """
    rng = rng or random.Random()
    if style == "random":
        style = rng.choice(MAP_STYLES)
    if style not in LAYOUTS:
        raise ValueError(f"Unknown map style: {style}")

    game_map = GameMap.blank(width, height)
    LAYOUTS[style](game_map, rng)
    if style != "full":
        ensure_connectivity(game_map)

    playable = [i for i, t in enumerate(game_map.tiles) if not t.blocked]
    if len(playable) < len(players) * MIN_TILES_PER_PLAYER and style != "full":
        logger.debug("%s layout too sparse (%d tiles), falling back to simple", style, len(playable))
        _layout_simple(game_map, rng)
        playable = [i for i, t in enumerate(game_map.tiles) if not t.blocked]
    if len(playable) < len(players):
        raise ValueError(f"Map {width}x{height} has {len(playable)} playable tiles for {len(players)} players")

    logger.info("Generated %s map %dx%d with %d playable tiles", style, width, height, len(playable))

    rng.shuffle(playable)
    for n, idx in enumerate(playable):
        tile = game_map.tiles[idx]
        tile.owner = players[n % len(players)].id
        tile.dice = 1

    distribute_initial_dice(game_map, players, max_dice, rng)
    return game_map


# ===== Game modes =====

def apply_game_mode(state: GameState, rng: random.Random) -> None:
    """
    Adjust starting dice for the game mode.
    fair: every player is cut down to the smallest starting dice total
    madness: every tile starts at max_dice
    2of2: every tile starts with exactly 2 dice (capped by max_dice)
    """
    mode = state.game_mode
    if mode == "classic":
        return
    if mode == "madness":
        for tile in state.map.playable_tiles():
            tile.dice = state.max_dice
    elif mode == "2of2":
        for tile in state.map.playable_tiles():
            tile.dice = min(2, state.max_dice)
    elif mode == "fair":
        totals = {p.id: sum(t.dice for t in state.map.tiles_by_owner(p.id)) for p in state.players}
        minimum = min(totals.values())
        for player in state.players:
            excess = totals[player.id] - minimum
            owned = state.map.tiles_by_owner(player.id)
            while excess > 0:
                reducible = [t for t in owned if t.dice > 1]
                if not reducible:
                    break
                rng.choice(reducible).dice -= 1
                excess -= 1
    else:
        raise ValueError(f"Unknown game mode: {mode}")


# ===== Printing =====

def print_game_state(state: GameState) -> None:
    """
    Pretty-print the board. Each cell shows owner id and dice ("1:4"), "##" for blocked.
    """
    current = state.current_player
    print(f"\n{'=' * 60}")
    print(f"Turn {state.turn} | Player: {current.name if current else '-'} | Status: {state.status}")
    print(f"{'=' * 60}")
    for y in range(state.map.height):
        row = []
        for x in range(state.map.width):
            tile = state.map.get_tile_raw(x, y)
            if tile.blocked:
                row.append("  ## ")
            elif tile.owner is None:
                row.append("  .. ")
            else:
                row.append(f"{tile.owner:>2}:{tile.dice:<2}")
        print(" ".join(row))
    print()
    for player in state.players:
        owned = state.map.tiles_by_owner(player.id)
        marker = "*" if current is not None and player.id == current.id else " "
        status = "" if player.alive else " (eliminated)"
        print(f" {marker} {player.id}: {player.name:<12} tiles={len(owned):<3} "
              f"dice={sum(t.dice for t in owned):<4} stored={player.stored_dice}{status}")
    print()
