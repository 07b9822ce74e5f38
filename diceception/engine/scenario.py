"""
Portable scenario documents.
A scenario stores only the playable tiles (sparse) and the roster; everything else is
rebuilt as blocked tiles when the scenario is loaded.
"""

import time
import uuid
from typing import Any

from diceception.engine import DEFAULT_DICE_SIDES, DEFAULT_MAX_DICE
from diceception.engine.state import GameMap, GameState, Player
from diceception.engine.utils import get_player_color

SCENARIO_TYPES = ("scenario", "replay", "map")
MIN_SCENARIO_SIZE = 3


def create_scenario_from_game(
    state: GameState,
    name: str,
    description: str = "",
    scenario_type: str = "scenario",
) -> dict[str, Any]:
    tiles = [
        {"x": t.x, "y": t.y, "owner": t.owner, "dice": t.dice}
        for t in state.map.playable_tiles()
    ]
    players = [
        {
            "id": p.id,
            "is_bot": p.is_bot,
            "ai_id": p.ai_id,
            "name": p.name,
            "color": p.color,
            "stored_dice": p.stored_dice,
        }
        for p in state.players
    ]
    return {
        "id": str(uuid.uuid4()),
        "name": name,
        "description": description,
        "type": scenario_type,
        "created_at": int(time.time() * 1000),
        "width": state.map.width,
        "height": state.map.height,
        "max_dice": state.max_dice,
        "dice_sides": state.dice_sides,
        "game_mode": state.game_mode,
        "tiles": tiles,
        "players": players,
    }


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_scenario(scenario: Any) -> list[str]:
    """Problems with a scenario document; empty when it can be loaded."""
    if not isinstance(scenario, dict):
        return ["Scenario must be an object"]

    errors = []
    if not scenario.get("id"):
        errors.append("Missing id")
    if not scenario.get("name"):
        errors.append("Missing name")
    width = scenario.get("width")
    height = scenario.get("height")
    if not _is_int(width) or width < MIN_SCENARIO_SIZE:
        errors.append("Invalid width")
    if not _is_int(height) or height < MIN_SCENARIO_SIZE:
        errors.append("Invalid height")
    if scenario.get("type", "scenario") not in SCENARIO_TYPES:
        errors.append(f"Unknown type: {scenario.get('type')}")

    tiles = scenario.get("tiles")
    players = scenario.get("players")

    player_ids = set()
    if not isinstance(players, list):
        errors.append("Players must be an array")
    else:
        if len(players) < 2:
            errors.append("At least 2 players required")
        for i, player in enumerate(players):
            if not isinstance(player, dict) or not _is_int(player.get("id")):
                errors.append(f"Player {i}: invalid id")
                continue
            if not isinstance(player.get("is_bot"), bool):
                errors.append(f"Player {i}: invalid is_bot flag")
            player_ids.add(player["id"])

    if not isinstance(tiles, list):
        errors.append("Tiles must be an array")
    else:
        for i, tile in enumerate(tiles):
            if not isinstance(tile, dict) or not _is_int(tile.get("x")) or not _is_int(tile.get("y")):
                errors.append(f"Tile {i}: invalid coordinates")
                continue
            if _is_int(width) and _is_int(height) and not (0 <= tile["x"] < width and 0 <= tile["y"] < height):
                errors.append(f"Tile {i}: outside the map")
            owner = tile.get("owner")
            if owner is not None and (not _is_int(owner) or (player_ids and owner not in player_ids)):
                errors.append(f"Tile {i}: invalid owner")
            dice = tile.get("dice")
            if not _is_int(dice) or dice < 1:
                errors.append(f"Tile {i}: invalid dice count")

    return errors


def state_from_scenario(scenario: dict[str, Any]) -> GameState:
    """
    Build a fresh GameState (turn 1, first player to move) from a scenario document.

    Raises:
        ValueError: the scenario does not validate
    """
    errors = validate_scenario(scenario)
    if errors:
        raise ValueError("; ".join(errors))

    game_map = GameMap.blank(scenario["width"], scenario["height"])
    for entry in scenario["tiles"]:
        tile = game_map.get_tile_raw(entry["x"], entry["y"])
        tile.blocked = False
        tile.owner = entry.get("owner")
        tile.dice = entry["dice"]

    players = []
    bot_index = 0
    human_index = 0
    for entry in scenario["players"]:
        is_bot = entry["is_bot"]
        color = entry.get("color")
        if color is None:
            color = get_player_color(bot_index if is_bot else human_index, is_bot)
        if is_bot:
            bot_index += 1
        else:
            human_index += 1
        players.append(Player(
            id=entry["id"],
            is_bot=is_bot,
            ai_id=entry.get("ai_id"),
            name=entry.get("name") or f"Player {entry['id'] + 1}",
            color=color,
            stored_dice=entry.get("stored_dice") or 0,
        ))

    owners = {t.owner for t in game_map.playable_tiles()}
    for player in players:
        player.alive = player.id in owners

    state = GameState(
        max_dice=scenario.get("max_dice") or DEFAULT_MAX_DICE,
        dice_sides=scenario.get("dice_sides") or DEFAULT_DICE_SIDES,
        game_mode=scenario.get("game_mode") or "classic",
        map=game_map,
        players=players,
    )
    alive = [i for i, p in enumerate(players) if p.alive]
    if alive:
        state.current_player_index = alive[0]
    if len(alive) == 1:
        state.game_over = True
        state.winner = players[alive[0]].id
    return state
