"""Shared test fixtures and helpers."""

import os

# The API module binds its engine at import time; keep tests off the real save directory.
os.environ["DATABASE_URL"] = "sqlite://"

import random

import pytest

from diceception.engine.events import EventRecorder
from diceception.engine.game import GameConfig, GameEngine
from diceception.engine.history import TurnHistory
from diceception.engine.persistence import MemoryStore
from diceception.engine.session import GameSession
from diceception.engine.state import GameMap, GameState, Player


# --- Helper functions ---


def make_state(rows, bots=(), max_dice=9, dice_sides=6, current=0):
    """
    Build a GameState from rows of cells: "owner:dice", "##" for blocked, ".." for unowned.
    Players are created for every owner on the board, in id order.
    """
    height = len(rows)
    width = len(rows[0])
    game_map = GameMap.blank(width, height, blocked=False)
    owners = set()
    for y, row in enumerate(rows):
        for x, cell in enumerate(row):
            tile = game_map.get_tile_raw(x, y)
            if cell == "##":
                tile.blocked = True
            elif cell == "..":
                tile.dice = 1
            else:
                owner, dice = cell.split(":")
                tile.owner = int(owner)
                tile.dice = int(dice)
                owners.add(int(owner))
    players = [
        Player(id=pid, is_bot=pid in bots, ai_id="balanced" if pid in bots else None, name=f"P{pid}")
        for pid in sorted(owners)
    ]
    return GameState(
        current_player_index=current,
        max_dice=max_dice,
        dice_sides=dice_sides,
        map=game_map,
        players=players,
    )


def small_config(**overrides):
    """Deterministic all-open board, no roster shuffle."""
    values = dict(
        human_count=1,
        bot_count=2,
        map_width=5,
        map_height=5,
        map_style="full",
        shuffle_players=False,
    )
    values.update(overrides)
    return GameConfig(**values)


# --- Fixtures ---


@pytest.fixture
def rng():
    """Deterministic RNG seeded at 42."""
    return random.Random(42)


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def duel_state():
    """Player 0 (4 dice) next to player 1 (2 dice), blocked tile on the right."""
    return make_state([["0:4", "1:2", "##"]])


@pytest.fixture
def engine(recorder, rng):
    return GameEngine(event_sink=recorder, rng=rng)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def session(engine, store):
    return GameSession(engine, TurnHistory(store=store))
