"""
End-of-turn reinforcement.
A player earns one die per tile in their largest connected region. Earned dice plus
previously stored dice are dropped one at a time on random owned tiles below max_dice;
whatever does not fit is stored for a later turn.

Placements are recorded so a turn can be replayed without the RNG.
"""

import random
from dataclasses import dataclass, field
from typing import Any

from diceception.engine.queries import find_largest_connected_region
from diceception.engine.state import GameState


@dataclass
class ReinforcementResult:
    earned: int
    placed: int
    stored: int
    from_store: int
    # (x, y) of every die placed, in order
    placements: list[tuple[int, int]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "earned": self.earned,
            "placed": self.placed,
            "stored": self.stored,
            "from_store": self.from_store,
            "placements": [list(p) for p in self.placements],
        }


def distribute_reinforcements(
    state: GameState,
    player_id: int,
    rng: random.Random | None = None,
    placements: list[tuple[int, int]] | None = None,
) -> ReinforcementResult:
    """
    Mutates state: adds dice to the player's tiles and updates their stored_dice.

    placements replays a recorded distribution instead of drawing from the RNG. It must
    place exactly as many dice as fit, each on an owned tile below max_dice.

    Raises:
        ValueError: unknown player, or recorded placements that do not fit this board
    """
    player = state.get_player(player_id)
    if player is None:
        raise ValueError(f"Unknown player: {player_id}")

    earned = find_largest_connected_region(state.map, player_id)
    from_store = player.stored_dice
    total = earned + from_store

    if placements is not None:
        placed_at = _apply_placements(state, player_id, total, placements)
    else:
        placed_at = _place_randomly(state, player_id, total, rng or random)

    player.stored_dice = total - len(placed_at)
    return ReinforcementResult(
        earned=earned,
        placed=len(placed_at),
        stored=player.stored_dice,
        from_store=from_store,
        placements=placed_at,
    )


def _place_randomly(state: GameState, player_id: int, count: int, source) -> list[tuple[int, int]]:
    placed_at = []
    eligible = [t for t in state.map.tiles_by_owner(player_id) if t.dice < state.max_dice]
    while count > len(placed_at) and eligible:
        idx = source.randrange(len(eligible))
        tile = eligible[idx]
        tile.dice += 1
        placed_at.append((tile.x, tile.y))
        if tile.dice >= state.max_dice:
            eligible.pop(idx)
    return placed_at


def _apply_placements(
    state: GameState,
    player_id: int,
    count: int,
    placements: list[tuple[int, int]],
) -> list[tuple[int, int]]:
    owned = state.map.tiles_by_owner(player_id)
    capacity = sum(state.max_dice - t.dice for t in owned)
    expected = min(count, capacity)
    if len(placements) != expected:
        raise ValueError(f"Expected {expected} reinforcement placements, got {len(placements)}")

    # Validate against a scratch count first so a bad entry changes nothing
    dice = {(t.x, t.y): t.dice for t in owned}
    for x, y in placements:
        if (x, y) not in dice:
            raise ValueError(f"Cannot reinforce ({x}, {y}): not owned by player {player_id}")
        if dice[(x, y)] >= state.max_dice:
            raise ValueError(f"Cannot reinforce ({x}, {y}): already at {state.max_dice} dice")
        dice[(x, y)] += 1

    for x, y in placements:
        state.map.get_tile(x, y).dice += 1
    return [(x, y) for x, y in placements]
