"""
Action definitions for the game.
Actions are immutable, deterministic instructions. Attacks carry their dice rolls so
an action log replays to the same state without re-rolling.
"""

from dataclasses import dataclass
from typing import Any

from diceception.engine.combat import BattleResult
from diceception.engine.reinforcement import ReinforcementResult

ATTACK = "attack"
END_TURN = "end_turn"


@dataclass(frozen=True)
class Action:
    """Base action class. All actions have a type, the acting player id, and a payload."""
    type: str  # "attack" or "end_turn"
    player: int  # id of the player performing the action
    payload: dict  # Action-specific data

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "player": self.player, "payload": dict(self.payload)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Action":
        return cls(type=data["type"], player=int(data["player"]), payload=dict(data.get("payload") or {}))


def attack(
    player: int,
    from_x: int,
    from_y: int,
    to_x: int,
    to_y: int,
    dice_rolls: dict[str, list[int]],  # "attacker" -> [rolls], "defender" -> [rolls]
) -> Action:
    """
    Attack a neighbouring tile.
    dice_rolls must be provided (deterministic, no RNG for combat in the reducer).

    Example: attack(0, 1, 0, 2, 0, {"attacker": [6, 5, 4], "defender": [1, 2]})
    """
    return Action(
        type=ATTACK,
        player=player,
        payload={
            "from": {"x": from_x, "y": from_y},
            "to": {"x": to_x, "y": to_y},
            "dice_rolls": dice_rolls,
        },
    )


def attack_from_battle(result: BattleResult) -> Action:
    """Record a resolved battle as a replayable attack action."""
    return attack(
        result.attacker_id,
        result.from_x,
        result.from_y,
        result.to_x,
        result.to_y,
        result.dice_rolls,
    )


def end_turn(player: int, placements: list[tuple[int, int]] | None = None) -> Action:
    """
    End the current turn: reinforce and pass to the next alive player.
    placements (the (x, y) of each reinforcement die, in order) makes the turn replay
    without an RNG; without it the reducer draws placements from its RNG.
    """
    payload = {}
    if placements is not None:
        payload["placements"] = [[x, y] for x, y in placements]
    return Action(type=END_TURN, player=player, payload=payload)


def end_turn_from_reinforcement(player: int, result: ReinforcementResult) -> Action:
    """Record a completed end of turn as a replayable action."""
    return end_turn(player, result.placements)
