"""
Combat resolution system.
Attacker and defender each roll one die per dice on their tile and compare sums.
Ties go to the defender. The attacking tile always collapses to 1 die.

validate_attack never mutates. resolve_attack mutates the two tiles and is only
legal on input that validates; anything else is a caller bug and raises IllegalAttackError.
"""

import random
from dataclasses import dataclass, field
from typing import Any

from diceception.engine.state import GameMap


class IllegalAttackError(ValueError):
    """resolve_attack was called on input that does not validate (caller contract violation)."""


@dataclass
class ValidationResult:
    """Result of attack validation."""
    valid: bool
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "reason": self.reason}


@dataclass
class AttackError:
    """Returned by the engine for an illegal attack. Nothing was mutated."""
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error}


@dataclass
class BattleResult:
    """Outcome of one attack. Carries the rolls so the battle can be logged and replayed without re-rolling."""
    attacker_id: int
    defender_id: int | None
    from_x: int
    from_y: int
    to_x: int
    to_y: int
    attacker_dice: int  # dice on the attacking tile before the battle
    defender_dice: int  # dice on the defending tile before the battle
    attacker_rolls: list[int] = field(default_factory=list)
    defender_rolls: list[int] = field(default_factory=list)
    attacker_sum: int = 0
    defender_sum: int = 0
    won: bool = False

    @property
    def dice_rolls(self) -> dict[str, list[int]]:
        """Rolls in the shape accepted by resolve_attack(dice_rolls=...)."""
        return {"attacker": list(self.attacker_rolls), "defender": list(self.defender_rolls)}

    def to_dict(self) -> dict[str, Any]:
        return {
            "attacker_id": self.attacker_id,
            "defender_id": self.defender_id,
            "from": {"x": self.from_x, "y": self.from_y},
            "to": {"x": self.to_x, "y": self.to_y},
            "attacker_dice": self.attacker_dice,
            "defender_dice": self.defender_dice,
            "attacker_rolls": list(self.attacker_rolls),
            "defender_rolls": list(self.defender_rolls),
            "attacker_sum": self.attacker_sum,
            "defender_sum": self.defender_sum,
            "won": self.won,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BattleResult":
        origin = data.get("from") or {}
        target = data.get("to") or {}
        return cls(
            attacker_id=int(data["attacker_id"]),
            defender_id=data.get("defender_id"),
            from_x=int(origin.get("x", 0)),
            from_y=int(origin.get("y", 0)),
            to_x=int(target.get("x", 0)),
            to_y=int(target.get("y", 0)),
            attacker_dice=int(data.get("attacker_dice", 0)),
            defender_dice=int(data.get("defender_dice", 0)),
            attacker_rolls=list(data.get("attacker_rolls") or []),
            defender_rolls=list(data.get("defender_rolls") or []),
            attacker_sum=int(data.get("attacker_sum", 0)),
            defender_sum=int(data.get("defender_sum", 0)),
            won=bool(data.get("won", False)),
        )


def roll_dice(count: int, sides: int, rng: random.Random | None = None) -> list[int]:
    """Roll count dice with the given number of sides."""
    source = rng or random
    return [source.randint(1, sides) for _ in range(count)]


def validate_attack(
    game_map: GameMap,
    from_x: int,
    from_y: int,
    to_x: int,
    to_y: int,
    current_player_id: int | None,
) -> ValidationResult:
    """
    Check whether the current player may attack (to_x, to_y) from (from_x, from_y).

    Each failed rule reports its own reason:
    - both coordinates must be in bounds and not blocked (four distinct reasons)
    - the attacking tile must belong to the current player
    - the defending tile must belong to someone else
    - the attacking tile needs more than 1 die (1 must stay behind)
    - the tiles must be 4-adjacent
    """
    attacker_tile = game_map.get_tile_raw(from_x, from_y)
    defender_tile = game_map.get_tile_raw(to_x, to_y)

    if attacker_tile is None:
        return ValidationResult(False, "Attacker tile out of bounds")
    if attacker_tile.blocked:
        return ValidationResult(False, "Attacker tile is blocked")
    if defender_tile is None:
        return ValidationResult(False, "Defender tile out of bounds")
    if defender_tile.blocked:
        return ValidationResult(False, "Defender tile is blocked")
    if current_player_id is None or attacker_tile.owner != current_player_id:
        return ValidationResult(False, "Not your tile")
    if defender_tile.owner == attacker_tile.owner:
        return ValidationResult(False, "Cannot attack own tile")
    if attacker_tile.dice <= 1:
        return ValidationResult(False, "Not enough dice (need > 1)")
    if abs(from_x - to_x) + abs(from_y - to_y) != 1:
        return ValidationResult(False, "Tiles not adjacent")
    return ValidationResult(True)


def _check_recorded_rolls(rolls: Any, count: int, sides: int, side: str) -> list[int]:
    if not isinstance(rolls, list) or len(rolls) != count:
        raise IllegalAttackError(f"Expected {count} {side} rolls, got {rolls!r}")
    for roll in rolls:
        if isinstance(roll, bool) or not isinstance(roll, int) or not 1 <= roll <= sides:
            raise IllegalAttackError(f"{side.capitalize()} roll {roll!r} outside 1..{sides}")
    return list(rolls)


def resolve_attack(
    game_map: GameMap,
    from_x: int,
    from_y: int,
    to_x: int,
    to_y: int,
    current_player_id: int,
    dice_sides: int,
    rng: random.Random | None = None,
    dice_rolls: dict[str, list[int]] | None = None,
) -> BattleResult:
    """
    Resolve one attack and apply it to the map.

    Win (attacker sum strictly greater): defender tile changes owner and gets attacker_dice - 1,
    attacking tile drops to 1. Loss (including ties): attacking tile drops to 1, defender unchanged.

    dice_rolls: optional {"attacker": [...], "defender": [...]} recorded rolls for deterministic replay.
    Lengths must match the dice on each tile.

    Raises:
        IllegalAttackError: input does not validate, or recorded rolls are malformed.
    """
    validation = validate_attack(game_map, from_x, from_y, to_x, to_y, current_player_id)
    if not validation.valid:
        raise IllegalAttackError(validation.reason)

    attacker_tile = game_map.get_tile(from_x, from_y)
    defender_tile = game_map.get_tile(to_x, to_y)
    attacker_dice = attacker_tile.dice
    defender_dice = defender_tile.dice

    if dice_rolls is not None:
        attacker_rolls = _check_recorded_rolls(dice_rolls.get("attacker"), attacker_dice, dice_sides, "attacker")
        defender_rolls = _check_recorded_rolls(dice_rolls.get("defender"), defender_dice, dice_sides, "defender")
    else:
        attacker_rolls = roll_dice(attacker_dice, dice_sides, rng)
        defender_rolls = roll_dice(defender_dice, dice_sides, rng)

    attacker_sum = sum(attacker_rolls)
    defender_sum = sum(defender_rolls)

    result = BattleResult(
        attacker_id=attacker_tile.owner,
        defender_id=defender_tile.owner,
        from_x=from_x,
        from_y=from_y,
        to_x=to_x,
        to_y=to_y,
        attacker_dice=attacker_dice,
        defender_dice=defender_dice,
        attacker_rolls=attacker_rolls,
        defender_rolls=defender_rolls,
        attacker_sum=attacker_sum,
        defender_sum=defender_sum,
        won=attacker_sum > defender_sum,
    )

    if result.won:
        defender_tile.owner = attacker_tile.owner
        defender_tile.dice = attacker_dice - 1
    attacker_tile.dice = 1

    return result
