"""
Opponent strategies - attack selection for bot players.

Every built-in profile shares one evaluation shape and differs only in its weights:

    advantage = attacker_dice - defender_dice
    attacker at max_dice (and max_dice_bonus > 0):  max_dice_bonus + advantage
    advantage < min_advantage:                      0 (rejected)
    otherwise:                                      base + advantage * advantage_weight
                                                         + defender_dice * target_weight

The highest strictly positive score wins; ties keep the first candidate in scan order
(attacking tiles row by row, targets up, right, down, left), so a fixed board always
yields the same move.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from diceception import config
from diceception.engine.queries import AttackOption, get_attack_options
from diceception.engine.state import GameState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Move:
    """An attack chosen by a strategy."""
    from_x: int
    from_y: int
    to_x: int
    to_y: int
    score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": {"x": self.from_x, "y": self.from_y},
            "to": {"x": self.to_x, "y": self.to_y},
            "score": self.score,
        }


@dataclass(frozen=True)
class ScoringProfile:
    """Weights for ScoringStrategy."""
    name: str
    description: str = ""
    min_advantage: int = 0
    advantage_weight: float = 10.0
    base: float = 5.0
    # Always attack from a full tile; 0 disables the rule
    max_dice_bonus: float = 100.0
    # Preference for bigger targets (more dice destroyed on a win)
    target_weight: float = 0.0


# ============================================================================
# Predefined Profiles
# ============================================================================

CAUTIOUS = ScoringProfile(
    name="cautious",
    description="Only attacks with a dice advantage",
    min_advantage=1,
    advantage_weight=10.0,
    base=5.0,
    max_dice_bonus=100.0,
    target_weight=0.0,
)

BALANCED = ScoringProfile(
    name="balanced",
    description="Attacks even fights, prefers the biggest advantage",
    min_advantage=0,
    advantage_weight=10.0,
    base=5.0,
    max_dice_bonus=100.0,
    target_weight=1.0,
)

AGGRESSIVE = ScoringProfile(
    name="aggressive",
    description="Accepts a one-die disadvantage and goes after big stacks",
    min_advantage=-1,
    advantage_weight=4.0,
    base=10.0,
    max_dice_bonus=100.0,
    target_weight=2.0,
)

PROFILES: dict[str, ScoringProfile] = {
    CAUTIOUS.name: CAUTIOUS,
    BALANCED.name: BALANCED,
    AGGRESSIVE.name: AGGRESSIVE,
}

# Difficulty names used by older saves
ALIASES = {
    "easy": CAUTIOUS.name,
    "medium": BALANCED.name,
    "hard": AGGRESSIVE.name,
}


class OpponentStrategy(ABC):
    """
    Interface for bot move selection.
    A strategy only reads state; the turn driver applies the move.
    """

    name = "strategy"

    @abstractmethod
    def choose_move(self, state: GameState, player_id: int | None = None) -> Move | None:
        """Pick one attack for player_id (default: current player), or None to stop attacking."""
        ...


class ScoringStrategy(OpponentStrategy):
    """Scores every legal attack with a ScoringProfile and picks the best."""

    def __init__(self, profile: ScoringProfile = BALANCED):
        self.profile = profile
        self.name = profile.name

    def score(self, option: AttackOption, max_dice: int) -> float:
        profile = self.profile
        advantage = option.attacker_dice - option.defender_dice
        if option.attacker_dice >= max_dice and profile.max_dice_bonus > 0:
            return profile.max_dice_bonus + advantage
        if advantage < profile.min_advantage:
            return 0
        return profile.base + advantage * profile.advantage_weight + option.defender_dice * profile.target_weight

    def choose_move(self, state: GameState, player_id: int | None = None) -> Move | None:
        best: AttackOption | None = None
        best_score = 0.0
        for option in get_attack_options(state, player_id):
            score = self.score(option, state.max_dice)
            # Strictly greater keeps the first candidate on ties
            if score > best_score:
                best, best_score = option, score
        if best is None:
            return None
        return Move(best.from_x, best.from_y, best.to_x, best.to_y, best_score)

    def __repr__(self) -> str:
        return f"ScoringStrategy({self.profile.name!r})"


def resolve_ai_id(ai_id: str | None) -> str:
    """Canonical profile name for ai_id; unknown or missing ids map to the default."""
    if ai_id is None:
        return config.DEFAULT_AI_ID
    key = ai_id.lower()
    key = ALIASES.get(key, key)
    if key not in PROFILES:
        logger.warning("Unknown AI id %r, using %s", ai_id, config.DEFAULT_AI_ID)
        return config.DEFAULT_AI_ID
    return key


def create_strategy(ai_id: str | None = None) -> OpponentStrategy:
    return ScoringStrategy(PROFILES[resolve_ai_id(ai_id)])


def available_strategies() -> list[dict[str, str]]:
    return [{"id": p.name, "description": p.description} for p in PROFILES.values()]
