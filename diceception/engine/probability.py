"""
Exact attack win probabilities.
Sums are compared by convolving per-die outcome counts, so results are exact rather than
simulated. Ties go to the defender, matching resolve_attack.
"""

from functools import lru_cache

from diceception.engine import DEFAULT_DICE_SIDES, DEFAULT_MAX_DICE

HIGH_PROBABILITY = 0.75
LOW_PROBABILITY = 0.25


@lru_cache(maxsize=None)
def _sum_counts(n: int, sides: int) -> tuple[int, ...]:
    """Number of ways n dice with the given sides reach each sum (index = sum)."""
    counts = [0] * (n * sides + 1)
    counts[0] = 1
    for i in range(n):
        next_counts = [0] * (n * sides + 1)
        for total in range(i * sides + 1):
            if counts[total]:
                for face in range(1, sides + 1):
                    next_counts[total + face] += counts[total]
        counts = next_counts
    return tuple(counts)


def sum_distribution(n: int, sides: int) -> list[float]:
    """Probability of each sum for n dice (index = sum, 0..n*sides)."""
    if n < 0 or sides < 1:
        raise ValueError(f"Invalid dice: {n}d{sides}")
    counts = _sum_counts(n, sides)
    total = sides ** n
    return [c / total for c in counts]


@lru_cache(maxsize=None)
def win_probability(attacker_dice: int, defender_dice: int, sides: int = DEFAULT_DICE_SIDES) -> float:
    """Probability that attacker_dice dice sum strictly higher than defender_dice dice."""
    if attacker_dice < 1 or defender_dice < 1:
        raise ValueError("Both sides need at least one die")
    if sides < 1:
        raise ValueError(f"Dice need at least one side, got {sides}")
    attack = _sum_counts(attacker_dice, sides)
    defend = _sum_counts(defender_dice, sides)

    wins = 0
    defend_below = 0  # ways the defender rolls less than the current attacker sum
    for total, ways in enumerate(attack):
        if total > 0 and total - 1 < len(defend):
            defend_below += defend[total - 1]
        if ways:
            wins += ways * defend_below
    return wins / (sides ** attacker_dice * sides ** defender_dice)


def probability_table(sides: int = DEFAULT_DICE_SIDES, max_dice: int = DEFAULT_MAX_DICE) -> list[list[float]]:
    """table[a - 1][d - 1] = win_probability(a, d, sides) for 1..max_dice each side."""
    return [
        [win_probability(a, d, sides) for d in range(1, max_dice + 1)]
        for a in range(1, max_dice + 1)
    ]


def probability_band(probability: float) -> str:
    """Coarse label for display: high, medium or low."""
    if probability >= HIGH_PROBABILITY:
        return "high"
    if probability >= LOW_PROBABILITY:
        return "medium"
    return "low"
