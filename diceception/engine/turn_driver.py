"""
Bot turn driver.
Repeatedly asks a strategy for a move and applies it until the strategy passes, an
attack is rejected, the safety cap is hit, or the game ends; then ends the turn.

iter_bot_turn is a generator so hosts can animate or pause between attacks;
run_bot_turn drives it to completion and run_bot_turn_async awaits between moves.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterator

from diceception.engine import MAX_BOT_MOVES_PER_TURN
from diceception.engine.combat import AttackError, BattleResult
from diceception.engine.game import GameEngine
from diceception.engine.reinforcement import ReinforcementResult
from diceception.engine.state import STATUS_IN_PROGRESS
from diceception.engine.strategy import OpponentStrategy

logger = logging.getLogger(__name__)


@dataclass
class BotTurnResult:
    moves: list[BattleResult] = field(default_factory=list)
    ended_turn: bool = False
    cancelled: bool = False
    hit_cap: bool = False
    reinforcement: ReinforcementResult | None = None


def iter_bot_turn(
    engine: GameEngine,
    strategy: OpponentStrategy,
    max_moves: int = MAX_BOT_MOVES_PER_TURN,
    should_continue: Callable[[], bool] | None = None,
    outcome: BotTurnResult | None = None,
) -> Iterator[BattleResult]:
    """
    Yield each BattleResult of the current player's turn.

    should_continue is polled before every move; returning False cancels the turn
    without ending it. The turn is ended unless cancelled or the game is over.
    outcome, when given, is filled in as the turn progresses.
    """
    outcome = outcome if outcome is not None else BotTurnResult()
    if engine.status != STATUS_IN_PROGRESS:
        return
    player = engine.current_player

    while True:
        if should_continue is not None and not should_continue():
            outcome.cancelled = True
            logger.debug("Bot turn for player %s cancelled", player.id)
            return
        if engine.status != STATUS_IN_PROGRESS:
            return
        if len(outcome.moves) >= max_moves:
            outcome.hit_cap = True
            logger.warning("Player %s hit the %d move cap", player.id, max_moves)
            break

        move = strategy.choose_move(engine.state, player.id)
        if move is None:
            break
        result = engine.attack(move.from_x, move.from_y, move.to_x, move.to_y)
        if isinstance(result, AttackError):
            logger.warning("%r chose an illegal move for player %s: %s", strategy, player.id, result.error)
            break
        outcome.moves.append(result)
        yield result

    if engine.status == STATUS_IN_PROGRESS:
        outcome.reinforcement = engine.end_turn()
        outcome.ended_turn = True


def run_bot_turn(
    engine: GameEngine,
    strategy: OpponentStrategy,
    max_moves: int = MAX_BOT_MOVES_PER_TURN,
    should_continue: Callable[[], bool] | None = None,
) -> BotTurnResult:
    """Play the current player's whole turn synchronously."""
    outcome = BotTurnResult()
    for _ in iter_bot_turn(engine, strategy, max_moves, should_continue, outcome):
        pass
    return outcome


async def run_bot_turn_async(
    engine: GameEngine,
    strategy: OpponentStrategy,
    max_moves: int = MAX_BOT_MOVES_PER_TURN,
    should_continue: Callable[[], bool] | None = None,
    delay: float = 0.0,
) -> BotTurnResult:
    """Play the current player's turn, yielding to the event loop after every attack."""
    outcome = BotTurnResult()
    for _ in iter_bot_turn(engine, strategy, max_moves, should_continue, outcome):
        await asyncio.sleep(delay)
    return outcome
