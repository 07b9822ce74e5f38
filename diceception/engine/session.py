"""
Game session: wires the engine, turn history and bot strategies together.

    start  -> initial snapshot + turn 1 snapshot + autosave
    end of every turn (human or bot) -> snapshot + autosave
    game over -> autosave cleared (finished games are never resumed)
    quit   -> engine reset, history and autosave cleared
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from diceception.engine.combat import AttackError, BattleResult
from diceception.engine.game import GameConfig, GameEngine
from diceception.engine.history import RestoreResult, TurnHistory
from diceception.engine.reinforcement import ReinforcementResult
from diceception.engine.scenario import create_scenario_from_game
from diceception.engine.state import STATUS_IN_PROGRESS, STATUS_OVER, GameState
from diceception.engine.strategy import OpponentStrategy, create_strategy
from diceception.engine.turn_driver import BotTurnResult, run_bot_turn

logger = logging.getLogger(__name__)

# Upper bound on consecutive bot turns per play_bot_turns call (all-bot games)
MAX_BOT_TURNS = 1000


@dataclass
class ResumeResult:
    resumed: bool
    reason: str | None = None


class GameSession:
    def __init__(
        self,
        engine: GameEngine,
        history: TurnHistory,
        strategies: dict[int, OpponentStrategy] | None = None,
    ):
        self.engine = engine
        self.history = history
        # Explicit per-player strategies win over the players' ai_id
        self._overrides = dict(strategies or {})
        self.strategies: dict[int, OpponentStrategy] = {}

    @property
    def state(self) -> GameState:
        return self.engine.state

    def _build_strategies(self) -> None:
        self.strategies = {}
        for player in self.engine.state.players:
            if player.is_bot:
                self.strategies[player.id] = self._overrides.get(player.id) or create_strategy(player.ai_id)

    def strategy_for(self, player_id: int) -> OpponentStrategy:
        if player_id not in self.strategies:
            player = self.engine.state.get_player(player_id)
            self.strategies[player_id] = create_strategy(player.ai_id if player else None)
        return self.strategies[player_id]

    def is_bot_turn(self) -> bool:
        current = self.engine.current_player
        return self.engine.status == STATUS_IN_PROGRESS and current is not None and current.is_bot

    def _record_turn(self) -> None:
        """Snapshot after a completed transition, then autosave (or drop it once the game is over)."""
        self.history.capture_snapshot(self.engine)
        if self.engine.status == STATUS_OVER:
            self.history.clear_autosave()
        else:
            self.history.save_autosave(self.engine)

    # ===== Lifecycle =====

    def start(self, game_config: GameConfig) -> GameState:
        self.history.clear()
        state = self.engine.start_game(game_config)
        self._build_strategies()
        self.history.set_initial_snapshot(self.engine)
        self._record_turn()
        return state

    def try_resume(self) -> ResumeResult:
        """
        Resume from the autosave if there is one and it is not a finished game.
        Finished or unreadable autosaves are deleted so they are not offered again.
        """
        if self.engine.state.players:
            return ResumeResult(False, "A game is already in progress")

        loaded = self.history.load_autosave()
        if loaded.error:
            logger.warning("Discarding unreadable auto-save: %s", loaded.error)
            self.history.clear_autosave()
            return ResumeResult(False, loaded.error)
        snapshot = loaded.snapshot
        if snapshot is None:
            return ResumeResult(False, "No auto-save")
        try:
            snapshot.to_state()
        except ValueError as e:
            logger.warning("Discarding unreadable auto-save: %s", e)
            self.history.clear_autosave()
            return ResumeResult(False, f"Corrupt auto-save: {e}")
        if snapshot.is_finished():
            logger.info("Skipping resume for finished game (turn %d)", snapshot.turn)
            self.history.clear_autosave()
            return ResumeResult(False, "Auto-save is a finished game")

        result = self.history.restore_snapshot(self.engine, snapshot)
        if not result.ok:
            self.history.clear_autosave()
            return ResumeResult(False, result.reason)

        self.history.clear()
        self.history.capture_snapshot(self.engine)
        self._build_strategies()
        self.engine.announce_resume()
        logger.info("Game automatically resumed from turn %d", self.engine.state.turn)
        return ResumeResult(True)

    def retry(self) -> RestoreResult:
        """Restart the current game from its starting position."""
        result = self.history.restore_initial_snapshot(self.engine)
        if not result.ok:
            return result
        initial = self.history.initial_snapshot
        self.history.clear()
        self.history.initial_snapshot = initial
        self.history.capture_snapshot(self.engine)
        # The old autosave belongs to the abandoned attempt
        self.history.clear_autosave()
        self._build_strategies()
        self.engine.announce_resume()
        return result

    def restore(self, index: int) -> RestoreResult:
        """Rewind to a snapshot in the history log and autosave the rewound position."""
        result = self.history.restore_snapshot(self.engine, self.history.get_snapshot(index))
        if result.ok:
            self._build_strategies()
            self.history.save_autosave(self.engine)
        return result

    def quit(self) -> None:
        self.engine.reset()
        self.history.clear()
        self.history.clear_autosave()
        self.strategies = {}

    # ===== Turns =====

    def attack(self, from_x: int, from_y: int, to_x: int, to_y: int) -> BattleResult | AttackError:
        result = self.engine.attack(from_x, from_y, to_x, to_y)
        if isinstance(result, BattleResult) and self.engine.status == STATUS_OVER:
            self._record_turn()
        return result

    def end_turn(self) -> ReinforcementResult | None:
        result = self.engine.end_turn()
        if result is not None:
            self._record_turn()
        return result

    def play_bot_turns(
        self,
        max_turns: int = MAX_BOT_TURNS,
        should_continue: Callable[[], bool] | None = None,
    ) -> list[BotTurnResult]:
        """Run bot turns until a human is to move, the game ends, or play is cancelled."""
        results = []
        while self.is_bot_turn() and len(results) < max_turns:
            player = self.engine.current_player
            outcome = run_bot_turn(self.engine, self.strategy_for(player.id), should_continue=should_continue)
            results.append(outcome)
            if outcome.ended_turn or self.engine.status == STATUS_OVER:
                self._record_turn()
            if outcome.cancelled:
                break
        return results

    # ===== Export =====

    def export_scenario(
        self,
        name: str,
        description: str = "",
        snapshot_index: int | None = None,
        scenario_type: str = "scenario",
    ) -> dict[str, Any]:
        """
        Export the live game, or a snapshot from the history log, as a scenario document.

        Raises:
            ValueError: snapshot_index does not exist
        """
        if snapshot_index is None:
            return create_scenario_from_game(self.engine.state, name, description, scenario_type)
        snapshot = self.history.get_snapshot(snapshot_index)
        if snapshot is None:
            raise ValueError(f"No snapshot at index {snapshot_index}")
        return self.history.create_scenario_from_snapshot(self.engine, snapshot, name, scenario_type=scenario_type)
