"""
Game engine: owns the authoritative GameState and the turn state machine.

    not_started --start_game--> in_progress --last player standing--> over
         ^                                                        |
         +------------------------------reset---------------------+

The engine is the only component that mutates tiles, players or the turn counter.
Collaborators (event sink, RNG, map generator) are injected; nothing is read from globals.
"""

import logging
import random
from dataclasses import asdict, dataclass, field
from typing import Any

from diceception import config
from diceception.engine import DEFAULT_DICE_SIDES, DEFAULT_MAX_DICE
from diceception.engine import events
from diceception.engine.combat import AttackError, BattleResult, resolve_attack, validate_attack
from diceception.engine.events import EventSink, GameEvent
from diceception.engine.queries import distinct_owners, get_player_stats
from diceception.engine.reinforcement import ReinforcementResult, distribute_reinforcements
from diceception.engine.state import STATUS_IN_PROGRESS, GameState, Player
from diceception.engine.utils import GAME_MODES, MapGenerator, apply_game_mode, generate_map, get_player_color

logger = logging.getLogger(__name__)


class EngineStateError(RuntimeError):
    """A turn operation was invoked with no players loaded (caller contract violation)."""


@dataclass
class GameConfig:
    """Everything start_game needs. Defaults come from diceception.config."""
    human_count: int = config.DEFAULT_HUMAN_COUNT
    bot_count: int = config.DEFAULT_BOT_COUNT
    map_width: int = config.DEFAULT_MAP_WIDTH
    map_height: int = config.DEFAULT_MAP_HEIGHT
    max_dice: int = DEFAULT_MAX_DICE
    dice_sides: int = DEFAULT_DICE_SIDES
    map_style: str = config.DEFAULT_MAP_STYLE
    game_mode: str = config.DEFAULT_GAME_MODE
    # Strategy id per bot, in bot order; missing entries use config.DEFAULT_AI_ID
    bot_ai_ids: list[str] = field(default_factory=list)
    # Randomize who moves first
    shuffle_players: bool = True

    def validate(self) -> None:
        """Raise ValueError describing the first invalid setting."""
        if self.human_count < 0 or self.bot_count < 0:
            raise ValueError("Player counts cannot be negative")
        if self.human_count + self.bot_count < 2:
            raise ValueError("A game needs at least 2 players")
        if self.map_width < 1 or self.map_height < 1:
            raise ValueError(f"Invalid map size {self.map_width}x{self.map_height}")
        if self.max_dice < 1:
            raise ValueError("max_dice must be at least 1")
        if self.dice_sides < 1:
            raise ValueError("dice_sides must be at least 1")
        if self.game_mode not in GAME_MODES:
            raise ValueError(f"Unknown game mode: {self.game_mode}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameConfig":
        known = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in data.items() if k in known})


class GameEngine:
    """
    Turn state machine over a single GameState.

    attack() returns an AttackError value for illegal moves rather than raising: illegal
    attempts are routine (speculative input, bots probing). end_turn() with no players
    loaded raises EngineStateError.
    """

    def __init__(
        self,
        event_sink: EventSink | None = None,
        rng: random.Random | None = None,
        map_generator: MapGenerator | None = None,
    ):
        self.event_sink = event_sink
        self.rng = rng or random.Random()
        self.map_generator = map_generator or generate_map
        self.state = GameState()
        self.combat_history: list[BattleResult] = []

    # ===== Read-only views =====

    @property
    def status(self) -> str:
        return self.state.status

    @property
    def current_player(self) -> Player | None:
        return self.state.current_player

    def get_player_stats(self) -> list[dict[str, Any]]:
        return get_player_stats(self.state)

    def _emit(self, event: GameEvent) -> None:
        if self.event_sink is not None:
            self.event_sink.emit(event)

    # ===== Lifecycle =====

    def start_game(self, game_config: GameConfig) -> GameState:
        """
        Build roster and map, then announce gameStart and the first turnStart.

        Humans get ids 0..human_count-1, bots follow. Roster order (and therefore who
        moves first) is shuffled unless game_config.shuffle_players is False.

        Raises:
            ValueError: invalid config or a map too small for the roster
        """
        game_config.validate()
        self.reset()

        players = []
        for i in range(game_config.human_count):
            players.append(Player(
                id=i,
                is_bot=False,
                name=f"Player {i + 1}",
                color=get_player_color(i, is_bot=False),
            ))
        for i in range(game_config.bot_count):
            ai_id = game_config.bot_ai_ids[i] if i < len(game_config.bot_ai_ids) else config.DEFAULT_AI_ID
            players.append(Player(
                id=game_config.human_count + i,
                is_bot=True,
                ai_id=ai_id,
                name=f"Bot {i + 1}",
                color=get_player_color(i, is_bot=True),
            ))
        if game_config.shuffle_players:
            self.rng.shuffle(players)

        game_map = self.map_generator(
            game_config.map_width,
            game_config.map_height,
            players,
            game_config.max_dice,
            game_config.map_style,
            self.rng,
        )

        state = GameState(
            turn=1,
            current_player_index=0,
            max_dice=game_config.max_dice,
            dice_sides=game_config.dice_sides,
            game_mode=game_config.game_mode,
            map=game_map,
            players=players,
        )
        apply_game_mode(state, self.rng)
        self.state = state
        logger.info("Game started: %d players on %dx%d (%s)",
                    len(players), game_map.width, game_map.height, state.game_mode)

        self._emit(events.game_start(state.players, state.map))
        self._emit(events.turn_start(state.turn, state.current_player))
        return state

    def load_state(self, state: GameState) -> None:
        """Install an existing state (resume, scenario). Emits nothing; see announce_resume."""
        self.state = state
        self.combat_history = []

    def announce_resume(self) -> None:
        """Re-announce gameStart/turnStart so observers can rebuild after a load."""
        if not self.state.players:
            raise EngineStateError("No game loaded")
        self._emit(events.game_start(self.state.players, self.state.map))
        if not self.state.game_over:
            self._emit(events.turn_start(self.state.turn, self.state.current_player))

    def reset(self) -> None:
        """Back to not_started. Turn history is the caller's to clear."""
        self.state = GameState()
        self.combat_history = []

    # ===== Mutating operations =====

    def attack(
        self,
        from_x: int,
        from_y: int,
        to_x: int,
        to_y: int,
        dice_rolls: dict[str, list[int]] | None = None,
    ) -> BattleResult | AttackError:
        """
        Attack (to_x, to_y) from (from_x, from_y) as the current player.

        Illegal attacks return AttackError and change nothing. Legal attacks emit attackResult,
        then playerEliminated for any player left with no tiles, then gameOver if one remains.
        dice_rolls replays recorded rolls instead of rolling.
        """
        state = self.state
        if state.status != STATUS_IN_PROGRESS:
            return AttackError("Game is over" if state.game_over else "Game has not started")

        current = state.current_player
        validation = validate_attack(state.map, from_x, from_y, to_x, to_y, current.id)
        if not validation.valid:
            logger.debug("Rejected attack (%d,%d)->(%d,%d) by %s: %s",
                         from_x, from_y, to_x, to_y, current.id, validation.reason)
            return AttackError(validation.reason)

        result = resolve_attack(
            state.map, from_x, from_y, to_x, to_y, current.id, state.dice_sides,
            rng=self.rng, dice_rolls=dice_rolls,
        )
        self.combat_history.append(result)
        self._emit(events.attack_result(result.to_dict()))
        self._check_win_condition()
        return result

    def _check_win_condition(self) -> None:
        state = self.state
        owners = distinct_owners(state.map)
        for player in state.players:
            if player.alive and player.id not in owners:
                player.alive = False
                logger.info("Player %s eliminated on turn %d", player.id, state.turn)
                self._emit(events.player_eliminated(player, state.turn))

        alive = state.alive_players()
        if len(alive) == 1 and not state.game_over:
            state.game_over = True
            state.winner = alive[0].id
            logger.info("Game over on turn %d, winner %s", state.turn, state.winner)
            self._emit(events.game_over(alive[0], state.turn))

    def end_turn(self, placements: list[tuple[int, int]] | None = None) -> ReinforcementResult | None:
        """
        Reinforce the finishing player, pass the turn to the next alive player and
        increment the turn counter. Returns None (and does nothing) once the game is over.
        placements replays a recorded reinforcement instead of drawing from the RNG.

        Raises:
            EngineStateError: no players loaded
            ValueError: placements do not fit the board
        """
        state = self.state
        if not state.players:
            raise EngineStateError("end_turn called with no players loaded")
        if state.game_over:
            return None

        finishing = state.current_player
        result = distribute_reinforcements(state, finishing.id, self.rng, placements)
        self._emit(events.reinforcements(
            finishing, result.earned, result.placed, result.stored, result.from_store))

        count = len(state.players)
        index = state.current_player_index
        for _ in range(count):
            index = (index + 1) % count
            if state.players[index].alive:
                break
        else:
            # Nobody alive; cannot happen while game_over is False
            raise EngineStateError("No alive player to pass the turn to")
        state.current_player_index = index
        state.turn += 1

        self._emit(events.turn_start(state.turn, state.current_player))
        return result
