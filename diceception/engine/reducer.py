"""
Action reducer.
Applies actions to a copy of the state through a throwaway GameEngine, enforcing the same
rules as live play. Returns (new_state, events) where events describe what happened.
"""

import random

from diceception.engine.actions import ATTACK, END_TURN, Action
from diceception.engine.combat import AttackError
from diceception.engine.events import EventRecorder, GameEvent
from diceception.engine.game import GameEngine
from diceception.engine.state import GameState


def _point(payload: dict, key: str) -> tuple[int, int]:
    point = payload.get(key)
    if not isinstance(point, dict) or "x" not in point or "y" not in point:
        raise ValueError(f"Attack payload missing '{key}' coordinates")
    return int(point["x"]), int(point["y"])


def apply_action(
    state: GameState,
    action: Action,
    rng: random.Random | None = None,
) -> tuple[GameState, list[GameEvent]]:
    """
    Apply a single action to the current state, returning new state and events.

    Validates:
    - Game is in progress
    - Action player matches the current player
    - Attacks are legal and carry recorded dice_rolls

    rng is only used for end_turn actions recorded without placements.

    Raises:
        ValueError: the action is not legal in this state
    """
    if state.game_over:
        raise ValueError(f"Game is over. Player {state.winner} has won.")
    current = state.current_player
    if current is None:
        raise ValueError("No game in progress")
    if action.player != current.id:
        raise ValueError(
            f"Action player {action.player} does not match current player {current.id}")

    recorder = EventRecorder()
    engine = GameEngine(event_sink=recorder, rng=rng)
    engine.load_state(state.copy())

    if action.type == ATTACK:
        dice_rolls = action.payload.get("dice_rolls")
        if dice_rolls is None:
            raise ValueError("Attack actions must carry dice_rolls")
        from_x, from_y = _point(action.payload, "from")
        to_x, to_y = _point(action.payload, "to")
        result = engine.attack(from_x, from_y, to_x, to_y, dice_rolls=dice_rolls)
        if isinstance(result, AttackError):
            raise ValueError(result.error)

    elif action.type == END_TURN:
        engine.end_turn(placements=action.payload.get("placements"))

    else:
        raise ValueError(f"Unknown action type: {action.type}")

    return engine.state, recorder.events


def replay_from_actions(
    initial_state: GameState,
    actions: list[Action],
    rng: random.Random | None = None,
) -> tuple[GameState, list[GameEvent]]:
    """
    Replay a series of actions from an initial state.
    Event sourcing: state is derived from the action log.

    Returns:
        Tuple of (final_state, all_events) after all actions applied
    """
    rng = rng or random.Random()
    current_state = initial_state.copy()
    all_events: list[GameEvent] = []

    for action in actions:
        current_state, events = apply_action(current_state, action, rng)
        all_events.extend(events)

    return current_state, all_events
