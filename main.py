"""
Main entry point for the Diceception engine.
Demonstrates core functionality with a headless bot-vs-bot game, then replays
the recorded action log and checks it reaches the same final board.
"""

import random
import sys

from diceception.engine.actions import attack_from_battle, end_turn_from_reinforcement
from diceception.engine.events import ATTACK_RESULT, EventRecorder
from diceception.engine.game import GameConfig, GameEngine
from diceception.engine.history import TurnHistory
from diceception.engine.queries import get_game_summary
from diceception.engine.reducer import replay_from_actions
from diceception.engine.session import GameSession
from diceception.engine.utils import print_game_state


def main(seed: int = 7):
    print("Diceception Engine - bot tournament demo")
    print("=" * 60)

    recorder = EventRecorder()
    engine = GameEngine(event_sink=recorder, rng=random.Random(seed))
    session = GameSession(engine, TurnHistory())

    game_config = GameConfig(
        human_count=0,
        bot_count=4,
        map_width=8,
        map_height=8,
        map_style="full",
        bot_ai_ids=["cautious", "balanced", "aggressive", "balanced"],
    )
    session.start(game_config)

    print("\n[INITIAL STATE]")
    print_game_state(engine.state)
    initial_state = session.history.initial_snapshot.to_state()

    # Record an action log alongside live play: rolls and reinforcement placements
    # are captured, so the replay needs no RNG.
    actions = []
    while not engine.state.game_over and engine.state.turn <= 500:
        player = engine.current_player
        outcome = session.play_bot_turns(max_turns=1)[0]
        actions.extend(attack_from_battle(battle) for battle in outcome.moves)
        if outcome.reinforcement is not None:
            actions.append(end_turn_from_reinforcement(player.id, outcome.reinforcement))

    print("\n[FINAL STATE]")
    print_game_state(engine.state)
    summary = get_game_summary(engine.state)
    attacks = sum(1 for e in recorder.events if e.type == ATTACK_RESULT)
    print(f"Winner: {summary['winner']} after {summary['turn']} turns, {attacks} attacks")
    print(f"Snapshots kept: {len(session.history)} (latest turn {session.history.latest.turn})")

    # ===== Replay =====
    print("\n[REPLAY FROM ACTION LOG]")
    try:
        final_state, events = replay_from_actions(initial_state, actions)
    except ValueError as e:
        print(f"✗ Replay failed: {e}")
        return 1
    same = final_state.to_dict() == engine.state.to_dict()
    print(f"{'✓' if same else '✗'} Replayed {len(actions)} actions ({len(events)} events), "
          f"final board {'matches' if same else 'differs'}")
    return 0 if same else 1


if __name__ == "__main__":
    sys.exit(main())
