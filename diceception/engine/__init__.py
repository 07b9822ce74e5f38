"""
Diceception Engine
Turn-based territory conquest: tiles, dice, probabilistic combat, bots and turn history.
Core engine without web framework, database, or UI.
"""

DEFAULT_DICE_SIDES = 6
DEFAULT_MAX_DICE = 9

# Safety valve for bot turns, not a balance rule.
MAX_BOT_MOVES_PER_TURN = 100

# Turn history keeps the last N snapshots in memory.
MAX_HISTORY_LENGTH = 100

# Key of the single durable resume record in the injected key-value store.
AUTOSAVE_KEY = "diceception_autosave"
