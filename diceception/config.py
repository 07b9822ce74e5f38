"""
Single place for default game/setup configuration.
Change the DEFAULT_* values to switch what a new game uses when the caller does not say.
"""
import os

DEFAULT_HUMAN_COUNT = 1
DEFAULT_BOT_COUNT = 3
DEFAULT_MAP_WIDTH = 10
DEFAULT_MAP_HEIGHT = 10
DEFAULT_MAP_STYLE = "random"  # full | simple | caves | random
DEFAULT_GAME_MODE = "classic"  # classic | fair | madness | 2of2

# Bot profile used when a player has no ai_id (see engine/strategy.py PROFILES)
DEFAULT_AI_ID = "balanced"

# Directory for JsonFileStore saves (CLI / demo). The API stores saves in the database.
SAVE_DIR = os.environ.get("DICECEPTION_SAVE_DIR", os.path.join(os.path.expanduser("~"), ".diceception"))
