#!/usr/bin/env python3
"""
Delete a stuck auto-save so the game stops offering to resume it.
Usage: python scripts/clear_autosave.py [game_id]            (API database)
       python scripts/clear_autosave.py --files [key]       (CLI save directory)
Without a game id the single-player key (diceception_autosave) is cleared.
"""
import sys
import os

# Allow running from repo root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from diceception.config import SAVE_DIR
from diceception.engine import AUTOSAVE_KEY
from diceception.engine.persistence import JsonFileStore, StorageError


def clear_file_save(key: str) -> None:
    store = JsonFileStore(SAVE_DIR)
    try:
        if store.get(key) is None:
            print(f"No auto-save {key!r} in {SAVE_DIR}")
            return
        store.delete(key)
    except StorageError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Deleted auto-save {key!r} from {SAVE_DIR}.")


def clear_database_save(key: str) -> None:
    from diceception.api.database import SessionLocal, get_db_file_path, init_db
    from diceception.api.models import SaveRecord

    init_db()
    db = SessionLocal()
    try:
        row = db.get(SaveRecord, key)
        if not row:
            print(f"No auto-save found with key: {key!r}")
            return
        db.delete(row)
        db.commit()
        where = get_db_file_path() or "database"
        print(f"Deleted auto-save {key!r} from {where}. The game will start fresh next time.")
    except Exception as e:
        db.rollback()
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


def main() -> None:
    args = [a.strip() for a in sys.argv[1:] if a.strip()]
    if args and args[0] == "--files":
        clear_file_save(args[1] if len(args) > 1 else AUTOSAVE_KEY)
        return
    key = f"{AUTOSAVE_KEY}_{args[0]}" if args else AUTOSAVE_KEY
    clear_database_save(key)


if __name__ == "__main__":
    main()
