"""
KeyValueStore backed by the saves table.
Each call opens and commits its own session so a failed write never leaks into request sessions.
"""

from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from diceception.engine.persistence import StorageError

from .models import SaveRecord


class DatabaseStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, key: str) -> str | None:
        try:
            with self.session_factory() as db:
                row = db.get(SaveRecord, key)
                return row.value if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"Could not read {key!r}: {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            with self.session_factory() as db:
                row = db.get(SaveRecord, key)
                if row:
                    row.value = value
                else:
                    db.add(SaveRecord(key=key, value=value))
                db.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not write {key!r}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            with self.session_factory() as db:
                row = db.get(SaveRecord, key)
                if row:
                    db.delete(row)
                    db.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not delete {key!r}: {e}") from e

    def keys(self) -> list[str]:
        try:
            with self.session_factory() as db:
                return [k for (k,) in db.query(SaveRecord.key).all()]
        except SQLAlchemyError as e:
            raise StorageError(f"Could not list keys: {e}") from e
