"""
Key-value storage backends for autosave.
Values are opaque strings (JSON documents). Backends raise StorageError when the
medium fails; callers decide whether that is fatal.
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Protocol


class StorageError(Exception):
    """The storage medium failed (unavailable, full, corrupt)."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryStore:
    """Dict-backed store. Survives nothing; used by tests and the in-process API default."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class JsonFileStore:
    """
    One file per key under a directory (<directory>/<key>.json).
    Writes go to a temp file first and are renamed into place, so a crash mid-write
    leaves the previous value intact.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Could not read {path}: {e}") from e
        except UnicodeDecodeError as e:
            raise StorageError(f"Could not decode {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageError(f"Could not write {path}: {e}") from e

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Could not delete {path}: {e}") from e
