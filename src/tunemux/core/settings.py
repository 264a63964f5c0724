"""
Key-value settings persistence.

Stores strings, booleans, and string sets under string keys. The sqlite
store is what the app uses; the in-memory store backs tests and throwaway
sessions.
"""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Protocol

from loguru import logger

from .config import get_data_dir


class SettingsStore(Protocol):
    """Interface every settings backend provides."""

    def get_string(self, key: str, default: Optional[str] = None) -> Optional[str]: ...

    def get_bool(self, key: str, default: bool = False) -> bool: ...

    def get_string_set(self, key: str, default: frozenset[str] = frozenset()) -> frozenset[str]: ...

    def put_string(self, key: str, value: str) -> None: ...

    def put_bool(self, key: str, value: bool) -> None: ...

    def put_string_set(self, key: str, value: frozenset[str] | set[str]) -> None: ...


def _decode_bool(raw: str, default: bool) -> bool:
    if raw == "true":
        return True
    if raw == "false":
        return False
    return default


def _decode_string_set(key: str, raw: str, default: frozenset[str]) -> frozenset[str]:
    try:
        values = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Corrupt string set for setting '{key}', using default")
        return default
    if not isinstance(values, list):
        logger.warning(f"Setting '{key}' is not a list, using default")
        return default
    return frozenset(str(v) for v in values)


def _encode_string_set(value: frozenset[str] | set[str]) -> str:
    return json.dumps(sorted(value))


class MemorySettingsStore:
    """Settings kept in a dict for the lifetime of the process."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._values: dict[str, str] = dict(initial or {})

    def get_string(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._values.get(key, default)

    def get_bool(self, key: str, default: bool = False) -> bool:
        raw = self._values.get(key)
        return default if raw is None else _decode_bool(raw, default)

    def get_string_set(
        self, key: str, default: frozenset[str] = frozenset()
    ) -> frozenset[str]:
        raw = self._values.get(key)
        return default if raw is None else _decode_string_set(key, raw, default)

    def put_string(self, key: str, value: str) -> None:
        self._values[key] = value

    def put_bool(self, key: str, value: bool) -> None:
        self._values[key] = "true" if value else "false"

    def put_string_set(self, key: str, value: frozenset[str] | set[str]) -> None:
        self._values[key] = _encode_string_set(value)


def get_settings_path() -> Path:
    """Get the path to the settings database."""
    return get_data_dir() / "settings.db"


class SqliteSettingsStore:
    """Settings persisted to a single-table SQLite database."""

    def __init__(self, db_path: Optional[Path] = None):
        self._db_path = db_path or get_settings_path()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            conn.commit()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._db_path, timeout=30.0)
        try:
            yield conn
        finally:
            conn.close()

    def _read(self, key: str) -> Optional[str]:
        try:
            with self._connection() as conn:
                row = conn.execute(
                    "SELECT value FROM settings WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            logger.warning(f"Failed to read setting '{key}': {e}")
            return None
        return row[0] if row else None

    def _write(self, key: str, value: str) -> None:
        try:
            with self._connection() as conn:
                conn.execute(
                    """
                    INSERT INTO settings (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (key, value),
                )
                conn.commit()
        except sqlite3.Error:
            # Writes are fire-and-forget for callers
            logger.exception(f"Failed to write setting '{key}'")

    def get_string(self, key: str, default: Optional[str] = None) -> Optional[str]:
        raw = self._read(key)
        return default if raw is None else raw

    def get_bool(self, key: str, default: bool = False) -> bool:
        raw = self._read(key)
        return default if raw is None else _decode_bool(raw, default)

    def get_string_set(
        self, key: str, default: frozenset[str] = frozenset()
    ) -> frozenset[str]:
        raw = self._read(key)
        return default if raw is None else _decode_string_set(key, raw, default)

    def put_string(self, key: str, value: str) -> None:
        self._write(key, value)

    def put_bool(self, key: str, value: bool) -> None:
        self._write(key, "true" if value else "false")

    def put_string_set(self, key: str, value: frozenset[str] | set[str]) -> None:
        self._write(key, _encode_string_set(value))
