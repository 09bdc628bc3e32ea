"""Key/value persistence with whole-value semantics per key."""

from __future__ import annotations

import json
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Protocol, Union

Keys = Union[str, Iterable[str]]


def _key_list(keys: Keys) -> list[str]:
    if isinstance(keys, str):
        return [keys]
    return list(keys)


class Storage(Protocol):
    """Asynchronous store mirroring the extension storage area."""

    async def get(self, keys: Keys) -> Dict[str, Any]: ...

    async def set(self, items: Mapping[str, Any]) -> None: ...

    async def remove(self, keys: Keys) -> None: ...


class MemoryStorage:
    """Process-local store; values round-trip through JSON like a real one."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    async def get(self, keys: Keys) -> Dict[str, Any]:
        return {key: json.loads(self._data[key]) for key in _key_list(keys) if key in self._data}

    async def set(self, items: Mapping[str, Any]) -> None:
        for key, value in items.items():
            self._data[key] = json.dumps(value)

    async def remove(self, keys: Keys) -> None:
        for key in _key_list(keys):
            self._data.pop(key, None)


class SQLiteStorage:
    """SQLite-backed store holding one JSON document per key."""

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        with closing(self.conn.cursor()) as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            self.conn.commit()

    async def get(self, keys: Keys) -> Dict[str, Any]:
        wanted = _key_list(keys)
        if not wanted:
            return {}
        placeholders = ", ".join("?" for _ in wanted)
        with closing(self.conn.cursor()) as cur:
            cur.execute(f"SELECT key, value FROM records WHERE key IN ({placeholders})", wanted)
            rows = cur.fetchall()
        return {row["key"]: json.loads(row["value"]) for row in rows}

    async def set(self, items: Mapping[str, Any]) -> None:
        payload = [(key, json.dumps(value)) for key, value in items.items()]
        with closing(self.conn.cursor()) as cur:
            cur.executemany(
                """
                INSERT INTO records (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
                """,
                payload,
            )
            self.conn.commit()

    async def remove(self, keys: Keys) -> None:
        with closing(self.conn.cursor()) as cur:
            cur.executemany("DELETE FROM records WHERE key = ?", [(key,) for key in _key_list(keys)])
            self.conn.commit()

    def close(self) -> None:
        self.conn.close()
