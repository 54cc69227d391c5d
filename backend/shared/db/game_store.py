"""SQLite-backed game store."""

from __future__ import annotations

import json
import sqlite3
from typing import TYPE_CHECKING, Any

import structlog

from shared.dal.game_store import Document, GameStore, assign_path, split_path

if TYPE_CHECKING:
    from shared.db.connection import Database

logger = structlog.get_logger()


def _json_path(path: str) -> str:
    """Translate a dotted field path into an SQLite JSON path ("$.players[2].is_ready")."""
    parts = ["$"]
    for segment in split_path(path):
        if isinstance(segment, int):
            parts.append(f"[{segment}]")
        elif '"' in segment:
            raise ValueError(f"Invalid field path: {path!r}")
        else:
            parts.append(f'."{segment}"')
    return "".join(parts)


def _json_set_expr(fields: dict[str, Any]) -> tuple[str, list[str]]:
    """Build a json_set() expression over the data column and its parameters."""
    if not fields:
        return "data", []
    placeholders = ", ".join("?, json(?)" for _ in fields)
    params: list[str] = []
    for path, value in fields.items():
        params.extend((_json_path(path), json.dumps(value)))
    return f"json_set(data, {placeholders})", params


class SqliteGameStore(GameStore):
    """SQLite implementation of GameStore.

    Stores each game as one JSON document. Field updates and appends are
    applied in SQL with json_set/json_insert so only the named paths are
    touched; removals rewrite the affected document.
    """

    def __init__(self, db: Database) -> None:
        super().__init__()
        self._db = db

    def find_by_id(self, game_id: str) -> Document | None:
        return self._fetch_one("SELECT data FROM games WHERE id = ?", (game_id,))

    def find_by_id_or_access_code(self, key: str) -> Document | None:
        if not key:
            return None
        return self._fetch_one(
            "SELECT data FROM games WHERE id = ? OR access_code = ? ORDER BY id = ? DESC LIMIT 1",
            (key, key.lower(), key),
        )

    def find_active_by_access_code(self, access_code: str, state: str | None = None) -> Document | None:
        sql = "SELECT data FROM games WHERE access_code = ? AND active = 1"
        params: tuple[Any, ...] = (access_code.lower(),)
        if state is not None:
            sql += " AND state = ?"
            params = (*params, state)
        return self._fetch_one(sql + " LIMIT 1", params)

    def count_active_by_access_code(self, access_code: str) -> int:
        with self._lock:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM games WHERE access_code = ? AND active = 1",
                (access_code,),
            ).fetchone()
        return row[0]

    def _fetch_one(self, sql: str, params: tuple[Any, ...]) -> Document | None:
        with self._lock:
            row = self._db.connection.execute(sql, params).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    def _insert(self, game_id: str, document: Document) -> None:
        try:
            with self._db.transaction() as conn:
                conn.execute("INSERT INTO games (id, data) VALUES (?, ?)", (game_id, json.dumps(document)))
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Game {game_id!r} already exists") from e

    def _set_fields(self, game_id: str, fields: dict[str, Any]) -> int:
        conn = self._db.connection
        if not fields:
            row = conn.execute("SELECT 1 FROM games WHERE id = ?", (game_id,)).fetchone()
            return 0 if row is None else 1
        expr, params = _json_set_expr(fields)
        return self._execute_update(f"UPDATE games SET data = {expr} WHERE id = ?", (*params, game_id))  # noqa: S608

    def _push(self, game_id: str, field: str, value: Any, fields: dict[str, Any]) -> int:  # noqa: ANN401
        expr, params = _json_set_expr(fields)
        return self._execute_update(
            f"UPDATE games SET data = json_insert({expr}, ?, json(?)) WHERE id = ?",  # noqa: S608
            (*params, _json_path(field) + "[#]", json.dumps(value), game_id),
        )

    def _pull(self, game_id: str, field: str, value: Any, fields: dict[str, Any]) -> int:  # noqa: ANN401
        conn = self._db.connection
        row = conn.execute("SELECT data FROM games WHERE id = ?", (game_id,)).fetchone()
        if row is None:
            return 0
        doc = json.loads(row[0])
        for path, v in fields.items():
            assign_path(doc, path, v)
        doc[field] = [item for item in doc.get(field, []) if item != value]
        return self._execute_update("UPDATE games SET data = ? WHERE id = ?", (json.dumps(doc), game_id))

    def _execute_update(self, sql: str, params: tuple[Any, ...]) -> int:
        try:
            with self._db.transaction() as conn:
                cursor = conn.execute(sql, params)
        except sqlite3.Error:
            logger.exception("game update failed")
            raise
        return cursor.rowcount
