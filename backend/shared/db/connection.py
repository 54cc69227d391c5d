"""SQLite database connection and schema management."""

from __future__ import annotations

import contextlib
import os
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING, Self

import structlog

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = structlog.get_logger()

IN_MEMORY = ":memory:"
SCHEMA_VERSION = 1

_FILE_MODE = 0o600
_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA busy_timeout=5000",
)

# One row per game; the whole game is the JSON document in data. The lookup
# columns are generated from it so they always agree with the document.
_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS games (
    id TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    access_code TEXT GENERATED ALWAYS AS (json_extract(data, '$.access_code')) VIRTUAL,
    active INTEGER GENERATED ALWAYS AS (json_extract(data, '$.active')) VIRTUAL,
    state TEXT GENERATED ALWAYS AS (json_extract(data, '$.state')) VIRTUAL
);

CREATE INDEX IF NOT EXISTS idx_games_access_code
    ON games (access_code, active);
"""


class Database:
    """A single shared SQLite connection holding the games table.

    Usable as a context manager: ``with Database(path) as db: ...`` connects
    on entry and closes on exit.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None

    def __enter__(self) -> Self:
        self.connect()
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    @property
    def path(self) -> str:
        return self._path

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Database is not connected")
        return self._conn

    @property
    def schema_version(self) -> int:
        return self.connection.execute("PRAGMA user_version").fetchone()[0]

    def connect(self) -> None:
        """Open the database file (creating its directory) and ensure the schema exists."""
        if self._path != IN_MEMORY:
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)

        # The lobby server reads and writes from worker threads; GameStore
        # serializes access with its own lock.
        conn = sqlite3.connect(self._path, check_same_thread=False)
        for pragma in _PRAGMAS:
            conn.execute(pragma)
        conn.executescript(_SCHEMA_SQL)
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION}")
        self._conn = conn

        self._restrict_file_modes()
        logger.info("database connected", path=self._path, schema_version=SCHEMA_VERSION)

    def close(self) -> None:
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None
        logger.debug("database closed", path=self._path)

    @contextlib.contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield the connection; commit when the block succeeds, roll back if it raises."""
        conn = self.connection
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise
        conn.commit()

    def _restrict_file_modes(self) -> None:
        """Make the database and its WAL/SHM side files owner-only (POSIX, best effort)."""
        if os.name != "posix" or self._path == IN_MEMORY:  # pragma: no cover
            return
        for suffix in ("", "-wal", "-shm"):
            file = Path(self._path + suffix)
            if not file.exists():
                continue
            try:
                file.chmod(_FILE_MODE)
            except OSError:
                logger.warning("could not restrict file mode", path=str(file), mode=oct(_FILE_MODE))
