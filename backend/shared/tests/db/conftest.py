from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from shared.db import Database, MemoryGameStore, SqliteGameStore

if TYPE_CHECKING:
    from collections.abc import Iterator

    from shared.dal import GameStore


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path) -> Iterator[GameStore]:
    """Every GameStore implementation must pass the same behavioural tests."""
    if request.param == "memory":
        yield MemoryGameStore()
        return
    db = Database(tmp_path / "games.db")
    db.connect()
    yield SqliteGameStore(db)
    db.close()
