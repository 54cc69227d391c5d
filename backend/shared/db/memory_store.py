"""Process-local game store, used as a device-side mirror and in tests."""

from __future__ import annotations

import copy
from typing import Any

from shared.dal.game_store import Document, GameStore, assign_path


class MemoryGameStore(GameStore):
    """Keeps documents in a dict; reads return deep copies."""

    def __init__(self) -> None:
        super().__init__()
        self._documents: dict[str, Document] = {}

    def find_by_id(self, game_id: str) -> Document | None:
        with self._lock:
            doc = self._documents.get(game_id)
            return copy.deepcopy(doc) if doc is not None else None

    def find_by_id_or_access_code(self, key: str) -> Document | None:
        if not key:
            return None
        with self._lock:
            doc = self._documents.get(key)
            if doc is None:
                code = key.lower()
                doc = next((d for d in self._documents.values() if d.get("access_code") == code), None)
            return copy.deepcopy(doc) if doc is not None else None

    def find_active_by_access_code(self, access_code: str, state: str | None = None) -> Document | None:
        code = access_code.lower()
        with self._lock:
            for doc in self._documents.values():
                if doc.get("access_code") != code or doc.get("active") is not True:
                    continue
                if state is not None and doc.get("state") != state:
                    continue
                return copy.deepcopy(doc)
        return None

    def count_active_by_access_code(self, access_code: str) -> int:
        with self._lock:
            return sum(
                1
                for doc in self._documents.values()
                if doc.get("access_code") == access_code and doc.get("active") is True
            )

    def _insert(self, game_id: str, document: Document) -> None:
        if game_id in self._documents:
            raise ValueError(f"Game {game_id!r} already exists")
        self._documents[game_id] = document

    def _set_fields(self, game_id: str, fields: dict[str, Any]) -> int:
        doc = self._documents.get(game_id)
        if doc is None:
            return 0
        for path, value in fields.items():
            assign_path(doc, path, value)
        return 1

    def _push(self, game_id: str, field: str, value: Any, fields: dict[str, Any]) -> int:  # noqa: ANN401
        doc = self._documents.get(game_id)
        if doc is None:
            return 0
        for path, v in fields.items():
            assign_path(doc, path, v)
        doc.setdefault(field, []).append(value)
        return 1

    def _pull(self, game_id: str, field: str, value: Any, fields: dict[str, Any]) -> int:  # noqa: ANN401
        doc = self._documents.get(game_id)
        if doc is None:
            return 0
        for path, v in fields.items():
            assign_path(doc, path, v)
        doc[field] = [item for item in doc.get(field, []) if item != value]
        return 1
