"""Collection view over a GameStore that hands out bound Game instances."""

from __future__ import annotations

from typing import TYPE_CHECKING

from game.models import Game

if TYPE_CHECKING:
    from collections.abc import Callable

    from shared.dal import Document, GameStore, Subscription


class Games:
    """Query and observe games, transforming stored documents into Games.

    Every Game returned is bound to the underlying store, so it can be
    mutated directly.
    """

    def __init__(self, store: GameStore) -> None:
        self._store = store

    @property
    def store(self) -> GameStore:
        return self._store

    def find_one(self, game_id: str | None) -> Game | None:
        if not game_id:
            return None
        return self._transform(self._store.find_by_id(game_id))

    def find_by_id_or_access_code(self, key: str | None) -> Game | None:
        if not key:
            return None
        return self._transform(self._store.find_by_id_or_access_code(key))

    def find_active_by_access_code(self, access_code: str, state: str | None = None) -> Game | None:
        return self._transform(self._store.find_active_by_access_code(access_code, state))

    def count_active_by_access_code(self, access_code: str) -> int:
        return self._store.count_active_by_access_code(access_code)

    def insert(self, game: Game) -> str:
        """Bind game to this collection's store and save it."""
        return game.bind(self._store).save()

    def subscribe(self, game_id: str, callback: Callable[[Game | None], None]) -> Subscription:
        """Call callback with a fresh Game (or None once it is gone) after each change."""
        return self._store.subscribe(game_id, lambda doc: callback(self._transform(doc)))

    def _transform(self, document: Document | None) -> Game | None:
        if document is None:
            return None
        return Game.from_document(document, self._store)
