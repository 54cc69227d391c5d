"""Wires a GameSession and a GameController to the change feeds.

- When the active game id changes, the device's role is restored once and
  the document subscription moves to the new game.
- When the active game document changes, the controller re-runs the
  handler for its current state.

A state handler usually writes to the game, which publishes another change
while the handler is still running. Such changes are not handled
recursively: the latest one is queued and refreshed after the running
handler returns.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from game.session.manager import ACTIVE_GAME_KEY

if TYPE_CHECKING:
    from game.controller import GameController
    from game.models import Game
    from game.session.manager import GameSession
    from shared.dal import Subscription

logger = structlog.get_logger()


class SessionWatcher:
    def __init__(self, session: GameSession, controller: GameController) -> None:
        self._session = session
        self._controller = controller
        self._active_sub: Subscription | None = None
        self._game_sub: Subscription | None = None
        self._refreshing = False
        self._pending: Game | None = None

    @property
    def running(self) -> bool:
        return self._active_sub is not None

    def start(self) -> None:
        """Subscribe, then restore and refresh whatever game is already active."""
        if self._active_sub is not None:
            return
        self._active_sub = self._session.state.subscribe(ACTIVE_GAME_KEY, self._on_active_game_changed)
        self._activate(self._session.active_game_id)

    def stop(self) -> None:
        if self._active_sub is not None:
            self._active_sub.cancel()
            self._active_sub = None
        self._watch_game(None)

    def _on_active_game_changed(self, _old: Any, new: Any) -> None:  # noqa: ANN401
        self._activate(new)

    def _activate(self, game_id: str | None) -> None:
        self._watch_game(game_id)
        if not game_id:
            return
        self._session.restore()
        game = self._session.get_current_game()
        if game is not None:
            self._refresh(game)

    def _watch_game(self, game_id: str | None) -> None:
        if self._game_sub is not None:
            self._game_sub.cancel()
            self._game_sub = None
        if game_id:
            self._game_sub = self._session.games.subscribe(game_id, self._on_game_changed)

    def _on_game_changed(self, game: Game | None) -> None:
        if game is not None:
            self._refresh(game)

    def _refresh(self, game: Game) -> None:
        if self._refreshing:
            self._pending = game
            return

        self._refreshing = True
        try:
            current: Game | None = game
            while current is not None:
                self._pending = None
                try:
                    self._controller.refresh_state(current)
                except Exception:  # noqa: BLE001
                    # Already logged with traceback by the controller.
                    logger.warning("state refresh aborted", game_id=current.id, state=current.state)
                current = self._pending
        finally:
            self._refreshing = False
            self._pending = None
