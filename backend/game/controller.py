"""Game lifecycle controller: creates games and drives their named states.

A game's ``state`` names a handler registered on the controller. The
handler for the current state is re-run by refresh_state() whenever the
game document changes, so handlers must be idempotent. Two states are
always registered: "lobby" (makes the game active) and "end" (a marker
with no action; games are ended explicitly through end()).

Operations that take a game return early when handed anything other than
a Game. They sit on the document-change path and must not raise on stale
or missing input. create() and generate_access_code() are the exceptions:
the first builds a Game, the second fails with InvalidParametersError.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import structlog

from game.errors import InvalidParametersError
from game.models import Game, Host

if TYPE_CHECKING:
    from collections.abc import Callable

    from game.games import Games
    from lobby.client import LobbyClient

    StateHandler = Callable[[Game], object]

logger = structlog.get_logger()

LOBBY_STATE = "lobby"
END_STATE = "end"


def _enter_lobby(game: Game) -> None:
    if not game.active:
        game.update({"active": True})


def _enter_end(_game: Game) -> None:
    """Terminal marker state: nothing to do."""


class GameController:
    def __init__(
        self,
        games: Games | None = None,
        *,
        lobby: LobbyClient | None = None,
        states: Mapping[str, StateHandler] | None = None,
    ) -> None:
        self._games = games
        self._lobby = lobby
        self._states: dict[str, Any] = {LOBBY_STATE: _enter_lobby, END_STATE: _enter_end}
        self.set_states(states)

    def create(self, overrides: Mapping[str, Any] | None = None) -> Game:
        """Return a new, unsaved lobby-state game with a fresh host id.

        overrides are applied on top of the defaults and may replace any of
        them, including host and state.
        """
        game = Game(state=LOBBY_STATE, active=True, host=Host())
        for key, value in (overrides or {}).items():
            setattr(game, key, value)
        if self._games is not None:
            game.bind(self._games.store)
        return game

    async def generate_access_code(self, game: Game) -> Game:
        """Ask the lobby server for a unique access code and store it on game.

        Remote failures (e.g. TooManyAttemptsError) propagate unchanged.
        """
        if not isinstance(game, Game):
            raise InvalidParametersError("The game parameter was not a valid Game instance.")
        if self._lobby is None:
            raise RuntimeError("GameController has no lobby client")

        access_code = await self._lobby.get_unique_access_code()
        game.update({"access_code": access_code})
        logger.info("access code assigned", game_id=game.id, access_code=access_code)
        return game

    def reset(self, game: Game | None) -> None:
        """Return game to the lobby: nobody ready, state "lobby", active."""
        if not isinstance(game, Game):
            return
        for player in list(game.players):
            game.update_player(player, {"is_ready": False})
        game.update({"state": LOBBY_STATE, "active": True})
        logger.info("game reset", game_id=game.id)

    def end(self, game: Game | None) -> None:
        """Mark game inactive. Its state is left as is."""
        if not isinstance(game, Game):
            return
        game.update({"active": False})
        logger.info("game ended", game_id=game.id, state=game.state)

    def set_states(self, states: Mapping[str, StateHandler] | None) -> None:
        """Register state handlers, replacing any with the same name."""
        if not isinstance(states, Mapping):
            return
        self._states.update(states)

    def get_state(self, name: str | None) -> StateHandler | None:
        if name is None:
            return None
        return self._states.get(name)

    def refresh_state(self, game: Game | None) -> None:
        """Run the handler for game's current state, if one is registered and callable.

        An exception raised by the handler is logged and re-raised.
        """
        if not isinstance(game, Game):
            return
        handler = self.get_state(game.state)
        if not callable(handler):
            return
        try:
            handler(game)
        except Exception:
            logger.exception("state handler failed", game_id=game.id, state=game.state)
            raise

    def is_ready(self, game: Game | None) -> bool:
        """True when game has at least one player and every player is ready."""
        if not isinstance(game, Game) or not game.players:
            return False
        return all(p.is_ready for p in game.players)
