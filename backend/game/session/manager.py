"""Per-device game session: which game this device is in, and as whom.

The active game and user live in a TransientStore. The role a device held
in each game (host id or player id) is also remembered in a DurableCache
under "game.{game_id}", so a reload, crash or later visit can recover it.
A cached role is only trusted while the live game still lists it as the
host or as one of its players.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from game.errors import PlayerNotFoundError
from game.session.cache import TransientStore

if TYPE_CHECKING:
    from collections.abc import Mapping

    from game.games import Games
    from game.models import Game, Player
    from game.session.cache import DurableCache
    from lobby.client import LobbyClient
    from lobby.games.types import JoinResult

logger = structlog.get_logger()

ACTIVE_GAME_KEY = "active.game_id"
ACTIVE_USER_KEY = "active.user_id"


def cache_key(game_id: str) -> str:
    return f"game.{game_id}"


def _is_member(game: Game, user_id: str) -> bool:
    if game.host is not None and game.host.id == user_id:
        return True
    return game.find_player(user_id) is not None


class GameSession:
    def __init__(
        self,
        games: Games,
        cache: DurableCache,
        state: TransientStore | None = None,
        lobby: LobbyClient | None = None,
    ) -> None:
        self._games = games
        self._cache = cache
        self._state = state if state is not None else TransientStore()
        self._lobby = lobby

    @property
    def games(self) -> Games:
        return self._games

    @property
    def state(self) -> TransientStore:
        return self._state

    @property
    def active_game_id(self) -> str | None:
        return self._state.get(ACTIVE_GAME_KEY)

    @property
    def active_user_id(self) -> str | None:
        return self._state.get(ACTIVE_USER_KEY)

    def save(self, game_id: str | None, player_or_host_id: str | None) -> None:
        """Make game_id/player_or_host_id this device's active session and remember it.

        Missing ids are logged and ignored.
        """
        if not game_id or not player_or_host_id:
            logger.warning(
                "session save ignored: missing game or player id",
                game_id=game_id,
                user_id=player_or_host_id,
            )
            return

        self._cache.set(cache_key(game_id), player_or_host_id)
        self._state.set(ACTIVE_GAME_KEY, game_id)
        self._state.set(ACTIVE_USER_KEY, player_or_host_id)
        logger.debug("session saved", game_id=game_id, user_id=player_or_host_id)

    def load(self, game_id_or_access_code: str | None) -> Game | None:
        """Find a game by id or access code and make it the active game.

        Changing the active game is what triggers restore() when a
        SessionWatcher is running. Returns the game, or None if none matched.
        """
        if not game_id_or_access_code:
            return None
        game = self._games.find_by_id_or_access_code(game_id_or_access_code)
        if game is None:
            logger.info("no game to load", key=game_id_or_access_code)
            return None
        self._state.set(ACTIVE_GAME_KEY, game.id)
        return game

    def resume(self, game_id: str | None) -> str | None:
        """Activate a known game id and restore this device's role in it directly."""
        if not game_id:
            return None
        self._state.set(ACTIVE_GAME_KEY, game_id)
        return self.restore()

    def restore(self) -> str | None:
        """Resolve this device's role in the active game from the durable cache.

        A cached id that is neither the host nor a current player (booted
        player, stale or forged entry) is purged. The result, possibly None,
        becomes the active user. If there is no active game, or it cannot be
        found, nothing changes and None is returned.
        """
        game_id = self.active_game_id
        if not game_id:
            return None
        game = self._games.find_one(game_id)
        if game is None:
            return None

        user_id = self._cache.get(cache_key(game_id))
        if user_id and not _is_member(game, user_id):
            self._cache.clear(cache_key(game_id))
            logger.info("stale session role purged", game_id=game_id, user_id=user_id)
            user_id = None

        self._state.set(ACTIVE_USER_KEY, user_id)
        return user_id

    def clear(self) -> None:
        """Forget the active game, both here and in the durable cache."""
        game_id = self.active_game_id
        if game_id:
            self._cache.clear(cache_key(game_id))
        self._state.set(ACTIVE_GAME_KEY, None)
        self._state.set(ACTIVE_USER_KEY, None)

    async def join(self, access_code: str, name: str | None = None) -> JoinResult:
        """Join the game with access_code as a new player and save the session.

        Raises GameNotFoundError (from the lobby server) when no active game
        in the lobby state has that code.
        """
        if self._lobby is None:
            raise RuntimeError("GameSession has no lobby client")
        result = await self._lobby.add_player(access_code, name)
        self.save(result.game_id, result.player_id)
        return result

    def get_current_game(self) -> Game | None:
        return self._games.find_one(self.active_game_id)

    def get_current_player(self) -> Player | None:
        """The active user's player record. None for the host and for visitors."""
        game = self.get_current_game()
        if game is None:
            return None
        return game.find_player(self.active_user_id)

    def is_host(self) -> bool:
        game = self.get_current_game()
        user_id = self.active_user_id
        return bool(game is not None and game.host is not None and user_id and game.host.id == user_id)

    def update_current_player(self, changes: Mapping[str, Any]) -> Player:
        game = self.get_current_game()
        if game is None:
            raise RuntimeError("No active game")
        player = game.find_player(self.active_user_id)
        if player is None:
            raise PlayerNotFoundError("The current user is not a player in the active game")
        return game.update_player(player, changes)
