"""Server-authoritative game methods: access codes and joining by code.

These run on the lobby server because the uniqueness check must see every
active game. The check-then-claim sequence is not transactional: two
concurrent generations can pick the same code. With 4-character codes over
34 symbols once lower-cased the chance is small, and it is accepted rather than
enforced by a storage constraint.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from game.errors import GameNotFoundError, TooManyAttemptsError
from lobby.games.types import JoinResult
from shared.ids import DEFAULT_SHORT_CODE_LENGTH, short_code

if TYPE_CHECKING:
    from game.games import Games

logger = structlog.get_logger()

DEFAULT_MAX_ATTEMPTS = 5
JOINABLE_STATE = "lobby"


class GameServerService:
    def __init__(
        self,
        games: Games,
        *,
        code_length: int = DEFAULT_SHORT_CODE_LENGTH,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self._games = games
        self._code_length = code_length
        self._max_attempts = max_attempts

    @property
    def games(self) -> Games:
        return self._games

    def is_access_code_unique(self, access_code: object) -> bool:
        """True if access_code is a string no active game is using, in any case."""
        if not isinstance(access_code, str):
            return False
        return self._games.count_active_by_access_code(access_code.lower()) == 0

    def get_unique_access_code(self) -> str:
        """Generate a lower-case access code not used by any active game."""
        for attempt in range(1, self._max_attempts + 1):
            code = short_code(self._code_length)
            if self.is_access_code_unique(code):
                logger.info("access code generated", access_code=code, attempt=attempt)
                return code
            logger.debug("access code collision", access_code=code, attempt=attempt)

        logger.warning("access code generation exhausted", attempts=self._max_attempts)
        raise TooManyAttemptsError(
            f"A unique access code could not be generated despite {self._max_attempts} attempts",
        )

    def add_player(self, access_code: object, name: str | None = None) -> JoinResult:
        """Add a player named name to the active lobby-state game with this access code."""
        game = None
        if isinstance(access_code, str) and access_code:
            game = self._games.find_active_by_access_code(access_code.lower(), state=JOINABLE_STATE)
        if game is None or game.id is None:
            logger.info("join rejected", access_code=access_code)
            raise GameNotFoundError("No active game in the lobby state was found with the specified access code")

        player = game.add_player({"name": name})
        logger.info("player joined", game_id=game.id, player_id=player.id)
        return JoinResult(game_id=game.id, player_id=player.id)
