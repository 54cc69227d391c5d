"""Client for the lobby server's game methods, used by devices."""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING, Protocol

import httpx
import structlog

from game.errors import RemoteMethodError, remote_error_from_dict
from lobby.games.types import AccessCodeResponse, JoinResult

if TYPE_CHECKING:
    from typing import Any

logger = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 10.0


class LobbyClient(Protocol):
    """The two operations that need server authority."""

    async def get_unique_access_code(self) -> str: ...

    async def add_player(self, access_code: str, name: str | None) -> JoinResult: ...


class HttpLobbyClient:
    """LobbyClient over HTTP.

    Error responses carrying {"error": code, "details": ...} are raised as
    the matching RemoteMethodError subclass. httpx.RequestError (connection
    failures, timeouts) propagates unchanged.
    """

    def __init__(
        self,
        base_url: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout

    async def get_unique_access_code(self) -> str:
        data = await self._post("/access-codes", expected=HTTPStatus.CREATED)
        return AccessCodeResponse.model_validate(data).access_code

    async def add_player(self, access_code: str, name: str | None) -> JoinResult:
        data = await self._post("/games/join", json={"access_code": access_code, "name": name})
        return JoinResult.model_validate(data)

    async def _post(
        self,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        expected: HTTPStatus = HTTPStatus.OK,
    ) -> dict[str, Any]:
        async with httpx.AsyncClient(
            base_url=self._base_url,
            transport=self._transport,
            timeout=self._timeout,
        ) as client:
            response = await client.post(path, json=json)

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code != expected:
            logger.warning("lobby call failed", path=path, status=response.status_code)
            if isinstance(data, dict) and "error" in data:
                raise remote_error_from_dict(data)
            raise RemoteMethodError(f"Unexpected response {response.status_code} from {path}")
        if not isinstance(data, dict):
            raise RemoteMethodError(f"Malformed response from {path}")
        return data
