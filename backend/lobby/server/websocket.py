"""Live publication of one game document over a WebSocket.

The client connects to /ws/games/{key} (game id or access code), receives
the current document, then one message per change until either side
disconnects. Messages have the form {"game": <document or null>}; null
means the game no longer exists.
"""

from __future__ import annotations

import asyncio
import contextlib
import re
from typing import TYPE_CHECKING

import structlog
from starlette.websockets import WebSocketDisconnect

if TYPE_CHECKING:
    from starlette.websockets import WebSocket

    from game.games import Games
    from shared.dal import Document

logger = structlog.get_logger()

_KEY_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
_MAX_KEY_LENGTH = 64

CLOSE_INVALID_KEY = 4000
CLOSE_GAME_NOT_FOUND = 4004


async def publish_game(websocket: WebSocket) -> None:
    games: Games = websocket.app.state.games
    key = websocket.path_params["key"]
    if not _KEY_PATTERN.match(key) or len(key) > _MAX_KEY_LENGTH:
        await websocket.close(code=CLOSE_INVALID_KEY, reason="invalid_key")
        return

    game = games.find_by_id_or_access_code(key)
    if game is None or game.id is None:
        await websocket.close(code=CLOSE_GAME_NOT_FOUND, reason="game_not_found")
        return

    await websocket.accept()
    structlog.contextvars.bind_contextvars(game_id=game.id)

    # Store writes may come from any thread; hand documents to this loop.
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[Document | None] = asyncio.Queue()
    subscription = games.store.subscribe(
        game.id,
        lambda doc: loop.call_soon_threadsafe(queue.put_nowait, doc),
    )
    # Subscribed before the initial read so no change falls in between.
    await websocket.send_json({"game": games.store.find_by_id(game.id)})
    logger.info("game subscription opened")

    async def forward() -> None:
        while True:
            document = await queue.get()
            await websocket.send_json({"game": document})

    forward_task = asyncio.create_task(forward())
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    except (WebSocketDisconnect, RuntimeError):  # fmt: skip
        pass
    finally:
        subscription.cancel()
        forward_task.cancel()
        with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            await forward_task
        logger.info("game subscription closed")
        structlog.contextvars.clear_contextvars()
