from __future__ import annotations

import contextlib
import json
from http import HTTPStatus
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from game.errors import GameNotFoundError, InvalidParametersError, TooManyAttemptsError
from game.games import Games
from lobby.games.service import GameServerService
from lobby.games.types import AccessCodeResponse, JoinRequest
from lobby.server.settings import LobbyServerSettings
from lobby.server.websocket import publish_game
from shared.build_info import APP_VERSION, GIT_COMMIT
from shared.db import Database, SqliteGameStore
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request

    from shared.dal import GameStore

_MAX_REQUEST_BODY_SIZE = 4096


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION, "commit": GIT_COMMIT})


async def create_access_code(request: Request) -> JSONResponse:
    service: GameServerService = request.app.state.game_service
    try:
        access_code = service.get_unique_access_code()
    except TooManyAttemptsError as e:
        return JSONResponse(e.to_dict(), status_code=HTTPStatus.SERVICE_UNAVAILABLE)
    return JSONResponse(AccessCodeResponse(access_code=access_code).model_dump(), status_code=HTTPStatus.CREATED)


async def check_access_code(request: Request) -> JSONResponse:
    service: GameServerService = request.app.state.game_service
    access_code = request.path_params["access_code"]
    response = AccessCodeResponse(access_code=access_code, unique=service.is_access_code_unique(access_code))
    return JSONResponse(response.model_dump())


async def join_game(request: Request) -> JSONResponse:
    service: GameServerService = request.app.state.game_service

    raw_body = await request.body()
    if len(raw_body) > _MAX_REQUEST_BODY_SIZE:
        return JSONResponse({"error": "Request body too large"}, status_code=413)
    try:
        body = json.loads(raw_body)
        join_request = JoinRequest(**body)
    except (ValueError, TypeError, json.JSONDecodeError, UnicodeDecodeError, ValidationError):  # fmt: skip
        error = InvalidParametersError("Expected a JSON body with an access_code and an optional name")
        return JSONResponse(error.to_dict(), status_code=422)

    try:
        result = service.add_player(join_request.access_code, join_request.name)
    except GameNotFoundError as e:
        return JSONResponse(e.to_dict(), status_code=HTTPStatus.NOT_FOUND)
    return JSONResponse(result.model_dump())


async def get_game(request: Request) -> JSONResponse:
    """GET /games/{key}: the game document, looked up by id or access code."""
    games: Games = request.app.state.games
    game = games.find_by_id_or_access_code(request.path_params["key"])
    if game is None:
        error = GameNotFoundError("No game matches the specified id or access code")
        return JSONResponse(error.to_dict(), status_code=HTTPStatus.NOT_FOUND)
    return JSONResponse(game.to_document())


def create_app(
    settings: LobbyServerSettings | None = None,
    store: GameStore | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = LobbyServerSettings()

    # When the app opens its own database, it owns its lifecycle.
    owned_db: Database | None = None
    if store is None:
        owned_db = Database(settings.database_path)
        owned_db.connect()
        store = SqliteGameStore(owned_db)

    games = Games(store)
    game_service = GameServerService(
        games,
        code_length=settings.access_code_length,
        max_attempts=settings.access_code_attempts,
    )

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/access-codes", create_access_code, methods=["POST"]),
        Route("/access-codes/{access_code}", check_access_code, methods=["GET"]),
        Route("/games/join", join_game, methods=["POST"]),
        Route("/games/{key}", get_game, methods=["GET"]),
        WebSocketRoute("/ws/games/{key}", publish_game),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        yield
        if owned_db is not None:
            owned_db.close()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.games = games
    app.state.game_service = game_service

    logger.info("lobby server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """Factory function for uvicorn --factory lobby.server.app:get_app."""
    settings = LobbyServerSettings()
    setup_logging(log_dir=settings.log_dir)
    return create_app(settings=settings)
