"""Shared fixtures for lobby tests."""

import pytest
from starlette.testclient import TestClient

from game.games import Games
from lobby.games.service import GameServerService
from lobby.server.app import create_app
from lobby.server.settings import LobbyServerSettings
from shared.db import MemoryGameStore


@pytest.fixture
def store():
    return MemoryGameStore()


@pytest.fixture
def games(store):
    return Games(store)


@pytest.fixture
def service(games):
    return GameServerService(games)


@pytest.fixture
def settings():
    return LobbyServerSettings(database_path=":memory:", cors_origins=["http://localhost:3000"])


@pytest.fixture
def app(settings, store):
    return create_app(settings=settings, store=store)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
