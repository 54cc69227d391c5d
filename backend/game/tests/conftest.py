import pytest

from game.controller import GameController
from game.games import Games
from game.models import Game
from game.session.cache import MemoryCache
from game.session.manager import GameSession
from game.tests.mocks.lobby_client import InProcessLobbyClient
from lobby.games.service import GameServerService
from shared.db import MemoryGameStore


@pytest.fixture
def store():
    return MemoryGameStore()


@pytest.fixture
def games(store):
    return Games(store)


@pytest.fixture
def lobby(games):
    return InProcessLobbyClient(GameServerService(games))


@pytest.fixture
def controller(games, lobby):
    return GameController(games, lobby=lobby)


@pytest.fixture
def saved_game(games) -> Game:
    game = Game(name="Trivia", state="lobby", active=True, access_code="abcd")
    games.insert(game)
    return game


@pytest.fixture
def session(games, lobby):
    return GameSession(games, MemoryCache(), lobby=lobby)
