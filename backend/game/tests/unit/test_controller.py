import logging
from unittest.mock import patch

import pytest

from game.controller import GameController
from game.errors import InvalidParametersError, TooManyAttemptsError
from game.models import Game, Host


class TestCreate:
    def test_defaults(self, controller):
        game = controller.create()

        assert isinstance(game, Game)
        assert game.state == "lobby"
        assert game.active is True
        assert isinstance(game.host, Host)
        assert game.host.id
        assert game.id is None

    def test_each_game_gets_a_new_host(self, controller):
        assert controller.create().host.id != controller.create().host.id

    def test_overrides(self, controller):
        game = controller.create({"name": "Quiz", "state": "setup", "rounds": 3})

        assert game.name == "Quiz"
        assert game.state == "setup"
        assert game.rounds == 3

    def test_created_game_can_be_saved(self, controller, games):
        game = controller.create({"name": "Test"})
        game.save()

        assert games.find_one(game.id).state == "lobby"

    def test_without_games_is_unbound(self):
        game = GameController().create()

        with pytest.raises(RuntimeError, match="not bound"):
            game.save()


class TestReset:
    def test_no_parameters(self, controller):
        controller.reset(None)

    def test_returns_game_to_lobby(self, controller, games):
        game = controller.create({"name": "Test", "state": "test-state"})
        game.save()
        game.update({"active": False})
        p1 = game.add_player({"name": "p1"})
        game.update_player(p1, {"is_ready": True})

        controller.reset(game)

        assert game.state == "lobby"
        assert game.active is True
        stored = games.find_one(game.id)
        assert stored.state == "lobby"
        assert stored.active is True
        assert stored.players[0].is_ready is False

    def test_player_fields_other_than_ready_survive(self, controller, games):
        game = controller.create()
        game.save()
        player = game.add_player({"name": "p1", "score": 7})

        controller.reset(game)

        stored = games.find_one(game.id).find_player(player.id)
        assert stored.name == "p1"
        assert stored.score == 7


class TestEnd:
    def test_no_parameters(self, controller):
        controller.end(None)

    def test_marks_inactive_and_keeps_state(self, controller, games):
        game = controller.create({"name": "Test", "state": "question"})
        game.save()

        controller.end(game)

        assert game.active is False
        stored = games.find_one(game.id)
        assert stored.active is False
        assert stored.state == "question"


class TestStates:
    def test_set_states_no_parameters(self, controller):
        controller.set_states(None)

    def test_set_states_adds_handler(self, controller):
        controller.set_states({"t1": lambda game: True})

        assert callable(controller.get_state("t1"))

    def test_get_state_no_parameters(self, controller):
        assert controller.get_state(None) is None

    def test_default_states_have_handlers(self, controller):
        assert callable(controller.get_state("lobby"))
        assert callable(controller.get_state("end"))

    def test_unknown_state(self, controller):
        assert controller.get_state("nope") is None

    def test_constructor_states(self, games):
        controller = GameController(games, states={"t2": lambda game: None})

        assert callable(controller.get_state("t2"))

    def test_handlers_can_be_replaced(self, controller):
        def custom_lobby(game):
            pass

        controller.set_states({"lobby": custom_lobby})

        assert controller.get_state("lobby") is custom_lobby


class TestRefreshState:
    def test_no_parameters(self, controller):
        controller.refresh_state(None)

    def test_runs_handler_for_current_state(self, controller):
        seen = []
        controller.set_states({"t3": seen.append})
        game = controller.create({"name": "Test"})
        game.save()
        game.update({"state": "t3"})

        controller.refresh_state(game)

        assert seen == [game]

    def test_unknown_or_invalid_handler_is_ignored(self, controller):
        controller.set_states({"invalid": 1234})
        game = controller.create({"name": "Test"})
        game.save()

        game.update({"state": "unknown"})
        controller.refresh_state(game)

        game.update({"state": "invalid"})
        controller.refresh_state(game)

    def test_lobby_handler_activates_game(self, controller, games):
        game = controller.create({"active": False})
        game.save()

        controller.refresh_state(game)

        assert games.find_one(game.id).active is True

    def test_end_handler_does_nothing(self, controller, games):
        game = controller.create({"state": "end", "active": False})
        game.save()

        controller.refresh_state(game)

        stored = games.find_one(game.id)
        assert stored.active is False
        assert stored.modified is None

    def test_handler_error_is_logged_and_raised(self, controller, caplog):
        def broken(game):
            raise ValueError("bad state")

        controller.set_states({"broken": broken})
        game = controller.create({"state": "broken"})

        with caplog.at_level(logging.ERROR), pytest.raises(ValueError, match="bad state"):
            controller.refresh_state(game)

        assert "state handler failed" in caplog.text


class TestIsReady:
    def test_no_parameters(self, controller):
        assert controller.is_ready(None) is False

    def test_two_players(self, controller):
        game = controller.create({"name": "Test"})
        game.save()

        assert controller.is_ready(game) is False

        player1 = game.add_player({"name": "test player 1"})
        player2 = game.add_player({"name": "test player 2"})
        assert controller.is_ready(game) is False

        game.update_player(player1, {"is_ready": True})
        assert controller.is_ready(game) is False

        game.update_player(player2, {"is_ready": True})
        assert controller.is_ready(game) is True


class TestGenerateAccessCode:
    async def test_stores_unique_code(self, controller, games):
        game = controller.create()
        game.save()

        await controller.generate_access_code(game)

        assert game.access_code
        assert len(game.access_code) == 4
        assert game.access_code == game.access_code.lower()
        assert games.find_one(game.id).access_code == game.access_code

    async def test_invalid_game_fails_before_calling_lobby(self, controller, lobby):
        with pytest.raises(InvalidParametersError) as exc_info:
            await controller.generate_access_code({"id": "not-a-game"})

        assert exc_info.value.code == "invalid-parameters"
        assert lobby.calls == []

    async def test_without_lobby_client(self, games):
        controller = GameController(games)
        game = controller.create()
        game.save()

        with pytest.raises(RuntimeError, match="no lobby client"):
            await controller.generate_access_code(game)

    async def test_exhausted_attempts_propagate(self, controller, saved_game):
        game = controller.create()
        game.save()

        with (
            patch("lobby.games.service.short_code", return_value=saved_game.access_code),
            pytest.raises(TooManyAttemptsError),
        ):
            await controller.generate_access_code(game)

        assert game.access_code is None
