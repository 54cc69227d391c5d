import logging

import pytest

from game.models import Host
from game.session.cache import MemoryCache
from game.session.manager import GameSession, cache_key
from game.session.watcher import SessionWatcher


@pytest.fixture
def watched(games, controller):
    """A session with a running watcher. seen records (state, round) for each "question" refresh."""
    seen = []
    controller.set_states({"question": lambda game: seen.append((game.state, game.round))})
    session = GameSession(games, MemoryCache())
    watcher = SessionWatcher(session, controller)
    watcher.start()
    yield session, watcher, seen
    watcher.stop()


def _create(controller, **overrides):
    game = controller.create({"host": Host(id="host1"), **overrides})
    game.save()
    return game


class TestSessionWatcher:
    def test_start_and_stop(self, games, controller):
        watcher = SessionWatcher(GameSession(games, MemoryCache()), controller)
        assert not watcher.running

        watcher.start()
        watcher.start()
        assert watcher.running

        watcher.stop()
        assert not watcher.running

    def test_saving_a_session_refreshes_the_game(self, controller, watched):
        session, _, seen = watched
        game = _create(controller, state="question", round=1)

        session.save(game.id, "host1")

        assert seen == [("question", 1)]

    def test_document_changes_rerun_the_handler(self, controller, watched):
        session, _, seen = watched
        game = _create(controller, state="question", round=1)
        session.save(game.id, "host1")

        game.update({"round": 2})

        assert seen == [("question", 1), ("question", 2)]

    def test_load_restores_role_from_cache(self, games, controller):
        game = _create(controller, access_code="wxyz")
        cache = MemoryCache()
        cache.set(cache_key(game.id), "host1")
        session = GameSession(games, cache)
        watcher = SessionWatcher(session, controller)
        watcher.start()

        session.load("wxyz")

        assert session.active_user_id == "host1"
        assert session.is_host()
        watcher.stop()

    def test_start_picks_up_existing_session(self, games, controller):
        seen = []
        controller.set_states({"question": seen.append})
        game = _create(controller, state="question")
        cache = MemoryCache()
        cache.set(cache_key(game.id), "host1")
        session = GameSession(games, cache)
        session.resume(game.id)

        watcher = SessionWatcher(session, controller)
        watcher.start()

        assert [g.id for g in seen] == [game.id]
        watcher.stop()

    def test_lobby_handler_reactivates_game(self, games, controller, watched):
        session, _, _ = watched
        game = _create(controller)
        session.save(game.id, "host1")

        game.update({"active": False})

        assert games.find_one(game.id).active is True

    def test_switching_games_moves_the_subscription(self, controller, watched):
        session, _, seen = watched
        first = _create(controller, state="question", round=1)
        second = _create(controller, state="question", round=10)
        session.save(first.id, "host1")
        session.save(second.id, "host1")

        first.update({"round": 2})
        second.update({"round": 11})

        assert seen == [("question", 1), ("question", 10), ("question", 11)]

    def test_clear_stops_refreshes(self, controller, watched):
        session, _, seen = watched
        game = _create(controller, state="question", round=1)
        session.save(game.id, "host1")
        session.clear()

        game.update({"round": 2})

        assert seen == [("question", 1)]

    def test_stop_stops_refreshes(self, controller, watched):
        session, watcher, seen = watched
        game = _create(controller, state="question", round=1)
        session.save(game.id, "host1")
        watcher.stop()

        game.update({"round": 2})

        assert seen == [("question", 1)]

    def test_handler_writes_are_not_handled_recursively(self, games, controller):
        depth = 0
        max_depth = 0
        counters = []

        def count_up(game):
            nonlocal depth, max_depth
            depth += 1
            max_depth = max(max_depth, depth)
            try:
                counters.append(game.counter)
                if game.counter < 3:
                    game.update({"counter": game.counter + 1})
            finally:
                depth -= 1

        controller.set_states({"counting": count_up})
        game = _create(controller, state="counting", counter=0)
        session = GameSession(games, MemoryCache())
        watcher = SessionWatcher(session, controller)
        watcher.start()

        session.save(game.id, "host1")

        assert counters == [0, 1, 2, 3]
        assert max_depth == 1
        assert games.find_one(game.id).counter == 3
        watcher.stop()

    def test_state_change_switches_handler(self, games, controller, watched):
        session, _, seen = watched
        game = _create(controller, round=1)
        session.save(game.id, "host1")

        game.update({"state": "question"})

        assert seen == [("question", 1)]

    def test_failing_handler_does_not_stop_watching(self, games, controller, caplog):
        calls = []

        def flaky(game):
            calls.append(game.round)
            if game.round == 1:
                raise RuntimeError("flaky")

        controller.set_states({"flaky": flaky})
        game = _create(controller, state="flaky", round=1)
        session = GameSession(games, MemoryCache())
        watcher = SessionWatcher(session, controller)
        watcher.start()

        with caplog.at_level(logging.WARNING):
            session.save(game.id, "host1")
            game.update({"round": 2})

        assert calls == [1, 2]
        assert "state refresh aborted" in caplog.text
        watcher.stop()
