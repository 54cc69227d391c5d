"""Root conftest: test environment and log capture shared by every package."""

from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv

from shared.logging import configure_structlog

load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

# No handlers are installed: pytest's caplog receives the stdlib records.
configure_structlog()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Prevent bound context (game_id etc.) leaking between tests."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
