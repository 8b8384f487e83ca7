"""Root conftest: test environment and log routing shared by every package."""

from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv

from shared.logging import configure_structlog

load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

# No handlers are installed here; caplog picks relay events up from stdlib.
configure_structlog()


@pytest.fixture(autouse=True)
def _isolated_log_context():
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def relay_log_events(caplog):
    """Collect the event names of structlog records emitted during a test."""
    caplog.set_level("DEBUG")

    def events() -> list[str]:
        return [record.msg["event"] for record in caplog.records if isinstance(record.msg, dict)]

    return events
