import pytest

from relay.messaging.router import MessageRouter
from relay.server.app import create_app
from relay.server.settings import RelayServerSettings
from relay.session.manager import SessionManager
from relay.session.registry import RoomRegistry
from relay.tests.helpers import TEST_SEED
from relay.tests.mocks import MockConnection


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def manager(registry):
    return SessionManager(registry, seed_source=lambda: TEST_SEED)


@pytest.fixture
def message_router(manager):
    return MessageRouter(manager)


@pytest.fixture
def mock_connection():
    return MockConnection()


@pytest.fixture
def settings(tmp_path):
    return RelayServerSettings(static_dir=str(tmp_path / "no-static"))


@pytest.fixture
def app(settings, manager, message_router):
    return create_app(settings=settings, session_manager=manager, message_router=message_router)
