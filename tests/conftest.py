import pytest
from fastapi.testclient import TestClient

from chat_relay.core.settings import Settings
from chat_relay.services.chat_relay import ChatRelay
from fakes import FakeAnthropic


@pytest.fixture
def settings():
    return Settings(anthropic_api_key="sk-ant-test", _env_file=None)


@pytest.fixture
def make_relay(settings):
    def _make(stream=None, error=None, settings_override=None):
        fake = FakeAnthropic(stream=stream, error=error)
        return ChatRelay(client=fake, settings=settings_override or settings)

    return _make


@pytest.fixture
def make_client():
    from main import create_app

    clients = []

    def _make(relay):
        client = TestClient(create_app(relay.settings, relay=relay))
        clients.append(client)
        return client

    yield _make

    for c in clients:
        c.close()
