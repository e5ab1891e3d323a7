from typing import Optional
from unittest.mock import AsyncMock, Mock

import pytest

from fakes import FakeProvider, make_pool
from infinet_ai.config import Settings
from infinet_ai.services.provider_pool import ProviderPool
from infinet_ai.services.runtime import build_runtime
from infinet_ai.services.session_store import InMemorySessionStore
from infinet_ai.services.speech_service import SpeechService


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def whatsapp():
    gateway = Mock()
    gateway.configured = True
    gateway.send_text = AsyncMock(return_value=True)
    gateway.send_image = AsyncMock(return_value=True)
    gateway.send_audio = AsyncMock(return_value=True)
    return gateway


@pytest.fixture
def make_runtime(settings, store, whatsapp):
    """Build a runtime around fake providers; nothing touches the network."""

    def _build(pool: Optional[ProviderPool] = None, speech: Optional[SpeechService] = None):
        return build_runtime(
            settings,
            pool=pool or make_pool(chat=[FakeProvider("gemini")]),
            store=store,
            speech=speech or SpeechService(),
            whatsapp=whatsapp,
        )

    return _build


@pytest.fixture(autouse=True)
def _no_alerts(monkeypatch):
    """Operator alerts go to Telegram; keep them off the network."""
    sent = AsyncMock(return_value=False)
    monkeypatch.setattr("infinet_ai.services.conversation.alert_error", sent)
    monkeypatch.setattr("infinet_ai.services.whatsapp_service.alert_critical", sent)
    return sent
