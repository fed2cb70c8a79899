from typing import Any, Dict, List, Optional, Union
from unittest.mock import patch

import aiohttp
import pytest
from fastapi.testclient import TestClient

from action_relay.api.server import create_app
from action_relay.common.config import RelayConfig
from action_relay.forwarder.client import WebhookForwarder


class FakeResponse:
    """Stand-in for an aiohttp response."""

    def __init__(
        self,
        status: int = 200,
        body: Union[str, bytes] = b"",
        content_type: Optional[str] = "application/json",
    ):
        self.status = status
        self._body = body.encode() if isinstance(body, str) else body
        self.headers = {"Content-Type": content_type} if content_type else {}

    async def read(self):
        return self._body


class _FakePost:
    def __init__(self, outcome, gate=None):
        self.outcome = outcome
        self.gate = gate

    async def __aenter__(self):
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome

    async def __aexit__(self, *exc_info):
        return None


class FakeClientSession:
    """Replacement for aiohttp.ClientSession replaying scripted outcomes.

    ``script`` maps a URL to a list of FakeResponse or exception instances,
    consumed in order; the last one repeats once the others are used up.
    URLs without a script refuse the connection. When ``gate`` is set to an
    asyncio.Event, every request waits for it before completing.
    """

    def __init__(self):
        self.script: Dict[str, List[Any]] = {}
        self.gate = None
        self.calls: List[Dict[str, Any]] = []
        self.session_kwargs: List[Dict[str, Any]] = []

    def __call__(self, **kwargs):
        self.session_kwargs.append(kwargs)
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    def post(self, url, json=None, headers=None):
        self.calls.append({"url": url, "json": json, "headers": headers})
        outcomes = self.script.get(url) or [
            aiohttp.ClientConnectionError(f"Cannot connect to host {url}")
        ]
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        return _FakePost(outcome, self.gate)

    def calls_to(self, url: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["url"] == url]


@pytest.fixture
def fake_session():
    """Fixture that patches aiohttp.ClientSession with a scripted fake."""
    session = FakeClientSession()
    with patch("aiohttp.ClientSession", session):
        yield session


@pytest.fixture
def relay_config():
    """Fixture that provides a relay configuration without retries or delays."""
    return RelayConfig(
        target_server="http://automation.internal:5678/webhook/actions",
        regenerate_target="http://automation.internal:5678/webhook/regenerate",
        additional_regenerate_webhook=None,
        webhook_timeout_ms=1000,
        webhook_retries=0,
        webhook_backoff_ms=0,
        fire_and_forget=False,
        metrics={"enabled": False},
    )


@pytest.fixture
def forwarder():
    """Fixture that provides a forwarder that never sleeps between retries."""
    return WebhookForwarder(timeout=1.0, max_retries=0, backoff_step=0)


@pytest.fixture
def make_app(relay_config):
    """Fixture that builds an app from the base config plus overrides."""

    def _make_app(**overrides):
        config = relay_config.model_copy(update=overrides)
        return create_app(config)

    return _make_app


@pytest.fixture
def make_client(make_app):
    """Fixture that builds a test client from the base config plus overrides."""

    def _make_client(**overrides):
        return TestClient(make_app(**overrides))

    return _make_client


@pytest.fixture
def relay_client(make_client):
    """Fixture that provides a test client for the default relay app."""
    return make_client()


@pytest.fixture
def fake_response():
    """Fixture that provides the FakeResponse factory."""
    return FakeResponse
