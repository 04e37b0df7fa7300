"""
Shared fixtures for market_sources tests.

The aiohttp session is replaced by a MagicMock whose get() routes on URL
fragments, so concurrent sub-fetches resolve deterministically.
"""

from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from market_sources.config import MarketSourcesConfig
from market_sources.dispatcher import RequestDispatcher
from market_sources.endpoints import EndpointRegistry
from market_sources.gateway import FeatureGateway
from market_sources.policy import PolicyStore
from market_sources.storage import InMemoryKeyValueStore


BACKEND_URL = "https://backend.test"
COINGECKO_URL = "https://cg.test/api/v3"


def build_response(
    status: int = 200,
    json_data: Any = None,
    text: str = "",
    reason: str = "OK",
    json_error: Optional[Exception] = None,
) -> MagicMock:
    response = MagicMock()
    response.status = status
    response.reason = reason
    if json_error is not None:
        response.json = AsyncMock(side_effect=json_error)
    else:
        response.json = AsyncMock(return_value=json_data)
    response.text = AsyncMock(return_value=text)
    return response


def _context_for(response: MagicMock) -> MagicMock:
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return ctx


def build_session(routes: dict[str, Any]) -> MagicMock:
    """
    Session whose get() picks the first route whose fragment is in the URL.

    A route value is either a response mock or an exception to raise.
    """
    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()

    def get(url, **kwargs):
        for fragment, outcome in routes.items():
            if fragment in url:
                if isinstance(outcome, BaseException):
                    raise outcome
                return _context_for(outcome)
        raise AssertionError(f"Unexpected request: {url}")

    session.get = MagicMock(side_effect=get)
    return session


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def config():
    """Config pointing at test hosts."""
    return MarketSourcesConfig(
        backend_base_url=BACKEND_URL + "/",
        coingecko_base_url=COINGECKO_URL,
    )


@pytest.fixture
def registry(config):
    """Default endpoint registry."""
    return EndpointRegistry.from_config(config)


@pytest.fixture
def storage():
    """Empty in-memory key-value store."""
    return InMemoryKeyValueStore()


@pytest.fixture
def policy_store(storage):
    """Policy store with defaults."""
    return PolicyStore(storage)


@pytest.fixture
def make_response():
    """Factory for aiohttp response mocks."""
    return build_response


@pytest.fixture
def make_session():
    """Factory for routed aiohttp session mocks."""
    return build_session


@pytest.fixture
def make_gateway(registry, policy_store):
    """Factory: (gateway, session) over a routed session."""
    def factory(routes: dict[str, Any]) -> tuple[FeatureGateway, MagicMock]:
        session = build_session(routes)
        dispatcher = RequestDispatcher(registry, session=session)
        return FeatureGateway(policy_store, dispatcher), session
    return factory
