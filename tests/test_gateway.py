"""
Tests for the Feature Gateway.

Blocked calls must never reach the dispatcher and must come back as a
synthesized 503 with blocked=True.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from market_sources.features import MARKETS, VWATR
from market_sources.gateway import FeatureGateway
from market_sources.models import CallOptions, CallResult, DataSource


@pytest.fixture
def mock_dispatcher():
    """Dispatcher returning a successful result."""
    dispatcher = MagicMock()
    dispatcher.dispatch = AsyncMock(return_value=CallResult.ok([{"id": "bitcoin"}], status=200))
    return dispatcher


class TestFeatureGateway:
    """Tests for call_for_feature."""

    @pytest.mark.asyncio
    async def test_unblocked_call_delegates(self, policy_store, mock_dispatcher):
        gateway = FeatureGateway(policy_store, mock_dispatcher)
        options = CallOptions(query_params={"vs_currency": "usd"})

        result = await gateway.call_for_feature(
            MARKETS, "COINGECKO_COINS_MARKETS", DataSource.SECONDARY, options
        )

        assert result.success is True
        assert result.blocked is False
        assert result.data == [{"id": "bitcoin"}]
        assert result.status == 200
        mock_dispatcher.dispatch.assert_awaited_once_with("COINGECKO_COINS_MARKETS", options)

    @pytest.mark.asyncio
    async def test_failure_passed_through(self, policy_store, mock_dispatcher):
        mock_dispatcher.dispatch.return_value = CallResult.failure("API call failed: 502", status=502)
        gateway = FeatureGateway(policy_store, mock_dispatcher)

        result = await gateway.call_for_feature(MARKETS, "CRYPTO_PROXY_MARKETS")

        assert result.success is False
        assert result.blocked is False
        assert result.status == 502
        assert result.error == "API call failed: 502"

    @pytest.mark.asyncio
    async def test_feature_block_short_circuits(self, policy_store, mock_dispatcher):
        await policy_store.set_feature_blocking(VWATR, block_primary=True)
        gateway = FeatureGateway(policy_store, mock_dispatcher)

        result = await gateway.call_for_feature(VWATR, "CRYPTO_PROXY_VWATR", DataSource.PRIMARY)

        assert result.success is False
        assert result.blocked is True
        assert result.status == 503
        assert result.data is None
        assert result.error == (
            "Service temporarily unavailable: primary data source for vwatr is blocked"
        )
        mock_dispatcher.dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_global_block_short_circuits(self, policy_store, mock_dispatcher):
        await policy_store.set_global_blocking(block_coingecko=True)
        gateway = FeatureGateway(policy_store, mock_dispatcher)

        result = await gateway.call_for_feature(
            MARKETS, "COINGECKO_COINS_MARKETS", DataSource.SECONDARY
        )

        assert result.blocked is True
        mock_dispatcher.dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_other_source_unaffected(self, policy_store, mock_dispatcher):
        await policy_store.set_feature_blocking(MARKETS, block_secondary=True)
        gateway = FeatureGateway(policy_store, mock_dispatcher)

        result = await gateway.call_for_feature(MARKETS, "CRYPTO_PROXY_MARKETS", DataSource.PRIMARY)

        assert result.success is True
        mock_dispatcher.dispatch.assert_awaited_once()
