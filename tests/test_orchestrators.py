"""
Tests for the Source Fallback Orchestrators.

============================================================
PURPOSE
============================================================
Preferred-then-alternate fetching for markets and dominance.

TEST PRINCIPLES:
- Preferred source success never touches the alternate
- Fallback disabled means the alternate is never invoked
- Exhaustion names both sources
- The computed dominance path is skipped before any request
  when CoinGecko is blocked

============================================================
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from market_sources.dominance.calculator import DominanceCalculator
from market_sources.dominance.data_source import DominanceDataSource
from market_sources.dominance.service import DominanceOrchestrator
from market_sources.markets import MarketsOrchestrator, fetch_markets
from market_sources.models import (
    CallResult,
    DataSource,
    DominanceAnalysis,
    MarketCapData,
    MarketsOptions,
    MarketsResponse,
)
from market_sources.orchestrator import SourceFallbackOrchestrator, describe_result


NOW = 1_700_000_000_000

BACKEND_ROWS = [{"id": "bitcoin", "symbol": "btc", "current_price": 60000.0}]
COINGECKO_ROWS = [{"id": "ethereum", "symbol": "eth", "current_price": 3000.0}]

BACKEND_DOMINANCE = {
    "totalMarketCap": 3.0e12,
    "btc": {"marketCap": 1.65e12, "dominance": 55.0},
    "eth": {"marketCap": 390e9, "dominance": 13.0},
    "stablecoins": {"marketCap": 240e9, "dominance": 8.0},
    "others": {"marketCap": 720e9, "dominance": 24.0},
    "timestamp": 1_699_999_999_000,
}

GLOBAL_PAYLOAD = {"data": {"total_market_cap": {"usd": 3.0e12}}}

COINS_PAYLOAD = [
    {"id": "bitcoin", "market_cap": 1.65e12},
    {"id": "ethereum", "market_cap": 390e9},
    {"id": "tether", "market_cap": 150e9},
    {"id": "usd-coin", "market_cap": 90e9},
]


def error_response(make_response, status=500, reason="Internal Server Error"):
    return make_response(status, reason=reason, text="upstream error")


# ============================================================
# MARKETS
# ============================================================

class TestMarketsOrchestrator:
    """Tests for MarketsOrchestrator."""

    @pytest.mark.asyncio
    async def test_primary_success(self, make_gateway, make_response):
        gateway, session = make_gateway({
            "/api/markets": make_response(200, BACKEND_ROWS),
            "/coins/markets": make_response(200, COINGECKO_ROWS),
        })
        markets = MarketsOrchestrator(gateway, clock=lambda: NOW)

        result = await markets.fetch(MarketsOptions(per_page=50))

        assert result.success is True
        assert result.source is DataSource.PRIMARY
        assert result.fallback_used is False
        assert result.attempted == (DataSource.PRIMARY,)
        assert result.data == MarketsResponse(data=BACKEND_ROWS, fetched_at=NOW)
        assert session.get.call_count == 1
        assert "per_page=50" in session.get.call_args.args[0]
        assert "/api/markets?" in session.get.call_args.args[0]

    @pytest.mark.asyncio
    async def test_falls_back_to_coingecko(self, make_gateway, make_response):
        gateway, session = make_gateway({
            "/api/markets": error_response(make_response),
            "/coins/markets": make_response(200, COINGECKO_ROWS),
        })

        result = await MarketsOrchestrator(gateway).fetch()

        assert result.success is True
        assert result.source is DataSource.SECONDARY
        assert result.fallback_used is True
        assert result.attempted == (DataSource.PRIMARY, DataSource.SECONDARY)
        assert result.data.data == COINGECKO_ROWS
        assert session.get.call_count == 2

    @pytest.mark.asyncio
    async def test_fallback_disabled_never_tries_alternate(
        self, make_gateway, make_response, policy_store
    ):
        await policy_store.set_global_preferences(enable_fallback=False)
        gateway, session = make_gateway({
            "/api/markets": error_response(make_response),
            "/coins/markets": make_response(200, COINGECKO_ROWS),
        })

        result = await MarketsOrchestrator(gateway).fetch()

        assert result.success is False
        assert result.fallback_enabled is False
        assert result.attempted == (DataSource.PRIMARY,)
        assert result.error.startswith(
            "markets: primary data source failed and fallback is disabled: "
        )
        assert "both" not in result.error
        assert session.get.call_count == 1

    @pytest.mark.asyncio
    async def test_both_sources_fail(self, make_gateway, make_response):
        gateway, session = make_gateway({
            "/api/markets": error_response(make_response),
            "/coins/markets": error_response(make_response, 429, "Too Many Requests"),
        })

        result = await MarketsOrchestrator(gateway).fetch()

        assert result.success is False
        assert result.data is None
        assert result.error.startswith(
            "markets: both primary and secondary data sources failed: "
        )
        assert "500 Internal Server Error" in result.error
        assert "429 Too Many Requests" in result.error
        assert session.get.call_count == 2

    @pytest.mark.asyncio
    async def test_preferred_secondary(self, make_gateway, make_response, policy_store):
        await policy_store.set_global_preferences(preferred_data_source=DataSource.SECONDARY)
        gateway, session = make_gateway({
            "/api/markets": make_response(200, BACKEND_ROWS),
            "/coins/markets": make_response(200, COINGECKO_ROWS),
        })

        result = await MarketsOrchestrator(gateway).fetch()

        assert result.source is DataSource.SECONDARY
        assert result.data.data == COINGECKO_ROWS
        assert session.get.call_count == 1

    @pytest.mark.asyncio
    async def test_secondary_skipped_when_coingecko_blocked(
        self, make_gateway, make_response, policy_store
    ):
        await policy_store.set_global_blocking(block_coingecko=True)
        gateway, session = make_gateway({
            "/api/markets": error_response(make_response),
            "/coins/markets": make_response(200, COINGECKO_ROWS),
        })

        result = await MarketsOrchestrator(gateway).fetch()

        assert result.success is False
        assert "secondary data source for markets is blocked" in result.error
        assert session.get.call_count == 1

    @pytest.mark.asyncio
    async def test_blocked_primary_falls_back(self, make_gateway, make_response, policy_store):
        await policy_store.set_feature_blocking("markets", block_primary=True)
        gateway, session = make_gateway({
            "/api/markets": make_response(200, BACKEND_ROWS),
            "/coins/markets": make_response(200, COINGECKO_ROWS),
        })

        result = await MarketsOrchestrator(gateway).fetch()

        assert result.source is DataSource.SECONDARY
        assert result.fallback_used is True
        assert session.get.call_count == 1
        assert "/coins/markets" in session.get.call_args.args[0]

    @pytest.mark.asyncio
    async def test_unexpected_payload_is_failure(self, make_gateway, make_response, policy_store):
        await policy_store.set_global_preferences(enable_fallback=False)
        gateway, _ = make_gateway({"/api/markets": make_response(200, {"error": "nope"})})

        result = await MarketsOrchestrator(gateway).fetch()

        assert result.success is False
        assert "Unexpected markets payload type: dict" in result.error

    @pytest.mark.asyncio
    async def test_fetch_from_source(self, make_gateway, make_response):
        gateway, session = make_gateway({
            "/api/markets": make_response(200, BACKEND_ROWS),
            "/coins/markets": make_response(200, COINGECKO_ROWS),
        })

        result = await MarketsOrchestrator(gateway).fetch_from_source(DataSource.SECONDARY)

        assert result.success is True
        assert result.source is DataSource.SECONDARY
        assert result.fallback_used is False
        assert session.get.call_count == 1

    @pytest.mark.asyncio
    async def test_fetch_from_source_failure(self, make_gateway, make_response):
        gateway, session = make_gateway({
            "/api/markets": error_response(make_response),
            "/coins/markets": make_response(200, COINGECKO_ROWS),
        })

        result = await MarketsOrchestrator(gateway).fetch_from_source(DataSource.PRIMARY)

        assert result.success is False
        assert result.error.startswith("markets: primary data source failed: ")
        assert session.get.call_count == 1

    @pytest.mark.asyncio
    async def test_fetch_markets_helper(self, make_gateway, make_response):
        gateway, _ = make_gateway({"/api/markets": make_response(200, BACKEND_ROWS)})

        data = await fetch_markets(gateway)

        assert data.data == BACKEND_ROWS


# ============================================================
# GENERIC ORCHESTRATOR
# ============================================================

class ExplodingOrchestrator(SourceFallbackOrchestrator[None, str]):
    feature_id = "exploding"

    async def _fetch_primary(self, request):
        raise RuntimeError("primary exploded")

    async def _fetch_secondary(self, request):
        return CallResult.ok("secondary data")


class TestSourceFallbackOrchestrator:
    """Generic algorithm behavior."""

    @pytest.mark.asyncio
    async def test_exception_treated_as_source_failure(self, make_gateway):
        gateway, _ = make_gateway({})

        result = await ExplodingOrchestrator(gateway).fetch()

        assert result.success is True
        assert result.data == "secondary data"
        assert result.fallback_used is True

    @pytest.mark.asyncio
    async def test_describe_result(self, make_gateway):
        gateway, _ = make_gateway({})

        result = await ExplodingOrchestrator(gateway).fetch()

        assert describe_result(result) == "ok from secondary via fallback"


# ============================================================
# DOMINANCE
# ============================================================

@pytest.fixture
def spy_data_source():
    """Data source that would succeed if called."""
    data_source = MagicMock(spec=DominanceDataSource)
    data_source.fetch_all_market_cap_data = AsyncMock(
        return_value=MarketCapData(total=3.0e12, btc=1.65e12, eth=390e9, stablecoins=240e9)
    )
    return data_source


@pytest.fixture
def spy_calculator():
    calculator = MagicMock(wraps=DominanceCalculator(clock=lambda: NOW))
    return calculator


class TestDominanceOrchestrator:
    """Tests for DominanceOrchestrator."""

    @pytest.mark.asyncio
    async def test_primary_success(self, make_gateway, make_response):
        gateway, session = make_gateway({"/api/dominance": make_response(200, BACKEND_DOMINANCE)})
        dominance = DominanceOrchestrator(gateway, clock=lambda: NOW)

        result = await dominance.fetch()

        assert result.success is True
        assert result.source is DataSource.PRIMARY
        analysis = result.data
        assert isinstance(analysis, DominanceAnalysis)
        assert analysis.btc.dominance == 55.0
        assert analysis.others.market_cap == 720e9
        assert analysis.timestamp == BACKEND_DOMINANCE["timestamp"]
        assert analysis.fetched_at == NOW
        assert session.get.call_count == 1

    @pytest.mark.asyncio
    async def test_falls_back_to_computed(self, make_gateway, make_response):
        gateway, session = make_gateway({
            "/api/dominance": error_response(make_response, 503, "Service Unavailable"),
            "/global": make_response(200, GLOBAL_PAYLOAD),
            "/coins/markets": make_response(200, COINS_PAYLOAD),
        })
        dominance = DominanceOrchestrator(gateway, clock=lambda: NOW)

        result = await dominance.fetch()

        assert result.success is True
        assert result.source is DataSource.SECONDARY
        assert result.fallback_used is True
        analysis = result.data
        assert analysis.total_market_cap == 3.0e12
        assert analysis.btc.dominance == 55.0
        assert analysis.eth.dominance == 13.0
        assert analysis.stablecoins.dominance == 8.0
        assert analysis.others.dominance == 24.0
        assert analysis.timestamp == NOW
        assert analysis.fetched_at == NOW
        # backend + /global + batched /coins/markets
        assert session.get.call_count == 3

    @pytest.mark.asyncio
    async def test_fallback_disabled_never_computes(
        self, make_gateway, make_response, policy_store, spy_data_source, spy_calculator
    ):
        await policy_store.set_feature_preferences(
            "currentDominance", enable_fallback=False, use_global_preferences=False
        )
        gateway, _ = make_gateway({"/api/dominance": error_response(make_response)})
        dominance = DominanceOrchestrator(
            gateway, data_source=spy_data_source, calculator=spy_calculator
        )

        result = await dominance.fetch()

        assert result.success is False
        assert "fallback is disabled" in result.error
        spy_data_source.fetch_all_market_cap_data.assert_not_called()
        spy_calculator.calculate.assert_not_called()

    @pytest.mark.asyncio
    async def test_global_coingecko_block_skips_computation(
        self, make_gateway, make_response, policy_store, spy_data_source, spy_calculator
    ):
        await policy_store.set_global_blocking(block_coingecko=True)
        gateway, session = make_gateway({"/api/dominance": error_response(make_response)})
        dominance = DominanceOrchestrator(
            gateway, data_source=spy_data_source, calculator=spy_calculator
        )

        result = await dominance.fetch()

        assert result.success is False
        assert result.error.startswith(
            "currentDominance: both primary and secondary data sources failed: "
        )
        assert "secondary data source for currentDominance is blocked" in result.error
        spy_data_source.fetch_all_market_cap_data.assert_not_called()
        spy_calculator.calculate.assert_not_called()
        assert session.get.call_count == 1

    @pytest.mark.asyncio
    async def test_feature_secondary_block_skips_computation(
        self, make_gateway, make_response, policy_store, spy_data_source
    ):
        await policy_store.set_feature_blocking("currentDominance", block_secondary=True)
        gateway, _ = make_gateway({"/api/dominance": error_response(make_response)})
        dominance = DominanceOrchestrator(gateway, data_source=spy_data_source)

        result = await dominance.fetch()

        assert result.success is False
        spy_data_source.fetch_all_market_cap_data.assert_not_called()

    @pytest.mark.asyncio
    async def test_total_market_cap_failure(self, make_gateway, make_response):
        gateway, _ = make_gateway({
            "/api/dominance": error_response(make_response),
            "/global": error_response(make_response, 429, "Too Many Requests"),
            "/coins/markets": make_response(200, COINS_PAYLOAD),
        })

        result = await DominanceOrchestrator(gateway).fetch()

        assert result.success is False
        assert "429 Too Many Requests" in result.error

    @pytest.mark.asyncio
    async def test_coin_caps_failure_yields_zero_categories(self, make_gateway, make_response):
        gateway, _ = make_gateway({
            "/api/dominance": error_response(make_response),
            "/global": make_response(200, GLOBAL_PAYLOAD),
            "/coins/markets": error_response(make_response),
        })

        result = await DominanceOrchestrator(gateway).fetch()

        assert result.success is True
        assert result.data.btc.dominance == 0.0
        assert result.data.others.dominance == 100.0

    @pytest.mark.asyncio
    async def test_fetch_from_secondary_only(self, make_gateway, make_response):
        gateway, session = make_gateway({
            "/global": make_response(200, GLOBAL_PAYLOAD),
            "/coins/markets": make_response(200, COINS_PAYLOAD),
        })

        result = await DominanceOrchestrator(gateway).fetch_from_source(DataSource.SECONDARY)

        assert result.success is True
        assert result.data.btc.dominance == 55.0
        assert session.get.call_count == 2
