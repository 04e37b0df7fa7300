"""
Market Sources Package - Policy-gated market data access with source fallback.

Fetches cryptocurrency market metrics from a backend proxy (primary source)
and the public CoinGecko API (secondary source).

Features:
- Per-call timeouts and classified, never-raising results
- Runtime blocking per feature and per provider
- Preferred/alternate source selection with optional fallback
- Local dominance computation when the backend is unavailable
- Persisted, versioned policy snapshots

Quick Start:
    from market_sources import (
        MarketsOptions,
        MarketSourcesConfig,
        setup_context,
    )

    async def main():
        config = MarketSourcesConfig.from_env()
        async with await setup_context(config) as ctx:
            markets = await ctx.markets.fetch(MarketsOptions(per_page=50))
            if markets.success:
                print(f"{len(markets.data.data)} coins from {markets.source.value}")

            dominance = await ctx.dominance.fetch()
            if dominance.success:
                print(f"BTC dominance: {dominance.data.btc.dominance}%")

Blocking CoinGecko:
    await ctx.policy_store.set_global_blocking(block_coingecko=True)
"""

from market_sources.coins import fetch_coin_details, search_coins
from market_sources.config import MarketSourcesConfig, get_config, set_config
from market_sources.context import MarketDataContext, create_context, setup_context
from market_sources.dispatcher import RequestDispatcher, build_url_with_params
from market_sources.dominance import (
    DominanceCalculator,
    DominanceDataSource,
    DominanceOrchestrator,
    calculate_dominance,
    fetch_current_dominance,
)
from market_sources.endpoints import EndpointRegistry, build_default_endpoints
from market_sources.exceptions import (
    ConfigurationError,
    FetchError,
    MarketSourceError,
    SnapshotError,
)
from market_sources.features import FEATURES, FeatureConfig, get_feature, get_feature_ids
from market_sources.gateway import FeatureGateway
from market_sources.markets import MarketsOrchestrator, fetch_markets
from market_sources.models import (
    BlockedCallResult,
    CallOptions,
    CallResult,
    CategoryDominance,
    CurrentVolatility,
    DataSource,
    DominanceAnalysis,
    EffectivePreferences,
    EndpointDescriptor,
    EndpointStats,
    FallbackResult,
    FeatureBlockingState,
    FeatureDataSourcePreferences,
    GlobalBlockingState,
    GlobalDataSourcePreferences,
    MarketCapData,
    MarketsOptions,
    MarketsResponse,
    Provider,
    VwatrResponse,
)
from market_sources.orchestrator import SourceFallbackOrchestrator
from market_sources.policy import PolicyStore, migrate_snapshot
from market_sources.storage import InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore
from market_sources.volatility import fetch_current_volatility, fetch_vwatr


__version__ = "1.0.0"

__all__ = [
    # Wiring
    "MarketDataContext",
    "create_context",
    "setup_context",
    "MarketSourcesConfig",
    "get_config",
    "set_config",
    # Core
    "EndpointRegistry",
    "build_default_endpoints",
    "RequestDispatcher",
    "build_url_with_params",
    "FeatureGateway",
    "PolicyStore",
    "migrate_snapshot",
    "SourceFallbackOrchestrator",
    # Storage
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    # Features
    "FEATURES",
    "FeatureConfig",
    "get_feature",
    "get_feature_ids",
    "MarketsOrchestrator",
    "fetch_markets",
    "DominanceOrchestrator",
    "DominanceDataSource",
    "DominanceCalculator",
    "calculate_dominance",
    "fetch_current_dominance",
    "fetch_current_volatility",
    "fetch_vwatr",
    "search_coins",
    "fetch_coin_details",
    # Models
    "DataSource",
    "Provider",
    "EndpointDescriptor",
    "EndpointStats",
    "CallOptions",
    "CallResult",
    "BlockedCallResult",
    "FallbackResult",
    "FeatureBlockingState",
    "GlobalBlockingState",
    "FeatureDataSourcePreferences",
    "GlobalDataSourcePreferences",
    "EffectivePreferences",
    "MarketCapData",
    "CategoryDominance",
    "DominanceAnalysis",
    "MarketsOptions",
    "MarketsResponse",
    "CurrentVolatility",
    "VwatrResponse",
    # Exceptions
    "MarketSourceError",
    "ConfigurationError",
    "FetchError",
    "SnapshotError",
]
