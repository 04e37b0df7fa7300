"""
Market Data Context - Explicit wiring of the data access layer.

One context holds the shared endpoint registry, dispatcher and policy store
that every feature must observe. Build one per process (or per test) and pass
it around instead of relying on module globals.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp

from market_sources.config import MarketSourcesConfig, get_config
from market_sources.dispatcher import RequestDispatcher
from market_sources.dominance.service import DominanceOrchestrator
from market_sources.endpoints import EndpointRegistry
from market_sources.gateway import FeatureGateway
from market_sources.markets import MarketsOrchestrator
from market_sources.policy import PolicyStore
from market_sources.storage import InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore


logger = logging.getLogger(__name__)


@dataclass
class MarketDataContext:
    """Shared components of the data access layer."""
    config: MarketSourcesConfig
    registry: EndpointRegistry
    dispatcher: RequestDispatcher
    policy_store: PolicyStore
    gateway: FeatureGateway
    markets: MarketsOrchestrator
    dominance: DominanceOrchestrator

    async def close(self) -> None:
        await self.dispatcher.close()

    async def __aenter__(self) -> "MarketDataContext":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _default_storage(config: MarketSourcesConfig) -> KeyValueStore:
    if config.policy_store_path:
        logger.info(f"Policy snapshots persisted to {config.policy_store_path}")
        return JsonFileKeyValueStore(config.policy_store_path)
    return InMemoryKeyValueStore()


def create_context(
    config: Optional[MarketSourcesConfig] = None,
    session: Optional[aiohttp.ClientSession] = None,
    storage: Optional[KeyValueStore] = None,
    registry: Optional[EndpointRegistry] = None,
) -> MarketDataContext:
    """
    Build a context without touching the network or the store.

    Raises:
        ConfigurationError: If no registry is given and the backend base URL
            is not configured
    """
    config = config or get_config()
    registry = registry or EndpointRegistry.from_config(config)
    dispatcher = RequestDispatcher(
        registry,
        session=session,
        default_timeout_ms=config.request_timeout_ms,
    )
    policy_store = PolicyStore(storage if storage is not None else _default_storage(config))
    gateway = FeatureGateway(policy_store, dispatcher)

    return MarketDataContext(
        config=config,
        registry=registry,
        dispatcher=dispatcher,
        policy_store=policy_store,
        gateway=gateway,
        markets=MarketsOrchestrator(gateway),
        dominance=DominanceOrchestrator(gateway),
    )


async def setup_context(
    config: Optional[MarketSourcesConfig] = None,
    session: Optional[aiohttp.ClientSession] = None,
    storage: Optional[KeyValueStore] = None,
    registry: Optional[EndpointRegistry] = None,
) -> MarketDataContext:
    """Build a context and hydrate its policy store."""
    context = create_context(config, session=session, storage=storage, registry=registry)
    restored = await context.policy_store.load()
    logger.info(
        f"Market data context ready ({len(context.registry)} endpoints, "
        f"policy {'restored' if restored else 'defaults'})"
    )
    return context
