"""
Endpoint Registry - Named endpoint descriptors with live call statistics.

The registry is configuration injected into the dispatcher. Descriptors are
mutable only in their stats and enabled flag: the dispatcher updates stats on
every attempt. Path-suffix calls build their URL per call and leave the
descriptor URL untouched.
"""

import logging
from typing import Iterator, Optional

from market_sources.config import MarketSourcesConfig
from market_sources.exceptions import ConfigurationError
from market_sources.models import EndpointDescriptor, EndpointStats


logger = logging.getLogger(__name__)


COINGECKO_GLOBAL_PATH = "/global"
COINGECKO_COINS_MARKETS_PATH = "/coins/markets"
COINGECKO_SEARCH_PATH = "/search"
COINGECKO_COIN_BY_ID_PATH = "/coins"


def join_url(base_url: str, path: str) -> str:
    """Join a base URL and a path with exactly one '/' between them."""
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


class EndpointRegistry:
    """
    Lookup table of endpoint keys to descriptors.

    Usage:
        registry = EndpointRegistry.from_config(config)
        endpoint = registry.get_endpoint("COINGECKO_GLOBAL")
        registry.set_endpoint_enabled("COINGECKO_GLOBAL", False)
    """

    def __init__(self, endpoints: Optional[dict[str, EndpointDescriptor]] = None) -> None:
        self._endpoints: dict[str, EndpointDescriptor] = dict(endpoints or {})

    @classmethod
    def from_config(cls, config: MarketSourcesConfig) -> "EndpointRegistry":
        return cls(build_default_endpoints(config))

    def register(self, key: str, endpoint: EndpointDescriptor) -> None:
        """Register or replace an endpoint."""
        if key in self._endpoints:
            logger.warning(f"Endpoint '{key}' already registered, replacing")
        self._endpoints[key] = endpoint

    def get_endpoint(self, key: str) -> Optional[EndpointDescriptor]:
        return self._endpoints.get(key)

    def is_endpoint_enabled(self, key: str) -> bool:
        endpoint = self._endpoints.get(key)
        return endpoint.enabled if endpoint else False

    def set_endpoint_enabled(self, key: str, enabled: bool) -> None:
        endpoint = self._endpoints.get(key)
        if endpoint:
            endpoint.enabled = enabled
            logger.info(f"Endpoint '{key}' {'enabled' if enabled else 'disabled'}")

    def get_endpoint_stats(self, key: str) -> Optional[EndpointStats]:
        endpoint = self._endpoints.get(key)
        return endpoint.stats if endpoint else None

    def keys(self) -> list[str]:
        return list(self._endpoints.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._endpoints

    def __iter__(self) -> Iterator[str]:
        return iter(self._endpoints)

    def __len__(self) -> int:
        return len(self._endpoints)


def build_default_endpoints(config: MarketSourcesConfig) -> dict[str, EndpointDescriptor]:
    """
    Build the standard endpoint set.

    Raises:
        ConfigurationError: If the backend base URL is not configured
    """
    if not config.backend_base_url:
        raise ConfigurationError(
            "MARKET_BACKEND_BASE_URL environment variable is required",
            source_name="backend",
            config_key="MARKET_BACKEND_BASE_URL",
        )

    coingecko = config.coingecko_base_url
    backend = config.backend_base_url
    cg_headers = config.coingecko_headers()

    def coingecko_endpoint(endpoint_id: str, path: str, name: str) -> EndpointDescriptor:
        return EndpointDescriptor(
            id=endpoint_id,
            url=join_url(coingecko, path),
            name=name,
            headers=dict(cg_headers),
        )

    def backend_endpoint(endpoint_id: str, path: str, name: str) -> EndpointDescriptor:
        return EndpointDescriptor(id=endpoint_id, url=join_url(backend, path), name=name)

    return {
        "COINGECKO_GLOBAL": coingecko_endpoint(
            "coingecko-global", COINGECKO_GLOBAL_PATH, "CoinGecko Global Market Data"
        ),
        "COINGECKO_COINS_MARKETS": coingecko_endpoint(
            "coingecko-coins-markets", COINGECKO_COINS_MARKETS_PATH, "CoinGecko Coins Markets"
        ),
        "COINGECKO_SEARCH": coingecko_endpoint(
            "coingecko-search", COINGECKO_SEARCH_PATH, "CoinGecko Search"
        ),
        "COINGECKO_COIN_BY_ID": coingecko_endpoint(
            "coingecko-coin-by-id", COINGECKO_COIN_BY_ID_PATH, "CoinGecko Coin by ID"
        ),
        "CRYPTO_PROXY_CURRENT_VOLATILITY": backend_endpoint(
            "crypto-proxy-current-volatility", "/api/volatility", "Crypto Proxy Current Volatility"
        ),
        "CRYPTO_PROXY_VWATR": backend_endpoint(
            "crypto-proxy-vwatr", "/api/volatility", "Crypto Proxy VWATR"
        ),
        "CRYPTO_PROXY_CURRENT_DOMINANCE": backend_endpoint(
            "crypto-proxy-current-dominance", "/api/dominance", "Crypto Proxy Current Dominance"
        ),
        "CRYPTO_PROXY_MARKETS": backend_endpoint(
            "crypto-proxy-markets", "/api/markets", "Crypto Proxy Markets"
        ),
    }
