"""
Feature Registry - Features that consume market data and the endpoints they use.

Feature ids key the per-feature blocking flags and source preferences held by
the policy store.
"""

from dataclasses import dataclass, field
from typing import Optional


CURRENT_VOLATILITY = "currentVolatility"
CURRENT_DOMINANCE = "currentDominance"
VWATR = "vwatr"
MARKETS = "markets"
COIN_LISTS = "coinlists"


@dataclass(frozen=True)
class FeatureConfig:
    """Static description of a feature."""
    id: str
    name: str
    description: str
    endpoints: tuple[str, ...] = field(default_factory=tuple)
    supports_secondary_source: bool = False


FEATURES: dict[str, FeatureConfig] = {
    CURRENT_VOLATILITY: FeatureConfig(
        id=CURRENT_VOLATILITY,
        name="Current Volatility",
        description="Current cryptocurrency market volatility",
        endpoints=("CRYPTO_PROXY_CURRENT_VOLATILITY",),
        supports_secondary_source=False,
    ),
    CURRENT_DOMINANCE: FeatureConfig(
        id=CURRENT_DOMINANCE,
        name="Current Dominance",
        description="Market dominance of BTC, ETH, stablecoins and others",
        endpoints=(
            "CRYPTO_PROXY_CURRENT_DOMINANCE",
            "COINGECKO_GLOBAL",
            "COINGECKO_COINS_MARKETS",
        ),
        supports_secondary_source=True,
    ),
    VWATR: FeatureConfig(
        id=VWATR,
        name="VWATR",
        description="Volume-weighted average true range per coin",
        endpoints=("CRYPTO_PROXY_VWATR",),
        supports_secondary_source=False,
    ),
    MARKETS: FeatureConfig(
        id=MARKETS,
        name="Markets",
        description="Prices, market caps and volume per coin",
        endpoints=("CRYPTO_PROXY_MARKETS", "COINGECKO_COINS_MARKETS"),
        supports_secondary_source=True,
    ),
    COIN_LISTS: FeatureConfig(
        id=COIN_LISTS,
        name="Coin Lists",
        description="Custom coin lists with market data and coin search",
        endpoints=("CRYPTO_PROXY_MARKETS", "COINGECKO_COINS_MARKETS", "COINGECKO_SEARCH"),
        supports_secondary_source=True,
    ),
}


def get_feature_ids() -> list[str]:
    """All registered feature ids."""
    return list(FEATURES.keys())


def get_feature(feature_id: str) -> Optional[FeatureConfig]:
    """Feature configuration by id."""
    return FEATURES.get(feature_id)


def get_all_features() -> list[FeatureConfig]:
    """All registered features."""
    return list(FEATURES.values())
