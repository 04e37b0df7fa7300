"""
Dominance - Market share of BTC, ETH, stablecoins and everything else.
"""

from market_sources.dominance.calculator import DominanceCalculator, calculate_dominance
from market_sources.dominance.constants import (
    BITCOIN_ID,
    ETHEREUM_ID,
    STABLECOIN_COUNT,
    STABLECOIN_IDS,
)
from market_sources.dominance.data_source import DominanceDataSource
from market_sources.dominance.service import DominanceOrchestrator, fetch_current_dominance


__all__ = [
    "DominanceCalculator",
    "calculate_dominance",
    "DominanceDataSource",
    "DominanceOrchestrator",
    "fetch_current_dominance",
    "BITCOIN_ID",
    "ETHEREUM_ID",
    "STABLECOIN_IDS",
    "STABLECOIN_COUNT",
]
