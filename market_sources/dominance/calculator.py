"""
Dominance Calculator - Market share of BTC, ETH, stablecoins and others.

Independent of where the market caps come from; operates on MarketCapData.
"""

import logging
from typing import Callable

from market_sources.dominance.constants import DOMINANCE_SUM_TOLERANCE
from market_sources.models import CategoryDominance, DominanceAnalysis, MarketCapData, now_ms


logger = logging.getLogger(__name__)


def dominance_percentage(part: float, total: float) -> float:
    """(part / total) * 100, or 0 when total is not positive."""
    if total <= 0:
        return 0.0
    return (part / total) * 100


def others_market_cap(data: MarketCapData) -> float:
    """Total minus BTC, ETH and stablecoins, never below 0."""
    others = data.total - data.btc - data.eth - data.stablecoins
    if others < 0:
        logger.error(f"Others market cap calculated as negative ({others}), setting to 0")
        return 0.0
    return others


class DominanceCalculator:
    """
    Turns raw market caps into a DominanceAnalysis.

    Percentages are rounded to 2 decimals. The rounded values are checked to
    sum to 100 within DOMINANCE_SUM_TOLERANCE; a deviation is logged and the
    result is returned regardless.
    """

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self._clock = clock

    def calculate(self, data: MarketCapData) -> DominanceAnalysis:
        logger.info("Calculating market dominance...")

        if data.total <= 0:
            logger.error(
                f"Total market cap is zero or negative ({data.total}), cannot calculate dominance"
            )

        others = others_market_cap(data)
        btc = round(dominance_percentage(data.btc, data.total), 2)
        eth = round(dominance_percentage(data.eth, data.total), 2)
        stablecoins = round(dominance_percentage(data.stablecoins, data.total), 2)
        others_dominance = round(dominance_percentage(others, data.total), 2)

        # All zeros when total <= 0; nothing to check
        if data.total > 0:
            total_dominance = btc + eth + stablecoins + others_dominance
            # Compared at the 2-decimal resolution of the inputs
            if round(abs(total_dominance - 100), 2) > DOMINANCE_SUM_TOLERANCE:
                logger.warning(
                    f"Dominance percentages sum to {total_dominance:.2f}% (expected 100%)"
                )
            else:
                logger.debug(f"Dominance percentages sum to {total_dominance:.2f}%")

        result = DominanceAnalysis(
            total_market_cap=data.total,
            btc=CategoryDominance(market_cap=data.btc, dominance=btc),
            eth=CategoryDominance(market_cap=data.eth, dominance=eth),
            stablecoins=CategoryDominance(market_cap=data.stablecoins, dominance=stablecoins),
            others=CategoryDominance(market_cap=others, dominance=others_dominance),
            timestamp=self._clock(),
        )

        logger.info(
            f"BTC: {btc}%, ETH: {eth}%, Stablecoins: {stablecoins}%, Others: {others_dominance}%"
        )
        return result


def calculate_dominance(data: MarketCapData) -> DominanceAnalysis:
    """Calculate with the system clock."""
    return DominanceCalculator().calculate(data)
