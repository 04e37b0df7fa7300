"""
Dominance Data Source - Raw market caps from CoinGecko.

Two calls per computation, issued concurrently:
- /global for the total market cap
- /coins/markets batched for BTC, ETH and every tracked stablecoin

Calls go through the feature gateway as the secondary source of
currentDominance, so policy blocks apply to each sub-fetch.
"""

import asyncio
import logging
from typing import Any

from market_sources.dominance.constants import (
    BITCOIN_ID,
    ETHEREUM_ID,
    STABLECOIN_COUNT,
    STABLECOIN_IDS,
)
from market_sources.exceptions import FetchError
from market_sources.features import CURRENT_DOMINANCE
from market_sources.gateway import FeatureGateway
from market_sources.models import CallOptions, DataSource, MarketCapData


logger = logging.getLogger(__name__)


GLOBAL_ENDPOINT = "COINGECKO_GLOBAL"
COINS_MARKETS_ENDPOINT = "COINGECKO_COINS_MARKETS"


def _market_cap(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


class DominanceDataSource:
    """Fetches the market caps the dominance calculator needs."""

    def __init__(self, gateway: FeatureGateway, feature_id: str = CURRENT_DOMINANCE) -> None:
        self._gateway = gateway
        self._feature_id = feature_id

    async def fetch_total_market_cap(self) -> float:
        """
        Total crypto market cap in USD.

        Raises:
            FetchError: If the /global call fails
        """
        logger.debug(f"[{self._feature_id}] Fetching total market cap from /global")
        result = await self._gateway.call_for_feature(
            self._feature_id, GLOBAL_ENDPOINT, DataSource.SECONDARY, CallOptions()
        )

        if not result.success or result.data is None:
            error = result.error or "Unknown error fetching total market cap"
            logger.error(f"[{self._feature_id}] Failed to fetch total market cap: {error}")
            raise FetchError(
                error,
                source_name="coingecko",
                status_code=result.status,
                endpoint_key=GLOBAL_ENDPOINT,
                blocked=result.blocked,
            )

        try:
            total = _market_cap(result.data["data"]["total_market_cap"]["usd"])
        except (KeyError, TypeError) as e:
            raise FetchError(
                "Unexpected /global payload: missing data.total_market_cap.usd",
                source_name="coingecko",
                original_error=e,
                endpoint_key=GLOBAL_ENDPOINT,
            )

        logger.debug(f"[{self._feature_id}] Total market cap: ${total:,.0f}")
        return total

    async def fetch_coin_market_caps(self) -> dict[str, float]:
        """
        BTC, ETH and summed stablecoin market caps from one batched call.

        Failures are not raised; zeros are returned with a warning.
        """
        logger.debug(
            f"[{self._feature_id}] Fetching BTC, ETH and {STABLECOIN_COUNT} stablecoin market caps"
        )
        zeros = {"btc": 0.0, "eth": 0.0, "stablecoins": 0.0}
        ids = ",".join((BITCOIN_ID, ETHEREUM_ID) + STABLECOIN_IDS)

        result = await self._gateway.call_for_feature(
            self._feature_id,
            COINS_MARKETS_ENDPOINT,
            DataSource.SECONDARY,
            CallOptions(query_params={"vs_currency": "usd", "ids": ids}),
        )

        if not result.success or result.data is None:
            error = result.error or "Unknown error fetching BTC, ETH and stablecoin market caps"
            logger.warning(f"[{self._feature_id}] Failed to fetch market caps: {error}")
            return zeros

        if not result.data:
            logger.warning(f"[{self._feature_id}] No market data found")
            return zeros

        caps = {
            coin.get("id"): _market_cap(coin.get("market_cap"))
            for coin in result.data
            if isinstance(coin, dict)
        }

        btc = caps.get(BITCOIN_ID, 0.0)
        eth = caps.get(ETHEREUM_ID, 0.0)

        stablecoins = 0.0
        missing = []
        for coin_id in STABLECOIN_IDS:
            cap = caps.get(coin_id, 0.0)
            if cap > 0:
                stablecoins += cap
            else:
                missing.append(coin_id)

        if missing:
            logger.warning(
                f"[{self._feature_id}] {len(missing)} stablecoin(s) not found or have zero "
                f"market cap: {', '.join(missing)}"
            )
        logger.debug(
            f"[{self._feature_id}] Stablecoins market cap: ${stablecoins:,.0f} "
            f"({STABLECOIN_COUNT - len(missing)}/{STABLECOIN_COUNT} coins found)"
        )

        return {"btc": btc, "eth": eth, "stablecoins": stablecoins}

    async def fetch_all_market_cap_data(self) -> MarketCapData:
        """
        Both fetches concurrently, joined into MarketCapData.

        Raises:
            FetchError: If the total market cap cannot be fetched
        """
        total, coins = await asyncio.gather(
            self.fetch_total_market_cap(),
            self.fetch_coin_market_caps(),
            return_exceptions=True,
        )
        if isinstance(total, BaseException):
            raise total
        if isinstance(coins, BaseException):
            raise coins

        return MarketCapData(
            total=total,
            btc=coins["btc"],
            eth=coins["eth"],
            stablecoins=coins["stablecoins"],
        )
