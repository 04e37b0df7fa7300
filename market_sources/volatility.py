"""
Volatility - Backend-only volatility metrics.

- Current volatility: 1h/24h market volatility with levels and top mover
- VWATR: volume-weighted average true range per coin and period

Neither has a CoinGecko counterpart, so there is no fallback.
"""

import logging
from typing import Any, Optional

from market_sources.dispatcher import RequestDispatcher
from market_sources.features import VWATR
from market_sources.gateway import FeatureGateway
from market_sources.models import (
    CallOptions,
    CurrentVolatility,
    DataSource,
    VwatrResponse,
    now_ms,
)


logger = logging.getLogger(__name__)


CURRENT_VOLATILITY_ENDPOINT = "CRYPTO_PROXY_CURRENT_VOLATILITY"
VWATR_ENDPOINT = "CRYPTO_PROXY_VWATR"

VWATR_BAGS = ("top20_bag", "superstar_bag", "all_coins")
DEFAULT_VWATR_BAG = "top20_bag"
DEFAULT_VWATR_PERIODS = "7,14,30"


async def fetch_current_volatility(
    dispatcher: RequestDispatcher,
    per_page: Optional[int] = None,
) -> Optional[CurrentVolatility]:
    """
    Fetch the current volatility snapshot.

    Not policy-gated: the call goes straight to the dispatcher.

    Args:
        dispatcher: Request dispatcher
        per_page: Number of top coins to analyze (backend default 50, max 250)
    """
    params: dict[str, Any] = {"type": "current", "per_page": per_page}
    result = await dispatcher.dispatch(CURRENT_VOLATILITY_ENDPOINT, CallOptions(query_params=params))

    if not result.success or not isinstance(result.data, dict):
        logger.error(f"Failed to fetch current volatility data: {result.error}")
        return None

    logger.info("Current volatility data fetched successfully")
    return CurrentVolatility.from_dict(result.data)


async def fetch_vwatr(
    gateway: FeatureGateway,
    bag: str = DEFAULT_VWATR_BAG,
    periods: str = DEFAULT_VWATR_PERIODS,
    source: DataSource = DataSource.PRIMARY,
) -> Optional[VwatrResponse]:
    """
    Fetch VWATR for a bag of coins.

    Args:
        gateway: Feature gateway (vwatr blocking applies)
        bag: One of VWATR_BAGS
        periods: Comma-separated periods in days, max 30
        source: Data source slot to report to the policy store
    """
    if bag not in VWATR_BAGS:
        logger.warning(f"[{VWATR}] Unknown bag '{bag}', sending as-is")

    result = await gateway.call_for_feature(
        VWATR,
        VWATR_ENDPOINT,
        source,
        CallOptions(query_params={"type": "vwatr", "bag": bag, "periods": periods}),
    )

    if not result.success or not isinstance(result.data, dict):
        if result.blocked:
            logger.error(f"[{VWATR}] VWATR data blocked: {result.error}")
        else:
            logger.error(f"[{VWATR}] Failed to fetch VWATR data: {result.error}")
        return None

    logger.info(f"[{VWATR}] VWATR data fetched successfully")
    return VwatrResponse.from_dict(result.data, fetched_at=now_ms())
