"""
Coins - CoinGecko search and per-coin detail lookups.
"""

import logging
from typing import Any, Optional

from market_sources.dispatcher import RequestDispatcher
from market_sources.features import COIN_LISTS
from market_sources.gateway import FeatureGateway
from market_sources.models import CallOptions, DataSource


logger = logging.getLogger(__name__)


SEARCH_ENDPOINT = "COINGECKO_SEARCH"
COIN_BY_ID_ENDPOINT = "COINGECKO_COIN_BY_ID"

COIN_DETAIL_PARAMS = {
    "localization": False,
    "tickers": False,
    "community_data": False,
    "developer_data": False,
}


async def search_coins(gateway: FeatureGateway, query: str) -> Optional[list[dict[str, Any]]]:
    """
    Search CoinGecko for coins matching a name or symbol.

    Returns:
        The "coins" entries of the search response, or None on failure
    """
    query = query.strip()
    if not query:
        return []

    result = await gateway.call_for_feature(
        COIN_LISTS,
        SEARCH_ENDPOINT,
        DataSource.SECONDARY,
        CallOptions(query_params={"query": query}),
    )

    if not result.success or not isinstance(result.data, dict):
        if result.blocked:
            logger.debug(f"[{COIN_LISTS}] Coin search blocked: {result.error}")
        else:
            logger.error(f"[{COIN_LISTS}] Coin search failed for '{query}': {result.error}")
        return None

    coins = result.data.get("coins") or []
    logger.debug(f"[{COIN_LISTS}] Search '{query}' returned {len(coins)} coins")
    return coins


async def fetch_coin_details(
    dispatcher: RequestDispatcher,
    coin_id: str,
) -> Optional[dict[str, Any]]:
    """Full CoinGecko record for one coin id (GET /coins/{id})."""
    result = await dispatcher.dispatch_with_path_suffix(
        COIN_BY_ID_ENDPOINT,
        coin_id,
        CallOptions(query_params=dict(COIN_DETAIL_PARAMS)),
    )

    if not result.success or not isinstance(result.data, dict):
        logger.error(f"Failed to fetch details for coin '{coin_id}': {result.error}")
        return None

    return result.data
