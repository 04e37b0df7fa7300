"""
Markets - Per-coin prices, market caps and volume.

Primary source is the backend proxy, secondary is CoinGecko /coins/markets.
Both accept the same query parameters and return the same row shape.
"""

import logging
from typing import Any, Callable, Optional

from market_sources.features import MARKETS
from market_sources.gateway import FeatureGateway
from market_sources.models import (
    CallOptions,
    CallResult,
    DataSource,
    FallbackResult,
    MarketsOptions,
    MarketsResponse,
    now_ms,
)
from market_sources.orchestrator import SourceFallbackOrchestrator


logger = logging.getLogger(__name__)


PRIMARY_ENDPOINT = "CRYPTO_PROXY_MARKETS"
SECONDARY_ENDPOINT = "COINGECKO_COINS_MARKETS"


class MarketsOrchestrator(SourceFallbackOrchestrator[MarketsOptions, MarketsResponse]):
    """
    Markets data with automatic backend/CoinGecko fallback.

    Usage:
        markets = MarketsOrchestrator(gateway)
        result = await markets.fetch(MarketsOptions(per_page=100))
        if result.success:
            rows = result.data.data
    """

    feature_id = MARKETS

    def __init__(
        self,
        gateway: FeatureGateway,
        clock: Callable[[], int] = now_ms,
        timeout_ms: Optional[int] = None,
    ) -> None:
        super().__init__(gateway)
        self._clock = clock
        self._timeout_ms = timeout_ms

    def _call_options(self, request: Optional[MarketsOptions]) -> CallOptions:
        options = CallOptions(query_params=(request or MarketsOptions()).to_query_params())
        if self._timeout_ms is not None:
            options.timeout_ms = self._timeout_ms
        return options

    def _wrap(self, result: CallResult[Any]) -> CallResult[MarketsResponse]:
        if not result.success or result.data is None:
            return CallResult.failure(result.error or "Empty markets response", status=result.status)
        if not isinstance(result.data, list):
            return CallResult.failure(
                f"Unexpected markets payload type: {type(result.data).__name__}",
                status=result.status,
            )
        return CallResult.ok(
            MarketsResponse(data=result.data, fetched_at=self._clock()),
            status=result.status,
        )

    async def _fetch_primary(self, request: Optional[MarketsOptions]) -> CallResult[MarketsResponse]:
        per_page = (request or MarketsOptions()).per_page
        logger.debug(f"[{self.feature_id}] Fetching markets from backend with per_page={per_page}")
        result = await self.gateway.call_for_feature(
            self.feature_id, PRIMARY_ENDPOINT, DataSource.PRIMARY, self._call_options(request)
        )
        if result.blocked:
            logger.debug(f"[{self.feature_id}] Primary data source (backend) blocked")
        elif result.success:
            logger.info(f"[{self.feature_id}] Markets data fetched from backend (primary)")
        return self._wrap(result)

    async def _fetch_secondary(self, request: Optional[MarketsOptions]) -> CallResult[MarketsResponse]:
        blocked = self._check_secondary_blocked(SECONDARY_ENDPOINT)
        if blocked is not None:
            return blocked

        per_page = (request or MarketsOptions()).per_page
        logger.debug(f"[{self.feature_id}] Fetching markets from CoinGecko with per_page={per_page}")
        result = await self.gateway.call_for_feature(
            self.feature_id, SECONDARY_ENDPOINT, DataSource.SECONDARY, self._call_options(request)
        )
        if result.success:
            logger.debug(f"[{self.feature_id}] Markets data fetched from CoinGecko")
        return self._wrap(result)


async def fetch_markets(
    gateway: FeatureGateway,
    options: Optional[MarketsOptions] = None,
) -> Optional[MarketsResponse]:
    """Convenience wrapper returning the data or None."""
    result: FallbackResult[MarketsResponse] = await MarketsOrchestrator(gateway).fetch(options)
    return result.data if result.success else None
