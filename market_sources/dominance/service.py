"""
Current Dominance - Backend analysis with a locally computed fallback.

The backend serves a ready DominanceAnalysis. CoinGecko has no equivalent
endpoint, so the secondary path fetches raw market caps and runs the
calculator. That path is skipped before any request when CoinGecko is
blocked globally or for this feature.
"""

import logging
from dataclasses import replace
from typing import Callable, Optional

from market_sources.dominance.calculator import DominanceCalculator
from market_sources.dominance.data_source import GLOBAL_ENDPOINT, DominanceDataSource
from market_sources.exceptions import FetchError
from market_sources.features import CURRENT_DOMINANCE
from market_sources.gateway import FeatureGateway
from market_sources.models import (
    CallOptions,
    CallResult,
    DataSource,
    DominanceAnalysis,
    FallbackResult,
    now_ms,
)
from market_sources.orchestrator import SourceFallbackOrchestrator


logger = logging.getLogger(__name__)


PRIMARY_ENDPOINT = "CRYPTO_PROXY_CURRENT_DOMINANCE"


class DominanceOrchestrator(SourceFallbackOrchestrator[None, DominanceAnalysis]):
    """
    Usage:
        dominance = DominanceOrchestrator(gateway)
        result = await dominance.fetch()
        if result.success:
            print(result.data.btc.dominance)
    """

    feature_id = CURRENT_DOMINANCE

    def __init__(
        self,
        gateway: FeatureGateway,
        data_source: Optional[DominanceDataSource] = None,
        calculator: Optional[DominanceCalculator] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        super().__init__(gateway)
        self._data_source = data_source or DominanceDataSource(gateway, self.feature_id)
        self._calculator = calculator or DominanceCalculator(clock)
        self._clock = clock

    async def _fetch_primary(self, request: None) -> CallResult[DominanceAnalysis]:
        result = await self.gateway.call_for_feature(
            self.feature_id, PRIMARY_ENDPOINT, DataSource.PRIMARY, CallOptions()
        )
        if not result.success or result.data is None:
            if result.blocked:
                logger.debug(f"[{self.feature_id}] Primary data source (backend) blocked")
            return CallResult.failure(
                result.error or "Empty dominance response", status=result.status
            )
        if not isinstance(result.data, dict):
            return CallResult.failure(
                f"Unexpected dominance payload type: {type(result.data).__name__}",
                status=result.status,
            )

        analysis = DominanceAnalysis.from_dict(result.data)
        logger.info(f"[{self.feature_id}] Current dominance fetched from backend (primary)")
        return CallResult.ok(self._stamp(analysis), status=result.status)

    async def _fetch_secondary(self, request: None) -> CallResult[DominanceAnalysis]:
        blocked = self._check_secondary_blocked(GLOBAL_ENDPOINT)
        if blocked is not None:
            return blocked

        logger.debug(f"[{self.feature_id}] Computing dominance from CoinGecko market caps")
        try:
            market_caps = await self._data_source.fetch_all_market_cap_data()
        except FetchError as e:
            logger.error(f"[{self.feature_id}] Failed to calculate dominance from CoinGecko: {e.message}")
            return CallResult.failure(e.message, status=e.status_code)

        analysis = self._calculator.calculate(market_caps)
        logger.debug(f"[{self.feature_id}] Current dominance calculated from CoinGecko")
        return CallResult.ok(self._stamp(analysis))

    def _stamp(self, analysis: DominanceAnalysis) -> DominanceAnalysis:
        return replace(analysis, fetched_at=self._clock())


async def fetch_current_dominance(gateway: FeatureGateway) -> Optional[DominanceAnalysis]:
    """Convenience wrapper returning the analysis or None."""
    result: FallbackResult[DominanceAnalysis] = await DominanceOrchestrator(gateway).fetch()
    return result.data if result.success else None
