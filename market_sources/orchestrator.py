"""
Source Fallback Orchestrator - Preferred source first, alternate on failure.

============================================================
ALGORITHM
============================================================
1. Resolve effective preferences for the feature
2. Attempt the preferred source
3. Success -> return immediately, no fallback
4. Failure and fallback disabled -> fail, alternate never attempted
5. Failure and fallback enabled -> attempt the alternate
6. Alternate failure -> fail, naming both sources

Sources are never attempted in parallel.

============================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, Optional, TypeVar

from market_sources.gateway import FeatureGateway, blocked_message
from market_sources.models import (
    BlockedCallResult,
    CallResult,
    DataSource,
    FallbackResult,
    Provider,
)
from market_sources.policy import PolicyStore


logger = logging.getLogger(__name__)


R = TypeVar("R")
T = TypeVar("T")


class SourceFallbackOrchestrator(ABC, Generic[R, T]):
    """
    Abstract base for features served by both the backend and CoinGecko.

    Subclasses set feature_id and implement one fetch per source. A source
    fetch returns a CallResult; an exception escaping it is logged and
    treated as that source failing.
    """

    feature_id: str = ""

    def __init__(self, gateway: FeatureGateway) -> None:
        self._gateway = gateway

    @property
    def gateway(self) -> FeatureGateway:
        return self._gateway

    @property
    def policy_store(self) -> PolicyStore:
        return self._gateway.policy_store

    # =========================================================
    # ABSTRACT METHODS
    # =========================================================

    @abstractmethod
    async def _fetch_primary(self, request: Optional[R]) -> CallResult[T]:
        """Fetch from the backend proxy."""
        pass

    @abstractmethod
    async def _fetch_secondary(self, request: Optional[R]) -> CallResult[T]:
        """Fetch from CoinGecko."""
        pass

    # =========================================================
    # HELPERS
    # =========================================================

    def _check_secondary_blocked(self, endpoint_key: str) -> Optional[CallResult[T]]:
        """
        Early refusal for a CoinGecko-backed path.

        Returns a blocked result when CoinGecko is blocked globally or the
        feature's secondary source is blocked, None otherwise.
        """
        if self.policy_store.is_global_blocked(Provider.COINGECKO):
            logger.info(f"[{self.feature_id}] CoinGecko is blocked globally, skipping secondary source")
            return BlockedCallResult.blocked_result(
                blocked_message(self.feature_id, DataSource.SECONDARY)
            )
        if self.policy_store.is_blocked(self.feature_id, endpoint_key, DataSource.SECONDARY):
            logger.info(f"[{self.feature_id}] Secondary source is blocked for this feature")
            return BlockedCallResult.blocked_result(
                blocked_message(self.feature_id, DataSource.SECONDARY)
            )
        return None

    async def _attempt(self, source: DataSource, request: Optional[R]) -> CallResult[T]:
        try:
            if source is DataSource.PRIMARY:
                result = await self._fetch_primary(request)
            else:
                result = await self._fetch_secondary(request)
        except Exception as e:
            error = str(e) or f"Unknown error fetching {self.feature_id} from {source.value} source"
            logger.error(f"[{self.feature_id}] {source.value} fetch failed: {error}")
            return CallResult.failure(error)

        if result.success and result.data is None:
            return CallResult.failure(f"Empty response from {source.value} data source")
        return result

    # =========================================================
    # PUBLIC API
    # =========================================================

    async def fetch(self, request: Optional[R] = None) -> FallbackResult[T]:
        """Fetch honoring the feature's effective preferences."""
        prefs = self.policy_store.effective_preferences(self.feature_id)
        preferred = prefs.preferred_data_source
        alternate = preferred.alternate

        first = await self._attempt(preferred, request)
        if first.success:
            return FallbackResult(
                data=first.data,
                success=True,
                source=preferred,
                attempted=(preferred,),
                fallback_used=False,
                fallback_enabled=prefs.enable_fallback,
            )

        if not prefs.enable_fallback:
            error = (
                f"{self.feature_id}: {preferred.value} data source failed "
                f"and fallback is disabled: {first.error}"
            )
            logger.error(error)
            return FallbackResult(
                error=error,
                success=False,
                attempted=(preferred,),
                fallback_used=False,
                fallback_enabled=False,
            )

        logger.info(
            f"[{self.feature_id}] {preferred.value} data source unavailable "
            f"({first.error}), falling back to {alternate.value}"
        )
        second = await self._attempt(alternate, request)
        if second.success:
            return FallbackResult(
                data=second.data,
                success=True,
                source=alternate,
                attempted=(preferred, alternate),
                fallback_used=True,
                fallback_enabled=True,
            )

        error = (
            f"{self.feature_id}: both {preferred.value} and {alternate.value} "
            f"data sources failed: {first.error}; {second.error}"
        )
        logger.error(error)
        return FallbackResult(
            error=error,
            success=False,
            attempted=(preferred, alternate),
            fallback_used=True,
            fallback_enabled=True,
        )

    async def fetch_from_source(
        self,
        source: DataSource,
        request: Optional[R] = None,
    ) -> FallbackResult[T]:
        """Fetch from one named source only; preferences are ignored."""
        result = await self._attempt(source, request)
        if result.success:
            return FallbackResult(
                data=result.data,
                success=True,
                source=source,
                attempted=(source,),
                fallback_used=False,
                fallback_enabled=False,
            )

        error = f"{self.feature_id}: {source.value} data source failed: {result.error}"
        logger.error(error)
        return FallbackResult(
            error=error,
            success=False,
            attempted=(source,),
            fallback_used=False,
            fallback_enabled=False,
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(feature={self.feature_id})>"


def describe_result(result: FallbackResult[Any]) -> str:
    """One-line summary of an orchestrated fetch, for logs and scripts."""
    if result.success:
        via = " via fallback" if result.fallback_used else ""
        return f"ok from {result.source.value}{via}"
    return f"failed after {', '.join(s.value for s in result.attempted)}: {result.error}"
