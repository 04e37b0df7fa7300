"""
Feature Gateway - Policy check in front of the request dispatcher.

A blocked call never reaches the network and is not an error: it comes back
as a synthesized 503 result with blocked=True.
"""

import logging
from typing import Any, Optional

from market_sources.dispatcher import RequestDispatcher
from market_sources.models import BlockedCallResult, CallOptions, DataSource
from market_sources.policy import PolicyStore


logger = logging.getLogger(__name__)


def blocked_message(feature_id: str, source: DataSource) -> str:
    return (
        f"Service temporarily unavailable: {source.value} data source "
        f"for {feature_id} is blocked"
    )


class FeatureGateway:
    """
    Dispatches calls on behalf of a feature, honoring the policy store.

    Usage:
        gateway = FeatureGateway(policy_store, dispatcher)
        result = await gateway.call_for_feature(
            "markets", "COINGECKO_COINS_MARKETS", DataSource.SECONDARY
        )
        if result.blocked:
            ...
    """

    def __init__(self, policy_store: PolicyStore, dispatcher: RequestDispatcher) -> None:
        self._policy_store = policy_store
        self._dispatcher = dispatcher

    @property
    def policy_store(self) -> PolicyStore:
        return self._policy_store

    @property
    def dispatcher(self) -> RequestDispatcher:
        return self._dispatcher

    async def call_for_feature(
        self,
        feature_id: str,
        endpoint_key: str,
        source: DataSource = DataSource.PRIMARY,
        options: Optional[CallOptions] = None,
    ) -> BlockedCallResult[Any]:
        if self._policy_store.is_blocked(feature_id, endpoint_key, source):
            error = blocked_message(feature_id, source)
            logger.debug(f"[{feature_id}] Blocked call to {endpoint_key} ({source.value})")
            return BlockedCallResult.blocked_result(error)

        result = await self._dispatcher.dispatch(endpoint_key, options)
        return BlockedCallResult.from_result(result)
