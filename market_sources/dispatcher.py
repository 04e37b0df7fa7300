"""
Request Dispatcher - One HTTP GET per call with structured outcome classification.

Every call returns a CallResult; no failure mode raises across this boundary:
- Configuration: unknown or disabled endpoint (no network access)
- HTTP: non-2xx response (status preserved, body included in the message)
- Decode: malformed or empty JSON on a 2xx response (status None)
- Timeout: per-call aiohttp timeout elapsed (status None)
- Transport: any other client/network exception (status None)
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from urllib.parse import urlencode

import aiohttp

from market_sources.endpoints import EndpointRegistry, join_url
from market_sources.models import CallOptions, CallResult, EndpointDescriptor, QueryValue


logger = logging.getLogger(__name__)


def _stringify(value: QueryValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_url_with_params(
    base_url: str,
    query_params: Optional[Mapping[str, QueryValue]] = None,
) -> str:
    """
    Append query parameters to a URL.

    None values are skipped entirely. Values are form-encoded (space -> '+',
    '/' -> '%2F'). The separator is '&' when the base URL already carries a
    query string, '?' otherwise.
    """
    if not query_params:
        return base_url

    pairs = [
        (key, _stringify(value))
        for key, value in query_params.items()
        if value is not None
    ]
    if not pairs:
        return base_url

    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{urlencode(pairs)}"


class RequestDispatcher:
    """
    Issues GET requests against endpoints of an EndpointRegistry.

    Statistics on the endpoint descriptor reflect attempts: call_count and
    last_called_at are updated before the request is sent, error_count and
    last_error after any failed attempt.

    Usage:
        async with RequestDispatcher(registry) as dispatcher:
            result = await dispatcher.dispatch(
                "COINGECKO_COINS_MARKETS",
                CallOptions(query_params={"vs_currency": "usd"}),
            )
    """

    def __init__(
        self,
        registry: EndpointRegistry,
        session: Optional[aiohttp.ClientSession] = None,
        default_headers: Optional[dict[str, str]] = None,
        default_timeout_ms: int = 30000,
    ) -> None:
        self._registry = registry
        self._session = session
        self._owns_session = session is None
        self._default_headers = dict(default_headers or {})
        self._default_timeout_ms = default_timeout_ms

    @property
    def registry(self) -> EndpointRegistry:
        return self._registry

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    def _build_headers(
        self,
        endpoint: EndpointDescriptor,
        headers: Optional[dict[str, str]],
    ) -> dict[str, str]:
        merged = {"Content-Type": "application/json"}
        merged.update(self._default_headers)
        merged.update(endpoint.headers)
        merged.update(headers or {})
        return merged

    @staticmethod
    def _record_attempt(endpoint: EndpointDescriptor) -> None:
        if endpoint.stats is not None:
            endpoint.stats.call_count += 1
            endpoint.stats.last_called_at = datetime.now(timezone.utc)

    @staticmethod
    def _record_error(endpoint: EndpointDescriptor, error: str) -> None:
        if endpoint.stats is not None:
            endpoint.stats.error_count += 1
            endpoint.stats.last_error = error

    async def dispatch(
        self,
        endpoint_key: str,
        options: Optional[CallOptions] = None,
    ) -> CallResult[Any]:
        """
        Make a GET call to a registered endpoint.

        Args:
            endpoint_key: Key in the endpoint registry
            options: Query parameters, extra headers and timeout

        Returns:
            CallResult with parsed JSON data on success
        """
        return await self._dispatch(endpoint_key, options)

    async def _dispatch(
        self,
        endpoint_key: str,
        options: Optional[CallOptions],
        path_suffix: Optional[str] = None,
    ) -> CallResult[Any]:
        if options is None:
            options = CallOptions()

        endpoint = self._registry.get_endpoint(endpoint_key)
        if endpoint is None:
            error = f"Endpoint not found: {endpoint_key}"
            logger.error(error)
            return CallResult.failure(error)

        if not endpoint.enabled:
            error = f"Endpoint is disabled: {endpoint_key}"
            logger.warning(error)
            return CallResult.failure(error)

        base_url = endpoint.url
        if path_suffix is not None:
            base_url = join_url(base_url, path_suffix)
        url = build_url_with_params(base_url, options.query_params)
        headers = self._build_headers(endpoint, options.headers)
        timeout_ms = options.timeout_ms
        if timeout_ms is None:
            timeout_ms = self._default_timeout_ms
        timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000)

        self._record_attempt(endpoint)

        try:
            session = await self._get_session()
            async with session.get(url, headers=headers, timeout=timeout) as response:
                if not 200 <= response.status < 300:
                    body = await response.text()
                    error = f"API call failed: {response.status} {response.reason} - {body}"
                    self._record_error(endpoint, error)
                    logger.error(f"[{endpoint_key}] {error}")
                    return CallResult.failure(error, status=response.status)

                # Decode failures are reported without the 2xx status
                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    error = str(e) or f"Invalid JSON response from endpoint: {endpoint_key}"
                    self._record_error(endpoint, error)
                    logger.error(f"[{endpoint_key}] Failed to decode response: {error}")
                    return CallResult.failure(error)

                # aiohttp decodes an empty body (and a literal null) to None
                if data is None:
                    error = f"Empty response body from endpoint: {endpoint_key}"
                    self._record_error(endpoint, error)
                    logger.error(f"[{endpoint_key}] Failed to decode response: {error}")
                    return CallResult.failure(error)

                logger.debug(f"[{endpoint_key}] API call successful")
                return CallResult.ok(data, status=response.status)

        except asyncio.TimeoutError:
            error = f"API call timeout after {timeout_ms}ms: {endpoint_key}"
            self._record_error(endpoint, error)
            logger.error(error)
            return CallResult.failure(error)

        except Exception as e:
            error = str(e) or f"Unknown error calling endpoint: {endpoint_key}"
            self._record_error(endpoint, error)
            logger.error(f"[{endpoint_key}] {error}")
            return CallResult.failure(error)

    async def dispatch_with_path_suffix(
        self,
        endpoint_key: str,
        path_suffix: str,
        options: Optional[CallOptions] = None,
    ) -> CallResult[Any]:
        """
        Call an endpoint with an extra path segment (e.g. /coins/{id}).

        The target URL is built per call; the registry entry is never
        rewritten, so concurrent calls to the same key are isolated. Stats
        and enabled state are those of the base endpoint.
        """
        return await self._dispatch(endpoint_key, options, path_suffix=path_suffix)

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "RequestDispatcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(endpoints={len(self._registry)})>"
