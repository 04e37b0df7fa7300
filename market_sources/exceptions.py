"""
Market Source Exceptions - Exception hierarchy for the market data access layer.

Public components (dispatcher, gateway, orchestrators) never let these escape;
they are raised internally and converted into result objects at the boundary.
The only exception surfaced to callers is ConfigurationError at wiring time.
"""

from typing import Optional


class MarketSourceError(Exception):
    """Base exception for all market source errors."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source_name = source_name
        self.original_error = original_error

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.source_name:
            parts.append(f"[source={self.source_name}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class FetchError(MarketSourceError):
    """A provider call did not produce usable data."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        status_code: Optional[int] = None,
        endpoint_key: Optional[str] = None,
        blocked: bool = False,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, source_name, original_error)
        self.status_code = status_code
        self.endpoint_key = endpoint_key
        self.blocked = blocked


class ConfigurationError(MarketSourceError):
    """Missing or invalid configuration."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        config_key: Optional[str] = None,
    ) -> None:
        super().__init__(message, source_name)
        self.config_key = config_key


class SnapshotError(MarketSourceError):
    """A persisted policy snapshot could not be loaded."""

    def __init__(
        self,
        message: str,
        version: Optional[int] = None,
    ) -> None:
        super().__init__(message, "policy_store")
        self.version = version
