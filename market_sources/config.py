"""
Market Sources - Configuration.

============================================================
CONFIGURATION SOURCES
============================================================

Configuration can be loaded from:
- Default values
- Environment variables (a local .env file is honored)
- YAML config file

Environment variables:
- MARKET_BACKEND_BASE_URL    (required to build the endpoint registry)
- COINGECKO_BASE_URL
- COINGECKO_API_KEY
- MARKET_REQUEST_TIMEOUT_MS
- MARKET_POLICY_STORE_PATH

============================================================
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv


logger = logging.getLogger(__name__)


DEFAULT_COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"
DEFAULT_TIMEOUT_MS = 30000


def normalize_base_url(url: Optional[str]) -> Optional[str]:
    """Strip trailing slashes so joined endpoint paths never contain '//'."""
    if not url:
        return None
    return url.rstrip("/")


@dataclass
class MarketSourcesConfig:
    """Settings for the endpoint registry, dispatcher and policy store."""
    backend_base_url: Optional[str] = None
    coingecko_base_url: str = DEFAULT_COINGECKO_BASE_URL
    coingecko_api_key: Optional[str] = None
    request_timeout_ms: int = DEFAULT_TIMEOUT_MS
    policy_store_path: Optional[Path] = None

    def __post_init__(self) -> None:
        self.backend_base_url = normalize_base_url(self.backend_base_url)
        self.coingecko_base_url = (
            normalize_base_url(self.coingecko_base_url) or DEFAULT_COINGECKO_BASE_URL
        )
        if self.request_timeout_ms <= 0:
            raise ValueError("request_timeout_ms must be positive")

    @classmethod
    def from_env(cls) -> "MarketSourcesConfig":
        """Load configuration from environment variables."""
        load_dotenv()

        timeout = os.getenv("MARKET_REQUEST_TIMEOUT_MS")
        store_path = os.getenv("MARKET_POLICY_STORE_PATH")

        return cls(
            backend_base_url=os.getenv("MARKET_BACKEND_BASE_URL"),
            coingecko_base_url=os.getenv("COINGECKO_BASE_URL", DEFAULT_COINGECKO_BASE_URL),
            coingecko_api_key=os.getenv("COINGECKO_API_KEY") or None,
            request_timeout_ms=int(timeout) if timeout else DEFAULT_TIMEOUT_MS,
            policy_store_path=Path(store_path) if store_path else None,
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "MarketSourcesConfig":
        """Load configuration from a YAML file, falling back to defaults."""
        try:
            import yaml
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}

            store_path = data.get("policy_store_path")
            return cls(
                backend_base_url=data.get("backend_base_url"),
                coingecko_base_url=data.get("coingecko_base_url", DEFAULT_COINGECKO_BASE_URL),
                coingecko_api_key=data.get("coingecko_api_key"),
                request_timeout_ms=int(data.get("request_timeout_ms", DEFAULT_TIMEOUT_MS)),
                policy_store_path=Path(store_path) if store_path else None,
            )

        except Exception as e:
            logger.warning(f"Failed to load YAML config from {path}: {e}")
            return cls()

    def coingecko_headers(self) -> Dict[str, str]:
        """Headers sent with every CoinGecko request."""
        if self.coingecko_api_key:
            return {"x-cg-demo-api-key": self.coingecko_api_key}
        return {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (API key redacted)."""
        return {
            "backend_base_url": self.backend_base_url,
            "coingecko_base_url": self.coingecko_base_url,
            "coingecko_api_key": "***" if self.coingecko_api_key else None,
            "request_timeout_ms": self.request_timeout_ms,
            "policy_store_path": str(self.policy_store_path) if self.policy_store_path else None,
        }


# =============================================================
# GLOBAL CONFIG SINGLETON
# =============================================================


_default_config: Optional[MarketSourcesConfig] = None


def get_config() -> MarketSourcesConfig:
    """Get the global configuration."""
    global _default_config
    if _default_config is None:
        _default_config = MarketSourcesConfig.from_env()
    return _default_config


def set_config(config: MarketSourcesConfig) -> None:
    """Set the global configuration."""
    global _default_config
    _default_config = config
