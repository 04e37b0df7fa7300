"""
Market Source Models - Typed structures shared across the data access layer.

Covers endpoint descriptors, per-call options and results, the blocking and
preference partitions held by the policy store, and the feature payloads
(markets, dominance, volatility).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, Optional, TypeVar, Union


T = TypeVar("T")

QueryValue = Union[str, int, float, bool, None]


def now_ms() -> int:
    """Current UTC time as epoch milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


class DataSource(Enum):
    """Data source slot of a feature."""
    PRIMARY = "primary"      # backend proxy
    SECONDARY = "secondary"  # CoinGecko

    @property
    def alternate(self) -> "DataSource":
        """The other data source."""
        if self is DataSource.PRIMARY:
            return DataSource.SECONDARY
        return DataSource.PRIMARY


class Provider(Enum):
    """Upstream provider families that can be blocked globally."""
    BACKEND = "backend"
    COINGECKO = "coingecko"


# =============================================================
# ENDPOINTS
# =============================================================


@dataclass
class EndpointStats:
    """Mutable call statistics, updated by the dispatcher on every attempt."""
    call_count: int = 0
    last_called_at: Optional[datetime] = None
    error_count: int = 0
    last_error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "call_count": self.call_count,
            "last_called_at": self.last_called_at.isoformat() if self.last_called_at else None,
            "error_count": self.error_count,
            "last_error": self.last_error,
        }


@dataclass
class EndpointDescriptor:
    """Registry entry for one endpoint key."""
    id: str
    url: str
    name: str = ""
    enabled: bool = True
    headers: dict[str, str] = field(default_factory=dict)
    stats: Optional[EndpointStats] = field(default_factory=EndpointStats)


# =============================================================
# CALLS
# =============================================================


@dataclass
class CallOptions:
    """Options for a single GET call."""
    query_params: Optional[dict[str, QueryValue]] = None
    headers: Optional[dict[str, str]] = None
    timeout_ms: Optional[int] = None  # dispatcher default (30000) when None


@dataclass(frozen=True)
class CallResult(Generic[T]):
    """
    Outcome of a single call.

    Either success=True with data set and error None, or success=False with
    data None and error set. status is None for failures that never produced
    a usable HTTP response (transport, timeout, decode, configuration).
    """
    data: Optional[T] = None
    error: Optional[str] = None
    status: Optional[int] = None
    success: bool = False

    @classmethod
    def ok(cls, data: T, status: Optional[int] = 200) -> "CallResult[T]":
        return cls(data=data, error=None, status=status, success=True)

    @classmethod
    def failure(cls, error: str, status: Optional[int] = None) -> "CallResult[T]":
        return cls(data=None, error=error, status=status, success=False)


@dataclass(frozen=True)
class BlockedCallResult(CallResult[T]):
    """CallResult that also reports whether the gateway refused to dispatch."""
    blocked: bool = False

    @classmethod
    def from_result(cls, result: CallResult[T]) -> "BlockedCallResult[T]":
        """Wrap a real network attempt (never blocked)."""
        return cls(
            data=result.data,
            error=result.error,
            status=result.status,
            success=result.success,
            blocked=False,
        )

    @classmethod
    def blocked_result(cls, error: str) -> "BlockedCallResult[T]":
        """Synthesized 503 for a call refused by policy."""
        return cls(data=None, error=error, status=503, success=False, blocked=True)


@dataclass(frozen=True)
class FallbackResult(Generic[T]):
    """Outcome of an orchestrated preferred-then-alternate fetch."""
    data: Optional[T] = None
    error: Optional[str] = None
    success: bool = False
    source: Optional[DataSource] = None
    attempted: tuple[DataSource, ...] = ()
    fallback_used: bool = False
    fallback_enabled: bool = True


# =============================================================
# POLICY PARTITIONS
# =============================================================


@dataclass
class FeatureBlockingState:
    """Per-feature blocking flags."""
    block_primary: bool = False
    block_secondary: bool = False

    def is_blocked(self, source: DataSource) -> bool:
        if source is DataSource.PRIMARY:
            return self.block_primary
        return self.block_secondary

    def to_dict(self) -> dict[str, Any]:
        return {
            "block_primary": self.block_primary,
            "block_secondary": self.block_secondary,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeatureBlockingState":
        return cls(
            block_primary=bool(data.get("block_primary", False)),
            block_secondary=bool(data.get("block_secondary", False)),
        )


@dataclass
class GlobalBlockingState:
    """Process-wide provider blocking flags."""
    block_backend: bool = False
    block_coingecko: bool = False

    def is_blocked(self, provider: Provider) -> bool:
        if provider is Provider.BACKEND:
            return self.block_backend
        return self.block_coingecko

    def to_dict(self) -> dict[str, Any]:
        return {
            "block_backend": self.block_backend,
            "block_coingecko": self.block_coingecko,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GlobalBlockingState":
        return cls(
            block_backend=bool(data.get("block_backend", False)),
            block_coingecko=bool(data.get("block_coingecko", False)),
        )


@dataclass
class FeatureDataSourcePreferences:
    """
    Per-feature source preferences.

    When use_global_preferences is True the feature's own fields stay stored
    but are ignored in favor of the global preferences.
    """
    preferred_data_source: DataSource = DataSource.PRIMARY
    enable_fallback: bool = True
    use_global_preferences: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "preferred_data_source": self.preferred_data_source.value,
            "enable_fallback": self.enable_fallback,
            "use_global_preferences": self.use_global_preferences,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeatureDataSourcePreferences":
        return cls(
            preferred_data_source=DataSource(data.get("preferred_data_source", "primary")),
            enable_fallback=bool(data.get("enable_fallback", True)),
            use_global_preferences=bool(data.get("use_global_preferences", True)),
        )


@dataclass
class GlobalDataSourcePreferences:
    """Default preferences inherited by features."""
    preferred_data_source: DataSource = DataSource.PRIMARY
    enable_fallback: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "preferred_data_source": self.preferred_data_source.value,
            "enable_fallback": self.enable_fallback,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GlobalDataSourcePreferences":
        return cls(
            preferred_data_source=DataSource(data.get("preferred_data_source", "primary")),
            enable_fallback=bool(data.get("enable_fallback", True)),
        )


@dataclass(frozen=True)
class EffectivePreferences:
    """Resolved preference pair for a feature."""
    preferred_data_source: DataSource
    enable_fallback: bool


# =============================================================
# DOMINANCE
# =============================================================


@dataclass(frozen=True)
class MarketCapData:
    """Raw market caps (USD) used by the dominance calculator."""
    total: float
    btc: float
    eth: float
    stablecoins: float


@dataclass(frozen=True)
class CategoryDominance:
    """Market cap and dominance percentage of one category."""
    market_cap: float
    dominance: float

    def to_dict(self) -> dict[str, Any]:
        return {"market_cap": self.market_cap, "dominance": self.dominance}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CategoryDominance":
        market_cap = data.get("marketCap", data.get("market_cap", 0))
        return cls(
            market_cap=float(market_cap or 0),
            dominance=float(data.get("dominance") or 0),
        )


@dataclass(frozen=True)
class DominanceAnalysis:
    """
    Dominance breakdown.

    timestamp is when the analysis was computed (epoch milliseconds, from the
    backend or the local calculation); fetched_at is when this process
    received it.
    """
    total_market_cap: float
    btc: CategoryDominance
    eth: CategoryDominance
    stablecoins: CategoryDominance
    others: CategoryDominance
    timestamp: int
    fetched_at: Optional[int] = None

    @property
    def total_dominance(self) -> float:
        return (
            self.btc.dominance
            + self.eth.dominance
            + self.stablecoins.dominance
            + self.others.dominance
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_market_cap": self.total_market_cap,
            "btc": self.btc.to_dict(),
            "eth": self.eth.to_dict(),
            "stablecoins": self.stablecoins.to_dict(),
            "others": self.others.to_dict(),
            "timestamp": self.timestamp,
            "fetched_at": self.fetched_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DominanceAnalysis":
        """Parse a backend payload (camelCase) or a to_dict() snapshot."""
        total = data.get("totalMarketCap", data.get("total_market_cap", 0))
        fetched_at = data.get("fetchedAt", data.get("fetched_at"))
        return cls(
            total_market_cap=float(total or 0),
            btc=CategoryDominance.from_dict(data.get("btc") or {}),
            eth=CategoryDominance.from_dict(data.get("eth") or {}),
            stablecoins=CategoryDominance.from_dict(data.get("stablecoins") or {}),
            others=CategoryDominance.from_dict(data.get("others") or {}),
            timestamp=int(data.get("timestamp") or 0),
            fetched_at=int(fetched_at) if fetched_at is not None else None,
        )


# =============================================================
# MARKETS
# =============================================================


@dataclass
class MarketsOptions:
    """Query options for the markets endpoints (CoinGecko /coins/markets shape)."""
    vs_currency: str = "usd"
    order: str = "market_cap_desc"
    per_page: int = 250
    page: int = 1
    sparkline: bool = False
    price_change_percentage: Optional[str] = None
    ids: Optional[str] = None
    category: Optional[str] = None

    def to_query_params(self) -> dict[str, QueryValue]:
        params: dict[str, QueryValue] = {
            "vs_currency": self.vs_currency,
            "order": self.order,
            "per_page": self.per_page,
            "page": self.page,
            "sparkline": self.sparkline,
        }
        if self.price_change_percentage is not None:
            params["price_change_percentage"] = self.price_change_percentage
        if self.ids is not None:
            params["ids"] = self.ids
        if self.category is not None:
            params["category"] = self.category
        return params


@dataclass(frozen=True)
class MarketsResponse:
    """Markets rows plus the local receive time (epoch milliseconds)."""
    data: list[dict[str, Any]]
    fetched_at: int


# =============================================================
# VOLATILITY
# =============================================================


@dataclass(frozen=True)
class CurrentVolatility:
    """Current market volatility snapshot from the backend."""
    volatility_1h: float
    volatility_24h: float
    level_1h: str
    level_24h: str
    top_mover_percentage: float
    top_mover_coin: str
    market_cap_coverage: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CurrentVolatility":
        return cls(
            volatility_1h=float(data.get("volatility1h") or 0),
            volatility_24h=float(data.get("volatility24h") or 0),
            level_1h=str(data.get("level1h") or ""),
            level_24h=str(data.get("level24h") or ""),
            top_mover_percentage=float(data.get("topMoverPercentage") or 0),
            top_mover_coin=str(data.get("topMoverCoin") or ""),
            market_cap_coverage=float(data.get("marketCapCoverage") or 0),
        )


@dataclass(frozen=True)
class VwatrResult:
    """VWATR for one period."""
    period: int
    vwatr: float
    atrp: float


@dataclass(frozen=True)
class VwatrCoinData:
    """VWATR results for one coin."""
    symbol: str
    results: list[VwatrResult]


@dataclass(frozen=True)
class VwatrResponse:
    """Volume-weighted average true range for a bag of coins."""
    bag: str
    periods: list[int]
    max_period: int
    timestamp: int
    data: list[VwatrCoinData]
    fetched_at: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], fetched_at: Optional[int] = None) -> "VwatrResponse":
        coins = [
            VwatrCoinData(
                symbol=str(coin.get("symbol", "")),
                results=[
                    VwatrResult(
                        period=int(r.get("period", 0)),
                        vwatr=float(r.get("vwatr") or 0),
                        atrp=float(r.get("atrp") or 0),
                    )
                    for r in coin.get("results", [])
                ],
            )
            for coin in data.get("data", [])
        ]
        return cls(
            bag=str(data.get("bag", "")),
            periods=[int(p) for p in data.get("periods", [])],
            max_period=int(data.get("maxPeriod") or 0),
            timestamp=int(data.get("timestamp") or 0),
            data=coins,
            fetched_at=fetched_at,
        )
