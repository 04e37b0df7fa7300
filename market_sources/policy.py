"""
Policy Store - Blocking rules and data source preferences.

============================================================
STATE PARTITIONS
============================================================
- feature_blocking:     per feature {block_primary, block_secondary}
- global_blocking:      {block_backend, block_coingecko}
- feature_preferences:  per feature {preferred_data_source,
                        enable_fallback, use_global_preferences}
- global_preferences:   {preferred_data_source, enable_fallback}

Defaults everywhere: nothing blocked, primary preferred,
fallback enabled.

============================================================
PRECEDENCE
============================================================
- A global provider block always wins over a feature's own
  unblocked state.
- A feature without stored preferences, or with
  use_global_preferences=True, resolves to the global pair.
  Its stored override values stay latent.

============================================================
PERSISTENCE
============================================================
Every mutation writes a full snapshot to the key-value store
(last write wins). Snapshots are versioned; older versions are
migrated on load instead of being discarded.

============================================================
"""

import json
import logging
from dataclasses import fields, replace
from typing import Any, Callable, Iterable, Optional

from market_sources.exceptions import SnapshotError
from market_sources.features import get_feature_ids
from market_sources.models import (
    DataSource,
    EffectivePreferences,
    FeatureBlockingState,
    FeatureDataSourcePreferences,
    GlobalBlockingState,
    GlobalDataSourcePreferences,
    Provider,
)
from market_sources.storage import InMemoryKeyValueStore, KeyValueStore


logger = logging.getLogger(__name__)


POLICY_STORAGE_KEY = "apiBlocking"
SNAPSHOT_VERSION = 1

BACKEND_ENDPOINT_MARKERS = ("CRYPTO_PROXY", "BACKEND")
COINGECKO_ENDPOINT_MARKERS = ("COINGECKO",)


def providers_for_endpoint(endpoint_key: str) -> list[Provider]:
    """Provider families an endpoint key belongs to, by naming convention."""
    providers = []
    if any(marker in endpoint_key for marker in BACKEND_ENDPOINT_MARKERS):
        providers.append(Provider.BACKEND)
    if any(marker in endpoint_key for marker in COINGECKO_ENDPOINT_MARKERS):
        providers.append(Provider.COINGECKO)
    return providers


# =============================================================
# SNAPSHOT MIGRATION
# =============================================================


_V0_FEATURE_BLOCKING_FIELDS = {
    "blockDefault": "block_primary",
    "blockAlternate": "block_secondary",
    "block_default": "block_primary",
    "block_alternate": "block_secondary",
    "blockPrimary": "block_primary",
    "blockSecondary": "block_secondary",
}

_V0_GLOBAL_BLOCKING_FIELDS = {
    "blockBackend": "block_backend",
    "blockCoinGecko": "block_coingecko",
}

_V0_PREFERENCE_FIELDS = {
    "preferredDataSource": "preferred_data_source",
    "enableFallback": "enable_fallback",
    "useGlobalPreferences": "use_global_preferences",
}

_V0_PARTITIONS = {
    "featureBlocking": "feature_blocking",
    "globalBlocking": "global_blocking",
    "featurePreferences": "feature_preferences",
    "globalPreferences": "global_preferences",
}


def _rename(record: dict[str, Any], mapping: dict[str, str]) -> dict[str, Any]:
    return {mapping.get(key, key): value for key, value in record.items()}


def _migrate_v0(state: dict[str, Any]) -> dict[str, Any]:
    """
    v0 -> v1.

    v0 used camelCase names and called the two feature sources
    "default" / "alternate"; v1 uses snake_case and "primary" / "secondary".
    """
    state = _rename(state, _V0_PARTITIONS)
    return {
        "feature_blocking": {
            feature_id: _rename(record, _V0_FEATURE_BLOCKING_FIELDS)
            for feature_id, record in (state.get("feature_blocking") or {}).items()
        },
        "global_blocking": _rename(state.get("global_blocking") or {}, _V0_GLOBAL_BLOCKING_FIELDS),
        "feature_preferences": {
            feature_id: _rename(record, _V0_PREFERENCE_FIELDS)
            for feature_id, record in (state.get("feature_preferences") or {}).items()
        },
        "global_preferences": _rename(state.get("global_preferences") or {}, _V0_PREFERENCE_FIELDS),
    }


_MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    0: _migrate_v0,
}


def migrate_snapshot(snapshot: Any) -> dict[str, Any]:
    """
    Bring a persisted snapshot up to SNAPSHOT_VERSION and return its state.

    Raises:
        SnapshotError: If the snapshot is malformed or from a newer version
    """
    if not isinstance(snapshot, dict):
        raise SnapshotError("Snapshot must be a JSON object")

    version = snapshot.get("version", 0)
    state = snapshot.get("state")
    if not isinstance(version, int) or not isinstance(state, dict):
        raise SnapshotError("Snapshot is missing 'version' or 'state'", version=None)

    if version > SNAPSHOT_VERSION:
        raise SnapshotError(
            f"Unsupported snapshot version {version} (current is {SNAPSHOT_VERSION})",
            version=version,
        )

    while version < SNAPSHOT_VERSION:
        state = _MIGRATIONS[version](state)
        logger.info(f"Migrated policy snapshot v{version} -> v{version + 1}")
        version += 1

    return state


# =============================================================
# POLICY STORE
# =============================================================


def _merge(record: Any, changes: dict[str, Any]) -> Any:
    """Shallow merge of changes into a dataclass record."""
    allowed = {f.name for f in fields(record)}
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(
            f"Unknown field(s) for {type(record).__name__}: {', '.join(sorted(unknown))}"
        )
    if "preferred_data_source" in changes:
        changes = dict(changes)
        changes["preferred_data_source"] = DataSource(changes["preferred_data_source"])
    return replace(record, **changes)


class PolicyStore:
    """
    Shared blocking/preference state consulted before any network call.

    Reads are synchronous; mutations are coroutines because they persist a
    snapshot after the in-memory update has completed.

    Usage:
        store = PolicyStore(JsonFileKeyValueStore(path))
        await store.load()

        await store.set_global_blocking(block_coingecko=True)
        store.is_blocked("markets", "COINGECKO_COINS_MARKETS", DataSource.SECONDARY)
    """

    def __init__(
        self,
        storage: Optional[KeyValueStore] = None,
        feature_ids: Optional[Iterable[str]] = None,
    ) -> None:
        self._storage: KeyValueStore = storage if storage is not None else InMemoryKeyValueStore()
        self._feature_ids = list(feature_ids) if feature_ids is not None else get_feature_ids()
        self._has_hydrated = False
        self._reset_state()

    def _reset_state(self) -> None:
        self._feature_blocking: dict[str, FeatureBlockingState] = {
            feature_id: FeatureBlockingState() for feature_id in self._feature_ids
        }
        self._global_blocking = GlobalBlockingState()
        self._feature_preferences: dict[str, FeatureDataSourcePreferences] = {}
        self._global_preferences = GlobalDataSourcePreferences()

    # =========================================================
    # READS
    # =========================================================

    @property
    def has_hydrated(self) -> bool:
        """True once load() has run, whether or not a snapshot existed."""
        return self._has_hydrated

    @property
    def global_blocking(self) -> GlobalBlockingState:
        return replace(self._global_blocking)

    @property
    def global_preferences(self) -> GlobalDataSourcePreferences:
        return replace(self._global_preferences)

    def get_feature_blocking(self, feature_id: str) -> FeatureBlockingState:
        """Blocking flags for a feature; unseen ids get all-false defaults."""
        state = self._feature_blocking.get(feature_id)
        return replace(state) if state else FeatureBlockingState()

    def get_feature_preferences(self, feature_id: str) -> Optional[FeatureDataSourcePreferences]:
        """Stored preferences for a feature, or None if never set."""
        prefs = self._feature_preferences.get(feature_id)
        return replace(prefs) if prefs else None

    def is_feature_source_blocked(self, feature_id: str, source: DataSource) -> bool:
        state = self._feature_blocking.get(feature_id)
        if state is None:
            return False
        return state.is_blocked(source)

    def is_global_blocked(self, provider: Provider) -> bool:
        return self._global_blocking.is_blocked(provider)

    def is_blocked(
        self,
        feature_id: str,
        endpoint_key: str,
        source: DataSource = DataSource.PRIMARY,
    ) -> bool:
        """
        Whether a call must be refused.

        The global provider check runs first and cannot be overridden by the
        feature's own flags.
        """
        for provider in providers_for_endpoint(endpoint_key):
            if self.is_global_blocked(provider):
                return True
        return self.is_feature_source_blocked(feature_id, source)

    def effective_preferences(self, feature_id: str) -> EffectivePreferences:
        prefs = self._feature_preferences.get(feature_id)
        if prefs is None or prefs.use_global_preferences:
            return EffectivePreferences(
                preferred_data_source=self._global_preferences.preferred_data_source,
                enable_fallback=self._global_preferences.enable_fallback,
            )
        return EffectivePreferences(
            preferred_data_source=prefs.preferred_data_source,
            enable_fallback=prefs.enable_fallback,
        )

    # =========================================================
    # MUTATIONS
    # =========================================================

    async def set_feature_blocking(self, feature_id: str, **changes: bool) -> FeatureBlockingState:
        current = self._feature_blocking.get(feature_id) or FeatureBlockingState()
        self._feature_blocking[feature_id] = _merge(current, changes)
        logger.info(f"[{feature_id}] Feature blocking updated: {changes}")
        await self._persist()
        return self.get_feature_blocking(feature_id)

    async def set_global_blocking(self, **changes: bool) -> GlobalBlockingState:
        self._global_blocking = _merge(self._global_blocking, changes)
        logger.info(f"Global blocking updated: {changes}")
        await self._persist()
        return self.global_blocking

    async def set_feature_preferences(
        self,
        feature_id: str,
        **changes: Any,
    ) -> FeatureDataSourcePreferences:
        current = self._feature_preferences.get(feature_id) or FeatureDataSourcePreferences()
        self._feature_preferences[feature_id] = _merge(current, changes)
        logger.info(f"[{feature_id}] Feature preferences updated: {changes}")
        await self._persist()
        return replace(self._feature_preferences[feature_id])

    async def set_global_preferences(self, **changes: Any) -> GlobalDataSourcePreferences:
        self._global_preferences = _merge(self._global_preferences, changes)
        logger.info(f"Global preferences updated: {changes}")
        await self._persist()
        return self.global_preferences

    async def reset_feature_blocking(self, feature_id: str) -> None:
        self._feature_blocking[feature_id] = FeatureBlockingState()
        await self._persist()

    async def reset_all(self) -> None:
        """Restore all four partitions to their defaults."""
        self._reset_state()
        logger.info("Policy store reset to defaults")
        await self._persist()

    # =========================================================
    # PERSISTENCE
    # =========================================================

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "state": {
                "feature_blocking": {
                    feature_id: state.to_dict()
                    for feature_id, state in self._feature_blocking.items()
                },
                "global_blocking": self._global_blocking.to_dict(),
                "feature_preferences": {
                    feature_id: prefs.to_dict()
                    for feature_id, prefs in self._feature_preferences.items()
                },
                "global_preferences": self._global_preferences.to_dict(),
            },
        }

    def _apply_state(self, state: dict[str, Any]) -> None:
        self._reset_state()
        for feature_id, record in (state.get("feature_blocking") or {}).items():
            self._feature_blocking[feature_id] = FeatureBlockingState.from_dict(record)
        self._global_blocking = GlobalBlockingState.from_dict(state.get("global_blocking") or {})
        self._feature_preferences = {
            feature_id: FeatureDataSourcePreferences.from_dict(record)
            for feature_id, record in (state.get("feature_preferences") or {}).items()
        }
        self._global_preferences = GlobalDataSourcePreferences.from_dict(
            state.get("global_preferences") or {}
        )

    async def _persist(self) -> None:
        try:
            await self._storage.set_item(POLICY_STORAGE_KEY, json.dumps(self.to_snapshot()))
        except Exception as e:
            logger.error(f"Failed to persist policy snapshot: {e}")

    async def load(self) -> bool:
        """
        Hydrate from the key-value store.

        Returns:
            True if a snapshot was restored, False if defaults are in effect
        """
        try:
            raw = await self._storage.get_item(POLICY_STORAGE_KEY)
            if raw is None:
                return False
            self._apply_state(migrate_snapshot(json.loads(raw)))
            logger.info("Policy snapshot restored")
            return True
        except (SnapshotError, ValueError, TypeError, AttributeError, OSError) as e:
            logger.error(f"Failed to restore policy snapshot, using defaults: {e}")
            self._reset_state()
            return False
        finally:
            self._has_hydrated = True

    async def clear_persisted(self) -> None:
        """Remove the persisted snapshot; in-memory state is unchanged."""
        await self._storage.remove_item(POLICY_STORAGE_KEY)
