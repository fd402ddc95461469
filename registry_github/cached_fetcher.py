# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Cache-first fetching of GitHub data for the zig-index.

Read path (same for every resource kind):

    fresh record?  --yes-->  return it (no network)
         |no
    stale record (kept as fallback candidate)
         |
    rate-limit gate closed?  --yes-->  synthetic RATE_LIMITED (no network)
         |no
    GitHubAPIClient.fetch()
         |
    OK / NOT_FOUND  -> upsert fresh record, return it
    anything else   -> stale candidate (is_stale=True + error) or a hard miss

Invariants:
- A record is only ever overwritten by a successful fetch. Failures never touch
  the tables, so the last good payload survives any number of failed refreshes.
- Nothing here deletes records except clear_cache()/clear_expired(), which are
  only run on explicit request.
- Once any call reports RATE_LIMITED, later calls (including the rest of a batch)
  short-circuit until the reset time.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from record_cache.cache_metadata import MetadataCache
from record_cache.record_store import RecordStore
from registry_common import (
    CACHE_TTL_MS,
    DEFAULT_BATCH_CONCURRENCY,
    DEFAULT_REFRESH_CONCURRENCY,
    format_cache_expiry,
    now_ms,
    zig_index_cache_dir,
)

from . import GitHubAPIClient
from .api import get_resource
from .api.base_cached import CachedResourceBase
from .fetch_types import (
    BatchEntry,
    CachedFetchResult,
    CacheRecord,
    CacheStats,
    FetchOutcome,
    FetchResult,
    RateLimitInfo,
    ResourceKind,
)
from .rate_limit_gate import RateLimitGate

_logger = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"


class CachedFetcher:
    """Cache orchestrator: one RecordStore per resource kind, one shared rate-limit gate.

    Example:
        fetcher = CachedFetcher()
        res = fetcher.fetch_one(ResourceKind.REPO_STATS, "ziglang/zig")
        if res.payload is not None:
            print(res.payload["stargazers_count"], "(stale)" if res.is_stale else "")
    """

    def __init__(
        self,
        client: Optional[GitHubAPIClient] = None,
        *,
        gate: Optional[RateLimitGate] = None,
        cache_dir: Optional[Path] = None,
        clock: Callable[[], int] = now_ms,
        ttl_ms: int = CACHE_TTL_MS,
    ):
        self.client = client if client is not None else GitHubAPIClient(clock=clock)
        self.gate = gate if gate is not None else RateLimitGate(clock=clock)
        self.cache_dir = Path(cache_dir).expanduser() if cache_dir is not None else zig_index_cache_dir()
        self.ttl_ms = int(ttl_ms)
        self._clock = clock
        self.stores: Dict[ResourceKind, RecordStore] = {
            kind: RecordStore(
                name=kind.value,
                cache_file=self.cache_dir / f"{kind.value}.json",
                ttl_ms=self.ttl_ms,
                clock=clock,
            )
            for kind in ResourceKind
        }
        self.metadata = MetadataCache(cache_file=self.cache_dir / METADATA_FILE, clock=clock)

    # ----------------------------------------------------------------------------------
    # helpers
    # ----------------------------------------------------------------------------------

    def _resource(self, kind: ResourceKind) -> CachedResourceBase:
        return get_resource(ResourceKind(kind), self.client)

    def _split_keys(self, resource: CachedResourceBase, keys: Iterable[str]) -> Tuple[List[str], Dict[str, str]]:
        """Validate keys and drop duplicates, keeping order.

        Returns (valid keys, {malformed key: error message}).
        """
        valid: List[str] = []
        invalid: Dict[str, str] = {}
        seen = set()
        for key in keys:
            try:
                k = resource.cache_key(key)
            except ValueError as e:
                invalid[str(key)] = str(e)
                continue
            if k not in seen:
                seen.add(k)
                valid.append(k)
        return valid, invalid

    def _call_remote(self, kind: ResourceKind, key: str, **options: Any) -> FetchResult:
        """Gate check + remote call; feeds RATE_LIMITED back into the gate.

        An exception from the client becomes a TRANSPORT_ERROR for this key.
        """
        blocked = self.gate.check_before_call()
        if blocked is not None:
            _logger.debug("[%s] %s: gated (%s)", kind.value, key, blocked.error)
            return blocked
        try:
            result = self.client.fetch(kind, key, **options)
        except Exception as e:
            _logger.exception("[%s] %s: unexpected error from the client", kind.value, key)
            return FetchResult.transport_error(f"Unexpected error fetching {key}: {e}")
        if result.outcome is FetchOutcome.RATE_LIMITED:
            self.gate.report_limited(result.reset_at_ms)
        return result

    def _record_from_result(self, resource: CachedResourceBase, key: str, result: FetchResult) -> CacheRecord:
        payload = result.payload if result.outcome is FetchOutcome.OK else None
        return CacheRecord(
            key=key,
            payload=payload,
            last_fetched=int(self._clock()),
            status=resource.record_status(result),
        )

    def _failure_fallback(
        self,
        resource: CachedResourceBase,
        key: str,
        result: FetchResult,
        stale: Optional[CacheRecord],
    ) -> Tuple[Any, bool, bool, Any, str]:
        """(payload, is_stale, from_cache, status, error) for a failed fetch."""
        error = result.error or result.outcome.value
        if stale is not None:
            _logger.info("[%s] %s: %s, using stale cached data", resource.cache_name, key, result.outcome.value)
            return stale.payload, True, True, stale.status, error
        return None, False, False, resource.record_status(result), error

    # ----------------------------------------------------------------------------------
    # public operations
    # ----------------------------------------------------------------------------------

    def fetch_one(self, kind: ResourceKind, key: str, *, force_refresh: bool = False, **options: Any) -> CachedFetchResult:
        """Cache-first fetch of one resource.

        Never raises for remote failures or a malformed key; both come back as `error`.
        """
        kind = ResourceKind(kind)
        resource = self._resource(kind)
        try:
            key = resource.cache_key(key)
        except ValueError as e:
            _logger.warning("[%s] %s", kind.value, e)
            return CachedFetchResult(payload=None, is_stale=False, from_cache=False, error=str(e))
        store = self.stores[kind]

        if not force_refresh:
            fresh = store.get(key, require_fresh=True)
            if fresh is not None:
                return CachedFetchResult(payload=fresh.payload, is_stale=False, from_cache=True, status=fresh.status)

        stale = store.get(key, require_fresh=False)
        result = self._call_remote(kind, key, **options)

        if result.is_success:
            rec = self._record_from_result(resource, key, result)
            store.upsert(rec)
            return CachedFetchResult(payload=rec.payload, is_stale=False, from_cache=False, status=rec.status)

        payload, is_stale, from_cache, status, error = self._failure_fallback(resource, key, result, stale)
        return CachedFetchResult(payload=payload, is_stale=is_stale, from_cache=from_cache, status=status, error=error)

    def fetch_many(
        self,
        kind: ResourceKind,
        keys: Iterable[str],
        *,
        concurrency: int = DEFAULT_BATCH_CONCURRENCY,
        force_refresh: bool = False,
        **options: Any,
    ) -> Dict[str, BatchEntry]:
        """Cache-first fetch of many keys of one kind.

        - one fresh read and one stale read for the whole key set
        - at most `concurrency` remote calls in flight
        - all successes written back in a single upsert
        The result has an entry for every distinct input key; a malformed key gets
        an entry with `error` set and no network call.
        """
        kind = ResourceKind(kind)
        resource = self._resource(kind)
        store = self.stores[kind]
        all_keys, invalid = self._split_keys(resource, keys)

        fresh: Dict[str, CacheRecord] = {} if force_refresh else store.get_many(all_keys, require_fresh=True)
        need_fetch = [k for k in all_keys if k not in fresh]
        stale = store.get_many(need_fetch, require_fresh=False) if need_fetch else {}

        fetched: Dict[str, FetchResult] = {}
        if need_fetch:
            workers = max(1, int(concurrency))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futs = {k: executor.submit(self._call_remote, kind, k, **options) for k in need_fetch}
                for k, fut in futs.items():
                    fetched[k] = fut.result()

        out: Dict[str, BatchEntry] = {}
        to_save: List[CacheRecord] = []
        n_stale = n_miss = 0
        for k in all_keys:
            if k in fresh:
                rec = fresh[k]
                out[k] = BatchEntry(payload=rec.payload, from_cache=True, status=rec.status)
                continue
            result = fetched[k]
            if result.is_success:
                rec = self._record_from_result(resource, k, result)
                to_save.append(rec)
                out[k] = BatchEntry(payload=rec.payload, from_cache=False, status=rec.status)
                continue
            payload, is_stale, from_cache, status, error = self._failure_fallback(resource, k, result, stale.get(k))
            if is_stale:
                n_stale += 1
            else:
                n_miss += 1
            out[k] = BatchEntry(payload=payload, from_cache=from_cache, status=status, is_stale=is_stale, error=error)
        for bad_key, error in invalid.items():
            _logger.warning("[%s] %s", kind.value, error)
            out[bad_key] = BatchEntry(payload=None, from_cache=False, error=error)

        store.upsert_many(to_save)
        _logger.info(
            "[%s] batch of %d: %d fresh from cache, %d fetched, %d stale fallback, %d failed, %d invalid",
            kind.value, len(all_keys), len(fresh), len(to_save), n_stale, n_miss, len(invalid),
        )
        return out

    def check_remote_quota(self) -> Optional[RateLimitInfo]:
        """Query the remote quota (does not consume quota); None if unavailable.

        The snapshot is saved in the metadata table. An exhausted quota closes the
        gate; remaining quota reopens it.
        """
        info = self.client.get_core_rate_limit_info()
        if info is None:
            return None
        self.metadata.set("last_quota_snapshot", info.to_dict())
        if info.remaining <= 0:
            self.gate.report_limited(info.reset_at_ms)
        elif self.gate.is_limited:
            self.gate.reset()
        return info

    def clear_cache(self) -> int:
        """Delete every record of every kind (explicit, user-invoked only). Returns the number removed."""
        removed = sum(store.clear_all() for store in self.stores.values())
        self.metadata.clear_all()
        self.metadata.set("last_cleared_at", int(self._clock()))
        _logger.info("Cleared %d cached records", removed)
        return removed

    def clear_expired(self) -> int:
        """Delete expired records only (explicit, user-invoked only)."""
        return sum(store.clear_expired() for store in self.stores.values())

    def get_cache_stats(self) -> CacheStats:
        stats = CacheStats()
        for kind, store in self.stores.items():
            stats.totals[kind.value] = store.count()
            stats.expired[kind.value] = store.count_expired()
        return stats

    def keys_needing_refresh(self, kind: ResourceKind, keys: Iterable[str]) -> List[str]:
        """Keys (deduplicated, input order) with no fresh record."""
        kind = ResourceKind(kind)
        all_keys, _ = self._split_keys(self._resource(kind), keys)
        fresh = self.stores[kind].get_many(all_keys, require_fresh=True)
        return [k for k in all_keys if k not in fresh]

    def refresh_stale(
        self,
        kind: ResourceKind,
        keys: Iterable[str],
        *,
        concurrency: int = DEFAULT_REFRESH_CONCURRENCY,
    ) -> Dict[str, BatchEntry]:
        """Force-refresh only the missing or stale keys (background refresh on page load)."""
        kind = ResourceKind(kind)
        stale_keys = self.keys_needing_refresh(kind, keys)
        if not stale_keys:
            _logger.debug("[%s] nothing to refresh", kind.value)
            return {}
        _logger.info("[%s] refreshing %d stale/missing records", kind.value, len(stale_keys))
        return self.fetch_many(kind, stale_keys, concurrency=concurrency, force_refresh=True)

    def initialize(self) -> CacheStats:
        """Load every table and log what is cached. Never deletes anything."""
        stats = self.get_cache_stats()
        self.metadata.set("initialized_at", int(self._clock()))
        d = stats.to_dict()
        _logger.info(
            "Cache initialized: %s",
            ", ".join(f"{k}={v['total']} ({v['expired']} stale)" for k, v in d.items()),
        )
        return stats

    def format_cache_expiry(self, last_fetched_ms: int) -> str:
        """Time until a record fetched at `last_fetched_ms` expires ("42m", "1h 5m" or "Expired")."""
        return format_cache_expiry(last_fetched_ms, now=int(self._clock()), ttl_ms=self.ttl_ms)
