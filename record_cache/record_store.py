# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Persistent record table for one resource kind.

Cache key format:   "{owner}/{repo}"   (or "{login}" for the user table)
Cache value format: {"payload": <json or null>, "status": "exists"|"deleted"|"unknown" (repo_stats only),
                     "last_fetched": <epoch ms>}

Policy:
- A record is fresh iff now - last_fetched < ttl (1h).
- Stale records are NEVER purged automatically; they are the fallback when GitHub
  is rate limiting us or unreachable. Only clear_all()/clear_expired() delete, and
  only when a user asks for it.
- upsert() is a full replace (last write wins); there is at most one row per key.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from record_cache.cache_base import BaseDiskCache
from registry_common import CACHE_TTL_MS, is_cache_fresh, now_ms
from registry_github.fetch_types import CacheRecord

_logger = logging.getLogger(__name__)


class RecordStore(BaseDiskCache):
    """Generic record table; instantiated once per resource kind."""

    _SCHEMA_VERSION = 1

    def __init__(
        self,
        *,
        name: str,
        cache_file: Path,
        ttl_ms: int = CACHE_TTL_MS,
        clock: Callable[[], int] = now_ms,
    ):
        super().__init__(cache_file=cache_file, schema_version=self._SCHEMA_VERSION)
        self.name = str(name)
        self.ttl_ms = int(ttl_ms)
        self._clock = clock

    def __repr__(self) -> str:
        return f"RecordStore(name={self.name!r}, cache_file={str(self.cache_file)!r})"

    def _is_fresh(self, record: CacheRecord, now: int) -> bool:
        return is_cache_fresh(record.last_fetched, now=now, ttl_ms=self.ttl_ms)

    def _merge_item(self, key: str, disk_value: Any, mem_value: Any) -> Any:
        # Another process may have written a newer record since we loaded; keep the newest.
        disk_rec = CacheRecord.from_dict(key, disk_value)
        mem_rec = CacheRecord.from_dict(key, mem_value)
        if disk_rec is not None and mem_rec is not None and disk_rec.last_fetched > mem_rec.last_fetched:
            return disk_value
        return mem_value

    def _read_record(self, key: str) -> Optional[CacheRecord]:
        ent = self._check_item(key)
        if ent is None:
            return None
        rec = CacheRecord.from_dict(key, ent)
        if rec is None:
            _logger.warning("[%s] ignoring malformed record for %s", self.name, key)
        return rec

    def get(self, key: str, require_fresh: bool = True) -> Optional[CacheRecord]:
        """Return the record for `key`.

        require_fresh=True  -> None for missing *or* stale records
        require_fresh=False -> the record regardless of age (fallback read)
        """
        now = int(self._clock())
        with self._mu:
            self._load_once()
            rec = self._read_record(str(key))
        if rec is None:
            return None
        if require_fresh and not self._is_fresh(rec, now):
            return None
        return rec

    def get_many(self, keys: Iterable[str], require_fresh: bool = True) -> Dict[str, CacheRecord]:
        """Batched get(): one lock acquisition for the whole key set."""
        now = int(self._clock())
        out: Dict[str, CacheRecord] = {}
        with self._mu:
            self._load_once()
            for key in keys:
                k = str(key)
                if k in out:
                    continue
                rec = self._read_record(k)
                if rec is None:
                    continue
                if require_fresh and not self._is_fresh(rec, now):
                    continue
                out[k] = rec
        return out

    def upsert(self, record: CacheRecord) -> None:
        """Insert or fully replace the record for record.key."""
        self.upsert_many([record])

    def upsert_many(self, records: Iterable[CacheRecord]) -> None:
        """Bulk upsert; persisted in a single disk write."""
        recs: List[CacheRecord] = list(records)
        if not recs:
            return
        with self._mu:
            self._load_once()
            for rec in recs:
                self._set_item(str(rec.key), rec.to_dict())
            self._persist()

    def all_records(self) -> List[CacheRecord]:
        with self._mu:
            self._load_once()
            items = dict(self._get_items())
        out: List[CacheRecord] = []
        for key, ent in items.items():
            rec = CacheRecord.from_dict(key, ent)
            if rec is not None:
                out.append(rec)
        return out

    def count(self) -> int:
        with self._mu:
            self._load_once()
            return len(self._get_items())

    def count_expired(self) -> int:
        now = int(self._clock())
        return sum(1 for rec in self.all_records() if not self._is_fresh(rec, now))

    def clear_all(self) -> int:
        """Delete every record (explicit, user-invoked only). Returns the number removed."""
        with self._mu:
            removed = self._clear()
        _logger.info("[%s] cleared %d records", self.name, removed)
        return removed

    def clear_expired(self) -> int:
        """Delete only the expired records.

        WARNING: never call this automatically. Expired data is still the fallback when
        the API fails; this exists only for an explicit user request.
        """
        now = int(self._clock())
        with self._mu:
            self._load_once()
            kept: Dict[str, Any] = {}
            removed = 0
            for key, ent in self._get_items().items():
                rec = CacheRecord.from_dict(key, ent)
                if rec is not None and not self._is_fresh(rec, now):
                    removed += 1
                    continue
                kept[key] = ent
            if removed:
                self._replace_items(kept)
        if removed:
            _logger.info("[%s] cleared %d expired records", self.name, removed)
        return removed
