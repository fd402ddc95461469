# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Small key/value cache for operational facts.

Cache key format:   free-form string ("last_quota_snapshot", "last_cleared_at", "initialized_at")
Cache value format: {"value": <json>, "updated_at": <epoch ms>}
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Optional

from record_cache.cache_base import BaseDiskCache
from registry_common import now_ms


class MetadataCache(BaseDiskCache):
    """Key/value metadata table (never expires)."""

    _SCHEMA_VERSION = 1

    def __init__(self, *, cache_file: Path, clock: Callable[[], int] = now_ms):
        super().__init__(cache_file=cache_file, schema_version=self._SCHEMA_VERSION)
        self._clock = clock

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return {"value": ..., "updated_at": ...} or None."""
        with self._mu:
            self._load_once()
            ent = self._check_item(str(key))
            return dict(ent) if isinstance(ent, dict) else None

    def get_value(self, key: str, default: Any = None) -> Any:
        ent = self.get(key)
        return ent.get("value", default) if ent else default

    def set(self, key: str, value: Any) -> None:
        with self._mu:
            self._load_once()
            self._set_item(str(key), {"value": value, "updated_at": int(self._clock())})
            self._persist()

    def clear_all(self) -> int:
        with self._mu:
            return self._clear()
