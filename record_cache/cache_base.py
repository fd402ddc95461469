# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
JSON-file table shared by the record stores and the metadata cache.

On-disk format:
    {"version": 1, "items": {<key>: <json value>, ...}}

- Loaded lazily, once per instance.
- Every write takes an fcntl lock on ".<file>.lock", re-reads the file, merges the
  in-memory items over it (subclasses pick the winner per key) and replaces the file
  atomically (tmp + os.replace). Readers never see a half-written file.
- A missing or unreadable file is an empty table.
"""

from __future__ import annotations

import json
import logging
import os
import time
from contextlib import contextmanager
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterator, Optional

try:
    import fcntl  # type: ignore
except ImportError:  # pragma: no cover - non-POSIX
    fcntl = None  # type: ignore

_logger = logging.getLogger(__name__)

LOCK_TIMEOUT_S = 10.0


class BaseDiskCache:
    """Thread-safe JSON table with inter-process locking.

    Subclasses hold `self._mu` around every public operation and may override
    `_merge_item()`.
    """

    def __init__(self, *, cache_file: Path, schema_version: int = 1):
        self._mu = Lock()
        self._cache_file = Path(cache_file)
        self._schema_version = int(schema_version)
        self._items: Dict[str, Any] = {}
        self._loaded = False
        self._dirty = False

    @property
    def cache_file(self) -> Path:
        return self._cache_file

    @contextmanager
    def _disk_lock(self) -> Iterator[None]:
        """Exclusive inter-process lock on the table file.

        Falls through without the lock on timeout (or where fcntl is unavailable);
        the atomic replace still keeps the file consistent.
        """
        if fcntl is None:
            yield
            return

        lock_path = self._cache_file.with_name(f".{self._cache_file.name}.lock")
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        with open(lock_path, "w") as fh:
            deadline = time.monotonic() + LOCK_TIMEOUT_S
            locked = False
            while not locked:
                try:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                    locked = True
                except OSError:
                    if time.monotonic() >= deadline:
                        _logger.warning("Timed out waiting for %s; writing without the lock", lock_path)
                        break
                    time.sleep(0.05)
            try:
                yield
            finally:
                if locked:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_UN)

    def _read_disk_items(self) -> Dict[str, Any]:
        if not self._cache_file.exists():
            return {}
        try:
            raw = json.loads(self._cache_file.read_text() or "{}")
        except (OSError, ValueError) as e:
            _logger.warning("Ignoring unreadable cache file %s: %s", self._cache_file, e)
            return {}
        items = raw.get("items") if isinstance(raw, dict) else None
        return dict(items) if isinstance(items, dict) else {}

    def _load_once(self) -> None:
        if self._loaded:
            return
        self._items = self._read_disk_items()
        self._loaded = True
        _logger.debug("Loaded %d items from %s", len(self._items), self._cache_file)

    def _merge_item(self, key: str, disk_value: Any, mem_value: Any) -> Any:
        """Winner for a key present both on disk and in memory (memory by default)."""
        return mem_value

    def _persist(self) -> None:
        """Merge pending in-memory items into the file. Caller holds self._mu."""
        if not self._dirty:
            return
        with self._disk_lock():
            merged = self._read_disk_items()
            for key, mem_value in self._items.items():
                merged[key] = self._merge_item(key, merged[key], mem_value) if key in merged else mem_value
            self._write_items(merged)

    def _write_items(self, items: Dict[str, Any]) -> None:
        """Atomically replace the file with `items` and adopt them as the in-memory view."""
        self._cache_file.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._cache_file.with_name(f"{self._cache_file.name}.tmp.{os.getpid()}")
        tmp.write_text(json.dumps({"version": self._schema_version, "items": items}, separators=(",", ":")))
        os.replace(tmp, self._cache_file)
        self._items = items
        self._loaded = True
        self._dirty = False

    def _clear(self) -> int:
        """Empty the table in memory and on disk, without merging. Caller holds self._mu.

        Returns the number of items removed.
        """
        self._load_once()
        with self._disk_lock():
            removed = len(self._read_disk_items() or self._items)
            self._write_items({})
        return removed

    def _replace_items(self, items: Dict[str, Any]) -> None:
        """Overwrite the whole table, without merging. Caller holds self._mu."""
        with self._disk_lock():
            self._write_items(dict(items))

    def _get_items(self) -> Dict[str, Any]:
        return self._items

    def _check_item(self, key: str) -> Optional[Any]:
        return self._items.get(key)

    def _set_item(self, key: str, value: Any) -> None:
        self._items[key] = value
        self._dirty = True
