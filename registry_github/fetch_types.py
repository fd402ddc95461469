# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Shared enums/types for the GitHub client, the record stores and the cached fetcher.

This module MUST NOT import `registry_github/__init__.py` or the `api` package to avoid cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ResourceKind(str, Enum):
    """The seven categories of live data; each has its own table."""

    REPO_STATS = "repo_stats"
    README = "readme"
    RELEASES = "releases"
    ZON = "zon"
    USER = "user"
    ISSUES = "issues"
    COMMITS = "commits"


class RepoStatus(str, Enum):
    """Whether a repository still exists upstream (repo_stats kind only)."""

    EXISTS = "exists"
    DELETED = "deleted"
    UNKNOWN = "unknown"


class FetchOutcome(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    TRANSPORT_ERROR = "transport_error"
    PARSE_ERROR = "parse_error"


@dataclass(frozen=True)
class RateLimitInfo:
    """Snapshot of the X-RateLimit-* headers (reset converted to epoch ms)."""

    limit: int
    remaining: int
    reset_at_ms: int
    used: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "limit": int(self.limit),
            "remaining": int(self.remaining),
            "reset_at_ms": int(self.reset_at_ms),
            "used": int(self.used),
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> Optional["RateLimitInfo"]:
        try:
            return RateLimitInfo(
                limit=int(d["limit"]),
                remaining=int(d["remaining"]),
                reset_at_ms=int(d["reset_at_ms"]),
                used=int(d.get("used") or 0),
            )
        except (KeyError, ValueError, TypeError):
            return None


@dataclass(frozen=True)
class FetchResult:
    """Classified outcome of a single remote fetch.

    `payload` is only meaningful for OK (and may be None for confirmed-absent
    sub-resources, e.g. a repo without a README).
    """

    outcome: FetchOutcome
    payload: Any = None
    reset_at_ms: Optional[int] = None
    error: Optional[str] = None
    rate_limit: Optional[RateLimitInfo] = None
    http_status: Optional[int] = None

    @classmethod
    def ok(cls, payload: Any, *, rate_limit: Optional[RateLimitInfo] = None) -> "FetchResult":
        return cls(FetchOutcome.OK, payload=payload, rate_limit=rate_limit)

    @classmethod
    def not_found(cls, *, rate_limit: Optional[RateLimitInfo] = None) -> "FetchResult":
        return cls(FetchOutcome.NOT_FOUND, error="Not found", rate_limit=rate_limit)

    @classmethod
    def rate_limited(
        cls, reset_at_ms: int, *, error: Optional[str] = None, rate_limit: Optional[RateLimitInfo] = None
    ) -> "FetchResult":
        return cls(
            FetchOutcome.RATE_LIMITED,
            reset_at_ms=int(reset_at_ms),
            error=error or f"Rate limit exceeded (resets at epoch_ms={int(reset_at_ms)})",
            rate_limit=rate_limit,
        )

    @classmethod
    def transport_error(
        cls, message: str, *, rate_limit: Optional[RateLimitInfo] = None, http_status: Optional[int] = None
    ) -> "FetchResult":
        return cls(FetchOutcome.TRANSPORT_ERROR, error=str(message), rate_limit=rate_limit, http_status=http_status)

    @classmethod
    def parse_error(cls, message: str, *, rate_limit: Optional[RateLimitInfo] = None) -> "FetchResult":
        return cls(FetchOutcome.PARSE_ERROR, error=str(message), rate_limit=rate_limit)

    @property
    def is_success(self) -> bool:
        """OK and NOT_FOUND are both cacheable outcomes."""
        return self.outcome in (FetchOutcome.OK, FetchOutcome.NOT_FOUND)


@dataclass
class CacheRecord:
    """One row of a record store table."""

    key: str
    payload: Any
    last_fetched: int
    status: Optional[RepoStatus] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "payload": self.payload,
            "last_fetched": int(self.last_fetched),
        }
        if self.status is not None:
            d["status"] = self.status.value
        return d

    @staticmethod
    def from_dict(key: str, d: Dict[str, Any]) -> Optional["CacheRecord"]:
        """Hydrate a record from its on-disk dict; None if the entry is malformed."""
        if not isinstance(d, dict) or "last_fetched" not in d:
            return None
        try:
            last_fetched = int(d.get("last_fetched") or 0)
        except (ValueError, TypeError):
            return None
        status_raw = d.get("status")
        status: Optional[RepoStatus] = None
        if status_raw is not None:
            try:
                status = RepoStatus(str(status_raw))
            except ValueError:
                status = RepoStatus.UNKNOWN
        return CacheRecord(key=str(key), payload=d.get("payload"), last_fetched=last_fetched, status=status)


@dataclass
class CachedFetchResult:
    """What `CachedFetcher.fetch_one()` hands back to the UI layer."""

    payload: Any
    is_stale: bool
    from_cache: bool
    status: Optional[RepoStatus] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "payload": self.payload,
            "is_stale": bool(self.is_stale),
            "from_cache": bool(self.from_cache),
        }
        if self.status is not None:
            d["status"] = self.status.value
        if self.error:
            d["error"] = self.error
        return d


@dataclass
class BatchEntry:
    """One entry of the `CachedFetcher.fetch_many()` result map."""

    payload: Any
    from_cache: bool
    status: Optional[RepoStatus] = None
    is_stale: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "payload": self.payload,
            "from_cache": bool(self.from_cache),
            "is_stale": bool(self.is_stale),
        }
        if self.status is not None:
            d["status"] = self.status.value
        if self.error:
            d["error"] = self.error
        return d


@dataclass
class CacheStats:
    """Per-kind record counts (fresh vs. expired)."""

    totals: Dict[str, int] = field(default_factory=dict)
    expired: Dict[str, int] = field(default_factory=dict)

    def fresh(self, kind: str) -> int:
        return int(self.totals.get(kind, 0)) - int(self.expired.get(kind, 0))

    def to_dict(self) -> Dict[str, Any]:
        return {
            kind: {
                "total": int(total),
                "fresh": self.fresh(kind),
                "expired": int(self.expired.get(kind, 0)),
            }
            for kind, total in self.totals.items()
        }
