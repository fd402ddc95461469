"""Base class for cached GitHub API resources.

Goal: make each resource kind readable + debuggable by enforcing a small interface:
- cache key format (validated)
- API call "display format"
- the network fetch, returning a classified FetchResult
- which status (if any) is stored alongside the payload

The caching protocol itself (fresh read, stale fallback, rate-limit gate) is the same
for every kind and lives in registry_github.cached_fetcher.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any, Optional, Tuple, TYPE_CHECKING

from ..fetch_types import FetchOutcome, FetchResult, RepoStatus, ResourceKind

if TYPE_CHECKING:  # pragma: no cover
    from .. import GitHubAPIClient

# Logins: GitHub allows `-`; enterprise managed users also carry `_` (alice_acme).
_REPO_KEY_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9_-]{0,38})/(?!\.\.?$)[A-Za-z0-9_.-]{1,100}$")
_LOGIN_KEY_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9_-]{0,38})$")


def split_repo_key(key: str) -> Tuple[str, str]:
    """'owner/name' -> ('owner', 'name')."""
    owner, _, repo = str(key).partition("/")
    return owner, repo


def absent_if_not_found(result: FetchResult) -> FetchResult:
    """Sub-resources: a 404 means "confirmed absent" (OK with payload None), not a missing entity."""
    if result.outcome is FetchOutcome.NOT_FOUND:
        return FetchResult.ok(None, rate_limit=result.rate_limit)
    return result


class CachedResourceBase(ABC):
    """Base class for one resource kind.

    Subclasses define:
    - kind / api call format
    - fetch(): the actual API call(s) + payload parsing
    - (optionally) record_status() and the key shape
    """

    # Keys are "owner/name" unless a subclass says otherwise (user profiles use a login).
    key_is_repo: bool = True

    def __init__(self, api: "GitHubAPIClient"):
        self.api: GitHubAPIClient = api

    @property
    @abstractmethod
    def kind(self) -> ResourceKind:
        """Resource kind served by this class."""

    @property
    def cache_name(self) -> str:
        """Short name used for table file names and log prefixes (e.g. 'repo_stats')."""
        return self.kind.value

    @abstractmethod
    def api_call_format(self) -> str:
        """Human-readable description of the API call(s) this resource performs."""

    @abstractmethod
    def fetch(self, key: str, **options: Any) -> FetchResult:
        """Fetch from network and return a classified result with the parsed payload."""

    def cache_key(self, key: str) -> str:
        """Return the stable cache key, raising ValueError for malformed keys."""
        k = str(key or "").strip()
        pattern = _REPO_KEY_RE if self.key_is_repo else _LOGIN_KEY_RE
        if not pattern.match(k):
            expected = "owner/name" if self.key_is_repo else "a GitHub login"
            raise ValueError(f"Invalid {self.cache_name} key {key!r}: expected {expected}")
        return k

    def record_status(self, result: Optional[FetchResult]) -> Optional[RepoStatus]:
        """Status stored with the record; only the repo summary kind has one."""
        return None
