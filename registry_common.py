# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
zig-index cache utilities.

Shared constants, cache location policy and small helpers used by the
record stores, the GitHub client and the CLI.
"""

import logging
import os
import time
from pathlib import Path
from typing import Optional


#
# Cache policy constants (single source of truth)
#
CACHE_TTL_MS: int = 60 * 60 * 1000
# ^ Freshness window for every resource kind (1 hour).
#   A record younger than this is served without touching the network; an older record
#   is re-fetched, but is still kept (forever) as a fallback when the re-fetch fails.
DEFAULT_RATE_LIMIT_BACKOFF_MS: int = 60 * 60 * 1000
# ^ How long to stay gated when GitHub says "rate limited" but gives no reset time.
DEFAULT_BATCH_CONCURRENCY: int = 3
# ^ Max outstanding REST calls during a batch fetch.
#   Example: the index page asks for 200 repos -> at most 3 requests in flight at once.
DEFAULT_REFRESH_CONCURRENCY: int = 2
# ^ Lower concurrency for the stale-refresh pass so it does not compete with foreground fetches.
DEFAULT_HTTP_TIMEOUT_S: int = 10
# ^ Transport timeout per request; keeps a hung endpoint from stalling a batch forever.
DEFAULT_COMMITS_LIMIT: int = 100
# ^ Number of commits fetched for the commit history view (GitHub caps per_page at 100).


# ======================================================================================
# IMPORTANT: Cache location policy
#
# All *persistent* caches MUST live under:
#   - $ZIG_INDEX_CACHE_DIR   (explicit override), else
#   - ~/.cache/zig-index     (default)
#
# Each resource kind gets one "<kind>.json" table there, plus "metadata.json".
# ======================================================================================

def zig_index_cache_dir() -> Path:
    """Return the cache directory for zig-index.

    Resolution order:
    - ZIG_INDEX_CACHE_DIR (explicit override)
    - ~/.cache/zig-index
    """
    override = os.environ.get("ZIG_INDEX_CACHE_DIR")
    if override:
        return Path(override).expanduser()

    return Path.home() / ".cache" / "zig-index"


def now_ms() -> int:
    """Current wall-clock time as Unix-epoch milliseconds."""
    return int(time.time() * 1000)


def is_cache_fresh(last_fetched_ms: int, *, now: Optional[int] = None, ttl_ms: int = CACHE_TTL_MS) -> bool:
    """True iff `now - last_fetched < ttl`."""
    now_i = now_ms() if now is None else int(now)
    return (now_i - int(last_fetched_ms)) < int(ttl_ms)


def format_cache_expiry(last_fetched_ms: int, *, now: Optional[int] = None, ttl_ms: int = CACHE_TTL_MS) -> str:
    """Human-readable time until a record expires.

    Examples: "Expired", "42m", "1h 5m".
    """
    now_i = now_ms() if now is None else int(now)
    remaining = int(last_fetched_ms) + int(ttl_ms) - now_i
    if remaining <= 0:
        return "Expired"

    minutes = remaining // (60 * 1000)
    if minutes < 60:
        return f"{minutes}m"
    hours = minutes // 60
    return f"{hours}h {minutes % 60}m"


def format_seconds_delta(seconds: int) -> str:
    """Format a (possibly negative) number of seconds as '1h 2m 3s'."""
    try:
        s = int(seconds)
    except (ValueError, TypeError):
        return "unknown"
    sign = "-" if s < 0 else ""
    s = abs(s)
    h, rem = divmod(s, 3600)
    m, sec = divmod(rem, 60)
    if h:
        return f"{sign}{h}h {m}m {sec}s"
    if m:
        return f"{sign}{m}m {sec}s"
    return f"{sign}{sec}s"


def setup_logging(*, verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Configure the package loggers for CLI use.

    --debug   -> DEBUG (every REST call is logged)
    --verbose -> INFO  (cache fallbacks, batch summaries)
    default   -> WARNING
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

    root_logger = None
    for name in ("registry_cache", "registry_common", "registry_github", "record_cache", "GitHubAPIClient"):
        lg = logging.getLogger(name)
        lg.setLevel(level)
        if not lg.handlers:
            lg.addHandler(handler)
        lg.propagate = False
        if root_logger is None:
            root_logger = lg
    return root_logger
