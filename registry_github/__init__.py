# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""GitHub API client for the zig-index cache.

The client issues one REST request (or a small fixed group of requests) per logical
resource, reads the X-RateLimit-* headers off every response, and classifies the
outcome into a FetchResult:

  200 + quota left   -> OK (payload parsed per resource kind)
  404                -> NOT_FOUND
  403 / 429          -> RATE_LIMITED (reset from X-RateLimit-Reset, default now+1h)
  remaining == 0     -> RATE_LIMITED, even on a 200 (some endpoints do that)
  other non-2xx      -> TRANSPORT_ERROR
  network exception  -> TRANSPORT_ERROR
  unexpected body    -> PARSE_ERROR

Nothing here raises for remote failures; callers branch on FetchResult.outcome.
Caching and fallback live in registry_github.cached_fetcher.
"""

# Standard library imports
import logging
import os
import threading
import time
import urllib.parse
from pathlib import Path
from typing import Any, Callable, Dict, Optional

# Third-party imports
import requests
import yaml

# Local imports
from registry_common import (
    DEFAULT_COMMITS_LIMIT,
    DEFAULT_HTTP_TIMEOUT_S,
    DEFAULT_RATE_LIMIT_BACKOFF_MS,
    now_ms,
)
from .fetch_types import FetchOutcome, FetchResult, RateLimitInfo, ResourceKind

# Module logger
_logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
ACCEPT_JSON = "application/vnd.github.v3+json"
ACCEPT_RAW = "application/vnd.github.v3.raw"


# ======================================================================================
# GLOBAL API STATISTICS
# ======================================================================================

class _GitHubAPIStats:
    """Global singleton for tracking GitHub API REST call statistics."""

    def __init__(self):
        self._mu = threading.Lock()
        self.reset()

    def reset(self):
        """Reset all statistics (useful for testing)."""
        with self._mu:
            self.rest_calls_total = 0
            self.rest_calls_by_label = {}  # Dict[str, int] - count by API endpoint label
            self.rest_success_total = 0
            self.rest_time_total_s = 0.0

            # Error stats
            self.rest_errors_total = 0
            self.rest_errors_by_status = {}  # Dict[int, int]
            self.rest_last_error = {}  # Dict[str, Any]
            self.transport_errors_total = 0
            self.parse_errors_total = 0
            self.rate_limited_total = 0

    def record_call(self, *, label: str, dt_s: float) -> None:
        with self._mu:
            self.rest_calls_total += 1
            self.rest_calls_by_label[label] = int(self.rest_calls_by_label.get(label, 0)) + 1
            self.rest_time_total_s += float(dt_s)

    def record_outcome(self, result: FetchResult, *, status: int = 0, url: str = "") -> None:
        with self._mu:
            if result.outcome is FetchOutcome.OK or result.outcome is FetchOutcome.NOT_FOUND:
                self.rest_success_total += 1
                return
            self.rest_errors_total += 1
            if status:
                self.rest_errors_by_status[status] = int(self.rest_errors_by_status.get(status, 0)) + 1
            if result.outcome is FetchOutcome.RATE_LIMITED:
                self.rate_limited_total += 1
            elif result.outcome is FetchOutcome.PARSE_ERROR:
                self.parse_errors_total += 1
            else:
                self.transport_errors_total += 1
            self.rest_last_error = {"status": status, "url": url, "error": str(result.error or "")[:300]}

    def to_dict(self) -> Dict[str, Any]:
        with self._mu:
            return {
                "rest_calls_total": self.rest_calls_total,
                "rest_calls_by_label": dict(self.rest_calls_by_label),
                "rest_success_total": self.rest_success_total,
                "rest_errors_total": self.rest_errors_total,
                "rest_errors_by_status": dict(self.rest_errors_by_status),
                "rate_limited_total": self.rate_limited_total,
                "transport_errors_total": self.transport_errors_total,
                "parse_errors_total": self.parse_errors_total,
                "rest_time_total_s": round(self.rest_time_total_s, 3),
                "rest_last_error": dict(self.rest_last_error),
            }


# Global instance - all code writes to this
GITHUB_API_STATS = _GitHubAPIStats()


def _header_int(headers: Any, name: str) -> Optional[int]:
    raw = headers.get(name) if headers is not None else None
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except (ValueError, TypeError):
        return None


def parse_rate_limit_headers(headers: Any) -> Optional[RateLimitInfo]:
    """Parse X-RateLimit-* headers into a RateLimitInfo (reset converted to epoch ms).

    Returns None unless limit, remaining and reset are all present.
    """
    limit = _header_int(headers, "X-RateLimit-Limit")
    remaining = _header_int(headers, "X-RateLimit-Remaining")
    reset_s = _header_int(headers, "X-RateLimit-Reset")
    used = _header_int(headers, "X-RateLimit-Used")
    if limit is None or remaining is None or reset_s is None:
        return None
    return RateLimitInfo(limit=limit, remaining=remaining, reset_at_ms=reset_s * 1000, used=used or 0)


class GitHubAPIClient:
    """GitHub API client with automatic token detection and rate limit classification.

    Features:
    - Token detection (explicit arg > GITHUB_TOKEN/GH_TOKEN > ~/.config/github-token > gh CLI config)
    - Per-response rate-limit header parsing (last snapshot kept on the client)
    - Outcome classification into FetchResult (never raises for remote failures)
    - Safe for use from a ThreadPoolExecutor

    Example:
        client = GitHubAPIClient()
        result = client.fetch(ResourceKind.REPO_STATS, "ziglang/zig")
        if result.outcome is FetchOutcome.OK:
            print(result.payload["stargazers_count"])
    """

    @staticmethod
    def get_github_token_from_env() -> Optional[str]:
        """GITHUB_TOKEN, then GH_TOKEN."""
        for name in ("GITHUB_TOKEN", "GH_TOKEN"):
            tok = (os.environ.get(name) or "").strip()
            if tok:
                return tok
        return None

    @staticmethod
    def get_github_token_from_file() -> Optional[str]:
        """Get GitHub token from a local config file.

        Currently supported locations (first match wins):
        - ~/.config/github-token   (single line token)
        - ~/.config/gh/hosts.yml   (GitHub CLI login; oauth_token)
        """
        try:
            token_file = Path.home() / ".config" / "github-token"
            if token_file.exists():
                tok = (token_file.read_text() or "").strip()
                if tok:
                    return tok
        except OSError:  # File read errors
            pass
        return GitHubAPIClient.get_github_token_from_cli()

    @staticmethod
    def get_github_token_from_cli() -> Optional[str]:
        """Get GitHub token from GitHub CLI configuration (~/.config/gh/hosts.yml)."""
        try:
            gh_config_path = Path.home() / '.config' / 'gh' / 'hosts.yml'
            if gh_config_path.exists():
                with open(gh_config_path, 'r') as f:
                    config = yaml.safe_load(f)
                    if config and 'github.com' in config:
                        github_config = config['github.com'] or {}
                        if 'oauth_token' in github_config:
                            return github_config['oauth_token']
                        for _user, user_config in (github_config.get('users') or {}).items():
                            if isinstance(user_config, dict) and 'oauth_token' in user_config:
                                return user_config['oauth_token']
        except (OSError, yaml.YAMLError):  # File read or YAML parse errors
            pass
        return None

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        base_url: str = GITHUB_API_BASE,
        timeout_s: int = DEFAULT_HTTP_TIMEOUT_S,
        commits_limit: int = DEFAULT_COMMITS_LIMIT,
        debug_rest: bool = False,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize GitHub API client.

        Args:
            token: GitHub token. If not provided, env vars, ~/.config/github-token and the
                   gh CLI config are tried in that order. No token is fine (lower quota).
            timeout_s: Transport timeout for every request.
            commits_limit: Default number of commits for the commit history resource.
        """
        self.token = token or self.get_github_token_from_env() or self.get_github_token_from_file()
        self.base_url = str(base_url).rstrip("/")
        self.timeout_s = int(timeout_s)
        self.commits_limit = int(commits_limit)
        self.headers = {'Accept': ACCEPT_JSON}
        if self.token:
            self.headers['Authorization'] = f'Bearer {self.token}'
        self.logger = logging.getLogger(self.__class__.__name__)
        self._debug_rest = bool(debug_rest)
        self._clock = clock

        # Last rate limit snapshot seen on any response (used when /rate_limit is unreachable).
        self._rate_limit_mu = threading.Lock()
        self._cached_rate_limit_info: Optional[RateLimitInfo] = None

    def has_token(self) -> bool:
        """Check if a GitHub token is configured."""
        return self.token is not None

    @property
    def last_rate_limit(self) -> Optional[RateLimitInfo]:
        with self._rate_limit_mu:
            return self._cached_rate_limit_info

    def _remember_rate_limit(self, info: Optional[RateLimitInfo]) -> None:
        if info is None:
            return
        with self._rate_limit_mu:
            self._cached_rate_limit_info = info

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}" if path.startswith('/') else f"{self.base_url}/{path}"

    def _rest_label_for_url(self, url: str) -> str:
        """Coarse label for a REST request URL (keeps owner/repo names from exploding cardinality)."""
        try:
            path = urllib.parse.urlparse(str(url or "")).path or ""
        except ValueError:
            path = ""

        if "/rate_limit" in path:
            return "rate_limit"
        if path.startswith("/search/issues"):
            return "search_issues"
        if path.startswith("/users/"):
            return "user"

        parts = [p for p in path.split("/") if p]
        # /repos/<owner>/<repo>/<resource>/... -> repos_<resource>
        if len(parts) >= 4 and parts[0] == "repos":
            return f"repos_{parts[3]}"
        if len(parts) == 3 and parts[0] == "repos":
            return "repo"
        return "/".join(parts[:3]) if parts else "unknown"

    def _rest_get(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        accept: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> requests.Response:
        """requests.get wrapper that records per-run counters.

        Raises requests.RequestException on transport failures.
        """
        label = self._rest_label_for_url(url)
        headers = dict(self.headers)
        if accept:
            headers['Accept'] = accept

        if self._debug_rest:
            self.logger.debug("GH REST GET [%s] %s params=%s", label, url, params)

        t0_req = time.monotonic()
        try:
            resp = requests.get(url, headers=headers, params=params, timeout=timeout or self.timeout_s)
        finally:
            GITHUB_API_STATS.record_call(label=label, dt_s=max(0.0, time.monotonic() - t0_req))

        if self._debug_rest:
            self.logger.debug(
                "GH REST RESP [%s] status=%s remaining=%s",
                label, resp.status_code, resp.headers.get("X-RateLimit-Remaining"),
            )
        return resp

    def classify_response(self, resp: requests.Response) -> Optional[FetchResult]:
        """Classify a response that is NOT a plain success.

        Returns None for a 2xx response with quota left (caller parses the body),
        otherwise the NOT_FOUND / RATE_LIMITED / TRANSPORT_ERROR result.
        """
        rate_limit = parse_rate_limit_headers(resp.headers)
        self._remember_rate_limit(rate_limit)
        code = int(resp.status_code or 0)

        remaining = _header_int(resp.headers, "X-RateLimit-Remaining")
        reset_s = _header_int(resp.headers, "X-RateLimit-Reset")
        reset_at_ms = reset_s * 1000 if reset_s else int(self._clock()) + DEFAULT_RATE_LIMIT_BACKOFF_MS

        if remaining == 0 or code in (403, 429):
            when = time.strftime("%H:%M:%S", time.localtime(reset_at_ms / 1000))
            return FetchResult.rate_limited(
                reset_at_ms,
                error=f"Rate limit exceeded (HTTP {code}). Resets at {when}",
                rate_limit=rate_limit,
            )
        if code == 404:
            return FetchResult.not_found(rate_limit=rate_limit)
        if code < 200 or code >= 300:
            return FetchResult.transport_error(f"GitHub API error: {code}", rate_limit=rate_limit, http_status=code)
        return None

    def _get(self, path: str, *, params: Optional[Dict[str, Any]], accept: str, parse_json: bool) -> FetchResult:
        url = self._url(path)
        try:
            resp = self._rest_get(url, params=params, accept=accept)
        except requests.RequestException as e:
            result = FetchResult.transport_error(f"GitHub API request failed for {path}: {e}")
            GITHUB_API_STATS.record_outcome(result, url=url)
            return result

        result = self.classify_response(resp)
        if result is None:
            rate_limit = parse_rate_limit_headers(resp.headers)
            if parse_json:
                try:
                    result = FetchResult.ok(resp.json(), rate_limit=rate_limit)
                except ValueError as e:
                    result = FetchResult.parse_error(f"Invalid JSON from {path}: {e}", rate_limit=rate_limit)
            else:
                result = FetchResult.ok(resp.text, rate_limit=rate_limit)
        GITHUB_API_STATS.record_outcome(result, status=int(resp.status_code or 0), url=url)
        return result

    def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> FetchResult:
        """GET a JSON endpoint; OK payload is the decoded body."""
        return self._get(path, params=params, accept=ACCEPT_JSON, parse_json=True)

    def get_text(self, path: str, params: Optional[Dict[str, Any]] = None, *, accept: str = ACCEPT_RAW) -> FetchResult:
        """GET a raw-content endpoint (README, file contents); OK payload is the body text."""
        return self._get(path, params=params, accept=accept, parse_json=False)

    def fetch(self, kind: ResourceKind, key: str, **options: Any) -> FetchResult:
        """Fetch one logical resource of `kind` for entity `key` ("owner/name" or username)."""
        from .api import get_resource

        resource = get_resource(ResourceKind(kind), self)
        if self._debug_rest:
            self.logger.debug("GH REST FETCH [%s] %s: %s", resource.cache_name, key, resource.api_call_format())
        result = resource.fetch(resource.cache_key(key), **options)
        if result.outcome is FetchOutcome.PARSE_ERROR:
            _logger.warning("[%s] parse error for %s: %s", resource.cache_name, key, result.error)
        elif not result.is_success:
            _logger.info("[%s] fetch failed for %s: %s (%s)", resource.cache_name, key, result.outcome.value, result.error)
        return result

    def get_core_rate_limit_info(self) -> Optional[RateLimitInfo]:
        """Return GitHub REST (core) rate limit info via GET /rate_limit.

        /rate_limit itself does not consume quota. Headers are preferred (present even on 403);
        the JSON body (resources.core) is the fallback. If the endpoint is unreachable the last
        snapshot seen on any response is returned (or None).
        """
        url = self._url("/rate_limit")
        try:
            resp = self._rest_get(url)
        except requests.RequestException as e:
            _logger.info("Failed to query GitHub rate limit: %s", e)
            return self.last_rate_limit

        info = parse_rate_limit_headers(resp.headers)
        if info is None:
            try:
                core = ((resp.json() or {}).get("resources") or {}).get("core") or {}
                info = RateLimitInfo(
                    limit=int(core["limit"]),
                    remaining=int(core["remaining"]),
                    reset_at_ms=int(core["reset"]) * 1000,
                    used=int(core.get("used") or 0),
                )
            except (ValueError, KeyError, TypeError, AttributeError):
                info = None

        if info is None:
            return self.last_rate_limit
        self._remember_rate_limit(info)
        return info
