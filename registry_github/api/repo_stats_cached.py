# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Repository summary (live stats) cached API (REST).

Resource:
  GET /repos/{owner}/{repo}

Example API Response (fields used):
  {
    "id": 123,
    "full_name": "ziglang/zig",
    "name": "zig",
    "owner": {"login": "ziglang", "avatar_url": "https://..."},
    "description": "General-purpose programming language and toolchain ...",
    "html_url": "https://github.com/ziglang/zig",
    "homepage": "https://ziglang.org",
    "topics": ["zig", "compiler"],
    "license": {"key": "mit", "name": "MIT License", "spdx_id": "MIT"},
    "stargazers_count": 35000,
    "forks_count": 2500,
    "watchers_count": 35000,
    "language": "Zig",
    "pushed_at": "2026-01-24T10:30:00Z",
    "updated_at": "2026-01-24T10:30:00Z",
    "open_issues_count": 3000,
    "archived": false
  }

Status:
  200 -> exists, 404 -> deleted (cacheable!), anything else -> unknown (not cached).
  A deleted repo is re-checked after the TTL like any other record, so an
  un-deleted/renamed-back repo reappears.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..fetch_types import FetchOutcome, FetchResult, RepoStatus, ResourceKind
from .base_cached import CachedResourceBase, split_repo_key

API_CALL_FORMAT = (
    "REST GET /repos/{owner}/{repo}\n"
    "Example response fields used:\n"
    "  {\"full_name\": \"ziglang/zig\", \"stargazers_count\": 35000, \"forks_count\": 2500, ...}"
)


def _opt_str(v: Any) -> Optional[str]:
    return str(v) if isinstance(v, str) else None


def convert_repo_to_live_stats(repo: Any) -> Optional[Dict[str, Any]]:
    """Validate a /repos/{owner}/{repo} body and reduce it to the cached live stats dict.

    Returns None if required fields are missing or have the wrong type.
    """
    if not isinstance(repo, dict):
        return None
    full_name = repo.get("full_name")
    owner = repo.get("owner")
    if not isinstance(full_name, str) or not isinstance(owner, dict) or not isinstance(owner.get("login"), str):
        return None
    for k in ("stargazers_count", "forks_count"):
        if not isinstance(repo.get(k), int) or isinstance(repo.get(k), bool):
            return None
    if not isinstance(repo.get("html_url"), str):
        return None

    lic = repo.get("license")
    license_name: Optional[str] = None
    if isinstance(lic, dict):
        license_name = _opt_str(lic.get("spdx_id")) or _opt_str(lic.get("name"))

    topics = repo.get("topics")
    return {
        "full_name": full_name,
        "description": _opt_str(repo.get("description")),
        "topics": [str(t) for t in topics] if isinstance(topics, list) else [],
        "stargazers_count": int(repo["stargazers_count"]),
        "forks_count": int(repo["forks_count"]),
        "watchers_count": int(repo.get("watchers_count") or 0),
        "language": _opt_str(repo.get("language")),
        "pushed_at": _opt_str(repo.get("pushed_at")),
        "updated_at": _opt_str(repo.get("updated_at")),
        "open_issues_count": int(repo.get("open_issues_count") or 0),
        "archived": bool(repo.get("archived") or False),
        "homepage": _opt_str(repo.get("homepage")) or None,
        "license": license_name,
        "html_url": repo["html_url"],
        "owner_avatar_url": _opt_str(owner.get("avatar_url")),
    }


class RepoStatsCached(CachedResourceBase):
    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.REPO_STATS

    def api_call_format(self) -> str:
        return API_CALL_FORMAT

    def record_status(self, result: Optional[FetchResult]) -> Optional[RepoStatus]:
        if result is None:
            return RepoStatus.UNKNOWN
        if result.outcome is FetchOutcome.OK:
            return RepoStatus.EXISTS
        if result.outcome is FetchOutcome.NOT_FOUND:
            return RepoStatus.DELETED
        return RepoStatus.UNKNOWN

    def fetch(self, key: str, **options: Any) -> FetchResult:
        owner, repo = split_repo_key(key)
        result = self.api.get_json(f"/repos/{owner}/{repo}")
        if result.outcome is not FetchOutcome.OK:
            return result

        stats = convert_repo_to_live_stats(result.payload)
        if stats is None:
            return FetchResult.parse_error(f"Invalid response format for {key}", rate_limit=result.rate_limit)
        return FetchResult.ok(stats, rate_limit=result.rate_limit)
