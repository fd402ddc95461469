# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Recent commit history cached API (REST).

Resource:
  GET /repos/{owner}/{repo}/commits?per_page={limit}     (limit defaults to 100, capped at 100)

Example API Response (fields used, one element):
  {
    "sha": "6dcbad780cb8...",
    "html_url": "https://github.com/owner/repo/commit/6dcbad780cb8...",
    "commit": {
      "message": "fix: handle empty manifest\n\nlonger body",
      "author": {"name": "Jane Dev", "date": "2026-01-20T18:25:43Z"}
    },
    "author": {"login": "janedev", "avatar_url": "https://..."}   # null for unlinked emails
  }

Cached payload: list of
  {"sha", "message" (first line), "author_name", "author_login", "author_avatar_url", "date", "html_url"}
  or null when the repo is gone (404) or empty (409).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..fetch_types import FetchOutcome, FetchResult, ResourceKind
from .base_cached import CachedResourceBase, absent_if_not_found, split_repo_key

API_CALL_FORMAT = "REST GET /repos/{owner}/{repo}/commits?per_page={limit}"

MAX_COMMITS = 100


def convert_commit(item: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(item, dict) or not isinstance(item.get("sha"), str):
        return None
    commit = item.get("commit") if isinstance(item.get("commit"), dict) else {}
    git_author = commit.get("author") if isinstance(commit.get("author"), dict) else {}
    gh_author = item.get("author") if isinstance(item.get("author"), dict) else {}
    message = commit.get("message") if isinstance(commit.get("message"), str) else ""
    return {
        "sha": item["sha"],
        "message": message.split("\n", 1)[0],
        "author_name": git_author.get("name"),
        "author_login": gh_author.get("login"),
        "author_avatar_url": gh_author.get("avatar_url"),
        "date": git_author.get("date"),
        "html_url": item.get("html_url"),
    }


class CommitsCached(CachedResourceBase):
    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.COMMITS

    def api_call_format(self) -> str:
        return API_CALL_FORMAT

    def fetch(self, key: str, **options: Any) -> FetchResult:
        owner, repo = split_repo_key(key)
        limit = int(options.get("limit") or self.api.commits_limit)
        limit = max(1, min(MAX_COMMITS, limit))

        result = absent_if_not_found(
            self.api.get_json(f"/repos/{owner}/{repo}/commits", params={"per_page": limit})
        )
        if result.outcome is FetchOutcome.TRANSPORT_ERROR and result.http_status == 409:
            # Git Repository is empty.
            return FetchResult.ok(None, rate_limit=result.rate_limit)
        if result.outcome is not FetchOutcome.OK or result.payload is None:
            return result
        if not isinstance(result.payload, list):
            return FetchResult.parse_error(f"Commits for {key} is not a list", rate_limit=result.rate_limit)

        commits: List[Dict[str, Any]] = []
        for item in result.payload[:limit]:
            c = convert_commit(item)
            if c is not None:
                commits.append(c)
        return FetchResult.ok(commits, rate_limit=result.rate_limit)
