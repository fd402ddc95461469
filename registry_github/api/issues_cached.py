# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Issue / pull request counts cached API (REST search).

Resources (4 calls, each per_page=1; only total_count is read):
  GET /search/issues?q=repo:{owner}/{repo}+type:issue+state:open
  GET /search/issues?q=repo:{owner}/{repo}+type:issue+state:closed
  GET /search/issues?q=repo:{owner}/{repo}+type:pr+state:open
  GET /search/issues?q=repo:{owner}/{repo}+type:pr+state:closed

Cached payload:
  {"open_issues": 12, "closed_issues": 340, "open_pull_requests": 3, "closed_pull_requests": 512}

The four counts are cached together or not at all: the first failing query's
result is returned and nothing partial is stored. Search has its own (smaller)
quota, and a 422 for an unsearchable repo is a transport error like any other.
"""

from __future__ import annotations

from typing import Any, Dict

from ..fetch_types import FetchOutcome, FetchResult, ResourceKind
from .base_cached import CachedResourceBase

API_CALL_FORMAT = "REST GET /search/issues?q=repo:{owner}/{repo}+type:{issue|pr}+state:{open|closed}&per_page=1 (x4)"

QUERIES = (
    ("open_issues", "issue", "open"),
    ("closed_issues", "issue", "closed"),
    ("open_pull_requests", "pr", "open"),
    ("closed_pull_requests", "pr", "closed"),
)


class IssuesCached(CachedResourceBase):
    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.ISSUES

    def api_call_format(self) -> str:
        return API_CALL_FORMAT

    def fetch(self, key: str, **options: Any) -> FetchResult:
        counts: Dict[str, int] = {}
        last: FetchResult = FetchResult.ok(None)
        for field_name, item_type, state in QUERIES:
            last = self.api.get_json(
                "/search/issues",
                params={"q": f"repo:{key} type:{item_type} state:{state}", "per_page": 1},
            )
            if last.outcome is not FetchOutcome.OK:
                return last
            total = last.payload.get("total_count") if isinstance(last.payload, dict) else None
            if not isinstance(total, int) or isinstance(total, bool):
                return FetchResult.parse_error(f"Search response for {key} has no total_count", rate_limit=last.rate_limit)
            counts[field_name] = total
        return FetchResult.ok(counts, rate_limit=last.rate_limit)
