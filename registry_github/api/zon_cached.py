# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""build.zig.zon manifest cached API (REST).

Resource:
  GET /repos/{owner}/{repo}/contents/build.zig.zon   (Accept: application/vnd.github.v3.raw)

Cached payload: the parsed manifest (see registry_github.zon_parser.parse_manifest),
or null when the repo has no build.zig.zon.
"""

from __future__ import annotations

from typing import Any

from ..fetch_types import FetchOutcome, FetchResult, ResourceKind
from ..zon_parser import parse_manifest
from .base_cached import CachedResourceBase, absent_if_not_found, split_repo_key

API_CALL_FORMAT = "REST GET /repos/{owner}/{repo}/contents/build.zig.zon (raw)"


class ZonCached(CachedResourceBase):
    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.ZON

    def api_call_format(self) -> str:
        return API_CALL_FORMAT

    def fetch(self, key: str, **options: Any) -> FetchResult:
        owner, repo = split_repo_key(key)
        result = absent_if_not_found(self.api.get_text(f"/repos/{owner}/{repo}/contents/build.zig.zon"))
        if result.outcome is not FetchOutcome.OK or result.payload is None:
            return result
        try:
            manifest = parse_manifest(str(result.payload))
        except ValueError as e:
            return FetchResult.parse_error(f"Invalid build.zig.zon in {key}: {e}", rate_limit=result.rate_limit)
        return FetchResult.ok(manifest, rate_limit=result.rate_limit)
