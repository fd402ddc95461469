# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Releases / tags cached API (REST).

Resources:
  GET /repos/{owner}/{repo}/releases?per_page=30
  GET /repos/{owner}/{repo}/tags?per_page=30      (only when the repo has no releases)

Cached payload:
  {
    "versions": [
      {"version": "v0.3.0", "name": "0.3.0", "published_at": "...", "html_url": "...",
       "tarball_url": "...", "prerelease": false}
    ],
    "latest_version": "v0.3.0"     # newest non-prerelease, else newest, else null
  }
  or null when the repo itself is gone (404).

Drafts are skipped. Many Zig packages only push tags, hence the tags fallback.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..fetch_types import FetchOutcome, FetchResult, ResourceKind
from .base_cached import CachedResourceBase, absent_if_not_found, split_repo_key

API_CALL_FORMAT = (
    "REST GET /repos/{owner}/{repo}/releases?per_page=30\n"
    "REST GET /repos/{owner}/{repo}/tags?per_page=30 (fallback when no releases)"
)
PER_PAGE = 30


def versions_from_releases(releases: List[Any]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for rel in releases:
        if not isinstance(rel, dict) or rel.get("draft"):
            continue
        tag = rel.get("tag_name")
        if not isinstance(tag, str) or not tag:
            continue
        out.append({
            "version": tag,
            "name": rel.get("name") or tag,
            "published_at": rel.get("published_at"),
            "html_url": rel.get("html_url"),
            "tarball_url": rel.get("tarball_url"),
            "prerelease": bool(rel.get("prerelease") or False),
        })
    return out


def versions_from_tags(tags: List[Any], *, owner: str, repo: str) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for tag in tags:
        if not isinstance(tag, dict) or not isinstance(tag.get("name"), str):
            continue
        name = tag["name"]
        out.append({
            "version": name,
            "name": name,
            "published_at": None,
            "html_url": f"https://github.com/{owner}/{repo}/releases/tag/{name}",
            "tarball_url": tag.get("tarball_url"),
            "prerelease": False,
        })
    return out


def latest_version(versions: List[Dict[str, Any]]) -> Optional[str]:
    for v in versions:
        if not v.get("prerelease"):
            return v["version"]
    return versions[0]["version"] if versions else None


class ReleasesCached(CachedResourceBase):
    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.RELEASES

    def api_call_format(self) -> str:
        return API_CALL_FORMAT

    def fetch(self, key: str, **options: Any) -> FetchResult:
        owner, repo = split_repo_key(key)
        result = absent_if_not_found(
            self.api.get_json(f"/repos/{owner}/{repo}/releases", params={"per_page": PER_PAGE})
        )
        if result.outcome is not FetchOutcome.OK or result.payload is None:
            return result
        if not isinstance(result.payload, list):
            return FetchResult.parse_error(f"Releases for {key} is not a list", rate_limit=result.rate_limit)

        versions = versions_from_releases(result.payload)
        rate_limit = result.rate_limit
        if not versions:
            tags = absent_if_not_found(
                self.api.get_json(f"/repos/{owner}/{repo}/tags", params={"per_page": PER_PAGE})
            )
            if tags.outcome is not FetchOutcome.OK:
                return tags
            if tags.payload is not None and not isinstance(tags.payload, list):
                return FetchResult.parse_error(f"Tags for {key} is not a list", rate_limit=tags.rate_limit)
            versions = versions_from_tags(tags.payload or [], owner=owner, repo=repo)
            rate_limit = tags.rate_limit or rate_limit

        return FetchResult.ok({"versions": versions, "latest_version": latest_version(versions)}, rate_limit=rate_limit)
