# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""README cached API (REST).

Resource:
  GET /repos/{owner}/{repo}/readme   (Accept: application/vnd.github.v3.raw)

Cached payload:
  {
    "readme_markdown": "# zap\n\n...",        # raw markdown; rendering is the UI's job
    "readme_excerpt": "zap Blazingly fast ...", # first 300 chars of plain text
    "image_url": "https://..."                  # first image, relative paths made absolute
  }
  or null when the repo has no README (404 is a confirmed absence, cached like data).
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

from ..fetch_types import FetchOutcome, FetchResult, ResourceKind
from .base_cached import CachedResourceBase, absent_if_not_found, split_repo_key

API_CALL_FORMAT = "REST GET /repos/{owner}/{repo}/readme (raw markdown)"

EXCERPT_MAX_CHARS = 300

_MD_IMAGE_RE = re.compile(r"!\[[^\]]*\]\(\s*<?([^)\s>]+)>?(?:\s+\"[^\"]*\")?\s*\)")
_HTML_IMG_RE = re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"']", re.IGNORECASE)
_MD_LINK_RE = re.compile(r"\[([^\]]*)\]\([^)]*\)")
_HTML_TAG_RE = re.compile(r"<[^>]*>")
_CODE_FENCE_RE = re.compile(r"```.*?```", re.DOTALL)
_MD_NOISE_RE = re.compile(r"(^|\s)#{1,6}\s+|[*_`>|~]+", re.MULTILINE)
_WS_RE = re.compile(r"\s+")


def extract_image_url(markdown: str, *, owner: str, repo: str) -> Optional[str]:
    """First image referenced by the README (markdown or inline <img>), made absolute."""
    candidates = []
    for rx in (_MD_IMAGE_RE, _HTML_IMG_RE):
        m = rx.search(markdown)
        if m:
            candidates.append((m.start(), m.group(1)))
    if not candidates:
        return None
    url = min(candidates)[1].strip()
    if url.startswith(("http://", "https://", "data:")):
        return url
    if url.startswith("//"):
        return f"https:{url}"
    path = re.sub(r"^(?:\./)+", "", url).lstrip("/")
    return f"https://raw.githubusercontent.com/{owner}/{repo}/HEAD/{path}"


def make_excerpt(markdown: str, max_chars: int = EXCERPT_MAX_CHARS) -> str:
    """Plain-text excerpt of a README (markdown syntax and HTML stripped)."""
    text = _CODE_FENCE_RE.sub(" ", markdown)
    text = _MD_IMAGE_RE.sub(" ", text)
    text = _MD_LINK_RE.sub(r"\1", text)
    text = _HTML_TAG_RE.sub(" ", text)
    text = _MD_NOISE_RE.sub(" ", text)
    text = _WS_RE.sub(" ", text).strip()
    if len(text) > max_chars:
        return text[:max_chars] + "..."
    return text


def readme_payload(markdown: str, *, owner: str, repo: str) -> Dict[str, Any]:
    return {
        "readme_markdown": markdown,
        "readme_excerpt": make_excerpt(markdown),
        "image_url": extract_image_url(markdown, owner=owner, repo=repo),
    }


class ReadmeCached(CachedResourceBase):
    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.README

    def api_call_format(self) -> str:
        return API_CALL_FORMAT

    def fetch(self, key: str, **options: Any) -> FetchResult:
        owner, repo = split_repo_key(key)
        result = absent_if_not_found(self.api.get_text(f"/repos/{owner}/{repo}/readme"))
        if result.outcome is not FetchOutcome.OK or result.payload is None:
            return result
        if not isinstance(result.payload, str):
            return FetchResult.parse_error(f"README body for {key} is not text", rate_limit=result.rate_limit)
        return FetchResult.ok(readme_payload(result.payload, owner=owner, repo=repo), rate_limit=result.rate_limit)
