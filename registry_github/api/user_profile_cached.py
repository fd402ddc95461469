# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""User / organization profile cached API (REST).

Resource:
  GET /users/{login}

Keyed by login (not owner/name). A 404 stays NOT_FOUND: the user itself is the
entity, so a missing profile is not a "confirmed absent" sub-resource.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..fetch_types import FetchOutcome, FetchResult, ResourceKind
from .base_cached import CachedResourceBase

API_CALL_FORMAT = "REST GET /users/{login}"

_STR_FIELDS = (
    "login", "name", "avatar_url", "html_url", "bio", "company",
    "location", "blog", "twitter_username", "created_at", "type",
)
_INT_FIELDS = ("public_repos", "followers", "following")


def convert_user_profile(user: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(user, dict) or not isinstance(user.get("login"), str):
        return None
    profile: Dict[str, Any] = {}
    for k in _STR_FIELDS:
        v = user.get(k)
        profile[k] = v if isinstance(v, str) and v else None
    for k in _INT_FIELDS:
        v = user.get(k)
        profile[k] = int(v) if isinstance(v, int) and not isinstance(v, bool) else 0
    return profile


class UserProfileCached(CachedResourceBase):
    key_is_repo = False

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.USER

    def api_call_format(self) -> str:
        return API_CALL_FORMAT

    def fetch(self, key: str, **options: Any) -> FetchResult:
        result = self.api.get_json(f"/users/{key}")
        if result.outcome is not FetchOutcome.OK:
            return result
        profile = convert_user_profile(result.payload)
        if profile is None:
            return FetchResult.parse_error(f"Invalid user profile for {key}", rate_limit=result.rate_limit)
        return FetchResult.ok(profile, rate_limit=result.rate_limit)
