"""Resource-specific GitHub API wrappers.

Each module in this package owns:
- the API call(s) for one resource kind (via GitHubAPIClient.get_json / get_text)
- the cache key format for that kind
- the payload shape that gets stored in the kind's table

Freshness, stale fallback and the rate-limit gate are shared and live in
registry_github.cached_fetcher.
"""

from __future__ import annotations

from typing import Dict, Type, TYPE_CHECKING

from ..fetch_types import ResourceKind
from .base_cached import CachedResourceBase
from .commits_cached import CommitsCached
from .issues_cached import IssuesCached
from .readme_cached import ReadmeCached
from .releases_cached import ReleasesCached
from .repo_stats_cached import RepoStatsCached
from .user_profile_cached import UserProfileCached
from .zon_cached import ZonCached

if TYPE_CHECKING:  # pragma: no cover
    from .. import GitHubAPIClient

RESOURCE_CLASSES: Dict[ResourceKind, Type[CachedResourceBase]] = {
    ResourceKind.REPO_STATS: RepoStatsCached,
    ResourceKind.README: ReadmeCached,
    ResourceKind.RELEASES: ReleasesCached,
    ResourceKind.ZON: ZonCached,
    ResourceKind.USER: UserProfileCached,
    ResourceKind.ISSUES: IssuesCached,
    ResourceKind.COMMITS: CommitsCached,
}


def get_resource(kind: ResourceKind, api: "GitHubAPIClient") -> CachedResourceBase:
    """Resource wrapper for `kind`, bound to `api`."""
    return RESOURCE_CLASSES[ResourceKind(kind)](api)


__all__ = [
    "RESOURCE_CLASSES",
    "CachedResourceBase",
    "CommitsCached",
    "IssuesCached",
    "ReadmeCached",
    "ReleasesCached",
    "RepoStatsCached",
    "UserProfileCached",
    "ZonCached",
    "get_resource",
]
