"""
Pytest tests for the per-kind resource wrappers in registry_github/api/.

The wrappers only talk to the client through get_json()/get_text(), so a small
fake API object with canned FetchResults stands in for GitHubAPIClient.
"""

import sys
from pathlib import Path

import pytest

# Set up path for imports
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

from registry_github.api import RESOURCE_CLASSES, get_resource
from registry_github.api.readme_cached import extract_image_url, make_excerpt
from registry_github.fetch_types import FetchOutcome, FetchResult, RepoStatus, ResourceKind


class FakeAPI:
    commits_limit = 100

    def __init__(self, routes):
        # routes: path -> FetchResult, or a list of FetchResults consumed in order
        self.routes = routes
        self.calls = []

    def _lookup(self, path, params):
        self.calls.append((path, params))
        r = self.routes[path]
        return r.pop(0) if isinstance(r, list) else r

    def get_json(self, path, params=None):
        return self._lookup(path, params)

    def get_text(self, path, params=None, *, accept=None):
        return self._lookup(path, params)


REPO_BODY = {
    "full_name": "zigzap/zap",
    "owner": {"login": "zigzap", "avatar_url": "https://avatars/zigzap"},
    "description": "blazingly fast backends",
    "html_url": "https://github.com/zigzap/zap",
    "homepage": "",
    "topics": ["zig", "http"],
    "license": {"spdx_id": "MIT", "name": "MIT License"},
    "stargazers_count": 2500,
    "forks_count": 80,
    "watchers_count": 2500,
    "language": "Zig",
    "pushed_at": "2026-01-24T10:30:00Z",
    "updated_at": "2026-01-24T10:30:00Z",
    "open_issues_count": 12,
    "archived": False,
}


def test_registry_covers_every_kind():
    assert set(RESOURCE_CLASSES) == set(ResourceKind)
    for kind in ResourceKind:
        assert get_resource(kind, FakeAPI({})).kind is kind


# ============================================================================
# Keys
# ============================================================================

@pytest.mark.parametrize("key", ["zigzap/zap", "karlseguin/http.zig", "a-b/c_d", "alice_acme/tool"])
def test_repo_keys_accepted(key):
    assert get_resource(ResourceKind.README, FakeAPI({})).cache_key(f"  {key} ") == key


@pytest.mark.parametrize("key", ["", "zap", "a/b/c", "a/ b", "../etc", "_alice/foo"])
def test_repo_keys_rejected(key):
    with pytest.raises(ValueError):
        get_resource(ResourceKind.REPO_STATS, FakeAPI({})).cache_key(key)


def test_user_keys():
    res = get_resource(ResourceKind.USER, FakeAPI({}))
    assert res.cache_key("alice") == "alice"
    assert res.cache_key("alice_acme") == "alice_acme"
    with pytest.raises(ValueError):
        res.cache_key("alice/foo")


# ============================================================================
# repo_stats
# ============================================================================

def test_repo_stats_ok():
    api = FakeAPI({"/repos/zigzap/zap": FetchResult.ok(REPO_BODY)})
    res = get_resource(ResourceKind.REPO_STATS, api)
    result = res.fetch("zigzap/zap")
    assert result.outcome is FetchOutcome.OK
    assert result.payload["stargazers_count"] == 2500
    assert result.payload["license"] == "MIT"
    assert result.payload["homepage"] is None
    assert result.payload["owner_avatar_url"] == "https://avatars/zigzap"
    assert res.record_status(result) is RepoStatus.EXISTS


def test_repo_stats_not_found_is_deleted():
    api = FakeAPI({"/repos/bob/bar": FetchResult.not_found()})
    res = get_resource(ResourceKind.REPO_STATS, api)
    result = res.fetch("bob/bar")
    assert result.outcome is FetchOutcome.NOT_FOUND
    assert res.record_status(result) is RepoStatus.DELETED
    assert res.record_status(FetchResult.transport_error("boom")) is RepoStatus.UNKNOWN


def test_repo_stats_bad_shape_is_parse_error():
    api = FakeAPI({"/repos/zigzap/zap": FetchResult.ok({"full_name": "zigzap/zap"})})
    result = get_resource(ResourceKind.REPO_STATS, api).fetch("zigzap/zap")
    assert result.outcome is FetchOutcome.PARSE_ERROR


# ============================================================================
# readme
# ============================================================================

def test_readme_payload():
    md = (
        "# zap\n\n"
        "![logo](./docs/logo.png)\n\n"
        "**Blazingly fast** backends in [Zig](https://ziglang.org).\n"
    )
    api = FakeAPI({"/repos/zigzap/zap/readme": FetchResult.ok(md)})
    result = get_resource(ResourceKind.README, api).fetch("zigzap/zap")
    assert result.outcome is FetchOutcome.OK
    assert result.payload["readme_markdown"] == md
    assert result.payload["image_url"] == "https://raw.githubusercontent.com/zigzap/zap/HEAD/docs/logo.png"
    assert result.payload["readme_excerpt"] == "zap Blazingly fast backends in Zig."


def test_readme_missing_is_confirmed_absent():
    api = FakeAPI({"/repos/a/b/readme": FetchResult.not_found()})
    result = get_resource(ResourceKind.README, api).fetch("a/b")
    assert result.outcome is FetchOutcome.OK
    assert result.payload is None


def test_readme_excerpt_truncated():
    text = "word " * 200
    excerpt = make_excerpt(text)
    assert excerpt.endswith("...")
    assert len(excerpt) == 303


def test_image_url_variants():
    assert extract_image_url("no images", owner="o", repo="r") is None
    assert extract_image_url('<img src="https://x/y.svg">', owner="o", repo="r") == "https://x/y.svg"
    assert extract_image_url("![a](/.github/banner.png)", owner="o", repo="r") == (
        "https://raw.githubusercontent.com/o/r/HEAD/.github/banner.png"
    )


# ============================================================================
# releases
# ============================================================================

def test_releases_skip_drafts_and_pick_latest_stable():
    releases = [
        {"tag_name": "v0.4.0-rc1", "name": "rc", "prerelease": True, "draft": False},
        {"tag_name": "v0.5.0", "draft": True},
        {"tag_name": "v0.3.0", "name": "0.3.0", "prerelease": False, "published_at": "2026-01-01T00:00:00Z"},
    ]
    api = FakeAPI({"/repos/o/r/releases": FetchResult.ok(releases)})
    result = get_resource(ResourceKind.RELEASES, api).fetch("o/r")
    assert [v["version"] for v in result.payload["versions"]] == ["v0.4.0-rc1", "v0.3.0"]
    assert result.payload["latest_version"] == "v0.3.0"


def test_releases_fall_back_to_tags():
    api = FakeAPI({
        "/repos/o/r/releases": FetchResult.ok([]),
        "/repos/o/r/tags": FetchResult.ok([{"name": "0.2.1"}, {"name": "0.2.0"}]),
    })
    result = get_resource(ResourceKind.RELEASES, api).fetch("o/r")
    assert result.payload["latest_version"] == "0.2.1"
    assert result.payload["versions"][0]["html_url"] == "https://github.com/o/r/releases/tag/0.2.1"


def test_releases_none_at_all():
    api = FakeAPI({"/repos/o/r/releases": FetchResult.ok([]), "/repos/o/r/tags": FetchResult.ok([])})
    result = get_resource(ResourceKind.RELEASES, api).fetch("o/r")
    assert result.payload == {"versions": [], "latest_version": None}


def test_releases_rate_limited_on_tags_propagates():
    api = FakeAPI({
        "/repos/o/r/releases": FetchResult.ok([]),
        "/repos/o/r/tags": FetchResult.rate_limited(123),
    })
    result = get_resource(ResourceKind.RELEASES, api).fetch("o/r")
    assert result.outcome is FetchOutcome.RATE_LIMITED


# ============================================================================
# zon
# ============================================================================

def test_zon_parsed():
    zon = '.{ .name = .zap, .version = "0.10.1", .dependencies = .{}, .paths = .{ "src" } }'
    api = FakeAPI({"/repos/o/r/contents/build.zig.zon": FetchResult.ok(zon)})
    result = get_resource(ResourceKind.ZON, api).fetch("o/r")
    assert result.outcome is FetchOutcome.OK
    assert result.payload["name"] == "zap"
    assert result.payload["paths"] == ["src"]


def test_zon_missing_and_invalid():
    api = FakeAPI({
        "/repos/o/none/contents/build.zig.zon": FetchResult.not_found(),
        "/repos/o/bad/contents/build.zig.zon": FetchResult.ok(".{ .name = "),
        "/repos/o/deep/contents/build.zig.zon": FetchResult.ok(".{" * 5000 + "}" * 5000),
        "/repos/o/escape/contents/build.zig.zon": FetchResult.ok('.{ .name = "\\u{FFFFFFFFFFFF}" }'),
    })
    res = get_resource(ResourceKind.ZON, api)
    assert res.fetch("o/none").payload is None
    assert res.fetch("o/bad").outcome is FetchOutcome.PARSE_ERROR
    assert res.fetch("o/deep").outcome is FetchOutcome.PARSE_ERROR
    assert res.fetch("o/escape").outcome is FetchOutcome.PARSE_ERROR


# ============================================================================
# user
# ============================================================================

def test_user_profile_and_not_found():
    api = FakeAPI({
        "/users/alice": FetchResult.ok({"login": "alice", "followers": 3, "bio": "", "public_repos": 9}),
        "/users/ghost": FetchResult.not_found(),
    })
    res = get_resource(ResourceKind.USER, api)
    profile = res.fetch("alice").payload
    assert profile["login"] == "alice"
    assert profile["followers"] == 3
    assert profile["bio"] is None
    assert profile["following"] == 0
    assert res.fetch("ghost").outcome is FetchOutcome.NOT_FOUND


# ============================================================================
# issues
# ============================================================================

def test_issue_counts():
    api = FakeAPI({"/search/issues": [FetchResult.ok({"total_count": n}) for n in (4, 30, 2, 50)]})
    result = get_resource(ResourceKind.ISSUES, api).fetch("o/r")
    assert result.payload == {
        "open_issues": 4,
        "closed_issues": 30,
        "open_pull_requests": 2,
        "closed_pull_requests": 50,
    }
    queries = [params["q"] for _, params in api.calls]
    assert queries[0] == "repo:o/r type:issue state:open"
    assert queries[3] == "repo:o/r type:pr state:closed"
    assert all(params["per_page"] == 1 for _, params in api.calls)


def test_issue_counts_all_or_nothing():
    api = FakeAPI({"/search/issues": [FetchResult.ok({"total_count": 1}), FetchResult.rate_limited(99)]})
    result = get_resource(ResourceKind.ISSUES, api).fetch("o/r")
    assert result.outcome is FetchOutcome.RATE_LIMITED
    assert len(api.calls) == 2


# ============================================================================
# commits
# ============================================================================

def test_commits_converted_and_limited():
    items = [
        {
            "sha": f"sha{i}",
            "html_url": f"https://github.com/o/r/commit/sha{i}",
            "commit": {"message": f"msg {i}\n\nbody", "author": {"name": "Jane", "date": "2026-01-20T18:25:43Z"}},
            "author": {"login": "jane", "avatar_url": "https://avatars/jane"} if i else None,
        }
        for i in range(3)
    ]
    api = FakeAPI({"/repos/o/r/commits": FetchResult.ok(items)})
    result = get_resource(ResourceKind.COMMITS, api).fetch("o/r", limit=2)
    assert api.calls[0][1] == {"per_page": 2}
    assert [c["sha"] for c in result.payload] == ["sha0", "sha1"]
    assert result.payload[0]["message"] == "msg 0"
    assert result.payload[0]["author_login"] is None
    assert result.payload[1]["author_login"] == "jane"


def test_commits_limit_capped_and_empty_repo():
    api = FakeAPI({"/repos/o/empty/commits": FetchResult.transport_error("GitHub API error: 409", http_status=409)})
    result = get_resource(ResourceKind.COMMITS, api).fetch("o/empty", limit=500)
    assert api.calls[0][1] == {"per_page": 100}
    assert result.outcome is FetchOutcome.OK
    assert result.payload is None
