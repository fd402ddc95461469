"""
Pytest tests for the registry_cache.py command line tool.

GitHubAPIClient is replaced with a canned client so nothing touches the network.
"""

import json
import sys
from pathlib import Path

import pytest

# Set up path for imports
parent_dir = Path(__file__).parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

import registry_cache
from registry_common import now_ms
from registry_github.fetch_types import FetchResult, RateLimitInfo, ResourceKind


class CannedClient:
    def __init__(self, token=None, **kwargs):
        self.token = token
        self.calls = []

    def has_token(self):
        return self.token is not None

    def fetch(self, kind, key, **options):
        self.calls.append((ResourceKind(kind), key))
        if key == "o/gone":
            return FetchResult.not_found()
        return FetchResult.ok({"full_name": key, "stargazers_count": 3})

    def get_core_rate_limit_info(self):
        return RateLimitInfo(limit=5000, remaining=4321, reset_at_ms=now_ms() + 600_000, used=679)


@pytest.fixture(autouse=True)
def canned_client(monkeypatch):
    monkeypatch.setattr(registry_cache, "GitHubAPIClient", CannedClient)


def run(capsys, tmp_path, *argv):
    rc = registry_cache.main(["--cache-dir", str(tmp_path), *argv])
    return rc, capsys.readouterr().out


def test_fetch_json(capsys, tmp_path):
    rc, out = run(capsys, tmp_path, "--json", "fetch", "repo_stats", "ziglang/zig")
    assert rc == 0
    d = json.loads(out)
    assert d["payload"]["full_name"] == "ziglang/zig"
    assert d["status"] == "exists"
    assert d["from_cache"] is False

    rc, out = run(capsys, tmp_path, "--json", "fetch", "repo_stats", "ziglang/zig")
    assert json.loads(out)["from_cache"] is True


def test_fetch_many_and_stats(capsys, tmp_path):
    keys_file = tmp_path / "keys.txt"
    keys_file.write_text("# packages\nzigzap/zap\no/gone\n")
    rc, out = run(capsys, tmp_path, "--json", "fetch-many", "repo_stats", "a/b", "--keys-file", str(keys_file))
    assert rc == 0
    d = json.loads(out)
    assert set(d) == {"a/b", "zigzap/zap", "o/gone"}
    assert d["o/gone"]["status"] == "deleted"

    rc, out = run(capsys, tmp_path, "--json", "stats")
    assert json.loads(out)["repo_stats"] == {"total": 3, "fresh": 3, "expired": 0}


def test_fetch_many_without_keys(capsys, tmp_path):
    rc, _ = run(capsys, tmp_path, "fetch-many", "readme")
    assert rc == 1


def test_invalid_key_exit_code(capsys, tmp_path):
    rc, _ = run(capsys, tmp_path, "fetch", "readme", "not-a-repo")
    assert rc == 2
    rc, _ = run(capsys, tmp_path, "fetch-many", "readme", "a/b", "not-a-repo")
    assert rc == 2
    rc, _ = run(capsys, tmp_path, "fetch", "user", "alice_acme")
    assert rc == 0


def test_quota(capsys, tmp_path):
    rc, out = run(capsys, tmp_path, "quota")
    assert rc == 0
    assert "4321/5000" in out


def test_clear(capsys, tmp_path):
    run(capsys, tmp_path, "fetch", "user", "alice")
    rc, out = run(capsys, tmp_path, "--json", "clear")
    assert rc == 0
    assert json.loads(out) == {"removed": 1}


def test_refresh_stale_nothing_to_do(capsys, tmp_path):
    run(capsys, tmp_path, "fetch", "releases", "a/b")
    rc, out = run(capsys, tmp_path, "refresh-stale", "releases", "a/b")
    assert rc == 0
    assert "Nothing to refresh" in out
