"""
Pytest tests for the GitHubAPIClient response classification (requests.get is monkeypatched).
"""

import logging
import sys
from pathlib import Path

import pytest
import requests

# Set up path for imports
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

import registry_github
from registry_common import DEFAULT_RATE_LIMIT_BACKOFF_MS
from registry_github import GitHubAPIClient, parse_rate_limit_headers
from registry_github.fetch_types import FetchOutcome, ResourceKind

T0 = 1_700_000_000_000
RESET_S = 1_700_003_600


class FakeResponse:
    def __init__(self, status_code=200, json_body=None, text="", headers=None):
        self.status_code = status_code
        self._json_body = json_body
        self.text = text
        self.headers = headers or {}

    def json(self):
        if self._json_body is None:
            raise ValueError("No JSON object could be decoded")
        return self._json_body


def rl_headers(remaining=4999, limit=5000, reset=RESET_S, used=1):
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(remaining),
        "X-RateLimit-Reset": str(reset),
        "X-RateLimit-Used": str(used),
    }


@pytest.fixture
def calls(monkeypatch):
    """Record requests.get calls; tests set calls.responses to what each call returns."""

    class Recorder:
        responses = []
        seen = []

    def fake_get(url, headers=None, params=None, timeout=None):
        Recorder.seen.append({"url": url, "headers": headers, "params": params, "timeout": timeout})
        resp = Recorder.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp

    Recorder.responses = []
    Recorder.seen = []
    monkeypatch.setattr(registry_github.requests, "get", fake_get)
    return Recorder


@pytest.fixture
def client():
    return GitHubAPIClient(token="ghp_test", clock=lambda: T0)


# ============================================================================
# Header parsing
# ============================================================================

def test_parse_rate_limit_headers():
    info = parse_rate_limit_headers(rl_headers(remaining=12))
    assert info.limit == 5000
    assert info.remaining == 12
    assert info.reset_at_ms == RESET_S * 1000
    assert info.used == 1


def test_parse_rate_limit_headers_incomplete():
    assert parse_rate_limit_headers({"X-RateLimit-Remaining": "5"}) is None
    assert parse_rate_limit_headers({}) is None


# ============================================================================
# Classification
# ============================================================================

def test_ok_json_sends_token_and_timeout(calls, client):
    calls.responses = [FakeResponse(200, json_body={"full_name": "a/b"}, headers=rl_headers())]
    result = client.get_json("/repos/a/b")

    assert result.outcome is FetchOutcome.OK
    assert result.payload == {"full_name": "a/b"}
    assert result.rate_limit.remaining == 4999
    assert client.last_rate_limit.remaining == 4999

    sent = calls.seen[0]
    assert sent["url"] == "https://api.github.com/repos/a/b"
    assert sent["headers"]["Authorization"] == "Bearer ghp_test"
    assert sent["timeout"] == 10


def test_zero_remaining_on_200_is_rate_limited(calls, client):
    calls.responses = [FakeResponse(200, json_body={}, headers=rl_headers(remaining=0))]
    result = client.get_json("/repos/a/b")
    assert result.outcome is FetchOutcome.RATE_LIMITED
    assert result.reset_at_ms == RESET_S * 1000


def test_403_without_reset_header_defaults_to_one_hour(calls, client):
    calls.responses = [FakeResponse(403, json_body={"message": "API rate limit exceeded"})]
    result = client.get_json("/repos/a/b")
    assert result.outcome is FetchOutcome.RATE_LIMITED
    assert result.reset_at_ms == T0 + DEFAULT_RATE_LIMIT_BACKOFF_MS


def test_429_is_rate_limited(calls, client):
    calls.responses = [FakeResponse(429, headers=rl_headers(remaining=10))]
    assert client.get_json("/repos/a/b").outcome is FetchOutcome.RATE_LIMITED


def test_404_is_not_found(calls, client):
    calls.responses = [FakeResponse(404, json_body={"message": "Not Found"}, headers=rl_headers())]
    result = client.get_json("/repos/a/gone")
    assert result.outcome is FetchOutcome.NOT_FOUND
    assert result.is_success


def test_other_status_is_transport_error(calls, client):
    calls.responses = [FakeResponse(502, headers=rl_headers())]
    result = client.get_json("/repos/a/b")
    assert result.outcome is FetchOutcome.TRANSPORT_ERROR
    assert result.http_status == 502
    assert "502" in result.error


def test_network_exception_is_transport_error(calls, client):
    calls.responses = [requests.ConnectionError("connection refused")]
    result = client.get_json("/repos/a/b")
    assert result.outcome is FetchOutcome.TRANSPORT_ERROR
    assert "connection refused" in result.error


def test_invalid_json_is_parse_error(calls, client):
    calls.responses = [FakeResponse(200, json_body=None, text="<html>", headers=rl_headers())]
    result = client.get_json("/repos/a/b")
    assert result.outcome is FetchOutcome.PARSE_ERROR


def test_get_text_uses_raw_accept(calls, client):
    calls.responses = [FakeResponse(200, text="# hello", headers=rl_headers())]
    result = client.get_text("/repos/a/b/readme")
    assert result.payload == "# hello"
    assert calls.seen[0]["headers"]["Accept"] == "application/vnd.github.v3.raw"


# ============================================================================
# fetch() dispatch
# ============================================================================

def test_fetch_dispatches_by_kind(calls, client):
    calls.responses = [FakeResponse(200, json_body={"login": "alice", "name": "Alice"}, headers=rl_headers())]
    result = client.fetch(ResourceKind.USER, "alice")
    assert result.outcome is FetchOutcome.OK
    assert result.payload["login"] == "alice"
    assert calls.seen[0]["url"].endswith("/users/alice")


def test_fetch_rejects_malformed_key(calls, client):
    with pytest.raises(ValueError):
        client.fetch(ResourceKind.REPO_STATS, "not-a-repo-key")
    assert calls.seen == []


def test_debug_rest_logs_api_call_format(calls, caplog, monkeypatch):
    monkeypatch.setattr(logging.getLogger("GitHubAPIClient"), "propagate", True)
    client = GitHubAPIClient(token="ghp_test", debug_rest=True, clock=lambda: T0)
    calls.responses = [FakeResponse(200, json_body={"login": "alice"}, headers=rl_headers())]
    caplog.set_level(logging.DEBUG, logger="GitHubAPIClient")

    client.fetch(ResourceKind.USER, "alice")
    fetch_lines = [r.getMessage() for r in caplog.records if "GH REST FETCH" in r.getMessage()]
    assert len(fetch_lines) == 1
    assert "[user] alice" in fetch_lines[0]
    assert "/users/" in fetch_lines[0]


def test_no_fetch_trace_without_debug_rest(calls, client, caplog, monkeypatch):
    monkeypatch.setattr(logging.getLogger("GitHubAPIClient"), "propagate", True)
    calls.responses = [FakeResponse(200, json_body={"login": "alice"}, headers=rl_headers())]
    caplog.set_level(logging.DEBUG, logger="GitHubAPIClient")
    client.fetch(ResourceKind.USER, "alice")
    assert not any("GH REST FETCH" in r.getMessage() for r in caplog.records)


# ============================================================================
# Quota
# ============================================================================

def test_core_rate_limit_from_headers(calls, client):
    calls.responses = [FakeResponse(200, json_body={}, headers=rl_headers(remaining=42))]
    info = client.get_core_rate_limit_info()
    assert info.remaining == 42
    assert calls.seen[0]["url"].endswith("/rate_limit")


def test_core_rate_limit_from_body(calls, client):
    body = {"resources": {"core": {"limit": 60, "remaining": 59, "reset": RESET_S, "used": 1}}}
    calls.responses = [FakeResponse(200, json_body=body)]
    info = client.get_core_rate_limit_info()
    assert (info.limit, info.remaining, info.reset_at_ms) == (60, 59, RESET_S * 1000)


def test_core_rate_limit_unreachable_returns_last_snapshot(calls, client):
    calls.responses = [FakeResponse(200, json_body={}, headers=rl_headers(remaining=7)), requests.Timeout("slow")]
    client.get_json("/repos/a/b")
    info = client.get_core_rate_limit_info()
    assert info.remaining == 7


# ============================================================================
# Token detection
# ============================================================================

def test_token_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("GITHUB_TOKEN", "env_token")
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    c = GitHubAPIClient()
    assert c.token == "env_token"
    assert c.headers["Authorization"] == "Bearer env_token"


def test_token_from_gh_hosts_file(monkeypatch, tmp_path):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GH_TOKEN", raising=False)
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    gh_dir = tmp_path / ".config" / "gh"
    gh_dir.mkdir(parents=True)
    (gh_dir / "hosts.yml").write_text("github.com:\n  users:\n    alice:\n      oauth_token: gho_cli\n  user: alice\n")
    assert GitHubAPIClient().token == "gho_cli"


def test_no_token_is_allowed(monkeypatch, tmp_path):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GH_TOKEN", raising=False)
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    c = GitHubAPIClient()
    assert not c.has_token()
    assert "Authorization" not in c.headers
