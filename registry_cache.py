#!/usr/bin/env python3
"""
SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
SPDX-License-Identifier: Apache-2.0

zig-index GitHub cache - command line tool

Fetches live GitHub data for zig-index packages through the local cache
(fresh records are served without network calls, stale ones are the fallback
when GitHub is rate limiting or unreachable), and inspects/purges the cache.
"""

import argparse
import json
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from registry_common import (
    DEFAULT_BATCH_CONCURRENCY,
    DEFAULT_REFRESH_CONCURRENCY,
    format_seconds_delta,
    setup_logging,
)
from registry_github import GITHUB_API_STATS, GitHubAPIClient
from registry_github.api import get_resource
from registry_github.cached_fetcher import CachedFetcher
from registry_github.fetch_types import ResourceKind

KIND_CHOICES = [k.value for k in ResourceKind]


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, indent=2, sort_keys=True))


def _read_keys(args: argparse.Namespace) -> List[str]:
    keys: List[str] = list(args.keys or [])
    if args.keys_file:
        for line in Path(args.keys_file).read_text().splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                keys.append(line)
    return keys


def _check_keys(fetcher: CachedFetcher, kind: ResourceKind, keys: List[str]) -> None:
    """Reject malformed keys up front (ValueError, exit code 2)."""
    resource = get_resource(kind, fetcher.client)
    for key in keys:
        resource.cache_key(key)


def _summary_line(key: str, d: Dict[str, Any]) -> str:
    if d.get("is_stale"):
        src = "stale"
    elif d.get("from_cache"):
        src = "cache"
    elif d.get("error"):
        src = "miss"
    else:
        src = "remote"
    parts = [f"{key:<40}", f"{src:<6}"]
    if d.get("status"):
        parts.append(d["status"])
    if d.get("payload") is None:
        parts.append("(no data)")
    if d.get("error"):
        parts.append(f"error: {d['error']}")
    return "  ".join(parts)


def cmd_fetch(fetcher: CachedFetcher, args: argparse.Namespace) -> int:
    _check_keys(fetcher, ResourceKind(args.kind), [args.key])
    options = {"limit": args.limit} if args.limit else {}
    res = fetcher.fetch_one(ResourceKind(args.kind), args.key, force_refresh=args.force, **options)
    if args.json:
        _print_json(res.to_dict())
    else:
        print(_summary_line(args.key, res.to_dict()))
        if res.payload is not None:
            _print_json(res.payload)
    return 0 if res.payload is not None or not res.error else 1


def _print_batch(results: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        _print_json({k: v.to_dict() for k, v in results.items()})
        return
    for k, v in results.items():
        print(_summary_line(k, v.to_dict()))


def cmd_fetch_many(fetcher: CachedFetcher, args: argparse.Namespace) -> int:
    keys = _read_keys(args)
    if not keys:
        print("Error: no keys given (positional or --keys-file)", file=sys.stderr)
        return 1
    _check_keys(fetcher, ResourceKind(args.kind), keys)
    results = fetcher.fetch_many(
        ResourceKind(args.kind), keys, concurrency=args.concurrency, force_refresh=args.force
    )
    _print_batch(results, args.json)
    return 0


def cmd_refresh_stale(fetcher: CachedFetcher, args: argparse.Namespace) -> int:
    keys = _read_keys(args)
    _check_keys(fetcher, ResourceKind(args.kind), keys)
    results = fetcher.refresh_stale(ResourceKind(args.kind), keys, concurrency=args.concurrency)
    if not results and not args.json:
        print("Nothing to refresh; every record is fresh.")
        return 0
    _print_batch(results, args.json)
    return 0


def cmd_quota(fetcher: CachedFetcher, args: argparse.Namespace) -> int:
    info = fetcher.check_remote_quota()
    if info is None:
        if args.json:
            _print_json(None)
        else:
            print("Rate limit info unavailable")
        return 1
    if args.json:
        _print_json(info.to_dict())
        return 0
    resets_in = format_seconds_delta(info.reset_at_ms // 1000 - int(time.time()))
    print(f"GitHub core quota: {info.remaining}/{info.limit} remaining ({info.used} used), resets in {resets_in}")
    return 0


def cmd_stats(fetcher: CachedFetcher, args: argparse.Namespace) -> int:
    stats = fetcher.get_cache_stats().to_dict()
    if args.json:
        _print_json(stats)
        return 0
    print(f"Cache directory: {fetcher.cache_dir}")
    print(f"{'kind':<12} {'total':>7} {'fresh':>7} {'expired':>8}")
    for kind, row in stats.items():
        print(f"{kind:<12} {row['total']:>7} {row['fresh']:>7} {row['expired']:>8}")
    return 0


def cmd_clear(fetcher: CachedFetcher, args: argparse.Namespace) -> int:
    if args.expired_only:
        removed = fetcher.clear_expired()
        what = "expired records"
    else:
        removed = fetcher.clear_cache()
        what = "records"
    if args.json:
        _print_json({"removed": removed})
    else:
        print(f"Removed {removed} {what} from {fetcher.cache_dir}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Cache-first GitHub data fetcher for the zig-index',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Repo stats for one package (served from cache when fresh)
  %(prog)s fetch repo_stats ziglang/zig

  # READMEs for several packages, 5 requests in flight
  %(prog)s fetch-many readme zigzap/zap karlseguin/http.zig --concurrency 5

  # Remaining GitHub quota
  %(prog)s quota

  # What is cached, and how much of it is stale
  %(prog)s stats
        """
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose output (INFO level logging)')
    parser.add_argument('--debug', action='store_true', help='Enable debug output (DEBUG level logging, shows all API calls)')
    parser.add_argument('--token', help='GitHub token (default: GITHUB_TOKEN/GH_TOKEN, ~/.config/github-token, gh CLI config)')
    parser.add_argument('--cache-dir', type=Path, help='Cache directory (default: $ZIG_INDEX_CACHE_DIR or ~/.cache/zig-index)')
    parser.add_argument('--json', action='store_true', help='Print machine-readable JSON')

    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('fetch', help='Fetch one resource through the cache')
    p.add_argument('kind', choices=KIND_CHOICES)
    p.add_argument('key', help='owner/name (or a login for the user kind)')
    p.add_argument('--force', action='store_true', help='Skip the fresh-cache check')
    p.add_argument('--limit', type=int, help='Commit count for the commits kind (max 100)')
    p.set_defaults(func=cmd_fetch)

    p = sub.add_parser('fetch-many', help='Fetch many keys of one kind through the cache')
    p.add_argument('kind', choices=KIND_CHOICES)
    p.add_argument('keys', nargs='*')
    p.add_argument('--keys-file', type=Path, help='File with one key per line (# comments allowed)')
    p.add_argument('--concurrency', type=int, default=DEFAULT_BATCH_CONCURRENCY,
                   help=f'Max requests in flight (default: {DEFAULT_BATCH_CONCURRENCY})')
    p.add_argument('--force', action='store_true', help='Skip the fresh-cache check')
    p.set_defaults(func=cmd_fetch_many)

    p = sub.add_parser('refresh-stale', help='Re-fetch only missing or stale keys')
    p.add_argument('kind', choices=KIND_CHOICES)
    p.add_argument('keys', nargs='*')
    p.add_argument('--keys-file', type=Path, help='File with one key per line (# comments allowed)')
    p.add_argument('--concurrency', type=int, default=DEFAULT_REFRESH_CONCURRENCY,
                   help=f'Max requests in flight (default: {DEFAULT_REFRESH_CONCURRENCY})')
    p.set_defaults(func=cmd_refresh_stale)

    p = sub.add_parser('quota', help='Show the remaining GitHub REST quota (does not consume quota)')
    p.set_defaults(func=cmd_quota)

    p = sub.add_parser('stats', help='Show cached record counts per kind')
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser('clear', help='Delete cached records')
    p.add_argument('--expired-only', action='store_true', help='Only delete records past the TTL')
    p.set_defaults(func=cmd_clear)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the zig-index cache tool"""
    parser = build_parser()
    args = parser.parse_args(argv)

    logger = setup_logging(verbose=args.verbose, debug=args.debug)

    client = GitHubAPIClient(token=args.token, debug_rest=args.debug)
    if not client.has_token():
        logger.info("No GitHub token found; using the unauthenticated quota")
    fetcher = CachedFetcher(client, cache_dir=args.cache_dir)

    try:
        rc = args.func(fetcher, args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    logger.debug("GitHub REST stats: %s", GITHUB_API_STATS.to_dict())
    return rc


if __name__ == '__main__':
    sys.exit(main())
