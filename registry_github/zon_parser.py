# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Small parser for `build.zig.zon` package manifests.

ZON is a subset of Zig expression syntax. A typical manifest:

    .{
        .name = .zap,                   // enum literal (0.14+) or "zap" (older)
        .version = "0.10.1",
        .minimum_zig_version = "0.13.0",
        .fingerprint = 0x8cbd6f5e7c1a2b3d,
        .dependencies = .{
            .httpz = .{ .url = "https://...", .hash = "1220..." },
            .@"zig-clap" = .{ .path = "../clap", .lazy = true },
        },
        .paths = .{ "build.zig", "build.zig.zon", "src" },
    }

Values map to Python as:
    "str" / \\\\multiline   -> str
    123 / 0x7f / 1.5        -> int / float
    true / false / null     -> True / False / None
    .enum_literal           -> str (without the dot)
    .{ .a = 1 }             -> dict
    .{ 1, 2 }               -> list
    .{}                     -> {} (empty; callers decide)

Anything else raises ValueError.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Tuple

_TOKEN_RE = re.compile(
    r"""
      (?P<ws>\s+)
    | (?P<comment>//[^\n]*)
    | (?P<mlstring>(?:\\\\[^\n]*(?:\n|$)\s*)+)
    | (?P<string>"(?:[^"\\\n]|\\.)*")
    | (?P<quoted_ident>@"(?:[^"\\\n]|\\.)*")
    | (?P<char>'(?:[^'\\\n]|\\.)+')
    | (?P<number>0x[0-9A-Fa-f_]+|0o[0-7_]+|0b[01_]+|-?[0-9][0-9_]*(?:\.[0-9_]+)?(?:[eE][-+]?[0-9]+)?)
    | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
    | (?P<punct>[.{}=,])
    """,
    re.VERBOSE,
)

MAX_CODE_POINT = 0x10FFFF
# Real manifests nest 3-4 levels deep; anything deeper is rejected.
MAX_DEPTH = 32

_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "\\": "\\", "'": "'", '"': '"'}


def _unescape(body: str) -> str:
    out: List[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\" or i + 1 >= len(body):
            out.append(ch)
            i += 1
            continue
        nxt = body[i + 1]
        if nxt in _ESCAPES:
            out.append(_ESCAPES[nxt])
            i += 2
        elif nxt == "x" and i + 3 < len(body):
            out.append(chr(int(body[i + 2:i + 4], 16)))
            i += 4
        elif nxt == "u" and body[i + 2:i + 3] == "{":
            end = body.index("}", i)
            digits = body[i + 3:end]
            if not digits or len(digits) > 6 or int(digits, 16) > MAX_CODE_POINT:
                raise ValueError(f"Unicode escape out of range: \\u{{{digits}}}")
            out.append(chr(int(digits, 16)))
            i = end + 1
        else:
            raise ValueError(f"Invalid escape sequence \\{nxt}")
    return "".join(out)


def tokenize(text: str) -> List[Tuple[str, str]]:
    """Split ZON source into (kind, text) tokens; whitespace and comments dropped."""
    tokens: List[Tuple[str, str]] = []
    pos = 0
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if not m:
            line = text.count("\n", 0, pos) + 1
            raise ValueError(f"Unexpected character {text[pos]!r} at line {line}")
        kind = m.lastgroup or ""
        if kind not in ("ws", "comment"):
            tokens.append((kind, m.group(0)))
        pos = m.end()
    return tokens


class _Parser:
    def __init__(self, tokens: List[Tuple[str, str]]):
        self.tokens = tokens
        self.pos = 0
        self.depth = 0

    def peek(self, offset: int = 0) -> Tuple[str, str]:
        i = self.pos + offset
        return self.tokens[i] if i < len(self.tokens) else ("eof", "")

    def take(self, text: Optional[str] = None) -> Tuple[str, str]:
        tok = self.peek()
        if tok[0] == "eof":
            raise ValueError("Unexpected end of input")
        if text is not None and tok[1] != text:
            raise ValueError(f"Expected {text!r}, got {tok[1]!r}")
        self.pos += 1
        return tok

    def field_name(self) -> str:
        kind, text = self.take()
        if kind == "ident":
            return text
        if kind == "quoted_ident":
            return _unescape(text[2:-1])
        raise ValueError(f"Expected field name, got {text!r}")

    def value(self) -> Any:
        kind, text = self.peek()
        if kind == "punct" and text == ".":
            nxt_kind, nxt_text = self.peek(1)
            if nxt_kind == "punct" and nxt_text == "{":
                return self.container()
            self.take(".")
            return self.field_name()
        self.take()
        if kind == "string":
            return _unescape(text[1:-1])
        if kind == "mlstring":
            lines = [ln.strip()[2:] for ln in text.strip().split("\n")]
            return "\n".join(lines)
        if kind == "char":
            return _unescape(text[1:-1])
        if kind == "number":
            cleaned = text.replace("_", "")
            if cleaned.startswith(("0x", "0o", "0b")):
                return int(cleaned, 0)
            if any(c in cleaned for c in ".eE"):
                return float(cleaned)
            return int(cleaned)
        if kind == "ident":
            if text == "true":
                return True
            if text == "false":
                return False
            if text == "null":
                return None
        raise ValueError(f"Unexpected token {text!r}")

    def container(self) -> Any:
        if self.depth >= MAX_DEPTH:
            raise ValueError(f"Nesting deeper than {MAX_DEPTH} levels")
        self.depth += 1
        try:
            return self._container_body()
        finally:
            self.depth -= 1

    def _container_body(self) -> Any:
        self.take(".")
        self.take("{")
        if self.peek() == ("punct", "}"):
            self.take("}")
            return {}

        # `.{ .name = ...` is a struct; anything else is a tuple.
        is_struct = self.peek() == ("punct", ".") and self.peek(2) == ("punct", "=")
        fields: Dict[str, Any] = {}
        items: List[Any] = []
        while True:
            if is_struct:
                self.take(".")
                name = self.field_name()
                self.take("=")
                fields[name] = self.value()
            else:
                items.append(self.value())
            if self.peek() == ("punct", ","):
                self.take(",")
            elif self.peek() != ("punct", "}"):
                raise ValueError(f"Expected ',' or '}}', got {self.peek()[1]!r}")
            if self.peek() == ("punct", "}"):
                self.take("}")
                return fields if is_struct else items


def parse_zon(text: str) -> Any:
    """Parse ZON source text into plain Python values."""
    parser = _Parser(tokenize(text))
    result = parser.value()
    if parser.peek()[0] != "eof":
        raise ValueError(f"Trailing content after manifest: {parser.peek()[1]!r}")
    return result


def _opt_str(v: Any) -> Optional[str]:
    return v if isinstance(v, str) else None


def parse_manifest(text: str) -> Dict[str, Any]:
    """Parse a build.zig.zon file into the cached manifest dict.

    Returns:
        {
          "name": "zap", "version": "0.10.1", "minimum_zig_version": "0.13.0",
          "dependencies": [{"name": "httpz", "url": "...", "hash": "...", "path": None, "lazy": False}],
          "paths": ["build.zig", "src"]
        }

    Raises ValueError if the text is not ZON or the top level is not a struct.
    """
    root = parse_zon(text)
    if not isinstance(root, dict):
        raise ValueError("Top level of build.zig.zon is not a struct")

    deps_raw = root.get("dependencies") or {}
    if not isinstance(deps_raw, dict):
        raise ValueError(".dependencies is not a struct")
    dependencies = []
    for name, dep in deps_raw.items():
        dep = dep if isinstance(dep, dict) else {}
        dependencies.append({
            "name": name,
            "url": _opt_str(dep.get("url")),
            "hash": _opt_str(dep.get("hash")),
            "path": _opt_str(dep.get("path")),
            "lazy": bool(dep.get("lazy") or False),
        })

    paths_raw = root.get("paths") or []
    paths = [p for p in paths_raw if isinstance(p, str)] if isinstance(paths_raw, list) else []

    return {
        "name": _opt_str(root.get("name")),
        "version": _opt_str(root.get("version")),
        "minimum_zig_version": _opt_str(root.get("minimum_zig_version")),
        "dependencies": dependencies,
        "paths": paths,
    }
