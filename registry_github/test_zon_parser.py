"""
Pytest tests for zon_parser.py (build.zig.zon manifests).
"""

import sys
from pathlib import Path

import pytest

# Set up path for imports
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

from registry_github.zon_parser import MAX_DEPTH, parse_manifest, parse_zon

MODERN_ZON = r"""
// build.zig.zon for zap
.{
    .name = .zap,
    .version = "0.10.1",
    .fingerprint = 0x8cbd_6f5e_7c1a_2b3d,
    .minimum_zig_version = "0.14.0",
    .dependencies = .{
        .httpz = .{
            .url = "https://github.com/karlseguin/http.zig/archive/refs/heads/master.tar.gz",
            .hash = "1220abcdef",
        },
        .@"zig-clap" = .{ .path = "../clap", .lazy = true },
    },
    .paths = .{
        "build.zig",
        "build.zig.zon",
        "src",
        "",
    },
}
"""

LEGACY_ZON = """
.{
    .name = "mach-core",
    .version = "0.4.0",
    .dependencies = .{},
    .paths = .{""},
}
"""


def test_modern_manifest():
    m = parse_manifest(MODERN_ZON)
    assert m["name"] == "zap"
    assert m["version"] == "0.10.1"
    assert m["minimum_zig_version"] == "0.14.0"
    assert m["paths"] == ["build.zig", "build.zig.zon", "src", ""]
    assert m["dependencies"] == [
        {
            "name": "httpz",
            "url": "https://github.com/karlseguin/http.zig/archive/refs/heads/master.tar.gz",
            "hash": "1220abcdef",
            "path": None,
            "lazy": False,
        },
        {"name": "zig-clap", "url": None, "hash": None, "path": "../clap", "lazy": True},
    ]


def test_legacy_manifest_with_string_name_and_no_deps():
    m = parse_manifest(LEGACY_ZON)
    assert m["name"] == "mach-core"
    assert m["minimum_zig_version"] is None
    assert m["dependencies"] == []
    assert m["paths"] == [""]


def test_scalar_values():
    assert parse_zon(".{ .a = 0x10, .b = 1_000, .c = 1.5, .d = true, .e = null, .f = 'x' }") == {
        "a": 16, "b": 1000, "c": 1.5, "d": True, "e": None, "f": "x",
    }


def test_string_escapes_and_multiline():
    src = '.{ .s = "tab\\there \\u{1F600}", .m =\n    \\\\line one\n    \\\\line two\n, }'
    v = parse_zon(src)
    assert v["s"] == "tab\there \U0001F600"
    assert v["m"] == "line one\nline two"


def test_tuple_of_enum_literals():
    assert parse_zon(".{ .a, .b }") == ["a", "b"]


@pytest.mark.parametrize("src", [
    "",
    ".{ .name = }",
    '.{ .name = "x" .version = "y" }',
    '.{ "a", "b"',
    '.{ .name = "x" } extra',
    "{ .name = 1 }",
    '.{ .name = "unterminated }',
])
def test_invalid_zon_raises(src):
    with pytest.raises(ValueError):
        parse_zon(src)


def test_nesting_limit():
    ok = ".{" * MAX_DEPTH + "}" * MAX_DEPTH
    assert parse_zon(ok) is not None
    with pytest.raises(ValueError):
        parse_zon(".{" * (MAX_DEPTH + 1) + "}" * (MAX_DEPTH + 1))
    with pytest.raises(ValueError):
        parse_zon(".{" * 5000 + "}" * 5000)


@pytest.mark.parametrize("escape", [
    r"\u{FFFFFFFFFFFFFFFFFFFFFFFF}",
    r"\u{110000}",
    r"\u{}",
    r"\u{12",
])
def test_bad_unicode_escape_raises(escape):
    with pytest.raises(ValueError):
        parse_zon('.{ .name = "' + escape + '" }')


def test_max_unicode_escape():
    assert parse_zon(r'.{ .name = "\u{10FFFF}" }') == {"name": "\U0010ffff"}


def test_top_level_must_be_struct():
    with pytest.raises(ValueError):
        parse_manifest('.{ "a", "b" }')
