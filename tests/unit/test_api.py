"""Tests for the composable API functions in c89hoist.api."""

import logging

import pytest
import tree_sitter_language_pack

from c89hoist.api import (
    build_symbols,
    dump_symbols,
    dump_tokens,
    find_sites,
    parse_source,
    rewrite_file,
    rewrite_source,
)
from c89hoist.classifier import SiteRole
from c89hoist.errors import ErrorKind, LookupFailure, RewriteError
from c89hoist.parser import ParserFactory
from c89hoist.tokens import TokenStream

SOURCE = """\
typedef struct { int x; int y; } Point;
void f(void) {
    Point p;
    p = (Point){1, 2};
}
"""


class _CountingFactory(ParserFactory):
    def __init__(self):
        self.requested: list[str] = []

    def get_parser(self, language: str):
        self.requested.append(language)
        return tree_sitter_language_pack.get_parser(language)


class TestParseSource:
    def test_returns_tree_and_tokens(self):
        unit = parse_source(SOURCE)
        assert unit.tree.root_node.type == "translation_unit"
        assert isinstance(unit.tokens, TokenStream)
        assert unit.source == SOURCE.encode("utf-8")

    def test_uses_injected_factory(self):
        factory = _CountingFactory()
        parse_source(SOURCE, parser_factory=factory)
        assert factory.requested == ["c"]

    def test_parse_errors_only_warn(self, caplog):
        with caplog.at_level(logging.WARNING, logger="c89hoist.parser"):
            unit = parse_source("int x = ;\n")
        assert unit.tree.root_node.has_error
        assert "error node" in caplog.text


class TestPipelineStages:
    def test_build_symbols(self):
        symbols = build_symbols(parse_source(SOURCE))
        assert symbols.find_typedef("Point") is not None

    def test_find_sites(self):
        unit = parse_source(SOURCE)
        sites = find_sites(unit, build_symbols(unit))
        assert [site.role for site in sites] == [SiteRole.VALUE_ASSIGNMENT]


class TestRewriteSource:
    def test_rewrites(self):
        assert "{ Point cl_tmp0 = {1, 2};" in rewrite_source(SOURCE)

    def test_is_deterministic(self):
        assert rewrite_source(SOURCE) == rewrite_source(SOURCE)

    def test_error_carries_kind(self):
        with pytest.raises(RewriteError) as info:
            rewrite_source("void f(void) { g((Unknown){1}); }\n")
        assert isinstance(info.value, LookupFailure)
        assert info.value.kind == ErrorKind.LOOKUP_FAILURE
        assert str(info.value).startswith("lookup_failure: Unknown type Unknown")

    def test_rewrite_file(self, tmp_path):
        path = tmp_path / "input.c"
        path.write_text(SOURCE, encoding="utf-8")
        assert rewrite_file(path) == rewrite_source(SOURCE)


class TestDumps:
    def test_dump_tokens(self):
        lines = dump_tokens("int x;").splitlines()
        assert lines == [
            "token = 'int' @ 1:1",
            "token = 'x' @ 1:5",
            "token = ';' @ 1:6",
        ]

    def test_dump_symbols(self):
        text = dump_symbols(SOURCE)
        assert "N typedef entries: 1" in text
        assert "[0]: Point (<anonymous> struct)" in text
