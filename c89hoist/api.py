"""Composable API functions for the rewrite pipeline.

Each function corresponds to a CLI workflow (rewrite, --dump-tokens,
--dump-symbols) but is callable programmatically without argparse.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from tree_sitter import Tree

from .classifier import RewriteSite, classify
from .config import RewriteConfig
from .parser import Parser, ParserFactory, TreeSitterParserFactory
from .printer import print_tokens
from .rewriter import rewrite_tokens
from .symbols import SymbolTable, build_symbol_table
from .tokens import TokenStream, dump_tokens as _dump_token_stream, tokenize

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = RewriteConfig()


@dataclass
class TranslationUnit:
    """A parsed source file: tree-sitter tree, raw bytes and token stream."""

    tree: Tree
    source: bytes
    tokens: TokenStream


def parse_source(
    source: str,
    config: RewriteConfig = DEFAULT_CONFIG,
    parser_factory: Optional[ParserFactory] = None,
) -> TranslationUnit:
    """Parse C source text and tokenize the whole translation unit.

    Args:
        source: The C source text.
        config: Rewrite configuration (selects the grammar).
        parser_factory: Parser factory; defaults to tree-sitter-language-pack.

    Returns:
        The parsed TranslationUnit.
    """
    logger.info("Parsing source (%d bytes)", len(source))
    source_bytes = source.encode("utf-8")
    factory = parser_factory or TreeSitterParserFactory()
    tree = Parser(factory).parse(source_bytes, config.language)
    return TranslationUnit(tree=tree, source=source_bytes, tokens=tokenize(tree, source_bytes))


def build_symbols(unit: TranslationUnit) -> SymbolTable:
    return build_symbol_table(unit.tree, unit.tokens)


def find_sites(
    unit: TranslationUnit,
    symbols: SymbolTable,
    config: RewriteConfig = DEFAULT_CONFIG,
) -> list[RewriteSite]:
    return classify(unit.tree, symbols, unit.tokens, config)


def rewrite_source(source: str, config: RewriteConfig = DEFAULT_CONFIG) -> str:
    """Hoist every compound literal of *source* and return the rewritten text.

    Raises:
        RewriteError: on any lookup failure or unsupported construct; no
            partial result is returned.
    """
    unit = parse_source(source, config)
    symbols = build_symbols(unit)
    sites = find_sites(unit, symbols, config)
    tokens = rewrite_tokens(unit.tree, unit.tokens, sites, config)
    return print_tokens(tokens)


def rewrite_file(path: str | Path, config: RewriteConfig = DEFAULT_CONFIG) -> str:
    """Read a C file and return its rewritten text."""
    source = Path(path).read_text(encoding="utf-8")
    logger.info("Rewriting %s", path)
    return rewrite_source(source, config)


def dump_tokens(source: str, config: RewriteConfig = DEFAULT_CONFIG) -> str:
    """Return one ``token = 'x' @ line:col`` line per token of *source*."""
    return _dump_token_stream(parse_source(source, config).tokens)


def dump_symbols(source: str, config: RewriteConfig = DEFAULT_CONFIG) -> str:
    """Return the typedef, struct, enum and macro tables of *source*."""
    return build_symbols(parse_source(source, config)).dump()
