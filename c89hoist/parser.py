"""Tree-Sitter parsing layer for C translation units."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from . import constants

logger = logging.getLogger(__name__)


class ParserFactory(ABC):
    """Abstract factory for obtaining a grammar-specific parser."""

    @abstractmethod
    def get_parser(self, language: str): ...


class TreeSitterParserFactory(ParserFactory):
    """Concrete factory that delegates to tree-sitter-language-pack."""

    def get_parser(self, language: str):
        import tree_sitter_language_pack as tslp

        return tslp.get_parser(language)


def _count_error_nodes(node) -> int:
    if node.type == "ERROR" or node.is_missing:
        return 1
    if not node.has_error:
        return 0
    return sum(_count_error_nodes(child) for child in node.children)


class Parser:
    """Parses one translation unit through a parser factory.

    Trees with syntax errors are returned as they are; the unparsed regions
    still produce tokens and are printed back unchanged.
    """

    def __init__(self, parser_factory: ParserFactory):
        self._factory = parser_factory

    def parse(self, source: bytes, language: str = constants.LANGUAGE):
        tree = self._factory.get_parser(language).parse(source)
        if tree.root_node.has_error:
            logger.warning(
                "Parse tree contains %d error node(s); unparsed regions are copied verbatim",
                _count_error_nodes(tree.root_node),
            )
        return tree
