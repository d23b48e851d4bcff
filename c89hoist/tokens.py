"""Token Model: position-tagged lexical units taken from tree-sitter leaves."""

from __future__ import annotations

import bisect
import logging
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

_IDENTIFIER_LEAVES = frozenset(
    {"identifier", "field_identifier", "type_identifier", "statement_identifier"}
)
_LITERAL_LEAVES = frozenset(
    {
        "number_literal",
        "string_content",
        "escape_sequence",
        "character",
        "system_lib_string",
        "preproc_arg",
        "true",
        "false",
        "null",
    }
)
_LITERAL_PARENTS = frozenset({"string_literal", "char_literal"})


class TokenKind(str, Enum):
    IDENTIFIER = "identifier"
    KEYWORD = "keyword"
    PUNCTUATION = "punctuation"
    LITERAL = "literal"
    COMMENT = "comment"


class TokenOrigin(str, Enum):
    ORIGINAL = "original"  # printed where the source had it
    MOVED = "moved"  # original spelling relocated by a rewrite
    SYNTHETIC = "synthetic"  # generated text


class Token(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    kind: TokenKind
    line: int = 0
    column: int = 0
    offset: int = -1
    end_line: int = 0
    end_column: int = 0
    index: int = -1
    gap: str = ""
    origin: TokenOrigin = TokenOrigin.ORIGINAL
    line_bound: bool = False

    @classmethod
    def synthetic(
        cls,
        text: str,
        kind: TokenKind,
        anchor: Optional[Token] = None,
        through: Optional[Token] = None,
    ) -> Token:
        """Create a generated token, optionally placed at *anchor*'s position.

        *through* is the last source token the generated text stands in for;
        its end line is kept so the printer knows which lines were consumed.
        """
        if anchor is None:
            end_line = through.end_line if through is not None else 0
            return cls(
                text=text, kind=kind, end_line=end_line, origin=TokenOrigin.SYNTHETIC
            )
        return cls(
            text=text,
            kind=kind,
            line=anchor.line,
            column=anchor.column,
            end_line=anchor.line,
            end_column=anchor.column + len(text),
            gap=anchor.gap,
            origin=TokenOrigin.SYNTHETIC,
        )

    def moved(self) -> Token:
        if self.origin != TokenOrigin.ORIGINAL:
            return self
        return self.model_copy(update={"origin": TokenOrigin.MOVED})

    def is_anchored(self) -> bool:
        return self.line > 0

    def follows(self, prev: Optional[Token]) -> bool:
        """True when *prev* is this token's immediate predecessor in the source."""
        if self.origin == TokenOrigin.SYNTHETIC:
            return False
        if prev is None:
            return self.index == 0
        return prev.origin != TokenOrigin.SYNTHETIC and prev.index + 1 == self.index

    def __str__(self) -> str:
        if not self.is_anchored():
            return f"'{self.text}' @ <synthetic>"
        return f"'{self.text}' @ {self.line}:{self.column + 1}"


def _kind_of(leaf, text: str) -> TokenKind:
    ltype = leaf.type
    if ltype == "comment":
        return TokenKind.COMMENT
    if ltype in _IDENTIFIER_LEAVES:
        return TokenKind.IDENTIFIER
    parent = leaf.parent
    if ltype in _LITERAL_LEAVES or (parent is not None and parent.type in _LITERAL_PARENTS):
        return TokenKind.LITERAL
    if ltype == "primitive_type" or (text[:1].isalpha() or text[:1] == "_"):
        return TokenKind.KEYWORD
    return TokenKind.PUNCTUATION


def _is_line_bound(leaf, text: str) -> bool:
    if leaf.type == "comment":
        return text.startswith("//")
    parent = leaf.parent
    return parent is not None and parent.type.startswith("preproc_")


def _leaves(root):
    """Yield the leaves of *root* in document order."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.child_count == 0:
            yield node
            continue
        stack.extend(reversed(node.children))


class TokenStream:
    """The ordered token sequence of one translation unit."""

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self._offsets = [tok.offset for tok in tokens]
        self._by_offset = {tok.offset: tok for tok in tokens}

    def __len__(self) -> int:
        return len(self.tokens)

    def __iter__(self):
        return iter(self.tokens)

    def at(self, leaf) -> Optional[Token]:
        """Return the token produced for *leaf*, or None for zero-width leaves."""
        if leaf.start_byte == leaf.end_byte:
            return None
        return self._by_offset.get(leaf.start_byte)

    def extent(self, node) -> list[Token]:
        """Return the tokens inside *node*'s source extent."""
        lo = bisect.bisect_left(self._offsets, node.start_byte)
        hi = bisect.bisect_left(self._offsets, node.end_byte)
        return self.tokens[lo:hi]

    def identifiers(self) -> set[str]:
        return {tok.text for tok in self.tokens if tok.kind == TokenKind.IDENTIFIER}

    @staticmethod
    def concat(tokens: Iterable[Token]) -> str:
        """Join token spellings with single spaces."""
        return " ".join(tok.text for tok in tokens)


def tokenize(tree, source: bytes) -> TokenStream:
    """Produce the token stream of a parsed translation unit."""
    tokens: list[Token] = []
    prev_end = 0
    for leaf in _leaves(tree.root_node):
        if leaf.start_byte == leaf.end_byte:
            continue
        text = source[leaf.start_byte : leaf.end_byte].decode("utf-8")
        (row, col), (end_row, end_col) = leaf.start_point, leaf.end_point
        tokens.append(
            Token(
                text=text,
                kind=_kind_of(leaf, text),
                line=row + 1,
                column=col,
                offset=leaf.start_byte,
                end_line=end_row + 1,
                end_column=end_col,
                index=len(tokens),
                gap=source[prev_end : leaf.start_byte].decode("utf-8"),
                line_bound=_is_line_bound(leaf, text),
            )
        )
        prev_end = leaf.end_byte
    logger.debug("Tokenized %d tokens", len(tokens))
    return TokenStream(tokens)


def dump_tokens(stream: TokenStream) -> str:
    """Render one ``token = 'x' @ line:col`` entry per token."""
    return "\n".join(
        f"token = '{tok.text}' @ {tok.line}:{tok.column + 1}" for tok in stream
    )
