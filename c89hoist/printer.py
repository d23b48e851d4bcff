"""Printer: reconstitutes source text from a (rewritten) token sequence."""

from __future__ import annotations

from typing import Optional

from .tokens import Token, TokenOrigin
from . import constants


def _indent(tok: Token) -> str:
    """Leading whitespace of *tok*'s source line."""
    if "\n" in tok.gap:
        tail = tok.gap[tok.gap.rfind("\n") + 1 :]
        if not tail.strip():
            return tail
    return " " * tok.column


class Printer:
    """Prints tokens, keeping the source layout wherever tokens are still in order.

    Original tokens that directly follow their source predecessor are printed
    with the exact source gap. Original tokens that land on a later line than
    the last printed original token start a fresh line with their source
    indentation. Everything else is separated by a single space.
    """

    def __init__(self):
        self._parts: list[str] = []
        self._line = 1  # source line of the last printed original token
        self._at_line_start = True
        self._prev: Optional[Token] = None

    def print(self, tokens: list[Token]) -> str:
        for tok in tokens:
            self._write(self._spacing(tok) + tok.text)
            if tok.origin == TokenOrigin.ORIGINAL:
                self._line = tok.end_line
            elif self._replaces_in_place(tok):
                self._line = max(self._line, tok.end_line)
            self._prev = tok
        text = "".join(self._parts)
        return text if text.endswith("\n") else text + "\n"

    def _spacing(self, tok: Token) -> str:
        prev = self._prev
        if tok.follows(prev):
            return tok.gap
        positioned = tok.origin == TokenOrigin.ORIGINAL or (
            tok.origin == TokenOrigin.SYNTHETIC and tok.is_anchored()
        )
        if positioned and tok.line > self._line:
            newlines = 1
            if prev is not None and prev.origin == TokenOrigin.ORIGINAL:
                newlines = max(1, min(tok.line - self._line, tok.gap.count("\n")))
            return "\n" * newlines + _indent(tok)
        if self._at_line_start:
            return ""
        if prev is not None and prev.line_bound:
            return "\n"
        if tok.text in constants.NO_SPACE_BEFORE:
            return ""
        if prev is not None and prev.text in constants.NO_SPACE_AFTER:
            return ""
        return " "

    def _replaces_in_place(self, tok: Token) -> bool:
        """A generated name printed among original tokens, covering source lines."""
        return (
            tok.origin == TokenOrigin.SYNTHETIC
            and not tok.is_anchored()
            and tok.end_line > 0
            and self._prev is not None
            and self._prev.origin == TokenOrigin.ORIGINAL
        )

    def _write(self, text: str):
        if not text:
            return
        self._parts.append(text)
        self._at_line_start = text.endswith("\n")


def print_tokens(tokens: list[Token]) -> str:
    """Render *tokens* as source text terminated by a newline."""
    return Printer().print(tokens)
