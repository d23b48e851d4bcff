"""Hoisting Rewriter: moves compound literals into temporaries of a new scope.

    x = (Point) { y, z };
    rest;

becomes

    { Point cl_tmp0 = { y, z };
    x = cl_tmp0;
    rest; }

Every statement after the hoisted one in the same block is re-nested inside
the new scope, so no declaration ever follows a statement in a block.
"""

from __future__ import annotations

import logging
from typing import Iterable

from .classifier import RewriteSite
from .config import RewriteConfig
from .tokens import Token, TokenKind, TokenStream
from . import constants

logger = logging.getLogger(__name__)


class TempNamer:
    """Counter-based temporary names that never collide with source identifiers."""

    def __init__(self, prefix: str, taken: Iterable[str] = ()):
        self._prefix = prefix
        self._taken = set(taken)
        self._counter = 0

    def fresh(self) -> str:
        name = f"{self._prefix}{self._counter}"
        while name in self._taken:
            self._counter += 1
            name = f"{self._prefix}{self._counter}"
        self._counter += 1
        self._taken.add(name)
        return name


def _same(a, b) -> bool:
    return a is not None and b is not None and a.id == b.id


def _contains(outer, inner) -> bool:
    return outer.start_byte <= inner.start_byte and inner.end_byte <= outer.end_byte


def _is_multi_declaration(node) -> bool:
    return (
        node.type == "declaration"
        and len(node.children_by_field_name("declarator")) > 1
    )


def _closing(count: int) -> list[Token]:
    return [Token.synthetic("}", TokenKind.PUNCTUATION) for _ in range(count)]


def _split_container(node) -> tuple[list, list, list]:
    """Split a block container into (opening, statements, closing) children."""
    children = node.children
    if node.type == "case_statement":
        colon = next((n for n, c in enumerate(children) if c.type == ":"), -1)
        return children[: colon + 1], children[colon + 1 :], []
    start = 1 if children and children[0].type == "{" else 0
    end = len(children)
    if end > start and children[-1].type == "}":
        end -= 1
    return children[:start], children[start:end], children[end:]


class HoistingRewriter:
    """Emits the token sequence of a tree with every site hoisted."""

    def __init__(self, stream: TokenStream, sites: list[RewriteSite], namer: TempNamer):
        self._stream = stream
        self._namer = namer
        self._temps: dict[int, str] = {}
        self._sites_by_statement: dict[int, list[RewriteSite]] = {}
        for site in sites:
            self._sites_by_statement.setdefault(site.statement.id, []).append(site)

    def rewrite(self, root) -> list[Token]:
        tokens = self._emit(root)
        logger.info("Hoisted %d compound literals", len(self._temps))
        return tokens

    # ── dispatch ─────────────────────────────────────────────────

    def _emit(self, node) -> list[Token]:
        temp = self._temps.get(node.id)
        if temp is not None:
            last = self._stream.extent(node)[-1]
            return [Token.synthetic(temp, TokenKind.IDENTIFIER, through=last)]
        if node.id in self._sites_by_statement:
            return self._hoist(node, [])
        return self._emit_plain(node)

    def _emit_plain(self, node) -> list[Token]:
        if node.child_count == 0:
            tok = self._stream.at(node)
            return [tok] if tok is not None else []
        if node.type in constants.BLOCK_CONTAINER_TYPES:
            return self._emit_container(node)
        return [tok for child in node.children for tok in self._emit(child)]

    def _emit_container(self, node) -> list[Token]:
        opening, statements, closing = _split_container(node)
        out = [tok for child in opening for tok in self._emit(child)]
        out.extend(self._emit_sequence(statements))
        out.extend(tok for child in closing for tok in self._emit(child))
        return out

    def _emit_sequence(self, statements: list) -> list[Token]:
        out: list[Token] = []
        for n, child in enumerate(statements):
            if child.id in self._sites_by_statement:
                out.extend(self._hoist(child, statements[n + 1 :]))
                return out
            out.extend(self._emit(child))
        return out

    # ── hoisting ─────────────────────────────────────────────────

    def _hoist(self, statement, rest: list) -> list[Token]:
        if _is_multi_declaration(statement):
            return self._hoist_declaration(statement, rest)
        sites = self._sites_by_statement[statement.id]
        out = self._open_scopes(sites, self._stream.extent(statement)[0])
        out.extend(self._emit_plain(statement))
        out.extend(self._emit_sequence(rest))
        out.extend(_closing(len(sites)))
        return out

    def _hoist_declaration(self, statement, rest: list) -> list[Token]:
        """Split ``T a = .., b = <literal>;`` so ``a`` is declared before the temporary.

        Each declarator holding a literal starts a new declaration inside a new
        scope, repeating the specifiers of the original declaration.
        """
        declarators = statement.children_by_field_name("declarator")
        head = [c for c in statement.children if c.end_byte <= declarators[0].start_byte]
        tail = [c for c in statement.children if c.start_byte >= declarators[-1].end_byte]
        sites = self._sites_by_statement[statement.id]

        segments: list[tuple[list[RewriteSite], list]] = []
        for declarator in declarators:
            owned = [site for site in sites if _contains(declarator, site.node)]
            if owned or not segments:
                segments.append((owned, [declarator]))
            else:
                segments[-1][1].append(declarator)
        # Literals in the specifiers are hoisted ahead of every declarator.
        stray = [
            site for site in sites if not any(_contains(d, site.node) for d in declarators)
        ]
        if stray:
            segments[0] = (stray + segments[0][0], segments[0][1])

        out: list[Token] = []
        opened = 0
        for n, (owned, group) in enumerate(segments):
            if owned:
                anchor = self._stream.extent(statement if n == 0 else group[0])[0]
                out.extend(self._open_scopes(owned, anchor))
                opened += len(owned)
            specifiers = [tok for child in head for tok in self._emit(child)]
            out.extend([tok.moved() for tok in specifiers] if n else specifiers)
            for m, declarator in enumerate(group):
                if m:
                    out.extend(self._emit(declarator.prev_sibling))
                out.extend(self._emit(declarator))
            if n == len(segments) - 1:
                out.extend(tok for child in tail for tok in self._emit(child))
            else:
                out.append(Token.synthetic(";", TokenKind.PUNCTUATION))
        out.extend(self._emit_sequence(rest))
        out.extend(_closing(opened))
        return out

    def _open_scopes(self, sites: list[RewriteSite], anchor: Token) -> list[Token]:
        out: list[Token] = []
        for site in sites:
            name = self._namer.fresh()
            self._temps[site.node_id] = name
            logger.debug("Hoisting %s into %s", site, name)
            out.append(Token.synthetic("{", TokenKind.PUNCTUATION, anchor=anchor))
            out.extend(self._declaration(site, name))
        return out

    def _declaration(self, site: RewriteSite, name: str) -> list[Token]:
        """``<Type> <name> = <initializer>;`` with the name placed in the declarator."""
        descriptor = site.type_descriptor
        declarator = descriptor.child_by_field_name("declarator")
        out: list[Token] = []
        for child in descriptor.children:
            if _same(child, declarator):
                out.extend(self._abstract_declarator(child, name))
            else:
                out.extend(self._emit(child))
        if declarator is None:
            out.append(Token.synthetic(name, TokenKind.IDENTIFIER))
        out.append(Token.synthetic("=", TokenKind.PUNCTUATION))
        out.extend(self._emit(site.initializer))
        out.append(Token.synthetic(";", TokenKind.PUNCTUATION))
        return [tok.moved() for tok in out]

    def _abstract_declarator(self, node, name: str) -> list[Token]:
        inner = node.child_by_field_name("declarator")
        if inner is None and node.type == "abstract_parenthesized_declarator":
            inner = next(iter(node.named_children), None)
        name_tok = Token.synthetic(name, TokenKind.IDENTIFIER)
        is_pointer = node.type == "abstract_pointer_declarator"

        out: list[Token] = []
        if inner is None and not is_pointer:
            out.append(name_tok)
        for child in node.children:
            if _same(child, inner):
                out.extend(self._abstract_declarator(child, name))
            else:
                out.extend(self._emit(child))
        if inner is None and is_pointer:
            out.append(name_tok)
        return out


def rewrite_tokens(tree, stream: TokenStream, sites: list[RewriteSite], config: RewriteConfig) -> list[Token]:
    namer = TempNamer(config.temp_prefix, stream.identifiers())
    return HoistingRewriter(stream, sites, namer).rewrite(tree.root_node)
