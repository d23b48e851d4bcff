"""Symbol Table: struct, union, enum and typedef registries of one translation unit."""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from .errors import LookupFailure, ResourceExhausted, UnsupportedConstruct
from .evaluator import ConstantEvaluator, parse_int_literal
from .tokens import Token, TokenStream
from . import constants

logger = logging.getLogger(__name__)

_INT_LITERAL_RE = re.compile(r"^(0[xX][0-9a-fA-F]+|0[bB][01]+|\d+)[uUlL]*$")

_NAME_NODE_TYPES = frozenset({"identifier", "type_identifier", "field_identifier"})


# ── declarations ─────────────────────────────────────────────────


@dataclass
class StructMember:
    name: str
    type: str
    pointer_depth: int = 0
    array_extent: int = 0  # 0 if not an array
    node_id: int = 0


@dataclass
class StructDeclaration:
    name: str  # "" for anonymous
    node_id: int
    members: list[StructMember] = field(default_factory=list)
    is_union: bool = False
    complete: bool = True

    @property
    def label(self) -> str:
        keyword = "union" if self.is_union else "struct"
        return f"{keyword} {self.name}" if self.name else f"<anonymous> {keyword}"


@dataclass
class EnumMember:
    name: str
    value: int
    node_id: int = 0


@dataclass
class EnumDeclaration:
    name: str  # "" for anonymous
    node_id: int
    members: list[EnumMember] = field(default_factory=list)
    complete: bool = True

    @property
    def label(self) -> str:
        return f"enum {self.name}" if self.name else "<anonymous> enum"


Declaration = Union[StructDeclaration, EnumDeclaration]


@dataclass
class TypedefDeclaration:
    """A typedef aliasing exactly one of: a struct, an enum, or proxy type text."""

    name: str
    node_id: int
    struct_decl: Optional[StructDeclaration] = None
    enum_decl: Optional[EnumDeclaration] = None
    proxy: Optional[str] = None
    pointer_depth: int = 0
    array_extent: int = 0
    is_array: bool = False

    def __post_init__(self):
        targets = [t for t in (self.struct_decl, self.enum_decl, self.proxy) if t is not None]
        if len(targets) != 1:
            raise ValueError(f"typedef {self.name} must alias exactly one target")

    @property
    def target_label(self) -> str:
        if self.struct_decl is not None:
            return self.struct_decl.label
        if self.enum_decl is not None:
            return self.enum_decl.label
        return self.proxy


# ── helpers ──────────────────────────────────────────────────────


def _text(node) -> str:
    return node.text.decode("utf-8")


def declarator_name(declarator):
    """Return the identifier node a (possibly nested) declarator declares."""
    node = declarator
    while node is not None:
        if node.type in _NAME_NODE_TYPES:
            return node
        inner = node.child_by_field_name("declarator")
        if inner is None:
            inner = next(iter(node.named_children), None)
        node = inner
    return None


def find_token_index(tokens: list[Token], leaf) -> int:
    """Index of the token produced for *leaf* within *tokens*."""
    for n, tok in enumerate(tokens):
        if tok.offset == leaf.start_byte:
            return n
    raise LookupFailure(f"Could not find token {_text(leaf)} in set")


def _strip_array_suffix(tokens: list[Token]) -> list[Token]:
    """Drop trailing ``[ ... ]`` groups."""
    end = len(tokens)
    while end and tokens[end - 1].text == "]":
        depth = 0
        for n in range(end - 1, -1, -1):
            if tokens[n].text == "]":
                depth += 1
            elif tokens[n].text == "[":
                depth -= 1
                if depth == 0:
                    end = n
                    break
        else:
            break
    return tokens[:end]


# ── registry ─────────────────────────────────────────────────────


class SymbolTable:
    """Registries owned by one rewrite run; append-only, first registration wins."""

    def __init__(self, stream: TokenStream):
        self._stream = stream
        self.structs: list[StructDeclaration] = []
        self.enums: list[EnumDeclaration] = []
        self.typedefs: dict[str, TypedefDeclaration] = {}
        self.macros: dict[str, int] = {}
        self._structs_by_name: dict[str, StructDeclaration] = {}
        self._structs_by_node: dict[int, StructDeclaration] = {}
        self._enums_by_name: dict[str, EnumDeclaration] = {}
        self._enums_by_node: dict[int, EnumDeclaration] = {}
        self._enum_constants: dict[str, EnumMember] = {}

    @contextmanager
    def _growing(self, what: str):
        try:
            yield
        except MemoryError:
            raise ResourceExhausted(f"Out of memory while registering {what}") from None

    # ── lookups ──────────────────────────────────────────────────

    def find_struct(self, name: str) -> Optional[StructDeclaration]:
        return self._structs_by_name.get(name)

    def find_enum(self, name: str) -> Optional[EnumDeclaration]:
        return self._enums_by_name.get(name)

    def find_typedef(self, name: str) -> Optional[TypedefDeclaration]:
        return self.typedefs.get(name)

    def struct_for_node(self, node_id: int) -> Optional[StructDeclaration]:
        return self._structs_by_node.get(node_id)

    def enum_for_node(self, node_id: int) -> Optional[EnumDeclaration]:
        return self._enums_by_node.get(node_id)

    def find_enum_value(self, name: str) -> int:
        member = self._enum_constants.get(name)
        if member is None:
            raise LookupFailure(f"Unknown enum value {name}")
        return member.value

    def lookup_constant(self, name: str) -> Optional[int]:
        """Enum constant value, else numeric macro value, else None."""
        member = self._enum_constants.get(name)
        if member is not None:
            return member.value
        return self.macros.get(name)

    def resolve_typedef(self, name: str) -> Optional[TypedefDeclaration]:
        """Follow typedefs whose proxy is just another typedef name."""
        seen: set[str] = set()
        decl = self.typedefs.get(name)
        while decl is not None and decl.proxy in self.typedefs and decl.proxy not in seen:
            seen.add(decl.proxy)
            decl = self.typedefs[decl.proxy]
        return decl

    def array_extent(self, size_tokens: list[Token]) -> int:
        """Extent of an array suffix given the tokens between its brackets."""
        if len(size_tokens) != 1:
            if size_tokens:
                logger.debug("Unresolved array extent %s", TokenStream.concat(size_tokens))
            return 0
        text = size_tokens[0].text
        if _INT_LITERAL_RE.match(text):
            return parse_int_literal(text)
        value = self.lookup_constant(text)
        if value is None:
            logger.debug("Unresolved array extent %s", text)
            return 0
        return value

    # ── structs ──────────────────────────────────────────────────

    def register_struct(self, name: str, node, is_union: bool = False) -> StructDeclaration:
        body = node.child_by_field_name("body")
        existing = (
            self._structs_by_name.get(name) if name else self._structs_by_node.get(node.id)
        )
        if existing is not None:
            if existing.node_id != node.id and not existing.complete and body is not None:
                logger.debug("Completing forward-declared %s", existing.label)
                existing.complete = True
                self._structs_by_node[node.id] = existing
                self._fill_struct_members(existing, body)
            return existing

        decl = StructDeclaration(
            name=name, node_id=node.id, is_union=is_union, complete=body is not None
        )
        with self._growing(decl.label):
            self.structs.append(decl)
            self._structs_by_node[node.id] = decl
            if name:
                self._structs_by_name[name] = decl
        logger.debug("Registered %s", decl.label)
        if body is not None:
            self._fill_struct_members(decl, body)
        return decl

    def _fill_struct_members(self, decl: StructDeclaration, body):
        for field_node in body.children:
            if field_node.type != "field_declaration":
                continue
            tokens = self._stream.extent(field_node)
            for declarator in field_node.children_by_field_name("declarator"):
                name_node = declarator_name(declarator)
                if name_node is None:
                    raise UnsupportedConstruct(
                        f"Unresolvable field declarator {_text(declarator)} in {decl.label}"
                    )
                member = self._struct_member(decl, tokens, name_node)
                with self._growing(f"field {member.name} in {decl.label}"):
                    decl.members.append(member)

    def _struct_member(self, decl: StructDeclaration, tokens: list[Token], name_node) -> StructMember:
        name = _text(name_node)
        idx = find_token_index(tokens, name_node)

        pointer_depth = 0
        while idx - 1 - pointer_depth >= 0 and tokens[idx - 1 - pointer_depth].text == "*":
            pointer_depth += 1

        array_extent = 0
        if idx + 1 < len(tokens) and tokens[idx + 1].text == "[":
            close = next(
                (n for n in range(idx + 2, len(tokens)) if tokens[n].text == "]"),
                len(tokens),
            )
            array_extent = self.array_extent(tokens[idx + 2 : close])

        last = idx - 1 - pointer_depth
        if last < 0:
            raise UnsupportedConstruct(f"Field {name} in {decl.label} has no type")
        if tokens[last].text == ",":
            if not decl.members:
                raise UnsupportedConstruct(f"Field {name} in {decl.label} has no type")
            base_type = decl.members[-1].type
        else:
            base_type = TokenStream.concat(tokens[: last + 1])

        return StructMember(
            name=name,
            type=base_type,
            pointer_depth=pointer_depth,
            array_extent=array_extent,
            node_id=name_node.id,
        )

    # ── enums ────────────────────────────────────────────────────

    def register_enum(self, name: str, node) -> EnumDeclaration:
        body = node.child_by_field_name("body")
        existing = (
            self._enums_by_name.get(name) if name else self._enums_by_node.get(node.id)
        )
        if existing is not None:
            if existing.node_id != node.id and not existing.complete and body is not None:
                logger.debug("Completing forward-declared %s", existing.label)
                existing.complete = True
                self._enums_by_node[node.id] = existing
                self._fill_enum_members(existing, body)
            return existing

        decl = EnumDeclaration(name=name, node_id=node.id, complete=body is not None)
        with self._growing(decl.label):
            self.enums.append(decl)
            self._enums_by_node[node.id] = decl
            if name:
                self._enums_by_name[name] = decl
        logger.debug("Registered %s", decl.label)
        if body is not None:
            self._fill_enum_members(decl, body)
        return decl

    def _fill_enum_members(self, decl: EnumDeclaration, body):
        evaluator = ConstantEvaluator(self, owner=decl.label)
        for enumerator in body.children:
            if enumerator.type != "enumerator":
                continue
            name = _text(enumerator.child_by_field_name("name"))
            value_node = enumerator.child_by_field_name("value")
            value = evaluator.evaluate(value_node) if value_node is not None else None
            if value is None:
                value = decl.members[-1].value + 1 if decl.members else 0
            member = EnumMember(name=name, value=value, node_id=enumerator.id)
            with self._growing(f"enumerator {name} in {decl.label}"):
                decl.members.append(member)
                self._enum_constants.setdefault(name, member)

    # ── typedefs ─────────────────────────────────────────────────

    def register_typedef(
        self,
        name: str,
        tokens: list[Token],
        node,
        target: Optional[Declaration] = None,
        declarator=None,
    ) -> TypedefDeclaration:
        existing = self.typedefs.get(name)
        if existing is not None:
            logger.debug("typedef %s already registered", name)
            return existing

        declarator = declarator if declarator is not None else node.child_by_field_name("declarator")
        pointer_depth, array_extent, is_array = self.declarator_shape(declarator)
        decl = TypedefDeclaration(
            name=name,
            node_id=node.id,
            struct_decl=target if isinstance(target, StructDeclaration) else None,
            enum_decl=target if isinstance(target, EnumDeclaration) else None,
            proxy=None if target is not None else self._proxy_text(tokens, node, declarator),
            pointer_depth=pointer_depth,
            array_extent=array_extent,
            is_array=is_array,
        )
        with self._growing(f"typedef {name}"):
            self.typedefs[name] = decl
        logger.debug("Registered typedef %s (%s)", name, decl.target_label)
        return decl

    def _proxy_text(self, tokens: list[Token], node, declarator) -> str:
        start = next(
            (n + 1 for n, tok in enumerate(tokens) if tok.text == "typedef"), None
        )
        if start is None:
            raise LookupFailure("Could not find token typedef in set")
        first = node.child_by_field_name("declarator")
        type_tokens = [
            tok for tok in tokens[start:] if tok.offset < first.start_byte
        ]
        name_node = declarator_name(declarator)
        declarator_tokens = [
            tok
            for tok in _strip_array_suffix(self._stream.extent(declarator))
            if name_node is None or tok.offset != name_node.start_byte
        ]
        return TokenStream.concat(type_tokens + declarator_tokens)

    def declarator_shape(self, declarator) -> tuple[int, int, bool]:
        """(pointer depth, first array extent, is array) of a declarator chain."""
        pointer_depth, array_extent, is_array = 0, 0, False
        node = declarator
        while node is not None and node.type not in _NAME_NODE_TYPES:
            if node.type in ("pointer_declarator", "abstract_pointer_declarator"):
                pointer_depth += 1
            elif node.type in ("array_declarator", "abstract_array_declarator"):
                is_array = True
                size = node.child_by_field_name("size")
                array_extent = self.array_extent(self._stream.extent(size)) if size else 0
            inner = node.child_by_field_name("declarator")
            if inner is None and node.type.endswith("parenthesized_declarator"):
                inner = next(iter(node.named_children), None)
            node = inner
        return pointer_depth, array_extent, is_array

    # ── macros ───────────────────────────────────────────────────

    def register_macro(self, name: str, text: str) -> bool:
        """Record an object-like macro whose body is an integer literal."""
        body = text.strip()
        while body.startswith("(") and body.endswith(")"):
            body = body[1:-1].strip()
        if not _INT_LITERAL_RE.match(body):
            return False
        self.macros.setdefault(name, parse_int_literal(body))
        return True

    # ── debug listing ────────────────────────────────────────────

    def dump(self) -> str:
        lines = [f"N typedef entries: {len(self.typedefs)}"]
        for n, decl in enumerate(self.typedefs.values()):
            lines.append(f"[{n}]: {decl.name} ({decl.target_label})")
        lines.append(f"N struct entries: {len(self.structs)}")
        for n, decl in enumerate(self.structs):
            lines.append(f"[{n}]: {decl.label}")
            for m, member in enumerate(decl.members):
                lines.append(
                    f" [{m}]: {member.name} "
                    f"({member.type}/{member.pointer_depth}/{member.array_extent})"
                )
        lines.append(f"N enum entries: {len(self.enums)}")
        for n, decl in enumerate(self.enums):
            lines.append(f"[{n}]: {decl.label}")
            for m, member in enumerate(decl.members):
                lines.append(f" [{m}]: {member.name} = {member.value}")
        if self.macros:
            lines.append(f"N macro entries: {len(self.macros)}")
            for n, (name, value) in enumerate(self.macros.items()):
                lines.append(f"[{n}]: {name} = {value}")
        return "\n".join(lines)


# ── construction ─────────────────────────────────────────────────


def _is_forward_declaration(node) -> bool:
    sibling = node.next_sibling
    return sibling is not None and sibling.type == ";"


class _SymbolCollector:
    """Single top-to-bottom traversal registering every declaration it meets."""

    def __init__(self, symbols: SymbolTable, stream: TokenStream):
        self._symbols = symbols
        self._stream = stream
        self._DISPATCH: dict[str, Callable] = {
            constants.STRUCT_SPECIFIER: self._visit_specifier,
            constants.UNION_SPECIFIER: self._visit_specifier,
            constants.ENUM_SPECIFIER: self._visit_specifier,
            constants.TYPE_DEFINITION: self._visit_typedef,
            constants.PREPROC_DEF: self._visit_define,
        }

    def visit(self, node):
        handler = self._DISPATCH.get(node.type)
        if handler is not None:
            handler(node)
            return
        for child in node.children:
            self.visit(child)

    def _visit_specifier(self, node, declares: bool = False) -> Optional[Declaration]:
        name_node = node.child_by_field_name("name")
        name = _text(name_node) if name_node is not None else ""
        body = node.child_by_field_name("body")
        is_enum = node.type == constants.ENUM_SPECIFIER

        if body is None and not (declares or _is_forward_declaration(node)):
            return self._symbols.find_enum(name) if is_enum else self._symbols.find_struct(name)

        if is_enum:
            decl = self._symbols.register_enum(name, node)
        else:
            decl = self._symbols.register_struct(
                name, node, is_union=node.type == constants.UNION_SPECIFIER
            )
        if body is not None and not is_enum:
            for child in body.children:
                self.visit(child)
        return decl

    def _visit_typedef(self, node):
        type_node = node.child_by_field_name("type")
        target = None
        if type_node is not None and type_node.type in (
            constants.STRUCT_SPECIFIER,
            constants.UNION_SPECIFIER,
            constants.ENUM_SPECIFIER,
        ):
            target = self._visit_specifier(type_node, declares=True)
        tokens = self._stream.extent(node)
        for declarator in node.children_by_field_name("declarator"):
            name_node = declarator_name(declarator)
            if name_node is None:
                raise UnsupportedConstruct(f"Unresolvable typedef declarator {_text(declarator)}")
            self._symbols.register_typedef(
                _text(name_node), tokens, node, target=target, declarator=declarator
            )

    def _visit_define(self, node):
        name_node = node.child_by_field_name("name")
        value_node = node.child_by_field_name("value")
        if name_node is None or value_node is None:
            return
        if self._symbols.register_macro(_text(name_node), _text(value_node)):
            logger.debug("Registered macro %s", _text(name_node))


def build_symbol_table(tree, stream: TokenStream) -> SymbolTable:
    """Populate a fresh symbol table from one translation unit."""
    symbols = SymbolTable(stream)
    _SymbolCollector(symbols, stream).visit(tree.root_node)
    logger.info(
        "Symbol table: %d structs, %d enums, %d typedefs",
        len(symbols.structs),
        len(symbols.enums),
        len(symbols.typedefs),
    )
    return symbols
