"""Literal-Site Classifier: finds compound literals and the role each one plays."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .config import RewriteConfig
from .errors import LookupFailure, UnsupportedConstruct
from .symbols import (
    EnumDeclaration,
    StructDeclaration,
    SymbolTable,
    TypedefDeclaration,
)
from .tokens import Token, TokenStream
from . import constants

logger = logging.getLogger(__name__)


class SiteRole(str, Enum):
    VALUE_ASSIGNMENT = "value_assignment"
    CALL_ARGUMENT = "call_argument"
    RETURN_OPERAND = "return_operand"
    INDEXED_BASE = "indexed_base"
    DESIGNATED_VALUE = "designated_value"
    NESTED_LITERAL = "nested_literal"
    OPERAND = "operand"


class TypeKind(str, Enum):
    STRUCT = "struct"
    UNION = "union"
    ENUM = "enum"
    TYPEDEF = "typedef"
    SCALAR = "scalar"
    EXTERN = "extern"  # declared by a header that is never parsed


@dataclass
class LiteralType:
    kind: TypeKind
    spelling: str
    pointer_depth: int = 0
    array_extent: int = 0
    is_array: bool = False
    struct_decl: Optional[StructDeclaration] = None
    enum_decl: Optional[EnumDeclaration] = None
    typedef_decl: Optional[TypedefDeclaration] = None

    def is_struct_value(self) -> bool:
        if self.pointer_depth or self.is_array:
            return False
        if self.kind in (TypeKind.STRUCT, TypeKind.UNION, TypeKind.EXTERN):
            return True
        if self.kind == TypeKind.TYPEDEF:
            td = self.typedef_decl
            if td.pointer_depth or td.is_array:
                return False
            if td.struct_decl is not None:
                return True
            return td.proxy is not None and "*" not in td.proxy
        return False

    def is_indexable(self) -> bool:
        if self.pointer_depth or self.is_array or self.kind == TypeKind.EXTERN:
            return True
        if self.kind == TypeKind.TYPEDEF:
            td = self.typedef_decl
            return bool(td.pointer_depth or td.is_array or (td.proxy and "*" in td.proxy))
        return False


@dataclass
class RewriteSite:
    node: Any
    role: SiteRole
    type: LiteralType
    statement: Any
    type_descriptor: Any
    initializer: Any
    initializer_tokens: list[Token] = field(default_factory=list)
    enclosing_literal: Any = None

    @property
    def node_id(self) -> int:
        return self.node.id

    @property
    def is_nested(self) -> bool:
        return self.enclosing_literal is not None

    def __str__(self) -> str:
        row, col = self.node.start_point
        return f"({self.type.spelling}) at {row + 1}:{col + 1} [{self.role.value}]"


def _same(a, b) -> bool:
    return a is not None and b is not None and a.id == b.id


def _location(node) -> str:
    row, col = node.start_point
    return f"{row + 1}:{col + 1}"


def _inside_function(node) -> bool:
    parent = node.parent
    while parent is not None:
        if parent.type == "compound_statement":
            return True
        if parent.type in constants.SCOPE_BOUNDARY_TYPES:
            return False
        parent = parent.parent
    return False


def in_statement_position(child, parent) -> bool:
    """True when *child* occupies a full-statement slot of *parent*."""
    if child.type not in constants.STATEMENT_TYPES:
        return False
    if parent.type in constants.BLOCK_CONTAINER_TYPES:
        return True
    if parent.type in constants.STATEMENT_WRAPPER_TYPES:
        return True
    return any(
        _same(parent.child_by_field_name(name), child)
        for name in constants.STATEMENT_BODY_FIELDS
    )


class LiteralClassifier:
    """Collects a RewriteSite for every compound literal of a translation unit."""

    def __init__(self, symbols: SymbolTable, stream: TokenStream, config: RewriteConfig):
        self._symbols = symbols
        self._stream = stream
        self._config = config

    def classify(self, root) -> list[RewriteSite]:
        """Return sites in hoisting order: inner literals first, then left to right."""
        sites: list[RewriteSite] = []
        self._walk(root, None, sites)
        logger.info("Found %d compound literals", len(sites))
        return sites

    def _walk(self, node, outer, sites: list[RewriteSite]):
        is_literal = node.type == constants.COMPOUND_LITERAL
        for child in node.children:
            self._walk(child, node if is_literal else outer, sites)
        if is_literal:
            site = self._site(node, outer)
            logger.debug("Compound literal: %s", site)
            sites.append(site)

    def _site(self, node, outer) -> RewriteSite:
        descriptor = node.child_by_field_name("type")
        initializer = node.child_by_field_name("value")
        if descriptor is None or initializer is None:
            raise UnsupportedConstruct(f"Malformed compound literal at {_location(node)}")
        literal_type = self.resolve_type(descriptor)
        role, parent = self._role(node, outer)
        if role == SiteRole.INDEXED_BASE:
            self._check_addressable(node, parent, literal_type)
        return RewriteSite(
            node=node,
            role=role,
            type=literal_type,
            statement=self._statement(node),
            type_descriptor=descriptor,
            initializer=initializer,
            initializer_tokens=self._stream.extent(initializer),
            enclosing_literal=outer,
        )

    # ── role ─────────────────────────────────────────────────────

    def _role(self, node, outer) -> tuple[SiteRole, Any]:
        child, parent = node, node.parent
        while parent is not None and parent.type == constants.PAREN_EXPR:
            child, parent = parent, parent.parent
        ptype = parent.type
        if ptype == "init_declarator" and _same(parent.child_by_field_name("value"), child):
            return SiteRole.VALUE_ASSIGNMENT, parent
        if ptype == "assignment_expression" and _same(parent.child_by_field_name("right"), child):
            return SiteRole.VALUE_ASSIGNMENT, parent
        if ptype == "argument_list":
            return SiteRole.CALL_ARGUMENT, parent
        if ptype == "return_statement":
            return SiteRole.RETURN_OPERAND, parent
        if ptype in ("subscript_expression", "field_expression") and _same(
            parent.child_by_field_name("argument"), child
        ):
            return SiteRole.INDEXED_BASE, parent
        if ptype == constants.INITIALIZER_PAIR:
            return SiteRole.DESIGNATED_VALUE, parent
        if ptype == constants.INITIALIZER_LIST:
            if outer is not None:
                return SiteRole.NESTED_LITERAL, parent
            return SiteRole.VALUE_ASSIGNMENT, parent
        return SiteRole.OPERAND, parent

    def _check_addressable(self, node, parent, literal_type: LiteralType):
        if parent.type == "field_expression":
            op = parent.child_by_field_name("operator").type
            ok = literal_type.is_struct_value() if op == "." else literal_type.is_indexable()
            access = op
        else:
            ok = literal_type.is_indexable()
            access = "[]"
        if not ok:
            raise UnsupportedConstruct(
                f"Compound literal of type {literal_type.spelling} at {_location(node)} "
                f"cannot be the base of '{access}'"
            )

    # ── enclosing statement ──────────────────────────────────────

    def _statement(self, node):
        if not _inside_function(node):
            raise UnsupportedConstruct(
                f"Compound literal at {_location(node)} is at file scope"
            )
        child, parent = node, node.parent
        while parent is not None and parent.type not in constants.SCOPE_BOUNDARY_TYPES:
            if in_statement_position(child, parent):
                return child
            child, parent = parent, parent.parent
        raise UnsupportedConstruct(
            f"Compound literal at {_location(node)} has no enclosing statement"
        )

    # ── type ─────────────────────────────────────────────────────

    def resolve_type(self, descriptor) -> LiteralType:
        type_node = descriptor.child_by_field_name("type")
        declarator = descriptor.child_by_field_name("declarator")
        pointer_depth, array_extent, is_array = (
            self._symbols.declarator_shape(declarator) if declarator is not None else (0, 0, False)
        )
        spelling = TokenStream.concat(self._stream.extent(descriptor))
        shape = dict(
            spelling=spelling,
            pointer_depth=pointer_depth,
            array_extent=array_extent,
            is_array=is_array,
        )
        ttype = type_node.type

        if ttype in constants.SCALAR_TYPE_NODES:
            # Newer C grammars spell <stdint.h> typedefs as primitive types.
            if type_node.text.decode("utf-8") in self._config.extern_types:
                return LiteralType(kind=TypeKind.EXTERN, **shape)
            return LiteralType(kind=TypeKind.SCALAR, **shape)

        if ttype == "type_identifier":
            name = type_node.text.decode("utf-8")
            typedef = self._symbols.resolve_typedef(name)
            if typedef is not None:
                return LiteralType(kind=TypeKind.TYPEDEF, typedef_decl=typedef, **shape)
            return self._extern(name, descriptor, shape)

        if ttype in (constants.STRUCT_SPECIFIER, constants.UNION_SPECIFIER):
            name_node = type_node.child_by_field_name("name")
            name = name_node.text.decode("utf-8") if name_node is not None else ""
            decl = self._symbols.struct_for_node(type_node.id) or (
                self._symbols.find_struct(name) if name else None
            )
            if decl is None:
                keyword = "union" if ttype == constants.UNION_SPECIFIER else "struct"
                return self._extern(f"{keyword} {name}", descriptor, shape)
            kind = TypeKind.UNION if decl.is_union else TypeKind.STRUCT
            return LiteralType(kind=kind, struct_decl=decl, **shape)

        if ttype == constants.ENUM_SPECIFIER:
            name_node = type_node.child_by_field_name("name")
            name = name_node.text.decode("utf-8") if name_node is not None else ""
            decl = self._symbols.enum_for_node(type_node.id) or (
                self._symbols.find_enum(name) if name else None
            )
            if decl is None:
                return self._extern(f"enum {name}", descriptor, shape)
            return LiteralType(kind=TypeKind.ENUM, enum_decl=decl, **shape)

        raise UnsupportedConstruct(
            f"Unsupported compound literal type {spelling} at {_location(descriptor)}"
        )

    def _extern(self, name: str, descriptor, shape: dict) -> LiteralType:
        if name in self._config.extern_types:
            return LiteralType(kind=TypeKind.EXTERN, **shape)
        raise LookupFailure(
            f"Unknown type {name} in compound literal at {_location(descriptor)}"
        )


def classify(tree, symbols: SymbolTable, stream: TokenStream, config: RewriteConfig) -> list[RewriteSite]:
    return LiteralClassifier(symbols, stream, config).classify(tree.root_node)
