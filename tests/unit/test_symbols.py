"""Tests for the symbol table: structs, unions, enums, typedefs and macros."""

from __future__ import annotations

import pytest
import tree_sitter_language_pack

from c89hoist.errors import LookupFailure
from c89hoist.symbols import SymbolTable, build_symbol_table
from c89hoist.tokens import tokenize


def _build(source: str) -> SymbolTable:
    parser = tree_sitter_language_pack.get_parser("c")
    source_bytes = source.encode("utf-8")
    tree = parser.parse(source_bytes)
    return build_symbol_table(tree, tokenize(tree, source_bytes))


def _descendants(node):
    yield node
    for child in node.children:
        yield from _descendants(child)


def _members(decl):
    return [(m.name, m.type, m.pointer_depth, m.array_extent) for m in decl.members]


class TestStructs:
    def test_named_struct_members(self):
        symbols = _build("struct Point { int x; int y; };")
        decl = symbols.find_struct("Point")
        assert decl is not None
        assert _members(decl) == [("x", "int", 0, 0), ("y", "int", 0, 0)]

    def test_pointer_array_member(self):
        symbols = _build("struct S { int *p[4]; };")
        assert _members(symbols.find_struct("S")) == [("p", "int", 1, 4)]

    def test_comma_declarators_share_type(self):
        symbols = _build("struct S { unsigned long a, b; };")
        assert _members(symbols.find_struct("S")) == [
            ("a", "unsigned long", 0, 0),
            ("b", "unsigned long", 0, 0),
        ]

    def test_comma_declarator_with_pointer(self):
        symbols = _build("struct S { char *a, **b; };")
        assert _members(symbols.find_struct("S")) == [("a", "char", 1, 0), ("b", "char", 2, 0)]

    def test_array_extent_from_enum_constant(self):
        symbols = _build("enum { SIZE = 8 };\nstruct S { int buf[SIZE]; };")
        assert _members(symbols.find_struct("S")) == [("buf", "int", 0, 8)]

    def test_array_extent_from_macro(self):
        symbols = _build("#define LEN 16\nstruct S { char name[LEN]; };")
        assert _members(symbols.find_struct("S")) == [("name", "char", 0, 16)]

    def test_unresolved_array_extent_is_zero(self):
        symbols = _build("struct S { char name[LEN + 1]; };")
        assert _members(symbols.find_struct("S")) == [("name", "char", 0, 0)]

    def test_union_registered_with_flag(self):
        symbols = _build("union U { int i; float f; };")
        decl = symbols.find_struct("U")
        assert decl.is_union
        assert decl.label == "union U"

    def test_duplicate_registration_returns_existing(self):
        symbols = _build("struct P { int x; };\nvoid f(struct P *p);\nstruct P *g(void);")
        assert len(symbols.structs) == 1
        assert len(symbols.find_struct("P").members) == 1

    def test_registration_is_idempotent(self):
        parser = tree_sitter_language_pack.get_parser("c")
        source = b"struct P { int x; };\nstruct P { int y; };"
        tree = parser.parse(source)
        symbols = SymbolTable(tokenize(tree, source))
        specifiers = [
            node for node in _descendants(tree.root_node) if node.type == "struct_specifier"
        ]
        first = symbols.register_struct("P", specifiers[0])
        second = symbols.register_struct("P", specifiers[1])
        assert specifiers[0].id != specifiers[1].id
        assert first is second
        assert len(symbols.structs) == 1
        assert [m.name for m in first.members] == ["x"]

    def test_anonymous_structs_are_distinct(self):
        symbols = _build(
            "typedef struct { int a; } A;\ntypedef struct { char b; } B;"
        )
        assert len(symbols.structs) == 2
        assert symbols.find_typedef("A").struct_decl is not symbols.find_typedef("B").struct_decl
        assert symbols.find_typedef("B").struct_decl.label == "<anonymous> struct"

    def test_nested_struct_definition_registered(self):
        symbols = _build("struct Outer { struct Inner { int v; } in; int n; };")
        assert _members(symbols.find_struct("Inner")) == [("v", "int", 0, 0)]
        assert [m.name for m in symbols.find_struct("Outer").members] == ["in", "n"]

    def test_forward_declaration_completed_in_place(self):
        symbols = _build(
            "typedef struct Node Node;\nstruct Node { int v; Node *next; };"
        )
        decl = symbols.find_struct("Node")
        assert decl.complete
        assert symbols.find_typedef("Node").struct_decl is decl
        assert _members(decl) == [("v", "int", 0, 0), ("next", "Node", 1, 0)]
        assert len(symbols.structs) == 1


class TestEnums:
    def test_default_sequencing(self):
        symbols = _build("enum Color { RED, GREEN, BLUE };")
        assert [(m.name, m.value) for m in symbols.find_enum("Color").members] == [
            ("RED", 0),
            ("GREEN", 1),
            ("BLUE", 2),
        ]

    def test_sequencing_continues_from_explicit_value(self):
        symbols = _build("enum E { A = 5, B, C };")
        assert [m.value for m in symbols.find_enum("E").members] == [5, 6, 7]

    def test_reference_to_earlier_constant(self):
        symbols = _build("enum E { A = 4, B = A * 2, C };")
        assert [m.value for m in symbols.find_enum("E").members] == [4, 8, 9]

    def test_reference_across_enums(self):
        symbols = _build("enum A { X = 3 };\nenum B { Y = X + 1 };")
        assert symbols.find_enum_value("Y") == 4

    def test_unknown_enum_value(self):
        symbols = _build("enum E { A };")
        with pytest.raises(LookupFailure, match="Unknown enum value NOPE"):
            symbols.find_enum_value("NOPE")

    def test_undefined_identifier_in_initializer(self):
        with pytest.raises(LookupFailure, match="MISSING"):
            _build("enum E { A = MISSING };")


class TestTypedefs:
    def test_typedef_of_struct_links_declaration(self):
        symbols = _build("typedef struct Point { int x; } Point;")
        td = symbols.find_typedef("Point")
        assert td.struct_decl is symbols.find_struct("Point")
        assert td.enum_decl is None and td.proxy is None

    def test_typedef_of_enum_links_declaration(self):
        symbols = _build("typedef enum { RED, GREEN } Color;")
        td = symbols.find_typedef("Color")
        assert [m.value for m in td.enum_decl.members] == [0, 1]

    def test_proxy_for_scalar(self):
        symbols = _build("typedef unsigned long ulong;")
        assert symbols.find_typedef("ulong").proxy == "unsigned long"

    def test_proxy_for_pointer(self):
        symbols = _build("typedef char *str;")
        td = symbols.find_typedef("str")
        assert td.proxy == "char *"
        assert td.pointer_depth == 1

    def test_proxy_for_array_strips_suffix(self):
        symbols = _build("typedef int vec3[3];")
        td = symbols.find_typedef("vec3")
        assert td.proxy == "int"
        assert (td.is_array, td.array_extent) == (True, 3)

    def test_resolve_typedef_chain(self):
        symbols = _build("typedef struct P { int x; } P;\ntypedef P Q;")
        assert symbols.resolve_typedef("Q").struct_decl is symbols.find_struct("P")

    def test_duplicate_typedef_keeps_first(self):
        symbols = _build("typedef int T;\ntypedef long T;")
        assert symbols.find_typedef("T").proxy == "int"


class TestMacros:
    def test_numeric_macros(self):
        symbols = _build("#define A 10\n#define B (0x20)\n#define C foo\n")
        assert symbols.macros == {"A": 10, "B": 32}

    def test_lookup_constant_prefers_enum(self):
        symbols = _build("#define N 1\nenum { N2 = 7 };\n")
        assert symbols.lookup_constant("N") == 1
        assert symbols.lookup_constant("N2") == 7
        assert symbols.lookup_constant("other") is None


class TestDump:
    def test_dump_lists_every_table(self):
        symbols = _build(
            "typedef struct P { int x; char *s; } P;\nenum E { A, B };\n"
        )
        lines = symbols.dump().splitlines()
        assert lines[0] == "N typedef entries: 1"
        assert "[0]: P (struct P)" in lines
        assert " [1]: s (char/1/0)" in lines
        assert " [1]: B = 1" in lines
