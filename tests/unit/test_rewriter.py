"""Tests for compound-literal hoisting: output text, scoping and naming."""

from __future__ import annotations

import pytest

from c89hoist.api import rewrite_source
from c89hoist.config import RewriteConfig
from c89hoist.errors import UnsupportedConstruct
from c89hoist.rewriter import TempNamer

POINT = "typedef struct { int x; int y; } Point;\n"
NESTED = (
    "typedef struct { int v; } Inner;\n"
    "typedef struct { Inner in; int n; } Outer;\n"
)


class TestTempNamer:
    def test_counter_names(self):
        namer = TempNamer("cl_tmp")
        assert [namer.fresh(), namer.fresh(), namer.fresh()] == ["cl_tmp0", "cl_tmp1", "cl_tmp2"]

    def test_skips_taken_names(self):
        namer = TempNamer("t", taken={"t0", "t2"})
        assert [namer.fresh(), namer.fresh(), namer.fresh()] == ["t1", "t3", "t4"]


class TestHoisting:
    def test_assignment_hoisted_into_new_scope(self):
        source = POINT + (
            "void f(void) {\n"
            "    Point p;\n"
            "    p = (Point){1, 2};\n"
            "    g(p);\n"
            "}\n"
        )
        assert rewrite_source(source) == POINT + (
            "void f(void) {\n"
            "    Point p;\n"
            "    { Point cl_tmp0 = {1, 2};\n"
            "    p = cl_tmp0;\n"
            "    g(p); }\n"
            "}\n"
        )

    def test_source_without_literals_is_unchanged(self):
        source = POINT + "int main(void)\n{\n\tPoint p;\n\tp.x = 1;  /* keep */\n\treturn p.x;\n}\n"
        assert rewrite_source(source) == source

    def test_following_declarations_stay_at_block_start(self):
        source = POINT + (
            "void f(void) {\n"
            "    Point p = (Point){1, 2};\n"
            "    int n = p.x;\n"
            "    g(n);\n"
            "}\n"
        )
        out = rewrite_source(source)
        assert (
            "    { Point cl_tmp0 = {1, 2};\n"
            "    Point p = cl_tmp0;\n"
            "    int n = p.x;\n"
            "    g(n); }\n"
            "}\n"
        ) in out

    def test_earlier_declarators_stay_before_temporary(self):
        source = (
            "int f(void) {\n"
            "    int a = 1, b = ((int[1]){a})[0];\n"
            "    return g(b);\n"
            "}\n"
        )
        out = rewrite_source(source)
        assert out == (
            "int f(void) {\n"
            "    int a = 1; { int cl_tmp0[1] = {a}; int b = (cl_tmp0)[0];\n"
            "    return g(b); }\n"
            "}\n"
        )
        assert out.index("int a = 1") < out.index("cl_tmp0[1] = {a}")

    def test_each_declarator_with_literal_opens_scope(self):
        source = (
            "int f(void) {\n"
            "    int a = 1, b = ((int[1]){a})[0], c = ((int[1]){b})[0];\n"
            "    return g(c);\n"
            "}\n"
        )
        out = rewrite_source(source)
        assert (
            "    int a = 1; { int cl_tmp0[1] = {a}; int b = (cl_tmp0)[0];"
            " { int cl_tmp1[1] = {b}; int c = (cl_tmp1)[0];\n"
            "    return g(c); } }\n"
        ) in out

    def test_later_declarators_share_temporary_scope(self):
        source = "int f(void) {\n    int b = ((int[1]){3})[0], c = b;\n    return c;\n}\n"
        out = rewrite_source(source)
        assert "    { int cl_tmp0[1] = {3};\n    int b = (cl_tmp0)[0], c = b;\n" in out

    def test_multiline_literal_keeps_semicolon_on_statement_line(self):
        source = POINT + (
            "void f(void) {\n"
            "    Point p;\n"
            "    p = (Point){\n"
            "        1, 2\n"
            "    };\n"
            "    g(p);\n"
            "}\n"
        )
        assert rewrite_source(source) == POINT + (
            "void f(void) {\n"
            "    Point p;\n"
            "    { Point cl_tmp0 = {\n"
            "        1, 2\n"
            "    };\n"
            "    p = cl_tmp0;\n"
            "    g(p); }\n"
            "}\n"
        )

    def test_nested_literals_hoisted_inner_first(self):
        source = NESTED + (
            "void f(void) {\n"
            "    Outer o;\n"
            "    o = (Outer){ .in = (Inner){1}, 2 };\n"
            "}\n"
        )
        assert rewrite_source(source) == NESTED + (
            "void f(void) {\n"
            "    Outer o;\n"
            "    { Inner cl_tmp0 = {1};\n"
            "    { Outer cl_tmp1 = { .in = cl_tmp0, 2 };\n"
            "    o = cl_tmp1; } }\n"
            "}\n"
        )

    def test_two_literals_in_one_statement(self):
        source = POINT + "void f(void) {\n    g((Point){1, 2}, (Point){3, 4});\n}\n"
        out = rewrite_source(source)
        assert (
            "    { Point cl_tmp0 = {1, 2};\n"
            "    { Point cl_tmp1 = {3, 4};\n"
            "    g(cl_tmp0, cl_tmp1); } }\n"
        ) in out

    def test_return_operand(self):
        source = POINT + "Point make(void) {\n    return (Point){0, 0};\n}\n"
        out = rewrite_source(source)
        assert "    { Point cl_tmp0 = {0, 0};\n    return cl_tmp0; }\n}\n" in out

    def test_braces_balance(self):
        source = NESTED + (
            "void f(int c) {\n"
            "    Outer o;\n"
            "    if (c) {\n"
            "        o = (Outer){ (Inner){1}, 2 };\n"
            "        g(o);\n"
            "    }\n"
            "    g((Inner){3});\n"
            "}\n"
        )
        out = rewrite_source(source)
        assert out.count("{") == out.count("}")
        assert out.count("{") == source.count("{") + 3


class TestDeclarators:
    def test_array_type_places_name_before_suffix(self):
        source = "int f(void) {\n    int v = ((int[2]){1, 2})[1];\n    return v;\n}\n"
        out = rewrite_source(source)
        assert "{ int cl_tmp0[2] = {1, 2};\n" in out
        assert "    int v = (cl_tmp0)[1];\n" in out

    def test_pointer_type_places_name_after_star(self):
        source = "void f(int a) {\n    int *p;\n    p = (int *){&a};\n}\n"
        assert "{ int * cl_tmp0 = {&a};\n" in rewrite_source(source)

    def test_array_of_pointers(self):
        source = "void f(int a) {\n    int **q;\n    q = (int *[2]){&a, &a};\n}\n"
        assert "{ int * cl_tmp0[2] = {&a, &a};\n" in rewrite_source(source)

    def test_pointer_to_array_keeps_parentheses(self):
        source = "void f(void) {\n    int arr[3];\n    int (*p)[3];\n    p = (int (*)[3]){&arr};\n}\n"
        assert "{ int (* cl_tmp0)[3] = {&arr};\n" in rewrite_source(source)


class TestStatementPositions:
    def test_unbraced_if_body_wrapped_alone(self):
        source = POINT + (
            "void f(int c) {\n"
            "    Point x;\n"
            "    if (c)\n"
            "        x = (Point){1, 2};\n"
            "    x.x = 0;\n"
            "}\n"
        )
        assert rewrite_source(source) == POINT + (
            "void f(int c) {\n"
            "    Point x;\n"
            "    if (c)\n"
            "        { Point cl_tmp0 = {1, 2};\n"
            "        x = cl_tmp0; }\n"
            "    x.x = 0;\n"
            "}\n"
        )

    def test_case_body_renested(self):
        source = POINT + (
            "void f(int c) {\n"
            "    Point p;\n"
            "    switch (c) {\n"
            "    case 1:\n"
            "        p = (Point){1, 2};\n"
            "        g(p);\n"
            "        break;\n"
            "    default:\n"
            "        break;\n"
            "    }\n"
            "}\n"
        )
        out = rewrite_source(source)
        assert (
            "    case 1:\n"
            "        { Point cl_tmp0 = {1, 2};\n"
            "        p = cl_tmp0;\n"
            "        g(p);\n"
            "        break; }\n"
            "    default:\n"
        ) in out

    def test_loop_header_literal_hoisted_before_loop(self):
        source = "void f(void) {\n    int i;\n    for (i = 0; i < ((int[2]){1, 2})[1]; i++)\n        g(i);\n}\n"
        out = rewrite_source(source)
        assert "    { int cl_tmp0[2] = {1, 2};\n    for (i = 0; i < (cl_tmp0)[1]; i++)\n" in out


class TestNaming:
    def test_existing_identifier_not_reused(self):
        source = POINT + "void f(void) {\n    int cl_tmp0 = 0;\n    g((Point){1, 2}, cl_tmp0);\n}\n"
        assert "{ Point cl_tmp1 = {1, 2};" in rewrite_source(source)

    def test_configured_prefix(self):
        source = POINT + "void f(void) {\n    g((Point){1, 2});\n}\n"
        out = rewrite_source(source, RewriteConfig(temp_prefix="lit"))
        assert "{ Point lit0 = {1, 2};" in out
        assert "g(lit0);" in out


class TestFailures:
    def test_file_scope_literal(self):
        with pytest.raises(UnsupportedConstruct):
            rewrite_source(POINT + "Point origin = (Point){0, 0};\n")
