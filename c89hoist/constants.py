"""Named constants: eliminates magic strings across the codebase."""

from __future__ import annotations

LANGUAGE = "c"

TEMP_NAME_PREFIX = "cl_tmp"

# ── tree-sitter node types ───────────────────────────────────────

COMPOUND_LITERAL = "compound_literal_expression"
INITIALIZER_LIST = "initializer_list"
INITIALIZER_PAIR = "initializer_pair"
PAREN_EXPR = "parenthesized_expression"

STRUCT_SPECIFIER = "struct_specifier"
UNION_SPECIFIER = "union_specifier"
ENUM_SPECIFIER = "enum_specifier"
TYPE_DEFINITION = "type_definition"
PREPROC_DEF = "preproc_def"

# Statement lists whose trailing statements are re-nested into a hoisted scope.
BLOCK_CONTAINER_TYPES: frozenset[str] = frozenset(
    {"compound_statement", "case_statement"}
)

STATEMENT_TYPES: frozenset[str] = frozenset(
    {
        "expression_statement",
        "declaration",
        "return_statement",
        "if_statement",
        "while_statement",
        "do_statement",
        "for_statement",
        "switch_statement",
        "compound_statement",
    }
)

# Parents whose statement children sit in statement position but are not
# block containers: the statement is wrapped alone.
STATEMENT_WRAPPER_TYPES: frozenset[str] = frozenset(
    {
        "else_clause",
        "labeled_statement",
        "preproc_if",
        "preproc_ifdef",
        "preproc_else",
        "preproc_elif",
        "preproc_elifdef",
    }
)

# Fields of control statements that hold a sub-statement.
STATEMENT_BODY_FIELDS: tuple[str, ...] = ("body", "consequence", "alternative")

SCOPE_BOUNDARY_TYPES: frozenset[str] = frozenset(
    {"translation_unit", "function_definition"}
)

SCALAR_TYPE_NODES: frozenset[str] = frozenset(
    {"primitive_type", "sized_type_specifier"}
)

# ── printer spacing ──────────────────────────────────────────────

NO_SPACE_BEFORE: frozenset[str] = frozenset({";", ",", ")", "]", "[", ".", "->"})
NO_SPACE_AFTER: frozenset[str] = frozenset({"(", "[", ".", "->"})

# ── types assumed to come from headers that are never parsed ─────

DEFAULT_EXTERN_TYPES: frozenset[str] = frozenset(
    {
        "size_t",
        "ssize_t",
        "ptrdiff_t",
        "intptr_t",
        "uintptr_t",
        "intmax_t",
        "uintmax_t",
        "int8_t",
        "int16_t",
        "int32_t",
        "int64_t",
        "uint8_t",
        "uint16_t",
        "uint32_t",
        "uint64_t",
        "wchar_t",
        "FILE",
    }
)
