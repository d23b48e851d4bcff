"""Constant Evaluator: integer values of enumerator initializers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from .errors import LookupFailure, UnsupportedConstruct

if TYPE_CHECKING:
    from .symbols import SymbolTable

logger = logging.getLogger(__name__)

_CHAR_ESCAPES: dict[str, int] = {
    "\\0": 0,
    "\\a": 7,
    "\\b": 8,
    "\\t": 9,
    "\\n": 10,
    "\\v": 11,
    "\\f": 12,
    "\\r": 13,
    "\\\\": 92,
    "\\'": 39,
    '\\"': 34,
}


def _c_div(lhs: int, rhs: int) -> int:
    if rhs == 0:
        raise UnsupportedConstruct(f"Division by zero in constant {lhs} / {rhs}")
    quotient = abs(lhs) // abs(rhs)
    return quotient if (lhs < 0) == (rhs < 0) else -quotient


def _c_mod(lhs: int, rhs: int) -> int:
    if rhs == 0:
        raise UnsupportedConstruct(f"Division by zero in constant {lhs} % {rhs}")
    return lhs - rhs * _c_div(lhs, rhs)


BINARY_OPERATORS: dict[str, Callable[[int, int], int]] = {
    "^": lambda a, b: a ^ b,
    "|": lambda a, b: a | b,
    "&": lambda a, b: a & b,
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": _c_div,
    "%": _c_mod,
    "<<": lambda a, b: a << b,
    ">>": lambda a, b: a >> b,
}

UNARY_OPERATORS: dict[str, Callable[[int], int]] = {
    "-": lambda a: -a,
    "+": lambda a: a,
    "~": lambda a: ~a,
}


def arithmetic_expression(lhs: int, op: str, rhs: int) -> int:
    """Apply the C binary operator *op* to two integers."""
    fn = BINARY_OPERATORS.get(op)
    if fn is None:
        raise UnsupportedConstruct(f"Unknown arithmetic expression {op}")
    return fn(lhs, rhs)


def parse_int_literal(text: str) -> int:
    """Parse a C integer literal (decimal, hex, octal or binary, any suffix)."""
    body = text.strip().rstrip("uUlL").replace("'", "")
    sign = -1 if body.startswith("-") else 1
    body = body.lstrip("+-")
    lowered = body.lower()
    try:
        if lowered.startswith("0x"):
            return sign * int(body[2:], 16)
        if lowered.startswith("0b"):
            return sign * int(body[2:], 2)
        if len(body) > 1 and body.startswith("0"):
            return sign * int(body[1:], 8)
        return sign * int(body, 10)
    except ValueError:
        raise UnsupportedConstruct(f"Not an integer constant: {text}") from None


def parse_char_literal(text: str) -> int:
    inner = text[1:-1] if len(text) >= 2 else ""
    if len(inner) == 1:
        return ord(inner)
    if inner in _CHAR_ESCAPES:
        return _CHAR_ESCAPES[inner]
    raise UnsupportedConstruct(f"Unsupported character constant {text}")


class ConstantEvaluator:
    """Evaluates integer constant expressions against a symbol table.

    Mirrors a child visitor: each node yields zero or more values. Node kinds
    that carry no constant value yield nothing, so an enumerator whose
    initializer is e.g. a cast falls back to the default sequencing.
    """

    def __init__(self, symbols: SymbolTable, owner: str = ""):
        self._symbols = symbols
        self._owner = owner
        self._DISPATCH: dict[str, Callable] = {
            "number_literal": self._eval_number,
            "char_literal": self._eval_char,
            "identifier": self._eval_identifier,
            "binary_expression": self._eval_binary,
            "unary_expression": self._eval_unary,
            "parenthesized_expression": self._eval_paren,
        }

    def values(self, node) -> list[int]:
        handler = self._DISPATCH.get(node.type)
        if handler is None:
            logger.debug("Ignoring non-constant %s in %s", node.type, self._owner)
            return []
        return handler(node)

    def evaluate(self, node) -> int | None:
        """Return the single value of *node*, or None when it has none."""
        found = self.values(node)
        if len(found) > 1:
            raise UnsupportedConstruct(
                f"Malformed constant expression {_text(node)} in {self._owner}"
            )
        return found[0] if found else None

    # ── handlers ─────────────────────────────────────────────────

    def _eval_number(self, node) -> list[int]:
        return [parse_int_literal(_text(node))]

    def _eval_char(self, node) -> list[int]:
        return [parse_char_literal(_text(node))]

    def _eval_identifier(self, node) -> list[int]:
        name = _text(node)
        value = self._symbols.lookup_constant(name)
        if value is None:
            raise LookupFailure(f"Unknown enum value {name} in {self._owner}")
        return [value]

    def _eval_paren(self, node) -> list[int]:
        return [v for child in node.named_children for v in self.values(child)]

    def _eval_unary(self, node) -> list[int]:
        op = node.child_by_field_name("operator").type
        operand = self.values(node.child_by_field_name("argument"))
        fn = UNARY_OPERATORS.get(op)
        if fn is None:
            raise UnsupportedConstruct(
                f"Unknown unary expression {op} in {self._owner}"
            )
        if len(operand) != 1:
            raise UnsupportedConstruct(
                f"Malformed constant expression {_text(node)} in {self._owner}"
            )
        return [fn(operand[0])]

    def _eval_binary(self, node) -> list[int]:
        op = node.child_by_field_name("operator").type
        operands = self.values(node.child_by_field_name("left")) + self.values(
            node.child_by_field_name("right")
        )
        if len(operands) != 2:
            raise UnsupportedConstruct(
                f"Malformed constant expression {_text(node)} in {self._owner}"
            )
        return [arithmetic_expression(operands[0], op, operands[1])]


def _text(node) -> str:
    return node.text.decode("utf-8")
