"""Error taxonomy for the rewrite pipeline.

Every stage raises; only the command-line driver turns an error into a
diagnostic and an exit status, so no partial output is ever produced.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    LOOKUP_FAILURE = "lookup_failure"
    RESOURCE_EXHAUSTION = "resource_exhaustion"
    UNSUPPORTED_CONSTRUCT = "unsupported_construct"


class RewriteError(Exception):
    """Base class for fatal rewrite errors."""

    kind: ErrorKind = ErrorKind.UNSUPPORTED_CONSTRUCT

    def __str__(self) -> str:
        return f"{self.kind.value}: {super().__str__()}"


class LookupFailure(RewriteError):
    """A referenced token, enum constant or type is not known."""

    kind = ErrorKind.LOOKUP_FAILURE


class ResourceExhausted(RewriteError):
    """Memory ran out while growing a registry."""

    kind = ErrorKind.RESOURCE_EXHAUSTION


class UnsupportedConstruct(RewriteError):
    """An expression, declarator or literal position that cannot be handled."""

    kind = ErrorKind.UNSUPPORTED_CONSTRUCT
