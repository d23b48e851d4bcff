"""Rewrite configuration (pure data, no business logic)."""

from __future__ import annotations

from dataclasses import dataclass

from . import constants


@dataclass(frozen=True)
class RewriteConfig:
    """Groups the knobs of a single rewrite run."""

    language: str = constants.LANGUAGE
    temp_prefix: str = constants.TEMP_NAME_PREFIX
    # Type spellings declared by headers the rewriter never sees.
    extern_types: frozenset[str] = constants.DEFAULT_EXTERN_TYPES
