"""Command-line driver: c89-hoist FILE > rewritten.c"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from .api import dump_symbols, dump_tokens, rewrite_source
from .config import RewriteConfig
from .errors import ResourceExhausted, RewriteError
from . import constants

logger = logging.getLogger(__name__)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="c89-hoist",
        description="Rewrite C99 compound literals into C89 temporaries",
    )
    parser.add_argument("file", help="C source file to rewrite")
    parser.add_argument(
        "--temp-prefix",
        default=constants.TEMP_NAME_PREFIX,
        help=f"Prefix of generated temporaries (default: {constants.TEMP_NAME_PREFIX})",
    )
    parser.add_argument(
        "--extern-type",
        action="append",
        default=[],
        metavar="TYPE",
        help="Type spelling declared by an unparsed header (repeatable)",
    )
    parser.add_argument(
        "--dump-tokens",
        action="store_true",
        help="Print the token stream instead of rewriting",
    )
    parser.add_argument(
        "--dump-symbols",
        action="store_true",
        help="Print the struct/enum/typedef tables instead of rewriting",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def main(argv: Optional[list[str]] = None):
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )

    try:
        with open(args.file, encoding="utf-8") as f:
            source = f.read()
    except OSError as exc:
        parser.error(f"cannot read {args.file}: {exc.strerror}")

    config = RewriteConfig(
        temp_prefix=args.temp_prefix,
        extern_types=constants.DEFAULT_EXTERN_TYPES | frozenset(args.extern_type),
    )

    try:
        if args.dump_tokens:
            output = dump_tokens(source, config) + "\n"
        elif args.dump_symbols:
            output = dump_symbols(source, config) + "\n"
        else:
            output = rewrite_source(source, config)
    except MemoryError:
        error = ResourceExhausted(f"Out of memory while rewriting {args.file}")
        print(f"error: {error}", file=sys.stderr)
        sys.exit(1)
    except RewriteError as error:
        logger.debug("Rewrite of %s aborted", args.file, exc_info=True)
        print(f"error: {error}", file=sys.stderr)
        sys.exit(1)

    sys.stdout.write(output)


if __name__ == "__main__":
    main()
