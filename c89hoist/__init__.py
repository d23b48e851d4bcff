"""C99 compound-literal hoisting for C89 toolchains."""

from .api import (  # noqa: F401
    rewrite_source,
    rewrite_file,
    parse_source,
    build_symbols,
    find_sites,
    dump_tokens,
    dump_symbols,
)
from .config import RewriteConfig  # noqa: F401
from .errors import (  # noqa: F401
    ErrorKind,
    LookupFailure,
    ResourceExhausted,
    RewriteError,
    UnsupportedConstruct,
)
