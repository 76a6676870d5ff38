"""Build context assembly.

- scanner: recursive file enumeration and context modification time
- ignore: ignore-pattern loading and eager resolution
- differ: removal of ignored files from the context
- packer: tar archive assembly for inline build steps
"""

from freshimage.buildcontext.scanner import (
    canonical,
    last_modified,
    scan,
)
from freshimage.buildcontext.ignore import (
    ignore_sources_for,
    read_patterns,
    resolve_ignored,
    resolve_pattern,
)
from freshimage.buildcontext.differ import difference
from freshimage.buildcontext.packer import (
    collect_context,
    entry_name,
    pack,
    pack_context,
)

__all__ = [
    # Scanning
    "canonical",
    "last_modified",
    "scan",
    # Ignore patterns
    "ignore_sources_for",
    "read_patterns",
    "resolve_ignored",
    "resolve_pattern",
    # Context
    "difference",
    "collect_context",
    "entry_name",
    "pack",
    "pack_context",
]
