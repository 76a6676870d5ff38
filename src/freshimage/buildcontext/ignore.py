"""Ignore-pattern loading and eager resolution.

Every pattern is expanded against the live filesystem into the concrete
list of files it matches. Patterns use gitignore wildcard syntax and are
relative to the directory holding the file they were read from. A
context's ``.dockerignore`` patterns only match from that directory down
through explicit ``**``; other ignore files match unanchored names at any
depth.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, Optional

import pathspec

from freshimage.buildcontext.scanner import canonical, walk_files
from freshimage.concurrency import CancelToken
from freshimage.config import settings
from freshimage.errors import FilesystemWalkError, IgnorePatternError
from freshimage.models import IgnorePattern

logger = logging.getLogger(__name__)

GLOB_CHARS = frozenset("*?[")


def ignore_sources_for(context_root: Path, extra: Iterable[Path] = ()) -> list[Path]:
    """Ignore files consulted for a context: its own, then any extras."""
    return [Path(context_root) / settings.ignore_filename, *extra]


def read_patterns(source: str | Path) -> list[IgnorePattern]:
    """Read one pattern per line from ``source``.

    Blank lines and ``#`` comments are skipped. A missing file holds no
    patterns. Patterns from a context's own ignore file (``.dockerignore``)
    follow the engine's rules and are anchored at the context root, so
    matching below it needs ``**``. Patterns from other files keep
    gitignore semantics.
    """
    source = Path(source)
    try:
        content = source.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug(f"No ignore file at {source}")
        return []
    except (OSError, UnicodeDecodeError) as e:
        raise IgnorePatternError(f"Failed to read ignore file {source}: {e}") from e

    base = Path(canonical(source.parent))
    anchored = source.name == settings.ignore_filename
    patterns = []
    for line in content.splitlines():
        line = line.strip()
        while line.startswith("./"):
            line = line[2:]
        if not line or line.startswith("#"):
            continue
        if line.startswith("!"):
            logger.warning(f"Ignoring unsupported negated pattern {line!r} in {source}")
            continue
        if anchored and not line.startswith("/"):
            line = "/" + line
        patterns.append(IgnorePattern(base=base, pattern=line))
    return patterns


def _literal_prefix(pattern: str) -> tuple[str, bool]:
    """Split off the leading path segments that contain no wildcards.

    Returns the prefix and whether the whole pattern was literal.
    """
    parts = [p for p in pattern.strip("/").split("/") if p and p != "."]
    literal = []
    for part in parts:
        if GLOB_CHARS & set(part):
            return "/".join(literal), False
        literal.append(part)
    return "/".join(literal), True


def resolve_pattern(pattern: IgnorePattern, cancel: Optional[CancelToken] = None) -> list[str]:
    """Expand a single pattern into the files it currently matches."""
    base = canonical(pattern.base)
    # Without a leading or inner slash, gitignore matches at any depth
    if "/" in pattern.pattern.rstrip("/"):
        prefix, is_literal = _literal_prefix(pattern.pattern)
    else:
        prefix, is_literal = "", False

    walk_root = os.path.join(base, prefix) if prefix else base

    if not os.path.lexists(walk_root):
        return []
    if not os.path.isdir(walk_root):
        # A trailing slash only ever matches directories
        return [walk_root] if is_literal and not pattern.pattern.endswith("/") else []

    files = walk_files(walk_root, cancel)
    if is_literal:
        return list(files)

    spec = pathspec.GitIgnoreSpec.from_lines([pattern.pattern])
    return [
        path
        for path in files
        if spec.match_file(os.path.relpath(path, base).replace(os.sep, "/"))
    ]


def resolve_ignored(
    sources: Iterable[str | Path],
    cancel: Optional[CancelToken] = None,
) -> list[str]:
    """Union of the files matched by every pattern in ``sources``.

    Raises:
        IgnorePatternError: if any source cannot be read or any pattern's
            subtree cannot be walked.
    """
    resolved: dict[str, None] = {}
    for source in sources:
        for pattern in read_patterns(source):
            try:
                matches = resolve_pattern(pattern, cancel)
            except FilesystemWalkError as e:
                raise IgnorePatternError(f"Failed to resolve {pattern.pattern!r} from {source}: {e}") from e
            logger.debug(f"Pattern {pattern.pattern!r} matched {len(matches)} file(s)")
            resolved.update(dict.fromkeys(matches))
    return list(resolved)
