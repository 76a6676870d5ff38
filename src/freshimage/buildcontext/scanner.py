"""Recursive file enumeration over a build context."""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Collection, Iterator, Optional

from freshimage.concurrency import CancelToken
from freshimage.errors import FilesystemWalkError

logger = logging.getLogger(__name__)


def canonical(path: str | Path) -> str:
    """Absolute, symlink-free form of a path, used for all context paths."""
    return os.path.realpath(os.fspath(path))


def walk_files(
    root: str,
    cancel: Optional[CancelToken] = None,
    exclude: Collection[str] = (),
) -> Iterator[str]:
    """Yield regular files under an existing directory.

    Directories listed in ``exclude`` are not descended into. Raises on the
    first walk error.
    """
    errors: list[OSError] = []

    for dirpath, dirnames, filenames in os.walk(root, onerror=errors.append):
        if errors:
            break
        if exclude:
            dirnames[:] = [d for d in dirnames if os.path.join(dirpath, d) not in exclude]
        for name in filenames:
            if cancel is not None:
                cancel.raise_if_cancelled()
            path = os.path.join(dirpath, name)
            # FIFOs, sockets and devices are skipped; symlinks to files are kept
            if path in exclude or not os.path.isfile(path):
                continue
            yield path

    if errors:
        err = errors[0]
        raise FilesystemWalkError(f"Failed to walk {err.filename or root}: {err.strerror or err}") from err


def scan(
    root: str | Path,
    cancel: Optional[CancelToken] = None,
    exclude: Collection[str] = (),
) -> list[str]:
    """List every regular file under ``root`` in traversal order.

    Directories are not listed. Symlinks to directories are not descended
    into. Paths are absolute and based on the canonical root; ``exclude``
    holds canonical paths of subtrees to leave out.

    Raises:
        FilesystemWalkError: if the root or any directory below it cannot
            be read. No partial listing is returned.
    """
    root = canonical(root)
    if not os.path.isdir(root):
        raise FilesystemWalkError(f"Context root is not a directory: {root}")

    files = list(walk_files(root, cancel, exclude))
    logger.debug(f"Scanned {len(files)} file(s) under {root}")
    return files


def last_modified(
    root: str | Path,
    cancel: Optional[CancelToken] = None,
    exclude: Collection[str] = (),
) -> datetime:
    """Most recent modification time of any file under ``root``.

    Subtrees in ``exclude`` are not considered. Returns the root's own
    mtime when it holds no files.
    """
    root = canonical(root)
    try:
        latest = os.stat(root).st_mtime
    except OSError as e:
        raise FilesystemWalkError(f"Failed to stat context root {root}: {e}") from e

    found_any = False
    for path in walk_files(root, cancel, exclude):
        try:
            mtime = os.lstat(path).st_mtime
        except OSError as e:
            raise FilesystemWalkError(f"Failed to stat {path}: {e}") from e
        if not found_any or mtime > latest:
            latest = mtime
            found_any = True

    return datetime.fromtimestamp(latest, tz=timezone.utc)
