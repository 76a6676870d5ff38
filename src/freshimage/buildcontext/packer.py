"""Build context archive assembly.

The archive is an uncompressed POSIX (pax) tar holding a synthetic build
specification entry followed by the filtered context files. Every entry
gets the pack-time wall clock as its modification, access and change time.
"""

import asyncio
import io
import logging
import os
import stat
import tarfile
import time
from pathlib import Path
from typing import Collection, Iterable, Optional

from freshimage.buildcontext.differ import difference
from freshimage.buildcontext.ignore import resolve_ignored
from freshimage.buildcontext.scanner import canonical, scan
from freshimage.concurrency import CancelToken, fork_join
from freshimage.config import settings
from freshimage.errors import ArchivePackError

logger = logging.getLogger(__name__)


def entry_name(path: str, context_root: str | Path) -> str:
    """Archive name of ``path``: its POSIX path relative to the context root.

    Raises:
        ArchivePackError: if the path does not fall under the root.
    """
    root = canonical(context_root)
    path = os.path.abspath(path)
    try:
        inside = os.path.commonpath([root, path]) == root
    except ValueError:
        inside = False
    if not inside or path == root:
        raise ArchivePackError(f"{path} is outside the build context {root}")
    return os.path.relpath(path, root).replace(os.sep, "/")


def _tarinfo(name: str, size: int, mode: int, now: float) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name=name)
    info.size = size
    info.mode = mode
    info.mtime = now
    info.pax_headers = {"atime": f"{now:.9f}", "ctime": f"{now:.9f}"}
    return info


def pack(
    steps: str,
    paths: Iterable[str],
    context_root: str | Path,
    cancel: Optional[CancelToken] = None,
) -> io.BytesIO:
    """Write the build steps and the given context files into a tar archive.

    Returns the archive rewound to its start. Any file that cannot be
    stat'ed or read aborts the whole archive.
    """
    spec_name = settings.build_spec_name
    buf = io.BytesIO()

    with tarfile.open(fileobj=buf, mode="w", format=tarfile.PAX_FORMAT) as tar:
        data = steps.encode("utf-8")
        tar.addfile(_tarinfo(spec_name, len(data), 0o644, time.time()), io.BytesIO(data))

        for path in paths:
            if cancel is not None:
                cancel.raise_if_cancelled()
            name = entry_name(path, context_root)
            if name == spec_name:
                logger.warning(f"Skipping {path}: shadowed by the inline build steps")
                continue

            logger.debug(f"Writing {name} to build context archive")
            try:
                info = os.stat(path)
                with open(path, "rb") as f:
                    content = f.read()
            except OSError as e:
                raise ArchivePackError(f"Failed to read {path}: {e}") from e

            tar.addfile(
                _tarinfo(name, len(content), stat.S_IMODE(info.st_mode), time.time()),
                io.BytesIO(content),
            )

    buf.seek(0)
    return buf


async def collect_context(
    context_root: str | Path,
    ignore_sources: Iterable[str | Path],
    cancel: Optional[CancelToken] = None,
    exclude: Collection[str] = (),
) -> list[str]:
    """Files of the context that no ignore pattern excludes.

    The context scan and the ignore resolution run concurrently; a scan
    failure is reported in preference to an ignore failure.
    """
    sources = list(ignore_sources)
    context_files, ignored = await fork_join(
        lambda token: scan(context_root, token, exclude),
        lambda token: resolve_ignored(sources, token),
        cancel=cancel,
    )
    return difference(context_files, ignored)


async def pack_context(
    steps: str,
    context_root: str | Path,
    ignore_sources: Iterable[str | Path],
    cancel: Optional[CancelToken] = None,
    exclude: Collection[str] = (),
) -> io.BytesIO:
    """Collect the filtered build context and pack it with ``steps``."""
    paths = await collect_context(context_root, ignore_sources, cancel, exclude)
    logger.debug(f"Packing {len(paths)} context file(s)")
    return await asyncio.to_thread(pack, steps, paths, context_root, cancel)
