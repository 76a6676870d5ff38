"""Decide whether an image must be rebuilt.

The build record is a cache of the last successful build. When it is
missing or unreadable the decision falls back to comparing the image's
creation time with the context's modification time.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Collection, Optional

from freshimage.buildcontext.scanner import last_modified
from freshimage.concurrency import CancelToken
from freshimage.core.engine import BuildEngine
from freshimage.core.record_store import read_record
from freshimage.errors import ImageNotFound, RecordReadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StalenessVerdict:
    """Rebuild decision plus a short human-readable reason."""

    stale: bool
    reason: str


def check_staleness(
    engine: BuildEngine,
    image_name: str,
    context_root: Path,
    record_path: Path,
    cancel: Optional[CancelToken] = None,
    exclude: Collection[str] = (),
) -> StalenessVerdict:
    """Compare engine, context and build record state for one image.

    Subtrees in ``exclude`` (canonical paths) do not count towards the
    context modification time.

    Raises:
        EngineLookupError: if the engine lookup fails for a reason other
            than a missing image. The image should be treated as stale.
        FilesystemWalkError: if the context cannot be walked. The image
            should be treated as stale.
    """
    try:
        image = engine.lookup_image(image_name)
    except ImageNotFound:
        return StalenessVerdict(True, "image does not exist")

    mtime = last_modified(context_root, cancel, exclude)

    try:
        record, info = read_record(record_path)
    except RecordReadError as e:
        logger.warning(f"Failed to get image record: {e}")
        created = image.created
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        if created < mtime:
            return StalenessVerdict(True, "image older than context")
        return StalenessVerdict(False, "image newer than context")

    if record.image_id != image.id:
        return StalenessVerdict(True, "image changed since last build")
    if datetime.fromtimestamp(info.st_mtime, tz=timezone.utc) < mtime:
        return StalenessVerdict(True, "image record older than context")
    return StalenessVerdict(False, "image record up to date")


def is_stale(
    engine: BuildEngine,
    image_name: str,
    context_root: Path,
    record_path: Path,
    cancel: Optional[CancelToken] = None,
    exclude: Collection[str] = (),
) -> bool:
    """True when the image needs a rebuild. See ``check_staleness``."""
    return check_staleness(engine, image_name, context_root, record_path, cancel, exclude).stale
