"""Build record persistence.

One small YAML file per image build task holds the ID of the image its last
successful build produced. The file's mtime is the time of that build.
"""

import logging
import os
from pathlib import Path
from urllib.parse import quote

import yaml
from pydantic import ValidationError

from freshimage.core.execute_context import ExecuteContext
from freshimage.errors import RecordNotFound, RecordReadError, RecordWriteError
from freshimage.models import BuildRecord, BuildTaskConfig

logger = logging.getLogger(__name__)


def record_path(ctx: ExecuteContext, config: BuildTaskConfig) -> Path:
    """Record location for a task, derived only from its image name."""
    return ctx.records_dir / quote(ctx.image_name(config), safe="")


def read_record(path: Path) -> tuple[BuildRecord, os.stat_result]:
    """Load a build record together with the stat of its file.

    Raises:
        RecordNotFound: if no record file exists.
        RecordReadError: if the file cannot be read or parsed.
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
        info = path.stat()
    except FileNotFoundError as e:
        raise RecordNotFound(f"No build record at {path}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise RecordReadError(f"Failed to read build record {path}: {e}") from e

    try:
        data = yaml.safe_load(content)
        record = BuildRecord.model_validate(data)
    except (yaml.YAMLError, ValidationError) as e:
        raise RecordReadError(f"Corrupt build record {path}: {e}") from e

    return record, info


def write_record(path: Path, record: BuildRecord) -> None:
    """Replace the record at ``path`` (atomic write)."""
    path = Path(path)
    tmp_path = path.with_name(path.name + ".tmp")
    content = yaml.dump(
        record.model_dump(mode="json", by_alias=True),
        default_flow_style=False,
        sort_keys=False,
    )
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(content, encoding="utf-8")
        tmp_path.replace(path)
    except OSError as e:
        raise RecordWriteError(f"Failed to write build record {path}: {e}") from e
    logger.debug(f"Wrote build record {path}")
