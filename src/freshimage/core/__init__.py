"""Core modules for freshimage.

Contains the build decision and execution pieces:
- engine: build engine contract and the Docker implementation
- execute_context: engine handle, sinks and flags for a run
- record_store: per-task build record persistence
- staleness: rebuild/no-rebuild decision
- builder: staleness check, build and record update for one task
"""

from freshimage.core.engine import (
    BuildEngine,
    WhalesEngine,
)
from freshimage.core.execute_context import ExecuteContext
from freshimage.core.record_store import (
    read_record,
    record_path,
    write_record,
)
from freshimage.core.staleness import (
    StalenessVerdict,
    check_staleness,
    is_stale,
)
from freshimage.core.builder import (
    build_image,
    build_options,
    run_build,
)

__all__ = [
    # Engine
    "BuildEngine",
    "WhalesEngine",
    "ExecuteContext",
    # Build records
    "read_record",
    "record_path",
    "write_record",
    # Staleness
    "StalenessVerdict",
    "check_staleness",
    "is_stale",
    # Builds
    "build_image",
    "build_options",
    "run_build",
]
