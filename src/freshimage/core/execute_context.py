"""Per-invocation execution context consumed by the build core."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, TextIO

from freshimage.buildcontext.scanner import canonical
from freshimage.config import settings
from freshimage.core.engine import BuildEngine
from freshimage.models import BuildTaskConfig


@dataclass
class ExecuteContext:
    """Engine handle, output sink and flags shared by the tasks of a run.

    ``output`` receives the engine's build log; when it is None the log is
    discarded.
    """

    engine: BuildEngine
    working_dir: Path = field(default_factory=Path.cwd)
    quiet: bool = False
    verbose: bool = False
    output: Optional[TextIO] = None
    auth_configs: dict[str, dict[str, str]] = field(default_factory=dict)
    meta_dir: Optional[Path] = None

    def resolve_path(self, path: Path) -> Path:
        """Resolve a task-relative path against the working directory."""
        path = Path(path)
        return path if path.is_absolute() else self.working_dir / path

    @property
    def metadata_dir(self) -> Path:
        return self.resolve_path(self.meta_dir or settings.meta_dir)

    @property
    def records_dir(self) -> Path:
        return self.metadata_dir / "images"

    @property
    def excluded_paths(self) -> frozenset[str]:
        """Canonical paths kept out of every context walk.

        Build records live here and must never count as context changes.
        """
        return frozenset({canonical(self.metadata_dir)})

    def image_name(self, config: BuildTaskConfig) -> str:
        """Name the image is built under: repository plus first tag."""
        return self.image_names(config)[0]

    def image_names(self, config: BuildTaskConfig) -> list[str]:
        tags = config.tags or [settings.default_tag]
        return [f"{config.image}:{tag}" for tag in tags]
