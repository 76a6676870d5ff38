"""Data model shared by the build context pipeline and the staleness oracle."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, BinaryIO, Optional, TextIO

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# Task configuration
# =============================================================================


class BuildTaskConfig(BaseModel):
    """Configuration of a single image build task."""

    model_config = ConfigDict(frozen=True)

    name: str
    image: str
    tags: list[str] = Field(default_factory=list)
    context: Path = Path(".")
    dockerfile: Optional[str] = None
    steps: Optional[str] = None
    args: dict[str, str] = Field(default_factory=dict)
    pull: bool = False
    target: Optional[str] = None
    ignore_files: list[Path] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _default_dockerfile(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("dockerfile") and not data.get("steps"):
            data = {**data, "dockerfile": "Dockerfile"}
        return data

    @model_validator(mode="after")
    def _check_build_source(self) -> "BuildTaskConfig":
        if self.dockerfile and self.steps:
            raise ValueError(f"{self.name}: set either dockerfile or steps, not both")
        return self


# =============================================================================
# Engine snapshots
# =============================================================================


@dataclass(frozen=True)
class ImageMetadata:
    """Engine-reported image identity and creation time."""

    id: str
    created: datetime


@dataclass
class BuildOptions:
    """Everything the engine needs to build one image."""

    name: str
    build_args: list[tuple[str, str]] = field(default_factory=list)
    pull: bool = False
    output: Optional[TextIO] = None
    quiet: bool = False
    verbose: bool = False
    auth_configs: dict[str, dict[str, str]] = field(default_factory=dict)
    target: Optional[str] = None
    # Either a Dockerfile inside a context directory...
    dockerfile: Optional[str] = None
    context_dir: Optional[Path] = None
    # ...or a prepared tar archive
    input_archive: Optional[BinaryIO] = None


# =============================================================================
# Persisted record
# =============================================================================


class BuildRecord(BaseModel):
    """Last successful build of a task.

    The record file's mtime is the time of that build.
    """

    model_config = ConfigDict(populate_by_name=True)

    image_id: str = Field(alias="ImageID")


# =============================================================================
# Ignore patterns
# =============================================================================


@dataclass(frozen=True)
class IgnorePattern:
    """A gitignore-style pattern anchored at a base directory."""

    base: Path
    pattern: str
