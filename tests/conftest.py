import os
from datetime import datetime, timezone
from pathlib import Path

import pytest

from freshimage.core.execute_context import ExecuteContext
from freshimage.errors import ImageNotFound
from freshimage.models import BuildOptions, ImageMetadata

# Fixed point in the past used for file mtimes
PAST = 1_600_000_000


class FakeEngine:
    """In-memory build engine recording every call."""

    def __init__(self, images: dict[str, ImageMetadata] | None = None, lookup_error: Exception | None = None):
        self.images = dict(images or {})
        self.lookup_error = lookup_error
        self.build_error: Exception | None = None
        self.builds: list[tuple[BuildOptions, bytes | None]] = []
        self.tags: list[tuple[str, str]] = []

    def lookup_image(self, name: str) -> ImageMetadata:
        if self.lookup_error is not None:
            raise self.lookup_error
        try:
            return self.images[name]
        except KeyError:
            raise ImageNotFound(f"No such image: {name}") from None

    def build_image(self, options: BuildOptions) -> None:
        if self.build_error is not None:
            raise self.build_error
        archive = options.input_archive.read() if options.input_archive is not None else None
        self.builds.append((options, archive))
        self.images[options.name] = ImageMetadata(
            id=f"sha256:{len(self.builds)}",
            created=datetime.now(timezone.utc),
        )

    def tag_image(self, source: str, target: str) -> None:
        self.tags.append((source, target))
        self.images[target] = self.images[source]


def write_file(path: Path, content: str = "", mtime: float | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def ctx(tmp_path: Path, engine: FakeEngine) -> ExecuteContext:
    return ExecuteContext(engine=engine, working_dir=tmp_path)


@pytest.fixture
def context_dir(tmp_path: Path) -> Path:
    root = tmp_path / "app"
    write_file(root / "app.py", "print('hi')\n", mtime=PAST)
    write_file(root / "lib" / "util.py", "X = 1\n", mtime=PAST)
    return root
