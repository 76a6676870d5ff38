import io
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest
from python_on_whales.exceptions import DockerException, NoSuchImage

from freshimage.buildcontext.packer import pack
from freshimage.buildcontext.scanner import scan
from freshimage.core.engine import WhalesEngine
from freshimage.errors import BuildEngineError, EngineLookupError, ImageNotFound
from freshimage.models import BuildOptions


class FakeImages:
    def __init__(self):
        self.inspect_error = None
        self.tagged = []

    def inspect(self, name):
        if self.inspect_error is not None:
            raise self.inspect_error
        return SimpleNamespace(id="sha256:abc", created=datetime(2024, 1, 2, 3, 4, 5))

    def tag(self, source, target):
        self.tagged.append((source, target))


class FakeDocker:
    def __init__(self):
        self.image = FakeImages()
        self.calls = []
        self.build_error = None

    def build(self, context_path, **kwargs):
        if self.build_error is not None:
            raise self.build_error
        dockerfile = Path(kwargs["file"])
        self.calls.append(
            {
                "context": Path(context_path),
                "files": sorted(p.name for p in Path(context_path).iterdir()),
                "dockerfile": dockerfile.read_text() if dockerfile.exists() else None,
                **kwargs,
            }
        )
        if kwargs.get("stream_logs"):
            return iter(["Step 1/1\n", "done\n"])
        return None


@pytest.fixture
def docker():
    return FakeDocker()


def test_lookup_returns_metadata(docker):
    image = WhalesEngine(docker).lookup_image("app:latest")

    assert image.id == "sha256:abc"
    assert image.created == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def test_lookup_missing_image(docker):
    docker.image.inspect_error = NoSuchImage(["docker", "image", "inspect", "app"], 1)

    with pytest.raises(ImageNotFound):
        WhalesEngine(docker).lookup_image("app")


def test_lookup_other_failure(docker):
    docker.image.inspect_error = DockerException(["docker", "image", "inspect", "app"], 1)

    with pytest.raises(EngineLookupError) as exc_info:
        WhalesEngine(docker).lookup_image("app")
    assert not isinstance(exc_info.value, ImageNotFound)


def test_build_from_dockerfile_streams_logs(docker, tmp_path):
    (tmp_path / "Dockerfile.dev").write_text("FROM scratch\n")
    sink = io.StringIO()
    options = BuildOptions(
        name="app:1",
        build_args=[("A", "1")],
        pull=True,
        output=sink,
        dockerfile="Dockerfile.dev",
        context_dir=tmp_path,
    )

    WhalesEngine(docker).build_image(options)

    call = docker.calls[0]
    assert call["context"] == tmp_path
    assert call["dockerfile"] == "FROM scratch\n"
    assert call["tags"] == ["app:1"]
    assert call["build_args"] == {"A": "1"}
    assert call["pull"] is True
    assert sink.getvalue() == "Step 1/1\ndone\n"


def test_quiet_build_does_not_stream(docker, tmp_path):
    (tmp_path / "Dockerfile").write_text("FROM scratch\n")
    sink = io.StringIO()
    options = BuildOptions(name="app", output=sink, quiet=True, dockerfile="Dockerfile", context_dir=tmp_path)

    WhalesEngine(docker).build_image(options)

    assert docker.calls[0]["progress"] is False
    assert sink.getvalue() == ""


def test_build_from_archive_unpacks_context(docker, context_dir):
    archive = pack("FROM alpine\n", scan(context_dir), context_dir)

    WhalesEngine(docker).build_image(BuildOptions(name="tool", input_archive=archive))

    call = docker.calls[0]
    assert call["dockerfile"] == "FROM alpine\n"
    assert call["files"] == ["Dockerfile", "app.py", "lib"]
    assert not call["context"].exists()


def test_build_failure(docker, tmp_path):
    docker.build_error = DockerException(["docker", "buildx", "build"], 1)
    options = BuildOptions(name="app", dockerfile="Dockerfile", context_dir=tmp_path)

    with pytest.raises(BuildEngineError):
        WhalesEngine(docker).build_image(options)


def test_build_without_source_fails(docker):
    with pytest.raises(BuildEngineError):
        WhalesEngine(docker).build_image(BuildOptions(name="app"))


def test_tag_image(docker):
    WhalesEngine(docker).tag_image("app:1", "app:latest")

    assert docker.image.tagged == [("app:1", "app:latest")]


def test_verbose_build_streams_plain_progress(docker, tmp_path):
    (tmp_path / "Dockerfile").write_text("FROM scratch\n")
    sink = io.StringIO()
    options = BuildOptions(name="app", output=sink, verbose=True, dockerfile="Dockerfile", context_dir=tmp_path)

    WhalesEngine(docker).build_image(options)

    assert docker.calls[0]["progress"] == "plain"
    assert docker.calls[0]["stream_logs"] is True
    assert sink.getvalue() == "Step 1/1\ndone\n"


def test_default_build_keeps_engine_progress(docker, tmp_path):
    (tmp_path / "Dockerfile").write_text("FROM scratch\n")
    options = BuildOptions(name="app", output=io.StringIO(), dockerfile="Dockerfile", context_dir=tmp_path)

    WhalesEngine(docker).build_image(options)

    assert "progress" not in docker.calls[0]
