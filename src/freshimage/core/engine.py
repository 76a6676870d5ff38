"""Build engine contract and its Docker implementation.

Uses python-on-whales for Docker interactions.
"""

import logging
import tarfile
import tempfile
from datetime import timezone
from pathlib import Path
from typing import Optional, Protocol

from python_on_whales import DockerClient
from python_on_whales.exceptions import DockerException, NoSuchImage

from freshimage.config import settings
from freshimage.errors import BuildEngineError, EngineLookupError, ImageNotFound
from freshimage.models import BuildOptions, ImageMetadata

logger = logging.getLogger(__name__)


class BuildEngine(Protocol):
    """What the build core needs from an image engine.

    A handle is used sequentially by one task; implementations need not be
    thread-safe.
    """

    def lookup_image(self, name: str) -> ImageMetadata:
        """Return metadata for ``name``.

        Raises:
            ImageNotFound: if the engine has no such image.
            EngineLookupError: on any other failure.
        """
        ...

    def build_image(self, options: BuildOptions) -> None:
        """Build an image, raising BuildEngineError on failure."""
        ...

    def tag_image(self, source: str, target: str) -> None:
        """Add ``target`` as a tag of ``source``."""
        ...


class WhalesEngine:
    """Docker engine driven through the docker CLI."""

    def __init__(self, client: Optional[DockerClient] = None):
        self.docker = client or DockerClient()

    def lookup_image(self, name: str) -> ImageMetadata:
        try:
            image = self.docker.image.inspect(name)
        except NoSuchImage as e:
            raise ImageNotFound(f"No such image: {name}") from e
        except DockerException as e:
            raise EngineLookupError(f"Failed to inspect image {name}: {e}") from e

        created = image.created
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return ImageMetadata(id=image.id, created=created)

    def build_image(self, options: BuildOptions) -> None:
        if options.auth_configs:
            logger.debug(
                f"Registry credentials for {sorted(options.auth_configs)} are taken "
                "from the docker CLI configuration"
            )

        if options.input_archive is not None:
            # The docker CLI only builds from a directory, so unpack the archive
            with tempfile.TemporaryDirectory(prefix="freshimage-") as tmp:
                try:
                    with tarfile.open(fileobj=options.input_archive, mode="r") as tar:
                        tar.extractall(tmp, filter="data")
                except (tarfile.TarError, OSError) as e:
                    raise BuildEngineError(f"Failed to unpack build context for {options.name}: {e}") from e
                self._build(options, Path(tmp), Path(tmp) / settings.build_spec_name)
            return

        if options.context_dir is None or options.dockerfile is None:
            raise BuildEngineError(f"{options.name}: no build context or Dockerfile given")
        self._build(options, options.context_dir, options.context_dir / options.dockerfile)

    def _build(self, options: BuildOptions, context_dir: Path, dockerfile: Path) -> None:
        kwargs = dict(
            file=dockerfile,
            tags=[options.name],
            build_args=dict(options.build_args),
            pull=options.pull,
            target=options.target,
            load=True,
        )
        logger.info(f"Building {options.name} from {context_dir}")
        try:
            if options.quiet or options.output is None:
                self.docker.build(context_dir, progress=False, **kwargs)
            else:
                if options.verbose:
                    kwargs["progress"] = "plain"
                for line in self.docker.build(context_dir, stream_logs=True, **kwargs):
                    options.output.write(line)
                options.output.flush()
        except DockerException as e:
            raise BuildEngineError(f"Failed to build {options.name}: {e}") from e

    def tag_image(self, source: str, target: str) -> None:
        try:
            self.docker.image.tag(source, target)
        except DockerException as e:
            raise BuildEngineError(f"Failed to tag {source} as {target}: {e}") from e
