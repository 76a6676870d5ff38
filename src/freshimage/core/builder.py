"""Image build runner.

Checks staleness, builds the image when needed and records the result:

1. Ask the staleness oracle (skipped when dependencies were rebuilt)
2. Build from a Dockerfile, or from inline steps packed into an archive
3. Look up the new image and write its build record
4. Apply any additional tags
"""

import asyncio
import logging
from typing import Any, MutableMapping, Optional

from freshimage.buildcontext.ignore import ignore_sources_for
from freshimage.buildcontext.packer import pack_context
from freshimage.concurrency import CancelToken
from freshimage.core.execute_context import ExecuteContext
from freshimage.core.record_store import record_path, write_record
from freshimage.core.staleness import check_staleness
from freshimage.errors import RecordWriteError
from freshimage.models import BuildOptions, BuildRecord, BuildTaskConfig

logger = logging.getLogger(__name__)


class TaskLogger(logging.LoggerAdapter):
    """Prefixes messages with the task they belong to."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[image:{self.extra['task']}] {msg}", kwargs


def task_logger(config: BuildTaskConfig) -> TaskLogger:
    return TaskLogger(logger, {"task": config.name})


def build_options(ctx: ExecuteContext, config: BuildTaskConfig) -> BuildOptions:
    """Engine options shared by Dockerfile and inline-step builds."""
    return BuildOptions(
        name=ctx.image_name(config),
        build_args=list(config.args.items()),
        pull=config.pull,
        output=ctx.output,
        quiet=ctx.quiet,
        verbose=ctx.verbose,
        auth_configs=ctx.auth_configs,
        target=config.target,
    )


async def build_image(
    ctx: ExecuteContext,
    config: BuildTaskConfig,
    cancel: Optional[CancelToken] = None,
) -> None:
    """Send one build to the engine.

    Raises:
        ArchivePackError: if the inline-step context cannot be packed.
        BuildEngineError: if the engine build fails.
    """
    options = build_options(ctx, config)
    context_root = ctx.resolve_path(config.context)

    if config.steps:
        sources = ignore_sources_for(
            context_root,
            [ctx.resolve_path(path) for path in config.ignore_files],
        )
        options.input_archive = await pack_context(
            config.steps, context_root, sources, cancel, ctx.excluded_paths
        )
    else:
        options.dockerfile = config.dockerfile
        options.context_dir = context_root

    if cancel is not None:
        cancel.raise_if_cancelled()
    await asyncio.to_thread(ctx.engine.build_image, options)


async def run_build(
    ctx: ExecuteContext,
    config: BuildTaskConfig,
    has_modified_deps: bool = False,
    cancel: Optional[CancelToken] = None,
) -> bool:
    """Build the task's image if it is out of date.

    Returns:
        True if an image was built, False if the existing one is fresh.
    """
    log = task_logger(config)
    name = ctx.image_name(config)
    path = record_path(ctx, config)

    if not has_modified_deps:
        verdict = await asyncio.to_thread(
            check_staleness,
            ctx.engine,
            name,
            ctx.resolve_path(config.context),
            path,
            cancel,
            ctx.excluded_paths,
        )
        if not verdict.stale:
            log.info("is fresh")
            return False
        log.debug(f"is stale: {verdict.reason}")
    else:
        log.debug("is stale: dependencies were modified")

    await build_image(ctx, config, cancel)

    image = await asyncio.to_thread(ctx.engine.lookup_image, name)
    try:
        write_record(path, BuildRecord(image_id=image.id))
    except RecordWriteError as e:
        log.warning(f"Failed to update image record: {e}")

    for extra in ctx.image_names(config)[1:]:
        await asyncio.to_thread(ctx.engine.tag_image, name, extra)
        log.debug(f"Tagged {name} as {extra}")

    log.info("Created")
    return True
