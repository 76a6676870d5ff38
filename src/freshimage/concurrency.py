"""Cancellation tokens and a fork-join helper for blocking producers.

Producers are plain callables that take a ``CancelToken`` and do blocking
filesystem work; ``fork_join`` runs them in worker threads and joins them.
"""

import asyncio
import logging
import threading
from typing import Callable, Optional, TypeVar

from freshimage.errors import BuildCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancelToken:
    """Cooperative cancellation flag, optionally chained to a parent."""

    def __init__(self, parent: Optional["CancelToken"] = None):
        self._event = threading.Event()
        self._parent = parent

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise BuildCancelled("operation cancelled")

    def child(self) -> "CancelToken":
        """Token cancelled by this one, but cancellable on its own."""
        return CancelToken(parent=self)


async def fork_join(
    *producers: Callable[[CancelToken], T],
    cancel: Optional[CancelToken] = None,
) -> list[T]:
    """Run producers concurrently and return their results in order.

    All producers are joined before returning. If any fails, the others are
    cancelled and the first failure in producer order is raised. Failures
    that are only a consequence of that cancellation never win over the
    failure that caused it.
    """
    token = (cancel or CancelToken()).child()

    async def _run(producer: Callable[[CancelToken], T]) -> T:
        try:
            return await asyncio.to_thread(producer, token)
        except Exception:
            token.cancel()
            raise

    results = await asyncio.gather(
        *(_run(producer) for producer in producers),
        return_exceptions=True,
    )

    errors = [r for r in results if isinstance(r, BaseException)]
    if errors:
        real = [e for e in errors if not isinstance(e, BuildCancelled)]
        if real:
            if len(real) > 1:
                logger.debug(f"Discarding {len(real) - 1} additional producer error(s)")
            raise real[0]
        raise errors[0]

    return list(results)
