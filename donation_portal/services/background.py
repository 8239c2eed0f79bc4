"""
Fire-and-forget task submission with its own error channel
"""
import asyncio
from typing import Awaitable, Callable, Set

import structlog

logger = structlog.get_logger(__name__)


class BackgroundDispatcher:
    """
    Runs side-effect coroutines off the request path.

    Failures are logged with the submitted context and never reach the
    submitter. Tasks are held until they finish so they are not garbage
    collected mid-flight; drain() waits for whatever is still running.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, name: str, factory: Callable[[], Awaitable[None]], **context) -> asyncio.Task:
        task = asyncio.create_task(self._run(name, factory, context), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("Background task submitted", task=name, **context)
        return task

    async def _run(self, name: str, factory: Callable[[], Awaitable[None]], context: dict):
        try:
            await factory()
            logger.info("Background task completed", task=name, **context)
        except asyncio.CancelledError:
            logger.warning("Background task cancelled", task=name, **context)
            raise
        except Exception as e:
            logger.error(
                "Background task failed",
                task=name,
                error=str(e),
                error_type=type(e).__name__,
                **context,
            )

    async def drain(self):
        """Wait for every submitted task to finish"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
