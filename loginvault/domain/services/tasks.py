"""Background job scheduling.

Jobs are zero-argument coroutine functions. Submitting one never waits for
it; callers that need the outcome must observe it through side effects.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[None]]


class TaskScheduler(Protocol):
    """Anything that accepts fire-and-forget background jobs."""

    def submit(self, name: str, job: Job) -> None:
        ...


class AsyncTaskPool:
    """Runs jobs as tasks on the running event loop.

    Blocking work inside a job should go through `asyncio.to_thread`, which
    uses the loop's shared thread pool.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def submit(self, name: str, job: Job) -> None:
        task = asyncio.get_running_loop().create_task(job(), name=name)
        # The loop only keeps weak references to tasks
        self._tasks.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background job {task.get_name()} failed", exc_info=exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every submitted job to finish. Used on shutdown."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class RecordingScheduler:
    """Collects submitted jobs without running them.

    Lets tests inspect what was scheduled, then run the jobs on demand.
    """

    def __init__(self) -> None:
        self.jobs: list[tuple[str, Job]] = []

    def submit(self, name: str, job: Job) -> None:
        self.jobs.append((name, job))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.jobs]

    async def run_all(self) -> None:
        jobs, self.jobs = self.jobs, []
        for _, job in jobs:
            await job()
