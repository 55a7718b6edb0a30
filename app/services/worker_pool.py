"""Bounded asyncio worker pool with a shared cancellation signal.

Every network fan-out in the pipeline (provider searches, URL verification)
runs through ``WorkerPool.run``. Jobs are capped by a semaphore, each one is
individually timed out, and a single ``CancellationToken`` can abort the
whole batch. On cancellation no partial results are returned.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_IN_FLIGHT = 8


class CancellationToken:
    """One-shot cancellation signal shared by every job of a request."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class TaskOutcome(Generic[T]):
    """Result of one pooled job.

    Exactly one of ``value`` / ``error`` is meaningful unless the job was
    cancelled, in which case both are empty and ``cancelled`` is True.
    """

    value: T | None = None
    error: BaseException | None = None
    timed_out: bool = False
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.timed_out and not self.cancelled


class WorkerPool:
    """Runs coroutine factories with bounded concurrency and per-job timeouts."""

    def __init__(
        self,
        max_in_flight: int = DEFAULT_MAX_IN_FLIGHT,
        timeout: float | None = None,
        token: CancellationToken | None = None,
    ) -> None:
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be at least 1")
        self.max_in_flight = max_in_flight
        self.timeout = timeout
        self.token = token or CancellationToken()

    async def _run_one(
        self,
        semaphore: asyncio.Semaphore,
        job: Callable[[], Awaitable[T]],
    ) -> TaskOutcome[T]:
        async with semaphore:
            if self.token.cancelled:
                return TaskOutcome(cancelled=True)
            try:
                if self.timeout is not None:
                    value = await asyncio.wait_for(job(), timeout=self.timeout)
                else:
                    value = await job()
                return TaskOutcome(value=value)
            except asyncio.TimeoutError as e:
                return TaskOutcome(error=e, timed_out=True)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                return TaskOutcome(error=e)

    async def run(self, jobs: Sequence[Callable[[], Awaitable[T]]]) -> list[TaskOutcome[T]]:
        """Run all jobs and return outcomes in submission order.

        If the token fires before every job finishes, outstanding jobs are
        cancelled and every outcome in the batch is reported as cancelled.
        """
        if not jobs:
            return []
        if self.token.cancelled:
            return [TaskOutcome(cancelled=True) for _ in jobs]

        semaphore = asyncio.Semaphore(self.max_in_flight)
        tasks = [asyncio.ensure_future(self._run_one(semaphore, job)) for job in jobs]
        watcher = asyncio.ensure_future(self.token.wait())
        gathered = asyncio.gather(*tasks)

        try:
            done, _ = await asyncio.wait({gathered, watcher}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            self._cancel_all(tasks, watcher)
            gathered.cancel()
            raise

        if gathered in done and not self.token.cancelled:
            watcher.cancel()
            return list(gathered.result())

        logger.info(f"Worker pool cancelled ({self.token.reason}); dropping {len(jobs)} jobs")
        self._cancel_all(tasks, watcher)
        gathered.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        return [TaskOutcome(cancelled=True) for _ in jobs]

    @staticmethod
    def _cancel_all(tasks: list["asyncio.Future[Any]"], watcher: "asyncio.Future[Any]") -> None:
        watcher.cancel()
        for task in tasks:
            if not task.done():
                task.cancel()
