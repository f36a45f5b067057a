"""Fork-join execution of the term loop over a fixed set of workers."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, List, Optional, TypeVar

from termsum.logging import get_logger

from .storage import partition

logger = get_logger(__name__)

T = TypeVar("T")
ChunkTask = Callable[[int, range], T]


class WorkerPool:
    """
    Runs one task per worker over contiguous chunks of an index range.

    Worker ``w`` always receives the ``w``-th chunk, so a task can index
    per-worker scratch by its worker number. With a single worker the task
    runs on the calling thread. The executor is created on first use and
    reused until :meth:`close`.
    """

    def __init__(self, number_of_workers: int) -> None:
        if number_of_workers <= 0:
            raise ValueError(f"number_of_workers must be positive, got {number_of_workers}")
        self.number_of_workers = number_of_workers
        self._executor: Optional[ThreadPoolExecutor] = None

    def _ensure_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.number_of_workers, thread_name_prefix="termsum-worker"
            )
        return self._executor

    def run(self, task: ChunkTask, count: int) -> List[T]:
        """
        Run ``task(worker, chunk)`` for every chunk of ``range(count)``.

        Every worker runs to completion before any error is raised; the error
        of the lowest-numbered failing worker is then re-raised unchanged.

        Returns:
            The task results in worker order.
        """
        chunks = partition(count, self.number_of_workers)
        if len(chunks) == 1:
            return [task(0, chunks[0])]

        executor = self._ensure_executor()
        futures: List[Future] = [
            executor.submit(task, worker, chunk) for worker, chunk in enumerate(chunks)
        ]
        wait(futures)

        errors = [future.exception() for future in futures]
        failed = [worker for worker, error in enumerate(errors) if error is not None]
        if failed:
            logger.warning(
                "%d of %d workers failed during evaluation; re-raising the error of worker %d",
                len(failed),
                len(chunks),
                failed[0],
            )
            raise errors[failed[0]]
        return [future.result() for future in futures]

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None


__all__ = ["WorkerPool"]
