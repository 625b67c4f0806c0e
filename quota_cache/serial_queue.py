"""Single-consumer task queue that serializes work on one namespace.

Read-modify-write sequences against the store are not atomic, so every
mutating namespace operation is funnelled through one of these queues and
runs strictly in submission order.
"""

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")

Job = Callable[[], Awaitable[T]]


class SerialQueue:
    """
    Runs submitted jobs one at a time, first in first out.

    The consumer task starts on demand and exits once the queue drains, so
    an idle queue holds no running task.

    Example:
        queue = SerialQueue("savedPoints")
        result = await queue.submit(lambda: do_work())
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._queue: asyncio.Queue[tuple[Job, asyncio.Future]] = asyncio.Queue()
        self._worker: asyncio.Task | None = None

    def __repr__(self) -> str:
        return f"<SerialQueue name={self.name!r} pending={self.pending}>"

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def busy(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def submit(self, job: Job) -> T:
        """Enqueue ``job`` and wait for its result.

        Cancelling the waiting caller does not stop a job that was already
        queued; its outcome is simply discarded. A job that is itself cancelled
        cancels its caller and every job queued behind it.
        """
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((job, future))
        if not self.busy:
            self._worker = asyncio.create_task(self._drain())
        return await future

    async def _drain(self) -> None:
        while not self._queue.empty():
            job, future = self._queue.get_nowait()
            try:
                result = await job()
            except asyncio.CancelledError:
                future.cancel()
                self._cancel_pending()
                raise
            except Exception as e:
                if not future.done():
                    future.set_exception(e)
                else:
                    logger.warning("Queued job failed after caller left", queue=self.name, error=str(e))
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._queue.task_done()

    def _cancel_pending(self) -> None:
        """Cancel jobs still waiting behind a cancelled one."""
        while not self._queue.empty():
            _, future = self._queue.get_nowait()
            future.cancel()
            self._queue.task_done()
        logger.warning("Queue worker cancelled", queue=self.name)

    async def join(self) -> None:
        """Wait until every queued job has run."""
        await self._queue.join()
