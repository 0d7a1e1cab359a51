"""SinkPipeline: per-sink queue, batching, timer flush and failure handling.

Each enabled sink gets exactly one pipeline. All of its state lives on the
event loop, and a lock keeps at most one batch in flight per sink:

    enqueue() --(len >= batch_size)--> flush task --+
    timer ------(queue non-empty, idle)-------------+--> flush_once()
                                                         |  take <= batch_size
                                                         |  retry_async(deliver)
                                                         +-> success / policy
"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from typing import Any

from gpscapture.dispatch.records import FailurePolicy, SinkRecord
from gpscapture.dispatch.retry import RetryPolicy, retry_async
from gpscapture.dispatch.sinks.base import Sink
from gpscapture.errors import RetryExhaustedError

__all__ = ["PipelineStats", "SinkPipeline"]

logger = logging.getLogger(__name__)

DEFAULT_MAX_QUEUE_SIZE = 10_000


@dataclass
class PipelineStats:
    enqueued: int = 0
    delivered_records: int = 0
    delivered_batches: int = 0
    failed_batches: int = 0
    requeued_records: int = 0
    dropped_records: int = 0
    overflowed_records: int = 0
    abandoned_records: int = 0


class SinkPipeline:
    """Batches records for one sink and delivers them with retries.

    Args:
        sink: Destination for the batches.
        batch_size: Records per delivery; reaching it triggers a flush.
        flush_interval: Seconds between timer-driven flushes.
        retry_policy: Backoff applied to each batch.
        max_queue_size: Queue bound; the oldest record is discarded on
            overflow.
        sleep: Awaitable used for retry backoff.
    """

    def __init__(
        self,
        sink: Sink,
        *,
        batch_size: int = 10,
        flush_interval: float = 5.0,
        retry_policy: RetryPolicy | None = None,
        max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if max_queue_size < batch_size:
            raise ValueError("max_queue_size must be >= batch_size")
        self.sink = sink
        self.batch_size = batch_size
        self.flush_interval = flush_interval
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_queue_size = max_queue_size
        self.stats = PipelineStats()
        self.queue: deque[SinkRecord] = deque()
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._timer_task: asyncio.Task[None] | None = None
        self._flush_task: asyncio.Task[bool] | None = None
        self.flush_count = 0

    @property
    def name(self) -> str:
        return str(self.sink.kind)

    @property
    def flushing(self) -> bool:
        return self._lock.locked()

    # --- lifecycle ------------------------------------------------------------

    async def start(self) -> None:
        """Start the flush timer, then open the sink.

        The timer runs even when ``open`` raises; sinks re-open lazily on
        their next delivery.
        """
        self._timer_task = asyncio.get_running_loop().create_task(
            self._run_timer(), name=f"{self.name}-flush-timer"
        )
        await self.sink.open()

    async def shutdown(self, grace: float) -> None:
        """Stop the timer, drain for up to *grace* seconds, then close the sink."""
        await self._stop_timer()
        try:
            await self.drain(grace)
        finally:
            await self.sink.close()

    async def _stop_timer(self) -> None:
        if self._timer_task is None:
            return
        self._timer_task.cancel()
        try:
            await self._timer_task
        except asyncio.CancelledError:
            pass
        self._timer_task = None

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self.flush_interval)
            if not self.queue or self.flushing:
                continue
            try:
                await self.flush_once()
            except Exception:
                logger.exception("Timer flush for %s sink failed", self.name)

    # --- enqueue / flush ------------------------------------------------------

    def enqueue(self, record: SinkRecord) -> None:
        """Append *record*; never blocks and never raises on a full queue."""
        if len(self.queue) >= self.max_queue_size:
            self.queue.popleft()
            self.stats.overflowed_records += 1
        self.queue.append(record)
        self.stats.enqueued += 1
        if len(self.queue) >= self.batch_size:
            self._schedule_flush()

    def _schedule_flush(self) -> None:
        if self._flush_task is not None and not self._flush_task.done():
            return
        task = asyncio.get_running_loop().create_task(
            self.flush_once(), name=f"{self.name}-flush"
        )
        task.add_done_callback(self._on_flush_done)
        self._flush_task = task

    def _on_flush_done(self, task: "asyncio.Task[bool]") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Flush for %s sink raised unexpectedly", self.name, exc_info=error
            )
            return
        # A failed batch waits for the timer instead of retrying in a tight loop.
        if task.result() and len(self.queue) >= self.batch_size:
            self._schedule_flush()

    def _take_batch(self) -> list[SinkRecord]:
        count = min(self.batch_size, len(self.queue))
        return [self.queue.popleft() for _ in range(count)]

    async def flush_once(self) -> bool:
        """Deliver one batch.

        Returns:
            True if a batch was delivered, False if the queue was empty or
            the batch failed.
        """
        async with self._lock:
            batch = self._take_batch()
            if not batch:
                return False
            self.flush_count += 1
            try:
                await retry_async(
                    lambda: self.sink.deliver_batch(batch),
                    self.retry_policy,
                    operation_name=f"{self.name} delivery",
                    sleep=self._sleep,
                )
            except RetryExhaustedError:
                self._handle_failure(batch)
                return False
            except asyncio.CancelledError:
                # Interrupted mid-delivery; the batch returns to the head of the queue.
                self.queue.extendleft(reversed(batch))
                raise

            self.stats.delivered_records += len(batch)
            self.stats.delivered_batches += 1
            logger.debug("Delivered %d record(s) to %s sink", len(batch), self.name)
            return True

    def _handle_failure(self, batch: list[SinkRecord]) -> None:
        self.stats.failed_batches += 1
        if self.sink.failure_policy is FailurePolicy.REQUEUE:
            self.queue.extendleft(reversed(batch))
            self.stats.requeued_records += len(batch)
            while len(self.queue) > self.max_queue_size:
                self.queue.popleft()
                self.stats.overflowed_records += 1
            logger.warning(
                "Requeued %d record(s) for %s sink after retries were exhausted",
                len(batch),
                self.name,
            )
        else:
            self.stats.dropped_records += len(batch)
            logger.error(
                "Dropped %d record(s) for %s sink after retries were exhausted",
                len(batch),
                self.name,
            )

    async def drain(self, grace: float) -> None:
        """Flush until the queue is empty or *grace* runs out.

        A dropped batch moves straight on to the next one; a requeued batch
        waits one base retry delay before it is tried again.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + grace
        while self.queue:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                delivered = await asyncio.wait_for(self.flush_once(), remaining)
            except TimeoutError:
                break
            if delivered or self.sink.failure_policy is not FailurePolicy.REQUEUE:
                continue
            await self._sleep(max(0.0, min(self.retry_policy.base_delay, deadline - loop.time())))

        if self.queue:
            self.stats.abandoned_records += len(self.queue)
            logger.warning(
                "Shutting down %s sink with %d undelivered record(s)",
                self.name,
                len(self.queue),
            )

    def describe(self) -> dict[str, Any]:
        return {
            **self.sink.describe(),
            "queue_size": len(self.queue),
            "batch_size": self.batch_size,
            "flushing": self.flushing,
            **asdict(self.stats),
        }
