"""DispatchHub: fan accepted snapshots out to one pipeline per enabled sink."""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from gpscapture.dispatch.pipeline import SinkPipeline
from gpscapture.dispatch.records import SinkKind, SinkRecord
from gpscapture.position import Snapshot

__all__ = ["DispatchHub"]

logger = logging.getLogger(__name__)


class DispatchHub:
    """Owns the pipelines for the configured sink set.

    Pipelines are independent: a slow or failing sink never delays another,
    and nothing raised inside dispatch reaches the publisher.
    """

    def __init__(self, pipelines: Mapping[SinkKind, SinkPipeline]) -> None:
        self.pipelines: dict[SinkKind, SinkPipeline] = dict(pipelines)
        self.published = 0

    @property
    def kinds(self) -> frozenset[SinkKind]:
        return frozenset(self.pipelines)

    async def start(self) -> None:
        for kind, pipeline in self.pipelines.items():
            try:
                await pipeline.start()
            except Exception:
                # The timer is already running; deliveries re-open the sink.
                logger.exception("Failed to open %s sink", kind)
        logger.info(
            "Dispatching to %s", ", ".join(sorted(map(str, self.pipelines))) or "no sinks"
        )

    def publish(self, snapshot: Snapshot) -> None:
        """Queue *snapshot* for every sink; never blocks and never raises."""
        self.published += 1
        for kind, pipeline in self.pipelines.items():
            try:
                pipeline.enqueue(SinkRecord(kind=kind, snapshot=snapshot))
            except Exception:
                logger.exception("Failed to enqueue snapshot for %s sink", kind)

    async def shutdown(self, grace: float) -> None:
        """Drain every pipeline concurrently, each bounded by *grace* seconds."""
        results = await asyncio.gather(
            *(pipeline.shutdown(grace) for pipeline in self.pipelines.values()),
            return_exceptions=True,
        )
        for kind, result in zip(self.pipelines, results, strict=True):
            if isinstance(result, Exception):
                logger.error("Error shutting down %s sink", kind, exc_info=result)

    def stats(self) -> dict[str, Any]:
        return {
            "published": self.published,
            "sinks": {str(kind): pipeline.describe() for kind, pipeline in self.pipelines.items()},
        }
