"""Helper sinks and factories for dispatch tests."""

import asyncio
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from gpscapture.dispatch import FailurePolicy, SinkKind, SinkRecord
from gpscapture.dispatch.sinks import Sink
from gpscapture.errors import DeliveryError
from gpscapture.position import Snapshot

_BASE_TIME = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


def make_snapshot(index: int = 0, **overrides) -> Snapshot:
    values = {
        "timestamp": _BASE_TIME + timedelta(seconds=5 * index),
        "latitude": 48.1173 + index * 0.001,
        "longitude": 11.5167,
        "altitude": 545.4,
        "speed_kmh": 41.49,
        "satellites": 8,
        "fix_quality": 1,
        "hdop": 0.9,
        "status": "A",
        "device_id": "rover-1",
    }
    values.update(overrides)
    return Snapshot(**values)


def make_record(index: int = 0, kind: SinkKind = SinkKind.FILE, **overrides) -> SinkRecord:
    return SinkRecord(kind=kind, snapshot=make_snapshot(index, **overrides))


class RecordingSink(Sink):
    """Stores delivered batches; fails the first ``failures`` attempts."""

    def __init__(
        self,
        kind: SinkKind = SinkKind.FILE,
        failures: int = 0,
        delay: float = 0.0,
        failure_policy: FailurePolicy | None = None,
    ) -> None:
        super().__init__(failure_policy)
        self.kind = kind
        self.failures = failures
        self.delay = delay
        self.batches: list[list[SinkRecord]] = []
        self.attempts = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.opened = False
        self.closed = False

    async def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        self.closed = True

    async def deliver_batch(self, records: Sequence[SinkRecord]) -> None:
        self.attempts += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.failures > 0:
                self.failures -= 1
                raise DeliveryError("simulated failure", sink=str(self.kind))
            self.batches.append(list(records))
        finally:
            self.in_flight -= 1

    @property
    def delivered(self) -> list[SinkRecord]:
        return [record for batch in self.batches for record in batch]


class RecordingSleep:
    """Stands in for ``asyncio.sleep`` and remembers the requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
