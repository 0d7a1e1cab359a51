"""Sink contract shared by every delivery transport."""

import abc
from collections.abc import Sequence
from typing import Any

from gpscapture.dispatch.records import FailurePolicy, SinkKind, SinkRecord

__all__ = ["Sink"]


class Sink(abc.ABC):
    """One delivery destination.

    ``deliver_batch`` either returns (the whole batch is stored) or raises;
    a raise means nothing from the batch should be considered delivered.
    Retrying is the pipeline's job, not the sink's.
    """

    kind: SinkKind
    default_failure_policy: FailurePolicy = FailurePolicy.DROP

    def __init__(self, failure_policy: FailurePolicy | None = None) -> None:
        self.failure_policy = failure_policy or self.default_failure_policy

    async def open(self) -> None:
        """Acquire long-lived resources (sessions, clients, directories)."""

    async def close(self) -> None:
        """Release whatever :meth:`open` acquired."""

    @abc.abstractmethod
    async def deliver_batch(self, records: Sequence[SinkRecord]) -> None: ...

    def describe(self) -> dict[str, Any]:
        return {"kind": str(self.kind), "failure_policy": str(self.failure_policy)}
