"""Values that travel through the dispatch layer."""

import enum
from dataclasses import dataclass
from typing import Any

from gpscapture.position import Snapshot

__all__ = ["FailurePolicy", "SinkKind", "SinkRecord"]


class SinkKind(enum.StrEnum):
    FILE = "file"
    API = "api"
    BLOB = "blob"
    DATABASE = "database"


class FailurePolicy(enum.StrEnum):
    """What a pipeline does with a batch once its retries are exhausted.

    REQUEUE puts the batch back at the head of the queue (at-least-once).
    DROP discards it and counts the loss (at-most-once).
    """

    REQUEUE = "requeue"
    DROP = "drop"


@dataclass(frozen=True)
class SinkRecord:
    kind: SinkKind
    snapshot: Snapshot

    def to_dict(self) -> dict[str, Any]:
        return self.snapshot.to_dict()
