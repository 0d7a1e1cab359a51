"""Batched, retried fan-out of snapshots to delivery sinks."""

from gpscapture.dispatch.hub import DispatchHub
from gpscapture.dispatch.pipeline import PipelineStats, SinkPipeline
from gpscapture.dispatch.records import FailurePolicy, SinkKind, SinkRecord
from gpscapture.dispatch.retry import RetryPolicy, calculate_delay, retry_async

__all__ = [
    "DispatchHub",
    "FailurePolicy",
    "PipelineStats",
    "RetryPolicy",
    "SinkKind",
    "SinkPipeline",
    "SinkRecord",
    "calculate_delay",
    "retry_async",
]
