"""GPS capture package: NMEA decoding, position screening and dispatch."""

from gpscapture.capture import CaptureLoop, CaptureState
from gpscapture.config import ConfigurationError, Settings, get_settings, load_settings
from gpscapture.dispatch import DispatchHub, FailurePolicy, SinkKind, SinkPipeline
from gpscapture.errors import CaptureError, ConnectionFailedError, DeliveryError, RetryExhaustedError
from gpscapture.nmea import decode_sentence
from gpscapture.position import PositionAccumulator, Snapshot
from gpscapture.service import CaptureService

__all__ = [
    "CaptureError",
    "CaptureLoop",
    "CaptureService",
    "CaptureState",
    "ConfigurationError",
    "ConnectionFailedError",
    "DeliveryError",
    "DispatchHub",
    "FailurePolicy",
    "PositionAccumulator",
    "RetryExhaustedError",
    "Settings",
    "SinkKind",
    "SinkPipeline",
    "Snapshot",
    "decode_sentence",
    "get_settings",
    "load_settings",
]
