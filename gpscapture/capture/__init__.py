"""Serial capture loop."""

from gpscapture.capture.loop import CaptureLoop, CaptureState

__all__ = ["CaptureLoop", "CaptureState"]
