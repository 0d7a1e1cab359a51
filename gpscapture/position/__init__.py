"""Position accumulation, quality gating and movement filtering."""

from gpscapture.position.accumulator import PositionAccumulator
from gpscapture.position.movement import MovementFilter, haversine_distance
from gpscapture.position.quality import is_acceptable
from gpscapture.position.screening import ScreeningState, Verdict, screen_snapshot
from gpscapture.position.types import PositionState, Snapshot

__all__ = [
    "MovementFilter",
    "PositionAccumulator",
    "PositionState",
    "ScreeningState",
    "Snapshot",
    "Verdict",
    "haversine_distance",
    "is_acceptable",
    "screen_snapshot",
]
