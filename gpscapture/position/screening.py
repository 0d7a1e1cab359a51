"""Quality and movement screening with explicit, caller-owned state."""

import enum
import logging
from dataclasses import dataclass

from gpscapture.position.movement import MovementFilter
from gpscapture.position.quality import is_acceptable
from gpscapture.position.types import Snapshot

__all__ = ["ScreeningState", "Verdict", "screen_snapshot"]

logger = logging.getLogger(__name__)


class Verdict(enum.Enum):
    EMIT = "emit"
    INVALID = "invalid"
    STATIONARY = "stationary"


@dataclass
class ScreeningState:
    last_emitted: Snapshot | None = None
    emitted: int = 0
    invalid: int = 0
    stationary: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "emitted": self.emitted,
            "invalid": self.invalid,
            "stationary": self.stationary,
        }


def screen_snapshot(
    snapshot: Snapshot, state: ScreeningState, movement: MovementFilter
) -> Verdict:
    """Decide whether *snapshot* is dispatched and update *state* to match."""
    if not is_acceptable(snapshot):
        state.invalid += 1
        logger.debug(
            "Rejected snapshot lat=%s lon=%s fix=%s sats=%s",
            snapshot.latitude,
            snapshot.longitude,
            snapshot.fix_quality,
            snapshot.satellites,
        )
        return Verdict.INVALID

    if not movement.should_emit(state.last_emitted, snapshot):
        state.stationary += 1
        return Verdict.STATIONARY

    state.last_emitted = snapshot
    state.emitted += 1
    return Verdict.EMIT
