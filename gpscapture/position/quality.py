"""Quality gate applied to every snapshot before movement filtering."""

from gpscapture.position.types import Snapshot

__all__ = ["MINIMUM_FIX_QUALITY", "MINIMUM_SATELLITES", "is_acceptable"]

MINIMUM_FIX_QUALITY = 1
MINIMUM_SATELLITES = 3


def is_acceptable(snapshot: Snapshot) -> bool:
    """Return True when *snapshot* is good enough to dispatch.

    Only values that are present and bad reject; a missing fix quality or
    satellite count is accepted. Latitude and longitude are required.
    """
    if snapshot.latitude is None or snapshot.longitude is None:
        return False
    if snapshot.fix_quality is not None and snapshot.fix_quality < MINIMUM_FIX_QUALITY:
        return False
    if snapshot.satellites is not None and snapshot.satellites < MINIMUM_SATELLITES:
        return False
    return abs(snapshot.latitude) <= 90.0 and abs(snapshot.longitude) <= 180.0
