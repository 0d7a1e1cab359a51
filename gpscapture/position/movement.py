"""Great-circle distance and the minimum-movement filter."""

import math

from gpscapture.position.types import Snapshot

__all__ = ["EARTH_RADIUS_METERS", "MovementFilter", "haversine_distance"]

EARTH_RADIUS_METERS = 6_371_000.0


def haversine_distance(
    latitude1: float, longitude1: float, latitude2: float, longitude2: float
) -> float:
    """Distance in meters between two points on a spherical Earth.

    Example:
        >>> round(haversine_distance(0.0, 0.0, 0.0, 1.0))
        111195
    """
    phi1 = math.radians(latitude1)
    phi2 = math.radians(latitude2)
    delta_phi = math.radians(latitude2 - latitude1)
    delta_lambda = math.radians(longitude2 - longitude1)

    a = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


class MovementFilter:
    """Suppresses snapshots that have not moved far enough.

    The reference point is the last *emitted* snapshot. It is passed in
    and returned rather than stored so the caller owns all screening state.
    """

    def __init__(self, minimum_distance_meters: float) -> None:
        if minimum_distance_meters < 0:
            raise ValueError("minimum_distance_meters must be >= 0")
        self.minimum_distance_meters = minimum_distance_meters

    def distance_from(self, previous: Snapshot, candidate: Snapshot) -> float:
        return haversine_distance(
            previous.latitude, previous.longitude, candidate.latitude, candidate.longitude
        )

    def should_emit(self, previous: Snapshot | None, candidate: Snapshot) -> bool:
        """True if *candidate* should be dispatched given the last emitted one.

        The first snapshot always passes. After that the candidate passes
        when it is at least ``minimum_distance_meters`` from *previous*.
        """
        if previous is None:
            return True
        return self.distance_from(previous, candidate) >= self.minimum_distance_meters
