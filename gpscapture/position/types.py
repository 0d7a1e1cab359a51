"""Position state and the immutable snapshots taken from it."""

from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Any

__all__ = ["PositionState", "Snapshot"]


@dataclass(frozen=True)
class Snapshot:
    """An immutable copy of the position state at one capture tick.

    ``to_dict`` is the JSON shape shared by every sink: snake_case keys and
    an ISO-8601 UTC timestamp.
    """

    timestamp: datetime
    latitude: float | None = None
    longitude: float | None = None
    altitude: float | None = None
    speed_kmh: float | None = None
    speed_mph: float | None = None
    course: float | None = None
    course_direction: str | None = None
    satellites: int | None = None
    fix_quality: int | None = None
    hdop: float | None = None
    status: str | None = None
    device_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data

    def with_timestamp(self, timestamp: datetime) -> "Snapshot":
        return replace(self, timestamp=timestamp)


@dataclass
class PositionState:
    """The running, partially-updated view of the receiver's position.

    Each decoded sentence only overwrites the fields it supplies; everything
    else keeps its last known value until a later sentence replaces it.
    """

    device_id: str | None = None
    timestamp: datetime | None = None
    latitude: float | None = None
    longitude: float | None = None
    altitude: float | None = None
    speed_kmh: float | None = None
    speed_mph: float | None = None
    course: float | None = None
    course_direction: str | None = None
    satellites: int | None = None
    fix_quality: int | None = None
    hdop: float | None = None
    status: str | None = None

    @property
    def has_position(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def snapshot(self, timestamp: datetime) -> Snapshot:
        """Freeze the current values, stamped with *timestamp*."""
        self.timestamp = timestamp
        return Snapshot(
            timestamp=timestamp,
            latitude=self.latitude,
            longitude=self.longitude,
            altitude=self.altitude,
            speed_kmh=self.speed_kmh,
            speed_mph=self.speed_mph,
            course=self.course,
            course_direction=self.course_direction,
            satellites=self.satellites,
            fix_quality=self.fix_quality,
            hdop=self.hdop,
            status=self.status,
            device_id=self.device_id,
        )
