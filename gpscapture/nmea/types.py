"""NMEA data types for decoded sentences.

Design Decisions:
    1. Optional fields (float | None): NMEA fields may be empty, indicated by
       consecutive commas. None means "this sentence did not supply the
       value", which is what lets the position accumulator keep the previous
       value instead of overwriting it with zero.

    2. Unit conversions happen at decode time. Each dataclass carries the
       speeds and compass label already derived, so consumers never repeat
       the knots arithmetic.
"""

from dataclasses import dataclass
from datetime import date, time
from typing import TypeAlias

__all__ = ["DecodedSentence", "GGAData", "RMCData", "VTGData"]


@dataclass
class RMCData:
    """Decoded RMC (Recommended Minimum Specific GNSS Data) sentence.

    Attributes:
        utc_time: Time of fix, or None if the field was empty.
        status: "A" when the receiver reports valid data, "V" otherwise.
        latitude_degrees: Signed decimal degrees, positive=North.
        longitude_degrees: Signed decimal degrees, positive=East.
        speed_knots: Speed over ground in knots.
        speed_kilometers_per_hour: ``speed_knots * 1.852``.
        speed_miles_per_hour: ``speed_knots * 1.15078``.
        course_degrees: Course over ground relative to true north.
        course_direction: 16-point compass label for ``course_degrees``.
        utc_date: Date of fix, or None if the field was empty.

    Example:
        >>> rmc = decode_sentence("$GPRMC,123519,A,4807.038,N,01131.000,E,022.4,084.4,230394,003.1,W*6A")
        >>> rmc.speed_kilometers_per_hour
        41.4848
        >>> rmc.course_direction
        'E'
    """

    utc_time: time | None
    status: str
    latitude_degrees: float | None
    longitude_degrees: float | None
    speed_knots: float | None
    speed_kilometers_per_hour: float | None
    speed_miles_per_hour: float | None
    course_degrees: float | None
    course_direction: str | None
    utc_date: date | None


@dataclass
class GGAData:
    """Decoded GGA (Global Positioning System Fix Data) sentence.

    Attributes:
        utc_time: Time of fix, or None if the field was empty.
        latitude_degrees: Signed decimal degrees, positive=North.
        longitude_degrees: Signed decimal degrees, positive=East.
        fix_quality: GPS quality indicator (0 = invalid, 1 = GPS, 2 = DGPS,
            4 = RTK fixed, 5 = RTK float, 6 = estimated ...), or None when
            the field was empty.
        num_satellites: Satellites used in the solution.
        horizontal_dilution_of_precision: HDOP, lower is better.
        altitude_meters: Antenna altitude above mean sea level.
        geoid_height_meters: Geoid separation above the WGS84 ellipsoid.
    """

    utc_time: time | None
    latitude_degrees: float | None
    longitude_degrees: float | None
    fix_quality: int | None
    num_satellites: int | None
    horizontal_dilution_of_precision: float | None
    altitude_meters: float | None
    geoid_height_meters: float | None


@dataclass
class VTGData:
    """Decoded VTG (Track Made Good and Ground Speed) sentence.

    Attributes:
        track_true_degrees: Course relative to true north. Often empty when
            stationary because there is no heading without movement.
        track_magnetic_degrees: Course relative to magnetic north.
        speed_knots: Ground speed in knots.
        speed_kilometers_per_hour: Ground speed in km/h as reported.
        speed_miles_per_hour: ``speed_knots * 1.15078``.
        course_direction: 16-point compass label for ``track_true_degrees``.
    """

    track_true_degrees: float | None
    track_magnetic_degrees: float | None
    speed_knots: float | None
    speed_kilometers_per_hour: float | None
    speed_miles_per_hour: float | None
    course_direction: str | None


DecodedSentence: TypeAlias = RMCData | GGAData | VTGData
