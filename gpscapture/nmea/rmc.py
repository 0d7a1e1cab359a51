"""RMC sentence parser.

RMC Sentence Format:
    $GPRMC,123519,A,4807.038,N,01131.000,E,022.4,084.4,230394,003.1,W*6A
           |      | |        | |         | |     |     |      |
           |      | |        | |         | |     |     |      +-- Magnetic variation
           |      | |        | |         | |     |     +-- Date (DDMMYY)
           |      | |        | |         | |     +-- Course over ground (degrees true)
           |      | |        | |         | +-- Speed over ground (knots)
           |      | |        | +---------+-- Longitude + E/W
           |      | +--------+-- Latitude + N/S
           |      +-- Status (A = valid, V = warning)
           +-- UTC time (HHMMSS.ss)
"""

from gpscapture.nmea.checksum import strip_checksum
from gpscapture.nmea.fields import (
    VALID_TALKER_IDS,
    compass_direction,
    knots_to_kilometers_per_hour,
    knots_to_miles_per_hour,
    parse_date_field,
    parse_float_field,
    parse_latitude,
    parse_longitude,
    parse_time_field,
)
from gpscapture.nmea.types import RMCData

__all__ = ["MINIMUM_FIELD_COUNT", "parse_rmc", "rmc_from_fields"]

# Identifier through date; magnetic variation and mode are optional.
MINIMUM_FIELD_COUNT = 10


def rmc_from_fields(fields: list[str]) -> RMCData | None:
    """Build an RMCData from already-split fields.

    Field indices:
        fields[1] -> utc_time
        fields[2] -> status
        fields[3], fields[4] -> latitude + hemisphere
        fields[5], fields[6] -> longitude + hemisphere
        fields[7] -> speed in knots
        fields[8] -> course over ground
        fields[9] -> date

    Returns:
        RMCData, or None if there are fewer than 10 fields.
    """
    if len(fields) < MINIMUM_FIELD_COUNT:
        return None

    speed_knots = parse_float_field(fields[7])
    course = parse_float_field(fields[8])

    return RMCData(
        utc_time=parse_time_field(fields[1]),
        # Anything other than an explicit "A" is treated as a warning.
        status="A" if fields[2] == "A" else "V",
        latitude_degrees=parse_latitude(fields[3], fields[4]),
        longitude_degrees=parse_longitude(fields[5], fields[6]),
        speed_knots=speed_knots,
        speed_kilometers_per_hour=knots_to_kilometers_per_hour(speed_knots),
        speed_miles_per_hour=knots_to_miles_per_hour(speed_knots),
        course_degrees=course,
        course_direction=compass_direction(course),
        utc_date=parse_date_field(fields[9]),
    )


def parse_rmc(sentence: str) -> RMCData | None:
    """Parse a single RMC sentence.

    Returns:
        RMCData, or None if the checksum fails, the talker is unsupported,
        the sentence is not RMC, or there are too few fields.

    Example:
        >>> parse_rmc("$GPRMC,123519,A,4807.038,N,01131.000,E,022.4,084.4,230394,003.1,W*6A").status
        'A'
    """
    payload = strip_checksum(sentence)
    if payload is None:
        return None
    fields = payload.split(",")
    identifier = fields[0]
    if identifier[:2] not in VALID_TALKER_IDS or identifier[2:] != "RMC":
        return None
    return rmc_from_fields(fields)
