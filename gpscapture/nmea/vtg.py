"""VTG sentence parser.

VTG Sentence Format:
    $GPVTG,054.7,T,034.4,M,005.5,N,010.2,K*48
           |     | |     | |     | |     |
           |     | |     | |     | +-----+-- Speed in km/h
           |     | |     | +-----+-- Speed in knots
           |     | +-----+-- Track (magnetic north, degrees)
           +-----+-- Track (true north, degrees)

NMEA 2.3+ receivers append a mode indicator after the km/h unit; it is not
used here.
"""

from gpscapture.nmea.checksum import strip_checksum
from gpscapture.nmea.fields import (
    VALID_TALKER_IDS,
    compass_direction,
    knots_to_miles_per_hour,
    parse_float_field,
)
from gpscapture.nmea.types import VTGData

__all__ = ["MINIMUM_FIELD_COUNT", "parse_vtg", "vtg_from_fields"]

MINIMUM_FIELD_COUNT = 9


def vtg_from_fields(fields: list[str]) -> VTGData | None:
    """Build a VTGData from already-split fields.

    Field indices:
        fields[1] -> track (true)
        fields[3] -> track (magnetic)
        fields[5] -> speed in knots
        fields[7] -> speed in km/h

    The km/h value is taken as reported rather than derived from knots, and
    mph is derived from knots.

    Returns:
        VTGData, or None if there are fewer than 9 fields.
    """
    if len(fields) < MINIMUM_FIELD_COUNT:
        return None

    track_true = parse_float_field(fields[1])
    speed_knots = parse_float_field(fields[5])

    return VTGData(
        track_true_degrees=track_true,
        track_magnetic_degrees=parse_float_field(fields[3]),
        speed_knots=speed_knots,
        speed_kilometers_per_hour=parse_float_field(fields[7]),
        speed_miles_per_hour=knots_to_miles_per_hour(speed_knots),
        course_direction=compass_direction(track_true),
    )


def parse_vtg(sentence: str) -> VTGData | None:
    """Parse a single VTG sentence.

    Example:
        >>> vtg = parse_vtg("$GPVTG,054.7,T,034.4,M,005.5,N,010.2,K*48")
        >>> vtg.speed_kilometers_per_hour
        10.2
        >>> vtg.course_direction
        'NE'
    """
    payload = strip_checksum(sentence)
    if payload is None:
        return None
    fields = payload.split(",")
    identifier = fields[0]
    if identifier[:2] not in VALID_TALKER_IDS or identifier[2:] != "VTG":
        return None
    return vtg_from_fields(fields)
