"""GGA sentence parser.

GGA Sentence Format:
    $GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,*47
           |      |        | |         | | |  |   |     | |     |
           |      |        | |         | | |  |   |     | |     +-- DGPS info (optional)
           |      |        | |         | | |  |   |     | +-- Geoid height (M=meters)
           |      |        | |         | | |  |   +-----+-- Altitude above MSL
           |      |        | |         | | |  +-- HDOP (horizontal dilution)
           |      |        | |         | | +-- Number of satellites
           |      |        | |         | +-- Fix quality
           |      |        | +---------+-- Longitude + E/W
           |      +--------+-- Latitude + N/S
           +-- UTC time (HHMMSS.ss)
"""

from gpscapture.nmea.checksum import strip_checksum
from gpscapture.nmea.fields import (
    VALID_TALKER_IDS,
    parse_float_field,
    parse_int_field,
    parse_latitude,
    parse_longitude,
    parse_time_field,
)
from gpscapture.nmea.types import GGAData

__all__ = ["MINIMUM_FIELD_COUNT", "gga_from_fields", "parse_gga"]

# Identifier through the geoid units; the DGPS age/station fields may be cut.
MINIMUM_FIELD_COUNT = 13


def gga_from_fields(fields: list[str]) -> GGAData | None:
    """Build a GGAData from already-split fields.

    Field indices:
        fields[1]  -> utc_time
        fields[2], fields[3] -> latitude + hemisphere
        fields[4], fields[5] -> longitude + hemisphere
        fields[6]  -> fix_quality
        fields[7]  -> num_satellites
        fields[8]  -> HDOP
        fields[9]  -> altitude above MSL (meters)
        fields[11] -> geoid height (meters)

    Returns:
        GGAData, or None if there are fewer than 13 fields.
    """
    if len(fields) < MINIMUM_FIELD_COUNT:
        return None

    return GGAData(
        utc_time=parse_time_field(fields[1]),
        latitude_degrees=parse_latitude(fields[2], fields[3]),
        longitude_degrees=parse_longitude(fields[4], fields[5]),
        fix_quality=parse_int_field(fields[6]),
        num_satellites=parse_int_field(fields[7]),
        horizontal_dilution_of_precision=parse_float_field(fields[8]),
        altitude_meters=parse_float_field(fields[9]),
        geoid_height_meters=parse_float_field(fields[11]),
    )


def parse_gga(sentence: str) -> GGAData | None:
    """Parse a single GGA sentence.

    Returns:
        GGAData, or None if the checksum fails, the talker is unsupported,
        the sentence is not GGA, or there are too few fields.

    Example:
        >>> result = parse_gga("$GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,*47")
        >>> result.latitude_degrees
        48.1173
        >>> result.num_satellites
        8
    """
    payload = strip_checksum(sentence)
    if payload is None:
        return None
    fields = payload.split(",")
    identifier = fields[0]
    if identifier[:2] not in VALID_TALKER_IDS or identifier[2:] != "GGA":
        return None
    return gga_from_fields(fields)
