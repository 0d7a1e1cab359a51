"""NMEA field parsing utilities.

NMEA fields are comma-separated and may be empty (consecutive commas indicate
missing data). Every parser here returns None for an empty or unparseable
field so a single bad value degrades to "absent" instead of rejecting the
whole sentence.
"""

from datetime import date, time

__all__ = [
    "COMPASS_POINTS",
    "KNOTS_TO_KILOMETERS_PER_HOUR",
    "KNOTS_TO_MILES_PER_HOUR",
    "VALID_TALKER_IDS",
    "compass_direction",
    "knots_to_kilometers_per_hour",
    "knots_to_miles_per_hour",
    "parse_date_field",
    "parse_float_field",
    "parse_int_field",
    "parse_latitude",
    "parse_longitude",
    "parse_string_field",
    "parse_time_field",
]


# Supported NMEA talker IDs for multi-constellation GNSS receivers.
#   GP = GPS (USA)
#   GN = Multi-GNSS (combined solution)
#   GL = GLONASS (Russia)
#   GA = Galileo (Europe)
#   GB = BeiDou (China)
#   GQ = QZSS (Japan)
VALID_TALKER_IDS = ("GP", "GN", "GL", "GA", "GB", "GQ")

KNOTS_TO_KILOMETERS_PER_HOUR = 1.852
KNOTS_TO_MILES_PER_HOUR = 1.15078

# 16-point compass rose, clockwise from north in 22.5 degree steps.
COMPASS_POINTS = (
    "N", "NNE", "NE", "ENE",
    "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW",
    "W", "WNW", "NW", "NNW",
)

_LATITUDE_DEGREE_DIGITS = 2
_LONGITUDE_DEGREE_DIGITS = 3


def parse_float_field(value: str) -> float | None:
    """Parse a string field to float, returning None if empty or invalid.

    Example:
        >>> parse_float_field("545.4")
        545.4
        >>> parse_float_field("")  # empty field
        None
    """
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def parse_int_field(value: str) -> int | None:
    """Parse a string field to int, returning None if empty or invalid.

    Example:
        >>> parse_int_field("08")
        8
    """
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_string_field(value: str) -> str | None:
    """Return the field unchanged, or None if empty."""
    if not value:
        return None
    return value


def _parse_coordinate(value: str, hemisphere: str, degree_digits: int) -> float | None:
    """Convert a degrees+decimal-minutes field to signed decimal degrees.

    The leading ``degree_digits`` characters are whole degrees; the remainder
    is decimal minutes. South and West hemispheres are negative.

    Args:
        value: Coordinate field, e.g. "4807.038" or "01131.000"
        hemisphere: "N", "S", "E" or "W"
        degree_digits: 2 for latitude, 3 for longitude

    Returns:
        Signed decimal degrees, or None if either field is empty or the
        coordinate is too short or not numeric.
    """
    if not value or not hemisphere:
        return None
    if len(value) < degree_digits + 2:
        return None
    try:
        degrees = int(value[:degree_digits])
        minutes = float(value[degree_digits:])
    except ValueError:
        return None

    decimal_degrees = degrees + minutes / 60.0
    if hemisphere in ("S", "W"):
        return -decimal_degrees
    return decimal_degrees


def parse_latitude(value: str, hemisphere: str) -> float | None:
    """Convert a ``ddmm.mmmm`` latitude to signed decimal degrees.

    Example:
        >>> parse_latitude("4807.038", "N")
        48.1173  # 48 + 7.038/60
        >>> parse_latitude("3356.123", "S")
        -33.93538333
    """
    return _parse_coordinate(value, hemisphere, _LATITUDE_DEGREE_DIGITS)


def parse_longitude(value: str, hemisphere: str) -> float | None:
    """Convert a ``dddmm.mmmm`` longitude to signed decimal degrees.

    Example:
        >>> parse_longitude("01131.000", "E")
        11.516666...
    """
    return _parse_coordinate(value, hemisphere, _LONGITUDE_DEGREE_DIGITS)


def parse_time_field(value: str) -> time | None:
    """Parse an ``hhmmss[.ss]`` UTC time field.

    Fractional seconds are kept to microsecond precision.

    Example:
        >>> parse_time_field("123519.50")
        datetime.time(12, 35, 19, 500000)
    """
    if len(value) < 6:
        return None
    try:
        hours = int(value[0:2])
        minutes = int(value[2:4])
        seconds = float(value[4:])
        whole = int(seconds)
        return time(hours, minutes, whole, round((seconds - whole) * 1_000_000) % 1_000_000)
    except ValueError:
        return None


def parse_date_field(value: str) -> date | None:
    """Parse a ``ddmmyy`` date field; two-digit years are in the 2000s.

    Example:
        >>> parse_date_field("230394")
        datetime.date(2094, 3, 23)
    """
    if len(value) != 6:
        return None
    try:
        return date(2000 + int(value[4:6]), int(value[2:4]), int(value[0:2]))
    except ValueError:
        return None


def knots_to_kilometers_per_hour(knots: float | None) -> float | None:
    if knots is None:
        return None
    return knots * KNOTS_TO_KILOMETERS_PER_HOUR


def knots_to_miles_per_hour(knots: float | None) -> float | None:
    if knots is None:
        return None
    return knots * KNOTS_TO_MILES_PER_HOUR


def compass_direction(degrees: float | None) -> str | None:
    """Map a course in degrees to a 16-point compass label.

    The course is rounded to the nearest 22.5 degree sector and wrapped, so
    359 degrees is "N" and negative courses wrap the other way.

    Example:
        >>> compass_direction(84.4)
        'E'
        >>> compass_direction(350.0)
        'N'
    """
    if degrees is None:
        return None
    index = round(degrees / 22.5) % len(COMPASS_POINTS)
    return COMPASS_POINTS[index]
