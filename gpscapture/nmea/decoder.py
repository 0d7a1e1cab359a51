"""Single entry point that turns one raw line into a decoded sentence.

Unknown sentence types, unsupported talkers, bad checksums and truncated
lines all come back as None. NMEA streams routinely carry noise and
sentence types this project does not use, so none of those cases is an
error and nothing is logged for them.
"""

from collections.abc import Callable

from gpscapture.nmea.checksum import strip_checksum
from gpscapture.nmea.fields import VALID_TALKER_IDS
from gpscapture.nmea.gga import gga_from_fields
from gpscapture.nmea.rmc import rmc_from_fields
from gpscapture.nmea.types import DecodedSentence
from gpscapture.nmea.vtg import vtg_from_fields

__all__ = ["SUPPORTED_SENTENCE_TYPES", "decode_sentence"]

_BUILDERS: dict[str, Callable[[list[str]], DecodedSentence | None]] = {
    "RMC": rmc_from_fields,
    "GGA": gga_from_fields,
    "VTG": vtg_from_fields,
}

SUPPORTED_SENTENCE_TYPES = tuple(_BUILDERS)


def decode_sentence(line: str) -> DecodedSentence | None:
    """Decode one line from the receiver.

    Args:
        line: Raw line, with or without the CRLF terminator.

    Returns:
        RMCData, GGAData or VTGData, or None if the line is not a supported
        well-formed sentence.

    Example:
        >>> decode_sentence("$GNGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,")
        GGAData(utc_time=datetime.time(12, 35, 19), latitude_degrees=48.1173, ...)
        >>> decode_sentence("$GPGSV,3,1,11,03,03,111,00*4A") is None
        True
    """
    payload = strip_checksum(line)
    if payload is None:
        return None

    fields = payload.split(",")
    identifier = fields[0]
    if len(identifier) != 5 or identifier[:2] not in VALID_TALKER_IDS:
        return None

    builder = _BUILDERS.get(identifier[2:])
    if builder is None:
        return None
    return builder(fields)
