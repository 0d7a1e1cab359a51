"""NMEA 0183 decoder for RMC, GGA and VTG sentences."""

from gpscapture.nmea.checksum import strip_checksum, validate_checksum
from gpscapture.nmea.decoder import decode_sentence
from gpscapture.nmea.gga import parse_gga
from gpscapture.nmea.rmc import parse_rmc
from gpscapture.nmea.types import DecodedSentence, GGAData, RMCData, VTGData
from gpscapture.nmea.vtg import parse_vtg

__all__ = [
    "DecodedSentence",
    "GGAData",
    "RMCData",
    "VTGData",
    "decode_sentence",
    "parse_gga",
    "parse_rmc",
    "parse_vtg",
    "strip_checksum",
    "validate_checksum",
]
