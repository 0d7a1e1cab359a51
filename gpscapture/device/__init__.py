"""Serial port discovery and line reading for NMEA receivers."""

from gpscapture.device.discovery import (
    candidate_ports,
    detect_gps_port,
    check_port,
    resolve_port,
)
from gpscapture.device.reader import SerialLineReader

__all__ = [
    "SerialLineReader",
    "candidate_ports",
    "detect_gps_port",
    "check_port",
    "resolve_port",
]
