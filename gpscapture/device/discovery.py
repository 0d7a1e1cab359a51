"""Locate the serial port a GPS receiver is attached to.

Candidates are enumerated per platform without opening anything, then
checked one at a time: a port is a GPS port if a line starting with ``$``
and a known talker ID (``$GP``, ``$GN`` ...) arrives within the detection
window. Ports are checked sequentially because opening several ports at once
competes for the same USB hub and can reset some adapters.
"""

import glob
import logging
import sys
import time
from collections.abc import Callable, Iterable

import serial
import serial.tools.list_ports

from gpscapture.nmea.fields import VALID_TALKER_IDS

__all__ = [
    "candidate_ports",
    "detect_gps_port",
    "check_port",
    "resolve_port",
]

logger = logging.getLogger(__name__)

_CHECK_READ_TIMEOUT = 3.0
_DEFAULT_DETECT_WINDOW = 5.0

_LINUX_PATTERNS = ("/dev/serial/by-id/*", "/dev/ttyACM*", "/dev/ttyUSB*")
_MACOS_PATTERNS = ("/dev/tty.usbserial*", "/dev/tty.SLAB_USBtoUART*")

_GPS_PREFIXES = tuple(f"${talker}" for talker in VALID_TALKER_IDS)


def _unique(paths: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for path in paths:
        if path not in seen:
            seen.add(path)
            ordered.append(path)
    return ordered


def candidate_ports(platform: str | None = None) -> list[str]:
    """List candidate device paths for *platform* (defaults to ``sys.platform``).

    Linux lists stable ``/dev/serial/by-id`` links before the raw
    ``ttyACM``/``ttyUSB`` nodes. Windows asks pyserial for COM ports.
    Duplicates are removed, first occurrence wins.
    """
    platform = platform or sys.platform
    if platform.startswith("win"):
        return _unique(info.device for info in serial.tools.list_ports.comports())

    patterns = _MACOS_PATTERNS if platform == "darwin" else _LINUX_PATTERNS
    paths: list[str] = []
    for pattern in patterns:
        paths.extend(sorted(glob.glob(pattern)))
    return _unique(paths)


def _is_gps_line(raw: bytes) -> bool:
    line = raw.decode("ascii", errors="ignore").strip()
    return line.startswith(_GPS_PREFIXES)


def check_port(
    port: str,
    baud_rate: int,
    window: float = _DEFAULT_DETECT_WINDOW,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Return True if *port* produces an NMEA line within *window* seconds.

    Open failures are reported as False; the test connection is always
    closed before returning.
    """
    try:
        connection = serial.Serial(
            port=port,
            baudrate=baud_rate,
            timeout=min(_CHECK_READ_TIMEOUT, window),
        )
    except (serial.SerialException, OSError, ValueError) as e:
        logger.debug("Cannot open %s to check for NMEA: %s", port, e)
        return False

    try:
        deadline = clock() + window
        while clock() < deadline:
            raw = connection.readline()
            if raw and _is_gps_line(raw):
                return True
        return False
    except (serial.SerialException, OSError) as e:
        logger.debug("Check of %s failed: %s", port, e)
        return False
    finally:
        connection.close()


def detect_gps_port(
    baud_rate: int,
    window: float = _DEFAULT_DETECT_WINDOW,
    candidates: Iterable[str] | None = None,
) -> str | None:
    """Check candidates in order; return the first that speaks NMEA."""
    ports = list(candidates) if candidates is not None else candidate_ports()
    logger.info("Checking %d candidate port(s) for a GPS receiver", len(ports))
    for port in ports:
        if check_port(port, baud_rate, window):
            logger.info("GPS receiver found on %s", port)
            return port
    logger.warning("No GPS receiver found on %s", ports or "any port")
    return None


def resolve_port(
    port_name: str | None,
    auto_detect: bool,
    baud_rate: int,
    window: float = _DEFAULT_DETECT_WINDOW,
) -> str | None:
    """Pick the port to open.

    With auto-detect disabled a configured port name is returned as-is,
    without checking. Otherwise candidates are checked.
    """
    if not auto_detect and port_name:
        return port_name
    return detect_gps_port(baud_rate, window)
