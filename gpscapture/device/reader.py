"""SerialLineReader: blocking line reader for an NMEA receiver on a serial port.

Reading strategy:
    pyserial's ``readline()`` returns whatever arrived before the read
    timeout expired. An empty read is reported as a timeout (``None``) so
    the caller can poll its cancellation flag between reads. ``cancel()``
    aborts a pending read immediately through ``Serial.cancel_read()``.
"""

import logging
from collections.abc import Iterator
from types import TracebackType

import serial

__all__ = ["SerialLineReader"]

logger = logging.getLogger(__name__)

_DEFAULT_READ_TIMEOUT = 5.0


class SerialLineReader:
    """Context manager yielding decoded text lines from a serial device.

    Continuous iteration::

        with SerialLineReader("/dev/ttyUSB0", 4800) as reader:
            for line in reader:
                if line is None:
                    continue  # read timeout
                handle(line)

    Args:
        port: Device path or COM port name.
        baud_rate: Line speed; NMEA receivers default to 4800.
        read_timeout: Seconds a single read may block; bounds ``cancel()``
            latency on platforms without ``cancel_read``.
    """

    def __init__(
        self,
        port: str,
        baud_rate: int = 4800,
        read_timeout: float = _DEFAULT_READ_TIMEOUT,
    ) -> None:
        self.port = port
        self._baud_rate = baud_rate
        self._read_timeout = read_timeout
        self._serial: serial.Serial | None = None
        self._cancelled = False

    def open(self) -> None:
        """Open the serial port.

        Raises:
            serial.SerialException: If the port cannot be opened.
        """
        self._serial = serial.Serial(
            port=self.port,
            baudrate=self._baud_rate,
            timeout=self._read_timeout,
        )
        self._cancelled = False
        logger.info("Opened %s at %d baud", self.port, self._baud_rate)

    def __enter__(self) -> "SerialLineReader":
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        if self._serial is not None:
            self._serial.close()
            self._serial = None
            logger.info("Closed %s", self.port)

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def cancel(self) -> None:
        """Unblock a pending ``read_line`` so it raises ``EOFError``."""
        self._cancelled = True
        if self._serial is not None and hasattr(self._serial, "cancel_read"):
            self._serial.cancel_read()

    def read_line(self) -> str | None:
        """Read one line; returns ``None`` on read timeout.

        Raises:
            RuntimeError: If called outside a ``with`` block.
            EOFError: If the reader was cancelled.
            serial.SerialException: On device I/O failure (e.g. unplugged).
        """
        if self._serial is None:
            raise RuntimeError("SerialLineReader must be used as a context manager.")
        if self._cancelled:
            raise EOFError("Serial read cancelled.")

        raw: bytes = self._serial.readline()
        if self._cancelled:
            raise EOFError("Serial read cancelled.")
        if not raw:
            return None
        return raw.decode("ascii", errors="ignore").strip()

    def __iter__(self) -> Iterator[str | None]:
        """Yield lines (or ``None`` on timeout) until cancelled."""
        while True:
            yield self.read_line()
