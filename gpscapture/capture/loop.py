"""CaptureLoop: connect to the receiver and turn its lines into snapshots.

The loop runs on a dedicated worker thread because pyserial reads block.
It never waits on delivery: every snapshot is handed to ``emit``, which in
the service is a ``loop.call_soon_threadsafe`` hop onto the event loop.

State machine::

    DISCONNECTED -> CONNECTING -> CAPTURING -> STOPPED
                        |   ^
                        +---+  retry (connect_attempts, connect_retry_delay)
"""

import enum
import logging
import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

import serial

from gpscapture.device import SerialLineReader, resolve_port
from gpscapture.errors import ConnectionFailedError
from gpscapture.nmea import decode_sentence
from gpscapture.position import PositionAccumulator, Snapshot

__all__ = ["CaptureLoop", "CaptureState", "LineReader"]

logger = logging.getLogger(__name__)


class CaptureState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CAPTURING = "capturing"
    STOPPED = "stopped"


class LineReader(Protocol):
    port: str

    def open(self) -> None: ...

    def close(self) -> None: ...

    def cancel(self) -> None: ...

    def read_line(self) -> str | None: ...


def _utc_now() -> datetime:
    return datetime.now(UTC)


class CaptureLoop:
    """Reads NMEA lines, accumulates position, and emits rate-limited snapshots.

    Args:
        emit: Called with each snapshot; must not block.
        port_name: Configured port, used as-is when ``auto_detect`` is off.
        auto_detect: Scan candidate ports instead of trusting ``port_name``.
        baud_rate: Serial line speed.
        capture_interval: Minimum seconds between emitted snapshots.
        device_id: Stamped on every snapshot.
        connect_attempts: Connect tries before giving up for good.
        connect_retry_delay: Seconds between connect tries.
        read_timeout: Per-read timeout handed to the reader.
        read_error_pause: Seconds to back off after a device read error.
        detect_window: Seconds each candidate port is given during detection.
        reader_factory: Builds an unopened reader for ``(port, baud, timeout)``.
        port_resolver: Same signature as :func:`resolve_port`.
        clock: Monotonic seconds, used for the capture interval.
        now: Wall clock used to timestamp snapshots.
    """

    def __init__(
        self,
        emit: Callable[[Snapshot], None],
        *,
        port_name: str | None = None,
        auto_detect: bool = True,
        baud_rate: int = 4800,
        capture_interval: float = 5.0,
        device_id: str | None = None,
        connect_attempts: int = 5,
        connect_retry_delay: float = 10.0,
        read_timeout: float = 5.0,
        read_error_pause: float = 1.0,
        detect_window: float = 5.0,
        reader_factory: Callable[[str, int, float], LineReader] = SerialLineReader,
        port_resolver: Callable[..., str | None] = resolve_port,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._emit = emit
        self._port_name = port_name
        self._auto_detect = auto_detect
        self._baud_rate = baud_rate
        self._capture_interval = capture_interval
        self._connect_attempts = connect_attempts
        self._connect_retry_delay = connect_retry_delay
        self._read_timeout = read_timeout
        self._read_error_pause = read_error_pause
        self._detect_window = detect_window
        self._reader_factory = reader_factory
        self._port_resolver = port_resolver
        self._clock = clock
        self._now = now

        self.accumulator = PositionAccumulator(device_id=device_id)
        self.state = CaptureState.DISCONNECTED
        self.port: str | None = None
        self.lines_read = 0
        self.sentences_decoded = 0
        self.read_errors = 0
        self._last_emit: float | None = None
        self._reader: LineReader | None = None
        self._cancel = threading.Event()

    # --- lifecycle ------------------------------------------------------------

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def stop(self) -> None:
        """Ask the loop to finish; safe to call from any thread."""
        self._cancel.set()
        reader = self._reader
        if reader is not None:
            reader.cancel()

    def _open_once(self) -> LineReader:
        port = self._port_resolver(
            self._port_name, self._auto_detect, self._baud_rate, self._detect_window
        )
        if port is None:
            raise serial.SerialException("no GPS receiver found")
        reader = self._reader_factory(port, self._baud_rate, self._read_timeout)
        reader.open()
        self.port = port
        return reader

    def connect(self) -> LineReader | None:
        """Open the receiver, retrying with a fixed delay.

        Returns:
            The open reader, or None if the loop was stopped while connecting.

        Raises:
            ConnectionFailedError: After ``connect_attempts`` failures.
        """
        last_error: BaseException | None = None
        for attempt in range(1, self._connect_attempts + 1):
            if self.cancelled:
                return None
            self.state = CaptureState.CONNECTING
            try:
                reader = self._open_once()
            except (serial.SerialException, OSError, ValueError) as e:
                last_error = e
                logger.warning(
                    "Connect attempt %d/%d failed: %s", attempt, self._connect_attempts, e
                )
            else:
                logger.info("Connected to GPS receiver on %s", self.port)
                return reader

            if attempt < self._connect_attempts and self._cancel.wait(self._connect_retry_delay):
                return None

        self.state = CaptureState.DISCONNECTED
        raise ConnectionFailedError(
            f"Could not connect to a GPS receiver after {self._connect_attempts} attempts",
            attempts=self._connect_attempts,
            last_error=last_error,
        )

    def run(self) -> None:
        """Connect, then read until :meth:`stop` is called.

        Raises:
            ConnectionFailedError: If the receiver never becomes available.
        """
        try:
            reader = self.connect()
        except ConnectionFailedError:
            self.state = CaptureState.STOPPED
            raise
        if reader is None:
            self.state = CaptureState.STOPPED
            return

        self._reader = reader
        self.state = CaptureState.CAPTURING
        try:
            self._read_until_cancelled(reader)
        finally:
            self._reader = None
            reader.close()
            self.state = CaptureState.STOPPED
            logger.info(
                "Capture stopped: %d lines read, %d sentences decoded, %d read errors",
                self.lines_read,
                self.sentences_decoded,
                self.read_errors,
            )

    def _read_until_cancelled(self, reader: LineReader) -> None:
        while not self.cancelled:
            try:
                line = reader.read_line()
            except EOFError:
                return
            except (serial.SerialException, OSError) as e:
                self.read_errors += 1
                logger.warning("Error reading from %s: %s", self.port, e)
                if self._cancel.wait(self._read_error_pause):
                    return
                continue
            if line is None:
                continue
            self.process_line(line)

    # --- per-line processing --------------------------------------------------

    def process_line(self, line: str) -> Snapshot | None:
        """Decode *line*, fold it into the position, and emit if a tick is due.

        Returns:
            The emitted snapshot, or None if nothing was emitted.
        """
        self.lines_read += 1
        sentence = decode_sentence(line)
        if sentence is None:
            return None
        self.sentences_decoded += 1
        self.accumulator.apply(sentence)

        state = self.accumulator.state
        if not state.has_position:
            return None

        current = self._clock()
        if self._last_emit is not None and current - self._last_emit < self._capture_interval:
            return None

        self._last_emit = current
        snapshot = state.snapshot(self._now())
        self._emit(snapshot)
        return snapshot
