"""CaptureService: wires the capture thread to screening and dispatch.

Threading model::

    worker thread                     event loop
    -------------                     ----------
    CaptureLoop.run()                 consumer task
      emit(snapshot) --call_soon_threadsafe--> channel.get()
                                          screen_snapshot()
                                          DispatchHub.publish()
                                          listeners (status websocket)

Only the consumer task touches the screening state and the hub, so neither
needs locking.
"""

import asyncio
import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from gpscapture.capture import CaptureLoop
from gpscapture.config import Settings
from gpscapture.dispatch import DispatchHub, RetryPolicy, SinkKind, SinkPipeline
from gpscapture.dispatch.sinks import ApiSink, BlobStorageSink, DatabaseSink, FileSink, Sink
from gpscapture.errors import ConnectionFailedError
from gpscapture.position import MovementFilter, ScreeningState, Snapshot, Verdict, screen_snapshot

__all__ = ["CaptureService", "build_capture_loop", "build_hub", "build_sink"]

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[Snapshot], None]

CHANNEL_CAPACITY = 1000


# --- construction from settings ---------------------------------------------------


def build_sink(kind: SinkKind, settings: Settings) -> Sink:
    if kind is SinkKind.FILE:
        return FileSink(
            settings.file.data_directory,
            settings.file.formats,
            failure_policy=settings.file.failure_policy,
        )
    if kind is SinkKind.API:
        return ApiSink(
            settings.api.endpoint,
            api_key=settings.api.api_key,
            timeout=settings.api.timeout_seconds,
            failure_policy=settings.api.failure_policy,
        )
    if kind is SinkKind.BLOB:
        return BlobStorageSink(
            settings.blob.connection_string,
            container_name=settings.blob.container_name,
            pretty_json=settings.blob.pretty_json,
            failure_policy=settings.blob.failure_policy,
        )
    if kind is SinkKind.DATABASE:
        return DatabaseSink(
            settings.database.dsn,
            table=settings.database.table,
            store_raw_data=settings.store_raw_data,
            create_table=settings.database.create_table,
            failure_policy=settings.database.failure_policy,
        )
    raise ValueError(f"Unknown sink kind: {kind!r}")


def build_hub(settings: Settings) -> DispatchHub:
    """One pipeline per enabled sink, resolved once at startup."""
    pipelines: dict[SinkKind, SinkPipeline] = {}
    for kind in sorted(settings.sinks):
        options = settings.sink_settings(kind)
        pipelines[kind] = SinkPipeline(
            build_sink(kind, settings),
            batch_size=options.batch_size,
            flush_interval=options.flush_interval_seconds,
            retry_policy=RetryPolicy(
                max_attempts=options.retry_attempts,
                base_delay=options.retry_base_delay_seconds,
                max_delay=options.retry_max_delay_seconds,
            ),
            max_queue_size=options.max_queue_size,
        )
    return DispatchHub(pipelines)


def build_capture_loop(settings: Settings, emit: Callable[[Snapshot], None]) -> CaptureLoop:
    return CaptureLoop(
        emit,
        port_name=settings.port_name,
        auto_detect=settings.auto_detect_port,
        baud_rate=settings.baud_rate,
        capture_interval=settings.capture_interval_seconds,
        device_id=settings.device_id,
        connect_attempts=settings.connect_attempts,
        connect_retry_delay=settings.connect_retry_delay_seconds,
        read_timeout=settings.read_timeout_seconds,
        read_error_pause=settings.read_error_pause_seconds,
        detect_window=settings.detect_window_seconds,
    )


# --- service ----------------------------------------------------------------------


class CaptureService:
    """Runs capture, screening and dispatch until stopped or the receiver is lost.

    Args:
        settings: Loaded service settings.
        hub: Dispatch hub; built from *settings* when omitted.
        capture_factory: Builds the capture loop from ``(settings, emit)``.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        hub: DispatchHub | None = None,
        capture_factory: Callable[[Settings, Callable[[Snapshot], None]], CaptureLoop] = build_capture_loop,
    ) -> None:
        self.settings = settings
        self.hub = hub if hub is not None else build_hub(settings)
        self.screening = ScreeningState()
        self.movement = MovementFilter(settings.minimum_movement_distance_meters)
        self.fatal_error: BaseException | None = None
        self._capture_factory = capture_factory
        self._listeners: list[SnapshotListener] = []
        self.channel_overflows = 0
        self._channel: asyncio.Queue[Snapshot | None] = asyncio.Queue(maxsize=CHANNEL_CAPACITY)
        self._stopped = asyncio.Event()
        self._executor: ThreadPoolExecutor | None = None
        self._capture_future: asyncio.Future[None] | None = None
        self._consumer_task: asyncio.Task[None] | None = None
        self.capture: CaptureLoop | None = None

    def add_listener(self, listener: SnapshotListener) -> None:
        """Call *listener* on the event loop for every emitted snapshot."""
        self._listeners.append(listener)

    # --- lifecycle ------------------------------------------------------------

    async def start(self) -> None:
        loop = asyncio.get_running_loop()

        def _emit(snapshot: Snapshot) -> None:
            loop.call_soon_threadsafe(self._offer, snapshot)

        self.capture = self._capture_factory(self.settings, _emit)
        await self.hub.start()
        self._consumer_task = loop.create_task(self._consume(), name="snapshot-consumer")
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="capture")
        self._capture_future = loop.run_in_executor(self._executor, self.capture.run)
        self._capture_future.add_done_callback(self._on_capture_done)
        logger.info("GPS capture service started for device %s", self.settings.device_id)

    def _on_capture_done(self, future: "Future[None] | asyncio.Future[None]") -> None:
        if future.cancelled():
            self._stopped.set()
            return
        error = future.exception()
        if isinstance(error, ConnectionFailedError):
            logger.critical("%s; stopping service", error)
            self.fatal_error = error
        elif error is not None:
            logger.error("Capture loop crashed", exc_info=error)
            self.fatal_error = error
        self._stopped.set()

    def _offer(self, snapshot: Snapshot | None) -> None:
        if self._channel.full():
            self._channel.get_nowait()
            self.channel_overflows += 1
            logger.warning("Snapshot channel full, dropped the oldest snapshot")
        self._channel.put_nowait(snapshot)

    async def wait_stopped(self) -> None:
        """Return once the capture loop has ended for any reason."""
        await self._stopped.wait()

    async def stop(self) -> None:
        """Stop capture, drain the channel, and flush sinks within the grace period."""
        if self.capture is not None:
            self.capture.stop()
        if self._capture_future is not None:
            await asyncio.gather(self._capture_future, return_exceptions=True)
        if self._consumer_task is not None:
            await self._channel.put(None)
            await self._consumer_task
            self._consumer_task = None
        await self.hub.shutdown(self.settings.shutdown_grace_seconds)
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        self._stopped.set()
        self._log_summary()

    # --- consumer -------------------------------------------------------------

    async def _consume(self) -> None:
        while True:
            snapshot = await self._channel.get()
            if snapshot is None:
                return
            self.handle_snapshot(snapshot)

    def handle_snapshot(self, snapshot: Snapshot) -> Verdict:
        """Screen one snapshot and dispatch it if it passes."""
        verdict = screen_snapshot(snapshot, self.screening, self.movement)
        if verdict is Verdict.STATIONARY:
            logger.debug("Stationary, skipping snapshot at %s", snapshot.timestamp)
        if verdict is not Verdict.EMIT:
            return verdict

        self.hub.publish(snapshot)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener failed")
        return verdict

    # --- reporting ------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        capture = self.capture
        return {
            "device_id": self.settings.device_id,
            "capture": {
                "state": capture.state.value if capture else "disconnected",
                "port": capture.port if capture else None,
                "lines_read": capture.lines_read if capture else 0,
                "sentences_decoded": capture.sentences_decoded if capture else 0,
                "read_errors": capture.read_errors if capture else 0,
            },
            "screening": self.screening.as_dict(),
            "channel_overflows": self.channel_overflows,
            "dispatch": self.hub.stats(),
        }

    def _log_summary(self) -> None:
        counters = self.screening.as_dict()
        logger.info(
            "Capture summary: %d emitted, %d invalid, %d stationary",
            counters["emitted"],
            counters["invalid"],
            counters["stationary"],
        )
        for kind, pipeline in self.hub.pipelines.items():
            stats = pipeline.stats
            logger.info(
                "%s sink: %d delivered, %d dropped, %d requeued, %d left undelivered",
                kind,
                stats.delivered_records,
                stats.dropped_records,
                stats.requeued_records,
                stats.abandoned_records,
            )
