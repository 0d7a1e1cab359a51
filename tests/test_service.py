"""Tests for wiring capture, screening and dispatch together."""

import asyncio
import os

import pytest

from gpscapture.config import clear_settings_cache, load_settings
from gpscapture.dispatch import DispatchHub, FailurePolicy, SinkKind, SinkPipeline
from gpscapture.dispatch.sinks import ApiSink, BlobStorageSink, DatabaseSink, FileSink
from gpscapture.errors import ConnectionFailedError
from gpscapture.position import Verdict
from gpscapture.service import CaptureService, build_hub
from tests.dispatch.helpers import RecordingSink, make_snapshot
from tests.fakes import GGA, RMC, ControlledReader, controlled_capture_factory

# About 5 m of latitude.
_FIVE_METERS = 5.0 / 111_194.93


@pytest.fixture
def settings(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.upper().startswith("GPS_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    return load_settings(device_id="rover-1", shutdown_grace_seconds=1.0)


def _recording_hub(sink: RecordingSink) -> DispatchHub:
    return DispatchHub({sink.kind: SinkPipeline(sink, batch_size=10, flush_interval=60.0)})


async def _wait_for(condition, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class TestBuildHub:
    def test_one_pipeline_per_enabled_sink(self, settings):
        configured = load_settings(
            sinks="file,api,blob,database",
            store_raw_data=False,
            api={"endpoint": "https://example.com/api/gps"},
            blob={"connection_string": "UseDevelopmentStorage=true"},
            database={"dsn": "postgresql://gps@localhost/gps", "failure_policy": "drop"},
        )
        hub = build_hub(configured)

        assert hub.kinds == {SinkKind.FILE, SinkKind.API, SinkKind.BLOB, SinkKind.DATABASE}
        assert isinstance(hub.pipelines[SinkKind.FILE].sink, FileSink)
        assert isinstance(hub.pipelines[SinkKind.API].sink, ApiSink)
        assert isinstance(hub.pipelines[SinkKind.BLOB].sink, BlobStorageSink)
        database = hub.pipelines[SinkKind.DATABASE]
        assert isinstance(database.sink, DatabaseSink)
        assert database.sink.store_raw_data is False
        assert database.sink.failure_policy is FailurePolicy.DROP
        assert database.batch_size == 20

    def test_retry_policy_from_sink_settings(self, settings):
        configured = load_settings(sinks="api", api={"endpoint": "https://example.com", "retry_attempts": 5})
        policy = build_hub(configured).pipelines[SinkKind.API].retry_policy
        assert policy.max_attempts == 5
        assert policy.base_delay == 2.0
        assert policy.multiplier == 2.0
        assert policy.max_delay == 60.0

    def test_default_is_file_only(self, settings):
        assert build_hub(settings).kinds == {SinkKind.FILE}


class TestHandleSnapshot:
    def test_small_move_is_skipped(self, settings):
        sink = RecordingSink()
        service = CaptureService(settings, hub=_recording_hub(sink))
        first = make_snapshot(0, latitude=48.0)
        second = make_snapshot(1, latitude=48.0 + _FIVE_METERS)

        assert service.handle_snapshot(first) is Verdict.EMIT
        assert service.handle_snapshot(second) is Verdict.STATIONARY
        assert service.screening.as_dict() == {"emitted": 1, "invalid": 0, "stationary": 1}
        assert service.hub.published == 1

    def test_poor_fix_is_not_dispatched(self, settings):
        service = CaptureService(settings, hub=_recording_hub(RecordingSink()))
        assert service.handle_snapshot(make_snapshot(0, satellites=2)) is Verdict.INVALID
        assert service.hub.published == 0

    def test_listeners_see_emitted_snapshots_only(self, settings):
        service = CaptureService(settings, hub=_recording_hub(RecordingSink()))
        seen = []
        service.add_listener(seen.append)
        service.handle_snapshot(make_snapshot(0))
        service.handle_snapshot(make_snapshot(1, fix_quality=0))
        assert len(seen) == 1

    def test_failing_listener_does_not_stop_dispatch(self, settings):
        service = CaptureService(settings, hub=_recording_hub(RecordingSink()))

        def _broken(_snapshot) -> None:
            raise RuntimeError("listener bug")

        seen = []
        service.add_listener(_broken)
        service.add_listener(seen.append)
        assert service.handle_snapshot(make_snapshot(0)) is Verdict.EMIT
        assert len(seen) == 1


class TestLifecycle:
    def test_lines_flow_through_to_sinks(self, settings):
        reader = ControlledReader()
        sink = RecordingSink()

        async def _run() -> CaptureService:
            service = CaptureService(
                settings,
                hub=_recording_hub(sink),
                capture_factory=controlled_capture_factory(reader),
            )
            await service.start()
            reader.lines.put(GGA)
            reader.lines.put(RMC)
            await _wait_for(lambda: service.screening.emitted + service.screening.stationary >= 2)
            assert service.status()["capture"]["state"] == "capturing"
            await service.stop()
            return service

        service = asyncio.run(_run())

        assert reader.opened
        assert reader.closed
        assert service.fatal_error is None
        assert service.screening.as_dict() == {"emitted": 1, "invalid": 0, "stationary": 1}
        delivered = sink.delivered
        assert len(delivered) == 1
        snapshot = delivered[0].snapshot
        assert snapshot.latitude == pytest.approx(48.1173, abs=1e-4)
        assert snapshot.longitude == pytest.approx(11.5167, abs=1e-4)
        assert snapshot.device_id == "rover-1"
        status = service.status()
        assert status["capture"]["state"] == "stopped"
        assert status["capture"]["port"] == "/dev/ttyFAKE0"
        assert status["capture"]["lines_read"] == 2
        assert status["dispatch"]["sinks"]["file"]["delivered_records"] == 1

    def test_connection_failure_is_fatal(self, settings):
        sink = RecordingSink()

        async def _run() -> CaptureService:
            service = CaptureService(
                settings,
                hub=_recording_hub(sink),
                capture_factory=controlled_capture_factory(
                    ControlledReader(),
                    port_resolver=lambda name, auto, baud, window: None,
                    connect_attempts=2,
                ),
            )
            await service.start()
            await asyncio.wait_for(service.wait_stopped(), timeout=2.0)
            await service.stop()
            return service

        service = asyncio.run(_run())
        assert isinstance(service.fatal_error, ConnectionFailedError)
        assert service.fatal_error.attempts == 2
        assert sink.closed

    def test_status_before_start(self, settings):
        service = CaptureService(settings, hub=_recording_hub(RecordingSink()))
        status = service.status()
        assert status["device_id"] == "rover-1"
        assert status["capture"]["state"] == "disconnected"
        assert status["screening"]["emitted"] == 0


class TestChannel:
    def test_full_channel_drops_oldest(self, settings, monkeypatch):
        monkeypatch.setattr("gpscapture.service.CHANNEL_CAPACITY", 2)
        service = CaptureService(settings, hub=_recording_hub(RecordingSink()))
        snapshots = [make_snapshot(i) for i in range(3)]
        for snapshot in snapshots:
            service._offer(snapshot)

        assert service.channel_overflows == 1
        assert service._channel.get_nowait() is snapshots[1]
        assert service._channel.get_nowait() is snapshots[2]
        assert service.status()["channel_overflows"] == 1

    def test_stop_keeps_snapshots_already_in_a_full_channel(self, settings, monkeypatch):
        monkeypatch.setattr("gpscapture.service.CHANNEL_CAPACITY", 2)
        sink = RecordingSink()
        service = CaptureService(settings, hub=_recording_hub(sink))

        async def _run() -> None:
            service._consumer_task = asyncio.get_running_loop().create_task(service._consume())
            service._offer(make_snapshot(0))
            service._offer(make_snapshot(1))
            await service.stop()

        asyncio.run(_run())

        assert service.channel_overflows == 0
        assert service.screening.emitted == 2
        assert len(sink.delivered) == 2
