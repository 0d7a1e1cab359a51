"""Pytest fixtures for server module testing."""

import os
from collections.abc import Iterator

import pytest
from fastapi import FastAPI

from gpscapture.config import Settings, clear_settings_cache, load_settings
from gpscapture.dispatch import DispatchHub, SinkPipeline
from gpscapture.service import CaptureService
from server.main import create_app
from tests.dispatch.helpers import RecordingSink
from tests.fakes import ControlledReader, controlled_capture_factory


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Settings:
    for key in list(os.environ):
        if key.upper().startswith("GPS_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    return load_settings(device_id="rover-1", shutdown_grace_seconds=1.0)


@pytest.fixture
def reader() -> Iterator[ControlledReader]:
    controller = ControlledReader()
    yield controller
    controller.cancel()


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def app(settings: Settings, reader: ControlledReader, recording_sink: RecordingSink) -> FastAPI:
    def _service(configured: Settings) -> CaptureService:
        return CaptureService(
            configured,
            hub=DispatchHub({recording_sink.kind: SinkPipeline(recording_sink, batch_size=10)}),
            capture_factory=controlled_capture_factory(reader),
        )

    return create_app(settings, service_factory=_service)
