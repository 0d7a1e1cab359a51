"""Tests for settings loading and validation."""

import os

import pytest

from gpscapture.config import (
    ConfigurationError,
    Settings,
    clear_settings_cache,
    get_settings,
    load_settings,
)
from gpscapture.dispatch import FailurePolicy, SinkKind


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.upper().startswith("GPS_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()


class TestDefaults:
    def test_receiver_defaults(self):
        settings = load_settings()
        assert settings.baud_rate == 4800
        assert settings.port_name is None
        assert settings.auto_detect_port is True
        assert settings.device_id
        assert settings.capture_interval_seconds == 5.0
        assert settings.minimum_movement_distance_meters == 10.0
        assert settings.connect_attempts == 5

    def test_only_file_sink_enabled(self):
        assert load_settings().sinks == {SinkKind.FILE}

    def test_per_sink_defaults(self):
        settings = load_settings()
        assert settings.file.failure_policy is FailurePolicy.REQUEUE
        assert settings.api.failure_policy is FailurePolicy.DROP
        assert settings.api.retry_base_delay_seconds == 2.0
        assert settings.blob.flush_interval_seconds == 10.0
        assert settings.database.batch_size == 20
        assert settings.database.failure_policy is FailurePolicy.REQUEUE

    def test_sink_settings_lookup(self):
        settings = load_settings()
        assert settings.sink_settings(SinkKind.DATABASE) is settings.database


class TestEnvironment:
    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("GPS_BAUD_RATE", "9600")
        monkeypatch.setenv("GPS_PORT_NAME", "/dev/ttyACM0")
        monkeypatch.setenv("GPS_AUTO_DETECT_PORT", "false")
        monkeypatch.setenv("GPS_DEVICE_ID", "rover-7")
        settings = load_settings()
        assert settings.baud_rate == 9600
        assert settings.port_name == "/dev/ttyACM0"
        assert settings.auto_detect_port is False
        assert settings.device_id == "rover-7"

    def test_comma_separated_sinks_and_nested_values(self, monkeypatch):
        monkeypatch.setenv("GPS_SINKS", "file, api")
        monkeypatch.setenv("GPS_API__ENDPOINT", "https://example.com/api/gps")
        monkeypatch.setenv("GPS_API__API_KEY", "secret")
        monkeypatch.setenv("GPS_API__BATCH_SIZE", "25")
        settings = load_settings()
        assert settings.sinks == {SinkKind.FILE, SinkKind.API}
        assert settings.api.endpoint == "https://example.com/api/gps"
        assert settings.api.api_key == "secret"
        assert settings.api.batch_size == 25

    def test_get_settings_is_cached(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("GPS_BAUD_RATE", "9600")
        assert get_settings() is first
        clear_settings_cache()
        assert get_settings().baud_rate == 9600


class TestValidation:
    def test_enabled_api_sink_needs_endpoint(self):
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(sinks="api")
        assert "api.endpoint" in str(exc_info.value)

    def test_every_missing_credential_is_reported(self):
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(sinks="api,blob,database")
        message = str(exc_info.value)
        assert "api.endpoint" in message
        assert "blob.connection_string" in message
        assert "database.dsn" in message

    def test_endpoint_must_be_http(self):
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(sinks="api", api={"endpoint": "ftp://example.com"})
        assert "api.endpoint" in exc_info.value.invalid_fields

    def test_disabled_sink_needs_nothing(self):
        settings = load_settings(sinks="file")
        assert settings.api.endpoint is None

    def test_unknown_sink_rejected(self):
        with pytest.raises(ConfigurationError):
            load_settings(sinks="file,ftp")

    def test_file_formats_parsed_and_checked(self):
        settings = load_settings(file={"formats": "CSV,json,csv"})
        assert settings.file.formats == ["csv", "json"]
        with pytest.raises(ConfigurationError):
            load_settings(file={"formats": "xml"})

    def test_queue_must_hold_a_batch(self):
        with pytest.raises(ConfigurationError):
            load_settings(file={"batch_size": 50, "max_queue_size": 10})

    def test_log_level_normalized(self):
        assert load_settings(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(log_level="verbose")
        assert "log_level" in exc_info.value.invalid_fields

    def test_log_format(self):
        assert load_settings(log_format="JSON").log_format == "json"
        with pytest.raises(ConfigurationError):
            load_settings(log_format="xml")

    def test_settings_class_raises_validation_error_directly(self):
        with pytest.raises(ValueError):
            Settings(baud_rate=0)
