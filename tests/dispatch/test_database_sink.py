"""Tests for PostgreSQL batch inserts."""

import asyncio

import pytest
from psycopg.types.json import Jsonb

from gpscapture.dispatch import FailurePolicy
from gpscapture.dispatch.sinks import DatabaseSink
from gpscapture.dispatch.sinks.database import fix_quality_label
from tests.dispatch.helpers import make_record


class _AsyncContext:
    def __init__(self, value, events: list, name: str) -> None:
        self._value = value
        self._events = events
        self._name = name

    async def __aenter__(self):
        self._events.append(f"enter {self._name}")
        return self._value

    async def __aexit__(self, exc_type, *_: object) -> None:
        self._events.append(f"exit {self._name}" + (" with error" if exc_type else ""))


class _FakeCursor:
    def __init__(self, connection: "_FakeConnection") -> None:
        self._connection = connection

    async def executemany(self, statement, rows) -> None:
        if self._connection.fail:
            raise OSError("connection lost")
        self._connection.executed.append((statement, list(rows)))


class _FakeConnection:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.events: list[str] = []
        self.executed: list = []

    async def __aenter__(self) -> "_FakeConnection":
        self.events.append("connect")
        return self

    async def __aexit__(self, *_: object) -> None:
        self.events.append("disconnect")

    def transaction(self) -> _AsyncContext:
        return _AsyncContext(None, self.events, "transaction")

    def cursor(self) -> _AsyncContext:
        return _AsyncContext(_FakeCursor(self), self.events, "cursor")

    async def execute(self, statement) -> None:
        self.executed.append((statement, None))


def _sink(connection: _FakeConnection, **kwargs) -> tuple[DatabaseSink, list[str]]:
    dsns: list[str] = []

    async def _connect(dsn: str) -> _FakeConnection:
        dsns.append(dsn)
        return connection

    return DatabaseSink("postgresql://gps@localhost/gps", connect=_connect, **kwargs), dsns


class TestFixQualityLabel:
    @pytest.mark.parametrize(
        ("value", "label"),
        [(0, "NO_FIX"), (1, "GPS"), (2, "DGPS"), (4, "RTK"), (5, "FLOAT_RTK"), (6, "ESTIMATED")],
    )
    def test_known_values(self, value, label):
        assert fix_quality_label(value) == label

    def test_unknown_value(self):
        assert fix_quality_label(42) == "UNKNOWN_42"

    def test_missing_value(self):
        assert fix_quality_label(None) is None


class TestRowFor:
    def test_maps_snapshot_columns(self):
        sink, _ = _sink(_FakeConnection())
        record = make_record(0, course=84.4, speed_mph=25.78)
        row = sink.row_for(record)

        assert row[0] == record.snapshot.timestamp
        assert row[1:3] == (pytest.approx(48.1173), 11.5167)
        assert row[3] == 545.4
        assert row[6] == 84.4
        assert row[7] == 8
        assert row[8] == "GPS"
        assert row[10] == "rover-1"
        assert isinstance(row[11], Jsonb)
        assert row[11].obj == record.to_dict()

    def test_raw_data_omitted_when_disabled(self):
        sink, _ = _sink(_FakeConnection(), store_raw_data=False)
        assert sink.row_for(make_record(0))[11] is None


class TestDatabaseSink:
    def test_default_policy_is_requeue(self):
        sink, _ = _sink(_FakeConnection())
        assert sink.failure_policy is FailurePolicy.REQUEUE

    def test_batch_inserted_in_one_transaction(self):
        connection = _FakeConnection()
        sink, dsns = _sink(connection)

        asyncio.run(sink.deliver_batch([make_record(0), make_record(1), make_record(2)]))

        assert dsns == ["postgresql://gps@localhost/gps"]
        assert connection.events == [
            "connect",
            "enter transaction",
            "enter cursor",
            "exit cursor",
            "exit transaction",
            "disconnect",
        ]
        statement, rows = connection.executed[0]
        assert statement == sink.insert_statement()
        assert len(rows) == 3

    def test_failure_rolls_back_and_raises(self):
        connection = _FakeConnection(fail=True)
        sink, _ = _sink(connection)

        with pytest.raises(OSError):
            asyncio.run(sink.deliver_batch([make_record(0)]))
        assert "exit transaction with error" in connection.events

    def test_open_skips_ddl_by_default(self):
        connection = _FakeConnection()
        sink, dsns = _sink(connection)
        asyncio.run(sink.open())
        assert dsns == []

    def test_open_creates_table_when_enabled(self):
        connection = _FakeConnection()
        sink, dsns = _sink(connection, create_table=True)
        asyncio.run(sink.open())
        assert len(dsns) == 1
        assert len(connection.executed) == 1

    def test_describe(self):
        sink, _ = _sink(_FakeConnection(), table="telemetry.gps_data")
        assert sink.describe()["table"] == "telemetry.gps_data"
