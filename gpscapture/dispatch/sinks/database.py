"""PostgreSQL sink: inserts each batch into ``gps_data`` in one transaction."""

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import psycopg
from psycopg import sql
from psycopg.types.json import Jsonb

from gpscapture.dispatch.records import FailurePolicy, SinkKind, SinkRecord
from gpscapture.dispatch.sinks.base import Sink

__all__ = ["DatabaseSink", "fix_quality_label"]

logger = logging.getLogger(__name__)

# GGA quality indicator -> stored label.
FIX_QUALITY_LABELS: dict[int, str] = {
    0: "NO_FIX",
    1: "GPS",
    2: "DGPS",
    3: "PPS",
    4: "RTK",
    5: "FLOAT_RTK",
    6: "ESTIMATED",
    7: "MANUAL",
    8: "SIMULATION",
}

_COLUMNS = (
    "timestamp_utc",
    "latitude",
    "longitude",
    "altitude_meters",
    "speed_kmh",
    "speed_mph",
    "course_degrees",
    "satellite_count",
    "fix_quality",
    "hdop",
    "device_id",
    "raw_data",
)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS {table} (
    id BIGSERIAL PRIMARY KEY,
    timestamp_utc TIMESTAMPTZ NOT NULL,
    latitude DOUBLE PRECISION NOT NULL,
    longitude DOUBLE PRECISION NOT NULL,
    altitude_meters DOUBLE PRECISION,
    speed_kmh DOUBLE PRECISION,
    speed_mph DOUBLE PRECISION,
    course_degrees DOUBLE PRECISION,
    satellite_count INTEGER,
    fix_quality TEXT,
    hdop DOUBLE PRECISION,
    device_id TEXT,
    raw_data JSONB,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
)
"""


def fix_quality_label(fix_quality: int | None) -> str | None:
    if fix_quality is None:
        return None
    return FIX_QUALITY_LABELS.get(fix_quality, f"UNKNOWN_{fix_quality}")


def _table_identifier(table: str) -> sql.Identifier:
    return sql.Identifier(*table.split("."))


class DatabaseSink(Sink):
    """Writes batches using a short-lived connection per batch."""

    kind = SinkKind.DATABASE
    default_failure_policy = FailurePolicy.REQUEUE

    def __init__(
        self,
        dsn: str,
        table: str = "gps_data",
        store_raw_data: bool = True,
        create_table: bool = False,
        failure_policy: FailurePolicy | None = None,
        connect: Callable[[str], Awaitable[psycopg.AsyncConnection]] = psycopg.AsyncConnection.connect,
    ) -> None:
        super().__init__(failure_policy)
        self.table = table
        self.store_raw_data = store_raw_data
        self.create_table = create_table
        self._dsn = dsn
        self._connect = connect

    def insert_statement(self) -> sql.Composed:
        return sql.SQL("INSERT INTO {table} ({columns}) VALUES ({values})").format(
            table=_table_identifier(self.table),
            columns=sql.SQL(", ").join(map(sql.Identifier, _COLUMNS)),
            values=sql.SQL(", ").join(sql.Placeholder() * len(_COLUMNS)),
        )

    def row_for(self, record: SinkRecord) -> tuple[Any, ...]:
        snapshot = record.snapshot
        return (
            snapshot.timestamp,
            snapshot.latitude,
            snapshot.longitude,
            snapshot.altitude,
            snapshot.speed_kmh,
            snapshot.speed_mph,
            snapshot.course,
            snapshot.satellites,
            fix_quality_label(snapshot.fix_quality),
            snapshot.hdop,
            snapshot.device_id,
            Jsonb(record.to_dict()) if self.store_raw_data else None,
        )

    async def open(self) -> None:
        if not self.create_table:
            return
        statement = sql.SQL(_CREATE_TABLE).format(table=_table_identifier(self.table))
        async with await self._connect(self._dsn) as conn:
            await conn.execute(statement)
        logger.info("Ensured table %s exists", self.table)

    async def deliver_batch(self, records: Sequence[SinkRecord]) -> None:
        rows = [self.row_for(record) for record in records]
        async with await self._connect(self._dsn) as conn:
            async with conn.transaction():
                async with conn.cursor() as cursor:
                    await cursor.executemany(self.insert_statement(), rows)
        logger.debug("Inserted %d row(s) into %s", len(rows), self.table)

    def describe(self) -> dict[str, Any]:
        return {**super().describe(), "table": self.table}
