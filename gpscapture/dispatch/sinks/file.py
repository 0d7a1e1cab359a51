"""Local file sink writing dated NDJSON, CSV and JSON files.

Files are named ``gps_data_YYYYMMDD.<ext>`` after each record's UTC date,
so a batch spanning midnight is split across two files.

* ``ndjson``: one JSON object per line, append-only.
* ``csv``: header written when the file is created, then one row per record.
* ``json``: a single pretty-printed array, rewritten on every batch. It is
  convenient for small captures but costs a full read per batch. A file
  that no longer parses is renamed to ``*.corrupt`` and a new array started.
"""

import csv
import io
import json
import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import fields
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from gpscapture.dispatch.records import FailurePolicy, SinkKind, SinkRecord
from gpscapture.dispatch.sinks.base import Sink
from gpscapture.position import Snapshot

__all__ = ["FILE_FORMATS", "FileSink"]

logger = logging.getLogger(__name__)

FILE_FORMATS = ("ndjson", "csv", "json")

_CSV_COLUMNS = [field.name for field in fields(Snapshot)]


def _group_by_day(records: Iterable[SinkRecord]) -> dict[str, list[dict[str, Any]]]:
    grouped: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for record in records:
        grouped[record.snapshot.timestamp.strftime("%Y%m%d")].append(record.to_dict())
    return grouped


def _csv_text(rows: Sequence[dict[str, Any]], header: bool) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=_CSV_COLUMNS, lineterminator="\n")
    if header:
        writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()


class FileSink(Sink):
    kind = SinkKind.FILE
    default_failure_policy = FailurePolicy.REQUEUE

    def __init__(
        self,
        data_directory: str | Path = "gps_data",
        formats: Iterable[str] = ("ndjson",),
        failure_policy: FailurePolicy | None = None,
    ) -> None:
        super().__init__(failure_policy)
        self.data_directory = Path(data_directory)
        self.formats = tuple(formats)
        unknown = set(self.formats) - set(FILE_FORMATS)
        if unknown:
            raise ValueError(f"Unsupported file format(s): {', '.join(sorted(unknown))}")
        self.records_written = 0

    def path_for(self, day: str, file_format: str) -> Path:
        return self.data_directory / f"gps_data_{day}.{file_format}"

    async def open(self) -> None:
        await aiofiles.os.makedirs(self.data_directory, exist_ok=True)
        logger.info("Writing %s files to %s", "/".join(self.formats), self.data_directory)

    async def deliver_batch(self, records: Sequence[SinkRecord]) -> None:
        await aiofiles.os.makedirs(self.data_directory, exist_ok=True)
        for day, rows in _group_by_day(records).items():
            for file_format in self.formats:
                path = self.path_for(day, file_format)
                if file_format == "ndjson":
                    await self._append_ndjson(path, rows)
                elif file_format == "csv":
                    await self._append_csv(path, rows)
                else:
                    await self._rewrite_json(path, rows)
        self.records_written += len(records)

    async def _append_ndjson(self, path: Path, rows: Sequence[dict[str, Any]]) -> None:
        text = "".join(json.dumps(row) + "\n" for row in rows)
        async with aiofiles.open(path, "a", encoding="utf-8") as f:
            await f.write(text)

    async def _append_csv(self, path: Path, rows: Sequence[dict[str, Any]]) -> None:
        is_new = not await aiofiles.os.path.exists(path)
        async with aiofiles.open(path, "a", encoding="utf-8", newline="") as f:
            await f.write(_csv_text(rows, header=is_new))

    async def _rewrite_json(self, path: Path, rows: Sequence[dict[str, Any]]) -> None:
        existing: list[dict[str, Any]] = []
        if await aiofiles.os.path.exists(path):
            async with aiofiles.open(path, encoding="utf-8") as f:
                content = await f.read()
            if content.strip():
                existing = await self._load_json_array(path, content)
        existing.extend(rows)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(existing, indent=2))

    async def _load_json_array(self, path: Path, content: str) -> list[dict[str, Any]]:
        """Parse an existing array; an unreadable file is moved aside and replaced."""
        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, list):
            return data

        corrupt = path.with_name(f"{path.name}.{datetime.now(UTC):%Y%m%dT%H%M%S}.corrupt")
        await aiofiles.os.rename(path, corrupt)
        logger.warning("%s is not a JSON array; moved it to %s and started a new file", path, corrupt.name)
        return []

    async def close(self) -> None:
        logger.info("File sink wrote %d record(s)", self.records_written)

    def describe(self) -> dict[str, Any]:
        return {
            **super().describe(),
            "data_directory": str(self.data_directory),
            "formats": list(self.formats),
        }
