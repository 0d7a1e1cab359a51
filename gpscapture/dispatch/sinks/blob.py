"""Azure Blob Storage sink: one JSON blob per batch.

Blob names are partitioned by device and upload date::

    <device>/<yyyy>/<MM>/<dd>/gps_data_<yyyyMMdd_HHmmss>_<uuid>.json
"""

import json
import logging
import uuid
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

from azure.core.exceptions import ResourceExistsError
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobServiceClient

from gpscapture.dispatch.records import FailurePolicy, SinkKind, SinkRecord
from gpscapture.dispatch.sinks.base import Sink

__all__ = ["BlobStorageSink", "blob_name_for"]

logger = logging.getLogger(__name__)


def blob_name_for(device_id: str, uploaded_at: datetime, unique: str) -> str:
    return (
        f"{device_id}/{uploaded_at:%Y}/{uploaded_at:%m}/{uploaded_at:%d}/"
        f"gps_data_{uploaded_at:%Y%m%d_%H%M%S}_{unique}.json"
    )


class BlobStorageSink(Sink):
    kind = SinkKind.BLOB
    default_failure_policy = FailurePolicy.DROP

    def __init__(
        self,
        connection_string: str,
        container_name: str = "gps-data",
        pretty_json: bool = False,
        failure_policy: FailurePolicy | None = None,
        client_factory: Callable[[str], BlobServiceClient] = BlobServiceClient.from_connection_string,
        now: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        super().__init__(failure_policy)
        self.container_name = container_name
        self.pretty_json = pretty_json
        self._connection_string = connection_string
        self._client_factory = client_factory
        self._now = now
        self._service: BlobServiceClient | None = None

    async def open(self) -> None:
        if self._service is not None:
            return
        service = self._client_factory(self._connection_string)
        container = service.get_container_client(self.container_name)
        try:
            await container.create_container()
            logger.info("Created blob container %r", self.container_name)
        except ResourceExistsError:
            logger.debug("Blob container %r already exists", self.container_name)
        except Exception:
            await service.close()
            raise
        self._service = service

    async def close(self) -> None:
        if self._service is not None:
            await self._service.close()
            self._service = None

    def _serialize(self, records: Sequence[SinkRecord]) -> bytes:
        payload = [record.to_dict() for record in records]
        indent = 2 if self.pretty_json else None
        return json.dumps(payload, indent=indent).encode("utf-8")

    async def deliver_batch(self, records: Sequence[SinkRecord]) -> None:
        if self._service is None:
            await self.open()
        uploaded_at = self._now()
        device_id = records[0].snapshot.device_id or "unknown"
        name = blob_name_for(device_id, uploaded_at, uuid.uuid4().hex)
        metadata = {
            "RecordCount": str(len(records)),
            "DeviceId": device_id,
            "UploadTimestamp": uploaded_at.isoformat(),
            "FirstRecordTime": records[0].snapshot.timestamp.isoformat(),
            "LastRecordTime": records[-1].snapshot.timestamp.isoformat(),
        }
        blob = self._service.get_blob_client(container=self.container_name, blob=name)
        await blob.upload_blob(
            self._serialize(records),
            overwrite=True,
            metadata=metadata,
            content_settings=ContentSettings(content_type="application/json"),
        )
        logger.debug("Uploaded %d record(s) to blob %s", len(records), name)

    def describe(self) -> dict[str, Any]:
        return {**super().describe(), "container": self.container_name}
