"""HTTP API sink: POSTs each batch as a JSON array."""

import logging
from collections.abc import Sequence
from typing import Any

import aiohttp

from gpscapture.dispatch.records import FailurePolicy, SinkKind, SinkRecord
from gpscapture.dispatch.sinks.base import Sink
from gpscapture.errors import DeliveryError

__all__ = ["USER_AGENT", "ApiSink"]

logger = logging.getLogger(__name__)

USER_AGENT = "GpsDataCapture/1.0"


class ApiSink(Sink):
    """Delivers batches to an HTTP endpoint.

    Any 2xx response is success. Other statuses and transport errors raise,
    leaving the retry decision to the pipeline.
    """

    kind = SinkKind.API
    default_failure_policy = FailurePolicy.DROP

    def __init__(
        self,
        endpoint: str,
        api_key: str | None = None,
        timeout: float = 30.0,
        failure_policy: FailurePolicy | None = None,
    ) -> None:
        super().__init__(failure_policy)
        self.endpoint = endpoint
        self._api_key = api_key
        self._timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    def headers(self) -> dict[str, str]:
        headers = {"User-Agent": USER_AGENT}
        if self._api_key:
            headers["X-API-Key"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def open(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers=self.headers(),
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def deliver_batch(self, records: Sequence[SinkRecord]) -> None:
        if self._session is None:
            await self.open()
        payload = [record.to_dict() for record in records]
        async with self._session.post(self.endpoint, json=payload) as response:
            if not 200 <= response.status < 300:
                body = await response.text()
                raise DeliveryError(
                    f"API returned status {response.status}: {body[:200]}",
                    sink=str(self.kind),
                    status=response.status,
                )
        logger.debug("Sent %d record(s) to %s", len(records), self.endpoint)

    def describe(self) -> dict[str, Any]:
        return {**super().describe(), "endpoint": self.endpoint}
