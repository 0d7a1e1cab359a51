"""Delivery transports."""

from gpscapture.dispatch.sinks.api import ApiSink
from gpscapture.dispatch.sinks.base import Sink
from gpscapture.dispatch.sinks.blob import BlobStorageSink
from gpscapture.dispatch.sinks.database import DatabaseSink
from gpscapture.dispatch.sinks.file import FileSink

__all__ = ["ApiSink", "BlobStorageSink", "DatabaseSink", "FileSink", "Sink"]
