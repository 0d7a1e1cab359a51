"""JSON formatting utilities for status streaming."""

import json
from typing import Any

from gpscapture.position import Snapshot

__all__ = ["format_snapshot_message", "format_status_message"]


def format_snapshot_message(snapshot: Snapshot) -> str:
    """Serialize an emitted snapshot into a JSON string for WebSocket transmission."""
    return json.dumps({"type": "snapshot", **snapshot.to_dict()})


def format_status_message(status: dict[str, Any]) -> str:
    return json.dumps({"type": "status", **status})
