"""Notification sinks for live-session state changes.

Participants learn about changes through two redundant channels:

- BroadcastSink: small JSON messages on `<prefix>-<event_id>` (low latency,
  e.g. `prompt_update`, `score_update`).
- RowChangeSink: row-level change notifications on `<table>-<event_id>`
  carrying the full updated record (the durable fallback for a client that
  missed a broadcast).

The coordinator only ever calls `StateChangePublisher.publish_state_change`;
either sink can be left out (e.g. in tests). A sink failure happens after
the write has already succeeded, so it is logged and never raised.
"""

import logging
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel

from ..models.session_models import BroadcastMessage, MessageType, RowChange
from .broadcast import BroadcastHub


logger = logging.getLogger(__name__)

# Tables that publish row changes. Responses stay private to host and grader.
TABLES = ("events", "prompts", "guests")


def broadcast_channel(event_id: str, prefix: str = "live-session") -> str:
    return f"{prefix}-{event_id}"


def row_channel(table: str, event_id: str) -> str:
    return f"{table}-{event_id}"


class BroadcastSink:
    """Publishes BroadcastMessage objects on the event's session channel."""

    def __init__(self, hub: BroadcastHub, prefix: str = "live-session") -> None:
        self.hub = hub
        self.prefix = prefix

    def send(self, event_id: str, message_type: MessageType, payload: Dict[str, Any]) -> None:
        channel = broadcast_channel(event_id, self.prefix)
        self.hub.send(
            channel,
            BroadcastMessage(channel=channel, event=message_type, payload=payload),
        )


class RowChangeSink:
    """Publishes RowChange notifications on per-table event channels."""

    def __init__(self, hub: BroadcastHub) -> None:
        self.hub = hub

    def send(self, event_id: str, table: str, change: str, record: BaseModel) -> None:
        channel = row_channel(table, event_id)
        self.hub.send(
            channel,
            RowChange(
                channel=channel,
                table=table,
                change=change,
                record=record.model_dump(mode="json"),
            ),
        )


class StateChangePublisher:
    """Single entry point that fans one state change out to both sinks."""

    def __init__(
        self,
        broadcast_sink: Optional[BroadcastSink] = None,
        row_change_sink: Optional[RowChangeSink] = None,
    ) -> None:
        self.broadcast_sink = broadcast_sink
        self.row_change_sink = row_change_sink

    def publish_state_change(
        self,
        event_id: str,
        message_type: Optional[MessageType] = None,
        payload: Optional[Dict[str, Any]] = None,
        table: Optional[str] = None,
        records: Iterable[BaseModel] = (),
        change: str = "UPDATE",
    ) -> None:
        """Publish a broadcast message and/or row changes for one event.

        Parameters
        ----------
        message_type, payload:
            The broadcast message. Skipped if message_type is None.
        table, records, change:
            Rows that were written ("INSERT" or "UPDATE"). Skipped if table
            is None.
        """
        if message_type is not None and self.broadcast_sink is not None:
            try:
                self.broadcast_sink.send(event_id, message_type, payload or {})
            except Exception as exc:
                logger.warning(
                    "[REALTIME] broadcast %s for event %s failed: %s",
                    message_type.value, event_id, exc,
                )

        if table is not None and self.row_change_sink is not None:
            for record in records:
                try:
                    self.row_change_sink.send(event_id, table, change, record)
                except Exception as exc:
                    logger.warning(
                        "[REALTIME] row change %s on %s for event %s failed: %s",
                        change, table, event_id, exc,
                    )
