from __future__ import annotations

import copy
import logging
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict

from cdc_change_ingest.envelope import (
    MalformedEnvelopeError,
    decode_data,
    is_heartbeat_envelope,
    parse_envelope,
)
from cdc_change_ingest.models import BrokerMessageLike, ChangeRecord, JsonObject, Operation
from cdc_change_ingest.record import build_change_record, epoch_ms_to_datetime
from cdc_change_ingest.settings import DEFAULT_MESSAGE_PREFIXES, MessagePrefixes

LOGGER = logging.getLogger(__name__)


class MessageKind(str, Enum):
    DATA_CHANGE = "data_change"
    CONTEXT = "context"
    HEARTBEAT = "heartbeat"
    CUSTOM_MESSAGE = "custom_message"


class Skipped(BaseModel):
    """Broker message that decoded cleanly but carries no change."""

    model_config = ConfigDict(frozen=True)

    reason: Literal["heartbeat"]
    subject: str
    stream_sequence: int
    queued_at: datetime | None = None


class ChangeMessage:
    """A decoded change plus the broker coordinates it arrived on.

    Only the context can change after construction, and only by whole-value
    replacement via `set_context`.
    """

    def __init__(
        self,
        *,
        record: ChangeRecord,
        subject: str,
        stream_sequence: int,
        message_prefix: str | None = None,
        prefixes: MessagePrefixes = DEFAULT_MESSAGE_PREFIXES,
    ) -> None:
        if (record.operation is Operation.MESSAGE) != (message_prefix is not None):
            raise ValueError("message_prefix must be set if and only if operation is MESSAGE")

        self._record = record
        self._subject = subject
        self._stream_sequence = stream_sequence
        self._message_prefix = message_prefix
        self._prefixes = prefixes

    @classmethod
    def from_broker_message(
        cls,
        message: BrokerMessageLike,
        now: datetime | None = None,
        *,
        prefixes: MessagePrefixes = DEFAULT_MESSAGE_PREFIXES,
    ) -> ChangeMessage | Skipped:
        raw = decode_data(message.data)
        if is_heartbeat_envelope(raw):
            LOGGER.debug(
                "heartbeat_envelope_skipped",
                extra={"subject": message.subject, "stream_sequence": message.stream_sequence},
            )
            return Skipped(
                reason="heartbeat",
                subject=message.subject,
                stream_sequence=message.stream_sequence,
                queued_at=_heartbeat_queued_at(raw["ts_ms"]),
            )

        envelope = parse_envelope(raw)
        record = build_change_record(envelope, prefixes=prefixes, now=now)
        message_prefix = None
        if record.operation is Operation.MESSAGE and envelope.message is not None:
            message_prefix = envelope.message.prefix

        return cls(
            record=record,
            subject=message.subject,
            stream_sequence=message.stream_sequence,
            message_prefix=message_prefix,
            prefixes=prefixes,
        )

    @property
    def record(self) -> ChangeRecord:
        return self._record

    @property
    def subject(self) -> str:
        return self._subject

    @property
    def stream_sequence(self) -> int:
        return self._stream_sequence

    @property
    def message_prefix(self) -> str | None:
        return self._message_prefix

    @property
    def kind(self) -> MessageKind:
        if not self.is_message():
            return MessageKind.DATA_CHANGE
        if self.is_context_message():
            return MessageKind.CONTEXT
        if self.is_heartbeat_message():
            return MessageKind.HEARTBEAT
        return MessageKind.CUSTOM_MESSAGE

    def is_message(self) -> bool:
        return self._record.operation is Operation.MESSAGE

    def is_context_message(self) -> bool:
        return self.is_message() and self._message_prefix == self._prefixes.context

    def is_heartbeat_message(self) -> bool:
        return self.is_message() and self._message_prefix == self._prefixes.heartbeat

    def context(self) -> JsonObject:
        return copy.deepcopy(self._record.context)

    def set_context(self, context: JsonObject) -> ChangeMessage:
        self._record = self._record.model_copy(update={"context": context})
        return self

    def __repr__(self) -> str:
        return (
            f"ChangeMessage(subject={self._subject!r}, stream_sequence={self._stream_sequence}, "
            f"operation={self._record.operation.value}, message_prefix={self._message_prefix!r})"
        )


def _heartbeat_queued_at(value_ms: object) -> datetime | None:
    # Out-of-range heartbeat timestamps leave queued_at unset.
    if not isinstance(value_ms, int):
        return None
    try:
        return epoch_ms_to_datetime(value_ms)
    except MalformedEnvelopeError:
        return None
