from __future__ import annotations

from datetime import datetime, timedelta, timezone

from cdc_change_ingest.envelope import (
    MalformedEnvelopeError,
    classify_operation,
    decode_context,
    parse_position,
)
from cdc_change_ingest.models import ChangeRecord, Envelope, Operation
from cdc_change_ingest.settings import DEFAULT_MESSAGE_PREFIXES, MessagePrefixes

UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def epoch_ms_to_datetime(value_ms: int | None) -> datetime | None:
    if value_ms is None:
        return None
    try:
        return UNIX_EPOCH + timedelta(milliseconds=value_ms)
    except OverflowError as exc:
        raise MalformedEnvelopeError(f"Epoch millis timestamp out of range: {value_ms}") from exc


def build_change_record(
    envelope: Envelope,
    *,
    prefixes: MessagePrefixes = DEFAULT_MESSAGE_PREFIXES,
    now: datetime | None = None,
) -> ChangeRecord:
    operation = classify_operation(envelope.op)
    if operation is Operation.MESSAGE and envelope.message is None:
        raise MalformedEnvelopeError("Message operation without a message block")

    # Deletes only carry the old row image; everything else keys off the new one.
    key_image = envelope.before if operation is Operation.DELETE else envelope.after
    source = envelope.source

    return ChangeRecord(
        primary_key=(key_image or {}).get("id"),
        values=envelope.after or {},
        context=decode_context(envelope.message, context_prefix=prefixes.context),
        database=source.db,
        schema_name=source.schema_name,
        table=source.table,
        operation=operation,
        committed_at=epoch_ms_to_datetime(source.ts_ms),
        queued_at=epoch_ms_to_datetime(envelope.ts_ms),
        transaction_id=source.tx_id,
        position=parse_position(source.lsn),
        created_at=now if now is not None else datetime.now(timezone.utc),
    )
