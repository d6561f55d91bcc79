from __future__ import annotations

import base64
import binascii
import json
import re
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from cdc_change_ingest.models import EmbeddedMessage, Envelope, JsonObject, Operation

HEARTBEAT_ENVELOPE_KEYS = frozenset({"ts_ms"})

_OPERATIONS_BY_CODE = {
    "c": Operation.CREATE,
    "u": Operation.UPDATE,
    "d": Operation.DELETE,
    "t": Operation.TRUNCATE,
    "m": Operation.MESSAGE,
}
_POSITION_PATTERN = re.compile(r"^-?[0-9]+$")


class ChangeDecodeError(ValueError):
    """Base class for failures turning one broker message into a change."""


class DecodeError(ChangeDecodeError):
    """Raised when the payload bytes are not UTF-8 JSON."""


class MalformedEnvelopeError(ChangeDecodeError):
    """Raised when required envelope fields are missing or mistyped."""


class UnknownOperationError(ChangeDecodeError):
    def __init__(self, op: Any) -> None:
        super().__init__(f"Unknown operation: {op!r}")
        self.op = op


class ContextParseError(ChangeDecodeError):
    """Raised when a context message payload cannot be decoded."""


class PositionParseError(ChangeDecodeError):
    def __init__(self, lsn: Any) -> None:
        super().__init__(f"Log position is not a base-10 integer: {lsn!r}")
        self.lsn = lsn


def decode_data(data: bytes) -> Any:
    try:
        return json.loads(bytes(data).decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise DecodeError("Payload is not valid UTF-8") from exc
    except json.JSONDecodeError as exc:
        raise DecodeError(f"Payload is not valid JSON: {exc.msg}") from exc
    except RecursionError as exc:
        raise DecodeError("Payload JSON is nested too deeply") from exc


def is_heartbeat_envelope(envelope: Any) -> bool:
    """Debezium heartbeats without a table carry nothing but the receive timestamp."""
    return isinstance(envelope, Mapping) and set(envelope.keys()) == HEARTBEAT_ENVELOPE_KEYS


def parse_envelope(raw: Any) -> Envelope:
    if not isinstance(raw, Mapping):
        raise MalformedEnvelopeError(
            f"Envelope must be a JSON object, got {type(raw).__name__}"
        )

    try:
        return Envelope.model_validate(raw)
    except ValidationError as exc:
        fields = sorted({".".join(str(part) for part in error["loc"]) for error in exc.errors()})
        raise MalformedEnvelopeError(
            f"Invalid change envelope fields: {', '.join(fields)}"
        ) from exc


def classify_operation(op: str) -> Operation:
    operation = _OPERATIONS_BY_CODE.get(op)
    if operation is None:
        raise UnknownOperationError(op)
    return operation


def decode_context(message: EmbeddedMessage | None, *, context_prefix: str) -> JsonObject:
    if message is None or message.prefix != context_prefix:
        return {}

    if message.content is None:
        raise ContextParseError("Context message has no content")

    try:
        raw = base64.b64decode(message.content.encode("ascii"), validate=True)
        context = json.loads(raw.decode("utf-8"))
    except (UnicodeEncodeError, binascii.Error) as exc:
        raise ContextParseError("Context content is not valid base64") from exc
    except UnicodeDecodeError as exc:
        raise ContextParseError("Context content is not valid UTF-8") from exc
    except json.JSONDecodeError as exc:
        raise ContextParseError(f"Context content is not valid JSON: {exc.msg}") from exc
    except RecursionError as exc:
        raise ContextParseError("Context content JSON is nested too deeply") from exc

    if not isinstance(context, dict):
        raise ContextParseError(
            f"Context must be a JSON object, got {type(context).__name__}"
        )
    return context


def parse_position(lsn: str | int | None) -> int:
    if isinstance(lsn, bool):
        raise PositionParseError(lsn)
    if isinstance(lsn, int):
        return lsn
    if isinstance(lsn, str) and _POSITION_PATTERN.fullmatch(lsn):
        return int(lsn, 10)
    raise PositionParseError(lsn)
