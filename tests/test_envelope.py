from __future__ import annotations

import base64
from typing import Any

import pytest

from cdc_change_ingest.envelope import (
    ChangeDecodeError,
    ContextParseError,
    DecodeError,
    MalformedEnvelopeError,
    PositionParseError,
    UnknownOperationError,
    classify_operation,
    decode_context,
    decode_data,
    is_heartbeat_envelope,
    parse_envelope,
    parse_position,
)
from cdc_change_ingest.models import EmbeddedMessage, Operation
from conftest import encode_context


def test_decode_data_parses_utf8_json() -> None:
    assert decode_data(b'{"op":"c","name":"caf\xc3\xa9"}') == {"op": "c", "name": "café"}


@pytest.mark.parametrize(
    "payload",
    [b"\xff\xfe{", b"not-json", b'{"op":', b"[" * 100_000 + b"]" * 100_000],
)
def test_decode_data_rejects_invalid_payloads(payload: bytes) -> None:
    with pytest.raises(DecodeError):
        decode_data(payload)


def test_heartbeat_envelope_is_exactly_the_receive_timestamp() -> None:
    assert is_heartbeat_envelope({"ts_ms": 1700000000000}) is True
    assert is_heartbeat_envelope({"ts_ms": 1, "op": "c"}) is False
    assert is_heartbeat_envelope({}) is False
    assert is_heartbeat_envelope([1]) is False


@pytest.mark.parametrize(
    ("code", "operation"),
    [
        ("c", Operation.CREATE),
        ("u", Operation.UPDATE),
        ("d", Operation.DELETE),
        ("t", Operation.TRUNCATE),
        ("m", Operation.MESSAGE),
    ],
)
def test_classify_operation_maps_known_codes(code: str, operation: Operation) -> None:
    assert classify_operation(code) is operation


@pytest.mark.parametrize("code", ["r", "C", "", "x"])
def test_classify_operation_rejects_unknown_codes(code: str) -> None:
    with pytest.raises(UnknownOperationError) as exc_info:
        classify_operation(code)

    assert exc_info.value.op == code
    assert repr(code) in str(exc_info.value)


def test_parse_envelope_ignores_unknown_fields(update_envelope: dict[str, Any]) -> None:
    update_envelope["transaction"] = {"id": "5:100"}
    update_envelope["source"]["connector"] = "postgresql"

    envelope = parse_envelope(update_envelope)

    assert envelope.op == "u"
    assert envelope.source.schema_name == "s"
    assert envelope.source.tx_id == 5
    assert envelope.message is None


@pytest.mark.parametrize(
    ("missing", "field"),
    [
        (("op",), "op"),
        (("source",), "source"),
        (("source", "db"), "source.db"),
        (("source", "schema"), "source.schema"),
        (("source", "table"), "source.table"),
    ],
)
def test_parse_envelope_requires_fields(
    update_envelope: dict[str, Any],
    missing: tuple[str, ...],
    field: str,
) -> None:
    target = update_envelope
    for key in missing[:-1]:
        target = target[key]
    del target[missing[-1]]

    with pytest.raises(MalformedEnvelopeError) as exc_info:
        parse_envelope(update_envelope)

    assert field in str(exc_info.value)


def test_parse_envelope_rejects_non_object() -> None:
    with pytest.raises(MalformedEnvelopeError):
        parse_envelope(["op", "c"])


def test_decode_context_reads_base64_json() -> None:
    message = EmbeddedMessage(prefix="_bemi", content=encode_context({"user_id": 42}))

    assert decode_context(message, context_prefix="_bemi") == {"user_id": 42}


def test_decode_context_keeps_key_order() -> None:
    message = EmbeddedMessage(prefix="_bemi", content=encode_context({"b": 1, "a": 2}))

    assert list(decode_context(message, context_prefix="_bemi")) == ["b", "a"]


def test_decode_context_is_empty_without_context_prefix() -> None:
    assert decode_context(None, context_prefix="_bemi") == {}
    heartbeat = EmbeddedMessage(prefix="_bemi_heartbeat", content=None)
    assert decode_context(heartbeat, context_prefix="_bemi") == {}


@pytest.mark.parametrize(
    "content",
    [
        None,
        "%%%not-base64%%%",
        "\u00e9",
        base64.b64encode(b"\xff\xfe").decode("ascii"),
        base64.b64encode(b"{not json").decode("ascii"),
        base64.b64encode(b"[1, 2]").decode("ascii"),
        base64.b64encode(b"[" * 100_000 + b"]" * 100_000).decode("ascii"),
    ],
)
def test_decode_context_rejects_corrupt_content(content: str | None) -> None:
    message = EmbeddedMessage(prefix="_bemi", content=content)

    with pytest.raises(ContextParseError):
        decode_context(message, context_prefix="_bemi")


def test_parse_position_is_base10() -> None:
    assert parse_position("100") == 100
    assert parse_position("0012") == 12
    assert parse_position(24023128) == 24023128


@pytest.mark.parametrize("lsn", ["0/16B6D80", "abc", "", "1_000", None, True])
def test_parse_position_rejects_non_numeric(lsn: Any) -> None:
    with pytest.raises(PositionParseError):
        parse_position(lsn)


def test_errors_share_a_base_class() -> None:
    for error_type in (
        DecodeError,
        MalformedEnvelopeError,
        UnknownOperationError,
        ContextParseError,
        PositionParseError,
    ):
        assert issubclass(error_type, ChangeDecodeError)
