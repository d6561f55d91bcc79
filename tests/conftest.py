"""
This file configures pytest.

uv sync --extra test
uv run pytest -q tests
"""

from __future__ import annotations

import base64
import json
import sys
from pathlib import Path
from typing import Any

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = PROJECT_ROOT / "src"

if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from cdc_change_ingest.models import BrokerMessage  # noqa: E402


def encode_context(context: dict[str, Any]) -> str:
    return base64.b64encode(json.dumps(context).encode("utf-8")).decode("ascii")


def broker_message(
    payload: dict[str, Any] | bytes,
    *,
    subject: str = "S",
    stream_sequence: int = 7,
) -> BrokerMessage:
    data = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    return BrokerMessage(data=data, subject=subject, stream_sequence=stream_sequence)


@pytest.fixture()
def update_envelope() -> dict[str, Any]:
    return {
        "op": "u",
        "before": {"id": 1, "name": "a"},
        "after": {"id": 1, "name": "b"},
        "ts_ms": 1000,
        "source": {
            "db": "d",
            "schema": "s",
            "table": "t",
            "txId": 5,
            "lsn": "100",
            "ts_ms": 900,
        },
    }
