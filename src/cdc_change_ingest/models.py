from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Protocol, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, JsonValue

JsonObject: TypeAlias = dict[str, JsonValue]


class Operation(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    TRUNCATE = "TRUNCATE"
    MESSAGE = "MESSAGE"


class EmbeddedMessage(BaseModel):
    """Logical decoding message block (`pg_logical_emit_message`)."""

    model_config = ConfigDict(frozen=True)

    prefix: str
    content: str | None = None


class SourceMetadata(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    db: str
    schema_name: str = Field(alias="schema")
    table: str
    tx_id: Any = Field(default=None, alias="txId")
    lsn: str | int | None = None
    ts_ms: int | None = None


class Envelope(BaseModel):
    """Debezium change-event envelope (JSON converter, schemas disabled)."""

    model_config = ConfigDict(frozen=True)

    op: str
    before: JsonObject | None = None
    after: JsonObject | None = None
    ts_ms: int | None = None
    message: EmbeddedMessage | None = None
    source: SourceMetadata


class ChangeRecord(BaseModel):
    """Normalized change, shaped for the persistence layer."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    primary_key: JsonValue = None
    values: JsonObject = Field(default_factory=dict)
    context: JsonObject = Field(default_factory=dict)
    database: str
    schema_name: str = Field(serialization_alias="schema")
    table: str
    operation: Operation
    committed_at: datetime | None = None
    queued_at: datetime | None = None
    transaction_id: Any = None
    position: int
    created_at: datetime

    def to_persistence_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class BrokerMessageLike(Protocol):
    @property
    def data(self) -> bytes:
        ...

    @property
    def subject(self) -> str:
        ...

    @property
    def stream_sequence(self) -> int:
        ...


class BrokerMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: bytes
    subject: str
    stream_sequence: int

    @classmethod
    def from_jetstream(cls, msg: Any) -> BrokerMessage:
        # JetStream exposes the per-stream sequence under msg.metadata.sequence.stream.
        return cls(
            data=bytes(msg.data),
            subject=msg.subject,
            stream_sequence=msg.metadata.sequence.stream,
        )
