from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MESSAGE_PREFIX_CONTEXT = "_bemi"
MESSAGE_PREFIX_HEARTBEAT = "_bemi_heartbeat"


class MessagePrefixes(BaseModel):
    """Reserved `message.prefix` markers for custom logical decoding messages."""

    model_config = ConfigDict(frozen=True)

    context: str = MESSAGE_PREFIX_CONTEXT
    heartbeat: str = MESSAGE_PREFIX_HEARTBEAT


DEFAULT_MESSAGE_PREFIXES = MessagePrefixes()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=False)

    message_prefix_context: str = Field(
        default=MESSAGE_PREFIX_CONTEXT,
        alias="MESSAGE_PREFIX_CONTEXT",
    )
    message_prefix_heartbeat: str = Field(
        default=MESSAGE_PREFIX_HEARTBEAT,
        alias="MESSAGE_PREFIX_HEARTBEAT",
    )
    decode_skip_failures: bool = Field(default=False, alias="DECODE_SKIP_FAILURES")

    @field_validator("message_prefix_context", "message_prefix_heartbeat")
    @classmethod
    def _validate_prefix(cls, value: str) -> str:
        if not value:
            raise ValueError("message prefixes must be non-empty")
        return value

    @model_validator(mode="after")
    def _validate_distinct_prefixes(self) -> Settings:
        if self.message_prefix_context == self.message_prefix_heartbeat:
            raise ValueError(
                "MESSAGE_PREFIX_CONTEXT and MESSAGE_PREFIX_HEARTBEAT must be different"
            )
        return self

    @property
    def message_prefixes(self) -> MessagePrefixes:
        return MessagePrefixes(
            context=self.message_prefix_context,
            heartbeat=self.message_prefix_heartbeat,
        )
