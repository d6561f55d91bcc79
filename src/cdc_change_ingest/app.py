from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from datetime import datetime

from cdc_change_ingest.change_message import ChangeMessage, Skipped
from cdc_change_ingest.envelope import ChangeDecodeError
from cdc_change_ingest.models import BrokerMessageLike
from cdc_change_ingest.settings import DEFAULT_MESSAGE_PREFIXES, MessagePrefixes, Settings

LOGGER = logging.getLogger(__name__)


def decode_messages(
    messages: Iterable[BrokerMessageLike],
    *,
    prefixes: MessagePrefixes = DEFAULT_MESSAGE_PREFIXES,
    now: datetime | None = None,
    skip_failures: bool = False,
) -> Iterator[ChangeMessage]:
    """Decode broker messages in arrival order, dropping bare heartbeats.

    With ``skip_failures`` a message that fails to decode is logged and dropped;
    otherwise the first failure propagates and stops the iteration.
    """

    for message in messages:
        try:
            result = ChangeMessage.from_broker_message(message, now, prefixes=prefixes)
        except ChangeDecodeError as exc:
            if not skip_failures:
                raise
            LOGGER.error(
                "change_decode_failed",
                extra={
                    "subject": message.subject,
                    "stream_sequence": message.stream_sequence,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            continue

        if isinstance(result, Skipped):
            continue
        yield result


def decode_messages_with_settings(
    messages: Iterable[BrokerMessageLike],
    *,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> Iterator[ChangeMessage]:
    settings = settings or Settings()
    return decode_messages(
        messages,
        prefixes=settings.message_prefixes,
        now=now,
        skip_failures=settings.decode_skip_failures,
    )
