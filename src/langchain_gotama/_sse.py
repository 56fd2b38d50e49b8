"""
Server-Sent Events (SSE) frame decoder for the Anthropic Messages streaming API.

Turns a line source (``httpx.Response.iter_lines()`` or any iterable of text
lines) into typed protocol events. It knows nothing about citation or pause
blocks; see ``langchain_gotama.blocks`` for that.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Iterable, Iterator, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from langchain_gotama._errors import DecodeError, ProtocolError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"


class _EventBase(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str

    @property
    def payload(self) -> dict[str, Any]:
        """Full JSON object as received, unknown fields included."""
        return self.model_dump(exclude_none=False)


class MessageStartEvent(_EventBase):
    type: Literal["message_start"]
    message: dict[str, Any] = {}


class ContentBlockStartEvent(_EventBase):
    type: Literal["content_block_start"]
    index: int = 0
    content_block: dict[str, Any] = {}


class Delta(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    text: Optional[str] = None
    partial_json: Optional[str] = None


class ContentBlockDeltaEvent(_EventBase):
    type: Literal["content_block_delta"]
    index: int = 0
    delta: Delta


class ContentBlockStopEvent(_EventBase):
    type: Literal["content_block_stop"]
    index: int = 0


class MessageDeltaEvent(_EventBase):
    type: Literal["message_delta"]
    delta: dict[str, Any] = {}
    usage: Optional[dict[str, Any]] = None


class MessageStopEvent(_EventBase):
    type: Literal["message_stop"]


class ErrorDetail(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str = "error"
    message: str = ""


class ErrorEvent(_EventBase):
    type: Literal["error"]
    error: ErrorDetail = ErrorDetail()


class PingEvent(_EventBase):
    type: Literal["ping"]


class UnknownEvent(_EventBase):
    """Forward-compatible fallback for event kinds this library does not know yet."""


ProtocolEvent = Union[
    MessageStartEvent,
    ContentBlockStartEvent,
    ContentBlockDeltaEvent,
    ContentBlockStopEvent,
    MessageDeltaEvent,
    MessageStopEvent,
    ErrorEvent,
    PingEvent,
    UnknownEvent,
]

_EVENT_MODELS: dict[str, type[_EventBase]] = {
    "message_start": MessageStartEvent,
    "content_block_start": ContentBlockStartEvent,
    "content_block_delta": ContentBlockDeltaEvent,
    "content_block_stop": ContentBlockStopEvent,
    "message_delta": MessageDeltaEvent,
    "message_stop": MessageStopEvent,
    "error": ErrorEvent,
    "ping": PingEvent,
}


def parse_protocol_event(obj: dict[str, Any], *, raw: str = "") -> ProtocolEvent:
    """
    Map a decoded JSON object to its typed event.

    Args:
        obj: The decoded ``data:`` payload.
        raw: The raw payload, kept on ``DecodeError`` for diagnostics.

    Raises:
        DecodeError: If a known event kind does not match its expected shape.
    """
    kind = obj.get("type")
    if not isinstance(kind, str):
        kind = ""
    model = _EVENT_MODELS.get(kind)
    if model is None:
        logger.debug("Forwarding unknown SSE event kind %r", kind)
        return UnknownEvent.model_validate({**obj, "type": kind})
    try:
        return model.model_validate(obj)  # type: ignore[return-value]
    except ValidationError as e:
        raise DecodeError(raw or json.dumps(obj), str(e)) from e


def _decode_line(raw_line: str | bytes | None) -> str | None:
    """Return the JSON payload carried by one SSE line, or None if the line carries none."""
    if raw_line is None:
        return None
    if isinstance(raw_line, bytes):
        line = raw_line.decode("utf-8", "replace")
    else:
        line = raw_line
    line = line.strip()
    if not line or not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX):].lstrip()
    if not payload:
        return None
    return payload


def _decode_payload(payload: str) -> ProtocolEvent:
    try:
        obj = json.loads(payload)
    except json.JSONDecodeError as e:
        raise DecodeError(payload, e.msg if e.msg else str(e)) from e
    if not isinstance(obj, dict):
        raise DecodeError(payload, f"expected a JSON object, got {type(obj).__name__}")
    return parse_protocol_event(obj, raw=payload)


def _check_terminal(event: ProtocolEvent) -> bool:
    """Raise on `error` events; return True when the event ends the stream."""
    if isinstance(event, ErrorEvent):
        raise ProtocolError(event.error.message, error_type=event.error.type)
    return isinstance(event, MessageStopEvent)


def iter_protocol_events(lines: Iterable[str | bytes | None]) -> Iterator[ProtocolEvent]:
    """
    Decode SSE lines into protocol events, in received order.

    Args:
        lines: Text (or UTF-8 bytes) lines, e.g. ``response.iter_lines()``.

    Yields:
        Typed protocol events. ``message_stop`` is yielded and then ends the sequence.

    Raises:
        DecodeError: On malformed JSON in a ``data:`` payload.
        ProtocolError: On an ``error`` event from the API.
    """
    for raw_line in lines:
        payload = _decode_line(raw_line)
        if payload is None:
            continue
        event = _decode_payload(payload)
        done = _check_terminal(event)
        yield event
        if done:
            return


async def aiter_protocol_events(lines: AsyncIterable[str | bytes | None]) -> AsyncIterator[ProtocolEvent]:
    async for raw_line in lines:
        payload = _decode_line(raw_line)
        if payload is None:
            continue
        event = _decode_payload(payload)
        done = _check_terminal(event)
        yield event
        if done:
            return


def iter_protocol_events_from_text(text: str) -> Iterator[ProtocolEvent]:
    """
    Replay a complete captured SSE body.

    Args:
        text: The raw string containing one or multiple SSE events.

    Yields:
        Typed protocol events, exactly as ``iter_protocol_events`` would.
    """
    yield from iter_protocol_events(text.splitlines())
