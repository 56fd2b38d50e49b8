"""
Streaming pipeline: SSE lines -> protocol events -> text deltas -> release units.

``ReleaseStream`` (sync) and ``AsyncReleaseStream`` (async) are single-use,
single-consumer iterators over ``ReleaseUnit`` values. Each records exactly
one terminal ``StreamOutcome`` (completed, failed or cancelled); fatal errors
are raised to the consumer after the outcome is recorded.

Usage:
    with client.stream_post_json("/v1/messages", payload) as r:
        client.raise_for_status(r)
        stream = ReleaseStream(r.iter_lines(), on_close=r.close)
        for unit in stream:
            ...
        stream.outcome
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Callable, Iterable, Iterator, Literal, Optional

import httpx

from langchain_gotama._client import transport_error_from_exception
from langchain_gotama._deltas import extract_text_delta
from langchain_gotama._errors import GotamaError
from langchain_gotama._sse import (
    MessageDeltaEvent,
    MessageStartEvent,
    MessageStopEvent,
    ProtocolEvent,
    aiter_protocol_events,
    iter_protocol_events,
)
from langchain_gotama.blocks import BlockBuffer, ReleaseUnit, UnterminatedBlock

logger = logging.getLogger(__name__)

OutcomeStatus = Literal["completed", "failed", "cancelled"]


@dataclass(frozen=True, slots=True)
class StreamOutcome:
    status: OutcomeStatus
    reason: Optional[str] = None
    # Partial block pending when the stream ended; never released as a unit.
    unterminated: Optional[UnterminatedBlock] = None
    # Held-back plain text (a possible opening marker) when a stream failed.
    pending_text: Optional[str] = None
    stop_reason: Optional[str] = None
    usage: Optional[dict[str, Any]] = None

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    @property
    def is_failed(self) -> bool:
        return self.status == "failed"

    @property
    def is_cancelled(self) -> bool:
        return self.status == "cancelled"


class _StreamCore:
    """Shared event handling and outcome bookkeeping for the sync/async streams."""

    def __init__(self, buffer: BlockBuffer | None, on_close: Callable[[], Any] | None) -> None:
        self._buffer = buffer if buffer is not None else BlockBuffer()
        self._on_close = on_close
        self._cancelled = False
        self._consumed = False
        self._outcome: StreamOutcome | None = None
        self._stop_reason: str | None = None
        self._usage: dict[str, Any] = {}
        self._saw_message_stop = False

    @property
    def buffer(self) -> BlockBuffer:
        return self._buffer

    @property
    def outcome(self) -> StreamOutcome | None:
        """Terminal outcome, or None while the stream is still running."""
        return self._outcome

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _start(self) -> None:
        if self._consumed:
            raise RuntimeError("A release stream can only be iterated once")
        self._consumed = True

    def _handle_event(self, event: ProtocolEvent) -> list[ReleaseUnit]:
        if isinstance(event, MessageStartEvent):
            usage = event.message.get("usage")
            if isinstance(usage, dict):
                self._usage.update(usage)
            return []
        if isinstance(event, MessageDeltaEvent):
            stop_reason = event.delta.get("stop_reason")
            if isinstance(stop_reason, str):
                self._stop_reason = stop_reason
            if isinstance(event.usage, dict):
                self._usage.update(event.usage)
            return []
        if isinstance(event, MessageStopEvent):
            self._saw_message_stop = True
            return []

        delta = extract_text_delta(event)
        if delta is None:
            return []
        return self._buffer.feed(delta.text)

    def _finish(self, status: OutcomeStatus, reason: str | None = None) -> None:
        if self._outcome is not None:
            return
        unterminated = None
        pending_text = None
        if status != "cancelled":
            unterminated = self._buffer.unterminated_block()
            pending_text = self._buffer.held or None
            if unterminated is not None:
                logger.warning(
                    "Stream ended inside an unterminated %s block (%d chars pending)",
                    unterminated.kind.value,
                    len(unterminated.text),
                )
        self._outcome = StreamOutcome(
            status=status,
            reason=reason,
            unterminated=unterminated,
            pending_text=pending_text,
            stop_reason=self._stop_reason,
            usage=dict(self._usage) or None,
        )
        self._buffer.reset()

    def _complete(self) -> list[ReleaseUnit]:
        if not self._saw_message_stop:
            logger.debug("Line source ended without message_stop; treating stream as completed")
        units = self._buffer.flush()
        self._finish("completed")
        return units

    def _close_source(self) -> None:
        if self._on_close is not None:
            self._on_close()


class ReleaseStream(_StreamCore):
    """Synchronous release-unit stream over an iterable of SSE lines."""

    def __init__(
        self,
        lines: Iterable[str | bytes | None],
        *,
        buffer: BlockBuffer | None = None,
        on_close: Callable[[], Any] | None = None,
    ) -> None:
        super().__init__(buffer, on_close)
        self._lines = lines

    def cancel(self) -> None:
        """Stop the stream: no further units are yielded and the line source is closed."""
        if self._cancelled or self._outcome is not None:
            return
        self._cancelled = True
        self._close_source()
        if not self._consumed:
            self._finish("cancelled")

    def __iter__(self) -> Iterator[ReleaseUnit]:
        self._start()
        return self._iterate()

    def _iterate(self) -> Iterator[ReleaseUnit]:
        try:
            for event in iter_protocol_events(self._lines):
                if self._cancelled:
                    break
                for unit in self._handle_event(event):
                    if self._cancelled:
                        break
                    yield unit
            if self._cancelled:
                self._finish("cancelled")
                return
            yield from self._complete()
        except GeneratorExit:
            self._cancelled = True
            self._finish("cancelled")
            raise
        except GotamaError as e:
            if self._cancelled:
                self._finish("cancelled")
                return
            self._finish("failed", str(e))
            raise
        except httpx.HTTPError as e:
            if self._cancelled:
                self._finish("cancelled")
                return
            err = transport_error_from_exception(e)
            self._finish("failed", err.message)
            raise err from e
        except httpx.StreamError:
            # cancel() cerró la respuesta mientras se leía
            if not self._cancelled:
                raise
            self._finish("cancelled")


class AsyncReleaseStream(_StreamCore):
    """Asynchronous release-unit stream over an async iterable of SSE lines."""

    def __init__(
        self,
        lines: AsyncIterable[str | bytes | None],
        *,
        buffer: BlockBuffer | None = None,
        on_close: Callable[[], Any] | None = None,
    ) -> None:
        super().__init__(buffer, on_close)
        self._lines = lines
        self._pending_close: Any = None
        self._close_task: asyncio.Task[Any] | None = None

    def cancel(self) -> None:
        """
        Stop the stream and close the line source.

        A coroutine returned by ``on_close`` (``response.aclose``) is awaited by
        the running iteration; before iteration it is scheduled on the running
        loop. Use ``acancel`` to wait for the close.
        """
        if self._cancelled or self._outcome is not None:
            return
        self._cancelled = True
        result = self._on_close() if self._on_close is not None else None
        if asyncio.iscoroutine(result):
            if self._consumed:
                self._pending_close = result
            else:
                self._schedule_close(result)
        if not self._consumed:
            self._finish("cancelled")

    async def acancel(self) -> None:
        """Cancel the stream and wait until the line source is closed."""
        self.cancel()
        await self._await_pending_close()
        if self._close_task is not None:
            await self._close_task

    def _schedule_close(self, coro: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Sin loop activo no hay iteración pendiente; se cierra aquí mismo.
            asyncio.run(coro)
            return
        self._close_task = loop.create_task(coro)

    async def _await_pending_close(self) -> None:
        if self._pending_close is not None:
            pending, self._pending_close = self._pending_close, None
            await pending

    def __aiter__(self) -> AsyncIterator[ReleaseUnit]:
        self._start()
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ReleaseUnit]:
        try:
            async for event in aiter_protocol_events(self._lines):
                if self._cancelled:
                    break
                for unit in self._handle_event(event):
                    if self._cancelled:
                        break
                    yield unit
            if self._cancelled:
                self._finish("cancelled")
                return
            for unit in self._complete():
                yield unit
        except (GeneratorExit, asyncio.CancelledError):
            self._cancelled = True
            self._finish("cancelled")
            raise
        except GotamaError as e:
            if self._cancelled:
                self._finish("cancelled")
                return
            self._finish("failed", str(e))
            raise
        except httpx.HTTPError as e:
            if self._cancelled:
                self._finish("cancelled")
                return
            err = transport_error_from_exception(e)
            self._finish("failed", err.message)
            raise err from e
        except httpx.StreamError:
            if not self._cancelled:
                raise
            self._finish("cancelled")
        finally:
            await self._await_pending_close()
