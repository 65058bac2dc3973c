"""Async front ends that drive a ``StreamDecoder`` from a chunk source."""

from __future__ import annotations

import codecs
import logging
from typing import AsyncIterable, AsyncIterator, Callable, Union

from app.schemas.api import ParsedObject
from .decoder import begin_stream
from .events import (
    Complete,
    Delta,
    StreamDecodeError,
    StreamError,
    StreamErrorKind,
    StreamEvent,
)

Chunk = Union[bytes, str]


async def decode_stream(
    chunks: AsyncIterable[Chunk] | None,
    *,
    max_length: int | None = None,
    logger: logging.Logger | None = None,
) -> AsyncIterator[StreamEvent]:
    """
    Yield decoder events for one response body.

    Raw byte chunks are decoded with an incremental UTF-8 decoder so characters
    split across chunk boundaries are reassembled; text chunks, such as
    httpx's ``aiter_text()``, are passed through as they are.
    Iteration stops after the first ``Complete`` or ``StreamError`` event.
    An exception raised by ``chunks`` becomes an ``UpstreamGenerationError``
    event.
    """
    if chunks is None:
        yield StreamError(StreamErrorKind.TRANSPORT_MISSING, "Response body is missing")
        return

    decoder = begin_stream(max_length=max_length, logger=logger)
    utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
    try:
        async for chunk in chunks:
            text = utf8.decode(chunk) if isinstance(chunk, bytes) else chunk
            for event in decoder.consume(text):
                yield event
            if decoder.is_terminal:
                return
    except Exception as e:
        yield StreamError(StreamErrorKind.UPSTREAM_GENERATION_ERROR, str(e))
        return

    for event in decoder.consume(utf8.decode(b"", final=True)):
        yield event
    for event in decoder.finish():
        yield event


async def process_stream(
    chunks: AsyncIterable[Chunk] | None,
    on_delta: Callable[[str], None] | None = None,
    on_complete: Callable[[ParsedObject], None] | None = None,
    on_error: Callable[[StreamError], None] | None = None,
    *,
    max_length: int | None = None,
) -> None:
    """Callback flavour of ``decode_stream``."""
    async for event in decode_stream(chunks, max_length=max_length):
        if isinstance(event, Delta):
            if on_delta:
                on_delta(event.text)
        elif isinstance(event, Complete):
            if on_complete:
                on_complete(event.result)
        elif on_error:
            on_error(event)


async def collect_response(
    chunks: AsyncIterable[Chunk] | None,
    *,
    max_length: int | None = None,
) -> ParsedObject:
    """Drain a stream and return its final object, raising on error events."""
    async for event in decode_stream(chunks, max_length=max_length):
        if isinstance(event, Complete):
            return event.result
        if isinstance(event, StreamError):
            raise StreamDecodeError(event.kind, event.message)
    raise StreamDecodeError(StreamErrorKind.INVALID_FINAL_JSON)
