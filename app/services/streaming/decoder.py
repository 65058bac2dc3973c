"""
Incremental decoder for the progressively written reply object.

The server writes a single JSON object whose ``response`` string grows as the
model generates text. ``StreamDecoder`` receives arbitrary chunks of that body,
emits the newly confirmed part of ``response`` as ``Delta`` events and, once
the object is complete, a single ``Complete`` event carrying the parsed result.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import List

from pydantic import ValidationError

from app.core.config import settings
from app.schemas.api import ParsedObject
from .events import Complete, Delta, StreamError, StreamErrorKind, StreamEvent
from .structure import StructureTracker

RESPONSE_MARKER = '"response": "'


class ParserState(str, Enum):
    SEEKING_KEY = "SeekingKey"
    IN_VALUE = "InValue"
    VALUE_CLOSED = "ValueClosed"


def _is_hex4(text: str) -> bool:
    return len(text) == 4 and all(c in "0123456789abcdefABCDEF" for c in text)


def _decodable_prefix(raw: str) -> int:
    """Length of the longest prefix of ``raw`` that ends on an escape boundary."""
    i = 0
    n = len(raw)
    while i < n:
        if raw[i] != "\\":
            i += 1
            continue
        if i + 1 >= n:
            break
        if raw[i + 1] != "u":
            i += 2
            continue
        if i + 6 > n:
            break
        code = raw[i + 2:i + 6]
        if _is_hex4(code) and 0xD800 <= int(code, 16) <= 0xDBFF:
            # keep a high surrogate together with its low half
            if i + 12 > n:
                break
            if raw[i + 6:i + 8] == "\\u" and _is_hex4(raw[i + 8:i + 12]):
                i += 12
                continue
        i += 6
    return i


class StreamDecoder:
    """
    Per-stream state machine: SeekingKey -> InValue -> ValueClosed.

    One instance owns the buffer for exactly one response stream. All state
    changes happen synchronously inside ``consume``/``finish``; once an event
    of type ``Complete`` or ``StreamError`` has been returned the decoder is
    terminal and ignores further input.
    """

    def __init__(self, max_length: int | None = None, logger: logging.Logger | None = None) -> None:
        self.max_length = max_length if max_length is not None else settings.max_stream_length
        self.logger = logger or logging.getLogger(__name__)
        self.state = ParserState.SEEKING_KEY
        self._chunks: List[str] = []
        self._size = 0
        self._structure = StructureTracker()
        self._marker_tail = ""  # unmatched suffix that may begin the marker
        self._backslash_run = 0
        self._pending = ""  # raw value text not yet delivered
        self.delivered = 0  # raw value characters already emitted
        self.value_length = 0
        self._terminal = False

    @property
    def is_terminal(self) -> bool:
        return self._terminal

    @property
    def buffer_length(self) -> int:
        return self._size

    # ----------------------- Public API -----------------------
    def consume(self, chunk: str) -> List[StreamEvent]:
        if self._terminal or not chunk:
            return []
        events: List[StreamEvent] = []
        self._chunks.append(chunk)
        self._size += len(chunk)

        value_text = chunk
        if self.state == ParserState.SEEKING_KEY:
            value_text = self._seek_marker(chunk)
        if self.state == ParserState.IN_VALUE:
            self._scan_value(value_text)
            events.extend(self._emit_delta())

        self._structure.feed(chunk)
        # only a newly closed object can change the parse outcome
        if self._structure.closed_in_last_feed and self._structure.is_balanced:
            result = self._try_parse()
            if result is not None:
                return events + self._terminate(Complete(result))
            self.logger.debug("Balanced buffer of %d chars did not parse yet.", self._size)

        if self._size > self.max_length:
            return events + self._terminate(
                StreamError(
                    StreamErrorKind.EXCEEDED_MAX_LENGTH,
                    f"Stream exceeded {self.max_length} characters without a valid object.",
                )
            )
        return events

    def finish(self) -> List[StreamEvent]:
        """Handle end-of-stream from the transport."""
        if self._terminal:
            return []
        if self.state != ParserState.VALUE_CLOSED:
            return self._terminate(
                StreamError(
                    StreamErrorKind.UNTERMINATED_VALUE,
                    "Stream ended unexpectedly while parsing response value.",
                )
            )
        result = self._try_parse()
        if result is None:
            return self._terminate(
                StreamError(
                    StreamErrorKind.INVALID_FINAL_JSON,
                    "Stream ended with incomplete or invalid JSON object.",
                )
            )
        return self._terminate(Complete(result))

    # ----------------------- Internals -----------------------
    def _seek_marker(self, chunk: str) -> str:
        """Look for the marker across the previous tail and ``chunk``.

        Returns the text following the marker when it is found.
        """
        window = self._marker_tail + chunk
        index = window.find(RESPONSE_MARKER)
        if index == -1:
            self._marker_tail = window[-(len(RESPONSE_MARKER) - 1):]
            return ""
        self.state = ParserState.IN_VALUE
        self._marker_tail = ""
        self.logger.debug("Found response marker at offset %d.", self._size - len(window) + index)
        return window[index + len(RESPONSE_MARKER):]

    def _scan_value(self, text: str) -> None:
        """Append value characters up to the first unescaped quote."""
        run = self._backslash_run
        for i, ch in enumerate(text):
            if ch == '"' and run % 2 == 0:
                self._pending += text[:i]
                self.value_length += i
                self.state = ParserState.VALUE_CLOSED
                return
            run = run + 1 if ch == "\\" else 0
        self._backslash_run = run
        self._pending += text
        self.value_length += len(text)

    def _emit_delta(self) -> List[StreamEvent]:
        if self.state == ParserState.VALUE_CLOSED:
            cut = len(self._pending)
        else:
            cut = _decodable_prefix(self._pending)
        if cut == 0:
            return []
        raw, self._pending = self._pending[:cut], self._pending[cut:]
        self.delivered += cut
        try:
            text = json.loads(f'"{raw}"', strict=False)
        except json.JSONDecodeError:
            self.logger.debug("Invalid escape in response value; delivering raw text.")
            text = raw
        return [Delta(text)] if text else []

    def _try_parse(self) -> ParsedObject | None:
        buffer = "".join(self._chunks)
        try:
            parsed = json.loads(buffer, strict=False)
        except json.JSONDecodeError:
            return None
        if not isinstance(parsed, dict):
            return None
        try:
            return ParsedObject.model_validate(parsed)
        except ValidationError as e:
            self.logger.debug("Parsed object has unexpected shape: %s", e)
            return None

    def _terminate(self, event: StreamEvent) -> List[StreamEvent]:
        self._terminal = True
        self._chunks = []
        self._pending = ""
        if isinstance(event, StreamError):
            self.logger.warning("Stream terminated with %s: %s", event.kind.value, event.message)
        return [event]


def begin_stream(max_length: int | None = None, logger: logging.Logger | None = None) -> StreamDecoder:
    """Create the decoder state for one response stream."""
    return StreamDecoder(max_length=max_length, logger=logger)
