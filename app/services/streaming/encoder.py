"""Writes a reply as one JSON object whose ``response`` value grows over time."""

from __future__ import annotations

import json
import logging
from typing import AsyncIterable, AsyncIterator, Callable

from app.schemas.api import StreamMetadata

OBJECT_OPEN = '{"response": "'
TRAILING_FIELDS = ("currentCategory", "currentWord", "currentWordProgress", "exercises")

ESCAPE_TABLE = str.maketrans({
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
})


def escape_fragment(text: str) -> str:
    """Escape backslash, quote, newline, carriage return and tab only."""
    return text.translate(ESCAPE_TABLE)


def closing_fields(metadata: StreamMetadata | None = None) -> str:
    """Close the ``response`` string, append the trailing fields and close the object."""
    values = (metadata or StreamMetadata()).model_dump()
    parts = [f'"{name}": {json.dumps(values[name], ensure_ascii=False)}' for name in TRAILING_FIELDS]
    return '", ' + ", ".join(parts) + "}"


def encode_object(text: str, metadata: StreamMetadata | None = None) -> bytes:
    """Wire bytes for a reply that is already complete."""
    return (OBJECT_OPEN + escape_fragment(text) + closing_fields(metadata)).encode("utf-8")


class ResponseEncoder:
    """
    Async iterator of UTF-8 byte pieces for one reply.

    Every fragment from the source is escaped and yielded immediately so the
    transport can flush it. ``metadata_factory`` is only called after the
    source is exhausted. If the source fails, the object is still closed with
    null trailing fields and the exception is kept on ``error``.
    """

    def __init__(
        self,
        fragments: AsyncIterable[str],
        metadata_factory: Callable[[], StreamMetadata] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.fragments = fragments
        self.metadata_factory = metadata_factory
        self.logger = logger or logging.getLogger(__name__)
        self.error: Exception | None = None
        self.text_parts: list[str] = []

    @property
    def text(self) -> str:
        """Unescaped text written so far."""
        return "".join(self.text_parts)

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._generate()

    async def _generate(self) -> AsyncIterator[bytes]:
        yield OBJECT_OPEN.encode("utf-8")
        try:
            async for fragment in self.fragments:
                if not fragment:
                    continue
                self.text_parts.append(fragment)
                yield escape_fragment(fragment).encode("utf-8")
        except Exception as e:
            self.error = e
            self.logger.exception(f"Fragment source failed after {len(self.text_parts)} fragments: {e}")
            metadata = StreamMetadata()
        else:
            metadata = self.metadata_factory() if self.metadata_factory else StreamMetadata()
            self.logger.info("Reply stream completed with %d fragments.", len(self.text_parts))
        yield closing_fields(metadata).encode("utf-8")
