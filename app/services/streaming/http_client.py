"""httpx client that sends a learner message and decodes the streamed reply."""

from __future__ import annotations

import logging
from typing import AsyncIterator

import httpx

from app.core.config import settings
from app.schemas.api import ChatStreamRequest
from .consumer import decode_stream
from .events import StreamEvent

STREAM_PATH = "/api/v1/chat/stream"


class TutorStreamClient:
    """Posts to the streaming chat endpoint and yields decoder events."""

    def __init__(
        self,
        base_url: str = settings.api_base_url,
        timeout: float = 60.0,
        logger: logging.Logger | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self._transport = transport

    async def stream_reply(self, request: ChatStreamRequest) -> AsyncIterator[StreamEvent]:
        """Yield ``Delta`` events as text arrives, then ``Complete`` or ``StreamError``.

        Raises:
            httpx.HTTPStatusError: If the server rejects the request.
        """
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            async with client.stream("POST", STREAM_PATH, json=request.model_dump()) as response:
                if response.is_error:
                    await response.aread()
                    response.raise_for_status()
                self.logger.debug("Streaming reply for session %s", request.session_id)
                async for event in decode_stream(response.aiter_text(), logger=self.logger):
                    yield event
