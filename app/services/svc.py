from __future__ import annotations
import logging
from typing import AsyncIterator

from app.schemas.api import ChatStreamRequest, ParsedObject
from app.services.streaming.encoder import ResponseEncoder
from app.services.tutor.manager import TutorChatbot


def chat(bot: TutorChatbot, req: ChatStreamRequest) -> ParsedObject:
    """Generate a complete reply object in one piece."""
    answer = bot.reply(req.user_message, req.history, req.context)
    metadata = bot.metadata_for(req.context)
    return ParsedObject(response=answer, **metadata.model_dump())


def stream_chat(bot: TutorChatbot, req: ChatStreamRequest, logger: logging.Logger) -> ResponseEncoder:
    """Progressively written reply object for a learner message."""
    fragments: AsyncIterator[str] = bot.stream_reply(req.user_message, req.history, req.context)
    return ResponseEncoder(
        fragments,
        metadata_factory=lambda: bot.metadata_for(req.context),
        logger=logger,
    )
