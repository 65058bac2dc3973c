"""Tutor chatbot orchestration that coordinates prompts and LLM calls."""

from __future__ import annotations
import asyncio
import logging
import threading
from typing import AsyncIterator, List

from app.core.config import settings
from app.schemas.api import StreamMetadata, TutorContext
from app.services.streaming.events import UpstreamGenerationError
from .openai_client import OpenAIChatClient
from .prompt_builder import PromptBuilder

_DONE = object()


class TutorChatbot:
    """Vocabulary tutor that produces reply text for one learner message."""

    def __init__(
        self,
        logger: logging.Logger,
        max_history_messages: int = settings.max_history_messages,
    ) -> None:
        self.logger = logger
        self.prompt_builder = PromptBuilder(max_history_messages)
        self.openai_client = OpenAIChatClient(logger)
        self.logger.info("TutorChatbot initialized.")

    # ----------------------- Public API -----------------------
    def reply(self, message: str, history: List[str], context: TutorContext) -> str:
        """Generate the whole reply in one request."""

        self.logger.debug("User message: %s", message)
        messages = self.prompt_builder.build_messages(history, message, context)
        try:
            answer, prompt_tokens, completion_tokens = self.openai_client.chat(messages)
        except Exception as e:
            raise UpstreamGenerationError(f"AI service unavailable: {e}") from e
        self.logger.debug("Reply used %d prompt and %d completion tokens.", prompt_tokens, completion_tokens)
        return answer

    async def stream_reply(self, message: str, history: List[str], context: TutorContext) -> AsyncIterator[str]:
        """Yield reply text fragments as the model produces them.

        The blocking SDK stream runs in a worker thread; fragments are handed
        back through a queue. Raises ``UpstreamGenerationError`` if generation
        fails part way.
        """

        self.logger.debug("User message: %s", message)
        messages = self.prompt_builder.build_messages(history, message, context)
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[object] = asyncio.Queue()
        stop = threading.Event()

        def _run_blocking():
            tokens = None
            try:
                tokens = self.openai_client.stream_chat(messages)
                for token in tokens:
                    if stop.is_set():
                        self.logger.debug("Reply stream abandoned; stopping generation.")
                        break
                    loop.call_soon_threadsafe(queue.put_nowait, token)
            except Exception as e:
                loop.call_soon_threadsafe(queue.put_nowait, e)
            finally:
                close = getattr(tokens, "close", None)
                if close is not None:
                    close()
                loop.call_soon_threadsafe(queue.put_nowait, _DONE)

        thread_task = asyncio.create_task(asyncio.to_thread(_run_blocking))
        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    break
                if isinstance(item, Exception):
                    raise UpstreamGenerationError(f"Streaming response failed: {item}") from item
                yield item
        finally:
            # the worker exits at its next token once the flag is set
            stop.set()
            await thread_task

    def metadata_for(self, context: TutorContext) -> StreamMetadata:
        """Trailing fields for a finished reply, echoing the learner's context."""
        return StreamMetadata(
            currentCategory=context.currentCategory,
            currentWord=context.currentWord,
            currentWordProgress=context.currentWordProgress,
        )
