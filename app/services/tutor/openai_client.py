"""Client wrapper for interacting with OpenAI chat completions."""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List

from dotenv import load_dotenv
from openai import OpenAI
from app.core.config import settings


class OpenAIChatClient:
    """Encapsulates OpenAI chat and streaming interactions."""

    def __init__(self, logger: logging.Logger) -> None:
        load_dotenv()
        self.logger = logger
        api_key = settings.openai_api_key
        if api_key:
            self.logger.info("OPENAI_API_KEY loaded successfully.")
        else:
            self.logger.warning("WARNING: OPENAI_API_KEY not found in settings or environment.")
        self._client = OpenAI(api_key=api_key)

    def chat(self, messages: List[Dict[str, str]], *, model: str | None = None) -> tuple[str, int, int]:
        """Send a chat completion request and return text with usage statistics."""
        response = self._client.chat.completions.create(
            model=model or settings.model,
            messages=messages,
            temperature=settings.temperature,
            max_tokens=settings.max_output_tokens,
        )
        usage = response.usage
        prompt_tokens = usage.prompt_tokens if usage else 0
        completion_tokens = usage.completion_tokens if usage else 0
        content = response.choices[0].message.content or ""
        return content.strip(), prompt_tokens, completion_tokens

    def stream_chat(self, messages: List[Dict[str, str]], *, model: str | None = None) -> Iterator[str]:
        """Stream chat completion text fragments as they are generated."""
        stream = self._client.chat.completions.create(
            model=model or settings.model,
            messages=messages,
            temperature=settings.temperature,
            max_tokens=settings.max_output_tokens,
            stream=True,
            stream_options={"include_usage": True},
        )
        try:
            for chunk in stream:
                # usage arrives only in the final chunk, which has no choices
                if chunk.usage is not None:
                    self.logger.debug(
                        "Stream usage: %d prompt tokens, %d completion tokens.",
                        chunk.usage.prompt_tokens,
                        chunk.usage.completion_tokens,
                    )
                if not chunk.choices:
                    continue
                token = chunk.choices[0].delta.content
                if token:
                    yield token
        finally:
            # releases the HTTP connection when the consumer stops early
            close = getattr(stream, "close", None)
            if close is not None:
                close()
