"""Utilities for constructing chat messages for the tutor model."""

from __future__ import annotations
from typing import Dict, List

from app.core.config import SYSTEM_INSTRUCTION
from app.schemas.api import TutorContext


class PromptBuilder:
    """Builds the system prompt and message list for the language model."""

    def __init__(self, max_history_messages: int) -> None:
        self._max_history_messages = max_history_messages

    def build_system_prompt(self, context: TutorContext) -> str:
        languages = context.userLanguages
        return SYSTEM_INSTRUCTION.format(
            source=languages.source,
            target=languages.target,
            category=context.currentCategory or "Not selected",
            word=context.currentWord or "None",
        )

    def build_messages(self, history: List[str], new_message: str, context: TutorContext) -> List[Dict[str, str]]:
        """Return chat messages: system prompt, trimmed history, then the new message."""

        messages = [{"role": "system", "content": self.build_system_prompt(context)}]
        recent = history[-self._max_history_messages:] if self._max_history_messages else []
        # history alternates learner/tutor and always ends on a tutor turn
        offset = len(recent) % 2
        for index, message in enumerate(recent):
            role = "user" if (index + offset) % 2 == 0 else "assistant"
            messages.append({"role": role, "content": message})
        messages.append({"role": "user", "content": new_message})
        return messages
