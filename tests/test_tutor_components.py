from __future__ import annotations

import logging
import time
from types import SimpleNamespace

import pytest

from app.schemas.api import LanguagePair, TutorContext
from app.services.streaming.events import UpstreamGenerationError
from app.services.tutor import manager
from app.services.tutor.manager import TutorChatbot
from app.services.tutor.openai_client import OpenAIChatClient
from app.services.tutor.prompt_builder import PromptBuilder


CONTEXT = TutorContext(
    currentWord="casa",
    currentCategory="home",
    currentWordProgress="meaning",
    userLanguages=LanguagePair(source="English", target="Spanish"),
)


def test_prompt_builder_creates_expected_messages():
    builder = PromptBuilder(max_history_messages=2)
    messages = builder.build_messages(["old", "hello", "hi there"], "question?", CONTEXT)

    assert messages[0]["role"] == "system"
    assert "teach Spanish vocabulary to speakers of English" in messages[0]["content"]
    assert "- Current Word: casa" in messages[0]["content"]
    assert messages[1:] == [
        {"role": "user", "content": "hello"},
        {"role": "assistant", "content": "hi there"},
        {"role": "user", "content": "question?"},
    ]


def test_prompt_builder_marks_missing_context():
    prompt = PromptBuilder(5).build_system_prompt(TutorContext())
    assert "- Category: Not selected" in prompt
    assert "- Current Word: None" in prompt


def test_prompt_builder_trims_odd_history_to_end_on_assistant():
    messages = PromptBuilder(max_history_messages=3).build_messages(
        ["u1", "a1", "u2", "a2"], "q", CONTEXT
    )
    assert [m["role"] for m in messages[1:]] == ["assistant", "user", "assistant", "user"]


def test_openai_chat_client_chat_and_stream(monkeypatch):
    import app.services.tutor.openai_client as openai_client_module

    usage = SimpleNamespace(prompt_tokens=10, completion_tokens=5)
    chat_response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=" hola "))],
        usage=usage,
    )
    stream_chunks = [
        SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content="Ho"))], usage=None),
        SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=None))], usage=None),
        SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content="la"))], usage=None),
        SimpleNamespace(choices=[], usage=usage),
    ]
    calls = []

    class _FakeCompletions:
        def create(self, **kwargs):
            calls.append(kwargs)
            if kwargs.get("stream"):
                return iter(stream_chunks)
            return chat_response

    class _FakeOpenAI:
        def __init__(self, api_key=None):
            self.chat = SimpleNamespace(completions=_FakeCompletions())

    monkeypatch.setattr(openai_client_module, "OpenAI", _FakeOpenAI)
    monkeypatch.setattr(openai_client_module.settings, "openai_api_key", "test-key", raising=False)

    client = OpenAIChatClient(logging.getLogger("test-openai-client"))
    messages = [{"role": "user", "content": "hi"}]

    assert client.chat(messages) == ("hola", 10, 5)
    assert list(client.stream_chat(messages)) == ["Ho", "la"]
    assert calls[1]["stream"] is True
    assert calls[1]["messages"] == messages


class _FakeOpenAIClient:
    tokens = ["Hola", ", ", "amigo"]
    fail_after = None

    def __init__(self, logger):
        self.seen = []

    def chat(self, messages):
        self.seen.append(messages)
        if self.fail_after is not None:
            raise RuntimeError("quota exceeded")
        return "Hola, amigo", 3, 4

    def stream_chat(self, messages):
        self.seen.append(messages)
        for index, token in enumerate(self.tokens):
            if self.fail_after is not None and index == self.fail_after:
                raise RuntimeError("connection dropped")
            yield token


@pytest.mark.asyncio
async def test_tutor_streams_fragments(monkeypatch):
    monkeypatch.setattr(manager, "OpenAIChatClient", _FakeOpenAIClient)
    bot = TutorChatbot(logging.getLogger("test-tutor"), max_history_messages=4)

    fragments = [f async for f in bot.stream_reply("hola", ["hi", "hello"], CONTEXT)]

    assert fragments == ["Hola", ", ", "amigo"]
    sent = bot.openai_client.seen[0]
    assert sent[-1] == {"role": "user", "content": "hola"}
    assert bot.reply("hola", [], CONTEXT) == "Hola, amigo"


@pytest.mark.asyncio
async def test_tutor_stream_failure_raises_upstream_error(monkeypatch):
    class _Failing(_FakeOpenAIClient):
        fail_after = 1

    monkeypatch.setattr(manager, "OpenAIChatClient", _Failing)
    bot = TutorChatbot(logging.getLogger("test-tutor"))

    received = []
    with pytest.raises(UpstreamGenerationError):
        async for fragment in bot.stream_reply("hola", [], CONTEXT):
            received.append(fragment)
    assert received == ["Hola"]

    with pytest.raises(UpstreamGenerationError):
        bot.reply("hola", [], CONTEXT)


def test_metadata_echoes_context(monkeypatch):
    monkeypatch.setattr(manager, "OpenAIChatClient", _FakeOpenAIClient)
    metadata = TutorChatbot(logging.getLogger("test-tutor")).metadata_for(CONTEXT)
    assert metadata.currentWord == "casa"
    assert metadata.currentCategory == "home"
    assert metadata.currentWordProgress == "meaning"
    assert metadata.exercises is None


class _SlowOpenAIClient:
    def __init__(self, logger):
        self.produced = 0
        self.closed = False

    def stream_chat(self, messages):
        try:
            for index in range(20):
                if index:
                    time.sleep(0.1)
                self.produced += 1
                yield f"t{index} "
        finally:
            self.closed = True


@pytest.mark.asyncio
async def test_abandoned_stream_stops_generation_promptly(monkeypatch):
    monkeypatch.setattr(manager, "OpenAIChatClient", _SlowOpenAIClient)
    bot = TutorChatbot(logging.getLogger("test-tutor"))

    stream = bot.stream_reply("hola", [], CONTEXT)
    first = await stream.__anext__()
    started = time.monotonic()
    await stream.aclose()
    elapsed = time.monotonic() - started

    assert first == "t0 "
    assert elapsed < 0.5
    assert bot.openai_client.produced <= 3
    assert bot.openai_client.closed is True
