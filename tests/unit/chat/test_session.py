"""Tests for ChatSession: retrieval, rendering, streaming and transcript updates."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest

from ember.chat.models import Message
from ember.chat.session import INCOMPLETE_SUFFIX, ChatSession
from ember.config import GenerationConfig, RetrievalCfg
from ember.llm.engine import EngineState, GenerationEngine
from ember.llm.errors import ContextOverflowError, GenerationFailedError
from ember.prompt.formats import PromptFormat
from ember.rag.library import DocumentLibrary


class FakeEngine:
    """Scripted stand-in for GenerationEngine."""

    def __init__(
        self,
        fragments: list[str] | None = None,
        *,
        error: Exception | None = None,
        outcome: EngineState = EngineState.COMPLETED,
    ) -> None:
        self.fragments = fragments or []
        self.error = error
        self.outcome = outcome
        self.config = GenerationConfig()
        self.last_outcome: EngineState | None = None
        self.calls: list[tuple[str, GenerationConfig | None, str | None]] = []
        self.cancelled = False

    async def stream(
        self,
        prompt: str,
        config: GenerationConfig | None = None,
        chat_template: str | None = None,
    ) -> AsyncIterator[str]:
        self.calls.append((prompt, config, chat_template))
        for fragment in self.fragments:
            yield fragment
        if self.error is not None:
            self.last_outcome = EngineState.FAILED
            raise self.error
        self.last_outcome = self.outcome

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def prompts(self) -> list[str]:
        return [call[0] for call in self.calls]


def _reply(session: ChatSession, text: str) -> list[str]:
    async def run() -> list[str]:
        return [fragment async for fragment in session.reply(text)]

    return asyncio.run(run())


@pytest.fixture
def library(tmp_path):
    lib = DocumentLibrary.open(tmp_path / "library.db")
    lib.add_text(
        "lighthouse.txt",
        "The lighthouse keeper records every passing ship in the harbour ledger.",
    )
    yield lib
    lib.close()


# ------------------------------------------------------------------
# Happy path
# ------------------------------------------------------------------

def test_reply_streams_and_records_exchange():
    engine = FakeEngine(["Hello", " there", "<|eot_id|>"])
    session = ChatSession(engine, PromptFormat.LLAMA3)

    fragments = _reply(session, "Hi")

    assert fragments == ["Hello", " there", "<|eot_id|>"]
    user, bot = session.messages
    assert user.is_user and user.content == "Hi"
    assert not bot.is_user and bot.content == "Hello there"
    assert bot.source_documents is None
    assert session.last_error is None


def test_reasoning_extracted():
    engine = FakeEngine(["<think>Consider it.</think>", "Forty-two."])
    session = ChatSession(engine, PromptFormat.DEEPSEEK_R1)
    _reply(session, "Meaning of life?")
    bot = session.messages[-1]
    assert bot.content == "Forty-two."
    assert bot.reasoning == "Consider it."


def test_blank_input_ignored():
    engine = FakeEngine(["unused"])
    session = ChatSession(engine, PromptFormat.LLAMA3)
    assert _reply(session, "   ") == []
    assert session.messages == ()
    assert engine.calls == []


def test_prompt_excludes_new_message_from_history():
    engine = FakeEngine(["ok"])
    session = ChatSession(engine, PromptFormat.GENERIC)
    _reply(session, "first question")
    _reply(session, "second question")

    second_prompt = engine.prompts[1]
    assert second_prompt.count("second question") == 1
    assert "User: first question\nAssistant: ok\nUser: second question" in second_prompt


def test_config_and_template_forwarded():
    engine = FakeEngine(["ok"])
    config = GenerationConfig(max_tokens=64)
    session = ChatSession(engine, PromptFormat.LLAMA3, config=config, chat_template="llama3")
    _reply(session, "Hi")
    assert engine.calls[0][1] is config
    assert engine.calls[0][2] == "llama3"


def test_prompt_format_switch():
    engine = FakeEngine(["ok"])
    session = ChatSession(engine, PromptFormat.LLAMA3)
    session.prompt_format = PromptFormat.CHATML
    _reply(session, "Hi")
    assert session.prompt_format is PromptFormat.CHATML
    assert engine.prompts[0].startswith("<|im_start|>system")


def test_empty_final_content_adds_no_assistant_message():
    session = ChatSession(FakeEngine(["<|eot_id|>", "  "]), PromptFormat.LLAMA3)
    _reply(session, "Hi")
    assert len(session.messages) == 1


# ------------------------------------------------------------------
# Retrieval
# ------------------------------------------------------------------

def test_relevant_documents_become_context_and_sources(library):
    engine = FakeEngine(["The keeper logs ships [lighthouse.txt]."])
    session = ChatSession(engine, PromptFormat.LLAMA3, library)
    _reply(session, "What does the lighthouse keeper record?")

    assert "[lighthouse.txt]:" in engine.prompts[0]
    assert "harbour ledger" in engine.prompts[0]
    assert session.messages[-1].source_documents == ("lighthouse.txt",)


def test_irrelevant_question_gets_no_context(library):
    engine = FakeEngine(["No idea."])
    session = ChatSession(engine, PromptFormat.LLAMA3, library)
    _reply(session, "Best tomato varieties?")
    assert "Relevant context" not in engine.prompts[0]
    assert session.messages[-1].source_documents is None


def test_retrieval_settings_applied(library):
    engine = FakeEngine(["ok"])
    session = ChatSession(engine, PromptFormat.LLAMA3, library, RetrievalCfg(min_score=1e9))
    _reply(session, "lighthouse keeper")
    assert "Relevant context" not in engine.prompts[0]


# ------------------------------------------------------------------
# Failures + cancellation
# ------------------------------------------------------------------

def test_failure_without_output_records_error_message():
    error = GenerationFailedError("llama-cli crashed")
    session = ChatSession(FakeEngine(error=error), PromptFormat.LLAMA3)
    _reply(session, "Hi")

    bot = session.messages[-1]
    assert bot.is_error
    assert bot.content == "Error: llama-cli crashed"
    assert session.last_error == "llama-cli crashed"
    assert session.last_exception is error


def test_failure_with_partial_output_marks_incomplete():
    session = ChatSession(
        FakeEngine(["Half an ans"], error=GenerationFailedError("boom")), PromptFormat.LLAMA3
    )
    _reply(session, "Hi")
    bot = session.messages[-1]
    assert bot.is_error
    assert bot.content == f"Half an ans{INCOMPLETE_SUFFIX}"


def test_context_overflow_exposed():
    session = ChatSession(FakeEngine(error=ContextOverflowError()), PromptFormat.LLAMA3)
    _reply(session, "Hi")
    assert isinstance(session.last_exception, ContextOverflowError)


def test_error_messages_not_replayed():
    engine = FakeEngine(error=GenerationFailedError("boom"))
    session = ChatSession(engine, PromptFormat.GENERIC)
    _reply(session, "first")
    engine.error = None
    engine.fragments = ["fine"]
    _reply(session, "second")
    assert "boom" not in engine.prompts[1]
    assert session.last_error is None


def test_cancelled_reply_kept_as_incomplete():
    engine = FakeEngine(["Partial thought"], outcome=EngineState.CANCELLED)
    session = ChatSession(engine, PromptFormat.LLAMA3)
    _reply(session, "Hi")
    bot = session.messages[-1]
    assert bot.content == f"Partial thought{INCOMPLETE_SUFFIX}"
    assert not bot.is_error


def test_stop_cancels_engine():
    engine = FakeEngine()
    ChatSession(engine, PromptFormat.LLAMA3).stop()
    assert engine.cancelled


# ------------------------------------------------------------------
# Transcript management
# ------------------------------------------------------------------

def test_clear_and_restore():
    session = ChatSession(FakeEngine(["ok"]), PromptFormat.LLAMA3)
    _reply(session, "Hi")
    session.clear()
    assert session.messages == ()

    restored = [Message(content="Earlier", is_user=True), Message(content="Reply", is_user=False)]
    session.restore(restored)
    assert [m.content for m in session.messages] == ["Earlier", "Reply"]


def test_with_real_engine(fake_llama, model_file):
    engine = GenerationEngine(fake_llama("<think>hm</think>Real answer<|eot_id|>"), grace=1.0)
    engine.load_model(model_file)
    session = ChatSession(engine, PromptFormat.LLAMA3)
    _reply(session, "Hi")
    bot = session.messages[-1]
    assert bot.content == "Real answer"
    assert bot.reasoning == "hm"
