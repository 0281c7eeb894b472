"""Conversation controller: retrieval → prompt → generation → transcript."""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator

from ember.chat.models import Message
from ember.config import GenerationConfig, RetrievalCfg
from ember.llm.engine import EngineState, GenerationEngine
from ember.llm.errors import EmberError
from ember.log import get_logger
from ember.prompt.formats import PromptFormat
from ember.prompt.postprocess import clean_response, finalize
from ember.prompt.templates import PromptBuilder
from ember.rag.assembler import build_context, source_references
from ember.rag.library import DocumentLibrary

logger = get_logger(__name__)

INCOMPLETE_SUFFIX = " [incomplete]"


class ChatSession:
    """One conversation against a GenerationEngine, optionally grounded in a library.

    The transcript only grows through ``reply()`` (and ``restore()`` for
    imported history); messages themselves are never modified.
    """

    def __init__(
        self,
        engine: GenerationEngine,
        prompt_format: PromptFormat,
        library: DocumentLibrary | None = None,
        retrieval: RetrievalCfg | None = None,
        *,
        config: GenerationConfig | None = None,
        chat_template: str | None = None,
    ) -> None:
        self.engine = engine
        self.library = library
        self.retrieval = retrieval or RetrievalCfg()
        self.config = config
        self.chat_template = chat_template
        self.last_error: str | None = None
        self.last_exception: EmberError | None = None
        self._messages: list[Message] = []
        self._builder = PromptBuilder(prompt_format)

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def prompt_format(self) -> PromptFormat:
        return self._builder.format

    @prompt_format.setter
    def prompt_format(self, fmt: PromptFormat) -> None:
        self._builder = PromptBuilder(fmt)

    def clear(self) -> None:
        self._messages.clear()
        self.last_error = None
        self.last_exception = None

    def restore(self, messages: list[Message]) -> None:
        """Append previously exported messages to the transcript."""
        self._messages.extend(messages)

    def stop(self) -> None:
        """Cancel the running generation; ``reply()`` keeps the partial answer."""
        self.engine.cancel()

    async def reply(self, text: str) -> AsyncIterator[str]:
        """Send *text* and yield the model's raw output fragments as they arrive.

        When the stream ends the transcript holds the user message followed by
        the finalized assistant message. Failures never propagate: they are
        recorded as an error-flagged message and in ``last_error``.
        """
        if not text.strip():
            return
        self.last_error = None
        self.last_exception = None

        context: str | None = None
        sources: tuple[str, ...] | None = None
        if self.library is not None and self.library.has_documents:
            results = self.library.retrieve(
                text, top_k=self.retrieval.top_k, min_score=self.retrieval.min_score
            )
            if results:
                context = build_context(results)
                sources = tuple(source_references(results))
                logger.debug("Retrieved %d chunks from %s", len(results), ", ".join(sources))

        # Render against the prior history; the new message is passed separately.
        prompt = self._builder.render(self._messages, text, context)
        self._messages.append(Message(content=text, is_user=True))

        raw: list[str] = []
        try:
            async with contextlib.aclosing(
                self.engine.stream(prompt, self.config, self.chat_template)
            ) as fragments:
                async for fragment in fragments:
                    raw.append(fragment)
                    yield fragment
        except EmberError as exc:
            self.last_error = str(exc)
            self.last_exception = exc
            logger.warning("Generation failed: %s", exc)
            partial = clean_response("".join(raw))
            content = f"{partial}{INCOMPLETE_SUFFIX}" if partial else f"Error: {exc}"
            self._messages.append(Message(content=content, is_user=False, is_error=True))
            return

        final = finalize("".join(raw))
        if not final.content:
            return
        if self.engine.last_outcome is EngineState.CANCELLED:
            self._messages.append(
                Message(content=f"{final.content}{INCOMPLETE_SUFFIX}", is_user=False)
            )
            return
        self._messages.append(
            Message(
                content=final.content,
                is_user=False,
                reasoning=final.reasoning,
                source_documents=sources,
            )
        )
