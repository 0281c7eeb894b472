"""Prompt templates: serialize a conversation into one model family's format.

Shared policy for every format:
  - only the most recent messages are replayed (6, or 4 for Alpaca);
    error-flagged messages are never replayed
  - retrieved context goes into the system turn where the format has one,
    into the first user turn for Mistral and Gemma, and into a preamble
    section for the plain-text formats; the citation instruction follows it
  - the new user message appears exactly once, followed by an open
    assistant turn

Rendering is total: every (format, history, message, context) renders.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from ember.chat.models import Message
from ember.prompt.formats import PromptFormat

HISTORY_WINDOW = 6
ALPACA_HISTORY_WINDOW = 4

CITATION_INSTRUCTION = (
    "When answering, if you use information from the uploaded documents, "
    "reference the source document in brackets like [document_name.pdf]"
)
_SYSTEM_CITATION = f"{CITATION_INSTRUCTION} at the end of the relevant sentence or paragraph."
_INLINE_CITATION = f"{CITATION_INSTRUCTION}."

_LLAMA_SYSTEM = "You are a helpful, concise AI assistant. Provide clear and accurate responses."
_CONCISE_SYSTEM = "You are a helpful, concise AI assistant."
_R1_SYSTEM = "You are a helpful AI assistant. Think step by step before answering."
_ALPACA_PREAMBLE = (
    "Below is an instruction that describes a task. "
    "Write a response that appropriately completes the request."
)
_VICUNA_PREAMBLE = (
    "A chat between a curious user and an artificial intelligence assistant. "
    "The assistant gives helpful, detailed, and polite answers to the user's questions."
)
_GENERIC_PREAMBLE = "You are a helpful AI assistant. Respond concisely and helpfully."

# DeepSeek delimiters use fullwidth bars (U+FF5C) and U+2581.
_DS_BOS = "<｜begin▁of▁sentence｜>"
_DS_EOS = "<｜end▁of▁sentence｜>"
_DS_SYSTEM = "<｜System｜>"
_DS_USER = "<｜User｜>"
_DS_ASSISTANT = "<｜Assistant｜>"

Renderer = Callable[[Sequence[Message], str, str | None], str]


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _window(history: Sequence[Message], size: int) -> list[Message]:
    """Most recent *size* replayable (non-error) messages, oldest first."""
    replayable = [m for m in history if not m.is_error]
    return replayable[-size:] if size > 0 else []


def _system_prompt(base: str, context: str | None) -> str:
    if not context:
        return base
    return f"{base}\n\n{context}\n\n{_SYSTEM_CITATION}"


def _inline_context(context: str) -> str:
    return f"{context}\n\n{_INLINE_CITATION}\n\n"


# ---------------------------------------------------------------------------
# Formats with a system turn
# ---------------------------------------------------------------------------


def _render_llama3(history: Sequence[Message], user_message: str, context: str | None) -> str:
    parts = [
        "<|begin_of_text|>",
        "<|start_header_id|>system<|end_header_id|>\n\n",
        _system_prompt(_LLAMA_SYSTEM, context),
        "<|eot_id|>",
    ]
    for msg in _window(history, HISTORY_WINDOW):
        role = "user" if msg.is_user else "assistant"
        parts.append(f"<|start_header_id|>{role}<|end_header_id|>\n\n{msg.content}<|eot_id|>")
    parts.append(f"<|start_header_id|>user<|end_header_id|>\n\n{user_message}<|eot_id|>")
    parts.append("<|start_header_id|>assistant<|end_header_id|>\n\n")
    return "".join(parts)


def _render_llama2(history: Sequence[Message], user_message: str, context: str | None) -> str:
    parts = [
        "<s>[INST] <<SYS>>\n",
        f"{_system_prompt(_LLAMA_SYSTEM, context)}\n",
        "<</SYS>>\n\n",
    ]
    # The first [INST] is already open; later user turns start a new <s>[INST].
    first_user = True
    for msg in _window(history, HISTORY_WINDOW):
        if msg.is_user:
            if not first_user:
                parts.append("<s>[INST] ")
            parts.append(f"{msg.content} [/INST]")
            first_user = False
        else:
            parts.append(f" {msg.content} </s>")
    if not first_user:
        parts.append("<s>[INST] ")
    parts.append(f"{user_message} [/INST]")
    return "".join(parts)


def _render_chatml(history: Sequence[Message], user_message: str, context: str | None) -> str:
    lines = ["<|im_start|>system", _system_prompt(_CONCISE_SYSTEM, context), "<|im_end|>"]
    for msg in _window(history, HISTORY_WINDOW):
        role = "user" if msg.is_user else "assistant"
        lines.extend([f"<|im_start|>{role}", msg.content, "<|im_end|>"])
    lines.extend(["<|im_start|>user", user_message, "<|im_end|>"])
    return "\n".join(lines) + "\n<|im_start|>assistant\n"


def _render_phi3(history: Sequence[Message], user_message: str, context: str | None) -> str:
    lines = ["<|system|>", _system_prompt(_CONCISE_SYSTEM, context), "<|end|>"]
    for msg in _window(history, HISTORY_WINDOW):
        role = "<|user|>" if msg.is_user else "<|assistant|>"
        lines.extend([role, msg.content, "<|end|>"])
    lines.extend(["<|user|>", user_message, "<|end|>"])
    return "\n".join(lines) + "\n<|assistant|>\n"


def _render_deepseek(
    history: Sequence[Message],
    user_message: str,
    context: str | None,
    *,
    system: str = _CONCISE_SYSTEM,
    replay_reasoning: bool = False,
) -> str:
    parts = [_DS_BOS, f"{_DS_SYSTEM}{_system_prompt(system, context)}{_DS_EOS}"]
    for msg in _window(history, HISTORY_WINDOW):
        if msg.is_user:
            parts.append(f"{_DS_USER}{msg.content}{_DS_EOS}")
        elif replay_reasoning and msg.has_reasoning:
            parts.append(f"{_DS_ASSISTANT}<think>{msg.reasoning}</think>{msg.content}{_DS_EOS}")
        else:
            parts.append(f"{_DS_ASSISTANT}{msg.content}{_DS_EOS}")
    parts.append(f"{_DS_USER}{user_message}{_DS_EOS}")
    parts.append(_DS_ASSISTANT)
    return "".join(parts)


def _render_deepseek_r1(history: Sequence[Message], user_message: str, context: str | None) -> str:
    return _render_deepseek(
        history, user_message, context, system=_R1_SYSTEM, replay_reasoning=True
    )


# ---------------------------------------------------------------------------
# Formats without a system turn: context joins the first user turn
# ---------------------------------------------------------------------------


def _render_mistral(history: Sequence[Message], user_message: str, context: str | None) -> str:
    pending = _inline_context(context) if context else ""
    parts: list[str] = []
    for msg in _window(history, HISTORY_WINDOW):
        if msg.is_user:
            parts.append(f"[INST] {pending}{msg.content} [/INST]")
            pending = ""
        else:
            parts.append(f"{msg.content}</s>")
    parts.append(f"[INST] {pending}{user_message} [/INST]")
    return "".join(parts)


def _render_gemma(history: Sequence[Message], user_message: str, context: str | None) -> str:
    pending = _inline_context(context) if context else ""
    parts: list[str] = []
    for msg in _window(history, HISTORY_WINDOW):
        if msg.is_user:
            parts.append(f"<start_of_turn>user\n{pending}{msg.content}<end_of_turn>\n")
            pending = ""
        else:
            parts.append(f"<start_of_turn>model\n{msg.content}<end_of_turn>\n")
    parts.append(f"<start_of_turn>user\n{pending}{user_message}<end_of_turn>\n")
    parts.append("<start_of_turn>model\n")
    return "".join(parts)


# ---------------------------------------------------------------------------
# Plain-text formats: context gets its own preamble section
# ---------------------------------------------------------------------------


def _render_alpaca(history: Sequence[Message], user_message: str, context: str | None) -> str:
    lines = [_ALPACA_PREAMBLE, ""]
    if context:
        lines.extend(["### Context:", context, _INLINE_CITATION, ""])
    recent = _window(history, ALPACA_HISTORY_WINDOW)
    if recent:
        lines.append("### Previous conversation:")
        for msg in recent:
            speaker = "User" if msg.is_user else "Assistant"
            lines.append(f"{speaker}: {msg.content}")
        lines.append("")
    lines.extend(["### Instruction:", user_message, "", "### Response:"])
    return "\n".join(lines) + "\n"


def _render_vicuna(history: Sequence[Message], user_message: str, context: str | None) -> str:
    lines = [_VICUNA_PREAMBLE, ""]
    if context:
        lines.extend([f"CONTEXT: {context}", _INLINE_CITATION, ""])
    for msg in _window(history, HISTORY_WINDOW):
        speaker = "USER" if msg.is_user else "ASSISTANT"
        lines.append(f"{speaker}: {msg.content}")
    lines.append(f"USER: {user_message}")
    return "\n".join(lines) + "\nASSISTANT: "


def _render_generic(history: Sequence[Message], user_message: str, context: str | None) -> str:
    lines = [_GENERIC_PREAMBLE, ""]
    if context:
        lines.extend(["Context from uploaded documents:", context, _INLINE_CITATION, ""])
    for msg in _window(history, HISTORY_WINDOW):
        speaker = "User" if msg.is_user else "Assistant"
        lines.append(f"{speaker}: {msg.content}")
    lines.append(f"User: {user_message}")
    return "\n".join(lines) + "\nAssistant: "


_RENDERERS: dict[PromptFormat, Renderer] = {
    PromptFormat.LLAMA3: _render_llama3,
    PromptFormat.LLAMA2: _render_llama2,
    PromptFormat.CHATML: _render_chatml,
    PromptFormat.PHI3: _render_phi3,
    PromptFormat.MISTRAL: _render_mistral,
    PromptFormat.DEEPSEEK: _render_deepseek,
    PromptFormat.DEEPSEEK_R1: _render_deepseek_r1,
    PromptFormat.GEMMA: _render_gemma,
    PromptFormat.ALPACA: _render_alpaca,
    PromptFormat.VICUNA: _render_vicuna,
    PromptFormat.GENERIC: _render_generic,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def render_prompt(
    fmt: PromptFormat,
    history: Sequence[Message],
    user_message: str,
    context: str | None = None,
) -> str:
    """Render *history* plus *user_message* as a single prompt in *fmt*.

    Args:
        fmt: Target prompt format.
        history: Prior transcript, oldest first, NOT including *user_message*.
        user_message: The new user turn.
        context: Retrieved document context (see ember.rag.assembler), or None.

    Returns:
        Prompt text ending with an open assistant turn.
    """
    return PromptBuilder(fmt).render(history, user_message, context)


class PromptBuilder:
    """Renders prompts for one format; the renderer is resolved once, up front."""

    def __init__(self, fmt: PromptFormat) -> None:
        self.format = fmt
        self._render = _RENDERERS[fmt]

    def render(
        self,
        history: Sequence[Message],
        user_message: str,
        context: str | None = None,
    ) -> str:
        cleaned = context.strip() if context else ""
        return self._render(history, user_message, cleaned or None)
