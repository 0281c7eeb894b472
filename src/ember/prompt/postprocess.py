"""Response post-processing: strip control tokens and extract reasoning blocks.

Everything here is pure and total; any string (including "") finalizes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# Paired "thinking" delimiters, in priority order. Only the first spelling
# present in the text is used.
_THINKING_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"<think>(.*?)</think>", re.DOTALL),
    re.compile(r"<thinking>(.*?)</thinking>", re.DOTALL),
    re.compile(r"<｜thinking｜>(.*?)<｜/thinking｜>", re.DOTALL),
)

CONTROL_TOKENS: tuple[str, ...] = (
    # Llama 3.x
    "<|eot_id|>",
    "<|end_of_text|>",
    "<|eom_id|>",
    "<|begin_of_text|>",
    "<|start_header_id|>",
    "<|end_header_id|>",
    "<|python_tag|>",
    # ChatML
    "<|im_end|>",
    "<|im_start|>",
    # Phi-3/4
    "<|end|>",
    "<|system|>",
    "<|user|>",
    "<|assistant|>",
    # Llama 2
    "<<SYS>>",
    "<</SYS>>",
    # Mistral
    "</s>",
    "<s>",
    "[INST]",
    "[/INST]",
    "[AVAILABLE_TOOLS]",
    "[/AVAILABLE_TOOLS]",
    "[TOOL_CALLS]",
    # DeepSeek
    "<｜begin▁of▁sentence｜>",
    "<｜end▁of▁sentence｜>",
    "<｜System｜>",
    "<｜User｜>",
    "<｜Assistant｜>",
    "<｜tool▁calls▁begin｜>",
    "<｜tool▁call▁begin｜>",
    "<｜tool▁sep｜>",
    "<｜tool▁call▁end｜>",
    "<｜tool▁calls▁end｜>",
    # Gemma
    "<start_of_turn>",
    "<end_of_turn>",
    # Plain-text formats
    "### Response:",
    "### Assistant:",
    "ASSISTANT:",
    "USER:",
    # llama.cpp end-of-generation marker
    "[end of text]",
)

_ROLE_NAMES = frozenset(["assistant", "user", "system", "model"])
_DELIMITER_OPENERS = ("<|", "<｜")
_DELIMITER_CLOSERS = ("|>", "｜>")


@dataclass(frozen=True)
class FinalResponse:
    content: str
    reasoning: str | None = None


def finalize(raw: str) -> FinalResponse:
    """Turn raw accumulated model output into displayable content.

    Steps:
      1. The first thinking-block spelling found supplies ``reasoning``
         (its first block, stripped; None when blank). All blocks of that
         spelling are removed from the content.
      2. Every known control token is removed.
      3. Lines that are only a leftover delimiter or a bare role name
         ("assistant", "user", ...) are dropped.
      4. The result is trimmed.
    """
    text = raw
    reasoning: str | None = None

    for pattern in _THINKING_PATTERNS:
        match = pattern.search(text)
        if match is not None:
            reasoning = match.group(1).strip() or None
            text = pattern.sub("", text)
            break

    for token in CONTROL_TOKENS:
        text = text.replace(token, "")

    lines = [line for line in text.split("\n") if not _is_markup_line(line)]
    return FinalResponse(content="\n".join(lines).strip(), reasoning=reasoning)


def clean_response(raw: str) -> str:
    """Return only the cleaned content of *raw* (reasoning discarded)."""
    return finalize(raw).content


def _is_markup_line(line: str) -> bool:
    stripped = line.strip()
    if stripped in _ROLE_NAMES:
        return True
    return stripped.startswith(_DELIMITER_OPENERS) and stripped.endswith(_DELIMITER_CLOSERS)
