"""Prompt formats and model-family detection.

Detection is a pure function of the model identifier (normally the model
file path): ordered, case-insensitive substring rules, most specific first.
"""

from __future__ import annotations

from enum import Enum


class PromptFormat(str, Enum):
    LLAMA3 = "llama3"  # Llama 3.x Instruct
    LLAMA2 = "llama2"  # Llama 2 [INST] with <<SYS>>
    CHATML = "chatml"  # Qwen, Yi, QwQ and other ChatML models
    PHI3 = "phi3"  # Phi-3 / 3.5 / 4
    MISTRAL = "mistral"  # Mistral / Mixtral [INST]
    DEEPSEEK = "deepseek"  # DeepSeek V2 / V3
    DEEPSEEK_R1 = "deepseek-r1"  # DeepSeek R1 with <think> blocks
    GEMMA = "gemma"
    ALPACA = "alpaca"
    VICUNA = "vicuna"
    GENERIC = "generic"  # plain User:/Assistant:


# Order matters: "deepseek-r1" must win over "deepseek", "llama-3" over "llama".
_DETECTION_RULES: tuple[tuple[tuple[str, ...], PromptFormat], ...] = (
    (
        ("llama-3", "llama3", "llama32", "llama-32", "llama31", "llama-31", "llama33", "llama-33"),
        PromptFormat.LLAMA3,
    ),
    (("llama-2", "llama2"), PromptFormat.LLAMA2),
    (("deepseek-r1", "deepseek_r1", "deepseekr1"), PromptFormat.DEEPSEEK_R1),
    (("deepseek",), PromptFormat.DEEPSEEK),
    (("phi-3", "phi3", "phi-4", "phi4"), PromptFormat.PHI3),
    (("mistral", "mixtral"), PromptFormat.MISTRAL),
    (("gemma",), PromptFormat.GEMMA),
    (("chatml", "qwen", "yi-", "qwq"), PromptFormat.CHATML),
    (("alpaca",), PromptFormat.ALPACA),
    (("vicuna",), PromptFormat.VICUNA),
)

_DEFAULT_FORMAT = PromptFormat.LLAMA3

_CHAT_TEMPLATES: dict[PromptFormat, str | None] = {
    PromptFormat.LLAMA3: "llama3",
    PromptFormat.LLAMA2: "llama2",
    PromptFormat.CHATML: "chatml",
    PromptFormat.PHI3: "phi3",
    PromptFormat.MISTRAL: "mistral-v3",
    PromptFormat.DEEPSEEK: "deepseek3",
    PromptFormat.DEEPSEEK_R1: "deepseek3",
    PromptFormat.GEMMA: "gemma",
    PromptFormat.ALPACA: None,
    PromptFormat.VICUNA: None,
    PromptFormat.GENERIC: None,
}

_ALIASES: dict[str, PromptFormat] = {
    "deepseekr1": PromptFormat.DEEPSEEK_R1,
    "deepseek_r1": PromptFormat.DEEPSEEK_R1,
    "phi": PromptFormat.PHI3,
    "qwen": PromptFormat.CHATML,
}


def detect_prompt_format(model_identifier: str) -> PromptFormat:
    """Return the prompt format for *model_identifier* (path or name).

    Unrecognised identifiers fall back to LLAMA3, the most common modern
    instruct format.
    """
    lowered = model_identifier.lower()
    for needles, fmt in _DETECTION_RULES:
        if any(needle in lowered for needle in needles):
            return fmt
    return _DEFAULT_FORMAT


def chat_template_name(fmt: PromptFormat) -> str | None:
    """Return llama.cpp's built-in chat template name for *fmt*, if it has one."""
    return _CHAT_TEMPLATES[fmt]


def parse_prompt_format(name: str) -> PromptFormat:
    """Resolve a user-supplied format name (value, enum name or alias).

    Raises:
        ValueError: If *name* matches no known format.
    """
    key = name.strip().lower()
    for fmt in PromptFormat:
        if key in (fmt.value, fmt.name.lower()):
            return fmt
    if key in _ALIASES:
        return _ALIASES[key]
    known = ", ".join(f.value for f in PromptFormat)
    raise ValueError(f"Unknown prompt format {name!r}. Known formats: {known}")
