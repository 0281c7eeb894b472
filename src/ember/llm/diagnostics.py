"""Triage of llama-cli's stderr: informational chatter versus real errors.

llama.cpp logs model metadata, sampler settings and timings on stderr for
every run. Lines matching none of the known informational patterns are
candidate errors, and so is any line that names an error or a context
overflow, whatever its prefix.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ember.llm.errors import ContextOverflowError, GenerationFailedError

_INFO_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^llama_",
        r"^llm_",
        r"^ggml_",
        r"^gguf",
        r"^\[",  # timestamped log prefixes
        r"sampling",
        r"sampler",
        r"main:",
        r"generate:",
        r"n_predict",
        r"vocab",
        r"model size",
        r"warmup",
        r"load time",
        r"eval time",
        r"total time",
        r"tokens per second",
        r"ctx_size",
        r"batch",
        r"threads",
        r"memory",
        r"kv_cache",
        r"loading",
    )
)

# Checked before the informational catalog: llama.cpp prefixes these with
# "main:" or "llama_" too.
_OVERFLOW_PATTERN = re.compile(
    r"context window|too long|prompt is too long|exceeds? (the )?context",
    re.IGNORECASE,
)
_ERROR_PATTERN = re.compile(r"\berror\b|failed", re.IGNORECASE)


@dataclass
class DiagnosticReport:
    """Classified diagnostic output of one run."""

    info: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    context_overflow: bool = False

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def failure(self, exit_code: int | None = None) -> GenerationFailedError:
        """Build the exception describing this run's failure."""
        if self.context_overflow:
            return ContextOverflowError(diagnostics=self.errors, exit_code=exit_code)
        if self.errors:
            message = self.errors[-1]
        elif exit_code is not None:
            message = f"llama-cli exited with code {exit_code} and produced no output"
        else:
            message = "llama-cli produced no output"
        return GenerationFailedError(message, diagnostics=self.errors, exit_code=exit_code)


def is_informational(line: str) -> bool:
    return any(p.search(line) for p in _INFO_PATTERNS)


def triage(text: str) -> DiagnosticReport:
    """Classify each non-blank line of *text* as informational or a candidate error."""
    report = DiagnosticReport()
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        # Overflow and error wording outrank the informational catalog.
        if _OVERFLOW_PATTERN.search(line):
            report.context_overflow = True
            report.errors.append(line)
        elif _ERROR_PATTERN.search(line) or not is_informational(line):
            report.errors.append(line)
        else:
            report.info.append(line)
    return report
