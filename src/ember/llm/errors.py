"""Exception hierarchy for model loading and generation.

Cancellation is not an error: a cancelled stream simply ends.
"""

from __future__ import annotations


class EmberError(Exception):
    """Base class for all recoverable Ember engine errors."""


class ModelLoadError(EmberError):
    """The model file is missing, has the wrong format, or is implausibly sized."""


class ExecutableNotFoundError(ModelLoadError):
    """No usable llama-cli executable could be located."""


class NoModelLoadedError(EmberError):
    """A generation was requested before a model was loaded."""


class GenerationBusyError(EmberError):
    """A generation was requested while another one is still running."""


class GenerationFailedError(EmberError):
    """The inference process failed without producing output.

    Attributes:
        diagnostics: The unrecognised diagnostic lines, if any.
        exit_code: Process exit code, when known.
    """

    def __init__(
        self,
        message: str,
        *,
        diagnostics: list[str] | None = None,
        exit_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.diagnostics = diagnostics or []
        self.exit_code = exit_code


class ContextOverflowError(GenerationFailedError):
    """The prompt did not fit in the model's context window."""

    def __init__(self, *, diagnostics: list[str] | None = None, exit_code: int | None = None) -> None:
        super().__init__(
            "Input too long for model context. Try a shorter message.",
            diagnostics=diagnostics,
            exit_code=exit_code,
        )
