"""Streaming generation engine driving llama-cli as a subprocess.

One process per generation request, one generation at a time. stdout is
decoded incrementally and yielded fragment by fragment; stderr is drained
concurrently (an unread stderr pipe can fill and stall stdout) and triaged
once the run ends.

State machine::

    IDLE → LAUNCHING → STREAMING → COMPLETED | CANCELLED | FAILED → IDLE
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from pathlib import Path

from ember.config import GenerationConfig
from ember.llm.decoding import RepetitionGuard, Utf8CarryDecoder
from ember.llm.diagnostics import triage
from ember.llm.errors import (
    GenerationBusyError,
    GenerationFailedError,
    ModelLoadError,
    NoModelLoadedError,
)
from ember.llm.invocation import build_args, build_env, locate_executable, validate_model_file
from ember.log import get_logger

logger = get_logger(__name__)

_MIB = 1024 * 1024
_READ_SIZE = 4096
_DEFAULT_GRACE = 2.0


class EngineState(enum.Enum):
    IDLE = "idle"
    LAUNCHING = "launching"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class ModelInfo:
    path: Path
    name: str
    size_bytes: int

    @property
    def size_formatted(self) -> str:
        return f"{self.size_bytes / _MIB:.1f} MB"


# ---------------------------------------------------------------------------
# Process handle
# ---------------------------------------------------------------------------


async def _terminate(process: asyncio.subprocess.Process, grace: float) -> None:
    """SIGTERM, wait up to *grace* seconds, then SIGKILL."""
    if process.returncode is not None:
        return
    with contextlib.suppress(ProcessLookupError):
        process.terminate()
    try:
        await asyncio.wait_for(process.wait(), timeout=grace)
    except asyncio.TimeoutError:
        logger.warning("llama-cli ignored SIGTERM for %.1fs; killing", grace)
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()


@contextlib.asynccontextmanager
async def spawn(
    argv: Sequence[str],
    env: dict[str, str],
    grace: float = _DEFAULT_GRACE,
) -> AsyncIterator[asyncio.subprocess.Process]:
    """Start *argv* with piped output; the process is reaped on every exit path."""
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )
    except OSError as exc:
        raise GenerationFailedError(f"Could not start llama-cli: {exc}") from exc
    try:
        yield process
    finally:
        await _terminate(process, grace)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class GenerationEngine:
    """Runs llama-cli for one prompt at a time and streams its output.

    Args:
        executable: Explicit llama-cli path; located automatically when None.
        config: Default sampling parameters; ``stream()`` may override per call.
        min_model_bytes: Smaller model files are rejected as truncated.
        max_model_bytes: Larger model files are rejected (None = unbounded).
        grace: Seconds to wait after SIGTERM before SIGKILL.
    """

    def __init__(
        self,
        executable: str | Path | None = None,
        *,
        config: GenerationConfig | None = None,
        min_model_bytes: int = _MIB,
        max_model_bytes: int | None = None,
        grace: float = _DEFAULT_GRACE,
    ) -> None:
        self.config = config or GenerationConfig()
        self.grace = grace
        self._explicit_executable = executable
        self._min_model_bytes = min_model_bytes
        self._max_model_bytes = max_model_bytes
        self._executable: Path | None = None
        self._model_path: Path | None = None
        self._state = EngineState.IDLE
        self.last_outcome: EngineState | None = None
        self._process: asyncio.subprocess.Process | None = None
        self._cancel_requested = False
        self._kill_handle: asyncio.TimerHandle | None = None

    # ------------------------------------------------------------------
    # Model lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_loaded(self) -> bool:
        return self._model_path is not None

    @property
    def is_generating(self) -> bool:
        return self._state is not EngineState.IDLE

    @property
    def model_path(self) -> Path | None:
        return self._model_path

    @property
    def executable(self) -> Path | None:
        return self._executable

    def load_model(self, path: str | Path) -> Path:
        """Validate *path*, locate llama-cli and make the model current.

        Raises:
            ModelLoadError: Invalid model file.
            ExecutableNotFoundError: No llama-cli available.
            GenerationBusyError: A generation is running.
        """
        if self.is_generating:
            raise GenerationBusyError("Cannot load a model while a generation is running.")
        try:
            model = validate_model_file(
                path, min_bytes=self._min_model_bytes, max_bytes=self._max_model_bytes
            )
            executable = locate_executable(self._explicit_executable)
        except ModelLoadError:
            self.unload()
            raise
        self._model_path = model
        self._executable = executable
        logger.info("Loaded model %s (llama-cli: %s)", model.name, executable)
        return model

    def unload(self) -> None:
        """Stop any running generation and forget the current model."""
        self.cancel()
        self._model_path = None
        self._executable = None

    def model_info(self) -> ModelInfo | None:
        if self._model_path is None:
            return None
        try:
            size = self._model_path.stat().st_size
        except OSError:
            return None
        return ModelInfo(path=self._model_path, name=self._model_path.name, size_bytes=size)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Stop the running generation, if any. The stream ends without error.

        Sends SIGTERM now and SIGKILL after ``grace`` seconds if the process
        is still alive. Must be called from the event loop's thread.
        """
        process = self._process
        if process is None:
            return
        self._cancel_requested = True
        if process.returncode is not None:
            return
        logger.debug("Cancelling generation (pid %s)", process.pid)
        with contextlib.suppress(ProcessLookupError):
            process.terminate()
        with contextlib.suppress(RuntimeError):
            self._kill_handle = asyncio.get_running_loop().call_later(
                self.grace, self._kill, process
            )

    @staticmethod
    def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.kill()

    async def stream(
        self,
        prompt: str,
        config: GenerationConfig | None = None,
        chat_template: str | None = None,
    ) -> AsyncIterator[str]:
        """Yield decoded output fragments of one llama-cli run, in order.

        Raises:
            NoModelLoadedError: No model has been loaded.
            GenerationBusyError: Another generation is still running.
            GenerationFailedError: The run produced no output and reported
                errors or exited non-zero.
        """
        if self._model_path is None or self._executable is None:
            raise NoModelLoadedError("No model loaded. Please load a model first.")
        if self.is_generating:
            raise GenerationBusyError(
                "Generation already in progress. Please wait or stop the current generation."
            )

        self._state = EngineState.LAUNCHING
        self._cancel_requested = False
        outcome = EngineState.FAILED
        cfg = config or self.config
        argv = build_args(self._executable, self._model_path, prompt, cfg, chat_template)
        env = build_env(self._executable)

        try:
            async with spawn(argv, env, self.grace) as process:
                self._process = process
                logger.debug("Launched llama-cli pid %s (%d prompt chars)", process.pid, len(prompt))
                stderr_task = asyncio.create_task(process.stderr.read())
                try:
                    self._state = EngineState.STREAMING
                    decoder = Utf8CarryDecoder()
                    guard = RepetitionGuard()
                    produced: list[str] = []
                    looped = False

                    while True:
                        data = await process.stdout.read(_READ_SIZE)
                        if not data or self._cancel_requested:
                            break
                        fragment = decoder.feed(data)
                        if not fragment:
                            continue
                        if guard.observe(fragment):
                            looped = True
                            logger.warning("Model output is looping; stopping generation")
                            with contextlib.suppress(ProcessLookupError):
                                process.terminate()
                            break
                        produced.append(fragment)
                        yield fragment

                    if not looped and not self._cancel_requested:
                        tail = decoder.flush()
                        if tail:
                            produced.append(tail)
                            yield tail

                    stderr_text = (await stderr_task).decode("utf-8", errors="replace")
                finally:
                    if not stderr_task.done():
                        stderr_task.cancel()
                        with contextlib.suppress(asyncio.CancelledError):
                            await stderr_task

                if self._cancel_requested:
                    outcome = EngineState.CANCELLED
                    logger.info("Generation cancelled")
                    return
                if looped:
                    outcome = EngineState.COMPLETED
                    return

                exit_code = await process.wait()
                report = triage(stderr_text)
                for line in report.errors:
                    logger.debug("llama-cli: %s", line)
                if not "".join(produced).strip() and (report.has_errors or exit_code != 0):
                    raise report.failure(exit_code)
                outcome = EngineState.COMPLETED
        except (GeneratorExit, asyncio.CancelledError):
            outcome = EngineState.CANCELLED
            raise
        finally:
            if self._kill_handle is not None:
                self._kill_handle.cancel()
                self._kill_handle = None
            self._process = None
            self.last_outcome = outcome
            self._state = EngineState.IDLE

    async def generate(
        self,
        prompt: str,
        config: GenerationConfig | None = None,
        chat_template: str | None = None,
    ) -> str:
        """Run a full generation and return the collected, trimmed output."""
        parts: list[str] = []
        async with contextlib.aclosing(self.stream(prompt, config, chat_template)) as fragments:
            async for fragment in fragments:
                parts.append(fragment)
        return "".join(parts).strip()
