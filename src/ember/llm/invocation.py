"""Building the llama-cli invocation: executable lookup, model checks, argv, env."""

from __future__ import annotations

import os
import shutil
import sys
from pathlib import Path

from ember.config import GenerationConfig
from ember.llm.errors import ExecutableNotFoundError, ModelLoadError

_MIB = 1024 * 1024
_EXECUTABLE_ENV = "EMBER_LLAMA_CLI"


def executable_name() -> str:
    return "llama-cli.exe" if sys.platform == "win32" else "llama-cli"


def candidate_paths() -> list[Path]:
    """Well-known llama-cli locations, in lookup order (PATH is searched last)."""
    name = executable_name()
    # Directory of the running interpreter / frozen app bundle.
    exec_dir = Path(sys.executable).resolve().parent
    cwd = Path.cwd()
    candidates = [
        exec_dir / "lib" / name,
        exec_dir / name,
        exec_dir / "bin" / name,
        exec_dir.parent / "lib" / name,
        exec_dir.parent / "Resources" / name,  # macOS app bundle
        cwd / "bin" / name,
        cwd / name,
    ]
    if sys.platform != "win32":
        candidates += [Path("/usr/local/bin") / name, Path("/usr/bin") / name]
    return candidates


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def locate_executable(explicit: str | Path | None = None) -> Path:
    """Return the llama-cli to run.

    Lookup order: *explicit*, ``$EMBER_LLAMA_CLI``, well-known locations,
    then the system PATH.

    Raises:
        ExecutableNotFoundError: If nothing usable is found, or an explicitly
            configured path is not an executable file.
    """
    for configured in (explicit, os.environ.get(_EXECUTABLE_ENV)):
        if configured:
            path = Path(configured).expanduser()
            if not _is_executable(path):
                raise ExecutableNotFoundError(f"llama-cli not executable: {path}")
            return path

    for path in candidate_paths():
        if _is_executable(path):
            return path

    found = shutil.which(executable_name())
    if found:
        return Path(found)

    raise ExecutableNotFoundError(
        "llama-cli not found. Please ensure llama.cpp is properly installed.\n"
        "Expected locations: bin/llama-cli, lib/llama-cli, or system PATH."
    )


def validate_model_file(
    path: str | Path,
    min_bytes: int = _MIB,
    max_bytes: int | None = None,
) -> Path:
    """Check that *path* looks like a usable GGUF model and return it resolved.

    Raises:
        ModelLoadError: Missing file, non-.gguf extension, or size out of bounds.
    """
    p = Path(path).expanduser()
    if not p.is_file():
        raise ModelLoadError(f"Model file not found: {p}")
    if p.suffix.lower() != ".gguf":
        raise ModelLoadError("Invalid model format. Please use a .gguf file.")
    size = p.stat().st_size
    if size < min_bytes:
        raise ModelLoadError("Model file appears to be corrupted or incomplete.")
    if max_bytes is not None and size > max_bytes:
        raise ModelLoadError(
            f"Model file is {size / _MIB:.1f} MB, above the configured limit of "
            f"{max_bytes / _MIB:.1f} MB."
        )
    return p.resolve()


def build_args(
    executable: str | Path,
    model_path: str | Path,
    prompt: str,
    config: GenerationConfig,
    chat_template: str | None = None,
) -> list[str]:
    """Return the full argv for a single-shot, non-interactive completion."""
    args = [
        str(executable),
        "--model", str(model_path),
        "--prompt", prompt,
        "--n-predict", str(config.max_tokens),
        "--ctx-size", str(config.context_size),
        "--temp", str(config.temperature),
        "--repeat-penalty", str(config.repeat_penalty),
        "--repeat-last-n", str(config.repeat_last_n),
        "--top-p", str(config.top_p),
        "--top-k", str(config.top_k),
        "--no-display-prompt",
        "--no-conversation",
    ]
    if sys.platform == "win32":
        # Unbuffered console I/O; streaming stalls without it.
        args.append("--simple-io")
    if chat_template:
        args += ["--chat-template", chat_template]
    for stop in config.stop:
        args += ["--reverse-prompt", stop]
    return args


def build_env(executable: str | Path, base: dict[str, str] | None = None) -> dict[str, str]:
    """Return the process environment with the executable's directory on the library path.

    llama.cpp builds often ship their shared libraries next to the binary.
    """
    env = dict(os.environ if base is None else base)
    exec_dir = str(Path(executable).parent)
    if sys.platform.startswith("linux"):
        var = "LD_LIBRARY_PATH"
    elif sys.platform == "darwin":
        var = "DYLD_LIBRARY_PATH"
    else:
        return env
    existing = env.get(var)
    env[var] = f"{exec_dir}{os.pathsep}{existing}" if existing else exec_dir
    return env
