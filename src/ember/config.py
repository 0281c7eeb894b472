"""Ember configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (EMBER_MODEL, EMBER_EXECUTABLE,
                             EMBER_PROMPT_FORMAT, EMBER_LOG_LEVEL)
  3. Per-project ember.yaml  (next to the document database)
  4. Global ~/.ember/config.yaml
  5. Hardcoded defaults

All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import dataclasses
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".ember"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "ember.yaml"

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["model", "generation", "retrieval", "chunking", "logging"]
)

_LOG_LEVELS: frozenset[str] = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])

_MIB = 1024 * 1024


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file or override contains an invalid value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GenerationConfig:
    """Sampling parameters passed to llama-cli (ember.yaml: generation:).

    Defaults are conservative for small local models. Build a per-call variant
    with ``with_overrides()`` rather than mutating a shared instance.
    """

    max_tokens: int = 512
    context_size: int = 2048
    temperature: float = 0.7
    repeat_penalty: float = 1.1
    repeat_last_n: int = 64
    top_p: float = 0.9
    top_k: int = 40
    stop: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        for f in dataclasses.fields(self):
            if f.name == "stop":
                continue
            value = getattr(self, f.name)
            if not value > 0:
                raise ConfigError(f"generation.{f.name} must be > 0, got {value!r}")
        # Accept any iterable of strings for stop; store as a tuple.
        object.__setattr__(self, "stop", tuple(str(s) for s in self.stop if s))

    def with_overrides(self, **overrides: Any) -> GenerationConfig:
        """Return a copy with the non-None *overrides* applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **changes)


@dataclass
class ModelCfg:
    """Local model configuration (ember.yaml: model:).

    Attributes:
        path: Path to a .gguf model file.
        executable: Explicit path to llama-cli (searched for when unset).
        prompt_format: Prompt format override; auto-detected from *path* when unset.
        chat_template: llama.cpp built-in chat template name passed through
            ``--chat-template`` (normally unset: Ember renders prompts itself).
        min_bytes: Smaller model files are rejected as truncated downloads.
        max_bytes: Larger model files are rejected (None = no upper bound).
    """

    path: str | None = None
    executable: str | None = None
    prompt_format: str | None = None
    chat_template: str | None = None
    min_bytes: int = _MIB
    max_bytes: int | None = None


@dataclass
class RetrievalCfg:
    """Document retrieval configuration (ember.yaml: retrieval:)."""

    top_k: int = 3
    min_score: float = 0.1
    tf_scale: float = 100.0


@dataclass
class ChunkingCfg:
    """Chunker sizes in characters (ember.yaml: chunking:)."""

    chunk_size: int = 500
    overlap: int = 50
    min_length: int = 20


@dataclass
class LoggingCfg:
    """Logging configuration (ember.yaml: logging:)."""

    level: str = "WARNING"


@dataclass
class EmberConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    model: ModelCfg = field(default_factory=ModelCfg)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate_level(level: str) -> str:
    normalized = level.upper()
    if normalized not in _LOG_LEVELS:
        raise ConfigError(
            f"logging.level must be one of {', '.join(sorted(_LOG_LEVELS))}, got '{level}'"
        )
    return normalized


def _validate(cfg: EmberConfig) -> None:
    r = cfg.retrieval
    if r.top_k < 1:
        raise ConfigError(f"retrieval.top_k must be >= 1, got {r.top_k}")
    if r.min_score < 0:
        raise ConfigError(f"retrieval.min_score must be >= 0, got {r.min_score}")
    if r.tf_scale <= 0:
        raise ConfigError(f"retrieval.tf_scale must be > 0, got {r.tf_scale}")

    c = cfg.chunking
    if c.chunk_size < 1:
        raise ConfigError(f"chunking.chunk_size must be >= 1, got {c.chunk_size}")
    if not 0 <= c.overlap < c.chunk_size:
        raise ConfigError(
            f"chunking.overlap must be in [0, chunk_size), got {c.overlap}"
        )
    if c.min_length < 0:
        raise ConfigError(f"chunking.min_length must be >= 0, got {c.min_length}")

    m = cfg.model
    if m.max_bytes is not None and m.max_bytes < m.min_bytes:
        raise ConfigError("model.max_bytes must not be smaller than model.min_bytes")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _optional_str(value: Any) -> str | None:
    return str(value) if value not in (None, "") else None


def _stop_sequences(value: Any, default: tuple[str, ...]) -> tuple[str, ...]:
    """Accept a single stop string or a list of them."""
    if value is None:
        return default
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list):
        raise ConfigError(f"generation.stop must be a string or a list, got {value!r}")
    return tuple(str(s) for s in value)


def _cfg_from_dict(data: dict[str, Any]) -> EmberConfig:
    """Build an *EmberConfig* from a merged raw YAML dict."""
    cfg = EmberConfig()

    try:
        if "model" in data:
            m = data["model"] or {}
            max_bytes = m.get("max_bytes", cfg.model.max_bytes)
            cfg.model = ModelCfg(
                path=_optional_str(m.get("path", cfg.model.path)),
                executable=_optional_str(m.get("executable", cfg.model.executable)),
                prompt_format=_optional_str(m.get("prompt_format", cfg.model.prompt_format)),
                chat_template=_optional_str(m.get("chat_template", cfg.model.chat_template)),
                min_bytes=int(m.get("min_bytes", cfg.model.min_bytes)),
                max_bytes=int(max_bytes) if max_bytes is not None else None,
            )

        if "generation" in data:
            g = data["generation"] or {}
            base = cfg.generation
            cfg.generation = GenerationConfig(
                max_tokens=int(g.get("max_tokens", base.max_tokens)),
                context_size=int(g.get("context_size", base.context_size)),
                temperature=float(g.get("temperature", base.temperature)),
                repeat_penalty=float(g.get("repeat_penalty", base.repeat_penalty)),
                repeat_last_n=int(g.get("repeat_last_n", base.repeat_last_n)),
                top_p=float(g.get("top_p", base.top_p)),
                top_k=int(g.get("top_k", base.top_k)),
                stop=_stop_sequences(g.get("stop"), base.stop),
            )

        if "retrieval" in data:
            r = data["retrieval"] or {}
            cfg.retrieval = RetrievalCfg(
                top_k=int(r.get("top_k", cfg.retrieval.top_k)),
                min_score=float(r.get("min_score", cfg.retrieval.min_score)),
                tf_scale=float(r.get("tf_scale", cfg.retrieval.tf_scale)),
            )

        if "chunking" in data:
            c = data["chunking"] or {}
            cfg.chunking = ChunkingCfg(
                chunk_size=int(c.get("chunk_size", cfg.chunking.chunk_size)),
                overlap=int(c.get("overlap", cfg.chunking.overlap)),
                min_length=int(c.get("min_length", cfg.chunking.min_length)),
            )

        if "logging" in data:
            lg = data["logging"] or {}
            cfg.logging = LoggingCfg(level=str(lg.get("level", cfg.logging.level)))
    except (TypeError, ValueError) as exc:
        if isinstance(exc, ConfigError):
            raise
        raise ConfigError(f"Invalid config value: {exc}") from exc

    return cfg


def _apply_env_overrides(cfg: EmberConfig) -> EmberConfig:
    """Apply EMBER_* environment variable overrides."""
    if model := os.environ.get("EMBER_MODEL"):
        cfg.model.path = model
    if executable := os.environ.get("EMBER_EXECUTABLE"):
        cfg.model.executable = executable
    if prompt_format := os.environ.get("EMBER_PROMPT_FORMAT"):
        cfg.model.prompt_format = prompt_format
    if level := os.environ.get("EMBER_LOG_LEVEL"):
        cfg.logging.level = level
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> EmberConfig:
    """Load and return a merged *EmberConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *ember.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *EmberConfig* with env var overrides applied.

    Raises:
        ConfigError: If any layer holds a value of the wrong type or range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    cfg.logging.level = _validate_level(cfg.logging.level)
    _validate(cfg)
    return cfg


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.ember/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# Ember global configuration.\n"
            "# Per-project settings go in ember.yaml next to your document database.\n"
            "\n"
            "model:\n"
            "  # path: ~/models/llama-3.2-3b-instruct.Q4_K_M.gguf\n"
            "  # executable: /usr/local/bin/llama-cli\n"
            "\n"
            "generation:\n"
            "  max_tokens: 512\n"
            "  context_size: 2048\n"
            "  temperature: 0.7\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
