"""Tests for ember init."""

from __future__ import annotations

import stat
from pathlib import Path

import yaml
from typer.testing import CliRunner

import ember.config
from ember.cli.main import app

runner = CliRunner()


def test_init_creates_project(tmp_path: Path):
    project = tmp_path / "project"
    result = runner.invoke(app, ["init", str(project)])
    assert result.exit_code == 0, result.output

    assert (project / ".ember.db").exists()
    cfg = yaml.safe_load((project / "ember.yaml").read_text(encoding="utf-8"))
    assert cfg["retrieval"]["top_k"] == 3
    assert cfg["model"] is None

    global_cfg = ember.config._GLOBAL_CONFIG_PATH
    assert global_cfg.exists()
    assert stat.S_IMODE(global_cfg.stat().st_mode) == 0o600


def test_init_records_model_and_detected_format(tmp_path: Path, model_file: Path):
    project = tmp_path / "project"
    result = runner.invoke(app, ["init", str(project), "--model", str(model_file)])
    assert result.exit_code == 0, result.output

    cfg = yaml.safe_load((project / "ember.yaml").read_text(encoding="utf-8"))
    assert cfg["model"]["path"] == str(model_file.resolve())
    assert cfg["model"]["prompt_format"] == "llama3"


def test_init_keeps_existing_config(tmp_path: Path):
    project = tmp_path / "project"
    project.mkdir()
    (project / "ember.yaml").write_text("retrieval:\n  top_k: 9\n", encoding="utf-8")

    result = runner.invoke(app, ["init", str(project)])
    assert result.exit_code == 0
    assert "top_k: 9" in (project / "ember.yaml").read_text(encoding="utf-8")


def test_init_config_loads(tmp_path: Path):
    project = tmp_path / "project"
    runner.invoke(app, ["init", str(project)])
    cfg = ember.config.load_config(project)
    assert cfg.chunking.chunk_size == 500
