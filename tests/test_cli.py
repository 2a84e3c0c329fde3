"""Tests for the cleansweep command line."""

import json

import pytest

from cleansweep import __version__
from cleansweep.cli.__main__ import main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("CLEANSWEEP_MAX_WORKERS", raising=False)
    monkeypatch.delenv("CLEANSWEEP_METRICS_PORT", raising=False)


def test_version(capsys):
    assert main(["version"]) == 0
    assert capsys.readouterr().out.strip() == f"cleansweep {__version__}"


def test_help(capsys):
    assert main([]) == 0
    assert "Commands:" in capsys.readouterr().out


def test_unknown_command(capsys):
    assert main(["frobnicate"]) == 1
    assert "Unknown command: frobnicate" in capsys.readouterr().out


def test_config_show_json(capsys, monkeypatch):
    monkeypatch.setenv("CLEANSWEEP_MAX_WORKERS", "5")

    assert main(["config", "show", "--format=json"]) == 0

    shown = json.loads(capsys.readouterr().out)
    assert shown["sweeper"]["max_workers"] == 5
    assert shown["logging"]["format"] == "json"


def test_config_show_rejects_bad_format(capsys):
    assert main(["config", "show", "--format", "toml"]) == 1
    assert "Invalid format" in capsys.readouterr().out


def test_config_validate_file(tmp_path, capsys):
    path = tmp_path / "cleansweep.yaml"
    path.write_text("sweeper:\n  core_workers: 3\n  max_workers: 2\n")

    assert main(["config", "validate", str(path)]) == 1
    assert "core_workers" in capsys.readouterr().out


def test_config_validate_missing_file(tmp_path, capsys):
    assert main(["config", "validate", str(tmp_path / "nope.yaml")]) == 1
    assert "not found" in capsys.readouterr().out


def test_config_env_lists_variables(capsys):
    assert main(["config", "env", "--all"]) == 0
    out = capsys.readouterr().out
    assert "CLEANSWEEP_BACKGROUND_SWEEPING=(not set)" in out
