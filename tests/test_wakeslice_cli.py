# ──────────────────────────────────────────────────────────────────────
# Wakeslice — Command Line Interface Tests
# ──────────────────────────────────────────────────────────────────────

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

import wakeslice.cli as cli_mod


@pytest.fixture(autouse=True)
def _reset_logging():  # type: ignore[no-untyped-def]
    logger = logging.getLogger("wakeslice")
    level = logger.level
    yield
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.setLevel(level)


def _run(args: list[str], tmp_path: Path) -> tuple[int, dict]:
    out = tmp_path / "summary.json"
    result = CliRunner().invoke(cli_mod.cli, args + ["--output", str(out)])
    assert result.exit_code == 0, result.output
    return result.exit_code, json.loads(out.read_text(encoding="utf-8"))


def test_default_sweep_writes_summary(tmp_path: Path) -> None:
    _, summary = _run(["--slices", "3"], tmp_path)
    assert summary["run_name"] == "demo"
    assert summary["n_slices"] == 3
    assert [s["islice"] for s in summary["slices"]] == [2, 1, 0]
    assert all(s["state"] in ("converged", "max_iter_hit") for s in summary["slices"])
    assert summary["avg_iterations"] >= 0.0


def test_explicit_flag_switches_path(tmp_path: Path) -> None:
    _, summary = _run(["--slices", "2", "--explicit"], tmp_path)
    assert [s["state"] for s in summary["slices"]] == ["explicit", "explicit"]
    assert summary["avg_iterations"] == 0.0


def test_config_file_is_used(tmp_path: Path) -> None:
    config = {
        "run_name": "from-file",
        "my_constants": {"n": 16},
        "levels": [{"nx": "n", "ny": "n", "lo": [-1, -1], "hi": [1, 1]}],
        "n_slices": 2,
    }
    path = tmp_path / "config.json"
    path.write_text(json.dumps(config), encoding="utf-8")
    _, summary = _run([str(path), "--chi", "0.5", "--json-logs"], tmp_path)
    assert summary["run_name"] == "from-file"
    assert summary["n_slices"] == 2


def test_invalid_config_exits_nonzero(tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"levels": []}), encoding="utf-8")
    result = CliRunner().invoke(cli_mod.cli, [str(path)])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_invalid_json_exits_nonzero(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{levels: ", encoding="utf-8")
    result = CliRunner().invoke(cli_mod.cli, [str(path)])
    assert result.exit_code == 1
    assert "invalid JSON" in result.output


def test_overflowing_expression_exits_nonzero(tmp_path: Path) -> None:
    path = tmp_path / "overflow.json"
    path.write_text(
        json.dumps({"levels": [{"nx": "2**40", "ny": 8, "lo": [-1, -1], "hi": [1, 1]}]}),
        encoding="utf-8",
    )
    result = CliRunner().invoke(cli_mod.cli, [str(path)])
    assert result.exit_code == 1
    assert "Overflow" in result.output


def test_main_returns_exit_code(monkeypatch, tmp_path: Path) -> None:
    out = tmp_path / "main.json"
    monkeypatch.setattr(sys, "argv", ["wakeslice", "--slices", "1", "--output", str(out)])
    assert cli_mod.main() == 0
    assert json.loads(out.read_text(encoding="utf-8"))["n_slices"] == 1

    monkeypatch.setattr(sys, "argv", ["wakeslice", str(tmp_path / "missing.json")])
    assert cli_mod.main() == 2
