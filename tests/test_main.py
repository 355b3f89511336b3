"""Tests for the CLI entry point."""

import pytest

from findvax_notify.main import build_parser, run


def test_parser_run_requires_region():
    args = build_parser().parse_args(["-c", "x.yaml", "run", "--region", "ma"])
    assert (args.config, args.command, args.region) == ("x.yaml", "run", "ma")
    with pytest.raises(SystemExit):
        build_parser().parse_args(["run"])


def test_parser_serve_defaults():
    args = build_parser().parse_args(["serve"])
    assert args.config == "notify.yaml"


def test_missing_config_exits_1(capsys):
    with pytest.raises(SystemExit) as exc_info:
        run(["-c", "/nonexistent/notify.yaml", "serve"])
    assert exc_info.value.code == 1
    assert "Config file not found" in capsys.readouterr().err


def test_invalid_config_exits_1(tmp_path, capsys):
    path = tmp_path / "notify.yaml"
    path.write_text("logging:\n  format: xml\n")
    with pytest.raises(SystemExit) as exc_info:
        run(["-c", str(path), "serve"])
    assert exc_info.value.code == 1
    assert "Configuration error" in capsys.readouterr().err
