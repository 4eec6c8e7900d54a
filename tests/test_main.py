"""
Tests for the command line interface.
"""

import json

import pytest
from rich.text import Text as RichText

from psline.constants import APP_VERSION
from psline.main import generate_init, main, parse_args, parse_pipestatus


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"format": "$character", "add_newline": False}), encoding="utf-8")
    return path


def test_parse_prompt_arguments():
    args = parse_args([
        "prompt", "--status", "1", "--pipestatus", "0 1", "--cmd-duration=2500",
        "--jobs", "2", "--shell", "zsh", "--right",
    ])

    assert args.command == "prompt"
    assert args.status == 1
    assert parse_pipestatus(args.pipestatus) == [0, 1]
    assert args.cmd_duration == 2500
    assert args.jobs == 2
    assert args.shell == "zsh"
    assert args.right


def test_parse_pipestatus_skips_garbage():
    assert parse_pipestatus("0 x 2") == [0, 2]
    assert parse_pipestatus(None) == []


def test_version(capsys):
    with pytest.raises(SystemExit):
        main(["--version"])
    assert APP_VERSION in capsys.readouterr().out


@pytest.mark.parametrize("shell,marker", [
    ("bash", "PROMPT_COMMAND"),
    ("zsh", "add-zsh-hook precmd"),
    ("fish", "function fish_prompt"),
    ("powershell", "function global:prompt"),
])
def test_init_scripts(shell, marker):
    script = generate_init(shell, "/opt/bin/psline")

    assert marker in script
    assert "/opt/bin/psline" in script
    assert "__PSLINE__" not in script


def test_init_command(capsys):
    assert main(["init", "zsh"]) == 0
    assert "RPROMPT" in capsys.readouterr().out


def test_prompt_command(capsys, tmp_path, config_file):
    exit_code = main([
        "--config", str(config_file),
        "prompt", "--path", str(tmp_path), "--status", "0", "--shell", "fish",
    ])

    assert exit_code == 0
    assert RichText.from_ansi(capsys.readouterr().out).plain == "❯ "


def test_print_config(capsys, config_file):
    assert main(["--config", str(config_file), "print-config"]) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["format"] == "$character"
    assert data["add_newline"] is False


def test_broken_config_falls_back_to_defaults(capsys, tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    assert main(["--config", str(path), "print-config"]) == 0

    captured = capsys.readouterr()
    assert json.loads(captured.out)["format"] == "$all"
    assert "Config error" in captured.err


def test_modules_command(capsys, config_file):
    assert main(["--config", str(config_file), "modules"]) == 0
    output = capsys.readouterr().out

    assert "directory" in output
    assert "character" in output


def test_module_command(capsys, tmp_path, config_file):
    exit_code = main([
        "--config", str(config_file),
        "module", "character", "--explain", "--path", str(tmp_path), "--status", "1",
    ])

    assert exit_code == 0
    captured = capsys.readouterr()
    assert RichText.from_ansi(captured.out).plain.strip() == "❯"
    assert "symbol" in captured.err


def test_unknown_module(capsys, config_file):
    assert main(["--config", str(config_file), "module", "nope"]) == 1


def test_no_command_prints_help(capsys):
    assert main([]) == 2
    assert "usage" in capsys.readouterr().out
