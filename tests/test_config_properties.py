"""
Property-based tests for psline configuration.
"""

from dataclasses import FrozenInstanceError

import allure
import pytest
from hypothesis import given, settings, strategies as st

from psline.config import (
    TOP_LEVEL_KEYS,
    ConfigError,
    ModuleOptions,
    PromptConfig,
    export_config,
    import_config,
    load_config,
    validate_config,
)


# Strategies for generating test data

RESERVED_NAMES = {"custom", *TOP_LEVEL_KEYS}

module_names = st.text(
    alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz_"),
    min_size=1,
    max_size=15,
).filter(lambda name: name not in RESERVED_NAMES)


@st.composite
def module_options_strategy(draw):
    """Generate ModuleOptions with a mix of known and module specific keys."""
    options = draw(st.dictionaries(
        st.sampled_from(["truncation_length", "show_milliseconds", "region_aliases_x"]),
        st.one_of(st.integers(0, 10), st.booleans(), st.text(max_size=10)),
        max_size=3,
    ))
    return ModuleOptions(
        format=draw(st.one_of(st.none(), st.text(max_size=20))),
        style=draw(st.one_of(st.none(), st.sampled_from(["bold red", "green", ""]))),
        symbol=draw(st.one_of(st.none(), st.text(max_size=4))),
        disabled=draw(st.booleans()),
        detect_files=draw(st.one_of(st.none(), st.lists(st.text(min_size=1, max_size=8), max_size=3).map(tuple))),
        when=draw(st.one_of(st.none(), st.text(max_size=20))),
        timeout=draw(st.one_of(st.none(), st.integers(0, 5000))),
        options=options,
    )


@st.composite
def prompt_config_strategy(draw):
    """Generate valid PromptConfig objects."""
    modules = draw(st.dictionaries(module_names, module_options_strategy(), max_size=4))
    custom = draw(st.dictionaries(
        module_names,
        st.builds(lambda command: ModuleOptions(options={"command": command}), st.text(min_size=1, max_size=20)),
        max_size=2,
    ))
    return PromptConfig(
        format=draw(st.text(max_size=30)),
        right_format=draw(st.text(max_size=10)),
        scan_timeout=draw(st.integers(0, 1000)),
        command_timeout=draw(st.integers(0, 10000)),
        add_newline=draw(st.booleans()),
        modules=modules,
        custom=custom,
    )


# **Feature: configuration, Property 1: Configuration round-trip consistency**
@allure.feature("Configuration")
@allure.story("Configuration round-trip consistency")
@allure.severity(allure.severity_level.CRITICAL)
@settings(max_examples=100)
@given(config=prompt_config_strategy())
def test_config_round_trip_consistency(config: PromptConfig):
    """
    Property 1: Configuration round-trip consistency

    Exporting any valid configuration to JSON and importing it back yields
    an equal configuration.
    """
    restored = import_config(export_config(config))

    assert restored.format == config.format
    assert restored.command_timeout == config.command_timeout
    assert dict(restored.modules) == dict(config.modules)
    assert dict(restored.custom) == dict(config.custom)
    assert restored.to_dict() == config.to_dict()


@allure.feature("Configuration")
@allure.story("Import malformed JSON error reporting")
@allure.severity(allure.severity_level.NORMAL)
def test_import_malformed_json_reports_line_column():
    """Test that malformed JSON reports line and column information."""
    malformed_json = '{\n  "format": "$all",\n  "add_newline": nope\n}'

    with pytest.raises(ConfigError) as exc_info:
        import_config(malformed_json)

    error = exc_info.value
    assert error.line == 3
    assert error.column is not None
    assert "line 3" in str(error)


def test_import_rejects_non_object():
    """Test that a JSON array is not a configuration."""
    with pytest.raises(ConfigError):
        import_config("[1, 2]")


def test_mistyped_fields_fall_back_to_defaults():
    """Test that bad values are dropped field by field."""
    config = import_config(
        '{"scan_timeout": "fast", "command_timeout": 200,'
        ' "git_branch": {"style": 5, "symbol": "B ", "truncation_length": 4}}'
    )

    assert config.scan_timeout == PromptConfig().scan_timeout
    assert config.command_timeout == 200
    options = config.module("git_branch")
    assert options.style is None
    assert options.symbol == "B "
    assert options.get("truncation_length") == 4


def test_bool_is_not_an_int():
    """Test that ``true`` is rejected where a number is expected."""
    assert PromptConfig.from_dict({"scan_timeout": True}).scan_timeout == PromptConfig().scan_timeout
    assert ModuleOptions.from_dict({"timeout": False}).timeout is None


def test_unconfigured_module_gets_defaults():
    """Test that ``module()`` never fails."""
    config = PromptConfig()
    assert config.module("anything") == ModuleOptions()
    assert config.module("custom_missing") == ModuleOptions()


def test_custom_modules_are_addressed_with_prefix():
    """Test the ``custom`` table."""
    config = PromptConfig.from_dict({"custom": {"kube": {"command": "kubectl config current-context"}}})

    assert config.module("custom_kube").get("command") == "kubectl config current-context"
    assert "custom" not in config.modules


def test_config_is_immutable():
    """Test that configuration values cannot be modified after loading."""
    config = PromptConfig.from_dict({"directory": {"truncation_length": 2}})

    with pytest.raises(FrozenInstanceError):
        config.format = "$character"
    with pytest.raises(TypeError):
        config.modules["new"] = ModuleOptions()


def test_validate_config_accepts_valid_config():
    """Test that validation accepts a valid configuration."""
    valid_config = {
        "format": "$directory$character",
        "scan_timeout": 30,
        "add_newline": False,
        "directory": {"truncation_length": 2, "style": "bold cyan"},
        "custom": {"kube": {"command": "kubectl config current-context", "when": "true"}},
    }

    is_valid, errors = validate_config(valid_config)
    assert is_valid, f"Valid config should pass validation: {errors}"
    assert len(errors) == 0


def test_validate_config_rejects_invalid_types():
    """Test that validation rejects invalid field types."""
    invalid_config = {
        "format": 123,
        "add_newline": "yes",
        "command_timeout": -1,
        "python": {"detect_files": "setup.py"},
        "custom": {"broken": {"when": "true"}},
        "stray": 5,
    }

    is_valid, errors = validate_config(invalid_config)
    assert not is_valid
    assert "Field 'format' must be of type str" in errors
    assert "Field 'add_newline' must be of type bool" in errors
    assert "Field 'command_timeout' must not be negative" in errors
    assert "Field 'python.detect_files' must be of type list" in errors
    assert "Module 'custom.broken' needs a 'command' string" in errors
    assert "Module 'stray' must be an object" in errors


def test_validate_config_rejects_non_dict():
    """Test that validation rejects non-dictionary input."""
    is_valid, errors = validate_config("not a dict")
    assert not is_valid
    assert "Configuration must be a dictionary" in errors


def test_load_config_missing_file_gives_defaults(tmp_path):
    """Test that a missing config file is not an error."""
    assert load_config(tmp_path / "nope.json") == PromptConfig()


def test_load_config_reads_file(tmp_path):
    """Test loading a config file from disk."""
    path = tmp_path / "config.json"
    path.write_text('{"format": "$directory$character", "add_newline": false}', encoding="utf-8")

    config = load_config(path)
    assert config.format == "$directory$character"
    assert config.add_newline is False
