"""
Configuration for psline.

The configuration is one immutable value built at process start and passed
explicitly to detection, scheduling and rendering. It is read from a JSON
file; values of the wrong type are reported and replaced by defaults so a
typo never costs the user their prompt.
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .constants import (
    CONFIG_ENV_VAR,
    CONFIG_FILE,
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_FORMAT,
    DEFAULT_RIGHT_FORMAT,
    DEFAULT_SCAN_TIMEOUT,
)

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration parsing or validation fails."""

    def __init__(
        self,
        message: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ):
        self.line = line
        self.column = column

        if line is not None and column is not None:
            full_message = f"{message} (line {line}, column {column})"
        elif line is not None:
            full_message = f"{message} (line {line})"
        else:
            full_message = message

        super().__init__(full_message)


def _frozen_mapping(data: Optional[Mapping] = None) -> Mapping:
    return MappingProxyType(dict(data or {}))


# Keys understood by every module; anything else lands in ModuleOptions.options
MODULE_KEYS = {
    "format": str,
    "style": str,
    "symbol": str,
    "disabled": bool,
    "detect_files": list,
    "detect_extensions": list,
    "detect_folders": list,
    "when": str,
    "timeout": int,
}

TOP_LEVEL_KEYS = {
    "format": str,
    "right_format": str,
    "scan_timeout": int,
    "command_timeout": int,
    "add_newline": bool,
}


@dataclass(frozen=True)
class ModuleOptions:
    """Per-module configuration.

    Every field left as None falls back to the module's built-in default.

    Attributes:
        format: Format string override.
        style: Style string override, exposed to templates as ``$style``.
        symbol: Symbol override, exposed to templates as ``$symbol``.
        disabled: Never evaluate the module.
        detect_files: Replacement list of exact file names.
        detect_extensions: Replacement list of extensions (without dot).
        detect_folders: Replacement list of folder names.
        when: Shell command whose zero exit status activates the module.
        timeout: Probe timeout in milliseconds.
        options: Module specific settings (``truncation_length`` ...).
    """
    format: Optional[str] = None
    style: Optional[str] = None
    symbol: Optional[str] = None
    disabled: bool = False
    detect_files: Optional[tuple] = None
    detect_extensions: Optional[tuple] = None
    detect_folders: Optional[tuple] = None
    when: Optional[str] = None
    timeout: Optional[int] = None
    options: Mapping[str, Any] = field(default_factory=_frozen_mapping)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a module specific option."""
        return self.options.get(key, default)

    @classmethod
    def from_dict(cls, data: dict[str, Any], where: str = "module") -> "ModuleOptions":
        """Create ModuleOptions from a dictionary, dropping mistyped fields.

        Args:
            data: The module's table from the config file.
            where: Location used in warnings (e.g. ``"git_branch"``).
        """
        values: dict[str, Any] = {}
        extras: dict[str, Any] = {}
        for key, value in data.items():
            expected = MODULE_KEYS.get(key)
            if expected is None:
                extras[key] = value
                continue
            if not _is_type(value, expected):
                logger.warning(
                    f"Ignoring '{where}.{key}': expected {expected.__name__}, "
                    f"got {type(value).__name__}"
                )
                continue
            if expected is list:
                value = tuple(str(item) for item in value)
            values[key] = value
        return cls(options=_frozen_mapping(extras), **values)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary, omitting unset fields."""
        data: dict[str, Any] = {}
        for key in MODULE_KEYS:
            value = getattr(self, key)
            if value is None or (key == "disabled" and not value):
                continue
            data[key] = list(value) if isinstance(value, tuple) else value
        data.update(self.options)
        return data


def _is_type(value: Any, expected: type) -> bool:
    # bool is a subclass of int; keep them apart
    if expected is int:
        return isinstance(value, int) and not isinstance(value, bool)
    return isinstance(value, expected)


_DEFAULT_OPTIONS = ModuleOptions()

# Custom modules are registered under this prefix
CUSTOM_PREFIX = "custom_"


@dataclass(frozen=True)
class PromptConfig:
    """Complete psline configuration.

    Attributes:
        format: Top-level template.
        right_format: Template for the right prompt (shells that support it).
        scan_timeout: Budget for the shared directory scan, in milliseconds.
        command_timeout: Default probe and ``when`` timeout, in milliseconds.
        add_newline: Print a blank line before the prompt.
        modules: Options keyed by module name.
        custom: Options of user defined command modules keyed by name.

    Example:
        config = PromptConfig.from_dict({"format": "$directory$character"})
    """
    format: str = DEFAULT_FORMAT
    right_format: str = DEFAULT_RIGHT_FORMAT
    scan_timeout: int = DEFAULT_SCAN_TIMEOUT
    command_timeout: int = DEFAULT_COMMAND_TIMEOUT
    add_newline: bool = True
    modules: Mapping[str, ModuleOptions] = field(default_factory=_frozen_mapping)
    custom: Mapping[str, ModuleOptions] = field(default_factory=_frozen_mapping)

    def module(self, name: str) -> ModuleOptions:
        """Get the options for a module (defaults if not configured).

        Custom modules are addressed as ``custom_<name>``.
        """
        if name in self.modules:
            return self.modules[name]
        if name.startswith(CUSTOM_PREFIX):
            return self.custom.get(name[len(CUSTOM_PREFIX):], _DEFAULT_OPTIONS)
        return _DEFAULT_OPTIONS

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PromptConfig":
        """Create a PromptConfig from a dictionary.

        Top-level scalars of the wrong type are logged and replaced by their
        defaults. Every other top-level table is read as module options.

        Args:
            data: Dictionary containing configuration fields.

        Returns:
            A new PromptConfig instance.
        """
        values: dict[str, Any] = {}
        modules: dict[str, ModuleOptions] = {}
        custom: dict[str, ModuleOptions] = {}

        for key, value in data.items():
            expected = TOP_LEVEL_KEYS.get(key)
            if expected is not None:
                if _is_type(value, expected):
                    values[key] = value
                else:
                    logger.warning(
                        f"Ignoring '{key}': expected {expected.__name__}, "
                        f"got {type(value).__name__}"
                    )
            elif key == "custom" and isinstance(value, dict):
                for name, table in value.items():
                    if isinstance(table, dict):
                        custom[name] = ModuleOptions.from_dict(table, f"custom.{name}")
            elif isinstance(value, dict):
                modules[key] = ModuleOptions.from_dict(value, key)
            else:
                logger.warning(f"Ignoring unknown setting '{key}'")

        return cls(
            modules=_frozen_mapping(modules),
            custom=_frozen_mapping(custom),
            **values,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert the config to a dictionary for serialization."""
        data: dict[str, Any] = {key: getattr(self, key) for key in TOP_LEVEL_KEYS}
        for name, options in self.modules.items():
            data[name] = options.to_dict()
        if self.custom:
            data["custom"] = {name: options.to_dict() for name, options in self.custom.items()}
        return data


def validate_config(data: Any) -> tuple[bool, list[str]]:
    """Validate a configuration dictionary.

    Args:
        data: Dictionary containing configuration to validate.

    Returns:
        A tuple of (is_valid, errors) where is_valid is True if validation
        passed and errors is a list of error messages (empty if valid).

    Example:
        is_valid, errors = validate_config({"scan_timeout": "fast"})
        # (False, ["Field 'scan_timeout' must be of type int"])
    """
    errors: list[str] = []

    if not isinstance(data, dict):
        return False, ["Configuration must be a dictionary"]

    for key, value in data.items():
        expected = TOP_LEVEL_KEYS.get(key)
        if expected is not None:
            if not _is_type(value, expected):
                errors.append(f"Field '{key}' must be of type {expected.__name__}")
            elif expected is int and value < 0:
                errors.append(f"Field '{key}' must not be negative")
            continue

        if not isinstance(value, dict):
            errors.append(f"Module '{key}' must be an object")
            continue

        tables = value.items() if key == "custom" else [(key, value)]
        for name, table in tables:
            location = f"custom.{name}" if key == "custom" else name
            if not isinstance(table, dict):
                errors.append(f"Module '{location}' must be an object")
                continue
            for option, option_value in table.items():
                option_type = MODULE_KEYS.get(option)
                if option_type is not None and not _is_type(option_value, option_type):
                    errors.append(f"Field '{location}.{option}' must be of type {option_type.__name__}")
            if key == "custom" and not isinstance(table.get("command"), str):
                errors.append(f"Module '{location}' needs a 'command' string")

    return len(errors) == 0, errors


def config_path(explicit: Optional[str] = None) -> Path:
    """Resolve the config file path: argument, then environment, then default."""
    if explicit:
        return Path(explicit).expanduser()
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return CONFIG_FILE


def import_config(json_str: str) -> PromptConfig:
    """Deserialize a PromptConfig from a JSON string.

    Raises:
        ConfigError: If the JSON is malformed or not an object.
    """
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise ConfigError(
            f"Invalid JSON: {e.msg}",
            line=e.lineno,
            column=e.colno,
        )

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a JSON object")

    is_valid, errors = validate_config(data)
    if not is_valid:
        for error in errors:
            logger.warning(f"Config: {error}")

    return PromptConfig.from_dict(data)


def export_config(config: PromptConfig) -> str:
    """Serialize a PromptConfig to a JSON string."""
    return json.dumps(config.to_dict(), indent=2, ensure_ascii=False)


def load_config(path: Optional[Path] = None) -> PromptConfig:
    """Load configuration from a JSON file.

    Args:
        path: Config file path; see :func:`config_path` for the default.

    Returns:
        The loaded configuration, or defaults if the file does not exist.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    path = path or config_path()
    if not path.exists():
        logger.debug(f"No config file at {path}; using defaults")
        return PromptConfig()

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Failed to read {path}: {e}")

    return import_config(text)
