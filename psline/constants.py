"""
Constants and configuration defaults for psline.
"""
import os
from pathlib import Path
from typing import Final

APP_NAME: Final[str] = "psline"
APP_VERSION: Final[str] = "0.4.0"
APP_DESCRIPTION: Final[str] = "A fast, concurrent, cross-shell prompt generator"

CONFIG_ENV_VAR: Final[str] = "PSLINE_CONFIG"
LOG_ENV_VAR: Final[str] = "PSLINE_LOG"

CONFIG_DIR: Final[Path] = Path(
    os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))
) / APP_NAME
CONFIG_FILE: Final[Path] = CONFIG_DIR / "config.json"

# Top-level template used when none is configured or the configured one is broken
DEFAULT_FORMAT: Final[str] = "$all"
DEFAULT_RIGHT_FORMAT: Final[str] = ""
# Printed when a render pass fails outright
FALLBACK_PROMPT: Final[str] = "> "

# Time budgets in milliseconds
DEFAULT_SCAN_TIMEOUT: Final[int] = 30
DEFAULT_COMMAND_TIMEOUT: Final[int] = 500

# Levels of module expansion allowed below the top-level template
MAX_EXPANSION_DEPTH: Final[int] = 4

# Variable that expands to every module not referenced explicitly
ALL_MODULES_VARIABLE: Final[str] = "all"

SUPPORTED_SHELLS: Final[tuple] = ("bash", "zsh", "fish", "powershell")
