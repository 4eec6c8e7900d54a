"""
User defined command modules.

Each entry of the ``custom`` config table becomes a module named
``custom_<name>`` that shows the output of a shell command. Without a
``when`` command or detect list the module never activates.

Example config::

    "custom": {
        "kube": {
            "command": "kubectl config current-context",
            "detect_files": ["Chart.yaml"],
            "symbol": "⎈ "
        }
    }
"""
import logging
from typing import Optional

from ..config import CUSTOM_PREFIX, ModuleOptions, PromptConfig
from ..context import Context
from .base import ModuleDescriptor, ModuleResult

logger = logging.getLogger(__name__)

CUSTOM_FORMAT = "[$symbol($output )]($style)"
CUSTOM_STYLE = "bold green"


def custom_command(context: Context, options: ModuleOptions) -> Optional[ModuleResult]:
    command = options.get("command")
    if not isinstance(command, str) or not command.strip():
        return None

    result = context.run_shell(command)
    if not result.success:
        logger.debug(f"Custom command {command!r} failed: {result.stderr}")
        return None
    return ModuleResult.of(output=result.stdout or None)


def custom_modules(config: PromptConfig) -> list[ModuleDescriptor]:
    """Build one descriptor per entry of the ``custom`` table."""
    descriptors = []
    for name, options in config.custom.items():
        descriptors.append(ModuleDescriptor(
            name=f"{CUSTOM_PREFIX}{name}",
            description=options.get("description", f"Output of '{options.get('command', '')}'"),
            probe=custom_command,
            format=CUSTOM_FORMAT,
            style=CUSTOM_STYLE,
        ))
    return descriptors
