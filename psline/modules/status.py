"""
Modules reporting on the previous command: ``status`` and ``character``.
"""
import signal
from typing import Optional

from ..config import ModuleOptions
from ..context import Context
from .base import Detection, ModuleDescriptor, ModuleResult

# Exit codes above this value mean "killed by signal (code - 128)"
_SIGNAL_OFFSET = 128


def signal_name(status: int) -> Optional[str]:
    """Name of the signal encoded in a shell exit status, if any."""
    if status <= _SIGNAL_OFFSET:
        return None
    try:
        return signal.Signals(status - _SIGNAL_OFFSET).name
    except ValueError:
        return None


def status(context: Context, options: ModuleOptions) -> Optional[ModuleResult]:
    if context.status is None:
        return None

    pipestatus = None
    if len(context.pipestatus) > 1:
        separator = options.get("pipestatus_separator", "|")
        pipestatus = separator.join(str(code) for code in context.pipestatus)
        if not any(context.pipestatus) and not options.get("show_success", False):
            return None
    elif context.status == 0 and not options.get("show_success", False):
        return None

    name = signal_name(context.status)
    return ModuleResult.of(
        status=str(context.status),
        signal_name=name if options.get("recognize_signal_code", True) else None,
        pipestatus=pipestatus,
    )


def character(context: Context, options: ModuleOptions) -> ModuleResult:
    """The prompt character, coloured by the previous command's status."""
    failed = context.status not in (None, 0)
    if failed:
        symbol = options.get("error_symbol", "❯")
        style = options.get("error_style", "bold red")
    else:
        symbol = options.get("success_symbol", "❯")
        style = options.get("success_style", "bold green")
    return ModuleResult.of(styles={"style": style}, symbol=symbol)


STATUS = ModuleDescriptor(
    name="status",
    description="The status code of the previous command",
    probe=status,
    detection=Detection(always_on=True),
    format="[$symbol$status( $signal_name)]($style) ",
    style="bold red",
    symbol="✖ ",
)

CHARACTER = ModuleDescriptor(
    name="character",
    description="A character (usually an arrow) beside where the text is entered in your terminal",
    probe=character,
    detection=Detection(always_on=True),
    format="[$symbol]($style) ",
)

MODULES = (STATUS, CHARACTER)
