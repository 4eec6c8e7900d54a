"""
Session modules: ``cmd_duration``, ``jobs`` and ``hostname``.
"""
import socket
from typing import Optional

from ..config import ModuleOptions
from ..context import Context
from ..utils import format_duration
from .base import Detection, ModuleDescriptor, ModuleResult

_SSH_VARIABLES = ("SSH_CONNECTION", "SSH_CLIENT", "SSH_TTY")

JOBS_SYMBOL = "✦"


def cmd_duration(context: Context, options: ModuleOptions) -> Optional[ModuleResult]:
    duration = context.cmd_duration_ms
    if duration is None or duration < int(options.get("min_time", 2000)):
        return None
    return ModuleResult.of(
        duration=format_duration(duration, bool(options.get("show_milliseconds", False)))
    )


def jobs(context: Context, options: ModuleOptions) -> Optional[ModuleResult]:
    """Show a symbol when jobs are running, plus the count above ``number_threshold``."""
    if context.jobs <= 0:
        return None
    number_threshold = int(options.get("number_threshold", 2))
    number = str(context.jobs) if context.jobs >= number_threshold else None
    symbol = options.symbol if options.symbol is not None else JOBS_SYMBOL
    return ModuleResult.of(symbol=symbol, number=number)


def hostname(context: Context, options: ModuleOptions) -> Optional[ModuleResult]:
    if options.get("ssh_only", True) and not any(context.get_env(name) for name in _SSH_VARIABLES):
        return None

    host = socket.gethostname()
    trim_at = options.get("trim_at", ".")
    if trim_at and trim_at in host:
        host = host.split(trim_at, 1)[0]
    return ModuleResult.of(hostname=host or None)


CMD_DURATION = ModuleDescriptor(
    name="cmd_duration",
    description="How long the last command took to execute",
    probe=cmd_duration,
    detection=Detection(always_on=True),
    format="took [$duration]($style) ",
    style="bold yellow",
)

JOBS = ModuleDescriptor(
    name="jobs",
    description="The current number of jobs running",
    probe=jobs,
    detection=Detection(always_on=True),
    format="[$symbol$number]($style) ",
    style="bold blue",
    symbol=JOBS_SYMBOL,
)

HOSTNAME = ModuleDescriptor(
    name="hostname",
    description="The system hostname",
    probe=hostname,
    detection=Detection(always_on=True),
    format="[$hostname]($style) in ",
    style="bold dimmed green",
)

MODULES = (HOSTNAME, CMD_DURATION, JOBS)
