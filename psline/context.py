"""
Context snapshot for a single prompt render.

The shell integration passes the previous command's status, duration and
job count on the command line; the rest comes from the process
environment. The snapshot is frozen and shared read-only by every probe.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Sequence

from .constants import DEFAULT_COMMAND_TIMEOUT
from .runner import CommandResult, CommandRunner


@dataclass(frozen=True)
class Context:
    """Immutable facts about the shell at the moment the prompt is drawn.

    Attributes:
        cwd: Physical current directory (symlinks resolved).
        logical_cwd: Current directory as the shell reports it.
        home: The user's home directory.
        status: Exit status of the previous command, if known.
        pipestatus: Exit statuses of every command in the previous pipeline.
        cmd_duration_ms: Wall-clock duration of the previous command.
        shell: Shell identifier (``bash``, ``zsh``, ``fish``, ...).
        jobs: Number of background jobs.
        command_timeout_ms: Budget for external commands run through
            :meth:`exec_cmd` and :meth:`run_shell`; None uses the runner's
            default. The scheduler narrows it to each module's timeout.
        env: Read-only copy of the environment.
        runner: Capability used to run external commands.
    """
    cwd: Path
    logical_cwd: Path
    home: Path
    status: Optional[int] = None
    pipestatus: tuple = ()
    cmd_duration_ms: Optional[int] = None
    shell: str = "unknown"
    jobs: int = 0
    command_timeout_ms: Optional[int] = None
    env: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    runner: CommandRunner = field(default_factory=CommandRunner, compare=False, repr=False)

    def get_env(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get an environment variable from the snapshot."""
        return self.env.get(name, default)

    def exec_cmd(self, program: str, *args: str, timeout_ms: Optional[int] = None) -> Optional[CommandResult]:
        """Run a program in the current directory; None unless it succeeded."""
        if timeout_ms is None:
            timeout_ms = self.command_timeout_ms
        return self.runner.exec_cmd(program, *args, timeout_ms=timeout_ms, cwd=str(self.cwd))

    def run_shell(self, command: str, timeout_ms: Optional[int] = None) -> CommandResult:
        """Run a command line through the shell in the current directory."""
        if timeout_ms is None:
            timeout_ms = self.command_timeout_ms
        return self.runner.run_shell(command, timeout_ms=timeout_ms, cwd=str(self.cwd))


class ContextBuilder:
    """Builds the context snapshot from CLI arguments and the environment.

    Example:
        builder = ContextBuilder()
        context = builder.build(status=1, cmd_duration_ms=2300, jobs=0)
    """

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        runner: Optional[CommandRunner] = None,
        command_timeout_ms: int = DEFAULT_COMMAND_TIMEOUT,
    ) -> None:
        """Initialize the ContextBuilder.

        Args:
            environ: Environment to snapshot (defaults to os.environ).
            runner: Command runner for probes; one is created from
                ``environ`` if not provided.
            command_timeout_ms: Default budget for external commands
                (the configured ``command_timeout``).
        """
        self._environ = dict(environ if environ is not None else os.environ)
        self._command_timeout_ms = command_timeout_ms
        self._runner = runner or CommandRunner(env=self._environ, default_timeout_ms=command_timeout_ms)

    def build(
        self,
        path: Optional[str] = None,
        logical_path: Optional[str] = None,
        status: Optional[int] = None,
        pipestatus: Optional[Sequence[int]] = None,
        cmd_duration_ms: Optional[int] = None,
        jobs: int = 0,
        shell: Optional[str] = None,
    ) -> Context:
        """Build a fresh context snapshot.

        Args:
            path: Current directory (defaults to the process cwd).
            logical_path: Directory as the shell sees it (defaults to
                ``$PWD`` when it points at the same place as ``path``).
            status: Exit status of the previous command.
            pipestatus: Exit statuses of the previous pipeline.
            cmd_duration_ms: Duration of the previous command.
            jobs: Background job count.
            shell: Shell identifier; derived from ``$SHELL`` if omitted.

        Returns:
            A new Context.
        """
        physical = Path(path or os.getcwd()).expanduser()
        try:
            physical = physical.resolve()
        except OSError:
            pass

        logical = Path(logical_path) if logical_path else self._logical_from_env(physical)

        home_env = self._environ.get("HOME") or self._environ.get("USERPROFILE")
        home = Path(home_env) if home_env else Path.home()

        return Context(
            cwd=physical,
            logical_cwd=logical,
            home=home,
            status=status,
            pipestatus=tuple(pipestatus or ()),
            cmd_duration_ms=cmd_duration_ms,
            shell=shell or self._detect_shell(),
            jobs=max(jobs, 0),
            command_timeout_ms=self._command_timeout_ms,
            env=MappingProxyType(dict(self._environ)),
            runner=self._runner,
        )

    def _logical_from_env(self, physical: Path) -> Path:
        pwd = self._environ.get("PWD")
        if not pwd:
            return physical
        try:
            if Path(pwd).resolve() == physical:
                return Path(pwd)
        except OSError:
            pass
        return physical

    def _detect_shell(self) -> str:
        shell = self._environ.get("PSLINE_SHELL") or self._environ.get("SHELL")
        if not shell:
            return "unknown"
        name = Path(shell).name.lower()
        return name[:-4] if name.endswith(".exe") else name
