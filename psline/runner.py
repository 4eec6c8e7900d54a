"""
External command runner for psline.

Probes and ``when`` checks never call :mod:`subprocess` directly; they go
through a :class:`CommandRunner` carried on the context snapshot so tests
can substitute a deterministic fake.
"""
import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from .constants import DEFAULT_COMMAND_TIMEOUT

logger = logging.getLogger(__name__)

# Conventional shell exit code for a missing program
NOT_FOUND_EXIT_CODE = 127


@dataclass(frozen=True)
class CommandResult:
    """Result of an external command execution."""
    stdout: str
    stderr: str
    return_code: int
    command: str
    timed_out: bool = False
    elapsed_ms: float = 0.0

    @property
    def success(self) -> bool:
        """Check if command succeeded."""
        return self.return_code == 0 and not self.timed_out


def is_windows() -> bool:
    return os.name == "nt"


class CommandRunner:
    """
    Runs external programs with a timeout and captured output.

    Every failure mode (missing program, timeout, non-zero exit, OS error)
    is reported through the returned :class:`CommandResult`; nothing raises.
    """

    def __init__(
        self,
        shell: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        default_timeout_ms: int = DEFAULT_COMMAND_TIMEOUT,
    ) -> None:
        """
        Initialize the command runner.

        Args:
            shell: Shell used by :meth:`run_shell` (auto-detected if not provided)
            env: Environment for child processes (defaults to os.environ)
            default_timeout_ms: Timeout used when a call does not pass one
        """
        self._shell = shell or self._detect_shell()
        self._env = dict(env) if env is not None else dict(os.environ)
        self._default_timeout_ms = default_timeout_ms

    def _detect_shell(self) -> str:
        """Detect the appropriate shell for the platform."""
        if is_windows():
            return "powershell.exe"

        for shell in ["/bin/sh", "/bin/bash", "/bin/zsh"]:
            if os.path.exists(shell):
                return shell

        return os.environ.get("SHELL", "/bin/sh")

    def run(
        self,
        args: Sequence[str],
        timeout_ms: Optional[int] = None,
        cwd: Optional[str] = None,
    ) -> CommandResult:
        """
        Run a program synchronously.

        Args:
            args: Program name followed by its arguments
            timeout_ms: Timeout in milliseconds
            cwd: Working directory

        Returns:
            CommandResult with execution results
        """
        command = " ".join(args)
        if timeout_ms is None:
            timeout_ms = self._default_timeout_ms

        executable = shutil.which(args[0], path=self._env.get("PATH")) if args else None
        if executable is None:
            logger.debug(f"Executable not found: {command!r}")
            return CommandResult(
                stdout="",
                stderr=f"{args[0] if args else ''}: command not found",
                return_code=NOT_FOUND_EXIT_CODE,
                command=command,
            )

        started = time.perf_counter()
        try:
            completed = subprocess.run(
                [executable, *args[1:]],
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout_ms / 1000,
                cwd=cwd,
                env=self._env,
                stdin=subprocess.DEVNULL,
            )
        except subprocess.TimeoutExpired:
            logger.debug(f"Command {command!r} timed out after {timeout_ms}ms")
            return CommandResult(
                stdout="",
                stderr=f"Command timed out after {timeout_ms}ms",
                return_code=-1,
                command=command,
                timed_out=True,
                elapsed_ms=(time.perf_counter() - started) * 1000,
            )
        except OSError as e:
            logger.debug(f"Command {command!r} failed to start: {e}")
            return CommandResult(
                stdout="",
                stderr=str(e),
                return_code=-1,
                command=command,
                elapsed_ms=(time.perf_counter() - started) * 1000,
            )

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.debug(
            f"Command {command!r} exited {completed.returncode} in {elapsed_ms:.1f}ms"
        )
        return CommandResult(
            stdout=completed.stdout.strip() if completed.stdout else "",
            stderr=completed.stderr.strip() if completed.stderr else "",
            return_code=completed.returncode,
            command=command,
            elapsed_ms=elapsed_ms,
        )

    def run_shell(
        self,
        command: str,
        timeout_ms: Optional[int] = None,
        cwd: Optional[str] = None,
    ) -> CommandResult:
        """
        Run a command line through the shell.

        Args:
            command: Command line to execute
            timeout_ms: Timeout in milliseconds
            cwd: Working directory

        Returns:
            CommandResult with execution results
        """
        if is_windows():
            args = [self._shell, "-NoProfile", "-Command", command]
        else:
            args = [self._shell, "-c", command]
        result = self.run(args, timeout_ms=timeout_ms, cwd=cwd)
        return CommandResult(
            stdout=result.stdout,
            stderr=result.stderr,
            return_code=result.return_code,
            command=command,
            timed_out=result.timed_out,
            elapsed_ms=result.elapsed_ms,
        )

    def exec_cmd(
        self,
        program: str,
        *args: str,
        timeout_ms: Optional[int] = None,
        cwd: Optional[str] = None,
    ) -> Optional[CommandResult]:
        """
        Run a program and return its result only if it succeeded.

        Returns:
            The CommandResult, or None if the program is missing, timed out
            or exited non-zero.
        """
        result = self.run([program, *args], timeout_ms=timeout_ms, cwd=cwd)
        return result if result.success else None
