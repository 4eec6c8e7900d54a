"""
Shared fixtures: a scripted command runner and a context factory.
"""
from pathlib import Path
from types import MappingProxyType
from typing import Optional

import pytest

from psline.context import Context
from psline.runner import NOT_FOUND_EXIT_CODE, CommandResult


class FakeRunner:
    """Command runner answering from a table instead of spawning processes.

    Keys are the command line joined by spaces (``"python --version"``) or
    the raw shell command for :meth:`run_shell`. Values are
    ``(return_code, stdout)`` or ``(return_code, stdout, stderr)``.
    """

    def __init__(self, responses: Optional[dict] = None):
        self.responses = dict(responses or {})
        self.calls: list[str] = []
        self.timeouts: list = []

    def _answer(self, command: str) -> CommandResult:
        self.calls.append(command)
        response = self.responses.get(command)
        if response is None:
            return CommandResult("", f"{command}: command not found", NOT_FOUND_EXIT_CODE, command)
        if callable(response):
            response = response()
        return_code, stdout, *rest = response
        return CommandResult(stdout, rest[0] if rest else "", return_code, command)

    def run(self, args, timeout_ms=None, cwd=None) -> CommandResult:
        self.timeouts.append(timeout_ms)
        return self._answer(" ".join(args))

    def run_shell(self, command, timeout_ms=None, cwd=None) -> CommandResult:
        self.timeouts.append(timeout_ms)
        return self._answer(command)

    def exec_cmd(self, program, *args, timeout_ms=None, cwd=None) -> Optional[CommandResult]:
        result = self.run([program, *args], timeout_ms=timeout_ms)
        return result if result.success else None


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def make_context(tmp_path):
    """Factory for contexts rooted in a temporary directory."""

    def factory(cwd: Optional[Path] = None, env: Optional[dict] = None, runner=None, **kwargs) -> Context:
        cwd = cwd or tmp_path
        return Context(
            cwd=cwd,
            logical_cwd=kwargs.pop("logical_cwd", cwd),
            home=kwargs.pop("home", tmp_path / "home"),
            env=MappingProxyType(dict(env or {})),
            runner=runner or FakeRunner(),
            **kwargs,
        )

    return factory
