"""
Language toolchain modules.

Each one is activated by the project files it recognises and reports the
toolchain version by running ``<tool> --version``.
"""
from pathlib import Path
from typing import Callable, Optional, Sequence

from ..config import ModuleOptions
from ..context import Context
from ..utils import parse_version
from .base import Detection, ModuleDescriptor, ModuleResult


def _tool_version(context: Context, commands: Sequence[Sequence[str]]) -> Optional[str]:
    """Run the first command that succeeds and parse a version from it."""
    for command in commands:
        result = context.exec_cmd(*command)
        if result is None:
            continue
        # Older tools print their version on stderr
        version = parse_version(result.stdout) or parse_version(result.stderr)
        if version:
            return version
    return None


def version_probe(*commands: Sequence[str]) -> Callable[[Context, ModuleOptions], Optional[ModuleResult]]:
    """Build a probe reporting ``$version`` from the first working command."""
    def probe(context: Context, options: ModuleOptions) -> Optional[ModuleResult]:
        version = _tool_version(context, commands)
        if version is None:
            return None
        return ModuleResult.of(version=f"{options.get('version_prefix', 'v')}{version}")
    return probe


def python(context: Context, options: ModuleOptions) -> Optional[ModuleResult]:
    commands = options.get("python_binary", ["python", "python3"])
    if isinstance(commands, str):
        commands = [commands]
    version = _tool_version(context, [(binary, "--version") for binary in commands])

    virtual_env = context.get_env("VIRTUAL_ENV")
    virtualenv = Path(virtual_env).name if virtual_env else None

    if version is None and virtualenv is None:
        return None
    return ModuleResult.of(
        version=f"{options.get('version_prefix', 'v')}{version}" if version else None,
        virtualenv=virtualenv,
    )


PYTHON = ModuleDescriptor(
    name="python",
    description="The currently installed version of Python and the active virtualenv",
    probe=python,
    detection=Detection(
        files=(
            "requirements.txt", ".python-version", "pyproject.toml", "Pipfile",
            "tox.ini", "setup.py", "__init__.py",
        ),
        extensions=("py",),
    ),
    format="via [${symbol}${version}( \\($virtualenv\\))]($style) ",
    style="yellow bold",
    symbol="🐍 ",
)

NODEJS = ModuleDescriptor(
    name="nodejs",
    description="The currently installed version of Node.js",
    probe=version_probe(("node", "--version")),
    detection=Detection(
        files=("package.json", ".node-version", ".nvmrc"),
        extensions=("js", "mjs", "cjs", "ts", "mts", "cts"),
        folders=("node_modules",),
    ),
    format="via [$symbol$version]($style) ",
    style="bold green",
    symbol=" ",
)

RUST = ModuleDescriptor(
    name="rust",
    description="The currently installed version of Rust",
    probe=version_probe(("rustc", "--version")),
    detection=Detection(files=("Cargo.toml",), extensions=("rs",)),
    format="via [$symbol$version]($style) ",
    style="bold red",
    symbol="🦀 ",
)

GOLANG = ModuleDescriptor(
    name="golang",
    description="The currently installed version of Golang",
    probe=version_probe(("go", "version")),
    detection=Detection(
        files=("go.mod", "go.sum", "go.work", "glide.yaml", "Gopkg.toml", ".go-version"),
        extensions=("go",),
        folders=("Godeps",),
    ),
    format="via [$symbol$version]($style) ",
    style="bold cyan",
    symbol="🐹 ",
)

MODULES = (PYTHON, NODEJS, RUST, GOLANG)
