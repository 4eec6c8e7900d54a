"""
The ``directory`` module: where am I.
"""
import os

from ..config import ModuleOptions
from ..context import Context
from ..git import Repository
from ..utils import contract_path, truncate_path
from .base import Detection, ModuleDescriptor, ModuleResult


def directory(context: Context, options: ModuleOptions) -> ModuleResult:
    """Show the current directory, relative to home or to the repo root.

    Inside a git repository the path starts at the repository's folder name
    (unless ``truncate_to_repo`` is false); elsewhere the home directory is
    shown as ``home_symbol``. The result keeps ``truncation_length`` trailing
    components.
    """
    truncation_length = int(options.get("truncation_length", 3))
    home_symbol = options.get("home_symbol", "~")

    repo = Repository.discover(context.cwd) if options.get("truncate_to_repo", True) else None
    if repo is not None and repo.root_dir != context.home:
        display = contract_path(context.cwd, repo.root_dir, repo.root_dir.name)
    else:
        display = contract_path(context.logical_cwd, context.home, home_symbol)

    display = truncate_path(display, truncation_length)

    read_only = None
    if not os.access(context.cwd, os.W_OK):
        read_only = options.get("read_only", "🔒")

    return ModuleResult.of(path=display, read_only=read_only)


DIRECTORY = ModuleDescriptor(
    name="directory",
    description="The current working directory",
    probe=directory,
    detection=Detection(always_on=True),
    format="[$path]($style)( [$read_only](red)) ",
    style="bold cyan",
)

MODULES = (DIRECTORY,)
