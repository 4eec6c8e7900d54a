"""
Detection engine.

Lists the current directory exactly once per render and decides which
modules are active by matching their predicates against that shared
listing. Predicate matching is pure; only ``when`` checks run commands.
"""
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from .config import PromptConfig
from .context import Context
from .modules.base import ModuleDescriptor
from .scheduler import run_bounded

logger = logging.getLogger(__name__)

# Extra time granted to the join so the runner's own timeout fires first
_WHEN_JOIN_MARGIN_MS = 50


def _extensions(name: str) -> list[str]:
    """Every extension of a file name: ``a.tar.gz`` gives ``gz`` and ``tar.gz``."""
    stem = name[1:] if name.startswith(".") else name
    parts = stem.split(".")
    return [".".join(parts[i:]) for i in range(1, len(parts))]


@dataclass(frozen=True)
class DirListing:
    """Names found directly inside the current directory."""
    path: Optional[Path] = None
    files: frozenset = frozenset()
    folders: frozenset = frozenset()
    extensions: frozenset = frozenset()

    @classmethod
    def empty(cls, path: Optional[Path] = None) -> "DirListing":
        return cls(path=path)

    @classmethod
    def from_names(cls, path: Optional[Path], files: Iterable[str], folders: Iterable[str] = ()) -> "DirListing":
        """Build a listing from file and folder names."""
        files = frozenset(files)
        extensions = frozenset(ext for name in files for ext in _extensions(name))
        return cls(path=path, files=files, folders=frozenset(folders), extensions=extensions)

    def has_any_file(self, names: Iterable[str]) -> bool:
        return any(name in self.files for name in names)

    def has_any_extension(self, extensions: Iterable[str]) -> bool:
        return any(ext.lstrip(".") in self.extensions for ext in extensions)

    def has_any_folder(self, names: Iterable[str]) -> bool:
        return any(name in self.folders for name in names)

    def __len__(self) -> int:
        return len(self.files) + len(self.folders)


@dataclass(frozen=True)
class ScanOutcome:
    """The shared listing plus what went wrong producing it, if anything."""
    listing: DirListing
    elapsed_ms: float = 0.0
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def list_directory(path: Path) -> DirListing:
    """List a directory. Raises OSError if it cannot be read."""
    files: list[str] = []
    folders: list[str] = []
    with os.scandir(path) as entries:
        for entry in entries:
            try:
                is_dir = entry.is_dir()
            except OSError:
                is_dir = False
            (folders if is_dir else files).append(entry.name)
    return DirListing.from_names(path, files, folders)


def scan_directory(
    path: Path,
    timeout_ms: int,
    lister: Callable[[Path], DirListing] = list_directory,
) -> ScanOutcome:
    """Produce the shared directory listing within a time budget.

    Args:
        path: Directory to list.
        timeout_ms: Scan budget; a slower scan yields an empty listing.
        lister: Function performing the actual listing.

    Returns:
        A ScanOutcome. Never raises.
    """
    started = time.perf_counter()
    outcome = run_bounded({"scan": (lambda: lister(path), timeout_ms)})["scan"]
    elapsed_ms = (time.perf_counter() - started) * 1000

    if outcome.timed_out:
        logger.warning(f"Scanning {path} exceeded scan_timeout ({timeout_ms}ms)")
        return ScanOutcome(DirListing.empty(path), elapsed_ms, f"timed out after {timeout_ms}ms")
    if outcome.error is not None:
        logger.warning(f"Failed to scan {path}: {outcome.error}")
        return ScanOutcome(DirListing.empty(path), elapsed_ms, str(outcome.error))
    return ScanOutcome(outcome.value, elapsed_ms)


def _when_check(context: Context, command: str, timeout_ms: int) -> Callable[[], bool]:
    def check() -> bool:
        result = context.run_shell(command, timeout_ms=timeout_ms)
        return result.success
    return check


def detect(
    modules: Sequence[ModuleDescriptor],
    listing: DirListing,
    context: Context,
    config: PromptConfig,
) -> list[ModuleDescriptor]:
    """Select the active modules.

    Disabled modules are skipped. A module is active if it is always on, or
    its filesystem predicate matches ``listing``, or its ``when`` command
    succeeds. ``when`` commands of different modules run concurrently.

    Args:
        modules: Candidate modules, in registry order.
        listing: The shared directory listing.
        context: The context snapshot (used for ``when`` commands).
        config: Supplies overrides, disabled flags and the command timeout.

    Returns:
        Active modules in the order given.
    """
    active: set[str] = set()
    when_checks = {}

    for module in modules:
        options = config.module(module.name)
        if options.disabled:
            continue

        detection = module.detection_for(options)
        if detection.always_on or (detection.uses_listing and detection.matches(listing)):
            active.add(module.name)
        elif detection.when is not None:
            timeout_ms = config.command_timeout
            when_checks[module.name] = (
                _when_check(context, detection.when, timeout_ms),
                timeout_ms + _WHEN_JOIN_MARGIN_MS,
            )

    if when_checks:
        for name, outcome in run_bounded(when_checks).items():
            if outcome.ok and outcome.value:
                active.add(name)
            elif not outcome.ok:
                logger.debug(f"'when' check of module '{name}' did not complete")

    return [module for module in modules if module.name in active]
