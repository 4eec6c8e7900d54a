"""
Git repository discovery and inspection.

Branch and in-progress operation are read straight from the ``.git``
directory; commit hash, tags and working tree status come from the ``git``
executable through the context's command runner.
"""
import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from .utils import read_text

if TYPE_CHECKING:
    from .context import Context

logger = logging.getLogger(__name__)

_BRANCH_HEADER = re.compile(
    r"^## (?P<branch>.+?)(?:\.\.\.(?P<upstream>\S+))?(?: \[(?P<counts>[^\]]*)\])?$"
)
_CONFLICT_CODES = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}


class GitState(Enum):
    """Operation in progress in a repository."""
    CLEAN = "clean"
    MERGE = "merge"
    REVERT = "revert"
    CHERRY_PICK = "cherry_pick"
    BISECT = "bisect"
    AM = "am"
    AM_OR_REBASE = "am_or_rebase"
    REBASE = "rebase"


@dataclass(frozen=True)
class RepoState:
    state: GitState
    current: Optional[int] = None
    total: Optional[int] = None


@dataclass
class GitStatus:
    """Counts parsed from ``git status --porcelain --branch``."""
    untracked: int = 0
    added: int = 0
    modified: int = 0
    renamed: int = 0
    deleted: int = 0
    staged: int = 0
    conflicted: int = 0
    ahead: int = 0
    behind: int = 0

    @property
    def diverged(self) -> bool:
        return self.ahead > 0 and self.behind > 0


@dataclass(frozen=True)
class Repository:
    """A discovered git repository."""
    git_dir: Path
    root_dir: Path

    @classmethod
    def discover(cls, path: Path) -> Optional["Repository"]:
        """Search ``path`` and its parents for a ``.git`` directory or file."""
        for candidate in (path, *path.parents):
            repository = cls.scan(candidate)
            if repository is not None:
                logger.debug(f"Git repository found at {candidate}")
                return repository
        return None

    @classmethod
    def scan(cls, path: Path) -> Optional["Repository"]:
        """Check whether ``path`` is the root of a work tree."""
        dot_git = path / ".git"
        if dot_git.is_dir():
            return cls(git_dir=dot_git, root_dir=path)
        if dot_git.is_file():
            # Worktrees and submodules: ".git" holds "gitdir: <path>"
            contents = read_text(dot_git) or ""
            if contents.startswith("gitdir:"):
                git_dir = Path(contents[len("gitdir:"):].strip())
                if not git_dir.is_absolute():
                    git_dir = (path / git_dir).resolve()
                return cls(git_dir=git_dir, root_dir=path)
        return None

    def head(self) -> Optional[str]:
        contents = read_text(self.git_dir / "HEAD")
        return contents.strip() if contents else None

    def branch(self) -> str:
        """Current branch name, or ``HEAD`` when detached."""
        head = self.head()
        if head and head.startswith("ref: refs/heads/"):
            return head[len("ref: refs/heads/"):]
        return "HEAD"

    def is_detached(self) -> bool:
        head = self.head()
        return not (head and head.startswith("ref:"))

    def state(self) -> RepoState:
        """Detect an in-progress merge, rebase, bisect, ... operation."""
        git_dir = self.git_dir

        if (git_dir / "rebase-merge").is_dir():
            current = self._read_int("rebase-merge/msgnum")
            total = self._read_int("rebase-merge/end")
            if current is None or total is None:
                current, total = 1, 1
            return RepoState(GitState.REBASE, current, total)

        if (git_dir / "rebase-apply").is_dir():
            current = self._read_int("rebase-apply/next")
            total = self._read_int("rebase-apply/last")
            if (git_dir / "rebase-apply" / "rebasing").exists():
                return RepoState(GitState.REBASE, current, total)
            if (git_dir / "rebase-apply" / "applying").exists():
                return RepoState(GitState.AM, current, total)
            return RepoState(GitState.AM_OR_REBASE, current, total)

        if (git_dir / "MERGE_HEAD").exists():
            return RepoState(GitState.MERGE)
        if (git_dir / "CHERRY_PICK_HEAD").exists():
            return RepoState(GitState.CHERRY_PICK)
        if (git_dir / "REVERT_HEAD").exists():
            return RepoState(GitState.REVERT)
        if (git_dir / "BISECT_LOG").exists():
            return RepoState(GitState.BISECT)

        return RepoState(GitState.CLEAN)

    def _read_int(self, relative: str) -> Optional[int]:
        contents = read_text(self.git_dir / relative)
        if contents is None:
            return None
        try:
            return int(contents.strip())
        except ValueError:
            return None

    def _git(self, context: "Context", *args: str, timeout_ms: Optional[int] = None) -> Optional[str]:
        if timeout_ms is None:
            timeout_ms = context.command_timeout_ms
        result = context.runner.exec_cmd(
            "git", "-C", str(self.root_dir), "--no-optional-locks", *args,
            timeout_ms=timeout_ms,
        )
        return result.stdout if result is not None else None

    def commit_hash(self, context: "Context", timeout_ms: Optional[int] = None) -> Optional[str]:
        """Full hash of HEAD, or None in an empty repository."""
        return self._git(context, "rev-parse", "HEAD", timeout_ms=timeout_ms) or None

    def commit_tag(self, context: "Context", timeout_ms: Optional[int] = None) -> Optional[str]:
        """Tag pointing exactly at HEAD, if any."""
        return self._git(
            context, "describe", "--tags", "--exact-match", "HEAD", timeout_ms=timeout_ms
        ) or None

    def status(self, context: "Context", timeout_ms: Optional[int] = None) -> Optional[GitStatus]:
        """Working tree status, or None if ``git status`` failed."""
        output = self._git(context, "status", "--porcelain", "--branch", timeout_ms=timeout_ms)
        if output is None:
            return None
        return parse_porcelain_output(output)


def parse_porcelain_output(porcelain: str) -> GitStatus:
    """Parse ``git status --porcelain --branch`` output.

    Example porcelain output::

        ## main...origin/main [ahead 1]
         M src/prompt.py
        A  src/formatter.py
        ?? README.md
    """
    status = GitStatus()

    for line in porcelain.splitlines():
        if line.startswith("## "):
            match = _BRANCH_HEADER.match(line)
            if match and match.group("counts"):
                for part in match.group("counts").split(","):
                    label, _, count = part.strip().partition(" ")
                    if label == "ahead" and count.isdigit():
                        status.ahead = int(count)
                    elif label == "behind" and count.isdigit():
                        status.behind = int(count)
            continue

        if len(line) < 2:
            continue
        index, worktree = line[0], line[1]

        if line[:2] == "??":
            status.untracked += 1
            continue
        if line[:2] in _CONFLICT_CODES:
            status.conflicted += 1
            continue

        if index in "MADRC":
            status.staged += 1
        if index == "A" or index == "C":
            status.added += 1
        if index == "R":
            status.renamed += 1
        if index == "D" or worktree == "D":
            status.deleted += 1
        if worktree == "M" or worktree == "T":
            status.modified += 1

    return status
