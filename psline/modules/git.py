"""
Git modules: branch, commit, in-progress operation and working tree status.

Each probe discovers the repository on its own; probes never share state.
"""
from typing import Optional

from ..config import ModuleOptions
from ..context import Context
from ..git import GitState, Repository
from .base import Detection, ModuleDescriptor, ModuleResult

STATE_LABELS = {
    GitState.REBASE: ("rebase", "REBASING"),
    GitState.MERGE: ("merge", "MERGING"),
    GitState.REVERT: ("revert", "REVERTING"),
    GitState.CHERRY_PICK: ("cherry_pick", "CHERRY-PICKING"),
    GitState.BISECT: ("bisect", "BISECTING"),
    GitState.AM: ("am", "AM"),
    GitState.AM_OR_REBASE: ("am_or_rebase", "AM/REBASE"),
}

STATUS_SYMBOLS = (
    ("conflicted", "="),
    ("deleted", "✘"),
    ("renamed", "»"),
    ("modified", "!"),
    ("staged", "+"),
    ("untracked", "?"),
)


def _repository(context: Context) -> Optional[Repository]:
    return Repository.discover(context.cwd)


def git_branch(context: Context, options: ModuleOptions) -> Optional[ModuleResult]:
    repo = _repository(context)
    if repo is None:
        return None

    branch = repo.branch()
    if branch == "HEAD" and options.get("only_attached", False):
        return None

    truncation_length = int(options.get("truncation_length", 0) or 0)
    if 0 < truncation_length < len(branch):
        branch = branch[:truncation_length] + options.get("truncation_symbol", "…")

    return ModuleResult.of(branch=branch)


def git_commit(context: Context, options: ModuleOptions) -> Optional[ModuleResult]:
    repo = _repository(context)
    if repo is None:
        return None
    if options.get("only_detached", True) and not repo.is_detached():
        return None

    commit_hash = repo.commit_hash(context)
    if commit_hash is None:
        return None

    tag = None
    if not options.get("tag_disabled", True):
        tag_name = repo.commit_tag(context)
        if tag_name:
            tag = f"{options.get('tag_symbol', ' 🏷  ')}{tag_name}"

    length = int(options.get("commit_hash_length", 7))
    return ModuleResult.of(hash=commit_hash[:length], tag=tag)


def git_state(context: Context, options: ModuleOptions) -> Optional[ModuleResult]:
    repo = _repository(context)
    if repo is None:
        return None

    repo_state = repo.state()
    if repo_state.state is GitState.CLEAN:
        return None

    option_key, default_label = STATE_LABELS[repo_state.state]
    return ModuleResult.of(
        state=options.get(option_key, default_label),
        progress_current=str(repo_state.current) if repo_state.current is not None else None,
        progress_total=str(repo_state.total) if repo_state.total is not None else None,
    )


def git_status(context: Context, options: ModuleOptions) -> Optional[ModuleResult]:
    repo = _repository(context)
    if repo is None:
        return None

    status = repo.status(context)
    if status is None:
        return None

    counts = {
        "conflicted": status.conflicted,
        "deleted": status.deleted,
        "renamed": status.renamed,
        "modified": status.modified,
        "staged": status.staged,
        "untracked": status.untracked,
    }
    variables = {}
    all_status = []
    for name, default_symbol in STATUS_SYMBOLS:
        if counts[name]:
            symbol = options.get(name, default_symbol)
            variables[name] = symbol
            all_status.append(symbol)
        else:
            variables[name] = None

    if status.diverged:
        ahead_behind = options.get("diverged", "⇕")
    elif status.ahead:
        ahead_behind = options.get("ahead", "⇡")
    elif status.behind:
        ahead_behind = options.get("behind", "⇣")
    else:
        ahead_behind = None

    variables["ahead_behind"] = ahead_behind
    variables["all_status"] = "".join(all_status) or None
    return ModuleResult.of(**variables)


GIT_BRANCH = ModuleDescriptor(
    name="git_branch",
    description="The active branch of the repo in your current directory",
    probe=git_branch,
    detection=Detection(always_on=True),
    format="on [$symbol$branch]($style) ",
    style="bold purple",
    symbol=" ",
)

GIT_COMMIT = ModuleDescriptor(
    name="git_commit",
    description="The active commit (and tag if any) of the repo in your current directory",
    probe=git_commit,
    detection=Detection(always_on=True),
    format="[\\($hash$tag\\)]($style) ",
    style="bold green",
)

GIT_STATE = ModuleDescriptor(
    name="git_state",
    description="The current git operation, and its progress",
    probe=git_state,
    detection=Detection(always_on=True),
    format="\\([$state( $progress_current/$progress_total)]($style)\\) ",
    style="bold yellow",
)

GIT_STATUS = ModuleDescriptor(
    name="git_status",
    description="Symbol representing the state of the repo",
    probe=git_status,
    detection=Detection(always_on=True),
    format="([\\[$all_status$ahead_behind\\]]($style) )",
    style="bold red",
)

MODULES = (GIT_BRANCH, GIT_COMMIT, GIT_STATE, GIT_STATUS)
