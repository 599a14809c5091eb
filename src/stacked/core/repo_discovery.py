"""Repository discovery functionality.

Finds the repository root and the git common directory (where the stack
database lives) without requiring a full StackContext.
"""

from dataclasses import dataclass
from pathlib import Path

from stacked.core.git.abc import Git


@dataclass(frozen=True)
class RepoContext:
    """A git repository the stack operates on."""

    root: Path
    git_common_dir: Path  # shared by all worktrees; holds stack.db


@dataclass(frozen=True)
class NoRepoSentinel:
    """Sentinel value indicating execution outside a git repository.

    Commands that require a repository check for this sentinel and fail fast.
    """

    message: str = "Not inside a git repository"


def discover_repo_or_sentinel(cwd: Path, git: Git) -> RepoContext | NoRepoSentinel:
    """Resolve the repository containing cwd.

    Linked worktrees share the main repository's common directory, so every
    worktree of a repository sees the same stack.
    """
    if not cwd.exists():
        return NoRepoSentinel(message=f"Start path '{cwd}' does not exist")

    git_common_dir = git.get_git_common_dir(cwd)
    root = git.get_repository_root(cwd)
    if git_common_dir is None or root is None:
        return NoRepoSentinel()

    return RepoContext(root=root, git_common_dir=git_common_dir)
