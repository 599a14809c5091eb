"""Version-control port.

This module defines the git operations the stack core drives. The core never
shells out itself; it only interprets the results of these calls.

Architecture:
- Git: Abstract base class defining the interface
- RealGit: Production implementation using subprocess
- FakeGit: In-memory implementation for tests
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

RewriteStatus = Literal["applied", "unchanged", "conflict", "unsupported", "failed"]


@dataclass(frozen=True)
class RewriteResult:
    """Outcome of a replay or onto-rebase.

    Attributes:
        status: applied/unchanged on success, conflict for a content conflict,
            unsupported/failed when the strategy could not run at all
        new_head: Branch tip after the rewrite, when it succeeded
        detail: Raw git output for debug display
    """

    status: RewriteStatus
    new_head: str | None = None
    detail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status in ("applied", "unchanged")


# ============================================================================
# Abstract Interface
# ============================================================================


class Git(ABC):
    """Abstract interface for git operations.

    All implementations (real and fake) must implement this interface.
    This interface contains ONLY runtime operations - no test setup methods.
    Hard failures raise VersionControlError.
    """

    @abstractmethod
    def get_current_branch(self, cwd: Path) -> str | None:
        """Get the currently checked-out branch, None when detached."""
        ...

    @abstractmethod
    def get_trunk_branch(self, repo_root: Path) -> str:
        """Detect the trunk branch from origin/HEAD, then main/master."""
        ...

    @abstractmethod
    def get_git_common_dir(self, cwd: Path) -> Path | None:
        """Get the common git directory, None outside a repository."""
        ...

    @abstractmethod
    def get_repository_root(self, cwd: Path) -> Path | None:
        """Get the top-level directory of the working tree."""
        ...

    @abstractmethod
    def list_local_branches(self, repo_root: Path) -> list[str]:
        """List all local branch names."""
        ...

    @abstractmethod
    def branch_exists(self, repo_root: Path, branch: str) -> bool:
        """Whether refs/heads/<branch> exists."""
        ...

    @abstractmethod
    def get_branch_head(self, repo_root: Path, branch: str) -> str | None:
        """Commit SHA at the tip of a local branch, None if missing."""
        ...

    @abstractmethod
    def resolve_commit(self, repo_root: Path, ref: str) -> str | None:
        """Resolve any ref or SHA to a commit SHA, None if unknown."""
        ...

    @abstractmethod
    def merge_base(self, repo_root: Path, ref_a: str, ref_b: str) -> str | None:
        """Best common ancestor of two refs, None if unrelated or unknown."""
        ...

    @abstractmethod
    def is_ancestor(self, repo_root: Path, ancestor: str, descendant: str) -> bool:
        """Whether ancestor is reachable from descendant (a commit is its own ancestor)."""
        ...

    @abstractmethod
    def count_commits(self, repo_root: Path, base: str, head: str) -> int:
        """Number of commits in base..head."""
        ...

    @abstractmethod
    def has_uncommitted_changes(self, cwd: Path) -> bool:
        """Whether the working tree has staged, unstaged or untracked changes."""
        ...

    @abstractmethod
    def fetch(self, repo_root: Path, remote: str) -> None:
        """Fetch all branches from a remote."""
        ...

    @abstractmethod
    def replay(
        self, repo_root: Path, branch: str, *, old_base: str, new_base: str
    ) -> RewriteResult:
        """Replay old_base..branch onto new_base and move the branch ref.

        Returns unsupported when this git has no replay command, failed for any
        other non-conflict error, so the caller can fall back to rebase_onto.
        """
        ...

    @abstractmethod
    def rebase_onto(
        self, repo_root: Path, branch: str, *, old_base: str, new_base: str
    ) -> RewriteResult:
        """Run `git rebase --onto new_base old_base branch`.

        A content conflict is returned as status=conflict; other failures raise.
        """
        ...

    @abstractmethod
    def advance_branch(self, repo_root: Path, branch: str, commit: str) -> None:
        """Move a branch ref forward to commit (fast-forward only)."""
        ...

    @abstractmethod
    def checkout_branch(self, cwd: Path, branch: str) -> None:
        """Checkout a branch."""
        ...

    @abstractmethod
    def create_branch(self, cwd: Path, branch_name: str, start_point: str) -> None:
        """Create a new branch at start_point without checking it out."""
        ...

    @abstractmethod
    def delete_branch(self, cwd: Path, branch_name: str, *, force: bool) -> None:
        """Delete a local branch."""
        ...

    @abstractmethod
    def stash_push(self, cwd: Path, message: str) -> bool:
        """Stash tracked and untracked changes. Returns False if nothing was stashed."""
        ...

    @abstractmethod
    def stash_pop(self, cwd: Path) -> None:
        """Restore the most recent stash entry."""
        ...

    @abstractmethod
    def push_branch(self, repo_root: Path, remote: str, branch: str) -> None:
        """Push a branch with --force-with-lease and set upstream."""
        ...

    @abstractmethod
    def get_remote_for_branch(self, repo_root: Path, branch: str) -> str | None:
        """Configured branch.<name>.remote, None if unset."""
        ...

    @abstractmethod
    def get_remote_url(self, repo_root: Path, remote: str) -> str | None:
        """URL of a remote, None if the remote does not exist."""
        ...
