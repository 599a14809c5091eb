"""Production Git implementation using subprocess.

This module provides the real Git implementation that executes actual git
commands via subprocess.
"""

import logging
import subprocess
from pathlib import Path

from stacked.core.errors import VersionControlError
from stacked.core.git.abc import Git, RewriteResult
from stacked.core.subprocess import run_subprocess_with_context

logger = logging.getLogger(__name__)

# ============================================================================
# Production Implementation
# ============================================================================


def _git(cwd: Path, *args: str) -> subprocess.CompletedProcess[str]:
    """Run a git command that is allowed to fail; callers inspect returncode."""
    logger.debug("Running git %s (cwd=%s)", " ".join(args), cwd)
    return subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        encoding="utf-8",
        check=False,
    )


def _combined_output(result: subprocess.CompletedProcess[str]) -> str:
    return "\n".join(part.strip() for part in (result.stdout, result.stderr) if part.strip())


def _is_conflict_output(output: str) -> bool:
    return "CONFLICT" in output or "could not apply" in output


class RealGit(Git):
    """Production implementation using subprocess.

    All git operations execute actual git commands via subprocess.
    """

    def get_current_branch(self, cwd: Path) -> str | None:
        """Get the currently checked-out branch."""
        result = _git(cwd, "rev-parse", "--abbrev-ref", "HEAD")
        if result.returncode != 0:
            return None

        branch = result.stdout.strip()
        if branch == "HEAD":
            return None

        return branch

    def get_trunk_branch(self, repo_root: Path) -> str:
        """Get the trunk branch name for the repository.

        Detects trunk by checking git's remote HEAD reference. Falls back to
        checking for existence of common trunk branch names if detection fails.
        """
        result = _git(repo_root, "symbolic-ref", "refs/remotes/origin/HEAD")
        if result.returncode == 0:
            remote_head = result.stdout.strip()
            if remote_head.startswith("refs/remotes/origin/"):
                return remote_head.replace("refs/remotes/origin/", "")

        for candidate in ["main", "master"]:
            if self.branch_exists(repo_root, candidate):
                return candidate

        return "main"

    def get_git_common_dir(self, cwd: Path) -> Path | None:
        """Get the common git directory."""
        result = _git(cwd, "rev-parse", "--git-common-dir")
        if result.returncode != 0:
            return None

        git_dir = Path(result.stdout.strip())
        if not git_dir.is_absolute():
            git_dir = cwd / git_dir
        return git_dir.resolve()

    def get_repository_root(self, cwd: Path) -> Path | None:
        result = _git(cwd, "rev-parse", "--show-toplevel")
        if result.returncode != 0:
            return None
        return Path(result.stdout.strip())

    def list_local_branches(self, repo_root: Path) -> list[str]:
        """List all local branch names in the repository."""
        result = run_subprocess_with_context(
            ["git", "for-each-ref", "--format=%(refname:short)", "refs/heads/"],
            operation_context="list local branches",
            cwd=repo_root,
        )
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def branch_exists(self, repo_root: Path, branch: str) -> bool:
        result = _git(repo_root, "show-ref", "--verify", "--quiet", f"refs/heads/{branch}")
        return result.returncode == 0

    def get_branch_head(self, repo_root: Path, branch: str) -> str | None:
        """Get the commit SHA at the head of a branch."""
        return self.resolve_commit(repo_root, f"refs/heads/{branch}")

    def resolve_commit(self, repo_root: Path, ref: str) -> str | None:
        result = _git(repo_root, "rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}")
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def merge_base(self, repo_root: Path, ref_a: str, ref_b: str) -> str | None:
        result = _git(repo_root, "merge-base", ref_a, ref_b)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def is_ancestor(self, repo_root: Path, ancestor: str, descendant: str) -> bool:
        result = _git(repo_root, "merge-base", "--is-ancestor", ancestor, descendant)
        if result.returncode not in (0, 1):
            logger.debug(
                "Ancestry check %s -> %s failed: %s", ancestor, descendant, result.stderr.strip()
            )
        return result.returncode == 0

    def count_commits(self, repo_root: Path, base: str, head: str) -> int:
        result = run_subprocess_with_context(
            ["git", "rev-list", "--count", f"{base}..{head}"],
            operation_context=f"count commits in {base}..{head}",
            cwd=repo_root,
        )
        return int(result.stdout.strip())

    def has_uncommitted_changes(self, cwd: Path) -> bool:
        """Check if a worktree has uncommitted changes."""
        result = run_subprocess_with_context(
            ["git", "status", "--porcelain"],
            operation_context="check for uncommitted changes",
            cwd=cwd,
        )
        return bool(result.stdout.strip())

    def fetch(self, repo_root: Path, remote: str) -> None:
        run_subprocess_with_context(
            ["git", "fetch", "--prune", remote],
            operation_context=f"fetch from remote '{remote}'",
            cwd=repo_root,
        )

    def replay(
        self, repo_root: Path, branch: str, *, old_base: str, new_base: str
    ) -> RewriteResult:
        # replay only moves refs; a checked-out branch would leave the worktree stale
        if self.get_current_branch(repo_root) == branch:
            return RewriteResult("unsupported", detail=f"'{branch}' is checked out")

        before = self.get_branch_head(repo_root, branch)
        result = _git(repo_root, "replay", "--onto", new_base, f"{old_base}..{branch}")
        output = _combined_output(result)
        if result.returncode != 0:
            if "is not a git command" in output:
                return RewriteResult("unsupported", detail=output)
            if result.returncode == 1 and _is_conflict_output(output):
                return RewriteResult("conflict", detail=output)
            return RewriteResult("failed", detail=output)

        if not result.stdout.strip():
            return RewriteResult("unchanged", new_head=before, detail=output)

        apply = subprocess.run(
            ["git", "update-ref", "--stdin"],
            cwd=repo_root,
            input=result.stdout,
            capture_output=True,
            text=True,
            encoding="utf-8",
            check=False,
        )
        if apply.returncode != 0:
            return RewriteResult("failed", detail=_combined_output(apply))

        after = self.get_branch_head(repo_root, branch)
        status = "unchanged" if after == before else "applied"
        return RewriteResult(status, new_head=after, detail=output)

    def rebase_onto(
        self, repo_root: Path, branch: str, *, old_base: str, new_base: str
    ) -> RewriteResult:
        before = self.get_branch_head(repo_root, branch)
        result = _git(repo_root, "rebase", "--onto", new_base, old_base, branch)
        output = _combined_output(result)
        if result.returncode != 0:
            if _is_conflict_output(output):
                return RewriteResult("conflict", detail=output)
            raise VersionControlError(
                f"Failed to rebase '{branch}' onto {new_base}",
                detail=f"Command: git rebase --onto {new_base} {old_base} {branch}\n{output}",
            )

        after = self.get_branch_head(repo_root, branch)
        status = "unchanged" if after == before else "applied"
        return RewriteResult(status, new_head=after, detail=output)

    def advance_branch(self, repo_root: Path, branch: str, commit: str) -> None:
        if self.get_current_branch(repo_root) == branch:
            run_subprocess_with_context(
                ["git", "merge", "--ff-only", commit],
                operation_context=f"fast-forward '{branch}' to {commit}",
                cwd=repo_root,
            )
            return

        run_subprocess_with_context(
            ["git", "update-ref", f"refs/heads/{branch}", commit],
            operation_context=f"advance '{branch}' to {commit}",
            cwd=repo_root,
        )

    def checkout_branch(self, cwd: Path, branch: str) -> None:
        """Checkout a branch in the given directory."""
        run_subprocess_with_context(
            ["git", "checkout", branch],
            operation_context=f"checkout branch '{branch}'",
            cwd=cwd,
        )

    def create_branch(self, cwd: Path, branch_name: str, start_point: str) -> None:
        """Create a new branch without checking it out."""
        run_subprocess_with_context(
            ["git", "branch", branch_name, start_point],
            operation_context=f"create branch '{branch_name}' from '{start_point}'",
            cwd=cwd,
        )

    def delete_branch(self, cwd: Path, branch_name: str, *, force: bool) -> None:
        """Delete a local branch."""
        flag = "-D" if force else "-d"
        run_subprocess_with_context(
            ["git", "branch", flag, branch_name],
            operation_context=f"delete branch '{branch_name}'",
            cwd=cwd,
        )

    def stash_push(self, cwd: Path, message: str) -> bool:
        result = run_subprocess_with_context(
            ["git", "stash", "push", "--include-untracked", "-m", message],
            operation_context="stash local changes",
            cwd=cwd,
        )
        return "No local changes to save" not in result.stdout

    def stash_pop(self, cwd: Path) -> None:
        run_subprocess_with_context(
            ["git", "stash", "pop"],
            operation_context="restore stashed changes",
            cwd=cwd,
        )

    def push_branch(self, repo_root: Path, remote: str, branch: str) -> None:
        run_subprocess_with_context(
            ["git", "push", "--force-with-lease", "--set-upstream", remote, branch],
            operation_context=f"push '{branch}' to '{remote}'",
            cwd=repo_root,
        )

    def get_remote_for_branch(self, repo_root: Path, branch: str) -> str | None:
        result = _git(repo_root, "config", "--get", f"branch.{branch}.remote")
        if result.returncode != 0:
            return None
        remote = result.stdout.strip()
        return remote or None

    def get_remote_url(self, repo_root: Path, remote: str) -> str | None:
        result = _git(repo_root, "remote", "get-url", remote)
        if result.returncode != 0:
            return None
        return result.stdout.strip()
