"""Fake Git operations for testing.

FakeGit is an in-memory implementation that accepts pre-configured state
in its constructor. Construct instances directly with keyword arguments.

History is modelled as a parent map (commit -> parent commit). Rewrites create
new commits named after the originals with a trailing prime, so
`replay("b", old_base="a1", new_base="m")` turns b's own commit `b1` into `b1'`
sitting on `m`.
"""

from pathlib import Path

from stacked.core.errors import VersionControlError
from stacked.core.git.abc import Git, RewriteResult


def _conflict_detail(branch: str) -> str:
    return f"CONFLICT (content): Merge conflict in {branch}.txt"


class FakeGit(Git):
    """In-memory fake implementation of Git operations.

    This class has NO public setup methods. All state is provided via constructor
    using keyword arguments with sensible defaults (empty dicts).
    """

    def __init__(
        self,
        *,
        commits: dict[str, str | None] | None = None,
        branches: dict[str, str] | None = None,
        current_branch: str | None = None,
        trunk_branch: str = "main",
        git_common_dir: Path | None = None,
        repository_root: Path | None = None,
        dirty: bool = False,
        replay_supported: bool = True,
        replay_failures: set[str] | None = None,
        conflicts: set[str] | None = None,
        fetch_error: str | None = None,
        checkout_failures: set[str] | None = None,
        stash_pop_fails: bool = False,
        branch_remotes: dict[str, str] | None = None,
        remote_urls: dict[str, str] | None = None,
    ) -> None:
        """Create FakeGit with pre-configured state.

        Args:
            commits: Mapping of commit SHA -> parent SHA (None for the root)
            branches: Mapping of local branch name -> head SHA
            current_branch: Branch checked out in every cwd (None for detached)
            trunk_branch: Value returned by get_trunk_branch
            git_common_dir: Value returned by get_git_common_dir
            repository_root: Value returned by get_repository_root
            dirty: Whether the worktree starts with uncommitted changes
            replay_supported: False to make replay report unsupported
            replay_failures: Branches whose replay fails without conflict
            conflicts: Branches whose rewrite (replay or rebase) conflicts
            fetch_error: When set, fetch raises VersionControlError with it
            checkout_failures: Branches that cannot be checked out
            stash_pop_fails: Whether stash_pop raises
            branch_remotes: Mapping of branch -> configured remote
            remote_urls: Mapping of remote name -> URL
        """
        self._commits = dict(commits or {})
        self._branches = dict(branches or {})
        self._current_branch = current_branch
        self._trunk_branch = trunk_branch
        self._git_common_dir = git_common_dir
        self._repository_root = repository_root
        self._dirty = dirty
        self._replay_supported = replay_supported
        self._replay_failures = replay_failures or set()
        self._conflicts = conflicts or set()
        self._fetch_error = fetch_error
        self._checkout_failures = checkout_failures or set()
        self._stash_pop_fails = stash_pop_fails
        self._branch_remotes = branch_remotes or {}
        self._remote_urls = remote_urls or {}

        self._stash: list[str] = []
        self._fetched_remotes: list[str] = []
        self._replayed: list[tuple[str, str, str]] = []
        self._rebased: list[tuple[str, str, str]] = []
        self._advanced: list[tuple[str, str]] = []
        self._checked_out: list[str] = []
        self._created_branches: list[tuple[str, str]] = []
        self._deleted_branches: list[str] = []
        self._pushed_branches: list[tuple[str, str]] = []

    # Read-only access for test assertions

    @property
    def branch_heads(self) -> dict[str, str]:
        return dict(self._branches)

    @property
    def current_branch(self) -> str | None:
        return self._current_branch

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def stash_entries(self) -> list[str]:
        return list(self._stash)

    @property
    def fetched_remotes(self) -> list[str]:
        return self._fetched_remotes

    @property
    def replayed(self) -> list[tuple[str, str, str]]:
        """(branch, old_base, new_base) for each successful replay."""
        return self._replayed

    @property
    def rebased(self) -> list[tuple[str, str, str]]:
        """(branch, old_base, new_base) for each successful onto-rebase."""
        return self._rebased

    @property
    def advanced(self) -> list[tuple[str, str]]:
        return self._advanced

    @property
    def checked_out(self) -> list[str]:
        return self._checked_out

    @property
    def created_branches(self) -> list[tuple[str, str]]:
        return self._created_branches

    @property
    def deleted_branches(self) -> list[str]:
        return self._deleted_branches

    @property
    def pushed_branches(self) -> list[tuple[str, str]]:
        """(remote, branch) for each push."""
        return self._pushed_branches

    # History helpers

    def _chain(self, sha: str) -> list[str]:
        chain: list[str] = []
        current: str | None = sha
        while current is not None and current not in chain:
            chain.append(current)
            current = self._commits.get(current)
        return chain

    def _resolve(self, ref: str) -> str | None:
        if ref.startswith("refs/heads/"):
            return self._branches.get(ref.removeprefix("refs/heads/"))
        if ref in self._branches:
            return self._branches[ref]
        if ref in self._commits:
            return ref
        return None

    def _require(self, ref: str) -> str:
        sha = self._resolve(ref)
        if sha is None:
            raise VersionControlError(f"unknown revision '{ref}'")
        return sha

    def _rewrite(self, branch: str, old_base: str, new_base: str) -> str:
        head = self._require(branch)
        base_chain = set(self._chain(self._require(old_base)))
        own = [sha for sha in self._chain(head) if sha not in base_chain]
        tip = self._require(new_base)
        for sha in reversed(own):
            rewritten = f"{sha}'"
            self._commits[rewritten] = tip
            tip = rewritten
        self._branches[branch] = tip
        return tip

    # Git interface

    def get_current_branch(self, cwd: Path) -> str | None:
        return self._current_branch

    def get_trunk_branch(self, repo_root: Path) -> str:
        return self._trunk_branch

    def get_git_common_dir(self, cwd: Path) -> Path | None:
        return self._git_common_dir

    def get_repository_root(self, cwd: Path) -> Path | None:
        return self._repository_root

    def list_local_branches(self, repo_root: Path) -> list[str]:
        return sorted(self._branches)

    def branch_exists(self, repo_root: Path, branch: str) -> bool:
        return branch in self._branches

    def get_branch_head(self, repo_root: Path, branch: str) -> str | None:
        return self._branches.get(branch)

    def resolve_commit(self, repo_root: Path, ref: str) -> str | None:
        return self._resolve(ref)

    def merge_base(self, repo_root: Path, ref_a: str, ref_b: str) -> str | None:
        sha_a = self._resolve(ref_a)
        sha_b = self._resolve(ref_b)
        if sha_a is None or sha_b is None:
            return None
        chain_a = set(self._chain(sha_a))
        for sha in self._chain(sha_b):
            if sha in chain_a:
                return sha
        return None

    def is_ancestor(self, repo_root: Path, ancestor: str, descendant: str) -> bool:
        sha_a = self._resolve(ancestor)
        sha_d = self._resolve(descendant)
        if sha_a is None or sha_d is None:
            return False
        return sha_a in self._chain(sha_d)

    def count_commits(self, repo_root: Path, base: str, head: str) -> int:
        base_chain = set(self._chain(self._require(base)))
        return len([sha for sha in self._chain(self._require(head)) if sha not in base_chain])

    def has_uncommitted_changes(self, cwd: Path) -> bool:
        return self._dirty

    def fetch(self, repo_root: Path, remote: str) -> None:
        if self._fetch_error is not None:
            raise VersionControlError(
                f"Failed to fetch from remote '{remote}'", detail=self._fetch_error
            )
        self._fetched_remotes.append(remote)

    def replay(
        self, repo_root: Path, branch: str, *, old_base: str, new_base: str
    ) -> RewriteResult:
        if not self._replay_supported:
            return RewriteResult("unsupported", detail="git: 'replay' is not a git command")
        if self._current_branch == branch:
            return RewriteResult("unsupported", detail=f"'{branch}' is checked out")
        if branch in self._replay_failures:
            return RewriteResult("failed", detail="fatal: something broke")
        if branch in self._conflicts:
            return RewriteResult("conflict", detail=_conflict_detail(branch))

        before = self._require(branch)
        after = self._rewrite(branch, old_base, new_base)
        self._replayed.append((branch, old_base, new_base))
        return RewriteResult("unchanged" if after == before else "applied", new_head=after)

    def rebase_onto(
        self, repo_root: Path, branch: str, *, old_base: str, new_base: str
    ) -> RewriteResult:
        # like `git rebase --onto new old branch`, the branch ends up checked out
        self._current_branch = branch
        if branch in self._conflicts:
            return RewriteResult("conflict", detail=_conflict_detail(branch))

        before = self._require(branch)
        after = self._rewrite(branch, old_base, new_base)
        self._rebased.append((branch, old_base, new_base))
        return RewriteResult("unchanged" if after == before else "applied", new_head=after)

    def advance_branch(self, repo_root: Path, branch: str, commit: str) -> None:
        self._branches[branch] = self._require(commit)
        self._advanced.append((branch, commit))

    def checkout_branch(self, cwd: Path, branch: str) -> None:
        if branch in self._checkout_failures or branch not in self._branches:
            raise VersionControlError(f"Failed to checkout branch '{branch}'")
        self._current_branch = branch
        self._checked_out.append(branch)

    def create_branch(self, cwd: Path, branch_name: str, start_point: str) -> None:
        if branch_name in self._branches:
            raise VersionControlError(f"a branch named '{branch_name}' already exists")
        self._branches[branch_name] = self._require(start_point)
        self._created_branches.append((branch_name, start_point))

    def delete_branch(self, cwd: Path, branch_name: str, *, force: bool) -> None:
        if branch_name not in self._branches:
            raise VersionControlError(f"branch '{branch_name}' not found")
        del self._branches[branch_name]
        self._deleted_branches.append(branch_name)

    def stash_push(self, cwd: Path, message: str) -> bool:
        if not self._dirty:
            return False
        self._stash.append(message)
        self._dirty = False
        return True

    def stash_pop(self, cwd: Path) -> None:
        if self._stash_pop_fails or not self._stash:
            raise VersionControlError("Failed to restore stashed changes", detail="CONFLICT")
        self._stash.pop()
        self._dirty = True

    def push_branch(self, repo_root: Path, remote: str, branch: str) -> None:
        self._pushed_branches.append((remote, branch))

    def get_remote_for_branch(self, repo_root: Path, branch: str) -> str | None:
        return self._branch_remotes.get(branch)

    def get_remote_url(self, repo_root: Path, remote: str) -> str | None:
        return self._remote_urls.get(remote)
