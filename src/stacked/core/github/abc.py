"""Abstract interface for the code-hosting provider."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from stacked.core.github.types import MergeStatus, PullRequestInfo


class GitHub(ABC):
    """Abstract interface for GitHub operations.

    All implementations (real and fake) must implement this interface.
    Every method raises ProviderError on failure; callers decide whether a
    failure is a warning (lookups) or fatal (mutations).
    """

    @abstractmethod
    def find_pull_request(
        self, repo_root: Path, head: str, base: str | None = None
    ) -> PullRequestInfo | None:
        """Find the preferred pull request whose head is `head`.

        Args:
            repo_root: Repository root directory
            head: Head branch name
            base: Only consider pull requests targeting this base, when given

        Returns:
            The newest open pull request, else the newest of any state, else None
        """
        ...

    @abstractmethod
    def batch_list(
        self, repo_root: Path, branches: Sequence[str]
    ) -> dict[str, PullRequestInfo]:
        """Preferred pull request per head branch, in as few round trips as possible.

        Branches without any pull request are absent from the result. The listing
        may be windowed, so an old pull request can be absent too; use
        get_pull_request to resolve those by number.
        """
        ...

    @abstractmethod
    def get_pull_request(self, repo_root: Path, number: int) -> PullRequestInfo | None:
        """Pull request by number, or None when it does not exist."""
        ...

    @abstractmethod
    def create_pull_request(
        self,
        repo_root: Path,
        *,
        base: str,
        head: str,
        title: str,
        body: str,
        draft: bool,
    ) -> PullRequestInfo:
        """Open a pull request and return it."""
        ...

    @abstractmethod
    def edit_body(self, repo_root: Path, number: int, body: str) -> None:
        """Replace a pull request's body."""
        ...

    @abstractmethod
    def close(self, repo_root: Path, number: int, *, delete_branch: bool) -> None:
        """Close a pull request, optionally deleting its remote head branch."""
        ...

    @abstractmethod
    def merge_status(self, repo_root: Path, number: int) -> MergeStatus:
        """Current merge state of a pull request."""
        ...
