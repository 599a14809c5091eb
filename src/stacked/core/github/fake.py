"""Fake GitHub operations for testing.

FakeGitHub is an in-memory implementation that accepts pre-configured state
in its constructor. Construct instances directly with keyword arguments.
"""

from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path

from stacked.core.errors import ProviderError
from stacked.core.github.abc import GitHub
from stacked.core.github.parsing import select_preferred_pr
from stacked.core.github.types import MergeStatus, PullRequestInfo


class FakeGitHub(GitHub):
    """In-memory fake implementation of GitHub operations.

    This class has NO public setup methods. All state is provided via constructor
    using keyword arguments with sensible defaults (empty lists).
    """

    def __init__(
        self,
        *,
        pull_requests: list[PullRequestInfo] | None = None,
        lookup_error: str | None = None,
        mutation_error: str | None = None,
        repo_slug: str = "acme/repo",
        list_limit: int | None = None,
    ) -> None:
        """Create FakeGitHub with pre-configured state.

        Args:
            pull_requests: All pull requests known to the provider
            lookup_error: When set, read operations raise ProviderError
            mutation_error: When set, create/edit/close raise ProviderError
            repo_slug: owner/name used for pull requests created by the fake
            list_limit: When set, batch_list only sees this many of the newest PRs
        """
        self._pull_requests = list(pull_requests or [])
        self._lookup_error = lookup_error
        self._mutation_error = mutation_error
        self._repo_slug = repo_slug
        self._list_limit = list_limit

        self._batch_list_calls: list[list[str]] = []
        self._find_calls: list[tuple[str, str | None]] = []
        self._get_calls: list[int] = []
        self._created: list[PullRequestInfo] = []
        self._edited_bodies: list[tuple[int, str]] = []
        self._closed: list[tuple[int, bool]] = []

    @property
    def batch_list_calls(self) -> list[list[str]]:
        """Read-only access to tracked batch_list() calls for test assertions."""
        return self._batch_list_calls

    @property
    def find_calls(self) -> list[tuple[str, str | None]]:
        return self._find_calls

    @property
    def get_calls(self) -> list[int]:
        """PR numbers passed to get_pull_request()."""
        return self._get_calls

    @property
    def created(self) -> list[PullRequestInfo]:
        return self._created

    @property
    def edited_bodies(self) -> list[tuple[int, str]]:
        """(number, body) for each edit_body() call."""
        return self._edited_bodies

    @property
    def closed(self) -> list[tuple[int, bool]]:
        """(number, delete_branch) for each close() call."""
        return self._closed

    def _check_lookup(self) -> None:
        if self._lookup_error is not None:
            raise ProviderError("Failed to query GitHub", detail=self._lookup_error)

    def _check_mutation(self) -> None:
        if self._mutation_error is not None:
            raise ProviderError("Failed to update GitHub", detail=self._mutation_error)

    def find_pull_request(
        self, repo_root: Path, head: str, base: str | None = None
    ) -> PullRequestInfo | None:
        self._find_calls.append((head, base))
        self._check_lookup()
        prs = [
            pr
            for pr in self._pull_requests
            if pr.head_ref == head and (base is None or pr.base_ref == base)
        ]
        return select_preferred_pr(prs)

    def batch_list(
        self, repo_root: Path, branches: Sequence[str]
    ) -> dict[str, PullRequestInfo]:
        self._batch_list_calls.append(list(branches))
        self._check_lookup()
        listed = sorted(self._pull_requests, key=lambda pr: pr.number, reverse=True)
        if self._list_limit is not None:
            listed = listed[: self._list_limit]
        result: dict[str, PullRequestInfo] = {}
        for branch in branches:
            preferred = select_preferred_pr([pr for pr in listed if pr.head_ref == branch])
            if preferred is not None:
                result[branch] = preferred
        return result

    def get_pull_request(self, repo_root: Path, number: int) -> PullRequestInfo | None:
        self._get_calls.append(number)
        self._check_lookup()
        for pr in self._pull_requests:
            if pr.number == number:
                return pr
        return None

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
        self._check_mutation()
        number = max((pr.number for pr in self._pull_requests), default=0) + 1
        pr = PullRequestInfo(
            number=number,
            state="OPEN",
            url=f"https://github.com/{self._repo_slug}/pull/{number}",
            head_ref=head,
            base_ref=base,
            head_repo=self._repo_slug,
            base_repo=self._repo_slug,
            body=body,
            title=title,
            is_draft=draft,
        )
        self._pull_requests.append(pr)
        self._created.append(pr)
        return pr

    def edit_body(self, repo_root: Path, number: int, body: str) -> None:
        self._check_mutation()
        self._pull_requests = [
            replace(pr, body=body) if pr.number == number else pr for pr in self._pull_requests
        ]
        self._edited_bodies.append((number, body))

    def close(self, repo_root: Path, number: int, *, delete_branch: bool) -> None:
        self._check_mutation()
        self._pull_requests = [
            replace(pr, state="CLOSED") if pr.number == number else pr
            for pr in self._pull_requests
        ]
        self._closed.append((number, delete_branch))

    def merge_status(self, repo_root: Path, number: int) -> MergeStatus:
        self._check_lookup()
        for pr in self._pull_requests:
            if pr.number == number:
                if pr.state == "MERGED":
                    return MergeStatus("merged", pr.merge_commit)
                if pr.state == "CLOSED":
                    return MergeStatus("closed")
                return MergeStatus("open")
        raise ProviderError(f"Pull request #{number} not found")
