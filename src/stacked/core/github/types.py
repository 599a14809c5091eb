"""Type definitions for provider operations."""

from dataclasses import dataclass
from typing import Literal

from stacked.core.branch_graph import PrCache, PrState

MergeState = Literal["open", "merged", "closed"]


@dataclass(frozen=True)
class PullRequestInfo:
    """Information about a GitHub pull request."""

    number: int
    state: PrState
    url: str
    head_ref: str
    base_ref: str
    head_repo: str  # "owner/name" of the head repository
    base_repo: str  # "owner/name" of the base repository
    merge_commit: str | None = None  # Only set once merged
    head_commit: str | None = None  # Last head sha the provider saw
    body: str | None = None
    title: str | None = None
    is_draft: bool = False

    @property
    def is_open(self) -> bool:
        return self.state == "OPEN"

    def to_pr_cache(self) -> PrCache:
        """The fully populated cache bundle for this pull request."""
        return PrCache(
            number=self.number,
            url=self.url,
            state=self.state,
            head_repo=self.head_repo,
            base_repo=self.base_repo,
            merge_commit=self.merge_commit if self.state == "MERGED" else None,
        )


@dataclass(frozen=True)
class MergeStatus:
    """Merge state of a pull request; merge_commit is set only when merged."""

    state: MergeState
    merge_commit: str | None = None
