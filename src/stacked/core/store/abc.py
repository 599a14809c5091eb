"""Relationship store interface.

The store owns branch records; the BranchGraph is a derived view of them.
Implementations must make write_records atomic: all upserts and deletes land
in one transaction or none of them do.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, cast, get_args

from stacked.core.branch_graph import Branch, BranchGraph, PrCache, PrState
from stacked.core.errors import GraphInvariantError

SyncRunStatus = Literal["running", "success", "conflict", "failed"]


@dataclass(frozen=True)
class BranchRecord:
    """A persisted branch row exactly as stored, including invalid states.

    Unlike Branch, a record may have no parent or a partially filled PR cache;
    the integrity checker works on records so it can see such corruption.
    """

    name: str
    parent: str | None
    last_synced_commit: str | None = None
    pr_number: int | None = None
    pr_url: str | None = None
    pr_state: str | None = None
    pr_head_repo: str | None = None
    pr_base_repo: str | None = None
    pr_merge_commit: str | None = None

    @classmethod
    def from_branch(cls, branch: Branch) -> "BranchRecord":
        cache = branch.pr_cache
        if cache is None:
            return cls(
                name=branch.name,
                parent=branch.parent,
                last_synced_commit=branch.last_synced_commit,
            )
        return cls(
            name=branch.name,
            parent=branch.parent,
            last_synced_commit=branch.last_synced_commit,
            pr_number=cache.number,
            pr_url=cache.url,
            pr_state=cache.state,
            pr_head_repo=cache.head_repo,
            pr_base_repo=cache.base_repo,
            pr_merge_commit=cache.merge_commit,
        )

    def _core_pr_fields(self) -> tuple[Any, ...]:
        return (self.pr_number, self.pr_url, self.pr_state, self.pr_head_repo, self.pr_base_repo)

    @property
    def has_pr_cache(self) -> bool:
        return any(field is not None for field in self._core_pr_fields()) or (
            self.pr_merge_commit is not None
        )

    @property
    def has_partial_pr_cache(self) -> bool:
        """Some but not all cache fields are set, or the set fields disagree."""
        if not self.has_pr_cache:
            return False
        if any(field is None for field in self._core_pr_fields()):
            return True
        if self.pr_state not in get_args(PrState):
            return True
        return self.pr_merge_commit is not None and self.pr_state != "MERGED"

    def pr_cache(self) -> PrCache | None:
        """The cache bundle, or None when absent or partial."""
        if not self.has_pr_cache or self.has_partial_pr_cache:
            return None
        return PrCache(
            number=cast(int, self.pr_number),
            url=cast(str, self.pr_url),
            state=cast(PrState, self.pr_state),
            head_repo=cast(str, self.pr_head_repo),
            base_repo=cast(str, self.pr_base_repo),
            merge_commit=self.pr_merge_commit,
        )

    def without_pr_cache(self) -> "BranchRecord":
        return BranchRecord(
            name=self.name, parent=self.parent, last_synced_commit=self.last_synced_commit
        )


@dataclass(frozen=True)
class SyncRun:
    id: int
    status: SyncRunStatus
    started_at: datetime
    finished_at: datetime | None
    summary: dict[str, Any] | None


class RelationshipStore(ABC):
    """Transactional persistence of branch records and parent edges."""

    @abstractmethod
    def get_base_branch(self) -> str | None:
        """Base branch recorded in repo metadata, if any."""
        ...

    @abstractmethod
    def set_base_branch(self, base_branch: str) -> None:
        """Record the base branch in repo metadata."""
        ...

    @abstractmethod
    def list_records(self) -> list[BranchRecord]:
        """All branch rows, sorted by name, without validation."""
        ...

    @abstractmethod
    def write_records(
        self, *, upserts: Sequence[BranchRecord], deletes: Sequence[str]
    ) -> None:
        """Insert or update upserts and delete rows named in deletes, atomically."""
        ...

    @abstractmethod
    def start_sync_run(self) -> int:
        """Record a sync run in the running state and return its id."""
        ...

    @abstractmethod
    def finish_sync_run(
        self, run_id: int, status: SyncRunStatus, summary: dict[str, Any]
    ) -> None:
        """Mark a sync run finished."""
        ...

    @abstractmethod
    def list_sync_runs(self, limit: int = 20) -> list[SyncRun]:
        """Most recent sync runs first."""
        ...

    def load_graph(self, base_branch: str) -> BranchGraph:
        """Build the branch graph from the stored records.

        Raises:
            GraphInvariantError: if the stored records do not form a valid tree
        """
        branches: list[Branch] = []
        for record in self.list_records():
            if record.parent is None:
                raise GraphInvariantError(
                    f"tracked branch '{record.name}' has no parent; run 'stack doctor --fix'"
                )
            branches.append(
                Branch(
                    name=record.name,
                    parent=record.parent,
                    last_synced_commit=record.last_synced_commit,
                    pr_cache=record.pr_cache(),
                )
            )
        try:
            return BranchGraph(base_branch, branches)
        except GraphInvariantError as e:
            raise GraphInvariantError(
                f"stored stack is corrupted: {e.message}; run 'stack doctor --fix'"
            ) from e

    def persist(self, graph: BranchGraph) -> None:
        """Write the graph back, touching only rows that changed, in one transaction."""
        existing = {record.name: record for record in self.list_records()}
        wanted = {branch.name: BranchRecord.from_branch(branch) for branch in graph.branches()}

        upserts = [record for name, record in wanted.items() if existing.get(name) != record]
        deletes = sorted(name for name in existing if name not in wanted)
        if not upserts and not deletes:
            return
        self.write_records(upserts=upserts, deletes=deletes)
