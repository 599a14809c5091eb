"""In-memory model of the branch tree.

The graph is a dict of Branch records keyed by name. Parents are stored by name,
never by reference, so acyclicity can be checked with bounded ancestor walks.
The base branch is the implicit root: it is always present and never has a
record of its own.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from typing import Literal

from stacked.core.errors import GraphInvariantError

PrState = Literal["OPEN", "MERGED", "CLOSED"]


@dataclass(frozen=True)
class PrCache:
    """Cached pull-request bundle. Either fully present on a Branch or absent."""

    number: int
    url: str
    state: PrState
    head_repo: str
    base_repo: str
    merge_commit: str | None = None

    @property
    def is_merged(self) -> bool:
        return self.state == "MERGED"


@dataclass(frozen=True)
class Branch:
    """A tracked branch and its parent edge."""

    name: str
    parent: str
    last_synced_commit: str | None = None
    pr_cache: PrCache | None = None


@dataclass(frozen=True)
class SpliceResult:
    """Outcome of splice_remove.

    removed is False when the branch had no tracked record; that is a no-op,
    not an error.
    """

    branch: str
    removed: bool
    parent: str | None
    reparented: tuple[str, ...]


class BranchGraph:
    """Rooted tree of tracked branches.

    Construction validates the whole structure and raises GraphInvariantError
    if any record breaks the tree invariants. All mutators keep the invariants:
    they either succeed completely or raise without changing anything.
    """

    def __init__(self, base_branch: str, branches: Iterable[Branch] = ()) -> None:
        self._base = base_branch
        nodes = {branch.name: branch for branch in branches}
        _validate(base_branch, nodes)
        self._nodes: dict[str, Branch] = nodes

    @property
    def base_branch(self) -> str:
        return self._base

    def copy(self) -> "BranchGraph":
        return BranchGraph(self._base, self._nodes.values())

    # Lookups

    def __contains__(self, name: object) -> bool:
        return name == self._base or name in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def is_tracked(self, name: str) -> bool:
        """Whether the branch has a record. The base branch never does."""
        return name in self._nodes

    def get(self, name: str) -> Branch | None:
        return self._nodes.get(name)

    def branches(self) -> list[Branch]:
        """All tracked records, sorted by name."""
        return [self._nodes[name] for name in sorted(self._nodes)]

    def parent_of(self, name: str) -> str | None:
        branch = self._nodes.get(name)
        if branch is None:
            return None
        return branch.parent

    def children(self, name: str) -> list[str]:
        return sorted(branch.name for branch in self._nodes.values() if branch.parent == name)

    def ancestors(self, name: str) -> list[str]:
        """Ordered sequence from name up to and including the base branch.

        An untracked non-base branch has no position in the tree and yields [name].
        """
        chain = [name]
        current = name
        while current in self._nodes:
            current = self._nodes[current].parent
            chain.append(current)
        return chain

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        """Whether ancestor is a strict ancestor of descendant in the tree."""
        if ancestor == descendant:
            return False
        return ancestor in self.ancestors(descendant)[1:]

    def descendants(self, name: str) -> list[str]:
        """All branches below name, parent before child."""
        result: list[str] = []
        frontier = self.children(name)
        while frontier:
            current = frontier.pop(0)
            result.append(current)
            frontier.extend(self.children(current))
        return result

    def topological_order(self) -> list[str]:
        """Tracked branches, parents before children, siblings by name."""
        return self.descendants(self._base)

    def depth(self, name: str) -> int:
        return len(self.ancestors(name)) - 1

    # Mutations

    def set_parent(self, branch: str, new_parent: str) -> None:
        """Point branch at new_parent, creating the record if needed.

        Raises:
            GraphInvariantError: base branch mutation, unknown parent, or cycle
        """
        if branch == self._base:
            raise GraphInvariantError(f"base branch '{branch}' cannot have a parent")
        if new_parent not in self:
            raise GraphInvariantError(
                f"parent '{new_parent}' is not tracked and is not the base branch '{self._base}'"
            )
        if new_parent == branch or branch in self.ancestors(new_parent):
            raise GraphInvariantError(
                f"setting parent of '{branch}' to '{new_parent}' would create a cycle"
            )

        existing = self._nodes.get(branch)
        if existing is None:
            self._nodes[branch] = Branch(name=branch, parent=new_parent)
        else:
            self._nodes[branch] = replace(existing, parent=new_parent)

    def apply_batch(self, edits: Sequence[tuple[str, str]]) -> None:
        """Apply all parent edits or none.

        Edits are applied to a copied overlay, the overlay is validated as a
        whole, and only then swapped in. Order inside the batch does not matter,
        so a batch may attach a branch to a parent that is created later in it.
        """
        overlay = dict(self._nodes)
        for branch, new_parent in edits:
            if branch == self._base:
                raise GraphInvariantError(f"base branch '{branch}' cannot have a parent")
            existing = overlay.get(branch)
            if existing is None:
                overlay[branch] = Branch(name=branch, parent=new_parent)
            else:
                overlay[branch] = replace(existing, parent=new_parent)

        _validate(self._base, overlay)
        self._nodes = overlay

    def splice_remove(self, branch: str) -> SpliceResult:
        """Remove branch and hand its children to its former parent."""
        if branch == self._base:
            raise GraphInvariantError(f"base branch '{branch}' cannot be removed")

        record = self._nodes.get(branch)
        if record is None:
            return SpliceResult(branch=branch, removed=False, parent=None, reparented=())

        children = self.children(branch)
        for child in children:
            self._nodes[child] = replace(self._nodes[child], parent=record.parent)
        del self._nodes[branch]
        return SpliceResult(
            branch=branch, removed=True, parent=record.parent, reparented=tuple(children)
        )

    def mark_synced(self, branch: str, commit: str) -> None:
        self._nodes[branch] = replace(self._require(branch), last_synced_commit=commit)

    def set_pr_cache(self, branch: str, cache: PrCache | None) -> None:
        self._nodes[branch] = replace(self._require(branch), pr_cache=cache)

    def _require(self, branch: str) -> Branch:
        record = self._nodes.get(branch)
        if record is None:
            raise GraphInvariantError(f"branch '{branch}' is not tracked")
        return record


def _validate(base_branch: str, nodes: dict[str, Branch]) -> None:
    """Check that every record reaches the base branch through tracked parents."""
    if base_branch in nodes:
        raise GraphInvariantError(f"base branch '{base_branch}' cannot have a parent")

    reaches_base: set[str] = set()
    for name in nodes:
        walked: list[str] = []
        current = name
        while current != base_branch and current not in reaches_base:
            if current in walked:
                raise GraphInvariantError(
                    f"cycle detected: {' -> '.join([*walked, current])}"
                )
            record = nodes.get(current)
            if record is None:
                raise GraphInvariantError(
                    f"branch '{walked[-1]}' points at '{current}', "
                    f"which is neither tracked nor the base branch"
                )
            walked.append(current)
            current = record.parent
        reaches_base.update(walked)
