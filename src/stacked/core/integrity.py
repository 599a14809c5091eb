"""Detect and repair corruption in the persisted branch records.

The scan works on raw BranchRecord rows rather than a BranchGraph, because a
corrupted store cannot be turned into a graph in the first place.
"""

import logging
from collections.abc import Collection, Sequence
from dataclasses import dataclass, replace
from typing import Literal

from stacked.core.store.abc import BranchRecord, RelationshipStore

logger = logging.getLogger(__name__)

IssueCode = Literal[
    "cycle",
    "base_has_parent",
    "partial_pr_cache",
    "missing_git_branch",
    "missing_parent",
    "orphaned_branch",
]


@dataclass(frozen=True)
class IntegrityIssue:
    code: IssueCode
    branch: str
    message: str


@dataclass(frozen=True)
class RepairReport:
    """What doctor --fix found and what it changed."""

    issues: tuple[IntegrityIssue, ...]
    actions: tuple[str, ...]
    upserts: int
    deletes: int

    @property
    def changed(self) -> bool:
        return self.upserts > 0 or self.deletes > 0


def _find_cycles(parents: dict[str, str | None], base_branch: str) -> list[list[str]]:
    """Each cycle once, as the branches on it in parent order.

    The last branch of each cycle owns the parent link that closes it.
    """
    cycles: list[list[str]] = []
    settled: set[str] = set()
    for name in sorted(parents):
        walked: list[str] = []
        current: str | None = name
        while (
            current is not None
            and current != base_branch
            and current in parents
            and current not in settled
        ):
            if current in walked:
                cycles.append(walked[walked.index(current) :])
                break
            walked.append(current)
            current = parents[current]
        settled.update(walked)
    return cycles


def scan_records(
    records: Sequence[BranchRecord],
    base_branch: str,
    local_branches: Collection[str] | None = None,
) -> list[IntegrityIssue]:
    """Report every integrity issue in records. Read-only.

    Args:
        records: Raw rows from the store
        base_branch: Name of the stack root
        local_branches: Local branch names; when None the git check is skipped
    """
    issues: list[IntegrityIssue] = []
    names = {record.name for record in records}

    for record in records:
        if record.name == base_branch:
            issues.append(
                IntegrityIssue(
                    "base_has_parent",
                    record.name,
                    f"base branch '{record.name}' has a stored parent '{record.parent}'",
                )
            )
            continue

        if local_branches is not None and record.name not in local_branches:
            issues.append(
                IntegrityIssue(
                    "missing_git_branch",
                    record.name,
                    f"'{record.name}' is tracked but no longer exists locally",
                )
            )

        if record.parent is None:
            issues.append(
                IntegrityIssue("orphaned_branch", record.name, f"'{record.name}' has no parent")
            )
        elif record.parent != base_branch and record.parent not in names:
            issues.append(
                IntegrityIssue(
                    "missing_parent",
                    record.name,
                    f"parent '{record.parent}' of '{record.name}' is not tracked",
                )
            )

        if record.has_partial_pr_cache:
            issues.append(
                IntegrityIssue(
                    "partial_pr_cache",
                    record.name,
                    f"'{record.name}' has an incomplete pull request cache",
                )
            )

    parents = {record.name: record.parent for record in records if record.name != base_branch}
    for cycle in _find_cycles(parents, base_branch):
        path = " -> ".join([*cycle, cycle[0]])
        issues.append(IntegrityIssue("cycle", cycle[-1], f"cycle detected: {path}"))

    logger.debug("Integrity scan found %d issue(s)", len(issues))
    return issues


def repair(
    store: RelationshipStore,
    base_branch: str,
    local_branches: Collection[str] | None = None,
) -> RepairReport:
    """Fix every issue scan_records reports, in a single write.

    Records of branches gone from git are removed and their children spliced
    onto the removed branch's parent. Base records are dropped, partial PR
    caches are emptied, and branches without a reachable parent (orphaned,
    missing parent, or the closing edge of a cycle) are re-rooted under the
    base branch.
    """
    original = store.list_records()
    issues = scan_records(original, base_branch, local_branches)
    records = {record.name: record for record in original}
    actions: list[str] = []

    if base_branch in records:
        del records[base_branch]
        actions.append(f"removed stored parent of base branch '{base_branch}'")

    if local_branches is not None:
        for name in sorted(records):
            if name in local_branches:
                continue
            removed = records.pop(name)
            for child in sorted(records):
                if records[child].parent == name:
                    records[child] = replace(records[child], parent=removed.parent)
            actions.append(f"stopped tracking '{name}' (branch no longer exists)")

    for name, record in sorted(records.items()):
        if record.has_partial_pr_cache:
            records[name] = record.without_pr_cache()
            actions.append(f"cleared incomplete pull request cache of '{name}'")

    for name, record in sorted(records.items()):
        if record.parent is None:
            records[name] = replace(record, parent=base_branch)
            actions.append(f"re-rooted orphaned '{name}' under '{base_branch}'")
        elif record.parent != base_branch and record.parent not in records:
            records[name] = replace(record, parent=base_branch)
            actions.append(
                f"re-rooted '{name}' under '{base_branch}' (parent '{record.parent}' is gone)"
            )

    parents = {name: record.parent for name, record in records.items()}
    for cycle in _find_cycles(parents, base_branch):
        closing = cycle[-1]
        records[closing] = replace(records[closing], parent=base_branch)
        actions.append(f"broke cycle at '{closing}' and re-rooted it under '{base_branch}'")

    before = {record.name: record for record in original}
    upserts = [record for name, record in sorted(records.items()) if before.get(name) != record]
    deletes = sorted(name for name in before if name not in records)
    if upserts or deletes:
        store.write_records(upserts=upserts, deletes=deletes)
    logger.debug("Repair wrote %d upsert(s) and %d delete(s)", len(upserts), len(deletes))

    return RepairReport(
        issues=tuple(issues),
        actions=tuple(actions),
        upserts=len(upserts),
        deletes=len(deletes),
    )
