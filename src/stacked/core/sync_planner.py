"""Build the ordered plan that brings every tracked branch up to date.

The plan is computed from the graph, local branch tips and one batched
provider query. Nothing is mutated here. Branches that are already correctly
stacked produce no step, so planning twice in a row without upstream changes
yields an empty plan.

Step order:
1. fetch
2. base advance (only to the merge commit of a merged direct child)
3. restacks, parent before child
4. record-synced checkpoint for branches that are correct but unrecorded
5. batched PR metadata refresh
6. PR body updates
7. retirement of merged branches
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from stacked.core.branch_graph import BranchGraph, PrCache
from stacked.core.errors import ProviderError
from stacked.core.git.abc import Git
from stacked.core.github.abc import GitHub
from stacked.core.github.types import PullRequestInfo
from stacked.core.pr_body import merge_managed_section, section_for_branch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchStep:
    remote: str
    kind: str = field(default="fetch", init=False)

    def describe(self) -> str:
        return f"fetch '{self.remote}'"


@dataclass(frozen=True)
class BaseAdvanceStep:
    """Move the base branch to exactly the merge commit of a merged child PR."""

    branch: str
    commit: str
    pr_number: int
    kind: str = field(default="advance_base", init=False)

    def describe(self) -> str:
        return f"advance '{self.branch}' to {self.commit[:12]} (merge of #{self.pr_number})"


@dataclass(frozen=True)
class RestackStep:
    """Rewrite old_base..branch onto new_base.

    new_base is either a commit or the name of a branch that is resolved when the
    step runs, so a parent restacked earlier in the same plan is picked up at its
    new tip. new_parent is set when the branch leaves a merged parent.
    """

    branch: str
    parent: str
    old_base: str
    new_base: str
    fast_forward_only: bool
    reason: str
    new_parent: str | None = None
    kind: str = field(default="restack", init=False)

    def describe(self) -> str:
        mode = "fast-forward" if self.fast_forward_only else "replay"
        text = f"restack '{self.branch}' ({mode}) {self.old_base[:12]} -> {self.new_base}"
        if self.new_parent is not None:
            text += f", reparent to '{self.new_parent}'"
        return f"{text}: {self.reason}"


@dataclass(frozen=True)
class RecordSyncedStep:
    commits: tuple[tuple[str, str], ...]
    kind: str = field(default="record_synced", init=False)

    def describe(self) -> str:
        names = ", ".join(branch for branch, _ in self.commits)
        return f"record synced tips for {names}"


@dataclass(frozen=True)
class RefreshMetadataStep:
    caches: tuple[tuple[str, PrCache | None], ...]
    kind: str = field(default="refresh_metadata", init=False)

    def describe(self) -> str:
        names = ", ".join(branch for branch, _ in self.caches)
        return f"refresh PR metadata for {names}"


@dataclass(frozen=True)
class UpdatePrBodyStep:
    branch: str
    pr_number: int
    body: str
    kind: str = field(default="update_pr_body", init=False)

    def describe(self) -> str:
        return f"update stack section of #{self.pr_number} ('{self.branch}')"


@dataclass(frozen=True)
class RetireBranchStep:
    """Stop tracking a merged branch; its children were re-parented by their restacks."""

    branch: str
    pr_number: int
    kind: str = field(default="retire", init=False)

    def describe(self) -> str:
        return f"stop tracking '{self.branch}' (#{self.pr_number} merged)"


SyncStep = (
    FetchStep
    | BaseAdvanceStep
    | RestackStep
    | RecordSyncedStep
    | RefreshMetadataStep
    | UpdatePrBodyStep
    | RetireBranchStep
)


@dataclass(frozen=True)
class SyncPlan:
    base_branch: str
    remote: str
    steps: tuple[SyncStep, ...]
    warnings: tuple[str, ...] = ()

    @property
    def restack_steps(self) -> list[RestackStep]:
        return [step for step in self.steps if isinstance(step, RestackStep)]

    @property
    def is_empty(self) -> bool:
        """True when the plan does nothing beyond fetching."""
        return all(isinstance(step, FetchStep) for step in self.steps)


@dataclass(frozen=True)
class _MergedPr:
    number: int
    commit: str
    head_commit: str | None = None


class _Planner:
    def __init__(
        self,
        git: Git,
        github: GitHub,
        repo_root: Path,
        graph: BranchGraph,
    ) -> None:
        self.git = git
        self.github = github
        self.repo_root = repo_root
        self.graph = graph
        self.warnings: list[str] = []
        # branches whose PR could not be refreshed; their cache is left alone
        self.stale: set[str] = set()

    def fetch_pull_requests(self, branches: list[str]) -> dict[str, PullRequestInfo] | None:
        try:
            prs = dict(self.github.batch_list(self.repo_root, branches))
        except ProviderError as e:
            logger.debug("Batch PR lookup failed: %s", e.detail)
            self.warnings.append(
                "could not refresh pull request metadata; using cached PR state"
            )
            return None

        for branch in branches:
            record = self.graph.get(branch)
            if branch in prs or record is None or record.pr_cache is None:
                continue
            info = self.resolve_cached_pr(branch, record.pr_cache.number)
            if info is not None:
                prs[branch] = info
        return prs

    def resolve_cached_pr(self, branch: str, number: int) -> PullRequestInfo | None:
        """Look up a PR the batched listing missed, by its cached number."""
        try:
            info = self.github.get_pull_request(self.repo_root, number)
        except ProviderError as e:
            logger.debug("Lookup of #%d for %s failed: %s", number, branch, e.detail)
            self.warnings.append(
                f"could not refresh #{number} for '{branch}'; using cached PR state"
            )
            self.stale.add(branch)
            return None
        if info is None or info.head_ref != branch:
            return None
        return info

    def merged_prs(
        self, branches: list[str], prs: dict[str, PullRequestInfo] | None
    ) -> dict[str, _MergedPr]:
        """Branches whose PR is merged with a known merge commit."""
        merged: dict[str, _MergedPr] = {}
        for branch in branches:
            if prs is not None and branch not in self.stale:
                info = prs.get(branch)
                if info is None or info.state != "MERGED":
                    continue
                commit = info.merge_commit or self._lookup_merge_commit(info.number)
                if commit is not None:
                    merged[branch] = _MergedPr(info.number, commit, info.head_commit)
                continue

            record = self.graph.get(branch)
            cache = record.pr_cache if record is not None else None
            if cache is not None and cache.is_merged and cache.merge_commit is not None:
                merged[branch] = _MergedPr(cache.number, cache.merge_commit)
        return merged

    def _lookup_merge_commit(self, number: int) -> str | None:
        try:
            status = self.github.merge_status(self.repo_root, number)
        except ProviderError as e:
            logger.debug("Merge status lookup for #%d failed: %s", number, e.detail)
            self.warnings.append(f"could not determine merge commit of #{number}")
            return None
        return status.merge_commit if status.state == "merged" else None

    def fork_point(
        self,
        branch: str,
        head: str,
        parent: str,
        old_tips: dict[str, str],
        pr_head: str | None = None,
    ) -> str | None:
        """The commit branch was stacked on: the parent's previous tip if still in history.

        pr_head is the last head commit the provider saw for a merged parent, which
        still marks the fork point after the parent branch was deleted locally.
        """
        candidates: list[str | None] = [old_tips.get(parent)]
        parent_record = self.graph.get(parent)
        if parent_record is not None:
            candidates.append(parent_record.last_synced_commit)
        candidates.append(pr_head)

        for candidate in candidates:
            if candidate is not None and self.git.is_ancestor(self.repo_root, candidate, head):
                return candidate
        return self.git.merge_base(self.repo_root, branch, parent)


def build_sync_plan(
    git: Git,
    github: GitHub,
    repo_root: Path,
    graph: BranchGraph,
    *,
    remote: str,
    base_url: str | None = None,
) -> SyncPlan:
    """Plan a sync of the whole stack.

    Args:
        git: Version-control port (read-only use)
        github: Provider port; lookup failures become warnings
        repo_root: Repository root
        graph: Current stack
        remote: Remote to fetch from
        base_url: Repository web URL; PR body steps are planned only when known
    """
    planner = _Planner(git, github, repo_root, graph)
    base = graph.base_branch

    local = set(git.list_local_branches(repo_root))
    ordered = graph.topological_order()
    present = [branch for branch in ordered if branch in local]
    missing = [branch for branch in ordered if branch not in local]
    if missing:
        names = ", ".join(missing)
        planner.warnings.append(f"skipping tracked branches missing locally: {names}")

    prs = planner.fetch_pull_requests(ordered)
    merged = planner.merged_prs(ordered, prs)

    old_tips: dict[str, str] = {}
    for branch in [base, *present]:
        head = git.get_branch_head(repo_root, branch)
        if head is not None:
            old_tips[branch] = head

    steps: list[SyncStep] = [FetchStep(remote)]
    moving: set[str] = set()

    for child in graph.children(base):
        merged_pr = merged.get(child)
        if merged_pr is None:
            continue
        if git.is_ancestor(repo_root, merged_pr.commit, base):
            continue
        steps.append(BaseAdvanceStep(base, merged_pr.commit, merged_pr.number))
        moving.add(base)

    # merged branches that must stay tracked because a child could not leave them
    held: set[str] = set()
    synced: list[tuple[str, str]] = []
    for branch in present:
        if branch in merged:
            continue

        head = old_tips[branch]
        parent = graph.parent_of(branch)
        assert parent is not None

        parent_merge = merged.get(parent)
        if parent_merge is not None:
            new_parent = next(
                name for name in graph.ancestors(parent)[1:] if name not in merged
            )
            if git.is_ancestor(repo_root, parent_merge.commit, head):
                old_base = parent_merge.commit
            else:
                previous = planner.fork_point(
                    branch, head, parent, old_tips, pr_head=parent_merge.head_commit
                )
                if previous is None:
                    planner.warnings.append(
                        f"skipping '{branch}': cannot find where it forked from '{parent}'"
                    )
                    if parent not in held:
                        planner.warnings.append(
                            f"keeping merged '{parent}' tracked until '{branch}' "
                            "is restacked off it"
                        )
                    held.add(parent)
                    continue
                old_base = previous
            steps.append(
                RestackStep(
                    branch=branch,
                    parent=parent,
                    old_base=old_base,
                    new_base=parent_merge.commit,
                    fast_forward_only=git.count_commits(repo_root, old_base, head) == 0,
                    reason=f"parent '{parent}' merged (#{parent_merge.number})",
                    new_parent=new_parent,
                )
            )
            moving.add(branch)
            continue

        parent_head = old_tips.get(parent)
        if parent_head is None:
            planner.warnings.append(f"skipping '{branch}': parent '{parent}' is missing locally")
            continue

        if parent not in moving and git.is_ancestor(repo_root, parent_head, head):
            record = graph.get(branch)
            if record is not None and record.last_synced_commit != head:
                synced.append((branch, head))
            continue

        fork = planner.fork_point(branch, head, parent, old_tips)
        if fork is None:
            planner.warnings.append(
                f"skipping '{branch}': it shares no history with '{parent}'"
            )
            continue

        if parent in moving:
            reason = f"parent '{parent}' is restacked first"
        else:
            reason = f"parent '{parent}' moved"
        steps.append(
            RestackStep(
                branch=branch,
                parent=parent,
                old_base=fork,
                new_base=parent,
                fast_forward_only=git.count_commits(repo_root, fork, head) == 0,
                reason=reason,
            )
        )
        moving.add(branch)

    if synced:
        steps.append(RecordSyncedStep(tuple(synced)))

    retiring = {branch: pr for branch, pr in merged.items() if branch not in held}

    if prs is not None:
        caches: list[tuple[str, PrCache | None]] = []
        for branch in present:
            if branch in merged or branch in planner.stale:
                continue
            info = prs.get(branch)
            cache = info.to_pr_cache() if info is not None else None
            record = graph.get(branch)
            if record is not None and record.pr_cache != cache:
                caches.append((branch, cache))
        if caches:
            steps.append(RefreshMetadataStep(tuple(caches)))

        if base_url is not None:
            steps.extend(_pr_body_steps(graph, steps, retiring, present, prs, base_url))

    for branch in ordered:
        merged_pr = retiring.get(branch)
        if merged_pr is not None:
            steps.append(RetireBranchStep(branch, merged_pr.number))

    plan = SyncPlan(
        base_branch=base, remote=remote, steps=tuple(steps), warnings=tuple(planner.warnings)
    )
    logger.debug("Planned %d step(s): %s", len(plan.steps), [step.kind for step in plan.steps])
    return plan


def _pr_body_steps(
    graph: BranchGraph,
    steps: list[SyncStep],
    merged: dict[str, _MergedPr],
    present: list[str],
    prs: dict[str, PullRequestInfo],
    base_url: str,
) -> list[UpdatePrBodyStep]:
    """Body edits for open PRs, rendered against the stack as it will be after the plan."""
    after = graph.copy()
    for step in steps:
        if isinstance(step, RestackStep) and step.new_parent is not None:
            after.set_parent(step.branch, step.new_parent)
    for branch in merged:
        after.splice_remove(branch)

    body_steps: list[UpdatePrBodyStep] = []
    for branch in present:
        info = prs.get(branch)
        if info is None or not info.is_open or not after.is_tracked(branch):
            continue
        section = section_for_branch(after, branch, prs, base_url=base_url)
        body = merge_managed_section(info.body, section)
        if body != (info.body or "").strip():
            body_steps.append(UpdatePrBodyStep(branch, info.number, body))
    return body_steps
