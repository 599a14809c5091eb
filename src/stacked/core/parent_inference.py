"""Propose a parent for a local branch that has none given explicitly.

Provider metadata wins: the base of an open pull request is taken when it is
already part of the stack. Otherwise commit ancestry decides. Among local
branches whose tips are strict ancestors of the target tip, the one that
descends from all the others is the immediate parent. Ties are never broken
by guessing; they come back as ambiguous so the caller can prompt or fail.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from stacked.core.branch_graph import BranchGraph
from stacked.core.errors import ProviderError
from stacked.core.git.abc import Git
from stacked.core.github.abc import GitHub

logger = logging.getLogger(__name__)

InferenceSource = Literal["pr_base", "git_ancestry"]


@dataclass(frozen=True)
class ParentInference:
    """Result of parent inference.

    Exactly one of these holds:
    - parent is set: inference resolved a single parent
    - len(candidates) > 1: several equally valid parents remain
    - neither: nothing qualifies
    """

    branch: str
    parent: str | None
    source: InferenceSource | None
    candidates: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def is_ambiguous(self) -> bool:
        return self.parent is None and len(self.candidates) > 1


def infer_parent(
    git: Git,
    github: GitHub,
    repo_root: Path,
    graph: BranchGraph,
    branch: str,
    *,
    local_branches: Sequence[str] | None = None,
    use_provider: bool = True,
) -> ParentInference:
    """Infer the parent of branch.

    Args:
        git: Version-control port
        github: Provider port; lookup failures downgrade to a warning
        repo_root: Repository root
        graph: Current stack
        branch: Branch whose parent is wanted
        local_branches: Local branch names, listed from git when omitted
        use_provider: False to skip the pull-request lookup
    """
    warnings: list[str] = []

    if use_provider:
        try:
            pr = github.find_pull_request(repo_root, branch)
        except ProviderError as e:
            logger.debug("Pull request lookup for %s failed: %s", branch, e.detail)
            warnings.append(
                f"could not look up a pull request for '{branch}'; using git ancestry"
            )
            pr = None

        if pr is not None and pr.is_open and _is_valid_parent(graph, branch, pr.base_ref):
            logger.debug("Parent of %s from PR #%d base: %s", branch, pr.number, pr.base_ref)
            return ParentInference(
                branch=branch, parent=pr.base_ref, source="pr_base", warnings=tuple(warnings)
            )

    if local_branches is None:
        local_branches = git.list_local_branches(repo_root)

    candidates = _ancestry_candidates(git, repo_root, graph, branch, local_branches)
    remaining = _deepest(git, repo_root, candidates)
    if len(remaining) > 1:
        preferred = [name for name in remaining if name in graph]
        if preferred:
            remaining = preferred

    logger.debug("Ancestry candidates for %s: %s -> %s", branch, candidates, remaining)
    if len(remaining) == 1:
        return ParentInference(
            branch=branch,
            parent=remaining[0],
            source="git_ancestry",
            warnings=tuple(warnings),
        )
    return ParentInference(
        branch=branch,
        parent=None,
        source=None,
        candidates=tuple(sorted(remaining)),
        warnings=tuple(warnings),
    )


def _is_valid_parent(graph: BranchGraph, branch: str, parent: str) -> bool:
    return parent != branch and parent in graph and not graph.is_ancestor(branch, parent)


def _ancestry_candidates(
    git: Git,
    repo_root: Path,
    graph: BranchGraph,
    branch: str,
    local_branches: Sequence[str],
) -> list[str]:
    """Other local branches whose tips are strict ancestors of branch and reach the base."""
    tip = git.get_branch_head(repo_root, branch)
    if tip is None:
        return []

    base = graph.base_branch
    candidates: list[str] = []
    for name in local_branches:
        if name == branch or graph.is_ancestor(branch, name):
            continue
        head = git.get_branch_head(repo_root, name)
        if head is None or head == tip:
            continue
        if not git.is_ancestor(repo_root, head, tip):
            continue
        if name in graph or git.is_ancestor(repo_root, base, name):
            candidates.append(name)
    return candidates


def _deepest(git: Git, repo_root: Path, candidates: list[str]) -> list[str]:
    """Candidates whose tips are not strict ancestors of another candidate's tip."""
    heads = {name: git.get_branch_head(repo_root, name) or "" for name in candidates}
    deepest: list[str] = []
    for name in candidates:
        below_another = any(
            heads[other] != heads[name] and git.is_ancestor(repo_root, heads[name], heads[other])
            for other in candidates
            if other != name
        )
        if not below_another:
            deepest.append(name)
    return deepest
