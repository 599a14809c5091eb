"""Shared lookups for commands that operate on a repository's stack."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import click

from stacked.cli.ensure import Ensure
from stacked.cli.output import user_output
from stacked.core.branch_graph import BranchGraph
from stacked.core.config import RepoConfig
from stacked.core.context import StackContext
from stacked.core.errors import ProviderError
from stacked.core.github.parsing import parse_remote_to_web_url, repo_root_from_pr_url
from stacked.core.pr_body import merge_managed_section, section_for_branch
from stacked.core.repo_discovery import NoRepoSentinel, RepoContext
from stacked.core.store.abc import RelationshipStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StackRepo:
    """Repository, store and config of a command running inside a repo."""

    repo: RepoContext
    store: RelationshipStore
    config: RepoConfig

    @property
    def root(self) -> Path:
        return self.repo.root

    @property
    def base_branch(self) -> str:
        return self.config.base_branch

    def load_graph(self) -> BranchGraph:
        return self.store.load_graph(self.config.base_branch)


def require_stack(ctx: StackContext) -> StackRepo:
    """Fail with a styled error unless running inside a git repository."""
    repo = ctx.repo
    if isinstance(repo, NoRepoSentinel):
        user_output(click.style("Error: ", fg="red") + repo.message)
        raise SystemExit(1)
    store = Ensure.not_none(ctx.store, "Stack database is not available")
    config = Ensure.not_none(ctx.config, "Repository configuration is not available")
    return StackRepo(repo=repo, store=store, config=config)


def require_current_branch(ctx: StackContext) -> str:
    return Ensure.not_none(
        ctx.git.get_current_branch(ctx.cwd), "Not currently on a branch (detached HEAD)"
    )


def resolve_branch_argument(ctx: StackContext, branch: str | None) -> str:
    """The named branch, or the current branch when none is given."""
    if branch is not None:
        return branch
    return require_current_branch(ctx)


def repo_web_url(ctx: StackContext, stack: StackRepo) -> str | None:
    """Browser URL of the configured remote, if it can be derived."""
    remote_url = ctx.git.get_remote_url(stack.root, stack.config.remote)
    if remote_url is None:
        return None
    return parse_remote_to_web_url(remote_url)


def push_remote_for(ctx: StackContext, stack: StackRepo, branch: str) -> str:
    """The branch's own remote, then the base branch's, then the configured one."""
    return (
        ctx.git.get_remote_for_branch(stack.root, branch)
        or ctx.git.get_remote_for_branch(stack.root, stack.base_branch)
        or stack.config.remote
    )


def refresh_managed_pr_bodies(
    ctx: StackContext, stack: StackRepo, graph: BranchGraph, branches: Sequence[str]
) -> list[int]:
    """Rewrite the managed section of the open PRs of branches. Returns edited PR numbers.

    A failed lookup only warns; a failed edit propagates.
    """
    targets = [name for name in dict.fromkeys(branches) if graph.is_tracked(name)]
    if not targets:
        return []

    neighbours = set(targets)
    for name in targets:
        neighbours.update(graph.children(name))
        parent = graph.parent_of(name)
        if parent is not None and parent != graph.base_branch:
            neighbours.add(parent)

    try:
        pull_requests = dict(ctx.github.batch_list(stack.root, sorted(neighbours)))
    except ProviderError as e:
        logger.debug("PR lookup for body refresh failed: %s", e.detail)
        ctx.feedback.warning("could not look up pull requests; PR bodies not refreshed")
        return []

    # older PRs can fall outside the listing; resolve them by cached number
    for name in sorted(neighbours):
        record = graph.get(name)
        if name in pull_requests or record is None or record.pr_cache is None:
            continue
        try:
            info = ctx.github.get_pull_request(stack.root, record.pr_cache.number)
        except ProviderError as e:
            logger.debug("Lookup of #%d failed: %s", record.pr_cache.number, e.detail)
            continue
        if info is not None and info.head_ref == name:
            pull_requests[name] = info

    fallback_url = repo_web_url(ctx, stack)
    edited: list[int] = []
    for name in targets:
        info = pull_requests.get(name)
        if info is None or not info.is_open:
            continue
        base_url = repo_root_from_pr_url(info.url) or fallback_url
        if base_url is None:
            ctx.feedback.warning(f"could not determine the repository URL for '{name}'")
            continue
        section = section_for_branch(graph, name, pull_requests, base_url=base_url)
        body = merge_managed_section(info.body, section)
        if body != (info.body or "").strip():
            ctx.github.edit_body(stack.root, info.number, body)
            edited.append(info.number)
    return edited
