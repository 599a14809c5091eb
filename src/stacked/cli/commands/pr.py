import logging

import click

from stacked.cli.core import (
    push_remote_for,
    refresh_managed_pr_bodies,
    repo_web_url,
    require_current_branch,
    require_stack,
)
from stacked.cli.ensure import Ensure
from stacked.cli.errors import handle_stack_errors
from stacked.cli.json_output import emit_model
from stacked.cli.json_schemas import PrResponse
from stacked.core.context import StackContext
from stacked.core.errors import ProviderError
from stacked.core.github.types import PullRequestInfo
from stacked.core.pr_body import compose_pr_body, managed_pr_section, section_for_branch

logger = logging.getLogger(__name__)


@click.command("pr")
@click.option("-t", "--title", help="Pull request title (default: the branch name).")
@click.option("-b", "--body", help="Pull request body.")
@click.option("-d", "--draft", is_flag=True, help="Open the pull request as a draft.")
@click.option("-n", "--dry-run", is_flag=True, help="Preview without pushing or calling gh.")
@click.pass_obj
def pr_cmd(
    ctx: StackContext, title: str | None, body: str | None, draft: bool, dry_run: bool
) -> None:
    """Open a pull request from the current branch into its parent.

    The body starts with a managed section linking the neighbouring branches
    of the stack. An existing pull request is reported instead of duplicated.
    """
    with handle_stack_errors(ctx):
        stack = require_stack(ctx)
        head = require_current_branch(ctx)
        Ensure.invariant(
            head != stack.base_branch,
            f"Cannot open a pull request from the base branch '{head}'",
        )

        graph = stack.load_graph()
        tracked = graph.is_tracked(head)
        if tracked:
            base = graph.parent_of(head)
            assert base is not None
        else:
            base = stack.base_branch
            ctx.feedback.warning(
                f"'{head}' is not tracked; opening the pull request against '{base}'"
            )

        existing: PullRequestInfo | None
        try:
            existing = ctx.github.find_pull_request(stack.root, head)
        except ProviderError as e:
            logger.debug("Pull request lookup for %s failed: %s", head, e.detail)
            ctx.feedback.warning("could not check for an existing pull request")
            existing = None

        if existing is not None and existing.is_open:
            ctx.feedback.info(f"Pull request #{existing.number} already exists: {existing.url}")
            if tracked and not dry_run:
                graph.set_pr_cache(head, existing.to_pr_cache())
                stack.store.persist(graph)
            if ctx.porcelain:
                emit_model(
                    PrResponse(
                        status="exists",
                        head=head,
                        base=existing.base_ref,
                        number=existing.number,
                        url=existing.url,
                    )
                )
            return

        pr_title = title or head
        if dry_run:
            ctx.feedback.info(f"Would push '{head}' and open '{pr_title}' ({head} → {base})")
            if ctx.porcelain:
                emit_model(PrResponse(status="planned", head=head, base=base))
            return

        base_url = repo_web_url(ctx, stack)
        if base_url is None:
            ctx.feedback.warning("could not determine the repository URL; no stack section added")
            pr_body = body or ""
        elif tracked:
            pr_body = compose_pr_body(section_for_branch(graph, head, {}, base_url=base_url), body)
        else:
            section = managed_pr_section(
                base_url, stack.base_branch, parent=None, first_child=None
            )
            pr_body = compose_pr_body(section, body)

        remote = push_remote_for(ctx, stack, head)
        ctx.git.push_branch(stack.root, remote, head)
        created = ctx.github.create_pull_request(
            stack.root, base=base, head=head, title=pr_title, body=pr_body, draft=draft
        )

        if tracked:
            graph.set_pr_cache(head, created.to_pr_cache())
            stack.store.persist(graph)
            # neighbours' sections now link to this PR
            neighbours = [*graph.children(head)]
            if base != stack.base_branch:
                neighbours.append(base)
            refresh_managed_pr_bodies(ctx, stack, graph, neighbours)

        ctx.feedback.success(f"✓ Opened pull request #{created.number}: {created.url}")
        if ctx.porcelain:
            emit_model(
                PrResponse(
                    status="created",
                    head=head,
                    base=base,
                    number=created.number,
                    url=created.url,
                )
            )
