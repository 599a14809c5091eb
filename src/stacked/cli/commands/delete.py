import logging

import click

from stacked.cli.core import StackRepo, require_stack, resolve_branch_argument
from stacked.cli.ensure import Ensure
from stacked.cli.errors import handle_stack_errors
from stacked.cli.json_output import emit_model
from stacked.cli.json_schemas import DeleteResponse
from stacked.cli.selection import confirm
from stacked.core.branch_graph import BranchGraph
from stacked.core.context import StackContext
from stacked.core.errors import ProviderError

logger = logging.getLogger(__name__)


def _open_pr_number(
    ctx: StackContext, stack: StackRepo, graph: BranchGraph, branch: str
) -> int | None:
    """Number of the branch's open pull request: cached first, then the provider."""
    record = graph.get(branch)
    if record is not None and record.pr_cache is not None:
        if record.pr_cache.state == "OPEN":
            return record.pr_cache.number
        return None

    try:
        pr = ctx.github.find_pull_request(stack.root, branch)
    except ProviderError as e:
        logger.debug("Pull request lookup for %s failed: %s", branch, e.detail)
        ctx.feedback.warning(f"could not check for a pull request on '{branch}'")
        return None
    if pr is None or not pr.is_open:
        return None
    return pr.number


@click.command("delete")
@click.argument("branch", required=False)
@click.option("-n", "--dry-run", is_flag=True, help="Preview without changing anything.")
@click.pass_obj
def delete_cmd(ctx: StackContext, branch: str | None, dry_run: bool) -> None:
    """Delete BRANCH (default: the current branch) and close its pull request.

    Children are re-parented onto the deleted branch's parent. When the branch
    is checked out, its parent is checked out first.
    """
    with handle_stack_errors(ctx):
        stack = require_stack(ctx)
        target = resolve_branch_argument(ctx, branch)
        Ensure.invariant(target != stack.base_branch, "The base branch cannot be deleted")

        graph = stack.load_graph()
        Ensure.invariant(graph.is_tracked(target), f"Branch '{target}' is not tracked")
        parent = graph.parent_of(target)
        assert parent is not None
        children = graph.children(target)
        is_current = ctx.git.get_current_branch(ctx.cwd) == target
        pr_number = _open_pr_number(ctx, stack, graph, target)

        if is_current:
            Ensure.invariant(
                ctx.git.branch_exists(stack.root, parent),
                f"Cannot switch to parent '{parent}': it does not exist locally",
            )

        steps: list[str] = []
        if pr_number is not None:
            steps.append(f"close pull request #{pr_number}")
        if is_current:
            steps.append(f"check out '{parent}'")
        if ctx.git.branch_exists(stack.root, target):
            steps.append(f"delete local branch '{target}'")
        steps.append(f"stop tracking '{target}'")
        if children:
            steps.append(f"re-parent {', '.join(children)} onto '{parent}'")

        def respond(status: str) -> None:
            if ctx.porcelain:
                emit_model(
                    DeleteResponse(
                        status=status,
                        branch=target,
                        parent=parent,
                        closed_pr=pr_number,
                        reparented=children,
                    )
                )

        if dry_run:
            for step in steps:
                ctx.feedback.info(f"Would {step}")
            respond("planned")
            return

        if not ctx.yes:
            for step in steps:
                ctx.feedback.info(f"  - {step}")
        if not confirm(ctx, f"Delete '{target}'?"):
            ctx.feedback.warning("delete not applied; rerun with --yes to apply it")
            respond("not_applied")
            return

        if pr_number is not None:
            ctx.github.close(stack.root, pr_number, delete_branch=False)
        if is_current:
            ctx.git.checkout_branch(ctx.cwd, parent)
        if ctx.git.branch_exists(stack.root, target):
            ctx.git.delete_branch(ctx.cwd, target, force=True)

        graph.splice_remove(target)
        stack.store.persist(graph)

        ctx.feedback.success(f"✓ Deleted '{target}'")
        respond("deleted")
