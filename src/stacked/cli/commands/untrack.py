import click

from stacked.cli.core import require_stack, resolve_branch_argument
from stacked.cli.errors import handle_stack_errors
from stacked.cli.json_output import emit_model
from stacked.cli.json_schemas import UntrackResponse
from stacked.core.context import StackContext

BASE_BRANCH_NOOP_REASON = "base branch cannot be untracked"


@click.command("untrack")
@click.argument("branch", required=False)
@click.pass_obj
def untrack_cmd(ctx: StackContext, branch: str | None) -> None:
    """Stop tracking BRANCH (default: the current branch).

    Its children are re-parented onto its parent. The git branch itself is
    left alone. Untracking the base branch succeeds without changing
    anything: it always stays the root of the stack.
    """
    with handle_stack_errors(ctx):
        stack = require_stack(ctx)
        target = resolve_branch_argument(ctx, branch)

        if target == stack.base_branch:
            ctx.feedback.info(f"'{target}' is the base branch; it remains the root of the stack")
            response = UntrackResponse(
                status="noop", branch=target, reason=BASE_BRANCH_NOOP_REASON
            )
        else:
            graph = stack.load_graph()
            result = graph.splice_remove(target)
            if not result.removed:
                ctx.feedback.info(f"'{target}' is not tracked")
                response = UntrackResponse(
                    status="noop", branch=target, reason="branch is not tracked"
                )
            else:
                stack.store.persist(graph)
                ctx.feedback.success(f"✓ Stopped tracking '{target}'")
                if result.reparented:
                    ctx.feedback.info(
                        f"Re-parented {', '.join(result.reparented)} onto '{result.parent}'"
                    )
                response = UntrackResponse(
                    status="untracked",
                    branch=target,
                    parent=result.parent,
                    reparented=list(result.reparented),
                )

        if ctx.porcelain:
            emit_model(response)
