import click

from stacked.cli.core import require_stack
from stacked.cli.ensure import Ensure
from stacked.cli.errors import handle_stack_errors
from stacked.cli.json_output import emit_model
from stacked.cli.json_schemas import BaseResponse
from stacked.core.config import write_base_branch_to_pyproject
from stacked.core.context import StackContext


@click.command("base")
@click.option("--set", "new_base", metavar="BRANCH", help="Pin the base branch for this repo.")
@click.pass_obj
def base_cmd(ctx: StackContext, new_base: str | None) -> None:
    """Show the base branch and remote used by this repository.

    With --set, the base branch is written to [tool.stack] in pyproject.toml
    and remembered in the stack database.
    """
    with handle_stack_errors(ctx):
        stack = require_stack(ctx)
        base_branch = stack.base_branch

        if new_base is not None and new_base != base_branch:
            Ensure.invariant(
                ctx.git.branch_exists(stack.root, new_base),
                f"Branch '{new_base}' does not exist",
            )
            graph = stack.load_graph()
            Ensure.invariant(
                not graph.is_tracked(new_base),
                f"'{new_base}' is tracked; run 'stack untrack {new_base}' first",
            )
            write_base_branch_to_pyproject(stack.root, new_base)
            stack.store.set_base_branch(new_base)
            base_branch = new_base
            ctx.feedback.success(f"✓ Base branch set to '{new_base}'")
        else:
            ctx.feedback.info(f"Base branch: {base_branch}")
            ctx.feedback.info(f"Remote: {stack.config.remote}")

        if ctx.porcelain:
            emit_model(BaseResponse(base_branch=base_branch, remote=stack.config.remote))
