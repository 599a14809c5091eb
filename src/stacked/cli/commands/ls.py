import click

from stacked.cli.core import require_stack
from stacked.cli.errors import handle_stack_errors
from stacked.cli.json_output import emit_model
from stacked.cli.json_schemas import LsResponse, StackBranchInfo
from stacked.cli.rendering import print_stack
from stacked.core.context import StackContext


@click.command("ls")
@click.pass_obj
def ls_cmd(ctx: StackContext) -> None:
    """List the tracked branches as a tree rooted at the base branch."""
    with handle_stack_errors(ctx):
        stack = require_stack(ctx)
        graph = stack.load_graph()
        current = ctx.git.get_current_branch(ctx.cwd)
        local = set(ctx.git.list_local_branches(stack.root))

        if not ctx.porcelain:
            print_stack(graph, current, local)
            return

        branches: list[StackBranchInfo] = []
        for name in graph.topological_order():
            record = graph.get(name)
            assert record is not None
            cache = record.pr_cache
            branches.append(
                StackBranchInfo(
                    name=name,
                    parent=record.parent,
                    depth=graph.depth(name),
                    current=name == current,
                    present=name in local,
                    pr_number=cache.number if cache is not None else None,
                    pr_state=cache.state if cache is not None else None,
                )
            )
        emit_model(LsResponse(base_branch=graph.base_branch, branches=branches))
