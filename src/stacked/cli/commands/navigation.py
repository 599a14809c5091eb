"""Move between branches of the stack: up, down, top, bottom."""

import click

from stacked.cli.core import StackRepo, require_current_branch, require_stack
from stacked.cli.ensure import Ensure
from stacked.cli.errors import handle_stack_errors
from stacked.cli.json_output import emit_model
from stacked.cli.json_schemas import NavigationResponse
from stacked.cli.selection import select_branch
from stacked.core.branch_graph import BranchGraph
from stacked.core.context import StackContext


def _go_to(ctx: StackContext, stack: StackRepo, target: str) -> None:
    """Check out target, or just print it under --porcelain."""
    if ctx.porcelain:
        emit_model(NavigationResponse(branch=target))
        return
    Ensure.invariant(
        ctx.git.branch_exists(stack.root, target),
        f"Branch '{target}' does not exist locally",
    )
    ctx.git.checkout_branch(ctx.cwd, target)
    ctx.feedback.success(f"✓ Switched to '{target}'")


def _tracked_current(ctx: StackContext, graph: BranchGraph) -> str:
    current = require_current_branch(ctx)
    Ensure.invariant(
        current in graph,
        f"'{current}' is not tracked; run 'stack track' first",
    )
    return current


@click.command("up")
@click.pass_obj
def up_cmd(ctx: StackContext) -> None:
    """Check out a child of the current branch."""
    with handle_stack_errors(ctx):
        stack = require_stack(ctx)
        graph = stack.load_graph()
        current = _tracked_current(ctx, graph)
        children = graph.children(current)
        Ensure.truthy(children, f"'{current}' has no children; already at the top")
        target = select_branch(ctx, children, description=f"child of '{current}'")
        _go_to(ctx, stack, target)


@click.command("down")
@click.pass_obj
def down_cmd(ctx: StackContext) -> None:
    """Check out the parent of the current branch."""
    with handle_stack_errors(ctx):
        stack = require_stack(ctx)
        graph = stack.load_graph()
        current = _tracked_current(ctx, graph)
        Ensure.invariant(
            current != graph.base_branch, f"'{current}' is the base branch; nothing below it"
        )
        parent = graph.parent_of(current)
        assert parent is not None
        Ensure.invariant(
            parent != graph.base_branch,
            f"'{current}' is already at the bottom of the stack (its parent is the base branch)",
        )
        _go_to(ctx, stack, parent)


@click.command("top")
@click.pass_obj
def top_cmd(ctx: StackContext) -> None:
    """Check out the leaf above the current branch, choosing at each fork."""
    with handle_stack_errors(ctx):
        stack = require_stack(ctx)
        graph = stack.load_graph()
        current = _tracked_current(ctx, graph)

        target = current
        while children := graph.children(target):
            if len(children) == 1:
                target = children[0]
            else:
                target = select_branch(ctx, children, description=f"child of '{target}'")
        Ensure.invariant(target != current, f"'{current}' is already at the top of the stack")
        _go_to(ctx, stack, target)


@click.command("bottom")
@click.pass_obj
def bottom_cmd(ctx: StackContext) -> None:
    """Check out the branch of this stack that sits directly on the base branch."""
    with handle_stack_errors(ctx):
        stack = require_stack(ctx)
        graph = stack.load_graph()
        current = _tracked_current(ctx, graph)
        Ensure.invariant(
            current != graph.base_branch, f"'{current}' is the base branch; nothing below it"
        )

        # ancestors ends with the base branch, so the entry before it is the bottom
        target = graph.ancestors(current)[-2]
        Ensure.invariant(target != current, f"'{current}' is already at the bottom of the stack")
        _go_to(ctx, stack, target)
