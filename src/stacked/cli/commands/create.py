import click

from stacked.cli.core import StackRepo, refresh_managed_pr_bodies, require_stack
from stacked.cli.ensure import Ensure
from stacked.cli.errors import handle_stack_errors
from stacked.cli.json_output import emit_model
from stacked.cli.json_schemas import CreateResponse
from stacked.cli.selection import select_branch
from stacked.core.branch_graph import BranchGraph
from stacked.core.context import StackContext
from stacked.core.errors import StackError


def _insert_target(ctx: StackContext, stack: StackRepo, graph: BranchGraph, value: str) -> str:
    """The child the new branch goes above; an empty value means pick one."""
    if value:
        Ensure.invariant(graph.is_tracked(value), f"Branch '{value}' is not tracked")
        return value

    current = ctx.git.get_current_branch(ctx.cwd)
    if current is not None and current in graph and graph.children(current):
        candidates = graph.children(current)
    else:
        candidates = [branch.name for branch in graph.branches()]
    present = [name for name in candidates if ctx.git.branch_exists(stack.root, name)]
    if not present:
        raise StackError("no tracked child branches are available; pass --insert CHILD")
    return select_branch(ctx, present, description="branch to insert above")


def _default_parent(ctx: StackContext, stack: StackRepo, graph: BranchGraph) -> str:
    current = ctx.git.get_current_branch(ctx.cwd)
    if current is not None and current in graph:
        return select_branch(ctx, [current], description="parent")
    candidates = [stack.base_branch, *(branch.name for branch in graph.branches())]
    return select_branch(ctx, candidates, description="parent for the new branch")


def _branch_name(ctx: StackContext, name: str | None) -> str:
    if name is not None:
        return name
    if not ctx.interactive:
        raise StackError("branch name required in non-interactive mode; pass --name")
    return click.prompt("Name for the new branch", err=True).strip()


@click.command("create")
@click.option("-p", "--parent", "parent_arg", help="Parent branch name.")
@click.option(
    "--insert",
    "insert_arg",
    is_flag=False,
    flag_value="",
    default=None,
    metavar="[CHILD]",
    help="Insert the new branch between CHILD and its parent.",
)
@click.option("-n", "--name", help="Name of the branch to create.")
@click.pass_obj
def create_cmd(
    ctx: StackContext, parent_arg: str | None, insert_arg: str | None, name: str | None
) -> None:
    """Create a new stacked branch and check it out.

    The branch starts at its parent's tip and is tracked right away. With
    --insert it is placed between a tracked branch and that branch's parent,
    and the affected pull request bodies are refreshed.
    """
    with handle_stack_errors(ctx):
        stack = require_stack(ctx)
        graph = stack.load_graph()

        child: str | None = None
        if insert_arg is not None:
            Ensure.invariant(parent_arg is None, "--insert cannot be combined with --parent")
            child = _insert_target(ctx, stack, graph, insert_arg)
            parent = graph.parent_of(child)
            assert parent is not None
        elif parent_arg is not None:
            Ensure.invariant(
                parent_arg in graph,
                f"Parent '{parent_arg}' is not tracked; run 'stack track {parent_arg}' first",
            )
            parent = parent_arg
        else:
            parent = _default_parent(ctx, stack, graph)

        Ensure.invariant(
            ctx.git.branch_exists(stack.root, parent),
            f"Parent branch '{parent}' does not exist",
        )
        new_branch = Ensure.truthy(_branch_name(ctx, name), "Branch name cannot be empty")
        Ensure.invariant(
            not ctx.git.branch_exists(stack.root, new_branch),
            f"Branch '{new_branch}' already exists",
        )
        Ensure.invariant(
            new_branch != child, f"New branch and --insert target are both '{new_branch}'"
        )

        ctx.git.create_branch(ctx.cwd, new_branch, parent)
        ctx.git.checkout_branch(ctx.cwd, new_branch)

        edits = [(new_branch, parent)]
        if child is not None:
            edits.append((child, new_branch))
        graph.apply_batch(edits)
        head = ctx.git.get_branch_head(stack.root, new_branch)
        if head is not None:
            graph.mark_synced(new_branch, head)
        stack.store.persist(graph)

        if child is not None:
            ctx.feedback.success(f"✓ Created '{new_branch}' between '{parent}' and '{child}'")
            refresh_managed_pr_bodies(ctx, stack, graph, [parent, child])
        else:
            ctx.feedback.success(f"✓ Created '{new_branch}' on '{parent}'")

        if ctx.porcelain:
            emit_model(CreateResponse(branch=new_branch, parent=parent, inserted_before=child))
