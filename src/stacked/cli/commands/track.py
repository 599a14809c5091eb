import click

from stacked.cli.core import StackRepo, require_stack, resolve_branch_argument
from stacked.cli.ensure import Ensure
from stacked.cli.errors import handle_stack_errors
from stacked.cli.json_output import emit_model
from stacked.cli.json_schemas import TrackedBranchInfo, TrackResponse
from stacked.cli.selection import select_branch
from stacked.core.branch_graph import BranchGraph
from stacked.core.context import StackContext
from stacked.core.errors import StackError
from stacked.core.parent_inference import infer_parent


def _infer(
    ctx: StackContext,
    stack: StackRepo,
    graph: BranchGraph,
    branch: str,
    local_branches: list[str],
    warnings: list[str],
) -> tuple[str, str] | None:
    """(parent, source) for branch, prompting on ties; None when nothing qualifies."""
    inference = infer_parent(
        ctx.git, ctx.github, stack.root, graph, branch, local_branches=local_branches
    )
    warnings.extend(inference.warnings)
    if inference.parent is not None:
        assert inference.source is not None
        return inference.parent, inference.source
    if inference.is_ambiguous:
        parent = select_branch(
            ctx, inference.candidates, description=f"parent of '{branch}'"
        )
        return parent, "git_ancestry"
    return None


def _replace_allowed(ctx: StackContext, branch: str, old: str, new: str, force: bool) -> bool:
    if ctx.yes or force:
        return True
    if ctx.interactive:
        return click.confirm(
            f"'{branch}' is stacked on '{old}'. Re-parent it onto '{new}'?",
            default=False,
            err=True,
        )
    raise StackError(
        f"'{branch}' is already tracked with parent '{old}'; "
        "pass --force or --yes to replace it"
    )


def _track_one(
    ctx: StackContext,
    stack: StackRepo,
    branch: str,
    parent_arg: str | None,
    infer: bool,
    dry_run: bool,
    force: bool,
) -> TrackResponse:
    graph = stack.load_graph()
    Ensure.invariant(
        branch != stack.base_branch,
        f"'{branch}' is the base branch; it is the root of the stack and is never tracked",
    )
    Ensure.invariant(
        ctx.git.branch_exists(stack.root, branch), f"Branch '{branch}' does not exist"
    )

    warnings: list[str] = []
    existing = graph.parent_of(branch)

    if parent_arg is not None:
        Ensure.invariant(
            parent_arg in graph,
            f"Parent '{parent_arg}' is not tracked; run 'stack track {parent_arg}' first",
        )
        parent, source = parent_arg, "explicit"
    elif existing is not None and not infer:
        ctx.feedback.info(f"'{branch}' is already tracked on '{existing}'")
        return TrackResponse(
            status="unchanged",
            branches=[TrackedBranchInfo(branch=branch, parent=existing, source="existing")],
        )
    else:
        local = ctx.git.list_local_branches(stack.root)
        inferred = _infer(ctx, stack, graph, branch, local, warnings)
        for warning in warnings:
            ctx.feedback.warning(warning)
        parent, source = Ensure.not_none(
            inferred, f"Could not infer a parent for '{branch}'; pass --parent"
        )
        Ensure.invariant(
            parent in graph,
            f"Inferred parent '{parent}' is not tracked; track it first or use --all",
        )

    if existing == parent:
        ctx.feedback.info(f"'{branch}' is already tracked on '{parent}'")
        return TrackResponse(
            status="unchanged",
            branches=[TrackedBranchInfo(branch=branch, parent=parent, source="existing")],
            warnings=warnings,
        )

    if existing is not None and not _replace_allowed(ctx, branch, existing, parent, force):
        ctx.feedback.info(f"Kept '{branch}' on '{existing}'")
        return TrackResponse(
            status="unchanged",
            branches=[TrackedBranchInfo(branch=branch, parent=existing, source="existing")],
            warnings=warnings,
        )

    info = TrackedBranchInfo(branch=branch, parent=parent, source=source)
    graph.set_parent(branch, parent)
    if dry_run:
        ctx.feedback.info(f"Would track '{branch}' on '{parent}' ({source})")
        return TrackResponse(status="planned", branches=[info], warnings=warnings)

    stack.store.persist(graph)
    ctx.feedback.success(f"✓ Tracking '{branch}' on '{parent}'")
    return TrackResponse(status="tracked", branches=[info], warnings=warnings)


def _track_all(ctx: StackContext, stack: StackRepo, dry_run: bool) -> TrackResponse:
    """Track every untracked local branch, parents before children, in one write."""
    graph = stack.load_graph()
    local = ctx.git.list_local_branches(stack.root)
    remaining = sorted(
        name for name in local if name != stack.base_branch and not graph.is_tracked(name)
    )

    warnings: list[str] = []
    tracked: list[TrackedBranchInfo] = []
    working = graph.copy()
    progress = True
    while remaining and progress:
        progress = False
        for branch in list(remaining):
            inferred = _infer(ctx, stack, working, branch, local, warnings)
            if inferred is None:
                warnings.append(f"skipping '{branch}': no parent could be inferred")
                remaining.remove(branch)
                continue
            parent, source = inferred
            if parent not in working:
                continue
            working.set_parent(branch, parent)
            tracked.append(TrackedBranchInfo(branch=branch, parent=parent, source=source))
            remaining.remove(branch)
            progress = True

    for branch in remaining:
        warnings.append(f"skipping '{branch}': its inferred parent could not be tracked")
    for warning in dict.fromkeys(warnings):
        ctx.feedback.warning(warning)

    if not tracked:
        ctx.feedback.info("No untracked branches to track")
        return TrackResponse(status="unchanged", branches=[], warnings=warnings)

    for info in tracked:
        verb = "Would track" if dry_run else "Tracking"
        ctx.feedback.info(f"{verb} '{info.branch}' on '{info.parent}' ({info.source})")
    if dry_run:
        return TrackResponse(status="planned", branches=tracked, warnings=warnings)

    graph.apply_batch([(info.branch, info.parent) for info in tracked])
    stack.store.persist(graph)
    ctx.feedback.success(f"✓ Tracked {len(tracked)} branch(es)")
    return TrackResponse(status="tracked", branches=tracked, warnings=warnings)


@click.command("track")
@click.argument("branch", required=False)
@click.option("--all", "track_all", is_flag=True, help="Track all local non-base branches.")
@click.option("-p", "--parent", "parent_arg", help="Parent branch name.")
@click.option("--infer", is_flag=True, help="Infer the parent even if already tracked.")
@click.option("-n", "--dry-run", is_flag=True, help="Preview without changing anything.")
@click.option(
    "-f", "--force", is_flag=True, help="Replace an existing parent in non-interactive mode."
)
@click.pass_obj
def track_cmd(
    ctx: StackContext,
    branch: str | None,
    track_all: bool,
    parent_arg: str | None,
    infer: bool,
    dry_run: bool,
    force: bool,
) -> None:
    """Start tracking BRANCH (default: the current branch).

    Without --parent the parent is inferred: an open pull request's base
    first, then commit ancestry. Ties are prompted for, or reported as an
    error when prompting is not possible.
    """
    with handle_stack_errors(ctx):
        stack = require_stack(ctx)
        if track_all:
            Ensure.invariant(
                branch is None and parent_arg is None,
                "--all cannot be combined with a branch or --parent",
            )
            response = _track_all(ctx, stack, dry_run)
        else:
            target = resolve_branch_argument(ctx, branch)
            response = _track_one(ctx, stack, target, parent_arg, infer, dry_run, force)

        if ctx.porcelain:
            emit_model(response)
