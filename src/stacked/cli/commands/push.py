import click

from stacked.cli.core import push_remote_for, require_stack
from stacked.cli.errors import handle_stack_errors
from stacked.cli.json_output import emit_model
from stacked.cli.json_schemas import PushedBranchInfo, PushResponse
from stacked.core.context import StackContext


@click.command("push")
@click.option("-n", "--dry-run", is_flag=True, help="List what would be pushed.")
@click.pass_obj
def push_cmd(ctx: StackContext, dry_run: bool) -> None:
    """Force-push every tracked branch to its remote (with lease).

    Branches whose pull request is cached as merged, and branches missing
    locally, are skipped with a warning.
    """
    with handle_stack_errors(ctx):
        stack = require_stack(ctx)
        graph = stack.load_graph()

        to_push: list[PushedBranchInfo] = []
        skipped_missing: list[str] = []
        skipped_merged: list[str] = []
        for record in sorted(graph.branches(), key=lambda b: b.name):
            if record.pr_cache is not None and record.pr_cache.state == "MERGED":
                ctx.feedback.warning(f"skipping '{record.name}': its pull request is merged")
                skipped_merged.append(record.name)
                continue
            if not ctx.git.branch_exists(stack.root, record.name):
                ctx.feedback.warning(f"skipping '{record.name}': branch is missing locally")
                skipped_missing.append(record.name)
                continue
            remote = push_remote_for(ctx, stack, record.name)
            to_push.append(PushedBranchInfo(branch=record.name, remote=remote))

        if dry_run:
            for info in to_push:
                ctx.feedback.info(f"Would push '{info.branch}' to '{info.remote}'")
        else:
            for info in to_push:
                ctx.git.push_branch(stack.root, info.remote, info.branch)
                ctx.feedback.info(f"Pushed '{info.branch}' to '{info.remote}'")
            if to_push:
                ctx.feedback.success(f"✓ Pushed {len(to_push)} branch(es)")
            else:
                ctx.feedback.info("Nothing to push")

        if ctx.porcelain:
            emit_model(
                PushResponse(
                    status="planned" if dry_run else "pushed",
                    pushed=to_push,
                    skipped_missing=skipped_missing,
                    skipped_merged=skipped_merged,
                )
            )
