import click

from stacked.cli.core import repo_web_url, require_stack
from stacked.cli.errors import handle_stack_errors
from stacked.cli.json_output import emit_model
from stacked.cli.json_schemas import SyncResponse, SyncStepInfo
from stacked.cli.rendering import render_sync_plan
from stacked.cli.selection import confirm
from stacked.core.context import StackContext
from stacked.core.sync_executor import StepReport, SyncResult, execute_sync_plan
from stacked.core.sync_planner import SyncPlan, build_sync_plan


def _step_infos(plan: SyncPlan, reports: list[StepReport] | None) -> list[SyncStepInfo]:
    infos: list[SyncStepInfo] = []
    for index, step in enumerate(plan.steps):
        infos.append(
            SyncStepInfo(
                kind=step.kind,
                description=step.describe(),
                branch=getattr(step, "branch", None),
                state=reports[index].state.value if reports is not None else None,
            )
        )
    return infos


def _emit(
    ctx: StackContext, status: str, plan: SyncPlan, result: SyncResult | None = None
) -> None:
    if not ctx.porcelain:
        return
    warnings = list(plan.warnings)
    if result is not None:
        warnings.extend(result.warnings)
    emit_model(
        SyncResponse(
            status=status,
            steps=_step_infos(plan, result.reports if result is not None else None),
            restacked=result.restacked if result is not None else [],
            retired=result.retired if result is not None else [],
            warnings=warnings,
        )
    )


@click.command("sync")
@click.option("-n", "--dry-run", is_flag=True, help="Print the plan without applying it.")
@click.pass_obj
def sync_cmd(ctx: StackContext, dry_run: bool) -> None:
    """Restack every tracked branch onto its parent.

    Merged pull requests are folded in: the base branch advances to the merge
    commit, children move onto it, and the merged branch stops being tracked.
    Open pull request bodies get their stack section refreshed.

    The plan is printed first and applied after confirmation (or with --yes).
    """
    with handle_stack_errors(ctx):
        stack = require_stack(ctx)
        graph = stack.load_graph()

        plan = build_sync_plan(
            ctx.git,
            ctx.github,
            stack.root,
            graph,
            remote=stack.config.remote,
            base_url=repo_web_url(ctx, stack),
        )
        for warning in plan.warnings:
            ctx.feedback.warning(warning)

        if plan.is_empty:
            ctx.feedback.success("✓ Stack is up to date")
            _emit(ctx, "up_to_date", plan)
            return

        if not ctx.porcelain:
            render_sync_plan(plan)

        if dry_run:
            ctx.feedback.info("Dry run: nothing was changed")
            _emit(ctx, "planned", plan)
            return

        if not confirm(ctx, "Apply this plan?"):
            ctx.feedback.warning("sync plan not applied; rerun with --yes to apply it")
            _emit(ctx, "not_applied", plan)
            return

        result = execute_sync_plan(
            ctx.git,
            ctx.github,
            stack.store,
            stack.root,
            ctx.cwd,
            graph,
            plan,
            ctx.feedback,
        )

        if not ctx.porcelain:
            render_sync_plan(plan, result.reports)
        if result.restacked:
            ctx.feedback.success(f"✓ Restacked {', '.join(result.restacked)}")
        if result.retired:
            ctx.feedback.success(f"✓ Stopped tracking merged {', '.join(result.retired)}")
        _emit(ctx, "applied", plan, result)
