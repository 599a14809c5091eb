from collections.abc import Sequence

import click

from stacked.cli.core import require_stack
from stacked.cli.errors import handle_stack_errors
from stacked.cli.json_output import emit_model
from stacked.cli.json_schemas import DoctorResponse, IntegrityIssueInfo
from stacked.cli.rendering import render_integrity_issues
from stacked.core.context import StackContext
from stacked.core.integrity import IntegrityIssue, repair, scan_records


def _issue_infos(issues: Sequence[IntegrityIssue]) -> list[IntegrityIssueInfo]:
    return [
        IntegrityIssueInfo(code=issue.code, branch=issue.branch, message=issue.message)
        for issue in issues
    ]


@click.command("doctor")
@click.option("--fix", is_flag=True, help="Repair the issues found.")
@click.pass_obj
def doctor_cmd(ctx: StackContext, fix: bool) -> None:
    """Check the branch records for corruption.

    Reports cycles, missing parents, branches gone from git and incomplete
    pull request caches. With --fix they are repaired in one write.
    """
    with handle_stack_errors(ctx):
        stack = require_stack(ctx)
        local = set(ctx.git.list_local_branches(stack.root))

        if fix:
            report = repair(stack.store, stack.base_branch, local)
            issues = list(report.issues)
            actions = list(report.actions)
        else:
            issues = scan_records(stack.store.list_records(), stack.base_branch, local)
            actions = []

        if not issues:
            ctx.feedback.success("✓ No issues found")
        else:
            if not ctx.porcelain:
                render_integrity_issues(issues)
            if fix:
                for action in actions:
                    ctx.feedback.info(f"  - {action}")
                ctx.feedback.success(f"✓ Repaired {len(issues)} issue(s)")
            else:
                ctx.feedback.warning(
                    f"found {len(issues)} issue(s); run 'stack doctor --fix' to repair them"
                )

        if ctx.porcelain:
            emit_model(
                DoctorResponse(healthy=not issues, issues=_issue_infos(issues), actions=actions)
            )
