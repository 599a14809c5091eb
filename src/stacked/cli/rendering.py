"""Human-readable rendering of plans, reports and the stack listing.

Tables are drawn with rich on stderr; the stack listing is plain text.
"""

from collections.abc import Collection, Iterator, Sequence

from rich.console import Console
from rich.table import Table

from stacked.cli.output import user_output
from stacked.core.branch_graph import BranchGraph
from stacked.core.integrity import IntegrityIssue
from stacked.core.sync_executor import StepReport, StepState
from stacked.core.sync_planner import SyncPlan

_STATE_STYLES = {
    StepState.APPLIED: "green",
    StepState.SKIPPED: "dim",
    StepState.CONFLICTED: "red",
}


def _console() -> Console:
    return Console(stderr=True, width=120)


def render_sync_plan(plan: SyncPlan, reports: Sequence[StepReport] | None = None) -> None:
    """Print the plan as a table, with each step's state once it has run."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("step")
    table.add_column("details")
    if reports is not None:
        table.add_column("state")

    for index, step in enumerate(plan.steps):
        row = [str(index + 1), step.kind, step.describe()]
        if reports is not None:
            state = reports[index].state
            style = _STATE_STYLES.get(state, "")
            row.append(f"[{style}]{state.value}[/{style}]" if style else state.value)
        table.add_row(*row)

    console = _console()
    console.print(table)


def render_integrity_issues(issues: Sequence[IntegrityIssue]) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("issue", style="yellow")
    table.add_column("branch")
    table.add_column("details")
    for issue in issues:
        table.add_row(issue.code, issue.branch, issue.message)
    _console().print(table)


def _depth_first(graph: BranchGraph, name: str) -> Iterator[str]:
    for child in graph.children(name):
        yield child
        yield from _depth_first(graph, child)


def render_stack(
    graph: BranchGraph, current: str | None, local_branches: Collection[str]
) -> list[str]:
    """Plain indented listing, parents before children.

    Example:
        main
          feat/a (#12 OPEN)
            feat/b *
    """
    lines = [graph.base_branch + (" *" if current == graph.base_branch else "")]
    for name in _depth_first(graph, graph.base_branch):
        record = graph.get(name)
        assert record is not None
        text = "  " * graph.depth(name) + name
        if record.pr_cache is not None:
            text += f" (#{record.pr_cache.number} {record.pr_cache.state})"
        if name not in local_branches:
            text += " [missing]"
        if name == current:
            text += " *"
        lines.append(text)
    return lines


def print_stack(
    graph: BranchGraph, current: str | None, local_branches: Collection[str]
) -> None:
    for line in render_stack(graph, current, local_branches):
        user_output(line)
