"""Managed section of pull request bodies.

Each open pull request in a stack carries a short block showing where it sits:

    <!-- stack:managed:start -->
    … → [#12](…/pull/12) → (this PR) → [feat/c](…/tree/feat/c) → …
    <hr />
    <!-- stack:managed:end -->

Only the text between the markers is owned by stack; anything the author wrote
around it is preserved.
"""

from collections.abc import Mapping
from dataclasses import dataclass

from stacked.core.branch_graph import BranchGraph
from stacked.core.github.types import PullRequestInfo

MANAGED_BODY_MARKER_START = "<!-- stack:managed:start -->"
MANAGED_BODY_MARKER_END = "<!-- stack:managed:end -->"


@dataclass(frozen=True)
class ManagedBranchRef:
    branch: str
    pr_number: int | None = None
    pr_url: str | None = None


def _format_node(root: str, node: ManagedBranchRef) -> str:
    if node.pr_number is not None:
        url = node.pr_url or f"{root}/pull/{node.pr_number}"
        return f"[#{node.pr_number}]({url})"
    return f"[{node.branch}]({root}/tree/{node.branch})"


def managed_pr_section(
    base_url: str,
    base_branch: str,
    *,
    parent: ManagedBranchRef | None,
    first_child: ManagedBranchRef | None,
) -> str:
    """Render the managed block for one pull request.

    Args:
        base_url: Web URL of the repository, e.g. https://github.com/acme/repo
        base_branch: Name of the stack's base branch
        parent: The pull request's parent branch; None means the base branch
        first_child: First child by name, if any
    """
    root = base_url.rstrip("/")

    if parent is None or parent.branch == base_branch:
        chain = f"[{base_branch}]({root}/tree/{base_branch})"
        prefix = ""
    else:
        chain = _format_node(root, parent)
        prefix = "… → "

    line = f"{prefix}{chain} → (this PR)"
    if first_child is not None:
        line += f" → {_format_node(root, first_child)} → …"
    return f"{MANAGED_BODY_MARKER_START}\n{line}\n<hr />\n{MANAGED_BODY_MARKER_END}"


def compose_pr_body(managed_section: str, user_body: str | None) -> str:
    """Managed block followed by the author's text, if any."""
    user = (user_body or "").strip()
    if not user:
        return managed_section
    return f"{managed_section}\n\n{user}"


def _managed_bounds(body: str) -> tuple[int, int] | None:
    start = body.find(MANAGED_BODY_MARKER_START)
    if start == -1:
        return None
    end_start = body.find(MANAGED_BODY_MARKER_END, start)
    if end_start == -1:
        return None
    return start, end_start + len(MANAGED_BODY_MARKER_END)


def merge_managed_section(existing_body: str | None, managed_section: str) -> str:
    """Replace the managed block inside existing_body, or prepend it if absent."""
    existing = (existing_body or "").strip()
    if not existing:
        return managed_section

    bounds = _managed_bounds(existing)
    if bounds is None:
        return f"{managed_section}\n\n{existing}"

    start, end = bounds
    parts = [existing[:start].rstrip(), managed_section, existing[end:].lstrip()]
    return "\n\n".join(part for part in parts if part)


def _branch_ref(
    graph: BranchGraph, branch: str, pull_requests: Mapping[str, PullRequestInfo]
) -> ManagedBranchRef:
    pr = pull_requests.get(branch)
    if pr is not None:
        return ManagedBranchRef(branch, pr.number, pr.url)
    record = graph.get(branch)
    if record is not None and record.pr_cache is not None:
        return ManagedBranchRef(branch, record.pr_cache.number, record.pr_cache.url)
    return ManagedBranchRef(branch)


def section_for_branch(
    graph: BranchGraph,
    branch: str,
    pull_requests: Mapping[str, PullRequestInfo],
    *,
    base_url: str,
) -> str:
    """Managed block for a tracked branch, using live PR data before cached data."""
    parent = graph.parent_of(branch)
    children = graph.children(branch)
    return managed_pr_section(
        base_url,
        graph.base_branch,
        parent=_branch_ref(graph, parent, pull_requests) if parent is not None else None,
        first_child=_branch_ref(graph, children[0], pull_requests) if children else None,
    )
