"""Parsing helpers for gh CLI output and GitHub URLs."""

import re
from typing import Any, cast

from stacked.core.branch_graph import PrState
from stacked.core.github.types import PullRequestInfo

PR_JSON_FIELDS = ",".join(
    [
        "number",
        "state",
        "url",
        "title",
        "isDraft",
        "baseRefName",
        "headRefName",
        "headRefOid",
        "headRepositoryOwner",
        "mergeCommit",
        "body",
    ]
)

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_PR_URL = re.compile(r"^https?://[^/]+/(?P<owner>[^/]+)/(?P<repo>[^/]+)/pull/\d+")
_SSH_REMOTE = re.compile(r"^(?:ssh://)?git@(?P<host>[^:/]+)[:/](?P<path>.+?)(?:\.git)?/?$")
_HTTPS_REMOTE = re.compile(r"^https?://(?:[^@/]+@)?(?P<host>[^/]+)/(?P<path>.+?)(?:\.git)?/?$")


def clean_gh_json_output(raw: str) -> str:
    """Strip ANSI color sequences and stray control characters from gh output."""
    return _CONTROL_CHARS.sub("", _ANSI_ESCAPE.sub("", raw))


def repo_slug_from_pr_url(url: str) -> str | None:
    """'owner/repo' from a pull request URL."""
    match = _PR_URL.match(url)
    if match is None:
        return None
    return f"{match.group('owner')}/{match.group('repo')}"


def repo_root_from_pr_url(url: str) -> str | None:
    """'https://github.com/owner/repo' from a pull request URL."""
    marker = url.find("/pull/")
    if marker == -1:
        return None
    return url[:marker]


def parse_remote_to_web_url(remote_url: str) -> str | None:
    """Convert a git remote URL (ssh or https) into its https web URL.

    Example:
        >>> parse_remote_to_web_url("git@github.com:acme/repo.git")
        'https://github.com/acme/repo'
    """
    remote_url = remote_url.strip()
    for pattern in (_SSH_REMOTE, _HTTPS_REMOTE):
        match = pattern.match(remote_url)
        if match is not None:
            return f"https://{match.group('host')}/{match.group('path')}"
    return None


def parse_pull_request(data: dict[str, Any]) -> PullRequestInfo:
    """Build PullRequestInfo from one `gh pr ... --json PR_JSON_FIELDS` object.

    Raises:
        KeyError: if a required field is missing
    """
    url = data["url"]
    base_repo = repo_slug_from_pr_url(url) or ""
    repo_name = base_repo.split("/", 1)[1] if "/" in base_repo else ""

    owner = data.get("headRepositoryOwner") or {}
    owner_login = owner.get("login") if isinstance(owner, dict) else None
    head_repo = f"{owner_login}/{repo_name}" if owner_login else base_repo

    merge_commit = data.get("mergeCommit") or {}
    merge_oid = merge_commit.get("oid") if isinstance(merge_commit, dict) else None

    return PullRequestInfo(
        number=int(data["number"]),
        state=cast(PrState, str(data["state"]).upper()),
        url=url,
        head_ref=data["headRefName"],
        base_ref=data["baseRefName"],
        head_repo=head_repo,
        base_repo=base_repo,
        merge_commit=merge_oid,
        head_commit=data.get("headRefOid"),
        body=data.get("body"),
        title=data.get("title"),
        is_draft=bool(data.get("isDraft", False)),
    )


def select_preferred_pr(prs: list[PullRequestInfo]) -> PullRequestInfo | None:
    """Pick one pull request for a head branch: newest open, else newest of any state."""
    if not prs:
        return None
    open_prs = [pr for pr in prs if pr.is_open]
    if open_prs:
        return max(open_prs, key=lambda pr: pr.number)
    return max(prs, key=lambda pr: pr.number)
