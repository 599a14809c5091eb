"""Real GitHub implementation using gh CLI.

This module provides a real implementation of the GitHub interface that uses
the gh CLI for all operations. It requires the gh CLI to be installed and
authenticated.
"""

import json
import logging
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from stacked.core.errors import ProviderError
from stacked.core.github.abc import GitHub
from stacked.core.github.parsing import (
    PR_JSON_FIELDS,
    clean_gh_json_output,
    parse_pull_request,
    select_preferred_pr,
)
from stacked.core.github.types import MergeStatus, PullRequestInfo

logger = logging.getLogger(__name__)

# gh pr list pages at 30 by default; one page this size covers a whole stack
BATCH_LIST_LIMIT = 200


def _run_subprocess_with_timeout(
    cmd: list[str],
    timeout: int = 30,
    capture_output: bool = True,
    text: bool = True,
    check: bool = False,
    cwd: Path | None = None,
) -> subprocess.CompletedProcess[str] | None:
    """Run subprocess with timeout, returning None on timeout."""
    try:
        return subprocess.run(
            cmd,
            timeout=timeout,
            capture_output=capture_output,
            text=text,
            check=check,
            cwd=cwd,
        )
    except subprocess.TimeoutExpired:
        return None


def _run_gh(cmd: list[str], operation_context: str, repo_root: Path, timeout: int = 30) -> str:
    """Run a gh command and return stdout, raising ProviderError on any failure."""
    logger.debug("Running %s", " ".join(cmd))
    try:
        result = _run_subprocess_with_timeout(cmd, timeout=timeout, cwd=repo_root)
    except FileNotFoundError as e:
        raise ProviderError(
            f"Failed to {operation_context}: gh CLI is not installed",
            detail=" ".join(cmd),
        ) from e

    if result is None:
        raise ProviderError(
            f"Failed to {operation_context}: gh timed out after {timeout}s",
            detail=" ".join(cmd),
        )
    if result.returncode != 0:
        raise ProviderError(
            f"Failed to {operation_context}",
            detail=f"Command: {' '.join(cmd)}\nExit code: {result.returncode}\n"
            f"stderr: {result.stderr.strip()}",
        )
    return result.stdout


def _load_json(raw: str, operation_context: str) -> Any:
    try:
        return json.loads(clean_gh_json_output(raw))
    except json.JSONDecodeError as e:
        raise ProviderError(
            f"Failed to parse gh output while trying to {operation_context}",
            detail=raw.strip(),
        ) from e


def _parse_pr_list(raw: str, operation_context: str) -> list[PullRequestInfo]:
    if not raw.strip():
        return []
    data = _load_json(raw, operation_context)
    try:
        return [parse_pull_request(item) for item in data]
    except (KeyError, TypeError, ValueError) as e:
        raise ProviderError(
            f"Unexpected gh output while trying to {operation_context}", detail=raw.strip()
        ) from e


class RealGitHub(GitHub):
    """Real implementation using gh CLI.

    This implementation calls the gh CLI for all GitHub operations.
    """

    def find_pull_request(
        self, repo_root: Path, head: str, base: str | None = None
    ) -> PullRequestInfo | None:
        cmd = ["gh", "pr", "list", "--state", "all", "--head", head, "--json", PR_JSON_FIELDS]
        if base is not None:
            cmd.extend(["--base", base])
        raw = _run_gh(cmd, f"look up pull requests for '{head}'", repo_root, timeout=10)
        prs = [pr for pr in _parse_pr_list(raw, "look up pull requests") if pr.head_ref == head]
        return select_preferred_pr(prs)

    def batch_list(
        self, repo_root: Path, branches: Sequence[str]
    ) -> dict[str, PullRequestInfo]:
        if not branches:
            return {}
        raw = _run_gh(
            [
                "gh",
                "pr",
                "list",
                "--state",
                "all",
                "--limit",
                str(BATCH_LIST_LIMIT),
                "--json",
                PR_JSON_FIELDS,
            ],
            "list pull requests",
            repo_root,
        )

        by_head: dict[str, list[PullRequestInfo]] = {}
        for pr in _parse_pr_list(raw, "list pull requests"):
            by_head.setdefault(pr.head_ref, []).append(pr)

        result: dict[str, PullRequestInfo] = {}
        for branch in branches:
            preferred = select_preferred_pr(by_head.get(branch, []))
            if preferred is not None:
                result[branch] = preferred
        return result

    def get_pull_request(self, repo_root: Path, number: int) -> PullRequestInfo | None:
        operation = f"look up pull request #{number}"
        try:
            raw = _run_gh(
                ["gh", "pr", "view", str(number), "--json", PR_JSON_FIELDS],
                operation,
                repo_root,
                timeout=10,
            )
        except ProviderError as e:
            if e.detail is not None and "Could not resolve to a PullRequest" in e.detail:
                return None
            raise
        data = _load_json(raw, operation)
        try:
            return parse_pull_request(data)
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(
                f"Unexpected gh output while trying to {operation}", detail=raw.strip()
            ) from e

    def create_pull_request(
        self,
        repo_root: Path,
        *,
        base: str,
        head: str,
        title: str,
        body: str,
        draft: bool,
    ) -> PullRequestInfo:
        cmd = ["gh", "pr", "create", "--base", base, "--head", head, "--title", title]
        cmd.extend(["--body", body])
        if draft:
            cmd.append("--draft")
        _run_gh(cmd, f"create pull request for '{head}'", repo_root, timeout=60)

        created = self.find_pull_request(repo_root, head, base)
        if created is None:
            raise ProviderError(f"Pull request for '{head}' was created but could not be found")
        return created

    def edit_body(self, repo_root: Path, number: int, body: str) -> None:
        _run_gh(
            ["gh", "pr", "edit", str(number), "--body", body],
            f"update body of pull request #{number}",
            repo_root,
        )

    def close(self, repo_root: Path, number: int, *, delete_branch: bool) -> None:
        cmd = ["gh", "pr", "close", str(number)]
        if delete_branch:
            cmd.append("--delete-branch")
        _run_gh(cmd, f"close pull request #{number}", repo_root)

    def merge_status(self, repo_root: Path, number: int) -> MergeStatus:
        raw = _run_gh(
            ["gh", "pr", "view", str(number), "--json", "state,mergeCommit"],
            f"get merge status of pull request #{number}",
            repo_root,
            timeout=10,
        )
        data = _load_json(raw, f"get merge status of pull request #{number}")
        state = str(data.get("state", "")).upper()
        if state == "MERGED":
            merge_commit = data.get("mergeCommit") or {}
            return MergeStatus("merged", merge_commit.get("oid"))
        if state == "CLOSED":
            return MergeStatus("closed")
        return MergeStatus("open")
