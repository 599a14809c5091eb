"""Application context with dependency injection."""

import sys
from dataclasses import dataclass, replace
from pathlib import Path

import click

from stacked.cli.output import user_output
from stacked.core.config import RepoConfig, resolve_repo_config
from stacked.core.errors import StackError
from stacked.core.git.abc import Git
from stacked.core.git.real import RealGit
from stacked.core.github.abc import GitHub
from stacked.core.github.real import RealGitHub
from stacked.core.repo_discovery import NoRepoSentinel, RepoContext, discover_repo_or_sentinel
from stacked.core.store.abc import RelationshipStore
from stacked.core.store.sqlite import SqlRelationshipStore
from stacked.core.user_feedback import InteractiveFeedback, SuppressedFeedback, UserFeedback


@dataclass(frozen=True)
class StackContext:
    """Immutable context holding all dependencies for stack operations.

    Created at the CLI entry point and threaded through every command.

    store and config are None only when running outside a repository; commands
    that need them go through stacked.cli.core.require_stack.
    """

    git: Git
    github: GitHub
    store: RelationshipStore | None
    feedback: UserFeedback
    cwd: Path  # Current working directory at CLI invocation
    repo: RepoContext | NoRepoSentinel
    config: RepoConfig | None
    porcelain: bool
    yes: bool
    debug: bool
    interactive: bool

    def with_flags(self, *, porcelain: bool, yes: bool, debug: bool) -> "StackContext":
        """Apply global command-line flags on top of an existing context."""
        feedback = self.feedback
        if porcelain and isinstance(feedback, InteractiveFeedback):
            feedback = SuppressedFeedback()
        return replace(
            self,
            porcelain=self.porcelain or porcelain,
            yes=self.yes or yes,
            debug=self.debug or debug,
            interactive=self.interactive and not porcelain,
            feedback=feedback,
        )

    @staticmethod
    def for_test(
        git: Git | None = None,
        github: GitHub | None = None,
        store: RelationshipStore | None = None,
        feedback: UserFeedback | None = None,
        cwd: Path | None = None,
        repo: RepoContext | NoRepoSentinel | None = None,
        config: RepoConfig | None = None,
        porcelain: bool = False,
        yes: bool = False,
        debug: bool = False,
        interactive: bool = False,
    ) -> "StackContext":
        """Create test context with optional pre-configured fakes.

        Args:
            git: Optional Git implementation. If None, creates empty FakeGit.
            github: Optional GitHub implementation. If None, creates empty FakeGitHub.
            store: Optional store. If None, creates an in-memory SqlRelationshipStore.
            feedback: Optional UserFeedback. If None, picks one from porcelain.
            cwd: Optional current working directory. If None, uses /test/repo.
            repo: Optional RepoContext or NoRepoSentinel. If None, a repo at cwd.
            config: Optional RepoConfig. If None, base 'main' and remote 'origin'.
            porcelain: Whether --porcelain is in effect
            yes: Whether --yes is in effect
            debug: Whether --debug is in effect
            interactive: Whether prompts may be shown (default False, as under CliRunner)

        Example:
            >>> git = FakeGit(commits={"m1": None}, branches={"main": "m1"})
            >>> ctx = StackContext.for_test(git=git)
            >>> runner.invoke(cli, ["ls"], obj=ctx)
        """
        from stacked.core.git.fake import FakeGit
        from stacked.core.github.fake import FakeGitHub

        if git is None:
            git = FakeGit()

        if github is None:
            github = FakeGitHub()

        if cwd is None:
            cwd = Path("/test/repo")

        if repo is None:
            repo = RepoContext(root=cwd, git_common_dir=cwd / ".git")

        if store is None:
            store = SqlRelationshipStore.in_memory()

        if config is None:
            config = RepoConfig(base_branch="main", remote="origin")

        if feedback is None:
            feedback = SuppressedFeedback() if porcelain else InteractiveFeedback()

        return StackContext(
            git=git,
            github=github,
            store=store,
            feedback=feedback,
            cwd=cwd,
            repo=repo,
            config=config,
            porcelain=porcelain,
            yes=yes,
            debug=debug,
            interactive=interactive and not porcelain,
        )


def safe_cwd() -> tuple[Path | None, str | None]:
    """Get current working directory, detecting if it no longer exists.

    Returns:
        (path, None) on success, (None, error_message) if the directory is gone
    """
    try:
        return (Path.cwd(), None)
    except (FileNotFoundError, OSError):
        return (None, "Current working directory no longer exists")


def create_context(
    *, porcelain: bool = False, yes: bool = False, debug: bool = False
) -> StackContext:
    """Create production context with real implementations.

    Called at the CLI entry point. Outside a repository the store and config
    are left unset so that repository-independent commands still run.
    """
    # 1. Capture cwd (no deps)
    cwd_result, error_msg = safe_cwd()
    if cwd_result is None:
        assert error_msg is not None
        user_output(click.style("Error: ", fg="red") + error_msg)
        raise SystemExit(1)
    cwd = cwd_result

    # 2. Create gateways
    git: Git = RealGit()
    github: GitHub = RealGitHub()

    # 3. Discover repo, open its store, resolve config
    repo = discover_repo_or_sentinel(cwd, git)
    store: RelationshipStore | None = None
    config: RepoConfig | None = None
    if isinstance(repo, RepoContext):
        store = SqlRelationshipStore.open(repo.git_common_dir)
        try:
            config = resolve_repo_config(git, store, repo.root)
        except StackError as e:
            user_output(click.style("Error: ", fg="red") + e.message)
            raise SystemExit(1) from e

    # 4. Choose feedback implementation based on mode
    feedback: UserFeedback
    if porcelain:
        feedback = SuppressedFeedback()
    else:
        feedback = InteractiveFeedback()

    return StackContext(
        git=git,
        github=github,
        store=store,
        feedback=feedback,
        cwd=cwd,
        repo=repo,
        config=config,
        porcelain=porcelain,
        yes=yes,
        debug=debug,
        interactive=not porcelain and sys.stdin.isatty(),
    )
