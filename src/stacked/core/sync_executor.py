"""Apply a sync plan against the version-control and provider ports.

Steps run strictly in plan order. Each restack is persisted as soon as it is
confirmed applied, so a conflict halfway through leaves every earlier step
committed and the rest untouched. The checked-out branch and any uncommitted
work are restored on every exit path.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from stacked.core.branch_graph import BranchGraph
from stacked.core.errors import ConflictError, VersionControlError
from stacked.core.git.abc import Git, RewriteResult
from stacked.core.github.abc import GitHub
from stacked.core.store.abc import RelationshipStore
from stacked.core.sync_planner import (
    BaseAdvanceStep,
    FetchStep,
    RecordSyncedStep,
    RefreshMetadataStep,
    RestackStep,
    RetireBranchStep,
    SyncPlan,
    SyncStep,
    UpdatePrBodyStep,
)
from stacked.core.user_feedback import UserFeedback

logger = logging.getLogger(__name__)

STASH_MESSAGE = "stack sync: autostash"

_ROOT_COMMIT_REPLAY_ERROR = "replaying down to root commit is not supported yet"


class StepState(Enum):
    PENDING = "pending"
    APPLYING = "applying"
    APPLIED = "applied"
    CONFLICTED = "conflicted"
    SKIPPED = "skipped"


@dataclass
class StepReport:
    index: int
    step: SyncStep
    state: StepState = StepState.PENDING
    detail: str = ""


@dataclass
class SyncResult:
    reports: list[StepReport]
    warnings: list[str] = field(default_factory=list)
    run_id: int | None = None

    @property
    def restacked(self) -> list[str]:
        """Branches whose restack step was applied, in order."""
        return [
            report.step.branch
            for report in self.reports
            if isinstance(report.step, RestackStep) and report.state == StepState.APPLIED
        ]

    @property
    def retired(self) -> list[str]:
        return [
            report.step.branch
            for report in self.reports
            if isinstance(report.step, RetireBranchStep) and report.state == StepState.APPLIED
        ]


def summarize_replay_error(detail: str) -> str:
    """Short, user-facing summary of a failed git replay."""
    if _ROOT_COMMIT_REPLAY_ERROR in detail:
        return "cannot replay down to the root commit"
    return "git replay command failed"


@contextmanager
def restore_checkout(git: Git, cwd: Path, feedback: UserFeedback) -> Iterator[str | None]:
    """Switch back to the branch checked out on entry, however the block exits.

    A restore failure while another exception is propagating is reported as a
    warning so the original error reaches the caller.
    """
    start = git.get_current_branch(cwd)
    logger.debug("Starting branch: %s", start)
    failing = False
    try:
        yield start
    except BaseException:
        failing = True
        raise
    finally:
        if start is not None and git.get_current_branch(cwd) != start:
            try:
                git.checkout_branch(cwd, start)
            except VersionControlError as e:
                if not failing:
                    raise
                logger.debug("Restoring %s failed: %s", start, e.detail)
                feedback.warning(f"could not switch back to '{start}': {e.message}")


@contextmanager
def autostash(git: Git, cwd: Path, feedback: UserFeedback) -> Iterator[bool]:
    """Stash uncommitted changes for the duration of the block."""
    stashed = False
    if git.has_uncommitted_changes(cwd):
        stashed = git.stash_push(cwd, STASH_MESSAGE)
        if stashed:
            feedback.info("Stashed uncommitted changes")
    try:
        yield stashed
    finally:
        if stashed:
            try:
                git.stash_pop(cwd)
            except VersionControlError as e:
                logger.debug("Stash pop failed: %s", e.detail)
                feedback.warning(
                    "could not restore stashed changes; they are kept in 'git stash list'"
                )


class _Executor:
    def __init__(
        self,
        git: Git,
        github: GitHub,
        store: RelationshipStore,
        repo_root: Path,
        graph: BranchGraph,
        plan: SyncPlan,
        feedback: UserFeedback,
    ) -> None:
        self.git = git
        self.github = github
        self.store = store
        self.repo_root = repo_root
        self.graph = graph
        self.plan = plan
        self.feedback = feedback
        self.result = SyncResult(
            reports=[StepReport(index, step) for index, step in enumerate(plan.steps)]
        )

    def warn(self, message: str) -> None:
        self.result.warnings.append(message)
        self.feedback.warning(message)

    def transition(self, report: StepReport, state: StepState, detail: str = "") -> None:
        logger.debug(
            "Step %d (%s): %s -> %s", report.index, report.step.kind, report.state.value,
            state.value,
        )
        report.state = state
        report.detail = detail

    def run(self) -> None:
        for report in self.result.reports:
            self.transition(report, StepState.APPLYING)
            step = report.step
            if isinstance(step, FetchStep):
                self.git.fetch(self.repo_root, step.remote)
                self.transition(report, StepState.APPLIED)
            elif isinstance(step, BaseAdvanceStep):
                self.advance_base(report, step)
            elif isinstance(step, RestackStep):
                self.restack(report, step)
            elif isinstance(step, RecordSyncedStep):
                for branch, commit in step.commits:
                    self.graph.mark_synced(branch, commit)
                self.store.persist(self.graph)
                self.transition(report, StepState.APPLIED)
            elif isinstance(step, RefreshMetadataStep):
                for branch, cache in step.caches:
                    self.graph.set_pr_cache(branch, cache)
                self.store.persist(self.graph)
                self.transition(report, StepState.APPLIED)
            elif isinstance(step, UpdatePrBodyStep):
                self.github.edit_body(self.repo_root, step.pr_number, step.body)
                self.transition(report, StepState.APPLIED)
            elif isinstance(step, RetireBranchStep):
                self.graph.splice_remove(step.branch)
                self.store.persist(self.graph)
                self.transition(report, StepState.APPLIED)

    def advance_base(self, report: StepReport, step: BaseAdvanceStep) -> None:
        if self.git.resolve_commit(self.repo_root, step.commit) is None:
            self.warn(f"merge commit {step.commit[:12]} of #{step.pr_number} is not available")
            self.transition(report, StepState.SKIPPED, "merge commit missing")
            return
        if self.git.is_ancestor(self.repo_root, step.commit, step.branch):
            self.transition(report, StepState.SKIPPED, "already contains merge commit")
            return
        if not self.git.is_ancestor(self.repo_root, step.branch, step.commit):
            self.warn(
                f"'{step.branch}' has diverged from {step.commit[:12]}; not advancing it"
            )
            self.transition(report, StepState.SKIPPED, "not a fast-forward")
            return
        self.git.advance_branch(self.repo_root, step.branch, step.commit)
        self.transition(report, StepState.APPLIED)

    def restack(self, report: StepReport, step: RestackStep) -> None:
        new_base = self.git.resolve_commit(self.repo_root, step.new_base)
        if new_base is None:
            raise VersionControlError(
                f"cannot resolve '{step.new_base}' while restacking '{step.branch}'"
            )

        result = self.rewrite(step, new_base)
        if result.status == "conflict":
            self.transition(report, StepState.CONFLICTED, result.detail)
            pending = [
                other.step.branch
                for other in self.result.reports[report.index + 1 :]
                if isinstance(other.step, RestackStep)
            ]
            raise ConflictError(
                step.branch,
                step_index=report.index,
                total_steps=len(self.result.reports),
                pending=pending,
                detail=result.detail,
            )

        head = result.new_head or self.git.get_branch_head(self.repo_root, step.branch)
        if head is None:
            raise VersionControlError(f"'{step.branch}' has no head after restacking")

        if step.new_parent is not None:
            self.graph.set_parent(step.branch, step.new_parent)
        self.graph.mark_synced(step.branch, head)
        self.store.persist(self.graph)

        state = StepState.APPLIED if result.status == "applied" else StepState.SKIPPED
        self.transition(report, state, result.status)

    def rewrite(self, step: RestackStep, new_base: str) -> RewriteResult:
        if step.fast_forward_only:
            return self.git.rebase_onto(
                self.repo_root, step.branch, old_base=step.old_base, new_base=new_base
            )

        result = self.git.replay(
            self.repo_root, step.branch, old_base=step.old_base, new_base=new_base
        )
        if result.status == "unsupported":
            # checked-out branches and older gits land here on every sync
            logger.debug(
                "Replay unsupported for %s, rebasing instead: %s", step.branch, result.detail
            )
        elif result.status == "failed":
            logger.debug("Replay failed for %s: %s", step.branch, result.detail)
            self.warn(
                f"{summarize_replay_error(result.detail)} for '{step.branch}'; "
                "falling back to rebase"
            )
        else:
            return result

        return self.git.rebase_onto(
            self.repo_root, step.branch, old_base=step.old_base, new_base=new_base
        )

    def summary(self) -> dict[str, Any]:
        return {
            "steps": len(self.result.reports),
            "applied": [
                report.step.kind
                for report in self.result.reports
                if report.state == StepState.APPLIED
            ],
            "restacked": self.result.restacked,
            "retired": self.result.retired,
            "warnings": list(self.result.warnings),
        }


def execute_sync_plan(
    git: Git,
    github: GitHub,
    store: RelationshipStore,
    repo_root: Path,
    cwd: Path,
    graph: BranchGraph,
    plan: SyncPlan,
    feedback: UserFeedback,
) -> SyncResult:
    """Run every step of plan, mutating graph and persisting after each step.

    Args:
        git: Version-control port
        github: Provider port; body edits fail closed
        store: Relationship store receiving each checkpoint
        repo_root: Repository root
        cwd: Working directory whose checkout is restored afterwards
        graph: Graph the plan was built from; updated in place
        plan: Plan from build_sync_plan
        feedback: Destination for warnings

    Raises:
        ConflictError: a rewrite hit a content conflict; earlier steps stay committed
        VersionControlError: a git command failed outright
        ProviderError: a pull request body could not be updated
    """
    executor = _Executor(git, github, store, repo_root, graph, plan, feedback)
    run_id = store.start_sync_run()
    executor.result.run_id = run_id
    logger.debug("Sync run %d started with %d step(s)", run_id, len(plan.steps))

    try:
        with autostash(git, cwd, feedback):
            with restore_checkout(git, cwd, feedback):
                executor.run()
    except ConflictError as e:
        summary = executor.summary()
        summary["conflict"] = {"branch": e.branch, "pending": list(e.pending)}
        store.finish_sync_run(run_id, "conflict", summary)
        raise
    except Exception as e:
        summary = executor.summary()
        summary["error"] = str(e)
        store.finish_sync_run(run_id, "failed", summary)
        raise

    store.finish_sync_run(run_id, "success", executor.summary())
    logger.debug("Sync run %d finished", run_id)
    return executor.result
