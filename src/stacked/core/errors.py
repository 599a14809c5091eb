"""Error taxonomy for stack operations.

Every failure the core can surface derives from StackError. The CLI boundary
(see stacked.cli.errors) maps these onto styled output and exit codes.

- GraphInvariantError: rejected before any persistence write
- ConflictError: halts sync execution at a step, earlier steps stay committed
- ProviderError: optional lookups downgrade it to a warning, mutations propagate it
- VersionControlError: non-conflict git failure, fatal to the current step
- AmbiguityError: non-interactive context with several equally valid targets
- ConfigError: unreadable repository configuration
"""


class StackError(Exception):
    """Base class for all stack errors.

    Attributes:
        detail: Raw underlying output (stderr, provider response) shown in debug mode
    """

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class GraphInvariantError(StackError):
    """Mutation would break the tree invariants (cycle, bad parent, base mutation)."""


class ConflictError(StackError):
    """A restack produced a content conflict that needs manual resolution."""

    def __init__(
        self,
        branch: str,
        *,
        step_index: int,
        total_steps: int,
        pending: list[str],
        detail: str | None = None,
    ) -> None:
        super().__init__(
            f"conflict while restacking '{branch}' (step {step_index + 1} of {total_steps})",
            detail=detail,
        )
        self.branch = branch
        self.step_index = step_index
        self.total_steps = total_steps
        self.pending = pending


class ProviderError(StackError):
    """Code-hosting provider call failed (gh missing, auth, timeout, bad JSON)."""


class VersionControlError(StackError):
    """Git command failed for a reason other than a content conflict."""


class ConfigError(StackError):
    """Repository configuration (pyproject.toml) cannot be read or written."""


class AmbiguityError(StackError):
    """Several equally valid candidates and no way to pick one."""

    def __init__(self, message: str, *, candidates: list[str]) -> None:
        super().__init__(message)
        self.candidates = candidates
