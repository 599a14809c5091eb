"""Pydantic models for --porcelain output.

Each command that supports porcelain output builds one of these models and
emits it with emit_model, so the JSON shape is validated at runtime.
"""

from pydantic import BaseModel, ConfigDict, Field


class SyncStepInfo(BaseModel):
    model_config = ConfigDict(strict=True)

    kind: str
    description: str
    branch: str | None = None
    state: str | None = None


class SyncResponse(BaseModel):
    """JSON response schema for `stack sync`.

    Attributes:
        status: up_to_date, planned (dry run), not_applied (no confirmation)
            or applied
        steps: Planned steps, with their final state once applied
        restacked: Branches rewritten onto a new base
        retired: Merged branches no longer tracked
        warnings: Non-fatal problems met while planning or applying
    """

    model_config = ConfigDict(strict=True)

    status: str = Field(..., pattern="^(up_to_date|planned|not_applied|applied)$")
    steps: list[SyncStepInfo]
    restacked: list[str] = Field(default_factory=list)
    retired: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class TrackedBranchInfo(BaseModel):
    model_config = ConfigDict(strict=True)

    branch: str
    parent: str
    source: str = Field(..., pattern="^(explicit|pr_base|git_ancestry|existing)$")


class TrackResponse(BaseModel):
    model_config = ConfigDict(strict=True)

    status: str = Field(..., pattern="^(tracked|unchanged|planned)$")
    branches: list[TrackedBranchInfo]
    warnings: list[str] = Field(default_factory=list)


class UntrackResponse(BaseModel):
    """JSON response schema for `stack untrack`.

    Untracking the base branch is a successful no-op whose reason says why.
    """

    model_config = ConfigDict(strict=True)

    status: str = Field(..., pattern="^(untracked|noop)$")
    branch: str
    reason: str | None = None
    parent: str | None = None
    reparented: list[str] = Field(default_factory=list)


class CreateResponse(BaseModel):
    model_config = ConfigDict(strict=True)

    branch: str
    parent: str
    inserted_before: str | None = None


class DeleteResponse(BaseModel):
    model_config = ConfigDict(strict=True)

    status: str = Field(..., pattern="^(deleted|planned|not_applied)$")
    branch: str
    parent: str | None
    closed_pr: int | None = None
    reparented: list[str] = Field(default_factory=list)


class PrResponse(BaseModel):
    model_config = ConfigDict(strict=True)

    status: str = Field(..., pattern="^(created|exists|planned)$")
    head: str
    base: str
    number: int | None = None
    url: str | None = None


class PushedBranchInfo(BaseModel):
    model_config = ConfigDict(strict=True)

    branch: str
    remote: str


class PushResponse(BaseModel):
    model_config = ConfigDict(strict=True)

    status: str = Field(..., pattern="^(pushed|planned)$")
    pushed: list[PushedBranchInfo]
    skipped_missing: list[str] = Field(default_factory=list)
    skipped_merged: list[str] = Field(default_factory=list)


class IntegrityIssueInfo(BaseModel):
    model_config = ConfigDict(strict=True)

    code: str
    branch: str
    message: str


class DoctorResponse(BaseModel):
    """JSON response schema for `stack doctor`.

    Attributes:
        healthy: True when the scan found nothing
        issues: Everything the scan reported
        actions: Repairs applied (only with --fix)
    """

    model_config = ConfigDict(strict=True)

    healthy: bool
    issues: list[IntegrityIssueInfo]
    actions: list[str] = Field(default_factory=list)


class NavigationResponse(BaseModel):
    model_config = ConfigDict(strict=True)

    branch: str


class StackBranchInfo(BaseModel):
    model_config = ConfigDict(strict=True)

    name: str
    parent: str
    depth: int
    current: bool
    present: bool
    pr_number: int | None = None
    pr_state: str | None = None


class LsResponse(BaseModel):
    model_config = ConfigDict(strict=True)

    base_branch: str
    branches: list[StackBranchInfo]


class BaseResponse(BaseModel):
    model_config = ConfigDict(strict=True)

    base_branch: str
    remote: str
