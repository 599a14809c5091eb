"""JSON output utilities for --porcelain mode."""

import json
from dataclasses import asdict, is_dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from stacked.cli.output import machine_output


class ErrorResponse(BaseModel):
    """Pydantic model for error JSON responses.

    Attributes:
        error: Error message
        error_type: Error class name (e.g., "ConflictError")
        exit_code: Exit code for the process
        branch: Branch the error is about, when there is one
        pending: Branches left unprocessed by a halted sync
        candidates: Equally valid choices behind an ambiguity
    """

    model_config = ConfigDict(strict=True)

    error: str
    error_type: str
    exit_code: int = Field(default=1, ge=0, le=255)
    branch: str | None = None
    pending: list[str] = Field(default_factory=list)
    candidates: list[str] = Field(default_factory=list)


def _serialize_for_json(obj: Any) -> Any:
    """Recursively serialize Path, datetime and dataclass values found in plain dicts."""
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if is_dataclass(obj) and not isinstance(obj, type):
        return _serialize_for_json(asdict(obj))
    if isinstance(obj, dict):
        return {key: _serialize_for_json(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize_for_json(item) for item in obj]
    return obj


def emit_json(data: dict[str, Any]) -> None:
    """Write data as JSON to stdout.

    For Pydantic models, call model.model_dump(mode="json") first.
    """
    machine_output(json.dumps(_serialize_for_json(data), indent=2))


def emit_model(model: BaseModel) -> None:
    emit_json(model.model_dump(mode="json"))
