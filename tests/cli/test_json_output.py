"""Tests for JSON output helpers and the error boundary.

These tests verify serialization, output routing, and how core errors map to
exit codes and porcelain payloads.
"""

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from stacked.cli.errors import handle_stack_errors
from stacked.cli.json_output import ErrorResponse, emit_json, emit_model
from stacked.core.context import StackContext
from stacked.core.errors import AmbiguityError, ConflictError, ProviderError


@dataclass(frozen=True)
class _Point:
    path: Path
    when: datetime


def test_emit_json_serializes_paths_datetimes_and_dataclasses() -> None:
    with patch("stacked.cli.json_output.machine_output") as mock_machine_output:
        when = datetime(2025, 11, 17, 10, 30, 45, tzinfo=UTC)
        emit_json({"point": _Point(Path("/repo"), when), "items": (Path("/a"),)})

        parsed = json.loads(mock_machine_output.call_args[0][0])
        assert parsed == {
            "point": {"path": "/repo", "when": "2025-11-17T10:30:45+00:00"},
            "items": ["/a"],
        }


def test_emit_model_writes_to_stdout(capsys: pytest.CaptureFixture[str]) -> None:
    emit_model(ErrorResponse(error="boom", error_type="StackError"))

    captured = capsys.readouterr()
    assert json.loads(captured.out)["error"] == "boom"
    assert captured.err == ""


def test_error_response_is_strict() -> None:
    with pytest.raises(ValueError):
        ErrorResponse(
            error="boom",
            error_type="StackError",
            exit_code="1",  # type: ignore[arg-type]
        )


def test_provider_error_exits_one_with_styled_message(
    capsys: pytest.CaptureFixture[str],
) -> None:
    with pytest.raises(SystemExit) as exc_info:
        with handle_stack_errors(StackContext.for_test()):
            raise ProviderError("Failed to query GitHub", detail="HTTP 502")

    assert exc_info.value.code == 1
    captured = capsys.readouterr()
    assert "Error: Failed to query GitHub" in captured.err
    assert "HTTP 502" not in captured.err
    assert captured.out == ""


def test_debug_shows_error_detail(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit):
        with handle_stack_errors(StackContext.for_test(debug=True)):
            raise ProviderError("Failed to query GitHub", detail="HTTP 502")

    assert "HTTP 502" in capsys.readouterr().err


def test_conflict_exits_two_and_emits_error_response(
    capsys: pytest.CaptureFixture[str],
) -> None:
    with pytest.raises(SystemExit) as exc_info:
        with handle_stack_errors(StackContext.for_test(porcelain=True)):
            raise ConflictError("b", step_index=2, total_steps=4, pending=["c", "d"])

    assert exc_info.value.code == 2
    captured = capsys.readouterr()
    assert "Not yet restacked: c, d" in captured.err
    payload = json.loads(captured.out)
    assert payload["error"] == "conflict while restacking 'b' (step 3 of 4)"
    assert payload["pending"] == ["c", "d"]
    assert payload["exit_code"] == 2


def test_ambiguity_lists_candidates(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        with handle_stack_errors(StackContext.for_test()):
            raise AmbiguityError("several candidates", candidates=["x", "y"])

    assert exc_info.value.code == 1
    assert "Candidates: x, y" in capsys.readouterr().err
