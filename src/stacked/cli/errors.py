"""Map core errors onto styled output and exit codes at the command boundary."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import click

from stacked.cli.json_output import ErrorResponse, emit_model
from stacked.cli.output import user_output
from stacked.core.context import StackContext
from stacked.core.errors import AmbiguityError, ConflictError, StackError

logger = logging.getLogger(__name__)

CONFLICT_EXIT_CODE = 2


@contextmanager
def handle_stack_errors(ctx: StackContext) -> Iterator[None]:
    """Turn StackError into a red "Error:" line and SystemExit.

    Exit status is 1, or 2 for a sync conflict. Under --porcelain the error is
    also written to stdout as an ErrorResponse; under --debug the raw detail
    follows the message.
    """
    try:
        yield
    except StackError as e:
        exit_code = CONFLICT_EXIT_CODE if isinstance(e, ConflictError) else 1
        logger.debug("%s: %s", type(e).__name__, e.message, exc_info=ctx.debug)

        user_output(click.style("Error: ", fg="red") + e.message)
        response = ErrorResponse(error=e.message, error_type=type(e).__name__, exit_code=exit_code)

        if isinstance(e, ConflictError):
            if e.pending:
                user_output(f"Not yet restacked: {', '.join(e.pending)}")
            user_output("Resolve the conflict, then run 'stack sync' again.")
            response = response.model_copy(
                update={"branch": e.branch, "pending": list(e.pending)}
            )
        elif isinstance(e, AmbiguityError):
            user_output(f"Candidates: {', '.join(e.candidates)}")
            response = response.model_copy(update={"candidates": list(e.candidates)})

        if ctx.debug and e.detail:
            user_output(e.detail)
        if ctx.porcelain:
            emit_model(response)
        raise SystemExit(exit_code) from e
