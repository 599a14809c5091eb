import logging
import os

import click

from stacked.cli.commands.base import base_cmd
from stacked.cli.commands.completion import completions_cmd
from stacked.cli.commands.create import create_cmd
from stacked.cli.commands.delete import delete_cmd
from stacked.cli.commands.doctor import doctor_cmd
from stacked.cli.commands.ls import ls_cmd
from stacked.cli.commands.navigation import bottom_cmd, down_cmd, top_cmd, up_cmd
from stacked.cli.commands.pr import pr_cmd
from stacked.cli.commands.push import push_cmd
from stacked.cli.commands.sync import sync_cmd
from stacked.cli.commands.track import track_cmd
from stacked.cli.commands.untrack import untrack_cmd
from stacked.core.context import create_context

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])  # terse help flags

DEBUG_ENV_VAR = "STACK_DEBUG"


def _configure_logging(debug: bool) -> None:
    if debug or os.environ.get(DEBUG_ENV_VAR):
        logging.basicConfig(
            level=logging.DEBUG, format="[DEBUG %(name)s:%(lineno)d] %(message)s"
        )


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="stacked")
@click.option("-P", "--porcelain", is_flag=True, help="Machine-readable JSON output.")
@click.option("-y", "--yes", is_flag=True, help="Apply without asking for confirmation.")
@click.option("--debug", is_flag=True, help="Log debug output and show raw error details.")
@click.pass_context
def cli(ctx: click.Context, porcelain: bool, yes: bool, debug: bool) -> None:
    """Manage stacks of dependent git branches."""
    _configure_logging(debug)
    # Only create context if not already provided (e.g., by tests)
    if ctx.obj is None:
        ctx.obj = create_context(porcelain=porcelain, yes=yes, debug=debug)
    else:
        ctx.obj = ctx.obj.with_flags(porcelain=porcelain, yes=yes, debug=debug)


cli.add_command(base_cmd)
cli.add_command(bottom_cmd)
cli.add_command(completions_cmd)
cli.add_command(create_cmd)
cli.add_command(delete_cmd)
cli.add_command(doctor_cmd)
cli.add_command(down_cmd)
cli.add_command(ls_cmd)
cli.add_command(pr_cmd)
cli.add_command(push_cmd)
cli.add_command(sync_cmd)
cli.add_command(top_cmd)
cli.add_command(track_cmd)
cli.add_command(untrack_cmd)
cli.add_command(up_cmd)


def main() -> None:
    """CLI entry point used by the `stack` console script."""
    cli()
