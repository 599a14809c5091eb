import click
from click.shell_completion import get_completion_class

from stacked.cli.output import machine_output

COMPLETE_VAR = "_STACK_COMPLETE"


def completion_script(cli: click.Command, shell: str) -> str:
    """Source script click generates for shell.

    The script is produced in-process, so no `stack` executable needs to be
    on PATH.
    """
    completion_class = get_completion_class(shell)
    if completion_class is None:
        raise click.BadParameter(f"unsupported shell '{shell}'", param_hint="SHELL")
    return completion_class(cli, {}, "stack", COMPLETE_VAR).source()


@click.command("completions")
@click.argument("shell", type=click.Choice(["bash", "zsh", "fish"]))
@click.pass_context
def completions_cmd(ctx: click.Context, shell: str) -> None:
    """Print the shell completion script for SHELL.

    \b
    Examples:
        eval "$(stack completions bash)"
        eval "$(stack completions zsh)"
        stack completions fish > ~/.config/fish/completions/stack.fish
    """
    machine_output(completion_script(ctx.find_root().command, shell), nl=False)
