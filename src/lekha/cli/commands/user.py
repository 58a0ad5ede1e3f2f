"""Current user command."""

import click
from lekha.cli.book_resolution import current_user, save_state


@click.command("user")
@click.argument("name", required=False)
@click.option("--clear", is_flag=True, help="Go back to the configured default user")
@click.pass_context
def user(ctx, name: str | None, clear: bool):
    """Show or set the name recorded on audit entries.

    Examples:
        lekha user
        lekha user "Asha"
    """
    state = ctx.obj["state"]
    if clear:
        state.current_user = None
        save_state(ctx)
    elif name is not None:
        if not name.strip():
            click.echo("Error: User name cannot be empty", err=True)
            ctx.exit(1)
        state.current_user = name.strip()
        save_state(ctx)
    click.echo(f"Current user: {current_user(ctx)}")


def register_commands(cli):
    """Register user command with main CLI."""
    cli.add_command(user)
