"""CLI error handling helpers."""

import click

from lekha.domain.errors import DomainError, FormValidationError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure.

    Form errors are listed one field per line.
    """
    if isinstance(error, FormValidationError):
        click.echo("Error: the entry has invalid fields", err=True)
        for key, message in error.errors.items():
            click.echo(f"  {key}: {message}", err=True)
    else:
        click.echo(f"Error: {error}", err=True)
    ctx.exit(1)
