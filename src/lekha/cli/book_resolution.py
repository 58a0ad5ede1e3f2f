"""CLI helpers for book resolution and session context."""

from __future__ import annotations

import click

from lekha.domain.book import BookService
from lekha.domain.entities import Book
from lekha.domain.errors import DomainError
from lekha.cli.error_handling import handle_domain_error


def resolve_book_or_exit(ctx: click.Context, book: str | None) -> Book:
    """Resolve a book name or ID, falling back to the active book.

    This keeps error messaging and exit behavior consistent across commands.
    """
    if not book:
        book = ctx.obj["state"].active_book_id
        if not book:
            click.echo(
                "Error: No book given and no active book. Run 'lekha book use BOOK' first.",
                err=True,
            )
            ctx.exit(1)
    try:
        return BookService(ctx.obj["db"]).resolve_book(book)
    except DomainError as e:
        handle_domain_error(ctx, e)


def current_user(ctx: click.Context) -> str:
    """Name recorded on audit entries written by this command."""
    return ctx.obj["state"].current_user or ctx.obj["settings"].user


def mark_changed(ctx: click.Context) -> None:
    """Note that the command wrote data, so auto-sync runs when it finishes."""
    ctx.obj["changed"] = True


def save_state(ctx: click.Context) -> None:
    """Persist the app state, exiting with an error if that fails."""
    try:
        ctx.obj["state_store"].save(ctx.obj["state"])
    except DomainError as e:
        handle_domain_error(ctx, e)
