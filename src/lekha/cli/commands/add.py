"""Add transaction command."""

import click
from lekha.cli.book_resolution import current_user, mark_changed, resolve_book_or_exit
from lekha.cli.error_handling import handle_domain_error
from lekha.domain.errors import DomainError
from lekha.domain.transaction import TransactionService


def parse_field_values(ctx, values: tuple[str, ...]) -> dict[str, str]:
    """Turn repeated KEY=VALUE options into a submission dict."""
    data = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            click.echo(f"Error: Expected KEY=VALUE, got '{item}'", err=True)
            ctx.exit(1)
        data[key.strip()] = value
    return data


@click.command("add")
@click.argument("book", metavar="BOOK", required=False)
@click.option(
    "--field",
    "-f",
    "fields",
    multiple=True,
    metavar="KEY=VALUE",
    help="Value for a field of the book, by field key (repeatable)",
)
@click.pass_context
def add_transaction(ctx, book: str | None, fields: tuple[str, ...]):
    """Add a transaction by filling in the book's fields.

    Every visible field is validated against the book's schema; all errors
    are reported together. The type and date default to the book's
    preference and today.

    Examples:
        lekha add Household -f amount=250 -f description="Groceries" -f type=expense
        lekha add -f amount=1200 -f date=2024-05-01 -f category_id=Salary -f type=income
    """
    book_obj = resolve_book_or_exit(ctx, book)
    data = parse_field_values(ctx, fields)
    service = TransactionService(ctx.obj["db"], performed_by=current_user(ctx))

    try:
        txn = service.create_from_form(book_obj.id, data)
    except DomainError as e:
        handle_domain_error(ctx, e)
    mark_changed(ctx)

    click.echo(f"Created transaction {txn.id}")
    click.echo(f"  Book: {book_obj.name}")
    click.echo(f"  Date: {txn.transaction_date}")
    click.echo(f"  Type: {txn.type.value}")
    click.echo(f"  Amount: {book_obj.currency} {txn.amount:,.2f}")
    if txn.description:
        click.echo(f"  Description: {txn.description}")
    click.echo(f"  Category: {txn.category_id}")


def register_commands(cli):
    """Register add command with main CLI."""
    cli.add_command(add_transaction)
