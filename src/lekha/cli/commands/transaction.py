"""Transaction management commands."""

import click
from lekha.cli.book_resolution import current_user, mark_changed, resolve_book_or_exit
from lekha.cli.commands.add import parse_field_values
from lekha.cli.date_filters import resolve_cli_date_range
from lekha.cli.error_handling import handle_domain_error
from lekha.domain.errors import DomainError
from lekha.domain.report import display_amount
from lekha.domain.transaction import TransactionService
from lekha.utils.date_parser import REPORT_PERIODS


@click.group()
def transaction_group():
    """Manage transactions."""
    pass


@transaction_group.command("list")
@click.option("--book", help="Book name or ID (defaults to the active book)")
@click.option("--start-date", help="Start date (YYYY-MM-DD, DD/MM/YYYY or 'today', 'yesterday')")
@click.option("--end-date", help="End date (YYYY-MM-DD, DD/MM/YYYY or 'today', 'yesterday')")
@click.option("--period", type=click.Choice(REPORT_PERIODS), help="Named period")
@click.option("--search", help="Text to look for in descriptions, categories and field values")
@click.option("--verbose", "-v", is_flag=True, help="Show every field value")
@click.pass_context
def list_transactions(
    ctx,
    book: str | None,
    start_date: str | None,
    end_date: str | None,
    period: str | None,
    search: str | None,
    verbose: bool,
):
    """View a book's transactions, newest first."""
    book_obj = resolve_book_or_exit(ctx, book)
    start, end = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, period=period
    )
    service = TransactionService(ctx.obj["db"])
    transactions = service.list_transactions(
        book_obj.id, start_date=start, end_date=end, search=search
    )

    if not transactions:
        click.echo("No transactions found.")
        return

    labels = {f.key: f.label for f in book_obj.field_config}
    click.echo(f"\nFound {len(transactions)} transaction(s) in {book_obj.name}:")
    click.echo("=" * 100)
    for txn in transactions:
        amount = display_amount(book_obj, txn)
        click.echo(
            f"{txn.transaction_date} | {txn.type.value:8s} | {amount:>12,.2f} | "
            f"{txn.category_id[:16]:16s} | {txn.description[:30]:30s} | {txn.id}"
        )
        if verbose:
            if txn.party_id:
                click.echo(f"    Party: {txn.party_id}")
            if txn.payment_mode:
                click.echo(f"    Payment mode: {txn.payment_mode}")
            for key, value in txn.custom_data.items():
                click.echo(f"    {labels.get(key, key)}: {value}")
            click.echo(f"    Recorded: {txn.recorded_at:%Y-%m-%d %H:%M:%S}")


@transaction_group.command("update")
@click.argument("transaction_id")
@click.option(
    "--field",
    "-f",
    "fields",
    multiple=True,
    metavar="KEY=VALUE",
    help="New value for a field of the book, by field key (repeatable)",
)
@click.pass_context
def update_transaction(ctx, transaction_id: str, fields: tuple[str, ...]) -> None:
    """Update a transaction.

    Only the given fields change; the entry is validated against the book's
    fields as a whole and each changed attribute is recorded in the history.

    Examples:
        lekha transaction update 3f2a... -f amount=75
        lekha transaction update 3f2a... -f description="Rent" -f type=expense
    """
    data = parse_field_values(ctx, fields)
    if not data:
        click.echo("Nothing to update.")
        return

    service = TransactionService(ctx.obj["db"], performed_by=current_user(ctx))
    try:
        service.update_from_form(transaction_id, data)
    except DomainError as e:
        handle_domain_error(ctx, e)
    mark_changed(ctx)
    click.echo(f"Updated transaction {transaction_id}")


@transaction_group.command("delete")
@click.argument("transaction_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_transaction(ctx, transaction_id: str, yes: bool) -> None:
    """Delete a transaction. The deletion is recorded in its history."""
    service = TransactionService(ctx.obj["db"], performed_by=current_user(ctx))
    try:
        txn = service.require_transaction(transaction_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not yes and not click.confirm(
        f"Delete {txn.type.value} of {txn.amount:,.2f} on {txn.transaction_date}?"
    ):
        click.echo("Deletion cancelled.")
        return

    try:
        service.delete_transaction(transaction_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    mark_changed(ctx)
    click.echo(f"Deleted transaction {transaction_id}")


@transaction_group.command("history")
@click.argument("transaction_id")
@click.pass_context
def transaction_history(ctx, transaction_id: str) -> None:
    """Show the audit trail of a transaction, oldest first.

    The history stays available after the transaction is deleted.
    """
    logs = TransactionService(ctx.obj["db"]).get_history(transaction_id)
    if not logs:
        click.echo(f"No history for transaction {transaction_id}.")
        return

    for log in logs:
        click.echo(
            f"{log.timestamp:%Y-%m-%d %H:%M:%S} {log.action.value.upper():6s} by {log.performed_by}"
        )
        for change in log.changes:
            click.echo(f"    {change.field}: {change.old_value!r} -> {change.new_value!r}")


def register_commands(cli):
    """Register transaction commands with main CLI."""
    cli.add_command(transaction_group, name="transaction")
