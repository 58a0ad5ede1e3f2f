"""Book management commands."""

import click
from lekha.cli.book_resolution import mark_changed, resolve_book_or_exit, save_state
from lekha.cli.error_handling import handle_domain_error
from lekha.domain.audit import AuditService
from lekha.domain.book import BookService
from lekha.domain.entities import BookPreferences, TransactionType
from lekha.domain.errors import DomainError
from lekha.domain.report import ReportService
from lekha.domain.template import TemplateService


@click.group()
def book_group():
    """Manage books."""
    pass


@book_group.command("create")
@click.argument("name", metavar="BOOK_NAME")
@click.option("--currency", default="INR", show_default=True, help="Currency code or symbol")
@click.option("--template", help="Template name or ID to take fields and preferences from")
@click.pass_context
def create_book(ctx, name: str, currency: str, template: str | None):
    """Create a new book.

    The first book created becomes the active book.

    Examples:
        lekha book create "Household"
        lekha book create "Shop" --currency USD --template "Business Ledger"
    """
    db = ctx.obj["db"]
    service = BookService(db)

    try:
        template_id = None
        if template:
            template_id = TemplateService(db).resolve_template(template).id
        book = service.create_book(name=name, currency=currency, template_id=template_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    mark_changed(ctx)
    click.echo(f"Created book '{book.name}' (ID: {book.id})")
    state = ctx.obj["state"]
    if state.active_book_id is None:
        state.active_book_id = book.id
        save_state(ctx)
        click.echo("Set as active book")


@book_group.command("list")
@click.pass_context
def list_books(ctx):
    """List all books. The active book is marked with '*'."""
    service = BookService(ctx.obj["db"])
    active = ctx.obj["state"].active_book_id

    books = service.list_books()
    if not books:
        click.echo("No books found.")
        return

    click.echo("\nBooks:")
    click.echo("-" * 72)
    for b in books:
        marker = "*" if b.id == active else " "
        click.echo(
            f"{marker} {b.name:24s} | {b.currency:5s} | {len(b.field_config):2d} fields | {b.id}"
        )


@book_group.command("show")
@click.argument("book", metavar="BOOK", required=False)
@click.pass_context
def show_book(ctx, book: str | None):
    """Show a book's settings, fields and totals.

    BOOK can be a book name or ID; the active book is used when omitted.
    """
    book_obj = resolve_book_or_exit(ctx, book)
    reports = ReportService(ctx.obj["db"])

    click.echo(f"\n{book_obj.name} (ID: {book_obj.id})")
    click.echo(f"  Currency: {book_obj.currency}")
    click.echo(f"  Created: {book_obj.created_at:%Y-%m-%d %H:%M}")
    click.echo(f"  Amount field: {book_obj.amount_field}")
    if book_obj.preferences:
        for name, value in book_obj.preferences.to_dict().items():
            click.echo(f"  {name}: {value}")

    click.echo("\nFields:")
    for f in book_obj.sorted_fields():
        flags = []
        if f.required:
            flags.append("required")
        if not f.visible:
            flags.append("hidden")
        suffix = f" ({', '.join(flags)})" if flags else ""
        click.echo(f"  {f.order:2d}. {f.label} [{f.key}] {f.type.value}{suffix}")

    totals = reports.dashboard(book_obj.id)
    click.echo("\nTotals:")
    click.echo(f"  Income:  {totals.income:12,.2f}")
    click.echo(f"  Expense: {totals.expense:12,.2f}")
    click.echo(f"  Balance: {totals.net:12,.2f}")

    recent = reports.recent_transactions(book_obj.id)
    if recent:
        click.echo("\nRecent transactions:")
        for t in recent:
            click.echo(
                f"  {t.transaction_date} {t.type.value:8s} {t.amount:>12,.2f}  {t.description}"
            )


@book_group.command("rename")
@click.argument("book", metavar="BOOK")
@click.argument("new_name", metavar="NEW_NAME")
@click.pass_context
def rename_book(ctx, book: str, new_name: str) -> None:
    """Rename a book.

    Examples:
        lekha book rename "Household" "Home"
    """
    book_obj = resolve_book_or_exit(ctx, book)
    try:
        BookService(ctx.obj["db"]).rename_book(book_obj.id, new_name)
    except DomainError as e:
        handle_domain_error(ctx, e)
    mark_changed(ctx)
    click.echo(f"Renamed book to '{new_name.strip()}'")


@book_group.command("update")
@click.argument("book", metavar="BOOK", required=False)
@click.option("--currency", help="Currency code or symbol")
@click.option("--primary-amount", help="Field key used for totals")
@click.option("--clear-primary-amount", is_flag=True, help="Use the built-in amount for totals")
@click.option("--date-format", help="Display date format")
@click.option("--default-time", help="Default transaction time, HH:MM")
@click.option(
    "--default-type",
    type=click.Choice([t.value for t in TransactionType]),
    help="Type preselected for new entries",
)
@click.option("--default-category", help="Category used when an entry has none")
@click.option("--decimal-places", type=int, help="Decimal places shown")
@click.option("--show-zero-decimals/--hide-zero-decimals", default=None, help="Show .00 amounts")
@click.pass_context
def update_book(
    ctx,
    book: str | None,
    currency: str | None,
    primary_amount: str | None,
    clear_primary_amount: bool,
    date_format: str | None,
    default_time: str | None,
    default_type: str | None,
    default_category: str | None,
    decimal_places: int | None,
    show_zero_decimals: bool | None,
) -> None:
    """Update book settings and preferences.

    Examples:
        lekha book update Household --currency EUR --default-type income
        lekha book update Shop --primary-amount net_amount
    """
    book_obj = resolve_book_or_exit(ctx, book)
    if primary_amount and clear_primary_amount:
        click.echo("Error: --primary-amount and --clear-primary-amount conflict", err=True)
        ctx.exit(1)

    preferences = BookPreferences(
        date_format=date_format,
        default_transaction_time=default_time,
        default_type=TransactionType(default_type) if default_type else None,
        default_category=default_category,
        decimal_places=decimal_places,
        show_zero_decimals=show_zero_decimals,
    )
    kwargs = {"currency": currency}
    if preferences.to_dict():
        kwargs["preferences"] = preferences
    if primary_amount:
        kwargs["primary_amount_field"] = primary_amount
    elif clear_primary_amount:
        kwargs["primary_amount_field"] = None

    try:
        BookService(ctx.obj["db"]).update_book(book_obj.id, **kwargs)
    except DomainError as e:
        handle_domain_error(ctx, e)
    mark_changed(ctx)
    click.echo(f"Updated book '{book_obj.name}'")


@book_group.command("delete")
@click.argument("book", metavar="BOOK")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_book(ctx, book: str, yes: bool) -> None:
    """Delete a book.

    Only the book record is removed; its transactions and audit entries
    stay in the database.

    Examples:
        lekha book delete "Old Ledger" --yes
    """
    book_obj = resolve_book_or_exit(ctx, book)
    if not yes and not click.confirm(
        f"Are you sure you want to delete book '{book_obj.name}' (ID: {book_obj.id})?"
    ):
        click.echo("Deletion cancelled.")
        return

    try:
        BookService(ctx.obj["db"]).delete_book(book_obj.id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    mark_changed(ctx)
    click.echo(f"Deleted book '{book_obj.name}'")

    state = ctx.obj["state"]
    if state.active_book_id == book_obj.id:
        state.active_book_id = None
        save_state(ctx)


@book_group.command("log")
@click.argument("book", metavar="BOOK", required=False)
@click.option("--limit", type=int, default=20, show_default=True, help="Number of entries shown")
@click.pass_context
def book_log(ctx, book: str | None, limit: int) -> None:
    """Show the latest audit entries of every transaction in a book.

    Entries of deleted transactions are included.
    """
    book_obj = resolve_book_or_exit(ctx, book)
    logs = AuditService(ctx.obj["db"]).book_log(book_obj.id)
    if not logs:
        click.echo(f"No activity in {book_obj.name}.")
        return

    for log in logs[-limit:]:
        line = (
            f"{log.timestamp:%Y-%m-%d %H:%M:%S} {log.action.value.upper():6s} "
            f"{log.transaction_id} by {log.performed_by}"
        )
        if log.changes:
            line += f" ({', '.join(c.field for c in log.changes)})"
        click.echo(line)


@book_group.command("use")
@click.argument("book", metavar="BOOK")
@click.pass_context
def use_book(ctx, book: str) -> None:
    """Make a book the active book for later commands."""
    book_obj = resolve_book_or_exit(ctx, book)
    ctx.obj["state"].active_book_id = book_obj.id
    save_state(ctx)
    click.echo(f"Active book: {book_obj.name}")


def register_commands(cli):
    """Register book commands with main CLI."""
    cli.add_command(book_group, name="book")
