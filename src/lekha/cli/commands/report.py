"""Report commands."""

import click
from lekha.cli.book_resolution import resolve_book_or_exit
from lekha.cli.error_handling import handle_domain_error
from lekha.domain.errors import DomainError
from lekha.domain.report import ReportService
from lekha.utils.date_parser import REPORT_PERIODS

BAR_WIDTH = 30


def _bar(ratio: float) -> str:
    return "#" * round(ratio * BAR_WIDTH)


def period_option(func):
    return click.option(
        "--period",
        type=click.Choice(REPORT_PERIODS),
        default="this-month",
        show_default=True,
        help="Report period",
    )(func)


def book_option(func):
    return click.option("--book", help="Book name or ID (defaults to the active book)")(func)


@click.group()
def report_group():
    """Show reports for a book."""
    pass


@report_group.command("cash-flow")
@book_option
@period_option
@click.pass_context
def cash_flow(ctx, book: str | None, period: str):
    """Income, expense and net for a period. Transfers are left out."""
    book_obj = resolve_book_or_exit(ctx, book)
    try:
        summary = ReportService(ctx.obj["db"]).cash_flow(book_obj.id, period)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"\nCash flow for {book_obj.name} ({period}):")
    click.echo("-" * 40)
    click.echo(f"  Income:  {book_obj.currency} {summary.income:12,.2f}")
    click.echo(f"  Expense: {book_obj.currency} {summary.expense:12,.2f}")
    click.echo(f"  Net:     {book_obj.currency} {summary.net:12,.2f}")


@report_group.command("category")
@book_option
@period_option
@click.pass_context
def category_report(ctx, book: str | None, period: str):
    """Expenses by category with each category's share."""
    book_obj = resolve_book_or_exit(ctx, book)
    try:
        shares = ReportService(ctx.obj["db"]).category_breakdown(book_obj.id, period)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not shares:
        click.echo("No expenses in this period.")
        return
    click.echo(f"\nExpenses by category for {book_obj.name} ({period}):")
    click.echo("-" * 72)
    for share in shares:
        click.echo(
            f"  {share.category:24s} {share.amount:12,.2f} {share.percentage:5.0f}%  "
            f"{_bar(share.percentage / 100)}"
        )


@report_group.command("trends")
@book_option
@click.option(
    "--period",
    type=click.Choice(REPORT_PERIODS),
    default="this-year",
    show_default=True,
    help="Report period",
)
@click.pass_context
def trends_report(ctx, book: str | None, period: str):
    """Income and expense per month."""
    book_obj = resolve_book_or_exit(ctx, book)
    try:
        months = ReportService(ctx.obj["db"]).monthly_trends(book_obj.id, period)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not months:
        click.echo("No transactions in this period.")
        return
    click.echo(f"\nMonthly trends for {book_obj.name} ({period}):")
    click.echo("-" * 72)
    for m in months:
        click.echo(f"  {m.month}  in  {m.income:12,.2f} {_bar(m.income_ratio)}")
        click.echo(f"           out {m.expense:12,.2f} {_bar(m.expense_ratio)}")


@report_group.command("party")
@book_option
@period_option
@click.pass_context
def party_report(ctx, book: str | None, period: str):
    """Amounts paid to and received from each party."""
    book_obj = resolve_book_or_exit(ctx, book)
    try:
        balances = ReportService(ctx.obj["db"]).party_ledger(book_obj.id, period)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not balances:
        click.echo("No transactions with a party in this period.")
        return
    click.echo(f"\nParty ledger for {book_obj.name} ({period}):")
    click.echo(f"  {'Party':24s} {'Paid':>12s} {'Received':>12s}")
    click.echo("-" * 52)
    for b in balances:
        click.echo(f"  {b.party:24s} {b.paid:12,.2f} {b.received:12,.2f}")


@report_group.command("custom")
@click.argument("field_name", metavar="FIELD")
@book_option
@period_option
@click.pass_context
def custom_report(ctx, field_name: str, book: str | None, period: str):
    """Group transactions by any field.

    FIELD can be a field key or label. Amounts of every type are added
    together.
    """
    book_obj = resolve_book_or_exit(ctx, book)
    key = field_name
    for f in book_obj.field_config:
        if f.key == field_name or f.label.lower() == field_name.lower():
            key = f.key
            break
    try:
        groups = ReportService(ctx.obj["db"]).custom_grouping(book_obj.id, key, period)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not groups:
        click.echo("No transactions in this period.")
        return
    click.echo(f"\nGrouped by {field_name} for {book_obj.name} ({period}):")
    click.echo("-" * 60)
    for g in groups:
        click.echo(f"  {g.value:24s} {g.amount:12,.2f}  ({g.count} entries)")


def register_commands(cli):
    """Register report commands with main CLI."""
    cli.add_command(report_group, name="report")
