"""CSV import commands."""

from pathlib import Path

import click
from lekha.cli.book_resolution import current_user, mark_changed, resolve_book_or_exit, save_state
from lekha.cli.commands.add import parse_field_values
from lekha.cli.error_handling import handle_domain_error
from lekha.domain.column_analysis import SYSTEM_TARGETS
from lekha.domain.csv_import import (
    TARGET_ALIASES,
    AmountMode,
    CSVImportService,
    ImportResult,
    ImportSession,
)
from lekha.domain.entities import FieldType
from lekha.domain.errors import DomainError


def _read_file(ctx, csv_file: str) -> str:
    try:
        return Path(csv_file).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        click.echo(f"Error: Cannot read {csv_file}: {e}", err=True)
        ctx.exit(1)


def _header_index(ctx, headers: list[str], header: str) -> int:
    wanted = header.strip().lower()
    for i, h in enumerate(headers):
        if h.strip().lower() == wanted:
            return i
    click.echo(f"Error: Column '{header}' not found in file", err=True)
    ctx.exit(1)


def _print_result(result: ImportResult) -> None:
    click.echo("\nImport complete:")
    click.echo(f"  Imported: {result.imported} transactions")
    if result.skipped:
        click.echo(f"  Skipped: {result.skipped} rows")
    if result.created_fields:
        names = ", ".join(f.label for f in result.created_fields)
        click.echo(f"  New fields: {names}")
    if result.errors:
        click.echo(f"  Errors: {len(result.errors)}")
        for error in result.errors:
            click.echo(f"    {error}", err=True)


def _run(ctx, session: ImportSession) -> ImportResult:
    with click.progressbar(length=100, label="Importing") as bar:
        def on_progress(percent: int) -> None:
            bar.update(percent - bar.pos)

        session.on_progress = on_progress
        result = session.run()
    if result is None:
        click.echo(f"Error: Import failed: {session.error}", err=True)
        ctx.exit(1)
    mark_changed(ctx)
    return result


@click.command("import")
@click.argument("book", metavar="BOOK")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--map",
    "mappings",
    multiple=True,
    metavar="HEADER=TARGET",
    help="Send a column to a target: date, time, amount_in, amount_out, amount_net, "
    "description, category, mode, party, ignore, create_new or a field key (repeatable)",
)
@click.option(
    "--new-field",
    "new_fields",
    multiple=True,
    metavar="HEADER=NAME",
    help="Name of the field a create_new column becomes (repeatable)",
)
@click.option("--preview", is_flag=True, help="Show the column mapping without importing")
@click.pass_context
def import_csv(
    ctx,
    book: str,
    csv_file: str,
    mappings: tuple[str, ...],
    new_fields: tuple[str, ...],
    preview: bool,
):
    """Import transactions from a CSV file into an existing book.

    Columns are mapped from their headers; use --map to change a guess.
    Rows without a readable date are skipped and reported.

    Examples:
        lekha import Household statement.csv
        lekha import Household bank.csv --map "Txn Date=date" --map "Ref=create_new"
    """
    book_obj = resolve_book_or_exit(ctx, book)
    service = CSVImportService(ctx.obj["db"], performed_by=current_user(ctx))
    session = ImportSession(service, book_id=book_obj.id)

    try:
        session.upload(_read_file(ctx, csv_file), Path(csv_file).name)
    except DomainError as e:
        handle_domain_error(ctx, e)

    headers = [m.csv_header for m in session.mappings]
    valid_targets = set(SYSTEM_TARGETS) | set(TARGET_ALIASES) | book_obj.field_keys
    for header, target in parse_field_values(ctx, mappings).items():
        target = target.strip()
        if target not in valid_targets:
            click.echo(f"Error: Unknown target '{target}' for column '{header}'", err=True)
            ctx.exit(1)
        session.set_target(_header_index(ctx, headers, header), target)
    for header, name in parse_field_values(ctx, new_fields).items():
        session.set_new_field_name(_header_index(ctx, headers, header), name)

    click.echo(f"\nColumn mapping for {book_obj.name}:")
    for m in session.mappings:
        target = m.target
        if m.new_field_name:
            target = f"{target} ({m.new_field_name})"
        click.echo(f"  {m.csv_header:24s} -> {target:20s} e.g. {m.sample_value}")
    if preview:
        return

    _print_result(_run(ctx, session))


@click.command("import-book")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--name", help="Book name (defaults to the file name)")
@click.option("--currency", default="USD", show_default=True, help="Currency code or symbol")
@click.option("--split", is_flag=True, help="Read income and expense from separate columns")
@click.option("--primary", "primary_field", help="Field key of the amount column")
@click.option("--income", "income_field", help="Field key of the income column (with --split)")
@click.option("--expense", "expense_field", help="Field key of the expense column (with --split)")
@click.option("--time", "time_field", help="Field key of a time column merged into the date")
@click.option(
    "--exclude", multiple=True, metavar="FIELD_KEY", help="Leave a column out (repeatable)"
)
@click.option(
    "--type",
    "types",
    multiple=True,
    metavar="FIELD_KEY=TYPE",
    help="Override a detected field type (repeatable)",
)
@click.option("--preview", is_flag=True, help="Show the detected fields without importing")
@click.option("--use", "use_book", is_flag=True, help="Make the new book the active book")
@click.pass_context
def import_new_book(
    ctx,
    csv_file: str,
    name: str | None,
    currency: str,
    split: bool,
    primary_field: str | None,
    income_field: str | None,
    expense_field: str | None,
    time_field: str | None,
    exclude: tuple[str, ...],
    types: tuple[str, ...],
    preview: bool,
    use_book: bool,
):
    """Create a new book from a CSV file.

    Each column becomes a field whose type is detected from its values.
    Rows without a readable date are dated today.

    Examples:
        lekha import-book expenses_2024.csv
        lekha import-book bank.csv --name "Bank" --split --income credit --expense debit
    """
    service = CSVImportService(ctx.obj["db"], performed_by=current_user(ctx))
    session = ImportSession(service)

    try:
        session.upload(_read_file(ctx, csv_file), Path(csv_file).name)
    except DomainError as e:
        handle_domain_error(ctx, e)

    keys = [f.key for f in session.fields]

    def index_of(key: str) -> int:
        if key not in keys:
            known = ", ".join(keys)
            click.echo(f"Error: No column with field key '{key}'. Known: {known}", err=True)
            ctx.exit(1)
        return keys.index(key)

    for key in exclude:
        session.update_detected_field(index_of(key), include=False)
    for key, type_name in parse_field_values(ctx, types).items():
        try:
            field_type = FieldType(type_name.strip().lower())
        except ValueError:
            click.echo(f"Error: Unknown field type '{type_name}'", err=True)
            ctx.exit(1)
        session.update_detected_field(index_of(key), type=field_type)

    options = {}
    if name:
        options["name"] = name
    options["currency"] = currency
    if split:
        options["amount_mode"] = AmountMode.SPLIT
    for option, key in (
        ("primary_amount_field", primary_field),
        ("income_field", income_field),
        ("expense_field", expense_field),
        ("time_field", time_field),
    ):
        if key:
            index_of(key)
            options[option] = key
    session.update_options(**options)

    opts = session.options
    click.echo(f"\nNew book '{opts.name}' ({opts.currency}, {opts.amount_mode.value} amount):")
    for f in session.fields:
        role = ""
        if f.key == opts.time_field:
            role = " [time]"
        elif opts.amount_mode == AmountMode.SPLIT and f.key == opts.income_field:
            role = " [income]"
        elif opts.amount_mode == AmountMode.SPLIT and f.key == opts.expense_field:
            role = " [expense]"
        elif opts.amount_mode == AmountMode.SINGLE and f.key == opts.primary_amount_field:
            role = " [amount]"
        included = "" if f.include else " (excluded)"
        click.echo(f"  {f.label:24s} {f.key:24s} {f.type.value:8s}{role}{included}")
        if f.options:
            click.echo(f"      options: {', '.join(f.options)}")
    if preview:
        return

    result = _run(ctx, session)
    click.echo(f"Created book '{opts.name}' (ID: {result.book_id})")
    _print_result(result)

    if use_book:
        ctx.obj["state"].active_book_id = result.book_id
        save_state(ctx)
        click.echo("Set as active book")


def register_commands(cli):
    """Register import commands with main CLI."""
    cli.add_command(import_csv)
    cli.add_command(import_new_book)
