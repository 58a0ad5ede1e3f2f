"""Backup, restore and export commands."""

from pathlib import Path

import click
from lekha.cli.book_resolution import current_user, mark_changed, resolve_book_or_exit, save_state
from lekha.cli.error_handling import handle_domain_error
from lekha.domain.backup import BackupService, dumps, loads
from lekha.domain.csv_import import CSVImportService
from lekha.domain.entities import utc_now
from lekha.domain.errors import DomainError


def _write(ctx, output: str, content: str) -> None:
    try:
        Path(output).write_text(content, encoding="utf-8")
    except OSError as e:
        click.echo(f"Error: Cannot write {output}: {e}", err=True)
        ctx.exit(1)


def _read_backup(ctx, path: str) -> dict:
    try:
        return loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        click.echo(f"Error: Cannot read {path}: {e}", err=True)
        ctx.exit(1)
    except DomainError as e:
        handle_domain_error(ctx, e)


def _safe_file_name(name: str) -> str:
    return "".join(c if c.isalnum() or c in "-_" else "_" for c in name).strip("_") or "book"


@click.group()
def backup_group():
    """Back up and restore books as JSON."""
    pass


@backup_group.command("export-book")
@click.argument("book", metavar="BOOK", required=False)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Output file")
@click.pass_context
def export_book(ctx, book: str | None, output: str | None):
    """Export one book and its transactions to a JSON file."""
    book_obj = resolve_book_or_exit(ctx, book)
    try:
        data = BackupService(ctx.obj["db"]).export_book(book_obj.id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    output = output or f"{_safe_file_name(book_obj.name)}_backup.json"
    _write(ctx, output, dumps(data))
    click.echo(f"Exported '{book_obj.name}' ({len(data['transactions'])} transactions) to {output}")


@backup_group.command("export-all")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Output file")
@click.pass_context
def export_all(ctx, output: str | None):
    """Export every book and transaction to a JSON file."""
    data = BackupService(ctx.obj["db"]).export_all()
    output = output or f"lekha_backup_{utc_now():%Y-%m-%d}.json"
    _write(ctx, output, dumps(data))
    click.echo(
        f"Exported {len(data['books'])} books and "
        f"{len(data['transactions'])} transactions to {output}"
    )


@backup_group.command("import-book")
@click.argument("backup_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--copy", "as_copy", is_flag=True, help="Import as a new book next to the original")
@click.option("--yes", is_flag=True, help="Overwrite an existing book without asking")
@click.pass_context
def import_book(ctx, backup_file: str, as_copy: bool, yes: bool):
    """Import a book exported with export-book.

    A book with the same ID is overwritten unless --copy is given; when
    asked, declining imports a copy instead.
    """
    db = ctx.obj["db"]
    data = _read_backup(ctx, backup_file)
    book_data = data.get("book") if isinstance(data.get("book"), dict) else {}
    existing = db.get_book(book_data["id"]) if book_data.get("id") else None
    if existing is not None and not as_copy and not yes:
        as_copy = not click.confirm(
            f"Book '{existing.name}' already exists. Overwrite it? (No imports a copy)"
        )

    try:
        book_obj = BackupService(db, performed_by=current_user(ctx)).import_book(data, as_copy)
    except DomainError as e:
        handle_domain_error(ctx, e)
    mark_changed(ctx)
    click.echo(f"Book '{book_obj.name}' imported successfully (ID: {book_obj.id})")

    ctx.obj["state"].active_book_id = book_obj.id
    save_state(ctx)


@backup_group.command("restore")
@click.argument("backup_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--replace", "replace_existing", is_flag=True, help="Remove all books first")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def restore(ctx, backup_file: str, replace_existing: bool, yes: bool):
    """Restore a full backup made with export-all.

    Books and transactions with the same IDs are overwritten.
    """
    data = _read_backup(ctx, backup_file)
    if not yes and not click.confirm(
        "WARNING: This will OVERWRITE existing data with the backup. Are you sure?"
    ):
        click.echo("Restore cancelled.")
        return

    service = BackupService(ctx.obj["db"], performed_by=current_user(ctx))
    try:
        summary = service.restore_all(data, replace_existing=replace_existing)
    except DomainError as e:
        handle_domain_error(ctx, e)
    mark_changed(ctx)
    click.echo(
        f"Restore completed successfully: {summary.books} books, "
        f"{summary.transactions} transactions"
    )

    state = ctx.obj["state"]
    if state.active_book_id and ctx.obj["db"].get_book(state.active_book_id) is None:
        state.active_book_id = None
        save_state(ctx)


@click.command("export-csv")
@click.argument("book", metavar="BOOK", required=False)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Output file")
@click.pass_context
def export_csv(ctx, book: str | None, output: str | None):
    """Export a book's transactions as CSV."""
    book_obj = resolve_book_or_exit(ctx, book)
    try:
        content = CSVImportService(ctx.obj["db"]).export_csv(book_obj.id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    if output is None:
        click.echo(content, nl=False)
        return
    _write(ctx, output, content)
    click.echo(f"Exported '{book_obj.name}' to {output}")


def register_commands(cli):
    """Register backup commands with main CLI."""
    cli.add_command(backup_group, name="backup")
    cli.add_command(export_csv)
