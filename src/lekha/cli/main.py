"""Main CLI entry point."""

import logging

import click
from lekha.config import get_settings
from lekha.database.factories import create_sqlite_database
from lekha.domain.errors import DomainError
from lekha.domain.state import AppStateStore
from lekha.domain.template import TemplateService

# Import and register all commands at module level
from lekha.cli.commands import (
    add,
    backup,
    book,
    field,
    import_cmd,
    report,
    sync,
    template,
    transaction,
    user,
)

logger = logging.getLogger(__name__)


def _finish(obj: dict) -> None:
    """Push a backup if the command changed data and auto-sync is on, then disconnect."""
    db = obj.get("db")
    if db is None:
        return
    state = obj["state"]
    if obj.get("changed") and state.auto_sync_enabled:
        service = sync.build_sync_service(db, obj["settings"], state)
        try:
            service.push()
            click.echo("Auto-sync: backup uploaded", err=True)
        except DomainError as e:
            click.echo(f"Warning: auto-sync failed: {e}", err=True)
    db.disconnect()


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides LEKHA_DB_PATH environment variable)",
    envvar="LEKHA_DB_PATH",
)
@click.pass_context
def cli(ctx, db_path: str | None):
    """Lekha - Personal bookkeeping with custom fields.

    Keep books with their own transaction fields, import bank statements
    from CSV, review the audit trail and reports, and back everything up
    to a JSON file or a sync folder.
    """
    ctx.ensure_object(dict)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        TemplateService(db).ensure_default_templates()

        store = AppStateStore(settings.state_path)
        ctx.obj["db"] = db
        ctx.obj["settings"] = settings
        ctx.obj["state_store"] = store
        ctx.obj["state"] = store.load()
        obj = ctx.obj
        ctx.call_on_close(lambda: _finish(obj))


# Register all commands
book.register_commands(cli)
field.register_commands(cli)
template.register_commands(cli)
add.register_commands(cli)
transaction.register_commands(cli)
import_cmd.register_commands(cli)
report.register_commands(cli)
backup.register_commands(cli)
sync.register_commands(cli)
user.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
