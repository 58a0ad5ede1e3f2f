"""Cloud sync commands."""

import click
from lekha.cli.book_resolution import current_user, save_state
from lekha.cli.error_handling import handle_domain_error
from lekha.config import Settings
from lekha.database.base import Database
from lekha.domain.backup import BackupService
from lekha.domain.errors import DomainError
from lekha.domain.state import AppState
from lekha.domain.sync import BACKUP_FILE_NAME, CloudSyncService, LocalDirectorySyncBackend


def build_sync_service(db: Database, settings: Settings, state: AppState) -> CloudSyncService:
    """Sync service writing to the configured sync directory."""
    performed_by = state.current_user or settings.user
    return CloudSyncService(
        BackupService(db, performed_by=performed_by),
        LocalDirectorySyncBackend(settings.sync_dir),
    )


def _service(ctx) -> CloudSyncService:
    return build_sync_service(ctx.obj["db"], ctx.obj["settings"], ctx.obj["state"])


@click.group()
def sync_group():
    """Sync the full backup with the sync folder."""
    pass


@sync_group.command("push")
@click.pass_context
def push(ctx):
    """Upload all books, replacing the remote backup."""
    service = _service(ctx)
    state = ctx.obj["state"]
    try:
        service.push()
    except DomainError as e:
        state.sync_status = service.status
        handle_domain_error(ctx, e)
    state.sync_status = service.status
    click.echo(f"Uploaded {BACKUP_FILE_NAME} to {ctx.obj['settings'].sync_dir}")


@sync_group.command("pull")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def pull(ctx, yes: bool):
    """Download the remote backup and replace all local books with it."""
    if not yes and not click.confirm(
        "WARNING: This will REPLACE all local books with the remote backup. Are you sure?"
    ):
        click.echo("Pull cancelled.")
        return

    service = _service(ctx)
    state = ctx.obj["state"]
    try:
        summary = service.pull()
    except DomainError as e:
        state.sync_status = service.status
        handle_domain_error(ctx, e)
    state.sync_status = service.status
    click.echo(
        f"Restored {summary.books} books and {summary.transactions} transactions "
        f"from {BACKUP_FILE_NAME}"
    )
    if state.active_book_id and ctx.obj["db"].get_book(state.active_book_id) is None:
        state.active_book_id = None
        save_state(ctx)


@sync_group.command("auto")
@click.argument("mode", type=click.Choice(["on", "off"]))
@click.pass_context
def auto(ctx, mode: str):
    """Turn automatic push after every change on or off."""
    ctx.obj["state"].auto_sync_enabled = mode == "on"
    save_state(ctx)
    click.echo(f"Auto-sync {'enabled' if mode == 'on' else 'disabled'}")


@sync_group.command("status")
@click.pass_context
def status(ctx):
    """Show sync settings and whether a remote backup exists."""
    settings = ctx.obj["settings"]
    state = ctx.obj["state"]
    remote = settings.sync_dir / BACKUP_FILE_NAME
    click.echo(f"Sync folder: {settings.sync_dir}")
    click.echo(f"Auto-sync: {'on' if state.auto_sync_enabled else 'off'}")
    click.echo(f"User: {current_user(ctx)}")
    if remote.exists():
        click.echo(f"Remote backup: {remote.stat().st_size} bytes")
    else:
        click.echo("Remote backup: none")


def register_commands(cli):
    """Register sync commands with main CLI."""
    cli.add_command(sync_group, name="sync")
