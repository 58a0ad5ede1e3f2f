"""Field schema commands."""

import click
from lekha.cli.book_resolution import mark_changed, resolve_book_or_exit
from lekha.cli.error_handling import handle_domain_error
from lekha.domain.book import BookService
from lekha.domain.entities import FieldType, FieldValidation
from lekha.domain.errors import DomainError
from lekha.domain.schema import add_field, delete_field, find_field_index, move_field, update_field

FIELD_TYPES = [t.value for t in FieldType]


def _split_options(options: str | None) -> tuple[str, ...] | None:
    if options is None:
        return None
    return tuple(o.strip() for o in options.split(",") if o.strip())


def _find_or_exit(ctx, fields, name: str) -> int:
    index = find_field_index(fields, name)
    if index < 0:
        click.echo(f"Error: Field '{name}' not found", err=True)
        ctx.exit(1)
    return index


def _save(ctx, book_id: str, fields) -> None:
    try:
        BookService(ctx.obj["db"]).save_fields(book_id, fields)
    except DomainError as e:
        handle_domain_error(ctx, e)
    mark_changed(ctx)


@click.group()
def field_group():
    """Manage the fields of a book."""
    pass


@field_group.command("list")
@click.option("--book", help="Book name or ID (defaults to the active book)")
@click.pass_context
def list_fields(ctx, book: str | None):
    """List a book's fields in display order."""
    book_obj = resolve_book_or_exit(ctx, book)

    click.echo(f"\nFields of {book_obj.name}:")
    click.echo("-" * 72)
    for f in book_obj.sorted_fields():
        line = f"{f.order:2d}. {f.label:20s} | {f.key:24s} | {f.type.value:8s}"
        if f.required:
            line += " | required"
        if not f.visible:
            line += " | hidden"
        click.echo(line)
        if f.options:
            click.echo(f"      options: {', '.join(f.options)}")


@field_group.command("add")
@click.argument("label", metavar="LABEL")
@click.option("--book", help="Book name or ID (defaults to the active book)")
@click.option(
    "--type", "field_type", type=click.Choice(FIELD_TYPES), default="text", show_default=True
)
@click.option("--key", help="Field key (generated when omitted)")
@click.option("--required", is_flag=True, help="Entries must fill this field")
@click.option("--hidden", is_flag=True, help="Hide the field from entry forms")
@click.option("--options", help="Comma separated dropdown options")
@click.option("--multiline", is_flag=True, help="Text field spans several lines")
@click.option("--min", "min_value", type=float, help="Minimum for number fields")
@click.option("--max", "max_value", type=float, help="Maximum for number fields")
@click.option("--regex", help="Pattern text values must match")
@click.pass_context
def add_field_cmd(
    ctx,
    label: str,
    book: str | None,
    field_type: str,
    key: str | None,
    required: bool,
    hidden: bool,
    options: str | None,
    multiline: bool,
    min_value: float | None,
    max_value: float | None,
    regex: str | None,
):
    """Add a field at the end of a book's schema.

    Examples:
        lekha field add "Invoice No" --book Shop
        lekha field add "Mode" --type dropdown --options "Cash,Card,UPI"
    """
    book_obj = resolve_book_or_exit(ctx, book)
    if key and key in book_obj.field_keys:
        click.echo(f"Error: Field key '{key}' already exists", err=True)
        ctx.exit(1)

    validation = None
    if min_value is not None or max_value is not None or regex:
        validation = FieldValidation(min=min_value, max=max_value, regex=regex)
    fields = add_field(
        book_obj.sorted_fields(),
        label=label,
        field_type=FieldType(field_type),
        key=key,
        required=required,
        visible=not hidden,
        options=_split_options(options) or (),
        multiline=multiline,
        validation=validation,
    )
    _save(ctx, book_obj.id, fields)
    click.echo(f"Added field '{label}' ({fields[-1].key})")


@field_group.command("move")
@click.argument("name", metavar="FIELD")
@click.argument("direction", type=click.Choice(["up", "down"]))
@click.option("--book", help="Book name or ID (defaults to the active book)")
@click.pass_context
def move_field_cmd(ctx, name: str, direction: str, book: str | None):
    """Move a field one position up or down.

    FIELD can be a field key or label.
    """
    book_obj = resolve_book_or_exit(ctx, book)
    fields = book_obj.sorted_fields()
    index = _find_or_exit(ctx, fields, name)
    moved = move_field(fields, index, direction)
    if moved == fields:
        edge = "top" if direction == "up" else "bottom"
        click.echo(f"Field '{fields[index].label}' is already at the {edge}")
        return
    _save(ctx, book_obj.id, moved)
    click.echo(f"Moved field '{fields[index].label}' {direction}")


@field_group.command("update")
@click.argument("name", metavar="FIELD")
@click.option("--book", help="Book name or ID (defaults to the active book)")
@click.option("--label", help="New label")
@click.option("--type", "field_type", type=click.Choice(FIELD_TYPES), help="New type")
@click.option("--required/--optional", default=None, help="Whether entries must fill the field")
@click.option("--visible/--hidden", default=None, help="Whether forms show the field")
@click.option("--options", help="Comma separated dropdown options")
@click.option("--multiline/--single-line", default=None, help="Text field spans several lines")
@click.option("--force", is_flag=True, help="Allow changing the type of a core field")
@click.pass_context
def update_field_cmd(
    ctx,
    name: str,
    book: str | None,
    label: str | None,
    field_type: str | None,
    required: bool | None,
    visible: bool | None,
    options: str | None,
    multiline: bool | None,
    force: bool,
):
    """Update a field. Only the given attributes change.

    Examples:
        lekha field update remark --label "Notes" --multiline
        lekha field update category --type dropdown --options "Food,Rent"
    """
    book_obj = resolve_book_or_exit(ctx, book)
    fields = book_obj.sorted_fields()
    index = _find_or_exit(ctx, fields, name)

    changes = {
        "label": label,
        "type": field_type,
        "required": required,
        "visible": visible,
        "options": _split_options(options),
        "multiline": multiline,
    }
    changes = {k: v for k, v in changes.items() if v is not None}
    if not changes:
        click.echo("Nothing to update.")
        return

    result = update_field(fields, index, protect_core=not force, **changes)
    if not result.applied:
        click.echo(f"Error: {result.message}", err=True)
        ctx.exit(1)
    _save(ctx, book_obj.id, result.fields)
    click.echo(f"Updated field '{result.fields[index].label}'")


@field_group.command("delete")
@click.argument("name", metavar="FIELD")
@click.option("--book", help="Book name or ID (defaults to the active book)")
@click.option("--force", is_flag=True, help="Allow deleting amount, date or description")
@click.pass_context
def delete_field_cmd(ctx, name: str, book: str | None, force: bool):
    """Delete a field from a book's schema.

    Values already stored on transactions are kept.
    """
    book_obj = resolve_book_or_exit(ctx, book)
    fields = book_obj.sorted_fields()
    index = _find_or_exit(ctx, fields, name)

    result = delete_field(fields, index, protect_core=not force)
    if not result.applied:
        click.echo(f"Error: {result.message}", err=True)
        ctx.exit(1)
    updated = book_obj
    try:
        updated = BookService(ctx.obj["db"]).save_fields(book_obj.id, result.fields)
        if book_obj.primary_amount_field == fields[index].key:
            updated = BookService(ctx.obj["db"]).update_book(book_obj.id, primary_amount_field=None)
    except DomainError as e:
        handle_domain_error(ctx, e)
    mark_changed(ctx)
    click.echo(f"Deleted field '{fields[index].label}' ({len(updated.field_config)} fields left)")


def register_commands(cli):
    """Register field commands with main CLI."""
    cli.add_command(field_group, name="field")
