"""Field template commands."""

import click
from lekha.cli.book_resolution import mark_changed, resolve_book_or_exit
from lekha.cli.error_handling import handle_domain_error
from lekha.domain.book import BookService
from lekha.domain.errors import DomainError
from lekha.domain.template import TemplateService


@click.group()
def template_group():
    """Manage field templates."""
    pass


@template_group.command("list")
@click.option("--verbose", "-v", is_flag=True, help="Show the fields of each template")
@click.pass_context
def list_templates(ctx, verbose: bool):
    """List templates, system defaults first."""
    templates = TemplateService(ctx.obj["db"]).list_templates()
    if not templates:
        click.echo("No templates found.")
        return

    click.echo("\nTemplates:")
    click.echo("-" * 72)
    for t in templates:
        kind = "system" if t.is_default else "custom"
        click.echo(f"{t.name:24s} | {kind:6s} | {len(t.field_config):2d} fields | {t.id}")
        if t.description:
            click.echo(f"    {t.description}")
        if verbose:
            for f in t.field_config:
                click.echo(f"      {f.order:2d}. {f.label} ({f.type.value})")


@template_group.command("create")
@click.argument("name", metavar="TEMPLATE_NAME")
@click.option("--description", default="", help="Template description")
@click.pass_context
def create_template(ctx, name: str, description: str):
    """Create a template with the default fields."""
    try:
        template = TemplateService(ctx.obj["db"]).create_template(name, description)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created template '{template.name}' (ID: {template.id})")


@template_group.command("save")
@click.argument("name", metavar="TEMPLATE_NAME")
@click.option("--book", help="Book name or ID (defaults to the active book)")
@click.option("--description", default="", help="Template description")
@click.pass_context
def save_template(ctx, name: str, book: str | None, description: str):
    """Save a book's fields and preferences as a template.

    Examples:
        lekha template save "My Shop" --book Shop
    """
    book_obj = resolve_book_or_exit(ctx, book)
    try:
        template = TemplateService(ctx.obj["db"]).save_book_as_template(
            book_obj.id, name, description
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Saved '{book_obj.name}' as template '{template.name}' (ID: {template.id})")


@template_group.command("apply")
@click.argument("template", metavar="TEMPLATE")
@click.option("--book", help="Book name or ID (defaults to the active book)")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def apply_template(ctx, template: str, book: str | None, yes: bool):
    """Replace a book's fields with a template's.

    Existing transactions keep their stored values.
    """
    db = ctx.obj["db"]
    book_obj = resolve_book_or_exit(ctx, book)
    try:
        template_obj = TemplateService(db).resolve_template(template)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not yes and not click.confirm(
        f"Replace the fields of '{book_obj.name}' with template '{template_obj.name}'?"
    ):
        click.echo("Cancelled.")
        return

    try:
        BookService(db).apply_template(book_obj.id, template_obj.id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    mark_changed(ctx)
    click.echo(f"Applied template '{template_obj.name}' to '{book_obj.name}'")


@template_group.command("update")
@click.argument("template", metavar="TEMPLATE")
@click.option("--name", help="New template name")
@click.option("--description", help="New description")
@click.option("--from-book", help="Replace the fields with those of this book")
@click.pass_context
def update_template(
    ctx, template: str, name: str | None, description: str | None, from_book: str | None
):
    """Rename a custom template or replace its fields."""
    service = TemplateService(ctx.obj["db"])
    field_config = None
    if from_book:
        field_config = resolve_book_or_exit(ctx, from_book).field_config
    try:
        template_obj = service.resolve_template(template)
        updated = service.update_template(
            template_obj.id, name=name, description=description, field_config=field_config
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Updated template '{updated.name}'")


@template_group.command("delete")
@click.argument("template", metavar="TEMPLATE")
@click.pass_context
def delete_template(ctx, template: str):
    """Delete a custom template. System templates cannot be deleted."""
    service = TemplateService(ctx.obj["db"])
    try:
        template_obj = service.resolve_template(template)
        service.delete_template(template_obj.id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted template '{template_obj.name}'")


def register_commands(cli):
    """Register template commands with main CLI."""
    cli.add_command(template_group, name="template")
