"""CLI helpers for date range resolution."""

from datetime import date

import click

from lekha.utils.date_parser import get_date_range, parse_date


def resolve_cli_date_range(
    ctx,
    *,
    start_date: str | None,
    end_date: str | None,
    period: str | None,
) -> tuple[date | None, date | None]:
    """Resolve CLI date range from a period name or explicit dates."""
    if period and (start_date or end_date):
        click.echo(
            "Error: --period cannot be combined with --start-date or --end-date.",
            err=True,
        )
        ctx.exit(1)

    if period:
        return get_date_range(period)

    start = None
    end = None
    if start_date:
        try:
            start = parse_date(start_date)
        except ValueError as e:
            click.echo(f"Error: Invalid start date: {e}", err=True)
            ctx.exit(1)

    if end_date:
        try:
            end = parse_date(end_date)
        except ValueError as e:
            click.echo(f"Error: Invalid end date: {e}", err=True)
            ctx.exit(1)

    if start is not None and end is not None and start > end:
        click.echo("Error: --start-date is after --end-date.", err=True)
        ctx.exit(1)
    return start, end
