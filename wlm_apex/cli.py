"""Command-line interface for wlm-apex."""

import logging
import os
from datetime import datetime

import click
from rich.console import Console
from rich.progress import track
from rich.table import Table

from .config import ApexConfig
from .database import get_db_url, get_session, init_db
from .exceptions import SourceUnavailableError
from .exporters import REPORT_COLUMNS, get_exporter
from .loaders import load_service_class_configs, load_wlm_queries
from .logging import configure_logging
from .parsers import read_records
from .queries import WlmQueries
from .redshift_sql import DEFAULT_SERIES_SOURCE, render_redshift_sql
from .series import utc_now, window_bounds

TIMESTAMP_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d")


def parse_timestamp_option(ctx, param, value):
    """Callback to parse a UTC timestamp option into a naive datetime."""
    if value is None:
        return None
    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise click.BadParameter("Timestamp must be in 'YYYY-MM-DD HH:MM:SS' format (UTC).")


def filter_options(func):
    """Attach the window and filter options shared by every reading command."""
    options = [
        click.option("--window-seconds", type=int, help="Lookback window in seconds (default: 604800)."),
        click.option("--min-service-class", type=int, help="Ignore service classes at or below this (default: 4)."),
        click.option("--min-user-id", type=int, help="Ignore user ids at or below this (default: 1)."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def window_options(func):
    """Attach the report tunables: the filter options plus the sampling step."""
    func = click.option(
        "--granularity", "granularity_seconds", type=int,
        help="Seconds between sampled instants (default: 1).",
    )(func)
    return filter_options(func)


def build_config(**overrides) -> ApexConfig:
    """Environment config with command-line overrides applied."""
    try:
        return ApexConfig.from_env().with_overrides(**overrides)
    except ValueError as e:
        raise click.UsageError(str(e))


def _require_sqlite(url: str):
    if not url.startswith("sqlite"):
        raise click.ClickException("Only a local SQLite mirror can be initialized or loaded.")


@click.group()
@click.option("--db-url", envvar="WLM_APEX_DB_URL", help="SQLAlchemy URL of the WLM database (default: local mirror).")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx, db_url, verbose):
    """Hourly high-water-mark of WLM query slots."""
    configure_logging(logging.DEBUG if verbose else logging.WARNING)
    ctx.ensure_object(dict)
    ctx.obj['db_url'] = db_url or get_db_url()
    ctx.obj['verbose'] = verbose


@cli.command()
@window_options
@click.option("--keep-ties", is_flag=True, help="Report every instant that reached an hour's peak.")
@click.option("--now", type=str, callback=parse_timestamp_option, help="End of the window, UTC (default: current time).")
@click.option("--format", "output_format", type=click.Choice(["table", "dat", "json", "csv", "md"]), default="table", help="Output format.")
@click.option("--output-dir", type=click.Path(file_okay=False, dir_okay=True, writable=True, resolve_path=True), default=".", help="Directory to save file reports.")
@click.pass_context
def report(ctx, window_seconds, granularity_seconds, min_service_class, min_user_id,
           keep_ties, now, output_format, output_dir):
    """Per-hour peak slot usage for each WLM service class."""
    config = build_config(
        window_seconds=window_seconds,
        granularity_seconds=granularity_seconds,
        min_service_class=min_service_class,
        min_user_id=min_user_id,
        keep_ties=keep_ties,
    )
    now = now or utc_now()

    session = get_session(ctx.obj['db_url'])
    try:
        rows = WlmQueries(session).hourly_apex(config, now=now)
    except SourceUnavailableError as e:
        raise click.ClickException(str(e))
    finally:
        session.close()

    if output_format == "table":
        if not rows:
            click.echo("No WLM activity in the window.")
            return
        console = Console()
        table = Table("Service Class", "WLM Concurrency", "Day", "Hour", "Max Slots", "Peak At", "Queries")
        for row in rows:
            table.add_row(
                str(row.service_class),
                str(row.max_wlm_concurrency),
                row.day.isoformat(),
                row.hour,
                str(row.max_service_class_slots),
                row.peak_time.strftime("%H:%M:%S"),
                str(row.service_class_queries),
            )
        console.print(table)
        return

    start, end = window_bounds(now, config.window_seconds)
    exporter = get_exporter(output_format)
    filename = f"wlm_apex_{start:%Y%m%dT%H%M%S}_{end:%Y%m%dT%H%M%S}.{exporter.extension}"
    filepath = os.path.join(output_dir, filename)
    exporter.export([row.to_dict() for row in rows], REPORT_COLUMNS, filepath)
    if not rows:
        click.echo("No WLM activity in the window.")
    click.echo(f"Report saved to {filepath}")


@cli.command()
@filter_options
@click.option("--now", type=str, callback=parse_timestamp_option, help="End of the window, UTC (default: current time).")
@click.pass_context
def summary(ctx, window_seconds, min_service_class, min_user_id, now):
    """Per-class activity in the window, to check the source data."""
    config = build_config(
        window_seconds=window_seconds,
        min_service_class=min_service_class,
        min_user_id=min_user_id,
    )
    start, end = window_bounds(now or utc_now(), config.window_seconds)

    session = get_session(ctx.obj['db_url'])
    try:
        data = WlmQueries(session).service_class_summary(
            start, end,
            min_service_class=config.min_service_class,
            min_user_id=config.min_user_id,
        )
    except SourceUnavailableError as e:
        raise click.ClickException(str(e))
    finally:
        session.close()

    console = Console()
    table = Table("Service Class", "WLM Concurrency", "Queries", "Total Slots", "Max Slot Count", "First Start", "Last End")
    for row in data:
        table.add_row(
            str(row['service_class']),
            "-" if row['num_query_tasks'] is None else str(row['num_query_tasks']),
            str(row['query_count']),
            str(row['total_slots']),
            str(row['max_slot_count']),
            str(row['first_start']),
            str(row['last_end']),
        )
    console.print(table)


@cli.command()
@window_options
@click.option("--series-source", default=DEFAULT_SERIES_SOURCE, show_default=True, help="Table with enough rows to build the time axis.")
def sql(window_seconds, granularity_seconds, min_service_class, min_user_id, series_source):
    """Print the equivalent query to run on the cluster."""
    config = build_config(
        window_seconds=window_seconds,
        granularity_seconds=granularity_seconds,
        min_service_class=min_service_class,
        min_user_id=min_user_id,
    )
    try:
        click.echo(render_redshift_sql(config, series_source=series_source))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--series-source")


@cli.command("init-db")
@click.pass_context
def init_db_command(ctx):
    """Create the WLM tables in the local mirror."""
    url = ctx.obj['db_url']
    _require_sqlite(url)
    engine = init_db(url)
    engine.dispose()
    click.echo(f"Initialized {url}")


@cli.command()
@click.option("--queries", "queries_path", type=click.Path(exists=True, dir_okay=False), help="stl_wlm_query export (.csv, .json, .jsonl).")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="stv_wlm_service_class_config export (.csv, .json, .jsonl).")
@click.option("--batch-size", type=int, default=1000, show_default=True, help="Records per batch insert.")
@click.option("--dry-run", is_flag=True, help="Parse the files without writing to the database.")
@click.pass_context
def load(ctx, queries_path, config_path, batch_size, dry_run):
    """Import unloaded WLM system tables into the local mirror."""
    if not queries_path and not config_path:
        raise click.UsageError("Nothing to load: pass --queries and/or --config.")

    url = ctx.obj['db_url']
    _require_sqlite(url)
    engine = init_db(url)
    session = get_session(engine=engine)

    try:
        if config_path:
            stats = load_service_class_configs(session, read_records(config_path), dry_run=dry_run)
            click.echo(f"Service classes: {stats['inserted']} loaded, {stats['errors']} skipped")

        if queries_path:
            rows = read_records(queries_path)
            if ctx.obj['verbose']:
                rows = track(rows, description="Loading stl_wlm_query...")
            stats = load_wlm_queries(session, rows, batch_size=batch_size, dry_run=dry_run)
            click.echo(
                f"Queries: {stats['fetched']:,} read, {stats['inserted']:,} new, "
                f"{stats['errors']:,} skipped"
            )
    except ValueError as e:
        raise click.ClickException(str(e))
    finally:
        session.close()
        engine.dispose()


if __name__ == "__main__":
    cli()
