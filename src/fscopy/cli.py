"""
fscopy command line interface.

Usage:
    fscopy -f transfer.ini --no-dry-run
    fscopy -s prod -d staging -c users -c orders --include-subcollections
    fscopy --backend sqlite -s prod.db -d copy.db -c users --no-dry-run --yes
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any

import click

from fscopy import __version__
from fscopy.config import (
    TransferConfig,
    build_config,
    load_config_file,
    parse_rename_mapping,
    parse_string_list,
    parse_where,
    validate_config,
)
from fscopy.exceptions import ConfigurationError, FscopyError
from fscopy.models import TransferResult
from fscopy.orchestrator import run_transfer
from fscopy.stores import create_database, open_databases

logger = logging.getLogger("fscopy")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# ============================================================================
# Helpers
# ============================================================================


def _configure_logging(log_file: str | None, quiet: bool, verbose: bool) -> None:
    """Attach console and optional file handlers to the ``fscopy`` logger."""
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    console = logging.StreamHandler(sys.stderr)
    if quiet:
        console.setLevel(logging.WARNING)
    elif verbose:
        console.setLevel(logging.DEBUG)
    else:
        console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)


def _collect_cli_values(options: dict[str, Any]) -> dict[str, Any]:
    """Convert raw click option values to TransferConfig fields."""
    values: dict[str, Any] = dict(options)
    values["collections"] = parse_string_list(options.get("collections"))
    values["exclude"] = parse_string_list(options.get("exclude"))
    values["where"] = [parse_where(expr) for expr in options.get("where") or ()]
    values["rename_collection"] = parse_rename_mapping(options.get("rename_collection"))
    return values


def _display_config(config: TransferConfig, backend: str) -> None:
    lines = [
        f"Backend:         {backend}",
        f"Source:          {config.source_project}",
        f"Destination:     {config.dest_project}",
        f"Collections:     {', '.join(config.collections)}",
        f"Subcollections:  {'yes' if config.include_subcollections else 'no'}",
        f"Mode:            {'DRY RUN' if config.dry_run else 'LIVE'}",
        f"Batch size:      {config.batch_size}",
    ]
    if config.where:
        lines.append(f"Where:           {'; '.join(str(w) for w in config.where)}")
    if config.exclude:
        lines.append(f"Exclude:         {', '.join(config.exclude)}")
    if config.rename_collection:
        renames = ", ".join(f"{k} -> {v}" for k, v in config.rename_collection.items())
        lines.append(f"Rename:          {renames}")
    if config.modifies_ids:
        lines.append(f"ID transform:    {config.id_prefix or ''}<id>{config.id_suffix or ''}")
    if config.merge:
        lines.append("Merge:           yes")
    if config.clear:
        lines.append("Clear dest:      yes")
    if config.delete_missing:
        lines.append("Delete missing:  yes")
    if config.rate_limit:
        lines.append(f"Rate limit:      {config.rate_limit} docs/s")
    if config.resume:
        lines.append(f"Resume from:     {config.state_file}")
    if config.transform:
        lines.append(f"Transform:       {config.transform}")

    click.echo("Transfer configuration")
    click.echo("-" * 40)
    for line in lines:
        click.echo(f"  {line}")
    click.echo()


def _display_summary(result: TransferResult, dry_run: bool) -> None:
    stats = result.stats
    click.echo()
    click.echo("Dry run summary" if dry_run else "Transfer summary")
    click.echo("-" * 40)
    click.echo(f"  Collections processed:  {stats.collections_processed}")
    click.echo(f"  Documents transferred:  {stats.documents_transferred}")
    if stats.documents_deleted:
        click.echo(f"  Documents deleted:      {stats.documents_deleted}")
    click.echo(f"  Errors:                 {stats.errors}")
    if stats.conflicts:
        click.echo(f"  Conflicts:              {stats.conflicts}")
    if stats.integrity_errors:
        click.echo(f"  Integrity errors:       {stats.integrity_errors}")
    click.echo(f"  Duration:               {result.duration_seconds:.2f}s")

    for conflict in result.conflicts:
        click.echo(f"  conflict: {conflict.collection}/{conflict.doc_id}: {conflict.reason}")

    if result.verify_result is not None:
        click.echo()
        click.echo("Verification")
        for path, count in result.verify_result.items():
            status = "ok" if count.matches else "MISMATCH"
            click.echo(
                f"  {path}: source={count.source_count} dest={count.dest_count} {status}"
            )

    if result.error is not None:
        click.echo()
        click.echo(f"Error: {result.error}", err=True)
        if isinstance(result.error, FscopyError) and result.error.suggested_action:
            click.echo(f"Suggestion: {result.error.suggested_action}", err=True)


async def _run(config: TransferConfig, backend: str) -> TransferResult:
    source = create_database(backend, config.source_project or "")  # type: ignore[arg-type]
    destination = create_database(backend, config.dest_project or "")  # type: ignore[arg-type]
    async with open_databases(source, destination) as (src, dst):
        return await run_transfer(config, src, dst)


# ============================================================================
# Command
# ============================================================================


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, prog_name="fscopy")
@click.option("--config", "-f", "config_file", help="JSON or INI config file")
@click.option(
    "--backend",
    default="firestore",
    show_default=True,
    type=click.Choice(["firestore", "sqlite"]),
    help="Database backend (with sqlite, projects are database file paths)",
)
@click.option("--source-project", "-s", help="Source project")
@click.option("--dest-project", "-d", help="Destination project")
@click.option(
    "--collections", "-c", multiple=True, help="Collections to copy (repeatable or comma-separated)"
)
@click.option(
    "--include-subcollections/--no-include-subcollections",
    default=None,
    help="Copy subcollections recursively",
)
@click.option("--dry-run/--no-dry-run", default=None, help="Simulate without writing (default: on)")
@click.option("--batch-size", "-b", type=int, help="Documents per write batch (1-500)")
@click.option("--limit", "-l", type=int, help="Maximum documents per top-level collection")
@click.option("--retries", type=int, help="Retries for queries and commits")
@click.option("--where", "-w", multiple=True, help='Filter, e.g. "status == active" (repeatable)')
@click.option("--exclude", "-x", multiple=True, help="Subcollection name patterns to skip")
@click.option("--merge/--no-merge", default=None, help="Merge into existing documents")
@click.option("--parallel", "-p", type=int, help="Collections copied concurrently")
@click.option("--clear/--no-clear", default=None, help="Delete destination collections first")
@click.option(
    "--delete-missing/--no-delete-missing",
    default=None,
    help="Delete destination documents absent from the source",
)
@click.option(
    "--rename-collection", "-r", multiple=True, help="Rename root collection (source:dest)"
)
@click.option("--id-prefix", help="Prefix for destination document IDs")
@click.option("--id-suffix", help="Suffix for destination document IDs")
@click.option("--resume/--no-resume", default=None, help="Continue an interrupted transfer")
@click.option("--state-file", help="State file for resume")
@click.option("--verify/--no-verify", default=None, help="Compare counts after the transfer")
@click.option("--rate-limit", type=float, help="Maximum documents written per second")
@click.option(
    "--skip-oversized/--no-skip-oversized",
    default=None,
    help="Skip documents over 1 MiB instead of failing",
)
@click.option(
    "--detect-conflicts/--no-detect-conflicts",
    default=None,
    help="Skip documents modified in the destination during the transfer",
)
@click.option(
    "--verify-integrity/--no-verify-integrity",
    default=None,
    help="Re-read written documents and compare hashes",
)
@click.option("--max-depth", type=int, help="Maximum subcollection depth (0 = unlimited)")
@click.option("--transform", "-t", help="Python file defining transform(data, meta)")
@click.option(
    "--transform-samples", type=int, help="Documents tested per collection in dry run (-1 = all)"
)
@click.option("--log", "log_file", help="Write a detailed log to this file")
@click.option("--quiet", "-q", is_flag=True, help="Only show warnings and the summary")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt")
def main(
    config_file: str | None,
    backend: str,
    log_file: str | None,
    quiet: bool,
    verbose: bool,
    yes: bool,
    **options: Any,
) -> None:
    """Copy Firestore collections between projects."""
    _configure_logging(log_file, quiet, verbose)

    try:
        file_values = load_config_file(config_file) if config_file else {}
        cli_values = _collect_cli_values(options)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e
    except ConfigurationError as e:
        for error in e.errors:
            click.echo(f"Error: {error}", err=True)
        sys.exit(1)

    try:
        config = build_config(file_values, cli_values)
    except ConfigurationError as e:
        for error in e.errors:
            click.echo(f"Error: {error}", err=True)
        sys.exit(1)

    errors = validate_config(config)
    if errors:
        for error in errors:
            click.echo(f"Error: {error}", err=True)
        sys.exit(1)

    if not quiet:
        _display_config(config, backend)

    if not config.dry_run and not yes:
        click.confirm(
            f"Write to {config.dest_project}? This modifies the destination", abort=True
        )

    result = asyncio.run(_run(config, backend))

    _display_summary(result, config.dry_run)
    sys.exit(result.exit_code)


__all__ = ["main"]
