"""CLI entry point for the audiobook organizer."""

import sys
from pathlib import Path

import click
from loguru import logger
from pydantic import ValidationError

from .config import OrganizerConfig
from .errors import ConfigError, LogError, WalkError
from .models import Layout, RunSummary
from .ops.undo import UndoReport
from .runner import OrganizerRunner

log = logger.bind(stage="cli")


def _find_config_file() -> Path | None:
    """Look for .env in cwd."""
    candidate = Path.cwd() / ".env"
    return candidate if candidate.is_file() else None


def _echo_summary(summary: RunSummary, dry_run: bool) -> None:
    verb = "Would move" if dry_run else "Moved"
    click.echo("")
    for move in summary.moves:
        click.echo(f"  {verb}: {move.source} -> {move.target}")
    for failure in summary.failures:
        click.echo(f"  FAILED: {failure.path}: {failure.reason}", err=True)
    click.echo("")
    click.echo("Summary:")
    click.echo(f"  Metadata found:     {len(summary.metadata_found)}")
    click.echo(f"  Metadata missing:   {len(summary.metadata_missing)}")
    click.echo(f"  Invalid metadata:   {len(summary.invalid)}")
    click.echo(f"  {verb + ':':<20}{len(summary.moves)}")
    click.echo(f"  Already organized:  {len(summary.skipped)}")
    if summary.declined:
        click.echo(f"  Declined:           {len(summary.declined)}")
    if summary.empty_dirs_removed:
        click.echo(f"  Empty dirs removed: {len(summary.empty_dirs_removed)}")
    click.echo(f"  Failures:           {len(summary.failures)}")


def _echo_undo(report: UndoReport) -> None:
    for restored in report.restored:
        click.echo(f"  Restored: {restored.source} -> {restored.target}")
    for failure in report.failures:
        click.echo(f"  FAILED: {failure.path}: {failure.reason}", err=True)
    click.echo(f"Restored {len(report.restored)} file(s), {len(report.failures)} failure(s)")
    if not report.log_removed:
        click.echo("Operation log kept; run --undo again to finish.")


@click.command()
@click.argument("base_dir", type=click.Path(file_okay=False, path_type=Path))
@click.option("--out", "output_dir", type=click.Path(file_okay=False, path_type=Path),
              default=None, help="Organize into this directory instead of BASE_DIR.")
@click.option("--layout", type=click.Choice([layout.value for layout in Layout]),
              default=None, help="Destination directory layout.")
@click.option("--flat", is_flag=True, help="Treat every file individually, regrouping by metadata.")
@click.option("--dry-run", is_flag=True, help="Show what would happen without doing it.")
@click.option("--undo", is_flag=True, help="Reverse the moves of the previous run.")
@click.option("--prompt", is_flag=True, help="Confirm each move interactively.")
@click.option("--remove-empty", is_flag=True, help="Remove source directories left empty.")
@click.option("--use-embedded-metadata", is_flag=True,
              help="Prefer embedded tags over metadata.json.")
@click.option("--embedded-only", is_flag=True, help="Ignore metadata.json entirely.")
@click.option("--add-track-numbers", is_flag=True, help='Prefix filenames with "NN - ".')
@click.option("--rename-pattern", default=None,
              help="Rename files, e.g. '{track} - {title}'. Wins over --add-track-numbers.")
@click.option("--replace-space", default=None, help="Replace spaces in names with this character.")
@click.option("--title-field", default=None, help="Raw key used for the title.")
@click.option("--series-field", default=None, help="Raw key used for the series.")
@click.option("--author-fields", default=None, help="Comma-separated raw keys merged into authors.")
@click.option("--track-field", default=None, help="Raw key used for the track number.")
@click.option("--plan-script", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="With --dry-run, write the plan as a bash script.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option("-c", "--config", "config_file", type=click.Path(exists=True, dir_okay=False),
              default=None, help="Path to .env file.")
def main(
    base_dir: Path,
    output_dir: Path | None,
    layout: str | None,
    flat: bool,
    dry_run: bool,
    undo: bool,
    prompt: bool,
    remove_empty: bool,
    use_embedded_metadata: bool,
    embedded_only: bool,
    add_track_numbers: bool,
    rename_pattern: str | None,
    replace_space: str | None,
    title_field: str | None,
    series_field: str | None,
    author_fields: str | None,
    track_field: str | None,
    plan_script: Path | None,
    verbose: bool,
    config_file: str | None,
) -> None:
    """Organize audiobooks and ebooks under BASE_DIR by author, series, and title."""
    # Pass CLI flags as kwargs; unset options fall through to env / .env
    config_kwargs: dict = {"base_dir": base_dir.resolve()}
    flags = {
        "flat": flat,
        "dry_run": dry_run,
        "undo": undo,
        "prompt": prompt,
        "remove_empty": remove_empty,
        "use_embedded_metadata": use_embedded_metadata,
        "embedded_only": embedded_only,
        "add_track_numbers": add_track_numbers,
        "verbose": verbose,
    }
    config_kwargs.update({name: True for name, value in flags.items() if value})
    options = {
        "output_dir": output_dir.resolve() if output_dir else None,
        "layout": layout,
        "rename_pattern": rename_pattern,
        "replace_space": replace_space,
        "title_field": title_field,
        "series_field": series_field,
        "author_fields": author_fields,
        "track_field": track_field,
        "plan_script": plan_script,
    }
    config_kwargs.update({name: value for name, value in options.items() if value is not None})

    env_file = Path(config_file) if config_file else _find_config_file()
    try:
        config = OrganizerConfig(_env_file=env_file, **config_kwargs)
    except ValidationError as exc:
        raise click.UsageError(f"Invalid configuration: {exc}") from exc
    config.setup_logging()
    log.debug(f"Config: {config.model_dump()}")

    try:
        runner = OrganizerRunner(config)
    except ConfigError as exc:
        raise click.UsageError(str(exc)) from exc

    if config.undo:
        try:
            report = runner.undo()
        except LogError as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(1)
        _echo_undo(report)
        return

    try:
        summary = runner.run()
    except WalkError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    _echo_summary(summary, config.dry_run)
