"""Interactive per-unit confirmation."""

from __future__ import annotations

from pathlib import Path

import click

from .models import AudioItem, BookGroup


def describe(subject: AudioItem | BookGroup) -> list[str]:
    if isinstance(subject, BookGroup):
        lines = [
            f"Title:  {subject.display_title}",
            f"Author: {subject.display_author}",
        ]
        if subject.reference.valid_series:
            lines.append(f"Series: {subject.reference.valid_series}")
        lines.append(f"Files:  {subject.total_tracks}")
        return lines
    lines = [
        f"Title:  {subject.resolved_title}",
        f"Author: {', '.join(subject.resolved_authors)}",
    ]
    if subject.valid_series:
        lines.append(f"Series: {subject.valid_series}")
    return lines


def confirm_move(subject: AudioItem | BookGroup, source: Path, target: Path) -> bool:
    """Ask y/N before moving a unit. Defaults to no."""
    click.echo("")
    for line in describe(subject):
        click.echo(f"  {line}")
    click.echo(f"  From:   {source}")
    click.echo(f"  To:     {target}")
    return click.confirm("Proceed with this move?", default=False)
