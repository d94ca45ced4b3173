"""Execute planned moves and record them in the operation log."""

from __future__ import annotations

import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from ..errors import MoveFailed
from ..models import (
    AudioItem,
    BookGroup,
    MoveFailure,
    MoveSummary,
    OperationLogEntry,
    RunSummary,
)
from .paths import is_already_organized

if TYPE_CHECKING:
    from ..oplog import OperationLog
    from ..plan_script import PlanScript

log = logger.bind(stage="move")

ConfirmFn = Callable[[AudioItem | BookGroup, Path, Path], bool]


@dataclass
class MoveUnit:
    """Files that move together from one source dir to one target dir.

    A unit is logged as a single OperationLogEntry.
    """

    subject: AudioItem | BookGroup
    source_dir: Path
    target_dir: Path
    moves: list[tuple[Path, Path]] = field(default_factory=list)


def plan_moves(
    subject: AudioItem | BookGroup, pairs: list[tuple[Path, Path]]
) -> list[MoveUnit]:
    """Split (source, destination) pairs into units by source and target dir."""
    units: dict[tuple[Path, Path], MoveUnit] = {}
    for source, destination in pairs:
        key = (source.parent, destination.parent)
        if key not in units:
            units[key] = MoveUnit(subject, source.parent, destination.parent)
        units[key].moves.append((source, destination))
    return list(units.values())


def move_file(source: Path, destination: Path) -> Path:
    """Move one file, never overwriting. Raises MoveFailed."""
    if destination.exists():
        raise MoveFailed(source, f"destination already exists: {destination}")
    log.info(f"Move {source} -> {destination}")
    try:
        # shutil.move renames, falling back to copy+delete across devices
        shutil.move(str(source), str(destination))
    except OSError as exc:
        raise MoveFailed(source, str(exc)) from exc
    return destination


def cleanup_empty_parents(directory: Path, stop_at: Path | None) -> list[Path]:
    """Remove empty parent directories after a move.

    Walks up from directory, removing each empty dir until reaching
    stop_at or a non-empty directory. Returns the removed directories.
    """
    removed: list[Path] = []
    current = directory
    while current != stop_at and current != current.parent:
        try:
            if current.is_dir() and not any(current.iterdir()):
                current.rmdir()
                log.debug(f"Removed empty dir: {current}")
                removed.append(current)
            else:
                break
        except OSError:
            break
        current = current.parent
    return removed


def execute_unit(
    unit: MoveUnit,
    summary: RunSummary | None = None,
    *,
    dry_run: bool = False,
    confirm: ConfirmFn | None = None,
    oplog: OperationLog | None = None,
    plan: PlanScript | None = None,
    remove_empty: bool = False,
    stop_at: Path | None = None,
) -> RunSummary:
    """Move one unit. Per-file failures land in the summary; nothing raises."""
    summary = summary if summary is not None else RunSummary()

    pending = []
    for source, destination in unit.moves:
        if is_already_organized(source, destination):
            log.debug(f"Already organized: {source}")
            summary.skipped.append(source)
        else:
            pending.append((source, destination))
    if not pending:
        return summary

    if dry_run:
        for source, destination in pending:
            log.info(f"[dry-run] {source} -> {destination}")
            summary.moves.append(MoveSummary(source, destination))
            if plan is not None:
                plan.add_move(source, destination, unit.subject)
        return summary

    if confirm is not None and not confirm(unit.subject, unit.source_dir, unit.target_dir):
        log.info(f"Declined: {unit.source_dir} -> {unit.target_dir}")
        summary.declined.extend(source for source, _ in pending)
        return summary

    try:
        unit.target_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        log.error(f"Cannot create {unit.target_dir}: {exc}")
        summary.failures.extend(
            MoveFailure(source, f"cannot create {unit.target_dir}: {exc}")
            for source, _ in pending
        )
        return summary

    moved: list[tuple[Path, Path]] = []
    for source, destination in pending:
        try:
            move_file(source, destination)
        except MoveFailed as exc:
            log.error(f"Move failed: {exc}")
            summary.failures.append(MoveFailure(exc.path, exc.reason))
            continue
        moved.append((source, destination))
        summary.moves.append(MoveSummary(source, destination))

    if moved:
        renamed = any(s.name != d.name for s, d in moved)
        entry = OperationLogEntry(
            source_path=str(unit.source_dir),
            target_path=str(unit.target_dir),
            files=[d.name for _, d in moved],
            original_files=[s.name for s, _ in moved] if renamed else None,
        )
        summary.log_entries.append(entry)
        if oplog is not None:
            try:
                oplog.append(entry)
            except OSError as exc:
                log.error(f"Failed to write operation log {oplog.path}: {exc}")
                summary.failures.append(MoveFailure(oplog.path, f"log write failed: {exc}"))

    if remove_empty:
        summary.empty_dirs_removed.extend(cleanup_empty_parents(unit.source_dir, stop_at))
    return summary
