"""Reverse the moves recorded in an operation log."""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from ..models import MoveFailure, MoveSummary, OperationLogEntry
from ..oplog import OperationLog

log = logger.bind(stage="undo")


@dataclass
class UndoReport:
    restored: list[MoveSummary] = field(default_factory=list)
    failures: list[MoveFailure] = field(default_factory=list)
    log_removed: bool = False

    @property
    def ok(self) -> bool:
        return not self.failures


def _undo_entry(entry: OperationLogEntry, report: UndoReport) -> OperationLogEntry | None:
    """Move an entry's files back; returns what is left to restore, if anything."""
    source_dir = Path(entry.source_path)
    target_dir = Path(entry.target_path)
    originals = entry.original_files or entry.files

    try:
        source_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        log.error(f"Cannot recreate {source_dir}: {exc}")
        report.failures.extend(
            MoveFailure(target_dir / name, f"cannot recreate {source_dir}: {exc}")
            for name in entry.files
        )
        return entry

    left_files: list[str] = []
    left_originals: list[str] = []
    for name, original in zip(entry.files, originals):
        current = target_dir / name
        restored = source_dir / original
        try:
            if restored.exists():
                raise FileExistsError(f"{restored} already exists")
            shutil.move(str(current), str(restored))
        except OSError as exc:
            log.error(f"Restore failed for {current}: {exc}")
            report.failures.append(MoveFailure(current, str(exc)))
            left_files.append(name)
            left_originals.append(original)
            continue
        log.info(f"Restored {current} -> {restored}")
        report.restored.append(MoveSummary(current, restored))

    if not left_files:
        return None
    return OperationLogEntry(
        source_path=entry.source_path,
        target_path=entry.target_path,
        files=left_files,
        timestamp=entry.timestamp,
        original_files=left_originals if entry.original_files is not None else None,
    )


def undo_moves(log_path: Path) -> UndoReport:
    """Replay the log in order, moving every listed file back.

    Raises LogMissing / LogCorrupt before touching anything. The log is
    deleted once every file is restored; otherwise it is rewritten to list
    only the files still to restore.
    """
    oplog = OperationLog(log_path)
    entries = oplog.read()
    report = UndoReport()

    remaining: list[OperationLogEntry] = []
    for entry in entries:
        left = _undo_entry(entry, report)
        if left is not None:
            remaining.append(left)

    if remaining:
        log.warning(f"{len(report.failures)} file(s) not restored; keeping {log_path}")
        oplog.rewrite(remaining)
    else:
        oplog.delete()
        report.log_removed = True
    return report
