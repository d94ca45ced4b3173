"""JSON operation log -- the record undo replays.

The file is a JSON array of entries (see models.OperationLogEntry). It is
rewritten atomically after every completed unit, so what is on disk lists
only moves that actually happened.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

from loguru import logger

from .errors import LogCorrupt, LogMissing
from .models import OperationLogEntry

log = logger.bind(stage="oplog")


class OperationLog:
    """Append-only operation log at a fixed path.

    A log object records one run: the first append replaces whatever log a
    previous run left behind, later appends extend it.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.entries: list[OperationLogEntry] = []

    def exists(self) -> bool:
        return self.path.is_file()

    # -- Read --

    def read(self) -> list[OperationLogEntry]:
        """All entries, oldest first. Raises LogMissing / LogCorrupt."""
        if not self.path.is_file():
            raise LogMissing(f"No operation log at {self.path}")
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise LogCorrupt(f"Failed to parse {self.path}: {exc}") from exc
        except OSError as exc:
            raise LogCorrupt(f"Failed to read {self.path}: {exc}") from exc

        if not isinstance(data, list):
            raise LogCorrupt(f"{self.path} does not hold a JSON array")
        try:
            return [OperationLogEntry.from_dict(item) for item in data]
        except (KeyError, TypeError, AttributeError) as exc:
            raise LogCorrupt(f"Malformed entry in {self.path}: {exc}") from exc

    # -- Write (all atomic) --

    def _atomic_write(self, entries: list[OperationLogEntry]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=".abook-org.", suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump([e.to_dict() for e in entries], f, indent=2)
                f.write("\n")
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError as cleanup_err:
                log.warning(f"Failed to cleanup temp file {tmp_path}: {cleanup_err}")
            raise

    def append(self, entry: OperationLogEntry) -> None:
        if not self.entries and self.exists():
            log.warning(
                f"Replacing operation log {self.path} from a previous run; "
                "its moves can no longer be undone"
            )
        self.entries.append(entry)
        log.debug(f"Logging move {entry.source_path} -> {entry.target_path}")
        self._atomic_write(self.entries)

    def rewrite(self, entries: list[OperationLogEntry]) -> None:
        """Replace the log contents (used by undo to keep unfinished entries)."""
        self.entries = list(entries)
        self._atomic_write(self.entries)

    def delete(self) -> None:
        try:
            self.path.unlink()
            log.debug(f"Removed operation log {self.path}")
        except FileNotFoundError:
            pass
