"""Write a dry run's planned moves as a reviewable bash script."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from .models import UNKNOWN_AUTHOR, AudioItem, BookGroup
from .ops.paths import series_number_for

log = logger.bind(stage="plan")

_MOVE_FUNCTION = """\
move_file() {
    local src="$1"
    local dst="$2"
    local dst_dir
    dst_dir=$(dirname "$dst")

    if [[ $DRY_RUN -eq 1 ]]; then
        echo "[DRY-RUN] Would move: $src -> $dst"
    else
        mkdir -p "$dst_dir"
        mv "$src" "$dst"
        echo "Moved: $src -> $dst"
    fi
}
"""


def _book_header(subject: AudioItem | BookGroup) -> tuple[str, list[str]]:
    """Identity of the book a move belongs to, plus its comment lines."""
    if isinstance(subject, BookGroup):
        title = subject.display_title
        author = subject.display_author or UNKNOWN_AUTHOR
        series = subject.reference.valid_series
        number = series_number_for(subject.reference) if series else ""
    else:
        title = subject.resolved_title
        author = subject.author_label or UNKNOWN_AUTHOR
        series = subject.valid_series
        number = series_number_for(subject) if series else ""

    lines = [f"# Book: {title}", f"# Author: {author}"]
    if series:
        lines.append(f"# Series: {series}" + (f" #{number}" if number else ""))
    return f"{author} - {title}", lines


@dataclass
class PlanScript:
    """Collects planned moves and writes them as an executable script."""

    path: Path
    base_dir: Path
    output_dir: Path | None = None
    moves: list[tuple[Path, Path, AudioItem | BookGroup | None]] = field(default_factory=list)

    def add_move(
        self, source: Path, target: Path, subject: AudioItem | BookGroup | None = None
    ) -> None:
        self.moves.append((source, target, subject))

    def render(self) -> str:
        generated = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        out = [
            "#!/bin/bash",
            "#",
            "# Audiobook Organizer - Move Plan Script",
            f"# Generated: {generated}",
            f"# Source Directory: {self.base_dir}",
        ]
        if self.output_dir:
            out.append(f"# Output Directory: {self.output_dir}")
        out += [
            f"# Total Moves: {len(self.moves)}",
            "#",
            "# Review this script before running!",
            f"# Run with: bash {self.path.name}",
            "#",
            "",
            "set -e",
            "set -u",
            "",
            "# Set DRY_RUN=1 to preview without moving",
            "DRY_RUN=${DRY_RUN:-0}",
            "",
            _MOVE_FUNCTION,
            "# ============================================",
            "# FILE MOVES",
            "# ============================================",
        ]

        current = None
        for source, target, subject in self.moves:
            if subject is not None:
                book_id, header = _book_header(subject)
                if book_id != current:
                    current = book_id
                    out += ["", "# --------------------------------------------"]
                    out += header
                    out.append("# --------------------------------------------")
            out.append(f"move_file {shlex.quote(str(source))} {shlex.quote(str(target))}")

        out += [
            "",
            "# ============================================",
            "# SUMMARY",
            "# ============================================",
            'echo ""',
            f'echo "Plan complete: {len(self.moves)} files processed"',
            "",
        ]
        return "\n".join(out)

    def write(self) -> Path:
        """Write the script and mark it executable."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(self.render(), encoding="utf-8")
        os.chmod(self.path, 0o755)
        log.info(f"Plan script written to {self.path} ({len(self.moves)} moves)")
        return self.path
