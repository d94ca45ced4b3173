"""Discover content files and book directories under a base directory."""

from __future__ import annotations

import os
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from .errors import WalkError
from .models import (
    AUDIO_EXTENSIONS,
    EBOOK_EXTENSIONS,
    METADATA_FILENAME,
    FileKind,
)

log = logger.bind(stage="walk")


@dataclass
class BookDirectory:
    """One directory holding content files.

    has_sidecar marks a directory whose metadata.json describes every file
    in it; such a directory moves as a single unit (all_files).
    """

    path: Path
    files: list[Path] = field(default_factory=list)
    all_files: list[Path] = field(default_factory=list)
    has_sidecar: bool = False

    @property
    def sidecar(self) -> Path:
        return self.path / METADATA_FILENAME


def classify(path: Path) -> FileKind | None:
    """audio / ebook by extension, None for anything unsupported."""
    suffix = path.suffix.lower()
    if suffix in AUDIO_EXTENSIONS:
        return FileKind.AUDIO
    if suffix in EBOOK_EXTENSIONS:
        return FileKind.EBOOK
    return None


def _is_hidden(name: str) -> bool:
    return name.startswith(".")


def _check_base(base: Path) -> None:
    if not base.is_dir():
        raise WalkError(f"Base directory does not exist or is not a directory: {base}")
    try:
        os.listdir(base)
    except OSError as exc:
        raise WalkError(f"Cannot read base directory {base}: {exc}") from exc


def _on_error(err: OSError) -> None:
    log.warning(f"Skipping unreadable entry {err.filename}: {err.strerror}")


def _walk(base: Path, output_dir: Path | None) -> Iterator[tuple[Path, list[str], list[str]]]:
    """os.walk top-down with hidden entries and the output dir pruned."""
    _check_base(base)
    skip = os.path.realpath(output_dir) if output_dir else None
    base_resolved = os.path.realpath(base)

    for dirpath, dirnames, filenames in os.walk(base, onerror=_on_error):
        current = Path(dirpath)
        dirnames[:] = sorted(
            d
            for d in dirnames
            if not _is_hidden(d)
            and (skip is None or os.path.realpath(current / d) != skip)
        )
        # The output dir may be the base itself when organizing in place
        if skip is not None and skip != base_resolved and os.path.realpath(current) == skip:
            dirnames.clear()
            continue
        yield current, dirnames, sorted(f for f in filenames if not _is_hidden(f))


def walk_directories(base: Path, output_dir: Path | None = None) -> Iterator[BookDirectory]:
    """Yield directories holding content files (directory mode).

    A directory with a metadata.json sidecar is one book: it is yielded
    with has_sidecar=True and its subdirectories are not entered.
    """
    for current, dirnames, filenames in _walk(base, output_dir):
        paths = [current / name for name in filenames]
        files = [p for p in paths if classify(p) is not None]
        has_sidecar = METADATA_FILENAME in filenames

        if has_sidecar:
            log.debug(f"Sidecar book directory: {current}")
            dirnames.clear()
            yield BookDirectory(
                path=current,
                files=files,
                all_files=[p for p in paths if p.is_file()],
                has_sidecar=True,
            )
        elif files:
            log.debug(f"Content directory: {current} ({len(files)} files)")
            yield BookDirectory(path=current, files=files, all_files=files)


def walk_files(base: Path, output_dir: Path | None = None) -> Iterator[Path]:
    """Yield every supported file in the tree individually (flat mode)."""
    for current, _dirnames, filenames in _walk(base, output_dir):
        for name in filenames:
            path = current / name
            if classify(path) is not None:
                yield path
