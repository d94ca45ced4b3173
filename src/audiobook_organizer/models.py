"""Core enums, constants, and record types for the audiobook organizer.

Enums:
    Layout      -- Destination directory shape (author-only through
                   series-title-number).
    SourceKind  -- Where an item's metadata came from (sidecar, embedded
                   audio/ebook tags, filename fallback).
    FileKind    -- Audio vs ebook classification used by the walker.
    Stage       -- Pipeline stage names, used as loguru ``stage`` bindings.

Records:
    ExtractedMetadata -- What one metadata source returns, before mapping.
    AudioItem         -- One file with its resolved (mapped) fields.
    BookGroup         -- Files judged to form one logical book.
    FieldMapping      -- Binding from canonical fields to raw metadata keys.
    OperationLogEntry -- One completed move, as persisted in the undo log.
    RunSummary        -- Counts and lists threaded through a run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from pathlib import Path
from typing import Any, Union

from loguru import logger

log = logger.bind(stage="models")

# Tagged union of the value kinds a raw metadata map may hold
RawValue = Union[str, int, list[str]]
RawMetadata = dict[str, RawValue]

LOG_FILENAME = ".abook-org.log"
METADATA_FILENAME = "metadata.json"
UNKNOWN_AUTHOR = "Unknown Author"
AUTHOR_SEPARATOR = ","


class Layout(StrEnum):
    AUTHOR_ONLY = "author-only"
    AUTHOR_TITLE = "author-title"
    AUTHOR_SERIES_TITLE = "author-series-title"
    AUTHOR_SERIES_TITLE_NUMBER = "author-series-title-number"
    SERIES_TITLE = "series-title"
    SERIES_TITLE_NUMBER = "series-title-number"


class SourceKind(StrEnum):
    SIDECAR = "sidecar"
    EMBEDDED_AUDIO = "embedded-audio"
    EMBEDDED_EBOOK = "embedded-ebook"
    FILENAME = "filename-fallback"


class FileKind(StrEnum):
    AUDIO = "audio"
    EBOOK = "ebook"


class Stage(StrEnum):
    WALK = "walk"
    RESOLVE = "resolve"
    GROUP = "group"
    MAP = "map"
    PATH = "path"
    MOVE = "move"
    UNDO = "undo"


AUDIO_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".mp3",
        ".m4a",
        ".m4b",
        ".flac",
        ".ogg",
        ".opus",
        ".wma",
        ".aac",
    }
)

EBOOK_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".epub",
        ".pdf",
        ".mobi",
        ".azw3",
    }
)

SUPPORTED_EXTENSIONS: frozenset[str] = AUDIO_EXTENSIONS | EBOOK_EXTENSIONS


def normalize_raw(mapping: dict[str, Any]) -> RawMetadata:
    """Coerce an arbitrary decoded map into the raw-value union.

    Integral floats become int, other floats become str. Sequences become
    lists of non-empty strings. None, bools, and nested mappings are dropped.
    """
    result: RawMetadata = {}
    for key, value in mapping.items():
        key = str(key)
        if value is None or isinstance(value, bool):
            continue
        if isinstance(value, str):
            result[key] = value
        elif isinstance(value, int):
            result[key] = value
        elif isinstance(value, float):
            result[key] = int(value) if value.is_integer() else str(value)
        elif isinstance(value, (list, tuple)):
            items = [str(v).strip() for v in value if v is not None]
            result[key] = [v for v in items if v]
        else:
            log.debug(f"Dropping raw key {key!r} of type {type(value).__name__}")
    return result


@dataclass(frozen=True)
class FieldMapping:
    """Which raw keys feed title, series, authors, and track number."""

    title_field: str = "title"
    series_field: str = "series"
    author_fields: tuple[str, ...] = ("authors", "artist", "album_artist")
    track_field: str = "track"

    @classmethod
    def default(cls) -> FieldMapping:
        return cls()

    @classmethod
    def audio(cls) -> FieldMapping:
        return cls(
            title_field="title",
            series_field="album",
            author_fields=("artist", "album_artist"),
            track_field="track",
        )

    @classmethod
    def epub(cls) -> FieldMapping:
        return cls(
            title_field="title",
            series_field="series",
            author_fields=("authors",),
            track_field="track",
        )

    def is_empty(self) -> bool:
        return (
            not self.title_field
            and not self.series_field
            and not self.author_fields
            and not self.track_field
        )


@dataclass(frozen=True)
class FilenameOptions:
    """Opt-in filename transforms. rename_pattern wins over add_track_numbers."""

    add_track_numbers: bool = False
    rename_pattern: str = ""
    replace_space: str = ""


@dataclass
class ExtractedMetadata:
    """Fields as a metadata source reported them, before field mapping."""

    source_path: Path
    source_kind: SourceKind
    raw: RawMetadata = field(default_factory=dict)
    title: str = ""
    authors: list[str] = field(default_factory=list)
    series: list[str] = field(default_factory=list)
    album: str = ""
    track_title: str = ""
    track_number: int = 0


@dataclass(frozen=True)
class AudioItem:
    """One content file with its resolved fields.

    Immutable: applying a different field mapping yields a new item.
    """

    source_path: Path
    raw_metadata: RawMetadata
    resolved_title: str
    resolved_authors: tuple[str, ...]
    resolved_series: str
    resolved_track_number: int
    source_kind: SourceKind

    @property
    def first_author(self) -> str:
        return self.resolved_authors[0] if self.resolved_authors else ""

    @property
    def author_label(self) -> str:
        """All authors as one folder name."""
        return AUTHOR_SEPARATOR.join(self.resolved_authors)

    @property
    def valid_series(self) -> str:
        """Series name with any trailing " #N" removed."""
        from .ops.paths import clean_series_name

        return clean_series_name(self.resolved_series)

    @property
    def filename(self) -> str:
        return self.source_path.name

    def is_valid(self) -> bool:
        return bool(self.resolved_title.strip()) and bool(self.first_author.strip())


@dataclass
class BookGroup:
    """A cluster of items that form one logical book (possibly a singleton)."""

    group_key: str
    display_title: str
    display_author: str
    ordered_files: list[AudioItem] = field(default_factory=list)
    track_numbers: dict[Path, int] = field(default_factory=dict)

    @property
    def total_tracks(self) -> int:
        return len(self.ordered_files)

    @property
    def is_singleton(self) -> bool:
        return len(self.ordered_files) == 1

    @property
    def reference(self) -> AudioItem:
        return self.ordered_files[0]

    def track_for(self, item: AudioItem) -> int:
        return self.track_numbers.get(item.source_path, item.resolved_track_number)


def _utcnow() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class OperationLogEntry:
    """One completed move of a file set from source_path to target_path."""

    source_path: str
    target_path: str
    files: list[str]
    timestamp: str = field(default_factory=_utcnow)
    original_files: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp,
            "source_path": self.source_path,
            "target_path": self.target_path,
            "files": list(self.files),
        }
        if self.original_files is not None:
            data["original_files"] = list(self.original_files)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OperationLogEntry:
        """Build an entry from decoded JSON. Raises KeyError/TypeError on bad shape."""
        files = data["files"]
        if not isinstance(files, list) or not all(isinstance(f, str) for f in files):
            raise TypeError("files must be a list of strings")
        original = data.get("original_files")
        if original is not None and (
            not isinstance(original, list) or len(original) != len(files)
        ):
            raise TypeError("original_files must parallel files")
        return cls(
            source_path=str(data["source_path"]),
            target_path=str(data["target_path"]),
            files=list(files),
            timestamp=str(data.get("timestamp", "")),
            original_files=list(original) if original is not None else None,
        )


@dataclass
class MoveSummary:
    source: Path
    target: Path


@dataclass
class MoveFailure:
    path: Path
    reason: str


@dataclass
class RunSummary:
    """Run accumulator, created by the runner and returned by each stage."""

    metadata_found: list[Path] = field(default_factory=list)
    metadata_missing: list[Path] = field(default_factory=list)
    invalid: list[Path] = field(default_factory=list)
    moves: list[MoveSummary] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)
    declined: list[Path] = field(default_factory=list)
    failures: list[MoveFailure] = field(default_factory=list)
    empty_dirs_removed: list[Path] = field(default_factory=list)
    log_entries: list[OperationLogEntry] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures
