"""Compute canonical destinations for items and book groups.

Layouts (see models.Layout):
  - author-only:                Author/
  - author-title:               Author/Title/
  - author-series-title:        Author/Series/Title/     (no series -> author-title)
  - author-series-title-number: Author/Series/#N - Title/ (no N -> author-series-title)
  - series-title:               Series/Title/            (no series -> Title/)
  - series-title-number:        Series/#N - Title/       (no N -> series-title)

Every function here is pure: no filesystem access, same input -> same path.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

from loguru import logger

from ..errors import ConfigError
from ..models import AudioItem, BookGroup, FieldMapping, FilenameOptions, Layout
from ..sanitize import sanitize_filename, sanitize_segment

log = logger.bind(stage="path")

PATTERN_FIELDS = ("track", "title", "series", "author", "album")

_SERIES_NUMBER = re.compile(r"^(.*?)\s+#(\d+(?:\.\d+)?)\s*$")
_TRACK_PREFIX = re.compile(r"^(\d{2,4}) - ")
_PLACEHOLDER = re.compile(r"\{([^{}]*)\}")


# ---------------------------------------------------------------------------
# Series helpers
# ---------------------------------------------------------------------------


def clean_series_name(series: str) -> str:
    """Strip a trailing " #N" from a series name ("Mistborn #1" -> "Mistborn")."""
    match = _SERIES_NUMBER.match(series)
    if match:
        return match.group(1).strip()
    return series.strip()


def extract_series_number(series: str) -> str:
    """Return N from a trailing " #N", or "" ("Mistborn #2.5" -> "2.5")."""
    match = _SERIES_NUMBER.match(series)
    return match.group(2) if match else ""


def series_number_for(item: AudioItem) -> str:
    """Series number from a raw series_index, else from the series string."""
    index = item.raw_metadata.get("series_index")
    if isinstance(index, int) and index > 0:
        return str(index)
    if isinstance(index, str):
        try:
            value = float(index)
        except ValueError:
            value = 0.0
        if value > 0:
            return str(int(value)) if value.is_integer() else f"{value:.1f}"
    return extract_series_number(item.resolved_series)


# ---------------------------------------------------------------------------
# Filename transforms
# ---------------------------------------------------------------------------


def track_prefix_width(total_tracks: int) -> int:
    if total_tracks < 100:
        return 2
    if total_tracks < 1000:
        return 3
    return 4


def add_track_prefix(filename: str, track_number: int, total_tracks: int) -> str:
    """Prefix filename with "NN - ".

    An existing prefix carrying the same number is re-padded; a prefix with
    a different number is left alone.
    """
    if track_number <= 0:
        return filename
    stem, ext = os.path.splitext(filename)
    prefix = f"{track_number:0{track_prefix_width(total_tracks)}d} - "

    match = _TRACK_PREFIX.match(stem)
    if match:
        if int(match.group(1)) != track_number:
            log.debug(f"Keeping mismatched track prefix on {filename}")
            return filename
        stem = stem[match.end() :]
    return f"{prefix}{stem}{ext}"


def validate_rename_pattern(pattern: str) -> None:
    """Raise ConfigError when pattern uses a placeholder outside PATTERN_FIELDS."""
    unknown = [name for name in _PLACEHOLDER.findall(pattern) if name not in PATTERN_FIELDS]
    if unknown:
        raise ConfigError(
            f"Unknown placeholder(s) in rename pattern {pattern!r}: "
            + ", ".join("{" + name + "}" for name in unknown)
        )


def apply_filename_pattern(
    pattern: str,
    item: AudioItem,
    track_number: int,
    total_tracks: int,
) -> str:
    """Expand {track} {title} {series} {author} {album} into a stem.

    Missing values expand to "" and the dangling " - " separators they
    leave are collapsed.
    """
    track = (
        f"{track_number:0{track_prefix_width(total_tracks)}d}"
        if track_number > 0
        else ""
    )
    album = item.raw_metadata.get("album", "")
    values = {
        "track": track,
        "title": item.resolved_title,
        "series": item.valid_series,
        "author": item.first_author,
        "album": album if isinstance(album, str) else "",
    }
    result = pattern
    for key, value in values.items():
        result = result.replace("{" + key + "}", value)

    result = result.strip()
    result = re.sub(r"\s*-\s*-\s*", " - ", result)
    result = re.sub(r"^\s*-\s*|\s*-\s*$", "", result)
    result = re.sub(r"\s+", " ", result)
    return result.strip()


def transform_filename(
    item: AudioItem,
    track_number: int,
    total_tracks: int,
    options: FilenameOptions | None = None,
) -> str:
    """Final filename for item; the original name unless options ask otherwise."""
    options = options or FilenameOptions()
    filename = item.filename

    if options.rename_pattern:
        ext = item.source_path.suffix
        stem = apply_filename_pattern(
            options.rename_pattern, item, track_number, total_tracks
        )
        if stem:
            filename = sanitize_filename(stem + ext, options.replace_space)
        else:
            log.debug(f"Pattern {options.rename_pattern!r} empty for {filename}")
    elif options.add_track_numbers:
        filename = sanitize_filename(
            add_track_prefix(filename, track_number, total_tracks),
            options.replace_space,
        )
    elif options.replace_space:
        filename = filename.replace(" ", options.replace_space)
    return filename


# ---------------------------------------------------------------------------
# Destination building
# ---------------------------------------------------------------------------


def _layout_segments(
    layout: Layout, author: str, title: str, series: str, number: str
) -> list[str]:
    numbered = f"#{number} - {title}" if number else title
    if layout is Layout.AUTHOR_ONLY:
        return [author]
    if layout is Layout.AUTHOR_TITLE:
        return [author, title]
    if layout is Layout.AUTHOR_SERIES_TITLE:
        return [author, series, title] if series else [author, title]
    if layout is Layout.AUTHOR_SERIES_TITLE_NUMBER:
        return [author, series, numbered] if series else [author, title]
    if layout is Layout.SERIES_TITLE:
        return [series, title] if series else [title]
    # SERIES_TITLE_NUMBER
    return [series, numbered] if series else [title]


def build_directory(
    target: AudioItem | BookGroup,
    layout: Layout | str,
    output_root: Path,
    replace_space: str = "",
) -> Path:
    """Destination directory for an item or group under output_root."""
    try:
        layout = Layout(layout)
    except ValueError:
        log.warning(f"Unknown layout {layout!r}, using output root")
        return output_root

    if isinstance(target, BookGroup):
        reference = target.reference
        author = target.display_author
        title = target.display_title
    else:
        reference = target
        author = target.author_label
        title = target.resolved_title
    series = reference.valid_series
    number = series_number_for(reference) if series else ""

    segments = _layout_segments(layout, author, title, series, number)
    result = output_root
    for segment in segments:
        result = result / sanitize_segment(segment, replace_space)
    log.debug(f"build_directory({layout}) -> {result}")
    return result


def build_destination(
    target: AudioItem | BookGroup,
    layout: Layout | str,
    output_root: Path,
    *,
    mapping: FieldMapping | None = None,
    options: FilenameOptions | None = None,
    member: AudioItem | None = None,
) -> Path:
    """Full destination path (directory plus filename) for one file.

    For a group the directory comes from the group and the filename from
    member (the reference file when omitted). A mapping re-applies the
    field binding before the path is computed.
    """
    if mapping is not None:
        from ..mapping import remap

        if isinstance(target, BookGroup):
            member = remap(member or target.reference, mapping)
        else:
            target = remap(target, mapping)

    options = options or FilenameOptions()
    directory = build_directory(target, layout, output_root, options.replace_space)

    if isinstance(target, BookGroup):
        member = member or target.reference
        track = target.track_for(member)
        total = target.total_tracks
    else:
        member = target
        track = target.resolved_track_number
        total = 1
    return directory / transform_filename(member, track, total, options)


def is_already_organized(source: Path, destination: Path) -> bool:
    """True when source and destination name the same location."""
    return _normalize(source) == _normalize(destination)


def _normalize(path: Path) -> str:
    return os.path.normcase(os.path.normpath(os.path.abspath(path)))
