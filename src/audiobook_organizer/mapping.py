"""Bind raw metadata keys to the canonical title/series/authors/track fields."""

from __future__ import annotations

import re

from loguru import logger

from .models import AudioItem, ExtractedMetadata, FieldMapping, RawMetadata, RawValue

log = logger.bind(stage="map")

_AUTHOR_SPLIT = re.compile(r"[;,/\n]| {2,}")
_LEADING_INT = re.compile(r"^\s*(-?\d+)")


def _as_text(value: RawValue | None) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return value[0].strip() if value else ""
    return str(value).strip()


def split_authors(value: RawValue | list[str] | None) -> list[str]:
    """Split an author value on ; , / newlines or runs of 2+ spaces."""
    if value is None or isinstance(value, int):
        return []
    values = value if isinstance(value, list) else [value]
    pieces: list[str] = []
    for entry in values:
        for piece in _AUTHOR_SPLIT.split(entry):
            piece = " ".join(piece.split())
            if piece:
                pieces.append(piece)
    return pieces


def dedupe_authors(authors: list[str]) -> list[str]:
    """Drop repeats compared case-insensitively; keep the first spelling."""
    seen: set[str] = set()
    result = []
    for author in authors:
        key = " ".join(author.split()).casefold()
        if key and key not in seen:
            seen.add(key)
            result.append(author)
    return result


def parse_track_number(value: RawValue | float | None) -> int:
    """int / float / numeric string ("3/12" -> 3) to int; anything else -> 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        number = int(value)
    else:
        match = _LEADING_INT.match(_as_text(value))
        if not match:
            return 0
        number = int(match.group(1))
    return max(number, 0)


def _map_title(extracted: ExtractedMetadata, field: str) -> str:
    if field in ("", "title"):
        return extracted.title
    if field == "series":
        return extracted.series[0] if extracted.series and extracted.series[0] else extracted.title
    if field == "album":
        return extracted.album or extracted.title
    if field == "track_title":
        return extracted.track_title or extracted.title
    return _as_text(extracted.raw.get(field)) or extracted.title


def _map_series(extracted: ExtractedMetadata, field: str) -> str:
    current = extracted.series[0] if extracted.series else ""
    if field in ("", "series"):
        return current
    if field == "album":
        return extracted.album or current
    if field == "track_title":
        return extracted.track_title or current
    if field == "title":
        return extracted.title or current
    return _as_text(extracted.raw.get(field)) or current


def _map_authors(extracted: ExtractedMetadata, fields: tuple[str, ...]) -> list[str]:
    collected: list[str] = []
    for field in fields:
        if field == "authors":
            collected.extend(split_authors(list(extracted.authors)))
        collected.extend(split_authors(extracted.raw.get(field)))
    authors = dedupe_authors(collected)
    if not authors:
        return dedupe_authors(split_authors(list(extracted.authors)))
    return authors


def _map_track(extracted: ExtractedMetadata, field: str) -> int:
    if field and field in extracted.raw:
        return parse_track_number(extracted.raw[field])
    return max(extracted.track_number, 0)


def apply_field_mapping(
    extracted: ExtractedMetadata, mapping: FieldMapping | None = None
) -> AudioItem:
    """Produce an AudioItem from extracted metadata. The raw map is copied, never mutated."""
    mapping = mapping or FieldMapping.default()
    item = AudioItem(
        source_path=extracted.source_path,
        raw_metadata=dict(extracted.raw),
        resolved_title=_map_title(extracted, mapping.title_field).strip(),
        resolved_authors=tuple(_map_authors(extracted, mapping.author_fields)),
        resolved_series=_map_series(extracted, mapping.series_field).strip(),
        resolved_track_number=_map_track(extracted, mapping.track_field),
        source_kind=extracted.source_kind,
    )
    log.debug(
        f"{item.filename}: title={item.resolved_title!r} "
        f"authors={list(item.resolved_authors)} series={item.resolved_series!r} "
        f"track={item.resolved_track_number}"
    )
    return item


def extracted_from_item(item: AudioItem) -> ExtractedMetadata:
    """Rebuild source-level metadata from an item's raw map."""
    raw: RawMetadata = item.raw_metadata
    series = _as_text(raw.get("series")) or item.resolved_series
    album = raw.get("album", "")
    track_title = raw.get("track_title", "")
    return ExtractedMetadata(
        source_path=item.source_path,
        source_kind=item.source_kind,
        raw=dict(raw),
        title=_as_text(raw.get("title")) or item.resolved_title,
        authors=split_authors(raw.get("authors")) or list(item.resolved_authors),
        series=[series] if series else [],
        album=album if isinstance(album, str) else "",
        track_title=track_title if isinstance(track_title, str) else "",
        track_number=parse_track_number(raw.get("track")) or item.resolved_track_number,
    )


def remap(item: AudioItem, mapping: FieldMapping) -> AudioItem:
    """Re-apply a different mapping, returning a new item."""
    return apply_field_mapping(extracted_from_item(item), mapping)
