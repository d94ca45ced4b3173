"""Metadata sources and the resolution chain that picks between them.

Sources, keyed by SourceKind in PROVIDERS:
  - sidecar:           metadata.json beside the file (or inside the directory)
  - embedded-audio:    ffprobe format tags
  - embedded-ebook:    EPUB OPF package metadata
  - filename-fallback: title from the file stem, author "Unknown Author"

resolve() walks the chain for a path, maps each candidate through the
field mapping, and returns the first item with a title and an author.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from loguru import logger

from . import epub, ffprobe
from .errors import ExternalToolError, MetadataInvalid, MetadataMissing
from .mapping import apply_field_mapping, parse_track_number, split_authors
from .models import (
    METADATA_FILENAME,
    UNKNOWN_AUTHOR,
    AudioItem,
    ExtractedMetadata,
    FieldMapping,
    FileKind,
    RawMetadata,
    SourceKind,
    normalize_raw,
)
from .walker import classify

log = logger.bind(stage="resolve")

Extractor = Callable[[Path, str], RawMetadata]


class MetadataProvider(Protocol):
    """Anything that can produce metadata for a path.

    get_metadata raises MetadataMissing when the source does not apply and
    MetadataInvalid when it applies but cannot be parsed.
    """

    def get_metadata(self, path: Path) -> ExtractedMetadata: ...


def default_extractors() -> dict[SourceKind, Extractor]:
    return {
        SourceKind.EMBEDDED_AUDIO: ffprobe.extract_audio_tags,
        SourceKind.EMBEDDED_EBOOK: epub.extract_epub_metadata,
    }


def _text(value) -> str:
    if isinstance(value, list):
        return value[0].strip() if value else ""
    if value is None:
        return ""
    return str(value).strip()


def _first_of_kind(directory: Path, kind: FileKind, suffix: str | None = None) -> Path:
    for child in sorted(directory.iterdir()):
        if child.name.startswith(".") or not child.is_file():
            continue
        if classify(child) is kind and (suffix is None or child.suffix.lower() == suffix):
            return child
    raise MetadataMissing(f"No {kind} file in {directory}")


# ---------------------------------------------------------------------------
# Source variants
# ---------------------------------------------------------------------------


def sidecar_metadata(path: Path, extract: Extractor | None = None) -> ExtractedMetadata:
    sidecar = path / METADATA_FILENAME if path.is_dir() else path.parent / METADATA_FILENAME
    if not sidecar.is_file():
        raise MetadataMissing(f"No {METADATA_FILENAME} for {path}")
    try:
        data = json.loads(sidecar.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MetadataInvalid(f"Unparsable {sidecar}: {exc}") from exc
    if not isinstance(data, dict):
        raise MetadataInvalid(f"{sidecar} is not a JSON object")

    raw = normalize_raw(data)
    series = raw.get("series", [])
    series_list = series if isinstance(series, list) else [_text(series)]
    return ExtractedMetadata(
        source_path=path,
        source_kind=SourceKind.SIDECAR,
        raw=raw,
        title=_text(raw.get("title")),
        authors=split_authors(raw.get("authors")),
        series=[s for s in series_list if s],
        album=_text(raw.get("album")),
        track_title=_text(raw.get("track_title")),
        track_number=parse_track_number(raw.get("track_number", raw.get("track"))),
    )


def embedded_audio_metadata(path: Path, extract: Extractor | None = None) -> ExtractedMetadata:
    target = _first_of_kind(path, FileKind.AUDIO) if path.is_dir() else path
    if classify(target) is not FileKind.AUDIO:
        raise MetadataMissing(f"{target.name} is not an audio file")
    extract = extract or ffprobe.extract_audio_tags
    raw = extract(target, target.suffix.lower().lstrip("."))
    if not raw:
        raise MetadataMissing(f"No embedded tags in {target}")

    artist = _text(raw.get("artist"))
    album_artist = _text(raw.get("album_artist"))
    album = _text(raw.get("album"))
    series = _text(raw.get("series")) or album
    title = _text(raw.get("title"))
    return ExtractedMetadata(
        source_path=path,
        source_kind=SourceKind.EMBEDDED_AUDIO,
        raw=raw,
        title=title,
        authors=[artist] if artist else ([album_artist] if album_artist else []),
        series=[series] if series else [],
        album=album,
        track_title=title,
        track_number=parse_track_number(raw.get("track")),
    )


def embedded_ebook_metadata(path: Path, extract: Extractor | None = None) -> ExtractedMetadata:
    target = _first_of_kind(path, FileKind.EBOOK, ".epub") if path.is_dir() else path
    if target.suffix.lower() != ".epub":
        raise MetadataMissing(f"{target.name} carries no readable embedded metadata")
    extract = extract or epub.extract_epub_metadata
    raw = extract(target, "epub")
    if not raw:
        raise MetadataMissing(f"No package metadata in {target}")

    series = _text(raw.get("series"))
    return ExtractedMetadata(
        source_path=path,
        source_kind=SourceKind.EMBEDDED_EBOOK,
        raw=raw,
        title=_text(raw.get("title")),
        authors=split_authors(raw.get("authors")),
        series=[series] if series else [],
    )


def filename_metadata(path: Path, extract: Extractor | None = None) -> ExtractedMetadata:
    title = path.name if path.is_dir() else path.stem
    return ExtractedMetadata(
        source_path=path,
        source_kind=SourceKind.FILENAME,
        raw={"title": title},
        title=title.strip(),
        authors=[UNKNOWN_AUTHOR],
    )


PROVIDERS: dict[SourceKind, Callable[[Path, Extractor | None], ExtractedMetadata]] = {
    SourceKind.SIDECAR: sidecar_metadata,
    SourceKind.EMBEDDED_AUDIO: embedded_audio_metadata,
    SourceKind.EMBEDDED_EBOOK: embedded_ebook_metadata,
    SourceKind.FILENAME: filename_metadata,
}


@dataclass(frozen=True)
class SourceProvider:
    """One PROVIDERS entry bound to its extractor; satisfies MetadataProvider."""

    kind: SourceKind
    extract: Extractor | None = None

    def get_metadata(self, path: Path) -> ExtractedMetadata:
        return PROVIDERS[self.kind](path, self.extract)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def resolution_chain(config) -> list[SourceKind]:
    """Order in which sources are tried for the given configuration."""
    embedded = [SourceKind.EMBEDDED_AUDIO, SourceKind.EMBEDDED_EBOOK]
    if getattr(config, "embedded_only", False):
        return embedded + [SourceKind.FILENAME]
    if getattr(config, "use_embedded_metadata", False):
        return embedded + [SourceKind.SIDECAR, SourceKind.FILENAME]
    return [SourceKind.SIDECAR] + embedded + [SourceKind.FILENAME]


def resolve(
    path: Path,
    config,
    mapping: FieldMapping | None = None,
    extractors: Mapping[SourceKind, Extractor] | None = None,
) -> AudioItem:
    """First valid mapped item along the resolution chain.

    Raises MetadataInvalid when no source yields a title and an author.
    """
    extractors = {**default_extractors(), **(extractors or {})}
    for kind in resolution_chain(config):
        provider = SourceProvider(kind, extractors.get(kind))
        try:
            extracted = provider.get_metadata(path)
        except (MetadataMissing, MetadataInvalid, ExternalToolError, OSError) as exc:
            log.debug(f"{kind} skipped for {path.name}: {exc}")
            continue
        item = apply_field_mapping(extracted, mapping)
        if item.is_valid():
            log.debug(f"Resolved {path.name} via {kind}")
            return item
        log.debug(f"{kind} gave no title/author for {path.name}")
    raise MetadataInvalid(f"No usable metadata for {path}")
