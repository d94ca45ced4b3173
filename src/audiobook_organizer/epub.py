"""EPUB package metadata (OPF) extraction."""

from __future__ import annotations

import zipfile
import xml.etree.ElementTree as ET
from pathlib import Path

from loguru import logger

from .errors import MetadataInvalid, MetadataMissing
from .models import RawMetadata, normalize_raw

log = logger.bind(stage="epub")

CONTAINER_PATH = "META-INF/container.xml"


def _local(tag: str) -> str:
    """'{http://purl.org/dc/elements/1.1/}title' -> 'title'."""
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def _attr(element: ET.Element, name: str) -> str:
    for key, value in element.attrib.items():
        if _local(key) == name:
            return value.strip()
    return ""


def _find_opf(archive: zipfile.ZipFile) -> str:
    """Path of the package document, from container.xml or the first *.opf."""
    names = archive.namelist()
    if CONTAINER_PATH in names:
        try:
            root = ET.fromstring(archive.read(CONTAINER_PATH))
        except ET.ParseError as exc:
            log.debug(f"Unparsable container.xml: {exc}")
        else:
            for element in root.iter():
                if _local(element.tag) == "rootfile":
                    full_path = _attr(element, "full-path")
                    if full_path in names:
                        return full_path
    for name in names:
        if name.lower().endswith(".opf"):
            return name
    raise MetadataMissing("no OPF package document in archive")


def _parse_index(value: str) -> float | None:
    try:
        index = float(value)
    except ValueError:
        return None
    return index if index > 0 else None


def _format_index(index: float) -> str:
    return str(int(index)) if index.is_integer() else f"{index:g}"


def _series_from_meta(metas: list[ET.Element]) -> tuple[str, float | None]:
    """Series name and index.

    EPUB3 belongs-to-collection (+ group-position refinement) first, then
    calibre:series / calibre:series_index.
    """
    for meta in metas:
        if _attr(meta, "property") == "belongs-to-collection" and (meta.text or "").strip():
            name = meta.text.strip()
            collection_id = _attr(meta, "id")
            index = None
            if collection_id:
                for ref in metas:
                    if (
                        _attr(ref, "refines") == f"#{collection_id}"
                        and _attr(ref, "property") == "group-position"
                    ):
                        index = _parse_index((ref.text or "").strip())
                        break
            return name, index

    names = {_attr(m, "name"): _attr(m, "content") for m in metas if _attr(m, "name")}
    series = names.get("calibre:series", "")
    if series:
        return series, _parse_index(names.get("calibre:series_index", ""))
    return "", None


def extract_epub_metadata(path: Path, format_hint: str = "") -> RawMetadata:
    """Raw metadata from an EPUB's OPF.

    Keys: title, authors (list), publisher, language, identifier, subjects,
    series ("Name #N" when an index is present) and series_index.
    """
    log.debug(f"extract_epub_metadata({path}, format_hint={format_hint!r})")
    try:
        with zipfile.ZipFile(path) as archive:
            opf_name = _find_opf(archive)
            opf = archive.read(opf_name)
    except zipfile.BadZipFile as exc:
        raise MetadataInvalid(f"{path} is not a valid EPUB: {exc}") from exc

    try:
        root = ET.fromstring(opf)
    except ET.ParseError as exc:
        raise MetadataInvalid(f"Unparsable OPF in {path}: {exc}") from exc

    metadata = next((e for e in root.iter() if _local(e.tag) == "metadata"), None)
    if metadata is None:
        raise MetadataMissing(f"OPF in {path} has no metadata element")

    raw: dict = {}
    creators: list[str] = []
    subjects: list[str] = []
    metas: list[ET.Element] = []
    for element in metadata:
        name = _local(element.tag)
        text = (element.text or "").strip()
        if name == "meta":
            metas.append(element)
        elif not text:
            continue
        elif name == "title":
            raw.setdefault("title", text)
        elif name == "creator":
            creators.append(text)
        elif name == "subject":
            subjects.append(text)
        elif name in ("publisher", "language", "identifier"):
            raw.setdefault(name, text)

    if creators:
        raw["authors"] = creators
    if subjects:
        raw["subjects"] = subjects

    series, index = _series_from_meta(metas)
    if series:
        raw["series"] = f"{series} #{_format_index(index)}" if index else series
        if index:
            raw["series_index"] = index
    return normalize_raw(raw)
