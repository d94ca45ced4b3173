"""Path segment and filename sanitization."""

import re
from pathlib import Path

from loguru import logger

log = logger.bind(stage="sanitize")

_UNSAFE = re.compile(r'[/\\:*?"<>|`]')

UNKNOWN_SEGMENT = "Unknown"


def sanitize_segment(segment: str, replace_space: str = "") -> str:
    """Sanitize one directory name derived from metadata.

    Replaces characters illegal in file names with underscores, trims
    leading/trailing spaces and dots, and optionally swaps spaces for
    replace_space. An empty result becomes "Unknown".
    """
    sanitized = _UNSAFE.sub("_", segment)
    sanitized = sanitized.strip(" .")
    sanitized = re.sub(r"\s+", " ", sanitized)
    if replace_space:
        sanitized = sanitized.replace(" ", replace_space)
    if not sanitized:
        log.debug(f"Empty segment from {segment!r}, using {UNKNOWN_SEGMENT!r}")
        return UNKNOWN_SEGMENT
    return _truncate(sanitized)


def sanitize_filename(filename: str, replace_space: str = "") -> str:
    """Sanitize a transformed filename, preserving its extension."""
    p = Path(filename)
    ext = p.suffix
    stem = filename[: -len(ext)] if ext else filename
    stem = _UNSAFE.sub("_", stem).strip(" .")
    if replace_space:
        stem = stem.replace(" ", replace_space)
    if not stem:
        stem = UNKNOWN_SEGMENT
    return _truncate(stem + ext)


def _truncate(name: str) -> str:
    """Truncate to 255 bytes preserving extension."""
    original_len = len(name.encode("utf-8"))
    if original_len <= 255:
        return name
    p = Path(name)
    ext = p.suffix
    stem = name[: -len(ext)] if ext else name
    while len((stem + ext).encode("utf-8")) > 255 and stem:
        stem = stem[:-1]
    log.debug(f"Truncated name from {original_len} bytes: '{stem + ext}'")
    return stem + ext
