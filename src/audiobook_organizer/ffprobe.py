"""FFprobe subprocess wrapper for embedded audio tags."""

import json
import subprocess
from pathlib import Path

from loguru import logger

from .errors import ExternalToolError, MetadataInvalid
from .models import RawMetadata, normalize_raw

log = logger.bind(stage="ffprobe")

# Tag spellings seen across ID3/MP4/Vorbis containers, folded onto one key
_KEY_ALIASES = {
    "albumartist": "album_artist",
    "album artist": "album_artist",
    "date": "year",
    "tracknumber": "track",
    "tracktotal": "track_total",
    "totaltracks": "track_total",
    "discnumber": "disc",
    "disctotal": "disc_total",
    "totaldiscs": "disc_total",
    "grouping": "content_group",
    "tit1": "content_group",
    "txxx:series": "series",
    "txxx:narrator": "narrator",
    "mvnm": "series",
}


def _run_ffprobe(args: list[str]) -> subprocess.CompletedProcess:
    """Run ffprobe with common flags."""
    try:
        return subprocess.run(
            ["ffprobe", "-v", "error"] + args,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as exc:
        raise ExternalToolError("ffprobe", 127, str(exc)) from exc


def _split_pair(value: str) -> tuple[int, int]:
    """'3/12' -> (3, 12); '3' -> (3, 0); junk -> (0, 0)."""
    number, _, total = value.partition("/")
    try:
        first = int(number.strip() or 0)
    except ValueError:
        first = 0
    try:
        second = int(total.strip() or 0)
    except ValueError:
        second = 0
    return first, second


def get_tags(file: Path) -> dict:
    """Format-level tags with lowercase keys. Raises ExternalToolError."""
    result = _run_ffprobe([
        "-show_entries", "format_tags",
        "-of", "json",
        str(file),
    ])
    if result.returncode != 0:
        raise ExternalToolError("ffprobe", result.returncode, result.stderr.strip())
    try:
        data = json.loads(result.stdout or "{}")
    except json.JSONDecodeError as exc:
        raise MetadataInvalid(f"ffprobe returned invalid JSON for {file}") from exc
    raw = data.get("format", {}).get("tags", {}) or {}
    return {str(k).lower(): v for k, v in raw.items()}


def extract_audio_tags(path: Path, format_hint: str = "") -> RawMetadata:
    """Embedded tags of an audio file as a raw metadata map.

    Keys are lowercased and folded (albumartist -> album_artist, TXXX:SERIES
    -> series, ...). "track" and "disc" values of the form "N/M" are split
    into track/track_total and disc/disc_total integers.
    """
    log.debug(f"extract_audio_tags({path}, format_hint={format_hint!r})")
    tags = get_tags(path)

    folded: dict = {}
    for key, value in tags.items():
        key = _KEY_ALIASES.get(key, key)
        if isinstance(value, str):
            value = value.strip()
            if not value:
                continue
        # First spelling wins when two aliases collide
        folded.setdefault(key, value)

    for field, total_field in (("track", "track_total"), ("disc", "disc_total")):
        if field in folded:
            number, total = _split_pair(str(folded[field]))
            folded[field] = number
            if total and total_field not in folded:
                folded[total_field] = total
        if isinstance(folded.get(total_field), str):
            folded[total_field] = _split_pair(folded[total_field])[0]

    return normalize_raw(folded)
