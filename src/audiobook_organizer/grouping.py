"""Decide which co-located items form one logical book.

A set of items is grouped only when every item is consistent with the
first one (the reference). One inconsistent item splits the whole set into
singletons: a missed merge is recoverable, a wrong merge is not.
"""

from __future__ import annotations

import re

from loguru import logger
from rapidfuzz import fuzz

from .models import AUTHOR_SEPARATOR, AudioItem, BookGroup

log = logger.bind(stage="group")

SIMILARITY_THRESHOLD = 90
PREFIX_SEPARATORS = (" - ", ": ", ", ")
MIN_SEPARATOR_PREFIX = 4
MIN_PREFIX_WORDS = 2
MIN_PREFIX_SHARE = 0.5

_RUNS = re.compile(r"\d+|\D+")
_DIGITS = re.compile(r"\d+")


def normalize_key(value: str) -> str:
    """Lowercase, '&' -> 'and', punctuation to spaces, whitespace squeezed."""
    value = value.lower().replace("&", " and ")
    value = re.sub(r"[^\w\s]|_", " ", value)
    return " ".join(value.split())


def make_group_key(author: str, title: str) -> str:
    return f"{normalize_key(author)}|{normalize_key(title)}"


def _authors_compatible(a: AudioItem, b: AudioItem) -> bool:
    first, second = a.first_author, b.first_author
    if not first or not second:
        return True
    return normalize_key(first) == normalize_key(second)


def has_track_number_pattern(first: str, second: str) -> bool:
    """Titles identical except for their numbers ("Chapter 1" vs "Chapter 2")."""
    a_runs = _RUNS.findall(first.casefold())
    b_runs = _RUNS.findall(second.casefold())
    if len(a_runs) == len(b_runs) and a_runs:
        differs = False
        for a, b in zip(a_runs, b_runs):
            if a.isdigit() and b.isdigit():
                differs = differs or int(a) != int(b)
            elif a != b:
                break
        else:
            if differs:
                return True

    a_numbers = _DIGITS.findall(first)
    b_numbers = _DIGITS.findall(second)
    if not a_numbers or not b_numbers or a_numbers == b_numbers:
        return False
    a_text = " ".join(_DIGITS.sub("", first).casefold().split())
    b_text = " ".join(_DIGITS.sub("", second).casefold().split())
    return fuzz.ratio(a_text, b_text) >= SIMILARITY_THRESHOLD


def has_common_prefix(first: str, second: str) -> bool:
    """Titles share a meaningful leading part.

    Either the shared prefix is at least 4 characters and ends at a " - ",
    ": " or ", " separator, or the titles share at least two leading whole
    words covering at least half of the shorter title.
    """
    a, b = first.casefold(), second.casefold()
    length = 0
    for x, y in zip(a, b):
        if x != y:
            break
        length += 1

    prefix = a[:length]
    for cut in range(length, MIN_SEPARATOR_PREFIX - 1, -1):
        if prefix[:cut].endswith(PREFIX_SEPARATORS):
            return True

    a_words, b_words = a.split(), b.split()
    shared: list[str] = []
    for x, y in zip(a_words, b_words):
        if x != y:
            break
        shared.append(x)
    if len(shared) < MIN_PREFIX_WORDS:
        return False
    shorter = min(len(" ".join(a_words)), len(" ".join(b_words)))
    return shorter > 0 and len(" ".join(shared)) >= MIN_PREFIX_SHARE * shorter


def _series_rescue(reference: AudioItem, item: AudioItem) -> bool:
    series = reference.valid_series
    return (
        bool(series)
        and normalize_key(series) == normalize_key(item.valid_series)
        and _authors_compatible(reference, item)
        and reference.resolved_track_number > 0
        and item.resolved_track_number > 0
    )


def is_consistent(reference: AudioItem, item: AudioItem) -> bool:
    if reference.resolved_title == item.resolved_title and _authors_compatible(reference, item):
        return True
    if has_track_number_pattern(reference.resolved_title, item.resolved_title):
        return True
    if has_common_prefix(reference.resolved_title, item.resolved_title):
        return True
    return _series_rescue(reference, item)


def singleton(item: AudioItem) -> BookGroup:
    return BookGroup(
        group_key=make_group_key(item.first_author, item.resolved_title),
        display_title=item.resolved_title,
        display_author=item.author_label,
        ordered_files=[item],
        track_numbers={item.source_path: item.resolved_track_number},
    )


def _display_author(items: list[AudioItem]) -> str:
    authors: list[str] = []
    seen: set[str] = set()
    for item in items:
        for author in item.resolved_authors:
            key = normalize_key(author)
            if author and key not in seen:
                seen.add(key)
                authors.append(author)
    return AUTHOR_SEPARATOR.join(authors)


def group_items(items: list[AudioItem]) -> list[BookGroup]:
    """Group co-located items into one BookGroup, or one singleton per item."""
    if not items:
        return []
    if len(items) == 1:
        return [singleton(items[0])]

    reference = items[0]
    for item in items[1:]:
        if not is_consistent(reference, item):
            log.info(
                f"Not grouping {len(items)} files: {item.filename!r} "
                f"inconsistent with {reference.filename!r}"
            )
            return [singleton(i) for i in items]

    by_path = sorted(items, key=lambda i: str(i.source_path))
    position = {i.source_path: n for n, i in enumerate(by_path, start=1)}
    track_numbers = {
        i.source_path: i.resolved_track_number or position[i.source_path]
        for i in items
    }
    ordered = sorted(
        items, key=lambda i: (track_numbers[i.source_path], str(i.source_path))
    )
    display_author = _display_author(items)
    if normalize_key(display_author) == normalize_key(reference.author_label):
        display_author = reference.author_label

    group = BookGroup(
        group_key=make_group_key(reference.first_author, reference.resolved_title),
        display_title=reference.resolved_title,
        display_author=display_author,
        ordered_files=ordered,
        track_numbers=track_numbers,
    )
    log.debug(f"Grouped {group.total_tracks} files as {group.group_key!r}")
    return [group]


def cluster_by_metadata(items: list[AudioItem]) -> list[list[AudioItem]]:
    """Cluster items from anywhere in the tree by author + series (or title).

    Titles have their digit runs removed so numbered parts share a cluster.
    Cluster order follows first appearance.
    """
    clusters: dict[str, list[AudioItem]] = {}
    for item in items:
        series = item.valid_series
        book = normalize_key(series) if series else normalize_key(_DIGITS.sub("", item.resolved_title))
        key = f"{normalize_key(item.first_author)}|{book}"
        clusters.setdefault(key, []).append(item)
    return list(clusters.values())
