"""Tests for grouping.py -- deciding which items form one book."""

from dataclasses import replace
from pathlib import Path

import pytest

from audiobook_organizer.grouping import (
    cluster_by_metadata,
    group_items,
    has_common_prefix,
    has_track_number_pattern,
    is_consistent,
    make_group_key,
    normalize_key,
    singleton,
)
from audiobook_organizer.models import AudioItem, SourceKind


def _item(name, title, author="Jane Doe", series="", track=0, directory="/books/Book"):
    return AudioItem(
        source_path=Path(directory) / name,
        raw_metadata={},
        resolved_title=title,
        resolved_authors=(author,) if author else (),
        resolved_series=series,
        resolved_track_number=track,
        source_kind=SourceKind.EMBEDDED_AUDIO,
    )


class TestKeys:
    def test_normalize_key(self):
        assert normalize_key("  Tom & Jerry: The_Movie! ") == "tom and jerry the movie"

    def test_make_group_key(self):
        assert make_group_key("Jane Doe", "The Book!") == "jane doe|the book"


class TestTrackNumberPattern:
    @pytest.mark.parametrize("first, second", [
        ("Chapter 1", "Chapter 2"),
        ("Part 1 of Saga", "Part 2 of Saga"),
        ("Book 9 - Disc 1", "Book 9 - Disc 2"),
        ("chapter 3", "Chapter 14"),
    ])
    def test_matches(self, first, second):
        assert has_track_number_pattern(first, second)

    @pytest.mark.parametrize("first, second", [
        ("Chapter 1", "Chapter 1"),
        ("Book 1", "Other 2"),
        ("Dune", "Emma"),
        ("Chapter 1", "Intro"),
    ])
    def test_rejects(self, first, second):
        assert not has_track_number_pattern(first, second)


class TestCommonPrefix:
    def test_separator_prefix(self):
        assert has_common_prefix("Mistborn - Part One", "Mistborn - Part Two")
        assert has_common_prefix("Dune: Arrival", "Dune: Departure")

    def test_whole_word_prefix(self):
        assert has_common_prefix("The Name of the Wind", "The Name of the Rose")

    def test_single_shared_word_rejected(self):
        assert not has_common_prefix("The End", "The Beginning")

    def test_no_prefix(self):
        assert not has_common_prefix("Dune", "Emma")

    def test_short_share_rejected(self):
        assert not has_common_prefix(
            "The Long Walk Home Across the Frozen Northern Plains", "The Long and Winding Road"
        )


class TestIsConsistent:
    def test_same_title_same_author(self):
        assert is_consistent(_item("a.mp3", "Dune"), _item("b.mp3", "Dune"))

    def test_same_title_different_author(self):
        assert not is_consistent(
            _item("a.mp3", "Dune", author="Frank Herbert"),
            _item("b.mp3", "Dune", author="Kevin Anderson"),
        )

    def test_series_rescue(self):
        a = _item("a.mp3", "Alpha", series="Saga #1", track=1)
        b = _item("b.mp3", "Omega", series="Saga #2", track=2)
        assert is_consistent(a, b)

    def test_series_rescue_needs_tracks(self):
        a = _item("a.mp3", "Alpha", series="Saga #1")
        b = _item("b.mp3", "Omega", series="Saga #2")
        assert not is_consistent(a, b)


class TestGroupItems:
    def test_empty(self):
        assert group_items([]) == []

    def test_single_item_is_singleton(self):
        groups = group_items([_item("a.mp3", "Dune")])
        assert len(groups) == 1
        assert groups[0].is_singleton

    def test_chapters_grouped_and_ordered(self):
        items = [
            _item("c.mp3", "Chapter 3", track=3),
            _item("a.mp3", "Chapter 1", track=1),
            _item("b.mp3", "Chapter 2", track=2),
        ]
        groups = group_items(items)
        assert len(groups) == 1
        group = groups[0]
        assert [i.resolved_title for i in group.ordered_files] == [
            "Chapter 1", "Chapter 2", "Chapter 3",
        ]
        assert group.total_tracks == 3
        assert group.display_author == "Jane Doe"
        assert group.group_key == "jane doe|chapter 3"

    def test_missing_tracks_use_path_order(self):
        items = [
            _item("c.mp3", "Chapter 3"),
            _item("a.mp3", "Chapter 1"),
            _item("b.mp3", "Chapter 2"),
        ]
        group = group_items(items)[0]
        assert [i.filename for i in group.ordered_files] == ["a.mp3", "b.mp3", "c.mp3"]
        assert group.track_for(group.ordered_files[2]) == 3

    def test_unrelated_items_become_singletons(self):
        items = [
            _item("a.mp3", "Dune", author="Frank Herbert"),
            _item("b.mp3", "Emma", author="Jane Austen"),
        ]
        groups = group_items(items)
        assert len(groups) == 2
        assert all(g.is_singleton for g in groups)

    def test_one_outlier_splits_all(self):
        items = [
            _item("a.mp3", "Chapter 1"),
            _item("b.mp3", "Chapter 2"),
            _item("z.mp3", "Completely Different"),
        ]
        groups = group_items(items)
        assert len(groups) == 3

    def test_display_author_case_variants(self):
        items = [
            _item("a.mp3", "Chapter 1", author="Jane Doe"),
            _item("b.mp3", "Chapter 2", author="jane doe"),
        ]
        assert group_items(items)[0].display_author == "Jane Doe"

    def test_display_author_keeps_every_author(self):
        items = [
            replace(_item(name, "Book"), resolved_authors=("Jane Doe", "John Smith"))
            for name in ("a.mp3", "b.mp3")
        ]
        group = group_items(items)[0]
        assert group.display_author == "Jane Doe,John Smith"
        assert singleton(items[0]).display_author == "Jane Doe,John Smith"


class TestSingleton:
    def test_fields(self):
        group = singleton(_item("a.mp3", "Dune", track=4))
        assert group.display_title == "Dune"
        assert group.display_author == "Jane Doe"
        assert group.track_for(group.reference) == 4


class TestClusterByMetadata:
    def test_series_across_directories(self):
        items = [
            _item("a.mp3", "Alpha", series="Saga #1", directory="/books/x"),
            _item("b.mp3", "Omega", series="Saga #2", directory="/books/y"),
            _item("c.mp3", "Other", author="John Smith", series="Saga #1", directory="/books/z"),
        ]
        clusters = cluster_by_metadata(items)
        assert [[i.filename for i in c] for c in clusters] == [["a.mp3", "b.mp3"], ["c.mp3"]]

    def test_numbered_titles_share_cluster(self):
        items = [
            _item("p1.mp3", "Part 1", directory="/books/x"),
            _item("p2.mp3", "Part 2", directory="/books/y"),
            _item("dune.mp3", "Dune", directory="/books/y"),
        ]
        clusters = cluster_by_metadata(items)
        assert len(clusters) == 2
        assert len(clusters[0]) == 2
