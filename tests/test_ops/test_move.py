"""Tests for ops/move.py -- executing planned moves."""

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from audiobook_organizer.errors import MoveFailed
from audiobook_organizer.models import AudioItem, SourceKind
from audiobook_organizer.oplog import OperationLog
from audiobook_organizer.ops.move import (
    MoveUnit,
    cleanup_empty_parents,
    execute_unit,
    move_file,
    plan_moves,
)


def _touch(path: Path, content: str = "x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def _subject(path: Path) -> AudioItem:
    return AudioItem(
        source_path=path,
        raw_metadata={},
        resolved_title="Book",
        resolved_authors=("Author",),
        resolved_series="",
        resolved_track_number=0,
        source_kind=SourceKind.SIDECAR,
    )


def _unit(tmp_path, names=("a.mp3", "b.mp3"), renames=None):
    src_dir = tmp_path / "in" / "Book"
    dst_dir = tmp_path / "out" / "Author" / "Book"
    renames = renames or {}
    pairs = []
    for name in names:
        source = _touch(src_dir / name, name)
        pairs.append((source, dst_dir / renames.get(name, name)))
    return plan_moves(_subject(pairs[0][0]), pairs)[0]


class TestPlanMoves:
    def test_splits_by_directory_pair(self, tmp_path):
        subject = _subject(tmp_path / "x" / "a.mp3")
        pairs = [
            (tmp_path / "x" / "a.mp3", tmp_path / "out" / "a.mp3"),
            (tmp_path / "y" / "b.mp3", tmp_path / "out" / "b.mp3"),
            (tmp_path / "x" / "c.mp3", tmp_path / "out" / "c.mp3"),
        ]
        units = plan_moves(subject, pairs)
        assert [u.source_dir for u in units] == [tmp_path / "x", tmp_path / "y"]
        assert len(units[0].moves) == 2
        assert units[0].target_dir == tmp_path / "out"


class TestMoveFile:
    def test_moves(self, tmp_path):
        source = _touch(tmp_path / "a.mp3")
        (tmp_path / "dst").mkdir()
        move_file(source, tmp_path / "dst" / "a.mp3")
        assert not source.exists()
        assert (tmp_path / "dst" / "a.mp3").exists()

    def test_refuses_to_overwrite(self, tmp_path):
        source = _touch(tmp_path / "a.mp3", "new")
        existing = _touch(tmp_path / "dst" / "a.mp3", "old")
        with pytest.raises(MoveFailed):
            move_file(source, existing)
        assert existing.read_text() == "old"
        assert source.exists()

    def test_missing_source(self, tmp_path):
        (tmp_path / "dst").mkdir()
        with pytest.raises(MoveFailed):
            move_file(tmp_path / "ghost.mp3", tmp_path / "dst" / "ghost.mp3")


class TestCleanupEmptyParents:
    def test_removes_up_to_stop(self, tmp_path):
        deep = tmp_path / "a" / "b" / "c"
        deep.mkdir(parents=True)
        removed = cleanup_empty_parents(deep, tmp_path)
        assert removed == [deep, tmp_path / "a" / "b", tmp_path / "a"]
        assert tmp_path.exists()

    def test_stops_at_non_empty(self, tmp_path):
        deep = tmp_path / "a" / "b"
        deep.mkdir(parents=True)
        _touch(tmp_path / "a" / "keep.txt")
        assert cleanup_empty_parents(deep, tmp_path) == [deep]
        assert (tmp_path / "a").exists()


class TestExecuteUnit:
    def test_moves_and_logs(self, tmp_path):
        unit = _unit(tmp_path)
        oplog = OperationLog(tmp_path / ".abook-org.log")
        summary = execute_unit(unit, oplog=oplog)

        assert summary.ok
        assert len(summary.moves) == 2
        assert (unit.target_dir / "a.mp3").read_text() == "a.mp3"
        data = json.loads(oplog.path.read_text())
        assert len(data) == 1
        assert data[0]["source_path"] == str(unit.source_dir)
        assert data[0]["target_path"] == str(unit.target_dir)
        assert data[0]["files"] == ["a.mp3", "b.mp3"]
        assert "original_files" not in data[0]

    def test_renamed_files_record_originals(self, tmp_path):
        unit = _unit(tmp_path, names=("a.mp3",), renames={"a.mp3": "01 - a.mp3"})
        summary = execute_unit(unit)
        entry = summary.log_entries[0]
        assert entry.files == ["01 - a.mp3"]
        assert entry.original_files == ["a.mp3"]

    def test_dry_run_touches_nothing(self, tmp_path):
        unit = _unit(tmp_path)
        oplog = OperationLog(tmp_path / ".abook-org.log")
        plan = MagicMock()
        summary = execute_unit(unit, dry_run=True, oplog=oplog, plan=plan)

        assert len(summary.moves) == 2
        assert not unit.target_dir.exists()
        assert (unit.source_dir / "a.mp3").exists()
        assert not oplog.exists()
        assert plan.add_move.call_count == 2

    def test_dry_run_skips_confirm(self, tmp_path):
        unit = _unit(tmp_path)
        confirm = MagicMock(return_value=False)
        execute_unit(unit, dry_run=True, confirm=confirm)
        confirm.assert_not_called()

    def test_declined(self, tmp_path):
        unit = _unit(tmp_path)
        confirm = MagicMock(return_value=False)
        summary = execute_unit(unit, confirm=confirm)

        confirm.assert_called_once_with(unit.subject, unit.source_dir, unit.target_dir)
        assert summary.declined == [unit.source_dir / "a.mp3", unit.source_dir / "b.mp3"]
        assert summary.moves == []
        assert (unit.source_dir / "a.mp3").exists()

    def test_already_organized_skipped(self, tmp_path):
        source = _touch(tmp_path / "Author" / "Book" / "a.mp3")
        unit = MoveUnit(_subject(source), source.parent, source.parent, [(source, source)])
        confirm = MagicMock(return_value=True)
        summary = execute_unit(unit, confirm=confirm)

        assert summary.skipped == [source]
        assert summary.log_entries == []
        confirm.assert_not_called()

    def test_collision_is_a_failure(self, tmp_path):
        unit = _unit(tmp_path)
        _touch(unit.target_dir / "a.mp3", "existing")
        summary = execute_unit(unit)

        assert not summary.ok
        assert summary.failures[0].path == unit.source_dir / "a.mp3"
        assert (unit.target_dir / "a.mp3").read_text() == "existing"
        assert (unit.target_dir / "b.mp3").exists()
        assert summary.log_entries[0].files == ["b.mp3"]

    def test_unwritable_target_fails_whole_unit(self, tmp_path):
        blocked = _unit(tmp_path)
        _touch(blocked.target_dir.parent)
        summary = execute_unit(blocked)

        assert sorted(f.path for f in summary.failures) == [
            blocked.source_dir / "a.mp3", blocked.source_dir / "b.mp3",
        ]
        assert all("cannot create" in f.reason for f in summary.failures)
        assert summary.moves == []
        assert summary.log_entries == []
        assert (blocked.source_dir / "a.mp3").exists()

        following = _unit(tmp_path / "next")
        execute_unit(following, summary)
        assert (following.target_dir / "a.mp3").exists()
        assert len(summary.moves) == 2
        assert len(summary.failures) == 2

    def test_remove_empty(self, tmp_path):
        unit = _unit(tmp_path)
        summary = execute_unit(unit, remove_empty=True, stop_at=tmp_path / "in")
        assert summary.empty_dirs_removed == [unit.source_dir]
        assert not unit.source_dir.exists()
        assert (tmp_path / "in").exists()

    def test_keeps_empty_by_default(self, tmp_path):
        unit = _unit(tmp_path)
        execute_unit(unit)
        assert unit.source_dir.is_dir()
