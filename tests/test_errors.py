"""Tests for errors.py -- exception hierarchy and attributes."""

from pathlib import Path

from audiobook_organizer.errors import (
    ConfigError,
    ExternalToolError,
    LogCorrupt,
    LogError,
    LogMissing,
    MetadataError,
    MetadataInvalid,
    MetadataMissing,
    MoveFailed,
    OrganizerError,
    WalkError,
)


class TestExceptionHierarchy:
    def test_all_inherit_from_organizer_error(self):
        for cls in (ConfigError, WalkError, MetadataError, MoveFailed, LogError, ExternalToolError):
            assert issubclass(cls, OrganizerError)

    def test_organizer_error_is_exception(self):
        assert issubclass(OrganizerError, Exception)

    def test_metadata_variants(self):
        assert issubclass(MetadataMissing, MetadataError)
        assert issubclass(MetadataInvalid, MetadataError)

    def test_log_variants(self):
        assert issubclass(LogMissing, LogError)
        assert issubclass(LogCorrupt, LogError)


class TestMoveFailed:
    def test_attributes(self):
        err = MoveFailed(Path("/books/a.mp3"), "permission denied")
        assert err.path == Path("/books/a.mp3")
        assert err.reason == "permission denied"
        assert "a.mp3" in str(err)
        assert "permission denied" in str(err)


class TestExternalToolError:
    def test_attributes(self):
        err = ExternalToolError("ffprobe", 1, "Invalid data found")
        assert err.tool == "ffprobe"
        assert err.exit_code == 1
        assert err.stderr == "Invalid data found"
        assert "ffprobe exited with code 1" in str(err)
