"""Exception hierarchy for the audiobook organizer."""

from pathlib import Path


class OrganizerError(Exception):
    """Base exception for all organizer errors."""


class ConfigError(OrganizerError):
    """Invalid or missing configuration."""


class WalkError(OrganizerError):
    """The base directory cannot be traversed at all."""


class MetadataError(OrganizerError):
    """A metadata source could not produce usable metadata."""


class MetadataMissing(MetadataError):
    """The source does not apply to this path (no sidecar, no tags)."""


class MetadataInvalid(MetadataError):
    """Resolved title or first author is empty, or the source is unparsable."""


class MoveFailed(OrganizerError):
    """A filesystem error while creating a directory or moving a file."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class LogError(OrganizerError):
    """The operation log cannot be used for undo."""


class LogMissing(LogError):
    """No operation log exists at the expected location."""


class LogCorrupt(LogError):
    """The operation log exists but cannot be parsed."""


class ExternalToolError(OrganizerError):
    """An external subprocess (ffprobe) failed."""

    def __init__(self, tool: str, exit_code: int, stderr: str) -> None:
        super().__init__(f"{tool} exited with code {exit_code}: {stderr}")
        self.tool = tool
        self.exit_code = exit_code
        self.stderr = stderr
