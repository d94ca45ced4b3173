"""Organizer configuration via pydantic-settings (.env + env vars)."""

import sys
from pathlib import Path
from typing import Annotated

from loguru import logger
from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .models import LOG_FILENAME, FieldMapping, FilenameOptions, Layout


class OrganizerConfig(BaseSettings):
    """All organizer configuration with layered resolution:
    .env file < environment variables < constructor kwargs.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # -- Directories --
    base_dir: Path = Path(".")
    output_dir: Path | None = None
    log_dir: Path | None = None

    # -- Layout --
    layout: Layout = Layout.AUTHOR_SERIES_TITLE
    flat: bool = False
    replace_space: str = ""
    add_track_numbers: bool = False
    rename_pattern: str = ""

    # -- Metadata sources --
    use_embedded_metadata: bool = False
    embedded_only: bool = False

    # -- Field mapping --
    title_field: str = "title"
    series_field: str = "series"
    author_fields: Annotated[list[str], NoDecode] = ["authors", "artist", "album_artist"]
    track_field: str = "track"

    # -- Behavior --
    dry_run: bool = False
    undo: bool = False
    prompt: bool = False
    remove_empty: bool = False
    plan_script: Path | None = None
    verbose: bool = False
    log_level: str = "INFO"

    @field_validator("replace_space")
    @classmethod
    def _single_char(cls, value: str) -> str:
        if len(value) > 1:
            raise ValueError("replace_space must be a single character")
        return value

    @field_validator("author_fields", mode="before")
    @classmethod
    def _split_author_fields(cls, value):
        # Accept "authors,artist" from flags and plain env vars
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @property
    def target_root(self) -> Path:
        """Directory books are organized into (output dir, else base dir)."""
        return self.output_dir if self.output_dir else self.base_dir

    @property
    def log_path(self) -> Path:
        """Path to the operation log used by undo."""
        return self.target_root / LOG_FILENAME

    @property
    def field_mapping(self) -> FieldMapping:
        mapping = FieldMapping(
            title_field=self.title_field,
            series_field=self.series_field,
            author_fields=tuple(self.author_fields),
            track_field=self.track_field,
        )
        if mapping.is_empty():
            return FieldMapping.default()
        return mapping

    @property
    def filename_options(self) -> FilenameOptions:
        return FilenameOptions(
            add_track_numbers=self.add_track_numbers,
            rename_pattern=self.rename_pattern,
            replace_space=self.replace_space,
        )

    def setup_logging(self) -> None:
        """Configure loguru for the organizer."""
        logger.remove()  # Remove default stderr handler

        log_format = (
            "{time:YYYY-MM-DDTHH:mm:ssZ} | {level:<8} | "
            "{extra[stage]:<8} | {message}"
        )

        def _default_extra(record):
            record["extra"].setdefault("stage", "")
            return True

        level = "DEBUG" if self.verbose else self.log_level.upper()
        logger.add(
            sys.stderr,
            format=log_format,
            level=level,
            filter=_default_extra,
        )

        if self.log_dir is None:
            return
        self.log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(self.log_dir / "organizer.log"),
            format=log_format,
            level="DEBUG",
            rotation="10 MB",
            retention="30 days",
            filter=_default_extra,
        )
