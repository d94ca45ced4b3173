"""Organizer runner -- walks, resolves, groups, and moves in sequence."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from pathlib import Path

from loguru import logger

from .config import OrganizerConfig
from .errors import MetadataInvalid, OrganizerError
from .grouping import cluster_by_metadata, group_items
from .metadata import Extractor, resolve
from .models import AudioItem, BookGroup, MoveFailure, RunSummary, SourceKind
from .ops.move import (
    ConfirmFn,
    MoveUnit,
    cleanup_empty_parents,
    execute_unit,
    plan_moves,
)
from .ops.paths import (
    build_destination,
    build_directory,
    transform_filename,
    validate_rename_pattern,
)
from .ops.undo import UndoReport, undo_moves
from .oplog import OperationLog
from .plan_script import PlanScript
from .prompt import confirm_move
from .walker import BookDirectory, classify, walk_directories, walk_files

log = logger.bind(stage="runner")


class OrganizerRunner:
    """Runs one organize (or undo) pass over config.base_dir."""

    def __init__(
        self,
        config: OrganizerConfig,
        confirm: ConfirmFn | None = None,
        extractors: Mapping[SourceKind, Extractor] | None = None,
    ) -> None:
        self.config = config
        self.mapping = config.field_mapping
        self.options = config.filename_options
        if self.options.rename_pattern:
            validate_rename_pattern(self.options.rename_pattern)
        self.extractors = extractors
        if confirm is None and config.prompt:
            confirm = confirm_move
        self.confirm = confirm
        self.oplog = OperationLog(config.log_path)
        self.plan: PlanScript | None = None
        if config.dry_run and config.plan_script:
            self.plan = PlanScript(config.plan_script, config.base_dir, config.output_dir)

    # -- Organize --

    def run(self) -> RunSummary:
        """Organize the tree. Raises WalkError only if the base cannot be read."""
        summary = RunSummary()
        base = self.config.base_dir
        log.info(
            f"Organizing {base} -> {self.config.target_root} "
            f"(layout={self.config.layout}, flat={self.config.flat}, "
            f"dry_run={self.config.dry_run})"
        )
        if self.config.flat:
            self._run_flat(summary)
        else:
            self._run_directories(summary)

        if self.plan is not None:
            self.plan.write()
        log.info(
            f"Done: {len(summary.moves)} moved, {len(summary.skipped)} already organized, "
            f"{len(summary.failures)} failed"
        )
        return summary

    def _run_directories(self, summary: RunSummary) -> None:
        directories = list(walk_directories(self.config.base_dir, self.config.output_dir))
        for directory in directories:
            try:
                if directory.has_sidecar:
                    self._organize_sidecar_directory(directory, summary)
                else:
                    items = self._resolve_all(directory.files, summary)
                    for group in group_items(items):
                        self._organize_group(group, summary)
            except (OrganizerError, OSError) as exc:
                log.error(f"Error processing {directory.path}: {exc}")
                summary.failures.append(MoveFailure(directory.path, str(exc)))

    def _run_flat(self, summary: RunSummary) -> None:
        files = list(walk_files(self.config.base_dir, self.config.output_dir))
        items = self._resolve_all(files, summary)
        for cluster in cluster_by_metadata(items):
            for group in group_items(cluster):
                try:
                    self._organize_group(group, summary)
                except (OrganizerError, OSError) as exc:
                    log.error(f"Error processing {group.group_key}: {exc}")
                    summary.failures.append(MoveFailure(group.reference.source_path, str(exc)))

    # -- Stages --

    def _resolve_one(self, path: Path, summary: RunSummary) -> AudioItem | None:
        try:
            item = resolve(path, self.config, self.mapping, self.extractors)
        except MetadataInvalid as exc:
            log.warning(f"Invalid metadata, skipping {path}: {exc}")
            summary.invalid.append(path)
            return None
        if item.source_kind is SourceKind.FILENAME:
            summary.metadata_missing.append(path)
        else:
            summary.metadata_found.append(path)
        return item

    def _resolve_all(self, paths: list[Path], summary: RunSummary) -> list[AudioItem]:
        items = []
        for path in paths:
            item = self._resolve_one(path, summary)
            if item is not None:
                items.append(item)
        return items

    def _organize_sidecar_directory(self, directory: BookDirectory, summary: RunSummary) -> None:
        """The directory is one book: every file in it moves to one target dir."""
        item = self._resolve_one(directory.path, summary)
        if item is None:
            return
        target_dir = build_directory(
            item, self.config.layout, self.config.target_root, self.options.replace_space
        )
        content = [f for f in directory.all_files if classify(f) is not None]
        total = len(content)
        tracks = {f: n for n, f in enumerate(content, start=1)}

        pairs = []
        for path in directory.all_files:
            if path in tracks:
                member = dataclasses.replace(item, source_path=path)
                name = transform_filename(member, tracks[path], total, self.options)
            else:
                name = path.name
            pairs.append((path, target_dir / name))
        self._execute(plan_moves(item, pairs), summary)

    def _organize_group(self, group: BookGroup, summary: RunSummary) -> None:
        layout = self.config.layout
        root = self.config.target_root
        subject: AudioItem | BookGroup
        if group.is_singleton:
            subject = group.reference
            pairs = [
                (subject.source_path, build_destination(subject, layout, root, options=self.options))
            ]
        else:
            subject = group
            pairs = [
                (m.source_path, build_destination(group, layout, root, options=self.options, member=m))
                for m in group.ordered_files
            ]
        self._execute(plan_moves(subject, pairs), summary)

    def _execute(self, units: list[MoveUnit], summary: RunSummary) -> None:
        for unit in units:
            execute_unit(
                unit,
                summary,
                dry_run=self.config.dry_run,
                confirm=self.confirm,
                oplog=self.oplog,
                plan=self.plan,
                remove_empty=self.config.remove_empty,
                stop_at=self.config.base_dir,
            )

    # -- Undo --

    def undo(self) -> UndoReport:
        """Reverse the last run. Raises LogMissing / LogCorrupt."""
        log.info(f"Undoing moves from {self.config.log_path}")
        report = undo_moves(self.config.log_path)
        if self.config.remove_empty:
            for restored in report.restored:
                cleanup_empty_parents(restored.source.parent, self.config.target_root)
        return report
