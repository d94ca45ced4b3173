"""File operations for the audiobook organizer.

Submodules:
    paths -- Pure destination building for the six layouts, series number
             extraction ("Saga #2" -> "Saga", "2"), track-number prefixes and
             rename patterns. is_already_organized compares normalized paths.
    move  -- Executes move units (one per source/target directory pair): dry-run,
             confirmation, collision refusal, per-file failure capture, one
             operation log entry per unit, and bounded empty-parent cleanup.
    undo  -- Replays the operation log in reverse direction. Deletes the log only
             when every file was restored; otherwise keeps the unfinished entries.
"""
