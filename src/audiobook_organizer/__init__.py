"""Audiobook Organizer -- sort audiobooks and ebooks into Author/Series/Title folders.

Core modules:
    config      -- Organizer configuration via pydantic-settings (.env + env vars).
                   CLI flags are passed as kwargs to OrganizerConfig.
    cli         -- Click CLI entry point (audiobook-organize).
    runner      -- Sequential orchestration: walk -> resolve -> group -> path -> move.
    walker      -- os.walk discovery of book directories (metadata.json sidecars
                   prune their subtree) and individual files for flat mode.
    metadata    -- Metadata sources (sidecar, embedded audio, embedded ebook,
                   filename fallback) and the resolution chain between them.
    mapping     -- Field mapping from raw keys to title/series/authors/track.
    grouping    -- Album detection: reference-signature comparison with track-number,
                   common-prefix, and series fallbacks. Fails closed to singletons.
    oplog       -- Atomic JSON operation log (.abook-org.log) used by undo.
    ffprobe     -- Embedded audio tags via ffprobe subprocess.
    epub        -- EPUB OPF metadata (dc:*, belongs-to-collection, calibre:series).
    sanitize    -- Path segment and filename sanitization.
    prompt      -- Interactive y/N confirmation per move.
    plan_script -- Dry-run plan written as a reviewable bash script.

Subpackages:
    ops -- Path building, move execution, undo.
"""
