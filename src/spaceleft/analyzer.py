"""Scan orchestration for spaceleft: walk, aggregate, persist."""

import logging
import os
import re
from datetime import datetime
from pathlib import Path

from spaceleft import store
from spaceleft.aggregator import aggregate
from spaceleft.config import Config, load_config
from spaceleft.enumerator import PathEnumerator, normalize_root, strip_extended_marker
from spaceleft.errors import PersistenceReadError
from spaceleft.models import Snapshot
from spaceleft.walker import CancelFlag, ProgressCallback, WalkState, WalkStrategy, walk

logger = logging.getLogger(__name__)

SNAPSHOT_SUFFIX = "_scan.gz"


def scan(
    root_path: str,
    on_progress: ProgressCallback | None = None,
    *,
    enumerator: PathEnumerator | None = None,
    strategy: WalkStrategy = WalkStrategy.TWO_PASS,
    cancel_flag: CancelFlag | None = None,
) -> Snapshot:
    """
    Scan a directory tree into a Snapshot.

    Args:
        root_path: Directory to scan
        on_progress: Optional callback(display_path, percent)
        enumerator: Directory listing capability (defaults to os.scandir)
        strategy: Walk strategy used for progress reporting
        cancel_flag: Optional callable checked once per directory

    Returns:
        Snapshot with files and directory totals

    Raises:
        TraversalError: If the root cannot be opened
    """
    root = normalize_root(root_path)
    started = datetime.now()
    state = WalkState()

    files = walk(
        root,
        on_progress,
        enumerator=enumerator,
        strategy=strategy,
        cancel_flag=cancel_flag,
        state=state,
    )
    directories = aggregate(files, root=root)

    if state.skipped_directories:
        logger.warning(
            "%d directories under %s could not be read and were skipped",
            state.skipped_directories,
            root,
        )

    return Snapshot(
        root_path=root,
        scan_timestamp=started,
        files=tuple(files),
        directories=tuple(directories),
    )


def save_snapshot(snapshot: Snapshot, path: str | Path) -> None:
    """Persist a snapshot atomically. Raises PersistenceWriteError."""
    store.save(snapshot, path)


def load_snapshot(path: str | Path) -> Snapshot:
    """Load a persisted snapshot. Raises PersistenceReadError."""
    return store.load(path)


def snapshot_filename(root_path: str) -> str:
    """
    Deterministic snapshot file name for a root.

    Separators and drive colons are dropped: ``C:\\`` -> ``C_scan.gz``,
    ``/home/me`` -> ``home_me_scan.gz``, ``/`` -> ``root_scan.gz``.
    """
    cleaned = strip_extended_marker(root_path).replace(":", "")
    parts = [p for p in re.split(r"[\\/]+", cleaned) if p]
    return ("_".join(parts) or "root") + SNAPSHOT_SUFFIX


def snapshot_path_for(root_path: str, config: Config | None = None) -> Path:
    """Where the snapshot for ``root_path`` is stored."""
    config = config or load_config()
    return Path(config.snapshot_dir) / snapshot_filename(normalize_root(root_path))


def load_or_scan(
    root_path: str,
    config: Config | None = None,
    on_progress: ProgressCallback | None = None,
    rescan: bool = False,
) -> Snapshot:
    """
    Load the stored snapshot for a root, scanning and saving one if needed.

    A snapshot file that exists but fails to load is reported, never
    replaced by a fresh scan. Distinct roots can share a file name
    (``/a_b`` and ``/a/b``), so a loaded snapshot must name the requested root.

    Raises:
        TraversalError: If a scan was needed and the root cannot be opened
        PersistenceError: If loading or saving failed, or the stored
            snapshot belongs to a different root
    """
    config = config or load_config()
    root = normalize_root(root_path)
    path = snapshot_path_for(root, config)

    if path.exists() and not rescan:
        snapshot = load_snapshot(path)
        stored_root = strip_extended_marker(snapshot.root_path)
        if os.path.normcase(stored_root) != os.path.normcase(root):
            raise PersistenceReadError(
                f"Snapshot {path} belongs to {snapshot.root_path}, not {root}; "
                "use --rescan or --file"
            )
        return snapshot

    snapshot = scan(root_path, on_progress, strategy=config.strategy)
    save_snapshot(snapshot, path)
    return snapshot
