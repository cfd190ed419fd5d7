"""Bottom-up directory size aggregation."""

import os
from typing import Iterable

from spaceleft.models import DirectoryTotal, FileRecord


def _parent(path: str) -> str | None:
    """Parent directory of ``path``, or None at a filesystem root."""
    parent = os.path.dirname(path)
    if not parent or parent == path:
        return None
    return parent


def aggregate(
    files: Iterable[FileRecord],
    *,
    root: str | None = None,
) -> list[DirectoryTotal]:
    """
    Compute the cumulative size of every directory that holds files.

    Each file's size is added to its parent directory, every ancestor of those
    directories is created, and then directories are folded into their
    parents longest path first, so every level of a sparse tree receives the
    full size of what lies beneath it.

    Args:
        files: Flat list of files from a walk
        root: Optional scan root; ancestors above it are not materialized

    Returns:
        One DirectoryTotal per directory, in accumulation order
    """
    # normcase(path) -> [display path, total]
    totals: dict[str, list] = {}
    stop = os.path.normcase(root) if root else None

    for record in files:
        parent = _parent(record.path)
        if parent is None:
            continue
        key = os.path.normcase(parent)
        if key in totals:
            totals[key][1] += record.size
        else:
            totals[key] = [parent, record.size]

    # Materialize missing ancestors before folding
    for key, (path, _) in list(totals.items()):
        while key != stop:
            path = _parent(path)
            if path is None:
                break
            key = os.path.normcase(path)
            if key in totals:
                break
            totals[key] = [path, 0]

    # Longer keys are always deeper, so children are folded before parents
    for key in sorted(totals, key=len, reverse=True):
        if key == stop:
            continue
        path, size = totals[key]
        parent = _parent(path)
        if parent is None:
            continue
        parent_key = os.path.normcase(parent)
        if parent_key in totals:
            totals[parent_key][1] += size

    return [DirectoryTotal(path=path, total_size=size) for path, size in totals.values()]
