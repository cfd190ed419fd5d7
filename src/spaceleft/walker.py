"""Depth-first tree walk that turns a directory tree into a flat file list."""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator

from spaceleft.enumerator import PathEnumerator, ScandirEnumerator, normalize_root
from spaceleft.errors import ScanCancelledError, SubtreeAccessError, TraversalError
from spaceleft.models import ChildEntry, FileRecord

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]
CancelFlag = Callable[[], bool]


class WalkStrategy(str, Enum):
    """How the progress denominator is obtained."""

    TWO_PASS = "two-pass"  # Count everything first, then collect
    SINGLE_PASS = "single-pass"  # Denominator grows as directories are listed


@dataclass
class WalkState:
    """Counters threaded through one walk."""

    total: int = 0
    visited: int = 0
    skipped_directories: int = 0

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 0
        return max(0, min(100, self.visited * 100 // self.total))


def sanitize_for_display(path: str, placeholder: str = "?") -> str:
    """Replace control and non-ASCII characters so any console can print the path."""
    return "".join(ch if " " <= ch <= "~" else placeholder for ch in path)


def _check_cancel(cancel_flag: CancelFlag | None) -> None:
    if cancel_flag is not None and cancel_flag():
        raise ScanCancelledError("Scan cancelled")


def _open_root(root: str, enumerator: PathEnumerator) -> list[ChildEntry]:
    try:
        return enumerator.list_children(root)
    except SubtreeAccessError as e:
        raise TraversalError(f"Cannot open scan root {root}: {e.reason}") from e


def _list_subtree(
    path: str, enumerator: PathEnumerator, state: WalkState
) -> list[ChildEntry] | None:
    """Children of ``path``, or None when the subtree must be skipped."""
    try:
        return enumerator.list_children(path)
    except SubtreeAccessError as e:
        state.skipped_directories += 1
        logger.debug("Skipping subtree: %s", e)
        return None


def _depth_first(
    root: str,
    root_children: list[ChildEntry],
    enumerator: PathEnumerator,
    state: WalkState,
    cancel_flag: CancelFlag | None,
    before_listing: Callable[[str], None] | None = None,
    after_listing: Callable[[list[ChildEntry]], None] | None = None,
) -> Iterator[tuple[str, ChildEntry]]:
    """Yield ``(full_path, child)`` for every entry below ``root`` in pre-order.

    Uses an explicit stack of child iterators so depth is not bounded by the
    interpreter's recursion limit. ``state.visited`` is advanced per entry.
    """
    stack: list[tuple[str, Iterator[ChildEntry]]] = [(root, iter(root_children))]
    while stack:
        parent, children = stack[-1]
        child = next(children, None)
        if child is None:
            stack.pop()
            continue

        state.visited += 1
        full_path = os.path.join(parent, child.name)
        yield full_path, child

        if child.is_directory:
            _check_cancel(cancel_flag)
            if before_listing:
                before_listing(full_path)
            grandchildren = _list_subtree(full_path, enumerator, state)
            if grandchildren is None:
                continue
            if after_listing:
                after_listing(grandchildren)
            stack.append((full_path, iter(grandchildren)))


def count_items(
    root: str,
    enumerator: PathEnumerator | None = None,
    cancel_flag: CancelFlag | None = None,
) -> int:
    """Count files and directories below ``root`` (the first pass)."""
    enumerator = enumerator or ScandirEnumerator()
    state = WalkState()
    _check_cancel(cancel_flag)
    root_children = _open_root(root, enumerator)
    for _ in _depth_first(root, root_children, enumerator, state, cancel_flag):
        pass
    return state.visited


def walk(
    root: str,
    on_visit: ProgressCallback | None = None,
    *,
    enumerator: PathEnumerator | None = None,
    strategy: WalkStrategy = WalkStrategy.TWO_PASS,
    cancel_flag: CancelFlag | None = None,
    state: WalkState | None = None,
) -> list[FileRecord]:
    """
    Visit every reachable file below ``root``.

    Args:
        root: Directory to scan (relative paths are made absolute)
        on_visit: Optional callback(display_path, percent) fired before each
            directory is listed
        enumerator: Directory listing capability (defaults to os.scandir)
        strategy: Two-pass (exact denominator) or single-pass (growing one)
        cancel_flag: Optional callable checked once per directory
        state: Optional WalkState to collect counters into

    Returns:
        FileRecords in discovery order

    Raises:
        TraversalError: If the root itself cannot be listed
        ScanCancelledError: If cancel_flag returned True
    """
    root = normalize_root(root)
    enumerator = enumerator or ScandirEnumerator()
    state = state if state is not None else WalkState()
    strategy = WalkStrategy(strategy)

    if strategy == WalkStrategy.TWO_PASS:
        state.total = count_items(root, enumerator, cancel_flag)
        logger.debug("Counted %d items below %s", state.total, root)

    def report(path: str) -> None:
        if on_visit:
            on_visit(sanitize_for_display(path), state.percent)

    def grow_total(children: list[ChildEntry]) -> None:
        if strategy == WalkStrategy.SINGLE_PASS:
            state.total += len(children)

    state.visited = 0
    _check_cancel(cancel_flag)
    root_children = _open_root(root, enumerator)
    report(root)
    grow_total(root_children)

    files: list[FileRecord] = []
    for full_path, child in _depth_first(
        root,
        root_children,
        enumerator,
        state,
        cancel_flag,
        before_listing=report,
        after_listing=grow_total,
    ):
        if not child.is_directory:
            files.append(FileRecord(path=full_path, size=child.size))

    logger.info(
        "Walked %s: %d files, %d items, %d skipped directories",
        root,
        len(files),
        state.visited,
        state.skipped_directories,
    )
    return files
