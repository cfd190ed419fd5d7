"""Directory listing for spaceleft.

The walker never touches the filesystem directly; it asks a
``PathEnumerator`` for the immediate children of one directory at a time.
``ScandirEnumerator`` is the concrete implementation built on ``os.scandir``:

* On Windows it prefixes paths with the extended-length marker (``\\\\?\\``)
  before listing, so paths longer than the legacy 260 character limit work.
  The marker never leaks into returned names or stored paths.
* On POSIX, a path longer than ``PATH_MAX`` is opened one component at a time
  with ``dir_fd`` relative opens and listed through the resulting descriptor.
"""

import errno
import logging
import os
from typing import Protocol

from spaceleft.errors import SubtreeAccessError
from spaceleft.models import ChildEntry

logger = logging.getLogger(__name__)

EXTENDED_PREFIX = "\\\\?\\"
EXTENDED_UNC_PREFIX = "\\\\?\\UNC\\"


class PathEnumerator(Protocol):
    """Capability that lists the immediate children of a directory."""

    def list_children(self, path: str) -> list[ChildEntry]:
        """Return the children of ``path``.

        Raises SubtreeAccessError when the directory itself cannot be listed.
        Children that vanish or cannot be inspected are left out.
        """
        ...


def normalize_root(path: str) -> str:
    """Absolute form of ``path`` without a trailing separator."""
    path = strip_extended_marker(os.path.expanduser(path))
    return os.path.abspath(path)


def add_extended_marker(path: str) -> str:
    """Prefix an absolute Windows path with the extended-length marker."""
    if path.startswith(EXTENDED_PREFIX):
        return path
    if path.startswith("\\\\"):
        # UNC share: \\server\share -> \\?\UNC\server\share
        return EXTENDED_UNC_PREFIX + path[2:]
    return EXTENDED_PREFIX + path


def strip_extended_marker(path: str) -> str:
    """Undo ``add_extended_marker``; other paths pass through unchanged."""
    if path.startswith(EXTENDED_UNC_PREFIX):
        return "\\\\" + path[len(EXTENDED_UNC_PREFIX) :]
    if path.startswith(EXTENDED_PREFIX):
        return path[len(EXTENDED_PREFIX) :]
    return path


def _open_long_directory(path: str) -> int:
    """Open a directory whose path exceeds PATH_MAX, one component at a time."""
    parts = [p for p in path.split(os.sep) if p]
    flags = os.O_RDONLY | getattr(os, "O_DIRECTORY", 0)
    fd = os.open(os.sep if os.path.isabs(path) else os.curdir, flags)
    try:
        for part in parts:
            next_fd = os.open(part, flags, dir_fd=fd)
            os.close(fd)
            fd = next_fd
    except OSError:
        os.close(fd)
        raise
    return fd


class ScandirEnumerator:
    """``os.scandir`` based enumerator that tolerates very long paths."""

    def __init__(self, use_extended_paths: bool | None = None):
        if use_extended_paths is None:
            use_extended_paths = os.name == "nt"
        self.use_extended_paths = use_extended_paths

    def list_children(self, path: str) -> list[ChildEntry]:
        target = add_extended_marker(path) if self.use_extended_paths else path
        try:
            with os.scandir(target) as entries:
                return self._collect(path, entries)
        except OSError as e:
            if e.errno == errno.ENAMETOOLONG and os.open in os.supports_dir_fd:
                return self._list_long(path)
            raise SubtreeAccessError(path, e.strerror or str(e)) from e

    def _list_long(self, path: str) -> list[ChildEntry]:
        try:
            fd = _open_long_directory(path)
        except OSError as e:
            raise SubtreeAccessError(path, e.strerror or str(e)) from e
        try:
            with os.scandir(fd) as entries:
                return self._collect(path, entries)
        except OSError as e:
            raise SubtreeAccessError(path, e.strerror or str(e)) from e
        finally:
            os.close(fd)

    def _collect(self, path: str, entries) -> list[ChildEntry]:
        children: list[ChildEntry] = []
        for entry in entries:
            try:
                # Symlinks are neither followed nor recorded
                if entry.is_symlink():
                    continue
                if entry.is_dir(follow_symlinks=False):
                    children.append(ChildEntry(entry.name, True))
                elif entry.is_file(follow_symlinks=False):
                    size = entry.stat(follow_symlinks=False).st_size
                    children.append(ChildEntry(entry.name, False, size))
            except OSError as e:
                logger.debug("Skipping %s in %s: %s", entry.name, path, e)
                continue
        return children
