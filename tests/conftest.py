"""Shared fixtures for spaceleft tests."""

import posixpath

import pytest

from spaceleft.errors import SubtreeAccessError
from spaceleft.models import ChildEntry


class FakeEnumerator:
    """In-memory directory tree keyed by POSIX paths."""

    def __init__(self, files=None, empty_dirs=(), denied=(), root="/r"):
        self.tree: dict[str, list[ChildEntry]] = {}
        self.denied = set(denied)
        self.calls: list[str] = []
        self._ensure_dir(root)
        for path, size in (files or {}).items():
            parent, name = posixpath.split(path)
            self._ensure_dir(parent)
            self.tree[parent].append(ChildEntry(name, False, size))
        for path in empty_dirs:
            self._ensure_dir(path)

    def _ensure_dir(self, path):
        missing = []
        while path not in self.tree:
            missing.append(path)
            parent, name = posixpath.split(path)
            if not name:
                break
            path = parent
        for p in reversed(missing):
            parent, name = posixpath.split(p)
            if name:
                self.tree[parent].append(ChildEntry(name, True))
            self.tree[p] = []

    def list_children(self, path):
        self.calls.append(path)
        if path in self.denied:
            raise SubtreeAccessError(path, "Permission denied")
        if path not in self.tree:
            raise SubtreeAccessError(path, "No such file or directory")
        return list(self.tree[path])


@pytest.fixture
def fake_enumerator():
    return FakeEnumerator


@pytest.fixture
def spaceleft_home(tmp_path, monkeypatch):
    """Point the config directory at a temp dir."""
    home = tmp_path / "home"
    monkeypatch.setenv("SPACELEFT_HOME", str(home))
    return home
