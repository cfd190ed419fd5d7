"""Tests for scan orchestration."""

import os
import sys
from unittest.mock import patch

import pytest

from spaceleft.analyzer import (
    load_or_scan,
    load_snapshot,
    save_snapshot,
    scan,
    snapshot_filename,
    snapshot_path_for,
)
from spaceleft.config import Config
from spaceleft.errors import PersistenceReadError, TraversalError


@pytest.fixture
def tree(tmp_path):
    root = tmp_path / "tree"
    (root / "docs" / "deep" / "deeper").mkdir(parents=True)
    (root / "music").mkdir()
    (root / "empty" / "nested").mkdir(parents=True)
    (root / "docs" / "a.txt").write_bytes(b"a" * 100)
    (root / "docs" / "deep" / "deeper" / "b.txt").write_bytes(b"b" * 250)
    (root / "music" / "song.mp3").write_bytes(b"m" * 1000)
    (root / "top.txt").write_bytes(b"t" * 7)
    return root


class TestScan:
    def test_builds_snapshot(self, tree):
        snapshot = scan(str(tree))

        assert snapshot.root_path == str(tree)
        assert snapshot.file_count == 4
        assert snapshot.total_size == 1357

        totals = {d.path: d.total_size for d in snapshot.directories}
        assert totals == {
            str(tree): 1357,
            str(tree / "docs"): 350,
            str(tree / "docs" / "deep"): 250,
            str(tree / "docs" / "deep" / "deeper"): 250,
            str(tree / "music"): 1000,
        }

    def test_no_entries_above_root(self, tree):
        snapshot = scan(str(tree))
        assert all(d.path.startswith(str(tree)) for d in snapshot.directories)

    def test_no_double_counting(self, tree):
        snapshot = scan(str(tree))
        root = str(tree)
        top_level = sum(
            d.total_size for d in snapshot.directories if os.path.dirname(d.path) == root
        )
        root_files = sum(f.size for f in snapshot.files if os.path.dirname(f.path) == root)
        assert top_level + root_files == snapshot.total_size

    def test_empty_root(self, tmp_path):
        snapshot = scan(str(tmp_path))
        assert snapshot.files == ()
        assert snapshot.directories == ()

        target = tmp_path / "out" / "empty_scan.gz"
        save_snapshot(snapshot, target)
        loaded = load_snapshot(target)
        assert loaded.files == ()
        assert loaded.directories == ()

    def test_missing_root(self, tmp_path):
        with pytest.raises(TraversalError):
            scan(str(tmp_path / "missing"))

    def test_reports_progress(self, tree):
        calls = []
        scan(str(tree), lambda path, pct: calls.append((path, pct)))
        assert calls[0] == (str(tree), 0)
        assert all(0 <= pct <= 100 for _, pct in calls)
        # root, docs, deep, deeper, music, empty, nested
        assert len(calls) == 7

    @pytest.mark.skipif(os.name == "nt", reason="fake trees use POSIX paths")
    def test_inaccessible_subtree(self, fake_enumerator):
        enum = fake_enumerator(
            {"/r/open/f1": 40, "/r/open/sub/f2": 60, "/r/locked/f3": 500},
            denied={"/r/locked"},
        )
        snapshot = scan("/r", enumerator=enum)

        assert {f.path for f in snapshot.files} == {"/r/open/f1", "/r/open/sub/f2"}
        totals = {d.path: d.total_size for d in snapshot.directories}
        assert "/r/locked" not in totals
        assert totals["/r"] == 100
        assert totals["/r/open"] == 100

    def test_round_trip(self, tree, tmp_path):
        snapshot = scan(str(tree))
        target = tmp_path / "tree_scan.gz"
        save_snapshot(snapshot, target)
        loaded = load_snapshot(target)

        assert set(loaded.files) == set(snapshot.files)
        assert set(loaded.directories) == set(snapshot.directories)
        assert loaded.root_path == snapshot.root_path

    @pytest.mark.skipif(
        os.name == "nt" or sys.platform == "darwin",
        reason="needs a filesystem that accepts non-UTF-8 names",
    )
    def test_round_trip_undecodable_name(self, tree, tmp_path):
        raw = os.path.join(os.fsencode(tree), b"bad\xffname.bin")
        fd = os.open(raw, os.O_WRONLY | os.O_CREAT)
        os.write(fd, b"x" * 9)
        os.close(fd)

        snapshot = scan(str(tree))
        target = tmp_path / "tree_scan.gz"
        save_snapshot(snapshot, target)
        loaded = load_snapshot(target)

        assert set(loaded.files) == set(snapshot.files)
        assert raw in {os.fsencode(f.path) for f in loaded.files}
        assert loaded.total_size == 1366


class TestSnapshotFilename:
    @pytest.mark.parametrize(
        "root, expected",
        [
            ("C:\\", "C_scan.gz"),
            ("D:", "D_scan.gz"),
            ("C:\\Users\\me", "C_Users_me_scan.gz"),
            ("\\\\?\\C:\\", "C_scan.gz"),
            ("/", "root_scan.gz"),
            ("/home/me", "home_me_scan.gz"),
            ("/home/me/", "home_me_scan.gz"),
        ],
    )
    def test_names(self, root, expected):
        assert snapshot_filename(root) == expected

    def test_path_uses_config_dir(self, tmp_path):
        config = Config(snapshot_dir=tmp_path / "scans")
        path = snapshot_path_for(str(tmp_path / "data"), config)
        assert path.parent == tmp_path / "scans"
        assert path.name.endswith("_data_scan.gz")


class TestLoadOrScan:
    def test_scans_and_saves_when_missing(self, tree, tmp_path):
        config = Config(snapshot_dir=tmp_path / "scans")
        snapshot = load_or_scan(str(tree), config)

        assert snapshot.file_count == 4
        assert snapshot_path_for(str(tree), config).exists()

    def test_loads_existing(self, tree, tmp_path):
        config = Config(snapshot_dir=tmp_path / "scans")
        first = load_or_scan(str(tree), config)

        with patch("spaceleft.analyzer.scan") as mock_scan:
            second = load_or_scan(str(tree), config)
            mock_scan.assert_not_called()

        assert second.scan_timestamp == first.scan_timestamp
        assert set(second.files) == set(first.files)

    def test_rescan_replaces_snapshot(self, tree, tmp_path):
        config = Config(snapshot_dir=tmp_path / "scans")
        load_or_scan(str(tree), config)
        (tree / "new.bin").write_bytes(b"n" * 10)

        refreshed = load_or_scan(str(tree), config, rescan=True)
        assert refreshed.file_count == 5
        assert load_snapshot(snapshot_path_for(str(tree), config)).file_count == 5

    def test_corrupt_snapshot_is_not_replaced(self, tree, tmp_path):
        config = Config(snapshot_dir=tmp_path / "scans")
        path = snapshot_path_for(str(tree), config)
        path.parent.mkdir(parents=True)
        path.write_bytes(b"garbage")

        with pytest.raises(PersistenceReadError):
            load_or_scan(str(tree), config)
        assert path.read_bytes() == b"garbage"

    def test_colliding_name_for_other_root(self, tmp_path):
        (tmp_path / "a_b").mkdir()
        (tmp_path / "a_b" / "x.bin").write_bytes(b"x" * 5)
        (tmp_path / "a" / "b").mkdir(parents=True)
        config = Config(snapshot_dir=tmp_path / "scans")
        assert snapshot_path_for(str(tmp_path / "a_b"), config) == snapshot_path_for(
            str(tmp_path / "a" / "b"), config
        )

        load_or_scan(str(tmp_path / "a_b"), config)
        with pytest.raises(PersistenceReadError, match="belongs to"):
            load_or_scan(str(tmp_path / "a" / "b"), config)

        rescanned = load_or_scan(str(tmp_path / "a" / "b"), config, rescan=True)
        assert rescanned.root_path == str(tmp_path / "a" / "b")
        assert rescanned.files == ()
