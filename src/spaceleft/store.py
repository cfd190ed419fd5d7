"""Snapshot persistence: versioned, gzip compressed, atomically replaced.

Layout of the uncompressed stream (little-endian):

    version        int32   (1)
    scan_timestamp int64   ticks of 100 ns since 0001-01-01
    root_path      string
    dir_count      int32, then dir_count x (path string, total_size int64)
    file_count     int32, then file_count x (path string, size int64)

Strings are UTF-8 (surrogate-escaped on POSIX) prefixed with their byte
length as a 7-bit varint, the encoding .NET's BinaryWriter uses, so
Windows-written ``*_scan.gz`` files load unchanged.
"""

import gzip
import logging
import os
import struct
import zlib
from datetime import datetime, timedelta
from pathlib import Path
from typing import BinaryIO

from pydantic import ValidationError

from spaceleft.errors import PersistenceReadError, PersistenceWriteError
from spaceleft.models import DirectoryTotal, FileRecord, Snapshot

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
TEMP_SUFFIX = ".tmp"

# POSIX names are bytes; undecodable ones come back from os.scandir as
# lone surrogates and must round-trip to the same bytes.
PATH_ERRORS = "surrogateescape" if os.name != "nt" else "strict"

_INT32 = struct.Struct("<i")
_INT64 = struct.Struct("<q")
_EPOCH = datetime(1, 1, 1)
_TICKS_PER_SECOND = 10_000_000


def datetime_to_ticks(value: datetime) -> int:
    """Convert a naive datetime to 100 ns ticks since 0001-01-01."""
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    delta = value - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * _TICKS_PER_SECOND + delta.microseconds * 10


def ticks_to_datetime(ticks: int) -> datetime:
    """Inverse of ``datetime_to_ticks`` (sub-microsecond ticks are dropped)."""
    return _EPOCH + timedelta(microseconds=ticks // 10)


# =============================================================================
# Writing
# =============================================================================


def _write_string(out: BinaryIO, value: str) -> None:
    data = value.encode("utf-8", PATH_ERRORS)
    length = len(data)
    prefix = bytearray()
    while length >= 0x80:
        prefix.append((length & 0x7F) | 0x80)
        length >>= 7
    prefix.append(length)
    out.write(bytes(prefix))
    out.write(data)


def write_snapshot(out: BinaryIO, snapshot: Snapshot) -> None:
    """Serialize ``snapshot`` to an uncompressed binary stream."""
    out.write(_INT32.pack(FORMAT_VERSION))
    out.write(_INT64.pack(datetime_to_ticks(snapshot.scan_timestamp)))
    _write_string(out, snapshot.root_path)

    out.write(_INT32.pack(len(snapshot.directories)))
    for directory in snapshot.directories:
        _write_string(out, directory.path)
        out.write(_INT64.pack(directory.total_size))

    out.write(_INT32.pack(len(snapshot.files)))
    for record in snapshot.files:
        _write_string(out, record.path)
        out.write(_INT64.pack(record.size))


def save(snapshot: Snapshot, target: str | Path) -> None:
    """
    Write ``snapshot`` to ``target`` atomically.

    The data goes to ``<target>.tmp`` first and replaces ``target`` only once
    it is completely written. On failure the temp file is removed and any
    existing ``target`` is left as it was.

    Raises:
        PersistenceWriteError: If the snapshot could not be written
    """
    target = Path(target)
    temp = target.with_name(target.name + TEMP_SUFFIX)

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(temp, "wb") as raw, gzip.GzipFile(fileobj=raw, mode="wb") as gz:
            write_snapshot(gz, snapshot)
        os.replace(temp, target)
    except (OSError, struct.error, UnicodeEncodeError) as e:
        raise PersistenceWriteError(f"Save failed for {target}: {e}") from e
    finally:
        # Only present when the write or the replace did not complete
        if temp.exists():
            try:
                temp.unlink()
            except OSError:
                logger.warning("Could not remove temporary file %s", temp)

    logger.info(
        "Saved snapshot of %s to %s (%d dirs, %d files)",
        snapshot.root_path,
        target,
        len(snapshot.directories),
        len(snapshot.files),
    )


# =============================================================================
# Reading
# =============================================================================


def _read_exact(src: BinaryIO, size: int) -> bytes:
    data = src.read(size)
    if len(data) != size:
        raise EOFError(f"unexpected end of stream (wanted {size} bytes, got {len(data)})")
    return data


def _read_int32(src: BinaryIO) -> int:
    return _INT32.unpack(_read_exact(src, 4))[0]


def _read_int64(src: BinaryIO) -> int:
    return _INT64.unpack(_read_exact(src, 8))[0]


def _read_string(src: BinaryIO) -> str:
    length = 0
    shift = 0
    while True:
        byte = _read_exact(src, 1)[0]
        length |= (byte & 0x7F) << shift
        if not byte & 0x80:
            break
        shift += 7
        if shift > 28:
            raise ValueError("malformed string length")
    return _read_exact(src, length).decode("utf-8", PATH_ERRORS)


def _read_count(src: BinaryIO, what: str) -> int:
    count = _read_int32(src)
    if count < 0:
        raise ValueError(f"negative {what} count {count}")
    return count


# Errors that mean "this stream is not a valid snapshot"
_DECODE_ERRORS = (
    EOFError,
    ValueError,
    OverflowError,
    struct.error,
    ValidationError,
    gzip.BadGzipFile,
    zlib.error,
)


def read_snapshot(src: BinaryIO) -> Snapshot:
    """Decode an uncompressed binary stream written by ``write_snapshot``."""
    version = _read_int32(src)
    if version != FORMAT_VERSION:
        raise PersistenceReadError(f"unsupported snapshot version {version}")

    scan_timestamp = ticks_to_datetime(_read_int64(src))
    root_path = _read_string(src)

    dir_count = _read_count(src, "directory")
    directories = []
    for i in range(dir_count):
        try:
            path = _read_string(src)
            directories.append(DirectoryTotal(path=path, total_size=_read_int64(src)))
        except _DECODE_ERRORS as e:
            raise PersistenceReadError(
                f"Error reading directory {i} of {dir_count}: {e}",
                section="directory",
                index=i,
                count=dir_count,
            ) from e

    file_count = _read_count(src, "file")
    files = []
    for i in range(file_count):
        try:
            path = _read_string(src)
            files.append(FileRecord(path=path, size=_read_int64(src)))
        except _DECODE_ERRORS as e:
            raise PersistenceReadError(
                f"Error reading file {i} of {file_count}: {e}",
                section="file",
                index=i,
                count=file_count,
            ) from e

    return Snapshot(
        root_path=root_path,
        scan_timestamp=scan_timestamp,
        files=tuple(files),
        directories=tuple(directories),
    )


def load(source: str | Path) -> Snapshot:
    """
    Load a snapshot written by ``save``.

    Raises:
        PersistenceReadError: If the file is missing, truncated or corrupt
    """
    source = Path(source)
    try:
        with gzip.open(source, "rb") as gz:
            snapshot = read_snapshot(gz)
    except FileNotFoundError as e:
        raise PersistenceReadError(f"Snapshot file not found: {source}") from e
    except PersistenceReadError as e:
        raise PersistenceReadError(
            f"Load failed for {source}: {e}", section=e.section, index=e.index, count=e.count
        ) from e
    except (OSError, *_DECODE_ERRORS) as e:
        raise PersistenceReadError(f"Load failed for {source}: {e}") from e

    logger.info(
        "Loaded snapshot of %s from %s (%d dirs, %d files)",
        snapshot.root_path,
        source,
        len(snapshot.directories),
        len(snapshot.files),
    )
    return snapshot
