"""Data models for spaceleft."""

import os
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SortMode(str, Enum):
    """Ordering used when browsing a snapshot."""

    SIZE = "size"  # Largest first
    NAME = "name"  # Base name, A to Z
    PATH = "path"  # Full path, A to Z


@dataclass(frozen=True)
class ChildEntry:
    """One immediate child of a directory, as reported by an enumerator."""

    name: str
    is_directory: bool
    size: int = 0


class FileRecord(BaseModel):
    """A single file discovered during a scan."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Absolute, normalized file path")
    size: int = Field(..., ge=0, description="File size in bytes")


class DirectoryTotal(BaseModel):
    """Cumulative size of everything below one directory."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Absolute directory path, no trailing separator")
    total_size: int = Field(..., ge=0, description="Sum of all file sizes below this directory")


class Snapshot(BaseModel):
    """Complete result of one scan: the unit of persistence."""

    model_config = ConfigDict(frozen=True)

    root_path: str = Field(..., description="Root that was scanned")
    scan_timestamp: datetime = Field(default_factory=datetime.now)
    files: tuple[FileRecord, ...] = Field(default=(), description="Files in discovery order")
    directories: tuple[DirectoryTotal, ...] = Field(
        default=(), description="Directory totals in accumulation order"
    )

    @property
    def total_size(self) -> int:
        """Total bytes across every file in the snapshot."""
        return sum(f.size for f in self.files)

    @property
    def file_count(self) -> int:
        return len(self.files)

    @property
    def directory_count(self) -> int:
        return len(self.directories)

    def sorted_files(self, mode: SortMode = SortMode.SIZE) -> list[FileRecord]:
        """Files ordered for the files tab."""
        if mode == SortMode.SIZE:
            return sorted(self.files, key=lambda f: f.size, reverse=True)
        if mode == SortMode.NAME:
            return sorted(self.files, key=lambda f: os.path.basename(f.path).lower())
        return sorted(self.files, key=lambda f: f.path)

    def sorted_directories(self, mode: SortMode = SortMode.SIZE) -> list[DirectoryTotal]:
        """Directory totals ordered for the directories tab."""
        if mode == SortMode.SIZE:
            return sorted(self.directories, key=lambda d: d.total_size, reverse=True)
        if mode == SortMode.NAME:
            return sorted(self.directories, key=lambda d: os.path.basename(d.path).lower())
        return sorted(self.directories, key=lambda d: d.path)

    def find_directory(self, path: str) -> DirectoryTotal | None:
        """Look up a directory total using the platform's path comparison."""
        wanted = os.path.normcase(os.path.normpath(path))
        for entry in self.directories:
            if os.path.normcase(entry.path) == wanted:
                return entry
        return None
