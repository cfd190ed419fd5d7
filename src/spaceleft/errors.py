"""Exception hierarchy for spaceleft."""


class SpaceLeftError(Exception):
    """Base error for the project."""


class TraversalError(SpaceLeftError):
    """The scan root could not be opened."""


class ScanCancelledError(TraversalError):
    """The walk was stopped by its cancel flag."""


class SubtreeAccessError(SpaceLeftError):
    """A single directory could not be listed.

    Raised by enumerators and always recovered by the walker: the directory
    simply contributes nothing to the scan.
    """

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot list {path}: {reason}")
        self.path = path
        self.reason = reason


class PersistenceError(SpaceLeftError):
    """Base error for snapshot files."""


class PersistenceWriteError(PersistenceError):
    pass


class PersistenceReadError(PersistenceError):
    """A snapshot file could not be decoded.

    ``section``, ``index`` and ``count`` locate the failing record when the
    failure happened inside the directory or file list.
    """

    def __init__(
        self,
        message: str,
        section: str | None = None,
        index: int | None = None,
        count: int | None = None,
    ):
        super().__init__(message)
        self.section = section
        self.index = index
        self.count = count
