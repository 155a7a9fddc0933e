"""Scan statistics, errors, options and event signals."""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, ClassVar, Iterable, Optional


@dataclass(frozen=True)
class ScanError:
    """An error met while scanning, tied to a path."""

    path: Path
    message: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


@dataclass(frozen=True)
class FileScanError(ScanError):
    """An error met while scanning a single file."""


@dataclass(frozen=True)
class AudioFileScanError(FileScanError):
    """An error met while scanning an audio file."""


class DuplicateReason(enum.Enum):
    SAME_HASH = enum.auto()
    SAME_TRACK_MBID = enum.auto()


@dataclass(frozen=True)
class ScanDuplicate:
    track_id: int
    reason: DuplicateReason


class ScanStep(enum.Enum):
    SCAN_FILES = enum.auto()
    CHECK_FOR_REMOVED_FILES = enum.auto()
    CHECK_FOR_DUPLICATED_FILES = enum.auto()
    UPDATE_LIBRARY_FIELDS = enum.auto()
    REMOVE_ORPHANED_DB_ENTRIES = enum.auto()
    OPTIMIZE = enum.auto()
    COMPACT = enum.auto()


@dataclass
class ScanStepStats:
    """Progress of the scan step currently running."""

    current_step: ScanStep
    start_time: Optional[datetime] = None
    step_count: int = 0
    step_index: int = 0
    total_elems: int = 0
    processed_elems: int = 0

    def progress(self) -> int:
        """Percentage of processed elements, 0 when nothing is to be done."""
        if self.total_elems == 0:
            return 0
        return (self.processed_elems * 100) // self.total_elems


@dataclass
class ScanStats:
    """Counters gathered over a whole scan."""

    MAX_STORED_ERROR_COUNT: ClassVar[int] = 5000

    start_time: Optional[datetime] = None
    stop_time: Optional[datetime] = None
    total_file_count: int = 0
    skips: int = 0
    scans: int = 0
    additions: int = 0
    deletions: int = 0
    updates: int = 0
    failures: int = 0
    errors: list[ScanError] = field(default_factory=list)
    errors_count: int = 0
    duplicates: list[ScanDuplicate] = field(default_factory=list)

    def changes_count(self) -> int:
        """Number of additions, deletions and updates."""
        return self.additions + self.deletions + self.updates

    def _store(self, error: ScanError) -> None:
        if len(self.errors) < self.MAX_STORED_ERROR_COUNT:
            self.errors.append(error)

    def add_error(self, error: ScanError) -> None:
        """Record one failed file with its error."""
        self._store(error)
        self.errors_count += 1
        self.failures += 1

    def add_errors(self, errors: Iterable[ScanError]) -> None:
        """Record the errors of one file; the file counts as a failure if any."""
        errors = list(errors)
        if not errors:
            return
        self.errors_count += len(errors)
        for error in errors:
            self._store(error)
        self.failures += 1


@dataclass(frozen=True)
class ScanOptions:
    full_scan: bool = False
    force_optimize: bool = False
    compact: bool = False


class Signal:
    """A list of callbacks called, in connection order, on each emit."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._callbacks: list[Callable[..., Any]] = []

    def connect(self, callback: Callable[..., Any]) -> Callable[[], None]:
        """Connect a callback; the returned function disconnects it."""
        with self._lock:
            self._callbacks.append(callback)

        def disconnect() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return disconnect

    def emit(self, *args: Any) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback(*args)


@dataclass
class Events:
    """Signals raised by the scanner service."""

    scan_aborted: Signal = field(default_factory=Signal)
    scan_started: Signal = field(default_factory=Signal)
    scan_complete: Signal = field(default_factory=Signal)
    scan_in_progress: Signal = field(default_factory=Signal)
    scan_scheduled: Signal = field(default_factory=Signal)