"""Scanner data model: files to scan, settings and the catalog of scanned items."""

from __future__ import annotations

import copy
import enum
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterator, Optional

EXCLUDE_DIR_FILE_NAME = ".lmsignore"


def _default_delimiters() -> list[str]:
    return [";", ",", "/"]


@dataclass
class MediaLibraryInfo:
    """A media library root and its catalog id, if it has one yet."""

    root_path: Path
    library_id: Optional[int] = None

    def __post_init__(self) -> None:
        self.root_path = Path(self.root_path)


@dataclass
class FileToScan:
    file_path: Path
    media_library: MediaLibraryInfo
    last_write_time: Optional[datetime] = None
    file_size: int = 0

    def __post_init__(self) -> None:
        self.file_path = Path(self.file_path)


@dataclass
class ScannerSettings:
    """Run-time settings of a scan."""

    enable_optimize: bool = True
    enable_compact: bool = False
    prefer_album_artist_fallback: bool = True
    artist_tag_delimiters: list[str] = field(default_factory=_default_delimiters)
    default_tag_delimiters: list[str] = field(default_factory=_default_delimiters)
    artists_to_not_split: list[str] = field(default_factory=list)


class OperationResult(enum.Enum):
    ADDED = enum.auto()
    REMOVED = enum.auto()
    UPDATED = enum.auto()
    SKIPPED = enum.auto()


@dataclass
class TrackRecord:
    path: Path
    id: int = 0
    name: str = ""
    file_size: int = 0
    last_write_time: Optional[datetime] = None
    directory_id: Optional[int] = None
    track_number: Optional[int] = None
    disc_number: Optional[int] = None
    release: Optional[str] = None
    duration: Optional[timedelta] = None
    artists: list[str] = field(default_factory=list)
    release_artists: list[str] = field(default_factory=list)
    image: Optional[bytes] = None
    image_mime_type: Optional[str] = None

    def __post_init__(self) -> None:
        self.path = Path(self.path)


@dataclass
class DirectoryRecord:
    id: int
    path: Path
    media_library_id: Optional[int] = None
    parent_id: Optional[int] = None

    def __post_init__(self) -> None:
        self.path = Path(self.path)


@dataclass
class MediaLibraryRecord:
    id: int
    name: str
    path: Path

    def __post_init__(self) -> None:
        self.path = Path(self.path)


class Catalog(ABC):
    """Storage of the tracks, directories and media libraries found by scans."""

    @abstractmethod
    def find_track_by_path(self, path: Path) -> Optional[TrackRecord]: ...

    @abstractmethod
    def iter_tracks(self) -> Iterator[TrackRecord]: ...

    @abstractmethod
    def iter_directories(self) -> Iterator[DirectoryRecord]: ...

    @abstractmethod
    def find_media_library(self, path: Path) -> Optional[MediaLibraryRecord]: ...

    @abstractmethod
    def get_or_create_media_library(self, name: str, path: Path) -> MediaLibraryRecord: ...

    @abstractmethod
    def get_or_create_directory(
        self, path: Path, library_id: Optional[int], parent_id: Optional[int]
    ) -> DirectoryRecord: ...

    @abstractmethod
    def find_directory(self, directory_id: int) -> Optional[DirectoryRecord]: ...

    @abstractmethod
    def set_directory_media_library(self, directory_id: int, library_id: int) -> None: ...

    @abstractmethod
    def save_track(self, track: TrackRecord) -> TrackRecord: ...

    @abstractmethod
    def remove_track(self, track_id: int) -> None: ...

    @abstractmethod
    def remove_directory(self, directory_id: int) -> None: ...

    @abstractmethod
    def execute(self, statement: str) -> None: ...


class MemoryCatalog(Catalog):
    """A thread-safe catalog held in memory. Records handed out are copies."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._next_id = 1
        self._tracks: dict[int, TrackRecord] = {}
        self._track_ids_by_path: dict[Path, int] = {}
        self._directories: dict[int, DirectoryRecord] = {}
        self._libraries: dict[int, MediaLibraryRecord] = {}
        self.statements: list[str] = []

    def _new_id(self) -> int:
        new_id = self._next_id
        self._next_id += 1
        return new_id

    def find_track_by_path(self, path: Path) -> Optional[TrackRecord]:
        with self._lock:
            track_id = self._track_ids_by_path.get(Path(path))
            if track_id is None:
                return None
            return copy.deepcopy(self._tracks[track_id])

    def iter_tracks(self) -> Iterator[TrackRecord]:
        with self._lock:
            snapshot = copy.deepcopy(list(self._tracks.values()))
        return iter(snapshot)

    def iter_directories(self) -> Iterator[DirectoryRecord]:
        with self._lock:
            snapshot = copy.deepcopy(list(self._directories.values()))
        return iter(snapshot)

    def find_media_library(self, path: Path) -> Optional[MediaLibraryRecord]:
        path = Path(path)
        with self._lock:
            for library in self._libraries.values():
                if library.path == path:
                    return copy.copy(library)
        return None

    def get_or_create_media_library(self, name: str, path: Path) -> MediaLibraryRecord:
        with self._lock:
            existing = self.find_media_library(path)
            if existing is not None:
                return existing
            library = MediaLibraryRecord(self._new_id(), name, Path(path))
            self._libraries[library.id] = library
            return copy.copy(library)

    def get_or_create_directory(
        self, path: Path, library_id: Optional[int], parent_id: Optional[int]
    ) -> DirectoryRecord:
        path = Path(path)
        with self._lock:
            for directory in self._directories.values():
                if directory.path == path:
                    return copy.copy(directory)
            directory = DirectoryRecord(self._new_id(), path, library_id, parent_id)
            self._directories[directory.id] = directory
            return copy.copy(directory)

    def find_directory(self, directory_id: int) -> Optional[DirectoryRecord]:
        with self._lock:
            directory = self._directories.get(directory_id)
            return copy.copy(directory) if directory is not None else None

    def set_directory_media_library(self, directory_id: int, library_id: int) -> None:
        with self._lock:
            try:
                self._directories[directory_id].media_library_id = library_id
            except KeyError:
                raise KeyError(f"no directory with id {directory_id}") from None

    def save_track(self, track: TrackRecord) -> TrackRecord:
        """Insert the track, or replace the stored one with the same id."""
        with self._lock:
            owner = self._track_ids_by_path.get(track.path)
            if owner is not None and owner != track.id:
                raise ValueError(f"another track already has path {track.path}")
            if track.id == 0:
                stored = copy.deepcopy(track)
                stored.id = self._new_id()
            elif track.id in self._tracks:
                stored = copy.deepcopy(track)
                old_path = self._tracks[track.id].path
                self._track_ids_by_path.pop(old_path, None)
            else:
                raise KeyError(f"no track with id {track.id}")
            self._tracks[stored.id] = stored
            self._track_ids_by_path[stored.path] = stored.id
            return copy.deepcopy(stored)

    def remove_track(self, track_id: int) -> None:
        with self._lock:
            try:
                track = self._tracks.pop(track_id)
            except KeyError:
                raise KeyError(f"no track with id {track_id}") from None
            self._track_ids_by_path.pop(track.path, None)

    def remove_directory(self, directory_id: int) -> None:
        with self._lock:
            try:
                del self._directories[directory_id]
            except KeyError:
                raise KeyError(f"no directory with id {directory_id}") from None

    def execute(self, statement: str) -> None:
        """Record a maintenance statement; there is nothing to run in memory."""
        with self._lock:
            self.statements.append(statement)