"""Scanning of audio files into the catalog."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Callable, Optional

from lightmusic.scanner.metadata import (
    MetadataParameters,
    TagReader,
    TrackMetadata,
    TrackMetadataParser,
)
from lightmusic.scanner.model import (
    Catalog,
    DirectoryRecord,
    FileToScan,
    OperationResult,
    ScannerSettings,
    TrackRecord,
)
from lightmusic.scanner.stats import FileScanError, ScanError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddedImage:
    """An image stored inside an audio file."""

    data: bytes
    mime_type: str = "application/octet-stream"


@dataclass
class AudioFileInfo:
    """What an audio file parser found in a file."""

    tag_reader: TagReader
    duration_ms: int = 0
    image: Optional[EmbeddedImage] = None


AudioFileParser = Callable[[Path], Optional[AudioFileInfo]]


def _metadata_parameters(settings: ScannerSettings) -> MetadataParameters:
    return MetadataParameters(
        artist_tag_delimiters=list(settings.artist_tag_delimiters),
        default_tag_delimiters=list(settings.default_tag_delimiters),
        artists_to_not_split=list(settings.artists_to_not_split),
    )


class AudioFileScanOperation:
    """Scans one audio file, then records the result in the catalog.

    ``scan`` may run on any thread; ``process_result`` is meant to be called
    afterwards, one operation at a time.
    """

    name = "ScanAudioFile"

    def __init__(
        self,
        file: FileToScan,
        catalog: Catalog,
        settings: ScannerSettings,
        parser: Optional[AudioFileParser] = None,
    ) -> None:
        self._file = file
        self._catalog = catalog
        self._settings = settings
        self._parser = parser
        self._errors: list[ScanError] = []
        self._scan_success = False
        self._audio_info: Optional[AudioFileInfo] = None

    @property
    def file_path(self) -> Path:
        return self._file.file_path

    @property
    def errors(self) -> list[ScanError]:
        """Errors gathered while scanning and processing."""
        return list(self._errors)

    def _add_error(self, message: str) -> None:
        self._errors.append(FileScanError(self.file_path, message))

    def scan(self) -> None:
        """Check the file and read its audio information."""
        path = self.file_path
        try:
            if not path.exists():
                self._add_error("File does not exist")
                self._scan_success = False
                return
            if self._parser is not None:
                self._audio_info = self._parser(path)
            self._scan_success = True
        except OSError as exc:
            self._add_error(f"Scan error: {exc}")
            self._scan_success = False
        except Exception as exc:  # a parser reports bad files by raising
            self._add_error(f"Audio file parsing error: {exc}")
            self._scan_success = False

    def process_result(self) -> OperationResult:
        """Store the scanned file in the catalog and tell what changed."""
        if not self._scan_success:
            return OperationResult.SKIPPED
        try:
            return self._store()
        except Exception as exc:
            self._add_error(f"Database error: {exc}")
            return OperationResult.SKIPPED

    def _directory_for_file(self, library_id: int) -> DirectoryRecord:
        root = self._file.media_library.root_path
        to_create: list[Path] = []
        current = self.file_path.parent
        while current != root and current.parent != current:
            to_create.append(current)
            current = current.parent

        directory: Optional[DirectoryRecord] = None
        parent_id: Optional[int] = None
        for path in reversed(to_create):
            directory = self._catalog.get_or_create_directory(path, library_id, parent_id)
            parent_id = directory.id

        if directory is None:
            directory = self._catalog.get_or_create_directory(root, library_id, None)
        return directory

    def _metadata(self) -> TrackMetadata:
        if self._audio_info is None:
            return TrackMetadata()
        parser = TrackMetadataParser(_metadata_parameters(self._settings))
        metadata = parser.parse_track_metadata(self._audio_info.tag_reader)
        if self._settings.prefer_album_artist_fallback:
            if metadata.artist is None and metadata.album_artist is not None:
                metadata.artist = metadata.album_artist
            if not metadata.artists and metadata.album_artists:
                metadata.artists = list(metadata.album_artists)
        return metadata

    def _store(self) -> OperationResult:
        catalog = self._catalog
        root = self._file.media_library.root_path
        library = catalog.get_or_create_media_library(root.name, root)
        directory = self._directory_for_file(library.id)
        metadata = self._metadata()

        release = metadata.album if metadata.album else None
        file_name = self.file_path.name

        existing = catalog.find_track_by_path(self.file_path)
        if existing is not None:
            track = existing
            result = OperationResult.UPDATED
            if track.name != file_name:
                track.name = file_name
        else:
            track = TrackRecord(self.file_path)
            result = OperationResult.ADDED
            track.name = file_name
            if self._audio_info is not None and self._audio_info.duration_ms > 0:
                track.duration = timedelta(milliseconds=self._audio_info.duration_ms)

        track.file_size = self._file.file_size
        track.last_write_time = self._file.last_write_time
        track.directory_id = directory.id
        if metadata.title:
            track.name = metadata.title
        if metadata.track_number is not None:
            track.track_number = metadata.track_number
        if release is not None:
            track.release = release
            if metadata.disc_number is not None:
                track.disc_number = metadata.disc_number

        track.artists = self._linked_artists(metadata.artists, metadata.artist)
        track.release_artists = self._linked_artists(metadata.album_artists, metadata.album_artist)

        image = self._audio_info.image if self._audio_info is not None else None
        if image is not None and image.data:
            track.image = image.data
            track.image_mime_type = image.mime_type
        else:
            track.image = None
            track.image_mime_type = None

        catalog.save_track(track)
        return result

    @staticmethod
    def _linked_artists(names: list[str], single: Optional[str]) -> list[str]:
        if names:
            return [name for name in names if name]
        if single:
            return [single]
        return []


class AudioFileScanner:
    """Decides which audio files need scanning and creates their operations."""

    name = "Audio scanner"
    supported_files: tuple[Path, ...] = ()
    supported_extensions: tuple[str, ...] = (
        ".mp3",
        ".flac",
        ".ogg",
        ".m4a",
        ".aac",
        ".wav",
        ".wma",
        ".opus",
        ".mpc",
        ".ape",
    )

    def __init__(
        self,
        catalog: Catalog,
        settings: ScannerSettings,
        parser: Optional[AudioFileParser] = None,
    ) -> None:
        self._catalog = catalog
        self._settings = settings
        self._parser = parser

    def needs_scan(self, file: FileToScan) -> bool:
        """Tell whether the file is new or changed since it was last stored."""
        try:
            existing = self._catalog.find_track_by_path(file.file_path)
        except Exception as exc:
            logger.warning("Failed to determine if file needs scan (%s): %s", file.file_path, exc)
            return True

        if existing is None:
            return True
        if existing.file_size != file.file_size:
            return True
        if existing.last_write_time is None or file.last_write_time is None:
            return True
        return existing.last_write_time != file.last_write_time

    def create_scan_operation(self, file: FileToScan) -> AudioFileScanOperation:
        return AudioFileScanOperation(file, self._catalog, self._settings, self._parser)