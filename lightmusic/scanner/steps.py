"""Scan steps that discover files and keep the catalog consistent with the disk."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import ClassVar, Iterable, Optional

from lightmusic.scanner.audio import AudioFileParser, AudioFileScanner
from lightmusic.scanner.files import discover_files
from lightmusic.scanner.model import (
    EXCLUDE_DIR_FILE_NAME,
    Catalog,
    FileToScan,
    MediaLibraryInfo,
    OperationResult,
    ScannerSettings,
    TrackRecord,
)
from lightmusic.scanner.stats import (
    DuplicateReason,
    FileScanError,
    ScanDuplicate,
    ScanStats,
    ScanStep,
)

logger = logging.getLogger(__name__)


def _is_path_inside(root: Path, candidate: Path) -> bool:
    root_text = root.as_posix()
    candidate_text = candidate.as_posix()
    if not root_text or not candidate_text:
        return False
    if not root_text.endswith("/"):
        root_text += "/"
    return candidate_text == root_text[:-1] or candidate_text.startswith(root_text)


class ScanStepBase(ABC):
    """One step of a scan, run against a catalog with given settings.

    ``media_library_path`` is the root of the media library the step works
    on; a step with no root configured does nothing and succeeds. ``parser``
    reads audio files for the steps that scan them.
    """

    step: ClassVar[ScanStep]
    media_library_path: Optional[Path] = None
    parser: Optional[AudioFileParser] = None

    def __init__(self, catalog: Catalog, settings: ScannerSettings) -> None:
        self.catalog = catalog
        self.settings = settings

    def _library_root(self) -> Optional[Path]:
        if self.media_library_path is None or not str(self.media_library_path):
            return None
        return Path(self.media_library_path)

    @abstractmethod
    def execute(self, stats: ScanStats) -> bool:
        """Run the step, updating ``stats``; return False if the step failed."""


class ScanFilesStep(ScanStepBase):
    """Discovers audio files in the media library and scans the changed ones."""

    step = ScanStep.SCAN_FILES

    def execute(self, stats: ScanStats) -> bool:
        logger.info("Starting file scan step")
        try:
            self._scan(stats)
        except Exception as exc:
            logger.error("File scan step failed: %s", exc)
            return False
        return True

    def _scan(self, stats: ScanStats) -> None:
        root = self._library_root()
        if root is None:
            logger.warning("Media library path not configured (key: media-library-path)")
            return
        if not root.exists():
            logger.warning("Media library path does not exist: %s", root)
            return

        library = self.catalog.find_media_library(root)
        library_info = MediaLibraryInfo(root, library.id if library is not None else None)

        scanner = AudioFileScanner(self.catalog, self.settings, self.parser)
        extensions = [ext.lower() for ext in scanner.supported_extensions]

        logger.info("Discovering files in: %s", root)
        files = discover_files(root, extensions, EXCLUDE_DIR_FILE_NAME)
        stats.total_file_count = len(files)
        logger.info("Found %d candidate audio files", len(files))

        for file_path in files:
            self._scan_file(scanner, file_path, library_info, stats)

        logger.info(
            "File scan step completed: %d scanned, %d added, %d updated, %d failures",
            stats.scans,
            stats.additions,
            stats.updates,
            stats.failures,
        )

    @staticmethod
    def _scan_file(
        scanner: AudioFileScanner,
        file_path: Path,
        library_info: MediaLibraryInfo,
        stats: ScanStats,
    ) -> None:
        try:
            file_stat = file_path.stat()
        except OSError as exc:
            stats.add_error(FileScanError(file_path, f"Unable to read file size: {exc.strerror or exc}"))
            return

        try:
            last_write_time = datetime.fromtimestamp(int(file_stat.st_mtime))
        except (OverflowError, OSError, ValueError):
            last_write_time = None

        file = FileToScan(
            file_path=file_path,
            media_library=library_info,
            last_write_time=last_write_time,
            file_size=file_stat.st_size,
        )

        if not scanner.needs_scan(file):
            stats.skips += 1
            return

        operation = scanner.create_scan_operation(file)
        logger.debug("Scanning file: %s", file_path)
        operation.scan()
        result = operation.process_result()
        stats.scans += 1

        if result is OperationResult.ADDED:
            stats.additions += 1
        elif result is OperationResult.UPDATED:
            stats.updates += 1
        elif result is OperationResult.REMOVED:
            stats.deletions += 1
        else:
            stats.skips += 1

        stats.add_errors(operation.errors)


class CheckForRemovedFilesStep(ScanStepBase):
    """Removes the tracks whose files no longer exist."""

    step = ScanStep.CHECK_FOR_REMOVED_FILES

    def execute(self, stats: ScanStats) -> bool:
        logger.info("Starting check for removed files step")
        try:
            self._check(stats)
        except Exception as exc:
            logger.error("Check for removed files step failed: %s", exc)
            return False
        return True

    def _check(self, stats: ScanStats) -> None:
        root = self._library_root()
        if root is None:
            logger.warning("Media library path not configured, skipping removed files check")
            return
        if self.catalog.find_media_library(root) is None:
            logger.warning("Media library not found, skipping removed files check")
            return

        tracks = list(self.catalog.iter_tracks())
        logger.info("Checking %d tracks for removed files", len(tracks))

        removed = 0
        for track in tracks:
            if not track.path.exists():
                logger.debug("Removing track (file not found): %s", track.path)
                self.catalog.remove_track(track.id)
                removed += 1
                stats.deletions += 1

        logger.info("Check for removed files completed: %d tracks removed", removed)


def _record_duplicates(
    groups: Iterable[list[TrackRecord]], reason: DuplicateReason, stats: ScanStats
) -> None:
    for candidates in groups:
        if len(candidates) < 2:
            continue
        stats.duplicates.extend(ScanDuplicate(track.id, reason) for track in candidates)


class CheckForDuplicatedFilesStep(ScanStepBase):
    """Reports tracks sharing a path, and tracks sharing a file size."""

    step = ScanStep.CHECK_FOR_DUPLICATED_FILES

    def execute(self, stats: ScanStats) -> bool:
        logger.info("Starting duplicate files check")
        try:
            tracks = list(self.catalog.iter_tracks())
            logger.info("Loaded %d tracks for duplicate analysis", len(tracks))

            by_path: dict[str, list[TrackRecord]] = defaultdict(list)
            by_size: dict[int, list[TrackRecord]] = defaultdict(list)
            for track in tracks:
                by_path[str(track.path)].append(track)
                by_size[track.file_size].append(track)

            initial = len(stats.duplicates)
            _record_duplicates(by_path.values(), DuplicateReason.SAME_HASH, stats)
            _record_duplicates(by_size.values(), DuplicateReason.SAME_TRACK_MBID, stats)
            logger.info(
                "Duplicate files check completed: %d duplicates detected",
                len(stats.duplicates) - initial,
            )
        except Exception as exc:
            logger.error("Duplicate files check failed: %s", exc)
            return False
        return True


class UpdateLibraryFieldsStep(ScanStepBase):
    """Attaches every directory below the library root to that media library."""

    step = ScanStep.UPDATE_LIBRARY_FIELDS

    def execute(self, stats: ScanStats) -> bool:
        logger.info("Starting update library fields step")
        try:
            self._update(stats)
        except Exception as exc:
            logger.error("Update library fields step failed: %s", exc)
            return False
        return True

    def _update(self, stats: ScanStats) -> None:
        root = self._library_root()
        if root is None:
            logger.warning("Media library path not configured, skipping update library fields step")
            return

        library = self.catalog.find_media_library(root)
        if library is None:
            library = self.catalog.get_or_create_media_library(root.name, root)

        updated = 0
        for directory in list(self.catalog.iter_directories()):
            if not _is_path_inside(root, directory.path):
                continue
            if directory.media_library_id == library.id:
                continue
            self.catalog.set_directory_media_library(directory.id, library.id)
            updated += 1

        stats.updates += updated
        logger.info("Update library fields step completed: %d directories updated", updated)