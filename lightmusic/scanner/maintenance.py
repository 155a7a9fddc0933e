"""Scan steps that clean up and maintain the catalog after files were scanned."""

from __future__ import annotations

import logging
from pathlib import Path

from lightmusic.scanner.steps import ScanStepBase
from lightmusic.scanner.stats import ScanStats, ScanStep

logger = logging.getLogger(__name__)


def _is_related_path(root: Path, candidate: Path) -> bool:
    """Tell whether ``candidate`` is ``root``, lies below it, or is one of its ancestors."""
    root_text = root.as_posix()
    candidate_text = candidate.as_posix()
    if not root_text or not candidate_text:
        return False
    if not root_text.endswith("/"):
        root_text += "/"
    if len(candidate_text) < len(root_text):
        return candidate_text == root_text[: len(candidate_text)]
    return candidate_text == root_text[:-1] or candidate_text.startswith(root_text)


class RemoveOrphanedDbEntriesStep(ScanStepBase):
    """Removes directories and tracks that no longer match anything on disk."""

    step = ScanStep.REMOVE_ORPHANED_DB_ENTRIES

    def execute(self, stats: ScanStats) -> bool:
        logger.info("Starting remove orphaned DB entries step")
        try:
            self._remove_orphans(stats)
        except Exception as exc:
            logger.error("Remove orphaned DB entries step failed: %s", exc)
            return False
        return True

    def _remove_orphans(self, stats: ScanStats) -> None:
        root = self._library_root()
        if root is None:
            logger.warning("Media library path not configured, skipping orphan cleanup step")
            return

        directories = list(self.catalog.iter_directories())
        tracks = list(self.catalog.iter_tracks())

        removed_directories = 0
        for directory in directories:
            if not directory.path.exists() or not _is_related_path(root, directory.path):
                self.catalog.remove_directory(directory.id)
                removed_directories += 1

        removed_tracks = 0
        for track in tracks:
            orphaned = (
                not track.path.exists()
                or not track.directory_id
                or self.catalog.find_directory(track.directory_id) is None
            )
            if orphaned:
                self.catalog.remove_track(track.id)
                removed_tracks += 1

        stats.deletions += removed_directories + removed_tracks
        logger.info(
            "Remove orphaned entries step completed: %d directories removed, %d tracks removed",
            removed_directories,
            removed_tracks,
        )


class OptimizeStep(ScanStepBase):
    """Lets the database refresh its statistics and optimise itself."""

    step = ScanStep.OPTIMIZE

    def execute(self, stats: ScanStats) -> bool:
        if not self.settings.enable_optimize:
            logger.info("Optimize step disabled, skipping")
            return True

        logger.info("Starting optimize database step")
        try:
            self.catalog.execute("PRAGMA optimize;")
            self.catalog.execute("ANALYZE;")
        except Exception as exc:
            logger.error("Optimize database step failed: %s", exc)
            return False
        logger.info("Optimize database step completed")
        return True


class CompactStep(ScanStepBase):
    """Compacts the database to reclaim unused space."""

    step = ScanStep.COMPACT

    def execute(self, stats: ScanStats) -> bool:
        if not self.settings.enable_compact:
            logger.info("Compact step disabled, skipping")
            return True

        logger.info("Starting compact database step")
        try:
            self.catalog.execute("VACUUM;")
        except Exception as exc:
            logger.error("Compact database step failed: %s", exc)
            return False
        logger.info("Compact database step completed")
        return True