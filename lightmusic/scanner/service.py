"""The scanner service: runs scans in the background and reports on them."""

from __future__ import annotations

import copy
import enum
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union

from lightmusic.scanner.audio import AudioFileParser
from lightmusic.scanner.maintenance import (
    CompactStep,
    OptimizeStep,
    RemoveOrphanedDbEntriesStep,
)
from lightmusic.scanner.model import Catalog, ScannerSettings
from lightmusic.scanner.stats import Events, ScanOptions, ScanStats, ScanStepStats
from lightmusic.scanner.steps import (
    CheckForDuplicatedFilesStep,
    CheckForRemovedFilesStep,
    ScanFilesStep,
    ScanStepBase,
    UpdateLibraryFieldsStep,
)

logger = logging.getLogger(__name__)

MEDIA_LIBRARY_PATH_KEY = "media-library-path"

_TRUE_WORDS = frozenset({"1", "true", "yes", "on"})
_FALSE_WORDS = frozenset({"0", "false", "no", "off"})

_STEPS: tuple[type[ScanStepBase], ...] = (
    ScanFilesStep,
    CheckForRemovedFilesStep,
    CheckForDuplicatedFilesStep,
    UpdateLibraryFieldsStep,
    RemoveOrphanedDbEntriesStep,
    OptimizeStep,
    CompactStep,
)


class ScannerState(enum.Enum):
    NOT_SCHEDULED = enum.auto()
    SCHEDULED = enum.auto()
    IN_PROGRESS = enum.auto()


@dataclass(frozen=True)
class ScannerStatus:
    """A snapshot of the scanner service's state."""

    current_state: ScannerState = ScannerState.NOT_SCHEDULED
    next_scheduled_scan: Optional[datetime] = None
    last_complete_scan_stats: Optional[ScanStats] = None
    current_scan_step_stats: Optional[ScanStepStats] = None


def _config_bool(config: Mapping[str, Any], key: str, default: bool) -> bool:
    value = config.get(key, default)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        raise ValueError(f"configuration key {key!r} is not a boolean: {value!r}")
    return bool(value)


def _config_strings(config: Mapping[str, Any], key: str) -> list[str]:
    value = config.get(key)
    if value is None:
        return []
    raw: Iterable[Any] = [value] if isinstance(value, str) else value
    return [text for text in (str(item).strip() for item in raw) if text]


def build_scanner_settings(
    options: Optional[ScanOptions] = None,
    config: Optional[Mapping[str, Any]] = None,
) -> ScannerSettings:
    """Combine scan options and configuration into the settings of one scan."""
    options = options if options is not None else ScanOptions()
    settings = ScannerSettings(
        enable_optimize=True,
        enable_compact=options.compact,
        prefer_album_artist_fallback=True,
    )

    if config is not None:
        settings.enable_optimize = _config_bool(
            config, "scanner.optimize-enabled", settings.enable_optimize
        )
        settings.enable_compact = settings.enable_compact or _config_bool(
            config, "scanner.compact-enabled", False
        )
        settings.prefer_album_artist_fallback = _config_bool(
            config, "scanner.metadata.prefer-album-artist-fallback", True
        )

        artist_delimiters = _config_strings(config, "scanner.metadata.artist-delimiters")
        if artist_delimiters:
            settings.artist_tag_delimiters = artist_delimiters
        default_delimiters = _config_strings(config, "scanner.metadata.default-delimiters")
        if default_delimiters:
            settings.default_tag_delimiters = default_delimiters
        not_split = _config_strings(config, "scanner.metadata.artists-to-not-split")
        if not_split:
            settings.artists_to_not_split = not_split

    if options.force_optimize:
        settings.enable_optimize = True
    if options.compact:
        settings.enable_compact = True
    return settings


class ScannerService:
    """Runs scans of the media library on a background thread.

    ``config`` is a mapping of configuration keys; ``media-library-path``
    names the library root to scan. ``parser`` reads audio files.
    """

    def __init__(
        self,
        catalog: Catalog,
        cache_path: Union[str, Path],
        config: Optional[Mapping[str, Any]] = None,
        parser: Optional[AudioFileParser] = None,
    ) -> None:
        self._catalog = catalog
        self._cache_path = Path(cache_path)
        self._config = config
        self._parser = parser

        self._lock = threading.Lock()
        self._state = ScannerState.NOT_SCHEDULED
        self._next_scheduled_scan: Optional[datetime] = None
        self._last_complete_scan_stats: Optional[ScanStats] = None
        self._current_scan_step_stats: Optional[ScanStepStats] = None
        self._events = Events()
        self._thread: Optional[threading.Thread] = None
        self._stop_requested = False

        logger.info("Scanner Service initialized, cache path: %s", self._cache_path)

    @property
    def cache_path(self) -> Path:
        return self._cache_path

    def request_reload(self) -> None:
        """Stop the running scan, if any, and drop any scheduled one."""
        with self._lock:
            self._stop_requested = True
            self._state = ScannerState.NOT_SCHEDULED
            self._next_scheduled_scan = None
        logger.info("Scanner reload requested")

    def request_immediate_scan(self, options: Optional[ScanOptions] = None) -> None:
        """Start a scan now, unless one is already in progress."""
        options = options if options is not None else ScanOptions()
        with self._lock:
            if self._state is ScannerState.IN_PROGRESS:
                logger.warning("Scan already in progress, ignoring request")
                return
            previous = self._thread

        if previous is not None:
            previous.join()

        with self._lock:
            if self._state is ScannerState.IN_PROGRESS:
                logger.warning("Scan already in progress, ignoring request")
                return
            self._state = ScannerState.IN_PROGRESS
            self._stop_requested = False
            self._thread = threading.Thread(
                target=self._run, args=(options,), name="scanner", daemon=True
            )
            self._thread.start()
        logger.info("Immediate scan requested")

    def status(self) -> ScannerStatus:
        with self._lock:
            return ScannerStatus(
                current_state=self._state,
                next_scheduled_scan=self._next_scheduled_scan,
                last_complete_scan_stats=copy.deepcopy(self._last_complete_scan_stats),
                current_scan_step_stats=copy.deepcopy(self._current_scan_step_stats),
            )

    def events(self) -> Events:
        return self._events

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the current scan thread; return True once no scan runs."""
        with self._lock:
            thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def close(self) -> None:
        """Ask the running scan to stop and wait for it."""
        with self._lock:
            self._stop_requested = True
            thread = self._thread
        if thread is not None:
            thread.join()

    def __enter__(self) -> "ScannerService":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _run(self, options: ScanOptions) -> None:
        try:
            self._perform_scan(options)
        except Exception as exc:
            logger.error("Scan thread exception: %s", exc)
            with self._lock:
                self._state = ScannerState.NOT_SCHEDULED

    def _aborted(self) -> bool:
        with self._lock:
            if not self._stop_requested:
                return False
            self._state = ScannerState.NOT_SCHEDULED
        self._events.scan_aborted.emit()
        return True

    def _media_library_path(self) -> Optional[Path]:
        if self._config is None:
            return None
        value = self._config.get(MEDIA_LIBRARY_PATH_KEY)
        if value is None or not str(value):
            return None
        return Path(value)

    def _perform_scan(self, options: ScanOptions) -> None:
        logger.info("Starting scan (fullScan=%s)", options.full_scan)
        self._events.scan_started.emit()

        stats = ScanStats(start_time=datetime.now())
        settings = build_scanner_settings(options, self._config)
        library_path = self._media_library_path()

        for step_class in _STEPS:
            if self._aborted():
                return
            step = step_class(self._catalog, settings)
            step.media_library_path = library_path
            step.parser = self._parser
            if not step.execute(stats):
                logger.error("Scan step %s failed", step.step.name)

        stats.stop_time = datetime.now()
        with self._lock:
            self._last_complete_scan_stats = copy.deepcopy(stats)
            self._current_scan_step_stats = None
            self._state = ScannerState.NOT_SCHEDULED

        self._events.scan_complete.emit(stats)
        logger.info("Scan completed")