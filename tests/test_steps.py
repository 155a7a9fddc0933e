import os
from pathlib import Path

import pytest

from lightmusic.scanner.audio import AudioFileInfo
from lightmusic.scanner.metadata import DictTagReader, TagType
from lightmusic.scanner.model import Catalog, MemoryCatalog, ScannerSettings, TrackRecord
from lightmusic.scanner.stats import DuplicateReason, ScanStats, ScanStep
from lightmusic.scanner.steps import (
    CheckForDuplicatedFilesStep,
    CheckForRemovedFilesStep,
    ScanFilesStep,
    ScanStepBase,
    UpdateLibraryFieldsStep,
)


class BrokenCatalog(Catalog):
    def _fail(self, *args):
        raise RuntimeError("catalog unavailable")

    find_track_by_path = _fail
    iter_tracks = _fail
    iter_directories = _fail
    find_media_library = _fail
    get_or_create_media_library = _fail
    get_or_create_directory = _fail
    find_directory = _fail
    set_directory_media_library = _fail
    save_track = _fail
    remove_track = _fail
    remove_directory = _fail
    execute = _fail


def make_step(cls, catalog, root=None, parser=None):
    step = cls(catalog, ScannerSettings())
    step.media_library_path = root
    step.parser = parser
    return step


@pytest.fixture
def library(tmp_path):
    root = tmp_path / "music"
    root.mkdir()
    (root / "a.mp3").write_bytes(b"abc")
    (root / "notes.txt").write_text("x")
    hidden = root / "hidden"
    hidden.mkdir()
    (hidden / ".lmsignore").write_text("")
    (hidden / "b.mp3").write_bytes(b"b")
    sub = root / "sub"
    sub.mkdir()
    (sub / "c.FLAC").write_bytes(b"cc")
    return root


def test_base_is_abstract():
    with pytest.raises(TypeError):
        ScanStepBase(MemoryCatalog(), ScannerSettings())


def test_steps_name_their_step():
    catalog = MemoryCatalog()
    assert make_step(ScanFilesStep, catalog).step is ScanStep.SCAN_FILES
    assert make_step(CheckForRemovedFilesStep, catalog).step is ScanStep.CHECK_FOR_REMOVED_FILES
    assert make_step(CheckForDuplicatedFilesStep, catalog).step is ScanStep.CHECK_FOR_DUPLICATED_FILES
    assert make_step(UpdateLibraryFieldsStep, catalog).step is ScanStep.UPDATE_LIBRARY_FIELDS


def test_scan_files_without_root_does_nothing():
    stats = ScanStats()
    assert make_step(ScanFilesStep, MemoryCatalog()).execute(stats) is True
    assert stats.total_file_count == 0
    assert stats.scans == 0


def test_scan_files_with_missing_root_succeeds(tmp_path):
    catalog = MemoryCatalog()
    stats = ScanStats()
    assert make_step(ScanFilesStep, catalog, tmp_path / "missing").execute(stats) is True
    assert list(catalog.iter_tracks()) == []


def test_scan_files_adds_new_tracks(library):
    catalog = MemoryCatalog()
    stats = ScanStats()
    assert make_step(ScanFilesStep, catalog, library).execute(stats) is True
    assert stats.total_file_count == 2
    assert stats.scans == 2
    assert stats.additions == 2
    assert stats.failures == 0
    paths = {track.path for track in catalog.iter_tracks()}
    assert paths == {library / "a.mp3", library / "sub" / "c.FLAC"}
    stored = catalog.find_track_by_path(library / "a.mp3")
    assert stored.file_size == 3
    assert stored.name == "a.mp3"


def test_second_scan_skips_unchanged_files(library):
    catalog = MemoryCatalog()
    make_step(ScanFilesStep, catalog, library).execute(ScanStats())
    stats = ScanStats()
    assert make_step(ScanFilesStep, catalog, library).execute(stats) is True
    assert stats.skips == 2
    assert stats.scans == 0
    assert stats.changes_count() == 0


def test_changed_file_is_updated(library):
    catalog = MemoryCatalog()
    make_step(ScanFilesStep, catalog, library).execute(ScanStats())
    target = library / "a.mp3"
    target.write_bytes(b"abcdef")
    stats = ScanStats()
    make_step(ScanFilesStep, catalog, library).execute(stats)
    assert stats.updates == 1
    assert stats.skips == 1
    assert catalog.find_track_by_path(target).file_size == 6


def test_parser_metadata_is_stored(library):
    def parser(path):
        return AudioFileInfo(DictTagReader({TagType.TITLE: "Song " + path.stem}))

    catalog = MemoryCatalog()
    make_step(ScanFilesStep, catalog, library, parser).execute(ScanStats())
    assert catalog.find_track_by_path(library / "a.mp3").name == "Song a"


def test_parser_failure_counts_as_failure(library):
    def parser(path):
        raise ValueError("bad file")

    catalog = MemoryCatalog()
    stats = ScanStats()
    assert make_step(ScanFilesStep, catalog, library, parser).execute(stats) is True
    assert stats.failures == 2
    assert stats.errors_count == 2
    assert stats.skips == 2
    assert stats.additions == 0
    assert all("bad file" in error.message for error in stats.errors)


def test_scan_files_reports_catalog_failure(library):
    step = make_step(ScanFilesStep, BrokenCatalog(), library)
    assert step.execute(ScanStats()) is False


def test_removed_files_are_deleted(tmp_path):
    catalog = MemoryCatalog()
    catalog.get_or_create_media_library(tmp_path.name, tmp_path)
    present = tmp_path / "here.mp3"
    present.write_bytes(b"x")
    catalog.save_track(TrackRecord(present))
    catalog.save_track(TrackRecord(tmp_path / "gone.mp3"))
    stats = ScanStats()
    assert make_step(CheckForRemovedFilesStep, catalog, tmp_path).execute(stats) is True
    assert stats.deletions == 1
    assert [track.path for track in catalog.iter_tracks()] == [present]


def test_removed_files_needs_known_library(tmp_path):
    catalog = MemoryCatalog()
    catalog.save_track(TrackRecord(tmp_path / "gone.mp3"))
    stats = ScanStats()
    assert make_step(CheckForRemovedFilesStep, catalog, tmp_path).execute(stats) is True
    assert stats.deletions == 0
    assert len(list(catalog.iter_tracks())) == 1


def test_removed_files_reports_catalog_failure(tmp_path):
    assert make_step(CheckForRemovedFilesStep, BrokenCatalog(), tmp_path).execute(ScanStats()) is False


def test_duplicates_by_size(tmp_path):
    catalog = MemoryCatalog()
    first = catalog.save_track(TrackRecord(tmp_path / "a.mp3", file_size=10))
    second = catalog.save_track(TrackRecord(tmp_path / "b.mp3", file_size=10))
    catalog.save_track(TrackRecord(tmp_path / "c.mp3", file_size=20))
    stats = ScanStats()
    assert make_step(CheckForDuplicatedFilesStep, catalog).execute(stats) is True
    assert {dup.track_id for dup in stats.duplicates} == {first.id, second.id}
    assert all(dup.reason is DuplicateReason.SAME_TRACK_MBID for dup in stats.duplicates)


def test_no_duplicates_for_distinct_tracks(tmp_path):
    catalog = MemoryCatalog()
    catalog.save_track(TrackRecord(tmp_path / "a.mp3", file_size=1))
    catalog.save_track(TrackRecord(tmp_path / "b.mp3", file_size=2))
    stats = ScanStats()
    make_step(CheckForDuplicatedFilesStep, catalog).execute(stats)
    assert stats.duplicates == []


def test_duplicates_reports_catalog_failure():
    assert make_step(CheckForDuplicatedFilesStep, BrokenCatalog()).execute(ScanStats()) is False


def test_update_library_fields_attaches_inner_directories(tmp_path):
    root = tmp_path / "music"
    catalog = MemoryCatalog()
    inner = catalog.get_or_create_directory(root / "album", None, None)
    top = catalog.get_or_create_directory(root, None, None)
    sibling = catalog.get_or_create_directory(tmp_path / "music2", None, None)
    stats = ScanStats()
    assert make_step(UpdateLibraryFieldsStep, catalog, root).execute(stats) is True
    library = catalog.find_media_library(root)
    assert library.name == root.name
    assert catalog.find_directory(inner.id).media_library_id == library.id
    assert catalog.find_directory(top.id).media_library_id == library.id
    assert catalog.find_directory(sibling.id).media_library_id is None
    assert stats.updates == 2


def test_update_library_fields_is_idempotent(tmp_path):
    root = tmp_path / "music"
    catalog = MemoryCatalog()
    catalog.get_or_create_directory(root / "album", None, None)
    make_step(UpdateLibraryFieldsStep, catalog, root).execute(ScanStats())
    stats = ScanStats()
    make_step(UpdateLibraryFieldsStep, catalog, root).execute(stats)
    assert stats.updates == 0


def test_update_library_fields_without_root(tmp_path):
    catalog = MemoryCatalog()
    stats = ScanStats()
    assert make_step(UpdateLibraryFieldsStep, catalog).execute(stats) is True
    assert catalog.find_media_library(Path(os.sep)) is None
    assert stats.updates == 0