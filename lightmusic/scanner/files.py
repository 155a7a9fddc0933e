"""Discovery of media files below a library root."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, Optional, Sequence, Union

PathLike = Union[str, "os.PathLike[str]"]


def has_supported_extension(file_path: PathLike, extensions: Sequence[str]) -> bool:
    """Tell whether the file's extension, lower-cased, is among ``extensions``.

    The extensions are expected lower case with their dot, such as ``".mp3"``.
    """
    if not extensions:
        return False
    return Path(file_path).suffix.lower() in extensions


def _should_skip_directory(directory: Path, exclude_dir_file_name: Optional[PathLike]) -> bool:
    if exclude_dir_file_name is None or not str(exclude_dir_file_name):
        return False
    return (directory / exclude_dir_file_name).is_file()


def _walk(
    directory: Path, extensions: Sequence[str], exclude_dir_file_name: Optional[PathLike]
) -> Iterator[Path]:
    try:
        with os.scandir(directory) as iterator:
            entries = sorted(iterator, key=lambda entry: entry.name)
    except PermissionError:
        return

    for entry in entries:
        path = Path(entry.path)
        try:
            is_dir = entry.is_dir()
        except OSError:
            is_dir = False
        if is_dir:
            # Directory links are listed but not followed.
            if not entry.is_symlink() and not _should_skip_directory(path, exclude_dir_file_name):
                yield from _walk(path, extensions, exclude_dir_file_name)
            continue

        try:
            is_file = entry.is_file()
        except OSError:
            is_file = False
        if is_file and has_supported_extension(path, extensions):
            yield path


def discover_files(
    root_path: PathLike,
    extensions: Sequence[str],
    exclude_dir_file_name: Optional[PathLike] = None,
) -> list[Path]:
    """Return the regular files below ``root_path`` with a supported extension.

    Sub-directories holding a regular file named ``exclude_dir_file_name``
    are not descended into. Unreadable directories are skipped; a missing or
    non-directory root gives an empty list.
    """
    root = Path(root_path)
    if not root.is_dir():
        return []

    files: list[Path] = []
    try:
        for path in _walk(root, extensions, exclude_dir_file_name):
            files.append(path)
    except OSError:
        pass
    return files