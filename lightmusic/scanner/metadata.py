"""Track metadata extraction from audio tags."""

from __future__ import annotations

import enum
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Sequence

_WHITESPACE = " \t\n\r\f\v"
_PLACEHOLDER_PREFIX = "__LMS_PRESERVE__"
_INT_MAX = 2**31 - 1
_YEAR = re.compile(r"[0-9]{4}")
_DIGIT_RUN = re.compile(r"[0-9]+")


def _trim(value: str) -> str:
    return value.strip(_WHITESPACE)


def _default_delimiters() -> list[str]:
    return [";", ",", "/"]


class TagType(enum.Enum):
    TITLE = enum.auto()
    ARTIST = enum.auto()
    ALBUM = enum.auto()
    ALBUM_ARTIST = enum.auto()
    GENRE = enum.auto()
    DATE = enum.auto()
    TRACK_NUMBER = enum.auto()
    DISC_NUMBER = enum.auto()
    COMMENT = enum.auto()


class TagReader(ABC):
    """Read access to the tags of an audio file."""

    @abstractmethod
    def get_tag(self, tag_type: TagType) -> Optional[str]:
        """Return the single value of a tag, or None if it is absent."""

    @abstractmethod
    def get_multi_tag(self, tag_type: TagType) -> list[str]:
        """Return every value of a multi-valued tag, empty if there is none."""


class DictTagReader(TagReader):
    """A tag reader over plain mappings of single and multiple values."""

    def __init__(
        self,
        tags: Optional[Mapping[TagType, str]] = None,
        multi_tags: Optional[Mapping[TagType, Sequence[str]]] = None,
    ) -> None:
        self._tags = dict(tags or {})
        self._multi_tags = {key: list(values) for key, values in (multi_tags or {}).items()}

    def get_tag(self, tag_type: TagType) -> Optional[str]:
        return self._tags.get(tag_type)

    def get_multi_tag(self, tag_type: TagType) -> list[str]:
        return list(self._multi_tags.get(tag_type, []))


@dataclass
class TrackMetadata:
    title: Optional[str] = None
    artist: Optional[str] = None
    artists: list[str] = field(default_factory=list)
    album: Optional[str] = None
    album_artist: Optional[str] = None
    album_artists: list[str] = field(default_factory=list)
    genre: Optional[str] = None
    genres: list[str] = field(default_factory=list)
    date: Optional[str] = None
    track_number: Optional[int] = None
    disc_number: Optional[int] = None
    comment: Optional[str] = None


@dataclass
class MetadataParameters:
    """How multi-valued tags are split."""

    artist_tag_delimiters: list[str] = field(default_factory=_default_delimiters)
    default_tag_delimiters: list[str] = field(default_factory=_default_delimiters)
    artists_to_not_split: list[str] = field(default_factory=list)


def _normalize_delimiters(delimiters: Iterable[str]) -> list[str]:
    result: list[str] = []
    for entry in delimiters:
        trimmed = _trim(entry)
        if trimmed and trimmed not in result:
            result.append(trimmed)
    return result


def _normalize_whitelist(entries: Iterable[str]) -> list[str]:
    trimmed = {_trim(entry) for entry in entries}
    trimmed.discard("")
    # Longest first so that a name containing another one is preserved whole.
    return sorted(trimmed, key=lambda entry: (-len(entry), entry))


def _normalize_parameters(params: MetadataParameters) -> MetadataParameters:
    return MetadataParameters(
        artist_tag_delimiters=_normalize_delimiters(params.artist_tag_delimiters),
        default_tag_delimiters=_normalize_delimiters(params.default_tag_delimiters),
        artists_to_not_split=_normalize_whitelist(params.artists_to_not_split),
    )


def _apply_placeholders(value: str, whitelist: Sequence[str]) -> tuple[str, list[tuple[str, str]]]:
    replacements: list[tuple[str, str]] = []
    counter = 0
    for entry in whitelist:
        pos = value.find(entry)
        while pos != -1:
            marker = f"{_PLACEHOLDER_PREFIX}{counter}"
            counter += 1
            value = value[:pos] + marker + value[pos + len(entry):]
            replacements.append((marker, entry))
            pos = value.find(entry, pos + len(marker))
    return value, replacements


def _restore_placeholders(value: str, replacements: Sequence[tuple[str, str]]) -> str:
    for marker, original in replacements:
        pos = value.find(marker)
        while pos != -1:
            value = value[:pos] + original + value[pos + len(marker):]
            pos = value.find(marker, pos + len(original))
    return value


class TrackMetadataParser:
    """Extracts track metadata from audio tags."""

    def __init__(self, params: Optional[MetadataParameters] = None) -> None:
        self._params = _normalize_parameters(params if params is not None else MetadataParameters())

    def parse_track_metadata(self, reader: TagReader) -> TrackMetadata:
        """Build the metadata of a track from its tags."""
        params = self._params
        artists = self._extract_values(
            reader, TagType.ARTIST, params.artist_tag_delimiters, params.artists_to_not_split
        )
        album_artists = self._extract_values(
            reader, TagType.ALBUM_ARTIST, params.artist_tag_delimiters, params.artists_to_not_split
        )
        genres = self._extract_values(reader, TagType.GENRE, params.default_tag_delimiters, ())

        return TrackMetadata(
            title=self._tag_value(reader, TagType.TITLE),
            artist=artists[0] if artists else None,
            artists=artists,
            album=self._tag_value(reader, TagType.ALBUM),
            album_artist=album_artists[0] if album_artists else None,
            album_artists=album_artists,
            genre=genres[0] if genres else None,
            genres=genres,
            date=self._normalize_date(self._tag_value(reader, TagType.DATE)),
            track_number=self._parse_number(self._tag_value(reader, TagType.TRACK_NUMBER)),
            disc_number=self._parse_number(self._tag_value(reader, TagType.DISC_NUMBER)),
            comment=self._tag_value(reader, TagType.COMMENT),
        )

    def _extract_values(
        self,
        reader: TagReader,
        tag_type: TagType,
        delimiters: Sequence[str],
        whitelist: Sequence[str],
    ) -> list[str]:
        raw_values = list(reader.get_multi_tag(tag_type))
        if not raw_values:
            single = reader.get_tag(tag_type)
            if single is not None:
                raw_values.append(single)

        result: list[str] = []
        for raw in raw_values:
            for value in self._split_and_normalize(raw, delimiters, whitelist):
                if value not in result:
                    result.append(value)
        return result

    @staticmethod
    def _split_and_normalize(
        value: str, delimiters: Sequence[str], whitelist: Sequence[str]
    ) -> list[str]:
        if not value:
            return []

        replacements: list[tuple[str, str]] = []
        if whitelist:
            value, replacements = _apply_placeholders(value, whitelist)

        segments = [value]
        for delimiter in delimiters:
            if not delimiter:
                continue
            segments = [piece for segment in segments for piece in segment.split(delimiter)]

        normalized: list[str] = []
        for segment in segments:
            if replacements:
                segment = _restore_placeholders(segment, replacements)
            trimmed = _trim(segment)
            if trimmed:
                normalized.append(trimmed)
        return normalized

    @staticmethod
    def _tag_value(reader: TagReader, tag_type: TagType) -> Optional[str]:
        value = reader.get_tag(tag_type)
        if value is None:
            return None
        trimmed = _trim(value)
        return trimmed or None

    @staticmethod
    def _parse_number(value: Optional[str]) -> Optional[int]:
        if value is None:
            return None
        match = _DIGIT_RUN.search(_trim(value))
        if match is None:
            return None
        number = int(match.group())
        return number if number <= _INT_MAX else None

    @staticmethod
    def _normalize_date(value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        trimmed = _trim(value)
        if not trimmed:
            return None
        match = _YEAR.search(trimmed)
        return match.group() if match else trimmed