import pytest

from lightmusic.scanner.metadata import (
    DictTagReader,
    MetadataParameters,
    TagType,
    TrackMetadata,
    TrackMetadataParser,
)


def parse(tags=None, multi_tags=None, params=None):
    parser = TrackMetadataParser(params)
    return parser.parse_track_metadata(DictTagReader(tags, multi_tags))


def test_dict_tag_reader_returns_values():
    reader = DictTagReader({TagType.TITLE: "Song"}, {TagType.ARTIST: ["A", "B"]})
    assert reader.get_tag(TagType.TITLE) == "Song"
    assert reader.get_tag(TagType.ALBUM) is None
    assert reader.get_multi_tag(TagType.ARTIST) == ["A", "B"]
    assert reader.get_multi_tag(TagType.GENRE) == []


def test_empty_reader_gives_empty_metadata():
    assert parse() == TrackMetadata()


def test_title_and_album_are_trimmed():
    metadata = parse({TagType.TITLE: "  Song  ", TagType.ALBUM: "\tRecord\n"})
    assert metadata.title == "Song"
    assert metadata.album == "Record"


def test_blank_title_is_absent():
    metadata = parse({TagType.TITLE: "   ", TagType.COMMENT: ""})
    assert metadata.title is None
    assert metadata.comment is None


def test_artists_split_on_default_delimiters():
    metadata = parse({TagType.ARTIST: "Alpha; Beta, Gamma / Delta"})
    assert metadata.artists == ["Alpha", "Beta", "Gamma", "Delta"]
    assert metadata.artist == "Alpha"


def test_split_values_are_deduplicated_in_order():
    metadata = parse({TagType.ARTIST: "Beta;Alpha;Beta; ;Alpha"})
    assert metadata.artists == ["Beta", "Alpha"]


def test_multi_tag_takes_precedence_over_single_tag():
    metadata = parse(
        {TagType.ARTIST: "Single"},
        {TagType.ARTIST: ["First", "Second;Third", "First"]},
    )
    assert metadata.artists == ["First", "Second", "Third"]
    assert metadata.artist == "First"


def test_whitelisted_artist_is_not_split():
    params = MetadataParameters(artists_to_not_split=["AC/DC"])
    metadata = parse({TagType.ARTIST: "AC/DC; Other/Band"}, params=params)
    assert metadata.artists == ["AC/DC", "Other", "Band"]


def test_whitelist_entries_are_trimmed_and_longest_wins():
    params = MetadataParameters(artists_to_not_split=["  A/B ", "A/B/C", ""])
    metadata = parse({TagType.ARTIST: "A/B/C;A/B"}, params=params)
    assert metadata.artists == ["A/B/C", "A/B"]


def test_whitelist_does_not_apply_to_genres():
    params = MetadataParameters(artists_to_not_split=["Rock/Pop"])
    metadata = parse({TagType.GENRE: "Rock/Pop"}, params=params)
    assert metadata.genres == ["Rock", "Pop"]
    assert metadata.genre == "Rock"


def test_album_artists_use_artist_delimiters():
    params = MetadataParameters(artist_tag_delimiters=[" & "], default_tag_delimiters=[";"])
    metadata = parse(
        {TagType.ALBUM_ARTIST: "X & Y;Z", TagType.GENRE: "Jazz & Blues;Soul"},
        params=params,
    )
    # The delimiter is trimmed to "&" by normalisation.
    assert metadata.album_artists == ["X", "Y;Z"]
    assert metadata.album_artist == "X"
    assert metadata.genres == ["Jazz & Blues", "Soul"]


def test_blank_delimiters_are_ignored():
    params = MetadataParameters(artist_tag_delimiters=["  ", ""])
    metadata = parse({TagType.ARTIST: "One, Two"}, params=params)
    assert metadata.artists == ["One, Two"]


@pytest.mark.parametrize(
    "raw, expected",
    [("7", 7), ("07/12", 7), ("Track 3 of 9", 3), ("abc", None), ("  ", None)],
)
def test_track_number_takes_first_digit_run(raw, expected):
    assert parse({TagType.TRACK_NUMBER: raw}).track_number == expected


def test_disc_number_parsed():
    assert parse({TagType.DISC_NUMBER: "2/2"}).disc_number == 2


def test_number_beyond_int_range_is_absent():
    assert parse({TagType.TRACK_NUMBER: "99999999999"}).track_number is None


@pytest.mark.parametrize(
    "raw, expected",
    [("2004-05-06", "2004"), ("May 1999", "1999"), ("123456", "1234"), ("May 04", "May 04")],
)
def test_date_normalised_to_first_four_digits(raw, expected):
    assert parse({TagType.DATE: raw}).date == expected


def test_blank_date_is_absent():
    assert parse({TagType.DATE: " \t"}).date is None