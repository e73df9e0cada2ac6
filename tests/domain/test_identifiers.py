"""Tests for external ID validation and URL normalization."""

import pytest

from labelsync.domain.errors import InvalidExternalId
from labelsync.domain.identifiers import (
    is_valid_external_id,
    normalize_external_id,
    normalize_spotify_url,
    slugify,
)


class TestNormalizeExternalId:
    def test_bare_id_passes_through(self):
        assert normalize_external_id("4aawyAB9vmqN3uQ7FjRGTy") == "4aawyAB9vmqN3uQ7FjRGTy"

    def test_short_ids_are_accepted(self):
        assert normalize_external_id("abc123") == "abc123"

    def test_uri_is_reduced(self):
        assert normalize_external_id("spotify:album:abc123") == "abc123"

    def test_url_is_reduced(self):
        url = "https://open.spotify.com/album/abc123?si=xyz"
        assert normalize_external_id(url, kind="album") == "abc123"

    def test_wrong_kind_is_rejected(self):
        with pytest.raises(InvalidExternalId):
            normalize_external_id("spotify:track:abc123", kind="album")

    @pytest.mark.parametrize(
        "value",
        ["", "has space", "abc-123", "a" * 23, "https://example.com/album/abc123"],
    )
    def test_malformed_ids_are_rejected(self, value):
        with pytest.raises(InvalidExternalId):
            normalize_external_id(value)

    def test_non_string_is_rejected(self):
        with pytest.raises(InvalidExternalId):
            normalize_external_id(None)  # type: ignore[arg-type]

    def test_is_valid_external_id(self):
        assert is_valid_external_id("abc123")
        assert not is_valid_external_id("abc 123")
        assert not is_valid_external_id(123)


class TestNormalizeSpotifyUrl:
    def test_strips_query_and_locale(self):
        url = "https://open.spotify.com/intl-de/artist/0OdUWJ0sBjDrqHygGUXeCF?si=abc"
        assert (
            normalize_spotify_url(url)
            == "https://open.spotify.com/artist/0OdUWJ0sBjDrqHygGUXeCF"
        )

    def test_other_hosts_are_dropped(self):
        assert normalize_spotify_url("https://example.com/artist/abc") is None

    def test_empty_is_none(self):
        assert normalize_spotify_url(None) is None
        assert normalize_spotify_url("") is None


def test_slugify():
    assert slugify("Build It Deep") == "build-it-deep"
    assert slugify("  R&B / Soul ") == "r-b-soul"
