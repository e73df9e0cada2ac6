"""Tests for the Spotify catalog connector with a mocked spotipy client."""

import time
from unittest.mock import AsyncMock, Mock, patch

import pytest
from spotipy import SpotifyException
from spotipy.oauth2 import SpotifyOauthError

from labelsync.domain.errors import (
    AuthError,
    InvalidExternalId,
    MalformedPayload,
    NotFound,
    RateLimited,
    TransientCatalogError,
)
from labelsync.infrastructure.connectors.spotify import (
    SpotifyCatalogConnector,
    build_label_query,
    parse_retry_after,
)

from tests.fixtures.catalog import album_payload, search_payload, track_payload

SLEEP = "labelsync.infrastructure.connectors.spotify.asyncio.sleep"


def rate_limit_error(retry_after: str | None = "2") -> SpotifyException:
    headers = {"Retry-After": retry_after} if retry_after is not None else {}
    return SpotifyException(429, -1, "API rate limit exceeded", headers=headers)


@pytest.fixture
def mock_client():
    return Mock()


@pytest.fixture
def mock_auth_manager():
    manager = Mock()
    manager.get_access_token.return_value = "test-token"
    return manager


@pytest.fixture
def connector(mock_client, mock_auth_manager, fast_retry):
    return SpotifyCatalogConnector(
        client_id="test-id",
        client_secret="test-secret",
        market="US",
        retry_policy=fast_retry,
        default_retry_after=1.0,
        client=mock_client,
        auth_manager=mock_auth_manager,
    )


class TestRateLimiting:
    """429 handling: wait Retry-After once, retry once, then give up."""

    async def test_second_429_raises_rate_limited_without_third_attempt(
        self, connector, mock_client
    ):
        mock_client.search.side_effect = [rate_limit_error("2"), rate_limit_error("2")]

        with patch(SLEEP, new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(RateLimited) as exc_info:
                await connector.search_albums_by_label("Build It Deep", offset=50)

        assert mock_client.search.call_count == 2
        mock_sleep.assert_awaited_once_with(2.0)
        assert exc_info.value.retry_after == 2.0

    async def test_single_429_then_success(self, connector, mock_client):
        mock_client.search.side_effect = [
            rate_limit_error("2"),
            search_payload(["albumOne1"], total=1),
        ]

        with patch(SLEEP, new_callable=AsyncMock) as mock_sleep:
            page = await connector.search_albums_by_label("Build It Deep")

        mock_sleep.assert_awaited_once_with(2.0)
        assert [a.external_id for a in page.items] == ["albumOne1"]

    async def test_missing_retry_after_uses_default(self, connector, mock_client):
        mock_client.search.side_effect = [rate_limit_error(None), rate_limit_error(None)]

        with patch(SLEEP, new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(RateLimited):
                await connector.search_albums_by_label("Build It Deep")

        mock_sleep.assert_awaited_once_with(1.0)

    async def test_server_error_after_429_does_not_earn_a_second_wait(
        self, connector, mock_client
    ):
        mock_client.search.side_effect = [
            rate_limit_error("2"),
            SpotifyException(503, -1, "Unavailable"),
            rate_limit_error("2"),
        ]

        with patch(SLEEP, new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(RateLimited):
                await connector.search_albums_by_label("Build It Deep")

        assert mock_client.search.call_count == 3
        # the policy retry itself sleeps for 0s under fast_retry
        waits = [c.args[0] for c in mock_sleep.await_args_list if c.args[0] > 0]
        assert waits == [2.0]


class TestTimeouts:
    async def test_slow_search_times_out_as_transient(self, connector, mock_client):
        connector.search_timeout = 0.01
        mock_client.search.side_effect = lambda *args, **kwargs: time.sleep(0.2)

        with pytest.raises(TransientCatalogError, match="timed out"):
            await connector.search_albums_by_label("Build It Deep")
        assert mock_client.search.call_count == 2

    async def test_slow_token_request_becomes_auth_error(
        self, connector, mock_auth_manager
    ):
        connector.auth_timeout = 0.01
        mock_auth_manager.get_access_token.side_effect = (
            lambda *args, **kwargs: time.sleep(0.2)
        )

        with pytest.raises(AuthError, match="unavailable"):
            await connector.authenticate()


class TestErrorTranslation:
    async def test_404_is_not_found(self, connector, mock_client):
        mock_client.album.side_effect = SpotifyException(404, -1, "Not found")

        with pytest.raises(NotFound):
            await connector.get_album_detail("missingAlbum1")

    async def test_401_is_auth_error(self, connector, mock_client):
        mock_client.search.side_effect = SpotifyException(401, -1, "Invalid access token")

        with pytest.raises(AuthError):
            await connector.search_albums_by_label("Build It Deep")
        assert mock_client.search.call_count == 1

    async def test_5xx_is_retried_then_transient(self, connector, mock_client):
        mock_client.search.side_effect = SpotifyException(502, -1, "Bad gateway")

        with pytest.raises(TransientCatalogError):
            await connector.search_albums_by_label("Build It Deep")
        assert mock_client.search.call_count == 2

    async def test_5xx_then_success(self, connector, mock_client):
        mock_client.search.side_effect = [
            SpotifyException(503, -1, "Unavailable"),
            search_payload([], total=0),
        ]

        page = await connector.search_albums_by_label("Build It Deep")
        assert page.items == []
        assert page.is_last


class TestAlbumDetail:
    async def test_invalid_id_rejected_before_any_request(self, connector, mock_client):
        with pytest.raises(InvalidExternalId):
            await connector.get_album_detail("not a valid id!")
        mock_client.album.assert_not_called()

    async def test_wrong_uri_kind_rejected(self, connector, mock_client):
        with pytest.raises(InvalidExternalId):
            await connector.get_album_detail("spotify:track:abc123")
        mock_client.album.assert_not_called()

    async def test_malformed_payload(self, connector, mock_client):
        mock_client.album.return_value = {"name": "No ID here"}

        with pytest.raises(MalformedPayload):
            await connector.get_album_detail("abc123")

    async def test_bad_release_date_is_malformed(self, connector, mock_client):
        payload = album_payload("abc123")
        payload["release_date"] = "sometime in May"
        mock_client.album.return_value = payload

        with pytest.raises(MalformedPayload):
            await connector.get_album_detail("abc123")

    async def test_maps_album_fields(self, connector, mock_client):
        mock_client.album.return_value = album_payload("abc123", "Night Drive")

        album = await connector.get_album_detail("spotify:album:abc123")

        mock_client.album.assert_called_once_with("abc123", market="US")
        assert album.external_id == "abc123"
        assert album.catalog_label == "Build It Deep"
        assert album.release_date.isoformat() == "2023-05-01"
        assert album.artwork_url == "https://i.scdn.co/image/large"
        assert [t.track_number for t in album.tracks] == [1, 2]
        assert album.tracks[0].artists[0].name == "Sola Reyes"

    async def test_paginates_remaining_tracks(self, connector, mock_client):
        mock_client.album.return_value = album_payload(
            "abc123",
            track_count=2,
            total_tracks=3,
            next_page="https://api.spotify.com/v1/albums/abc123/tracks?offset=2",
        )
        artist = {"id": "nightArtist1", "name": "Sola Reyes"}
        mock_client.album_tracks.return_value = {
            "items": [track_payload("abc123T3", "Night Drive 3", [artist], 3)],
            "total": 3,
            "next": None,
        }

        album = await connector.get_album_detail("abc123")

        assert len(album.tracks) == 3
        mock_client.album_tracks.assert_called_once_with(
            "abc123", limit=50, offset=2, market="US"
        )


class TestSearch:
    async def test_search_query_and_paging(self, connector, mock_client):
        mock_client.search.return_value = search_payload(["albumOne1", "albumTwo2"], total=2)

        page = await connector.search_albums_by_label("Build It Deep", offset=0, limit=50)

        mock_client.search.assert_called_once_with(
            'label:"Build It Deep"', limit=50, offset=0, type="album", market="US"
        )
        assert page.total == 2
        assert page.is_last

    async def test_null_items_are_dropped(self, connector, mock_client):
        payload = search_payload(["albumOne1"], total=2)
        payload["albums"]["items"].append(None)
        mock_client.search.return_value = payload

        page = await connector.search_albums_by_label("Build It Deep")
        assert [a.external_id for a in page.items] == ["albumOne1"]
        assert page.dropped == 1

    def test_build_label_query_strips_quotes(self):
        assert build_label_query('Build "It" Deep') == 'label:"Build It Deep"'


class TestAuthentication:
    async def test_authenticate_returns_token(self, connector):
        token = await connector.authenticate()
        assert token.access_token == "test-token"

    async def test_rejected_credentials_fail_fast(self, connector, mock_auth_manager):
        mock_auth_manager.get_access_token.side_effect = SpotifyOauthError(
            "bad client", error="invalid_client"
        )

        with pytest.raises(AuthError):
            await connector.authenticate()
        assert mock_auth_manager.get_access_token.call_count == 1

    async def test_transient_token_errors_retry_then_auth_error(
        self, connector, mock_auth_manager
    ):
        mock_auth_manager.get_access_token.side_effect = SpotifyOauthError(
            "try later", error="temporarily_unavailable"
        )

        with pytest.raises(AuthError):
            await connector.authenticate()
        assert mock_auth_manager.get_access_token.call_count == 2

    async def test_missing_credentials(self, fast_retry):
        connector = SpotifyCatalogConnector(
            client_id="", client_secret="", retry_policy=fast_retry
        )
        assert connector.client is None

        with pytest.raises(AuthError):
            await connector.authenticate()
        await connector.aclose()


class TestParseRetryAfter:
    @pytest.mark.parametrize(
        ("headers", "expected"),
        [
            ({"Retry-After": "2"}, 2.0),
            ({"retry-after": "5"}, 5.0),
            ({"Retry-After": "-3"}, 0.0),
            ({"Retry-After": "soon"}, 1.0),
            ({}, 1.0),
            (None, 1.0),
        ],
    )
    def test_parse(self, headers, expected):
        assert parse_retry_after(headers, default=1.0) == expected
