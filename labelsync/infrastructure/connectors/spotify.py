"""Spotify catalog connector.

This module wraps the Spotify Web API through spotipy
(https://spotipy.readthedocs.io/) for the label sync pipeline:

- Client-credentials authentication
- Label-scoped album search (``label:"<name>"``) with offset pagination
- Album detail with the full, paginated track list
- 429 handling: honour ``Retry-After`` once, then raise ``RateLimited``
- One timeout per call class (auth, search, detail)

spotipy is given our own ``requests.Session``, which disables its built-in
urllib3 retry adapter; retries happen here, under the shared RetryPolicy.
"""

import asyncio
from collections.abc import Callable
from typing import Any

from attrs import define, field
import requests
import spotipy
from spotipy.oauth2 import SpotifyClientCredentials, SpotifyOauthError

from labelsync.config import get_logger, resilient_operation, settings
from labelsync.domain.entities import AlbumSearchPage, CatalogAlbum, CatalogToken
from labelsync.domain.errors import (
    AuthError,
    CatalogSyncError,
    InvalidIdFormat,
    NotFound,
    RateLimited,
    TransientCatalogError,
)
from labelsync.domain.identifiers import normalize_external_id
from labelsync.infrastructure.connectors.payloads import (
    build_album,
    parse_album,
    parse_search_page,
    parse_track_page,
)
from labelsync.infrastructure.retry import RetryPolicy

# Get contextual logger with service binding
logger = get_logger(__name__).bind(service="spotify")

# OAuth error codes that mean the credentials themselves are bad
_FATAL_OAUTH_ERRORS = frozenset({
    "invalid_client",
    "invalid_grant",
    "invalid_request",
    "unauthorized_client",
    "unsupported_grant_type",
})


def build_label_query(label_name: str) -> str:
    """Search query for all albums released on ``label_name``."""
    escaped = label_name.replace('"', "")
    return f'label:"{escaped}"'


@define(slots=True)
class _RateLimitBudget:
    """One Retry-After wait per logical request, shared across policy retries."""

    retry_available: bool = True


def parse_retry_after(headers: Any, default: float) -> float:
    """Seconds to wait from a Retry-After header, ``default`` if absent or bad."""
    if not headers:
        return default
    value = headers.get("Retry-After")
    if value is None:
        value = headers.get("retry-after")
    if value is None:
        return default
    try:
        return max(float(value), 0.0)
    except (TypeError, ValueError):
        logger.warning(f"Invalid Retry-After header: {value!r}")
        return default


@define(slots=True)
class SpotifyCatalogConnector:
    """Client-credentials Spotify client for label catalog sync.

    Use as an async context manager so the HTTP session is closed on every
    exit path:

        async with SpotifyCatalogConnector() as catalog:
            await catalog.authenticate()
            page = await catalog.search_albums_by_label("Build It Deep")
    """

    client_id: str = field(
        factory=lambda: settings.credentials.spotify_client_id, repr=False
    )
    client_secret: str = field(
        factory=lambda: settings.credentials.spotify_client_secret, repr=False
    )
    market: str | None = field(factory=lambda: settings.api.spotify_market)
    retry_policy: RetryPolicy = field(factory=RetryPolicy.from_settings)
    auth_timeout: float = field(factory=lambda: settings.timeouts.auth)
    search_timeout: float = field(factory=lambda: settings.timeouts.search)
    detail_timeout: float = field(factory=lambda: settings.timeouts.detail)
    default_retry_after: float = field(
        factory=lambda: settings.api.spotify_default_retry_after
    )
    tracks_page_size: int = field(
        factory=lambda: settings.api.spotify_album_tracks_page_size
    )
    http_session: requests.Session = field(factory=requests.Session, repr=False)
    auth_manager: Any = field(default=None, repr=False)
    client: Any = field(default=None, repr=False)

    def __attrs_post_init__(self) -> None:
        """Build the spotipy client unless one was injected."""
        if self.client is not None:
            return
        if not (self.client_id and self.client_secret):
            logger.debug("Spotify credentials missing; connector left unauthenticated")
            return

        logger.debug("Initializing Spotify catalog connector")
        if self.auth_manager is None:
            self.auth_manager = SpotifyClientCredentials(
                client_id=self.client_id,
                client_secret=self.client_secret,
                requests_session=self.http_session,
                requests_timeout=self.auth_timeout,
            )
        self.client = spotipy.Spotify(
            auth_manager=self.auth_manager,
            requests_session=self.http_session,
            requests_timeout=max(self.search_timeout, self.detail_timeout),
        )

    async def __aenter__(self) -> "SpotifyCatalogConnector":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Release the HTTP session."""
        self.http_session.close()
        logger.debug("Spotify catalog connector closed")

    # -------------------------------------------------------------------------
    # AUTHENTICATION
    # -------------------------------------------------------------------------

    @resilient_operation("spotify_authenticate")
    async def authenticate(self) -> CatalogToken:
        """Obtain a client-credentials token.

        Transient failures are retried under the retry policy; bad
        credentials fail immediately.

        Raises:
            AuthError: Credentials missing or rejected, or the token endpoint
                stayed unavailable after all retries.
        """
        if self.auth_manager is None:
            raise AuthError("Spotify client credentials are not configured")

        try:
            token = await self.retry_policy.run(
                (TransientCatalogError,), self._fetch_token
            )
        except TransientCatalogError as e:
            raise AuthError(f"Spotify token endpoint unavailable: {e}") from e

        logger.info("Authenticated with Spotify (client credentials)")
        return token

    async def _fetch_token(self) -> CatalogToken:
        try:
            access_token = await asyncio.wait_for(
                asyncio.to_thread(
                    self.auth_manager.get_access_token,
                    as_dict=False,
                    check_cache=False,
                ),
                timeout=self.auth_timeout,
            )
        except SpotifyOauthError as e:
            error_code = getattr(e, "error", None)
            if error_code in _FATAL_OAUTH_ERRORS:
                raise AuthError(
                    f"Spotify rejected client credentials: {error_code}"
                ) from e
            raise TransientCatalogError(f"Token request failed: {e}") from e
        except TimeoutError as e:
            raise TransientCatalogError(
                f"Token request timed out after {self.auth_timeout:g}s"
            ) from e
        except requests.RequestException as e:
            raise TransientCatalogError(f"Token request failed: {e}") from e

        if not access_token:
            raise AuthError("Spotify returned an empty access token")
        return CatalogToken(access_token=access_token)

    # -------------------------------------------------------------------------
    # CATALOG QUERIES
    # -------------------------------------------------------------------------

    @resilient_operation("spotify_search_albums_by_label")
    async def search_albums_by_label(
        self, label_name: str, offset: int = 0, limit: int = 50
    ) -> AlbumSearchPage:
        """Fetch one page of albums released on ``label_name``.

        Args:
            label_name: Label name as known to the catalog
            offset: Result offset
            limit: Page size (Spotify caps this at 50)

        Returns:
            AlbumSearchPage; ``total`` is only meaningful on the first page and
            an empty ``items`` list means the search is exhausted.
        """
        query = build_label_query(label_name)
        logger.debug(f"Searching Spotify: {query}", offset=offset, limit=limit)

        raw = await self._request(
            "search",
            self.search_timeout,
            self.client.search,
            query,
            limit=limit,
            offset=offset,
            type="album",
            market=self.market,
        )
        return parse_search_page(raw, offset=offset, limit=limit)

    @resilient_operation("spotify_get_album_detail")
    async def get_album_detail(self, external_id: str) -> CatalogAlbum:
        """Fetch full album detail including every track.

        Raises:
            InvalidIdFormat: ``external_id`` is not a Spotify ID (no request made)
            NotFound: The catalog has no such album
            MalformedPayload: The response failed validation
        """
        album_id = normalize_external_id(external_id, kind="album")

        raw = await self._request(
            "album",
            self.detail_timeout,
            self.client.album,
            album_id,
            market=self.market,
            external_id=album_id,
        )
        payload = parse_album(raw, album_id)

        extra_tracks = []
        if payload.tracks is not None and payload.tracks.next:
            fetched = len(payload.tracks.items)
            total = payload.tracks.total or payload.total_tracks or 0
            while fetched < total:
                raw_page = await self._request(
                    "album_tracks",
                    self.detail_timeout,
                    self.client.album_tracks,
                    album_id,
                    limit=self.tracks_page_size,
                    offset=fetched,
                    market=self.market,
                    external_id=album_id,
                )
                page = parse_track_page(raw_page, album_id)
                if not page.items:
                    break
                extra_tracks.extend(page.items)
                fetched += len(page.items)

        album = build_album(payload, extra_tracks)
        logger.debug(
            f"Fetched album detail: {album.title}",
            album_id=album_id,
            track_count=len(album.tracks),
        )
        return album

    # -------------------------------------------------------------------------
    # REQUEST PLUMBING
    # -------------------------------------------------------------------------

    async def _request(
        self,
        operation: str,
        timeout: float,
        func: Callable[..., Any],
        *args: Any,
        external_id: str | None = None,
        **kwargs: Any,
    ) -> Any:
        """Run a spotipy call under the retry policy for transient failures."""
        if self.client is None:
            raise AuthError("Spotify client credentials are not configured")
        return await self.retry_policy.run(
            (TransientCatalogError,),
            self._call_with_rate_limit,
            _RateLimitBudget(),
            operation,
            timeout,
            func,
            *args,
            external_id=external_id,
            **kwargs,
        )

    async def _call_with_rate_limit(
        self,
        budget: _RateLimitBudget,
        operation: str,
        timeout: float,
        func: Callable[..., Any],
        *args: Any,
        external_id: str | None = None,
        **kwargs: Any,
    ) -> Any:
        """Call once; on 429 sleep for Retry-After and call exactly once more.

        The single 429 retry belongs to the whole request, so a transient
        failure after it cannot earn a second wait.
        """
        while True:
            try:
                return await asyncio.wait_for(
                    asyncio.to_thread(func, *args, **kwargs), timeout=timeout
                )
            except spotipy.SpotifyException as e:
                if e.http_status != 429:
                    raise self._translate(e, operation, external_id) from e

                retry_after = parse_retry_after(
                    getattr(e, "headers", None), self.default_retry_after
                )
                if not budget.retry_available:
                    raise RateLimited(
                        f"Spotify rate limit on {operation}",
                        retry_after=retry_after,
                        external_id=external_id,
                    ) from e

                budget.retry_available = False
                logger.warning(
                    f"Rate limited on {operation}, waiting {retry_after:g}s before one retry",
                    retry_after=retry_after,
                )
                await asyncio.sleep(retry_after)
            except TimeoutError as e:
                raise TransientCatalogError(
                    f"{operation} timed out after {timeout:g}s",
                    external_id=external_id,
                ) from e
            except requests.RequestException as e:
                raise TransientCatalogError(
                    f"{operation} request failed: {e}", external_id=external_id
                ) from e

    @staticmethod
    def _translate(
        error: spotipy.SpotifyException, operation: str, external_id: str | None
    ) -> CatalogSyncError:
        """Map a non-429 SpotifyException onto the error taxonomy."""
        status = error.http_status
        message = f"{operation} failed ({status}): {error.msg}"
        match status:
            case 404:
                return NotFound(message, external_id=external_id)
            case 400 if "invalid" in str(error.msg).lower() and "id" in str(error.msg).lower():
                return InvalidIdFormat(message, external_id=external_id)
            case 401 | 403:
                return AuthError(message, external_id=external_id)
            case int() if status >= 500:
                return TransientCatalogError(message, external_id=external_id)
            case _:
                return CatalogSyncError(message, external_id=external_id)
