"""Builders for catalog value objects and raw Spotify payloads."""

from labelsync.domain.entities import CatalogAlbum, CatalogArtist, CatalogTrack


def make_artist(external_id: str, name: str) -> CatalogArtist:
    return CatalogArtist(
        external_id=external_id,
        name=name,
        spotify_url=f"https://open.spotify.com/artist/{external_id}",
    )


def make_track(
    external_id: str,
    title: str,
    artists: list[CatalogArtist],
    track_number: int = 1,
) -> CatalogTrack:
    return CatalogTrack(
        external_id=external_id,
        title=title,
        artists=artists,
        duration_ms=240_000,
        track_number=track_number,
        disc_number=1,
    )


def make_album(
    external_id: str,
    title: str,
    artists: list[CatalogArtist],
    tracks: list[CatalogTrack] | None = None,
    *,
    album_type: str = "single",
    catalog_label: str | None = None,
    genres: list[str] | None = None,
) -> CatalogAlbum:
    tracks = tracks or []
    return CatalogAlbum(
        external_id=external_id,
        title=title,
        album_type=album_type,
        artists=artists,
        external_url=f"https://open.spotify.com/album/{external_id}",
        catalog_label=catalog_label,
        total_tracks=len(tracks),
        genres=genres or [],
        tracks=tracks,
    )


def acme_drift_album() -> CatalogAlbum:
    """'Drift' (abc123): two artists, three tracks each crediting both."""
    first = make_artist("acmeArtist1", "Nora Vale")
    second = make_artist("acmeArtist2", "Ilan Moss")
    tracks = [
        make_track(f"driftTrack{n}", f"Drift Part {n}", [first, second], n)
        for n in (1, 2, 3)
    ]
    return make_album("abc123", "Drift", [first, second], tracks)


def artist_payload(external_id: str, name: str) -> dict:
    return {
        "id": external_id,
        "name": name,
        "external_urls": {"spotify": f"https://open.spotify.com/artist/{external_id}"},
    }


def track_payload(external_id: str, title: str, artists: list[dict], number: int = 1) -> dict:
    return {
        "id": external_id,
        "name": title,
        "artists": artists,
        "duration_ms": 300_000,
        "track_number": number,
        "disc_number": 1,
        "preview_url": None,
        "external_urls": {"spotify": f"https://open.spotify.com/track/{external_id}"},
    }


def album_payload(
    external_id: str,
    title: str = "Night Drive",
    *,
    label: str = "Build It Deep",
    track_count: int = 2,
    next_page: str | None = None,
    total_tracks: int | None = None,
) -> dict:
    artist = artist_payload("nightArtist1", "Sola Reyes")
    items = [
        track_payload(f"{external_id}T{n}", f"{title} {n}", [artist], n)
        for n in range(1, track_count + 1)
    ]
    return {
        "id": external_id,
        "name": title,
        "album_type": "single",
        "artists": [artist],
        "release_date": "2023-05",
        "release_date_precision": "month",
        "images": [
            {"url": "https://i.scdn.co/image/small", "width": 64, "height": 64},
            {"url": "https://i.scdn.co/image/large", "width": 640, "height": 640},
        ],
        "external_urls": {"spotify": f"https://open.spotify.com/album/{external_id}"},
        "label": label,
        "total_tracks": total_tracks if total_tracks is not None else track_count,
        "genres": [],
        "tracks": {"items": items, "total": total_tracks or track_count, "next": next_page},
    }


def search_payload(album_ids: list[str], total: int) -> dict:
    return {
        "albums": {
            "items": [
                {
                    "id": album_id,
                    "name": f"Album {album_id}",
                    "album_type": "single",
                    "artists": [artist_payload("nightArtist1", "Sola Reyes")],
                    "release_date": "2024",
                }
                for album_id in album_ids
            ],
            "total": total,
            "offset": 0,
            "limit": 50,
        }
    }
