"""External identifier validation and URL normalization.

Spotify IDs are base-62 strings of at most 22 characters. Everything
that enters the resolver passes through ``normalize_external_id`` so URIs,
open.spotify.com links and bare IDs all dedup to the same key.
"""

import re
from urllib.parse import urlparse

from labelsync.domain.errors import InvalidExternalId

_EXTERNAL_ID_RE = re.compile(r"^[0-9A-Za-z]{1,22}$")
_URI_RE = re.compile(r"^spotify:(?P<kind>album|artist|track):(?P<id>[^:]+)$")


def is_valid_external_id(value: object) -> bool:
    """Check whether ``value`` has the catalog's ID shape."""
    return isinstance(value, str) and bool(_EXTERNAL_ID_RE.match(value))


def normalize_external_id(value: str, kind: str | None = None) -> str:
    """Reduce a URI, URL or bare ID to the bare ID and validate it.

    Raises:
        InvalidExternalId: If the result is not a valid catalog ID.
    """
    if not isinstance(value, str):
        raise InvalidExternalId(
            f"External ID must be a string, got {type(value).__name__}"
        )

    candidate = value.strip()

    if match := _URI_RE.match(candidate):
        if kind and match.group("kind") != kind:
            raise InvalidExternalId(
                f"Expected a {kind} URI, got {candidate!r}", external_id=candidate
            )
        candidate = match.group("id")
    elif candidate.startswith(("http://", "https://")):
        parsed = urlparse(candidate)
        parts = [p for p in parsed.path.split("/") if p]
        if parsed.netloc != "open.spotify.com" or len(parts) < 2:
            raise InvalidExternalId(
                f"Not a catalog URL: {candidate!r}", external_id=candidate
            )
        if kind and parts[-2] != kind:
            raise InvalidExternalId(
                f"Expected a {kind} URL, got {candidate!r}", external_id=candidate
            )
        candidate = parts[-1]

    if not is_valid_external_id(candidate):
        raise InvalidExternalId(
            f"Malformed external ID: {value!r}", external_id=str(value)
        )
    return candidate


def normalize_spotify_url(url: str | None) -> str | None:
    """Canonical form of an open.spotify.com URL, or None when unusable.

    Drops query strings (``?si=...``), locale prefixes (``/intl-de/``),
    trailing slashes and scheme/host casing.
    """
    if not url:
        return None
    parsed = urlparse(url.strip())
    if parsed.netloc.lower() != "open.spotify.com":
        return None
    parts = [p for p in parsed.path.split("/") if p and not p.startswith("intl-")]
    if len(parts) != 2 or not is_valid_external_id(parts[1]):
        return None
    return f"https://open.spotify.com/{parts[0].lower()}/{parts[1]}"


def slugify(name: str) -> str:
    """Lowercase, hyphen-separated slug for label names."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower())
    return slug.strip("-")
