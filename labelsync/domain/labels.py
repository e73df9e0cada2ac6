"""Label reference data and deterministic label classification.

One canonical keyword table replaces the overlapping lists that used to be
copied between correction scripts. Classification is a pure function: the
same release and table always produce the same answer, and anything that is
not a unique best match comes back as ``UNKNOWN`` for an operator to decide.
"""

from collections.abc import Iterable, Mapping
import re
import unicodedata
from typing import Final

from attrs import define

from labelsync.domain.identifiers import slugify


@define(frozen=True, slots=True)
class KnownLabel:
    """Seed row for the labels table."""

    name: str
    slug: str


KNOWN_LABELS: Final[tuple[KnownLabel, ...]] = (
    KnownLabel("Build It Records", "buildit-records"),
    KnownLabel("Build It Deep", "buildit-deep"),
    KnownLabel("Build It Tech", "buildit-tech"),
)

UNKNOWN: Final = "unknown"

# label slug -> keywords matched as whole words
DEFAULT_KEYWORD_TABLE: Final[Mapping[str, tuple[str, ...]]] = {
    "buildit-deep": (
        "deep",
        "deep house",
        "melodic",
        "chill",
        "lounge",
        "ambient",
        "soul",
        "soulful",
        "groove",
        "organic",
        "jazz",
        "vocal",
        "afro",
        "dub",
    ),
    "buildit-tech": (
        "tech",
        "tech house",
        "techno",
        "edm",
        "electronic",
        "bass",
        "beat",
        "minimal",
        "industrial",
    ),
    "buildit-records": (
        "pop",
        "rock",
        "indie",
        "hip hop",
        "rap",
        "r&b",
        "acoustic",
        "singer-songwriter",
    ),
}


def normalize_text(value: str) -> str:
    """Casefold, strip accents and collapse everything but word chars to spaces."""
    decomposed = unicodedata.normalize("NFKD", value)
    ascii_only = "".join(c for c in decomposed if not unicodedata.combining(c))
    cleaned = re.sub(r"[^\w&]+", " ", ascii_only.casefold())
    return " ".join(cleaned.replace("_", " ").split())


def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    words = normalize_text(keyword).split()
    return re.compile(r"(?<![\w&])" + r"\s+".join(map(re.escape, words)) + r"(?![\w&])")


def score_labels(
    texts: Iterable[str], keyword_table: Mapping[str, Iterable[str]]
) -> dict[str, int]:
    """Count keyword hits per label across the given texts."""
    haystack = " | ".join(normalize_text(t) for t in texts if t)
    scores: dict[str, int] = {}
    for label_slug, keywords in keyword_table.items():
        hits = sum(1 for kw in keywords if _keyword_pattern(kw).search(haystack))
        scores[label_slug] = hits
    return scores


def classify_by_rule(
    title: str,
    artist_names: Iterable[str] = (),
    genres: Iterable[str] = (),
    keyword_table: Mapping[str, Iterable[str]] = DEFAULT_KEYWORD_TABLE,
) -> str:
    """Return the label slug with the unique highest keyword score, else UNKNOWN.

    Example:
        >>> classify_by_rule("Deep Waters (Melodic Mix)")
        'buildit-deep'
        >>> classify_by_rule("Deep Techno")
        'unknown'
    """
    scores = score_labels([title, *artist_names, *genres], keyword_table)
    if not scores:
        return UNKNOWN

    best = max(scores.values())
    if best == 0:
        return UNKNOWN

    winners = [slug for slug, score in scores.items() if score == best]
    return winners[0] if len(winners) == 1 else UNKNOWN


def match_label_name(
    catalog_label: str | None, labels_by_slug: Mapping[str, str]
) -> str | None:
    """Map a catalog-reported label string onto a local label slug.

    Matches on slug equality after normalization, so "BUILD IT DEEP",
    "Build It Deep" and "build-it deep" all map to the same label. The
    catalog sometimes reports "Build It Records" for everything; that still
    maps, because it is the catalog's authoritative answer for the release.

    Args:
        catalog_label: Label string from the album payload
        labels_by_slug: slug -> display name of local labels
    """
    if not catalog_label:
        return None
    wanted = slugify(normalize_text(catalog_label))
    for slug, name in labels_by_slug.items():
        if wanted in {slug, slugify(name)}:
            return slug
    return None
