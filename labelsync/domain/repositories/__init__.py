"""Domain repository interfaces."""

from .interfaces import (
    ArtistRepositoryProtocol,
    CatalogClientProtocol,
    LabelRepositoryProtocol,
    ReleaseRepositoryProtocol,
    TrackRepositoryProtocol,
    UnitOfWorkProtocol,
)

__all__ = [
    "ArtistRepositoryProtocol",
    "CatalogClientProtocol",
    "LabelRepositoryProtocol",
    "ReleaseRepositoryProtocol",
    "TrackRepositoryProtocol",
    "UnitOfWorkProtocol",
]
