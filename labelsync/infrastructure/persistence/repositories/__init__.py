"""SQLAlchemy repositories for the label catalog."""

from .artist import ArtistRepository
from .label import LabelRepository
from .release import ReleaseRepository
from .track import TrackRepository

__all__ = [
    "ArtistRepository",
    "LabelRepository",
    "ReleaseRepository",
    "TrackRepository",
]
