"""Label repository."""

from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from labelsync.domain.entities import Label
from labelsync.domain.identifiers import slugify
from labelsync.infrastructure.persistence.database.db_models import DBLabel
from labelsync.infrastructure.persistence.repositories.base_repo import BaseRepository
from labelsync.infrastructure.persistence.repositories.mappers import LabelMapper
from labelsync.infrastructure.persistence.repositories.repo_decorator import (
    db_operation,
)


class LabelRepository(BaseRepository[DBLabel, Label]):
    """Read access to the label reference set, plus idempotent seeding."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model_class=DBLabel, mapper=LabelMapper())

    @db_operation("find_label_by_name_or_slug")
    async def find_by_name_or_slug(self, value: str) -> Label | None:
        """Case-insensitive lookup by display name or slug."""
        wanted = value.strip()
        return await self.find_one_by([
            or_(
                func.lower(DBLabel.name) == wanted.lower(),
                DBLabel.slug == slugify(wanted),
                DBLabel.slug == wanted.lower(),
            )
        ])

    @db_operation("list_labels")
    async def list_labels(self) -> list[Label]:
        return await self.find_by({}, order_by=("id", True))

    @db_operation("ensure_label")
    async def ensure_label(self, name: str, slug: str | None = None) -> Label:
        """Return the label with this name, creating it if absent."""
        existing = await self.find_by_name_or_slug(slug or name)
        if existing is not None:
            return existing
        return await self.create(Label(name=name, slug=slug or slugify(name)))
