"""Repository base classes for database operations with SQLAlchemy 2.0."""

from typing import Any, Protocol

from attrs import define
from sqlalchemy import Select, func, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from labelsync.config import get_logger
from labelsync.infrastructure.persistence.database.db_models import LabelSyncDBBase
from labelsync.infrastructure.persistence.repositories.repo_decorator import (
    db_operation,
)

logger = get_logger(__name__)


class ModelMapper[TDBModel: LabelSyncDBBase, TDomainModel](Protocol):
    """Protocol for bidirectional mapping between models."""

    @staticmethod
    async def to_domain(db_model: TDBModel) -> TDomainModel:
        """Convert database model to domain model."""
        ...

    @staticmethod
    def to_db(domain_model: TDomainModel) -> TDBModel:
        """Convert domain model to database model."""
        ...


@define(frozen=True, slots=True)
class BaseModelMapper[TDBModel: LabelSyncDBBase, TDomainModel]:
    """Base implementation of ModelMapper with collection mapping.

    Usage:
        @define(frozen=True, slots=True)
        class LabelMapper(BaseModelMapper[DBLabel, Label]):
            @staticmethod
            async def to_domain(db_model: DBLabel) -> Label:
                return Label(...)

            @staticmethod
            def to_db(domain_model: Label) -> DBLabel:
                return DBLabel(...)
    """

    @staticmethod
    async def to_domain(db_model: TDBModel) -> TDomainModel:
        raise NotImplementedError("Subclasses must implement to_domain")

    @staticmethod
    def to_db(domain_model: TDomainModel) -> TDBModel:
        raise NotImplementedError("Subclasses must implement to_db")

    @classmethod
    async def map_collection(cls, db_models: list[TDBModel]) -> list[TDomainModel]:
        """Map a collection of DB models to domain models.

        Uses cls.to_domain so the subclass implementation is called.
        """
        return [await cls.to_domain(db_model) for db_model in db_models]


class BaseRepository[TDBModel: LabelSyncDBBase, TDomainModel]:
    """Base repository for database operations."""

    def __init__(
        self,
        session: AsyncSession,
        model_class: type[TDBModel],
        mapper: ModelMapper[TDBModel, TDomainModel],
    ) -> None:
        """Initialize repository with session and model mappings."""
        self.session = session
        self.model_class = model_class
        self.mapper = mapper

    # -------------------------------------------------------------------------
    # SELECT STATEMENT BUILDERS
    # -------------------------------------------------------------------------

    def select(self, *columns: Any) -> Select[tuple[Any, ...]]:
        """Create select statement for this model."""
        return select(*columns) if columns else select(self.model_class)

    def _apply_conditions(
        self,
        stmt: Select,
        conditions: dict[str, Any] | list[ColumnElement],
    ) -> Select:
        match conditions:
            case dict():
                for field_name, value in conditions.items():
                    stmt = stmt.where(getattr(self.model_class, field_name) == value)
            case list():
                for condition in conditions:
                    stmt = stmt.where(condition)
        return stmt

    # -------------------------------------------------------------------------
    # CORE OPERATIONS
    # -------------------------------------------------------------------------

    @db_operation("get_by_id")
    async def get_by_id(self, id_: int) -> TDomainModel:
        """Get entity by ID.

        Raises:
            ValueError: If no entity has this ID.
        """
        db_entity = await self.session.get(self.model_class, id_)
        if db_entity is None:
            raise ValueError(f"{self.model_class.__name__} with ID {id_} not found")
        return await self.mapper.to_domain(db_entity)

    @db_operation("find_by")
    async def find_by(
        self,
        conditions: dict[str, Any] | list[ColumnElement],
        limit: int | None = None,
        order_by: tuple[str, bool] | None = None,
    ) -> list[TDomainModel]:
        """Find entities matching conditions."""
        stmt = self._apply_conditions(self.select(), conditions)

        if order_by:
            field_name, ascending = order_by
            column = getattr(self.model_class, field_name)
            stmt = stmt.order_by(column if ascending else column.desc())
        else:
            stmt = stmt.order_by(self.model_class.id)

        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self.session.execute(stmt)
        return await self.mapper.map_collection(list(result.scalars().all()))

    @db_operation("find_one_by")
    async def find_one_by(
        self,
        conditions: dict[str, Any] | list[ColumnElement],
    ) -> TDomainModel | None:
        """Find a single entity matching conditions or None if not found."""
        stmt = self._apply_conditions(self.select(), conditions)
        stmt = stmt.order_by(self.model_class.id).limit(1)
        result = await self.session.execute(stmt)
        db_entity = result.scalar_one_or_none()
        if db_entity is None:
            return None
        return await self.mapper.to_domain(db_entity)

    @db_operation("create")
    async def create(self, entity: TDomainModel) -> TDomainModel:
        """Create new entity and return it with its assigned ID."""
        db_entity = self.mapper.to_db(entity)
        self.session.add(db_entity)
        await self.session.flush()
        await self.session.refresh(db_entity)
        return await self.mapper.to_domain(db_entity)

    @db_operation("update_fields")
    async def update_fields(self, id_: int, values: dict[str, Any]) -> int:
        """UPDATE columns of a single row by primary key; returns rows matched."""
        if not values:
            return 0
        stmt = (
            update(self.model_class)
            .where(self.model_class.id == id_)
            .values(**values)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    @db_operation("count_entities")
    async def count_entities(
        self, conditions: dict[str, Any] | list[ColumnElement] | None = None
    ) -> int:
        """Count entities matching the given conditions."""
        stmt = select(func.count()).select_from(self.model_class)
        if conditions:
            stmt = self._apply_conditions(stmt, conditions)
        count = await self.session.scalar(stmt)
        return count or 0

    async def insert_ignore(
        self,
        model_class: type[LabelSyncDBBase],
        values: dict[str, Any],
        conflict_columns: list[str],
    ) -> bool:
        """INSERT ... ON CONFLICT DO NOTHING; True if a row was inserted.

        Join-table writes go through here so re-running a sync never
        duplicates a link.
        """
        dialect = self.session.bind.dialect.name if self.session.bind else "sqlite"
        insert_fn = postgresql_insert if dialect == "postgresql" else sqlite_insert

        stmt = (
            insert_fn(model_class)
            .values(**values)
            .on_conflict_do_nothing(index_elements=conflict_columns)
        )
        result = await self.session.execute(stmt)
        return bool(result.rowcount)
