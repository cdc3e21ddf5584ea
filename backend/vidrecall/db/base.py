"""
Database Base Classes

All ORM models inherit from ``Base``. Constraint names follow a fixed
convention so Alembic autogenerate produces stable, readable names:

- ix_content_embeddings_video_id: Index on 'content_embeddings.video_id'
- uq_content_embeddings_owner_key: Unique constraint
- pk_search_history: Primary key
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, registry


convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

orm_registry = registry(metadata=metadata)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    registry = orm_registry
    metadata = metadata

    __tablename__: str


class CommonTableAttributes:
    """
    Mixin providing the primary key and creation timestamp.

    Rows in this project are append-only (chunks are deleted and recreated,
    never updated), so there is no ``updated_at`` column.
    """

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True,
        comment="Auto-incrementing primary key"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="Timestamp when record was created (UTC)"
    )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id})"

    def dict(self) -> dict[str, Any]:
        """Convert model instance to dictionary."""
        return {
            column.name: getattr(self, column.name)
            for column in self.__table__.columns
        }


class BaseModel(Base, CommonTableAttributes):
    """Ready-to-use base class for application models."""

    __abstract__ = True
