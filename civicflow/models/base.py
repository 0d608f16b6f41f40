"""Base model for SQLAlchemy."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Integer
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )


class BaseModel(Base, TimestampMixin):
    """Base model with ID and timestamps."""

    __abstract__ = True

    # Server-side timestamps are fetched at flush time; async sessions cannot lazy load
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)


def enum_column(enum_cls: type[Enum], name: str) -> SQLEnum:
    """Enum column type stored by value under a named database type."""
    return SQLEnum(
        enum_cls,
        values_callable=lambda x: [e.value for e in x],
        name=name,
        validate_strings=True,
    )
