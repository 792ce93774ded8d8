"""
SQLAlchemy declarative base and common model mixins.

This module provides the SQLAlchemy DeclarativeBase, common mixins for
timestamps, UUIDs and audit columns, and the append-only guard used by the
history ledgers. Column types are dialect-neutral so the models run on
PostgreSQL in production and on SQLite in tests.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional, TypeVar

from sqlalchemy import JSON, DateTime, String, Uuid, event, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

from solar_marketplace.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=type)

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Return the current timezone-aware UTC time."""
    return datetime.now(timezone.utc)


class Base(AsyncAttrs, DeclarativeBase):
    """
    Base class for all SQLAlchemy models with async support.

    Provides async attribute loading and a primary-key based repr.
    """

    __abstract__ = True

    def __repr__(self) -> str:
        pk_values = []
        for column in self.__table__.primary_key.columns:
            value = getattr(self, column.name, None)
            if value is not None:
                pk_values.append(f"{column.name}={value!r}")

        pk_str = ", ".join(pk_values) if pk_values else "no primary key"
        return f"<{self.__class__.__name__}({pk_str})>"


class UUIDMixin:
    """Mixin for a client-generated UUID primary key."""

    @declared_attr
    def id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid(as_uuid=True),
            primary_key=True,
            default=uuid.uuid4,
            nullable=False,
            comment="Unique identifier for the record",
        )


class CreatedAtMixin:
    """
    Mixin for an insert timestamp.

    The value is assigned in Python so it is available on the instance
    right after flush without a refresh round-trip.
    """

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            server_default=func.now(),
            comment="Timestamp when record was created",
        )


class TimestampMixin(CreatedAtMixin):
    """Mixin adding an update timestamp on top of created_at."""

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            onupdate=utcnow,
            server_default=func.now(),
            comment="Timestamp when record was last updated",
        )


class AuditMixin(TimestampMixin):
    """
    Mixin for audit trail functionality.

    Extends TimestampMixin with created_by and updated_by columns
    for tracking which principal performed the operation.
    """

    @declared_attr
    def created_by(cls) -> Mapped[Optional[str]]:
        return mapped_column(
            String(255),
            nullable=True,
            comment="Principal ID who created the record",
        )

    @declared_attr
    def updated_by(cls) -> Mapped[Optional[str]]:
        return mapped_column(
            String(255),
            nullable=True,
            comment="Principal ID who last updated the record",
        )


class AuditedModel(Base, UUIDMixin, AuditMixin):
    """
    Base model with UUID, timestamps, and audit fields.

    Example:
        class Order(AuditedModel):
            __tablename__ = "orders"

            order_number: Mapped[str] = mapped_column(String(32), unique=True)
    """

    __abstract__ = True


class LedgerModel(Base, UUIDMixin, CreatedAtMixin):
    """Base model for append-only history rows."""

    __abstract__ = True


class AppendOnlyViolationError(RuntimeError):
    """Raised when code attempts to modify or delete a ledger row."""


def append_only(cls: T) -> T:
    """
    Class decorator refusing ORM updates and deletes of ledger rows.

    Example:
        @append_only
        class OrderStatusHistory(LedgerModel):
            __tablename__ = "order_status_history"
    """

    def _reject(mapper: Any, connection: Any, target: Any) -> None:
        logger.error(
            "Attempted to mutate append-only row",
            model=type(target).__name__,
            record_id=str(getattr(target, "id", None)),
        )
        raise AppendOnlyViolationError(
            f"{type(target).__name__} rows are append-only"
        )

    event.listen(cls, "before_update", _reject)
    event.listen(cls, "before_delete", _reject)
    return cls
