"""
Module: hvac_kernel.db.base
Responsibility: Declarative base classes for every ORM model.  Provides the
    UUID primary key convention, the type annotation map that keeps money,
    calendar days and timestamps typed the same way across all tables, and the
    TrackedBase mixin for audit timestamps.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel; ALL model files import from here.  MUST NOT import from models/,
    services/, selectors/ or domain/.

Invariants enforced:
    - UUID primary keys generated with uuid4.
    - Money is Decimal -> Numeric(18, 2).  NEVER float.  Won amounts are
      whole numbers but quote lines may carry fractional unit prices.
    - Calendar days (order date, delivery dates, install dates) are Date
      columns: no time-of-day, no timezone.  Timestamps are timezone-aware.

Failure modes:
    - IntegrityError on duplicate primary key (uuid4, effectively never).
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import Date, DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID stored as String(36) so SQLite (tests) and PostgreSQL share a schema.

    Guarantees:
        - UUID -> str on bind, str -> UUID on load.
        - cache_ok=True enables statement caching.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return PyUUID(value)


class Base(DeclarativeBase):
    """
    Declarative base for all models.

    Contract:
        Every table inherits a uuid4 ``id`` primary key, and annotated
        attributes resolve to the column types in ``type_annotation_map``.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 2),
        datetime: DateTime(timezone=True),
        date: Date(),
        PyUUID: UUIDString(),
        int: Integer,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamps and actor tracking.

    Guarantees:
        - created_at is set to server NOW() on INSERT.
        - updated_at is set on INSERT and refreshed on every UPDATE.
        - created_by_id / updated_by_id are optional: the kernel performs no
          authentication, so the caller supplies an actor when it has one.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


UUID = PyUUID
