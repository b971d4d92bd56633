"""
Module: hvac_kernel.models.prepurchase
Responsibility: ORM persistence for prepurchase units (equipment bought ahead
    of a confirmed site) and the usage records that consume them.
Architecture position: Kernel > Models.  Imports db/base.py only.

Invariants enforced:
    - ``used_quantity`` equals the sum of the unit's usage records.  It is a
      cached aggregate: PrepurchaseLedger recomputes it from the records on
      every mutation and never increments it on its own.
    - Usage records are owned children, deleted with their unit.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hvac_kernel.db.base import TrackedBase, UUIDString


class PrepurchaseUnit(TrackedBase):
    """Equipment purchased in advance, tracked by quantity."""

    __tablename__ = "prepurchase_units"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_prepurchase_quantity"),
        CheckConstraint("used_quantity >= 0", name="ck_prepurchase_used_quantity"),
        Index("idx_prepurchase_settlement_month", "settlement_month"),
    )

    affiliate: Mapped[str | None] = mapped_column(String(100), nullable=True)
    model_name: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[int] = mapped_column(nullable=False)

    # Cached sum of usages.used_quantity
    used_quantity: Mapped[int] = mapped_column(default=0, nullable=False)

    settlement_month: Mapped[str | None] = mapped_column(String(7), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    usages: Mapped[list[PrepurchaseUsage]] = relationship(
        back_populates="unit",
        cascade="all, delete-orphan",
        order_by="PrepurchaseUsage.created_at",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<PrepurchaseUnit {self.model_name} "
            f"{self.used_quantity}/{self.quantity}>"
        )


class PrepurchaseUsage(TrackedBase):
    """One consumption of a prepurchase unit at a named site."""

    __tablename__ = "prepurchase_usages"

    __table_args__ = (
        CheckConstraint("used_quantity > 0", name="ck_usage_quantity_positive"),
        Index("idx_usage_prepurchase", "prepurchase_id"),
    )

    prepurchase_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("prepurchase_units.id", ondelete="CASCADE"),
        nullable=False,
    )

    affiliate: Mapped[str | None] = mapped_column(String(100), nullable=True)
    site_name: Mapped[str] = mapped_column(String(200), nullable=False)
    used_quantity: Mapped[int] = mapped_column(nullable=False)
    used_date: Mapped[date | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    unit: Mapped[PrepurchaseUnit] = relationship(back_populates="usages")
