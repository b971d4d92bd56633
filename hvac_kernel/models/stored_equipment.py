"""
Module: hvac_kernel.models.stored_equipment
Responsibility: ORM persistence for stored-equipment units: physical units
    removed from a prior site and held in a warehouse pending reuse or
    disposal.
Architecture position: Kernel > Models.  Imports db/base.py and the domain
    enumerations only.

Invariants enforced:
    - ``status`` is one of stored / requested / released.  Transitions are
      enforced by ReservationLedger, with the stored -> requested step done
      as a conditional UPDATE keyed on ``status = 'stored'``.
    - The unit holds no pointer to the order that reserved it.  The
      reservation is the reinstall-from-stock work item whose
      ``stored_unit_id`` names this unit; it is found by query.
    - Release fields are all set together on release and all cleared on
      revert.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hvac_kernel.db.base import TrackedBase, UUIDString
from hvac_kernel.domain.values import ReleaseType, StoredUnitStatus


class StoredEquipmentUnit(TrackedBase):
    """
    A removed unit in warehouse custody.

    Contract:
        Created when a remove-store work item is completed (or registered
        directly by warehouse staff).  ``source_order_id`` records the
        removal order for provenance only; it is not ownership.
    """

    __tablename__ = "stored_equipment_units"

    __table_args__ = (
        Index("idx_stored_unit_status", "status"),
        Index("idx_stored_unit_warehouse", "warehouse_id"),
        Index("idx_stored_unit_source_item", "source_work_item_id"),
    )

    status: Mapped[StoredUnitStatus] = mapped_column(
        String(20),
        nullable=False,
        default=StoredUnitStatus.STORED,
    )

    # Provenance
    site_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    affiliate: Mapped[str | None] = mapped_column(String(100), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    source_order_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    source_work_item_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True
    )

    # What the unit is
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    size: Mapped[str | None] = mapped_column(String(50), nullable=True)
    quantity: Mapped[int] = mapped_column(default=1, nullable=False)
    manufacturer: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # Free text: nameplates often carry only a year or year-month
    manufacturing_date: Mapped[str | None] = mapped_column(String(20), nullable=True)
    removal_date: Mapped[date | None] = mapped_column(nullable=True)

    warehouse_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Release metadata, set together on release and cleared together on revert
    release_type: Mapped[ReleaseType | None] = mapped_column(String(20), nullable=True)
    release_date: Mapped[date | None] = mapped_column(nullable=True)
    release_destination: Mapped[str | None] = mapped_column(
        String(500), nullable=True
    )
    release_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<StoredEquipmentUnit {self.id} {self.model} status={self.status}>"
