"""
Module: hvac_kernel.models.inventory_event
Responsibility: ORM persistence for idle-inventory events: equipment sitting
    in a warehouse with no order to go to, either because its order was
    cancelled after delivery or because warehouse staff entered it.
Architecture position: Kernel > Models.  Imports db/base.py and the domain
    enumerations only.

Invariants enforced:
    - Order and equipment references are weak (indexed, no foreign key), as
      for stored units.  Deleting an order deletes the events that mention
      it through WorkOrderService, never through the database.
    - ``resolved_date`` is set exactly when ``status`` is ``resolved``.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hvac_kernel.db.base import TrackedBase, UUIDString
from hvac_kernel.domain.values import InventoryEventStatus, InventoryEventType


class InventoryEvent(TrackedBase):
    """One idle piece of equipment awaiting a new destination."""

    __tablename__ = "inventory_events"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_inventory_event_quantity"),
        Index("idx_inventory_event_status", "status"),
        Index("idx_inventory_event_source_order", "source_order_id"),
        Index("idx_inventory_event_target_order", "target_order_id"),
    )

    event_type: Mapped[InventoryEventType] = mapped_column(String(20), nullable=False)
    status: Mapped[InventoryEventStatus] = mapped_column(
        String(20),
        nullable=False,
        default=InventoryEventStatus.ACTIVE,
    )

    equipment_item_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    source_order_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    source_warehouse_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    target_order_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Description for staff-entered events
    model_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    quantity: Mapped[int] = mapped_column(default=1, nullable=False)
    site_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    event_date: Mapped[date | None] = mapped_column(nullable=True)
    resolved_date: Mapped[date | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<InventoryEvent {self.event_type} {self.status}>"
