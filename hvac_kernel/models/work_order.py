"""
Module: hvac_kernel.models.work_order
Responsibility: ORM persistence for work orders and the rows they own:
    work items, equipment (delivery) items, customer quote lines and internal
    installation cost lines.
Architecture position: Kernel > Models.  Imports db/base.py and the domain
    enumerations only.  MUST NOT import from services/ or selectors/.

Invariants enforced:
    - A work order owns its children: deleting the order deletes its work
      items, equipment items, quote lines and installation cost lines
      (cascade="all, delete-orphan").
    - ``status`` is the only stored lifecycle flag.  Delivery stage per
      equipment item, schedule stage and urgency are NOT columns; they are
      derived by hvac_engines.status on every read.
    - ``delivery_status`` only ever holds an explicit operator marker
      (``delivered``) or the value last set alongside the supplier order
      number; the effective order-level delivery stage is derived.
    - ``work_items.stored_unit_id`` is a weak reference to a stored unit
      (indexed, no foreign key): deleting an order never deletes a unit.

Failure modes:
    - IntegrityError on duplicate document_number (uq_work_order_document).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hvac_kernel.db.base import Base, TrackedBase, UUIDString
from hvac_kernel.domain.values import (
    InstallerSettlementStatus,
    OrderDeliveryStage,
    QuoteCategory,
    ReviewStatus,
    WorkOrderStatus,
    WorkType,
)


class WorkOrder(TrackedBase):
    """
    One installation/removal job for a customer site.

    Contract:
        Two settlement tracks live on the same row and must not be confused:
        the order ``status`` (ordering-company settlement ends in
        ``settled``) and ``installer_settlement_status`` (installer payout).

    Non-goals:
        - No transition validation at the ORM level; WorkOrderService and
          SettlementService own the state machines.
    """

    __tablename__ = "work_orders"

    __table_args__ = (
        UniqueConstraint("document_number", name="uq_work_order_document"),
        Index("idx_work_order_status", "status"),
        Index("idx_work_order_installer_settlement", "installer_settlement_status"),
        Index("idx_work_order_settlement_month", "settlement_month"),
    )

    # Human-facing document number (nullable: assigned by the caller)
    document_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    status: Mapped[WorkOrderStatus] = mapped_column(
        String(20),
        nullable=False,
        default=WorkOrderStatus.RECEIVED,
    )

    # Organizational tier
    affiliate: Mapped[str | None] = mapped_column(String(100), nullable=True)
    business_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Site and contact
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    contact_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Calendar days
    order_date: Mapped[date | None] = mapped_column(nullable=True)
    requested_install_date: Mapped[date | None] = mapped_column(nullable=True)
    install_schedule_date: Mapped[date | None] = mapped_column(nullable=True)
    install_complete_date: Mapped[date | None] = mapped_column(nullable=True)

    install_memo: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Order-level delivery
    supplier_order_number: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )
    delivery_status: Mapped[OrderDeliveryStage | None] = mapped_column(
        String(20), nullable=True
    )
    requested_delivery_date: Mapped[date | None] = mapped_column(nullable=True)
    confirmed_delivery_date: Mapped[date | None] = mapped_column(nullable=True)

    # Installer settlement track; NULL reads as unsettled
    installer_settlement_status: Mapped[InstallerSettlementStatus | None] = (
        mapped_column(String(20), nullable=True)
    )
    installer_settlement_month: Mapped[str | None] = mapped_column(
        String(7), nullable=True
    )

    # Ordering-company settlement track
    settlement_month: Mapped[str | None] = mapped_column(String(7), nullable=True)
    settlement_date: Mapped[date | None] = mapped_column(nullable=True)

    # Pre-settlement sign-off per party; NULL reads as pending
    operator_review_status: Mapped[ReviewStatus | None] = mapped_column(
        String(20), nullable=True
    )
    ordering_company_review_status: Mapped[ReviewStatus | None] = mapped_column(
        String(20), nullable=True
    )
    corporate_profit: Mapped[Decimal | None] = mapped_column(nullable=True)

    # Cancellation
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Customer quote header (lines live in quote_items)
    has_quote: Mapped[bool] = mapped_column(default=False, nullable=False)
    equipment_rounding: Mapped[Decimal] = mapped_column(
        default=Decimal("0"), nullable=False
    )
    installation_rounding: Mapped[Decimal] = mapped_column(
        default=Decimal("0"), nullable=False
    )
    quote_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Owned children
    work_items: Mapped[list[WorkItem]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="WorkItem.position",
        lazy="selectin",
    )
    equipment_items: Mapped[list[EquipmentItem]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="EquipmentItem.position",
        lazy="selectin",
    )
    quote_items: Mapped[list[QuoteItem]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="QuoteItem.position",
        lazy="selectin",
    )
    installation_cost_items: Mapped[list[InstallationCostItem]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="InstallationCostItem.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<WorkOrder {self.document_number or self.id} status={self.status}>"


class WorkItem(Base):
    """One line of work within an order."""

    __tablename__ = "work_items"

    __table_args__ = (
        Index("idx_work_item_order", "order_id"),
        Index("idx_work_item_stored_unit", "stored_unit_id"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("work_orders.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Display order within the work order
    position: Mapped[int] = mapped_column(default=0, nullable=False)

    work_type: Mapped[WorkType] = mapped_column(String(30), nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    size: Mapped[str | None] = mapped_column(String(50), nullable=True)
    quantity: Mapped[int] = mapped_column(default=1, nullable=False)

    # Reinstall-from-stock only: the reserved unit (weak reference)
    stored_unit_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Remove-store only: the unit registered on installation completion
    registered_unit_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True
    )

    order: Mapped[WorkOrder] = relationship(back_populates="work_items")


class EquipmentItem(Base):
    """One physical delivery line (component) of an order."""

    __tablename__ = "equipment_items"

    __table_args__ = (Index("idx_equipment_item_order", "order_id"),)

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("work_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(default=0, nullable=False)

    component_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    model_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    supplier: Mapped[str | None] = mapped_column(String(100), nullable=True)
    order_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    order_date: Mapped[date | None] = mapped_column(nullable=True)
    requested_delivery_date: Mapped[date | None] = mapped_column(nullable=True)
    scheduled_delivery_date: Mapped[date | None] = mapped_column(nullable=True)
    confirmed_delivery_date: Mapped[date | None] = mapped_column(nullable=True)

    quantity: Mapped[int] = mapped_column(default=1, nullable=False)
    unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    # quantity x unit_price, computed by the service on write
    total_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    warehouse_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    order: Mapped[WorkOrder] = relationship(back_populates="equipment_items")


class QuoteItem(Base):
    """Customer-facing quote line."""

    __tablename__ = "quote_items"

    __table_args__ = (Index("idx_quote_item_order", "order_id"),)

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("work_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(default=0, nullable=False)

    category: Mapped[QuoteCategory] = mapped_column(String(20), nullable=False)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    quantity: Mapped[int] = mapped_column(default=1, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    total_price: Mapped[Decimal] = mapped_column(nullable=False)

    order: Mapped[WorkOrder] = relationship(back_populates="quote_items")


class InstallationCostItem(Base):
    """Internal installation cost line."""

    __tablename__ = "installation_cost_items"

    __table_args__ = (Index("idx_installation_cost_order", "order_id"),)

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("work_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(default=0, nullable=False)

    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(default=1, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    total_price: Mapped[Decimal] = mapped_column(nullable=False)

    order: Mapped[WorkOrder] = relationship(back_populates="installation_cost_items")
