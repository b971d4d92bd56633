"""
DTOs -- Immutable snapshots of work order domain entities.

Responsibility:
    Frozen dataclasses that cross the boundary between the persistence layer
    and everything above it.  Engines accept only these snapshots (never ORM
    rows), services return them, selectors build views from them.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ORM -> DTO conversion lives in the
    persistence store, never here.

Invariants enforced:
    - Snapshots are frozen; collections are tuples.
    - ``PrepurchaseUnitInfo.remaining`` is derived from ``quantity`` and
      ``used_quantity`` and floored at zero; it is never stored.

Data flow:
    ORM row -> SqlAlchemyStore -> *Info -> hvac_engines / selectors / callers
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from hvac_kernel.domain.values import (
    InstallerSettlementStatus,
    InventoryEventStatus,
    InventoryEventType,
    OrderDeliveryStage,
    OutcomeStatus,
    QuoteCategory,
    ReleaseType,
    Reviewer,
    ReviewStatus,
    StoredUnitStatus,
    WorkOrderStatus,
    WorkType,
)

_ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Work orders
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkItemInfo:
    """One line of a work order.

    ``stored_unit_id`` is set only for reinstall-from-stock items and is a
    weak reference: the unit is looked up, never owned.
    ``registered_unit_id`` is set on remove-store items once the removed
    unit has been registered in the warehouse.
    """

    work_type: WorkType
    category: str | None = None
    model: str | None = None
    size: str | None = None
    quantity: int = 1
    stored_unit_id: UUID | None = None
    registered_unit_id: UUID | None = None
    id: UUID | None = None


@dataclass(frozen=True)
class EquipmentItemInfo:
    """One physical delivery line.  No status is stored; see hvac_engines.status."""

    component_name: str | None = None
    model_name: str | None = None
    supplier: str | None = None
    order_number: str | None = None
    order_date: date | None = None
    requested_delivery_date: date | None = None
    scheduled_delivery_date: date | None = None
    confirmed_delivery_date: date | None = None
    quantity: int = 1
    unit_price: Decimal | None = None
    total_price: Decimal | None = None
    warehouse_id: str | None = None
    id: UUID | None = None


@dataclass(frozen=True)
class QuoteItemInfo:
    """Customer-facing quote line."""

    category: QuoteCategory
    item_name: str
    quantity: int = 1
    unit_price: Decimal = _ZERO
    total_price: Decimal = _ZERO
    description: str | None = None


@dataclass(frozen=True)
class CustomerQuoteInfo:
    """Quote shown to the ordering company.

    The rounding fields are the amounts the sales side knocked off each
    subtotal ("cut the odd won").
    """

    items: tuple[QuoteItemInfo, ...] = ()
    equipment_rounding: Decimal = _ZERO
    installation_rounding: Decimal = _ZERO
    notes: str | None = None

    @property
    def equipment_items(self) -> tuple[QuoteItemInfo, ...]:
        return tuple(i for i in self.items if i.category == QuoteCategory.EQUIPMENT)

    @property
    def installation_items(self) -> tuple[QuoteItemInfo, ...]:
        return tuple(
            i for i in self.items if i.category == QuoteCategory.INSTALLATION
        )


@dataclass(frozen=True)
class InstallationCostItemInfo:
    """Internal installation cost line (what the installer is paid)."""

    item_name: str
    quantity: int = 1
    unit_price: Decimal = _ZERO
    total_price: Decimal = _ZERO


@dataclass(frozen=True)
class WorkOrderInfo:
    """Immutable snapshot of a work order and everything it owns."""

    status: WorkOrderStatus = WorkOrderStatus.RECEIVED
    document_number: str | None = None
    affiliate: str | None = None
    business_name: str | None = None
    address: str | None = None
    contact_name: str | None = None
    contact_phone: str | None = None
    order_date: date | None = None
    requested_install_date: date | None = None
    install_schedule_date: date | None = None
    install_complete_date: date | None = None
    install_memo: str | None = None
    work_items: tuple[WorkItemInfo, ...] = ()
    equipment_items: tuple[EquipmentItemInfo, ...] = ()
    # Order-level delivery
    supplier_order_number: str | None = None
    delivery_status: OrderDeliveryStage | None = None
    requested_delivery_date: date | None = None
    confirmed_delivery_date: date | None = None
    # Installer settlement track
    installer_settlement_status: InstallerSettlementStatus | None = None
    installer_settlement_month: str | None = None
    # Ordering-company settlement track
    settlement_month: str | None = None
    settlement_date: date | None = None
    # Pre-settlement sign-off; unset reads as pending
    operator_review_status: ReviewStatus | None = None
    ordering_company_review_status: ReviewStatus | None = None
    # Replaces the computed profit uplift in billing when set
    corporate_profit: Decimal | None = None
    cancel_reason: str | None = None
    cancelled_at: datetime | None = None
    quote: CustomerQuoteInfo | None = None
    installation_costs: tuple[InstallationCostItemInfo, ...] = ()
    notes: str | None = None
    id: UUID | None = None

    @property
    def effective_installer_settlement_status(self) -> InstallerSettlementStatus:
        """Unset installer settlement reads as unsettled."""
        return self.installer_settlement_status or InstallerSettlementStatus.UNSETTLED

    def has_work_type(self, work_type: WorkType) -> bool:
        return any(item.work_type == work_type for item in self.work_items)

    def review_status(self, reviewer: Reviewer) -> ReviewStatus:
        if reviewer == Reviewer.OPERATOR:
            status = self.operator_review_status
        else:
            status = self.ordering_company_review_status
        return status or ReviewStatus.PENDING


# ---------------------------------------------------------------------------
# Warehouse
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReleaseInfo:
    """Release metadata recorded when a unit leaves warehouse custody."""

    release_type: ReleaseType
    release_date: date
    destination: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class StoredUnitInfo:
    """Immutable snapshot of a stored-equipment unit."""

    id: UUID
    status: StoredUnitStatus
    site_name: str | None = None
    affiliate: str | None = None
    address: str | None = None
    category: str | None = None
    model: str | None = None
    size: str | None = None
    quantity: int = 1
    manufacturer: str | None = None
    manufacturing_date: str | None = None
    removal_date: date | None = None
    warehouse_id: str | None = None
    source_order_id: UUID | None = None
    source_work_item_id: UUID | None = None
    release_type: ReleaseType | None = None
    release_date: date | None = None
    release_destination: str | None = None
    release_notes: str | None = None
    notes: str | None = None

    @property
    def release(self) -> ReleaseInfo | None:
        if self.release_type is None or self.release_date is None:
            return None
        return ReleaseInfo(
            release_type=self.release_type,
            release_date=self.release_date,
            destination=self.release_destination,
            notes=self.release_notes,
        )


@dataclass(frozen=True)
class InventoryEventInfo:
    """Equipment idle in a warehouse with no order to go to.

    Cancellation events point at the delivered equipment line of the
    cancelled order; staff-entered events describe the equipment directly.
    """

    id: UUID
    event_type: InventoryEventType
    status: InventoryEventStatus = InventoryEventStatus.ACTIVE
    equipment_item_id: UUID | None = None
    source_order_id: UUID | None = None
    source_warehouse_id: str | None = None
    target_order_id: UUID | None = None
    model_name: str | None = None
    category: str | None = None
    quantity: int = 1
    site_name: str | None = None
    event_date: date | None = None
    resolved_date: date | None = None
    notes: str | None = None


# ---------------------------------------------------------------------------
# Prepurchase
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PrepurchaseUnitInfo:
    id: UUID
    model_name: str
    quantity: int
    used_quantity: int = 0
    affiliate: str | None = None
    settlement_month: str | None = None
    notes: str | None = None

    @property
    def remaining(self) -> int:
        return max(0, self.quantity - self.used_quantity)


@dataclass(frozen=True)
class UsageRecordInfo:
    id: UUID
    prepurchase_id: UUID
    site_name: str
    used_quantity: int
    used_date: date | None = None
    affiliate: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class UsageOutcome:
    """Result of a prepurchase usage mutation.

    ``drift_detected`` is True when the stored aggregate disagreed with the
    usage records before the mutation (it has been corrected).
    ``over_allocated_quantity`` is how far usage exceeds the purchased
    quantity; zero in the normal case.
    """

    unit: PrepurchaseUnitInfo
    usage: UsageRecordInfo | None
    drift_detected: bool = False
    over_allocated_quantity: int = 0


@dataclass(frozen=True)
class ReconcileResult:
    unit: PrepurchaseUnitInfo
    stored_used_quantity: int
    recorded_used_quantity: int

    @property
    def drift(self) -> int:
        return self.stored_used_quantity - self.recorded_used_quantity

    @property
    def drift_detected(self) -> bool:
        return self.drift != 0


# ---------------------------------------------------------------------------
# Batch results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BatchItemOutcome:
    order_id: UUID
    status: OutcomeStatus
    previous_state: str | None = None
    new_state: str | None = None
    error_code: str | None = None
    message: str | None = None

    @property
    def is_failure(self) -> bool:
        return self.status == OutcomeStatus.FAILED


@dataclass(frozen=True)
class BatchResult:
    """Per-order report of a batch operation; one failure never hides the rest."""

    batch_id: UUID
    target: str
    outcomes: tuple[BatchItemOutcome, ...] = field(default_factory=tuple)

    @property
    def succeeded(self) -> tuple[BatchItemOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status == OutcomeStatus.SUCCEEDED)

    @property
    def unchanged(self) -> tuple[BatchItemOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status == OutcomeStatus.UNCHANGED)

    @property
    def failed(self) -> tuple[BatchItemOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status == OutcomeStatus.FAILED)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    def outcome_for(self, order_id: UUID) -> BatchItemOutcome | None:
        for outcome in self.outcomes:
            if outcome.order_id == order_id:
                return outcome
        return None
