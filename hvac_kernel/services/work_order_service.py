"""
WorkOrderService -- lifecycle mutations of a work order.

Responsibility:
    Intake, work item edits, delivery and installation milestones, review
    marks, the corporate profit override, cancellation and deletion.  Keeps
    reinstall-from-stock items and the stored units they reserve consistent
    by routing every such item through the ReservationLedger.

Architecture position:
    Kernel > Services -- imperative shell.  Owns a ReservationLedger that
    shares its session, store and clock, and an InventoryEventLedger.

Invariants enforced:
    - ``status`` moves among received / in-progress / completed by operator
      action only; ``settled`` is reached through SettlementService and
      ``cancelled`` through cancel_work_order.  Terminal orders reject edits.
    - Adding a reinstall-from-stock item reserves its unit; removing the
      item, cancelling the order or deleting the order frees it.
    - Deleting an order deletes its owned rows and the inventory events that
      name it, never a stored unit.
    - Cancelling an order records one idle-inventory event per delivered
      equipment line, in the same transaction as the cancellation.
    - Completing installation registers one stored unit per remove-store
      item that has not registered one yet.
    - Reservation conflicts are detected before anything is written.

Failure modes:
    - NotFoundError, ValidationError, InvalidStateError,
      UnitAlreadyReservedError (from the ledger).
"""

from collections.abc import Sequence
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from hvac_kernel.db.store import PersistenceStore
from hvac_kernel.domain.calendar import as_calendar_day, is_blank
from hvac_kernel.domain.clock import Clock
from hvac_kernel.domain.dtos import (
    CustomerQuoteInfo,
    EquipmentItemInfo,
    InstallationCostItemInfo,
    QuoteItemInfo,
    WorkItemInfo,
    WorkOrderInfo,
)
from hvac_kernel.domain.values import (
    MANUAL_ORDER_STATUSES,
    TERMINAL_ORDER_STATUSES,
    OrderDeliveryStage,
    Reviewer,
    ReviewStatus,
    WorkOrderStatus,
    WorkType,
)
from hvac_kernel.exceptions import InvalidStateError, NotFoundError, ValidationError
from hvac_kernel.logging_config import LogContext, get_logger
from hvac_kernel.services.base import BaseService
from hvac_kernel.services.inventory_ledger import InventoryEventLedger
from hvac_kernel.services.reservation_ledger import ReservationLedger

logger = get_logger("services.work_order")

_ZERO = Decimal("0")

# Descriptive fields update_details may change
_DETAIL_FIELDS = frozenset(
    {
        "document_number",
        "affiliate",
        "business_name",
        "address",
        "contact_name",
        "contact_phone",
        "order_date",
        "requested_install_date",
        "install_memo",
        "notes",
    }
)
_DATE_FIELDS = frozenset({"order_date", "requested_install_date"})


class WorkOrderService(BaseService):
    """
    Service for the work order lifecycle.

    Contract:
        Every method returns the fresh WorkOrderInfo snapshot after the
        change, or raises before writing.

    Non-goals:
        - No derived stage is stored; see hvac_engines.status.
        - Does NOT commit.
    """

    def __init__(
        self,
        session: Session,
        store: PersistenceStore | None = None,
        clock: Clock | None = None,
        actor_id: UUID | None = None,
        ledger: ReservationLedger | None = None,
        inventory: InventoryEventLedger | None = None,
    ):
        super().__init__(session, store=store, clock=clock, actor_id=actor_id)
        self.ledger = ledger or ReservationLedger(
            session, store=self.store, clock=self.clock, actor_id=actor_id
        )
        self.inventory = inventory or InventoryEventLedger(
            session, store=self.store, clock=self.clock, actor_id=actor_id
        )

    # =========================================================================
    # Intake and lookup
    # =========================================================================

    def create_work_order(
        self,
        *,
        affiliate: str | None = None,
        business_name: str | None = None,
        address: str | None = None,
        document_number: str | None = None,
        contact_name: str | None = None,
        contact_phone: str | None = None,
        order_date: date | None = None,
        requested_install_date: date | None = None,
        work_items: Sequence[WorkItemInfo] = (),
        equipment_items: Sequence[EquipmentItemInfo] = (),
        notes: str | None = None,
    ) -> WorkOrderInfo:
        """Register a new order in ``received``.

        Reinstall-from-stock items reserve their units; every unit is
        checked before the order is written.

        Raises:
            ValidationError: no work items, bad quantity, reinstall item
                without a unit, the same unit twice.
            UnitAlreadyReservedError: a unit is not available.
        """
        if not work_items:
            raise ValidationError("work_items", "at least one work item is required")
        items = tuple(_validate_work_item(item) for item in work_items)

        unit_ids = [i.stored_unit_id for i in items if i.stored_unit_id is not None]
        if len(unit_ids) != len(set(unit_ids)):
            raise ValidationError("work_items", "the same stored unit appears twice")
        for unit_id in unit_ids:
            self.ledger.check_reservable(unit_id)

        # Reinstall items are written without their unit; reserve() attaches it
        staged = tuple(
            replace(i, id=i.id or uuid4(), stored_unit_id=None) for i in items
        )
        order = self.store.save_work_order(
            WorkOrderInfo(
                id=uuid4(),
                status=WorkOrderStatus.RECEIVED,
                document_number=document_number,
                affiliate=affiliate,
                business_name=business_name,
                address=address,
                contact_name=contact_name,
                contact_phone=contact_phone,
                order_date=as_calendar_day(order_date),
                requested_install_date=as_calendar_day(requested_install_date),
                work_items=staged,
                equipment_items=tuple(
                    _validate_equipment_item(e) for e in equipment_items
                ),
                delivery_status=OrderDeliveryStage.PENDING,
                notes=notes,
            ),
            actor_id=self.actor_id,
        )

        for original, written in zip(items, staged):
            if original.stored_unit_id is not None:
                self.ledger.reserve(
                    original.stored_unit_id,
                    order.id,
                    item=replace(written, stored_unit_id=original.stored_unit_id),
                )

        logger.info(
            "work_order_created",
            extra={
                "order_id": str(order.id),
                "document_number": document_number,
                "work_item_count": len(items),
                "reserved_unit_count": len(unit_ids),
            },
        )
        return self._require_order(order.id)

    def get_work_order(self, order_id: UUID) -> WorkOrderInfo:
        return self._require_order(order_id)

    def update_details(self, order_id: UUID, **changes: Any) -> WorkOrderInfo:
        """Change descriptive fields (address, contact, dates, notes)."""
        unknown = set(changes) - _DETAIL_FIELDS
        if unknown:
            raise ValidationError(
                ", ".join(sorted(unknown)), "not an editable detail field"
            )
        order = self._require_editable(order_id, "edit")
        for name in _DATE_FIELDS & set(changes):
            changes[name] = as_calendar_day(changes[name])
        return self._save(replace(order, **changes))

    # =========================================================================
    # Work items
    # =========================================================================

    def add_work_item(self, order_id: UUID, item: WorkItemInfo) -> WorkOrderInfo:
        with LogContext.bind(order_id=order_id):
            order = self._require_editable(order_id, "add a work item to")
            item = replace(_validate_work_item(item), id=item.id or uuid4())

            if item.work_type == WorkType.REINSTALL_FROM_STOCK:
                self.ledger.reserve(item.stored_unit_id, order_id, item=item)
            else:
                self._save(replace(order, work_items=order.work_items + (item,)))

            logger.info(
                "work_item_added",
                extra={"work_item_id": str(item.id), "work_type": item.work_type.value},
            )
            return self._require_order(order_id)

    def remove_work_item(self, order_id: UUID, work_item_id: UUID) -> WorkOrderInfo:
        with LogContext.bind(order_id=order_id):
            order = self._require_editable(order_id, "remove a work item from")
            item = next((w for w in order.work_items if w.id == work_item_id), None)
            if item is None:
                raise NotFoundError("work_item", str(work_item_id))

            updated = self._save(
                replace(
                    order,
                    work_items=tuple(w for w in order.work_items if w.id != work_item_id),
                )
            )
            if item.stored_unit_id is not None:
                self.ledger.free(item.stored_unit_id)

            logger.info(
                "work_item_removed",
                extra={"work_item_id": str(work_item_id), "work_type": item.work_type.value},
            )
            return updated

    # =========================================================================
    # Equipment, quote and cost lines
    # =========================================================================

    def replace_equipment_items(
        self, order_id: UUID, items: Sequence[EquipmentItemInfo]
    ) -> WorkOrderInfo:
        """Replace the delivery lines; total price is quantity x unit price."""
        order = self._require_editable(order_id, "edit equipment of")
        validated = tuple(_validate_equipment_item(i) for i in items)
        return self._save(replace(order, equipment_items=validated))

    def replace_quote(self, order_id: UUID, quote: CustomerQuoteInfo | None) -> WorkOrderInfo:
        """Replace the customer quote.  ``None`` removes it."""
        order = self._require_editable(order_id, "edit the quote of")
        if quote is not None:
            if quote.equipment_rounding < 0 or quote.installation_rounding < 0:
                raise ValidationError("rounding", "rounding adjustments must be >= 0")
            quote = replace(quote, items=tuple(_priced_quote_item(i) for i in quote.items))
        return self._save(replace(order, quote=quote))

    def replace_installation_costs(
        self, order_id: UUID, items: Sequence[InstallationCostItemInfo]
    ) -> WorkOrderInfo:
        order = self._require_editable(order_id, "edit installation costs of")
        priced = []
        for item in items:
            _check_line(item.item_name, item.quantity, item.unit_price)
            priced.append(replace(item, total_price=item.unit_price * item.quantity))
        return self._save(replace(order, installation_costs=tuple(priced)))

    # =========================================================================
    # Status and milestones
    # =========================================================================

    def update_status(self, order_id: UUID, status: WorkOrderStatus) -> WorkOrderInfo:
        """Operator move among received / in-progress / completed."""
        try:
            status = WorkOrderStatus(status)
        except ValueError:
            raise ValidationError("status", f"unknown status {status!r}") from None
        if status not in MANUAL_ORDER_STATUSES:
            raise ValidationError(
                "status", f"{status.value} is reached through its own operation"
            )

        with LogContext.bind(order_id=order_id):
            order = self._require_editable(order_id, f"move to {status.value}")
            if order.status == status:
                return order
            updated = self._save(replace(order, status=status))
            logger.info(
                "work_order_status_changed",
                extra={"from_status": order.status.value, "to_status": status.value},
            )
            return updated

    def schedule_installation(
        self,
        order_id: UUID,
        schedule_date: date | None,
        memo: str | None = None,
    ) -> WorkOrderInfo:
        """Set (or clear, with None) the installation schedule date."""
        with LogContext.bind(order_id=order_id):
            order = self._require_editable(order_id, "schedule")
            updated = self._save(
                replace(
                    order,
                    install_schedule_date=as_calendar_day(schedule_date),
                    install_memo=memo if memo is not None else order.install_memo,
                )
            )
            logger.info(
                "installation_scheduled",
                extra={"schedule_date": updated.install_schedule_date},
            )
            return updated

    def complete_installation(
        self,
        order_id: UUID,
        complete_date: date,
        warehouse_id: str | None = None,
    ) -> WorkOrderInfo:
        """Record completion, move to ``completed``, register removed units."""
        day = as_calendar_day(complete_date)
        if day is None:
            raise ValidationError("complete_date", "is required")

        with LogContext.bind(order_id=order_id):
            order = self._require_editable(order_id, "complete installation of")
            self._save(
                replace(order, install_complete_date=day, status=WorkOrderStatus.COMPLETED)
            )

            registered = 0
            for item in order.work_items:
                if item.work_type == WorkType.REMOVE_STORE and item.registered_unit_id is None:
                    self.ledger.register_from_removal(
                        order_id, item.id, warehouse_id=warehouse_id, removal_date=day
                    )
                    registered += 1

            logger.info(
                "installation_completed",
                extra={"complete_date": day, "registered_unit_count": registered},
            )
            return self._require_order(order_id)

    # =========================================================================
    # Order-level delivery
    # =========================================================================

    def set_supplier_order_number(
        self, order_id: UUID, supplier_order_number: str | None
    ) -> WorkOrderInfo:
        """Record (or clear) the supplier order number: ordered vs pending.

        An order already marked delivered stays delivered.
        """
        order = self._require_editable(order_id, "edit delivery of")
        number = None if is_blank(supplier_order_number) else str(supplier_order_number).strip()
        stage = order.delivery_status
        if stage != OrderDeliveryStage.DELIVERED:
            stage = OrderDeliveryStage.ORDERED if number else OrderDeliveryStage.PENDING
        return self._save(
            replace(order, supplier_order_number=number, delivery_status=stage)
        )

    def set_delivery_dates(
        self,
        order_id: UUID,
        requested_delivery_date: date | None = None,
        confirmed_delivery_date: date | None = None,
    ) -> WorkOrderInfo:
        order = self._require_editable(order_id, "edit delivery of")
        return self._save(
            replace(
                order,
                requested_delivery_date=as_calendar_day(requested_delivery_date),
                confirmed_delivery_date=as_calendar_day(confirmed_delivery_date),
            )
        )

    def mark_delivered(self, order_id: UUID) -> WorkOrderInfo:
        """Explicit receiving step; item-level confirmation never does this."""
        with LogContext.bind(order_id=order_id):
            order = self._require_editable(order_id, "mark delivered")
            if is_blank(order.supplier_order_number):
                raise InvalidStateError(
                    "work_order",
                    str(order_id),
                    OrderDeliveryStage.PENDING.value,
                    "mark delivered",
                )
            updated = self._save(
                replace(order, delivery_status=OrderDeliveryStage.DELIVERED)
            )
            logger.info("work_order_delivered")
            return updated

    # =========================================================================
    # Review marks and corporate profit
    # =========================================================================

    def update_review_status(
        self,
        order_id: UUID,
        reviewer: Reviewer | str,
        status: ReviewStatus | str,
    ) -> WorkOrderInfo:
        """Set one party's review mark.  Settled orders may still be marked."""
        try:
            reviewer = Reviewer(reviewer)
        except ValueError:
            raise ValidationError("reviewer", f"unknown reviewer {reviewer!r}") from None
        try:
            status = ReviewStatus(status)
        except ValueError:
            raise ValidationError("status", f"unknown review status {status!r}") from None

        with LogContext.bind(order_id=order_id):
            order = self._require_order(order_id)
            if order.status == WorkOrderStatus.CANCELLED:
                raise InvalidStateError(
                    "work_order", str(order_id), order.status.value, "review"
                )
            field = (
                "operator_review_status"
                if reviewer == Reviewer.OPERATOR
                else "ordering_company_review_status"
            )
            updated = self._save(replace(order, **{field: status}))
            logger.info(
                "work_order_review_marked",
                extra={"reviewer": reviewer.value, "review_status": status.value},
            )
            return updated

    def update_corporate_profit(
        self, order_id: UUID, amount: Decimal | int | str | None
    ) -> WorkOrderInfo:
        """Override the computed profit uplift.  ``None`` restores the computed one."""
        if amount is not None:
            try:
                amount = Decimal(str(amount))
            except ArithmeticError:
                raise ValidationError(
                    "corporate_profit", f"not a number: {amount!r}"
                ) from None
            if not amount.is_finite() or amount < 0:
                raise ValidationError("corporate_profit", f"must be >= 0, got {amount}")

        with LogContext.bind(order_id=order_id):
            order = self._require_editable(order_id, "set corporate profit on")
            updated = self._save(replace(order, corporate_profit=amount))
            logger.info(
                "work_order_corporate_profit_set",
                extra={"corporate_profit": str(amount) if amount is not None else None},
            )
            return updated

    # =========================================================================
    # Cancellation and deletion
    # =========================================================================

    def cancel_work_order(self, order_id: UUID, reason: str) -> WorkOrderInfo:
        """Terminal cancellation.

        Frees every unit the order reserved and records an idle-inventory
        event for each equipment line already delivered.
        """
        if is_blank(reason):
            raise ValidationError("reason", "a cancellation reason is required")

        with LogContext.bind(order_id=order_id):
            order = self._require_editable(order_id, "cancel")
            cancelled = self._save(
                replace(
                    order,
                    status=WorkOrderStatus.CANCELLED,
                    cancel_reason=reason,
                    cancelled_at=self.clock.now(),
                )
            )
            freed = self._free_reservations(order)
            idle = self.inventory.record_cancellation(cancelled, reason)
            logger.info(
                "work_order_cancelled",
                extra={
                    "previous_status": order.status.value,
                    "freed_unit_count": freed,
                    "idle_event_count": len(idle),
                },
            )
            return cancelled

    def delete_work_order(self, order_id: UUID) -> None:
        """Delete the order and its owned rows; reserved units go back to stored."""
        with LogContext.bind(order_id=order_id):
            order = self._require_order(order_id)
            events = self.inventory.delete_events_for_order(order_id)
            self.store.delete_work_order(order_id)
            freed = self._free_reservations(order)
            logger.info(
                "work_order_deleted",
                extra={
                    "status": order.status.value,
                    "freed_unit_count": freed,
                    "inventory_event_count": events,
                },
            )

    # =========================================================================
    # Internals
    # =========================================================================

    def _free_reservations(self, order: WorkOrderInfo) -> int:
        freed = 0
        for item in order.work_items:
            if item.work_type == WorkType.REINSTALL_FROM_STOCK and item.stored_unit_id:
                self.ledger.free(item.stored_unit_id)
                freed += 1
        return freed

    def _save(self, order: WorkOrderInfo) -> WorkOrderInfo:
        return self.store.save_work_order(order, actor_id=self.actor_id)

    def _require_order(self, order_id: UUID) -> WorkOrderInfo:
        order = self.store.get_work_order(order_id)
        if order is None:
            raise NotFoundError("work_order", str(order_id))
        return order

    def _require_editable(self, order_id: UUID, action: str) -> WorkOrderInfo:
        order = self._require_order(order_id)
        if order.status in TERMINAL_ORDER_STATUSES:
            logger.warning(
                "work_order_transition_rejected",
                extra={
                    "order_id": str(order_id),
                    "status": order.status.value,
                    "action": action,
                },
            )
            raise InvalidStateError("work_order", str(order_id), order.status.value, action)
        return order


def _validate_work_item(item: WorkItemInfo) -> WorkItemInfo:
    try:
        work_type = WorkType(item.work_type)
    except ValueError:
        raise ValidationError("work_type", f"unknown work type {item.work_type!r}") from None
    if item.quantity < 1:
        raise ValidationError("quantity", f"must be at least 1, got {item.quantity}")
    if work_type == WorkType.REINSTALL_FROM_STOCK and item.stored_unit_id is None:
        raise ValidationError(
            "stored_unit_id", "a reinstall-from-stock item must reference a stored unit"
        )
    if work_type != WorkType.REINSTALL_FROM_STOCK and item.stored_unit_id is not None:
        raise ValidationError(
            "stored_unit_id", "only reinstall-from-stock items reference stored units"
        )
    return replace(item, work_type=work_type)


def _validate_equipment_item(item: EquipmentItemInfo) -> EquipmentItemInfo:
    if item.quantity < 0:
        raise ValidationError("quantity", f"must be >= 0, got {item.quantity}")
    if item.unit_price is not None and item.unit_price < 0:
        raise ValidationError("unit_price", f"must be >= 0, got {item.unit_price}")
    total = item.total_price
    if item.unit_price is not None:
        total = item.unit_price * item.quantity
    return replace(
        item,
        order_date=as_calendar_day(item.order_date),
        requested_delivery_date=as_calendar_day(item.requested_delivery_date),
        scheduled_delivery_date=as_calendar_day(item.scheduled_delivery_date),
        confirmed_delivery_date=as_calendar_day(item.confirmed_delivery_date),
        total_price=total,
    )


def _priced_quote_item(item: QuoteItemInfo) -> QuoteItemInfo:
    _check_line(item.item_name, item.quantity, item.unit_price)
    return replace(item, total_price=item.unit_price * item.quantity)


def _check_line(name: str, quantity: int, unit_price: Decimal) -> None:
    if is_blank(name):
        raise ValidationError("item_name", "is required")
    if quantity < 0:
        raise ValidationError("quantity", f"must be >= 0, got {quantity}")
    if unit_price is None or unit_price < _ZERO:
        raise ValidationError("unit_price", f"must be >= 0, got {unit_price}")
