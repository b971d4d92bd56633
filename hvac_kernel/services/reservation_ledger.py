"""
ReservationLedger -- custody state machine for stored-equipment units.

Responsibility:
    Guarantees a stored-equipment unit is never promised to two active work
    orders at once, and that its status reflects physical custody:

        stored --reserve--> requested --release--> released
          ^                    |                      |
          +-------free---------+                      |
          +------------------revert_release-----------+

    ``release`` is also legal straight from ``stored`` (disposal without a
    reinstall order).

Architecture position:
    Kernel > Services -- imperative shell.  Called directly by warehouse
    callers and by WorkOrderService for reinstall-from-stock items.

Invariants enforced:
    - At most one active (non-cancelled) order references a unit through a
      reinstall-from-stock item.  The reference IS the work item; the unit
      holds no back-pointer.
    - stored -> requested is a single conditional UPDATE keyed on
      ``status = 'stored'``.  Two concurrent reservers cannot both win.
    - revert_release clears every release field, not some of them.
    - A unit referenced by an active order cannot be deleted.

Failure modes:
    - NotFoundError: unknown unit, order or work item.
    - UnitAlreadyReservedError: unit not stored, or held by another order.
    - InvalidStateError: release of a released unit, revert of a unit that
      is not released, reservation for a terminal order.
    - UnitReferencedError: delete of a unit still referenced.
    - ValidationError: malformed release info or unit fields.

Audit relevance:
    Every transition logs an INFO record (unit_registered, unit_reserved,
    unit_freed, unit_released, unit_release_reverted, unit_deleted);
    rejections log at WARNING.
"""

from dataclasses import replace
from datetime import date
from uuid import UUID, uuid4

from hvac_kernel.domain.calendar import as_calendar_day, is_blank
from hvac_kernel.domain.dtos import ReleaseInfo, StoredUnitInfo, WorkItemInfo, WorkOrderInfo
from hvac_kernel.domain.values import (
    TERMINAL_ORDER_STATUSES,
    ReleaseType,
    StoredUnitStatus,
    WorkType,
)
from hvac_kernel.exceptions import (
    InvalidStateError,
    NotFoundError,
    UnitAlreadyReservedError,
    UnitReferencedError,
    ValidationError,
)
from hvac_kernel.logging_config import LogContext, get_logger
from hvac_kernel.services.base import BaseService

logger = get_logger("services.reservation")


class ReservationLedger(BaseService):
    """
    Ledger of stored-equipment units.

    Contract:
        Every public mutation either completes or raises before writing.
        Returned values are fresh StoredUnitInfo snapshots.

    Non-goals:
        - Does NOT decide which units are eligible for a site; callers pick.
        - Does NOT commit.
    """

    # =========================================================================
    # Registration and lookup
    # =========================================================================

    def register_unit(
        self,
        *,
        model: str | None,
        category: str | None = None,
        size: str | None = None,
        quantity: int = 1,
        site_name: str | None = None,
        affiliate: str | None = None,
        address: str | None = None,
        manufacturer: str | None = None,
        manufacturing_date: str | None = None,
        removal_date: date | None = None,
        warehouse_id: str | None = None,
        notes: str | None = None,
        source_order_id: UUID | None = None,
        source_work_item_id: UUID | None = None,
    ) -> StoredUnitInfo:
        """Put a unit into warehouse custody with status ``stored``."""
        if quantity < 1:
            raise ValidationError("quantity", f"must be at least 1, got {quantity}")
        if is_blank(model) and is_blank(category):
            raise ValidationError("model", "a unit needs a model or a category")

        unit = self.store.save_stored_unit(
            StoredUnitInfo(
                id=uuid4(),
                status=StoredUnitStatus.STORED,
                site_name=site_name,
                affiliate=affiliate,
                address=address,
                category=category,
                model=model,
                size=size,
                quantity=quantity,
                manufacturer=manufacturer,
                manufacturing_date=manufacturing_date,
                removal_date=as_calendar_day(removal_date),
                warehouse_id=warehouse_id,
                source_order_id=source_order_id,
                source_work_item_id=source_work_item_id,
                notes=notes,
            ),
            actor_id=self.actor_id,
        )
        logger.info(
            "unit_registered",
            extra={
                "unit_id": str(unit.id),
                "model": unit.model,
                "warehouse_id": unit.warehouse_id,
                "source_order_id": str(source_order_id) if source_order_id else None,
            },
        )
        return unit

    def register_from_removal(
        self,
        order_id: UUID,
        work_item_id: UUID,
        *,
        warehouse_id: str | None = None,
        removal_date: date | None = None,
        manufacturer: str | None = None,
        manufacturing_date: str | None = None,
    ) -> StoredUnitInfo:
        """Register the unit a remove-store item took off site.

        Idempotent: an item that already registered its unit returns that
        unit.  The work item records the new unit id.
        """
        order = self._require_order(order_id)
        item = _find_item(order, work_item_id)
        if item is None:
            raise NotFoundError("work_item", str(work_item_id))
        if item.work_type != WorkType.REMOVE_STORE:
            raise ValidationError(
                "work_type",
                f"only remove-store items register units, got {item.work_type.value}",
            )

        if item.registered_unit_id is not None:
            existing = self.store.get_stored_unit(item.registered_unit_id)
            if existing is not None:
                return existing

        unit = self.register_unit(
            model=item.model,
            category=item.category,
            size=item.size,
            quantity=item.quantity,
            site_name=order.business_name,
            affiliate=order.affiliate,
            address=order.address,
            manufacturer=manufacturer,
            manufacturing_date=manufacturing_date,
            removal_date=removal_date or order.install_complete_date,
            warehouse_id=warehouse_id,
            source_order_id=order.id,
            source_work_item_id=item.id,
        )
        self.store.save_work_order(
            _replace_item(order, replace(item, registered_unit_id=unit.id)),
            actor_id=self.actor_id,
        )
        return unit

    def get_unit(self, unit_id: UUID) -> StoredUnitInfo:
        return self._require_unit(unit_id)

    def list_units(
        self, statuses: list[StoredUnitStatus] | None = None
    ) -> list[StoredUnitInfo]:
        return self.store.list_stored_units(statuses)

    def find_active_order_for_unit(self, unit_id: UUID) -> UUID | None:
        """The active order whose reinstall item references the unit, if any."""
        holders = self.store.find_orders_referencing_unit(unit_id, active_only=True)
        return holders[0] if holders else None

    # =========================================================================
    # Reservation
    # =========================================================================

    def check_reservable(self, unit_id: UUID, order_id: UUID | None = None) -> StoredUnitInfo:
        """Raise unless ``reserve(unit_id, order_id)`` would currently succeed."""
        unit = self._require_unit(unit_id)
        holders = [
            holder
            for holder in self.store.find_orders_referencing_unit(unit_id)
            if holder != order_id
        ]
        if holders:
            self._reject(unit, "reserve", holder_order_id=holders[0])
            raise UnitAlreadyReservedError(str(unit_id), unit.status.value, str(holders[0]))
        if unit.status != StoredUnitStatus.STORED:
            self._reject(unit, "reserve")
            raise UnitAlreadyReservedError(str(unit_id), unit.status.value)
        return unit

    def reserve(
        self,
        unit_id: UUID,
        order_id: UUID,
        item: WorkItemInfo | None = None,
    ) -> StoredUnitInfo:
        """Promise a stored unit to a work order.

        The reference is recorded on a reinstall-from-stock item of the
        order: ``item`` when given (matched by id, or appended), otherwise a
        new item describing the unit.  Reserving a unit the order already
        holds is a no-op.

        Raises:
            NotFoundError: unit or order unknown.
            InvalidStateError: order is settled or cancelled.
            UnitAlreadyReservedError: unit not stored, or another active
                order references it.
            ValidationError: ``item`` is not a reinstall-from-stock item.
        """
        with LogContext.bind(unit_id=unit_id, order_id=order_id):
            order = self._require_order(order_id)
            if order.status in TERMINAL_ORDER_STATUSES:
                raise InvalidStateError(
                    "work_order", str(order_id), order.status.value, "reserve a unit for"
                )
            if item is not None and item.work_type != WorkType.REINSTALL_FROM_STOCK:
                raise ValidationError(
                    "work_type",
                    f"only reinstall-from-stock items reserve units, got {item.work_type.value}",
                )

            held_by = next(
                (
                    w
                    for w in order.work_items
                    if w.work_type == WorkType.REINSTALL_FROM_STOCK
                    and w.stored_unit_id == unit_id
                ),
                None,
            )
            unit = self._require_unit(unit_id)
            if held_by is not None and unit.status == StoredUnitStatus.REQUESTED:
                return unit

            unit = self.check_reservable(unit_id, order_id)

            # Atomic gate: only one caller moves the unit out of ``stored``
            if not self.store.compare_and_set_unit_status(
                unit_id, StoredUnitStatus.STORED, StoredUnitStatus.REQUESTED
            ):
                current = self._require_unit(unit_id)
                self._reject(current, "reserve")
                raise UnitAlreadyReservedError(str(unit_id), current.status.value)

            if item is None:
                item = held_by or WorkItemInfo(
                    work_type=WorkType.REINSTALL_FROM_STOCK,
                    category=unit.category,
                    model=unit.model,
                    size=unit.size,
                    quantity=unit.quantity,
                )
            item = replace(item, stored_unit_id=unit_id, id=item.id or uuid4())
            if _find_item(order, item.id) is not None:
                updated = _replace_item(order, item)
            else:
                updated = replace(order, work_items=order.work_items + (item,))
            self.store.save_work_order(updated, actor_id=self.actor_id)

            logger.info(
                "unit_reserved",
                extra={"work_item_id": str(item.id)},
            )
            return self._require_unit(unit_id)

    def free(self, unit_id: UUID) -> StoredUnitInfo | None:
        """Return a reserved unit to ``stored`` without releasing it.

        Called when the reserving item or order goes away.  A unit that is
        still referenced by an active order, already stored, released or
        deleted is left alone.
        """
        with LogContext.bind(unit_id=unit_id):
            unit = self.store.get_stored_unit(unit_id)
            if unit is None:
                logger.warning("unit_free_skipped", extra={"reason": "not_found"})
                return None

            holder = self.find_active_order_for_unit(unit_id)
            if holder is not None:
                logger.info(
                    "unit_free_skipped",
                    extra={"reason": "still_referenced", "holder_order_id": str(holder)},
                )
                return unit

            if not self.store.compare_and_set_unit_status(
                unit_id, StoredUnitStatus.REQUESTED, StoredUnitStatus.STORED
            ):
                logger.info(
                    "unit_free_skipped",
                    extra={"reason": "not_requested", "status": unit.status.value},
                )
                return unit

            logger.info("unit_freed")
            return self._require_unit(unit_id)

    # =========================================================================
    # Release
    # =========================================================================

    def release(self, unit_id: UUID, release_info: ReleaseInfo) -> StoredUnitInfo:
        """Record that the unit physically left the warehouse.

        Raises:
            ValidationError: missing or unknown release type, missing date.
            InvalidStateError: unit already released.
        """
        with LogContext.bind(unit_id=unit_id):
            info = _validate_release(release_info)
            unit = self._require_unit(unit_id)
            if unit.status == StoredUnitStatus.RELEASED:
                self._reject(unit, "release")
                raise InvalidStateError(
                    "stored_unit", str(unit_id), unit.status.value, "release"
                )

            released = self.store.save_stored_unit(
                replace(
                    unit,
                    status=StoredUnitStatus.RELEASED,
                    release_type=info.release_type,
                    release_date=info.release_date,
                    release_destination=info.destination,
                    release_notes=info.notes,
                ),
                actor_id=self.actor_id,
            )
            logger.info(
                "unit_released",
                extra={
                    "previous_status": unit.status.value,
                    "release_type": info.release_type.value,
                    "release_date": info.release_date,
                },
            )
            return released

    def revert_release(self, unit_id: UUID) -> StoredUnitInfo:
        """Undo a release: back to ``stored`` with every release field cleared."""
        with LogContext.bind(unit_id=unit_id):
            unit = self._require_unit(unit_id)
            if unit.status != StoredUnitStatus.RELEASED:
                self._reject(unit, "revert release of")
                raise InvalidStateError(
                    "stored_unit", str(unit_id), unit.status.value, "revert release of"
                )

            reverted = self.store.save_stored_unit(
                replace(
                    unit,
                    status=StoredUnitStatus.STORED,
                    release_type=None,
                    release_date=None,
                    release_destination=None,
                    release_notes=None,
                ),
                actor_id=self.actor_id,
            )
            logger.info(
                "unit_release_reverted",
                extra={"reverted_release_type": unit.release_type},
            )
            return reverted

    # =========================================================================
    # Deletion
    # =========================================================================

    def delete_unit(self, unit_id: UUID) -> None:
        """Delete a unit no active order references."""
        with LogContext.bind(unit_id=unit_id):
            unit = self._require_unit(unit_id)
            holders = self.store.find_orders_referencing_unit(unit_id, active_only=True)
            if holders:
                self._reject(unit, "delete", holder_order_id=holders[0])
                raise UnitReferencedError(str(unit_id), [str(h) for h in holders])

            self.store.delete_stored_unit(unit_id)
            logger.info("unit_deleted", extra={"status": unit.status.value})

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_unit(self, unit_id: UUID) -> StoredUnitInfo:
        unit = self.store.get_stored_unit(unit_id)
        if unit is None:
            raise NotFoundError("stored_unit", str(unit_id))
        return unit

    def _require_order(self, order_id: UUID) -> WorkOrderInfo:
        order = self.store.get_work_order(order_id)
        if order is None:
            raise NotFoundError("work_order", str(order_id))
        return order

    def _reject(
        self,
        unit: StoredUnitInfo,
        action: str,
        holder_order_id: UUID | None = None,
    ) -> None:
        logger.warning(
            "unit_transition_rejected",
            extra={
                "unit_id": str(unit.id),
                "status": unit.status.value,
                "action": action,
                "holder_order_id": str(holder_order_id) if holder_order_id else None,
            },
        )


def _validate_release(info: ReleaseInfo) -> ReleaseInfo:
    if info is None or info.release_type is None or (
        isinstance(info.release_type, str) and is_blank(info.release_type)
    ):
        raise ValidationError("release_type", "is required")
    try:
        release_type = ReleaseType(info.release_type)
    except ValueError:
        raise ValidationError(
            "release_type", f"unknown release type {info.release_type!r}"
        ) from None
    release_date = as_calendar_day(info.release_date)
    if release_date is None:
        raise ValidationError("release_date", "is required")
    destination = None if is_blank(info.destination) else info.destination
    notes = None if is_blank(info.notes) else info.notes
    return ReleaseInfo(
        release_type=release_type,
        release_date=release_date,
        destination=destination,
        notes=notes,
    )


def _find_item(order: WorkOrderInfo, work_item_id: UUID | None) -> WorkItemInfo | None:
    if work_item_id is None:
        return None
    for item in order.work_items:
        if item.id == work_item_id:
            return item
    return None


def _replace_item(order: WorkOrderInfo, item: WorkItemInfo) -> WorkOrderInfo:
    return replace(
        order,
        work_items=tuple(item if w.id == item.id else w for w in order.work_items),
    )
