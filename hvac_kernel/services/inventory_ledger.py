"""
InventoryEventLedger -- idle equipment waiting for a new destination.

Responsibility:
    Records equipment left in a warehouse with no order to go to, and marks
    it resolved once it is reassigned.  Two sources feed the ledger:
    cancelling an order whose equipment was already delivered (one
    ``cancelled`` event per delivered line) and warehouse staff entering
    surplus stock by hand (``idle`` events).

Architecture position:
    Kernel > Services -- imperative shell.  WorkOrderService owns one and
    calls it on cancel and delete.

Invariants enforced:
    - A cancellation event exists only for an equipment line with a
      confirmed delivery date.
    - ``active -> resolved`` is the only status transition, and it stamps
      ``resolved_date``.  A resolved event is never reopened.
    - Deleting an order deletes every event naming it as source or target.

Failure modes:
    - NotFoundError: unknown event, or an unknown target order on resolve.
    - ValidationError: missing model, category or warehouse on a staff
      entry, or a non-positive quantity.
    - InvalidStateError: resolving an event that is already resolved.
"""

from dataclasses import replace
from datetime import date
from uuid import UUID, uuid4

from hvac_kernel.domain.calendar import as_calendar_day, is_blank
from hvac_kernel.domain.dtos import InventoryEventInfo, WorkOrderInfo
from hvac_kernel.domain.values import InventoryEventStatus, InventoryEventType
from hvac_kernel.exceptions import InvalidStateError, NotFoundError, ValidationError
from hvac_kernel.logging_config import get_logger
from hvac_kernel.services.base import BaseService

logger = get_logger("services.inventory")

# Fields update_event may change
_EDITABLE_FIELDS = frozenset(
    {
        "model_name",
        "category",
        "quantity",
        "source_warehouse_id",
        "site_name",
        "event_date",
        "notes",
    }
)


class InventoryEventLedger(BaseService):
    """
    Ledger of idle-inventory events.

    Contract:
        Every mutation returns the fresh InventoryEventInfo snapshot, or
        raises before writing.

    Non-goals:
        - Does NOT move stock between warehouses; an event only records
          that equipment is idle.
    """

    def list_events(
        self,
        event_type: InventoryEventType | str | None = None,
        status: InventoryEventStatus | str | None = None,
    ) -> list[InventoryEventInfo]:
        """Events newest first, optionally narrowed by type and status."""
        return self.store.list_inventory_events(
            event_type=_parse(InventoryEventType, "event_type", event_type),
            status=_parse(InventoryEventStatus, "status", status),
        )

    def get_event(self, event_id: UUID) -> InventoryEventInfo:
        return self._require_event(event_id)

    def record_idle(
        self,
        *,
        model_name: str,
        category: str,
        source_warehouse_id: str,
        quantity: int = 1,
        site_name: str | None = None,
        event_date: date | str | None = None,
        notes: str | None = None,
    ) -> InventoryEventInfo:
        """Enter surplus equipment found in a warehouse."""
        if is_blank(model_name):
            raise ValidationError("model_name", "is required")
        if is_blank(category):
            raise ValidationError("category", "is required")
        if is_blank(source_warehouse_id):
            raise ValidationError("source_warehouse_id", "is required")
        _check_quantity(quantity)

        event = self._save(
            InventoryEventInfo(
                id=uuid4(),
                event_type=InventoryEventType.IDLE,
                model_name=model_name,
                category=category,
                source_warehouse_id=source_warehouse_id,
                quantity=quantity,
                site_name=site_name,
                event_date=as_calendar_day(event_date) or self.clock.today(),
                notes=notes,
            )
        )
        logger.info(
            "idle_inventory_recorded",
            extra={
                "event_id": str(event.id),
                "model_name": model_name,
                "warehouse_id": source_warehouse_id,
                "quantity": quantity,
            },
        )
        return event

    def record_cancellation(
        self, order: WorkOrderInfo, reason: str
    ) -> list[InventoryEventInfo]:
        """One ``cancelled`` event per delivered equipment line of ``order``.

        Lines without a confirmed delivery date never reached a warehouse
        and are skipped.
        """
        events = []
        for item in order.equipment_items:
            if as_calendar_day(item.confirmed_delivery_date) is None:
                continue
            quantity = item.quantity if item.quantity and item.quantity > 0 else 1
            events.append(
                self._save(
                    InventoryEventInfo(
                        id=uuid4(),
                        event_type=InventoryEventType.CANCELLED,
                        equipment_item_id=item.id,
                        source_order_id=order.id,
                        source_warehouse_id=item.warehouse_id,
                        model_name=item.model_name,
                        category=item.component_name,
                        quantity=quantity,
                        site_name=order.business_name,
                        event_date=self.clock.today(),
                        notes=f"order cancelled: {reason}",
                    )
                )
            )
        if events:
            logger.info(
                "cancelled_inventory_recorded",
                extra={"order_id": str(order.id), "event_count": len(events)},
            )
        return events

    def update_event(self, event_id: UUID, **changes) -> InventoryEventInfo:
        """Edit the description of an event.  Status moves only through resolve."""
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                "changes", f"not editable: {', '.join(sorted(unknown))}"
            )
        if "quantity" in changes:
            _check_quantity(changes["quantity"])
        for field in ("model_name", "category", "source_warehouse_id"):
            if field in changes and is_blank(changes[field]):
                raise ValidationError(field, "is required")
        if "event_date" in changes:
            changes["event_date"] = as_calendar_day(changes["event_date"])

        event = self._require_event(event_id)
        updated = self._save(replace(event, **changes))
        logger.info(
            "inventory_event_updated",
            extra={"event_id": str(event_id), "fields": sorted(changes)},
        )
        return updated

    def resolve(
        self, event_id: UUID, target_order_id: UUID | None = None
    ) -> InventoryEventInfo:
        """Mark the equipment reassigned, optionally to ``target_order_id``."""
        event = self._require_event(event_id)
        if event.status == InventoryEventStatus.RESOLVED:
            raise InvalidStateError(
                "inventory_event", str(event_id), event.status.value, "resolve"
            )
        if (
            target_order_id is not None
            and self.store.get_work_order(target_order_id) is None
        ):
            raise NotFoundError("work_order", str(target_order_id))

        resolved = self._save(
            replace(
                event,
                status=InventoryEventStatus.RESOLVED,
                resolved_date=self.clock.today(),
                target_order_id=target_order_id or event.target_order_id,
            )
        )
        logger.info(
            "inventory_event_resolved",
            extra={
                "event_id": str(event_id),
                "target_order_id": str(target_order_id) if target_order_id else None,
            },
        )
        return resolved

    def delete_event(self, event_id: UUID) -> None:
        self._require_event(event_id)
        self.store.delete_inventory_event(event_id)
        logger.info("inventory_event_deleted", extra={"event_id": str(event_id)})

    def delete_events_for_order(self, order_id: UUID) -> int:
        """Delete events naming ``order_id`` as source or target."""
        return self.store.delete_inventory_events_for_order(order_id)

    def _save(self, event: InventoryEventInfo) -> InventoryEventInfo:
        return self.store.save_inventory_event(event, actor_id=self.actor_id)

    def _require_event(self, event_id: UUID) -> InventoryEventInfo:
        event = self.store.get_inventory_event(event_id)
        if event is None:
            raise NotFoundError("inventory_event", str(event_id))
        return event


def _check_quantity(quantity) -> None:
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError("quantity", f"must be a positive integer, got {quantity!r}")


def _parse(enum_cls, field, raw):
    if raw is None:
        return None
    try:
        return enum_cls(raw)
    except ValueError:
        raise ValidationError(field, f"unknown value {raw!r}") from None
