"""
Module: hvac_kernel.db.store
Responsibility: The persistence interface the kernel depends on, and its
    SQLAlchemy implementation.  Services and selectors never issue queries of
    their own; every read and write goes through a PersistenceStore, which
    speaks in frozen DTO snapshots (hvac_kernel.domain.dtos), never ORM rows.
Architecture position: Kernel > DB.  Imports models/ and domain/.  Imported
    by services/ and selectors/.

Invariants enforced:
    - Reads return fresh snapshots; nothing derived is cached here.
    - ``save_*`` is an upsert keyed on ``id``.  For a work order the owned
      collections are synchronized by child id (update matching rows, add
      new ones, delete the rest), so child ids survive a save.
    - ``compare_and_set_*`` are single conditional UPDATE statements keyed
      on the expected prior state.  They return False, and change nothing,
      when the row is missing or its state no longer matches.
    - The store flushes but never commits; the caller owns the transaction.

Failure modes:
    - IntegrityError from the database (duplicate document number, negative
      quantity check constraints) propagates to the caller.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.orm import Session

from hvac_kernel.domain.dtos import (
    CustomerQuoteInfo,
    EquipmentItemInfo,
    InstallationCostItemInfo,
    InventoryEventInfo,
    PrepurchaseUnitInfo,
    QuoteItemInfo,
    StoredUnitInfo,
    UsageRecordInfo,
    WorkItemInfo,
    WorkOrderInfo,
)
from hvac_kernel.domain.values import (
    InstallerSettlementStatus,
    InventoryEventStatus,
    InventoryEventType,
    OrderDeliveryStage,
    QuoteCategory,
    ReleaseType,
    ReviewStatus,
    StoredUnitStatus,
    WorkOrderStatus,
    WorkType,
)
from hvac_kernel.logging_config import get_logger
from hvac_kernel.models.inventory_event import InventoryEvent
from hvac_kernel.models.prepurchase import PrepurchaseUnit, PrepurchaseUsage
from hvac_kernel.models.stored_equipment import StoredEquipmentUnit
from hvac_kernel.models.work_order import (
    EquipmentItem,
    InstallationCostItem,
    QuoteItem,
    WorkItem,
    WorkOrder,
)

logger = get_logger("db.store")

_ZERO = Decimal("0")

E = TypeVar("E")


class PersistenceStore(ABC):
    """
    Generic persistence interface.

    Contract:
        Implementations may be relational or document based.  They must
        honor read-your-writes within one logical operation and must
        implement the ``compare_and_set_*`` methods atomically.
    """

    # -- Work orders ---------------------------------------------------------

    @abstractmethod
    def list_work_orders(
        self,
        statuses: Iterable[WorkOrderStatus] | None = None,
        exclude_statuses: Iterable[WorkOrderStatus] | None = None,
    ) -> list[WorkOrderInfo]:
        """Orders filtered by stored status, oldest first."""

    @abstractmethod
    def get_work_order(self, order_id: UUID) -> WorkOrderInfo | None:
        ...

    @abstractmethod
    def save_work_order(
        self, order: WorkOrderInfo, actor_id: UUID | None = None
    ) -> WorkOrderInfo:
        """Upsert an order with its owned collections; returns the stored snapshot."""

    @abstractmethod
    def delete_work_order(self, order_id: UUID) -> bool:
        """Delete an order and its owned rows.  False if it did not exist."""

    @abstractmethod
    def find_orders_referencing_unit(
        self, unit_id: UUID, active_only: bool = True
    ) -> list[UUID]:
        """Orders whose reinstall-from-stock items reference ``unit_id``.

        ``active_only`` skips cancelled orders.
        """

    @abstractmethod
    def compare_and_set_installer_settlement(
        self,
        order_id: UUID,
        expected: InstallerSettlementStatus,
        new_status: InstallerSettlementStatus,
        settlement_month: str | None,
        stamp_month: bool,
    ) -> bool:
        """Conditionally move the installer settlement of one order.

        ``expected`` UNSETTLED also matches a NULL column.  When
        ``stamp_month`` is True ``installer_settlement_month`` is written
        with ``settlement_month``.
        """

    # -- Stored equipment ----------------------------------------------------

    @abstractmethod
    def list_stored_units(
        self, statuses: Iterable[StoredUnitStatus] | None = None
    ) -> list[StoredUnitInfo]:
        ...

    @abstractmethod
    def get_stored_unit(self, unit_id: UUID) -> StoredUnitInfo | None:
        ...

    @abstractmethod
    def save_stored_unit(
        self, unit: StoredUnitInfo, actor_id: UUID | None = None
    ) -> StoredUnitInfo:
        ...

    @abstractmethod
    def delete_stored_unit(self, unit_id: UUID) -> bool:
        ...

    @abstractmethod
    def compare_and_set_unit_status(
        self,
        unit_id: UUID,
        expected: StoredUnitStatus,
        new_status: StoredUnitStatus,
    ) -> bool:
        """Conditionally move a unit's status; the reservation primitive."""

    # -- Prepurchase ---------------------------------------------------------

    @abstractmethod
    def list_prepurchase_units(self) -> list[PrepurchaseUnitInfo]:
        ...

    @abstractmethod
    def get_prepurchase_unit(self, prepurchase_id: UUID) -> PrepurchaseUnitInfo | None:
        ...

    @abstractmethod
    def save_prepurchase_unit(
        self, unit: PrepurchaseUnitInfo, actor_id: UUID | None = None
    ) -> PrepurchaseUnitInfo:
        ...

    @abstractmethod
    def delete_prepurchase_unit(self, prepurchase_id: UUID) -> bool:
        """Delete a unit and cascade its usage records."""

    @abstractmethod
    def list_usages(self, prepurchase_id: UUID) -> list[UsageRecordInfo]:
        ...

    @abstractmethod
    def get_usage(self, usage_id: UUID) -> UsageRecordInfo | None:
        ...

    @abstractmethod
    def add_usage(
        self, usage: UsageRecordInfo, actor_id: UUID | None = None
    ) -> UsageRecordInfo:
        ...

    @abstractmethod
    def delete_usage(self, usage_id: UUID) -> bool:
        ...

    @abstractmethod
    def sum_usage_quantity(self, prepurchase_id: UUID) -> int:
        """Sum of ``used_quantity`` over the unit's usage records."""

    # -- Inventory events ----------------------------------------------------

    @abstractmethod
    def list_inventory_events(
        self,
        event_type: InventoryEventType | None = None,
        status: InventoryEventStatus | None = None,
    ) -> list[InventoryEventInfo]:
        """Events filtered by type and status, newest event date first."""

    @abstractmethod
    def get_inventory_event(self, event_id: UUID) -> InventoryEventInfo | None:
        ...

    @abstractmethod
    def save_inventory_event(
        self, event: InventoryEventInfo, actor_id: UUID | None = None
    ) -> InventoryEventInfo:
        ...

    @abstractmethod
    def delete_inventory_event(self, event_id: UUID) -> bool:
        ...

    @abstractmethod
    def delete_inventory_events_for_order(self, order_id: UUID) -> int:
        """Delete events whose source or target is ``order_id``; returns the count."""


class SqlAlchemyStore(PersistenceStore):
    """
    PersistenceStore backed by a SQLAlchemy session.

    Guarantees:
        - Every write is flushed before returning so later reads and
          conditional updates in the same session observe it.
        - Conditional updates use synchronize_session="fetch", keeping any
          rows already loaded in the session consistent with the UPDATE.

    Non-goals:
        - Does not commit or roll back.
    """

    def __init__(self, session: Session):
        self.session = session

    # =========================================================================
    # Work orders
    # =========================================================================

    def list_work_orders(
        self,
        statuses: Iterable[WorkOrderStatus] | None = None,
        exclude_statuses: Iterable[WorkOrderStatus] | None = None,
    ) -> list[WorkOrderInfo]:
        stmt = select(WorkOrder)
        if statuses is not None:
            stmt = stmt.where(WorkOrder.status.in_([_value(s) for s in statuses]))
        if exclude_statuses is not None:
            stmt = stmt.where(
                WorkOrder.status.not_in([_value(s) for s in exclude_statuses])
            )
        stmt = stmt.order_by(WorkOrder.created_at, WorkOrder.id)
        rows = self.session.scalars(stmt).all()
        return [_order_to_info(row) for row in rows]

    def get_work_order(self, order_id: UUID) -> WorkOrderInfo | None:
        row = self.session.get(WorkOrder, order_id)
        if row is None:
            return None
        return _order_to_info(row)

    def save_work_order(
        self, order: WorkOrderInfo, actor_id: UUID | None = None
    ) -> WorkOrderInfo:
        row = self.session.get(WorkOrder, order.id) if order.id is not None else None
        if row is None:
            row = WorkOrder(id=order.id or uuid4(), created_by_id=actor_id)
            self.session.add(row)
        else:
            row.updated_by_id = actor_id

        row.status = _value(order.status)
        row.document_number = order.document_number
        row.affiliate = order.affiliate
        row.business_name = order.business_name
        row.address = order.address
        row.contact_name = order.contact_name
        row.contact_phone = order.contact_phone
        row.order_date = order.order_date
        row.requested_install_date = order.requested_install_date
        row.install_schedule_date = order.install_schedule_date
        row.install_complete_date = order.install_complete_date
        row.install_memo = order.install_memo
        row.supplier_order_number = order.supplier_order_number
        row.delivery_status = _value(order.delivery_status)
        row.requested_delivery_date = order.requested_delivery_date
        row.confirmed_delivery_date = order.confirmed_delivery_date
        row.installer_settlement_status = _value(order.installer_settlement_status)
        row.installer_settlement_month = order.installer_settlement_month
        row.settlement_month = order.settlement_month
        row.settlement_date = order.settlement_date
        row.operator_review_status = _value(order.operator_review_status)
        row.ordering_company_review_status = _value(order.ordering_company_review_status)
        row.corporate_profit = order.corporate_profit
        row.cancel_reason = order.cancel_reason
        row.cancelled_at = order.cancelled_at
        row.notes = order.notes

        quote = order.quote
        row.has_quote = quote is not None
        row.equipment_rounding = quote.equipment_rounding if quote else _ZERO
        row.installation_rounding = quote.installation_rounding if quote else _ZERO
        row.quote_notes = quote.notes if quote else None

        _sync_children(row, "work_items", order.work_items, WorkItem, _apply_work_item)
        _sync_children(
            row,
            "equipment_items",
            order.equipment_items,
            EquipmentItem,
            _apply_equipment_item,
        )
        _sync_children(
            row,
            "quote_items",
            quote.items if quote else (),
            QuoteItem,
            _apply_quote_item,
        )
        _sync_children(
            row,
            "installation_cost_items",
            order.installation_costs,
            InstallationCostItem,
            _apply_installation_cost,
        )

        self.session.flush()
        return _order_to_info(row)

    def delete_work_order(self, order_id: UUID) -> bool:
        row = self.session.get(WorkOrder, order_id)
        if row is None:
            return False
        self.session.delete(row)
        self.session.flush()
        return True

    def find_orders_referencing_unit(
        self, unit_id: UUID, active_only: bool = True
    ) -> list[UUID]:
        stmt = (
            select(WorkItem.order_id)
            .join(WorkOrder, WorkOrder.id == WorkItem.order_id)
            .where(
                WorkItem.stored_unit_id == unit_id,
                WorkItem.work_type == WorkType.REINSTALL_FROM_STOCK.value,
            )
        )
        if active_only:
            stmt = stmt.where(WorkOrder.status != WorkOrderStatus.CANCELLED.value)
        stmt = stmt.distinct()
        return list(self.session.scalars(stmt).all())

    def compare_and_set_installer_settlement(
        self,
        order_id: UUID,
        expected: InstallerSettlementStatus,
        new_status: InstallerSettlementStatus,
        settlement_month: str | None,
        stamp_month: bool,
    ) -> bool:
        column = WorkOrder.installer_settlement_status
        if expected == InstallerSettlementStatus.UNSETTLED:
            state_matches = or_(column.is_(None), column == expected.value)
        else:
            state_matches = column == expected.value

        values: dict[str, Any] = {"installer_settlement_status": new_status.value}
        if stamp_month:
            values["installer_settlement_month"] = settlement_month

        result = self.session.execute(
            update(WorkOrder)
            .where(WorkOrder.id == order_id, state_matches)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    # =========================================================================
    # Stored equipment
    # =========================================================================

    def list_stored_units(
        self, statuses: Iterable[StoredUnitStatus] | None = None
    ) -> list[StoredUnitInfo]:
        stmt = select(StoredEquipmentUnit)
        if statuses is not None:
            stmt = stmt.where(
                StoredEquipmentUnit.status.in_([_value(s) for s in statuses])
            )
        stmt = stmt.order_by(StoredEquipmentUnit.created_at, StoredEquipmentUnit.id)
        return [_unit_to_info(row) for row in self.session.scalars(stmt).all()]

    def get_stored_unit(self, unit_id: UUID) -> StoredUnitInfo | None:
        row = self.session.get(StoredEquipmentUnit, unit_id)
        if row is None:
            return None
        return _unit_to_info(row)

    def save_stored_unit(
        self, unit: StoredUnitInfo, actor_id: UUID | None = None
    ) -> StoredUnitInfo:
        row = self.session.get(StoredEquipmentUnit, unit.id)
        if row is None:
            row = StoredEquipmentUnit(id=unit.id, created_by_id=actor_id)
            self.session.add(row)
        else:
            row.updated_by_id = actor_id

        row.status = _value(unit.status)
        row.site_name = unit.site_name
        row.affiliate = unit.affiliate
        row.address = unit.address
        row.category = unit.category
        row.model = unit.model
        row.size = unit.size
        row.quantity = unit.quantity
        row.manufacturer = unit.manufacturer
        row.manufacturing_date = unit.manufacturing_date
        row.removal_date = unit.removal_date
        row.warehouse_id = unit.warehouse_id
        row.source_order_id = unit.source_order_id
        row.source_work_item_id = unit.source_work_item_id
        row.release_type = _value(unit.release_type)
        row.release_date = unit.release_date
        row.release_destination = unit.release_destination
        row.release_notes = unit.release_notes
        row.notes = unit.notes

        self.session.flush()
        return _unit_to_info(row)

    def delete_stored_unit(self, unit_id: UUID) -> bool:
        row = self.session.get(StoredEquipmentUnit, unit_id)
        if row is None:
            return False
        self.session.delete(row)
        self.session.flush()
        return True

    def compare_and_set_unit_status(
        self,
        unit_id: UUID,
        expected: StoredUnitStatus,
        new_status: StoredUnitStatus,
    ) -> bool:
        result = self.session.execute(
            update(StoredEquipmentUnit)
            .where(
                StoredEquipmentUnit.id == unit_id,
                StoredEquipmentUnit.status == expected.value,
            )
            .values(status=new_status.value)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    # =========================================================================
    # Prepurchase
    # =========================================================================

    def list_prepurchase_units(self) -> list[PrepurchaseUnitInfo]:
        stmt = select(PrepurchaseUnit).order_by(
            PrepurchaseUnit.created_at, PrepurchaseUnit.id
        )
        return [_prepurchase_to_info(row) for row in self.session.scalars(stmt).all()]

    def get_prepurchase_unit(self, prepurchase_id: UUID) -> PrepurchaseUnitInfo | None:
        row = self.session.get(PrepurchaseUnit, prepurchase_id)
        if row is None:
            return None
        return _prepurchase_to_info(row)

    def save_prepurchase_unit(
        self, unit: PrepurchaseUnitInfo, actor_id: UUID | None = None
    ) -> PrepurchaseUnitInfo:
        row = self.session.get(PrepurchaseUnit, unit.id)
        if row is None:
            row = PrepurchaseUnit(id=unit.id, created_by_id=actor_id)
            self.session.add(row)
        else:
            row.updated_by_id = actor_id

        row.affiliate = unit.affiliate
        row.model_name = unit.model_name
        row.quantity = unit.quantity
        row.used_quantity = unit.used_quantity
        row.settlement_month = unit.settlement_month
        row.notes = unit.notes

        self.session.flush()
        return _prepurchase_to_info(row)

    def delete_prepurchase_unit(self, prepurchase_id: UUID) -> bool:
        row = self.session.get(PrepurchaseUnit, prepurchase_id)
        if row is None:
            return False
        self.session.delete(row)
        self.session.flush()
        return True

    def list_usages(self, prepurchase_id: UUID) -> list[UsageRecordInfo]:
        stmt = (
            select(PrepurchaseUsage)
            .where(PrepurchaseUsage.prepurchase_id == prepurchase_id)
            .order_by(PrepurchaseUsage.created_at, PrepurchaseUsage.id)
        )
        return [_usage_to_info(row) for row in self.session.scalars(stmt).all()]

    def get_usage(self, usage_id: UUID) -> UsageRecordInfo | None:
        row = self.session.get(PrepurchaseUsage, usage_id)
        if row is None:
            return None
        return _usage_to_info(row)

    def add_usage(
        self, usage: UsageRecordInfo, actor_id: UUID | None = None
    ) -> UsageRecordInfo:
        parent = self.session.get(PrepurchaseUnit, usage.prepurchase_id)
        if parent is None:
            raise LookupError(f"prepurchase unit {usage.prepurchase_id} does not exist")
        row = PrepurchaseUsage(
            id=usage.id,
            affiliate=usage.affiliate,
            site_name=usage.site_name,
            used_quantity=usage.used_quantity,
            used_date=usage.used_date,
            notes=usage.notes,
            created_by_id=actor_id,
        )
        # Through the collection so a later cascade delete sees the record
        parent.usages.append(row)
        self.session.flush()
        return _usage_to_info(row)

    def delete_usage(self, usage_id: UUID) -> bool:
        row = self.session.get(PrepurchaseUsage, usage_id)
        if row is None:
            return False
        row.unit.usages.remove(row)
        self.session.flush()
        return True

    def sum_usage_quantity(self, prepurchase_id: UUID) -> int:
        total = self.session.scalar(
            select(func.coalesce(func.sum(PrepurchaseUsage.used_quantity), 0)).where(
                PrepurchaseUsage.prepurchase_id == prepurchase_id
            )
        )
        return int(total or 0)

    # =========================================================================
    # Inventory events
    # =========================================================================

    def list_inventory_events(
        self,
        event_type: InventoryEventType | None = None,
        status: InventoryEventStatus | None = None,
    ) -> list[InventoryEventInfo]:
        stmt = select(InventoryEvent)
        if event_type is not None:
            stmt = stmt.where(InventoryEvent.event_type == _value(event_type))
        if status is not None:
            stmt = stmt.where(InventoryEvent.status == _value(status))
        stmt = stmt.order_by(
            InventoryEvent.event_date.desc(),
            InventoryEvent.created_at.desc(),
            InventoryEvent.id,
        )
        return [_event_to_info(row) for row in self.session.scalars(stmt).all()]

    def get_inventory_event(self, event_id: UUID) -> InventoryEventInfo | None:
        row = self.session.get(InventoryEvent, event_id)
        if row is None:
            return None
        return _event_to_info(row)

    def save_inventory_event(
        self, event: InventoryEventInfo, actor_id: UUID | None = None
    ) -> InventoryEventInfo:
        row = self.session.get(InventoryEvent, event.id)
        if row is None:
            row = InventoryEvent(id=event.id, created_by_id=actor_id)
            self.session.add(row)
        else:
            row.updated_by_id = actor_id

        row.event_type = _value(event.event_type)
        row.status = _value(event.status)
        row.equipment_item_id = event.equipment_item_id
        row.source_order_id = event.source_order_id
        row.source_warehouse_id = event.source_warehouse_id
        row.target_order_id = event.target_order_id
        row.model_name = event.model_name
        row.category = event.category
        row.quantity = event.quantity
        row.site_name = event.site_name
        row.event_date = event.event_date
        row.resolved_date = event.resolved_date
        row.notes = event.notes

        self.session.flush()
        return _event_to_info(row)

    def delete_inventory_event(self, event_id: UUID) -> bool:
        row = self.session.get(InventoryEvent, event_id)
        if row is None:
            return False
        self.session.delete(row)
        self.session.flush()
        return True

    def delete_inventory_events_for_order(self, order_id: UUID) -> int:
        result = self.session.execute(
            delete(InventoryEvent)
            .where(
                or_(
                    InventoryEvent.source_order_id == order_id,
                    InventoryEvent.target_order_id == order_id,
                )
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount


# =============================================================================
# Row <-> DTO conversion
# =============================================================================


def _value(member: Any) -> Any:
    """Enum member to its stored string; strings and None pass through."""
    return getattr(member, "value", member)


def _enum(enum_cls: type, raw: Any) -> Any:
    if raw is None:
        return None
    return enum_cls(raw)


def _sync_children(
    parent: Any,
    attr: str,
    infos: Sequence[Any],
    model: type[E],
    apply: Callable[[Any, Any], None],
) -> None:
    """Make ``parent.<attr>`` match ``infos``: update by id, add new, drop the rest."""
    existing = {row.id: row for row in getattr(parent, attr)}
    ordered: list[Any] = []
    for position, info in enumerate(infos):
        info_id = getattr(info, "id", None)
        row = existing.pop(info_id, None) if info_id is not None else None
        if row is None:
            row = model(id=info_id or uuid4())
        apply(row, info)
        row.position = position
        ordered.append(row)
    # Replacing the collection lets delete-orphan remove what was left out
    setattr(parent, attr, ordered)


def _apply_work_item(row: WorkItem, info: WorkItemInfo) -> None:
    row.work_type = _value(info.work_type)
    row.category = info.category
    row.model = info.model
    row.size = info.size
    row.quantity = info.quantity
    row.stored_unit_id = info.stored_unit_id
    row.registered_unit_id = info.registered_unit_id


def _apply_equipment_item(row: EquipmentItem, info: EquipmentItemInfo) -> None:
    row.component_name = info.component_name
    row.model_name = info.model_name
    row.supplier = info.supplier
    row.order_number = info.order_number
    row.order_date = info.order_date
    row.requested_delivery_date = info.requested_delivery_date
    row.scheduled_delivery_date = info.scheduled_delivery_date
    row.confirmed_delivery_date = info.confirmed_delivery_date
    row.quantity = info.quantity
    row.unit_price = info.unit_price
    row.total_price = info.total_price
    row.warehouse_id = info.warehouse_id


def _apply_quote_item(row: QuoteItem, info: QuoteItemInfo) -> None:
    row.category = _value(info.category)
    row.item_name = info.item_name
    row.description = info.description
    row.quantity = info.quantity
    row.unit_price = info.unit_price
    row.total_price = info.total_price


def _apply_installation_cost(
    row: InstallationCostItem, info: InstallationCostItemInfo
) -> None:
    row.item_name = info.item_name
    row.quantity = info.quantity
    row.unit_price = info.unit_price
    row.total_price = info.total_price


def _order_to_info(row: WorkOrder) -> WorkOrderInfo:
    quote = None
    if row.has_quote:
        quote = CustomerQuoteInfo(
            items=tuple(
                QuoteItemInfo(
                    category=QuoteCategory(q.category),
                    item_name=q.item_name,
                    description=q.description,
                    quantity=q.quantity,
                    unit_price=q.unit_price,
                    total_price=q.total_price,
                )
                for q in row.quote_items
            ),
            equipment_rounding=row.equipment_rounding or _ZERO,
            installation_rounding=row.installation_rounding or _ZERO,
            notes=row.quote_notes,
        )

    return WorkOrderInfo(
        id=row.id,
        status=WorkOrderStatus(row.status),
        document_number=row.document_number,
        affiliate=row.affiliate,
        business_name=row.business_name,
        address=row.address,
        contact_name=row.contact_name,
        contact_phone=row.contact_phone,
        order_date=row.order_date,
        requested_install_date=row.requested_install_date,
        install_schedule_date=row.install_schedule_date,
        install_complete_date=row.install_complete_date,
        install_memo=row.install_memo,
        work_items=tuple(
            WorkItemInfo(
                id=w.id,
                work_type=WorkType(w.work_type),
                category=w.category,
                model=w.model,
                size=w.size,
                quantity=w.quantity,
                stored_unit_id=w.stored_unit_id,
                registered_unit_id=w.registered_unit_id,
            )
            for w in row.work_items
        ),
        equipment_items=tuple(
            EquipmentItemInfo(
                id=e.id,
                component_name=e.component_name,
                model_name=e.model_name,
                supplier=e.supplier,
                order_number=e.order_number,
                order_date=e.order_date,
                requested_delivery_date=e.requested_delivery_date,
                scheduled_delivery_date=e.scheduled_delivery_date,
                confirmed_delivery_date=e.confirmed_delivery_date,
                quantity=e.quantity,
                unit_price=e.unit_price,
                total_price=e.total_price,
                warehouse_id=e.warehouse_id,
            )
            for e in row.equipment_items
        ),
        supplier_order_number=row.supplier_order_number,
        delivery_status=_enum(OrderDeliveryStage, row.delivery_status),
        requested_delivery_date=row.requested_delivery_date,
        confirmed_delivery_date=row.confirmed_delivery_date,
        installer_settlement_status=_enum(
            InstallerSettlementStatus, row.installer_settlement_status
        ),
        installer_settlement_month=row.installer_settlement_month,
        settlement_month=row.settlement_month,
        settlement_date=row.settlement_date,
        operator_review_status=_enum(ReviewStatus, row.operator_review_status),
        ordering_company_review_status=_enum(
            ReviewStatus, row.ordering_company_review_status
        ),
        corporate_profit=row.corporate_profit,
        cancel_reason=row.cancel_reason,
        cancelled_at=row.cancelled_at,
        quote=quote,
        installation_costs=tuple(
            InstallationCostItemInfo(
                item_name=c.item_name,
                quantity=c.quantity,
                unit_price=c.unit_price,
                total_price=c.total_price,
            )
            for c in row.installation_cost_items
        ),
        notes=row.notes,
    )


def _unit_to_info(row: StoredEquipmentUnit) -> StoredUnitInfo:
    return StoredUnitInfo(
        id=row.id,
        status=StoredUnitStatus(row.status),
        site_name=row.site_name,
        affiliate=row.affiliate,
        address=row.address,
        category=row.category,
        model=row.model,
        size=row.size,
        quantity=row.quantity,
        manufacturer=row.manufacturer,
        manufacturing_date=row.manufacturing_date,
        removal_date=row.removal_date,
        warehouse_id=row.warehouse_id,
        source_order_id=row.source_order_id,
        source_work_item_id=row.source_work_item_id,
        release_type=_enum(ReleaseType, row.release_type),
        release_date=row.release_date,
        release_destination=row.release_destination,
        release_notes=row.release_notes,
        notes=row.notes,
    )


def _prepurchase_to_info(row: PrepurchaseUnit) -> PrepurchaseUnitInfo:
    return PrepurchaseUnitInfo(
        id=row.id,
        affiliate=row.affiliate,
        model_name=row.model_name,
        quantity=row.quantity,
        used_quantity=row.used_quantity,
        settlement_month=row.settlement_month,
        notes=row.notes,
    )


def _usage_to_info(row: PrepurchaseUsage) -> UsageRecordInfo:
    return UsageRecordInfo(
        id=row.id,
        prepurchase_id=row.prepurchase_id,
        affiliate=row.affiliate,
        site_name=row.site_name,
        used_quantity=row.used_quantity,
        used_date=row.used_date,
        notes=row.notes,
    )


def _event_to_info(row: InventoryEvent) -> InventoryEventInfo:
    return InventoryEventInfo(
        id=row.id,
        event_type=InventoryEventType(row.event_type),
        status=InventoryEventStatus(row.status),
        equipment_item_id=row.equipment_item_id,
        source_order_id=row.source_order_id,
        source_warehouse_id=row.source_warehouse_id,
        target_order_id=row.target_order_id,
        model_name=row.model_name,
        category=row.category,
        quantity=row.quantity,
        site_name=row.site_name,
        event_date=row.event_date,
        resolved_date=row.resolved_date,
        notes=row.notes,
    )
