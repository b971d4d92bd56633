"""
Tests for SqlAlchemyStore.

Covers:
- Work order round trip with owned child rows in position order
- Child rows updated in place by id; rows left out are deleted
- Reference lookup for stored units (active vs all orders)
- Conditional updates (unit status, installer settlement incl. NULL)
- Cascade deletes (order children, prepurchase usages)
- Inventory events: filters, newest-first order, delete by source or target
- Enum values persisted as plain strings
"""

from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select, text

from hvac_kernel.domain.dtos import (
    CustomerQuoteInfo,
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
    QuoteCategory,
    ReviewStatus,
    StoredUnitStatus,
    WorkOrderStatus,
    WorkType,
)
from hvac_kernel.models import PrepurchaseUsage, QuoteItem, WorkItem


def _count(session, model):
    return session.scalar(select(func.count()).select_from(model))


def _order(**kwargs):
    kwargs.setdefault("id", uuid4())
    kwargs.setdefault(
        "work_items",
        (
            WorkItemInfo(work_type=WorkType.NEW_INSTALL, model="AP-100", id=uuid4()),
            WorkItemInfo(work_type=WorkType.REMOVE_STORE, model="OLD-1", id=uuid4()),
        ),
    )
    return WorkOrderInfo(**kwargs)


def _unit(**kwargs):
    kwargs.setdefault("id", uuid4())
    kwargs.setdefault("status", StoredUnitStatus.STORED)
    kwargs.setdefault("model", "AR-60")
    return StoredUnitInfo(**kwargs)


class TestWorkOrders:
    def test_round_trip(self, store):
        order = _order(
            business_name="Gangnam Branch",
            order_date=date(2026, 1, 5),
            cancelled_at=None,
            quote=CustomerQuoteInfo(
                items=(
                    QuoteItemInfo(
                        QuoteCategory.EQUIPMENT,
                        "indoor unit",
                        1,
                        Decimal("1000000"),
                        Decimal("1000000"),
                    ),
                ),
                equipment_rounding=Decimal("5000"),
            ),
        )

        saved = store.save_work_order(order)
        loaded = store.get_work_order(order.id)

        assert loaded == saved
        assert [w.model for w in loaded.work_items] == ["AP-100", "OLD-1"]
        assert loaded.quote.equipment_rounding == Decimal("5000")
        assert loaded.quote.items[0].total_price == Decimal("1000000")

    def test_children_updated_in_place_and_orphans_deleted(self, store, session):
        order = store.save_work_order(_order())
        _, second = order.work_items

        store.save_work_order(
            replace(order, work_items=(replace(second, model="OLD-2"),))
        )

        loaded = store.get_work_order(order.id)
        assert [(w.id, w.model) for w in loaded.work_items] == [(second.id, "OLD-2")]
        assert _count(session, WorkItem) == 1

    def test_no_quote_means_none(self, store, session):
        order = store.save_work_order(
            _order(quote=CustomerQuoteInfo(items=(QuoteItemInfo(QuoteCategory.EQUIPMENT, "x"),)))
        )

        cleared = store.save_work_order(replace(order, quote=None))

        assert cleared.quote is None
        assert _count(session, QuoteItem) == 0

    def test_delete_cascades(self, store, session):
        order = store.save_work_order(_order())

        assert store.delete_work_order(order.id) is True
        assert store.get_work_order(order.id) is None
        assert _count(session, WorkItem) == 0
        assert store.delete_work_order(order.id) is False

    def test_list_filters(self, store):
        open_order = store.save_work_order(_order())
        store.save_work_order(_order(status=WorkOrderStatus.CANCELLED))

        active = store.list_work_orders(exclude_statuses=[WorkOrderStatus.CANCELLED])
        cancelled = store.list_work_orders(statuses=[WorkOrderStatus.CANCELLED])

        assert [o.id for o in active] == [open_order.id]
        assert len(cancelled) == 1
        assert len(store.list_work_orders()) == 2

    def test_enum_stored_as_plain_string(self, store, session):
        order = store.save_work_order(_order(status=WorkOrderStatus.IN_PROGRESS))
        raw = session.execute(
            text("SELECT status FROM work_orders WHERE id = :id"), {"id": str(order.id)}
        ).scalar_one()
        assert raw == "in-progress"

    def test_cancelled_at_round_trip(self, store):
        stamp = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)
        order = store.save_work_order(
            _order(status=WorkOrderStatus.CANCELLED, cancelled_at=stamp)
        )
        assert store.get_work_order(order.id).cancelled_at is not None

    def test_review_marks_and_corporate_profit_round_trip(self, store):
        order = store.save_work_order(
            _order(
                operator_review_status=ReviewStatus.REVIEWED,
                corporate_profit=Decimal("25400"),
            )
        )

        loaded = store.get_work_order(order.id)

        assert loaded.operator_review_status == ReviewStatus.REVIEWED
        assert loaded.ordering_company_review_status is None
        assert loaded.corporate_profit == Decimal("25400")


class TestUnitReferences:
    def test_active_only_skips_cancelled(self, store):
        unit = store.save_stored_unit(_unit(status=StoredUnitStatus.REQUESTED))
        item = WorkItemInfo(
            work_type=WorkType.REINSTALL_FROM_STOCK, stored_unit_id=unit.id, id=uuid4()
        )
        live = store.save_work_order(_order(work_items=(item,)))
        dead = store.save_work_order(
            _order(
                status=WorkOrderStatus.CANCELLED,
                work_items=(replace(item, id=uuid4()),),
            )
        )

        assert store.find_orders_referencing_unit(unit.id) == [live.id]
        assert set(store.find_orders_referencing_unit(unit.id, active_only=False)) == {
            live.id,
            dead.id,
        }

    def test_other_work_types_are_not_references(self, store):
        unit = store.save_stored_unit(_unit())
        store.save_work_order(
            _order(
                work_items=(
                    WorkItemInfo(
                        work_type=WorkType.REMOVE_STORE, registered_unit_id=unit.id, id=uuid4()
                    ),
                )
            )
        )
        assert store.find_orders_referencing_unit(unit.id) == []


class TestConditionalUpdates:
    def test_unit_status_compare_and_set(self, store):
        unit = store.save_stored_unit(_unit())

        assert store.compare_and_set_unit_status(
            unit.id, StoredUnitStatus.REQUESTED, StoredUnitStatus.STORED
        ) is False
        assert store.compare_and_set_unit_status(
            unit.id, StoredUnitStatus.STORED, StoredUnitStatus.REQUESTED
        ) is True
        assert store.get_stored_unit(unit.id).status == StoredUnitStatus.REQUESTED

    def test_installer_null_matches_unsettled(self, store):
        order = store.save_work_order(_order(status=WorkOrderStatus.COMPLETED))

        moved = store.compare_and_set_installer_settlement(
            order.id,
            InstallerSettlementStatus.UNSETTLED,
            InstallerSettlementStatus.IN_PROGRESS,
            None,
            stamp_month=False,
        )

        assert moved is True
        assert (
            store.get_work_order(order.id).installer_settlement_status
            == InstallerSettlementStatus.IN_PROGRESS
        )

    def test_installer_stamp_month(self, store):
        order = store.save_work_order(
            _order(installer_settlement_status=InstallerSettlementStatus.IN_PROGRESS)
        )

        store.compare_and_set_installer_settlement(
            order.id,
            InstallerSettlementStatus.IN_PROGRESS,
            InstallerSettlementStatus.SETTLED,
            "2026-01",
            stamp_month=True,
        )

        assert store.get_work_order(order.id).installer_settlement_month == "2026-01"

    def test_installer_wrong_expected(self, store):
        order = store.save_work_order(_order())
        assert store.compare_and_set_installer_settlement(
            order.id,
            InstallerSettlementStatus.IN_PROGRESS,
            InstallerSettlementStatus.SETTLED,
            "2026-01",
            stamp_month=True,
        ) is False


class TestPrepurchase:
    def _unit(self, store, quantity=10):
        return store.save_prepurchase_unit(
            PrepurchaseUnitInfo(id=uuid4(), model_name="AP-100", quantity=quantity)
        )

    def _usage(self, unit_id, quantity):
        return UsageRecordInfo(
            id=uuid4(), prepurchase_id=unit_id, site_name="Site A", used_quantity=quantity
        )

    def test_sum_usage(self, store):
        unit = self._unit(store)
        store.add_usage(self._usage(unit.id, 3))
        store.add_usage(self._usage(unit.id, 4))

        assert store.sum_usage_quantity(unit.id) == 7
        assert store.sum_usage_quantity(uuid4()) == 0

    def test_delete_usage(self, store):
        unit = self._unit(store)
        usage = store.add_usage(self._usage(unit.id, 3))

        assert store.delete_usage(usage.id) is True
        assert store.sum_usage_quantity(unit.id) == 0
        assert store.delete_usage(usage.id) is False

    def test_usage_for_unknown_unit(self, store):
        with pytest.raises(LookupError):
            store.add_usage(self._usage(uuid4(), 1))

    def test_unit_delete_cascades_to_usages(self, store, session):
        unit = self._unit(store)
        store.add_usage(self._usage(unit.id, 3))

        store.delete_prepurchase_unit(unit.id)

        assert _count(session, PrepurchaseUsage) == 0


class TestInventoryEvents:
    def _event(self, **kwargs):
        kwargs.setdefault("id", uuid4())
        kwargs.setdefault("event_type", InventoryEventType.IDLE)
        kwargs.setdefault("model_name", "AP-100")
        kwargs.setdefault("event_date", date(2026, 1, 10))
        return InventoryEventInfo(**kwargs)

    def test_round_trip(self, store):
        event = self._event(source_warehouse_id="WH-1", quantity=2, notes="surplus")

        saved = store.save_inventory_event(event)

        assert store.get_inventory_event(event.id) == saved
        assert saved.status == InventoryEventStatus.ACTIVE
        assert saved.quantity == 2

    def test_list_newest_first_and_filtered(self, store):
        older = store.save_inventory_event(self._event(event_date=date(2026, 1, 2)))
        newer = store.save_inventory_event(
            self._event(
                event_type=InventoryEventType.CANCELLED,
                event_date=date(2026, 1, 9),
            )
        )
        store.save_inventory_event(
            self._event(status=InventoryEventStatus.RESOLVED, event_date=date(2026, 1, 5))
        )

        assert [e.id for e in store.list_inventory_events()][0] == newer.id
        assert [
            e.id for e in store.list_inventory_events(event_type=InventoryEventType.CANCELLED)
        ] == [newer.id]
        assert [
            e.id
            for e in store.list_inventory_events(
                event_type=InventoryEventType.IDLE, status=InventoryEventStatus.ACTIVE
            )
        ] == [older.id]

    def test_delete_for_order_matches_source_and_target(self, store):
        order_id = uuid4()
        store.save_inventory_event(self._event(source_order_id=order_id))
        store.save_inventory_event(self._event(target_order_id=order_id))
        other = store.save_inventory_event(self._event(source_order_id=uuid4()))

        assert store.delete_inventory_events_for_order(order_id) == 2
        assert [e.id for e in store.list_inventory_events()] == [other.id]

    def test_delete(self, store):
        event = store.save_inventory_event(self._event())

        assert store.delete_inventory_event(event.id) is True
        assert store.get_inventory_event(event.id) is None
        assert store.delete_inventory_event(event.id) is False
