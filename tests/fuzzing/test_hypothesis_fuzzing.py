"""
Hypothesis-based property tests.

Properties checked over generated inputs and operation sequences:
- Derivations are total: any mix of dates, ISO strings, garbage and
  non-text identifiers yields a stage and never raises
- A confirmed delivery date dominates every combination of the other
  item fields; the explicit delivered marker dominates at order level
- Prepurchase ledger: after any add/remove sequence ``used_quantity``
  equals the sum of the usage records and ``remaining`` is never negative
- Reservation ledger: after any reserve/remove/cancel/release/revert
  sequence a unit has at most one active holder, and a ``requested`` unit
  has exactly one
"""

from datetime import date, timedelta

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from hvac_engines.status import (
    derive_delivery_alert,
    derive_item_delivery_stage,
    derive_order_delivery_stage,
    derive_receiving_status,
    derive_schedule_stage,
    derive_urgency,
)
from hvac_kernel.domain.calendar import as_calendar_day, is_blank
from hvac_kernel.domain.dtos import (
    EquipmentItemInfo,
    ReleaseInfo,
    WorkItemInfo,
    WorkOrderInfo,
)
from hvac_kernel.domain.values import (
    DeliveryAlert,
    ItemDeliveryStage,
    OrderDeliveryStage,
    ReceivingStatus,
    ReleaseType,
    ScheduleStage,
    StoredUnitStatus,
    Urgency,
    WorkOrderStatus,
    WorkType,
)
from hvac_kernel.exceptions import (
    ConflictError,
    InvalidStateError,
    ValidationError,
)
from hvac_kernel.services.prepurchase_ledger import PrepurchaseLedger

TODAY = date(2026, 1, 15)

DB_SETTINGS = settings(
    max_examples=40,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)

# =============================================================================
# Strategies
# =============================================================================

days = st.dates(min_value=date(2024, 1, 1), max_value=date(2028, 12, 31))

date_like = st.one_of(
    st.none(),
    days,
    days.map(date.isoformat),
    days.map(lambda d: f"{d.isoformat()}T10:30:00+09:00"),
    st.sampled_from(["", "   ", "garbage", "2026-13-45", "01/15/2026"]),
    st.integers(min_value=-5, max_value=99999),
)

identifier_like = st.one_of(
    st.none(),
    st.text(max_size=8),
    st.integers(min_value=0, max_value=99999),
)


@st.composite
def equipment_items(draw):
    return EquipmentItemInfo(
        order_number=draw(identifier_like),
        order_date=draw(date_like),
        scheduled_delivery_date=draw(date_like),
        confirmed_delivery_date=draw(date_like),
        requested_delivery_date=draw(date_like),
    )


@st.composite
def work_orders(draw):
    return WorkOrderInfo(
        status=draw(st.sampled_from(list(WorkOrderStatus))),
        work_items=tuple(
            WorkItemInfo(work_type=t)
            for t in draw(st.lists(st.sampled_from(list(WorkType)), max_size=3))
        ),
        equipment_items=tuple(draw(st.lists(equipment_items(), max_size=4))),
        supplier_order_number=draw(identifier_like),
        delivery_status=draw(st.one_of(st.none(), st.sampled_from(list(OrderDeliveryStage)))),
        install_schedule_date=draw(date_like),
        install_complete_date=draw(date_like),
        requested_delivery_date=draw(date_like),
        confirmed_delivery_date=draw(date_like),
    )


# =============================================================================
# Derivation properties
# =============================================================================


class TestDerivationTotality:
    @given(order=work_orders(), today=days)
    @settings(max_examples=300)
    def test_every_derivation_returns_a_stage(self, order, today):
        assert derive_schedule_stage(order) in set(ScheduleStage)
        assert derive_order_delivery_stage(order) in set(OrderDeliveryStage)
        assert derive_urgency(order, today) in set(Urgency)
        assert derive_delivery_alert(order, today) in set(DeliveryAlert)
        assert derive_receiving_status(order, today) in set(ReceivingStatus)
        for item in order.equipment_items:
            assert derive_item_delivery_stage(item) in set(ItemDeliveryStage)


class TestItemDeliveryPrecedence:
    @given(item=equipment_items(), confirmed=days)
    @settings(max_examples=300)
    def test_confirmed_dominates(self, item, confirmed):
        item = EquipmentItemInfo(
            order_number=item.order_number,
            order_date=item.order_date,
            scheduled_delivery_date=item.scheduled_delivery_date,
            requested_delivery_date=item.requested_delivery_date,
            confirmed_delivery_date=confirmed,
        )
        assert derive_item_delivery_stage(item) == ItemDeliveryStage.CONFIRMED

    @given(item=equipment_items(), scheduled=days)
    @settings(max_examples=200)
    def test_scheduled_beats_ordered_without_confirmation(self, item, scheduled):
        item = EquipmentItemInfo(
            order_number=item.order_number,
            order_date=item.order_date,
            scheduled_delivery_date=scheduled,
        )
        assert derive_item_delivery_stage(item) == ItemDeliveryStage.SCHEDULED

    @given(item=equipment_items())
    @settings(max_examples=300)
    def test_stage_matches_highest_present_field(self, item):
        if as_calendar_day(item.confirmed_delivery_date) is not None:
            expected = ItemDeliveryStage.CONFIRMED
        elif as_calendar_day(item.scheduled_delivery_date) is not None:
            expected = ItemDeliveryStage.SCHEDULED
        elif as_calendar_day(item.order_date) is not None or not is_blank(
            item.order_number
        ):
            expected = ItemDeliveryStage.ORDERED
        else:
            expected = ItemDeliveryStage.NONE
        assert derive_item_delivery_stage(item) == expected


class TestOrderDeliveryMarker:
    @given(order=work_orders())
    @settings(max_examples=200)
    def test_delivered_marker_dominates(self, order):
        marked = WorkOrderInfo(
            supplier_order_number=order.supplier_order_number,
            equipment_items=order.equipment_items,
            delivery_status=OrderDeliveryStage.DELIVERED,
        )
        assert derive_order_delivery_stage(marked) == OrderDeliveryStage.DELIVERED

    @given(order=work_orders())
    @settings(max_examples=200)
    def test_items_never_promote_order_to_delivered(self, order):
        unmarked = WorkOrderInfo(
            supplier_order_number=order.supplier_order_number,
            equipment_items=order.equipment_items,
        )
        assert derive_order_delivery_stage(unmarked) != OrderDeliveryStage.DELIVERED


# =============================================================================
# Prepurchase ledger sequences
# =============================================================================

usage_ops = st.lists(
    st.one_of(
        st.tuples(st.just("add"), st.integers(min_value=1, max_value=6)),
        st.tuples(st.just("remove"), st.integers(min_value=0, max_value=9)),
    ),
    min_size=1,
    max_size=12,
)


class TestPrepurchaseSequences:
    @pytest.mark.parametrize("allow_over_allocation", [False, True])
    @given(quantity=st.integers(min_value=0, max_value=12), ops=usage_ops)
    @DB_SETTINGS
    def test_used_quantity_tracks_records(
        self,
        session,
        store,
        deterministic_clock,
        allow_over_allocation,
        quantity,
        ops,
    ):
        ledger = PrepurchaseLedger(
            session,
            store=store,
            clock=deterministic_clock,
            allow_over_allocation=allow_over_allocation,
        )
        unit = ledger.create_unit(model_name="AP-100", quantity=quantity)
        live: list = []

        for op, value in ops:
            if op == "add":
                try:
                    outcome = ledger.add_usage(unit.id, "Site", value)
                except ValidationError:
                    assert not allow_over_allocation
                    assert sum(u.used_quantity for u in live) + value > quantity
                    continue
                live.append(outcome.usage)
            elif live:
                outcome = ledger.remove_usage(live.pop(value % len(live)).id)
            else:
                continue

            expected_used = sum(u.used_quantity for u in live)
            current = ledger.get_unit(unit.id)
            assert not outcome.drift_detected
            assert current.used_quantity == expected_used
            assert current.used_quantity == store.sum_usage_quantity(unit.id)
            assert current.remaining == max(0, quantity - expected_used)
            assert current.remaining >= 0
            assert outcome.over_allocated_quantity == max(0, expected_used - quantity)
            if not allow_over_allocation:
                assert current.used_quantity <= quantity

        assert ledger.reconcile(unit.id).drift == 0


# =============================================================================
# Reservation ledger sequences
# =============================================================================

reservation_ops = st.lists(
    st.tuples(
        st.sampled_from(["reserve", "remove_item", "cancel", "release", "revert"]),
        st.integers(min_value=0, max_value=2),
    ),
    min_size=1,
    max_size=12,
)


class TestReservationSequences:
    @given(ops=reservation_ops)
    @DB_SETTINGS
    def test_at_most_one_active_holder(
        self,
        store,
        reservation_ledger,
        work_order_service,
        create_order,
        create_stored_unit,
        ops,
    ):
        unit = create_stored_unit()
        orders = [create_order() for _ in range(3)]

        for op, index in ops:
            order_id = orders[index].id
            try:
                if op == "reserve":
                    reservation_ledger.reserve(unit.id, order_id)
                elif op == "remove_item":
                    order = work_order_service.get_work_order(order_id)
                    held = [w for w in order.work_items if w.stored_unit_id == unit.id]
                    if not held:
                        continue
                    work_order_service.remove_work_item(order_id, held[0].id)
                elif op == "cancel":
                    work_order_service.cancel_work_order(order_id, "customer withdrew")
                elif op == "release":
                    reservation_ledger.release(
                        unit.id,
                        ReleaseInfo(ReleaseType.REUSE, TODAY + timedelta(days=index)),
                    )
                else:
                    reservation_ledger.revert_release(unit.id)
            except (ConflictError, InvalidStateError):
                pass

            holders = store.find_orders_referencing_unit(unit.id, active_only=True)
            status = reservation_ledger.get_unit(unit.id).status
            assert len(holders) <= 1
            if status == StoredUnitStatus.REQUESTED:
                assert len(holders) == 1
