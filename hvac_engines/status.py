"""
Status Derivation Engine.

Pure functions with deterministic behavior.  No I/O.

Almost no lifecycle stage of a work order is stored as a flag.  This engine
turns an immutable snapshot (plus an explicit ``today``) into the stage the
views show: kanban column, install-schedule tab, per-item and order-level
delivery stage, urgency, delivery alert and readiness.

Invariants:
    - Every function is total.  Missing or unparseable fields fall through to
      the least-advanced / least-urgent bucket; nothing here raises.
    - Date arithmetic is calendar-day only (see hvac_kernel.domain.calendar).
    - ``today`` is always a parameter.  Nothing reads the wall clock.
    - Results are never cached; callers re-derive on every read.

Usage:
    from hvac_engines.status import derive_urgency, derive_schedule_stage

    stage = derive_schedule_stage(order)
    urgency = derive_urgency(order, today=clock.today())
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date

from hvac_kernel.domain.calendar import as_calendar_day, days_between, is_blank
from hvac_kernel.domain.dtos import EquipmentItemInfo, WorkOrderInfo
from hvac_kernel.domain.values import (
    TERMINAL_ORDER_STATUSES,
    DeliveryAlert,
    EquipmentReadiness,
    ItemDeliveryStage,
    OrderDeliveryStage,
    ReceivingStatus,
    ScheduleStage,
    Urgency,
    WorkOrderStatus,
    WorkType,
)

# Stand-in for a missing schedule date when sorting soonest-first
_FAR_FUTURE = date(9999, 12, 31)
_DISTANT_PAST = date(1, 1, 1)

DEFAULT_ALERT_WINDOW_DAYS = 7


# ============================================================================
# Result types
# ============================================================================


@dataclass(frozen=True)
class DeliveryProgress:
    """X/Y indicator of item-level delivery for one order."""

    total: int
    confirmed: int
    scheduled: int

    @property
    def all_confirmed(self) -> bool:
        return self.total > 0 and self.confirmed == self.total


@dataclass(frozen=True)
class ReadinessInfo:
    """Equipment readiness of a new-install order with its counts."""

    readiness: EquipmentReadiness
    confirmed: int = 0
    total: int = 0

    @property
    def label(self) -> str:
        if self.readiness == EquipmentReadiness.PARTIAL:
            return f"{self.confirmed}/{self.total}"
        return self.readiness.value


@dataclass(frozen=True)
class DeliveryDelay:
    """Scheduled vs requested delivery comparison across items."""

    total: int
    normal: int
    delayed: int
    no_date: int
    max_delay_days: int

    @property
    def has_delay(self) -> bool:
        return self.delayed > 0


@dataclass(frozen=True)
class KanbanBoard:
    """Live kanban columns.  Terminal orders never appear here."""

    received: tuple[WorkOrderInfo, ...]
    in_progress: tuple[WorkOrderInfo, ...]
    completed: tuple[WorkOrderInfo, ...]

    def counts(self) -> dict[WorkOrderStatus, int]:
        return {
            WorkOrderStatus.RECEIVED: len(self.received),
            WorkOrderStatus.IN_PROGRESS: len(self.in_progress),
            WorkOrderStatus.COMPLETED: len(self.completed),
        }


# ============================================================================
# Lifecycle
# ============================================================================


def is_terminal(order: WorkOrderInfo) -> bool:
    """Settled or cancelled."""
    return order.status in TERMINAL_ORDER_STATUSES


def is_active(order: WorkOrderInfo) -> bool:
    """Not cancelled.  Settled orders still hold their reservations."""
    return order.status != WorkOrderStatus.CANCELLED


def derive_kanban_stage(order: WorkOrderInfo) -> WorkOrderStatus:
    """The stored status, passed through.

    received / in-progress / completed are operator-set transitions, not
    derived from dates.  Terminal statuses pass through as well; the board
    builder is what keeps them off the live kanban.
    """
    try:
        return WorkOrderStatus(order.status)
    except ValueError:
        return WorkOrderStatus.RECEIVED


def build_kanban_board(orders: Iterable[WorkOrderInfo]) -> KanbanBoard:
    columns: dict[WorkOrderStatus, list[WorkOrderInfo]] = {
        WorkOrderStatus.RECEIVED: [],
        WorkOrderStatus.IN_PROGRESS: [],
        WorkOrderStatus.COMPLETED: [],
    }
    for order in orders:
        stage = derive_kanban_stage(order)
        if stage in columns:
            columns[stage].append(order)
    return KanbanBoard(
        received=tuple(columns[WorkOrderStatus.RECEIVED]),
        in_progress=tuple(columns[WorkOrderStatus.IN_PROGRESS]),
        completed=tuple(columns[WorkOrderStatus.COMPLETED]),
    )


# ============================================================================
# Install schedule
# ============================================================================


def derive_schedule_stage(order: WorkOrderInfo) -> ScheduleStage:
    """completed > scheduled (in-progress with a date) > unscheduled.

    A schedule date entered before the order is in progress does not put it
    on the installer's active queue.
    """
    if as_calendar_day(order.install_complete_date) is not None:
        return ScheduleStage.COMPLETED
    if (
        derive_kanban_stage(order) == WorkOrderStatus.IN_PROGRESS
        and as_calendar_day(order.install_schedule_date) is not None
    ):
        return ScheduleStage.SCHEDULED
    return ScheduleStage.UNSCHEDULED


def filter_by_schedule_stage(
    orders: Iterable[WorkOrderInfo], stage: ScheduleStage
) -> list[WorkOrderInfo]:
    """Orders on one schedule tab.

    Cancelled orders never appear; settled orders only on the completed tab.
    """
    selected = []
    for order in orders:
        if order.status == WorkOrderStatus.CANCELLED:
            continue
        if order.status == WorkOrderStatus.SETTLED and stage != ScheduleStage.COMPLETED:
            continue
        if derive_schedule_stage(order) == stage:
            selected.append(order)
    return selected


def sort_for_schedule_stage(
    orders: Iterable[WorkOrderInfo], stage: ScheduleStage
) -> list[WorkOrderInfo]:
    """Tab ordering.

    unscheduled: order date, newest first.
    scheduled: schedule date, soonest first, undated last.
    completed: completion date, newest first.
    """
    orders = list(orders)
    if stage == ScheduleStage.SCHEDULED:
        return sorted(
            orders,
            key=lambda o: as_calendar_day(o.install_schedule_date) or _FAR_FUTURE,
        )
    if stage == ScheduleStage.COMPLETED:
        return sorted(
            orders,
            key=lambda o: as_calendar_day(o.install_complete_date) or _DISTANT_PAST,
            reverse=True,
        )
    return sorted(
        orders,
        key=lambda o: as_calendar_day(o.order_date) or _DISTANT_PAST,
        reverse=True,
    )


# ============================================================================
# Delivery
# ============================================================================


def derive_item_delivery_stage(item: EquipmentItemInfo) -> ItemDeliveryStage:
    """Strict precedence: confirmed > scheduled > ordered > none.

    A confirmed date dominates whatever else is set or cleared.
    """
    if as_calendar_day(item.confirmed_delivery_date) is not None:
        return ItemDeliveryStage.CONFIRMED
    if as_calendar_day(item.scheduled_delivery_date) is not None:
        return ItemDeliveryStage.SCHEDULED
    if as_calendar_day(item.order_date) is not None or not is_blank(
        item.order_number
    ):
        return ItemDeliveryStage.ORDERED
    return ItemDeliveryStage.NONE


def derive_order_delivery_stage(order: WorkOrderInfo) -> OrderDeliveryStage:
    """Order-level delivery stage.

    ``delivered`` only by explicit operator action (stored marker).
    Otherwise a supplier order number means ``ordered``, else ``pending``.
    Item-level confirmation never promotes the order on its own.
    """
    if order.delivery_status == OrderDeliveryStage.DELIVERED:
        return OrderDeliveryStage.DELIVERED
    if not is_blank(order.supplier_order_number):
        return OrderDeliveryStage.ORDERED
    return OrderDeliveryStage.PENDING


def delivery_progress(
    order_or_items: WorkOrderInfo | Sequence[EquipmentItemInfo],
) -> DeliveryProgress:
    items = _equipment_items(order_or_items)
    stages = [derive_item_delivery_stage(item) for item in items]
    return DeliveryProgress(
        total=len(stages),
        confirmed=stages.count(ItemDeliveryStage.CONFIRMED),
        scheduled=stages.count(ItemDeliveryStage.SCHEDULED),
    )


def equipment_readiness(order: WorkOrderInfo) -> ReadinessInfo:
    """Whether a new-install order has all of its equipment on hand."""
    if not order.has_work_type(WorkType.NEW_INSTALL):
        return ReadinessInfo(EquipmentReadiness.NOT_APPLICABLE)
    progress = delivery_progress(order)
    if progress.total == 0:
        return ReadinessInfo(EquipmentReadiness.NO_ITEMS)
    if progress.confirmed >= progress.total:
        return ReadinessInfo(
            EquipmentReadiness.ALL_DELIVERED, progress.confirmed, progress.total
        )
    return ReadinessInfo(EquipmentReadiness.PARTIAL, progress.confirmed, progress.total)


def derive_delivery_alert(
    order: WorkOrderInfo,
    today: date,
    window_days: int = DEFAULT_ALERT_WINDOW_DAYS,
) -> DeliveryAlert:
    """Alert on the effective delivery date (confirmed, else requested).

    Pending orders have nothing on order yet and never alert.
    """
    if derive_order_delivery_stage(order) == OrderDeliveryStage.PENDING:
        return DeliveryAlert.NONE

    effective = as_calendar_day(order.confirmed_delivery_date) or as_calendar_day(
        order.requested_delivery_date
    )
    diff = days_between(today, effective)
    if diff is None:
        return DeliveryAlert.NONE
    if diff < 0:
        return DeliveryAlert.DELAYED
    if diff == 0:
        return DeliveryAlert.TODAY
    if diff == 1:
        return DeliveryAlert.TOMORROW
    if diff <= window_days:
        return DeliveryAlert.THIS_WEEK
    return DeliveryAlert.NONE


def analyze_delivery_delay(
    order_or_items: WorkOrderInfo | Sequence[EquipmentItemInfo],
) -> DeliveryDelay:
    """Per item: scheduled later than requested counts as delayed.

    An item missing either date counts as ``no_date``.
    """
    normal = delayed = no_date = max_delay = 0
    items = _equipment_items(order_or_items)
    for item in items:
        diff = days_between(item.requested_delivery_date, item.scheduled_delivery_date)
        if diff is None:
            no_date += 1
        elif diff <= 0:
            normal += 1
        else:
            delayed += 1
            max_delay = max(max_delay, diff)
    return DeliveryDelay(
        total=len(items),
        normal=normal,
        delayed=delayed,
        no_date=no_date,
        max_delay_days=max_delay,
    )


def derive_receiving_status(
    order_or_items: WorkOrderInfo | Sequence[EquipmentItemInfo],
    today: date,
) -> ReceivingStatus:
    """Completed only when every item was confirmed on a day before today.

    An order with no equipment lines is still in progress.
    """
    items = _equipment_items(order_or_items)
    today = as_calendar_day(today)
    if not items or today is None:
        return ReceivingStatus.IN_PROGRESS
    for item in items:
        confirmed = as_calendar_day(item.confirmed_delivery_date)
        if confirmed is None or confirmed >= today:
            return ReceivingStatus.IN_PROGRESS
    return ReceivingStatus.COMPLETED


# ============================================================================
# Urgency
# ============================================================================


def derive_urgency(order: WorkOrderInfo, today: date) -> Urgency:
    """Work-queue priority hint.

    1. Scheduled and not complete: overdue / today / tomorrow by day diff.
    2. New-install, not complete, equipment not all confirmed: no-equipment.
    3. Otherwise none.
    """
    completed = as_calendar_day(order.install_complete_date) is not None

    if not completed:
        diff = days_between(today, order.install_schedule_date)
        if diff is not None:
            if diff < 0:
                return Urgency.OVERDUE
            if diff == 0:
                return Urgency.TODAY
            if diff == 1:
                return Urgency.TOMORROW

    if not completed and order.has_work_type(WorkType.NEW_INSTALL):
        readiness = equipment_readiness(order).readiness
        if readiness in (EquipmentReadiness.NO_ITEMS, EquipmentReadiness.PARTIAL):
            return Urgency.NO_EQUIPMENT

    return Urgency.NONE


def _equipment_items(
    order_or_items: WorkOrderInfo | Sequence[EquipmentItemInfo],
) -> tuple[EquipmentItemInfo, ...]:
    if isinstance(order_or_items, WorkOrderInfo):
        return tuple(order_or_items.equipment_items)
    return tuple(order_or_items or ())
