"""
Module: hvac_kernel.selectors.work_order_selector
Responsibility: Read-only views over work orders, stored units and
    prepurchase units.  Every view loads fresh snapshots and runs the
    derivation engines on them; nothing derived is stored or cached.
Architecture position: Kernel > Selectors.  May import db/, domain/ and
    hvac_engines.  MUST NOT import services/.

Invariants enforced:
    - Settled and cancelled orders never appear in the live kanban or in
      the unscheduled/scheduled tabs.
    - ``today`` comes from the injected clock once per call and is passed
      explicitly to every engine.
    - Counts and totals are computed from the same snapshot as the rows
      they describe.

Failure modes:
    - NotFoundError from order_view for an unknown order.
    - Empty boards and zero totals when there is no data.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from hvac_engines.billing import (
    DEFAULT_RATES,
    BillingRates,
    BillingReport,
    build_billing_report,
    calculate_order_billing,
    group_by_affiliate,
)
from hvac_engines.status import (
    DEFAULT_ALERT_WINDOW_DAYS,
    DeliveryDelay,
    DeliveryProgress,
    KanbanBoard,
    ReadinessInfo,
    analyze_delivery_delay,
    build_kanban_board,
    delivery_progress,
    derive_delivery_alert,
    derive_kanban_stage,
    derive_order_delivery_stage,
    derive_receiving_status,
    derive_schedule_stage,
    derive_urgency,
    equipment_readiness,
    filter_by_schedule_stage,
    sort_for_schedule_stage,
)
from hvac_kernel.db.store import PersistenceStore
from hvac_kernel.domain.calendar import as_calendar_day
from hvac_kernel.domain.clock import Clock
from hvac_kernel.domain.dtos import (
    PrepurchaseUnitInfo,
    StoredUnitInfo,
    WorkOrderInfo,
)
from hvac_kernel.domain.values import (
    DeliveryAlert,
    InstallerSettlementStatus,
    OrderDeliveryStage,
    ReceivingStatus,
    ScheduleStage,
    StoredUnitStatus,
    Urgency,
    WorkOrderStatus,
)
from hvac_kernel.exceptions import NotFoundError
from hvac_kernel.selectors.base import BaseSelector

_ZERO = Decimal("0")


@dataclass(frozen=True)
class WorkOrderView:
    """One order with every derived stage computed for ``today``."""

    order: WorkOrderInfo
    kanban_stage: WorkOrderStatus
    schedule_stage: ScheduleStage
    delivery_stage: OrderDeliveryStage
    delivery_alert: DeliveryAlert
    urgency: Urgency
    progress: DeliveryProgress
    readiness: ReadinessInfo
    delay: DeliveryDelay
    receiving: ReceivingStatus


@dataclass(frozen=True)
class SettlementMonthGroup:
    month: str
    orders: tuple[WorkOrderInfo, ...]
    installation_cost: Decimal = _ZERO


@dataclass(frozen=True)
class InstallerSettlementBoard:
    """Orders with a completion date, by installer settlement stage.

    ``settled_by_month`` is ordered newest month first.  Settled orders with
    no month stamp are grouped under an empty string, listed last.
    """

    unsettled: tuple[WorkOrderInfo, ...] = ()
    in_progress: tuple[WorkOrderInfo, ...] = ()
    settled_by_month: tuple[SettlementMonthGroup, ...] = field(default_factory=tuple)

    @property
    def settled(self) -> tuple[WorkOrderInfo, ...]:
        return tuple(o for group in self.settled_by_month for o in group.orders)

    def counts(self) -> dict[InstallerSettlementStatus, int]:
        return {
            InstallerSettlementStatus.UNSETTLED: len(self.unsettled),
            InstallerSettlementStatus.IN_PROGRESS: len(self.in_progress),
            InstallerSettlementStatus.SETTLED: len(self.settled),
        }


class WorkOrderSelector(BaseSelector):
    """
    Selector for the work order workflow views.

    Contract:
        Every method re-reads through the store and re-derives.

    Non-goals:
        - No pagination or free-text search; callers filter the lists.
    """

    def __init__(
        self,
        session: Session,
        store: PersistenceStore | None = None,
        clock: Clock | None = None,
        alert_window_days: int = DEFAULT_ALERT_WINDOW_DAYS,
    ):
        super().__init__(session, store=store, clock=clock)
        self.alert_window_days = alert_window_days

    # =========================================================================
    # Workflow boards
    # =========================================================================

    def kanban_board(self) -> KanbanBoard:
        return build_kanban_board(self.store.list_work_orders())

    def schedule_tab(self, stage: ScheduleStage) -> list[WorkOrderInfo]:
        """Orders on a schedule tab, in that tab's display order."""
        stage = ScheduleStage(stage)
        orders = filter_by_schedule_stage(self.store.list_work_orders(), stage)
        return sort_for_schedule_stage(orders, stage)

    def order_view(self, order_id: UUID) -> WorkOrderView:
        order = self.store.get_work_order(order_id)
        if order is None:
            raise NotFoundError("work_order", str(order_id))
        return self._view(order, self.clock.today())

    def active_order_views(self) -> list[WorkOrderView]:
        """Views of every non-terminal order, derived against one ``today``."""
        today = self.clock.today()
        orders = self.store.list_work_orders(
            exclude_statuses=[WorkOrderStatus.SETTLED, WorkOrderStatus.CANCELLED]
        )
        return [self._view(order, today) for order in orders]

    def urgent_orders(self) -> list[WorkOrderView]:
        """Active orders with an urgency other than none."""
        return [v for v in self.active_order_views() if v.urgency != Urgency.NONE]

    # =========================================================================
    # Settlement and billing
    # =========================================================================

    def installer_settlement_board(self) -> InstallerSettlementBoard:
        """Orders with a completion date, by installer settlement stage.

        An order moved back to in-progress after completing stays on the
        board; cancelled orders never appear.
        """
        orders = [
            order
            for order in self.store.list_work_orders(
                exclude_statuses=[WorkOrderStatus.CANCELLED]
            )
            if as_calendar_day(order.install_complete_date) is not None
        ]
        unsettled: list[WorkOrderInfo] = []
        in_progress: list[WorkOrderInfo] = []
        by_month: dict[str, list[WorkOrderInfo]] = {}

        for order in orders:
            stage = order.effective_installer_settlement_status
            if stage == InstallerSettlementStatus.SETTLED:
                by_month.setdefault(order.installer_settlement_month or "", []).append(order)
            elif stage == InstallerSettlementStatus.IN_PROGRESS:
                in_progress.append(order)
            else:
                unsettled.append(order)

        months = sorted((m for m in by_month if m), reverse=True)
        if "" in by_month:
            months.append("")
        return InstallerSettlementBoard(
            unsettled=tuple(unsettled),
            in_progress=tuple(in_progress),
            settled_by_month=tuple(
                SettlementMonthGroup(
                    month=month,
                    orders=tuple(by_month[month]),
                    installation_cost=_installation_cost(by_month[month]),
                )
                for month in months
            ),
        )

    def billing_report(
        self, month: str, rates: BillingRates = DEFAULT_RATES
    ) -> BillingReport:
        return build_billing_report(self.store.list_work_orders(), month=month, rates=rates)

    def billing_by_affiliate(
        self, month: str, rates: BillingRates = DEFAULT_RATES
    ) -> dict[str, BillingReport]:
        return group_by_affiliate(self.billing_report(month, rates))

    # =========================================================================
    # Warehouse and prepurchase
    # =========================================================================

    def list_stored_units(
        self, statuses: Sequence[StoredUnitStatus] | None = None
    ) -> list[StoredUnitInfo]:
        return self.store.list_stored_units(list(statuses) if statuses else None)

    def list_prepurchase_units(self) -> list[PrepurchaseUnitInfo]:
        return self.store.list_prepurchase_units()

    # =========================================================================
    # Internals
    # =========================================================================

    def _view(self, order: WorkOrderInfo, today: date) -> WorkOrderView:
        return WorkOrderView(
            order=order,
            kanban_stage=derive_kanban_stage(order),
            schedule_stage=derive_schedule_stage(order),
            delivery_stage=derive_order_delivery_stage(order),
            delivery_alert=derive_delivery_alert(order, today, self.alert_window_days),
            urgency=derive_urgency(order, today),
            progress=delivery_progress(order),
            readiness=equipment_readiness(order),
            delay=analyze_delivery_delay(order),
            receiving=derive_receiving_status(order, today),
        )


def _installation_cost(orders: Sequence[WorkOrderInfo]) -> Decimal:
    # Same figure the billing report charges as installation cost
    return sum(
        (calculate_order_billing(order).installation_subtotal for order in orders),
        _ZERO,
    )
