"""
Billing / Margin Engine.

Pure functions with deterministic behavior.  No I/O.

Turns a month's worth of completed work orders into per-order sales, cost
and margin figures and their totals.  Nothing here is stored; the report is
rebuilt from fresh snapshots on every read.

Rounding ladder (order matters, each step changes the total):
    equipment_subtotal    = sum(equipment quote lines) - equipment_rounding
    installation_subtotal = sum(installation quote lines) - installation_rounding
    supply                = equipment_subtotal + installation_subtotal
    profit                = corporate profit entered on the order, else
                            round(raw installation total x uplift rate)
    subtotal_with_profit  = floor((supply + profit) / unit) x unit
    adjusted_profit       = subtotal_with_profit - supply
    vat                   = round(subtotal_with_profit x vat rate)
    sales                 = subtotal_with_profit + vat

``round`` is half-up toward positive infinity (floor(x + 0.5)), applied
to whole won.  The floor to the rounding unit happens BEFORE VAT.

Costs and margin:
    purchase_cost     = sum of equipment item totals
    installation_cost = installation_subtotal
    margin            = sales - purchase_cost - installation_cost

Usage:
    from hvac_engines.billing import BillingRates, build_billing_report

    report = build_billing_report(orders, month="2026-01", rates=BillingRates())
    report.totals.margin
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, Decimal
from uuid import UUID

from hvac_engines.tracer import traced_engine
from hvac_kernel.domain.calendar import year_month
from hvac_kernel.domain.dtos import WorkOrderInfo
from hvac_kernel.domain.values import InstallerSettlementStatus, WorkOrderStatus
from hvac_kernel.logging_config import get_logger

logger = get_logger("engines.billing")

_ZERO = Decimal("0")
_HALF = Decimal("0.5")
_ONE = Decimal("1")

BILLABLE_INSTALLER_STATUSES: frozenset[InstallerSettlementStatus] = frozenset(
    {InstallerSettlementStatus.IN_PROGRESS, InstallerSettlementStatus.SETTLED}
)


@dataclass(frozen=True)
class BillingRates:
    """Rates of the rounding ladder.

    Contract:
        vat_rate and profit_uplift_rate are fractions (0.10 is 10%).
        rounding_unit is the won granularity the subtotal is floored to.
    """

    vat_rate: Decimal = Decimal("0.10")
    profit_uplift_rate: Decimal = Decimal("0.03")
    rounding_unit: int = 1000

    def __post_init__(self) -> None:
        if self.vat_rate < 0:
            raise ValueError(f"vat_rate must be >= 0, got {self.vat_rate}")
        if self.profit_uplift_rate < 0:
            raise ValueError(
                f"profit_uplift_rate must be >= 0, got {self.profit_uplift_rate}"
            )
        if self.rounding_unit <= 0:
            raise ValueError(f"rounding_unit must be > 0, got {self.rounding_unit}")


DEFAULT_RATES = BillingRates()


@dataclass(frozen=True)
class OrderBilling:
    """Sales, cost and margin of one order."""

    order_id: UUID | None
    document_number: str | None
    affiliate: str | None
    business_name: str | None
    effective_month: str | None
    equipment_rounding: Decimal
    installation_rounding: Decimal
    equipment_subtotal: Decimal
    installation_subtotal: Decimal
    supply_amount: Decimal
    adjusted_profit: Decimal
    subtotal_with_profit: Decimal
    vat: Decimal
    sales: Decimal
    purchase_cost: Decimal
    has_purchase_data: bool
    installation_cost: Decimal
    margin: Decimal

    @property
    def purchase_cost_missing(self) -> bool:
        """Sales recorded but no purchase data: the margin is overstated."""
        return self.sales > 0 and not self.has_purchase_data


@dataclass(frozen=True)
class BillingTotals:
    order_count: int = 0
    sales: Decimal = _ZERO
    vat: Decimal = _ZERO
    purchase_cost: Decimal = _ZERO
    installation_cost: Decimal = _ZERO
    margin: Decimal = _ZERO
    purchase_cost_missing_count: int = 0

    @property
    def margin_rate(self) -> Decimal | None:
        """margin / sales, or None when there are no sales."""
        if self.sales == 0:
            return None
        return self.margin / self.sales


@dataclass(frozen=True)
class BillingReport:
    month: str
    lines: tuple[OrderBilling, ...] = ()
    totals: BillingTotals = field(default_factory=BillingTotals)


# ============================================================================
# Rounding
# ============================================================================


def round_half_up(value: Decimal) -> Decimal:
    """Nearest whole unit, halves toward positive infinity."""
    return (value + _HALF).to_integral_value(rounding=ROUND_FLOOR)


def floor_to_unit(value: Decimal, unit: int) -> Decimal:
    step = Decimal(unit)
    return (value / step).to_integral_value(rounding=ROUND_FLOOR) * step


# ============================================================================
# Per-order computation
# ============================================================================


def billing_month(order: WorkOrderInfo) -> str | None:
    """Installer settlement month, else the month installation completed."""
    if order.installer_settlement_month:
        return order.installer_settlement_month
    return year_month(order.install_complete_date)


def is_billable(order: WorkOrderInfo) -> bool:
    """Not cancelled and the installer settlement has at least started."""
    if order.status == WorkOrderStatus.CANCELLED:
        return False
    return order.effective_installer_settlement_status in BILLABLE_INSTALLER_STATUSES


def calculate_order_billing(
    order: WorkOrderInfo, rates: BillingRates = DEFAULT_RATES
) -> OrderBilling:
    quote = order.quote
    if quote is not None:
        raw_equipment = _sum(i.total_price for i in quote.equipment_items)
        raw_installation = _sum(i.total_price for i in quote.installation_items)
        equipment_rounding = quote.equipment_rounding or _ZERO
        installation_rounding = quote.installation_rounding or _ZERO
    else:
        raw_equipment = raw_installation = _ZERO
        equipment_rounding = installation_rounding = _ZERO

    equipment_subtotal = raw_equipment - equipment_rounding
    installation_subtotal = raw_installation - installation_rounding
    supply = equipment_subtotal + installation_subtotal

    # Uplift is taken on the installation total before its rounding cut
    if order.corporate_profit is not None:
        profit = order.corporate_profit
    else:
        profit = round_half_up(raw_installation * rates.profit_uplift_rate)
    subtotal_with_profit = floor_to_unit(supply + profit, rates.rounding_unit)
    vat = round_half_up(subtotal_with_profit * rates.vat_rate)
    sales = subtotal_with_profit + vat

    purchase_cost = _sum(item.total_price for item in order.equipment_items)
    has_purchase_data = any(
        item.total_price is not None and item.total_price > 0
        for item in order.equipment_items
    )
    installation_cost = installation_subtotal

    return OrderBilling(
        order_id=order.id,
        document_number=order.document_number,
        affiliate=order.affiliate,
        business_name=order.business_name,
        effective_month=billing_month(order),
        equipment_rounding=equipment_rounding,
        installation_rounding=installation_rounding,
        equipment_subtotal=equipment_subtotal,
        installation_subtotal=installation_subtotal,
        supply_amount=supply,
        adjusted_profit=subtotal_with_profit - supply,
        subtotal_with_profit=subtotal_with_profit,
        vat=vat,
        sales=sales,
        purchase_cost=purchase_cost,
        has_purchase_data=has_purchase_data,
        installation_cost=installation_cost,
        margin=sales - purchase_cost - installation_cost,
    )


# ============================================================================
# Aggregation
# ============================================================================


def summarize(lines: Iterable[OrderBilling]) -> BillingTotals:
    """Simple sums of the per-order figures."""
    lines = list(lines)
    return BillingTotals(
        order_count=len(lines),
        sales=_sum(line.sales for line in lines),
        vat=_sum(line.vat for line in lines),
        purchase_cost=_sum(line.purchase_cost for line in lines),
        installation_cost=_sum(line.installation_cost for line in lines),
        margin=_sum(line.margin for line in lines),
        purchase_cost_missing_count=sum(
            1 for line in lines if line.purchase_cost_missing
        ),
    )


@traced_engine("billing", "1.0", fingerprint_fields=("month", "rates"))
def build_billing_report(
    orders: Iterable[WorkOrderInfo],
    *,
    month: str,
    rates: BillingRates = DEFAULT_RATES,
) -> BillingReport:
    """Billable orders whose effective month is ``month``, with totals."""
    lines = tuple(
        calculate_order_billing(order, rates)
        for order in orders
        if is_billable(order) and billing_month(order) == month
    )
    totals = summarize(lines)

    if totals.purchase_cost_missing_count:
        logger.info(
            "billing_purchase_cost_missing",
            extra={
                "month": month,
                "order_count": totals.order_count,
                "missing_count": totals.purchase_cost_missing_count,
            },
        )
    return BillingReport(month=month, lines=lines, totals=totals)


def group_by_affiliate(report: BillingReport) -> dict[str, BillingReport]:
    """Split a report per affiliate, keeping first-seen order."""
    grouped: dict[str, list[OrderBilling]] = {}
    for line in report.lines:
        grouped.setdefault(line.affiliate or "", []).append(line)
    return {
        affiliate: BillingReport(
            month=report.month, lines=tuple(lines), totals=summarize(lines)
        )
        for affiliate, lines in grouped.items()
    }


def _sum(values: Iterable[Decimal | None]) -> Decimal:
    total = _ZERO
    for value in values:
        if value is not None:
            total += value
    return total
