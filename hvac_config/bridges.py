"""
Config -> Kernel Bridges.

Functions that convert a WorkflowConfig into kernel and engine inputs.
They live in hvac_config because the kernel must NEVER import hvac_config.

Usage:
    from hvac_config import get_active_config
    from hvac_config.bridges import build_billing_rates, build_clock

    config = get_active_config()
    rates = build_billing_rates(config)
    clock = build_clock(config)
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from hvac_config.schema import WorkflowConfig
from hvac_engines.billing import BillingRates
from hvac_kernel.domain.clock import Clock, SystemClock
from hvac_kernel.selectors.work_order_selector import WorkOrderSelector
from hvac_kernel.services.prepurchase_ledger import PrepurchaseLedger


def build_billing_rates(config: WorkflowConfig) -> BillingRates:
    return BillingRates(
        vat_rate=config.billing.vat_rate,
        profit_uplift_rate=config.billing.profit_uplift_rate,
        rounding_unit=config.billing.rounding_unit,
    )


def build_clock(config: WorkflowConfig) -> SystemClock:
    """System clock whose ``today`` is the configured business calendar day."""
    return SystemClock(config.timezone)


@dataclass(frozen=True)
class LedgerOptions:
    allow_over_allocation: bool


def build_ledger_options(config: WorkflowConfig) -> LedgerOptions:
    return LedgerOptions(
        allow_over_allocation=config.prepurchase.allow_over_allocation,
    )


def build_prepurchase_ledger(
    config: WorkflowConfig,
    session: Session,
    clock: Clock | None = None,
) -> PrepurchaseLedger:
    return PrepurchaseLedger(
        session,
        clock=clock or build_clock(config),
        allow_over_allocation=config.prepurchase.allow_over_allocation,
    )


def build_work_order_selector(
    config: WorkflowConfig,
    session: Session,
    clock: Clock | None = None,
) -> WorkOrderSelector:
    return WorkOrderSelector(
        session,
        clock=clock or build_clock(config),
        alert_window_days=config.delivery.alert_window_days,
    )
