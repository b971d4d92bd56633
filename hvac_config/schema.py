"""
WorkflowConfig schema.

Typed, frozen view of the workflow configuration.  YAML is parsed into
these types by the loader; the runtime only ever sees a WorkflowConfig.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class BillingConfig:
    """Rates of the billing rounding ladder."""

    vat_rate: Decimal = Decimal("0.10")
    profit_uplift_rate: Decimal = Decimal("0.03")
    rounding_unit: int = 1000


@dataclass(frozen=True)
class DeliveryConfig:
    alert_window_days: int = 7


@dataclass(frozen=True)
class PrepurchaseConfig:
    allow_over_allocation: bool = False


@dataclass(frozen=True)
class WorkflowConfig:
    """The sole runtime configuration artifact."""

    config_id: str
    version: int
    timezone: str = "Asia/Seoul"
    billing: BillingConfig = field(default_factory=BillingConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)
    prepurchase: PrepurchaseConfig = field(default_factory=PrepurchaseConfig)
    checksum: str = ""
