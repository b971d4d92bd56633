"""
Module: hvac_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines: status
    derivation and billing/margin aggregation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import hvac_kernel.domain and hvac_kernel.logging_config.
    MUST NOT import hvac_kernel services, selectors, models or hvac_config.

Invariants enforced:
    - Engines never read the clock; ``today`` is always a parameter.
    - Money is Decimal, never float.
    - Identical inputs always produce identical outputs.
"""

from hvac_engines.billing import (
    BillingRates,
    BillingReport,
    BillingTotals,
    OrderBilling,
    build_billing_report,
    calculate_order_billing,
    group_by_affiliate,
)
from hvac_engines.status import (
    DeliveryDelay,
    DeliveryProgress,
    KanbanBoard,
    ReadinessInfo,
    analyze_delivery_delay,
    build_kanban_board,
    delivery_progress,
    derive_delivery_alert,
    derive_item_delivery_stage,
    derive_kanban_stage,
    derive_order_delivery_stage,
    derive_receiving_status,
    derive_schedule_stage,
    derive_urgency,
    equipment_readiness,
    filter_by_schedule_stage,
    is_active,
    is_terminal,
    sort_for_schedule_stage,
)
from hvac_engines.tracer import traced_engine

__all__ = [
    "BillingRates",
    "BillingReport",
    "BillingTotals",
    "OrderBilling",
    "build_billing_report",
    "calculate_order_billing",
    "group_by_affiliate",
    "DeliveryDelay",
    "DeliveryProgress",
    "KanbanBoard",
    "ReadinessInfo",
    "analyze_delivery_delay",
    "build_kanban_board",
    "delivery_progress",
    "derive_delivery_alert",
    "derive_item_delivery_stage",
    "derive_kanban_stage",
    "derive_order_delivery_stage",
    "derive_receiving_status",
    "derive_schedule_stage",
    "derive_urgency",
    "equipment_readiness",
    "filter_by_schedule_stage",
    "is_active",
    "is_terminal",
    "sort_for_schedule_stage",
    "traced_engine",
]
