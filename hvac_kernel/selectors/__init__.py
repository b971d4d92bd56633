"""Selectors for the work order kernel (read side)."""

from hvac_kernel.selectors.base import BaseSelector
from hvac_kernel.selectors.work_order_selector import (
    InstallerSettlementBoard,
    SettlementMonthGroup,
    WorkOrderSelector,
    WorkOrderView,
)

__all__ = [
    "BaseSelector",
    "InstallerSettlementBoard",
    "SettlementMonthGroup",
    "WorkOrderSelector",
    "WorkOrderView",
]
