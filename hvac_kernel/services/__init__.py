"""Services for the work order kernel (write side)."""

from hvac_kernel.services.base import BaseService
from hvac_kernel.services.inventory_ledger import InventoryEventLedger
from hvac_kernel.services.prepurchase_ledger import PrepurchaseLedger
from hvac_kernel.services.reservation_ledger import ReservationLedger
from hvac_kernel.services.settlement_service import SettlementService
from hvac_kernel.services.work_order_service import WorkOrderService

__all__ = [
    "BaseService",
    "InventoryEventLedger",
    "PrepurchaseLedger",
    "ReservationLedger",
    "SettlementService",
    "WorkOrderService",
]
