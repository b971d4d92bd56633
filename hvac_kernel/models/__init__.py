"""ORM models for the work order kernel."""

from hvac_kernel.models.inventory_event import InventoryEvent
from hvac_kernel.models.prepurchase import PrepurchaseUnit, PrepurchaseUsage
from hvac_kernel.models.stored_equipment import StoredEquipmentUnit
from hvac_kernel.models.work_order import (
    EquipmentItem,
    InstallationCostItem,
    QuoteItem,
    WorkItem,
    WorkOrder,
)

__all__ = [
    "WorkOrder",
    "WorkItem",
    "EquipmentItem",
    "QuoteItem",
    "InstallationCostItem",
    "StoredEquipmentUnit",
    "PrepurchaseUnit",
    "PrepurchaseUsage",
    "InventoryEvent",
]
