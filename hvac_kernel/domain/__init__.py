"""Pure domain layer: enumerations, DTO snapshots, calendar helpers and the clock."""

from hvac_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from hvac_kernel.domain.dtos import (
    BatchItemOutcome,
    BatchResult,
    CustomerQuoteInfo,
    EquipmentItemInfo,
    InstallationCostItemInfo,
    InventoryEventInfo,
    PrepurchaseUnitInfo,
    QuoteItemInfo,
    ReconcileResult,
    ReleaseInfo,
    StoredUnitInfo,
    UsageOutcome,
    UsageRecordInfo,
    WorkItemInfo,
    WorkOrderInfo,
)
from hvac_kernel.domain.values import (
    DeliveryAlert,
    EquipmentReadiness,
    InstallerSettlementStatus,
    InventoryEventStatus,
    InventoryEventType,
    ItemDeliveryStage,
    OrderDeliveryStage,
    OutcomeStatus,
    QuoteCategory,
    ReceivingStatus,
    ReleaseType,
    Reviewer,
    ReviewStatus,
    ScheduleStage,
    StoredUnitStatus,
    Urgency,
    WorkOrderStatus,
    WorkType,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "BatchItemOutcome",
    "BatchResult",
    "CustomerQuoteInfo",
    "EquipmentItemInfo",
    "InstallationCostItemInfo",
    "InventoryEventInfo",
    "PrepurchaseUnitInfo",
    "QuoteItemInfo",
    "ReconcileResult",
    "ReleaseInfo",
    "StoredUnitInfo",
    "UsageOutcome",
    "UsageRecordInfo",
    "WorkItemInfo",
    "WorkOrderInfo",
    "DeliveryAlert",
    "EquipmentReadiness",
    "InstallerSettlementStatus",
    "InventoryEventStatus",
    "InventoryEventType",
    "ItemDeliveryStage",
    "OrderDeliveryStage",
    "OutcomeStatus",
    "QuoteCategory",
    "ReceivingStatus",
    "ReleaseType",
    "Reviewer",
    "ReviewStatus",
    "ScheduleStage",
    "StoredUnitStatus",
    "Urgency",
    "WorkOrderStatus",
    "WorkType",
]
