"""
Values -- the enumerations shared by models, engines and services.

Responsibility:
    One place for every closed set of states in the work order domain, so
    the ORM columns, the derivation engines and the ledgers agree on the
    literal values stored and returned.

Architecture position:
    Kernel > Domain -- pure, zero I/O, no ORM imports.

Invariants enforced:
    - ``WorkOrderStatus`` is the only explicitly stored lifecycle flag of a
      work order; every finer stage below it is derived.
    - ``StoredUnitStatus`` follows stored -> requested -> released with
      released -> stored as the only backward transition.
    - ``InstallerSettlementStatus`` follows unsettled -> in-progress ->
      settled with in-progress -> unsettled as the only backward transition.
"""

from enum import Enum


class WorkOrderStatus(str, Enum):
    """Author-set lifecycle status of a work order."""

    RECEIVED = "received"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    SETTLED = "settled"  # terminal
    CANCELLED = "cancelled"  # terminal


TERMINAL_ORDER_STATUSES: frozenset[WorkOrderStatus] = frozenset(
    {WorkOrderStatus.SETTLED, WorkOrderStatus.CANCELLED}
)

# Statuses an operator may set directly; settled and cancelled are reached
# only through the settlement and cancellation operations.
MANUAL_ORDER_STATUSES: frozenset[WorkOrderStatus] = frozenset(
    {
        WorkOrderStatus.RECEIVED,
        WorkOrderStatus.IN_PROGRESS,
        WorkOrderStatus.COMPLETED,
    }
)


class WorkType(str, Enum):
    """Kind of work a single work item describes."""

    NEW_INSTALL = "new-install"
    RELOCATE = "relocate"
    REMOVE_STORE = "remove-store"
    REMOVE_DISPOSE = "remove-dispose"
    REINSTALL_FROM_STOCK = "reinstall-from-stock"
    RETURN_DISPOSE = "return-dispose"


class InstallerSettlementStatus(str, Enum):
    """Installer settlement sub-state, independent of the order status."""

    UNSETTLED = "unsettled"
    IN_PROGRESS = "in-progress"
    SETTLED = "settled"  # terminal


INSTALLER_SETTLEMENT_TRANSITIONS: dict[
    InstallerSettlementStatus, frozenset[InstallerSettlementStatus]
] = {
    InstallerSettlementStatus.UNSETTLED: frozenset(
        {InstallerSettlementStatus.IN_PROGRESS}
    ),
    InstallerSettlementStatus.IN_PROGRESS: frozenset(
        {InstallerSettlementStatus.SETTLED, InstallerSettlementStatus.UNSETTLED}
    ),
    InstallerSettlementStatus.SETTLED: frozenset(),
}


class StoredUnitStatus(str, Enum):
    """Custody state of a stored-equipment unit."""

    STORED = "stored"  # in the warehouse, free
    REQUESTED = "requested"  # promised to a reinstall work item
    RELEASED = "released"  # physically left warehouse custody


class ReleaseType(str, Enum):
    """Why a stored unit left the warehouse."""

    REUSE = "reuse"
    REINSTALL = "reinstall"
    DISPOSE = "dispose"


class InventoryEventType(str, Enum):
    """Why a piece of equipment is sitting idle in a warehouse."""

    CANCELLED = "cancelled"  # delivered for an order that was then cancelled
    IDLE = "idle"  # entered by warehouse staff


class InventoryEventStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"  # assigned elsewhere or otherwise disposed of


class Reviewer(str, Enum):
    """Party signing off an order before settlement."""

    OPERATOR = "operator"
    ORDERING_COMPANY = "ordering-company"


class ReviewStatus(str, Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"


class QuoteCategory(str, Enum):
    EQUIPMENT = "equipment"
    INSTALLATION = "installation"


# ---------------------------------------------------------------------------
# Derived stages (never stored, except the order-level delivery stage which
# holds an explicit ``delivered`` marker)
# ---------------------------------------------------------------------------


class OrderDeliveryStage(str, Enum):
    PENDING = "pending"
    ORDERED = "ordered"
    DELIVERED = "delivered"


class ItemDeliveryStage(str, Enum):
    NONE = "none"
    ORDERED = "ordered"
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"


class ScheduleStage(str, Enum):
    UNSCHEDULED = "unscheduled"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"


class Urgency(str, Enum):
    OVERDUE = "overdue"
    TODAY = "today"
    TOMORROW = "tomorrow"
    NO_EQUIPMENT = "no-equipment"
    NONE = "none"


class DeliveryAlert(str, Enum):
    DELAYED = "delayed"
    TODAY = "today"
    TOMORROW = "tomorrow"
    THIS_WEEK = "this-week"
    NONE = "none"


class EquipmentReadiness(str, Enum):
    NOT_APPLICABLE = "not-applicable"  # no new-install work in the order
    NO_ITEMS = "no-items"  # new-install work but no equipment lines yet
    PARTIAL = "partial"
    ALL_DELIVERED = "all-delivered"


class ReceivingStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class OutcomeStatus(str, Enum):
    """Per-element result of a batch operation."""

    SUCCEEDED = "succeeded"
    UNCHANGED = "unchanged"
    FAILED = "failed"
