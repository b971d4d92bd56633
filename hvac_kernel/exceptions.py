"""
Typed Exception Hierarchy for the work order kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the UI/API layer) translate kernel failures into user-facing
messages.  Parsing message strings for that is fragile, so:
  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        ledger.reserve(unit_id, order_id)
    except Exception as e:
        if "reserved" in str(e):  # FRAGILE - message might change
            ...

Example - RIGHT way (what this module enables):
    try:
        ledger.reserve(unit_id, order_id)
    except UnitAlreadyReservedError as e:
        api_response(code=e.code, holder=e.holder_order_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    HvacKernelError (base)
    |
    +-- ValidationError
    |
    +-- ConflictError
    |   +-- UnitAlreadyReservedError
    |   +-- UnitReferencedError
    |   +-- ConcurrentModificationError
    |
    +-- InvalidStateError
    |
    +-- NotFoundError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Malformed or missing input
----------------|-----------------------------|-----------------------------------------
Conflict        | CONFLICT                    | Allocation/uniqueness invariant violated
                | UNIT_ALREADY_RESERVED       | Unit promised to another active order
                | UNIT_REFERENCED             | Unit still referenced, can't delete
                | CONCURRENT_MODIFICATION     | Conditional update lost a race
----------------|-----------------------------|-----------------------------------------
State           | INVALID_STATE               | Action not legal from current state
----------------|-----------------------------|-----------------------------------------
Lookup          | NOT_FOUND                   | Referenced entity id doesn't exist

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Derivation functions (hvac_engines.status) never raise.  Only ledger and
   service mutations raise these classes.

2. Batch operations do not raise per element; each element's failure is
   reported in its BatchItemOutcome with the exception's ``code``.

3. Catch the specific class where the caller reacts differently
   (UnitAlreadyReservedError -> offer another unit), and the category base
   class (ConflictError) everywhere else.
"""

from __future__ import annotations

from collections.abc import Sequence


class HvacKernelError(Exception):
    """
    Base exception for all work order kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "HVAC_KERNEL_ERROR"


class ValidationError(HvacKernelError):
    """Malformed or missing required input."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Conflict exceptions


class ConflictError(HvacKernelError):
    """Operation would violate a uniqueness or allocation invariant."""

    code: str = "CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Conflict on {entity_type} {entity_id}: {reason}")


class UnitAlreadyReservedError(ConflictError):
    """Stored-equipment unit is already promised to another active order."""

    code: str = "UNIT_ALREADY_RESERVED"

    def __init__(
        self,
        unit_id: str,
        status: str,
        holder_order_id: str | None = None,
    ):
        self.unit_id = unit_id
        self.status = status
        self.holder_order_id = holder_order_id
        holder = f" by order {holder_order_id}" if holder_order_id else ""
        super().__init__(
            "stored_unit",
            unit_id,
            f"unit is {status} and cannot be reserved{holder}",
        )


class UnitReferencedError(ConflictError):
    """Stored-equipment unit is referenced by active orders."""

    code: str = "UNIT_REFERENCED"

    def __init__(self, unit_id: str, order_ids: Sequence[str]):
        self.unit_id = unit_id
        self.order_ids = list(order_ids)
        super().__init__(
            "stored_unit",
            unit_id,
            f"referenced by active orders {', '.join(self.order_ids)}",
        )


class ConcurrentModificationError(ConflictError):
    """A conditional update found the row changed by another writer."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_type: str, entity_id: str, expected: str):
        self.expected = expected
        super().__init__(
            entity_type,
            entity_id,
            f"expected {expected} but the record was modified concurrently",
        )


# State exceptions


class InvalidStateError(HvacKernelError):
    """Operation is not legal from the entity's current state."""

    code: str = "INVALID_STATE"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        action: str,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_state = current_state
        self.action = action
        super().__init__(
            f"Cannot {action} {entity_type} {entity_id}: state is {current_state}"
        )


# Lookup exceptions


class NotFoundError(HvacKernelError):
    """Referenced entity id does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")
