"""
PrepurchaseLedger -- quantity accounting for equipment bought ahead of need.

Responsibility:
    Maintains ``remaining = quantity - used_quantity`` across add/remove of
    usage records.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - ``used_quantity`` is ALWAYS recomputed as the sum of the unit's usage
      records after a mutation; it is never incremented or decremented on
      its own, so it cannot drift through this ledger.
    - ``remaining`` is reported floored at zero.
    - Deleting a unit deletes its usage records.

Failure modes:
    - NotFoundError: unknown prepurchase unit or usage record.
    - ValidationError: non-positive usage quantity, blank site name,
      negative purchase quantity, or (unless over-allocation is allowed)
      a usage that would exceed the purchased quantity.
    - A stored aggregate that disagrees with its records is a recoverable
      data-integrity WARNING (prepurchase_usage_drift_detected), corrected
      in place; it never raises.
"""

from dataclasses import replace
from datetime import date
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from hvac_kernel.db.store import PersistenceStore
from hvac_kernel.domain.calendar import as_calendar_day, is_blank, is_year_month
from hvac_kernel.domain.clock import Clock
from hvac_kernel.domain.dtos import (
    PrepurchaseUnitInfo,
    ReconcileResult,
    UsageOutcome,
    UsageRecordInfo,
)
from hvac_kernel.exceptions import NotFoundError, ValidationError
from hvac_kernel.logging_config import get_logger
from hvac_kernel.services.base import BaseService

logger = get_logger("services.prepurchase")


class PrepurchaseLedger(BaseService):
    """
    Usage ledger for prepurchase units.

    Contract:
        ``allow_over_allocation`` False (default) rejects a usage that would
        drive ``remaining`` below zero.  True accepts it with a WARNING and
        reports the excess as ``over_allocated_quantity``.
    """

    def __init__(
        self,
        session: Session,
        store: PersistenceStore | None = None,
        clock: Clock | None = None,
        actor_id: UUID | None = None,
        allow_over_allocation: bool = False,
    ):
        super().__init__(session, store=store, clock=clock, actor_id=actor_id)
        self.allow_over_allocation = allow_over_allocation

    # =========================================================================
    # Units
    # =========================================================================

    def create_unit(
        self,
        *,
        model_name: str,
        quantity: int,
        affiliate: str | None = None,
        settlement_month: str | None = None,
        notes: str | None = None,
    ) -> PrepurchaseUnitInfo:
        if is_blank(model_name):
            raise ValidationError("model_name", "is required")
        if quantity < 0:
            raise ValidationError("quantity", f"must be >= 0, got {quantity}")
        if settlement_month is not None and not is_year_month(settlement_month):
            raise ValidationError(
                "settlement_month", f"expected YYYY-MM, got {settlement_month!r}"
            )

        unit = self.store.save_prepurchase_unit(
            PrepurchaseUnitInfo(
                id=uuid4(),
                model_name=model_name,
                quantity=quantity,
                used_quantity=0,
                affiliate=affiliate,
                settlement_month=settlement_month,
                notes=notes,
            ),
            actor_id=self.actor_id,
        )
        logger.info(
            "prepurchase_created",
            extra={
                "prepurchase_id": str(unit.id),
                "model_name": model_name,
                "quantity": quantity,
            },
        )
        return unit

    def get_unit(self, prepurchase_id: UUID) -> PrepurchaseUnitInfo:
        return self._require_unit(prepurchase_id)

    def list_units(self) -> list[PrepurchaseUnitInfo]:
        return self.store.list_prepurchase_units()

    def delete_unit(self, prepurchase_id: UUID) -> None:
        """Delete a unit together with all of its usage records."""
        self._require_unit(prepurchase_id)
        usage_count = len(self.store.list_usages(prepurchase_id))
        self.store.delete_prepurchase_unit(prepurchase_id)
        logger.info(
            "prepurchase_deleted",
            extra={"prepurchase_id": str(prepurchase_id), "usage_count": usage_count},
        )

    # =========================================================================
    # Usage
    # =========================================================================

    def list_usages(self, prepurchase_id: UUID) -> list[UsageRecordInfo]:
        self._require_unit(prepurchase_id)
        return self.store.list_usages(prepurchase_id)

    def add_usage(
        self,
        prepurchase_id: UUID,
        site_name: str,
        used_quantity: int,
        used_date: date | None = None,
        *,
        affiliate: str | None = None,
        notes: str | None = None,
    ) -> UsageOutcome:
        """Append a usage record and recompute ``used_quantity``.

        Raises:
            NotFoundError: unknown unit.
            ValidationError: blank site, non-positive quantity, or the usage
                exceeds what remains and over-allocation is not allowed.
        """
        if is_blank(site_name):
            raise ValidationError("site_name", "is required")
        if not isinstance(used_quantity, int) or used_quantity <= 0:
            raise ValidationError(
                "used_quantity", f"must be a positive integer, got {used_quantity!r}"
            )

        unit = self._require_unit(prepurchase_id)
        recorded = self.store.sum_usage_quantity(prepurchase_id)
        drift = self._check_drift(unit, recorded, "add_usage")

        over_by = recorded + used_quantity - unit.quantity
        if over_by > 0:
            if not self.allow_over_allocation:
                raise ValidationError(
                    "used_quantity",
                    f"{used_quantity} exceeds remaining "
                    f"{max(0, unit.quantity - recorded)} of {unit.quantity}",
                )
            logger.warning(
                "prepurchase_over_allocated",
                extra={
                    "prepurchase_id": str(prepurchase_id),
                    "quantity": unit.quantity,
                    "over_allocated_quantity": over_by,
                },
            )

        usage = self.store.add_usage(
            UsageRecordInfo(
                id=uuid4(),
                prepurchase_id=prepurchase_id,
                site_name=site_name,
                used_quantity=used_quantity,
                used_date=as_calendar_day(used_date),
                affiliate=affiliate,
                notes=notes,
            ),
            actor_id=self.actor_id,
        )
        updated = self._store_recomputed(unit)

        logger.info(
            "usage_added",
            extra={
                "prepurchase_id": str(prepurchase_id),
                "usage_id": str(usage.id),
                "site_name": site_name,
                "usage_quantity": used_quantity,
                "used_total": updated.used_quantity,
                "remaining": updated.remaining,
            },
        )
        return UsageOutcome(
            unit=updated,
            usage=usage,
            drift_detected=drift,
            over_allocated_quantity=max(0, updated.used_quantity - updated.quantity),
        )

    def remove_usage(self, usage_id: UUID) -> UsageOutcome:
        """Delete a usage record and recompute ``used_quantity``.

        If the stored aggregate was already below this record's quantity (it
        would go negative by decrementing) that drift is reported, not raised.
        """
        usage = self.store.get_usage(usage_id)
        if usage is None:
            raise NotFoundError("prepurchase_usage", str(usage_id))

        unit = self._require_unit(usage.prepurchase_id)
        recorded = self.store.sum_usage_quantity(unit.id)
        drift = self._check_drift(unit, recorded, "remove_usage")

        self.store.delete_usage(usage_id)
        updated = self._store_recomputed(unit)

        logger.info(
            "usage_removed",
            extra={
                "prepurchase_id": str(unit.id),
                "usage_id": str(usage_id),
                "usage_quantity": usage.used_quantity,
                "used_total": updated.used_quantity,
                "remaining": updated.remaining,
            },
        )
        return UsageOutcome(
            unit=updated,
            usage=usage,
            drift_detected=drift,
            over_allocated_quantity=max(0, updated.used_quantity - updated.quantity),
        )

    def reconcile(self, prepurchase_id: UUID) -> ReconcileResult:
        """Recompute ``used_quantity`` from the records and report any drift."""
        unit = self._require_unit(prepurchase_id)
        stored = unit.used_quantity
        recorded = self.store.sum_usage_quantity(prepurchase_id)
        if self._check_drift(unit, recorded, "reconcile"):
            unit = self.store.save_prepurchase_unit(
                replace(unit, used_quantity=recorded), actor_id=self.actor_id
            )
        return ReconcileResult(
            unit=unit,
            stored_used_quantity=stored,
            recorded_used_quantity=recorded,
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_unit(self, prepurchase_id: UUID) -> PrepurchaseUnitInfo:
        unit = self.store.get_prepurchase_unit(prepurchase_id)
        if unit is None:
            raise NotFoundError("prepurchase_unit", str(prepurchase_id))
        return unit

    def _store_recomputed(self, unit: PrepurchaseUnitInfo) -> PrepurchaseUnitInfo:
        recomputed = self.store.sum_usage_quantity(unit.id)
        return self.store.save_prepurchase_unit(
            replace(unit, used_quantity=recomputed), actor_id=self.actor_id
        )

    def _check_drift(
        self, unit: PrepurchaseUnitInfo, recorded: int, operation: str
    ) -> bool:
        if unit.used_quantity == recorded:
            return False
        logger.warning(
            "prepurchase_usage_drift_detected",
            extra={
                "prepurchase_id": str(unit.id),
                "operation": operation,
                "stored_used_quantity": unit.used_quantity,
                "recorded_used_quantity": recorded,
            },
        )
        return True
