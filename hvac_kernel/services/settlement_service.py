"""
SettlementService -- the two settlement tracks of a work order.

Responsibility:
    1. Installer settlement (``installer_settlement_status``):

           unsettled --> in-progress --> settled
                ^             |
                +-------------+

       applied in bulk to a month's completed orders.  ``settled`` is
       terminal: money has moved.
    2. Ordering-company settlement: completed orders are closed out as
       ``settled`` for a month, and can be reverted to ``completed``.

Architecture position:
    Kernel > Services -- imperative shell.  Eligibility (e.g. a completion
    date being present) is the caller's filter, not this service's.

Invariants enforced:
    - Each element of an installer batch is ONE conditional UPDATE keyed on
      the installer status read for that element.  If another batch moved
      the order in between, that element fails with
      ConcurrentModificationError; the rest of the batch is unaffected.
    - Moving to ``settled`` stamps ``installer_settlement_month`` (the
      chosen month, else the clock's current year-month).
    - Batch operations report one outcome per id and never abort early.
      Single-order operations raise.

Failure modes (per element in batches, raised for single-order calls):
    - NotFoundError: unknown order.
    - InvalidStateError: transition not in the state machine.
    - ConcurrentModificationError: conditional update lost a race.
    - ValidationError (whole call): malformed settlement month or target.
"""

from collections.abc import Callable, Iterable
from dataclasses import replace
from uuid import UUID, uuid4

from hvac_kernel.domain.calendar import is_year_month, year_month
from hvac_kernel.domain.dtos import BatchItemOutcome, BatchResult, WorkOrderInfo
from hvac_kernel.domain.values import (
    INSTALLER_SETTLEMENT_TRANSITIONS,
    InstallerSettlementStatus,
    OutcomeStatus,
    WorkOrderStatus,
)
from hvac_kernel.exceptions import (
    ConcurrentModificationError,
    HvacKernelError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from hvac_kernel.logging_config import LogContext, get_logger
from hvac_kernel.services.base import BaseService

logger = get_logger("services.settlement")


class SettlementService(BaseService):
    """
    Settlement state machines.

    Contract:
        Batch methods return a BatchResult; single-order methods return the
        updated WorkOrderInfo or raise.

    Non-goals:
        - No authorization: the caller gates who may settle.
        - No eligibility filtering.
    """

    # =========================================================================
    # Installer settlement
    # =========================================================================

    def transition_installer_settlement(
        self,
        order_ids: Iterable[UUID],
        target: InstallerSettlementStatus,
        settlement_month: str | None = None,
    ) -> BatchResult:
        """Move every order in the set to ``target``, reporting per order."""
        target = _parse_target(target)
        month = self._resolve_month(target, settlement_month)
        batch_id = uuid4()

        with LogContext.bind(batch_id=batch_id):
            outcomes = self._run_batch(
                order_ids,
                lambda order_id: self._transition_one(order_id, target, month),
            )
            result = BatchResult(
                batch_id=batch_id, target=target.value, outcomes=tuple(outcomes)
            )
            logger.info(
                "installer_settlement_batch_applied",
                extra={
                    "target": target.value,
                    "settlement_month": month,
                    "requested": len(result.outcomes),
                    "succeeded": len(result.succeeded),
                    "unchanged": len(result.unchanged),
                    "failed": len(result.failed),
                },
            )
            return result

    def update_installer_settlement(
        self,
        order_id: UUID,
        target: InstallerSettlementStatus,
        settlement_month: str | None = None,
    ) -> WorkOrderInfo:
        """Single-order transition; raises instead of reporting."""
        target = _parse_target(target)
        month = self._resolve_month(target, settlement_month)
        self._transition_one(order_id, target, month)
        return self._require_order(order_id)

    def revert_to_unsettled(self, order_id: UUID) -> WorkOrderInfo:
        """Undo a batch mistake before it reaches ``settled``."""
        return self.update_installer_settlement(
            order_id, InstallerSettlementStatus.UNSETTLED
        )

    def _transition_one(
        self,
        order_id: UUID,
        target: InstallerSettlementStatus,
        month: str | None,
    ) -> BatchItemOutcome:
        with LogContext.bind(order_id=order_id):
            order = self._require_order(order_id)
            current = order.effective_installer_settlement_status

            if current == target:
                return BatchItemOutcome(
                    order_id=order_id,
                    status=OutcomeStatus.UNCHANGED,
                    previous_state=current.value,
                    new_state=current.value,
                )

            if target not in INSTALLER_SETTLEMENT_TRANSITIONS[current]:
                raise InvalidStateError(
                    "installer_settlement",
                    str(order_id),
                    current.value,
                    f"move to {target.value}",
                )

            stamp = target == InstallerSettlementStatus.SETTLED
            if not self.store.compare_and_set_installer_settlement(
                order_id, current, target, month, stamp_month=stamp
            ):
                raise ConcurrentModificationError(
                    "installer_settlement", str(order_id), current.value
                )

            logger.info(
                "installer_settlement_transitioned",
                extra={
                    "from_status": current.value,
                    "to_status": target.value,
                    "settlement_month": month if stamp else None,
                },
            )
            return BatchItemOutcome(
                order_id=order_id,
                status=OutcomeStatus.SUCCEEDED,
                previous_state=current.value,
                new_state=target.value,
            )

    # =========================================================================
    # Ordering-company settlement
    # =========================================================================

    def complete_order_settlement(
        self, order_ids: Iterable[UUID], settlement_month: str
    ) -> BatchResult:
        """Close completed orders for ``settlement_month``.

        Sets the order to ``settled`` with the month and today's date, and
        the installer track to ``settled`` for the same month.
        """
        if not is_year_month(settlement_month):
            raise ValidationError(
                "settlement_month", f"expected YYYY-MM, got {settlement_month!r}"
            )
        batch_id = uuid4()

        with LogContext.bind(batch_id=batch_id):
            outcomes = self._run_batch(
                order_ids,
                lambda order_id: self._settle_order(order_id, settlement_month),
            )
            result = BatchResult(
                batch_id=batch_id,
                target=WorkOrderStatus.SETTLED.value,
                outcomes=tuple(outcomes),
            )
            logger.info(
                "order_settlement_batch_applied",
                extra={
                    "settlement_month": settlement_month,
                    "requested": len(result.outcomes),
                    "succeeded": len(result.succeeded),
                    "unchanged": len(result.unchanged),
                    "failed": len(result.failed),
                },
            )
            return result

    def revert_order_settlement(self, order_id: UUID) -> WorkOrderInfo:
        """Settled order back to ``completed``; the installer track is kept."""
        with LogContext.bind(order_id=order_id):
            order = self._require_order(order_id)
            if order.status != WorkOrderStatus.SETTLED:
                logger.warning(
                    "order_settlement_revert_rejected",
                    extra={"status": order.status.value},
                )
                raise InvalidStateError(
                    "work_order", str(order_id), order.status.value, "revert settlement of"
                )

            reverted = self.store.save_work_order(
                replace(
                    order,
                    status=WorkOrderStatus.COMPLETED,
                    settlement_month=None,
                    settlement_date=None,
                ),
                actor_id=self.actor_id,
            )
            logger.info(
                "order_settlement_reverted",
                extra={"reverted_month": order.settlement_month},
            )
            return reverted

    def _settle_order(self, order_id: UUID, settlement_month: str) -> BatchItemOutcome:
        with LogContext.bind(order_id=order_id):
            order = self._require_order(order_id)
            if order.status == WorkOrderStatus.SETTLED:
                return BatchItemOutcome(
                    order_id=order_id,
                    status=OutcomeStatus.UNCHANGED,
                    previous_state=order.status.value,
                    new_state=order.status.value,
                )
            if order.status != WorkOrderStatus.COMPLETED:
                raise InvalidStateError(
                    "work_order", str(order_id), order.status.value, "settle"
                )

            self.store.save_work_order(
                replace(
                    order,
                    status=WorkOrderStatus.SETTLED,
                    settlement_month=settlement_month,
                    settlement_date=self.clock.today(),
                    installer_settlement_status=InstallerSettlementStatus.SETTLED,
                    installer_settlement_month=settlement_month,
                ),
                actor_id=self.actor_id,
            )
            logger.info(
                "order_settled",
                extra={"settlement_month": settlement_month},
            )
            return BatchItemOutcome(
                order_id=order_id,
                status=OutcomeStatus.SUCCEEDED,
                previous_state=order.status.value,
                new_state=WorkOrderStatus.SETTLED.value,
            )

    # =========================================================================
    # Internals
    # =========================================================================

    def _run_batch(
        self,
        order_ids: Iterable[UUID],
        apply: Callable[[UUID], BatchItemOutcome],
    ) -> list[BatchItemOutcome]:
        outcomes: list[BatchItemOutcome] = []
        seen: set[UUID] = set()
        for order_id in order_ids:
            if order_id in seen:
                continue
            seen.add(order_id)
            try:
                outcomes.append(apply(order_id))
            except HvacKernelError as exc:
                logger.warning(
                    "settlement_element_rejected",
                    extra={
                        "order_id": str(order_id),
                        "error_code": exc.code,
                        "error_message": str(exc),
                    },
                )
                outcomes.append(
                    BatchItemOutcome(
                        order_id=order_id,
                        status=OutcomeStatus.FAILED,
                        error_code=exc.code,
                        message=str(exc),
                    )
                )
        return outcomes

    def _resolve_month(
        self, target: InstallerSettlementStatus, settlement_month: str | None
    ) -> str | None:
        if settlement_month is not None and not is_year_month(settlement_month):
            raise ValidationError(
                "settlement_month", f"expected YYYY-MM, got {settlement_month!r}"
            )
        if target != InstallerSettlementStatus.SETTLED:
            return None
        return settlement_month or year_month(self.clock.today())

    def _require_order(self, order_id: UUID) -> WorkOrderInfo:
        order = self.store.get_work_order(order_id)
        if order is None:
            raise NotFoundError("work_order", str(order_id))
        return order


def _parse_target(target: InstallerSettlementStatus | str) -> InstallerSettlementStatus:
    try:
        return InstallerSettlementStatus(target)
    except ValueError:
        raise ValidationError(
            "target", f"unknown installer settlement status {target!r}"
        ) from None
