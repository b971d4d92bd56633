"""
Tests for SettlementService.

Covers:
- Installer settlement state machine: unsettled -> in-progress -> settled,
  in-progress -> unsettled, settled terminal
- Month stamping on settle (explicit month, else the clock's month)
- Batch reporting: per-order outcomes, unchanged elements, one failure
  never hides the rest, lost races
- Ordering-company settlement and its revert
"""

from datetime import date
from uuid import uuid4

import pytest

from hvac_kernel.domain.values import (
    InstallerSettlementStatus,
    OutcomeStatus,
    WorkOrderStatus,
)
from hvac_kernel.exceptions import InvalidStateError, NotFoundError, ValidationError

UNSETTLED = InstallerSettlementStatus.UNSETTLED
IN_PROGRESS = InstallerSettlementStatus.IN_PROGRESS
SETTLED = InstallerSettlementStatus.SETTLED


@pytest.fixture
def completed_order(create_order, work_order_service):
    def _create(**kwargs):
        order = create_order(**kwargs)
        return work_order_service.complete_installation(order.id, date(2026, 1, 12))

    return _create


class TestInstallerTransitions:
    @pytest.mark.parametrize(
        "path",
        [
            [IN_PROGRESS],
            [IN_PROGRESS, SETTLED],
            [IN_PROGRESS, UNSETTLED],
            [IN_PROGRESS, UNSETTLED, IN_PROGRESS, SETTLED],
        ],
    )
    def test_legal_paths(self, settlement_service, completed_order, path):
        order = completed_order()
        for target in path:
            updated = settlement_service.update_installer_settlement(order.id, target)
        assert updated.installer_settlement_status == path[-1]

    @pytest.mark.parametrize(
        "setup, target",
        [
            ([], SETTLED),
            ([IN_PROGRESS, SETTLED], IN_PROGRESS),
            ([IN_PROGRESS, SETTLED], UNSETTLED),
        ],
    )
    def test_illegal_transitions(self, settlement_service, completed_order, setup, target):
        order = completed_order()
        for step in setup:
            settlement_service.update_installer_settlement(order.id, step)

        with pytest.raises(InvalidStateError):
            settlement_service.update_installer_settlement(order.id, target)

    def test_unset_reads_as_unsettled(self, settlement_service, completed_order):
        order = completed_order()
        assert order.installer_settlement_status is None

        result = settlement_service.transition_installer_settlement([order.id], UNSETTLED)

        assert result.outcomes[0].status == OutcomeStatus.UNCHANGED
        assert result.outcomes[0].previous_state == "unsettled"

    def test_settle_stamps_clock_month(self, settlement_service, completed_order):
        order = completed_order()
        settlement_service.update_installer_settlement(order.id, IN_PROGRESS)

        settled = settlement_service.update_installer_settlement(order.id, SETTLED)

        assert settled.installer_settlement_month == "2026-01"

    def test_settle_with_chosen_month(
        self, settlement_service, completed_order, deterministic_clock
    ):
        deterministic_clock.set_today(date(2026, 3, 2))
        order = completed_order()
        settlement_service.update_installer_settlement(order.id, IN_PROGRESS)

        settled = settlement_service.update_installer_settlement(
            order.id, SETTLED, settlement_month="2026-02"
        )

        assert settled.installer_settlement_month == "2026-02"

    def test_in_progress_does_not_stamp(self, settlement_service, completed_order):
        order = completed_order()
        updated = settlement_service.update_installer_settlement(
            order.id, IN_PROGRESS, settlement_month="2026-02"
        )
        assert updated.installer_settlement_month is None

    def test_revert_to_unsettled(self, settlement_service, completed_order):
        order = completed_order()
        settlement_service.update_installer_settlement(order.id, IN_PROGRESS)

        reverted = settlement_service.revert_to_unsettled(order.id)

        assert reverted.installer_settlement_status == UNSETTLED

    def test_bad_month_rejects_whole_call(self, settlement_service, completed_order):
        order = completed_order()
        with pytest.raises(ValidationError):
            settlement_service.transition_installer_settlement(
                [order.id], SETTLED, settlement_month="2026-1"
            )

    def test_single_order_unknown(self, settlement_service):
        with pytest.raises(NotFoundError):
            settlement_service.update_installer_settlement(uuid4(), IN_PROGRESS)

    @pytest.mark.parametrize("target", ["bogus", "", None, "SETTLED"])
    def test_malformed_target(self, settlement_service, completed_order, target):
        order = completed_order()

        with pytest.raises(ValidationError):
            settlement_service.transition_installer_settlement([order.id], target)
        with pytest.raises(ValidationError):
            settlement_service.update_installer_settlement(order.id, target)


class TestInstallerBatch:
    def test_batch_reports_each_order(self, settlement_service, completed_order):
        fresh = completed_order(business_name="fresh")
        started = completed_order(business_name="started")
        done = completed_order(business_name="done")
        settlement_service.update_installer_settlement(started.id, IN_PROGRESS)
        settlement_service.update_installer_settlement(done.id, IN_PROGRESS)
        settlement_service.update_installer_settlement(done.id, SETTLED)
        missing = uuid4()

        result = settlement_service.transition_installer_settlement(
            [fresh.id, started.id, done.id, missing], IN_PROGRESS
        )

        assert result.target == "in-progress"
        assert result.outcome_for(fresh.id).status == OutcomeStatus.SUCCEEDED
        assert result.outcome_for(started.id).status == OutcomeStatus.UNCHANGED
        assert result.outcome_for(done.id).error_code == "INVALID_STATE"
        assert result.outcome_for(missing).error_code == "NOT_FOUND"
        assert not result.all_succeeded
        assert len(result.failed) == 2

    def test_failures_do_not_roll_back_others(
        self, settlement_service, completed_order, work_order_service
    ):
        good = completed_order()
        bad = completed_order()
        settlement_service.update_installer_settlement(bad.id, IN_PROGRESS)
        settlement_service.update_installer_settlement(bad.id, SETTLED)

        settlement_service.transition_installer_settlement([bad.id, good.id], IN_PROGRESS)

        assert (
            work_order_service.get_work_order(good.id).installer_settlement_status
            == IN_PROGRESS
        )

    def test_duplicate_ids_reported_once(self, settlement_service, completed_order):
        order = completed_order()
        result = settlement_service.transition_installer_settlement(
            [order.id, order.id], IN_PROGRESS
        )
        assert len(result.outcomes) == 1

    def test_lost_race_is_concurrent_modification(
        self, settlement_service, completed_order, store, monkeypatch
    ):
        """Another batch moves the order between the read and the update."""
        order = completed_order()
        original = store.compare_and_set_installer_settlement

        def racing(order_id, expected, new_status, month, stamp_month):
            original(order_id, UNSETTLED, IN_PROGRESS, None, stamp_month=False)
            return original(order_id, expected, new_status, month, stamp_month=stamp_month)

        monkeypatch.setattr(store, "compare_and_set_installer_settlement", racing)

        result = settlement_service.transition_installer_settlement([order.id], IN_PROGRESS)

        outcome = result.outcome_for(order.id)
        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.error_code == "CONCURRENT_MODIFICATION"

    def test_batch_logged_with_batch_id(
        self, settlement_service, completed_order, captured_logs
    ):
        order = completed_order()
        result = settlement_service.transition_installer_settlement([order.id], IN_PROGRESS)

        summary = [
            r
            for r in captured_logs()
            if r["message"] == "installer_settlement_batch_applied"
        ]
        assert summary[0]["batch_id"] == str(result.batch_id)
        assert summary[0]["succeeded"] == 1


class TestOrderSettlement:
    def test_settle_completed_orders(
        self, settlement_service, completed_order, work_order_service
    ):
        order = completed_order()

        result = settlement_service.complete_order_settlement([order.id], "2026-01")

        assert result.all_succeeded
        settled = work_order_service.get_work_order(order.id)
        assert settled.status == WorkOrderStatus.SETTLED
        assert settled.settlement_month == "2026-01"
        assert settled.settlement_date == date(2026, 1, 15)
        assert settled.installer_settlement_status == SETTLED
        assert settled.installer_settlement_month == "2026-01"

    def test_installer_month_follows_order_month(
        self, settlement_service, completed_order, work_order_service
    ):
        order = completed_order()
        settlement_service.update_installer_settlement(order.id, IN_PROGRESS)
        settlement_service.update_installer_settlement(
            order.id, SETTLED, settlement_month="2025-12"
        )

        settlement_service.complete_order_settlement([order.id], "2026-01")

        settled = work_order_service.get_work_order(order.id)
        assert settled.installer_settlement_month == "2026-01"
        assert settled.settlement_month == "2026-01"

    def test_only_completed_orders_settle(
        self, settlement_service, create_order, completed_order
    ):
        open_order = create_order()
        order = completed_order()
        settlement_service.complete_order_settlement([order.id], "2026-01")

        result = settlement_service.complete_order_settlement(
            [open_order.id, order.id], "2026-01"
        )

        assert result.outcome_for(open_order.id).error_code == "INVALID_STATE"
        assert result.outcome_for(order.id).status == OutcomeStatus.UNCHANGED

    def test_bad_month(self, settlement_service, completed_order):
        with pytest.raises(ValidationError):
            settlement_service.complete_order_settlement([completed_order().id], "2026/01")

    def test_settled_order_is_frozen(
        self, settlement_service, completed_order, work_order_service
    ):
        order = completed_order()
        settlement_service.complete_order_settlement([order.id], "2026-01")

        with pytest.raises(InvalidStateError):
            work_order_service.cancel_work_order(order.id, "too late")

    def test_revert_order_settlement(
        self, settlement_service, completed_order
    ):
        order = completed_order()
        settlement_service.complete_order_settlement([order.id], "2026-01")

        reverted = settlement_service.revert_order_settlement(order.id)

        assert reverted.status == WorkOrderStatus.COMPLETED
        assert reverted.settlement_month is None
        assert reverted.settlement_date is None
        assert reverted.installer_settlement_status == SETTLED

    def test_revert_requires_settled(self, settlement_service, completed_order):
        with pytest.raises(InvalidStateError):
            settlement_service.revert_order_settlement(completed_order().id)
