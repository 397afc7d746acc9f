"""
Unit tests for report submission and revert.

Tests use the seeded hierarchy (pool quota 100, alice's allocation target 60)
and commit through quota_transaction, then re-read the counters.
"""

from datetime import date, timedelta

import pytest

from fluxquant.accounting.allocations import Allocation
from fluxquant.accounting.reports import ExclusionReason, ReportLog, ReportStatus
from fluxquant.config import EngineConfig
from fluxquant.exceptions import (
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)
from fluxquant.manage import (
    quota_transaction,
    revert_report,
    set_task_pool_active,
    submit_report,
    toggle_allocation,
)
from fluxquant.pools.task_pools import TaskPool


WORK_DATE = date(2026, 3, 2)


def counters(session, seed):
    """(alloc valid, alloc excluded, pool valid, pool excluded) as stored."""
    session.expire_all()
    allocation = session.get(Allocation, seed.allocation_id)
    pool = session.get(TaskPool, seed.task_pool_id)
    return (allocation.current_valid, allocation.current_excluded,
            pool.total_valid, pool.total_excluded)


def submit(session, seed, **kwargs):
    kwargs.setdefault('log_date', WORK_DATE)
    kwargs.setdefault('valid_qty', 10)
    with quota_transaction(session):
        return submit_report(session, seed.allocation_id, **kwargs)


class TestSubmitReport:
    """Tests for submit_report() function."""

    def test_cascades_to_allocation_and_pool(self, session, seed, alice):
        before = counters(session, seed)
        result = submit(session, seed, valid_qty=40, excluded_qty=3,
                        exclusion_reason=ExclusionReason.ILLEGIBLE, actor=alice)

        assert result.current_valid == before[0] + 40
        assert result.current_excluded == before[1] + 3
        assert counters(session, seed) == (40, 3, 40, 3)

    def test_deltas_accumulate(self, session, seed):
        submit(session, seed, valid_qty=10)
        submit(session, seed, valid_qty=15, excluded_qty=5, exclusion_reason='duplicate_data')
        assert counters(session, seed) == (25, 5, 25, 5)

    def test_report_log_is_recorded(self, session, seed, alice):
        result = submit(session, seed, valid_qty=12, comment='box 4', is_backfill=True, actor=alice)

        log = session.get(ReportLog, result.report_log.report_log_id)
        assert log.allocation_id == seed.allocation_id
        assert log.log_date == WORK_DATE
        assert log.valid_qty == 12
        assert log.excluded_qty == 0
        assert log.exclusion_reason is None
        assert log.comment == 'box 4'
        assert log.is_backfill is True
        assert log.status == ReportStatus.ACTIVE
        assert log.reported_by_id == seed.alice_id

    def test_progress_against_target(self, session, seed):
        result = submit(session, seed, valid_qty=30)
        # 30 of a 60 target
        assert result.progress.percent == 50
        assert result.warnings == []

    def test_pool_progress_uses_excluded_denominator(self, session, seed, calculator):
        submit(session, seed, valid_qty=45, excluded_qty=10, exclusion_reason='other')
        pool = session.get(TaskPool, seed.task_pool_id)
        assert pool.progress(calculator).percent == 50

    def test_accepts_iso_date_string(self, session, seed):
        result = submit(session, seed, log_date='2026-02-27')
        assert result.report_log.log_date == date(2026, 2, 27)

    def test_over_delivery_warns_without_capping(self, session, seed):
        result = submit(session, seed, valid_qty=70)
        assert result.current_valid == 70
        assert result.progress.percent == 117
        assert [w.code for w in result.warnings] == ['over_delivered']

    def test_manager_reports_for_employee(self, session, seed, manager):
        result = submit(session, seed, valid_qty=5, actor=manager)
        assert result.report_log.reported_by_id == seed.manager_id


class TestSubmitReportValidation:
    """Rejected reports leave every counter untouched."""

    @pytest.mark.parametrize('kwargs', [
        {'valid_qty': -1},
        {'valid_qty': 1.0},
        {'valid_qty': True},
        {'valid_qty': '10'},
        {'valid_qty': 0, 'excluded_qty': 0},
        {'valid_qty': 5, 'excluded_qty': 2},
        {'valid_qty': 5, 'exclusion_reason': 'illegible'},
        {'valid_qty': 5, 'excluded_qty': 2, 'exclusion_reason': 'water_damage'},
        {'valid_qty': 5, 'log_date': '02/03/2026'},
        {'valid_qty': 5, 'log_date': None},
    ])
    def test_invalid_arguments(self, session, seed, kwargs):
        with pytest.raises(InvalidArgumentError):
            submit(session, seed, **kwargs)
        assert counters(session, seed) == (0, 0, 0, 0)
        assert session.query(ReportLog).count() == 0

    def test_missing_reason_names_field(self, session, seed):
        with pytest.raises(InvalidArgumentError) as exc_info:
            submit(session, seed, valid_qty=0, excluded_qty=4)
        assert exc_info.value.details == {'field': 'exclusion_reason'}

    def test_comment_length_limit(self, session, seed):
        config = EngineConfig(max_comment_length=5)
        with pytest.raises(InvalidArgumentError):
            submit(session, seed, comment='far too long', config=config)

    def test_unknown_allocation(self, session, seed):
        with pytest.raises(NotFoundError):
            with quota_transaction(session):
                submit_report(session, 9999, WORK_DATE, valid_qty=1)

    def test_employee_cannot_see_other_allocation(self, session, seed, bob):
        with pytest.raises(NotFoundError):
            submit(session, seed, actor=bob)
        assert counters(session, seed) == (0, 0, 0, 0)

    def test_disabled_allocation(self, session, seed):
        with quota_transaction(session):
            toggle_allocation(session, seed.allocation_id)

        with pytest.raises(InvalidStateError):
            submit(session, seed)
        assert counters(session, seed) == (0, 0, 0, 0)

    def test_disabled_task_pool(self, session, seed):
        with quota_transaction(session):
            set_task_pool_active(session, seed.task_pool_id, False)

        with pytest.raises(InvalidStateError):
            submit(session, seed)


class TestRevertReport:
    """Tests for revert_report() function."""

    def test_round_trip_restores_counters(self, session, seed, alice):
        before = counters(session, seed)
        result = submit(session, seed, valid_qty=40, excluded_qty=30,
                        exclusion_reason='source_file_corrupt', actor=alice)

        with quota_transaction(session):
            reverted = revert_report(session, result.report_log.report_log_id, actor=alice)

        assert counters(session, seed) == before
        assert reverted.current_valid == 0
        assert reverted.report_log.status == ReportStatus.REVERTED
        assert reverted.report_log.reverted_by_id == seed.alice_id
        assert reverted.report_log.reverted_at is not None

    def test_revert_keeps_other_reports(self, session, seed):
        first = submit(session, seed, valid_qty=10)
        submit(session, seed, valid_qty=7)

        with quota_transaction(session):
            revert_report(session, first.report_log.report_log_id)

        assert counters(session, seed) == (7, 0, 7, 0)
        assert session.query(ReportLog).count() == 2

    def test_double_revert_is_invalid_state(self, session, seed):
        result = submit(session, seed, valid_qty=10)
        log_id = result.report_log.report_log_id

        with quota_transaction(session):
            revert_report(session, log_id)
        with pytest.raises(InvalidStateError):
            with quota_transaction(session):
                revert_report(session, log_id)

        assert counters(session, seed) == (0, 0, 0, 0)

    def test_unknown_log(self, session, seed):
        with pytest.raises(NotFoundError):
            revert_report(session, 4242)

    def test_employee_cannot_revert_other_users_log(self, session, seed, bob):
        result = submit(session, seed, valid_qty=10)
        with pytest.raises(NotFoundError):
            with quota_transaction(session):
                revert_report(session, result.report_log.report_log_id, actor=bob)
        assert counters(session, seed) == (10, 0, 10, 0)

    def test_outside_revert_window(self, session, seed):
        result = submit(session, seed, valid_qty=10)
        log = session.get(ReportLog, result.report_log.report_log_id)
        later = log.creation_time + timedelta(hours=25)

        with pytest.raises(InvalidStateError, match='revert window'):
            with quota_transaction(session):
                revert_report(session, log.report_log_id, now=later)
        assert counters(session, seed) == (10, 0, 10, 0)

    def test_unbounded_revert_window(self, session, seed):
        result = submit(session, seed, valid_qty=10)
        log = session.get(ReportLog, result.report_log.report_log_id)
        much_later = log.creation_time + timedelta(days=400)

        with quota_transaction(session):
            revert_report(session, log.report_log_id, now=much_later,
                          config=EngineConfig(revert_window_hours=None))
        assert counters(session, seed) == (0, 0, 0, 0)

    def test_revert_on_disabled_allocation(self, session, seed):
        result = submit(session, seed, valid_qty=10)
        with quota_transaction(session):
            toggle_allocation(session, seed.allocation_id)

        with quota_transaction(session):
            revert_report(session, result.report_log.report_log_id)
        assert counters(session, seed) == (0, 0, 0, 0)
