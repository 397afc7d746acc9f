"""
Tests for the typed operation facade (fluxquant.api).

Each operation is driven with plain request dicts, the way a web handler
or RPC layer would call it, and the response envelopes are checked.
"""

import pytest

from fluxquant.api import OPERATIONS, call_with_retry, handle
from fluxquant.api import operations
from fluxquant.exceptions import (
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    UnavailableError,
)


def report_payload(seed, **overrides):
    payload = {
        'allocation_id': seed.allocation_id,
        'log_date': '2026-03-02',
        'valid_qty': 40,
    }
    payload.update(overrides)
    return payload


class TestSubmitAndRevert:

    def test_submit_report_envelope(self, session, seed, alice):
        response = handle('submit_report', session, report_payload(
            seed, excluded_qty=5, exclusion_reason='illegible', comment='shelf 3'), alice)

        assert response['ok'] is True
        data = response['data']
        assert data['current_valid'] == 40
        assert data['current_excluded'] == 5
        # 40 / (60 - 5)
        assert data['progress']['percent'] == 73
        assert data['report_log']['exclusion_reason'] == 'illegible'
        assert data['report_log']['status'] == 'active'
        assert data['report_log']['log_date'] == '2026-03-02'
        assert data['allocation']['allocation_id'] == seed.allocation_id
        assert data['warnings'] == []

    def test_missing_reason_is_invalid_argument(self, session, seed, alice):
        response = handle('submit_report', session,
                          report_payload(seed, valid_qty=0, excluded_qty=3), alice)

        assert response['ok'] is False
        assert response['error']['code'] == 'invalid_argument'
        assert 'exclusion_reason' in response['error']['details']['errors']

    def test_float_quantity_rejected(self, session, seed, alice):
        response = handle('submit_report', session, report_payload(seed, valid_qty=1.5), alice)
        assert response['error']['code'] == 'invalid_argument'

    def test_other_employee_gets_not_found(self, session, seed, bob):
        response = handle('submit_report', session, report_payload(seed), bob)
        assert response['error'] == {
            'code': 'not_found',
            'message': f"Allocation {seed.allocation_id} not found",
            'retryable': False,
        }

    def test_revert_round_trip(self, session, seed, alice):
        submitted = handle('submit_report', session, report_payload(seed), alice)
        log_id = submitted['data']['report_log']['report_log_id']

        reverted = handle('revert_report', session, {'report_log_id': log_id}, alice)
        assert reverted['ok'] is True
        assert reverted['data']['current_valid'] == 0
        assert reverted['data']['report_log']['status'] == 'reverted'

        again = handle('revert_report', session, {'report_log_id': log_id}, alice)
        assert again['error']['code'] == 'invalid_state'


class TestQuotaOperations:

    def test_adjust_pool_quota(self, session, seed, manager):
        response = handle('adjust_pool_quota', session, {
            'task_pool_id': seed.task_pool_id,
            'new_quota': 150,
            'reason': 'client added batch',
        }, manager)

        assert response['ok'] is True
        data = response['data']
        assert data['adjustment']['previous_quota'] == 100
        assert data['adjustment']['new_quota'] == 150
        assert data['adjustment']['actor_name'] == 'mona'
        assert data['delta'] == 50
        assert data['task_pool']['total_quota'] == 150
        assert data['task_pool']['assigned_total'] == 60

    def test_blank_reason(self, session, seed, manager):
        response = handle('adjust_pool_quota', session, {
            'task_pool_id': seed.task_pool_id, 'new_quota': 150, 'reason': '  ',
        }, manager)
        assert response['error']['code'] == 'invalid_argument'

    def test_employee_forbidden(self, session, seed, alice):
        response = handle('adjust_pool_quota', session, {
            'task_pool_id': seed.task_pool_id, 'new_quota': 150, 'reason': 'more',
        }, alice)
        assert response['error']['code'] == 'forbidden'
        assert response['error']['details'] == {'permission': 'adjust_quota'}

    def test_unchanged_quota_conflict(self, session, seed, manager):
        response = handle('adjust_pool_quota', session, {
            'task_pool_id': seed.task_pool_id, 'new_quota': 100, 'reason': 'same',
        }, manager)
        assert response['error']['code'] == 'conflict'

    def test_update_allocation_target(self, session, seed, manager):
        response = handle('update_allocation_target', session, {
            'allocation_id': seed.allocation_id, 'new_target_quota': 80,
        }, manager)
        assert response['data']['allocation']['target_quota'] == 80
        assert response['data']['previous_target'] == 60


class TestAllocationOperations:

    def test_create_allocation(self, session, seed, manager):
        response = handle('create_allocation', session, {
            'task_pool_id': seed.task_pool_id, 'user_id': seed.bob_id, 'target_quota': 50,
        }, manager)

        assert response['ok'] is True
        assert response['data']['allocation']['user_id'] == seed.bob_id
        assert response['data']['warnings'][0]['code'] == 'over_allocated'

    def test_duplicate_allocation(self, session, seed, manager):
        response = handle('create_allocation', session, {
            'task_pool_id': seed.task_pool_id, 'user_id': seed.alice_id, 'target_quota': 5,
        }, manager)
        assert response['error']['code'] == 'conflict'
        assert response['error']['details']['allocation_id'] == seed.allocation_id

    def test_toggle_allocation(self, session, seed, manager):
        response = handle('toggle_allocation', session,
                          {'allocation_id': seed.allocation_id}, manager)
        assert response['data']['allocation']['active'] is False


class TestReadOperations:

    def test_matrix_view(self, session, seed, manager, alice):
        handle('submit_report', session, report_payload(
            seed, valid_qty=40, excluded_qty=30, exclusion_reason='duplicate_data'), alice)

        response = handle('get_matrix_view', session, {'project_id': seed.project_id}, manager)

        assert response['ok'] is True
        pool = response['data']['stages'][0]['task_pools'][0]
        assert pool['anomaly']['is_anomalous'] is True
        assert pool['anomaly']['top_reason'] == 'duplicate_data'
        assert pool['progress']['percent'] == 57

    def test_reads_end_their_transaction(self, session, seed, manager, alice):
        handle('get_matrix_view', session, {'project_id': seed.project_id}, manager)
        assert not session.in_transaction()

        handle('get_my_allocations', session, {}, alice)
        assert not session.in_transaction()

    def test_matrix_view_needs_permission(self, session, seed, alice):
        response = handle('get_matrix_view', session, {'project_id': seed.project_id}, alice)
        assert response['error']['code'] == 'forbidden'

    def test_my_allocations_defaults_to_actor(self, session, seed, alice):
        response = handle('get_my_allocations', session, {}, alice)
        assert response['data']['user_id'] == seed.alice_id
        assert [a['allocation_id'] for a in response['data']['allocations']] == [seed.allocation_id]
        assert response['data']['allocations'][0]['last_report'] is None

    def test_my_allocations_for_other_user(self, session, seed, manager, bob):
        as_manager = handle('get_my_allocations', session, {'user_id': seed.alice_id}, manager)
        assert len(as_manager['data']['allocations']) == 1

        as_bob = handle('get_my_allocations', session, {'user_id': seed.alice_id}, bob)
        assert as_bob['error']['code'] == 'not_found'


class TestDispatch:

    def test_operation_table(self):
        assert set(OPERATIONS) == {
            'submit_report', 'revert_report', 'adjust_pool_quota',
            'update_allocation_target', 'create_allocation', 'toggle_allocation',
            'get_matrix_view', 'get_my_allocations',
        }

    def test_unknown_operation(self, session):
        response = handle('drop_tables', session, {}, None)
        assert response['error']['code'] == 'invalid_argument'

    def test_missing_actor(self, session, seed):
        response = handle('submit_report', session, report_payload(seed), None)
        assert response['error']['code'] == 'forbidden'

    def test_non_mapping_payload(self, session, seed, alice):
        with pytest.raises(InvalidArgumentError):
            operations.submit_report(session, ['not', 'a', 'dict'], alice)

    def test_unexpected_error_is_opaque(self, session, seed, alice, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("secret details")

        monkeypatch.setattr(operations.manage, 'submit_report', broken)
        response = handle('submit_report', session, report_payload(seed), alice)
        assert response['error'] == {
            'code': 'internal', 'message': 'Internal error', 'retryable': False,
        }

    def test_direct_call_raises(self, session, seed, bob):
        with pytest.raises(NotFoundError):
            operations.submit_report(session, report_payload(seed), bob)
        with pytest.raises(ForbiddenError):
            operations.toggle_allocation(session, {'allocation_id': seed.allocation_id}, bob)


class TestCallWithRetry:

    def test_retries_unavailable(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise UnavailableError("busy")
            return 'done'

        assert call_with_retry(flaky, attempts=3) == 'done'
        assert len(calls) == 3

    def test_gives_up(self):
        def always_busy():
            raise UnavailableError("busy")

        with pytest.raises(UnavailableError):
            call_with_retry(always_busy, attempts=2)

    def test_terminal_errors_not_retried(self):
        calls = []

        def missing():
            calls.append(1)
            raise NotFoundError("gone")

        with pytest.raises(NotFoundError):
            call_with_retry(missing, attempts=5)
        assert len(calls) == 1
