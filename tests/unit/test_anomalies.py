"""
Unit tests for exclusion-rate and overrun anomaly detection.
"""

import logging
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from fluxquant.accounting.anomalies import (
    STATUS_ANOMALOUS,
    STATUS_OK,
    STATUS_UNKNOWN,
    AnomalyDetector,
    exclusion_rate,
    top_exclusion_reason,
)
from fluxquant.accounting.reports import ExclusionReason, ReportStatus


def make_log(reason, minutes=0, log_id=1, status=ReportStatus.ACTIVE):
    return SimpleNamespace(
        exclusion_reason=reason,
        status=status,
        creation_time=datetime(2026, 3, 2, 9, 0) + timedelta(minutes=minutes),
        report_log_id=log_id,
    )


class TestExclusionRate:

    def test_rate(self):
        assert exclusion_rate(40, 30) == pytest.approx(30 / 70)

    def test_no_work_is_zero(self):
        assert exclusion_rate(0, 0) == 0


class TestAnomalyDetector:

    def test_high_exclusion_rate_is_anomalous(self):
        """40 valid / 30 excluded against quota 100 is a 42.9% exclusion rate."""
        report = AnomalyDetector().evaluate(40, 30, 100)
        assert report.status == STATUS_ANOMALOUS
        assert report.is_anomalous is True
        assert report.is_overrun is False
        assert report.processed == 70
        assert report.exclusion_rate == pytest.approx(0.4286, abs=1e-4)

    def test_healthy_pool(self):
        report = AnomalyDetector().evaluate(90, 5, 100)
        assert report.status == STATUS_OK
        assert report.is_anomalous is False

    def test_rate_at_threshold_is_not_anomalous(self):
        report = AnomalyDetector(anomaly_threshold=0.25).evaluate(75, 25, 200)
        assert report.is_anomalous is False

    def test_overrun(self):
        report = AnomalyDetector().evaluate(112, 0, 100)
        assert report.is_overrun is True
        assert report.status == STATUS_ANOMALOUS

    def test_overrun_needs_positive_quota(self):
        report = AnomalyDetector().evaluate(10, 0, 0)
        assert report.is_overrun is False

    def test_min_sample_suppresses_small_samples(self):
        detector = AnomalyDetector(min_sample=50)
        assert detector.evaluate(1, 1, 100).is_anomalous is False
        assert detector.evaluate(30, 30, 100).is_anomalous is True

    def test_negative_input_degrades_to_unknown(self, caplog):
        with caplog.at_level(logging.WARNING, logger='fluxquant.accounting.anomalies'):
            report = AnomalyDetector().evaluate(-1, 0, 100)
        assert report.status == STATUS_UNKNOWN
        assert report.is_anomalous is None
        assert report.exclusion_rate is None
        assert 'unknown' in caplog.text

    def test_non_integer_input_degrades_to_unknown(self):
        assert AnomalyDetector().evaluate(None, 0, 100).status == STATUS_UNKNOWN
        assert AnomalyDetector().evaluate(1, 0, '100').status == STATUS_UNKNOWN

    def test_as_dict_keeps_enum(self):
        logs = [make_log(ExclusionReason.ILLEGIBLE)]
        data = AnomalyDetector().evaluate(40, 30, 100, logs).as_dict()
        assert data['top_reason'] == ExclusionReason.ILLEGIBLE
        assert data['status'] == STATUS_ANOMALOUS


class TestTopExclusionReason:

    def test_most_frequent_wins(self):
        logs = [
            make_log(ExclusionReason.ILLEGIBLE, 0, 1),
            make_log(ExclusionReason.DUPLICATE_DATA, 1, 2),
            make_log(ExclusionReason.DUPLICATE_DATA, 2, 3),
        ]
        assert top_exclusion_reason(logs) == ExclusionReason.DUPLICATE_DATA

    def test_tie_goes_to_most_recent(self):
        logs = [
            make_log(ExclusionReason.DUPLICATE_DATA, 0, 1),
            make_log(ExclusionReason.ILLEGIBLE, 5, 2),
        ]
        assert top_exclusion_reason(logs) == ExclusionReason.ILLEGIBLE

    def test_reverted_logs_ignored(self):
        logs = [
            make_log(ExclusionReason.ILLEGIBLE, 0, 1),
            make_log(ExclusionReason.OTHER, 1, 2, status=ReportStatus.REVERTED),
            make_log(ExclusionReason.OTHER, 2, 3, status=ReportStatus.REVERTED),
        ]
        assert top_exclusion_reason(logs) == ExclusionReason.ILLEGIBLE

    def test_none_without_exclusions(self):
        assert top_exclusion_reason([make_log(None)]) is None
        assert top_exclusion_reason([]) is None

    def test_accepts_stored_string_values(self):
        assert top_exclusion_reason([make_log('illegible')]) == ExclusionReason.ILLEGIBLE
