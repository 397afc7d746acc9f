"""
Schemas for derived values and writer results.

Progress and anomaly values are never stored, so these are plain
marshmallow schemas over the calculator/detector dataclasses (or their
as_dict() forms).
"""

from marshmallow import Schema, fields

from fluxquant.accounting.reports import ExclusionReason
from .entities import AllocationSchema, QuotaAdjustmentSchema, ReportLogSchema, TaskPoolSchema


class ProgressSchema(Schema):
    percent = fields.Integer()
    display_percent = fields.Integer()
    is_completed = fields.Boolean()
    is_lagging = fields.Boolean()


class AnomalySchema(Schema):
    """Anomaly report; every field but status is null when status is 'unknown'."""
    status = fields.String()
    processed = fields.Integer(allow_none=True)
    exclusion_rate = fields.Float(allow_none=True)
    is_anomalous = fields.Boolean(allow_none=True)
    is_overrun = fields.Boolean(allow_none=True)
    top_reason = fields.Enum(ExclusionReason, by_value=True, allow_none=True)


class WarningSchema(Schema):
    code = fields.String()
    message = fields.String()


class ReportResultSchema(Schema):
    report_log = fields.Nested(ReportLogSchema)
    allocation = fields.Nested(AllocationSchema)
    current_valid = fields.Integer()
    current_excluded = fields.Integer()
    progress = fields.Nested(ProgressSchema)
    warnings = fields.List(fields.Nested(WarningSchema))


class QuotaAdjustmentResultSchema(Schema):
    adjustment = fields.Nested(QuotaAdjustmentSchema)
    task_pool = fields.Nested(TaskPoolSchema)
    delta = fields.Integer()
    previous = fields.Nested(ProgressSchema)
    preview = fields.Nested(ProgressSchema)
    warnings = fields.List(fields.Nested(WarningSchema))


class AllocationResultSchema(Schema):
    allocation = fields.Nested(AllocationSchema)
    progress = fields.Nested(ProgressSchema)
    previous_target = fields.Integer(allow_none=True)
    warnings = fields.List(fields.Nested(WarningSchema))
