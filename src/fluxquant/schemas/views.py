"""
Read model schemas for the matrix and my-allocations views.

The query layer returns nested dicts; these schemas fix the wire shape
(ISO dates, enum values, integer counters) of what fluxquant.api returns.
"""

from marshmallow import Schema, fields

from fluxquant.accounting.reports import ExclusionReason, ReportStatus
from .results import AnomalySchema, ProgressSchema


class MatrixAllocationSchema(Schema):
    allocation_id = fields.Integer()
    user_id = fields.Integer()
    username = fields.String()
    display_name = fields.String()
    target_quota = fields.Integer()
    current_valid = fields.Integer()
    current_excluded = fields.Integer()
    active = fields.Boolean()
    progress = fields.Nested(ProgressSchema)
    anomaly = fields.Nested(AnomalySchema)


class MatrixPoolSchema(Schema):
    task_pool_id = fields.Integer()
    name = fields.String()
    active = fields.Boolean()
    total_quota = fields.Integer()
    assigned_total = fields.Integer()
    unassigned = fields.Integer()
    is_over_allocated = fields.Boolean()
    total_valid = fields.Integer()
    total_excluded = fields.Integer()
    progress = fields.Nested(ProgressSchema)
    anomaly = fields.Nested(AnomalySchema)
    allocations = fields.List(fields.Nested(MatrixAllocationSchema))


class MatrixStageSchema(Schema):
    stage_id = fields.Integer()
    name = fields.String()
    order = fields.Integer()
    active = fields.Boolean()
    task_pools = fields.List(fields.Nested(MatrixPoolSchema))


class MatrixProjectSchema(Schema):
    project_id = fields.Integer()
    code = fields.String()
    name = fields.String()
    description = fields.String(allow_none=True)
    active = fields.Boolean()


class MatrixUserSchema(Schema):
    user_id = fields.Integer()
    username = fields.String()
    display_name = fields.String()


class MatrixTotalsSchema(Schema):
    total_quota = fields.Integer()
    total_valid = fields.Integer()
    total_excluded = fields.Integer()
    progress = fields.Nested(ProgressSchema)


class MatrixViewSchema(Schema):
    project = fields.Nested(MatrixProjectSchema)
    stages = fields.List(fields.Nested(MatrixStageSchema))
    users = fields.List(fields.Nested(MatrixUserSchema))
    totals = fields.Nested(MatrixTotalsSchema)


class ReportSummarySchema(Schema):
    report_log_id = fields.Integer()
    log_date = fields.Date()
    valid_qty = fields.Integer()
    excluded_qty = fields.Integer()
    exclusion_reason = fields.Enum(ExclusionReason, by_value=True, allow_none=True)
    comment = fields.String(allow_none=True)
    is_backfill = fields.Boolean()
    status = fields.Enum(ReportStatus, by_value=True)
    creation_time = fields.DateTime()
    reverted_at = fields.DateTime(allow_none=True)


class MyAllocationSchema(Schema):
    allocation_id = fields.Integer()
    task_pool_id = fields.Integer()
    task_pool_name = fields.String()
    stage_name = fields.String()
    project_id = fields.Integer()
    project_code = fields.String()
    project_name = fields.String()
    target_quota = fields.Integer()
    current_valid = fields.Integer()
    current_excluded = fields.Integer()
    progress = fields.Nested(ProgressSchema)
    last_report = fields.Nested(ReportSummarySchema, allow_none=True)
    creation_time = fields.DateTime()
