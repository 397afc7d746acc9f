"""
Request schemas for the operation facade.

Each schema validates the shape of one request payload. Quantities are
strict integers (floats and booleans are rejected) so no precision is lost
between the caller and the counters. Business rules that need the database
(ownership, allocation state) stay in the writers.

Usage:
    from fluxquant.schemas import SubmitReportRequestSchema

    data = SubmitReportRequestSchema().load({
        'allocation_id': 12,
        'log_date': '2026-03-02',
        'valid_qty': 40,
    })
"""

from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from fluxquant.accounting.reports import ExclusionReason


def _id_field(**kwargs):
    return fields.Integer(strict=True, validate=validate.Range(min=1), **kwargs)


def _quantity_field(**kwargs):
    return fields.Integer(strict=True, validate=validate.Range(min=0), **kwargs)


class SubmitReportRequestSchema(Schema):
    allocation_id = _id_field(required=True)
    log_date = fields.Date(required=True)
    valid_qty = _quantity_field(required=True)
    excluded_qty = _quantity_field(load_default=0)
    exclusion_reason = fields.Enum(ExclusionReason, by_value=True, load_default=None, allow_none=True)
    comment = fields.String(load_default=None, allow_none=True)
    is_backfill = fields.Boolean(load_default=False)

    @validates_schema
    def validate_quantities(self, data, **kwargs):
        valid = data.get('valid_qty')
        excluded = data.get('excluded_qty', 0)
        if valid == 0 and excluded == 0:
            raise ValidationError('valid_qty and excluded_qty cannot both be zero', 'valid_qty')
        if excluded and data.get('exclusion_reason') is None:
            raise ValidationError('Required when excluded_qty > 0', 'exclusion_reason')


class RevertReportRequestSchema(Schema):
    report_log_id = _id_field(required=True)


class AdjustPoolQuotaRequestSchema(Schema):
    task_pool_id = _id_field(required=True)
    new_quota = _quantity_field(required=True)
    reason = fields.String(required=True, validate=validate.Length(min=1))

    @validates_schema
    def validate_reason(self, data, **kwargs):
        if 'reason' in data and not data['reason'].strip():
            raise ValidationError('reason cannot be blank', 'reason')


class UpdateAllocationTargetRequestSchema(Schema):
    allocation_id = _id_field(required=True)
    new_target_quota = _quantity_field(required=True)


class CreateAllocationRequestSchema(Schema):
    task_pool_id = _id_field(required=True)
    user_id = _id_field(required=True)
    target_quota = _quantity_field(required=True)


class ToggleAllocationRequestSchema(Schema):
    allocation_id = _id_field(required=True)


class MatrixViewRequestSchema(Schema):
    project_id = _id_field(required=True)
    include_inactive = fields.Boolean(load_default=False)


class MyAllocationsRequestSchema(Schema):
    """user_id defaults to the acting principal."""
    user_id = _id_field(load_default=None, allow_none=True)
