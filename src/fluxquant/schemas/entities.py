"""
Entity schemas for API serialization.

Enum columns are overridden to dump their values ('duplicate_data',
'reverted', ...) instead of member names, so serialized payloads carry the
same strings that are stored.

Usage:
    from fluxquant.schemas import ReportLogSchema

    logs_data = ReportLogSchema(many=True).dump(logs)
"""

from marshmallow import fields

from . import BaseSchema
from fluxquant.accounting.allocations import Allocation
from fluxquant.accounting.reports import ExclusionReason, ReportLog, ReportStatus
from fluxquant.core.users import User, UserRole
from fluxquant.pools.task_pools import QuotaAdjustment, TaskPool


class UserSummarySchema(BaseSchema):
    """Minimal user schema for nested references."""
    class Meta(BaseSchema.Meta):
        model = User
        fields = ('user_id', 'username', 'display_name', 'role', 'active')

    display_name = fields.Method('get_display_name')
    role = fields.Enum(UserRole, by_value=True)

    def get_display_name(self, obj):
        """Display name falls back to the username."""
        return obj.name


class TaskPoolSchema(BaseSchema):
    class Meta(BaseSchema.Meta):
        model = TaskPool
        fields = (
            'task_pool_id',
            'stage_id',
            'name',
            'active',
            'total_quota',
            'total_valid',
            'total_excluded',
            'assigned_total',
            'unassigned',
            'is_over_allocated',
        )

    # @property values
    assigned_total = fields.Integer(dump_only=True)
    unassigned = fields.Integer(dump_only=True)
    is_over_allocated = fields.Boolean(dump_only=True)


class AllocationSchema(BaseSchema):
    class Meta(BaseSchema.Meta):
        model = Allocation
        fields = (
            'allocation_id',
            'task_pool_id',
            'user_id',
            'target_quota',
            'current_valid',
            'current_excluded',
            'active',
            'creation_time',
        )


class ReportLogSchema(BaseSchema):
    """Report log with enum values dumped as their stored strings."""
    class Meta(BaseSchema.Meta):
        model = ReportLog
        fields = (
            'report_log_id',
            'allocation_id',
            'log_date',
            'valid_qty',
            'excluded_qty',
            'exclusion_reason',
            'comment',
            'is_backfill',
            'status',
            'reported_by_id',
            'creation_time',
            'reverted_at',
            'reverted_by_id',
        )

    exclusion_reason = fields.Enum(ExclusionReason, by_value=True, allow_none=True)
    status = fields.Enum(ReportStatus, by_value=True)


class QuotaAdjustmentSchema(BaseSchema):
    class Meta(BaseSchema.Meta):
        model = QuotaAdjustment
        fields = (
            'quota_adjustment_id',
            'task_pool_id',
            'previous_quota',
            'new_quota',
            'delta',
            'reason',
            'actor_id',
            'actor_name',
            'creation_time',
        )

    delta = fields.Integer(dump_only=True)
