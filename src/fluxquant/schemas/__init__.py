"""
Marshmallow schemas for quota engine requests and responses.

This module provides the base schema infrastructure and exports all schema
classes used by fluxquant.api. Entity schemas follow the "Base Schema"
pattern from marshmallow-sqlalchemy; derived values (progress, anomaly
flags, warnings) and request payloads use plain marshmallow schemas.

Usage:
    from fluxquant.schemas import AllocationSchema, SubmitReportRequestSchema

    # Serialize a single object
    data = AllocationSchema().dump(allocation)

    # Validate a request payload (raises marshmallow.ValidationError)
    request = SubmitReportRequestSchema().load(payload)
"""

from marshmallow_sqlalchemy import SQLAlchemyAutoSchema


class BaseSchema(SQLAlchemyAutoSchema):
    """
    Base schema class for all entity schemas.

    Provides shared configuration:
    - load_instance=False: schemas only serialize; writers build the models
    - include_fk=True: Include foreign key fields in serialization

    All model-specific schemas should inherit from this class.
    """
    class Meta:
        load_instance = False
        include_fk = True


# Import and export all schemas
from .entities import (
    UserSummarySchema,
    TaskPoolSchema,
    AllocationSchema,
    ReportLogSchema,
    QuotaAdjustmentSchema,
)
from .results import (
    ProgressSchema,
    AnomalySchema,
    WarningSchema,
    ReportResultSchema,
    QuotaAdjustmentResultSchema,
    AllocationResultSchema,
)
from .requests import (
    SubmitReportRequestSchema,
    RevertReportRequestSchema,
    AdjustPoolQuotaRequestSchema,
    UpdateAllocationTargetRequestSchema,
    CreateAllocationRequestSchema,
    ToggleAllocationRequestSchema,
    MatrixViewRequestSchema,
    MyAllocationsRequestSchema,
)
from .views import (
    MatrixViewSchema,
    MyAllocationSchema,
)

__all__ = [
    'BaseSchema',
    # Entity schemas
    'UserSummarySchema',
    'TaskPoolSchema',
    'AllocationSchema',
    'ReportLogSchema',
    'QuotaAdjustmentSchema',
    # Derived values and writer results
    'ProgressSchema',
    'AnomalySchema',
    'WarningSchema',
    'ReportResultSchema',
    'QuotaAdjustmentResultSchema',
    'AllocationResultSchema',
    # Requests
    'SubmitReportRequestSchema',
    'RevertReportRequestSchema',
    'AdjustPoolQuotaRequestSchema',
    'UpdateAllocationTargetRequestSchema',
    'CreateAllocationRequestSchema',
    'ToggleAllocationRequestSchema',
    'MatrixViewRequestSchema',
    'MyAllocationsRequestSchema',
    # Read models
    'MatrixViewSchema',
    'MyAllocationSchema',
]
