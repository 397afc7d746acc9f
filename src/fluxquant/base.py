#-------------------------------------------------------------------------bh-
#-------------------------------------------------------------------------eh-

import enum
from datetime import datetime
from typing import List, Optional, Dict, Type
from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Boolean, Enum,
    ForeignKey, CheckConstraint, UniqueConstraint,
    Text, TIMESTAMP, text, and_, or_, Index, select
)
from sqlalchemy.orm import relationship, declarative_base, declared_attr, Session
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.sql import func


#-------------------------------------------------------------------------bm-
Base = declarative_base()


def StringEnum(enum_cls: Type[enum.Enum], length: int = 32) -> Enum:
    """
    Enum column type persisted as the member *values* in a VARCHAR.

    Keeps the stored representation stable ('duplicate_data', 'reverted', ...)
    and portable across SQLite, MySQL and PostgreSQL.
    """
    return Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


# ============================================================================
# Mixins - Common patterns extracted
# ============================================================================
class TimestampMixin:
    """Provides creation and modification timestamps."""

    @declared_attr
    def creation_time(cls):
        return Column(DateTime, nullable=False, default=datetime.now, server_default=text('CURRENT_TIMESTAMP'))

    @declared_attr
    def modified_time(cls):
        return Column(TIMESTAMP, server_default=text('CURRENT_TIMESTAMP'), onupdate=text('CURRENT_TIMESTAMP'))


class ActiveFlagMixin:
    """Provides active status flag (soft deactivation)."""

    @declared_attr
    def active(cls):
        return Column(Boolean, nullable=False, default=True)

    @hybrid_property
    def is_active(self) -> bool:
        """Check if this record is active."""
        return bool(self.active)

    @is_active.expression
    def is_active(cls):
        return cls.active == True

#-------------------------------------------------------------------------em-
