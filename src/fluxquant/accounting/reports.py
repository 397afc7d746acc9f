#-------------------------------------------------------------------------bh-
# Common Imports:
from ..base import *
#-------------------------------------------------------------------------eh-


#-------------------------------------------------------------------------bm-
class ExclusionReason(str, enum.Enum):
    """Fixed enumeration of reasons units are excluded from the denominator."""
    SOURCE_FILE_CORRUPT = 'source_file_corrupt'
    DUPLICATE_DATA = 'duplicate_data'
    MISSING_INFORMATION = 'missing_information'
    ILLEGIBLE = 'illegible'
    OTHER = 'other'


class ReportStatus(str, enum.Enum):
    ACTIVE = 'active'
    REVERTED = 'reverted'


#----------------------------------------------------------------------------
class ReportLog(Base):
    """
    Append-only record of one production report (a delta, never an absolute).

    Reverting flips status to REVERTED and reverses the counters it produced;
    the row itself is never edited otherwise or deleted.
    """
    __tablename__ = 'report_log'

    __table_args__ = (
        Index('ix_report_log_allocation', 'allocation_id'),
        Index('ix_report_log_date', 'log_date'),
        Index('ix_report_log_status', 'status'),
        CheckConstraint('valid_qty >= 0', name='ck_report_log_valid_non_negative'),
        CheckConstraint('excluded_qty >= 0', name='ck_report_log_excluded_non_negative'),
    )

    report_log_id = Column(Integer, primary_key=True, autoincrement=True)
    allocation_id = Column(Integer, ForeignKey('allocation.allocation_id'), nullable=False)

    log_date = Column(Date, nullable=False)
    valid_qty = Column(Integer, nullable=False, default=0)
    excluded_qty = Column(Integer, nullable=False, default=0)
    exclusion_reason = Column(StringEnum(ExclusionReason))
    comment = Column(Text)
    is_backfill = Column(Boolean, nullable=False, default=False)

    status = Column(StringEnum(ReportStatus, length=16), nullable=False, default=ReportStatus.ACTIVE)
    reported_by_id = Column(Integer, ForeignKey('users.user_id'))
    creation_time = Column(DateTime, nullable=False, default=datetime.now,
                           server_default=text('CURRENT_TIMESTAMP'))
    reverted_at = Column(DateTime)
    reverted_by_id = Column(Integer, ForeignKey('users.user_id'))

    allocation = relationship('Allocation', back_populates='reports')
    reported_by = relationship('User', foreign_keys=[reported_by_id])
    reverted_by = relationship('User', foreign_keys=[reverted_by_id])

    @hybrid_property
    def is_active(self) -> bool:
        return self.status == ReportStatus.ACTIVE

    @is_active.expression
    def is_active(cls):
        return cls.status == ReportStatus.ACTIVE

    def __str__(self):
        return f"{self.report_log_id}"

    def __repr__(self):
        return (f"<ReportLog(id={self.report_log_id}, allocation={self.allocation_id}, "
                f"date={self.log_date}, valid={self.valid_qty}, excluded={self.excluded_qty}, "
                f"status='{self.status.value if self.status else None}')>")

#-------------------------------------------------------------------------em-
