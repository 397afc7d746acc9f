#-------------------------------------------------------------------------bh-
# Common Imports:
from ..base import *
#-------------------------------------------------------------------------eh-


#-------------------------------------------------------------------------bm-
#----------------------------------------------------------------------------
class Allocation(Base, TimestampMixin, ActiveFlagMixin):
    """
    One user's assigned share of a task pool.

    target_quota is the personal denominator only; it is never subtracted
    from the pool quota. current_valid / current_excluded are running
    counters changed exclusively by report submission and revert.
    """
    __tablename__ = 'allocation'

    __table_args__ = (
        Index('ix_allocation_task_pool', 'task_pool_id'),
        Index('ix_allocation_user', 'user_id'),
        # One active allocation per (user, pool); retired rows keep their history.
        Index('uq_allocation_active_user_pool', 'task_pool_id', 'user_id', unique=True,
              sqlite_where=text('active = 1'),
              postgresql_where=text('active')).ddl_if(dialect=('sqlite', 'postgresql')),
        CheckConstraint('target_quota >= 0', name='ck_allocation_target_non_negative'),
        CheckConstraint('current_valid >= 0', name='ck_allocation_valid_non_negative'),
        CheckConstraint('current_excluded >= 0', name='ck_allocation_excluded_non_negative'),
    )

    def __eq__(self, other):
        """Two allocations are equal if they have the same allocation_id."""
        if not isinstance(other, Allocation):
            return False
        return (self.allocation_id is not None and
                self.allocation_id == other.allocation_id)

    def __hash__(self):
        """Hash based on allocation_id for set/dict operations."""
        return (hash(self.allocation_id) if self.allocation_id is not None
                else hash(id(self)))

    allocation_id = Column(Integer, primary_key=True, autoincrement=True)
    task_pool_id = Column(Integer, ForeignKey('task_pool.task_pool_id'), nullable=False)
    user_id = Column(Integer, ForeignKey('users.user_id'), nullable=False)

    target_quota = Column(Integer, nullable=False, default=0)
    current_valid = Column(Integer, nullable=False, default=0)
    current_excluded = Column(Integer, nullable=False, default=0)

    task_pool = relationship('TaskPool', back_populates='allocations')
    user = relationship('User', back_populates='allocations')
    reports = relationship('ReportLog', back_populates='allocation',
                           order_by='ReportLog.report_log_id')

    @property
    def processed(self) -> int:
        return self.current_valid + self.current_excluded

    @property
    def is_over_delivered(self) -> bool:
        """Reports exceed the personal target; flagged, never capped."""
        return self.processed > self.target_quota

    def progress(self, calculator):
        """Personal progress snapshot against target_quota."""
        return calculator.evaluate(self.current_valid, self.current_excluded, self.target_quota)

    def __str__(self):
        return f"{self.allocation_id}"

    def __repr__(self):
        return (f"<Allocation(id={self.allocation_id}, pool={self.task_pool_id}, user={self.user_id}, "
                f"target={self.target_quota}, valid={self.current_valid}, "
                f"excluded={self.current_excluded}, active={self.active})>")

#-------------------------------------------------------------------------em-
