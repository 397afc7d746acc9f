#-------------------------------------------------------------------------bh-
# Common Imports:
from ..base import *
#-------------------------------------------------------------------------eh-


#-------------------------------------------------------------------------bm-
#----------------------------------------------------------------------------
class TaskPool(Base, TimestampMixin, ActiveFlagMixin):
    """
    Unit of work with a total quota; the aggregation root for allocations.

    total_valid / total_excluded are running aggregates of every report
    applied to any allocation in the pool (active or retired). They are
    maintained with SQL-side increments in the same transaction as the
    allocation counters. total_quota only changes together with a
    QuotaAdjustment row.
    """
    __tablename__ = 'task_pool'

    __table_args__ = (
        Index('ix_task_pool_stage', 'stage_id'),
        CheckConstraint('total_quota >= 0', name='ck_task_pool_quota_non_negative'),
        CheckConstraint('total_valid >= 0', name='ck_task_pool_valid_non_negative'),
        CheckConstraint('total_excluded >= 0', name='ck_task_pool_excluded_non_negative'),
    )

    def __eq__(self, other):
        if not isinstance(other, TaskPool):
            return False
        return self.task_pool_id is not None and self.task_pool_id == other.task_pool_id

    def __hash__(self):
        return hash(self.task_pool_id) if self.task_pool_id is not None else hash(id(self))

    task_pool_id = Column(Integer, primary_key=True, autoincrement=True)
    stage_id = Column(Integer, ForeignKey('stage.stage_id'), nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text)

    total_quota = Column(Integer, nullable=False, default=0)
    total_valid = Column(Integer, nullable=False, default=0)
    total_excluded = Column(Integer, nullable=False, default=0)

    stage = relationship('Stage', back_populates='task_pools')
    allocations = relationship('Allocation', back_populates='task_pool',
                               order_by='Allocation.allocation_id')
    adjustments = relationship('QuotaAdjustment', back_populates='task_pool',
                               order_by='QuotaAdjustment.quota_adjustment_id')

    @property
    def active_allocations(self) -> List['Allocation']:
        return [a for a in self.allocations if a.active]

    @property
    def assigned_total(self) -> int:
        """Sum of active allocation targets (informational, never deducted)."""
        return sum(a.target_quota for a in self.active_allocations)

    @property
    def unassigned(self) -> int:
        return self.total_quota - self.assigned_total

    @property
    def is_over_allocated(self) -> bool:
        return self.assigned_total > self.total_quota

    @property
    def processed(self) -> int:
        return self.total_valid + self.total_excluded

    @property
    def latest_adjustment(self) -> Optional['QuotaAdjustment']:
        return self.adjustments[-1] if self.adjustments else None

    def progress(self, calculator):
        """Pool progress snapshot, recomputed from the durable counters."""
        return calculator.evaluate(self.total_valid, self.total_excluded, self.total_quota)

    def __str__(self):
        return f"{self.name}"

    def __repr__(self):
        return (f"<TaskPool(id={self.task_pool_id}, quota={self.total_quota}, "
                f"valid={self.total_valid}, excluded={self.total_excluded})>")


#----------------------------------------------------------------------------
class QuotaAdjustment(Base):
    """Immutable audit record of one change to a pool's total quota."""
    __tablename__ = 'quota_adjustment'

    __table_args__ = (
        Index('ix_quota_adjustment_pool', 'task_pool_id'),
        Index('ix_quota_adjustment_actor', 'actor_id'),
        CheckConstraint('previous_quota >= 0', name='ck_quota_adjustment_previous_non_negative'),
        CheckConstraint('new_quota >= 0', name='ck_quota_adjustment_new_non_negative'),
    )

    quota_adjustment_id = Column(Integer, primary_key=True, autoincrement=True)
    task_pool_id = Column(Integer, ForeignKey('task_pool.task_pool_id'), nullable=False)
    previous_quota = Column(Integer, nullable=False)
    new_quota = Column(Integer, nullable=False)
    reason = Column(Text, nullable=False)

    actor_id = Column(Integer, ForeignKey('users.user_id'))
    actor_name = Column(String(50), nullable=False)

    creation_time = Column(DateTime, nullable=False, default=datetime.now,
                           server_default=text('CURRENT_TIMESTAMP'))

    task_pool = relationship('TaskPool', back_populates='adjustments')
    actor = relationship('User', foreign_keys=[actor_id])

    @property
    def delta(self) -> int:
        return self.new_quota - self.previous_quota

    def __str__(self):
        return f"{self.previous_quota} -> {self.new_quota}"

    def __repr__(self):
        return (f"<QuotaAdjustment(id={self.quota_adjustment_id}, pool={self.task_pool_id}, "
                f"{self.previous_quota}->{self.new_quota})>")

#-------------------------------------------------------------------------em-
