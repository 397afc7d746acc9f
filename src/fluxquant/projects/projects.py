#-------------------------------------------------------------------------bh-
# Common Imports:
from ..base import *
#-------------------------------------------------------------------------eh-


#-------------------------------------------------------------------------bm-
#----------------------------------------------------------------------------
class Project(Base, TimestampMixin, ActiveFlagMixin):
    """Top-level container of stages and task pools."""
    __tablename__ = 'project'

    __table_args__ = (
        Index('ix_project_code', 'code'),
        Index('ix_project_active', 'active'),
    )

    def __eq__(self, other):
        if not isinstance(other, Project):
            return False
        return self.project_id is not None and self.project_id == other.project_id

    def __hash__(self):
        return hash(self.project_id) if self.project_id is not None else hash(id(self))

    project_id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    description = Column(Text)

    stages = relationship('Stage', back_populates='project',
                          order_by='Stage.order',
                          cascade='all, delete-orphan')

    @classmethod
    def get_by_code(cls, session, code: str) -> Optional['Project']:
        """
        Get a project by its human-referenced code.

        Args:
            session: SQLAlchemy session
            code: Project code (e.g. '2026-Q1')

        Returns:
            Project object if found, None otherwise
        """
        return session.query(cls).filter(cls.code == code).first()

    @property
    def task_pools(self) -> List['TaskPool']:
        """All task pools across stages, in stage order."""
        return [pool for stage in self.stages for pool in stage.task_pools]

    def __str__(self):
        return f"{self.code}"

    def __repr__(self):
        return f"<Project(id={self.project_id}, code='{self.code}', active={self.active})>"


#----------------------------------------------------------------------------
class Stage(Base, TimestampMixin, ActiveFlagMixin):
    """Ordered slice of a project (scanning, cleaning, entry, ...)."""
    __tablename__ = 'stage'

    __table_args__ = (
        Index('ix_stage_project', 'project_id'),
        UniqueConstraint('project_id', 'stage_order', name='uq_stage_project_order'),
    )

    stage_id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey('project.project_id'), nullable=False)
    name = Column(String(200), nullable=False)
    # display ordering only
    order = Column('stage_order', Integer, nullable=False)
    description = Column(Text)

    project = relationship('Project', back_populates='stages')
    task_pools = relationship('TaskPool', back_populates='stage',
                              order_by='TaskPool.task_pool_id')

    def __str__(self):
        return f"{self.name}"

    def __repr__(self):
        return f"<Stage(id={self.stage_id}, project_id={self.project_id}, order={self.order})>"

#-------------------------------------------------------------------------em-
