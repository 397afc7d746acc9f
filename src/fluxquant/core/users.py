#-------------------------------------------------------------------------bh-
# Common Imports:
from ..base import *
#-------------------------------------------------------------------------eh-


#-------------------------------------------------------------------------bm-
class UserRole(str, enum.Enum):
    """Roles recognised by the engine's permission checks."""
    EMPLOYEE = 'employee'
    MANAGER = 'manager'
    ADMIN = 'admin'


#----------------------------------------------------------------------------
class User(Base, TimestampMixin, ActiveFlagMixin):
    """A worker or administrator that allocations are bound to."""
    __tablename__ = 'users'

    __table_args__ = (
        Index('ix_users_username', 'username'),
        Index('ix_users_active', 'active'),
    )

    def __eq__(self, other):
        """Two users are equal if they have the same user_id."""
        if not isinstance(other, User):
            return False
        return self.user_id is not None and self.user_id == other.user_id

    def __hash__(self):
        """Hash based on user_id for set/dict operations."""
        return hash(self.user_id) if self.user_id is not None else hash(id(self))

    user_id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), nullable=False, unique=True)
    display_name = Column(String(100))
    role = Column(StringEnum(UserRole, length=20), nullable=False, default=UserRole.EMPLOYEE)

    allocations = relationship('Allocation', back_populates='user',
                               order_by='Allocation.allocation_id')

    @classmethod
    def get_by_username(cls, session, username: str) -> Optional['User']:
        """
        Get a user by exact username match.

        Args:
            session: SQLAlchemy session
            username: Exact username to search for

        Returns:
            User object if found, None otherwise
        """
        return session.query(cls).filter(cls.username == username).first()

    @classmethod
    def get_active_users(cls, session) -> List['User']:
        """All active users ordered by username."""
        return session.query(cls).filter(cls.active == True).order_by(cls.username).all()

    @property
    def name(self) -> str:
        """Display name, falling back to the username."""
        return self.display_name or self.username

    @property
    def active_allocations(self) -> List['Allocation']:
        return [a for a in self.allocations if a.active]

    def __str__(self):
        return f"{self.username}"

    def __repr__(self):
        return f"<User(id={self.user_id}, username='{self.username}', role='{self.role.value if self.role else None}')>"

#-------------------------------------------------------------------------em-
