from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
import enum
from database import Base
from time_utils import utc_now


class UserRole(str, enum.Enum):
    admin = "admin"
    manager = "manager"
    head = "head"
    employee = "employee"


class TaskStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class TaskPriority(str, enum.Enum):
    high = "high"
    medium = "medium"
    low = "low"


class TaskComplexity(str, enum.Enum):
    simple = "simple"
    medium = "medium"
    complex = "complex"


class ParticipantRole(str, enum.Enum):
    lead = "lead"
    contributor = "contributor"
    reviewer = "reviewer"
    observer = "observer"


class ParticipantStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"
    completed = "completed"


class ProjectStatus(str, enum.Enum):
    active = "active"
    paused = "paused"
    completed = "completed"
    cancelled = "cancelled"


class MembershipRole(str, enum.Enum):
    manager = "manager"
    head = "head"
    employee = "employee"


def enum_type(enum_cls, name: str) -> Enum:
    # Stored as VARCHAR holding the enum *value*, so the same schema works on
    # PostgreSQL and on the SQLite test database.
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=20,
        values_callable=lambda members: [member.value for member in members],
    )


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(enum_type(UserRole, "user_role"), nullable=False, default=UserRole.employee)
    department = Column(String(100), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    # Relationships
    tasks = relationship("Task", foreign_keys="Task.user_id", back_populates="owner")
    led_collaborative_tasks = relationship("CollaborativeTask", back_populates="lead_user")
    participations = relationship("CollaborativeTaskParticipant", back_populates="user")
    memberships = relationship("ProjectMembership", back_populates="user")
    created_projects = relationship("Project", back_populates="creator")


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(enum_type(ProjectStatus, "project_status"), nullable=False, default=ProjectStatus.active)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    # Relationships
    creator = relationship("User", back_populates="created_projects")
    memberships = relationship("ProjectMembership", back_populates="project")
    tasks = relationship("Task", back_populates="project")
    collaborative_tasks = relationship("CollaborativeTask", back_populates="project")


class ProjectMembership(Base):
    __tablename__ = "project_memberships"
    __table_args__ = (
        UniqueConstraint("user_id", "project_id", name="uq_project_membership"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    # Project-scoped label, independent of the user's global role
    role = Column(String(20), nullable=False, default=MembershipRole.employee.value)
    joined_at = Column(DateTime(timezone=True), default=utc_now)

    # Relationships
    user = relationship("User", back_populates="memberships")
    project = relationship("Project", back_populates="memberships")


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(enum_type(TaskStatus, "task_status"), nullable=False, default=TaskStatus.pending)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True)
    assigned_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    priority = Column(enum_type(TaskPriority, "task_priority"), nullable=True)
    assigned_at = Column(DateTime(timezone=True), default=utc_now)
    due_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    # Relationships
    owner = relationship("User", foreign_keys=[user_id], back_populates="tasks")
    project = relationship("Project", back_populates="tasks")


class CollaborativeTask(Base):
    __tablename__ = "collaborative_tasks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(enum_type(TaskStatus, "task_status"), nullable=False, default=TaskStatus.pending)
    lead_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True)
    priority = Column(enum_type(TaskPriority, "task_priority"), nullable=False, default=TaskPriority.medium)
    complexity = Column(enum_type(TaskComplexity, "task_complexity"), nullable=False, default=TaskComplexity.medium)
    progress = Column(Integer, nullable=False, default=0)
    assigned_at = Column(DateTime(timezone=True), default=utc_now)
    due_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    # Relationships
    lead_user = relationship("User", back_populates="led_collaborative_tasks")
    project = relationship("Project", back_populates="collaborative_tasks")
    participants = relationship(
        "CollaborativeTaskParticipant",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="CollaborativeTaskParticipant.id",
    )


class CollaborativeTaskParticipant(Base):
    __tablename__ = "collaborative_task_participants"
    __table_args__ = (
        UniqueConstraint("collaborative_task_id", "user_id", name="uq_task_participant"),
    )

    id = Column(Integer, primary_key=True, index=True)
    collaborative_task_id = Column(
        Integer, ForeignKey("collaborative_tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(enum_type(ParticipantRole, "participant_role"), nullable=False, default=ParticipantRole.contributor)
    status = Column(enum_type(ParticipantStatus, "participant_status"), nullable=False, default=ParticipantStatus.active)
    assigned_at = Column(DateTime(timezone=True), default=utc_now)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    contribution = Column(Text, nullable=False, default="")

    # Relationships
    task = relationship("CollaborativeTask", back_populates="participants")
    user = relationship("User", back_populates="participations")
