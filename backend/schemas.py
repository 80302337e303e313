from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict

from models import (
    UserRole,
    TaskStatus,
    TaskPriority,
    TaskComplexity,
    ParticipantRole,
    ParticipantStatus,
    ProjectStatus,
)


# Enum-valued request fields are plain strings; the service layer validates
# them so every invalid value is reported through the same ValidationError.


# Auth schemas
class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


# User schemas
class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)
    role: str
    department: str = Field("", max_length=100)


class UserRoleUpdate(BaseModel):
    role: str


class UserDepartmentUpdate(BaseModel):
    department: str = Field(..., max_length=100)


class UserPasswordUpdate(BaseModel):
    new_password: str = Field(..., min_length=1)


class User(BaseModel):
    id: int
    username: str
    role: UserRole
    department: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserStats(BaseModel):
    user_id: int
    username: str
    role: UserRole
    department: str
    total_tasks: int
    total_collaborative_tasks: int
    total_projects: int
    completed_tasks: int
    completed_collaborative_tasks: int
    completion_rate: float
    created_at: datetime
    last_active: datetime


# Task schemas
class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    project_id: Optional[int] = None
    due_date: Optional[datetime] = None
    assigned_to: Optional[int] = None  # manager+ only
    priority: Optional[str] = None


class TaskCreateForUser(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    user_id: int
    project_id: Optional[int] = None
    due_date: Optional[datetime] = None
    priority: Optional[str] = None


class TaskStatusUpdate(BaseModel):
    status: str


class BulkTaskStatusUpdate(BaseModel):
    task_ids: List[int] = Field(..., min_length=1)
    status: str


class BulkUpdateResult(BaseModel):
    updated_count: int


class Task(BaseModel):
    id: int
    title: str
    description: str
    status: TaskStatus
    user_id: int
    project_id: Optional[int] = None
    assigned_by: Optional[int] = None
    priority: Optional[TaskPriority] = None
    assigned_at: datetime
    due_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StatusCounts(BaseModel):
    total: int
    pending: int
    in_progress: int
    completed: int
    cancelled: int


class OverallCompletion(BaseModel):
    total_tasks: int
    completed_tasks: int
    completion_rate: float


class TaskStatistics(BaseModel):
    regular_tasks: StatusCounts
    collaborative_tasks: StatusCounts
    overall: OverallCompletion


# Collaborative task schemas
class CollaborativeTaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    lead_user_id: int
    project_id: Optional[int] = None
    due_date: Optional[datetime] = None
    priority: str
    complexity: str


class ParticipantCreate(BaseModel):
    user_id: int
    role: str
    contribution: str = ""


class ProgressUpdate(BaseModel):
    # Range is enforced by the service so out-of-range values surface as 400
    progress: int


class Participant(BaseModel):
    id: int
    collaborative_task_id: int
    user_id: int
    role: ParticipantRole
    status: ParticipantStatus
    assigned_at: datetime
    completed_at: Optional[datetime] = None
    contribution: str

    class Config:
        from_attributes = True


class CollaborativeTask(BaseModel):
    id: int
    title: str
    description: str
    status: TaskStatus
    lead_user_id: int
    project_id: Optional[int] = None
    priority: TaskPriority
    complexity: TaskComplexity
    progress: int
    assigned_at: datetime
    due_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CollaborativeTaskDetail(CollaborativeTask):
    participants: List[Participant] = []


class CollaborativeTaskStatistics(BaseModel):
    task_id: int
    title: str
    status: TaskStatus
    progress: int
    priority: TaskPriority
    complexity: TaskComplexity
    total_participants: int
    participants_by_role: Dict[str, int]
    assigned_at: datetime
    due_date: Optional[datetime] = None


# Project schemas
class ProjectCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    start_date: datetime
    end_date: Optional[datetime] = None


class MembershipCreate(BaseModel):
    user_id: int
    role: str = "employee"


class ProjectStatusUpdate(BaseModel):
    status: str


class Project(BaseModel):
    id: int
    title: str
    description: str
    status: ProjectStatus
    created_by: int
    start_date: datetime
    end_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProjectMember(BaseModel):
    user_id: int
    username: str
    user_role: UserRole
    department: str
    project_role: str
    joined_at: datetime


class ProjectDetail(Project):
    members: List[ProjectMember] = []


class ProjectTasks(BaseModel):
    tasks: List[Task] = []
    collaborative_tasks: List[CollaborativeTask] = []


class ProjectProgress(BaseModel):
    project_id: int
    total_tasks: int
    completed_tasks: int
    in_progress_tasks: int
    pending_tasks: int
    progress: float


class ProjectStatistics(BaseModel):
    project_id: int
    total_members: int
    total_tasks: int
    regular_tasks: int
    collaborative_tasks: int
    pending_tasks: int
    in_progress_tasks: int
    completed_tasks: int
    cancelled_tasks: int
    completion_rate: float


# Report schemas
class ReportPeriod(BaseModel):
    type: str
    start_date: datetime
    end_date: datetime


class PeriodStatusCounts(StatusCounts):
    created_in_period: int


class UserPeriodStatusCounts(PeriodStatusCounts):
    # Completed tasks whose last update falls inside the period
    completed_in_period: int


class OwnedTaskCounts(BaseModel):
    total: int
    completed: int


class TaskBreakdown(OverallCompletion):
    regular_tasks: OwnedTaskCounts
    collaborative_tasks: OwnedTaskCounts


class MemberPerformance(TaskBreakdown):
    user_id: int
    username: str
    role: UserRole
    department: str


class ProjectPerformance(TaskBreakdown):
    project_id: int
    project_title: str
    project_status: ProjectStatus


class ReportProject(BaseModel):
    id: int
    title: str
    description: str
    status: ProjectStatus
    start_date: datetime
    end_date: Optional[datetime] = None


class ReportUser(BaseModel):
    id: int
    username: str
    role: UserRole
    department: str


class ProjectReportStatistics(BaseModel):
    regular_tasks: PeriodStatusCounts
    collaborative_tasks: PeriodStatusCounts
    overall: OverallCompletion


class UserReportStatistics(BaseModel):
    regular_tasks: UserPeriodStatusCounts
    collaborative_tasks: UserPeriodStatusCounts
    overall: OverallCompletion
    period_performance: OverallCompletion


class ProjectReport(BaseModel):
    project: ReportProject
    period: ReportPeriod
    statistics: ProjectReportStatistics
    user_performance: List[MemberPerformance] = []


class UserReport(BaseModel):
    user: ReportUser
    period: ReportPeriod
    statistics: UserReportStatistics
    project_performance: List[ProjectPerformance] = []


class Message(BaseModel):
    message: str
