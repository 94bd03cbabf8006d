from datetime import datetime
from typing import List, Optional

from pydantic import Field

from sustainability_dashboard.models.common import CamelModel, ObjectIdStr
from sustainability_dashboard.models.enums import (
    AlertSeverity,
    GoalStatus,
    MetricType,
    TaskPriority,
    TaskStatus,
)


# -----------------------------
# Goals
# -----------------------------
class MilestoneIn(CamelModel):
    title: str = Field(min_length=1)
    target_value: float
    deadline: datetime


class GoalCreate(CamelModel):
    title: str = Field(min_length=1)
    description: str = ""
    metric: MetricType
    target_value: float
    current_value: float = 0
    unit: Optional[str] = None
    deadline: datetime
    status: GoalStatus = GoalStatus.ON_TRACK
    milestones: List[MilestoneIn] = []
    assigned_to: Optional[ObjectIdStr] = None


class GoalUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    target_value: Optional[float] = None
    current_value: Optional[float] = None
    deadline: Optional[datetime] = None
    status: Optional[GoalStatus] = None
    assigned_to: Optional[ObjectIdStr] = None


# -----------------------------
# Tasks
# -----------------------------
class TaskCreate(CamelModel):
    title: str = Field(min_length=1)
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: Optional[ObjectIdStr] = None
    due_date: Optional[datetime] = None
    related_kpi: Optional[MetricType] = Field(default=None, alias="relatedKPI")
    related_alert: Optional[ObjectIdStr] = None


class TaskUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assigned_to: Optional[ObjectIdStr] = None
    due_date: Optional[datetime] = None


# -----------------------------
# Alerts
# -----------------------------
class AlertCreate(CamelModel):
    title: str = Field(min_length=1)
    description: str = ""
    severity: AlertSeverity = AlertSeverity.MEDIUM
    metric: MetricType
    threshold: Optional[float] = None
    current_value: float
    unit_id: Optional[ObjectIdStr] = None
    department_id: Optional[ObjectIdStr] = None
    machine_id: Optional[ObjectIdStr] = None


class AlertUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    severity: Optional[AlertSeverity] = None
    threshold: Optional[float] = None


# -----------------------------
# Comments
# -----------------------------
class CommentCreate(CamelModel):
    content: str = Field(min_length=1, max_length=2000)
    related_kpi: Optional[MetricType] = Field(default=None, alias="relatedKPI")
    related_alert: Optional[ObjectIdStr] = None
    related_task: Optional[ObjectIdStr] = None
    is_pinned: bool = False


class CommentUpdate(CamelModel):
    content: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    is_pinned: Optional[bool] = None
