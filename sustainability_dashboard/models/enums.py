from enum import Enum


class MetricType(str, Enum):
    ENERGY = "energy"
    WATER = "water"
    WASTE = "waste"
    EMISSIONS = "emissions"


class QualityFlag(str, Enum):
    GOOD = "good"
    SUSPICIOUS = "suspicious"
    BAD = "bad"


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class UserRole(str, Enum):
    ADMIN = "admin"
    HEAD_OF_SUSTAINABILITY = "head_of_sustainability"
    ANALYST = "analyst"
    VIEWER = "viewer"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class GoalStatus(str, Enum):
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    BEHIND = "behind"
    COMPLETED = "completed"


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ReportType(str, Enum):
    PDF = "pdf"
    CSV = "csv"
    EXCEL = "excel"
