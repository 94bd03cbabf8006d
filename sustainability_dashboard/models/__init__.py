from sustainability_dashboard.models.enums import (  # noqa: F401
    AlertSeverity,
    GoalStatus,
    MetricType,
    QualityFlag,
    ReportType,
    TaskPriority,
    TaskStatus,
    TrendDirection,
    UserRole,
)
