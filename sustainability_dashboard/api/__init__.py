# sustainability_dashboard/api/__init__.py

from sustainability_dashboard.api import alerts
from sustainability_dashboard.api import auth
from sustainability_dashboard.api import comments
from sustainability_dashboard.api import goals
from sustainability_dashboard.api import kpi
from sustainability_dashboard.api import readings
from sustainability_dashboard.api import reports
from sustainability_dashboard.api import tasks

__all__ = [
    "alerts",
    "auth",
    "comments",
    "goals",
    "kpi",
    "readings",
    "reports",
    "tasks",
]
