from typing import List, Optional

from pydantic import Field

from sustainability_dashboard.models.common import CamelModel, ObjectIdStr
from sustainability_dashboard.models.enums import MetricType, ReportType


class ReportCreate(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    type: ReportType = ReportType.CSV
    date_range: str = Field(default="month", pattern=r"^(today|week|month|quarter|year)$")
    interval: str = Field(default="day", pattern=r"^(hour|day|week|month)$")
    metrics: List[MetricType] = list(MetricType)
    unit_id: Optional[ObjectIdStr] = None
    department_id: Optional[ObjectIdStr] = None
    machine_id: Optional[ObjectIdStr] = None
    shift_id: Optional[ObjectIdStr] = None
