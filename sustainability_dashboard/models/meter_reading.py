from datetime import datetime
from typing import Optional

from pydantic import Field

from sustainability_dashboard.models.common import CamelModel, ObjectIdStr
from sustainability_dashboard.models.enums import MetricType, QualityFlag, TrendDirection


class MeterReadingIn(CamelModel):
    metric: MetricType
    timestamp: datetime
    value: float = Field(ge=0, allow_inf_nan=False)
    unit: Optional[str] = None
    unit_id: ObjectIdStr
    department_id: ObjectIdStr
    machine_id: Optional[ObjectIdStr] = None
    shift_id: ObjectIdStr
    quality_flag: Optional[QualityFlag] = None


class KPISummary(CamelModel):
    metric: str
    current_value: float
    previous_value: float
    delta: float
    delta_percentage: float
    trend: TrendDirection
    sparkline: list[float] = []
    unit: str
