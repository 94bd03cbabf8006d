# sustainability_dashboard/services/ingestion.py
"""
Reading ingestion: quality assessment, z-score check against recent history,
and alert creation for anomalous readings.
"""

from __future__ import annotations

import io
import logging
from datetime import timezone
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from dateutil import parser
from pydantic import ValidationError

from sustainability_dashboard.core.config import settings
from sustainability_dashboard.core.kpi import (
    assess_data_quality,
    detect_anomaly,
    get_metric_unit,
    z_score,
)
from sustainability_dashboard.models.common import now_utc, to_object_id
from sustainability_dashboard.models.enums import AlertSeverity, QualityFlag
from sustainability_dashboard.models.meter_reading import MeterReadingIn

logger = logging.getLogger(__name__)


def prepare_reading(reading: MeterReadingIn) -> Dict[str, Any]:
    """Turn a validated reading into the document stored in `meter_readings`."""
    ts = reading.timestamp
    ts = ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts.astimezone(timezone.utc)

    quality = reading.quality_flag
    if quality is None:
        expected = settings.EXPECTED_RANGES.get(reading.metric)
        quality = assess_data_quality(reading.value, expected) if expected else QualityFlag.GOOD

    return {
        "metric": reading.metric,
        "timestamp": ts,
        "value": reading.value,
        "unit": reading.unit or get_metric_unit(reading.metric),
        "unitId": to_object_id(reading.unit_id),
        "departmentId": to_object_id(reading.department_id),
        "machineId": to_object_id(reading.machine_id) if reading.machine_id else None,
        "shiftId": to_object_id(reading.shift_id),
        "qualityFlag": QualityFlag(quality).value,
        "createdAt": now_utc(),
    }


async def recent_values(db, metric: str, department_id) -> List[float]:
    docs = (
        await db.meter_readings.find(
            {"metric": metric, "departmentId": department_id},
            {"value": 1},
        )
        .sort("timestamp", -1)
        .limit(settings.ANOMALY_HISTORY_SIZE)
        .to_list(length=settings.ANOMALY_HISTORY_SIZE)
    )
    return [float(d["value"]) for d in docs]


def build_anomaly_alert(doc: Dict[str, Any], history: List[float]) -> Optional[Dict[str, Any]]:
    """Alert document for `doc` if it is a z-score outlier against `history`, else None."""
    threshold = settings.ANOMALY_THRESHOLD
    if not detect_anomaly(history, doc["value"], threshold):
        return None

    z = z_score(history, doc["value"])
    mean = sum(history) / len(history)
    direction = "above" if doc["value"] > mean else "below"
    now = now_utc()
    return {
        "title": f"Anomalous {doc['metric']} reading",
        "description": (
            f"{doc['value']:.2f} {doc['unit']} is {direction} the recent mean "
            f"of {mean:.2f} {doc['unit']} (z-score {z:.1f})"
        ),
        "severity": (AlertSeverity.HIGH if z > threshold + 1 else AlertSeverity.MEDIUM).value,
        "metric": doc["metric"],
        "threshold": threshold,
        "currentValue": doc["value"],
        "unitId": doc["unitId"],
        "departmentId": doc["departmentId"],
        "machineId": doc.get("machineId"),
        "isAcknowledged": False,
        "isResolved": False,
        "source": "anomaly_detection",
        "createdAt": now,
        "updatedAt": now,
    }


async def ingest_readings(db, readings: List[MeterReadingIn]) -> Dict[str, Any]:
    """Store readings; each is checked against history before it is inserted."""
    docs: List[Dict[str, Any]] = []
    alerts: List[Dict[str, Any]] = []
    histories: Dict[Tuple[str, Any], List[float]] = {}

    for reading in readings:
        doc = prepare_reading(reading)
        key = (doc["metric"], doc["departmentId"])
        if key not in histories:
            histories[key] = await recent_values(db, *key)
        history = histories[key]

        alert = build_anomaly_alert(doc, history)
        if alert:
            alerts.append(alert)
        docs.append(doc)

        # earlier readings of the same batch count as history for later ones
        history.insert(0, doc["value"])
        del history[settings.ANOMALY_HISTORY_SIZE:]

    if docs:
        res = await db.meter_readings.insert_many(docs)
        for doc, oid in zip(docs, res.inserted_ids):
            doc["_id"] = oid
    if alerts:
        await db.alerts.insert_many(alerts)
        logger.info(f"Raised {len(alerts)} anomaly alert(s) during ingestion")

    return {"inserted": len(docs), "alerts": alerts, "readings": docs}


def parse_readings_csv(content: bytes) -> Tuple[List[MeterReadingIn], List[str]]:
    """Parse an uploaded CSV into readings; returns (valid readings, row errors)."""
    try:
        df = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False)
    except (ValueError, pd.errors.ParserError) as e:
        raise ValueError(f"Could not parse CSV: {e}")

    readings: List[MeterReadingIn] = []
    errors: List[str] = []
    for i, record in enumerate(df.to_dict(orient="records"), start=2):
        row = {k.strip(): (v.strip() if isinstance(v, str) else v) for k, v in record.items()}
        row = {k: v for k, v in row.items() if v != ""}
        try:
            if "timestamp" in row:
                row["timestamp"] = parser.parse(row["timestamp"])
            readings.append(MeterReadingIn.model_validate(row))
        except (ValidationError, ValueError, OverflowError) as e:
            errors.append(f"row {i}: {_short_error(e)}")

    return readings, errors


def _short_error(e: Exception) -> str:
    if isinstance(e, ValidationError):
        first = e.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        return f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))
    return str(e)
