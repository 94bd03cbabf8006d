# sustainability_dashboard/core/config.py

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]
ENV_PATH = BASE_DIR / ".env"


class Settings(BaseSettings):
    """
    Loads from OS environment first, then the project .env file.
    Unknown keys are ignored so a shared .env doesn't break startup.
    """

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # -------------------------
    # General
    # -------------------------
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # -------------------------
    # CORS
    # -------------------------
    FRONTEND_URL: Optional[str] = None
    CORS_ORIGINS: Optional[str] = None

    # -------------------------
    # Mongo (support the usual env names)
    # -------------------------
    MONGODB_URL: Optional[str] = None
    MONGODB_URI: Optional[str] = None
    MONGO_URI: Optional[str] = None
    MONGODB_DB: Optional[str] = None

    # -------------------------
    # JWT Authentication
    # -------------------------
    SECRET_KEY: str = Field(default="change-me")
    ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_DAYS: int = Field(default=30)

    # -------------------------
    # KPI / analytics tuning
    # -------------------------
    SPARKLINE_POINTS: int = Field(default=7, ge=1)
    TREND_THRESHOLD: float = Field(default=0.05)
    ANOMALY_THRESHOLD: float = Field(default=2.0)
    ANOMALY_HISTORY_SIZE: int = Field(default=50)
    HOTSPOT_LIMIT: int = Field(default=10)

    # Hourly expected value ranges used to flag reading quality.
    # Override with a JSON object, e.g. {"energy": [50, 450]}
    EXPECTED_RANGES: Dict[str, Tuple[float, float]] = Field(
        default={
            "energy": (20.0, 600.0),
            "water": (10.0, 300.0),
            "waste": (4.0, 100.0),
            "emissions": (1.0, 30.0),
        }
    )

    # -------------------------
    # Reports
    # -------------------------
    REPORT_DIR: str = Field(default="./reports")
    REPORT_TTL_DAYS: int = Field(default=7)

    def get_cors_origins(self) -> List[str]:
        raw = (self.CORS_ORIGINS or "").strip()
        if not raw:
            return []
        if raw.startswith("["):
            try:
                items = json.loads(raw)
                return [str(x).strip().rstrip("/") for x in items if str(x).strip()]
            except ValueError:
                return []
        return [x.strip().rstrip("/") for x in raw.split(",") if x.strip()]

    def get_mongo_uri(self) -> str:
        return (
            self.MONGODB_URL
            or self.MONGODB_URI
            or self.MONGO_URI
            or "mongodb://localhost:27017"
        ).strip()

    def get_mongo_db(self) -> str:
        return self.MONGODB_DB or "sustainability_dashboard"


settings = Settings()
