"""Seed a MongoDB with demo users, plant structure and a year of hourly readings.

Usage (recommended):
  # start a local mongo with docker (one-liner)
  docker run --name sustain-mongo -p 27017:27017 -d mongo:7.0 --bind_ip_all

  export MONGODB_URL="mongodb://localhost:27017/sustainability_dashboard"
  python scripts/seed_data.py            # drops existing data first
  python scripts/seed_data.py --days 30  # shorter history

Demo logins all use the password `password123`.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import math
import random
from datetime import datetime, timedelta, timezone

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient

from sustainability_dashboard.api.auth import hash_password
from sustainability_dashboard.core.config import settings
from sustainability_dashboard.core.database import _get_db_name_from_uri, ensure_indexes
from sustainability_dashboard.core.kpi import assess_data_quality, get_metric_unit
from sustainability_dashboard.models.enums import MetricType, QualityFlag, UserRole

logger = logging.getLogger("seed")

DEMO_PASSWORD = "password123"

USERS = [
    ("admin@sustainability.com", "Admin User", UserRole.ADMIN, "IT", "Headquarters"),
    ("head@sustainability.com", "Head of Sustainability", UserRole.HEAD_OF_SUSTAINABILITY, "Sustainability", "Headquarters"),
    ("analyst@sustainability.com", "Data Analyst", UserRole.ANALYST, "Analytics", "Headquarters"),
    ("viewer@sustainability.com", "Viewer User", UserRole.VIEWER, "Operations", "Plant A"),
]

UNITS = [
    ("Headquarters", "New York, NY"),
    ("Plant A", "Atlanta, GA"),
    ("Plant B", "Dallas, TX"),
    ("Plant C", "Los Angeles, CA"),
]

DEPARTMENTS = [
    ("Production", "Plant A"),
    ("Maintenance", "Plant A"),
    ("Quality Control", "Plant A"),
    ("Production", "Plant B"),
    ("Maintenance", "Plant B"),
    ("Production", "Plant C"),
]

MACHINES = [
    ("Spinning Machine 1", "Spinner", "Production"),
    ("Weaving Machine 1", "Loom", "Production"),
    ("Dyeing Machine 1", "Dyer", "Production"),
    ("Compressor 1", "Compressor", "Maintenance"),
]

SHIFTS = [
    ("Morning Shift", "06:00", "14:00"),
    ("Afternoon Shift", "14:00", "22:00"),
    ("Night Shift", "22:00", "06:00"),
]

# hourly base value ranges per metric
BASE_RANGES = {
    MetricType.ENERGY: (100, 300),
    MetricType.WATER: (50, 150),
    MetricType.WASTE: (20, 50),
    MetricType.EMISSIONS: (5, 15),
}


async def seed_users(db) -> None:
    """Upsert the demo users by email so re-running with --keep is safe."""
    now = datetime.now(timezone.utc)
    password = hash_password(DEMO_PASSWORD)
    for email, name, role, department, unit in USERS:
        await db.users.update_one(
            {"email": email},
            {
                "$set": {
                    "name": name,
                    "password": password,
                    "role": role.value,
                    "department": department,
                    "unit": unit,
                    "isActive": True,
                    "updatedAt": now,
                },
                "$setOnInsert": {"email": email, "lastLogin": None, "createdAt": now},
            },
            upsert=True,
        )
    logger.info(f"Upserted {len(USERS)} users")


async def seed_structure(db) -> dict:
    units = {}
    for name, location in UNITS:
        units[name] = (await db.units.insert_one({"name": name, "location": location, "isActive": True})).inserted_id

    departments = []
    for name, unit_name in DEPARTMENTS:
        oid = (await db.departments.insert_one(
            {"name": name, "unitId": units[unit_name], "isActive": True}
        )).inserted_id
        departments.append({"_id": oid, "name": name, "unitId": units[unit_name]})

    machines = []
    for name, kind, dept_name in MACHINES:
        dept = next(d for d in departments if d["name"] == dept_name)
        oid = (await db.machines.insert_one(
            {"name": name, "type": kind, "departmentId": dept["_id"], "isActive": True}
        )).inserted_id
        machines.append({"_id": oid, "departmentId": dept["_id"]})

    shifts = []
    for name, start, end in SHIFTS:
        shifts.append((await db.shifts.insert_one(
            {"name": name, "startTime": start, "endTime": end, "isActive": True}
        )).inserted_id)

    return {"departments": departments, "machines": machines, "shifts": shifts}


def _shift_for_hour(shifts: list, hour: int) -> ObjectId:
    if 6 <= hour < 14:
        return shifts[0]
    if 14 <= hour < 22:
        return shifts[1]
    return shifts[2]


def generate_readings(structure: dict, days: int, rng: random.Random):
    now = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)
    start = now - timedelta(days=days)

    ts = start
    while ts <= now:
        seasonal = 1 + 0.2 * math.sin((ts.month / 12) * 2 * math.pi)
        work_hours = 1.5 if 6 <= ts.hour <= 18 else 0.3
        for metric in MetricType:
            low, high = BASE_RANGES[metric]
            value = rng.uniform(low, high) * seasonal * work_hours * rng.uniform(0.8, 1.2)
            dept = rng.choice(structure["departments"])
            machines = [m for m in structure["machines"] if m["departmentId"] == dept["_id"]]
            expected = settings.EXPECTED_RANGES.get(metric.value)
            yield {
                "metric": metric.value,
                "timestamp": ts,
                "value": round(value, 2),
                "unit": get_metric_unit(metric),
                "unitId": dept["unitId"],
                "departmentId": dept["_id"],
                "machineId": rng.choice(machines)["_id"] if machines else None,
                "shiftId": _shift_for_hour(structure["shifts"], ts.hour),
                "qualityFlag": (
                    assess_data_quality(value, expected).value if expected else QualityFlag.GOOD.value
                ),
                "createdAt": now,
            }
        ts += timedelta(hours=1)


async def seed_readings(db, structure: dict, days: int, seed: int, batch_size: int = 5000) -> int:
    rng = random.Random(seed)
    batch, total = [], 0
    for doc in generate_readings(structure, days, rng):
        batch.append(doc)
        if len(batch) >= batch_size:
            await db.meter_readings.insert_many(batch)
            total += len(batch)
            batch = []
    if batch:
        await db.meter_readings.insert_many(batch)
        total += len(batch)
    logger.info(f"Created {total} meter readings")
    return total


async def main(days: int, seed: int, keep: bool) -> None:
    uri = settings.get_mongo_uri()
    client = AsyncIOMotorClient(uri, tz_aware=True)
    db = client[_get_db_name_from_uri(uri)]
    try:
        if not keep:
            logger.info(f"Dropping database {db.name}")
            await client.drop_database(db.name)
        await ensure_indexes(db)
        await seed_users(db)
        structure = await seed_structure(db)
        await seed_readings(db, structure, days, seed)
        logger.info("Seeding complete. Demo logins:")
        for email, *_ in USERS:
            logger.info(f"   {email} / {DEMO_PASSWORD}")
    finally:
        client.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    ap = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    ap.add_argument("--days", type=int, default=365, help="days of hourly history to generate")
    ap.add_argument("--seed", type=int, default=42, help="random seed")
    ap.add_argument("--keep", action="store_true", help="do not drop the database first")
    args = ap.parse_args()
    asyncio.run(main(args.days, args.seed, args.keep))
