"""Check MongoDB connectivity using the project's settings.

Usage:
  python scripts/check_mongo_connection.py

Prints the effective Mongo URI (credentials redacted), pings the server and
shows document counts for the dashboard collections, or a clear error.
"""
import re

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from sustainability_dashboard.core.config import settings
from sustainability_dashboard.core.database import _get_db_name_from_uri

COLLECTIONS = ("users", "meter_readings", "departments", "alerts", "goals", "tasks", "reports")

uri = settings.get_mongo_uri()
print("Effective MONGO URI:", re.sub(r"//[^@/]+@", "//***@", uri))

try:
    client = MongoClient(uri, serverSelectionTimeoutMS=5000)
    info = client.server_info()
    print("MongoDB server version:", info.get("version"))
    db = client[_get_db_name_from_uri(uri)]
    for name in COLLECTIONS:
        print(f"  {name}: {db[name].estimated_document_count()}")
    client.close()
except PyMongoError as e:
    print("Failed to connect to MongoDB:\n", e)
    print("Suggested checks:\n - Is MONGODB_URL in .env correct?\n - Is the server reachable from this network?")
