import math
from typing import Any, Dict, Optional, Tuple

from bson.errors import InvalidId

from sustainability_dashboard.core.errors import ApiError, NotFoundError
from sustainability_dashboard.models.common import envelope, serialize_doc, to_object_id


async def paginate(
    collection,
    query: Dict[str, Any],
    page: int = 1,
    limit: int = 20,
    sort: Tuple[str, int] = ("createdAt", -1),
) -> dict:
    total = await collection.count_documents(query)
    docs = (
        await collection.find(query)
        .sort(*sort)
        .skip((page - 1) * limit)
        .limit(limit)
        .to_list(length=limit)
    )
    body = envelope(serialize_doc(docs))
    body["pagination"] = {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }
    return body


def parse_id(value: str, resource: str = "Resource"):
    try:
        return to_object_id(value)
    except (InvalidId, TypeError):
        raise ApiError(400, f"Invalid {resource.lower()} id")


async def get_or_404(collection, doc_id: str, resource: str = "Resource", extra: Optional[dict] = None) -> dict:
    query = {"_id": parse_id(doc_id, resource)}
    if extra:
        query.update(extra)
    doc = await collection.find_one(query)
    if not doc:
        raise NotFoundError(resource)
    return doc
