from datetime import datetime, timezone
from typing import Any, Annotated

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

OBJECT_ID_PATTERN = r"^[0-9a-fA-F]{24}$"

# 24-hex Mongo id as it travels over the wire
ObjectIdStr = Annotated[str, Field(pattern=OBJECT_ID_PATTERN)]


class CamelModel(BaseModel):
    """Accepts camelCase (wire) or snake_case (python) names; dumps camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
        allow_inf_nan=False,
    )


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    return ObjectId(str(value))


def serialize_doc(doc: Any) -> Any:
    """Recursively turn a Mongo document into JSON-friendly data (`_id` and ObjectIds as str)."""
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, list):
        return [serialize_doc(x) for x in doc]
    if isinstance(doc, dict):
        return {k: serialize_doc(v) for k, v in doc.items()}
    return doc


def envelope(data: Any = None, message: str | None = None) -> dict:
    body: dict = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return body
