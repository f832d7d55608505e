"""Common enums, shared types, and utilities for BlurRanker models."""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from typing import Annotated, Any, Optional

from bson import Decimal128, ObjectId
from pydantic import BaseModel, BeforeValidator, Field, PlainSerializer, field_serializer


def _validate_object_id(value: Any) -> str:
    """Validate and convert ObjectId or string to string representation."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, str):
        return value
    raise ValueError(f"Invalid ObjectId value: {value}")


def _validate_money(value: Any) -> Decimal:
    """Accept Decimal128 (from MongoDB), Decimal, int, str or float."""
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("Money value cannot be a boolean")
    if isinstance(value, (int, str, float)):
        try:
            return Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"Invalid money value: {value}") from exc
    raise ValueError(f"Invalid money value: {value}")


# Annotated type for MongoDB ObjectId fields.
# Accepts ObjectId or string on input, always serializes as string.
PyObjectId = Annotated[
    str,
    BeforeValidator(_validate_object_id),
    PlainSerializer(lambda v: str(v), return_type=str),
]

# Monetary amounts. Decimal in Python, Decimal128 in MongoDB, string in JSON.
Money = Annotated[
    Decimal,
    BeforeValidator(_validate_money),
    PlainSerializer(lambda v: str(v), return_type=str, when_used="json"),
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_mongo_value(value: Any) -> Any:
    """Convert Python values BSON cannot encode natively."""
    if isinstance(value, Decimal):
        return Decimal128(value)
    return value


class MongoDocument(BaseModel):
    """Base for models stored as one MongoDB document each."""

    model_config = {"populate_by_name": True, "arbitrary_types_allowed": True}

    id: Optional[PyObjectId] = Field(default=None, alias="_id")

    @field_serializer("id")
    def serialize_id(self, value: Optional[str], _info) -> Optional[str]:
        if value is not None:
            return str(value)
        return value

    def to_mongo_dict(self) -> dict:
        """Convert model to a MongoDB-insertable dict, excluding None id."""
        data = self.model_dump(by_alias=True, mode="python")
        # Remove _id if None so MongoDB generates one
        if data.get("_id") is None:
            data.pop("_id", None)
        else:
            data["_id"] = ObjectId(data["_id"])
        return {key: to_mongo_value(value) for key, value in data.items()}

    @classmethod
    def from_mongo(cls, doc: dict):
        """Build a model from a raw MongoDB document."""
        doc = dict(doc)
        doc["_id"] = str(doc["_id"])
        return cls(**doc)


class SessionStatus(StrEnum):
    """Session lifecycle states. Archiving is terminal."""
    ACTIVE = "active"
    ARCHIVED = "archived"


class GameStatus(StrEnum):
    """Game lifecycle states."""
    PENDING = "pending"
    COMPLETED = "completed"


class EntityType(StrEnum):
    """Persisted entity kinds, as carried by change events."""
    SESSION = "session"
    MEMBERSHIP = "membership"
    GAME = "game"
    RANKING = "ranking"
    CONFIRMATION = "confirmation"
    DEBT = "debt"


class ChangeOperation(StrEnum):
    """Row-level mutation kinds."""
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
