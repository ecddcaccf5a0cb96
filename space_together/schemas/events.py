import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field, field_validator

from space_together.core.logging import logger


class EventKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    CONNECTED = "connected"


def to_json_payload(payload: Any) -> Any:
    """Convert a producer payload to plain JSON values; ``None`` when it cannot be rendered."""
    try:
        encoded = jsonable_encoder(payload, custom_encoder={ObjectId: str})
        json.dumps(encoded, allow_nan=False)
        return encoded
    except (TypeError, ValueError, RecursionError) as e:
        logger.warning(f"Event payload could not be serialized, sending null: {str(e)}")
        return None


class Event(BaseModel):
    """A typed change notification. Kinds outside ``EventKind`` are allowed as custom strings."""
    model_config = ConfigDict(frozen=True)

    event: str
    entity_type: str
    entity_id: Optional[str] = None
    data: Any = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        """Naive timestamps are taken as UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def build(
        cls,
        kind: str,
        entity_type: str,
        payload: Any = None,
        entity_id: Optional[str] = None,
    ) -> "Event":
        kind = kind.value if isinstance(kind, EventKind) else str(kind)
        return cls(
            event=kind,
            entity_type=entity_type,
            entity_id=entity_id,
            data=to_json_payload(payload),
        )

    def to_message(self) -> Dict[str, Any]:
        message: Dict[str, Any] = {
            "event": self.event,
            "entity_type": self.entity_type,
        }
        if self.entity_id is not None:
            message["entity_id"] = self.entity_id
        message["data"] = self.data
        message["timestamp"] = self.timestamp.isoformat()
        return message


def format_frame(event: Event) -> str:
    """Render an event as one SSE frame: ``event: <kind>\\ndata: <json>\\n\\n``."""
    message = event.to_message()
    try:
        body = json.dumps(message, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        logger.warning(f"Event {event.event}::{event.entity_type} data dropped: {str(e)}")
        message["data"] = None
        body = json.dumps(message, separators=(",", ":"), ensure_ascii=False)
    return f"event: {event.event}\ndata: {body}\n\n"
