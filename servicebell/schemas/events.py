import enum
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel

from servicebell.schemas.base import CamelSchema


class EventType(str, enum.Enum):
    NEW_REQUEST = "new_request"
    UPDATE_REQUEST = "update_request"
    NEW_SESSION = "new_session"
    END_SESSION = "end_session"
    UPDATE_TABLE = "update_table"
    DELETE_TABLE = "delete_table"
    NEW_FEEDBACK = "new_feedback"
    CONNECTION_STATUS = "connection_status"


class EventEnvelope(CamelSchema):
    """Envelope JSON enviado pelo socket: {type, ...payload}."""

    type: EventType
    table_id: Optional[int] = None
    restaurant_id: Optional[int] = None
    session_id: Optional[str] = None
    status: Optional[str] = None
    reason: Optional[str] = None
    request: Optional[Dict[str, Any]] = None
    table: Optional[Dict[str, Any]] = None
    feedback: Optional[Dict[str, Any]] = None
    message: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def as_payload(schema: Type[BaseModel], obj: Any) -> Dict[str, Any]:
    """Serializa uma entidade do banco no formato usado dentro dos envelopes."""
    return schema.model_validate(obj).model_dump(mode="json", by_alias=True)
