from datetime import datetime
from typing import Optional

from pydantic import Field

from servicebell.db.models.service_request import RequestStatus, RequestType
from servicebell.schemas.base import CamelSchema


class ServiceRequestCreate(CamelSchema):
    table_id: int
    session_id: str
    type: RequestType
    notes: Optional[str] = Field(None, max_length=500)


class ServiceRequestUpdate(CamelSchema):
    status: RequestStatus
    # Presente quando é o próprio cliente cancelando pelo celular
    session_id: Optional[str] = None


class ServiceRequestRead(CamelSchema):
    id: int
    table_id: int
    session_id: str
    type: RequestType
    status: RequestStatus
    notes: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
