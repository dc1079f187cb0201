from datetime import datetime
from typing import Optional

from servicebell.schemas.base import CamelSchema
from servicebell.schemas.table import TableRead


class TableSessionRead(CamelSchema):
    id: int
    table_id: int
    session_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    end_reason: Optional[str] = None


class ActiveSessionInfo(CamelSchema):
    # "id" é o token público, como o cliente o conhece
    id: str
    started_at: datetime
    expires_in: float  # segundos restantes


class TableVerification(CamelSchema):
    valid: bool = True
    table: TableRead
    active_session: Optional[ActiveSessionInfo] = None
    requires_new_session: Optional[bool] = None


class SessionEndRequest(CamelSchema):
    session_id: Optional[str] = None


class SessionEndResult(CamelSchema):
    updated_requests_count: int
