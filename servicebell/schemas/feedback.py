from datetime import datetime
from typing import Optional

from pydantic import Field

from servicebell.schemas.base import CamelSchema


class FeedbackCreate(CamelSchema):
    request_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


class FeedbackRead(CamelSchema):
    id: int
    request_id: int
    rating: int
    comment: Optional[str] = None
    created_at: datetime
