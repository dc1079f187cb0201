from datetime import datetime
from typing import Optional

from pydantic import Field

from servicebell.db.models.table import TableShape
from servicebell.schemas.base import CamelSchema


class TablePosition(CamelSchema):
    x: float = 0
    y: float = 0
    width: float = Field(100, gt=0)
    height: float = Field(100, gt=0)
    shape: TableShape = TableShape.SQUARE


class TableCreate(CamelSchema):
    name: str = Field(..., min_length=1, max_length=60)
    position: Optional[TablePosition] = None


class TableUpdate(CamelSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=60)
    position: Optional[TablePosition] = None


class TableRead(CamelSchema):
    id: int
    restaurant_id: int
    name: str
    qr_code: str
    position: TablePosition
    created_at: datetime
