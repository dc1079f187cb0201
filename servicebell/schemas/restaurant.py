from datetime import datetime
from typing import Optional

from pydantic import Field

from servicebell.schemas.base import CamelSchema


class RestaurantBase(CamelSchema):
    name: str = Field(..., min_length=1, max_length=120)
    address: Optional[str] = None
    phone: Optional[str] = None


class RestaurantCreate(RestaurantBase):
    pass


class RestaurantUpdate(CamelSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    address: Optional[str] = None
    phone: Optional[str] = None


class RestaurantRead(RestaurantBase):
    id: int
    owner_id: int
    created_at: datetime
