"""Holiday Pydantic schemas."""


import uuid
import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from backend.common.constants import HolidayType
from backend.common.schemas import PartialUpdate


class HolidayCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    date: dt.date
    type: HolidayType = HolidayType.national
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=500)


class HolidayUpdate(PartialUpdate):
    nullable_fields = frozenset({"description", "image_url"})

    name: Optional[str] = Field(None, min_length=1, max_length=150)
    date: Optional[dt.date] = None
    type: Optional[HolidayType] = None
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=500)


class HolidayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    date: dt.date
    type: HolidayType
    description: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[dt.datetime] = None
