"""CTC Pydantic schemas."""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from backend.common.constants import CtcUom, Currency
from backend.common.schemas import PartialUpdate


class CTCHistoryEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    actual_ctc: Decimal = Field(..., ge=0)
    from_date: date
    to_date: date
    currency: Currency = Currency.inr
    uom: CtcUom = CtcUom.annual

    @model_validator(mode="after")
    def _check_range(self) -> "CTCHistoryEntry":
        if self.to_date < self.from_date:
            raise ValueError("to_date must be on or after from_date")
        return self


class CTCCreate(BaseModel):
    employee_id: uuid.UUID
    latest_annual_ctc: Decimal = Field(Decimal("0"), ge=0)
    latest_planned_ctc: Decimal = Field(Decimal("0"), ge=0)
    currency: Currency = Currency.inr
    uom: CtcUom = CtcUom.annual
    history: list[CTCHistoryEntry] = []


class CTCUpdate(PartialUpdate):
    nullable_fields = frozenset({"new_history"})

    latest_annual_ctc: Optional[Decimal] = Field(None, ge=0)
    latest_planned_ctc: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[Currency] = None
    uom: Optional[CtcUom] = None
    new_history: Optional[CTCHistoryEntry] = None


class CTCResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    employee_code: str
    employee_name: str
    employee_email: str
    latest_annual_ctc: Decimal
    latest_planned_ctc: Decimal
    latest_actual_currency: Currency
    latest_actual_uom: CtcUom
    currency: Currency
    uom: CtcUom
    history: list[CTCHistoryEntry] = []
    created_at: datetime
    updated_at: Optional[datetime] = None
