# chitfund/models/enrollments.py

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


class EnrollmentIn(BaseModel):
    customer_id: str
    plan_id: int
    enrollment_date: date
    member_number: str = Field(..., min_length=1)


class EnrollmentOut(BaseModel):
    id: int
    customer_id: str
    plan_id: int
    enrollment_date: date
    member_number: str
    status: Literal["active", "completed", "cancelled"]
    total_paid: Decimal
    total_due: Decimal
    current_arrear: Decimal
    arrear_last_updated: Optional[datetime] = None

    class Config:
        from_attributes = True


class ClearArrearIn(BaseModel):
    customer_id: str
    plan_id: int
