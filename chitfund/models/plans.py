# chitfund/models/plans.py

from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class InstallmentIn(BaseModel):
    month_number: int = Field(..., ge=1)
    installment_amount: Optional[Decimal] = Field(default=None, ge=0)
    dividend: Decimal = Field(default=Decimal("0"), ge=0)
    payable_amount: Optional[Decimal] = Field(default=None, ge=0)


class PlanIn(BaseModel):
    plan_name: str = Field(..., min_length=1)
    total_amount: Decimal = Field(..., ge=0)
    duration: int = Field(..., ge=1)
    plan_type: Literal["monthly", "weekly", "daily"] = "monthly"
    monthly_amount: Optional[Decimal] = Field(default=None, ge=0)
    installments: List[InstallmentIn] = []


class InstallmentOut(BaseModel):
    month_number: int
    installment_amount: Optional[Decimal] = None
    dividend: Decimal
    payable_amount: Optional[Decimal] = None


class PlanOut(BaseModel):
    id: int
    plan_name: str
    total_amount: Decimal
    duration: int
    plan_type: str
    monthly_amount: Optional[Decimal] = None
    installments: List[InstallmentOut]
