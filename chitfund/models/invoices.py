# chitfund/models/invoices.py

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class InvoiceCreate(BaseModel):
    customer_id: str
    plan_id: int
    invoice_date: Optional[date] = None
    received_amount: Decimal = Field(default=Decimal("0"), ge=0)
    received_arrear_amount: Decimal = Field(default=Decimal("0"), ge=0)
    manual_due_number: Optional[int] = None


class InvoiceOut(BaseModel):
    id: int
    invoice_number: str
    enrollment_id: int
    customer_id: str
    plan_id: int
    member_number: str
    due_number: int
    invoice_date: date
    due_amount: Decimal
    arrear_amount: Decimal
    received_amount: Decimal
    received_arrear_amount: Decimal
    balance_amount: Decimal
    total_amount: Decimal
    payment_month: str
    created_at: datetime

    class Config:
        from_attributes = True


class InvoicePreviewOut(BaseModel):
    due_number: int
    invoice_date: date
    due_amount: Decimal
    arrear_amount: Decimal
    previous_balance: Decimal
    total_due: Decimal
    received_amount: Decimal
    received_arrear_amount: Decimal
    balance_amount: Decimal
    payment_month: str


class PaymentCorrection(BaseModel):
    received_amount: Decimal = Field(..., ge=0)
    balance_amount: Optional[Decimal] = None
