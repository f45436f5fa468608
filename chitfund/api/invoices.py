# chitfund/api/invoices.py

from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from chitfund.billing.exceptions import BillingError
from chitfund.billing.invoices import (
    correct_invoice_payment,
    create_invoice,
    preview_invoice,
)
from chitfund.config import get_settings
from chitfund.db import repository
from chitfund.db.engine import get_engine
from chitfund.models.invoices import (
    InvoiceCreate,
    InvoiceOut,
    InvoicePreviewOut,
    PaymentCorrection,
)

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.post("/", response_model=InvoiceOut, status_code=201)
def create(payload: InvoiceCreate) -> InvoiceOut:
    """
    Create the next invoice of a customer's enrollment in a plan.

    Due number, due amount, arrear and balance are all derived from the
    enrollment's invoice chain; ``manual_due_number`` overrides only the
    installment number.
    """
    settings = get_settings()
    engine = get_engine()

    try:
        with engine.begin() as conn:
            record = create_invoice(
                conn,
                settings,
                customer_id=payload.customer_id,
                plan_id=payload.plan_id,
                invoice_date=payload.invoice_date,
                received_amount=payload.received_amount,
                received_arrear_amount=payload.received_arrear_amount,
                manual_due_number=payload.manual_due_number,
            )
    except BillingError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))

    return InvoiceOut(**record)


@router.get("/preview", response_model=InvoicePreviewOut)
def preview(
    customer_id: str = Query(...),
    plan_id: int = Query(...),
    invoice_date: Optional[date] = Query(
        default=None,
        description="ISO date (YYYY-MM-DD); defaults to today in the configured timezone",
    ),
    received_amount: Decimal = Query(Decimal("0"), ge=0),
    received_arrear_amount: Decimal = Query(Decimal("0"), ge=0),
) -> InvoicePreviewOut:
    """
    Returns the figures an invoice created now would carry, without saving it.
    """
    settings = get_settings()
    engine = get_engine()

    try:
        with engine.connect() as conn:
            calc = preview_invoice(
                conn,
                settings,
                customer_id=customer_id,
                plan_id=plan_id,
                invoice_date=invoice_date,
                received_amount=received_amount,
                received_arrear_amount=received_arrear_amount,
            )
    except BillingError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))

    return InvoicePreviewOut(
        due_number=calc.due_number,
        invoice_date=calc.invoice_date,
        due_amount=calc.due_amount,
        arrear_amount=calc.arrear_amount,
        previous_balance=calc.previous_balance,
        total_due=calc.total_amount,
        received_amount=calc.received_amount,
        received_arrear_amount=calc.received_arrear_amount,
        balance_amount=calc.balance_amount,
        payment_month=calc.payment_month,
    )


@router.get("/{invoice_number}", response_model=InvoiceOut)
def get_invoice(invoice_number: str) -> InvoiceOut:
    """
    Look up a single invoice by its invoice_number.
    """
    engine = get_engine()

    try:
        with engine.connect() as conn:
            row = repository.get_invoice(conn, invoice_number)
    except BillingError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))

    return InvoiceOut(**row)


@router.patch("/{invoice_number}/payment", response_model=InvoiceOut)
def correct_payment(invoice_number: str, payload: PaymentCorrection) -> InvoiceOut:
    engine = get_engine()

    try:
        with engine.begin() as conn:
            record = correct_invoice_payment(
                conn,
                invoice_number,
                received_amount=payload.received_amount,
                balance_amount=payload.balance_amount,
            )
    except BillingError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))

    return InvoiceOut(**record)
