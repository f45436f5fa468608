# chitfund/api/enrollments.py

from typing import List

from fastapi import APIRouter, HTTPException
from sqlalchemy import select

from chitfund.billing.arrears import clear_arrear
from chitfund.billing.exceptions import (
    BillingError,
    CustomerNotFound,
    DuplicateEnrollment,
    DuplicateMemberNumber,
)
from chitfund.config import get_settings
from chitfund.db import repository
from chitfund.db.engine import get_engine
from chitfund.db.schema import customers, enrollments
from chitfund.models.enrollments import ClearArrearIn, EnrollmentIn, EnrollmentOut
from chitfund.models.invoices import InvoiceOut

router = APIRouter(prefix="/enrollments", tags=["enrollments"])


def create_enrollment(conn, payload: EnrollmentIn) -> int:
    """
    Enroll a customer in a plan. Member numbers are unique across the
    whole system, not just within a plan.
    """
    customer = conn.execute(
        select(customers.c.customer_id).where(customers.c.customer_id == payload.customer_id)
    ).first()
    if customer is None:
        raise CustomerNotFound(f"Customer {payload.customer_id} not found")

    repository.load_plan(conn, payload.plan_id)

    taken = conn.execute(
        select(enrollments.c.id).where(enrollments.c.member_number == payload.member_number)
    ).first()
    if taken is not None:
        raise DuplicateMemberNumber(f"Member number {payload.member_number} is already in use")

    if repository.find_enrollment(conn, payload.customer_id, payload.plan_id) is not None:
        raise DuplicateEnrollment("Customer is already enrolled in this plan")

    result = conn.execute(
        enrollments.insert().values(
            **payload.model_dump(),
            status="active",
            total_paid=0,
            total_due=0,
            current_arrear=0,
        )
    )
    return result.inserted_primary_key[0]


@router.post("/", response_model=EnrollmentOut, status_code=201)
def enroll(payload: EnrollmentIn) -> EnrollmentOut:
    engine = get_engine()
    try:
        with engine.begin() as conn:
            enrollment_id = create_enrollment(conn, payload)
            row = repository.get_enrollment(conn, enrollment_id)
    except BillingError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))

    return EnrollmentOut(**row)


@router.post("/clear-arrear", response_model=EnrollmentOut)
def clear_enrollment_arrear(payload: ClearArrearIn) -> EnrollmentOut:
    settings = get_settings()
    engine = get_engine()
    try:
        with engine.begin() as conn:
            row = clear_arrear(
                conn, payload.customer_id, payload.plan_id, settings.now().replace(tzinfo=None)
            )
    except BillingError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))

    return EnrollmentOut(**row)


@router.get("/{enrollment_id}", response_model=EnrollmentOut)
def get_enrollment(enrollment_id: int) -> EnrollmentOut:
    engine = get_engine()
    try:
        with engine.connect() as conn:
            row = repository.get_enrollment(conn, enrollment_id)
    except BillingError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))

    return EnrollmentOut(**row)


@router.get("/{enrollment_id}/invoices", response_model=List[InvoiceOut])
def list_enrollment_invoices(enrollment_id: int) -> List[InvoiceOut]:
    """
    The enrollment's invoice chain, oldest first.
    """
    engine = get_engine()
    try:
        with engine.connect() as conn:
            repository.get_enrollment(conn, enrollment_id)
            rows = repository.list_invoices(conn, enrollment_id)
    except BillingError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))

    return [InvoiceOut(**row) for row in rows]
