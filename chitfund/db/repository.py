# chitfund/db/repository.py
"""
Persistence helpers for the billing engine.

Every function takes an open SQLAlchemy connection; transaction scope is
decided by the caller (``engine.begin()`` for writes).
"""

from datetime import date
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, RowMapping

from chitfund.billing.arrear import PriorInvoice
from chitfund.billing.exceptions import (
    EnrollmentNotFound,
    InvoiceNotFound,
    PlanNotFound,
)
from chitfund.billing.schedule import InstallmentEntry, Plan, resolve_schedule_source
from chitfund.db.schema import counters, enrollments, invoices, plan_installments, plans

INVOICE_COUNTER = "invoice_number"


# ---- Plans ----

def load_plan(conn: Connection, plan_id: int) -> Plan:
    row = conn.execute(select(plans).where(plans.c.id == plan_id)).mappings().first()
    if row is None:
        raise PlanNotFound(f"Plan {plan_id} not found")

    rows = conn.execute(
        select(plan_installments)
        .where(plan_installments.c.plan_id == plan_id)
        .order_by(plan_installments.c.month_number)
    ).mappings().all()

    entries = [
        InstallmentEntry(
            month_number=r["month_number"],
            installment_amount=r["installment_amount"],
            dividend=r["dividend"],
            payable_amount=r["payable_amount"],
        )
        for r in rows
    ]

    return Plan(
        id=row["id"],
        plan_name=row["plan_name"],
        total_amount=row["total_amount"],
        duration=row["duration"],
        plan_type=row["plan_type"],
        schedule=resolve_schedule_source(entries, row["monthly_amount"]),
        monthly_amount=row["monthly_amount"],
        installments=entries,
    )


# ---- Enrollments ----

def find_enrollment(conn: Connection, customer_id: str, plan_id: int) -> Optional[RowMapping]:
    stmt = select(enrollments).where(
        enrollments.c.customer_id == customer_id,
        enrollments.c.plan_id == plan_id,
    )
    return conn.execute(stmt).mappings().first()


def get_enrollment(conn: Connection, enrollment_id: int) -> RowMapping:
    row = conn.execute(
        select(enrollments).where(enrollments.c.id == enrollment_id)
    ).mappings().first()
    if row is None:
        raise EnrollmentNotFound(f"Enrollment {enrollment_id} not found")
    return row


def lock_enrollment(conn: Connection, enrollment_id: int) -> None:
    """
    Take the write lock for an enrollment before reading its invoice chain.

    A no-op UPDATE is the first write of the transaction: on SQLite it
    takes the database RESERVED lock, elsewhere a row lock. Concurrent
    invoice creation for the enrollment waits here until the holder
    commits or rolls back.
    """
    conn.execute(
        update(enrollments)
        .where(enrollments.c.id == enrollment_id)
        .values(id=enrollments.c.id)
    )


def active_enrollments(conn: Connection) -> List[RowMapping]:
    stmt = (
        select(enrollments)
        .where(enrollments.c.status == "active")
        .order_by(enrollments.c.id)
    )
    return conn.execute(stmt).mappings().all()


def update_enrollment(conn: Connection, enrollment_id: int, **values) -> None:
    conn.execute(
        update(enrollments).where(enrollments.c.id == enrollment_id).values(**values)
    )


# ---- Invoices ----

def _to_prior(row: Optional[RowMapping]) -> Optional[PriorInvoice]:
    if row is None:
        return None
    return PriorInvoice(
        invoice_date=row["invoice_date"],
        due_number=row["due_number"],
        arrear_amount=row["arrear_amount"],
        balance_amount=row["balance_amount"],
    )


def prior_invoice(conn: Connection, enrollment_id: int, before: date) -> Optional[PriorInvoice]:
    """Most recent invoice of the enrollment dated strictly before ``before``."""
    stmt = (
        select(invoices)
        .where(
            invoices.c.enrollment_id == enrollment_id,
            invoices.c.invoice_date < before,
        )
        .order_by(invoices.c.invoice_date.desc())
        .limit(1)
    )
    return _to_prior(conn.execute(stmt).mappings().first())


def latest_invoice(conn: Connection, enrollment_id: int) -> Optional[PriorInvoice]:
    stmt = (
        select(invoices)
        .where(invoices.c.enrollment_id == enrollment_id)
        .order_by(invoices.c.invoice_date.desc())
        .limit(1)
    )
    return _to_prior(conn.execute(stmt).mappings().first())


def count_invoices(conn: Connection, enrollment_id: int) -> int:
    stmt = select(func.count()).where(invoices.c.enrollment_id == enrollment_id)
    return conn.execute(stmt).scalar_one()


def list_invoices(conn: Connection, enrollment_id: int) -> List[RowMapping]:
    stmt = (
        select(invoices)
        .where(invoices.c.enrollment_id == enrollment_id)
        .order_by(invoices.c.invoice_date.asc())
    )
    return conn.execute(stmt).mappings().all()


def get_invoice(conn: Connection, invoice_number: str) -> RowMapping:
    row = conn.execute(
        select(invoices).where(invoices.c.invoice_number == invoice_number)
    ).mappings().first()
    if row is None:
        raise InvoiceNotFound(f"Invoice {invoice_number} not found")
    return row


def insert_invoice(conn: Connection, record: dict) -> int:
    result = conn.execute(invoices.insert().values(**record))
    return result.inserted_primary_key[0]


# ---- Counters ----

def next_counter_value(conn: Connection, name: str) -> int:
    """
    Atomically bump and return the named counter.

    The UPDATE takes the write lock before the value is read back, so two
    transactions can never observe the same number.
    """
    conn.execute(
        sqlite_insert(counters)
        .values(name=name, value=0)
        .on_conflict_do_nothing(index_elements=[counters.c.name])
    )
    conn.execute(
        update(counters)
        .where(counters.c.name == name)
        .values(value=counters.c.value + 1)
    )
    return conn.execute(
        select(counters.c.value).where(counters.c.name == name)
    ).scalar_one()


def next_invoice_number(conn: Connection, prefix: str = "INV", width: int = 4) -> str:
    value = next_counter_value(conn, INVOICE_COUNTER)
    return f"{prefix}-{value:0{width}d}"


def update_invoice(conn: Connection, invoice_id: int, **values) -> None:
    conn.execute(update(invoices).where(invoices.c.id == invoice_id).values(**values))
