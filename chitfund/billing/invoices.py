# chitfund/billing/invoices.py
"""
Invoice assembly.

Sequences the calculators against an enrollment's stored invoice chain:

    due number -> due amount -> arrear -> previous balance -> balance

``preview_invoice`` runs the sequence read-only; ``create_invoice`` runs
it and persists the result together with the enrollment's running
totals. Call ``create_invoice`` inside ``engine.begin()`` so that a
failure anywhere leaves no invoice behind.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.engine import Connection, RowMapping
from sqlalchemy.exc import IntegrityError

from chitfund.billing.arrear import arrear_from_prior
from chitfund.billing.balance import balance_for_phase
from chitfund.billing.due_number import calculate_due_number, validate_due_number
from chitfund.billing.exceptions import (
    EnrollmentInactive,
    EnrollmentNotFound,
    InvalidAmount,
    InvoiceOrderError,
)
from chitfund.billing.periods import BillingPhase, format_payment_month, normalize_date
from chitfund.billing.schedule import Plan, due_amount_for_installment
from chitfund.config import Settings
from chitfund.db import repository

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class InvoiceCalculation:
    enrollment_id: int
    customer_id: str
    plan_id: int
    member_number: str
    due_number: int
    invoice_date: date
    due_amount: Decimal
    arrear_amount: Decimal
    previous_balance: Decimal
    received_amount: Decimal
    received_arrear_amount: Decimal
    balance_amount: Decimal
    total_amount: Decimal
    payment_month: str


def _resolve(conn: Connection, customer_id: str, plan_id: int):
    enrollment = repository.find_enrollment(conn, customer_id, plan_id)
    if enrollment is None:
        raise EnrollmentNotFound(
            "No enrollment found for this user and plan. "
            "Please create an enrollment first with a member number."
        )
    plan = repository.load_plan(conn, plan_id)
    return enrollment, plan


def _check_amount(name: str, amount: Decimal) -> Decimal:
    if amount < 0:
        raise InvalidAmount(f"{name} cannot be negative (got {amount})")
    return amount


def _is_date_conflict(exc: IntegrityError) -> bool:
    # SQLite names the columns, other backends the constraint
    message = str(exc.orig)
    return (
        "uq_invoices_enrollment_date" in message
        or "invoices.enrollment_id, invoices.invoice_date" in message
    )


def calculate_invoice(
    conn: Connection,
    enrollment: RowMapping,
    plan: Plan,
    invoice_date: date,
    received_amount: Decimal = ZERO,
    received_arrear_amount: Decimal = ZERO,
    manual_due_number: Optional[int] = None,
    allow_negative_balance: bool = True,
) -> InvoiceCalculation:
    invoice_date = normalize_date(invoice_date)
    _check_amount("received_amount", received_amount)
    _check_amount("received_arrear_amount", received_arrear_amount)

    if manual_due_number is not None:
        due_number = validate_due_number(manual_due_number, plan.duration)
    else:
        due_number = calculate_due_number(
            enrollment["enrollment_date"], invoice_date, plan.duration
        )

    due_amount = due_amount_for_installment(plan, due_number)

    phase = BillingPhase.for_date(invoice_date)
    prior = repository.prior_invoice(conn, enrollment["id"], invoice_date)
    arrear_amount = arrear_from_prior(prior, phase)

    if prior is not None:
        previous_balance = prior.balance_amount
    elif phase is BillingPhase.CARRY:
        # First bill of the enrollment: the first installment is the opening balance
        previous_balance = due_amount
    else:
        previous_balance = ZERO

    balance_amount = balance_for_phase(
        phase,
        due_amount,
        arrear_amount,
        received_amount,
        previous_balance,
        received_arrear_amount,
        allow_negative=allow_negative_balance,
    )
    logger.debug(
        "Enrollment %s on %s (%s): prior %s, arrear %s, balance %s",
        enrollment["id"], invoice_date, phase.value,
        prior.invoice_date if prior else None, arrear_amount, balance_amount,
    )

    return InvoiceCalculation(
        enrollment_id=enrollment["id"],
        customer_id=enrollment["customer_id"],
        plan_id=plan.id,
        member_number=enrollment["member_number"],
        due_number=due_number,
        invoice_date=invoice_date,
        due_amount=due_amount,
        arrear_amount=arrear_amount,
        previous_balance=previous_balance,
        received_amount=received_amount,
        received_arrear_amount=received_arrear_amount,
        balance_amount=balance_amount,
        total_amount=due_amount + arrear_amount,
        payment_month=format_payment_month(invoice_date),
    )


def preview_invoice(
    conn: Connection,
    settings: Settings,
    customer_id: str,
    plan_id: int,
    invoice_date: Optional[date] = None,
    received_amount: Decimal = ZERO,
    received_arrear_amount: Decimal = ZERO,
    manual_due_number: Optional[int] = None,
) -> InvoiceCalculation:
    """What ``create_invoice`` would produce, without writing anything."""
    enrollment, plan = _resolve(conn, customer_id, plan_id)
    return calculate_invoice(
        conn,
        enrollment,
        plan,
        invoice_date or settings.today(),
        received_amount,
        received_arrear_amount,
        manual_due_number,
        settings.allow_negative_balance,
    )


def create_invoice(
    conn: Connection,
    settings: Settings,
    customer_id: str,
    plan_id: int,
    invoice_date: Optional[date] = None,
    received_amount: Decimal = ZERO,
    received_arrear_amount: Decimal = ZERO,
    manual_due_number: Optional[int] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Build and persist one invoice; return the stored record.

    Invoices for an enrollment must arrive in strictly increasing date
    order. Anything else raises InvoiceOrderError before a write happens.

    The enrollment is locked before its invoice chain is read, so two
    creations for the same enrollment run one after the other and the
    second one sees the first one's invoice.
    """
    now = now or settings.now()
    invoice_date = normalize_date(invoice_date or now)

    found, plan = _resolve(conn, customer_id, plan_id)
    repository.lock_enrollment(conn, found["id"])
    # re-read under the lock: totals may have moved since the lookup
    enrollment = repository.get_enrollment(conn, found["id"])
    if enrollment["status"] != "active":
        raise EnrollmentInactive(
            f"Enrollment {enrollment['id']} is {enrollment['status']}; "
            "only active enrollments can be invoiced"
        )

    latest = repository.latest_invoice(conn, enrollment["id"])
    if latest is not None and latest.invoice_date >= invoice_date:
        raise InvoiceOrderError(
            f"Enrollment {enrollment['id']} already has an invoice dated "
            f"{latest.invoice_date.isoformat()}; new invoices must be dated after it"
        )

    calc = calculate_invoice(
        conn,
        enrollment,
        plan,
        invoice_date,
        received_amount,
        received_arrear_amount,
        manual_due_number,
        settings.allow_negative_balance,
    )

    record = asdict(calc)
    record.pop("previous_balance")
    record["invoice_number"] = repository.next_invoice_number(
        conn, settings.invoice_prefix, settings.invoice_number_width
    )
    record["created_at"] = now.replace(tzinfo=None)

    try:
        record["id"] = repository.insert_invoice(conn, record)
    except IntegrityError as exc:
        if not _is_date_conflict(exc):
            raise
        raise InvoiceOrderError(
            f"Invoice for enrollment {enrollment['id']} on "
            f"{invoice_date.isoformat()} conflicts with an existing invoice"
        ) from exc

    repository.update_enrollment(
        conn,
        enrollment["id"],
        total_paid=enrollment["total_paid"] + received_amount + received_arrear_amount,
        total_due=calc.balance_amount,
    )

    logger.info(
        "Created %s for enrollment %s: due %s, amount %s, arrear %s, balance %s",
        record["invoice_number"], enrollment["id"], calc.due_number,
        calc.due_amount, calc.arrear_amount, calc.balance_amount,
    )
    return record


def correct_invoice_payment(
    conn: Connection,
    invoice_number: str,
    received_amount: Decimal,
    balance_amount: Optional[Decimal] = None,
) -> dict:
    """
    Admin correction of an invoice's received amount.

    The only mutation an invoice allows. Unless given explicitly, the
    balance moves by the same delta as the received amount; the
    enrollment's total paid follows.
    """
    _check_amount("received_amount", received_amount)
    invoice = repository.get_invoice(conn, invoice_number)
    delta = received_amount - invoice["received_amount"]
    if balance_amount is None:
        balance_amount = invoice["balance_amount"] - delta

    repository.update_invoice(
        conn, invoice["id"], received_amount=received_amount, balance_amount=balance_amount
    )

    enrollment = repository.get_enrollment(conn, invoice["enrollment_id"])
    values = {"total_paid": enrollment["total_paid"] + delta}
    latest = repository.latest_invoice(conn, enrollment["id"])
    if latest is not None and latest.invoice_date == invoice["invoice_date"]:
        values["total_due"] = balance_amount
    repository.update_enrollment(conn, enrollment["id"], **values)

    logger.info(
        "Corrected %s: received %s -> %s, balance %s -> %s",
        invoice_number, invoice["received_amount"], received_amount,
        invoice["balance_amount"], balance_amount,
    )
    return dict(repository.get_invoice(conn, invoice_number))
