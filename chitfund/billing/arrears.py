# chitfund/billing/arrears.py
"""
Enrollment-level arrear maintenance.

``refresh_arrears`` is the scheduled batch (run daily from cron, see
scripts/update_arrears.py). It copies each active enrollment's latest
invoice balance into ``current_arrear``, but only on the day its
billing state calls for:

    no invoice yet / due 1 pending  -> last calendar day of the month
    due 2+ pending                  -> the 21st

``seed_initial_arrears`` and ``clear_arrear`` are one-off admin
operations that write ``current_arrear`` directly. None of these values
feed invoice assembly, which always derives arrears from the invoice
chain.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List

from sqlalchemy.engine import Connection, RowMapping

from chitfund.billing.exceptions import BillingError, EnrollmentNotFound
from chitfund.billing.periods import BillingPhase, is_last_day_of_month
from chitfund.billing.schedule import due_amount_for_installment
from chitfund.db import repository

logger = logging.getLogger(__name__)


class RefreshState(Enum):
    NO_INVOICE_YET = "no-invoice-yet"
    DUE_1_PENDING = "due-1-pending"
    DUE_2_PLUS_PENDING = "due-2-plus-pending"


SKIP_REASONS = {
    RefreshState.NO_INVOICE_YET: "Due 1 - Wait for last day of month",
    RefreshState.DUE_1_PENDING: "Due 1 - Wait for last day of month",
    RefreshState.DUE_2_PLUS_PENDING: "Due 2+ - Wait for 21st",
}


def _empty_report() -> Dict[str, List[dict]]:
    return {"updated": [], "skipped": [], "errors": []}


def update_reason(state: RefreshState, phase: BillingPhase, month_end: bool, force: bool = False):
    """Why ``state`` may be written on a day of ``phase``, or None when it has to wait."""
    if state is RefreshState.DUE_2_PLUS_PENDING:
        if phase is BillingPhase.RESET:
            return "Due 2+ - 21st of month"
    elif month_end:
        return "Due 1 - Last day of month"
    if force:
        return "Forced update"
    return None


def _refresh_one(
    conn: Connection,
    enrollment: RowMapping,
    phase: BillingPhase,
    month_end: bool,
    now: datetime,
    force: bool,
    report,
):
    plan = repository.load_plan(conn, enrollment["plan_id"])
    latest = repository.latest_invoice(conn, enrollment["id"])

    if latest is None:
        state = RefreshState.NO_INVOICE_YET
        due_number = 1
        new_arrear = Decimal("0")
        previous_arrear = Decimal("0")
        source = "First invoice (no arrear)"
    else:
        due_number = latest.due_number
        state = RefreshState.DUE_1_PENDING if due_number == 1 else RefreshState.DUE_2_PLUS_PENDING
        new_arrear = latest.balance_amount
        previous_arrear = latest.arrear_amount
        source = "Previous invoice balance"

    reason = update_reason(state, phase, month_end, force)
    if reason is None:
        report["skipped"].append(
            {
                "enrollment_id": enrollment["id"],
                "customer_id": enrollment["customer_id"],
                "due_number": due_number,
                "state": state.value,
                "reason": SKIP_REASONS[state],
            }
        )
        return

    repository.update_enrollment(
        conn,
        enrollment["id"],
        current_arrear=new_arrear,
        arrear_last_updated=now,
    )
    report["updated"].append(
        {
            "enrollment_id": enrollment["id"],
            "customer_id": enrollment["customer_id"],
            "plan_name": plan.plan_name,
            "due_number": due_number,
            "state": state.value,
            "last_invoice_date": latest.invoice_date if latest else None,
            "previous_arrear": previous_arrear,
            "new_arrear": new_arrear,
            "change": new_arrear - previous_arrear,
            "reason": reason,
            "source": source,
        }
    )


def refresh_arrears(conn: Connection, today: date, now: datetime, force: bool = False) -> Dict[str, List[dict]]:
    """
    Best-effort arrear refresh across all active enrollments.

    A failing enrollment lands in ``errors`` and never stops the batch.
    Each enrollment runs in its own savepoint, so a failure rolls back
    whatever that enrollment had written.
    """
    report = _empty_report()
    phase = BillingPhase.for_date(today)
    month_end = is_last_day_of_month(today)
    enrollments = repository.active_enrollments(conn)
    logger.info(
        "Running arrear refresh for %s (%s) over %s active enrollments (force=%s)",
        today.isoformat(), phase.value, len(enrollments), force,
    )
    if not force and phase is BillingPhase.CARRY and not month_end:
        logger.info("%s is neither the 21st nor a month end; nothing will be written", today)

    for enrollment in enrollments:
        try:
            with conn.begin_nested():
                _refresh_one(conn, enrollment, phase, month_end, now, force, report)
        except Exception as exc:
            logger.exception("Error processing enrollment %s", enrollment["id"])
            report["errors"].append(
                {
                    "enrollment_id": enrollment["id"],
                    "customer_id": enrollment["customer_id"],
                    "error": str(exc) or exc.__class__.__name__,
                }
            )

    logger.info(
        "Arrear refresh summary: updated=%s skipped=%s errors=%s",
        len(report["updated"]), len(report["skipped"]), len(report["errors"]),
    )
    return report


def seed_initial_arrears(conn: Connection, now: datetime) -> Dict[str, List[dict]]:
    """
    One-time setup: seed ``current_arrear`` with the plan's first
    installment for active enrollments that have no invoices yet.
    """
    report = _empty_report()
    for enrollment in repository.active_enrollments(conn):
        entry = {"enrollment_id": enrollment["id"], "customer_id": enrollment["customer_id"]}
        try:
            if repository.count_invoices(conn, enrollment["id"]):
                report["skipped"].append({**entry, "reason": "Already has invoice"})
                continue

            plan = repository.load_plan(conn, enrollment["plan_id"])
            try:
                amount = due_amount_for_installment(plan, 1)
            except BillingError:
                amount = Decimal("0")
            if not amount:
                report["skipped"].append({**entry, "reason": "No monthly amount found"})
                continue

            repository.update_enrollment(
                conn, enrollment["id"], current_arrear=amount, arrear_last_updated=now
            )
            report["updated"].append(
                {
                    **entry,
                    "plan_name": plan.plan_name,
                    "due_number": 1,
                    "new_arrear": amount,
                    "reason": "Initial setup",
                    "source": "First monthly amount from plan",
                }
            )
        except Exception as exc:
            logger.exception("Error seeding arrear for enrollment %s", enrollment["id"])
            report["errors"].append({**entry, "error": str(exc) or exc.__class__.__name__})

    logger.info(
        "Initial arrears: updated=%s skipped=%s errors=%s",
        len(report["updated"]), len(report["skipped"]), len(report["errors"]),
    )
    return report


def clear_arrear(conn: Connection, customer_id: str, plan_id: int, now: datetime) -> RowMapping:
    enrollment = repository.find_enrollment(conn, customer_id, plan_id)
    if enrollment is None:
        raise EnrollmentNotFound("Enrollment not found for this customer and plan")
    repository.update_enrollment(
        conn, enrollment["id"], current_arrear=Decimal("0"), arrear_last_updated=now
    )
    logger.info("Cleared arrear for enrollment %s", enrollment["id"])
    return repository.get_enrollment(conn, enrollment["id"])
