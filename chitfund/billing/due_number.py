# chitfund/billing/due_number.py

import logging
from datetime import date, datetime
from typing import Union

from chitfund.billing.exceptions import InvalidDueNumber
from chitfund.billing.periods import effective_billing_date, normalize_date

logger = logging.getLogger(__name__)


def calculate_due_number(
    enrollment_date: Union[date, datetime],
    invoice_date: Union[date, datetime],
    plan_duration: int,
) -> int:
    """
    Return the 1-based installment an invoice date falls into.

    Month distance between the enrollment month and the invoice's
    effective month (see ``effective_billing_date``), plus one.

    Raises InvalidDueNumber when the invoice predates the enrollment or
    the plan has already run all of its installments.
    """
    enrolled = normalize_date(enrollment_date)
    invoiced = normalize_date(invoice_date)
    effective = effective_billing_date(invoiced)

    due_number = (
        (effective.year * 12 + effective.month)
        - (enrolled.year * 12 + enrolled.month)
        + 1
    )

    if due_number < 1:
        raise InvalidDueNumber(
            f"Invalid due number: {due_number}. Invoice date ({invoiced.isoformat()}) "
            f"cannot be before enrollment date ({enrolled.isoformat()})"
        )
    if due_number > plan_duration:
        raise InvalidDueNumber(
            f"Installment number ({due_number}) exceeds plan duration "
            f"({plan_duration} installments). This plan has completed all installments."
        )

    logger.debug(
        "Due number %s: enrolled %s, invoiced %s, effective %s",
        due_number, enrolled, invoiced, effective,
    )
    return due_number


def validate_due_number(due_number: int, plan_duration: int) -> int:
    """Range-check a manually supplied due number (no cutoff rule applied)."""
    if not 0 < due_number <= plan_duration:
        raise InvalidDueNumber(
            f"Invalid due number {due_number}: plan has only {plan_duration} installments"
        )
    return due_number
