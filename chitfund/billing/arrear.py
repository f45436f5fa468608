# chitfund/billing/arrear.py

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Optional

from chitfund.billing.periods import BillingPhase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriorInvoice:
    """The stored figures of an enrollment's previous invoice."""

    invoice_date: date
    due_number: int
    arrear_amount: Decimal
    balance_amount: Decimal


# (enrollment_id, invoice_date) -> most recent invoice strictly before that date
PriorInvoiceLookup = Callable[[int, date], Optional[PriorInvoice]]


def arrear_from_prior(prior: Optional[PriorInvoice], phase: BillingPhase) -> Decimal:
    """
    Carry-forward rule.

    First invoice -> 0. On a reset day the prior unpaid balance becomes
    the arrear; on any other day the prior arrear is carried unchanged.
    """
    if prior is None:
        return Decimal("0")
    if phase is BillingPhase.RESET:
        return prior.balance_amount
    return prior.arrear_amount


def calculate_arrear(
    enrollment_id: int,
    invoice_date: date,
    lookup: PriorInvoiceLookup,
) -> Decimal:
    """
    Arrear for a new invoice of ``enrollment_id`` dated ``invoice_date``.

    Only invoice history is consulted; an enrollment's seeded
    ``current_arrear`` never feeds this calculation.
    """
    prior = lookup(enrollment_id, invoice_date)
    phase = BillingPhase.for_date(invoice_date)
    arrear = arrear_from_prior(prior, phase)
    logger.debug(
        "Arrear for enrollment %s on %s (%s): %s (prior invoice %s)",
        enrollment_id, invoice_date, phase.value, arrear,
        prior.invoice_date if prior else None,
    )
    return arrear
