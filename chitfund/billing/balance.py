# chitfund/billing/balance.py

from datetime import date
from decimal import Decimal

from chitfund.billing.periods import BillingPhase


def balance_for_phase(
    phase: BillingPhase,
    due_amount: Decimal,
    arrear_amount: Decimal,
    received_amount: Decimal,
    previous_balance: Decimal,
    received_arrear_amount: Decimal = Decimal("0"),
    allow_negative: bool = True,
) -> Decimal:
    """
    Outstanding balance after this invoice.

    Reset day: (due + arrear) - received, a full re-bill.
    Other days: previous balance - received - received arrear.

    ``received_arrear_amount`` is money paid against the arrear on top of
    the installment payment. It only moves the balance between resets;
    the reset re-bill already starts from the carried arrear.
    A negative result is an overpayment credit; with ``allow_negative``
    off it is floored at zero.
    """
    if phase is BillingPhase.RESET:
        balance = (due_amount + arrear_amount) - received_amount
    else:
        balance = previous_balance - received_amount - received_arrear_amount

    if not allow_negative and balance < 0:
        return Decimal("0")
    return balance


def calculate_balance(
    due_amount: Decimal,
    arrear_amount: Decimal,
    received_amount: Decimal,
    invoice_date: date,
    previous_balance: Decimal,
    received_arrear_amount: Decimal = Decimal("0"),
    allow_negative: bool = True,
) -> Decimal:
    return balance_for_phase(
        BillingPhase.for_date(invoice_date),
        due_amount,
        arrear_amount,
        received_amount,
        previous_balance,
        received_arrear_amount,
        allow_negative,
    )
