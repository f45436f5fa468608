# chitfund/billing/periods.py
"""
Billing calendar rules.

Two day-of-month constants drive the whole engine:

- CUTOFF_DAY (20): an invoice dated after the 20th belongs to the next
  month's installment.
- RESET_DAY (21): on the 21st the unpaid balance is re-billed as arrear
  and the balance is recomputed from due + arrear. On every other day
  the previous invoice's figures are carried forward.
"""

import calendar
from datetime import date, datetime
from enum import Enum
from typing import Union

CUTOFF_DAY = 20
RESET_DAY = 21

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


class BillingPhase(Enum):
    RESET = "reset"
    CARRY = "carry"

    @classmethod
    def for_date(cls, value: Union[date, datetime]) -> "BillingPhase":
        return cls.RESET if normalize_date(value).day == RESET_DAY else cls.CARRY


def normalize_date(value: Union[date, datetime]) -> date:
    """Drop any time-of-day component; billing works on calendar days."""
    if isinstance(value, datetime):
        return value.date()
    return value


def first_of_next_month(value: date) -> date:
    return date(value.year + (value.month == 12), (value.month % 12) + 1, 1)


def effective_billing_date(value: Union[date, datetime]) -> date:
    """
    The date an invoice is attributed to for installment purposes.

    After the cutoff day the invoice counts towards the following month.
    """
    day = normalize_date(value)
    if day.day > CUTOFF_DAY:
        return first_of_next_month(day)
    return day


def is_last_day_of_month(value: Union[date, datetime]) -> bool:
    day = normalize_date(value)
    return day.day == calendar.monthrange(day.year, day.month)[1]


def format_payment_month(value: Union[date, datetime]) -> str:
    """e.g. "January 2025"; dates after the 20th name the next month."""
    effective = effective_billing_date(value)
    return f"{MONTH_NAMES[effective.month - 1]} {effective.year}"
