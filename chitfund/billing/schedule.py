# chitfund/billing/schedule.py
"""
Plan schedules.

Stored plans either carry one row per installment or a single flat
monthly amount. The shape is resolved once, when the plan is loaded,
into a ``ScheduleSource`` so lookups never branch on raw record shape.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Union

from chitfund.billing.exceptions import PlanScheduleMissing


@dataclass(frozen=True)
class InstallmentEntry:
    month_number: int
    installment_amount: Optional[Decimal]
    dividend: Decimal = Decimal("0")
    payable_amount: Optional[Decimal] = None


@dataclass(frozen=True)
class PerInstallmentSchedule:
    entries: List[InstallmentEntry]
    # Plans may store both shapes; the flat amount backs up empty entries
    flat_fallback: Optional[Decimal] = None


@dataclass(frozen=True)
class FlatMonthlyAmount:
    value: Decimal


ScheduleSource = Union[PerInstallmentSchedule, FlatMonthlyAmount, None]


@dataclass(frozen=True)
class Plan:
    id: int
    plan_name: str
    total_amount: Decimal
    duration: int
    plan_type: str = "monthly"
    schedule: ScheduleSource = None
    monthly_amount: Optional[Decimal] = None
    installments: List[InstallmentEntry] = field(default_factory=list)


def resolve_schedule_source(
    entries: List[InstallmentEntry], monthly_amount: Optional[Decimal]
) -> ScheduleSource:
    if entries:
        ordered = sorted(entries, key=lambda e: e.month_number)
        return PerInstallmentSchedule(entries=ordered, flat_fallback=monthly_amount)
    if monthly_amount is not None:
        return FlatMonthlyAmount(value=monthly_amount)
    return None


def due_amount_for_installment(plan: Plan, due_number: int) -> Decimal:
    """
    Amount due for installment ``due_number`` (1-based).

    Fallback order: the schedule entry's installment amount, then the
    plan's flat monthly amount, else PlanScheduleMissing.
    """
    if due_number < 1 or due_number > plan.duration:
        raise PlanScheduleMissing(
            f"Plan {plan.id} has no installment {due_number} (duration {plan.duration})"
        )

    source = plan.schedule
    index = due_number - 1

    if isinstance(source, PerInstallmentSchedule):
        if index < len(source.entries):
            amount = source.entries[index].installment_amount
            if amount is not None:
                return amount
        if source.flat_fallback is not None:
            return source.flat_fallback
    elif isinstance(source, FlatMonthlyAmount):
        return source.value

    raise PlanScheduleMissing(
        f"Plan {plan.id} does not have monthly amount data configured "
        f"for installment {due_number}"
    )
