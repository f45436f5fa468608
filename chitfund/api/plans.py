# chitfund/api/plans.py

from typing import List

from fastapi import APIRouter, HTTPException
from sqlalchemy import select

from chitfund.billing.exceptions import BillingError, InvalidPlanSchedule, PlanNotFound
from chitfund.db import repository
from chitfund.db.engine import get_engine
from chitfund.db.schema import plan_installments, plans
from chitfund.models.plans import InstallmentOut, PlanIn, PlanOut

router = APIRouter(prefix="/plans", tags=["plans"])


def validate_plan(payload: PlanIn) -> None:
    """
    A plan needs either a full per-installment schedule (one entry per
    month 1..duration) or a flat monthly amount.
    """
    if payload.installments:
        months = sorted(i.month_number for i in payload.installments)
        if months != list(range(1, payload.duration + 1)):
            raise InvalidPlanSchedule(
                f"Schedule must list months 1..{payload.duration} exactly once, "
                f"got {months}"
            )
    elif payload.monthly_amount is None:
        raise InvalidPlanSchedule("Plan needs installments or a monthly_amount")


def _plan_out(conn, plan_id: int) -> PlanOut:
    try:
        plan = repository.load_plan(conn, plan_id)
    except PlanNotFound:
        raise HTTPException(status_code=404, detail="Plan not found")

    return PlanOut(
        id=plan.id,
        plan_name=plan.plan_name,
        total_amount=plan.total_amount,
        duration=plan.duration,
        plan_type=plan.plan_type,
        monthly_amount=plan.monthly_amount,
        installments=[
            InstallmentOut(
                month_number=entry.month_number,
                installment_amount=entry.installment_amount,
                dividend=entry.dividend,
                payable_amount=entry.payable_amount,
            )
            for entry in plan.installments
        ],
    )


@router.post("/", response_model=PlanOut, status_code=201)
def create_plan(payload: PlanIn) -> PlanOut:
    try:
        validate_plan(payload)
    except BillingError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))

    engine = get_engine()
    with engine.begin() as conn:
        result = conn.execute(
            plans.insert().values(**payload.model_dump(exclude={"installments"}))
        )
        plan_id = result.inserted_primary_key[0]

        if payload.installments:
            conn.execute(
                plan_installments.insert(),
                [{"plan_id": plan_id, **i.model_dump()} for i in payload.installments],
            )

        return _plan_out(conn, plan_id)


@router.get("/", response_model=List[PlanOut])
def list_plans() -> List[PlanOut]:
    engine = get_engine()
    with engine.connect() as conn:
        ids = conn.execute(select(plans.c.id).order_by(plans.c.id)).scalars().all()
        return [_plan_out(conn, plan_id) for plan_id in ids]


@router.get("/{plan_id}", response_model=PlanOut)
def get_plan(plan_id: int) -> PlanOut:
    engine = get_engine()
    with engine.connect() as conn:
        return _plan_out(conn, plan_id)
