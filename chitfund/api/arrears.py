# chitfund/api/arrears.py

from fastapi import APIRouter

from chitfund.billing.arrears import refresh_arrears, seed_initial_arrears
from chitfund.config import get_settings
from chitfund.db.engine import get_engine
from chitfund.models.arrears import ArrearReport, ArrearSummary, RefreshRequest

router = APIRouter(prefix="/admin/arrears", tags=["arrears"])


def _report(run_date, results) -> ArrearReport:
    return ArrearReport(
        run_date=run_date,
        summary=ArrearSummary(
            total=sum(len(v) for v in results.values()),
            updated=len(results["updated"]),
            skipped=len(results["skipped"]),
            errors=len(results["errors"]),
        ),
        **results,
    )


@router.post("/refresh", response_model=ArrearReport)
def refresh(payload: RefreshRequest = RefreshRequest()) -> ArrearReport:
    """
    Daily arrear refresh; meant to be hit by cron.

    Only writes on the 21st (due 2+) or the last day of the month
    (due 1) unless ``force`` is set.
    """
    settings = get_settings()
    now = settings.now()
    as_of = payload.as_of or now.date()

    engine = get_engine()
    with engine.begin() as conn:
        results = refresh_arrears(conn, as_of, now.replace(tzinfo=None), force=payload.force)

    return _report(as_of, results)


@router.post("/initial", response_model=ArrearReport)
def initial() -> ArrearReport:
    """
    One-time setup: seed current arrears for enrollments without invoices.
    """
    settings = get_settings()
    now = settings.now()

    engine = get_engine()
    with engine.begin() as conn:
        results = seed_initial_arrears(conn, now.replace(tzinfo=None))

    return _report(now.date(), results)
