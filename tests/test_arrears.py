from datetime import date, datetime
from decimal import Decimal

import pytest

from chitfund.billing.arrears import clear_arrear, refresh_arrears, seed_initial_arrears
from chitfund.billing.exceptions import EnrollmentNotFound
from chitfund.billing.invoices import create_invoice
from chitfund.db import repository

from .conftest import add_customer, add_enrollment, add_plan

NOW = datetime(2024, 5, 1, 6, 0)


@pytest.fixture
def portfolio(engine, settings):
    """
    Three active enrollments on a 12 x 1000 plan:

    - USR001: no invoice yet
    - USR002: one invoice for due 1, balance 400
    - USR003: latest invoice for due 3, balance 500
    """
    with engine.begin() as conn:
        plan_id = add_plan(conn, amounts=[Decimal("1000")] * 12)
        ids = {}
        for n, enrolled_on in ((1, date(2024, 3, 2)), (2, date(2024, 4, 2)), (3, date(2024, 2, 2))):
            customer_id = add_customer(conn, f"USR00{n}", f"Member {n}")
            ids[customer_id] = add_enrollment(conn, customer_id, plan_id, enrolled_on, member_number=f"M-00{n}")

        create_invoice(conn, settings, "USR002", plan_id, date(2024, 4, 10), Decimal("600"), now=NOW)
        create_invoice(conn, settings, "USR003", plan_id, date(2024, 3, 21), Decimal("0"), now=NOW)
        create_invoice(conn, settings, "USR003", plan_id, date(2024, 4, 10), Decimal("500"), now=NOW)
    return {"plan_id": plan_id, "ids": ids}


def run(engine, today, force=False):
    with engine.begin() as conn:
        return refresh_arrears(conn, today, NOW, force=force)


def current_arrears(engine, portfolio):
    with engine.connect() as conn:
        return {
            customer_id: repository.get_enrollment(conn, enrollment_id)["current_arrear"]
            for customer_id, enrollment_id in portfolio["ids"].items()
        }


def test_ordinary_day_skips_everything(engine, portfolio):
    report = run(engine, date(2024, 4, 15))
    assert report["updated"] == []
    assert report["errors"] == []
    assert len(report["skipped"]) == 3
    assert {entry["state"] for entry in report["skipped"]} == {
        "no-invoice-yet", "due-1-pending", "due-2-plus-pending"
    }
    assert set(current_arrears(engine, portfolio).values()) == {Decimal("0")}


def test_21st_updates_due_two_plus_only(engine, portfolio):
    report = run(engine, date(2024, 4, 21))
    assert [entry["customer_id"] for entry in report["updated"]] == ["USR003"]
    assert report["updated"][0]["new_arrear"] == Decimal("500")
    assert report["updated"][0]["reason"] == "Due 2+ - 21st of month"
    assert {entry["reason"] for entry in report["skipped"]} == {"Due 1 - Wait for last day of month"}

    assert current_arrears(engine, portfolio)["USR003"] == Decimal("500")


def test_month_end_updates_due_one(engine, portfolio):
    report = run(engine, date(2024, 4, 30))
    updated = {entry["customer_id"]: entry for entry in report["updated"]}
    assert set(updated) == {"USR001", "USR002"}
    assert updated["USR001"]["new_arrear"] == Decimal("0")
    assert updated["USR002"]["new_arrear"] == Decimal("400")
    assert [entry["customer_id"] for entry in report["skipped"]] == ["USR003"]


def test_force_writes_every_enrollment(engine, portfolio):
    report = run(engine, date(2024, 4, 15), force=True)
    assert len(report["updated"]) == 3
    assert report["skipped"] == []
    assert {entry["reason"] for entry in report["updated"]} == {"Forced update"}

    arrears = current_arrears(engine, portfolio)
    assert arrears == {"USR001": Decimal("0"), "USR002": Decimal("400"), "USR003": Decimal("500")}
    with engine.connect() as conn:
        assert repository.get_enrollment(conn, portfolio["ids"]["USR003"])["arrear_last_updated"] == NOW


def test_one_bad_enrollment_does_not_stop_the_batch(engine, portfolio):
    with engine.begin() as conn:
        add_customer(conn, "USR009", "Broken")
        add_enrollment(conn, "USR009", 404, date(2024, 1, 1), member_number="M-009")

    report = run(engine, date(2024, 4, 15), force=True)
    assert len(report["updated"]) == 3
    assert len(report["errors"]) == 1
    assert report["errors"][0]["customer_id"] == "USR009"
    assert "404" in report["errors"][0]["error"]


def test_failed_enrollment_write_is_rolled_back(engine, portfolio, monkeypatch):
    update_enrollment = repository.update_enrollment
    failing_id = portfolio["ids"]["USR002"]

    def update_then_fail(conn, enrollment_id, **values):
        update_enrollment(conn, enrollment_id, **values)
        if enrollment_id == failing_id:
            raise RuntimeError("disk full")

    monkeypatch.setattr(repository, "update_enrollment", update_then_fail)
    report = run(engine, date(2024, 4, 15), force=True)

    assert [entry["customer_id"] for entry in report["errors"]] == ["USR002"]
    assert [entry["customer_id"] for entry in report["updated"]] == ["USR001", "USR003"]
    arrears = current_arrears(engine, portfolio)
    assert arrears == {"USR001": Decimal("0"), "USR002": Decimal("0"), "USR003": Decimal("500")}
    with engine.connect() as conn:
        assert repository.get_enrollment(conn, failing_id)["arrear_last_updated"] is None


def test_inactive_enrollments_are_ignored(engine, portfolio):
    with engine.begin() as conn:
        add_customer(conn, "USR010", "Done")
        add_enrollment(conn, "USR010", portfolio["plan_id"], date(2023, 1, 1), member_number="M-010", status="completed")

    report = run(engine, date(2024, 4, 15))
    assert len(report["skipped"]) == 3


def test_seed_initial_arrears(engine, portfolio):
    with engine.begin() as conn:
        report = seed_initial_arrears(conn, NOW)

    assert [entry["customer_id"] for entry in report["updated"]] == ["USR001"]
    assert report["updated"][0]["new_arrear"] == Decimal("1000")
    assert {entry["reason"] for entry in report["skipped"]} == {"Already has invoice"}
    assert current_arrears(engine, portfolio)["USR001"] == Decimal("1000")


def test_seeded_arrear_does_not_leak_into_invoices(engine, settings, portfolio):
    with engine.begin() as conn:
        seed_initial_arrears(conn, NOW)
        record = create_invoice(
            conn, settings, "USR001", portfolio["plan_id"], date(2024, 4, 21), Decimal("0"), now=NOW
        )
    assert record["arrear_amount"] == Decimal("0")


def test_seed_skips_plans_without_amounts(engine):
    with engine.begin() as conn:
        customer_id = add_customer(conn)
        plan_id = add_plan(conn, duration=3)
        add_enrollment(conn, customer_id, plan_id, date(2024, 1, 1))
        report = seed_initial_arrears(conn, NOW)
    assert report["skipped"][0]["reason"] == "No monthly amount found"


def test_clear_arrear(engine, portfolio):
    run(engine, date(2024, 4, 21))
    with engine.begin() as conn:
        row = clear_arrear(conn, "USR003", portfolio["plan_id"], NOW)
    assert row["current_arrear"] == Decimal("0")

    with engine.begin() as conn:
        with pytest.raises(EnrollmentNotFound):
            clear_arrear(conn, "USR404", portfolio["plan_id"], NOW)
