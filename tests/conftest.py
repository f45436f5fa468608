from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine

from chitfund.config import Settings
from chitfund.db.schema import customers, enrollments, metadata, plan_installments, plans


@pytest.fixture
def db_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'chitfund.sqlite'}"
    monkeypatch.setenv("CHITFUND_DB_URL", url)
    return url


@pytest.fixture
def engine(db_url):
    engine = create_engine(db_url, future=True)
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def settings(db_url):
    return Settings(db_url=db_url)


@pytest.fixture
def client(engine):
    from fastapi.testclient import TestClient

    from chitfund.main import app

    return TestClient(app)


def add_customer(conn, customer_id="USR001", name="Lakshmi"):
    conn.execute(customers.insert().values(customer_id=customer_id, name=name, phone="9000000001"))
    return customer_id


def add_plan(conn, duration=12, amounts=None, monthly_amount=None, name="Gold 12"):
    """Insert a plan; ``amounts`` gives one installment row per month."""
    total = sum(amounts) if amounts else (monthly_amount or 0) * duration
    result = conn.execute(
        plans.insert().values(
            plan_name=name,
            total_amount=total,
            duration=duration,
            plan_type="monthly",
            monthly_amount=monthly_amount,
        )
    )
    plan_id = result.inserted_primary_key[0]
    if amounts:
        conn.execute(
            plan_installments.insert(),
            [
                {
                    "plan_id": plan_id,
                    "month_number": i + 1,
                    "installment_amount": amount,
                    "dividend": 0,
                    "payable_amount": amount,
                }
                for i, amount in enumerate(amounts)
            ],
        )
    return plan_id


def add_enrollment(conn, customer_id, plan_id, enrollment_date, member_number="M-001", status="active"):
    result = conn.execute(
        enrollments.insert().values(
            customer_id=customer_id,
            plan_id=plan_id,
            enrollment_date=enrollment_date,
            member_number=member_number,
            status=status,
            total_paid=0,
            total_due=0,
            current_arrear=0,
        )
    )
    return result.inserted_primary_key[0]


@pytest.fixture
def enrolled(engine):
    """A customer on a 12 x 1000 plan, enrolled 2024-02-10."""
    with engine.begin() as conn:
        customer_id = add_customer(conn)
        plan_id = add_plan(conn, amounts=[Decimal("1000")] * 12)
        enrollment_id = add_enrollment(conn, customer_id, plan_id, date(2024, 2, 10))
    return {"customer_id": customer_id, "plan_id": plan_id, "enrollment_id": enrollment_id}
