from decimal import Decimal

import pytest


def amount(value):
    return Decimal(str(value))


@pytest.fixture
def setup_enrollment(client):
    assert client.post("/customers/", json={"customer_id": "USR001", "name": "Lakshmi"}).status_code == 201
    plan = client.post(
        "/plans/",
        json={
            "plan_name": "Gold 12",
            "total_amount": "12000",
            "duration": 12,
            "installments": [
                {"month_number": m, "installment_amount": "1000", "payable_amount": "1000"}
                for m in range(1, 13)
            ],
        },
    )
    assert plan.status_code == 201
    plan_id = plan.json()["id"]

    enrollment = client.post(
        "/enrollments/",
        json={
            "customer_id": "USR001",
            "plan_id": plan_id,
            "enrollment_date": "2024-02-10",
            "member_number": "M-001",
        },
    )
    assert enrollment.status_code == 201
    return {"plan_id": plan_id, "enrollment_id": enrollment.json()["id"]}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_invoice_lifecycle(client, setup_enrollment):
    plan_id = setup_enrollment["plan_id"]

    preview = client.get(
        "/invoices/preview",
        params={"customer_id": "USR001", "plan_id": plan_id, "invoice_date": "2024-02-15", "received_amount": "400"},
    )
    assert preview.status_code == 200
    assert amount(preview.json()["balance_amount"]) == Decimal("600")

    created = client.post(
        "/invoices/",
        json={"customer_id": "USR001", "plan_id": plan_id, "invoice_date": "2024-02-15", "received_amount": "400"},
    )
    assert created.status_code == 201
    body = created.json()
    assert body["invoice_number"] == "INV-0001"
    assert body["due_number"] == 1
    assert amount(body["balance_amount"]) == Decimal("600")

    fetched = client.get("/invoices/INV-0001")
    assert fetched.status_code == 200
    assert fetched.json()["member_number"] == "M-001"

    corrected = client.patch("/invoices/INV-0001/payment", json={"received_amount": "1000"})
    assert corrected.status_code == 200
    assert amount(corrected.json()["balance_amount"]) == Decimal("0")

    chain = client.get(f"/enrollments/{setup_enrollment['enrollment_id']}/invoices")
    assert [inv["invoice_number"] for inv in chain.json()] == ["INV-0001"]

    enrollment = client.get(f"/enrollments/{setup_enrollment['enrollment_id']}").json()
    assert amount(enrollment["total_paid"]) == Decimal("1000")


def test_invoice_errors_map_to_status_codes(client, setup_enrollment):
    plan_id = setup_enrollment["plan_id"]

    missing = client.post("/invoices/", json={"customer_id": "USR404", "plan_id": plan_id, "invoice_date": "2024-02-15"})
    assert missing.status_code == 404

    too_early = client.post("/invoices/", json={"customer_id": "USR001", "plan_id": plan_id, "invoice_date": "2024-01-15"})
    assert too_early.status_code == 400
    assert "before enrollment date" in too_early.json()["detail"]

    assert client.post("/invoices/", json={"customer_id": "USR001", "plan_id": plan_id, "invoice_date": "2024-03-01"}).status_code == 201
    stale = client.post("/invoices/", json={"customer_id": "USR001", "plan_id": plan_id, "invoice_date": "2024-02-20"})
    assert stale.status_code == 409

    assert client.get("/invoices/INV-9999").status_code == 404


def test_member_numbers_are_unique(client, setup_enrollment):
    client.post("/customers/", json={"customer_id": "USR002", "name": "Ravi"})
    duplicate = client.post(
        "/enrollments/",
        json={
            "customer_id": "USR002",
            "plan_id": setup_enrollment["plan_id"],
            "enrollment_date": "2024-02-10",
            "member_number": "M-001",
        },
    )
    assert duplicate.status_code == 409


def test_plan_schedule_must_match_duration(client):
    response = client.post(
        "/plans/",
        json={
            "plan_name": "Short",
            "total_amount": "2000",
            "duration": 3,
            "installments": [
                {"month_number": 1, "installment_amount": "1000"},
                {"month_number": 2, "installment_amount": "1000"},
            ],
        },
    )
    assert response.status_code == 400

    flat = client.post(
        "/plans/",
        json={"plan_name": "Flat", "total_amount": "3000", "duration": 3, "monthly_amount": "1000"},
    )
    assert flat.status_code == 201
    assert flat.json()["installments"] == []

    fetched = client.get(f"/plans/{flat.json()['id']}").json()
    assert amount(fetched["monthly_amount"]) == Decimal("1000")
    assert client.get("/plans/999").status_code == 404


def test_plan_lists_its_installments(client, setup_enrollment):
    plan = client.get(f"/plans/{setup_enrollment['plan_id']}").json()
    assert plan["monthly_amount"] is None
    assert [row["month_number"] for row in plan["installments"]] == list(range(1, 13))
    assert amount(plan["installments"][0]["installment_amount"]) == Decimal("1000")
    assert amount(plan["installments"][0]["dividend"]) == Decimal("0")


def test_arrear_refresh_endpoint(client, setup_enrollment):
    plan_id = setup_enrollment["plan_id"]
    client.post("/invoices/", json={"customer_id": "USR001", "plan_id": plan_id, "invoice_date": "2024-02-15", "received_amount": "400"})

    quiet = client.post("/admin/arrears/refresh", json={"as_of": "2024-03-15"}).json()
    assert quiet["summary"] == {"total": 1, "updated": 0, "skipped": 1, "errors": 0}

    month_end = client.post("/admin/arrears/refresh", json={"as_of": "2024-03-31"}).json()
    assert month_end["summary"]["updated"] == 1
    assert amount(month_end["updated"][0]["new_arrear"]) == Decimal("600")

    cleared = client.post("/enrollments/clear-arrear", json={"customer_id": "USR001", "plan_id": plan_id})
    assert amount(cleared.json()["current_arrear"]) == Decimal("0")


def test_initial_arrears_endpoint(client, setup_enrollment):
    report = client.post("/admin/arrears/initial").json()
    assert report["summary"]["updated"] == 1
    assert amount(report["updated"][0]["new_arrear"]) == Decimal("1000")
