# chitfund/api/customers.py

from typing import List

from fastapi import APIRouter, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from chitfund.db.engine import get_engine
from chitfund.db.schema import customers
from chitfund.models.customers import CustomerIn, CustomerOut

router = APIRouter(prefix="/customers", tags=["customers"])


@router.post("/", response_model=CustomerOut, status_code=201)
def create_customer(payload: CustomerIn) -> CustomerOut:
    engine = get_engine()

    try:
        with engine.begin() as conn:
            conn.execute(customers.insert().values(**payload.model_dump()))
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Customer already exists")

    return CustomerOut(**payload.model_dump())


@router.get("/", response_model=List[CustomerOut])
def list_customers() -> List[CustomerOut]:
    """
    Return all customers.
    """
    engine = get_engine()

    with engine.connect() as conn:
        stmt = select(customers).order_by(customers.c.name)
        rows = conn.execute(stmt).mappings().all()

    return [CustomerOut(**row) for row in rows]


@router.get("/{customer_id}", response_model=CustomerOut)
def get_customer(customer_id: str) -> CustomerOut:
    """
    Return a single customer by ID.
    """
    engine = get_engine()

    with engine.connect() as conn:
        stmt = select(customers).where(customers.c.customer_id == customer_id)
        row = conn.execute(stmt).mappings().first()

    if row is None:
        raise HTTPException(status_code=404, detail="Customer not found")

    return CustomerOut(**row)
