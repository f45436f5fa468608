# chitfund/models/customers.py

from typing import Optional

from pydantic import BaseModel, Field


class CustomerIn(BaseModel):
    customer_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None


class CustomerOut(BaseModel):
    customer_id: str
    name: str
    phone: Optional[str] = None

    class Config:
        from_attributes = True
