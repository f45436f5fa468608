# chitfund/models/arrears.py

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class RefreshRequest(BaseModel):
    force: bool = False
    as_of: Optional[date] = None


class ArrearSummary(BaseModel):
    total: int
    updated: int
    skipped: int
    errors: int


class ArrearReport(BaseModel):
    run_date: date
    summary: ArrearSummary
    updated: List[Dict[str, Any]]
    skipped: List[Dict[str, Any]]
    errors: List[Dict[str, Any]]
