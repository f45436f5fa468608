# chitfund/config.py
"""
Runtime settings, read from the environment with sensible defaults.
"""

import os
from dataclasses import dataclass
from datetime import date, datetime

from zoneinfo import ZoneInfo


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    db_url: str = "sqlite:///db.sqlite"
    timezone: str = "Asia/Kolkata"
    allow_negative_balance: bool = True
    invoice_prefix: str = "INV"
    invoice_number_width: int = 4

    def now(self) -> datetime:
        return datetime.now(ZoneInfo(self.timezone))

    def today(self) -> date:
        return self.now().date()


def get_settings() -> Settings:
    return Settings(
        db_url=os.getenv("CHITFUND_DB_URL", Settings.db_url),
        timezone=os.getenv("CHITFUND_TIMEZONE", Settings.timezone),
        allow_negative_balance=_env_bool(
            "CHITFUND_ALLOW_NEGATIVE_BALANCE", Settings.allow_negative_balance
        ),
        invoice_prefix=os.getenv("CHITFUND_INVOICE_PREFIX", Settings.invoice_prefix),
    )
