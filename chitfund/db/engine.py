# chitfund/db/engine.py

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from chitfund.config import get_settings


def get_engine() -> Engine:
    # echo=True if you want to see SQL printed in the terminal
    return create_engine(get_settings().db_url, future=True)
