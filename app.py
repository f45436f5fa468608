# app.py
"""
Thin entrypoint for the API.

Usage example:
    uvicorn app:app --reload
"""

from chitfund.main import app  # re-export FastAPI instance
