# console/surveydesk/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key (signs the session cookie holding the sale draft)
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # REST backend that owns persistence, auth and stock assignment
    BACKEND_API_URL = os.environ.get(
        "BACKEND_API_URL",
        "http://localhost:8000/api",
    )
    # Fallback bearer token when the request/session carries none (CLI use)
    BACKEND_TOKEN = os.environ.get("BACKEND_TOKEN") or None
    BACKEND_TIMEOUT = float(os.environ.get("BACKEND_TIMEOUT", "30"))
    # httpx transport override; tests plug an httpx.MockTransport in here
    BACKEND_TRANSPORT = None

    CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "₦")
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "5"))
    # Installments due within this many days count as due soon
    DUE_SOON_DAYS = int(os.environ.get("DUE_SOON_DAYS", "7"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
