# backend/toursales/config.py
from __future__ import annotations
import os


_PROVIDER_HOSTS = {
    "production": {
        "token_url": "https://ozyidentity.bmore.cl/connect/token",
        "api_url": "https://ozytripapi.bmore.cl",
    },
    "development": {
        "token_url": "https://app01.dev.bmore.cl:44316/connect/token",
        "api_url": "https://api.dev.bmore.cl:8443",
    },
}


def _optional_float(name: str) -> float | None:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    return float(raw)


class Config:
    APP_ENV = os.environ.get("APP_ENV", "development")

    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///tour_sales.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Basic auth for the sales endpoints (no default on purpose)
    BASIC_AUTH_USERNAME = os.environ.get("BASIC_AUTH_USERNAME")
    BASIC_AUTH_PASSWORD = os.environ.get("BASIC_AUTH_PASSWORD")

    # Tour provider (client-credentials OAuth2 + JSON API)
    _hosts = _PROVIDER_HOSTS.get(APP_ENV, _PROVIDER_HOSTS["development"])
    PROVIDER_TOKEN_URL = os.environ.get("PROVIDER_TOKEN_URL", _hosts["token_url"])
    PROVIDER_API_URL = os.environ.get("PROVIDER_API_URL", _hosts["api_url"])
    PROVIDER_CLIENT_ID = os.environ.get("PROVIDER_CLIENT_ID")
    PROVIDER_CLIENT_SECRET = os.environ.get("PROVIDER_CLIENT_SECRET")
    PROVIDER_SCOPE = os.environ.get("PROVIDER_SCOPE", "ozy_trip_ecommerce_api")
    PROVIDER_CURRENCY = os.environ.get("PROVIDER_CURRENCY", "CLP")
    PROVIDER_PAYMENT_METHOD = os.environ.get("PROVIDER_PAYMENT_METHOD", "W")
    PROVIDER_TIMEOUT_SECONDS = _optional_float("PROVIDER_TIMEOUT_SECONDS")
    PROVIDER_TOKEN_MARGIN_SECONDS = int(os.environ.get("PROVIDER_TOKEN_MARGIN_SECONDS", "300"))

    # External identity service used by /auth/login
    IDENTITY_BASE_URL = os.environ.get("IDENTITY_BASE_URL", "https://usuarios.turistiktours.cl")
    IDENTITY_SYSTEM_USERNAME = os.environ.get("IDENTITY_SYSTEM_USERNAME")
    IDENTITY_SYSTEM_PASSWORD = os.environ.get("IDENTITY_SYSTEM_PASSWORD")

    LOGIN_MAX_FAILED_ATTEMPTS = int(os.environ.get("LOGIN_MAX_FAILED_ATTEMPTS", "10"))
    LOGIN_LOCKOUT_MINUTES = int(os.environ.get("LOGIN_LOCKOUT_MINUTES", "15"))
