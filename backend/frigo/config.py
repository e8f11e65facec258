# backend/frigo/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/frigo.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///frigo.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Comma separated list of front-end origins allowed by the CORS hook
    CORS_ORIGINS = os.environ.get(
        "FRIGO_CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
    )

    LOG_LEVEL = os.environ.get("FRIGO_LOG_LEVEL", "INFO")

    # Defaults applied to new tenants (see TenantSettings)
    DEFAULT_CURRENCY = os.environ.get("FRIGO_DEFAULT_CURRENCY", "MAD")
    DEFAULT_LOCALE = os.environ.get("FRIGO_DEFAULT_LOCALE", "fr")
