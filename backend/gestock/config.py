# backend/gestock/config.py
from __future__ import annotations
import os
from urllib.parse import quote_plus


def _database_uri() -> str:
    # Explicit URL wins, then MySQL connection parts, then a local SQLite file
    url = os.environ.get("DATABASE_URL")
    if url:
        return url

    host = os.environ.get("DB_HOST")
    if host:
        user = quote_plus(os.environ.get("DB_USER", "root"))
        password = quote_plus(os.environ.get("DB_PASSWORD", ""))
        port = os.environ.get("DB_PORT", "3306")
        name = os.environ.get("DB_NAME", "gestock")
        return f"mysql+pymysql://{user}:{password}@{host}:{port}/{name}?charset=utf8mb4"

    return "sqlite:///gestock.sqlite3"


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = _database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # Best-effort per-IP limiter for /api/ (process local)
    RATE_LIMIT_ENABLED = _env_flag("RATE_LIMIT_ENABLED", True)
    RATE_LIMIT_MAX_REQUESTS = int(os.environ.get("RATE_LIMIT_MAX_REQUESTS", "200"))
    RATE_LIMIT_WINDOW_SECONDS = int(os.environ.get("RATE_LIMIT_WINDOW_SECONDS", "600"))

    # Off: sales are recorded without debiting stock (historical behaviour)
    SALE_DECREMENTS_STOCK = _env_flag("SALE_DECREMENTS_STOCK", False)

    CORS_ALLOWED_ORIGINS = [
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if o.strip()
    ]

    # bcrypt cost factor; tests lower it
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    MONEY_TOLERANCE = os.environ.get("MONEY_TOLERANCE", "0.01")
    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100
