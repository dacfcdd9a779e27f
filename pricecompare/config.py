import os
from pathlib import Path

_PACKAGE_ROOT = Path(__file__).resolve().parent


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///pricecompare.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    VISITOR_COOKIE_NAME = "visitor_id"
    VISITOR_COOKIE_MAX_AGE_DAYS = 7

    BANKS_FILE = os.getenv("BANKS_FILE", str(_PACKAGE_ROOT / "compare" / "data" / "banks.txt"))

    # When the account already owns a submission for a category, also mark the
    # visitor row for that category as claimed.
    MIGRATION_CLAIM_SKIPPED = _env_flag("MIGRATION_CLAIM_SKIPPED", False)

    ADMIN_EMAILS = [
        e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()
    ]


class DevConfig(Config):
    DEBUG = True
    LOG_LEVEL = "DEBUG"


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    ADMIN_EMAILS = ["admin@example.com"]
    MIGRATION_CLAIM_SKIPPED = False
