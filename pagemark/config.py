import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'pagemark.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    REQUIRE_EMAIL_VERIFICATION = (
        os.environ.get("REQUIRE_EMAIL_VERIFICATION", "1") == "1"
    )
    EMAIL_TOKEN_MAX_AGE_SECONDS = int(
        os.environ.get("EMAIL_TOKEN_MAX_AGE_SECONDS", "3600")
    )
    PASSWORD_MIN_LENGTH = int(os.environ.get("PASSWORD_MIN_LENGTH", "8"))
    APP_BASE_URL = os.environ.get("APP_BASE_URL", "http://localhost:8072")
    MAIL_SENDER = os.environ.get("MAIL_SENDER", "no-reply@pagemark.local")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    REQUIRE_EMAIL_VERIFICATION = True
