import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def engine_options(database_uri: str, timeout_seconds: float) -> dict:
    """
    Bounded waits for every storage call. SQLite maps the timeout to its busy
    handler; network databases get a connect timeout and a pool checkout timeout.
    """
    if database_uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout_seconds}}
    return {
        "pool_timeout": timeout_seconds,
        "pool_pre_ping": True,
        "connect_args": {"connect_timeout": int(timeout_seconds)},
    }


class Config:
    # Secrets (also keys the OTP and credential digests)
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to this file as otpgate.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "otpgate.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound on any single storage wait; a timeout is a storage failure
    STORAGE_TIMEOUT_SECONDS = float(os.getenv("STORAGE_TIMEOUT_SECONDS", "5"))

    # bcrypt cost for stored password hashes
    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
    SMTP_TIMEOUT_SECONDS = int(os.getenv("SMTP_TIMEOUT_SECONDS", "10"))

    # Email OTP (post-login). Codes are always 6 digits.
    OTP_TTL_SECONDS = int(os.getenv("OTP_TTL_SECONDS", "300"))  # 5 minutes
    OTP_RESEND_COOLDOWN_SECONDS = int(os.getenv("OTP_RESEND_COOLDOWN_SECONDS", "60"))
    OTP_REAP_GRACE_SECONDS = int(os.getenv("OTP_REAP_GRACE_SECONDS", "3600"))
    OTP_EMAIL_SUBJECT = os.getenv("OTP_EMAIL_SUBJECT", "Your verification code")

    # Where the client goes once the second factor is accepted
    POST_AUTH_REDIRECT_URL = os.getenv("POST_AUTH_REDIRECT_URL", "/dashboard")

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON = os.getenv("LOG_JSON", "true").lower() == "true"

    # Basic app settings
    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    BCRYPT_ROUNDS = 4
    SMTP_HOST = None
    LOG_LEVEL = "WARNING"
