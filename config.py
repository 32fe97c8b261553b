import os
import re
from datetime import timedelta
from dotenv import load_dotenv
load_dotenv()


def _duration(value, default):
    """Parse `7d` / `12h` / `30m` / `45s` (or plain seconds) into a timedelta."""
    raw = (value or default).strip()
    m = re.fullmatch(r"(\d+)\s*([dhms]?)", raw)
    if not m:
        raise ValueError(f"invalid duration: {raw!r}")
    n, unit = int(m.group(1)), m.group(2) or "s"
    return {
        "d": timedelta(days=n),
        "h": timedelta(hours=n),
        "m": timedelta(minutes=n),
        "s": timedelta(seconds=n),
    }[unit]


def _flag(name, default="false"):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    ENV_NAME = os.getenv("APP_ENV", "development")
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///interview_bot.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # auth
    JWT_SECRET = os.getenv("JWT_SECRET", "dev-jwt-secret")
    JWT_ALGORITHM = "HS256"
    JWT_EXPIRES_IN = _duration(os.getenv("JWT_EXPIRES_IN"), "7d")
    REFRESH_TOKEN_SECRET = os.getenv("REFRESH_TOKEN_SECRET", "dev-refresh-secret")
    REFRESH_TOKEN_EXPIRES_IN = _duration(os.getenv("REFRESH_TOKEN_EXPIRES_IN"), "30d")
    REQUIRE_EMAIL_VERIFICATION = _flag("REQUIRE_EMAIL_VERIFICATION")
    PASSWORD_RESET_EXPIRES = timedelta(hours=24)

    # http
    CORS_ORIGIN = [o.strip() for o in os.getenv("CORS_ORIGIN", "http://localhost:3000").split(",") if o.strip()]
    RATE_LIMIT_WINDOW_MS = int(os.getenv("RATE_LIMIT_WINDOW_MS", "900000"))
    RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))
    RATELIMIT_ENABLED = _flag("RATELIMIT_ENABLED", "true")
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(10 * 1024 * 1024)))
    FRONTEND_URL = os.getenv("FRONTEND_URL") or (CORS_ORIGIN[0] if CORS_ORIGIN else "http://localhost:3000")

    # jobs / mail
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
    MAIL_FROM = os.getenv("MAIL_FROM", "noreply@aiinterviewbot.com")
    MAIL_FROM_NAME = os.getenv("MAIL_FROM_NAME", "AI Interview Bot")

    # storage
    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local")
    LOCAL_STORAGE_DIR = os.getenv("LOCAL_STORAGE_DIR", "./uploads")
    S3_ENDPOINT = os.getenv("S3_ENDPOINT")
    S3_REGION = os.getenv("S3_REGION")
    S3_BUCKET = os.getenv("S3_BUCKET")
    S3_ACCESS_KEY = os.getenv("S3_ACCESS_KEY")
    S3_SECRET_KEY = os.getenv("S3_SECRET_KEY")

    # external AI / speech
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
    GOOGLE_CLOUD_API_KEY = os.getenv("GOOGLE_CLOUD_API_KEY")

    # seed / payments
    ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@aiinterviewbot.com")
    ADMIN_DEFAULT_PASSWORD = os.getenv("ADMIN_DEFAULT_PASSWORD", "Admin123!")
    PAYMENT_PROVIDER = os.getenv("PAYMENT_PROVIDER", "disabled")
    SUBSCRIPTION_REMINDER_DAYS = int(os.getenv("SUBSCRIPTION_REMINDER_DAYS", "3"))
    SUBSCRIPTION_SWEEP_INTERVAL = _duration(os.getenv("SUBSCRIPTION_SWEEP_INTERVAL"), "12h")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR = os.getenv("LOG_DIR")


class TestingConfig(Config):
    TESTING = True
    ENV_NAME = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    REDIS_URL = None
    RATELIMIT_ENABLED = False
    SENDGRID_API_KEY = None
    GEMINI_API_KEY = None
    GOOGLE_CLOUD_API_KEY = None
    REQUIRE_EMAIL_VERIFICATION = False
    PAYMENT_PROVIDER = "mock"
    LOG_DIR = None
