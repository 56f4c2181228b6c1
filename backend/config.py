# config.py
import logging
import os
import sys

DEFAULT_VERIFY_URL = "https://api.clerk.com/v1/tokens/verify"
DEFAULT_LLM_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_LLM_MODEL = "google/gemini-2.5-flash"

_LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"


def _csv_env(name: str, default: str = "") -> list[str]:
    val = os.getenv(name, default)
    # split only if non-empty; strip whitespace
    return [x.strip() for x in val.split(",") if x.strip()] if val else []


def _flag_env(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in {"1", "true", "yes", "on"}


class BaseConfig:
    ENV_NAME = "base"
    DEBUG = False
    TESTING = False
    JSON_SORT_KEYS = False
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10 MB
    PREFERRED_URL_SCHEME = "https"

    SECRET_KEY = os.getenv("APP_SECRET_KEY") or "dev-only-secret-change-me"

    # Postgres in deployments; anything SQLAlchemy understands locally
    DATABASE_URL = os.getenv("DATABASE_URL") or ""

    # Auth provider
    AUTH_SECRET_KEY = os.getenv("AUTH_SECRET_KEY") or os.getenv("CLERK_SECRET_KEY") or ""
    AUTH_VERIFY_URL = os.getenv("AUTH_VERIFY_URL") or DEFAULT_VERIFY_URL
    AUTH_DEV_BYPASS = False

    # Generative model (OpenAI-compatible endpoint)
    LLM_API_KEY = (
        os.getenv("LLM_API_KEY") or os.getenv("OPENROUTER_API_KEY") or os.getenv("OPENAI_API_KEY") or ""
    )
    LLM_BASE_URL = os.getenv("LLM_BASE_URL") or DEFAULT_LLM_BASE_URL
    LLM_MODEL = os.getenv("LLM_MODEL") or DEFAULT_LLM_MODEL

    # CORS; the browser client may be served from anywhere
    CORS_ORIGINS = _csv_env("CORS_ORIGINS", "*")

    # Rate limiting (Flask-Limiter reads these keys)
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI") or "memory://"

    FORCE_HTTPS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


class DevConfig(BaseConfig):
    ENV_NAME = "dev"
    DEBUG = True
    # Local development only: every request is treated as dev_user_123
    AUTH_DEV_BYPASS = _flag_env("AUTH_DEV_BYPASS")
    DATABASE_URL = os.getenv("DATABASE_URL") or "sqlite:///jobflow-dev.db"


class ProdConfig(BaseConfig):
    ENV_NAME = "prod"
    AUTH_DEV_BYPASS = False
    FORCE_HTTPS = True


class TestConfig(BaseConfig):
    ENV_NAME = "test"
    TESTING = True
    DATABASE_URL = "sqlite://"
    AUTH_SECRET_KEY = "test-secret"
    LLM_API_KEY = ""
    RATELIMIT_ENABLED = False


def get_config():
    return ProdConfig if os.getenv("ENV") == "prod" else DevConfig


def validate_required_secrets():
    if os.getenv("ENV") == "prod":
        if not os.getenv("DATABASE_URL"):
            raise RuntimeError("DATABASE_URL must be set in production")
        if not (os.getenv("AUTH_SECRET_KEY") or os.getenv("CLERK_SECRET_KEY")):
            raise RuntimeError("AUTH_SECRET_KEY must be set in production")
        if _flag_env("AUTH_DEV_BYPASS"):
            raise RuntimeError("AUTH_DEV_BYPASS must never be enabled in production")


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    if root.handlers:
        return
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(console)
