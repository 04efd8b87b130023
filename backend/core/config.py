import os

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:4200"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

SESSION_FORMS_DEFAULT_PAGE_SIZE = int(os.getenv("SESSION_FORMS_DEFAULT_PAGE_SIZE", "20"))
SESSION_FORMS_MAX_PAGE_SIZE = int(os.getenv("SESSION_FORMS_MAX_PAGE_SIZE", "100"))

STATS_MOVING_AVERAGE_WINDOW = int(os.getenv("STATS_MOVING_AVERAGE_WINDOW", "3"))

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if STATS_MOVING_AVERAGE_WINDOW < 1:
        raise RuntimeError("STATS_MOVING_AVERAGE_WINDOW must be at least 1.")
