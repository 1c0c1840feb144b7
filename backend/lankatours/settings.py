import os
from pathlib import Path


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value < minimum:
        return default
    return value


def parse_csv_env(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


default_db = str(Path(__file__).resolve().parents[1] / "data" / "lankatours.sqlite3")
DB_PATH = os.getenv("LANKATOURS_DB_PATH", default_db)

AUTH_SECRET = os.getenv("AUTH_SECRET", "dev-insecure-secret-change-me")
AUTH_TOKEN_TTL_HOURS = _env_int("AUTH_TOKEN_TTL_HOURS", 24, minimum=1)
ADMIN_EMAILS = {email.lower() for email in parse_csv_env("ADMIN_EMAILS", "")}

ELIGIBILITY_DAYS = _env_int("ELIGIBILITY_DAYS", 30, minimum=1)
MAX_PARTY_SIZE = _env_int("MAX_PARTY_SIZE", 50, minimum=1)
REVIEW_MIN_COMMENT_LENGTH = _env_int("REVIEW_MIN_COMMENT_LENGTH", 10, minimum=0)
REVIEW_MAX_COMMENT_LENGTH = _env_int("REVIEW_MAX_COMMENT_LENGTH", 500, minimum=1)

CORS_ORIGINS = parse_csv_env("CORS_ORIGINS", "*")
TRUSTED_HOSTS = parse_csv_env("TRUSTED_HOSTS", "*")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
if LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
    LOG_LEVEL = "INFO"
