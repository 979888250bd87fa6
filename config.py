import os
from pathlib import Path

from dotenv import load_dotenv


BASE_DIR = Path(__file__).resolve().parent
ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


DEFAULT_CLASS_COLORS = (
    "#3b82f6",
    "#10b981",
    "#f59e0b",
    "#ef4444",
    "#8b5cf6",
    "#ec4899",
    "#14b8a6",
    "#f97316",
)


def _parse_colors(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return DEFAULT_CLASS_COLORS
    colors = tuple(token.strip() for token in raw.split(",") if token.strip())
    return colors or DEFAULT_CLASS_COLORS


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")

    _db_user = os.environ.get("DATABASE_USER", "academy")
    _db_password = os.environ.get("DATABASE_PASSWORD", "academy")
    _db_host = os.environ.get("DATABASE_HOST", "localhost")
    _db_port = os.environ.get("DATABASE_PORT", "3306")
    _db_name = os.environ.get("DATABASE_NAME", "tuition_planner")

    _default_uri = (
        f"mysql+pymysql://{_db_user}:{_db_password}@{_db_host}:{_db_port}/{_db_name}"
    )

    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", _default_uri)
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = os.environ.get("DB_ECHO", "false").lower() == "true"

    API_TITLE = os.environ.get("API_TITLE", "Tuition Planner API")
    API_VERSION = os.environ.get("API_VERSION", "0.1.0")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Two years of day-by-day scanning before the generator gives up.
    PLANNER_MAX_SCAN_DAYS = int(os.environ.get("PLANNER_MAX_SCAN_DAYS", "731"))
    PLANNER_DEFAULT_SESSIONS_PER_MONTH = int(
        os.environ.get("PLANNER_DEFAULT_SESSIONS_PER_MONTH", "8")
    )
    PLANNER_CLASS_COLORS = _parse_colors(os.environ.get("PLANNER_CLASS_COLORS"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_LEVEL = "DEBUG"
