import os


def _normalize_database_url(url: str) -> str:
    # Render/Heroku sometimes provide postgres:// which SQLAlchemy expects as postgresql://
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _split_csv(raw: str) -> list[str]:
    return [p.strip() for p in (raw or "").split(",") if p.strip()]


class Config:
    # Base directory of the backend (one level above this `engagement` package)
    BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    INSTANCE_DIR = os.path.join(BACKEND_DIR, "instance")

    ENV = (os.getenv("ENGAGEMENT_ENV", "dev") or "dev").strip().lower()
    LOG_LEVEL = (os.getenv("LOG_LEVEL", "INFO") or "INFO").strip().upper()

    _default_sqlite_path = os.path.join(INSTANCE_DIR, "engagement.db").replace("\\", "/")
    _db_url = os.getenv("SQLALCHEMY_DATABASE_URI") or os.getenv("DATABASE_URL") or ""
    SQLALCHEMY_DATABASE_URI = _normalize_database_url(_db_url) if _db_url else f"sqlite:///{_default_sqlite_path}"
    DATABASE_URL_FROM_ENV = bool(_db_url)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Engine switches
    ENGAGEMENT_STORE_ENABLED = _env_bool("ENGAGEMENT_STORE_ENABLED", True)
    ENGAGEMENT_STORE_RETRIES = int(os.getenv("ENGAGEMENT_STORE_RETRIES", "2") or "2")
    ENGAGEMENT_MILESTONE_POLICY = (os.getenv("ENGAGEMENT_MILESTONE_POLICY", "exact") or "exact").strip().lower()
    # JSON object overriding point constants, e.g. {"CHAT_MESSAGE_DAILY_CAP": 20}
    ENGAGEMENT_POINTS_JSON = os.getenv("ENGAGEMENT_POINTS_JSON", "")

    LEADERBOARD_EXCLUDED_USERS = _split_csv(os.getenv("LEADERBOARD_EXCLUDED_USERS", ""))

    # The identity provider sits in front of us and forwards the user id in a header.
    ENGAGEMENT_USER_HEADER = os.getenv("ENGAGEMENT_USER_HEADER", "X-User-Id")
    ENGAGEMENT_ADMIN_TOKEN = os.getenv("ENGAGEMENT_ADMIN_TOKEN", "")

    # CORS: comma-separated origins for web builds (e.g. https://yourapp.web.app,https://yourdomain.com)
    CORS_ORIGINS = _split_csv(os.getenv("CORS_ORIGINS", ""))
