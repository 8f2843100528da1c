import os
from dataclasses import dataclass
from functools import lru_cache


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def make_async_db_url(url: str) -> str:
    """Accepts Railway-style DATABASE_URL and returns sqlalchemy async url."""
    if url.startswith("postgresql+asyncpg://"):
        return url
    if url.startswith("postgres://"):
        return "postgresql+asyncpg://" + url[len("postgres://") :]
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://") :]
    # already carries an explicit async driver (e.g. sqlite+aiosqlite://)
    if "+" in url.split("://", 1)[0]:
        return url
    raise RuntimeError("Unsupported DATABASE_URL format")


def make_sync_db_url(url: str) -> str:
    """Same database, sync driver. Alembic migrations run on it."""
    url = make_async_db_url(url)
    for async_prefix, sync_prefix in (
        ("postgresql+asyncpg://", "postgresql://"),
        ("sqlite+aiosqlite://", "sqlite://"),
    ):
        if url.startswith(async_prefix):
            return sync_prefix + url[len(async_prefix) :]
    return url


@dataclass(frozen=True)
class Settings:
    bot_token: str
    # telegram username allowed in even when ADMIN_USERS lookup fails
    owner_username: str
    alert_chat_id: int | None

    # memory | sql | sheets
    store_backend: str = "memory"
    database_url: str | None = None
    sheets_spreadsheet_id: str | None = None
    sheets_credentials_path: str | None = None

    scheduler_enabled: bool = True
    daily_reminder_hour: int = 19
    reminder_tz: str = "Asia/Jakarta"

    # wizard state is dropped after this much inactivity
    conversation_ttl_seconds: int = 900
    callback_min_interval_sec: float = 0.4


def _load_settings() -> Settings:
    bot_token = (os.getenv("BOT_TOKEN") or "").strip()
    if not bot_token:
        raise RuntimeError("BOT_TOKEN is missing")

    alert_raw = (os.getenv("ALERT_CHAT_ID") or "").strip()
    if alert_raw and not alert_raw.lstrip("-").isdigit():
        raise RuntimeError("ALERT_CHAT_ID is invalid (must be digits)")

    store_backend = os.getenv("STORE_BACKEND", "memory").strip().lower()
    if store_backend not in ("memory", "sql", "sheets"):
        raise RuntimeError(f"Unsupported STORE_BACKEND: {store_backend}")

    database_url_raw = (os.getenv("DATABASE_URL") or "").strip()
    if store_backend == "sql" and not database_url_raw:
        raise RuntimeError("DATABASE_URL is missing")

    spreadsheet_id = (os.getenv("SHEETS_SPREADSHEET_ID") or "").strip() or None
    credentials_path = (os.getenv("SHEETS_CREDENTIALS_PATH") or "").strip() or None
    if store_backend == "sheets" and not (spreadsheet_id and credentials_path):
        raise RuntimeError("SHEETS_SPREADSHEET_ID and SHEETS_CREDENTIALS_PATH are required for sheets backend")

    return Settings(
        bot_token=bot_token,
        owner_username=(os.getenv("OWNER_USERNAME") or "").strip().lstrip("@").lower(),
        alert_chat_id=int(alert_raw) if alert_raw else None,
        store_backend=store_backend,
        database_url=make_async_db_url(database_url_raw) if database_url_raw else None,
        sheets_spreadsheet_id=spreadsheet_id,
        sheets_credentials_path=credentials_path,
        scheduler_enabled=_env_bool("SCHEDULER_ENABLED", True),
        daily_reminder_hour=int(os.getenv("DAILY_REMINDER_HOUR", "19")),
        reminder_tz=os.getenv("REMINDER_TZ", "Asia/Jakarta").strip(),
        conversation_ttl_seconds=int(os.getenv("CONVERSATION_TTL_SECONDS", "900")),
        callback_min_interval_sec=float(os.getenv("CALLBACK_MIN_INTERVAL_SEC", "0.4")),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return _load_settings()
