import os
from typing import List, Optional

# Fixed business thresholds served by /api/settings.
BUSINESS_SETTINGS = {
    "lowStockThreshold": 20,
    "expiryWarningDays": 60,
    "defaultMarkup": 50.0,
    "defaultVAT": 15.0,
    "overstockAlert": 150,
    "profitMarginAlert": 10,
}


def _truthy(raw: str) -> bool:
    return str(raw or "").strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Settings:
    def _split_csv(self, raw: str, *, default: List[str]) -> List[str]:
        parts = [p.strip() for p in (raw or "").split(",")]
        return [p for p in parts if p] or default

    def __init__(self) -> None:
        self.env = os.getenv("APP_ENV", "local")
        self.api_version = os.getenv("APP_VERSION", "0.1.0").strip() or "0.1.0"
        # POS terminals connect from arbitrary hosts on the shop network.
        self.cors_origins = self._split_csv(os.getenv("CORS_ORIGINS", "").strip(), default=["*"])
        self.static_root = os.getenv("STATIC_ROOT", "public").strip() or "public"
        self.require_socket_auth = _truthy(os.getenv("SYNC_REQUIRE_AUTH", ""))
        self.socket_outbox_limit = _env_int("SYNC_OUTBOX_LIMIT", 256)

        # Durable store is optional; the in-memory cache works without it.
        self.db_url: Optional[str] = (os.getenv("DATABASE_URL") or "").strip() or None
        self.db_pool_min = _env_int("DB_POOL_MIN_SIZE", 1)
        self.db_pool_max = _env_int("DB_POOL_MAX_SIZE", 5)
        self.db_connect_timeout = _env_int("DB_CONNECT_TIMEOUT", 5)

        # Placeholder credential rules until a real identity provider is wired in.
        self.login_user_password = os.getenv("LOGIN_USER_PASSWORD", "123456")
        self.login_admin_password = os.getenv("LOGIN_ADMIN_PASSWORD", "esubalew2123")
        self.login_user_password_hash = (os.getenv("LOGIN_USER_PASSWORD_HASH") or "").strip() or None
        self.login_admin_password_hash = (os.getenv("LOGIN_ADMIN_PASSWORD_HASH") or "").strip() or None
        self.login_admin_name = os.getenv("LOGIN_ADMIN_NAME", "Esubalew Biyazin")
        self.login_user_name = os.getenv("LOGIN_USER_NAME", "User")


settings = Settings()
