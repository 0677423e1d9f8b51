from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]  # .../storefront repo
load_dotenv(dotenv_path=ROOT_DIR / ".env")

logger = logging.getLogger(__name__)


def _get_env(*keys: str, default: str | None = None) -> str | None:
    for k in keys:
        v = os.getenv(k)
        if v is not None and str(v).strip() != "":
            return v.strip()
    return default


def _get_int(*keys: str, default: int | None = None) -> int | None:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return int(v)


def _get_path(*keys: str, default: str) -> str:
    v = _get_env(*keys, default=default)
    return str(v)


@dataclass(frozen=True)
class Settings:
    supabase_url: str
    supabase_key: str
    env_policy: str  # fail / warn
    cart_dir: str
    currency: str
    decimals: int
    page_size: int
    site_url: str
    bot_token: str
    admin_id: int
    log_level: str


settings = Settings(
    supabase_url=_get_env("SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL", default="") or "",
    supabase_key=_get_env(
        "SUPABASE_ANON_KEY", "SUPABASE_KEY", "NEXT_PUBLIC_SUPABASE_ANON_KEY", default=""
    ) or "",
    env_policy=(_get_env("ENV_POLICY", default="warn") or "warn").lower(),
    cart_dir=_get_path("CART_DIR", default=str(ROOT_DIR / "data" / "carts")),
    currency=_get_env("CURRENCY", default="USD") or "USD",
    decimals=_get_int("DECIMALS", default=2) or 2,
    page_size=_get_int("PAGE_SIZE", default=20) or 20,
    site_url=_get_env("SITE_URL", default="http://localhost:8000") or "http://localhost:8000",
    bot_token=_get_env("BOT_TOKEN", "TELEGRAM_BOT_TOKEN", default="") or "",
    admin_id=_get_int("ADMIN_ID", "ADMIN_TG_ID", default=0) or 0,
    log_level=(_get_env("LOG_LEVEL", default="INFO") or "INFO").upper(),
)


def missing_backend_settings(s: Settings) -> list[str]:
    missing = []
    if not s.supabase_url:
        missing.append("SUPABASE_URL")
    if not s.supabase_key:
        missing.append("SUPABASE_ANON_KEY")
    return missing


def validate_env(s: Settings = settings, policy: str | None = None) -> list[str]:
    """
    Checks the backend settings once at startup.

    policy "fail" raises RuntimeError, "warn" only logs; both the web app and the
    bot go through here so the two startup paths behave the same.
    """
    policy = (policy or s.env_policy).lower()
    if policy not in ("fail", "warn"):
        raise RuntimeError(f"ENV_POLICY must be 'fail' or 'warn', got {policy!r}")

    missing = missing_backend_settings(s)
    if missing:
        msg = f"Missing required environment variables: {', '.join(missing)}. Set them in .env"
        if policy == "fail":
            raise RuntimeError(msg)
        logger.warning(msg)
    return missing
