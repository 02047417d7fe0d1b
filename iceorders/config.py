# iceorders/config.py
from __future__ import annotations

import logging
import os

from pydantic import BaseModel

# Load .env locally (safe in prod too)
try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    pass


def _env_flag(name: str, default: str = "1") -> bool:
    return os.getenv(name, default).strip().lower() not in {"0", "false", "no", "off"}


# -------------------
# Config (env-driven)
# -------------------
class Settings(BaseModel):
    table_backend: str = os.getenv("TABLE_BACKEND", "sheets").strip().lower()
    spreadsheet_id: str = os.getenv("SPREADSHEET_ID", "").strip()
    venues_sheet: str = os.getenv("VENUES_SHEET", "Venues")
    archive_sheet: str = os.getenv("ARCHIVE_SHEET", "Archive")
    live_sheet: str = os.getenv("LIVE_SHEET", "Orders")

    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./profiles.db")

    # Venues all sit in one civil zone (Almaty, UTC+6, no DST)
    utc_offset_hours: int = int(os.getenv("UTC_OFFSET_HOURS", "6"))
    cutoff_hour: int = int(os.getenv("CUTOFF_HOUR", "17"))

    default_unit_price: int = int(os.getenv("DEFAULT_UNIT_PRICE", "100"))
    delivery_fee: int = int(os.getenv("DELIVERY_FEE", "0"))
    currency_symbol: str = os.getenv("CURRENCY_SYMBOL", "₸")
    amount_step: int = int(os.getenv("AMOUNT_STEP", "10"))
    amount_max: int = int(os.getenv("AMOUNT_MAX", "100"))

    telegram_bot_token: str = os.getenv("TELEGRAM_BOT_TOKEN", "").strip()
    telegram_webhook_secret: str = os.getenv("TELEGRAM_WEBHOOK_SECRET", "").strip()

    operator_password_hash: str = os.getenv("OPERATOR_PASSWORD_HASH", "").strip()

    rollover_enabled: bool = _env_flag("ROLLOVER_ENABLED")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    def amount_steps(self) -> list[int]:
        return list(range(self.amount_step, self.amount_max + 1, self.amount_step))


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
