# iceorders/command_router.py
from __future__ import annotations

from typing import Dict, Optional

from .ordering.keyboards import (
    BTN_BACK,
    BTN_CANCEL_ORDER,
    BTN_CHANGE_ADDRESS,
    BTN_ORDER,
    BTN_PICK_DATE,
    BTN_TODAY,
    BTN_TOMORROW,
)
from .ordering.nlp import normalize_text

START = "start"
ORDER = "order"
ADDRESS = "address"
CANCEL = "cancel"
BACK = "back"
TODAY = "today"
TOMORROW = "tomorrow"
PICK_DATE = "pick_date"

# Commands that work from any state
GLOBAL_COMMANDS = {START, ORDER, ADDRESS, CANCEL, BACK}

_SLASH_COMMANDS: Dict[str, str] = {
    "/start": START,
    "/order": ORDER,
    "/address": ADDRESS,
    "/cancel": CANCEL,
    "/back": BACK,
}

_CAPTIONS: Dict[str, str] = {
    normalize_text(BTN_ORDER): ORDER,
    normalize_text(BTN_CHANGE_ADDRESS): ADDRESS,
    normalize_text(BTN_CANCEL_ORDER): CANCEL,
    normalize_text(BTN_BACK): BACK,
    normalize_text(BTN_TODAY): TODAY,
    normalize_text(BTN_TOMORROW): TOMORROW,
    normalize_text(BTN_PICK_DATE): PICK_DATE,
    # typed by hand
    "back": BACK,
    "menu": BACK,
    "today": TODAY,
    "tomorrow": TOMORROW,
}


def to_command(text: str) -> Optional[str]:
    """Map a command token or button caption to an engine command, else None."""
    raw = (text or "").strip()
    if raw.startswith("/"):
        # "/start@IceBot payload" -> "/start"
        token = raw.split()[0].split("@")[0].lower()
        return _SLASH_COMMANDS.get(token)
    return _CAPTIONS.get(normalize_text(raw))
