# iceorders/telegram.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

logger = logging.getLogger("iceorders.telegram")

API_BASE = "https://api.telegram.org"


def parse_update(update: Dict[str, Any]) -> Optional[Tuple[str, str, str]]:
    """Telegram update -> (chat id, text, display name), or None for non-text updates."""
    message = update.get("message") or update.get("edited_message") or {}
    text = message.get("text")
    chat = message.get("chat") or {}
    sender = message.get("from") or {}
    if not text or chat.get("id") is None:
        return None

    name = " ".join(p for p in (sender.get("first_name"), sender.get("last_name")) if p)
    return str(chat["id"]), text, name or str(sender.get("username") or "")


def reply_markup(keyboard: Optional[List[List[str]]]) -> Dict[str, Any]:
    if not keyboard:
        return {"remove_keyboard": True}
    return {
        "keyboard": [[{"text": label} for label in row] for row in keyboard],
        "resize_keyboard": True,
    }


def send_message(token: str, chat_id: str, text: str, keyboard: Optional[List[List[str]]] = None) -> bool:
    url = f"{API_BASE}/bot{token}/sendMessage"
    payload = {"chat_id": chat_id, "text": text, "reply_markup": reply_markup(keyboard)}
    try:
        response = requests.post(url, json=payload, timeout=10)
    except requests.RequestException:
        logger.exception("sendMessage to %s failed", chat_id)
        return False

    if response.status_code != 200:
        logger.error("sendMessage to %s: HTTP %s %s", chat_id, response.status_code, response.text[:200])
        return False
    return True
