# iceorders/ordering/nlp.py
from __future__ import annotations

import re
from datetime import date
from typing import Iterable, Optional

from ..errors import InvalidDate

# ----------------------------
# Regex helpers
# ----------------------------
# Punctuation/emoji to spaces (keep letters/numbers/spaces)
_PUNCT_RE = re.compile(r"[^\w\s]+")

# "20", "20 kg", "20kg", "20 кг"
_AMOUNT_RE = re.compile(r"^\s*(\d+)\s*(?:kg|кг)?\s*\.?\s*$", re.IGNORECASE)

# "25.03.2024", "25/03/2024", "5.3.2024"
_DATE_RE = re.compile(r"^\s*(\d{1,2})[./](\d{1,2})[./](\d{4})\s*$")

# "Cancel #2: 20 kg on 18.03.2024", "#2", "2"
_CANCEL_PICK_RE = re.compile(r"^\s*(?:cancel\s*)?(?:order\s*)?#?\s*(\d+)\b", re.IGNORECASE)


def normalize_text(s: str) -> str:
    """
    Basic cleanup for matching button captions and typed commands:
    - lower
    - strip punctuation and emoji to spaces
    - collapse whitespace
    """
    s = (s or "").strip().lower()
    s = _PUNCT_RE.sub(" ", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s


def parse_amount(text: str, allowed: Iterable[int]) -> Optional[int]:
    m = _AMOUNT_RE.match(text or "")
    if not m:
        return None
    amount = int(m.group(1))
    return amount if amount in set(allowed) else None


def parse_date(text: str) -> date:
    """DD.MM.YYYY (or DD/MM/YYYY) -> date; anything else is InvalidDate."""
    m = _DATE_RE.match(text or "")
    if not m:
        raise InvalidDate(f"Not a DD.MM.YYYY date: {text!r}")
    day, month, year = (int(g) for g in m.groups())
    try:
        return date(year, month, day)
    except ValueError as e:
        raise InvalidDate(f"No such date: {text!r}") from e


def parse_cancel_pick(text: str) -> Optional[int]:
    m = _CANCEL_PICK_RE.match(text or "")
    if not m:
        return None
    return int(m.group(1))


def format_date(d: date) -> str:
    return d.strftime("%d.%m.%Y")
