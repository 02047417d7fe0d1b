# iceorders/ordering/keyboards.py
from __future__ import annotations

from typing import Iterable, List

Keyboard = List[List[str]]

BTN_ORDER = "❄️ Order ice ❄️"
BTN_CHANGE_ADDRESS = "📍 Change address"
BTN_CANCEL_ORDER = "❌ Cancel order"

BTN_TODAY = "📅 Today"
BTN_TOMORROW = "📅 Tomorrow"
BTN_PICK_DATE = "📅 Pick a date"

BTN_BACK = "🔙 Back"

AMOUNTS_PER_ROW = 5


def main_keyboard() -> Keyboard:
    return [[BTN_ORDER], [BTN_CHANGE_ADDRESS, BTN_CANCEL_ORDER]]


def back_keyboard() -> Keyboard:
    return [[BTN_BACK]]


def amount_label(amount: int) -> str:
    return f"{amount} kg"


def amount_keyboard(steps: Iterable[int]) -> Keyboard:
    labels = [amount_label(a) for a in steps]
    rows = [labels[i:i + AMOUNTS_PER_ROW] for i in range(0, len(labels), AMOUNTS_PER_ROW)]
    return rows + [[BTN_BACK]]


def date_keyboard() -> Keyboard:
    return [[BTN_TODAY, BTN_TOMORROW], [BTN_PICK_DATE, BTN_BACK]]


def cancel_keyboard(labels: Iterable[str]) -> Keyboard:
    return [[label] for label in labels] + [[BTN_BACK]]

