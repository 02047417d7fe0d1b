# iceorders/ordering/receipt.py
from __future__ import annotations

import json
from datetime import date
from typing import Any, Dict, List

from ..models import ActiveOrder
from ..store.orders import price_order
from .nlp import format_date


# ----------------------------
# Scratch state (between amount and date steps)
# ----------------------------
def load_scratch(scratch_json: str | None) -> Dict[str, Any]:
    try:
        v = json.loads(scratch_json or "{}")
        return v if isinstance(v, dict) else {}
    except Exception:
        return {}


def dump_scratch(scratch: Dict[str, Any]) -> str:
    return json.dumps(scratch, ensure_ascii=False)


# ----------------------------
# Text
# ----------------------------
def fmt_money(value: float, currency_symbol: str = "₸") -> str:
    if float(value).is_integer():
        return f"{int(value)} {currency_symbol}"
    return f"{value:.2f} {currency_symbol}"


def build_quote(amount: int, unit_price: float, delivery_fee: float, currency_symbol: str = "₸") -> str:
    subtotal, fee, total = price_order(unit_price, amount, delivery_fee)
    lines = [
        f"Amount: {amount} kg",
        f"Price: {fmt_money(unit_price, currency_symbol)} per kg",
        f"Subtotal: {fmt_money(subtotal, currency_symbol)}",
    ]
    if fee:
        lines.append(f"Delivery: {fmt_money(fee, currency_symbol)}")
    lines.append(f"Total: {fmt_money(total, currency_symbol)}")
    return "\n".join(lines)


def build_receipt(
    venue_name: str,
    address: str,
    amount: int,
    unit_price: float,
    delivery_fee: float,
    delivery_date: date,
    currency_symbol: str = "₸",
) -> str:
    subtotal, fee, total = price_order(unit_price, amount, delivery_fee)
    return (
        "Order placed ✅\n\n"
        f"Venue: {venue_name}\n"
        f"Address: {address}\n"
        f"Amount: {amount} kg\n"
        f"Price: {fmt_money(unit_price, currency_symbol)} per kg\n"
        f"Subtotal: {fmt_money(subtotal, currency_symbol)}\n"
        f"Delivery: {fmt_money(fee, currency_symbol)}\n"
        f"Total: {fmt_money(total, currency_symbol)}\n"
        f"Delivery date: {format_date(delivery_date)}"
    )


def cancel_label(order: ActiveOrder) -> str:
    return f"Cancel #{order.index}: {order.amount} kg on {format_date(order.delivery_date)}"


def build_order_list(orders: List[ActiveOrder], currency_symbol: str = "₸") -> str:
    lines = [
        f"{o.index}. {o.amount} kg on {format_date(o.delivery_date)} = {fmt_money(o.total, currency_symbol)}"
        for o in orders
    ]
    return "Your active orders:\n" + "\n".join(lines)
