# iceorders/store/orders.py
from __future__ import annotations

import logging
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import uuid4

from ..clock import Clock
from ..errors import StaleIndex, StoreUnavailable, VenueNotFound
from ..models import STATUS_ACTIVE, STATUS_CANCELLED, ActiveOrder, Order, Venue
from .tables import Row, Table, cell, to_number
from .venues import VenueDirectory

logger = logging.getLogger("iceorders.orders")

# Archive: every order ever placed; only the status column ever changes
ARCHIVE_HEADER = [
    "Order ID", "User ID", "Venue ID", "Address", "Amount (kg)",
    "Delivery date", "Created at", "Status", "Unit price", "Total",
]
(A_ID, A_USER, A_VENUE, A_ADDRESS, A_AMOUNT,
 A_DATE, A_CREATED, A_STATUS, A_PRICE, A_TOTAL) = range(len(ARCHIVE_HEADER))

# Live: today's active orders for the couriers, rebuilt from the archive
LIVE_HEADER = [
    "Order ID", "User ID", "Venue ID", "Venue", "Address",
    "Amount (kg)", "Delivery date", "Status", "Total",
]
(L_ID, L_USER, L_VENUE, L_VENUE_NAME, L_ADDRESS,
 L_AMOUNT, L_DATE, L_STATUS, L_TOTAL) = range(len(LIVE_HEADER))

# Sheets date serials count from this day
_SHEETS_EPOCH = date(1899, 12, 30)


# ----------------------------
# Row <-> Order
# ----------------------------
def _parse_date(raw: Any) -> Optional[date]:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    s = str(raw if raw is not None else "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        pass
    # someone retyped the cell and Sheets turned it into a serial number
    try:
        return _SHEETS_EPOCH + timedelta(days=int(float(s)))
    except ValueError:
        return None


def _parse_datetime(raw: Any) -> Optional[datetime]:
    s = str(raw if raw is not None else "").strip()
    if not s:
        return None
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


def _created_key(order: Order) -> str:
    return order.created_at.isoformat() if order.created_at else ""


def _order_from_row(row: Sequence[Any]) -> Optional[Order]:
    order_id = str(cell(row, A_ID)).strip()
    delivery = _parse_date(cell(row, A_DATE))
    if not order_id or delivery is None:
        return None
    try:
        amount = int(float(cell(row, A_AMOUNT, 0)))
    except (TypeError, ValueError):
        return None

    return Order(
        order_id=order_id,
        user_id=str(cell(row, A_USER)).strip(),
        venue_id=str(cell(row, A_VENUE)).strip(),
        address=str(cell(row, A_ADDRESS)),
        amount=amount,
        delivery_date=delivery,
        created_at=_parse_datetime(cell(row, A_CREATED)),
        status=str(cell(row, A_STATUS)).strip() or STATUS_ACTIVE,
        unit_price=to_number(cell(row, A_PRICE)),
        total=to_number(cell(row, A_TOTAL)),
    )


def _archive_row(order: Order) -> Row:
    return [
        order.order_id,
        order.user_id,
        order.venue_id,
        order.address,
        order.amount,
        order.delivery_date.isoformat(),
        _created_key(order),
        order.status,
        order.unit_price,
        order.total,
    ]


def _live_row(order: Order, venue_name: str) -> Row:
    return [
        order.order_id,
        order.user_id,
        order.venue_id,
        venue_name,
        order.address,
        order.amount,
        order.delivery_date.isoformat(),
        order.status,
        order.total,
    ]


def _with_status(row: Sequence[Any], width: int, col: int, status: str) -> Row:
    # other cells go back exactly as read
    updated = list(row) + [""] * (width - len(row))
    updated[col] = status
    return updated


def price_order(unit_price: float, amount: int, delivery_fee: float = 0) -> Tuple[float, float, float]:
    """(subtotal, fee, total) for `amount` kg at `unit_price`."""
    subtotal = round(amount * unit_price, 2)
    fee = round(delivery_fee, 2) if delivery_fee else 0
    return subtotal, fee, round(subtotal + fee, 2)


class OrderStore:
    def __init__(
        self,
        archive: Table,
        live: Table,
        venues: VenueDirectory,
        clock: Clock,
        delivery_fee: float = 0,
    ) -> None:
        self.archive = archive
        self.live = live
        self.venues = venues
        self.clock = clock
        self.delivery_fee = delivery_fee

    # -------------------
    # Reads
    # -------------------
    def get_venue(self, venue_id: str) -> Venue:
        venue = self.venues.get(venue_id) if venue_id else None
        if venue is None:
            raise VenueNotFound(f"Venue {venue_id!r} is not registered")
        return venue

    def _load_archive(self) -> List[Tuple[int, Order, Row]]:
        out: List[Tuple[int, Order, Row]] = []
        for i, row in enumerate(self.archive.read_rows()):
            order = _order_from_row(row)
            if order is None:
                if any(str(c).strip() for c in row):
                    logger.warning("Skipping malformed archive row %d: %r", i + 2, row)
                continue
            out.append((i, order, row))
        return out

    def _active_for_user(self, user_id: str) -> List[Tuple[int, Order, Row]]:
        today = self.clock.today()
        uid = str(user_id)
        active = [
            (i, o, row)
            for i, o, row in self._load_archive()
            if o.user_id == uid and o.status == STATUS_ACTIVE and o.delivery_date >= today
        ]
        active.sort(key=lambda entry: (entry[1].delivery_date, _created_key(entry[1])))
        return active

    def list_active_orders(self, user_id: str) -> List[ActiveOrder]:
        """
        The user's upcoming active orders, numbered 1..N by delivery date.

        Numbers are re-derived on every call; they are only good until the
        next order or cancellation by anyone.
        """
        return [
            ActiveOrder(
                index=n,
                order_id=o.order_id,
                amount=o.amount,
                delivery_date=o.delivery_date,
                unit_price=o.unit_price,
                total=o.total,
            )
            for n, (_, o, _row) in enumerate(self._active_for_user(user_id), start=1)
        ]

    def stats(self) -> Dict[str, Any]:
        orders = [o for _, o, _row in self._load_archive()]
        by_status = Counter(o.status for o in orders)
        by_date = Counter(o.delivery_date.isoformat() for o in orders if o.status == STATUS_ACTIVE)
        return {
            "today": self.clock.today().isoformat(),
            "total_orders": len(orders),
            "by_status": dict(by_status),
            "active_by_date": dict(sorted(by_date.items())),
            "live_rows": len(self.live.read_rows()),
        }

    # -------------------
    # Writes
    # -------------------
    def add_order(
        self,
        user_id: str,
        venue_id: str,
        address: str,
        amount: int,
        delivery_date: date,
        created_at: datetime,
    ) -> Order:
        if amount <= 0:
            raise ValueError("amount must be positive")

        venue = self.get_venue(venue_id)
        _subtotal, _fee, total = price_order(venue.unit_price, amount, self.delivery_fee)

        order = Order(
            order_id=uuid4().hex,
            user_id=str(user_id),
            venue_id=str(venue_id),
            address=address,
            amount=amount,
            delivery_date=delivery_date,
            created_at=created_at,
            status=STATUS_ACTIVE,
            unit_price=venue.unit_price,
            total=total,
        )

        # The archive is the record: if this fails, nothing was placed
        self.archive.append_rows([_archive_row(order)])
        logger.info(
            "Order %s: user=%s venue=%s %dkg for %s",
            order.order_id, order.user_id, order.venue_id, amount, delivery_date.isoformat(),
        )

        if delivery_date == self.clock.today():
            try:
                self.live.append_rows([_live_row(order, venue.name)])
            except StoreUnavailable:
                logger.exception(
                    "Live mirror append failed for order %s; next rollover will restore it",
                    order.order_id,
                )
        return order

    def cancel_order(self, user_id: str, index: int, expected_order_id: Optional[str] = None) -> ActiveOrder:
        entries = self._active_for_user(user_id)
        if index < 1 or index > len(entries):
            raise StaleIndex(f"Order #{index} no longer exists ({len(entries)} active)")

        row_index, order, raw = entries[index - 1]
        if expected_order_id and order.order_id != expected_order_id:
            raise StaleIndex(f"Order #{index} now refers to a different order")

        order.status = STATUS_CANCELLED
        self.archive.update_row(row_index, _with_status(raw, len(ARCHIVE_HEADER), A_STATUS, order.status))
        logger.info("Order %s cancelled by user %s", order.order_id, user_id)

        self._cancel_live_mirror(order)

        return ActiveOrder(
            index=index,
            order_id=order.order_id,
            amount=order.amount,
            delivery_date=order.delivery_date,
            unit_price=order.unit_price,
            total=order.total,
        )

    def _cancel_live_mirror(self, order: Order) -> None:
        try:
            for i, row in enumerate(self.live.read_rows()):
                if str(cell(row, L_ID)).strip() != order.order_id:
                    continue
                self.live.update_row(i, _with_status(row, len(LIVE_HEADER), L_STATUS, STATUS_CANCELLED))
                return
        except StoreUnavailable:
            logger.exception("Could not cancel live mirror of order %s", order.order_id)
            return
        logger.info("Order %s has no live mirror (delivery %s)", order.order_id, order.delivery_date)

    def rebuild_live_table(self) -> int:
        """
        Replace the live table with today's active archive orders.

        Never writes to the archive; two runs in a row give the same table.
        Returns the number of rows written.
        """
        today = self.clock.today()
        due = [
            o for _, o, _row in self._load_archive()
            if o.delivery_date == today and o.status == STATUS_ACTIVE
        ]
        due.sort(key=_created_key)

        venues = self.venues.all()
        rows: List[Row] = []
        for o in due:
            venue = venues.get(o.venue_id)
            if venue is None:
                logger.warning("Order %s references unknown venue %s", o.order_id, o.venue_id)
                name = o.venue_id
            else:
                name = venue.name
            rows.append(_live_row(o, name))

        self.live.clear_rows()
        self.live.append_rows(rows)
        logger.info("Live table rebuilt for %s: %d orders", today.isoformat(), len(rows))
        return len(rows)
