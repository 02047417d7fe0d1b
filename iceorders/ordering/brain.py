# iceorders/ordering/brain.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from ..clock import Clock
from ..command_router import (
    ADDRESS,
    BACK,
    CANCEL,
    ORDER,
    PICK_DATE,
    START,
    TODAY,
    TOMORROW,
    to_command,
)
from ..errors import (
    InvalidDate,
    NotRegistered,
    PastCutoff,
    PastDate,
    StaleIndex,
    StoreUnavailable,
    VenueNotFound,
)
from ..models import UserProfile
from ..profiles import ProfileStore
from ..store.orders import OrderStore
from ..store.venues import VenueDirectory
from .keyboards import (
    Keyboard,
    amount_keyboard,
    back_keyboard,
    cancel_keyboard,
    date_keyboard,
    main_keyboard,
)
from .nlp import format_date, parse_amount, parse_cancel_pick, parse_date
from .receipt import (
    build_order_list,
    build_quote,
    build_receipt,
    cancel_label,
    dump_scratch,
    fmt_money,
    load_scratch,
)

logger = logging.getLogger("iceorders.conversation")

IDLE = "idle"
COLLECTING_VENUE_NAME = "collecting_venue_name"
COLLECTING_ADDRESS = "collecting_address"
SELECTING_AMOUNT = "selecting_amount"
SELECTING_DATE = "selecting_date"
SELECTING_CANCELLATION = "selecting_cancellation"

TRY_LATER = "Something went wrong on our side. Please try again later."


@dataclass
class Reply:
    text: str
    keyboard: Optional[Keyboard] = None  # None -> hide the keyboard
    state: str = IDLE


class ConversationEngine:
    """
    Per-user ordering dialogue.

    idle -> collecting_venue_name -> collecting_address -> idle (registered)
    idle -> selecting_amount -> selecting_date -> idle (order placed)
    idle -> selecting_cancellation -> idle

    State and scratch live on the user's profile row; "back" from anywhere
    drops the scratch and returns to idle.
    """

    def __init__(
        self,
        profiles: ProfileStore,
        orders: OrderStore,
        venues: VenueDirectory,
        clock: Clock,
        amount_steps: List[int],
        default_unit_price: float,
        currency_symbol: str = "₸",
    ) -> None:
        self.profiles = profiles
        self.orders = orders
        self.venues = venues
        self.clock = clock
        self.amount_steps = list(amount_steps)
        self.default_unit_price = default_unit_price
        self.currency_symbol = currency_symbol

    # -------------------
    # Entry point
    # -------------------
    def handle_message(self, user_id: str, text: str, display_name: str = "") -> Reply:
        profile = self.profiles.get_or_create(str(user_id), display_name)
        msg = (text or "").strip()
        cmd = to_command(msg)

        if cmd == BACK:
            return self._go_idle(profile, "Main menu:")
        if cmd == START:
            return self._start(profile)
        if cmd == ADDRESS:
            return self._begin_registration(profile, "Let's update your venue details.")
        if cmd == ORDER:
            return self._begin_order(profile)
        if cmd == CANCEL:
            return self._begin_cancellation(profile)

        handlers: Dict[str, Callable[[UserProfile, str, Optional[str]], Reply]] = {
            COLLECTING_VENUE_NAME: self._on_venue_name,
            COLLECTING_ADDRESS: self._on_address,
            SELECTING_AMOUNT: self._on_amount,
            SELECTING_DATE: self._on_date,
            SELECTING_CANCELLATION: self._on_cancel_pick,
        }
        handler = handlers.get(profile.state or IDLE)
        if handler is None:
            return self._idle_help(profile)
        return handler(profile, msg, cmd)

    # -------------------
    # State plumbing
    # -------------------
    def _move(self, profile: UserProfile, state: str, scratch: Optional[Dict[str, Any]] = None) -> UserProfile:
        profile.state = state
        profile.scratch_json = dump_scratch(scratch or {})
        return self.profiles.save(profile)

    def _keyboard_for(self, profile: UserProfile) -> Optional[Keyboard]:
        state = profile.state or IDLE
        if state == IDLE:
            return main_keyboard() if profile.registered else None
        if state in (COLLECTING_VENUE_NAME, COLLECTING_ADDRESS):
            return back_keyboard()
        if state == SELECTING_AMOUNT:
            return amount_keyboard(self.amount_steps)
        if state == SELECTING_DATE:
            return date_keyboard()
        if state == SELECTING_CANCELLATION:
            listing = load_scratch(profile.scratch_json).get("listing") or []
            return cancel_keyboard(entry["label"] for entry in listing)
        return None

    def _reply(self, profile: UserProfile, text: str, keyboard: Optional[Keyboard] = None) -> Reply:
        return Reply(
            text=text,
            keyboard=keyboard if keyboard is not None else self._keyboard_for(profile),
            state=profile.state or IDLE,
        )

    def _go_idle(self, profile: UserProfile, text: str) -> Reply:
        profile = self._move(profile, IDLE)
        return self._reply(profile, text)

    def _profile_summary(self, profile: UserProfile) -> str:
        return f"Venue: {profile.venue_name}\nAddress: {profile.address}"

    # -------------------
    # Idle
    # -------------------
    def _start(self, profile: UserProfile) -> Reply:
        if not profile.registered:
            return self._begin_registration(
                profile,
                "Welcome to the ice ordering bot! First we need a few details about your venue.",
            )
        profile = self._move(profile, IDLE)
        return self._reply(
            profile,
            "Welcome to the ice ordering bot!\n\n"
            f"{self._profile_summary(profile)}\n\n"
            "What would you like to do?",
        )

    def _idle_help(self, profile: UserProfile) -> Reply:
        if not profile.registered:
            return self._begin_registration(
                profile,
                "To place orders we first need a few details about your venue.",
            )
        return self._reply(profile, "Please choose an action from the menu.")

    # -------------------
    # Registration
    # -------------------
    def _begin_registration(self, profile: UserProfile, intro: str) -> Reply:
        profile = self._move(profile, COLLECTING_VENUE_NAME)
        return self._reply(profile, f"{intro}\n\nPlease enter the name of your venue:")

    def _on_venue_name(self, profile: UserProfile, msg: str, cmd: Optional[str]) -> Reply:
        if not msg:
            return self._reply(profile, "Please enter the name of your venue:")

        profile.venue_name = msg
        profile = self._move(profile, COLLECTING_ADDRESS)
        return self._reply(profile, f'Venue name "{msg}" saved.\n\nNow enter the delivery address:')

    def _on_address(self, profile: UserProfile, msg: str, cmd: Optional[str]) -> Reply:
        if not msg:
            return self._reply(profile, "Please enter the delivery address:")

        venue_id = profile.venue_id or profile.user_id
        try:
            existing = self.venues.get(venue_id)
            unit_price = existing.unit_price if existing else self.default_unit_price
            self.venues.create(venue_id, profile.venue_name or "", msg, unit_price)
        except StoreUnavailable:
            logger.exception("Venue registration failed for user %s", profile.user_id)
            return self._reply(profile, f"{TRY_LATER}\n\nPlease send the delivery address again:")

        profile.venue_id = venue_id
        profile.address = msg
        profile.registered = True
        profile = self._move(profile, IDLE)
        return self._reply(
            profile,
            f"All set! Your details are saved:\n\n{self._profile_summary(profile)}\n\n"
            "You can place an order now.",
        )

    # -------------------
    # Ordering
    # -------------------
    def _require_registration(self, profile: UserProfile) -> None:
        if not (profile.registered and profile.venue_id and profile.address):
            raise NotRegistered(f"User {profile.user_id} has no venue yet")

    def _begin_order(self, profile: UserProfile) -> Reply:
        try:
            self._require_registration(profile)
        except NotRegistered:
            return self._begin_registration(profile, "Please register your venue and address first.")

        profile = self._move(profile, SELECTING_AMOUNT)
        step = self.amount_steps[0] if self.amount_steps else 0
        return self._reply(
            profile,
            f"{self._profile_summary(profile)}\n\nChoose the amount of ice (step {step} kg):",
        )

    def _on_amount(self, profile: UserProfile, msg: str, cmd: Optional[str]) -> Reply:
        amount = parse_amount(msg, self.amount_steps)
        if amount is None:
            return self._reply(profile, "Please choose an amount from the menu.")

        try:
            venue = self.orders.get_venue(profile.venue_id or "")
        except VenueNotFound:
            logger.warning("User %s has no venue %s on file", profile.user_id, profile.venue_id)
            profile.registered = False
            return self._begin_registration(profile, "We could not find your venue. Please register it again.")
        except StoreUnavailable:
            logger.exception("Price lookup failed for user %s", profile.user_id)
            return self._reply(profile, TRY_LATER)

        profile = self._move(profile, SELECTING_DATE, {"amount": amount, "unit_price": venue.unit_price})
        quote = build_quote(amount, venue.unit_price, self.orders.delivery_fee, self.currency_symbol)
        return self._reply(profile, f"{quote}\n\nChoose the delivery date:")

    def _resolve_delivery_date(self, msg: str, cmd: Optional[str]) -> date:
        today = self.clock.today()
        if cmd == TOMORROW:
            return self.clock.tomorrow()
        if cmd == TODAY:
            chosen = today
        else:
            chosen = parse_date(msg)
            if chosen < today:
                raise PastDate(f"{chosen.isoformat()} is before {today.isoformat()}")
        if chosen == today and self.clock.is_past_cutoff():
            raise PastCutoff(f"Same-day orders close at {self.clock.cutoff.strftime('%H:%M')}")
        return chosen

    def _on_date(self, profile: UserProfile, msg: str, cmd: Optional[str]) -> Reply:
        scratch = load_scratch(profile.scratch_json)
        amount = scratch.get("amount")
        if not amount:
            profile = self._move(profile, SELECTING_AMOUNT)
            return self._reply(profile, "Please choose the amount of ice first.")

        if cmd == PICK_DATE:
            return self._reply(
                profile,
                "Enter the delivery date as DD.MM.YYYY\nFor example: 25.03.2025",
                keyboard=back_keyboard(),
            )

        try:
            delivery = self._resolve_delivery_date(msg, cmd)
        except PastCutoff:
            return self._reply(
                profile,
                f"Sorry, same-day orders are accepted only until {self.clock.cutoff.strftime('%H:%M')}.\n"
                "Please choose another delivery date.",
            )
        except PastDate:
            return self._reply(profile, "You cannot pick a date in the past. Please choose another date.")
        except InvalidDate:
            return self._reply(profile, "Please enter the date as DD.MM.YYYY, for example 25.03.2025.")

        return self._place_order(profile, int(amount), delivery, scratch.get("unit_price"))

    def _place_order(
        self, profile: UserProfile, amount: int, delivery: date, quoted_price: Optional[float] = None
    ) -> Reply:
        try:
            order = self.orders.add_order(
                user_id=profile.user_id,
                venue_id=profile.venue_id or "",
                address=profile.address or "",
                amount=amount,
                delivery_date=delivery,
                created_at=self.clock.now(),
            )
        except VenueNotFound:
            logger.warning("Order by user %s refused: venue %s missing", profile.user_id, profile.venue_id)
            profile.registered = False
            return self._begin_registration(profile, "We could not find your venue. Please register it again.")
        except StoreUnavailable:
            logger.exception("Order by user %s was not saved", profile.user_id)
            return self._go_idle(profile, f"Your order could not be saved. {TRY_LATER}")

        receipt = build_receipt(
            venue_name=profile.venue_name or "",
            address=order.address,
            amount=order.amount,
            unit_price=order.unit_price,
            delivery_fee=self.orders.delivery_fee,
            delivery_date=order.delivery_date,
            currency_symbol=self.currency_symbol,
        )
        if quoted_price is not None and quoted_price != order.unit_price:
            # the venue price moved between the quote and the date step
            receipt = (
                f"Note: the price is now {fmt_money(order.unit_price, self.currency_symbol)} per kg.\n\n{receipt}"
            )
        return self._go_idle(profile, receipt)

    # -------------------
    # Cancellation
    # -------------------
    def _begin_cancellation(self, profile: UserProfile, intro: str = "") -> Reply:
        try:
            active = self.orders.list_active_orders(profile.user_id)
        except StoreUnavailable:
            logger.exception("Listing orders failed for user %s", profile.user_id)
            return self._go_idle(profile, TRY_LATER)

        if not active:
            return self._go_idle(profile, f"{intro}You have no active orders.".strip())

        listing = [{"index": o.index, "order_id": o.order_id, "label": cancel_label(o)} for o in active]
        profile = self._move(profile, SELECTING_CANCELLATION, {"listing": listing})
        return self._reply(
            profile,
            f"{intro}{build_order_list(active, self.currency_symbol)}\n\nChoose an order to cancel:",
        )

    def _on_cancel_pick(self, profile: UserProfile, msg: str, cmd: Optional[str]) -> Reply:
        index = parse_cancel_pick(msg)
        if index is None:
            return self._reply(profile, "Please choose an order from the menu.")

        listing = load_scratch(profile.scratch_json).get("listing") or []
        shown = next((entry for entry in listing if entry.get("index") == index), None)
        if shown is None:
            return self._begin_cancellation(profile, "That order is not in the list. ")

        try:
            cancelled = self.orders.cancel_order(profile.user_id, index, expected_order_id=shown["order_id"])
        except StaleIndex:
            logger.info("Stale cancel index %d from user %s", index, profile.user_id)
            return self._begin_cancellation(profile, "Your orders changed in the meantime. ")
        except StoreUnavailable:
            logger.exception("Cancelling order #%d failed for user %s", index, profile.user_id)
            return self._reply(profile, TRY_LATER)

        return self._go_idle(
            profile,
            f"Order #{cancelled.index} ({cancelled.amount} kg on {format_date(cancelled.delivery_date)}) "
            "has been cancelled.",
        )
