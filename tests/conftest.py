"""Shared fixtures: pinned clock, in-memory sheets, in-memory profile DB."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from iceorders.clock import Clock
from iceorders.ordering.brain import ConversationEngine
from iceorders.profiles import ProfileStore
from iceorders.store.orders import ARCHIVE_HEADER, LIVE_HEADER, OrderStore
from iceorders.store.tables import MemoryBackend
from iceorders.store.venues import VENUES_HEADER, VenueDirectory

ALMATY = timezone(timedelta(hours=6))

VENUE_ID = "100"
USER_ID = "100"


class FrozenClock(Clock):
    """Clock whose "now" only moves when a test says so."""

    def __init__(self, current: datetime) -> None:
        super().__init__(utc_offset_hours=6, cutoff_hour=17, now_fn=lambda: self.current)
        self.current = current

    def set(self, year: int, month: int, day: int, hour: int = 10, minute: int = 0) -> None:
        self.current = datetime(year, month, day, hour, minute, tzinfo=ALMATY)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 3, 18, 10, 0, tzinfo=ALMATY))


@pytest.fixture
def backend() -> MemoryBackend:
    b = MemoryBackend()
    b.ensure_tables({"Venues": VENUES_HEADER, "Archive": ARCHIVE_HEADER, "Orders": LIVE_HEADER})
    return b


@pytest.fixture
def venues(backend: MemoryBackend) -> VenueDirectory:
    return VenueDirectory(backend.table("Venues"))


@pytest.fixture
def registered_venue(venues: VenueDirectory):
    return venues.create(VENUE_ID, "Bar Lux", "Abay 1", 100)


@pytest.fixture
def orders(backend: MemoryBackend, venues: VenueDirectory, clock: FrozenClock) -> OrderStore:
    return OrderStore(
        archive=backend.table("Archive"),
        live=backend.table("Orders"),
        venues=venues,
        clock=clock,
    )


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def profiles(db_engine, session_factory) -> ProfileStore:
    store = ProfileStore(session_factory)
    store.init(db_engine)
    return store


@pytest.fixture
def conversation(profiles, orders, venues, clock) -> ConversationEngine:
    return ConversationEngine(
        profiles=profiles,
        orders=orders,
        venues=venues,
        clock=clock,
        amount_steps=list(range(10, 101, 10)),
        default_unit_price=100,
        currency_symbol="₸",
    )
