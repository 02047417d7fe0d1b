# iceorders/models.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import Boolean, Column, DateTime, String, Text

from .db import Base

STATUS_ACTIVE = "Active"
STATUS_CANCELLED = "Cancelled"


class UserProfile(Base):
    __tablename__ = "profiles"
    user_id = Column(String, primary_key=True)
    display_name = Column(String, default="")
    venue_id = Column(String, nullable=True)
    venue_name = Column(String, nullable=True)
    address = Column(String, nullable=True)
    registered = Column(Boolean, default=False, nullable=False)
    state = Column(String, default="idle", nullable=False)
    scratch_json = Column(Text, default="{}")  # amount + quoted price, or cancel listing, between steps
    updated_at = Column(DateTime, default=datetime.utcnow)


@dataclass
class Venue:
    venue_id: str
    name: str
    address: str
    unit_price: float


@dataclass
class Order:
    order_id: str
    user_id: str
    venue_id: str
    address: str
    amount: int
    delivery_date: date
    created_at: datetime
    status: str
    unit_price: float
    total: float


@dataclass
class ActiveOrder:
    index: int
    order_id: str
    amount: int
    delivery_date: date
    unit_price: float
    total: float
