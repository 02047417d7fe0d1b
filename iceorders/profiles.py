# iceorders/profiles.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from .db import Base
from .models import UserProfile

logger = logging.getLogger("iceorders.profiles")


class ProfileStore:
    """
    Durable user_id -> UserProfile map. Every save() commits at once, so a
    crash mid-conversation loses nothing already answered.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def init(self, engine) -> None:
        # An empty database is a valid starting point
        Base.metadata.create_all(bind=engine)

    def get(self, user_id: str) -> Optional[UserProfile]:
        with self._session_factory() as db:
            return db.get(UserProfile, str(user_id))

    def get_or_create(self, user_id: str, display_name: str = "") -> UserProfile:
        profile = self.get(user_id)
        if profile is not None:
            return profile

        profile = UserProfile(
            user_id=str(user_id),
            display_name=display_name or "",
            registered=False,
            state="idle",
            scratch_json="{}",
        )
        profile = self.save(profile)
        logger.info("Created profile for user %s", user_id)
        return profile

    def save(self, profile: UserProfile) -> UserProfile:
        profile.updated_at = datetime.utcnow()
        with self._session_factory() as db:
            merged = db.merge(profile)
            db.commit()
            return merged
