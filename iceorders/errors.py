# iceorders/errors.py
from __future__ import annotations


class IceOrdersError(Exception):
    """Base class for every recoverable failure the bot reports to a user."""


class NotRegistered(IceOrdersError):
    pass


class VenueNotFound(IceOrdersError):
    pass


class PastCutoff(IceOrdersError):
    pass


class PastDate(IceOrdersError):
    pass


class InvalidDate(IceOrdersError):
    pass


class StaleIndex(IceOrdersError):
    pass


class StoreUnavailable(IceOrdersError):
    """The tabular store could not be reached, refused auth, or hit a quota."""
