# iceorders/store/venues.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..models import Venue
from .tables import Table, cell, to_number

logger = logging.getLogger("iceorders.venues")

VENUES_HEADER = ["Venue ID", "Name", "Address", "Unit price"]

COL_ID, COL_NAME, COL_ADDRESS, COL_PRICE = range(4)


def _venue_from_row(row: Sequence[Any]) -> Venue:
    return Venue(
        venue_id=str(cell(row, COL_ID)).strip(),
        name=str(cell(row, COL_NAME)),
        address=str(cell(row, COL_ADDRESS)),
        unit_price=to_number(cell(row, COL_PRICE)),
    )


class VenueDirectory:
    """Venues sheet. No cache: prices are read fresh on every call."""

    def __init__(self, table: Table) -> None:
        self.table = table

    def _find(self, venue_id: str) -> tuple[int, Optional[Venue]]:
        vid = str(venue_id).strip()
        for i, row in enumerate(self.table.read_rows()):
            if str(cell(row, COL_ID)).strip() == vid:
                return i, _venue_from_row(row)
        return -1, None

    def get(self, venue_id: str) -> Optional[Venue]:
        _, venue = self._find(venue_id)
        return venue

    def all(self) -> Dict[str, Venue]:
        out: Dict[str, Venue] = {}
        for row in self.table.read_rows():
            v = _venue_from_row(row)
            if v.venue_id:
                out[v.venue_id] = v
        return out

    def create(self, venue_id: str, name: str, address: str, unit_price: float) -> Venue:
        """Register a venue; re-registering an existing id rewrites its row."""
        venue = Venue(venue_id=str(venue_id), name=name, address=address, unit_price=unit_price)
        values: List[Any] = [venue.venue_id, venue.name, venue.address, venue.unit_price]

        index, existing = self._find(venue_id)
        if existing is None:
            self.table.append_rows([values])
            logger.info("Venue %s registered: %s", venue.venue_id, venue.name)
        else:
            self.table.update_row(index, values)
            logger.info("Venue %s updated: %s", venue.venue_id, venue.name)
        return venue
