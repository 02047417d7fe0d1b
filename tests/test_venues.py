from __future__ import annotations

import pytest

from iceorders.errors import StoreUnavailable
from iceorders.store.venues import VenueDirectory


class TestVenueDirectory:
    def test_create_then_get(self, venues: VenueDirectory) -> None:
        venues.create("7", "Bar Lux", "Abay 1", 120)
        venue = venues.get("7")
        assert (venue.name, venue.address, venue.unit_price) == ("Bar Lux", "Abay 1", 120)

    def test_unknown_venue(self, venues: VenueDirectory) -> None:
        assert venues.get("nope") is None

    def test_numeric_ids_from_sheets(self, venues, backend) -> None:
        # Sheets hands back unformatted numbers for numeric-looking ids
        backend.table("Venues").rows.append([7, "Bar Lux", "Abay 1", 150.0])
        assert venues.get("7").unit_price == 150

    def test_recreate_rewrites_row(self, venues, backend) -> None:
        venues.create("7", "Bar Lux", "Abay 1", 120)
        venues.create("8", "Cafe", "Dostyk 2", 100)
        venues.create("7", "Bar Lux 2", "Satpaev 3", 120)

        rows = backend.table("Venues").read_rows()
        assert len(rows) == 2
        assert rows[0] == ["7", "Bar Lux 2", "Satpaev 3", 120]

    def test_price_edits_seen_immediately(self, venues, backend) -> None:
        venues.create("7", "Bar Lux", "Abay 1", 120)
        backend.table("Venues").rows[0][3] = 135
        assert venues.get("7").unit_price == 135

    def test_all_skips_blank_rows(self, venues, backend) -> None:
        venues.create("7", "Bar Lux", "Abay 1", 120)
        backend.table("Venues").rows.append([])
        assert list(venues.all()) == ["7"]

    def test_read_failure_propagates(self, venues, backend) -> None:
        backend.table("Venues").fail_on.add("read")
        with pytest.raises(StoreUnavailable):
            venues.get("7")
