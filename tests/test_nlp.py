from __future__ import annotations

from datetime import date

import pytest

from iceorders.command_router import BACK, CANCEL, ORDER, START, TODAY, TOMORROW, to_command
from iceorders.errors import InvalidDate
from iceorders.ordering.keyboards import BTN_CANCEL_ORDER, BTN_ORDER, BTN_TOMORROW, amount_keyboard
from iceorders.ordering.nlp import parse_amount, parse_cancel_pick, parse_date
from iceorders.telegram import parse_update, reply_markup

STEPS = list(range(10, 101, 10))


class TestParseAmount:
    @pytest.mark.parametrize("text", ["20", "20 kg", "20kg", "20 кг", " 20 KG "])
    def test_accepted(self, text: str) -> None:
        assert parse_amount(text, STEPS) == 20

    @pytest.mark.parametrize("text", ["0", "15", "110", "twenty", ""])
    def test_rejected(self, text: str) -> None:
        assert parse_amount(text, STEPS) is None


class TestParseDate:
    def test_formats(self) -> None:
        assert parse_date("25.03.2024") == date(2024, 3, 25)
        assert parse_date("5/3/2024") == date(2024, 3, 5)

    @pytest.mark.parametrize("text", ["2024-03-25", "30.02.2024", "25.03", ""])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(InvalidDate):
            parse_date(text)


def test_parse_cancel_pick() -> None:
    assert parse_cancel_pick("Cancel #2: 20 kg on 18.03.2024") == 2
    assert parse_cancel_pick("#3") == 3
    assert parse_cancel_pick("1") == 1
    assert parse_cancel_pick("the second one") is None


class TestCommands:
    @pytest.mark.parametrize(
        "text, command",
        [
            ("/start", START),
            ("/start@IceBot hello", START),
            (BTN_ORDER, ORDER),
            (BTN_CANCEL_ORDER, CANCEL),
            (BTN_TOMORROW, TOMORROW),
            ("Today", TODAY),
            ("menu", BACK),
        ],
    )
    def test_known(self, text: str, command: str) -> None:
        assert to_command(text) == command

    @pytest.mark.parametrize("text", ["/unknown", "Bar Lux", "20 kg", "Cancel #1: 20 kg on 18.03.2024"])
    def test_free_text(self, text: str) -> None:
        assert to_command(text) is None


def test_amount_keyboard_rows() -> None:
    rows = amount_keyboard(STEPS)
    assert rows[0] == ["10 kg", "20 kg", "30 kg", "40 kg", "50 kg"]
    assert len(rows) == 3


class TestTelegramPayloads:
    def test_parse_update(self) -> None:
        update = {"message": {"text": "hi", "chat": {"id": 5}, "from": {"first_name": "A", "last_name": "B"}}}
        assert parse_update(update) == ("5", "hi", "A B")

    def test_hidden_keyboard(self) -> None:
        assert reply_markup(None) == {"remove_keyboard": True}
        assert reply_markup([["x"]])["keyboard"] == [[{"text": "x"}]]
