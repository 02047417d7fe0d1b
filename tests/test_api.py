"""HTTP surface, with an in-memory backend and a stubbed Telegram sender."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from iceorders import main
from iceorders.auth import create_token, hash_password
from iceorders.config import Settings, settings
from iceorders.main import app, build_services, get_services
from iceorders.ordering.keyboards import BTN_BACK
from iceorders.store.tables import MemoryBackend


@pytest.fixture
def services(clock, session_factory, db_engine):
    return build_services(
        Settings(table_backend="memory"),
        backend=MemoryBackend(),
        clock=clock,
        session_factory=session_factory,
        db_engine=db_engine,
    )


@pytest.fixture
def client(services, monkeypatch):
    monkeypatch.setattr(settings, "operator_password_hash", hash_password("secret"))
    monkeypatch.setattr(settings, "telegram_bot_token", "")
    monkeypatch.setattr(settings, "telegram_webhook_secret", "")
    app.dependency_overrides[get_services] = lambda: services
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_token()}"}


class TestHealthAndLogin:
    def test_root(self, client) -> None:
        r = client.get("/")
        assert r.status_code == 200
        assert r.json() == {"ok": True, "service": "iceorders"}

    def test_bad_password(self, client) -> None:
        assert client.post("/auth/login", json={"password": "nope"}).status_code == 401

    def test_login_token_opens_chat(self, client) -> None:
        token = client.post("/auth/login", json={"password": "secret"}).json()["token"]
        r = client.post(
            "/chat",
            json={"user_id": "9", "message": "/start"},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert r.status_code == 200


class TestChat:
    def test_requires_token(self, client) -> None:
        assert client.post("/chat", json={"user_id": "9", "message": "/start"}).status_code == 401

    def test_rejects_foreign_token(self, client) -> None:
        headers = {"Authorization": f"Bearer {create_token('someone')}"}
        assert client.post("/chat", json={"user_id": "9", "message": "/start"}, headers=headers).status_code == 401

    def test_registration_and_order(self, client, auth_headers, services) -> None:
        def say(text: str) -> dict:
            r = client.post("/chat", json={"user_id": "9", "message": text}, headers=auth_headers)
            assert r.status_code == 200
            return r.json()

        first = say("/start")
        assert first["state"] == "collecting_venue_name"
        assert first["keyboard"] == [[BTN_BACK]]
        say("Bar Lux")
        assert say("Abay 1")["state"] == "idle"
        say("/order")
        assert say("40 kg")["state"] == "selecting_date"
        done = say("tomorrow")

        assert done["state"] == "idle"
        assert "Order placed" in done["reply"]
        assert len(services.orders.list_active_orders("9")) == 1


class TestOperator:
    def test_rollover(self, client, auth_headers, services) -> None:
        r = client.post("/admin/rollover", headers=auth_headers)
        assert r.status_code == 200
        assert services.scheduler.last_ok is True

    def test_rollover_failure(self, client, auth_headers, services) -> None:
        services.backend.table("Archive").fail_on.add("read")
        assert client.post("/admin/rollover", headers=auth_headers).status_code == 503

    def test_stats(self, client, auth_headers) -> None:
        r = client.get("/admin/stats", headers=auth_headers)
        assert r.status_code == 200
        assert r.json()["total_orders"] == 0

    def test_stats_store_down(self, client, auth_headers, services) -> None:
        services.backend.table("Archive").fail_on.add("read")
        assert client.get("/admin/stats", headers=auth_headers).status_code == 503


def _update(text: str, chat_id: int = 42) -> dict:
    return {
        "update_id": 1,
        "message": {
            "message_id": 1,
            "text": text,
            "chat": {"id": chat_id, "type": "private"},
            "from": {"id": chat_id, "first_name": "Aida"},
        },
    }


class TestTelegramWebhook:
    def test_reply_is_sent(self, client, monkeypatch) -> None:
        sent = []
        monkeypatch.setattr(settings, "telegram_bot_token", "123:abc")
        monkeypatch.setattr(main, "send_message", lambda *args: sent.append(args) or True)

        r = client.post("/telegram/webhook", json=_update("/start"))

        assert r.json() == {"ok": True, "handled": True}
        token, chat_id, text, keyboard = sent[0]
        assert (token, chat_id) == ("123:abc", "42")
        assert "name of your venue" in text
        assert keyboard == [[BTN_BACK]]

    def test_non_text_update_is_ignored(self, client) -> None:
        r = client.post("/telegram/webhook", json={"update_id": 2, "message": {"chat": {"id": 1}}})
        assert r.json() == {"ok": True, "handled": False}

    def test_secret_is_checked(self, client, monkeypatch) -> None:
        monkeypatch.setattr(settings, "telegram_webhook_secret", "s3")
        assert client.post("/telegram/webhook", json=_update("/start")).status_code == 401

        r = client.post(
            "/telegram/webhook",
            json=_update("/start"),
            headers={"X-Telegram-Bot-Api-Secret-Token": "s3"},
        )
        assert r.status_code == 200


class TestUserLocks:
    def test_locks_are_dropped_after_each_message(self, client, auth_headers) -> None:
        for user_id in ("1", "2", "3"):
            client.post("/chat", json={"user_id": user_id, "message": "/start"}, headers=auth_headers)
        assert main._user_locks == {}

    def test_lock_is_released_when_the_engine_fails(self, services, monkeypatch) -> None:
        def boom(*args):
            raise RuntimeError("engine down")

        monkeypatch.setattr(services.conversation, "handle_message", boom)
        with pytest.raises(RuntimeError):
            main._converse(services, "7", "/start")
        assert "7" not in main._user_locks
