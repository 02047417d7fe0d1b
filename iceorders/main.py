# iceorders/main.py
from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel

from .auth import OPERATOR_SUBJECT, create_token, decode_token, verify_password
from .clock import Clock
from .config import Settings, configure_logging, settings
from .db import SessionLocal, engine
from .errors import StoreUnavailable
from .ordering.brain import ConversationEngine, Reply
from .profiles import ProfileStore
from .scheduler import RolloverScheduler
from .store.orders import ARCHIVE_HEADER, LIVE_HEADER, OrderStore
from .store.sheets import SheetsBackend
from .store.tables import MemoryBackend
from .store.venues import VENUES_HEADER, VenueDirectory
from .telegram import parse_update, send_message

logger = logging.getLogger("iceorders.api")


# -------------------
# Wiring
# -------------------
@dataclass
class Services:
    clock: Clock
    backend: Any
    venues: VenueDirectory
    orders: OrderStore
    profiles: ProfileStore
    conversation: ConversationEngine
    scheduler: RolloverScheduler


def table_headers(cfg: Settings) -> Dict[str, List[str]]:
    return {
        cfg.venues_sheet: VENUES_HEADER,
        cfg.archive_sheet: ARCHIVE_HEADER,
        cfg.live_sheet: LIVE_HEADER,
    }


def build_services(
    cfg: Settings = settings,
    backend: Any = None,
    clock: Optional[Clock] = None,
    session_factory: Any = None,
    db_engine: Any = None,
) -> Services:
    clock = clock or Clock(cfg.utc_offset_hours, cfg.cutoff_hour)
    if backend is None:
        backend = MemoryBackend() if cfg.table_backend == "memory" else SheetsBackend(cfg.spreadsheet_id)

    venues = VenueDirectory(backend.table(cfg.venues_sheet))
    orders = OrderStore(
        archive=backend.table(cfg.archive_sheet),
        live=backend.table(cfg.live_sheet),
        venues=venues,
        clock=clock,
        delivery_fee=cfg.delivery_fee,
    )

    profiles = ProfileStore(session_factory or SessionLocal)
    profiles.init(db_engine or engine)

    conversation = ConversationEngine(
        profiles=profiles,
        orders=orders,
        venues=venues,
        clock=clock,
        amount_steps=cfg.amount_steps(),
        default_unit_price=cfg.default_unit_price,
        currency_symbol=cfg.currency_symbol,
    )
    return Services(
        clock=clock,
        backend=backend,
        venues=venues,
        orders=orders,
        profiles=profiles,
        conversation=conversation,
        scheduler=RolloverScheduler(orders, clock),
    )


@lru_cache(maxsize=1)
def get_services() -> Services:
    return build_services()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    services = app.dependency_overrides.get(get_services, get_services)()

    try:
        await asyncio.to_thread(services.backend.ensure_tables, table_headers(settings))
    except StoreUnavailable:
        logger.exception("Could not initialise sheets; continuing, rollover will retry")

    if settings.rollover_enabled:
        services.scheduler.start()
    try:
        yield
    finally:
        await services.scheduler.stop()


app = FastAPI(
    title="Ice Ordering Bot",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
    lifespan=lifespan,
)


# -------------------
# Schemas
# -------------------
class LoginIn(BaseModel):
    password: str


class ChatIn(BaseModel):
    user_id: str
    message: str
    name: str = ""


# -------------------
# Helpers
# -------------------
# user id -> [lock, holders]; an entry lives only while someone holds or waits on it
_user_locks: Dict[str, List[Any]] = {}
_user_locks_guard = threading.Lock()


def _acquire_user_lock(user_id: str) -> threading.Lock:
    with _user_locks_guard:
        entry = _user_locks.setdefault(user_id, [threading.Lock(), 0])
        entry[1] += 1
    entry[0].acquire()
    return entry[0]


def _release_user_lock(user_id: str) -> None:
    with _user_locks_guard:
        entry = _user_locks[user_id]
        entry[0].release()
        entry[1] -= 1
        if entry[1] == 0:
            del _user_locks[user_id]


def _converse(services: Services, user_id: str, text: str, name: str = "") -> Reply:
    # one message at a time per user
    _acquire_user_lock(user_id)
    try:
        return services.conversation.handle_message(user_id, text, name)
    finally:
        _release_user_lock(user_id)


def require_operator(authorization: str | None = Header(default=None)) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing Bearer token")

    token = authorization.split(" ", 1)[1].strip()
    sub = decode_token(token)
    if sub != OPERATOR_SUBJECT:
        raise HTTPException(status_code=401, detail="Invalid token")
    return sub


# -------------------
# Health
# -------------------
@app.get("/")
def root():
    return {"ok": True, "service": "iceorders"}


# -------------------
# Auth
# -------------------
@app.post("/auth/login")
def login(payload: LoginIn):
    if not verify_password(payload.password, settings.operator_password_hash):
        raise HTTPException(status_code=401, detail="Bad credentials")
    return {"token": create_token()}


# -------------------
# Chat transports
# -------------------
@app.post("/chat")
def chat(
    payload: ChatIn,
    _operator: str = Depends(require_operator),
    services: Services = Depends(get_services),
):
    reply = _converse(services, payload.user_id, payload.message, payload.name)
    return {"reply": reply.text, "keyboard": reply.keyboard, "state": reply.state}


@app.post("/telegram/webhook")
def telegram_webhook(
    update: Dict[str, Any] = Body(...),
    x_telegram_bot_api_secret_token: str | None = Header(default=None),
    services: Services = Depends(get_services),
):
    secret = settings.telegram_webhook_secret
    if secret and x_telegram_bot_api_secret_token != secret:
        raise HTTPException(status_code=401, detail="Bad webhook secret")

    parsed = parse_update(update)
    if parsed is None:
        return {"ok": True, "handled": False}

    chat_id, text, name = parsed
    reply = _converse(services, chat_id, text, name)

    if settings.telegram_bot_token:
        send_message(settings.telegram_bot_token, chat_id, reply.text, reply.keyboard)
    else:
        logger.warning("TELEGRAM_BOT_TOKEN is not set; reply to %s not sent", chat_id)
    return {"ok": True, "handled": True}


# -------------------
# Operator
# -------------------
@app.post("/admin/rollover")
def force_rollover(
    _operator: str = Depends(require_operator),
    services: Services = Depends(get_services),
):
    if not services.scheduler.run_once():
        raise HTTPException(status_code=503, detail="Rollover failed or already running; see logs")
    return {"ok": True}


@app.get("/admin/stats")
def stats(
    _operator: str = Depends(require_operator),
    services: Services = Depends(get_services),
):
    try:
        return services.orders.stats()
    except StoreUnavailable as e:
        logger.exception("Stats read failed")
        raise HTTPException(status_code=503, detail="Order store unavailable") from e


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
