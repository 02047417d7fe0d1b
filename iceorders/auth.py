# iceorders/auth.py
from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext


pwd = CryptContext(schemes=["argon2"], deprecated="auto")

OPERATOR_SUBJECT = "operator"


def _jwt_secret() -> str:
    return os.getenv("JWT_SECRET", "dev-secret-change-me")


def _jwt_alg() -> str:
    return os.getenv("JWT_ALG", "HS256")


def _jwt_expire_minutes() -> int:
    # default 12h, one shift
    raw = os.getenv("JWT_EXPIRE_MIN", "720")
    try:
        return int(raw)
    except ValueError:
        return 720


def hash_password(p: str) -> str:
    return pwd.hash(p)


def verify_password(p: str, h: str) -> bool:
    if not h:
        return False
    try:
        return pwd.verify(p, h)
    except ValueError:
        return False


def create_token(subject: str = OPERATOR_SUBJECT) -> str:
    exp = datetime.now(timezone.utc) + timedelta(minutes=_jwt_expire_minutes())
    payload = {"sub": subject, "exp": exp}
    return jwt.encode(payload, _jwt_secret(), algorithm=_jwt_alg())


def decode_token(token: str) -> Optional[str]:
    try:
        data = jwt.decode(token, _jwt_secret(), algorithms=[_jwt_alg()])
    except JWTError:
        return None
    sub = data.get("sub")
    return str(sub) if sub else None
