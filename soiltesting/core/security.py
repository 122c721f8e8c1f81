from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import jwt

from ..config import get_settings

ALGORITHM = "HS256"


@dataclass(slots=True, frozen=True)
class Principal:
    user_id: int
    role: str


def create_access_token(data: Dict[str, Any], expires_delta: timedelta | None = None) -> str:
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.jwt_expire_min)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Principal:
    settings = get_settings()
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])
    user_id = payload.get("sub")
    role = payload.get("role")
    if user_id is None or role is None:
        raise ValueError("Token is missing subject or role")
    return Principal(user_id=int(user_id), role=str(role))
