from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from .config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALG, JWT_SECRET

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(
    utente_id: str,
    extra: dict[str, Any] | None = None,
    minuti: int | None = None,
) -> str:
    """
    Token di sessione della segreteria: sub = id utente, scadenza in minuti
    (default JWT_EXPIRE_MINUTES). I claim extra non possono sovrascrivere sub/exp.
    """
    adesso = datetime.now(timezone.utc)
    scadenza = adesso + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES if minuti is None else minuti)

    payload: dict[str, Any] = dict(extra or {})
    payload.update(
        sub=utente_id,
        iat=int(adesso.timestamp()),
        exp=int(scadenza.timestamp()),
    )
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])


def get_subject(token: str) -> str | None:
    """id utente dal token, None se scaduto o non valido."""
    try:
        payload = decode_token(token)
    except ExpiredSignatureError:
        logger.info("Token scaduto")
        return None
    except JWTError as e:
        logger.warning("Token rifiutato: %s", e)
        return None
    return payload.get("sub")
