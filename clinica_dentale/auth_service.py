from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select

from .auth_models import Utente
from .auth_security import hash_password, verify_password
from .db import db_session

logger = logging.getLogger(__name__)


def crea_utente(username: str, password: str, nome: str | None = None) -> str:
    username = username.strip().lower()
    if not username or not password:
        raise ValueError("Username e password sono obbligatori.")

    with db_session() as s:
        exists = s.execute(select(Utente).where(Utente.username == username)).scalar_one_or_none()
        if exists:
            raise ValueError("Username già registrato.")

        u = Utente(username=username, nome=nome, password_hash=hash_password(password), attivo=True)
        s.add(u)
        s.flush()
        logger.info("Utente creato: %s", username)
        return u.id


def autentica(username: str, password: str) -> Utente | None:
    username = username.strip().lower()
    with db_session() as s:
        u = s.execute(select(Utente).where(Utente.username == username)).scalar_one_or_none()
        if not u or not u.attivo:
            logger.warning("Login fallito (utente inesistente o disattivo): %s", username)
            return None
        if not verify_password(password, u.password_hash):
            logger.warning("Login fallito (password errata): %s", username)
            return None
        u.ultimo_accesso = datetime.utcnow()
        return u


def get_utente_by_id(user_id: str) -> Utente | None:
    with db_session() as s:
        return s.get(Utente, user_id)


def disattiva_utente(username: str) -> bool:
    username = username.strip().lower()
    with db_session() as s:
        u = s.execute(select(Utente).where(Utente.username == username)).scalar_one_or_none()
        if not u or not u.attivo:
            return False
        u.attivo = False
        return True
