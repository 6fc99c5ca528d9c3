from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import DATABASE_URL

logger = logging.getLogger(__name__)


def _crea_engine(url: str) -> Engine:
    sqlite = url.startswith("sqlite")
    eng = create_engine(
        url,
        echo=False,  # le query si vedono alzando il logger sqlalchemy.engine
        connect_args={"check_same_thread": False} if sqlite else {},
    )
    if sqlite:
        # SQLite ignora le foreign key (e gli ON DELETE) se non richiesto per connessione
        @event.listens_for(eng, "connect")
        def _foreign_keys(dbapi_conn, _record) -> None:
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

    return eng


engine: Engine = _crea_engine(DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def configura_engine(url: str) -> Engine:
    """
    Ricollega le sessioni a un altro database (test, CLI su file diverso).
    Le sessioni già aperte restano sul vecchio engine.
    """
    global engine
    engine.dispose()
    engine = _crea_engine(url)
    SessionLocal.configure(bind=engine)
    logger.info("Database: %s", engine.url.render_as_string(hide_password=True))
    return engine


class Base(DeclarativeBase):
    """Base ORM per tutti i modelli."""
    pass


@contextmanager
def db_session() -> Iterator[Session]:
    """
    Sessione transazionale:
    - commit all'uscita
    - rollback e rilancio su eccezione
    - close sempre
    """
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
