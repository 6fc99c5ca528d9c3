from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base
from .models import new_uuid


class Utente(Base):
    """
    Account di segreteria/medico. Accede ai dati solo delle cliniche
    a cui è collegato (UtenteClinica).
    """
    __tablename__ = "utenti"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    nome: Mapped[str | None] = mapped_column(String(120), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    attivo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    ultimo_accesso: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    creato_il: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"Utente({self.username})"
