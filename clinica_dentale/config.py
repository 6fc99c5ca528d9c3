from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# DB SQLite su file nella root del progetto, sovrascrivibile via env
DB_PATH = Path(__file__).resolve().parents[1] / "clinica_dentale.sqlite"
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DB_PATH}")

# In produzione: mettila in variabile d'ambiente
JWT_SECRET = os.getenv("JWT_SECRET", "CHANGE_ME_DEV_SECRET")
JWT_ALG = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", "60"))

# Passo tra due orari prenotabili consecutivi (minuti)
SLOT_GRANULARITA_MINUTI = int(os.getenv("SLOT_GRANULARITA_MINUTI", "30"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def configura_logging(level: str | None = None) -> None:
    """Configura il logging root per API e CLI (idempotente)."""
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # le query SQL solo se esplicitamente richieste
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
