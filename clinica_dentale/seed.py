from __future__ import annotations

import logging
import os
from datetime import time

from sqlalchemy import select

from .auth_models import Utente
from .auth_security import hash_password
from .db import db_session
from .models import Clinica, Medico, Paziente, UtenteClinica

logger = logging.getLogger(__name__)

CLINICA_DEMO = "Studio Dentistico Demo"


def seed_base() -> None:
    """
    Popola dati minimi (idempotente):
    - clinica demo
    - utente admin collegato alla clinica
    - medici con disponibilità settimanale
    - un paziente di prova
    """
    with db_session() as s:
        clinica = s.execute(select(Clinica).where(Clinica.nome == CLINICA_DEMO)).scalar_one_or_none()
        if clinica is None:
            clinica = Clinica(
                nome=CLINICA_DEMO,
                responsabile="Mario Rossi",
                iscrizione_albo_responsabile="OMCeO-MI 12345",
                metodi_pagamento="Contanti,Bancomat,Carta di credito",
                citta="Milano",
            )
            s.add(clinica)
            s.flush()
            logger.info("Seed: creata clinica demo %s", clinica.id)

        # Utente admin (password da env, default solo per sviluppo)
        admin = s.execute(select(Utente).where(Utente.username == "admin")).scalar_one_or_none()
        if admin is None:
            admin = Utente(
                username="admin",
                nome="Amministratore",
                password_hash=hash_password(os.getenv("ADMIN_PASSWORD", "admin")),
                attivo=True,
            )
            s.add(admin)
            s.flush()
        if s.get(UtenteClinica, (admin.id, clinica.id)) is None:
            s.add(UtenteClinica(utente_id=admin.id, clinica_id=clinica.id))

        # Medici: (nome, albo, specializzazioni, dal_giorno, al_giorno, dalle, alle)
        medici = [
            ("Mario Rossi", "OMCeO-MI 12345", "Ortodonzia,Implantologia", 1, 5, time(9, 0), time(18, 0)),
            ("Laura Bianchi", "OMCeO-MI 67890", "Igiene,Pedodonzia", 2, 6, time(8, 0), time(12, 0)),
        ]
        for nome, albo, spec, dal_g, al_g, dalle, alle in medici:
            exists = s.execute(
                select(Medico).where(Medico.clinica_id == clinica.id, Medico.iscrizione_albo == albo)
            ).scalar_one_or_none()
            if exists is None:
                s.add(
                    Medico(
                        clinica_id=clinica.id,
                        nome=nome,
                        iscrizione_albo=albo,
                        specializzazioni=spec,
                        prezzo_visita_cent=8000,
                        dal_giorno=dal_g,
                        al_giorno=al_g,
                        dalle=dalle,
                        alle=alle,
                    )
                )

        # Paziente
        if s.execute(
            select(Paziente).where(Paziente.clinica_id == clinica.id, Paziente.email == "giulia.verdi@example.com")
        ).scalar_one_or_none() is None:
            s.add(
                Paziente(
                    clinica_id=clinica.id,
                    nome="Giulia Verdi",
                    email="giulia.verdi@example.com",
                    telefono="+39 333 1234567",
                )
            )
