"""
Fixture condivise: DB SQLite temporaneo, tabelle ricreate a ogni test.
"""

from datetime import time

import pytest

from clinica_dentale import auth_models, db, models  # noqa: F401
from clinica_dentale.services import crea_clinica, crea_medico, crea_paziente


@pytest.fixture(scope="session", autouse=True)
def db_di_test(tmp_path_factory):
    """Un file SQLite per sessione, al posto del DB del progetto."""
    percorso = tmp_path_factory.mktemp("db") / "test.sqlite"
    db.configura_engine(f"sqlite:///{percorso}")
    yield
    db.engine.dispose()


@pytest.fixture(autouse=True)
def db_pulito(db_di_test):
    db.Base.metadata.drop_all(bind=db.engine)
    db.Base.metadata.create_all(bind=db.engine)
    yield


@pytest.fixture
def clinica_id():
    return crea_clinica("Studio Test", "Mario Rossi", "OMCeO-MI 1", metodi_pagamento=["Contanti", "Bancomat"])


@pytest.fixture
def medico_id(clinica_id):
    """Lunedì-venerdì, 08:00-12:00."""
    return crea_medico(
        clinica_id,
        "Laura Bianchi",
        "OMCeO-MI 2",
        dal_giorno=1,
        al_giorno=5,
        dalle=time(8, 0),
        alle=time(12, 0),
        prezzo_visita_cent=8000,
    )


@pytest.fixture
def paziente_id(clinica_id):
    return crea_paziente(clinica_id, "Giulia Verdi", "giulia@example.com", "+39 333 0000000")
