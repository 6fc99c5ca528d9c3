"""
Tests for the engine/session layer.
"""

from datetime import time

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from clinica_dentale import db
from clinica_dentale.models import Clinica, Medico


class TestEngine:

    def test_engine_di_test(self):
        assert db.engine.url.database.endswith("test.sqlite")

    def test_foreign_key_attive(self):
        with pytest.raises(IntegrityError):
            with db.db_session() as s:
                s.add(Medico(clinica_id="non-esiste", nome="X", iscrizione_albo="A1", dalle=time(8), alle=time(12)))

    def test_rollback_su_eccezione(self):
        with pytest.raises(RuntimeError):
            with db.db_session() as s:
                s.add(Clinica(nome="Temporanea", responsabile="R", iscrizione_albo_responsabile="A"))
                s.flush()
                raise RuntimeError("boom")

        with db.db_session() as s:
            assert s.scalars(select(Clinica)).all() == []
