"""
Tests for user accounts and JWT tokens.
"""

import pytest

from clinica_dentale.auth_security import create_access_token, get_subject, hash_password, verify_password
from clinica_dentale.auth_service import autentica, crea_utente, disattiva_utente, get_utente_by_id


class TestPassword:

    def test_hash_e_verifica(self):
        h = hash_password("segreta")
        assert h != "segreta"
        assert verify_password("segreta", h)
        assert not verify_password("sbagliata", h)


class TestToken:

    def test_subject(self):
        token = create_access_token("utente-1", extra={"username": "mario"})
        assert get_subject(token) == "utente-1"

    def test_token_non_valido(self):
        assert get_subject("non.un.token") is None

    def test_token_scaduto(self):
        token = create_access_token("utente-1", minuti=-1)
        assert get_subject(token) is None

    def test_extra_non_sovrascrive_sub(self):
        token = create_access_token("utente-1", extra={"sub": "altro"})
        assert get_subject(token) == "utente-1"


class TestUtenti:

    def test_crea_e_autentica(self):
        uid = crea_utente("  Mario ", "pw", nome="Mario Rossi")
        u = autentica("mario", "pw")
        assert u is not None
        assert u.id == uid
        assert u.ultimo_accesso is not None
        assert get_utente_by_id(uid).nome == "Mario Rossi"

    def test_password_errata(self):
        uid = crea_utente("mario", "pw")
        assert autentica("mario", "altro") is None
        assert get_utente_by_id(uid).ultimo_accesso is None

    def test_username_duplicato(self):
        crea_utente("mario", "pw")
        with pytest.raises(ValueError):
            crea_utente("MARIO", "pw2")

    def test_campi_obbligatori(self):
        with pytest.raises(ValueError):
            crea_utente("", "pw")

    def test_utente_disattivato(self):
        crea_utente("mario", "pw")
        assert disattiva_utente("mario")
        assert autentica("mario", "pw") is None
        assert disattiva_utente("mario") is False
