"""
Tests for the HTTP API (FastAPI TestClient).
"""

import pytest
from fastapi.testclient import TestClient

from clinica_dentale.api_main import app


@pytest.fixture
def client():
    # senza context manager: niente startup/seed, il DB lo prepara conftest
    return TestClient(app)


def _login(client, username="segreteria", password="pw"):
    r = client.post("/api/auth/register", json={"username": username, "password": password})
    assert r.status_code == 200
    r = client.post("/api/auth/login", data={"username": username, "password": password})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def auth(client):
    headers = _login(client)
    r = client.post(
        "/api/cliniche",
        json={"nome": "Studio Test", "responsabile": "Mario Rossi", "iscrizione_albo_responsabile": "OMCeO 1"},
        headers=headers,
    )
    assert r.status_code == 201
    return headers


@pytest.fixture
def medico(client, auth):
    r = client.post(
        "/api/medici",
        json={"nome": "Laura Bianchi", "iscrizione_albo": "OMCeO 2", "dalle": "08:00", "alle": "12:00"},
        headers=auth,
    )
    assert r.status_code == 201
    return r.json()["medico_id"]


@pytest.fixture
def paziente(client, auth):
    r = client.post("/api/pazienti", json={"nome": "Giulia Verdi", "sesso": "F"}, headers=auth)
    assert r.status_code == 201
    return r.json()["paziente_id"]


class TestAuth:

    def test_login_errato(self, client):
        _login(client)
        r = client.post("/api/auth/login", data={"username": "segreteria", "password": "no"})
        assert r.status_code == 401

    def test_registrazione_duplicata(self, client):
        _login(client)
        r = client.post("/api/auth/register", json={"username": "segreteria", "password": "pw"})
        assert r.status_code == 400

    def test_senza_token(self, client):
        assert client.get("/api/me").status_code == 401

    def test_me(self, client, auth):
        r = client.get("/api/me", headers=auth)
        assert r.status_code == 200
        assert r.json()["username"] == "segreteria"
        assert r.json()["clinica_id"]

    def test_utente_senza_clinica(self, client):
        headers = _login(client, "nuovo")
        assert client.get("/api/pazienti", headers=headers).status_code == 403


class TestOrari:

    def test_mercoledi(self, client, auth, medico):
        r = client.get(f"/api/medici/{medico}/orari", params={"giorno": "2026-01-14"}, headers=auth)
        assert r.status_code == 200
        slots = r.json()
        assert len(slots) == 8
        assert slots[0] == {"orario": "08:00:00", "etichetta": "08:00", "disponibile": True}

    def test_domenica(self, client, auth, medico):
        r = client.get(f"/api/medici/{medico}/orari", params={"giorno": "2026-01-18"}, headers=auth)
        assert r.json() == []

    def test_medico_inesistente(self, client, auth):
        r = client.get("/api/medici/non-esiste/orari", params={"giorno": "2026-01-14"}, headers=auth)
        assert r.status_code == 404

    def test_granularita(self, client, auth, medico):
        r = client.get(
            f"/api/medici/{medico}/orari", params={"giorno": "2026-01-14", "granularita": 60}, headers=auth
        )
        assert [x["etichetta"] for x in r.json()] == ["08:00", "09:00", "10:00", "11:00"]


class TestAppuntamenti:

    def _prenota(self, client, auth, medico, paziente, start="2026-01-14T09:00:00"):
        return client.post(
            "/api/appuntamenti",
            json={"paziente_id": paziente, "medico_id": medico, "start": start, "procedura": "Prima visita"},
            headers=auth,
        )

    def test_prenota_e_occupa(self, client, auth, medico, paziente):
        r = self._prenota(client, auth, medico, paziente)
        assert r.status_code == 201

        slots = client.get(f"/api/medici/{medico}/orari", params={"giorno": "2026-01-14"}, headers=auth).json()
        assert [x["etichetta"] for x in slots if not x["disponibile"]] == ["09:00"]

    def test_doppia_prenotazione(self, client, auth, medico, paziente):
        self._prenota(client, auth, medico, paziente)
        r = self._prenota(client, auth, medico, paziente)
        assert r.status_code == 409
        assert r.json()["detail"] == "Orario già occupato."

    def test_prenota_con_granularita_della_lista(self, client, auth, medico, paziente):
        slots = client.get(
            f"/api/medici/{medico}/orari", params={"giorno": "2026-01-14", "granularita": 15}, headers=auth
        ).json()
        assert "08:15" in [x["etichetta"] for x in slots if x["disponibile"]]

        r = client.post(
            "/api/appuntamenti",
            json={
                "paziente_id": paziente,
                "medico_id": medico,
                "start": "2026-01-14T08:15:00",
                "procedura": "Prima visita",
                "granularita": 15,
            },
            headers=auth,
        )
        assert r.status_code == 201

        r = self._prenota(client, auth, medico, paziente, start="2026-01-14T08:45:00")
        assert r.status_code == 409
        assert r.json()["detail"] == "Orario fuori dalla disponibilità del medico."

    def test_annulla_e_riprogramma(self, client, auth, medico, paziente):
        app_id = self._prenota(client, auth, medico, paziente).json()["appuntamento_id"]

        r = client.post(
            f"/api/appuntamenti/{app_id}/riprogramma", json={"start": "2026-01-14T10:00:00"}, headers=auth
        )
        assert r.status_code == 200

        r = client.post(f"/api/appuntamenti/{app_id}/annulla", json={"motivo": "Influenza"}, headers=auth)
        assert r.status_code == 200
        r = client.post(f"/api/appuntamenti/{app_id}/annulla", json={}, headers=auth)
        assert r.status_code == 404

        lista = client.get("/api/appuntamenti", params={"stato": "ANNULLATO"}, headers=auth).json()
        assert [a["id"] for a in lista] == [app_id]

    def test_agenda(self, client, auth, medico, paziente):
        self._prenota(client, auth, medico, paziente)
        r = client.get("/api/agenda", params={"medico_id": medico, "giorno": "2026-01-14"}, headers=auth)
        assert [a["paziente"] for a in r.json()] == ["Giulia Verdi"]


class TestAltreRisorse:

    def test_medico_disponibilita_non_valida(self, client, auth):
        r = client.post(
            "/api/medici",
            json={"nome": "X", "iscrizione_albo": "Y", "dalle": "18:00", "alle": "09:00"},
            headers=auth,
        )
        assert r.status_code == 400

    def test_finanze(self, client, auth, paziente):
        r = client.post(
            "/api/finanze/movimenti",
            json={
                "operazione": "ENTRATA",
                "categoria": "Incasso visita",
                "descrizione": "Visita",
                "importo_cent": 8000,
                "stato": "PAGATO",
            },
            headers=auth,
        )
        assert r.status_code == 201
        assert client.get("/api/finanze/riepilogo", headers=auth).json()["entrate_cent"] == 8000

        r = client.post(
            f"/api/pazienti/{paziente}/movimenti",
            json={"tipo": "ADDEBITO", "importo_cent": 5000},
            headers=auth,
        )
        assert r.status_code == 201
        assert client.get(f"/api/pazienti/{paziente}/saldo", headers=auth).json()["saldo_cent"] == 5000

    def test_cartella(self, client, auth, medico, paziente):
        r = client.post(
            f"/api/pazienti/{paziente}/anamnesi",
            json={"dati": {"motivo_principale": "Controllo"}, "finalizza": True},
            headers=auth,
        )
        assert r.status_code == 200
        assert r.json()["versione"] == 1

        r = client.post(
            f"/api/pazienti/{paziente}/odontogramma",
            json={"medico_id": medico, "segni": [{"dente": "99", "faccia": "OCCLUSALE", "stato": "CARIE"}]},
            headers=auth,
        )
        assert r.status_code == 400
        assert client.get(f"/api/pazienti/{paziente}/odontogramma", headers=auth).status_code == 404

    def test_dashboard(self, client, auth, paziente):
        r = client.get("/api/dashboard", params={"dal": "2026-01-01", "al": "2026-01-31"}, headers=auth)
        assert r.status_code == 200
        assert r.json()["totali"]["pazienti"] == 1
