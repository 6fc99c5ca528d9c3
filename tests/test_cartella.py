"""
Tests for anamnesis versioning and the odontogram.
"""

from datetime import date

import pytest

from clinica_dentale.cartella import (
    dente_valido,
    genera_riepilogo,
    salva_anamnesi,
    salva_odontogramma,
    storico_anamnesi,
    ultima_anamnesi,
    ultimo_odontogramma_flat,
)

DATI = {"motivo_principale": "Dolore al molare", "condizioni_note": ["diabete", "ipertensione"]}


class TestAnamnesi:

    def test_riepilogo(self):
        assert genera_riepilogo(DATI) == "Motivo: Dolore al molare. Condizioni: Diabete, Ipertensione."
        assert genera_riepilogo({}) == (
            "Motivo: Nessun motivo principale registrato. Condizioni: Nessuna condizione nota."
        )

    def test_bozza_modificata_in_place(self, clinica_id, paziente_id):
        a = salva_anamnesi(clinica_id, paziente_id, DATI)
        assert a["versione"] == 1
        assert a["stato"] == "BOZZA"

        b = salva_anamnesi(clinica_id, paziente_id, {"motivo_principale": "Controllo"}, anamnesi_id=a["id"])
        assert b["id"] == a["id"]
        assert b["versione"] == 1
        assert len(storico_anamnesi(clinica_id, paziente_id)) == 1

    def test_finalizzata_crea_nuova_versione(self, clinica_id, paziente_id):
        a = salva_anamnesi(clinica_id, paziente_id, DATI, finalizza=True)
        assert a["stato"] == "FINALIZZATA"

        b = salva_anamnesi(clinica_id, paziente_id, {"motivo_principale": "Controllo"}, anamnesi_id=a["id"])
        assert b["id"] != a["id"]
        assert b["versione"] == 2

        assert ultima_anamnesi(clinica_id, paziente_id)["id"] == b["id"]
        assert [x["versione"] for x in storico_anamnesi(clinica_id, paziente_id)] == [2, 1]

    def test_paziente_inesistente(self, clinica_id):
        assert salva_anamnesi(clinica_id, "non-esiste", DATI) is None
        assert ultima_anamnesi(clinica_id, "non-esiste") is None


class TestOdontogramma:

    @pytest.mark.parametrize("dente", ["11", "18", "48", "51", "85"])
    def test_denti_validi(self, dente):
        assert dente_valido(dente)

    @pytest.mark.parametrize("dente", ["10", "19", "49", "56", "90", "1", "ab"])
    def test_denti_non_validi(self, dente):
        assert not dente_valido(dente)

    def test_salva_e_leggi(self, clinica_id, paziente_id, medico_id):
        oid = salva_odontogramma(
            clinica_id,
            paziente_id,
            medico_id,
            [
                {"dente": "36", "faccia": "OCCLUSALE", "stato": "CARIE"},
                {"dente": "11", "faccia": "VESTIBOLARE", "stato": "OTTURAZIONE", "osservazione": "Composito"},
            ],
            data=date(2026, 1, 14),
        )
        o = ultimo_odontogramma_flat(clinica_id, paziente_id)
        assert o["id"] == oid
        assert o["data"] == "2026-01-14"
        assert [(x["dente"], x["stato"]) for x in o["segni"]] == [("36", "CARIE"), ("11", "OTTURAZIONE")]

    def test_aggiornamento_sostituisce_i_segni(self, clinica_id, paziente_id, medico_id):
        oid = salva_odontogramma(
            clinica_id, paziente_id, medico_id, [{"dente": "36", "faccia": "OCCLUSALE", "stato": "CARIE"}]
        )
        salva_odontogramma(
            clinica_id, paziente_id, medico_id,
            [{"dente": "36", "faccia": "OCCLUSALE", "stato": "OTTURAZIONE"}],
            odontogramma_id=oid,
        )
        o = ultimo_odontogramma_flat(clinica_id, paziente_id)
        assert o["id"] == oid
        assert [x["stato"] for x in o["segni"]] == ["OTTURAZIONE"]

    def test_dente_non_valido(self, clinica_id, paziente_id, medico_id):
        with pytest.raises(ValueError):
            salva_odontogramma(
                clinica_id, paziente_id, medico_id, [{"dente": "99", "faccia": "OCCLUSALE", "stato": "CARIE"}]
            )

    def test_faccia_non_valida(self, clinica_id, paziente_id, medico_id):
        with pytest.raises(ValueError):
            salva_odontogramma(
                clinica_id, paziente_id, medico_id, [{"dente": "36", "faccia": "SOPRA", "stato": "CARIE"}]
            )

    def test_nessun_odontogramma(self, clinica_id, paziente_id):
        assert ultimo_odontogramma_flat(clinica_id, paziente_id) is None
