"""
Tests for the clinic dashboard indicators.
"""

from datetime import date, datetime, time

import pytest

from clinica_dentale.dashboard import GIORNI_GRAFICO, get_dashboard
from clinica_dentale.finanze import registra_movimento
from clinica_dentale.models import OperazioneFinanziaria, Procedura, StatoMovimento
from clinica_dentale.services import annulla_appuntamento, crea_medico, prenota_appuntamento

MERCOLEDI = date(2026, 1, 14)
GIOVEDI = date(2026, 1, 15)


def _alle(giorno: date, ora: str) -> datetime:
    return datetime.combine(giorno, time.fromisoformat(ora))


class TestDashboard:

    def test_indicatori(self, clinica_id, medico_id, paziente_id):
        altro = crea_medico(clinica_id, "Paolo Neri", "OMCeO 3", dalle="08:00", alle="12:00")
        prenota_appuntamento(clinica_id, paziente_id, medico_id, _alle(MERCOLEDI, "08:00"), Procedura.IGIENE)
        prenota_appuntamento(clinica_id, paziente_id, medico_id, _alle(GIOVEDI, "09:00"), Procedura.IGIENE)
        prenota_appuntamento(clinica_id, paziente_id, altro, _alle(MERCOLEDI, "10:00"), Procedura.CONTROLLO)
        annullato = prenota_appuntamento(
            clinica_id, paziente_id, altro, _alle(MERCOLEDI, "11:00"), Procedura.ESTRAZIONE
        )
        annulla_appuntamento(clinica_id, annullato.appuntamento_id)

        registra_movimento(
            clinica_id, OperazioneFinanziaria.ENTRATA, "Incasso visita", "Igiene", 6000,
            stato=StatoMovimento.PAGATO, pagato_il=_alle(MERCOLEDI, "08:30"),
        )

        d = get_dashboard(clinica_id, date(2026, 1, 1), date(2026, 1, 31), oggi=MERCOLEDI)

        assert d["totali"] == {"appuntamenti": 3, "pazienti": 1, "medici": 2}
        assert d["top_medici"][0]["id"] == medico_id
        assert d["top_medici"][0]["appuntamenti"] == 2
        assert d["per_procedura"][0] == {"procedura": Procedura.IGIENE.value, "appuntamenti": 2}
        assert [a["inizio"] for a in d["oggi"]] == ["08:00", "10:00"]
        assert d["incassi_cent"] == 6000

    def test_grafico(self, clinica_id, medico_id, paziente_id):
        prenota_appuntamento(clinica_id, paziente_id, medico_id, _alle(GIOVEDI, "09:00"), Procedura.IGIENE)

        d = get_dashboard(clinica_id, date(2026, 1, 1), date(2026, 1, 31), oggi=MERCOLEDI)

        assert len(d["grafico"]) == 2 * GIORNI_GRAFICO + 1
        per_giorno = {x["giorno"]: x["appuntamenti"] for x in d["grafico"]}
        assert per_giorno["2026-01-15"] == 1
        assert per_giorno["2026-01-14"] == 0

    def test_periodo_invertito(self, clinica_id):
        with pytest.raises(ValueError):
            get_dashboard(clinica_id, date(2026, 2, 1), date(2026, 1, 1))
