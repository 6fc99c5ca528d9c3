"""
Tests for the pure slot computation.
"""

from datetime import date, datetime, time
from types import SimpleNamespace

from clinica_dentale.disponibilita import (
    DisponibilitaMedico,
    FinestraDisponibilita,
    calcola_slot_disponibili,
    genera_slot,
    giorno_settimana,
    risolvi_finestra,
)
from clinica_dentale.models import StatoAppuntamento

MERCOLEDI = date(2026, 1, 14)
DOMENICA = date(2026, 1, 18)
VENERDI = date(2026, 1, 16)

LUN_VEN_MATTINA = DisponibilitaMedico(dal_giorno=1, al_giorno=5, dalle=time(8, 0), alle=time(12, 0))


def _app(ora: str, stato=StatoAppuntamento.AGENDATO, giorno=MERCOLEDI):
    return SimpleNamespace(inizio=datetime.combine(giorno, time.fromisoformat(ora)), stato=stato)


class TestGiornoSettimana:
    """0=domenica ... 6=sabato."""

    def test_domenica_e_zero(self):
        assert giorno_settimana(DOMENICA) == 0

    def test_mercoledi_e_tre(self):
        assert giorno_settimana(MERCOLEDI) == 3

    def test_sabato_e_sei(self):
        assert giorno_settimana(date(2026, 1, 17)) == 6


class TestRisolviFinestra:

    def test_giorno_lavorativo(self):
        f = risolvi_finestra(LUN_VEN_MATTINA, MERCOLEDI)
        assert f.inizio == datetime(2026, 1, 14, 8, 0)
        assert f.fine == datetime(2026, 1, 14, 12, 0)
        assert not f.is_vuota

    def test_giorno_fuori_intervallo(self):
        assert risolvi_finestra(LUN_VEN_MATTINA, DOMENICA).is_vuota

    def test_intervallo_giorni_non_fa_il_giro(self):
        """dal_giorno > al_giorno non copre nessun giorno."""
        disp = DisponibilitaMedico(dal_giorno=5, al_giorno=1, dalle=time(8, 0), alle=time(12, 0))
        assert risolvi_finestra(disp, VENERDI).is_vuota
        assert risolvi_finestra(disp, date(2026, 1, 12)).is_vuota  # lunedì
        assert risolvi_finestra(disp, DOMENICA).is_vuota

    def test_orario_invertito_e_vuoto(self):
        disp = DisponibilitaMedico(dal_giorno=0, al_giorno=6, dalle=time(12, 0), alle=time(8, 0))
        assert risolvi_finestra(disp, MERCOLEDI).is_vuota


class TestGeneraSlot:

    def test_finestra_vuota(self):
        assert genera_slot(FinestraDisponibilita.vuota(), 30) == []

    def test_granularita_non_positiva(self):
        f = risolvi_finestra(LUN_VEN_MATTINA, MERCOLEDI)
        assert genera_slot(f, 0) == []
        assert genera_slot(f, -15) == []

    def test_solo_slot_interi(self):
        """08:00-09:45 a passi di 30 minuti: 08:00, 08:30, 09:00."""
        f = FinestraDisponibilita(datetime(2026, 1, 14, 8, 0), datetime(2026, 1, 14, 9, 45))
        slots = genera_slot(f, 30)
        assert [s.strftime("%H:%M") for s in slots] == ["08:00", "08:30", "09:00"]

    def test_granularita_piu_lunga_della_finestra(self):
        f = FinestraDisponibilita(datetime(2026, 1, 14, 8, 0), datetime(2026, 1, 14, 8, 20))
        assert genera_slot(f, 30) == []


class TestCalcolaSlotDisponibili:

    def test_mercoledi_senza_appuntamenti(self):
        slots = calcola_slot_disponibili(LUN_VEN_MATTINA, [], MERCOLEDI, 30)

        assert len(slots) == 8
        assert [s.etichetta for s in slots] == [
            "08:00", "08:30", "09:00", "09:30", "10:00", "10:30", "11:00", "11:30",
        ]
        assert all(s.disponibile for s in slots)

    def test_appuntamento_occupa_lo_slot(self):
        slots = calcola_slot_disponibili(LUN_VEN_MATTINA, [_app("09:00")], MERCOLEDI, 30)

        assert len(slots) == 8
        occupati = [s.etichetta for s in slots if not s.disponibile]
        assert occupati == ["09:00"]

    def test_domenica_nessuno_slot(self):
        assert calcola_slot_disponibili(LUN_VEN_MATTINA, [], DOMENICA, 30) == []

    def test_annullato_non_occupa(self):
        slots = calcola_slot_disponibili(
            LUN_VEN_MATTINA, [_app("09:00", stato=StatoAppuntamento.ANNULLATO)], MERCOLEDI, 30
        )
        assert all(s.disponibile for s in slots)

    def test_altri_stati_occupano(self):
        appuntamenti = [
            _app("08:00", stato=StatoAppuntamento.RIPROGRAMMATO),
            _app("08:30", stato=StatoAppuntamento.ESEGUITO),
            _app("09:00", stato=StatoAppuntamento.NON_PRESENTATO),
        ]
        slots = calcola_slot_disponibili(LUN_VEN_MATTINA, appuntamenti, MERCOLEDI, 30)
        assert [s.disponibile for s in slots[:4]] == [False, False, False, True]

    def test_solo_inizio_esatto_conta(self):
        """Un appuntamento alle 09:15 non blocca né le 09:00 né le 09:30."""
        slots = calcola_slot_disponibili(LUN_VEN_MATTINA, [_app("09:15")], MERCOLEDI, 30)
        assert all(s.disponibile for s in slots)

    def test_appuntamento_di_altro_giorno_ignorato(self):
        slots = calcola_slot_disponibili(
            LUN_VEN_MATTINA, [_app("09:00", giorno=VENERDI)], MERCOLEDI, 30
        )
        assert all(s.disponibile for s in slots)

    def test_ordine_crescente_e_idempotente(self):
        appuntamenti = [_app("10:00"), _app("08:30")]
        primo = calcola_slot_disponibili(LUN_VEN_MATTINA, appuntamenti, MERCOLEDI, 30)
        secondo = calcola_slot_disponibili(LUN_VEN_MATTINA, appuntamenti, MERCOLEDI, 30)

        assert primo == secondo
        assert [s.orario for s in primo] == sorted(s.orario for s in primo)

    def test_as_dict(self):
        slot = calcola_slot_disponibili(LUN_VEN_MATTINA, [_app("08:00")], MERCOLEDI, 30)[0]
        assert slot.as_dict() == {"orario": "08:00:00", "etichetta": "08:00", "disponibile": False}
