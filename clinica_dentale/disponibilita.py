"""
Calcolo degli orari prenotabili di un medico in una data.

Logica pura (niente DB, niente I/O): riceve la disponibilità settimanale del
medico e gli appuntamenti già letti dal chiamante, restituisce la lista degli
orari candidati marcati come liberi/occupati.

Passi:
1. finestra del giorno (risolvi_finestra)
2. orari candidati ogni N minuti dentro la finestra (genera_slot)
3. marcatura degli orari già presi (filtra_conflitti)

I giorni della settimana seguono la numerazione 0=domenica ... 6=sabato.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Protocol

from .models import StatoAppuntamento


@dataclass(frozen=True)
class DisponibilitaMedico:
    """Disponibilità settimanale: giorni [dal_giorno, al_giorno], orario [dalle, alle)."""
    dal_giorno: int
    al_giorno: int
    dalle: time
    alle: time


@dataclass(frozen=True)
class FinestraDisponibilita:
    inizio: datetime | None
    fine: datetime | None

    @classmethod
    def vuota(cls) -> "FinestraDisponibilita":
        return cls(inizio=None, fine=None)

    @property
    def is_vuota(self) -> bool:
        return self.inizio is None or self.fine is None or self.inizio >= self.fine


@dataclass(frozen=True)
class SlotOrario:
    orario: datetime
    etichetta: str
    disponibile: bool

    def as_dict(self) -> dict:
        return {
            "orario": self.orario.strftime("%H:%M:%S"),
            "etichetta": self.etichetta,
            "disponibile": self.disponibile,
        }


class AppuntamentoLike(Protocol):
    inizio: datetime
    stato: StatoAppuntamento


def giorno_settimana(giorno: date) -> int:
    """0=domenica, 1=lunedì ... 6=sabato."""
    return giorno.isoweekday() % 7


def risolvi_finestra(disponibilita: DisponibilitaMedico, giorno: date) -> FinestraDisponibilita:
    """
    Converte la disponibilità settimanale nella finestra concreta del giorno.

    L'intervallo dei giorni è chiuso e non fa il giro della settimana
    (dal_giorno=5, al_giorno=1 non copre nessun giorno). Fuori intervallo la
    finestra è vuota: per il chiamante significa "chiuso", non un errore.
    """
    if not disponibilita.dal_giorno <= giorno_settimana(giorno) <= disponibilita.al_giorno:
        return FinestraDisponibilita.vuota()

    inizio = datetime.combine(giorno, disponibilita.dalle)
    fine = datetime.combine(giorno, disponibilita.alle)
    if inizio >= fine:
        return FinestraDisponibilita.vuota()

    return FinestraDisponibilita(inizio=inizio, fine=fine)


def genera_slot(finestra: FinestraDisponibilita, granularita_minuti: int) -> list[datetime]:
    """
    Orari di inizio candidati, dal primo istante della finestra a passi fissi.
    Uno slot entra solo se termina entro la fine della finestra.
    """
    if finestra.is_vuota or granularita_minuti <= 0:
        return []

    passo = timedelta(minutes=granularita_minuti)
    slots: list[datetime] = []
    corrente = finestra.inizio
    while corrente + passo <= finestra.fine:
        slots.append(corrente)
        corrente += passo
    return slots


def filtra_conflitti(
    candidati: Iterable[datetime],
    appuntamenti: Iterable[AppuntamentoLike],
) -> list[SlotOrario]:
    """
    Marca ogni candidato come occupato se esiste un appuntamento non annullato
    che inizia esattamente a quell'ora. La durata della procedura non conta.
    """
    occupati = {a.inizio for a in appuntamenti if a.stato != StatoAppuntamento.ANNULLATO}

    return [
        SlotOrario(orario=c, etichetta=c.strftime("%H:%M"), disponibile=c not in occupati)
        for c in candidati
    ]


def calcola_slot_disponibili(
    disponibilita: DisponibilitaMedico,
    appuntamenti: Iterable[AppuntamentoLike],
    giorno: date,
    granularita_minuti: int,
) -> list[SlotOrario]:
    """Tutti gli orari del giorno (liberi e occupati), in ordine crescente."""
    finestra = risolvi_finestra(disponibilita, giorno)
    candidati = genera_slot(finestra, granularita_minuti)
    return filtra_conflitti(candidati, appuntamenti)
