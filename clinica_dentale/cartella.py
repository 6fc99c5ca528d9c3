"""
Cartella clinica del paziente: anamnesi (versionata) e odontogramma.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from .db import db_session
from .models import (
    Anamnesi,
    FacciaDente,
    Medico,
    Odontogramma,
    Paziente,
    SegnoOdontogramma,
    StatoAnamnesi,
    StatoDente,
)

logger = logging.getLogger(__name__)


def _paziente_della_clinica(s: Session, clinica_id: str, paziente_id: str) -> Paziente | None:
    p = s.get(Paziente, paziente_id)
    if not p or p.clinica_id != clinica_id:
        return None
    return p


# =========================
# Anamnesi
# =========================
def genera_riepilogo(dati: dict[str, Any]) -> str:
    motivo = (dati.get("motivo_principale") or "").strip() or "Nessun motivo principale registrato"
    condizioni = [str(c) for c in dati.get("condizioni_note") or [] if c]
    if condizioni:
        elenco = ", ".join(c.replace("_", " ").capitalize() for c in condizioni)
    else:
        elenco = "Nessuna condizione nota"
    return f"Motivo: {motivo}. Condizioni: {elenco}."


def _anamnesi_flat(a: Anamnesi) -> dict:
    return {
        "id": a.id,
        "paziente_id": a.paziente_id,
        "versione": a.versione,
        "stato": a.stato.value,
        "riepilogo": a.riepilogo,
        "dati": a.dati,
        "creato_da": a.creato_da,
        "creata_il": a.creata_il.isoformat(),
        "aggiornata_il": a.aggiornata_il.isoformat() if a.aggiornata_il else None,
    }


def _prossima_versione(s: Session, paziente_id: str) -> int:
    ultima = s.execute(
        select(func.max(Anamnesi.versione)).where(Anamnesi.paziente_id == paziente_id)
    ).scalar_one()
    return (ultima or 0) + 1


def salva_anamnesi(
    clinica_id: str,
    paziente_id: str,
    dati: dict[str, Any],
    utente_id: str | None = None,
    anamnesi_id: str | None = None,
    finalizza: bool = False,
) -> dict | None:
    """
    Salva l'anamnesi del paziente.
    - con anamnesi_id di una BOZZA: modifica in place
    - con anamnesi_id di una FINALIZZATA (o senza id): crea una nuova versione
    None se paziente o anamnesi non appartengono alla clinica.
    """
    stato = StatoAnamnesi.FINALIZZATA if finalizza else StatoAnamnesi.BOZZA

    with db_session() as s:
        if _paziente_della_clinica(s, clinica_id, paziente_id) is None:
            return None

        if anamnesi_id:
            esistente = s.get(Anamnesi, anamnesi_id)
            if not esistente or esistente.clinica_id != clinica_id or esistente.paziente_id != paziente_id:
                return None
            if esistente.stato == StatoAnamnesi.BOZZA:
                esistente.dati = dict(dati)
                esistente.riepilogo = genera_riepilogo(dati)
                esistente.stato = stato
                esistente.aggiornata_il = datetime.utcnow()
                s.flush()
                return _anamnesi_flat(esistente)

        a = Anamnesi(
            clinica_id=clinica_id,
            paziente_id=paziente_id,
            creato_da=utente_id,
            versione=_prossima_versione(s, paziente_id),
            stato=stato,
            riepilogo=genera_riepilogo(dati),
            dati=dict(dati),
        )
        s.add(a)
        s.flush()
        logger.info("Anamnesi v%d salvata per paziente %s (%s)", a.versione, paziente_id, stato.value)
        return _anamnesi_flat(a)


def ultima_anamnesi(clinica_id: str, paziente_id: str) -> dict | None:
    with db_session() as s:
        a = s.scalars(
            select(Anamnesi)
            .where(and_(Anamnesi.clinica_id == clinica_id, Anamnesi.paziente_id == paziente_id))
            .order_by(Anamnesi.versione.desc())
            .limit(1)
        ).first()
        return _anamnesi_flat(a) if a else None


def storico_anamnesi(clinica_id: str, paziente_id: str) -> list[dict]:
    with db_session() as s:
        q = (
            select(Anamnesi)
            .where(and_(Anamnesi.clinica_id == clinica_id, Anamnesi.paziente_id == paziente_id))
            .order_by(Anamnesi.versione.desc())
        )
        return [_anamnesi_flat(a) for a in s.scalars(q)]


# =========================
# Odontogramma
# =========================
def dente_valido(dente: str) -> bool:
    """Notazione FDI: permanenti 11-48, decidui 51-85."""
    if len(dente) != 2 or not dente.isdigit():
        return False
    quadrante, numero = int(dente[0]), int(dente[1])
    if 1 <= quadrante <= 4:
        return 1 <= numero <= 8
    if 5 <= quadrante <= 8:
        return 1 <= numero <= 5
    return False


def _normalizza_segno(segno: dict[str, Any]) -> SegnoOdontogramma:
    dente = str(segno.get("dente", "")).strip()
    if not dente_valido(dente):
        raise ValueError(f"Dente non valido: {dente!r}")
    try:
        faccia = FacciaDente(segno["faccia"]) if not isinstance(segno.get("faccia"), FacciaDente) else segno["faccia"]
        stato = StatoDente(segno["stato"]) if not isinstance(segno.get("stato"), StatoDente) else segno["stato"]
    except (KeyError, ValueError):
        raise ValueError(f"Faccia o stato non validi per il dente {dente}.")
    return SegnoOdontogramma(dente=dente, faccia=faccia, stato=stato, osservazione=segno.get("osservazione"))


def salva_odontogramma(
    clinica_id: str,
    paziente_id: str,
    medico_id: str,
    segni: list[dict[str, Any]],
    odontogramma_id: str | None = None,
    data: date | None = None,
) -> str | None:
    """
    Crea un odontogramma o ne sostituisce i segni.
    None se paziente/odontogramma non appartengono alla clinica.
    """
    nuovi_segni = [_normalizza_segno(x) for x in segni]

    with db_session() as s:
        if _paziente_della_clinica(s, clinica_id, paziente_id) is None:
            return None
        m = s.get(Medico, medico_id)
        if not m or m.clinica_id != clinica_id:
            raise ValueError("Medico non valido.")

        if odontogramma_id:
            o = s.get(Odontogramma, odontogramma_id)
            if not o or o.clinica_id != clinica_id or o.paziente_id != paziente_id:
                return None
            o.segni.clear()
            o.medico_id = medico_id
            if data:
                o.data = data
        else:
            o = Odontogramma(
                clinica_id=clinica_id,
                paziente_id=paziente_id,
                medico_id=medico_id,
                data=data or date.today(),
            )
            s.add(o)

        o.segni.extend(nuovi_segni)
        s.flush()
        logger.info("Odontogramma %s salvato (%d segni)", o.id, len(nuovi_segni))
        return o.id


def ultimo_odontogramma_flat(clinica_id: str, paziente_id: str) -> dict | None:
    with db_session() as s:
        o = s.scalars(
            select(Odontogramma)
            .where(and_(Odontogramma.clinica_id == clinica_id, Odontogramma.paziente_id == paziente_id))
            .order_by(Odontogramma.data.desc(), Odontogramma.creato_il.desc())
            .limit(1)
        ).first()
        if not o:
            return None
        return {
            "id": o.id,
            "paziente_id": o.paziente_id,
            "medico_id": o.medico_id,
            "data": o.data.isoformat(),
            "segni": [
                {
                    "dente": x.dente,
                    "faccia": x.faccia.value,
                    "stato": x.stato.value,
                    "osservazione": x.osservazione,
                }
                for x in o.segni
            ],
        }
