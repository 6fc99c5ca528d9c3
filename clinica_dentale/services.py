from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import SLOT_GRANULARITA_MINUTI
from . import db
from .db import Base, db_session
from .disponibilita import SlotOrario, calcola_slot_disponibili
from .models import (
    Appuntamento,
    Clinica,
    Medico,
    Paziente,
    Procedura,
    Sesso,
    StatoAppuntamento,
    UtenteClinica,
)

logger = logging.getLogger(__name__)


# =========================
# Bootstrap DB
# =========================
def init_db() -> None:
    """Crea le tabelle se non esistono."""
    from . import auth_models  # noqa: F401  registra la tabella utenti nel metadata

    Base.metadata.create_all(bind=db.engine)


# =========================
# Helper / DTO
# =========================
@dataclass(frozen=True)
class EsitoPrenotazione:
    ok: bool
    appuntamento_id: str | None
    messaggio: str


def _to_time(valore: time | str) -> time:
    """Accetta time oppure stringa HH:MM / HH:MM:SS."""
    if isinstance(valore, time):
        return valore
    try:
        return time.fromisoformat(valore.strip())
    except (AttributeError, ValueError):
        raise ValueError(f"Orario non valido: {valore!r}")


def _locale(dt: datetime) -> datetime:
    # gli orari sono "da parete" della clinica: il fuso eventualmente inviato si ignora
    return dt.replace(tzinfo=None) if dt.tzinfo is not None else dt


def _valida_disponibilita(dal_giorno: int, al_giorno: int, dalle: time, alle: time) -> None:
    for g in (dal_giorno, al_giorno):
        if not 0 <= g <= 6:
            raise ValueError(f"Giorno della settimana non valido: {g} (0=domenica ... 6=sabato).")
    if dalle >= alle:
        raise ValueError("L'orario di inizio deve precedere l'orario di fine.")


def _join(valori: list[str] | None) -> str:
    return ",".join(v.strip() for v in (valori or []) if v and v.strip())


def _split(valore: str | None) -> list[str]:
    return [v for v in (valore or "").split(",") if v]


def _granularita(granularita_minuti: int | None) -> int:
    # None = default della clinica; 0 o negativo restano tali (nessuno slot)
    return SLOT_GRANULARITA_MINUTI if granularita_minuti is None else granularita_minuti


# =========================
# Clinica e accessi
# =========================
_CAMPI_CLINICA = {
    "nome", "partita_iva", "responsabile", "iscrizione_albo_responsabile",
    "telefono", "email", "indirizzo", "citta", "note",
}


def crea_clinica(
    nome: str,
    responsabile: str,
    iscrizione_albo_responsabile: str,
    metodi_pagamento: list[str] | None = None,
    **altri: str | None,
) -> str:
    if not nome.strip() or not responsabile.strip() or not iscrizione_albo_responsabile.strip():
        raise ValueError("Nome clinica, responsabile e iscrizione albo sono obbligatori.")
    sconosciuti = set(altri) - _CAMPI_CLINICA
    if sconosciuti:
        raise ValueError(f"Campi clinica non validi: {', '.join(sorted(sconosciuti))}")

    with db_session() as s:
        c = Clinica(
            nome=nome.strip(),
            responsabile=responsabile.strip(),
            iscrizione_albo_responsabile=iscrizione_albo_responsabile.strip(),
            metodi_pagamento=_join(metodi_pagamento) or "Contanti",
            **altri,
        )
        s.add(c)
        s.flush()
        logger.info("Clinica creata: %s (%s)", c.nome, c.id)
        return c.id


def aggiorna_clinica(clinica_id: str, metodi_pagamento: list[str] | None = None, **campi: str | None) -> bool:
    sconosciuti = set(campi) - _CAMPI_CLINICA
    if sconosciuti:
        raise ValueError(f"Campi clinica non validi: {', '.join(sorted(sconosciuti))}")

    with db_session() as s:
        c = s.get(Clinica, clinica_id)
        if not c:
            return False
        for k, v in campi.items():
            if k in ("nome", "responsabile", "iscrizione_albo_responsabile") and not (v or "").strip():
                raise ValueError(f"Il campo '{k}' è obbligatorio.")
            setattr(c, k, v)
        if metodi_pagamento is not None:
            if not _join(metodi_pagamento):
                raise ValueError("Selezionare almeno un metodo di pagamento.")
            c.metodi_pagamento = _join(metodi_pagamento)
        return True


def get_clinica_flat(clinica_id: str) -> dict | None:
    with db_session() as s:
        c = s.get(Clinica, clinica_id)
        if not c:
            return None
        return {
            "id": c.id,
            "nome": c.nome,
            "partita_iva": c.partita_iva,
            "responsabile": c.responsabile,
            "iscrizione_albo_responsabile": c.iscrizione_albo_responsabile,
            "metodi_pagamento": _split(c.metodi_pagamento),
            "telefono": c.telefono,
            "email": c.email,
            "indirizzo": c.indirizzo,
            "citta": c.citta,
            "note": c.note,
        }


def trova_clinica(nome: str) -> str | None:
    with db_session() as s:
        return s.scalars(select(Clinica.id).where(Clinica.nome == nome.strip()).limit(1)).first()


def collega_utente_clinica(utente_id: str, clinica_id: str) -> None:
    """Associa un utente a una clinica (idempotente)."""
    with db_session() as s:
        if s.get(UtenteClinica, (utente_id, clinica_id)) is None:
            s.add(UtenteClinica(utente_id=utente_id, clinica_id=clinica_id))


def clinica_di_utente(utente_id: str) -> str | None:
    """Prima clinica (in ordine di associazione) a cui l'utente ha accesso."""
    with db_session() as s:
        return s.scalars(
            select(UtenteClinica.clinica_id)
            .where(UtenteClinica.utente_id == utente_id)
            .order_by(UtenteClinica.creato_il.asc())
            .limit(1)
        ).first()


# =========================
# Medici
# =========================
def _medico_flat(m: Medico) -> dict:
    return {
        "id": m.id,
        "nome": m.nome,
        "iscrizione_albo": m.iscrizione_albo,
        "email": m.email,
        "telefono": m.telefono,
        "specializzazioni": _split(m.specializzazioni),
        "prezzo_visita_cent": m.prezzo_visita_cent,
        "attivo": m.attivo,
        "dal_giorno": m.dal_giorno,
        "al_giorno": m.al_giorno,
        "dalle": m.dalle.strftime("%H:%M:%S"),
        "alle": m.alle.strftime("%H:%M:%S"),
    }


def crea_medico(
    clinica_id: str,
    nome: str,
    iscrizione_albo: str,
    dal_giorno: int = 1,
    al_giorno: int = 5,
    dalle: time | str = "09:00",
    alle: time | str = "18:00",
    specializzazioni: list[str] | None = None,
    prezzo_visita_cent: int = 0,
    email: str | None = None,
    telefono: str | None = None,
) -> str:
    if not nome.strip() or not iscrizione_albo.strip():
        raise ValueError("Nome e iscrizione all'albo sono obbligatori.")
    if prezzo_visita_cent < 0:
        raise ValueError("Il prezzo della visita non può essere negativo.")
    dalle, alle = _to_time(dalle), _to_time(alle)
    _valida_disponibilita(dal_giorno, al_giorno, dalle, alle)

    with db_session() as s:
        if s.get(Clinica, clinica_id) is None:
            raise ValueError("Clinica non trovata.")
        m = Medico(
            clinica_id=clinica_id,
            nome=nome.strip(),
            iscrizione_albo=iscrizione_albo.strip(),
            dal_giorno=dal_giorno,
            al_giorno=al_giorno,
            dalle=dalle,
            alle=alle,
            specializzazioni=_join(specializzazioni),
            prezzo_visita_cent=prezzo_visita_cent,
            email=email,
            telefono=telefono,
        )
        s.add(m)
        s.flush()
        return m.id


_CAMPI_MEDICO = {
    "nome", "iscrizione_albo", "email", "telefono", "prezzo_visita_cent", "attivo",
    "dal_giorno", "al_giorno", "dalle", "alle", "specializzazioni",
}


def aggiorna_medico(clinica_id: str, medico_id: str, **campi) -> bool:
    """Aggiorna i dati del medico; la disponibilità risultante viene rivalidata per intero."""
    sconosciuti = set(campi) - _CAMPI_MEDICO
    if sconosciuti:
        raise ValueError(f"Campi medico non validi: {', '.join(sorted(sconosciuti))}")

    with db_session() as s:
        m = s.get(Medico, medico_id)
        if not m or m.clinica_id != clinica_id:
            return False

        if "dalle" in campi:
            campi["dalle"] = _to_time(campi["dalle"])
        if "alle" in campi:
            campi["alle"] = _to_time(campi["alle"])
        if "specializzazioni" in campi:
            campi["specializzazioni"] = _join(campi["specializzazioni"])

        _valida_disponibilita(
            campi.get("dal_giorno", m.dal_giorno),
            campi.get("al_giorno", m.al_giorno),
            campi.get("dalle", m.dalle),
            campi.get("alle", m.alle),
        )
        for k, v in campi.items():
            setattr(m, k, v)
        return True


def lista_medici_flat(clinica_id: str, solo_attivi: bool = True) -> list[dict]:
    with db_session() as s:
        q = select(Medico).where(Medico.clinica_id == clinica_id)
        if solo_attivi:
            q = q.where(Medico.attivo.is_(True))
        return [_medico_flat(m) for m in s.scalars(q.order_by(Medico.nome))]


def get_medico_flat(clinica_id: str, medico_id: str) -> dict | None:
    with db_session() as s:
        m = s.get(Medico, medico_id)
        if not m or m.clinica_id != clinica_id:
            return None
        return _medico_flat(m)


# =========================
# Pazienti
# =========================
_CAMPI_PAZIENTE = {
    "nome", "email", "telefono", "sesso", "codice_fiscale", "data_nascita",
    "indirizzo", "citta", "responsabile_nome", "responsabile_telefono",
}


def _paziente_flat(p: Paziente) -> dict:
    return {
        "id": p.id,
        "nome": p.nome,
        "email": p.email,
        "telefono": p.telefono,
        "sesso": p.sesso.value if p.sesso else None,
        "codice_fiscale": p.codice_fiscale,
        "data_nascita": p.data_nascita.isoformat() if p.data_nascita else None,
        "indirizzo": p.indirizzo,
        "citta": p.citta,
        "responsabile_nome": p.responsabile_nome,
        "responsabile_telefono": p.responsabile_telefono,
        "stato_finanziario": p.stato_finanziario.value,
    }


def crea_paziente(clinica_id: str, nome: str, email: str | None = None, telefono: str | None = None, **altri) -> str:
    if not nome.strip():
        raise ValueError("Il nome del paziente è obbligatorio.")
    sconosciuti = set(altri) - _CAMPI_PAZIENTE
    if sconosciuti:
        raise ValueError(f"Campi paziente non validi: {', '.join(sorted(sconosciuti))}")
    if isinstance(altri.get("sesso"), str):
        altri["sesso"] = Sesso(altri["sesso"])

    with db_session() as s:
        if s.get(Clinica, clinica_id) is None:
            raise ValueError("Clinica non trovata.")
        p = Paziente(clinica_id=clinica_id, nome=nome.strip(), email=email, telefono=telefono, **altri)
        s.add(p)
        s.flush()
        return p.id


def aggiorna_paziente(clinica_id: str, paziente_id: str, **campi) -> bool:
    sconosciuti = set(campi) - _CAMPI_PAZIENTE
    if sconosciuti:
        raise ValueError(f"Campi paziente non validi: {', '.join(sorted(sconosciuti))}")
    if "nome" in campi and not (campi["nome"] or "").strip():
        raise ValueError("Il nome del paziente è obbligatorio.")
    if isinstance(campi.get("sesso"), str):
        campi["sesso"] = Sesso(campi["sesso"])

    with db_session() as s:
        p = s.get(Paziente, paziente_id)
        if not p or p.clinica_id != clinica_id:
            return False
        for k, v in campi.items():
            setattr(p, k, v)
        return True


def lista_pazienti_flat(clinica_id: str) -> list[dict]:
    with db_session() as s:
        q = select(Paziente).where(Paziente.clinica_id == clinica_id).order_by(Paziente.nome)
        return [_paziente_flat(p) for p in s.scalars(q)]


def get_paziente_flat(clinica_id: str, paziente_id: str) -> dict | None:
    with db_session() as s:
        p = s.get(Paziente, paziente_id)
        if not p or p.clinica_id != clinica_id:
            return None
        return _paziente_flat(p)


# =========================
# Appuntamenti: letture
# =========================
def _query_giorno(s: Session, medico_id: str, giorno: date, includi_annullati: bool) -> list[Appuntamento]:
    inizio = datetime.combine(giorno, datetime.min.time())
    fine = inizio + timedelta(days=1)

    condizioni = [
        Appuntamento.medico_id == medico_id,
        Appuntamento.inizio >= inizio,
        Appuntamento.inizio < fine,
    ]
    if not includi_annullati:
        condizioni.append(Appuntamento.stato != StatoAppuntamento.ANNULLATO)

    q = select(Appuntamento).where(and_(*condizioni)).order_by(Appuntamento.inizio.asc())
    return list(s.scalars(q))


def appuntamenti_del_giorno(
    clinica_id: str,
    medico_id: str,
    giorno: date,
    includi_annullati: bool = False,
) -> list[Appuntamento]:
    with db_session() as s:
        return [
            a for a in _query_giorno(s, medico_id, giorno, includi_annullati)
            if a.clinica_id == clinica_id
        ]


def orari_disponibili(
    clinica_id: str,
    medico_id: str,
    giorno: date,
    granularita_minuti: int | None = None,
) -> list[SlotOrario] | None:
    """
    Orari del giorno per il medico, liberi e occupati.
    None se il medico non esiste (o non appartiene alla clinica).
    """
    with db_session() as s:
        m = s.get(Medico, medico_id)
        if not m or m.clinica_id != clinica_id:
            return None
        disponibilita = m.disponibilita
        appuntamenti = _query_giorno(s, medico_id, giorno, includi_annullati=False)

    return calcola_slot_disponibili(
        disponibilita,
        appuntamenti,
        giorno,
        _granularita(granularita_minuti),
    )


def agenda_giornaliera_flat(clinica_id: str, medico_id: str, giorno: date) -> list[dict]:
    """
    Versione 'flat': ritorna dict serializzabili.
    Evita lazy-load e DetachedInstanceError.
    """
    start_day = datetime.combine(giorno, datetime.min.time())
    end_day = start_day + timedelta(days=1)

    with db_session() as s:
        q = (
            select(
                Appuntamento.id,
                Appuntamento.inizio,
                Appuntamento.stato,
                Appuntamento.procedura,
                Appuntamento.note,
                Paziente.nome.label("paziente_nome"),
            )
            .join(Paziente, Paziente.id == Appuntamento.paziente_id)
            .where(
                and_(
                    Appuntamento.clinica_id == clinica_id,
                    Appuntamento.medico_id == medico_id,
                    Appuntamento.inizio >= start_day,
                    Appuntamento.inizio < end_day,
                    Appuntamento.stato != StatoAppuntamento.ANNULLATO,
                )
            )
            .order_by(Appuntamento.inizio.asc())
        )

        rows = s.execute(q).all()
        return [
            {
                "id": r.id,
                "inizio": r.inizio.strftime("%H:%M"),
                "stato": r.stato.value,
                "procedura": r.procedura.value,
                "note": r.note,
                "paziente": r.paziente_nome,
            }
            for r in rows
        ]


def lista_appuntamenti_flat(
    clinica_id: str,
    dal: date | None = None,
    al: date | None = None,
    medico_id: str | None = None,
    stato: StatoAppuntamento | None = None,
) -> list[dict]:
    condizioni = [Appuntamento.clinica_id == clinica_id]
    if dal:
        condizioni.append(Appuntamento.inizio >= datetime.combine(dal, datetime.min.time()))
    if al:
        condizioni.append(Appuntamento.inizio < datetime.combine(al + timedelta(days=1), datetime.min.time()))
    if medico_id:
        condizioni.append(Appuntamento.medico_id == medico_id)
    if stato:
        condizioni.append(Appuntamento.stato == stato)

    with db_session() as s:
        q = (
            select(
                Appuntamento.id,
                Appuntamento.inizio,
                Appuntamento.stato,
                Appuntamento.procedura,
                Appuntamento.prezzo_cent,
                Medico.id.label("medico_id"),
                Medico.nome.label("medico_nome"),
                Paziente.id.label("paziente_id"),
                Paziente.nome.label("paziente_nome"),
            )
            .join(Medico, Medico.id == Appuntamento.medico_id)
            .join(Paziente, Paziente.id == Appuntamento.paziente_id)
            .where(and_(*condizioni))
            .order_by(Appuntamento.inizio.desc())
        )
        return [
            {
                "id": r.id,
                "inizio": r.inizio.isoformat(),
                "stato": r.stato.value,
                "procedura": r.procedura.value,
                "prezzo_cent": r.prezzo_cent,
                "medico_id": r.medico_id,
                "medico": r.medico_nome,
                "paziente_id": r.paziente_id,
                "paziente": r.paziente_nome,
            }
            for r in s.execute(q).all()
        ]


# =========================
# Prenotazione (use case core)
# =========================
def _verifica_slot(
    s: Session,
    medico: Medico,
    start: datetime,
    escludi_appuntamento: str | None = None,
    granularita_minuti: int | None = None,
) -> str | None:
    """
    Ritorna None se lo slot è prenotabile, altrimenti il motivo.
    La griglia è la stessa di orari_disponibili con la stessa granularità.
    """
    appuntamenti = [
        a for a in _query_giorno(s, medico.id, start.date(), includi_annullati=False)
        if a.id != escludi_appuntamento
    ]
    slots = calcola_slot_disponibili(
        medico.disponibilita, appuntamenti, start.date(), _granularita(granularita_minuti)
    )
    slot = next((x for x in slots if x.orario == start), None)
    if slot is None:
        return "Orario fuori dalla disponibilità del medico."
    if not slot.disponibile:
        return "Orario già occupato."
    return None


def prenota_appuntamento(
    clinica_id: str,
    paziente_id: str,
    medico_id: str,
    start: datetime,
    procedura: Procedura,
    prezzo_cent: int | None = None,
    note: str | None = None,
    granularita_minuti: int | None = None,
) -> EsitoPrenotazione:
    """
    Use case: Prenotare appuntamento.
    - verifica medico e paziente della clinica
    - lo start deve essere uno degli orari liberi calcolati per quel giorno
    - il vincolo univoco (medico, inizio) su DB copre le prenotazioni concorrenti
    """
    start = _locale(start)

    with db_session() as s:
        medico = s.get(Medico, medico_id)
        if not medico or medico.clinica_id != clinica_id or not medico.attivo:
            return EsitoPrenotazione(False, None, "Medico non valido.")

        paziente = s.get(Paziente, paziente_id)
        if not paziente or paziente.clinica_id != clinica_id:
            return EsitoPrenotazione(False, None, "Paziente non valido.")

        motivo = _verifica_slot(s, medico, start, granularita_minuti=granularita_minuti)
        if motivo:
            logger.info("Prenotazione rifiutata (medico=%s, %s): %s", medico_id, start.isoformat(), motivo)
            return EsitoPrenotazione(False, None, motivo)

        app = Appuntamento(
            clinica_id=clinica_id,
            paziente_id=paziente_id,
            medico_id=medico_id,
            inizio=start,
            stato=StatoAppuntamento.AGENDATO,
            procedura=procedura,
            prezzo_cent=medico.prezzo_visita_cent if prezzo_cent is None else prezzo_cent,
            note=note,
        )
        s.add(app)
        try:
            s.flush()
        except IntegrityError:
            # un'altra richiesta ha preso lo stesso slot tra la lettura e l'insert
            s.rollback()
            logger.warning("Doppia prenotazione evitata dal vincolo DB (medico=%s, %s)", medico_id, start.isoformat())
            return EsitoPrenotazione(False, None, "Orario già occupato.")

        logger.info("Appuntamento %s prenotato (medico=%s, %s)", app.id, medico_id, start.isoformat())
        return EsitoPrenotazione(True, app.id, f"Appuntamento confermato per {start.strftime('%d/%m/%Y %H:%M')}.")


def riprogramma_appuntamento(
    clinica_id: str,
    appuntamento_id: str,
    nuovo_inizio: datetime,
    granularita_minuti: int | None = None,
) -> EsitoPrenotazione:
    nuovo_inizio = _locale(nuovo_inizio)

    with db_session() as s:
        app = s.get(Appuntamento, appuntamento_id)
        if not app or app.clinica_id != clinica_id:
            return EsitoPrenotazione(False, None, "Appuntamento non trovato.")
        if app.stato == StatoAppuntamento.ANNULLATO:
            return EsitoPrenotazione(False, app.id, "Appuntamento annullato: non può essere riprogrammato.")

        medico = s.get(Medico, app.medico_id)
        motivo = _verifica_slot(
            s, medico, nuovo_inizio, escludi_appuntamento=app.id, granularita_minuti=granularita_minuti
        )
        if motivo:
            return EsitoPrenotazione(False, app.id, motivo)

        app.inizio = nuovo_inizio
        app.stato = StatoAppuntamento.RIPROGRAMMATO
        try:
            s.flush()
        except IntegrityError:
            s.rollback()
            return EsitoPrenotazione(False, appuntamento_id, "Orario già occupato.")

        logger.info("Appuntamento %s riprogrammato a %s", app.id, nuovo_inizio.isoformat())
        return EsitoPrenotazione(True, app.id, f"Appuntamento spostato a {nuovo_inizio.strftime('%d/%m/%Y %H:%M')}.")


def aggiorna_stato_appuntamento(clinica_id: str, appuntamento_id: str, stato: StatoAppuntamento) -> bool:
    """
    Cambia lo stato. L'annullamento libera lo slot (slot_attivo=NULL);
    riattivare un annullato riesce solo se lo slot è ancora libero.
    """
    with db_session() as s:
        app = s.get(Appuntamento, appuntamento_id)
        if not app or app.clinica_id != clinica_id:
            return False

        app.stato = stato
        app.slot_attivo = None if stato == StatoAppuntamento.ANNULLATO else True
        try:
            s.flush()
        except IntegrityError:
            s.rollback()
            logger.info("Riattivazione di %s rifiutata: slot occupato", appuntamento_id)
            return False
        return True


def annulla_appuntamento(clinica_id: str, appuntamento_id: str, motivo: str | None = None) -> bool:
    """
    Use case: Annullare appuntamento.
    - imposta stato ANNULLATO e libera lo slot
    - annota il motivo
    """
    with db_session() as s:
        app = s.get(Appuntamento, appuntamento_id)
        if not app or app.clinica_id != clinica_id or app.stato == StatoAppuntamento.ANNULLATO:
            return False

        app.stato = StatoAppuntamento.ANNULLATO
        app.slot_attivo = None
        if motivo:
            app.note = f"{app.note}\nAnnullato: {motivo}" if app.note else f"Annullato: {motivo}"

        logger.info("Appuntamento %s annullato", appuntamento_id)
        return True
