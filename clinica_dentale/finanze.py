"""
Finanze della clinica.

- movimenti della clinica (entrate/uscite) con categoria e stato
- estratto conto del paziente (addebiti e pagamenti) e stato di solvibilità
- riepiloghi per la dashboard finanziaria

Tutti gli importi sono in centesimi.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from sqlalchemy import and_, case, func, select, update
from sqlalchemy.orm import Session

from .db import db_session
from .models import (
    Medico,
    MovimentoClinica,
    MovimentoPaziente,
    OperazioneFinanziaria,
    Paziente,
    StatoFinanziarioPaziente,
    StatoMovimento,
    TipoMovimentoPaziente,
)

logger = logging.getLogger(__name__)

CATEGORIE_ENTRATA = (
    "Incasso visita",
    "Incasso procedura",
    "Incasso pacchetto",
    "Acconto paziente",
    "Altre entrate",
)

CATEGORIE_USCITA = (
    "Compenso personale",
    "Acquisto attrezzature",
    "Acquisto materiali",
    "Affitto",
    "Acqua",
    "Luce",
    "Internet/Telefono",
    "Marketing/Pubblicità",
    "Imposte/Tasse",
    "Manutenzione/Riparazioni",
    "Spese amministrative",
    "Altre uscite",
)


def _valida_categoria(operazione: OperazioneFinanziaria, categoria: str) -> None:
    ammesse = CATEGORIE_ENTRATA if operazione == OperazioneFinanziaria.ENTRATA else CATEGORIE_USCITA
    if categoria not in ammesse:
        raise ValueError(f"Categoria '{categoria}' non valida per {operazione.value}.")


def _data_riferimento():
    # data del pagamento se c'è, altrimenti quella di registrazione
    return func.coalesce(MovimentoClinica.pagato_il, MovimentoClinica.creato_il)


def _filtro_periodo(dal: date | None, al: date | None) -> list:
    condizioni = []
    if dal:
        condizioni.append(_data_riferimento() >= datetime.combine(dal, datetime.min.time()))
    if al:
        condizioni.append(_data_riferimento() < datetime.combine(al + timedelta(days=1), datetime.min.time()))
    return condizioni


def _verifica_collegamenti(s: Session, clinica_id: str, paziente_id: str | None, medico_id: str | None) -> None:
    if paziente_id:
        p = s.get(Paziente, paziente_id)
        if not p or p.clinica_id != clinica_id:
            raise ValueError("Paziente non valido.")
    if medico_id:
        m = s.get(Medico, medico_id)
        if not m or m.clinica_id != clinica_id:
            raise ValueError("Medico non valido.")


# =========================
# Movimenti clinica
# =========================
def registra_movimento(
    clinica_id: str,
    operazione: OperazioneFinanziaria,
    categoria: str,
    descrizione: str,
    importo_cent: int,
    stato: StatoMovimento = StatoMovimento.PENDENTE,
    scadenza: date | None = None,
    pagato_il: datetime | None = None,
    metodo_pagamento: str | None = None,
    paziente_id: str | None = None,
    medico_id: str | None = None,
    note: str | None = None,
    creato_da: str | None = None,
) -> int:
    if importo_cent <= 0:
        raise ValueError("L'importo deve essere maggiore di zero.")
    if not descrizione.strip():
        raise ValueError("La descrizione è obbligatoria.")
    _valida_categoria(operazione, categoria)

    if stato == StatoMovimento.PAGATO and pagato_il is None:
        pagato_il = datetime.now()

    with db_session() as s:
        _verifica_collegamenti(s, clinica_id, paziente_id, medico_id)
        mov = MovimentoClinica(
            clinica_id=clinica_id,
            operazione=operazione,
            categoria=categoria,
            descrizione=descrizione.strip(),
            importo_cent=importo_cent,
            stato=stato,
            scadenza=scadenza,
            pagato_il=pagato_il,
            metodo_pagamento=metodo_pagamento,
            paziente_id=paziente_id,
            medico_id=medico_id,
            note=note,
            creato_da=creato_da,
        )
        s.add(mov)
        s.flush()
        logger.info(
            "Movimento %s registrato: %s %s %d cent (%s)",
            mov.id, operazione.value, categoria, importo_cent, stato.value,
        )
        return mov.id


_CAMPI_MOVIMENTO = {
    "categoria", "descrizione", "importo_cent", "stato", "scadenza", "pagato_il",
    "metodo_pagamento", "paziente_id", "medico_id", "note",
}


def aggiorna_movimento(clinica_id: str, movimento_id: int, **campi) -> bool:
    sconosciuti = set(campi) - _CAMPI_MOVIMENTO
    if sconosciuti:
        raise ValueError(f"Campi movimento non validi: {', '.join(sorted(sconosciuti))}")
    if "importo_cent" in campi and campi["importo_cent"] <= 0:
        raise ValueError("L'importo deve essere maggiore di zero.")

    with db_session() as s:
        mov = s.get(MovimentoClinica, movimento_id)
        if not mov or mov.clinica_id != clinica_id:
            return False
        if "categoria" in campi:
            _valida_categoria(mov.operazione, campi["categoria"])
        _verifica_collegamenti(s, clinica_id, campi.get("paziente_id"), campi.get("medico_id"))

        for k, v in campi.items():
            setattr(mov, k, v)
        if mov.stato == StatoMovimento.PAGATO and mov.pagato_il is None:
            mov.pagato_il = datetime.now()
        return True


def elimina_movimento(clinica_id: str, movimento_id: int) -> bool:
    with db_session() as s:
        mov = s.get(MovimentoClinica, movimento_id)
        if not mov or mov.clinica_id != clinica_id:
            return False
        s.delete(mov)
        logger.info("Movimento %s eliminato", movimento_id)
        return True


def lista_movimenti_flat(
    clinica_id: str,
    dal: date | None = None,
    al: date | None = None,
    operazione: OperazioneFinanziaria | None = None,
    stato: StatoMovimento | None = None,
) -> list[dict]:
    condizioni = [MovimentoClinica.clinica_id == clinica_id, *_filtro_periodo(dal, al)]
    if operazione:
        condizioni.append(MovimentoClinica.operazione == operazione)
    if stato:
        condizioni.append(MovimentoClinica.stato == stato)

    with db_session() as s:
        q = (
            select(MovimentoClinica, Paziente.nome.label("paziente_nome"), Medico.nome.label("medico_nome"))
            .outerjoin(Paziente, Paziente.id == MovimentoClinica.paziente_id)
            .outerjoin(Medico, Medico.id == MovimentoClinica.medico_id)
            .where(and_(*condizioni))
            .order_by(MovimentoClinica.creato_il.desc(), MovimentoClinica.id.desc())
        )
        return [
            {
                "id": m.id,
                "operazione": m.operazione.value,
                "categoria": m.categoria,
                "descrizione": m.descrizione,
                "importo_cent": m.importo_cent,
                "stato": m.stato.value,
                "scadenza": m.scadenza.isoformat() if m.scadenza else None,
                "pagato_il": m.pagato_il.isoformat() if m.pagato_il else None,
                "metodo_pagamento": m.metodo_pagamento,
                "paziente": paziente_nome,
                "medico": medico_nome,
            }
            for m, paziente_nome, medico_nome in s.execute(q).all()
        ]


def riepilogo_finanziario(clinica_id: str, dal: date | None = None, al: date | None = None) -> dict:
    """
    Totali della clinica:
    - entrate incassate (ENTRATA + PAGATO)
    - uscite (tutte tranne le rimborsate)
    - saldo = entrate - uscite
    - entrate ancora da incassare (PENDENTE/SCADUTO)
    - debito complessivo dei pazienti (addebiti - pagamenti)
    """
    periodo = _filtro_periodo(dal, al)

    def _somma(s: Session, *condizioni) -> int:
        q = select(func.coalesce(func.sum(MovimentoClinica.importo_cent), 0)).where(
            and_(MovimentoClinica.clinica_id == clinica_id, *periodo, *condizioni)
        )
        return int(s.execute(q).scalar_one())

    with db_session() as s:
        entrate = _somma(
            s,
            MovimentoClinica.operazione == OperazioneFinanziaria.ENTRATA,
            MovimentoClinica.stato == StatoMovimento.PAGATO,
        )
        uscite = _somma(
            s,
            MovimentoClinica.operazione == OperazioneFinanziaria.USCITA,
            MovimentoClinica.stato != StatoMovimento.RIMBORSATO,
        )
        da_incassare = _somma(
            s,
            MovimentoClinica.operazione == OperazioneFinanziaria.ENTRATA,
            MovimentoClinica.stato.in_([StatoMovimento.PENDENTE, StatoMovimento.SCADUTO]),
        )
        debito_pazienti = _saldo_movimenti_paziente(s, MovimentoPaziente.clinica_id == clinica_id)

    return {
        "entrate_cent": entrate,
        "uscite_cent": uscite,
        "saldo_cent": entrate - uscite,
        "da_incassare_cent": da_incassare,
        "debito_pazienti_cent": debito_pazienti,
    }


def pagamenti_per_destinatario(
    clinica_id: str,
    medico_id: str,
    dal: date | None = None,
    al: date | None = None,
) -> list[dict]:
    """Uscite effettivamente pagate a un medico, dalla più recente."""
    condizioni = [
        MovimentoClinica.clinica_id == clinica_id,
        MovimentoClinica.medico_id == medico_id,
        MovimentoClinica.operazione == OperazioneFinanziaria.USCITA,
        MovimentoClinica.stato == StatoMovimento.PAGATO,
    ]
    if dal:
        condizioni.append(MovimentoClinica.pagato_il >= datetime.combine(dal, datetime.min.time()))
    if al:
        condizioni.append(MovimentoClinica.pagato_il < datetime.combine(al + timedelta(days=1), datetime.min.time()))

    with db_session() as s:
        q = select(MovimentoClinica).where(and_(*condizioni)).order_by(MovimentoClinica.pagato_il.desc())
        return [
            {
                "id": m.id,
                "categoria": m.categoria,
                "descrizione": m.descrizione,
                "importo_cent": m.importo_cent,
                "pagato_il": m.pagato_il.isoformat() if m.pagato_il else None,
                "metodo_pagamento": m.metodo_pagamento,
            }
            for m in s.scalars(q)
        ]


# =========================
# Estratto conto paziente
# =========================
def _saldo_movimenti_paziente(s: Session, *condizioni) -> int:
    """Addebiti meno pagamenti sui movimenti che rispettano le condizioni."""
    importo_addebiti = case(
        (MovimentoPaziente.tipo == TipoMovimentoPaziente.ADDEBITO, MovimentoPaziente.importo_cent),
        else_=0,
    )
    importo_pagamenti = case(
        (MovimentoPaziente.tipo == TipoMovimentoPaziente.PAGAMENTO, MovimentoPaziente.importo_cent),
        else_=0,
    )
    q = select(
        func.coalesce(func.sum(importo_addebiti), 0),
        func.coalesce(func.sum(importo_pagamenti), 0),
    ).where(and_(*condizioni))
    addebiti, pagamenti = s.execute(q).one()
    return int(addebiti) - int(pagamenti)


def _salda_addebiti(s: Session, paziente: Paziente) -> None:
    """
    Distribuisce i pagamenti sugli addebiti dal più vecchio: quelli
    interamente coperti passano a PAGATO (anche se già SCADUTI).
    """
    pagato = s.execute(
        select(func.coalesce(func.sum(MovimentoPaziente.importo_cent), 0)).where(
            and_(
                MovimentoPaziente.paziente_id == paziente.id,
                MovimentoPaziente.tipo == TipoMovimentoPaziente.PAGAMENTO,
            )
        )
    ).scalar_one()

    addebiti = s.scalars(
        select(MovimentoPaziente)
        .where(
            and_(
                MovimentoPaziente.paziente_id == paziente.id,
                MovimentoPaziente.tipo == TipoMovimentoPaziente.ADDEBITO,
            )
        )
        .order_by(MovimentoPaziente.creato_il, MovimentoPaziente.id)
    )
    coperto = 0
    for mov in addebiti:
        coperto += mov.importo_cent
        if coperto > pagato:
            break
        if mov.stato in (StatoMovimento.PENDENTE, StatoMovimento.SCADUTO):
            mov.stato = StatoMovimento.PAGATO
    s.flush()


def _aggiorna_stato_finanziario(s: Session, paziente: Paziente) -> None:
    """INADIMPLENTE se ha un saldo a debito e almeno un addebito scaduto non saldato."""
    _salda_addebiti(s, paziente)
    saldo = _saldo_movimenti_paziente(s, MovimentoPaziente.paziente_id == paziente.id)
    scaduti = s.execute(
        select(func.count(MovimentoPaziente.id)).where(
            and_(
                MovimentoPaziente.paziente_id == paziente.id,
                MovimentoPaziente.tipo == TipoMovimentoPaziente.ADDEBITO,
                MovimentoPaziente.stato == StatoMovimento.SCADUTO,
            )
        )
    ).scalar_one()

    nuovo = (
        StatoFinanziarioPaziente.INADIMPLENTE
        if saldo > 0 and scaduti > 0
        else StatoFinanziarioPaziente.ADIMPLENTE
    )
    if paziente.stato_finanziario != nuovo:
        logger.info("Paziente %s: stato finanziario %s -> %s", paziente.id, paziente.stato_finanziario.value, nuovo.value)
        paziente.stato_finanziario = nuovo


def registra_movimento_paziente(
    clinica_id: str,
    paziente_id: str,
    tipo: TipoMovimentoPaziente,
    importo_cent: int,
    descrizione: str | None = None,
    metodo: str | None = None,
    scadenza: date | None = None,
) -> int:
    """
    Addebito (nasce PENDENTE, con scadenza opzionale) o pagamento (senza stato).
    Ricalcola lo stato finanziario del paziente.
    """
    if importo_cent <= 0:
        raise ValueError("L'importo deve essere maggiore di zero.")

    with db_session() as s:
        p = s.get(Paziente, paziente_id)
        if not p or p.clinica_id != clinica_id:
            raise ValueError("Paziente non valido.")

        mov = MovimentoPaziente(
            clinica_id=clinica_id,
            paziente_id=paziente_id,
            tipo=tipo,
            importo_cent=importo_cent,
            descrizione=descrizione,
            metodo=metodo if tipo == TipoMovimentoPaziente.PAGAMENTO else None,
            scadenza=scadenza if tipo == TipoMovimentoPaziente.ADDEBITO else None,
            stato=StatoMovimento.PENDENTE if tipo == TipoMovimentoPaziente.ADDEBITO else None,
        )
        s.add(mov)
        s.flush()
        _aggiorna_stato_finanziario(s, p)
        return mov.id


def saldo_paziente(clinica_id: str, paziente_id: str) -> dict | None:
    with db_session() as s:
        p = s.get(Paziente, paziente_id)
        if not p or p.clinica_id != clinica_id:
            return None
        saldo = _saldo_movimenti_paziente(s, MovimentoPaziente.paziente_id == paziente_id)
        return {
            "paziente_id": paziente_id,
            "saldo_cent": saldo,
            "stato_finanziario": p.stato_finanziario.value,
        }


def lista_movimenti_paziente_flat(clinica_id: str, paziente_id: str) -> list[dict]:
    with db_session() as s:
        q = (
            select(MovimentoPaziente)
            .where(
                and_(
                    MovimentoPaziente.clinica_id == clinica_id,
                    MovimentoPaziente.paziente_id == paziente_id,
                )
            )
            .order_by(MovimentoPaziente.creato_il.desc(), MovimentoPaziente.id.desc())
        )
        return [
            {
                "id": m.id,
                "tipo": m.tipo.value,
                "importo_cent": m.importo_cent,
                "descrizione": m.descrizione,
                "metodo": m.metodo,
                "scadenza": m.scadenza.isoformat() if m.scadenza else None,
                "stato": m.stato.value if m.stato else None,
            }
            for m in s.scalars(q)
        ]


def segna_scaduti(clinica_id: str, oggi: date | None = None) -> int:
    """
    Porta a SCADUTO i movimenti PENDENTI con scadenza passata
    (clinica e addebiti paziente) e aggiorna lo stato dei pazienti coinvolti.
    Ritorna il numero di movimenti aggiornati.
    """
    oggi = oggi or date.today()

    with db_session() as s:
        res_clinica = s.execute(
            update(MovimentoClinica)
            .where(
                and_(
                    MovimentoClinica.clinica_id == clinica_id,
                    MovimentoClinica.stato == StatoMovimento.PENDENTE,
                    MovimentoClinica.scadenza.is_not(None),
                    MovimentoClinica.scadenza < oggi,
                )
            )
            .values(stato=StatoMovimento.SCADUTO)
        )

        scaduti_paz = list(
            s.scalars(
                select(MovimentoPaziente).where(
                    and_(
                        MovimentoPaziente.clinica_id == clinica_id,
                        MovimentoPaziente.tipo == TipoMovimentoPaziente.ADDEBITO,
                        MovimentoPaziente.stato == StatoMovimento.PENDENTE,
                        MovimentoPaziente.scadenza.is_not(None),
                        MovimentoPaziente.scadenza < oggi,
                    )
                )
            )
        )
        for mov in scaduti_paz:
            mov.stato = StatoMovimento.SCADUTO
        s.flush()

        for paziente_id in {m.paziente_id for m in scaduti_paz}:
            _aggiorna_stato_finanziario(s, s.get(Paziente, paziente_id))

        totale = res_clinica.rowcount + len(scaduti_paz)
        if totale:
            logger.info("segna_scaduti: %d movimenti scaduti (clinica=%s)", totale, clinica_id)
        return totale
