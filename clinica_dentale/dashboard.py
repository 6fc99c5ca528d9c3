from __future__ import annotations

from datetime import date, datetime, timedelta

from sqlalchemy import and_, func, select

from .db import db_session
from .finanze import riepilogo_finanziario
from .models import Appuntamento, Medico, Paziente, StatoAppuntamento

GIORNI_GRAFICO = 10


def _inizio(giorno: date) -> datetime:
    return datetime.combine(giorno, datetime.min.time())


def get_dashboard(clinica_id: str, dal: date, al: date, oggi: date | None = None) -> dict:
    """
    Indicatori della clinica per il periodo [dal, al]:
    - totali (appuntamenti nel periodo, pazienti, medici attivi)
    - medici con più appuntamenti
    - appuntamenti per procedura
    - appuntamenti di oggi
    - conteggio giornaliero su oggi ± GIORNI_GRAFICO
    - incassi del periodo
    Gli appuntamenti annullati non vengono contati.
    """
    if dal > al:
        raise ValueError("La data iniziale deve precedere la data finale.")
    oggi = oggi or date.today()

    validi = and_(
        Appuntamento.clinica_id == clinica_id,
        Appuntamento.stato != StatoAppuntamento.ANNULLATO,
    )
    nel_periodo = and_(
        validi,
        Appuntamento.inizio >= _inizio(dal),
        Appuntamento.inizio < _inizio(al + timedelta(days=1)),
    )

    with db_session() as s:
        tot_appuntamenti = s.execute(select(func.count(Appuntamento.id)).where(nel_periodo)).scalar_one()
        tot_pazienti = s.execute(
            select(func.count(Paziente.id)).where(Paziente.clinica_id == clinica_id)
        ).scalar_one()
        tot_medici = s.execute(
            select(func.count(Medico.id)).where(and_(Medico.clinica_id == clinica_id, Medico.attivo.is_(True)))
        ).scalar_one()

        n = func.count(Appuntamento.id).label("n")
        top_medici = s.execute(
            select(Medico.id, Medico.nome, n)
            .join(Appuntamento, Appuntamento.medico_id == Medico.id)
            .where(nel_periodo)
            .group_by(Medico.id, Medico.nome)
            .order_by(n.desc(), Medico.nome)
            .limit(5)
        ).all()

        per_procedura = s.execute(
            select(Appuntamento.procedura, func.count(Appuntamento.id))
            .where(nel_periodo)
            .group_by(Appuntamento.procedura)
        ).all()

        di_oggi = s.execute(
            select(Appuntamento.id, Appuntamento.inizio, Appuntamento.stato, Medico.nome, Paziente.nome)
            .join(Medico, Medico.id == Appuntamento.medico_id)
            .join(Paziente, Paziente.id == Appuntamento.paziente_id)
            .where(
                and_(
                    validi,
                    Appuntamento.inizio >= _inizio(oggi),
                    Appuntamento.inizio < _inizio(oggi + timedelta(days=1)),
                )
            )
            .order_by(Appuntamento.inizio.asc())
        ).all()

        primo = oggi - timedelta(days=GIORNI_GRAFICO)
        ultimo = oggi + timedelta(days=GIORNI_GRAFICO)
        inizi = s.scalars(
            select(Appuntamento.inizio).where(
                and_(
                    validi,
                    Appuntamento.inizio >= _inizio(primo),
                    Appuntamento.inizio < _inizio(ultimo + timedelta(days=1)),
                )
            )
        ).all()

    conteggi = {primo + timedelta(days=i): 0 for i in range(2 * GIORNI_GRAFICO + 1)}
    for inizio in inizi:
        conteggi[inizio.date()] += 1

    return {
        "periodo": {"dal": dal.isoformat(), "al": al.isoformat()},
        "totali": {
            "appuntamenti": tot_appuntamenti,
            "pazienti": tot_pazienti,
            "medici": tot_medici,
        },
        "top_medici": [{"id": r[0], "nome": r[1], "appuntamenti": r[2]} for r in top_medici],
        "per_procedura": sorted(
            ({"procedura": p.value, "appuntamenti": c} for p, c in per_procedura),
            key=lambda x: (-x["appuntamenti"], x["procedura"]),
        ),
        "oggi": [
            {
                "id": app_id,
                "inizio": inizio.strftime("%H:%M"),
                "stato": stato.value,
                "medico": medico,
                "paziente": paziente,
            }
            for app_id, inizio, stato, medico, paziente in di_oggi
        ],
        "grafico": [{"giorno": g.isoformat(), "appuntamenti": c} for g, c in conteggi.items()],
        "incassi_cent": riepilogo_finanziario(clinica_id, dal, al)["entrate_cent"],
    }
