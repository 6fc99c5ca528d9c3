from __future__ import annotations

from datetime import date, datetime, time
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel, Field

from .cartella import (
    salva_anamnesi,
    salva_odontogramma,
    storico_anamnesi,
    ultima_anamnesi,
    ultimo_odontogramma_flat,
)
from .config import configura_logging
from .dashboard import get_dashboard
from .finanze import (
    aggiorna_movimento,
    elimina_movimento,
    lista_movimenti_flat,
    lista_movimenti_paziente_flat,
    pagamenti_per_destinatario,
    registra_movimento,
    registra_movimento_paziente,
    riepilogo_finanziario,
    saldo_paziente,
    segna_scaduti,
)
from .models import (
    FacciaDente,
    OperazioneFinanziaria,
    Procedura,
    Sesso,
    StatoAppuntamento,
    StatoDente,
    StatoMovimento,
    TipoMovimentoPaziente,
)
from .seed import seed_base
from .services import (
    agenda_giornaliera_flat,
    aggiorna_clinica,
    aggiorna_medico,
    aggiorna_paziente,
    aggiorna_stato_appuntamento,
    annulla_appuntamento,
    clinica_di_utente,
    collega_utente_clinica,
    crea_clinica,
    crea_medico,
    crea_paziente,
    get_clinica_flat,
    get_medico_flat,
    get_paziente_flat,
    init_db,
    lista_appuntamenti_flat,
    lista_medici_flat,
    lista_pazienti_flat,
    orari_disponibili,
    prenota_appuntamento,
    riprogramma_appuntamento,
)

# Import per registrare le tabelle Auth nel metadata
from .auth_models import Utente  # noqa: F401
from .auth_service import autentica, crea_utente, get_utente_by_id
from .auth_security import create_access_token, get_subject

# OAuth2 Bearer (Authorization: Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

app = FastAPI(title="Clinica Dentale API", version="1.0.0")



# Startup

@app.on_event("startup")
def startup() -> None:
    # Logging, tabelle (incluse Utente) e seed base (idempotente)
    configura_logging()
    init_db()
    seed_base()



# Schemi Auth

class RegisterIn(BaseModel):
    username: str
    password: str
    nome: str | None = None


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class MeOut(BaseModel):
    id: str
    username: str
    nome: str | None
    attivo: bool
    clinica_id: str | None



# Schemi Domain

class ClinicaIn(BaseModel):
    nome: str = Field(..., min_length=1)
    responsabile: str = Field(..., min_length=1)
    iscrizione_albo_responsabile: str = Field(..., min_length=1)
    metodi_pagamento: list[str] | None = None
    partita_iva: str | None = None
    telefono: str | None = None
    email: str | None = None
    indirizzo: str | None = None
    citta: str | None = None
    note: str | None = None


class ClinicaUpdateIn(BaseModel):
    nome: str | None = None
    responsabile: str | None = None
    iscrizione_albo_responsabile: str | None = None
    metodi_pagamento: list[str] | None = None
    partita_iva: str | None = None
    telefono: str | None = None
    email: str | None = None
    indirizzo: str | None = None
    citta: str | None = None
    note: str | None = None


class MedicoIn(BaseModel):
    nome: str = Field(..., min_length=1)
    iscrizione_albo: str = Field(..., min_length=1)
    dal_giorno: int = Field(1, ge=0, le=6)
    al_giorno: int = Field(5, ge=0, le=6)
    dalle: time = time(9, 0)
    alle: time = time(18, 0)
    specializzazioni: list[str] | None = None
    prezzo_visita_cent: int = Field(0, ge=0)
    email: str | None = None
    telefono: str | None = None


class MedicoUpdateIn(BaseModel):
    nome: str | None = None
    iscrizione_albo: str | None = None
    dal_giorno: int | None = Field(None, ge=0, le=6)
    al_giorno: int | None = Field(None, ge=0, le=6)
    dalle: time | None = None
    alle: time | None = None
    specializzazioni: list[str] | None = None
    prezzo_visita_cent: int | None = Field(None, ge=0)
    email: str | None = None
    telefono: str | None = None
    attivo: bool | None = None


class PazienteIn(BaseModel):
    nome: str = Field(..., min_length=1)
    email: str | None = None
    telefono: str | None = None
    sesso: Sesso | None = None
    codice_fiscale: str | None = None
    data_nascita: date | None = None
    indirizzo: str | None = None
    citta: str | None = None
    responsabile_nome: str | None = None
    responsabile_telefono: str | None = None


class PazienteUpdateIn(BaseModel):
    nome: str | None = None
    email: str | None = None
    telefono: str | None = None
    sesso: Sesso | None = None
    codice_fiscale: str | None = None
    data_nascita: date | None = None
    indirizzo: str | None = None
    citta: str | None = None
    responsabile_nome: str | None = None
    responsabile_telefono: str | None = None


class AppuntamentoCreateIn(BaseModel):
    paziente_id: str
    medico_id: str
    start: datetime
    procedura: Procedura
    prezzo_cent: int | None = Field(None, ge=0)
    note: str | None = None
    # stessa granularità usata per elencare gli orari (default: quella della clinica)
    granularita: int | None = Field(None, gt=0)


class StatoAppuntamentoIn(BaseModel):
    stato: StatoAppuntamento


class RiprogrammaIn(BaseModel):
    start: datetime
    granularita: int | None = Field(None, gt=0)


class AnnullaIn(BaseModel):
    motivo: str | None = None


class MovimentoIn(BaseModel):
    operazione: OperazioneFinanziaria
    categoria: str
    descrizione: str = Field(..., min_length=1)
    importo_cent: int = Field(..., gt=0)
    stato: StatoMovimento = StatoMovimento.PENDENTE
    scadenza: date | None = None
    pagato_il: datetime | None = None
    metodo_pagamento: str | None = None
    paziente_id: str | None = None
    medico_id: str | None = None
    note: str | None = None


class MovimentoUpdateIn(BaseModel):
    categoria: str | None = None
    descrizione: str | None = None
    importo_cent: int | None = Field(None, gt=0)
    stato: StatoMovimento | None = None
    scadenza: date | None = None
    pagato_il: datetime | None = None
    metodo_pagamento: str | None = None
    note: str | None = None


class MovimentoPazienteIn(BaseModel):
    tipo: TipoMovimentoPaziente
    importo_cent: int = Field(..., gt=0)
    descrizione: str | None = None
    metodo: str | None = None
    scadenza: date | None = None


class AnamnesiIn(BaseModel):
    dati: dict[str, Any]
    anamnesi_id: str | None = None
    finalizza: bool = False


class SegnoIn(BaseModel):
    dente: str
    faccia: FacciaDente
    stato: StatoDente
    osservazione: str | None = None


class OdontogrammaIn(BaseModel):
    medico_id: str
    segni: list[SegnoIn]
    odontogramma_id: str | None = None
    data: date | None = None



# Dipendenze auth

def get_current_user(token: str = Depends(oauth2_scheme)) -> Utente:
    # protezione extra: elimina spazi / virgolette accidentali
    token = token.strip().strip('"').strip("'")

    user_id = get_subject(token)
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token non valido")

    u = get_utente_by_id(user_id)
    if not u or not u.attivo:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Utente non valido")
    return u


def get_clinica_id(user: Utente = Depends(get_current_user)) -> str:
    clinica_id = clinica_di_utente(user.id)
    if not clinica_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Utente non associato a una clinica")
    return clinica_id


def _bad_request(e: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def _not_found(cosa: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{cosa} non trovato")


def _campi(payload: BaseModel) -> dict[str, Any]:
    return payload.model_dump(exclude_unset=True)



# AUTH endpoints

@app.post("/api/auth/register", response_model=dict)
def register(payload: RegisterIn) -> dict[str, Any]:
    try:
        user_id = crea_utente(payload.username, payload.password, payload.nome)
        return {"ok": True, "user_id": user_id}
    except ValueError as e:
        raise _bad_request(e)


@app.post("/api/auth/login", response_model=TokenOut)
def login(form: OAuth2PasswordRequestForm = Depends()) -> TokenOut:
    u = autentica(form.username, form.password)
    if not u:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Credenziali non valide")

    token = create_access_token(utente_id=u.id, extra={"username": u.username})
    return TokenOut(access_token=token)


@app.get("/api/me", response_model=MeOut)
def me(user: Utente = Depends(get_current_user)) -> MeOut:
    return MeOut(
        id=user.id,
        username=user.username,
        nome=user.nome,
        attivo=user.attivo,
        clinica_id=clinica_di_utente(user.id),
    )



# Clinica

@app.post("/api/cliniche", status_code=status.HTTP_201_CREATED)
def api_crea_clinica(payload: ClinicaIn, user: Utente = Depends(get_current_user)) -> dict[str, Any]:
    """Crea una clinica e la collega all'utente corrente."""
    dati = payload.model_dump(exclude={"nome", "responsabile", "iscrizione_albo_responsabile", "metodi_pagamento"})
    try:
        clinica_id = crea_clinica(
            payload.nome,
            payload.responsabile,
            payload.iscrizione_albo_responsabile,
            metodi_pagamento=payload.metodi_pagamento,
            **dati,
        )
    except ValueError as e:
        raise _bad_request(e)
    collega_utente_clinica(user.id, clinica_id)
    return {"ok": True, "clinica_id": clinica_id}


@app.get("/api/clinica")
def api_clinica(clinica_id: str = Depends(get_clinica_id)) -> dict[str, Any]:
    c = get_clinica_flat(clinica_id)
    if not c:
        raise _not_found("Clinica")
    return c


@app.put("/api/clinica")
def api_aggiorna_clinica(payload: ClinicaUpdateIn, clinica_id: str = Depends(get_clinica_id)) -> dict[str, Any]:
    campi = _campi(payload)
    metodi = campi.pop("metodi_pagamento", None)
    try:
        if not aggiorna_clinica(clinica_id, metodi_pagamento=metodi, **campi):
            raise _not_found("Clinica")
    except ValueError as e:
        raise _bad_request(e)
    return {"ok": True}



# Medici

@app.get("/api/medici")
def api_medici(tutti: bool = False, clinica_id: str = Depends(get_clinica_id)) -> list[dict]:
    return lista_medici_flat(clinica_id, solo_attivi=not tutti)


@app.post("/api/medici", status_code=status.HTTP_201_CREATED)
def api_crea_medico(payload: MedicoIn, clinica_id: str = Depends(get_clinica_id)) -> dict[str, Any]:
    try:
        medico_id = crea_medico(clinica_id, **payload.model_dump())
    except ValueError as e:
        raise _bad_request(e)
    return {"ok": True, "medico_id": medico_id}


@app.get("/api/medici/{medico_id}")
def api_medico(medico_id: str, clinica_id: str = Depends(get_clinica_id)) -> dict[str, Any]:
    m = get_medico_flat(clinica_id, medico_id)
    if not m:
        raise _not_found("Medico")
    return m


@app.put("/api/medici/{medico_id}")
def api_aggiorna_medico(
    medico_id: str,
    payload: MedicoUpdateIn,
    clinica_id: str = Depends(get_clinica_id),
) -> dict[str, Any]:
    try:
        if not aggiorna_medico(clinica_id, medico_id, **_campi(payload)):
            raise _not_found("Medico")
    except ValueError as e:
        raise _bad_request(e)
    return {"ok": True}


@app.get("/api/medici/{medico_id}/orari")
def api_orari_medico(
    medico_id: str,
    giorno: date = Query(...),
    granularita: int | None = Query(None, gt=0),
    clinica_id: str = Depends(get_clinica_id),
) -> list[dict]:
    """Orari del giorno, liberi e occupati: [{orario, etichetta, disponibile}]."""
    slots = orari_disponibili(clinica_id, medico_id, giorno, granularita)
    if slots is None:
        raise _not_found("Medico")
    return [x.as_dict() for x in slots]


@app.get("/api/medici/{medico_id}/pagamenti")
def api_pagamenti_medico(
    medico_id: str,
    dal: date | None = None,
    al: date | None = None,
    clinica_id: str = Depends(get_clinica_id),
) -> list[dict]:
    if not get_medico_flat(clinica_id, medico_id):
        raise _not_found("Medico")
    return pagamenti_per_destinatario(clinica_id, medico_id, dal, al)



# Pazienti

@app.get("/api/pazienti")
def api_pazienti(clinica_id: str = Depends(get_clinica_id)) -> list[dict]:
    return lista_pazienti_flat(clinica_id)


@app.post("/api/pazienti", status_code=status.HTTP_201_CREATED)
def api_crea_paziente(payload: PazienteIn, clinica_id: str = Depends(get_clinica_id)) -> dict[str, Any]:
    try:
        pid = crea_paziente(clinica_id, **payload.model_dump(exclude_none=True))
    except ValueError as e:
        raise _bad_request(e)
    return {"ok": True, "paziente_id": pid}


@app.get("/api/pazienti/{paziente_id}")
def api_paziente(paziente_id: str, clinica_id: str = Depends(get_clinica_id)) -> dict[str, Any]:
    p = get_paziente_flat(clinica_id, paziente_id)
    if not p:
        raise _not_found("Paziente")
    return p


@app.put("/api/pazienti/{paziente_id}")
def api_aggiorna_paziente(
    paziente_id: str,
    payload: PazienteUpdateIn,
    clinica_id: str = Depends(get_clinica_id),
) -> dict[str, Any]:
    try:
        if not aggiorna_paziente(clinica_id, paziente_id, **_campi(payload)):
            raise _not_found("Paziente")
    except ValueError as e:
        raise _bad_request(e)
    return {"ok": True}



# Appuntamenti

@app.post("/api/appuntamenti", status_code=status.HTTP_201_CREATED)
def api_crea_appuntamento(payload: AppuntamentoCreateIn, clinica_id: str = Depends(get_clinica_id)) -> dict[str, Any]:
    esito = prenota_appuntamento(
        clinica_id=clinica_id,
        paziente_id=payload.paziente_id,
        medico_id=payload.medico_id,
        start=payload.start,
        procedura=payload.procedura,
        prezzo_cent=payload.prezzo_cent,
        note=payload.note,
        granularita_minuti=payload.granularita,
    )
    if not esito.ok:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=esito.messaggio)
    return {"ok": True, "messaggio": esito.messaggio, "appuntamento_id": esito.appuntamento_id}


@app.get("/api/appuntamenti")
def api_appuntamenti(
    dal: date | None = None,
    al: date | None = None,
    medico_id: str | None = None,
    stato: StatoAppuntamento | None = None,
    clinica_id: str = Depends(get_clinica_id),
) -> list[dict]:
    return lista_appuntamenti_flat(clinica_id, dal=dal, al=al, medico_id=medico_id, stato=stato)


@app.patch("/api/appuntamenti/{appuntamento_id}/stato")
def api_stato_appuntamento(
    appuntamento_id: str,
    payload: StatoAppuntamentoIn,
    clinica_id: str = Depends(get_clinica_id),
) -> dict[str, Any]:
    if not aggiorna_stato_appuntamento(clinica_id, appuntamento_id, payload.stato):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Stato non aggiornato")
    return {"ok": True}


@app.post("/api/appuntamenti/{appuntamento_id}/riprogramma")
def api_riprogramma(
    appuntamento_id: str,
    payload: RiprogrammaIn,
    clinica_id: str = Depends(get_clinica_id),
) -> dict[str, Any]:
    esito = riprogramma_appuntamento(clinica_id, appuntamento_id, payload.start, payload.granularita)
    if not esito.ok:
        if esito.appuntamento_id is None:
            raise _not_found("Appuntamento")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=esito.messaggio)
    return {"ok": True, "messaggio": esito.messaggio}


@app.post("/api/appuntamenti/{appuntamento_id}/annulla")
def api_annulla(
    appuntamento_id: str,
    payload: AnnullaIn,
    clinica_id: str = Depends(get_clinica_id),
) -> dict[str, Any]:
    if not annulla_appuntamento(clinica_id, appuntamento_id, motivo=payload.motivo):
        raise _not_found("Appuntamento")
    return {"ok": True}


@app.get("/api/agenda")
def api_agenda(
    medico_id: str = Query(...),
    giorno: date = Query(...),
    clinica_id: str = Depends(get_clinica_id),
) -> list[dict]:
    return agenda_giornaliera_flat(clinica_id, medico_id, giorno)



# Finanze

@app.get("/api/finanze/movimenti")
def api_movimenti(
    dal: date | None = None,
    al: date | None = None,
    operazione: OperazioneFinanziaria | None = None,
    stato: StatoMovimento | None = None,
    clinica_id: str = Depends(get_clinica_id),
) -> list[dict]:
    return lista_movimenti_flat(clinica_id, dal=dal, al=al, operazione=operazione, stato=stato)


@app.post("/api/finanze/movimenti", status_code=status.HTTP_201_CREATED)
def api_registra_movimento(
    payload: MovimentoIn,
    user: Utente = Depends(get_current_user),
    clinica_id: str = Depends(get_clinica_id),
) -> dict[str, Any]:
    try:
        mov_id = registra_movimento(clinica_id, creato_da=user.id, **payload.model_dump())
    except ValueError as e:
        raise _bad_request(e)
    return {"ok": True, "movimento_id": mov_id}


@app.put("/api/finanze/movimenti/{movimento_id}")
def api_aggiorna_movimento(
    movimento_id: int,
    payload: MovimentoUpdateIn,
    clinica_id: str = Depends(get_clinica_id),
) -> dict[str, Any]:
    try:
        if not aggiorna_movimento(clinica_id, movimento_id, **_campi(payload)):
            raise _not_found("Movimento")
    except ValueError as e:
        raise _bad_request(e)
    return {"ok": True}


@app.delete("/api/finanze/movimenti/{movimento_id}")
def api_elimina_movimento(movimento_id: int, clinica_id: str = Depends(get_clinica_id)) -> dict[str, Any]:
    if not elimina_movimento(clinica_id, movimento_id):
        raise _not_found("Movimento")
    return {"ok": True}


@app.get("/api/finanze/riepilogo")
def api_riepilogo(
    dal: date | None = None,
    al: date | None = None,
    clinica_id: str = Depends(get_clinica_id),
) -> dict[str, Any]:
    return riepilogo_finanziario(clinica_id, dal, al)


@app.post("/api/finanze/scaduti")
def api_segna_scaduti(clinica_id: str = Depends(get_clinica_id)) -> dict[str, Any]:
    return {"ok": True, "aggiornati": segna_scaduti(clinica_id)}


@app.get("/api/pazienti/{paziente_id}/movimenti")
def api_movimenti_paziente(paziente_id: str, clinica_id: str = Depends(get_clinica_id)) -> list[dict]:
    if not get_paziente_flat(clinica_id, paziente_id):
        raise _not_found("Paziente")
    return lista_movimenti_paziente_flat(clinica_id, paziente_id)


@app.post("/api/pazienti/{paziente_id}/movimenti", status_code=status.HTTP_201_CREATED)
def api_registra_movimento_paziente(
    paziente_id: str,
    payload: MovimentoPazienteIn,
    clinica_id: str = Depends(get_clinica_id),
) -> dict[str, Any]:
    if not get_paziente_flat(clinica_id, paziente_id):
        raise _not_found("Paziente")
    try:
        mov_id = registra_movimento_paziente(clinica_id, paziente_id, **payload.model_dump())
    except ValueError as e:
        raise _bad_request(e)
    return {"ok": True, "movimento_id": mov_id}


@app.get("/api/pazienti/{paziente_id}/saldo")
def api_saldo_paziente(paziente_id: str, clinica_id: str = Depends(get_clinica_id)) -> dict[str, Any]:
    saldo = saldo_paziente(clinica_id, paziente_id)
    if saldo is None:
        raise _not_found("Paziente")
    return saldo



# Cartella clinica

@app.post("/api/pazienti/{paziente_id}/anamnesi")
def api_salva_anamnesi(
    paziente_id: str,
    payload: AnamnesiIn,
    user: Utente = Depends(get_current_user),
    clinica_id: str = Depends(get_clinica_id),
) -> dict[str, Any]:
    a = salva_anamnesi(
        clinica_id,
        paziente_id,
        payload.dati,
        utente_id=user.id,
        anamnesi_id=payload.anamnesi_id,
        finalizza=payload.finalizza,
    )
    if a is None:
        raise _not_found("Paziente o anamnesi")
    return a


@app.get("/api/pazienti/{paziente_id}/anamnesi")
def api_ultima_anamnesi(paziente_id: str, clinica_id: str = Depends(get_clinica_id)) -> dict[str, Any]:
    a = ultima_anamnesi(clinica_id, paziente_id)
    if a is None:
        raise _not_found("Anamnesi")
    return a


@app.get("/api/pazienti/{paziente_id}/anamnesi/storico")
def api_storico_anamnesi(paziente_id: str, clinica_id: str = Depends(get_clinica_id)) -> list[dict]:
    return storico_anamnesi(clinica_id, paziente_id)


@app.post("/api/pazienti/{paziente_id}/odontogramma")
def api_salva_odontogramma(
    paziente_id: str,
    payload: OdontogrammaIn,
    clinica_id: str = Depends(get_clinica_id),
) -> dict[str, Any]:
    try:
        oid = salva_odontogramma(
            clinica_id,
            paziente_id,
            payload.medico_id,
            [x.model_dump() for x in payload.segni],
            odontogramma_id=payload.odontogramma_id,
            data=payload.data,
        )
    except ValueError as e:
        raise _bad_request(e)
    if oid is None:
        raise _not_found("Paziente o odontogramma")
    return {"ok": True, "odontogramma_id": oid}


@app.get("/api/pazienti/{paziente_id}/odontogramma")
def api_odontogramma(paziente_id: str, clinica_id: str = Depends(get_clinica_id)) -> dict[str, Any]:
    o = ultimo_odontogramma_flat(clinica_id, paziente_id)
    if o is None:
        raise _not_found("Odontogramma")
    return o



# Dashboard

@app.get("/api/dashboard")
def api_dashboard(
    dal: date = Query(...),
    al: date = Query(...),
    clinica_id: str = Depends(get_clinica_id),
) -> dict[str, Any]:
    try:
        return get_dashboard(clinica_id, dal, al)
    except ValueError as e:
        raise _bad_request(e)
