from __future__ import annotations

import enum
import uuid
from datetime import date, datetime, time

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def new_uuid() -> str:
    return str(uuid.uuid4())


class StatoAppuntamento(enum.Enum):
    AGENDATO = "AGENDATO"
    RIPROGRAMMATO = "RIPROGRAMMATO"
    ANNULLATO = "ANNULLATO"
    ESEGUITO = "ESEGUITO"
    NON_PRESENTATO = "NON_PRESENTATO"


class Procedura(enum.Enum):
    PRIMA_VISITA = "Prima visita"
    IGIENE = "Igiene (profilassi)"
    OTTURAZIONE = "Otturazione"
    ESTRAZIONE = "Estrazione"
    DEVITALIZZAZIONE = "Devitalizzazione (endodonzia)"
    SBIANCAMENTO = "Sbiancamento"
    IMPIANTO = "Impianto"
    CONTROLLO = "Controllo"


class Sesso(enum.Enum):
    M = "M"
    F = "F"


class StatoFinanziarioPaziente(enum.Enum):
    ADIMPLENTE = "ADIMPLENTE"
    INADIMPLENTE = "INADIMPLENTE"


class OperazioneFinanziaria(enum.Enum):
    ENTRATA = "ENTRATA"
    USCITA = "USCITA"


class StatoMovimento(enum.Enum):
    PENDENTE = "PENDENTE"
    PAGATO = "PAGATO"
    SCADUTO = "SCADUTO"
    RIMBORSATO = "RIMBORSATO"


class TipoMovimentoPaziente(enum.Enum):
    ADDEBITO = "ADDEBITO"
    PAGAMENTO = "PAGAMENTO"


class StatoAnamnesi(enum.Enum):
    BOZZA = "BOZZA"
    FINALIZZATA = "FINALIZZATA"


class FacciaDente(enum.Enum):
    VESTIBOLARE = "VESTIBOLARE"
    LINGUALE = "LINGUALE"
    MESIALE = "MESIALE"
    DISTALE = "DISTALE"
    OCCLUSALE = "OCCLUSALE"
    INCISALE = "INCISALE"


class StatoDente(enum.Enum):
    CARIE = "CARIE"
    OTTURAZIONE = "OTTURAZIONE"
    CANALE = "CANALE"
    ESTRAZIONE = "ESTRAZIONE"
    PROTESI = "PROTESI"
    IMPIANTO = "IMPIANTO"
    ASSENTE = "ASSENTE"
    SANO = "SANO"


class Clinica(Base):
    __tablename__ = "cliniche"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    partita_iva: Mapped[str | None] = mapped_column(String(20), nullable=True)
    responsabile: Mapped[str] = mapped_column(String(120), nullable=False)
    iscrizione_albo_responsabile: Mapped[str] = mapped_column(String(30), nullable=False)
    # es. "Contanti,Bancomat,Carta di credito"
    metodi_pagamento: Mapped[str] = mapped_column(String(255), nullable=False, default="Contanti")
    telefono: Mapped[str | None] = mapped_column(String(30), nullable=True)
    email: Mapped[str | None] = mapped_column(String(120), nullable=True)
    indirizzo: Mapped[str | None] = mapped_column(String(255), nullable=True)
    citta: Mapped[str | None] = mapped_column(String(80), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    creata_il: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    medici: Mapped[list["Medico"]] = relationship(back_populates="clinica", cascade="all, delete-orphan")
    pazienti: Mapped[list["Paziente"]] = relationship(back_populates="clinica", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"Clinica({self.nome})"


class UtenteClinica(Base):
    __tablename__ = "utenti_cliniche"

    utente_id: Mapped[str] = mapped_column(ForeignKey("utenti.id", ondelete="CASCADE"), primary_key=True)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("cliniche.id", ondelete="CASCADE"), primary_key=True)
    creato_il: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Medico(Base):
    __tablename__ = "medici"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("cliniche.id"), nullable=False)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    iscrizione_albo: Mapped[str] = mapped_column(String(30), nullable=False)
    email: Mapped[str | None] = mapped_column(String(120), nullable=True)
    telefono: Mapped[str | None] = mapped_column(String(30), nullable=True)
    specializzazioni: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    prezzo_visita_cent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attivo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # disponibilità settimanale (0=domenica ... 6=sabato)
    dal_giorno: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    al_giorno: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    dalle: Mapped[time] = mapped_column(Time, nullable=False, default=time(9, 0))
    alle: Mapped[time] = mapped_column(Time, nullable=False, default=time(18, 0))

    clinica: Mapped["Clinica"] = relationship(back_populates="medici")
    appuntamenti: Mapped[list["Appuntamento"]] = relationship(back_populates="medico", cascade="all, delete-orphan")

    @property
    def disponibilita(self):
        from .disponibilita import DisponibilitaMedico

        return DisponibilitaMedico(
            dal_giorno=self.dal_giorno,
            al_giorno=self.al_giorno,
            dalle=self.dalle,
            alle=self.alle,
        )

    def __repr__(self) -> str:
        return f"Medico({self.nome}, {self.iscrizione_albo})"


class Paziente(Base):
    __tablename__ = "pazienti"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("cliniche.id"), nullable=False)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str | None] = mapped_column(String(120), nullable=True)
    telefono: Mapped[str | None] = mapped_column(String(30), nullable=True)
    sesso: Mapped[Sesso | None] = mapped_column(Enum(Sesso), nullable=True)
    codice_fiscale: Mapped[str | None] = mapped_column(String(16), nullable=True)
    data_nascita: Mapped[date | None] = mapped_column(Date, nullable=True)
    indirizzo: Mapped[str | None] = mapped_column(String(255), nullable=True)
    citta: Mapped[str | None] = mapped_column(String(80), nullable=True)

    # per i minori
    responsabile_nome: Mapped[str | None] = mapped_column(String(120), nullable=True)
    responsabile_telefono: Mapped[str | None] = mapped_column(String(30), nullable=True)

    stato_finanziario: Mapped[StatoFinanziarioPaziente] = mapped_column(
        Enum(StatoFinanziarioPaziente), default=StatoFinanziarioPaziente.ADIMPLENTE, nullable=False
    )
    creato_il: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    clinica: Mapped["Clinica"] = relationship(back_populates="pazienti")
    appuntamenti: Mapped[list["Appuntamento"]] = relationship(back_populates="paziente", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"Paziente({self.nome})"


class Appuntamento(Base):
    __tablename__ = "appuntamenti"
    __table_args__ = (
        # slot_attivo è NULL per gli annullati: i NULL non collidono, lo slot torna prenotabile
        UniqueConstraint("medico_id", "inizio", "slot_attivo", name="uq_app_medico_inizio"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    clinica_id: Mapped[str] = mapped_column(ForeignKey("cliniche.id"), nullable=False)
    paziente_id: Mapped[str] = mapped_column(ForeignKey("pazienti.id"), nullable=False)
    medico_id: Mapped[str] = mapped_column(ForeignKey("medici.id"), nullable=False)

    inizio: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    stato: Mapped[StatoAppuntamento] = mapped_column(
        Enum(StatoAppuntamento), default=StatoAppuntamento.AGENDATO, nullable=False
    )
    procedura: Mapped[Procedura] = mapped_column(Enum(Procedura), nullable=False)
    prezzo_cent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    slot_attivo: Mapped[bool | None] = mapped_column(Boolean, nullable=True, default=True)

    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    creato_il: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    paziente: Mapped["Paziente"] = relationship(back_populates="appuntamenti")
    medico: Mapped["Medico"] = relationship(back_populates="appuntamenti")


class MovimentoClinica(Base):
    __tablename__ = "movimenti_clinica"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("cliniche.id"), nullable=False)

    operazione: Mapped[OperazioneFinanziaria] = mapped_column(Enum(OperazioneFinanziaria), nullable=False)
    categoria: Mapped[str] = mapped_column(String(80), nullable=False)
    descrizione: Mapped[str] = mapped_column(Text, nullable=False)
    importo_cent: Mapped[int] = mapped_column(Integer, nullable=False)

    scadenza: Mapped[date | None] = mapped_column(Date, nullable=True)
    pagato_il: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    stato: Mapped[StatoMovimento] = mapped_column(
        Enum(StatoMovimento), default=StatoMovimento.PENDENTE, nullable=False
    )
    metodo_pagamento: Mapped[str | None] = mapped_column(String(60), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    # opzionali: entrata da paziente / pagamento a medico
    paziente_id: Mapped[str | None] = mapped_column(ForeignKey("pazienti.id", ondelete="SET NULL"), nullable=True)
    medico_id: Mapped[str | None] = mapped_column(ForeignKey("medici.id", ondelete="SET NULL"), nullable=True)

    creato_da: Mapped[str | None] = mapped_column(ForeignKey("utenti.id"), nullable=True)
    creato_il: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class MovimentoPaziente(Base):
    __tablename__ = "movimenti_paziente"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("cliniche.id"), nullable=False)
    paziente_id: Mapped[str] = mapped_column(ForeignKey("pazienti.id", ondelete="CASCADE"), nullable=False)

    tipo: Mapped[TipoMovimentoPaziente] = mapped_column(Enum(TipoMovimentoPaziente), nullable=False)
    importo_cent: Mapped[int] = mapped_column(Integer, nullable=False)
    descrizione: Mapped[str | None] = mapped_column(Text, nullable=True)
    metodo: Mapped[str | None] = mapped_column(String(60), nullable=True)  # solo per PAGAMENTO
    scadenza: Mapped[date | None] = mapped_column(Date, nullable=True)     # solo per ADDEBITO
    stato: Mapped[StatoMovimento | None] = mapped_column(Enum(StatoMovimento), nullable=True)

    creato_il: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Anamnesi(Base):
    __tablename__ = "anamnesi"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("cliniche.id"), nullable=False)
    paziente_id: Mapped[str] = mapped_column(ForeignKey("pazienti.id", ondelete="CASCADE"), nullable=False)
    creato_da: Mapped[str | None] = mapped_column(ForeignKey("utenti.id"), nullable=True)

    versione: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    stato: Mapped[StatoAnamnesi] = mapped_column(Enum(StatoAnamnesi), default=StatoAnamnesi.BOZZA, nullable=False)
    riepilogo: Mapped[str | None] = mapped_column(Text, nullable=True)
    dati: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    creata_il: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    aggiornata_il: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Odontogramma(Base):
    __tablename__ = "odontogrammi"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("cliniche.id"), nullable=False)
    paziente_id: Mapped[str] = mapped_column(ForeignKey("pazienti.id", ondelete="CASCADE"), nullable=False)
    medico_id: Mapped[str] = mapped_column(ForeignKey("medici.id"), nullable=False)
    data: Mapped[date] = mapped_column(Date, nullable=False)
    creato_il: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    segni: Mapped[list["SegnoOdontogramma"]] = relationship(
        back_populates="odontogramma", cascade="all, delete-orphan", order_by="SegnoOdontogramma.id"
    )


class SegnoOdontogramma(Base):
    __tablename__ = "segni_odontogramma"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    odontogramma_id: Mapped[str] = mapped_column(ForeignKey("odontogrammi.id", ondelete="CASCADE"), nullable=False)
    dente: Mapped[str] = mapped_column(String(2), nullable=False)  # notazione FDI, es. "36"
    faccia: Mapped[FacciaDente] = mapped_column(Enum(FacciaDente), nullable=False)
    stato: Mapped[StatoDente] = mapped_column(Enum(StatoDente), nullable=False)
    osservazione: Mapped[str | None] = mapped_column(Text, nullable=True)

    odontogramma: Mapped["Odontogramma"] = relationship(back_populates="segni")
