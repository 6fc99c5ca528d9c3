from __future__ import annotations

import argparse
import os
from datetime import date, datetime

from .auth_service import disattiva_utente
from .config import configura_logging
from .finanze import riepilogo_finanziario
from .models import Procedura
from .seed import CLINICA_DEMO, seed_base
from .services import (
    annulla_appuntamento,
    crea_paziente,
    init_db,
    lista_appuntamenti_flat,
    lista_medici_flat,
    lista_pazienti_flat,
    orari_disponibili,
    prenota_appuntamento,
    trova_clinica,
)


def _euro(cent: int) -> str:
    return f"{cent / 100:.2f} €"


def _clinica_id(args: argparse.Namespace) -> str:
    clinica_id = args.clinica_id or trova_clinica(CLINICA_DEMO)
    if not clinica_id:
        raise SystemExit("Nessuna clinica: esegui prima 'init' o passa --clinica-id.")
    return clinica_id


def cmd_init(args: argparse.Namespace) -> None:
    init_db()
    seed_base()
    print("DB inizializzato e seed completato.")


def cmd_list(args: argparse.Namespace) -> None:
    clinica_id = _clinica_id(args)
    if args.entity == "medici":
        for m in lista_medici_flat(clinica_id, solo_attivi=False):
            stato = "" if m["attivo"] else " (non attivo)"
            print(
                f"{m['id']} | {m['nome']} | giorni {m['dal_giorno']}-{m['al_giorno']} "
                f"{m['dalle'][:5]}-{m['alle'][:5]}{stato}"
            )
    elif args.entity == "pazienti":
        for p in lista_pazienti_flat(clinica_id):
            print(f"{p['id']} | {p['nome']} | {p['email'] or '-'} | {p['stato_finanziario']}")
    elif args.entity == "appuntamenti":
        for a in lista_appuntamenti_flat(clinica_id):
            print(f"{a['id']} | {a['inizio']} | {a['medico']} | {a['paziente']} | {a['procedura']} | {a['stato']}")


def cmd_add_patient(args: argparse.Namespace) -> None:
    pid = crea_paziente(_clinica_id(args), args.nome, args.email, args.telefono)
    print(f"Paziente creato: {pid}")


def cmd_slots(args: argparse.Namespace) -> None:
    giorno = date.fromisoformat(args.giorno)
    slots = orari_disponibili(_clinica_id(args), args.medico_id, giorno, args.granularita)
    if slots is None:
        print("Medico non trovato.")
        return
    if not slots:
        print("Nessun orario: il medico non lavora in questo giorno.")
        return
    for x in slots:
        print(f"{x.etichetta}  {'libero' if x.disponibile else 'occupato'}")


def cmd_book(args: argparse.Namespace) -> None:
    start = datetime.fromisoformat(args.start)  # formato: 2026-01-14T10:30
    esito = prenota_appuntamento(
        clinica_id=_clinica_id(args),
        paziente_id=args.paziente_id,
        medico_id=args.medico_id,
        start=start,
        procedura=Procedura[args.procedura],
        note=args.note,
        granularita_minuti=args.granularita,
    )
    print(esito.messaggio)
    if esito.appuntamento_id:
        print(f"Appuntamento ID: {esito.appuntamento_id}")


def cmd_cancel(args: argparse.Namespace) -> None:
    ok = annulla_appuntamento(_clinica_id(args), args.appuntamento_id, motivo=args.motivo)
    print("Annullato." if ok else "Non trovato / già annullato.")


def cmd_summary(args: argparse.Namespace) -> None:
    dal = date.fromisoformat(args.dal) if args.dal else None
    al = date.fromisoformat(args.al) if args.al else None
    r = riepilogo_finanziario(_clinica_id(args), dal, al)
    print(f"Entrate:           {_euro(r['entrate_cent'])}")
    print(f"Uscite:            {_euro(r['uscite_cent'])}")
    print(f"Saldo:             {_euro(r['saldo_cent'])}")
    print(f"Da incassare:      {_euro(r['da_incassare_cent'])}")
    print(f"Debito pazienti:   {_euro(r['debito_pazienti_cent'])}")


def cmd_disable_user(args: argparse.Namespace) -> None:
    ok = disattiva_utente(args.username)
    print(f"OK: utente '{args.username}' disattivato." if ok else "Utente non trovato / già disattivo.")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="clinica_dentale", description="CLI Clinica Dentale (operazioni di segreteria)")
    p.add_argument("--clinica-id", default=os.getenv("CLINICA_ID"), help="Default: clinica demo del seed")
    sub = p.add_subparsers(required=True)

    p_init = sub.add_parser("init", help="Crea DB e carica seed")
    p_init.set_defaults(func=cmd_init)

    p_list = sub.add_parser("list", help="Lista entità")
    p_list.add_argument("entity", choices=["medici", "pazienti", "appuntamenti"])
    p_list.set_defaults(func=cmd_list)

    p_addp = sub.add_parser("add-patient", help="Crea paziente")
    p_addp.add_argument("--nome", required=True)
    p_addp.add_argument("--email", default=None)
    p_addp.add_argument("--telefono", default=None)
    p_addp.set_defaults(func=cmd_add_patient)

    p_slots = sub.add_parser("slots", help="Orari del medico in un giorno")
    p_slots.add_argument("--medico-id", required=True)
    p_slots.add_argument("--giorno", required=True, help="ISO date es: 2026-01-14")
    p_slots.add_argument("--granularita", type=int, default=None, help="Minuti tra due orari")
    p_slots.set_defaults(func=cmd_slots)

    p_book = sub.add_parser("book", help="Prenota appuntamento")
    p_book.add_argument("--paziente-id", required=True)
    p_book.add_argument("--medico-id", required=True)
    p_book.add_argument("--start", required=True, help="ISO datetime es: 2026-01-14T10:30")
    p_book.add_argument("--procedura", choices=[x.name for x in Procedura], default=Procedura.PRIMA_VISITA.name)
    p_book.add_argument("--note", default=None)
    p_book.add_argument("--granularita", type=int, default=None, help="Minuti tra due orari (come per slots)")
    p_book.set_defaults(func=cmd_book)

    p_cancel = sub.add_parser("cancel", help="Annulla appuntamento")
    p_cancel.add_argument("--appuntamento-id", required=True)
    p_cancel.add_argument("--motivo", default=None)
    p_cancel.set_defaults(func=cmd_cancel)

    p_sum = sub.add_parser("summary", help="Riepilogo finanziario")
    p_sum.add_argument("--dal", default=None, help="ISO date")
    p_sum.add_argument("--al", default=None, help="ISO date")
    p_sum.set_defaults(func=cmd_summary)

    p_dis = sub.add_parser("disable-user", help="Disattiva un utente (non può più fare login)")
    p_dis.add_argument("username")
    p_dis.set_defaults(func=cmd_disable_user)

    return p


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configura_logging()
    init_db()  # garantisce tabelle
    args.func(args)


if __name__ == "__main__":
    main()
