"""
Backend applicativo Clinica Dentale (multi-clinica).

Struttura:
- config.py        : variabili d'ambiente (.env) e logging
- db.py            : engine e sessioni SQLAlchemy
- models.py        : modelli ORM e enum
- disponibilita.py : calcolo degli orari prenotabili di un medico (logica pura)
- services.py      : clinica, medici, pazienti, appuntamenti, agenda
- finanze.py       : movimenti della clinica e dei pazienti, riepiloghi
- cartella.py      : anamnesi e odontogramma
- dashboard.py     : indicatori aggregati per la home
- auth_*.py        : utenti, password e token JWT
- api_main.py      : API FastAPI
- seed.py          : dati iniziali (clinica demo, medici, admin)
- cli.py           : operazioni da riga di comando
"""
