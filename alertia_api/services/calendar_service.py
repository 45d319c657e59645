# alertia_api/services/calendar_service.py
"""
Alert calendar: turns the four rule dates of an obligation into the list of
days on which a reminder goes out.

Priority is daily > every-2-days > weekly > one-time. A lower rule only covers
the days before the next higher rule starts, and nothing goes past the deadline.
"""
from __future__ import annotations

import hashlib
import json
import logging
from datetime import date, timedelta

from alertia_api.common.dates import parse_fecha, today as _today, utcnow_iso

log = logging.getLogger(__name__)

RULE_KEYS = ("regla_1_vez", "regla_semanal", "regla_saltado", "regla_diaria")
# legacy spreadsheet keys (obligacion["alertas"]) in the same order
LEGACY_KEYS = ("alerta_1", "alerta_2", "alerta_3", "alerta_4")
DEFAULT_THRESHOLDS = {"alerta1": 30, "alerta2": 10, "critica": 5}

ONE_DAY = timedelta(days=1)

__all__ = [
    "parse_fecha", "gen_range", "generate_schedule", "rule_type_for_date", "rule_dates",
    "rules_hash", "calcular_calendario", "obtener_calendario", "fechas_alerta_por_umbral",
    "thresholds",
]


def gen_range(start: date, end: date, step_days: int) -> list[date]:
    """Inclusive range start..end stepping step_days."""
    out = []
    if start is None or end is None or step_days <= 0:
        return out
    cur = start
    step = timedelta(days=step_days)
    while cur <= end:
        out.append(cur)
        cur += step
    return out


def generate_schedule(a1, a2, a3, a4, deadline) -> list[date]:
    """
    a1 one-time, a2 weekly, a3 every 2 days, a4 daily. Any of them may be None.
    Returns sorted unique dates <= deadline; [] without a deadline.
    """
    a1, a2, a3, a4, deadline = (parse_fecha(x) for x in (a1, a2, a3, a4, deadline))
    if deadline is None:
        return []

    fechas: set[date] = set()

    # daily: a4 .. deadline
    if a4 and a4 <= deadline:
        fechas.update(gen_range(a4, deadline, 1))

    # every 2 days: a3 .. day before a4
    if a3 and a3 <= deadline:
        end3 = min(a4 - ONE_DAY, deadline) if a4 else deadline
        fechas.update(gen_range(a3, end3, 2))

    # weekly: a2 .. day before the first of a3/a4
    if a2 and a2 <= deadline:
        limits = [x - ONE_DAY for x in (a3, a4) if x]
        end2 = min(limits + [deadline])
        fechas.update(gen_range(a2, end2, 7))

    # one-time: only when it comes before every higher rule
    if a1 and a1 <= deadline:
        higher = [x for x in (a2, a3, a4) if x]
        if not higher or a1 < min(higher):
            fechas.add(a1)

    return sorted(f for f in fechas if f <= deadline)


def rule_type_for_date(fecha, a1, a2, a3, a4) -> str:
    """Which rule produced `fecha`: diaria | saltado | semanal | 1_vez | desconocido."""
    f = parse_fecha(fecha)
    a1, a2, a3, a4 = (parse_fecha(x) for x in (a1, a2, a3, a4))
    if f is None:
        return "desconocido"
    if a4 and f >= a4:
        return "diaria"
    if a3 and f >= a3 and (f - a3).days % 2 == 0:
        return "saltado"
    if a2 and f >= a2 and (f - a2).days % 7 == 0:
        return "semanal"
    if a1 and f == a1:
        return "1_vez"
    return "desconocido"


def rule_dates(obligacion: dict) -> tuple:
    """(a1, a2, a3, a4) from reglas_alertamiento, falling back to the spreadsheet alert columns."""
    reglas = obligacion.get("reglas_alertamiento") or {}
    legacy = obligacion.get("alertas") or {}
    out = []
    for key, old in zip(RULE_KEYS, LEGACY_KEYS):
        out.append(parse_fecha(reglas.get(key)) or parse_fecha(legacy.get(old)))
    return tuple(out)


def thresholds(obligacion: dict) -> dict:
    reglas = obligacion.get("reglas_alertamiento") or {}
    out = dict(DEFAULT_THRESHOLDS)
    for k in out:
        v = reglas.get(k)
        if v not in (None, ""):
            try:
                out[k] = int(v)
            except (TypeError, ValueError):
                pass
    return out


def rules_hash(obligacion: dict) -> str:
    a1, a2, a3, a4 = rule_dates(obligacion)
    key = {
        "fecha_limite": _iso(parse_fecha(obligacion.get("fecha_limite"))),
        "regla_1_vez": _iso(a1),
        "regla_semanal": _iso(a2),
        "regla_saltado": _iso(a3),
        "regla_diaria": _iso(a4),
    }
    raw = json.dumps(key, sort_keys=True)
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


def calcular_calendario(obligacion: dict) -> list[date]:
    a1, a2, a3, a4 = rule_dates(obligacion)
    return generate_schedule(a1, a2, a3, a4, obligacion.get("fecha_limite"))


def obtener_calendario(obligacion: dict, storage=None, force: bool = False) -> dict:
    """
    Cached calendar for an obligation. The cache lives next to the bitácora
    (calendario.json) and is rebuilt only when the rule dates or deadline change.
    """
    if storage is None:
        from alertia_api.services.file_storage import get_file_storage
        storage = get_file_storage()

    rel = f"{storage.obligation_dir(obligacion['id'])}/calendario.json"
    h = rules_hash(obligacion)
    cached = None if force else storage.read_json(rel)
    if cached and cached.get("reglasHash") == h:
        return cached

    a1, a2, a3, a4 = rule_dates(obligacion)
    fechas = calcular_calendario(obligacion)
    cal = {
        "obligacion_id": obligacion["id"],
        "fechas": [f.isoformat() for f in fechas],
        "detalle": [
            {"fecha": f.isoformat(), "tipo": rule_type_for_date(f, a1, a2, a3, a4)} for f in fechas
        ],
        "reglasHash": h,
        "fechaCalculo": utcnow_iso(),
        "fecha_limite": _iso(parse_fecha(obligacion.get("fecha_limite"))),
        "reglas": {k: _iso(v) for k, v in zip(RULE_KEYS, (a1, a2, a3, a4))},
    }
    storage.save_json(rel, cal)
    log.debug("calendar rebuilt for %s (%d dates)", obligacion["id"], len(fechas))
    return cal


def fechas_alerta_por_umbral(obligacion: dict, today: date | None = None) -> list[date]:
    """deadline - alerta1/alerta2/critica days, keeping only dates from today on."""
    deadline = parse_fecha(obligacion.get("fecha_limite"))
    if deadline is None:
        return []
    ref = today or _today()
    th = thresholds(obligacion)
    out = {deadline - timedelta(days=th[k]) for k in ("alerta1", "alerta2", "critica")}
    return sorted(d for d in out if d >= ref)


def _iso(d):
    return d.isoformat() if d else None
