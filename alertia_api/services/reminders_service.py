# alertia_api/services/reminders_service.py
"""
Scheduled reminders stored on each obligation (`recordatorios_programados`).

One entry per calendar date:
    {fecha, tipo, enviado, fecha_envio, intentos, error}
"""
from __future__ import annotations

import logging
from datetime import date

from alertia_api.common.auth import SYSTEM_ACTOR
from alertia_api.common.dates import parse_fecha, today as _today, utcnow_iso
from alertia_api.common.errors import APIError, NotFound
from alertia_api.storage import get_adapter
from alertia_api.services import bitacora_service, notifications_service
from alertia_api.services.calendar_service import calcular_calendario, rule_dates, rule_type_for_date

log = logging.getLogger(__name__)

INACTIVOS = ("pausada", "atendida")


def _nuevo(fecha: date, tipo: str) -> dict:
    return {"fecha": fecha.isoformat(), "tipo": tipo, "enviado": False,
            "fecha_envio": None, "intentos": 0, "error": None}


def generar_desde_calendario(obligacion: dict, save: bool = True) -> list[dict]:
    """Adds a reminder for every calendar date not already scheduled. Existing entries are kept as is."""
    if parse_fecha(obligacion.get("fecha_limite")) is None:
        log.warning("obligación %s sin fecha límite válida", obligacion.get("id"))
        return list(obligacion.get("recordatorios_programados") or [])

    a1, a2, a3, a4 = rule_dates(obligacion)
    existentes = {r["fecha"]: r for r in obligacion.get("recordatorios_programados") or [] if r.get("fecha")}
    for f in calcular_calendario(obligacion):
        existentes.setdefault(f.isoformat(), _nuevo(f, rule_type_for_date(f, a1, a2, a3, a4)))

    recordatorios = sorted(existentes.values(), key=lambda r: r["fecha"])
    obligacion["recordatorios_programados"] = recordatorios
    if save:
        get_adapter().save_obligacion({"id": obligacion["id"], "recordatorios_programados": recordatorios})
    return recordatorios


def generar_todos() -> int:
    n = 0
    for obl in get_adapter().get_obligaciones():
        if obl.get("estatus") in INACTIVOS:
            continue
        generar_desde_calendario(obl)
        n += 1
    return n


def pendientes_hoy(today: date | None = None) -> list[tuple[dict, dict]]:
    """(obligacion, recordatorio) pairs due today and not yet sent."""
    hoy = (today or _today()).isoformat()
    out = []
    for obl in get_adapter().get_obligaciones():
        if obl.get("estatus") in INACTIVOS:
            continue
        for r in obl.get("recordatorios_programados") or []:
            if r.get("fecha") == hoy and not r.get("enviado"):
                out.append((obl, r))
    return out


def enviar_pendientes(today: date | None = None) -> dict:
    today = today or _today()
    adapter = get_adapter()
    resultado = {"total": 0, "enviados": 0, "fallidos": 0, "errores": []}

    for obl, r in pendientes_hoy(today):
        resultado["total"] += 1
        r["intentos"] = int(r.get("intentos") or 0) + 1
        try:
            notifications_service.recordatorio_evidencia(obl, today)
        except APIError as e:
            r["error"] = e.message
            resultado["fallidos"] += 1
            resultado["errores"].append({"obligacion_id": obl["id"], "error": e.message})
            log.error("recordatorio para %s falló: %s", obl["id"], e.message)
            adapter.save_obligacion({"id": obl["id"], "recordatorios_programados": obl["recordatorios_programados"]})
            continue

        r.update({"enviado": True, "fecha_envio": utcnow_iso(), "error": None})
        bitacora_service.adjuntar_evento(
            obl, "recordatorio_enviado", "Recordatorio enviado",
            f"Recordatorio {r.get('tipo')} enviado a área {obl.get('area') or 'sin área'}",
            None, {"recordatorio": dict(r)}, actor=SYSTEM_ACTOR,
        )
        adapter.save_obligacion({
            "id": obl["id"],
            "recordatorios_programados": obl["recordatorios_programados"],
            "historial": obl["historial"],
        })
        resultado["enviados"] += 1

    log.info("recordatorios: %s", {k: v for k, v in resultado.items() if k != "errores"})
    return resultado


def reprogramar(obligacion_id: str) -> list[dict]:
    """Drops unsent reminders and regenerates them from the current rules."""
    obl = get_adapter().get_obligacion(obligacion_id)
    if not obl:
        raise NotFound("Obligación", obligacion_id)
    obl["recordatorios_programados"] = [r for r in obl.get("recordatorios_programados") or [] if r.get("enviado")]
    return generar_desde_calendario(obl)
