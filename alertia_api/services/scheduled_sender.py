# alertia_api/services/scheduled_sender.py
"""
Unattended daily dispatch.

run_scheduled_send() is one stateless pass: read configuration, find the active
obligations whose calendar has today in it, send one email each, and record the
result. It is triggered by the `flask alertia send-scheduled` command, by
POST /api/v1/envios/automatico or by the in-process scheduler (services/scheduler.py).
"""
from __future__ import annotations

import logging
from datetime import date, datetime

from alertia_api.common.auth import SYSTEM_ACTOR
from alertia_api.common.dates import days_until, local_date, local_to_utc, now_local, parse_fecha
from alertia_api.common.errors import APIError
from alertia_api.common.ids import millis
from alertia_api.storage import get_adapter
from alertia_api.services import alerts_service, audit_service, config_service, email_template, envios_service
from alertia_api.services.calendar_service import calcular_calendario, fechas_alerta_por_umbral, thresholds
from alertia_api.services.notifications_service import email_responsable, enviar_correo

log = logging.getLogger(__name__)


def es_activa(obligacion: dict) -> bool:
    return obligacion.get("estatus") in (None, "", "activa")


def fechas_de_envio(obligacion: dict, today: date) -> list[date]:
    """Calendar dates from the rule dates; threshold offsets when no rule date is set."""
    fechas = calcular_calendario(obligacion)
    return fechas or fechas_alerta_por_umbral(obligacion, today)


def tipo_para_envio(obligacion: dict, today: date) -> str:
    dias = days_until(obligacion.get("fecha_limite"), today)
    return alerts_service.tipo_alerta(dias, thresholds(obligacion)) or alerts_service.TIPO_1RA


def _enviada_hoy(alertas: list[dict], today: date) -> bool:
    return any(
        (a.get("estado") == "enviada" and parse_fecha(a.get("fecha")) == today)
        or local_date(a.get("fecha_envio")) == today
        for a in alertas
    )


def should_run(config: dict, now: datetime, last_run: date | None = None) -> bool:
    """
    True when automatic sends are on, the configured HH:MM is within a minute
    of `now` and nothing ran yet today.
    """
    if not config.get("envios_automaticos"):
        return False
    if last_run == now.date():
        return False
    try:
        hh, mm = (int(x) for x in str(config.get("hora_envio") or "09:00").split(":"))
    except ValueError:
        return False
    target = now.replace(hour=hh, minute=mm, second=0, microsecond=0)
    return abs((now - target).total_seconds()) <= 60


def run_scheduled_send(now: datetime | None = None, force: bool = False) -> dict:
    now = now or now_local()
    today = now.date()
    config = config_service.get_configuracion()

    if not config.get("envios_automaticos") and not force:
        return {"success": True, "message": "Envíos automáticos desactivados", "enviados": 0}
    if today.weekday() >= 5 and not config.get("enviar_fines_semana") and not force:
        return {"success": True, "message": "Es fin de semana, envíos desactivados", "enviados": 0}

    adapter = get_adapter()
    activas = [o for o in adapter.get_obligaciones() if es_activa(o)]
    if not activas:
        return {"success": True, "message": "No hay obligaciones activas", "enviados": 0}

    pendientes = []
    for obl in activas:
        try:
            if today not in fechas_de_envio(obl, today):
                continue
            if _enviada_hoy(adapter.get_alertas({"obligacion_id": obl["id"]}), today):
                continue
            pendientes.append((obl, tipo_para_envio(obl, today)))
        except (APIError, ValueError, TypeError) as e:
            log.error("no se pudo evaluar la obligación %s: %s", obl.get("id"), e)

    if not pendientes:
        return {"success": True, "message": "No hay alertas para enviar hoy", "enviados": 0}

    enviados, fallidos, errores, alerta_ids = 0, 0, [], []
    enviado_en = local_to_utc(now).isoformat()
    for obl, tipo in pendientes:
        destinatario = email_responsable(obl, config)
        try:
            email = email_template.scheduled_email(obl, tipo, config)
            enviar_correo(destinatario, email["asunto"], email["cuerpo"], config.get("cc_global"),
                          html=email["cuerpo"], config=config)
            alerta = adapter.save_alerta({
                "id": f"auto-{obl['id']}-{today.isoformat()}-{millis()}",
                "obligacion_id": obl["id"],
                "tipo": tipo,
                "fecha": today.isoformat(),
                "estado": "enviada",
                "fecha_envio": enviado_en,
                "destinatario": destinatario,
                "dias_restantes": days_until(obl.get("fecha_limite"), today),
            })
            alerta_ids.append(alerta["id"])
            enviados += 1
        except APIError as e:
            fallidos += 1
            errores.append({"obligacion_id": obl["id"], "error": e.message})
            log.error("envío automático para %s falló: %s", obl["id"], e.message)

    envio = envios_service.registrar_envio({
        "tipo": "automatico",
        "fecha": enviado_en,
        "correos_enviados": enviados,
        "fallidos": fallidos,
        "alertas": alerta_ids,
        "errores": errores,
        "estado": envios_service.estado_envio(enviados, fallidos),
    }, SYSTEM_ACTOR)
    audit_service.registrar("Ejecutó envío automático", {
        "envio_id": envio["id"], "enviados": enviados, "fallidos": fallidos,
    }, SYSTEM_ACTOR)

    out = {"success": True, "message": "Envío automático completado", "enviados": enviados, "fallidos": fallidos}
    if errores:
        out["errores"] = errores
    return out
